"""
Pytest configuration and shared fixtures for the SCED Bulk Verifier tests.
"""
import asyncio
from pathlib import Path

import pytest

from sced_bulk_verifier.core.verification.errors import NotAuthenticatedError
from sced_bulk_verifier.core.verification.models import (
    BatchJob,
    UploadPreview,
    VerificationResult,
)


# ============================================================================
# Payload builders
# ============================================================================

def make_contact(row=2, first="Ada", last="Lovelace", type_="CTE"):
    return {
        "firstName": first,
        "lastName": last,
        "type": type_,
        "email": f"{first.lower()}@example.org",
        "status": "active",
        "originalRow": row,
    }


def make_upload_data(total=50, cte=20):
    return {
        "fileName": "contacts.csv",
        "totalContacts": total,
        "cteContacts": cte,
        "contacts": [make_contact(2), make_contact(3, "Alan", "Turing", "WBL")],
        "cteContactsPreview": [make_contact(2)],
        "filePath": "uploads/contacts-123.csv",
    }


def make_progress(batch_id="batch-1", status="processing", processed=10, total=50,
                  success=None, errors=0):
    return {
        "id": batch_id,
        "status": status,
        "totalContacts": total,
        "processedContacts": processed,
        "successCount": processed - errors if success is None else success,
        "errorCount": errors,
        "startTime": "2026-10-17T09:00:00Z",
        "currentContact": "Ada Lovelace" if status == "processing" else None,
    }


def make_result(row=2, success=True):
    data = {"contact": make_contact(row), "success": success}
    if success:
        data["certifications"] = [{"name": "Career and Technical Education"}]
        data["expirationAlerts"] = [{
            "certification": "Career and Technical Education",
            "expirationDate": "2026-12-01",
            "daysUntilExpiration": 45,
            "severity": "warning",
        }]
        data["scedCodes"] = ["10001", "10002"]
    else:
        data["error"] = "No certification found"
    return data


# ============================================================================
# Fake API
# ============================================================================

class FakeVerificationAPI:
    """
    Scripted stand-in for VerificationAPI.

    ``progress`` is a list of BatchJob instances or exceptions returned /
    raised by successive ``get_progress`` calls; the last entry repeats.
    ``results_gate`` (an asyncio.Event) holds ``get_results`` open until set.
    """

    def __init__(self, progress=None, results=None, token=True):
        self.progress = list(progress or [])
        self.results = results if results is not None else []
        self.token = token
        self.upload_calls = []
        self.start_calls = []
        self.progress_calls = []
        self.results_calls = []
        self.download_calls = []
        self.batch_ids = iter(f"batch-{i}" for i in range(1, 100))
        self.upload_error = None
        self.start_error = None
        self.results_error = None
        self.results_gate = None
        self.download_content = b"first,last,verified\nAda,Lovelace,yes\n"

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        return None

    @property
    def has_token(self):
        return self.token

    def require_token(self):
        if not self.token:
            raise NotAuthenticatedError("Authentication required")

    async def upload(self, file_path):
        self.upload_calls.append(file_path)
        if self.upload_error:
            raise self.upload_error
        return UploadPreview.from_dict(make_upload_data())

    async def start(self, file_path, cte_only=True):
        self.start_calls.append({"filePath": file_path, "options": {"cteOnly": cte_only}})
        if self.start_error:
            raise self.start_error
        return next(self.batch_ids)

    async def get_progress(self, batch_id):
        self.progress_calls.append(batch_id)
        index = min(len(self.progress_calls), len(self.progress)) - 1
        item = self.progress[index]
        if isinstance(item, Exception):
            raise item
        return item

    async def get_results(self, batch_id):
        self.results_calls.append(batch_id)
        if self.results_gate is not None:
            await self.results_gate.wait()
        if self.results_error:
            raise self.results_error
        return self.results

    async def download(self, batch_id):
        self.download_calls.append(batch_id)
        return self.download_content


def job(**kwargs) -> BatchJob:
    return BatchJob.from_dict(make_progress(**kwargs))


async def drain(cycles=5):
    """Let scheduled tasks run without advancing timers."""
    for _ in range(cycles):
        await asyncio.sleep(0)


# ============================================================================
# Fixtures
# ============================================================================

@pytest.fixture
def fake_api():
    return FakeVerificationAPI(
        progress=[job()],
        results=[VerificationResult.from_dict(make_result(2)),
                 VerificationResult.from_dict(make_result(3, success=False))],
    )


@pytest.fixture
def csv_file(tmp_path) -> Path:
    path = tmp_path / "contacts.csv"
    path.write_text("First Name,Last Name,Type,Email\nAda,Lovelace,CTE,ada@example.org\n")
    return path
