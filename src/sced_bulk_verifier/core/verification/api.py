# -*- coding: utf-8 -*-
"""
This module wraps the bulk verification REST endpoints of the certification
backend: uploading a contacts CSV, starting a verification batch, checking
its progress, fetching its results and downloading the result file.

Every call maps HTTP outcomes onto the exceptions in ``errors``:
401 -> NotAuthenticatedError, 429 -> RateLimitedError, other non-2xx ->
APIStatusError, undecodable bodies -> MalformedResponseError, and
``success: false`` bodies -> ServerReportedError.
"""

import json
import logging
from pathlib import Path
from typing import Optional

import httpx

from ..utils.misc import mask_path
from .errors import (
    APIStatusError,
    MalformedResponseError,
    NotAuthenticatedError,
    RateLimitedError,
    ServerReportedError,
    TransportError,
)
from .models import BatchJob, UploadPreview, VerificationResult

UPLOAD_PATH = "/bulk-verification/upload"
START_PATH = "/bulk-verification/start"
PROGRESS_PATH = "/bulk-verification/batch/{batch_id}/progress"
RESULTS_PATH = "/bulk-verification/batch/{batch_id}/results"
DOWNLOAD_PATH = "/bulk-verification/batch/{batch_id}/download"

UPLOAD_FIELD = "csvFile"


class VerificationAPI:
    """Async client for the ``/bulk-verification`` endpoints."""

    def __init__(self, http_client: httpx.AsyncClient):
        self.http_client = http_client

    async def aclose(self):
        await self.http_client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        await self.aclose()

    @property
    def has_token(self) -> bool:
        auth = self.http_client.headers.get("Authorization", "")
        return auth.startswith("Bearer ") and bool(auth[len("Bearer "):].strip())

    def require_token(self):
        if not self.has_token:
            raise NotAuthenticatedError("Authentication required. Please log in and set a bearer token.")

    #=========================================================================
    # Endpoints
    #=========================================================================

    async def upload(self, file_path: str | Path) -> UploadPreview:
        """
        Upload a contacts CSV for analysis.

        Args:
            file_path: Path to a local CSV file.

        Returns:
            UploadPreview: Contact counts, sample rows and the server file reference.
        """
        self.require_token()
        file_path = Path(file_path)
        logging.info(f"Uploading {mask_path(file_path)} for bulk verification...")
        with open(file_path, "rb") as f:
            files = {UPLOAD_FIELD: (file_path.name, f, "text/csv")}
            response = await self._send("POST", UPLOAD_PATH, files=files)
        data = self._unwrap(response, "upload")
        preview = UploadPreview.from_dict(data)
        logging.info(f"Uploaded {preview.file_name}: {preview.total_contacts} contacts "
                     f"({preview.cte_contacts} CTE/WBL)")
        return preview

    async def start(self, file_path: str, cte_only: bool = True) -> str:
        """
        Start asynchronous verification of a previously uploaded file.

        Args:
            file_path: Server file reference returned by ``upload``.
            cte_only: Only verify CTE/WBL contacts.

        Returns:
            str: The batch ID assigned by the server.
        """
        self.require_token()
        payload = {"filePath": file_path, "options": {"cteOnly": cte_only}}
        response = await self._send("POST", START_PATH, json=payload)
        data = self._unwrap(response, "start")
        if not isinstance(data, dict) or not data.get("batchId"):
            raise MalformedResponseError("Missing 'batchId' in start response")
        batch_id = str(data["batchId"])
        logging.info(f"Verification batch started with ID: {batch_id}")
        return batch_id

    async def get_progress(self, batch_id: str) -> BatchJob:
        self.require_token()
        response = await self._send("GET", PROGRESS_PATH.format(batch_id=batch_id))
        data = self._unwrap(response, "progress")
        return BatchJob.from_dict(data)

    async def get_results(self, batch_id: str) -> list[VerificationResult]:
        self.require_token()
        response = await self._send("GET", RESULTS_PATH.format(batch_id=batch_id))
        data = self._unwrap(response, "results")
        if not isinstance(data, dict) or not isinstance(data.get("results"), list):
            raise MalformedResponseError("Missing 'results' list in results response")
        return [VerificationResult.from_dict(item) for item in data["results"]]

    async def download(self, batch_id: str) -> bytes:
        self.require_token()
        response = await self._send("GET", DOWNLOAD_PATH.format(batch_id=batch_id))
        return response.content

    #=========================================================================
    # Response handling
    #=========================================================================

    async def _send(self, method: str, path: str, **kwargs) -> httpx.Response:
        try:
            response = await self.http_client.request(method, path, **kwargs)
        except httpx.TimeoutException as e:
            raise TransportError(f"{method} {path} timed out: {e}") from e
        except httpx.HTTPError as e:
            raise TransportError(f"{method} {path} failed: {e}") from e

        logging.debug(f"{method} {path} -> {response.status_code}")

        if response.status_code == 401:
            raise NotAuthenticatedError("The verification API rejected the bearer token (HTTP 401).")
        if response.status_code == 429:
            raise RateLimitedError(retry_after=_parse_retry_after(response))
        if not response.is_success:
            raise APIStatusError(
                response.status_code,
                f"{method} {path} failed: {response.status_code} - {response.text}",
                body=response.text,
            )
        return response

    @staticmethod
    def _unwrap(response: httpx.Response, what: str):
        """Return the ``data`` member of a ``{success, data}`` envelope."""
        try:
            body = response.json()
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise MalformedResponseError(f"Invalid JSON in {what} response: {e}") from e

        if not isinstance(body, dict) or "success" not in body:
            raise MalformedResponseError(f"Unexpected {what} response envelope")
        if not body["success"]:
            raise ServerReportedError(body.get("error") or body.get("message") or f"{what.capitalize()} failed")
        if "data" not in body:
            raise MalformedResponseError(f"Missing 'data' in {what} response")
        return body["data"]


def _parse_retry_after(response: httpx.Response) -> Optional[float]:
    value = response.headers.get("Retry-After")
    if value is None:
        return None
    try:
        return float(value)
    except ValueError:
        return None
