"""
Tests for the command-line interface, run against the fake API.
"""

import importlib
from datetime import date

import pytest
from click.testing import CliRunner

from sced_bulk_verifier.cli.cli import cli
from sced_bulk_verifier.core.utils.registry import SessionRegistry
from sced_bulk_verifier.core.verification.errors import ServerReportedError

from conftest import job

FAST_POLLING = {"base_interval_ms": 1, "max_rate_limit_interval_ms": 4, "max_failure_interval_ms": 2}

# The cli package re-exports the click group under the same name as its module
cli_module = importlib.import_module("sced_bulk_verifier.cli.cli")
cli_utils = importlib.import_module("sced_bulk_verifier.cli.utils")


@pytest.fixture
def session(tmp_path, monkeypatch):
    registry = SessionRegistry(tmp_path / "config" / "session.yaml")
    registry.update_settings(polling=FAST_POLLING)
    monkeypatch.setattr(cli_module, "get_session", lambda: registry)
    return registry


@pytest.fixture
def api(fake_api, monkeypatch):
    monkeypatch.setattr(
        cli_utils, "create_verification_api",
        lambda *args, **kwargs: fake_api,
    )
    return fake_api


def invoke(*args):
    return CliRunner().invoke(cli, ["--token", "secret", "-q", *args])


class TestUploadAndStart:

    def test_upload_records_last_upload(self, session, api, csv_file):
        result = invoke("upload", str(csv_file))

        assert result.exit_code == 0, result.output
        assert api.upload_calls[0].endswith("contacts.csv")
        assert session.get_last_upload()["file_path"] == "uploads/contacts-123.csv"

    def test_upload_without_token_fails(self, session, api, csv_file):
        api.token = False
        result = invoke("upload", str(csv_file))

        assert result.exit_code == 1
        assert api.upload_calls == []
        assert session.get_last_upload() is None

    def test_upload_rejects_non_csv(self, session, api, tmp_path):
        path = tmp_path / "contacts.txt"
        path.write_text("hello")
        result = invoke("upload", str(path))

        assert result.exit_code == 1
        assert api.upload_calls == []

    def test_start_without_upload_is_usage_error(self, session, api):
        result = invoke("start")
        assert result.exit_code == 2
        assert api.start_calls == []

    def test_start_no_wait_records_batch(self, session, api):
        session.record_upload("contacts.csv", "uploads/contacts-123.csv", 50, 20)
        result = invoke("start", "--all-contacts", "--no-wait")

        assert result.exit_code == 0, result.output
        assert api.start_calls == [{"filePath": "uploads/contacts-123.csv", "options": {"cteOnly": False}}]
        assert api.progress_calls == []
        assert session.get_last_batch()["id"] == "batch-1"
        assert session.get_last_batch()["cte_only"] is False

    def test_start_failure_exits_with_error(self, session, api):
        api.start_error = ServerReportedError("Failed to start verification")
        result = invoke("start", "--file-path", "uploads/x.csv")

        assert result.exit_code == 1
        assert session.get_last_batch() is None


class TestVerify:

    def test_verify_saves_results_and_downloads(self, session, api, csv_file, tmp_path):
        api.progress = [job(processed=10), job(status="completed", processed=50)]
        out = tmp_path / "out"

        result = invoke("verify", str(csv_file), "--output-folder", str(out))

        assert result.exit_code == 0, result.output
        assert api.start_calls[0]["options"] == {"cteOnly": True}
        assert api.results_calls == ["batch-1"]
        assert (out / "batch_batch-1_results.csv").exists()
        assert (out / "batch_batch-1_results_summary.txt").exists()
        downloaded = out / f"verification-results-{date.today().isoformat()}.csv"
        assert downloaded.read_bytes() == api.download_content
        assert "=== Contacts ===" in result.output
        assert session.get_last_batch()["status"] == "completed"

    def test_verify_no_download(self, session, api, csv_file, tmp_path):
        api.progress = [job(status="completed", processed=50)]
        out = tmp_path / "out"

        result = invoke("verify", str(csv_file), "--output-folder", str(out),
                        "--file-type", "jsonl", "--no-download")

        assert result.exit_code == 0, result.output
        assert (out / "batch_batch-1_results.jsonl").exists()
        assert api.download_calls == []

    def test_failed_batch_exits_with_error(self, session, api, csv_file, tmp_path):
        api.progress = [job(status="error", processed=5, errors=5)]

        result = invoke("verify", str(csv_file), "--output-folder", str(tmp_path))

        assert result.exit_code == 1
        assert api.results_calls == []
        assert session.get_last_batch()["status"] == "error"


class TestBatchCommands:

    def test_progress_uses_last_batch(self, session, api):
        session.record_batch("batch-1", cte_only=True)
        result = invoke("progress")

        assert result.exit_code == 0, result.output
        assert api.progress_calls == ["batch-1"]
        assert session.get_last_batch()["status"] == "processing"

    def test_progress_without_batch_is_usage_error(self, session, api):
        result = invoke("progress")
        assert result.exit_code == 2
        assert api.progress_calls == []

    def test_watch_until_completion(self, session, api, tmp_path):
        api.progress = [job(processed=20), job(status="completed", processed=50)]
        result = invoke("watch", "batch-1", "--output-folder", str(tmp_path), "--no-download")

        assert result.exit_code == 0, result.output
        assert api.progress_calls == ["batch-1", "batch-1"]
        assert (tmp_path / "batch_batch-1_results.csv").exists()

    def test_results_command(self, session, api, tmp_path):
        output = tmp_path / "results.parquet"
        result = invoke("results", "batch-9", "--output", str(output),
                        "--file-type", "parquet", "--save-summary-dict")

        assert result.exit_code == 0, result.output
        assert api.results_calls == ["batch-9"]
        assert output.exists()
        assert (tmp_path / "results_summary.json").exists()

    def test_download_command(self, session, api, tmp_path):
        result = invoke("download", "batch-3", "--output-folder", str(tmp_path))

        assert result.exit_code == 0, result.output
        assert api.download_calls == ["batch-3"]
        assert len(list(tmp_path.glob("verification-results-*.csv"))) == 1

    def test_cancel_clears_last_batch(self, session, api):
        session.record_batch("batch-1", cte_only=True)

        assert invoke("cancel").exit_code == 0
        assert session.get_last_batch() is None
        assert invoke("cancel").exit_code == 0


class TestConfigure:

    def test_configure_stores_settings(self, session):
        result = invoke("configure", "--api-url", "https://certs.example.org/api/v1",
                        "--base-interval-ms", "2")

        assert result.exit_code == 0, result.output
        assert session.get_api_url() == "https://certs.example.org/api/v1"
        assert session.get_polling()["base_interval_ms"] == 2

    def test_configure_rejects_invalid_policy(self, session):
        result = invoke("configure", "--decay-factor", "1.5")

        assert result.exit_code == 2
        assert "decay_factor" not in session.get_polling()
