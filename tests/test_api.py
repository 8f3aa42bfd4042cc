"""
Tests for the REST wrapper, using httpx.MockTransport in place of the backend.
"""

import json

import httpx
import pytest

from sced_bulk_verifier.core.utils.clients import create_verification_api, get_api_url
from sced_bulk_verifier.core.verification.errors import (
    APIStatusError,
    MalformedResponseError,
    NotAuthenticatedError,
    RateLimitedError,
    ServerReportedError,
    TransportError,
)
from sced_bulk_verifier.core.verification.models import BatchStatus

from conftest import make_progress, make_result, make_upload_data

API_URL = "https://certs.example.org/api/v1"


def _api(handler, token="secret-token"):
    return create_verification_api(API_URL, token=token, transport=httpx.MockTransport(handler))


def _ok(data):
    return httpx.Response(200, json={"success": True, "data": data})


class TestEndpoints:

    @pytest.mark.asyncio
    async def test_upload_sends_multipart_csv_file(self, csv_file):
        seen = {}

        def handler(request):
            seen["method"] = request.method
            seen["path"] = request.url.path
            seen["auth"] = request.headers.get("Authorization")
            seen["content_type"] = request.headers.get("Content-Type")
            seen["body"] = request.content
            return _ok(make_upload_data(total=50, cte=20))

        async with _api(handler) as api:
            preview = await api.upload(csv_file)

        assert seen["method"] == "POST"
        assert seen["path"] == "/api/v1/bulk-verification/upload"
        assert seen["auth"] == "Bearer secret-token"
        assert seen["content_type"].startswith("multipart/form-data")
        assert b'name="csvFile"' in seen["body"]
        assert b'filename="contacts.csv"' in seen["body"]
        assert preview.total_contacts == 50
        assert preview.cte_contacts == 20
        assert preview.contacts[1].full_name == "Alan Turing"
        assert preview.cte_contacts_preview[0].original_row == 2

    @pytest.mark.asyncio
    async def test_start_sends_file_path_and_options(self):
        seen = {}

        def handler(request):
            seen["path"] = request.url.path
            seen["json"] = json.loads(request.content)
            return _ok({"batchId": "b-42"})

        async with _api(handler) as api:
            batch_id = await api.start("uploads/contacts-123.csv", cte_only=True)

        assert batch_id == "b-42"
        assert seen["path"] == "/api/v1/bulk-verification/start"
        assert seen["json"] == {"filePath": "uploads/contacts-123.csv", "options": {"cteOnly": True}}

    @pytest.mark.asyncio
    async def test_get_progress(self):
        def handler(request):
            assert request.url.path == "/api/v1/bulk-verification/batch/b-42/progress"
            return _ok(make_progress("b-42", processed=10, total=50))

        async with _api(handler) as api:
            job = await api.get_progress("b-42")

        assert job.id == "b-42"
        assert job.status is BatchStatus.PROCESSING
        assert job.progress_percentage == 20
        assert job.current_contact == "Ada Lovelace"

    @pytest.mark.asyncio
    async def test_get_results_preserves_order(self):
        def handler(request):
            assert request.url.path == "/api/v1/bulk-verification/batch/b-42/results"
            return _ok({"results": [make_result(7, success=False), make_result(3), make_result(5)]})

        async with _api(handler) as api:
            results = await api.get_results("b-42")

        assert [r.contact.original_row for r in results] == [7, 3, 5]
        assert results[0].error == "No certification found"
        assert results[0].certifications is None
        assert results[1].certification_names() == ["Career and Technical Education"]
        assert results[1].expiration_alerts[0].severity == "warning"
        assert results[1].error is None

    @pytest.mark.asyncio
    async def test_download_returns_bytes(self):
        def handler(request):
            assert request.url.path == "/api/v1/bulk-verification/batch/b-42/download"
            return httpx.Response(200, content=b"a,b\n1,2\n", headers={"Content-Type": "text/csv"})

        async with _api(handler) as api:
            assert await api.download("b-42") == b"a,b\n1,2\n"


class TestErrorMapping:

    @pytest.mark.asyncio
    async def test_missing_token_fails_before_request(self):
        calls = []

        def handler(request):
            calls.append(request)
            return _ok({})

        async with _api(handler, token="") as api:
            assert not api.has_token
            with pytest.raises(NotAuthenticatedError):
                await api.get_progress("b-1")
            with pytest.raises(NotAuthenticatedError):
                await api.start("uploads/x.csv")
        assert calls == []

    @pytest.mark.asyncio
    async def test_429_is_rate_limited(self):
        def handler(request):
            return httpx.Response(429, headers={"Retry-After": "12"}, text="Too many requests")

        async with _api(handler) as api:
            with pytest.raises(RateLimitedError) as exc_info:
                await api.get_progress("b-1")
        assert exc_info.value.retry_after == 12.0

    @pytest.mark.asyncio
    async def test_401_is_not_authenticated(self):
        async with _api(lambda request: httpx.Response(401)) as api:
            with pytest.raises(NotAuthenticatedError):
                await api.get_progress("b-1")

    @pytest.mark.asyncio
    async def test_server_error_is_api_status_error(self):
        async with _api(lambda request: httpx.Response(500, text="boom")) as api:
            with pytest.raises(APIStatusError) as exc_info:
                await api.start("uploads/x.csv")
        assert exc_info.value.status_code == 500
        assert "boom" in str(exc_info.value)
        assert isinstance(exc_info.value, TransportError)

    @pytest.mark.asyncio
    async def test_invalid_json_is_malformed(self):
        async with _api(lambda request: httpx.Response(200, text="<html>")) as api:
            with pytest.raises(MalformedResponseError):
                await api.get_progress("b-1")

    @pytest.mark.asyncio
    async def test_invalid_progress_body_is_malformed(self):
        bad = make_progress(processed=60, total=50)

        async with _api(lambda request: _ok(bad)) as api:
            with pytest.raises(MalformedResponseError):
                await api.get_progress("b-1")

    @pytest.mark.asyncio
    async def test_unknown_status_is_malformed(self):
        bad = make_progress(status="paused")

        async with _api(lambda request: _ok(bad)) as api:
            with pytest.raises(MalformedResponseError, match="paused"):
                await api.get_progress("b-1")

    @pytest.mark.asyncio
    async def test_success_false_is_server_reported(self):
        def handler(request):
            return httpx.Response(200, json={"success": False, "error": "Invalid CSV format"})

        async with _api(handler) as api:
            with pytest.raises(ServerReportedError, match="Invalid CSV format"):
                await api.start("uploads/x.csv")

    @pytest.mark.asyncio
    async def test_timeout_is_transport_error(self):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        async with _api(handler) as api:
            with pytest.raises(TransportError, match="timed out"):
                await api.get_progress("b-1")

    @pytest.mark.asyncio
    async def test_connection_error_is_transport_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        async with _api(handler) as api:
            with pytest.raises(TransportError):
                await api.get_results("b-1")

    @pytest.mark.asyncio
    async def test_missing_batch_id(self):
        async with _api(lambda request: _ok({})) as api:
            with pytest.raises(MalformedResponseError):
                await api.start("uploads/x.csv")


class TestClients:

    def test_api_url_from_environment(self, monkeypatch):
        monkeypatch.setenv("BULK_VERIFY_API_URL", "https://env.example.org/api/v1/")
        assert get_api_url() == "https://env.example.org/api/v1"
        assert get_api_url("https://arg.example.org") == "https://arg.example.org"

    def test_default_api_url(self, monkeypatch):
        monkeypatch.delenv("BULK_VERIFY_API_URL", raising=False)
        assert get_api_url() == "http://localhost:4000/api/v1"

    @pytest.mark.asyncio
    async def test_token_from_environment(self, monkeypatch):
        monkeypatch.setenv("BULK_VERIFY_TOKEN", "env-token")
        async with create_verification_api(API_URL) as api:
            assert api.has_token
            assert api.http_client.headers["Authorization"] == "Bearer env-token"
