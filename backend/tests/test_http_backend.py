"""Tests for the HTTP upload backend.

All traffic goes through ``httpx.MockTransport``; no network is used.
"""
import asyncio
import json

import httpx
import pytest

from conftest import make_file
from maestro.config import AppConfig
from maestro.upload.backend import TransferComplete, TransferProgress, UploadCredential
from maestro.upload.errors import CredentialError, NotifyError, SummaryError, TransferError
from maestro.upload.http_backend import HttpUploadBackend

API = "https://api.example.com"
BUCKET = "https://bucket.example.com/"


def _backend(handler, **kwargs) -> HttpUploadBackend:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return HttpUploadBackend(base_url=API, client=client, **kwargs)


async def _events(backend, credential, file):
    return [event async for event in backend.transfer(credential, file)]


class TestFetchUploadCredential:
    """Test the credential request."""

    @pytest.mark.asyncio
    async def test_parses_presigned_post(self):
        """Test that the presigned target and fields are returned."""
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["body"] = json.loads(request.content)
            seen["auth"] = request.headers.get("authorization")
            return httpx.Response(
                200,
                json={"url": BUCKET, "fields": {"key": "uploads/${filename}", "policy": "abc"}},
            )

        backend = _backend(handler, api_token="secret")
        credential = await backend.fetch_upload_credential("a.txt")

        assert seen["url"] == f"{API}/upload-url"
        assert seen["body"] == {"fileName": "a.txt"}
        assert seen["auth"] == "Bearer secret"
        assert credential.target_url == BUCKET
        assert credential.form_fields == {"key": "uploads/${filename}", "policy": "abc"}

    @pytest.mark.asyncio
    async def test_http_error_maps_to_credential_error(self):
        """Test that a non-2xx response raises CredentialError."""
        backend = _backend(lambda request: httpx.Response(403))
        with pytest.raises(CredentialError) as exc_info:
            await backend.fetch_upload_credential("a.txt")
        assert "403" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_missing_url_is_rejected(self):
        """Test that a response without a target url is a credential failure."""
        backend = _backend(lambda request: httpx.Response(200, json={"fields": {}}))
        with pytest.raises(CredentialError):
            await backend.fetch_upload_credential("a.txt")

    @pytest.mark.asyncio
    async def test_connection_error(self):
        """Test that a transport error raises CredentialError."""
        def handler(request):
            raise httpx.ConnectError("connection refused")

        with pytest.raises(CredentialError):
            await _backend(handler).fetch_upload_credential("a.txt")


class TestTransfer:
    """Test the multipart transfer to the object store."""

    @pytest.mark.asyncio
    async def test_posts_fields_then_file_and_reports_progress(self):
        """Test field order, progress reporting and key substitution."""
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["body"] = request.content
            seen["auth"] = request.headers.get("authorization")
            return httpx.Response(204)

        backend = _backend(handler, api_token="secret")
        credential = UploadCredential(
            target_url=BUCKET, form_fields={"key": "uploads/${filename}", "policy": "abc"}
        )
        file = make_file("a.txt", size=100)
        events = await _events(backend, credential, file)

        progress = [e for e in events if isinstance(e, TransferProgress)]
        assert progress
        assert progress[-1].bytes_acked == 100
        assert all(e.total_bytes == 100 for e in progress)
        assert events[-1] == TransferComplete(object_key="uploads/a.txt")

        body = seen["body"]
        assert seen["url"] == BUCKET
        assert seen["auth"] is None
        assert body.index(b'name="key"') < body.index(b'name="policy"') < body.index(b'name="file"')
        assert b"x" * 100 in body

    @pytest.mark.asyncio
    async def test_falls_back_to_credential_key_hint(self):
        """Test that the credential's objectKey is used when fields carry no key."""
        backend = _backend(lambda request: httpx.Response(200))
        credential = UploadCredential(target_url=BUCKET, object_key_hint="objects/42")
        events = await _events(backend, credential, make_file("a.txt"))
        assert events[-1] == TransferComplete(object_key="objects/42")

    @pytest.mark.asyncio
    async def test_rejected_upload(self):
        """Test that an object-store error status raises TransferError."""
        backend = _backend(lambda request: httpx.Response(403))
        credential = UploadCredential(target_url=BUCKET, form_fields={"key": "k"})
        with pytest.raises(TransferError) as exc_info:
            await _events(backend, credential, make_file("a.txt"))
        assert "403" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_transport_error(self):
        """Test that a dropped connection raises TransferError."""
        def handler(request):
            raise httpx.ReadError("connection reset")

        credential = UploadCredential(target_url=BUCKET, form_fields={"key": "k"})
        with pytest.raises(TransferError):
            await _events(_backend(handler), credential, make_file("a.txt"))

    @pytest.mark.asyncio
    async def test_timed_out_transfer_leaves_no_pending_tasks(self):
        """Test that abandoning a stalled transfer cancels its helper tasks."""
        async def stalled(request):
            await asyncio.sleep(10)
            return httpx.Response(204)

        credential = UploadCredential(target_url=BUCKET, form_fields={"key": "k"})
        events = _backend(stalled).transfer(credential, make_file("a.txt")).__aiter__()

        first = await events.__anext__()
        assert isinstance(first, TransferProgress)
        with pytest.raises(asyncio.TimeoutError):
            await asyncio.wait_for(events.__anext__(), 0.05)

        for _ in range(3):
            await asyncio.sleep(0.01)
        assert asyncio.all_tasks() == {asyncio.current_task()}


class TestNotifyAndSummary:
    """Test the notify and summary calls."""

    @pytest.mark.asyncio
    async def test_notify_returns_object_key(self):
        """Test that notify quotes the name and returns objectKey."""
        seen = {}

        def handler(request):
            seen["path"] = request.url.raw_path
            return httpx.Response(200, json={"objectKey": "processed/a b.txt"})

        key = await _backend(handler).notify("a b.txt")
        assert key == "processed/a b.txt"
        assert seen["path"] == b"/v1/notify/a%20b.txt"

    @pytest.mark.asyncio
    async def test_notify_reads_nested_key(self):
        """Test that notify falls back to fields.key."""
        backend = _backend(lambda request: httpx.Response(200, json={"fields": {"key": "k1"}}))
        assert await backend.notify("a.txt") == "k1"

    @pytest.mark.asyncio
    async def test_notify_without_key(self):
        """Test that a notify response with no key raises NotifyError."""
        backend = _backend(lambda request: httpx.Response(200, json={}))
        with pytest.raises(NotifyError):
            await backend.notify("a.txt")

    @pytest.mark.asyncio
    async def test_summary_structured(self):
        """Test that a structured summary is parsed from camelCase JSON."""
        seen = {}

        def handler(request):
            seen["path"] = request.url.raw_path
            return httpx.Response(
                200,
                json={"summary": "Short", "keyPoints": [{"title": "T"}], "recommendations": ["R"]},
            )

        payload = await _backend(handler).trigger_summary("uploads/a.txt")
        assert seen["path"] == b"/v2/summary/uploads%2Fa.txt"
        assert payload.summary == "Short"
        assert payload.key_points[0].title == "T"
        assert payload.recommendations == ["R"]

    @pytest.mark.asyncio
    async def test_summary_plain_text(self):
        """Test that a bare JSON string becomes the summary text."""
        backend = _backend(lambda request: httpx.Response(200, json="Just text"))
        payload = await backend.trigger_summary("k")
        assert payload.summary == "Just text"

    @pytest.mark.asyncio
    async def test_summary_server_error(self):
        """Test that a 5xx response raises SummaryError."""
        backend = _backend(lambda request: httpx.Response(500))
        with pytest.raises(SummaryError):
            await backend.trigger_summary("k")

    @pytest.mark.asyncio
    async def test_summary_invalid_json(self):
        """Test that a non-JSON body raises SummaryError."""
        backend = _backend(lambda request: httpx.Response(200, content=b"<html>"))
        with pytest.raises(SummaryError):
            await backend.trigger_summary("k")


class TestConstruction:
    """Test building and closing the backend."""

    def test_from_config(self):
        """Test that settings and the api token are read from AppConfig."""
        config = AppConfig.model_validate({
            "backend": {"base_url": "https://ingest.example.com/", "notify_path": "/notify"},
            "secrets": {"backend": {"api_token": "tok"}},
        })
        backend = HttpUploadBackend.from_config(config)
        assert backend._url("/x") == "https://ingest.example.com/x"
        assert backend._notify_path == "/notify"
        assert backend._headers == {"Authorization": "Bearer tok"}

    @pytest.mark.asyncio
    async def test_aclose_closes_client(self):
        """Test that aclose() closes the httpx client."""
        client = httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(200)))
        backend = HttpUploadBackend(base_url=API, client=client)
        await backend.aclose()
        assert client.is_closed
