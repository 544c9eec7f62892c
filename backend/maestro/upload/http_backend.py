"""HTTP implementation of the UploadBackend interface.

Talks to the ingestion API with ``httpx.AsyncClient`` and posts payloads
directly to the object store using the S3 presigned-POST layout.

Credential request
------------------
::

    POST {base_url}{credential_path}     {"fileName": "report.pdf"}
    -> {"url": "https://bucket.s3...", "fields": {"key": "...", ...}, "objectKey": "..."?}

Transfer
--------
Multipart POST to ``url``: every credential field first, then the ``file``
part. Progress is measured as the multipart encoder reads the payload.

Notify (optional stage)
-----------------------
::

    GET {base_url}{notify_path}/{fileName}
    -> {"objectKey": "..."}  or  {"fields": {"key": "..."}}

Summary
-------
::

    GET {base_url}{summary_path}/{objectKey}
    -> {"summary": "...", "keyPoints": [...], "metrics": [...], "recommendations": [...]}
"""
import asyncio
import io
import logging
from typing import Any, AsyncIterator, Callable, Dict, Optional
from urllib.parse import quote

import httpx

from maestro.config import AppConfig
from maestro.files.schemas import FileDescriptor, SummaryPayload

from .backend import (
    TransferComplete,
    TransferEvent,
    TransferProgress,
    UploadBackend,
    UploadCredential,
)
from .errors import CredentialError, NotifyError, SummaryError, TransferError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 30.0

# S3 substitutes this placeholder in the "key" field with the uploaded filename
_FILENAME_PLACEHOLDER = "${filename}"


class _ProgressReader(io.BytesIO):
    """In-memory payload that reports its read position after every read."""

    def __init__(self, content: bytes, on_read: Callable[[int], None]) -> None:
        super().__init__(content)
        self._on_read = on_read

    def read(self, size: Optional[int] = -1) -> bytes:
        chunk = super().read(size)
        if chunk:
            self._on_read(self.tell())
        return chunk


def _describe(exc: Exception) -> str:
    return str(exc) or type(exc).__name__


class HttpUploadBackend(UploadBackend):
    """UploadBackend backed by the ingestion HTTP API.

    Args:
        base_url: Root URL of the ingestion API.
        credential_path: Path of the upload-credential endpoint.
        notify_path: Path prefix of the notify endpoint.
        summary_path: Path prefix of the summary endpoint.
        api_token: Optional bearer token sent to the ingestion API (never
            to the object store).
        timeout: Per-request timeout for API calls.
        transfer_timeout: Timeout for the object-store POST.
        client: Pre-built ``httpx.AsyncClient`` (tests inject one with a
            ``MockTransport``).
    """

    def __init__(
        self,
        base_url: str,
        credential_path: str = "/upload-url",
        notify_path: str = "/v1/notify",
        summary_path: str = "/v2/summary",
        api_token: Optional[str] = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        transfer_timeout: float = DEFAULT_TIMEOUT_SECONDS,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._credential_path = credential_path
        self._notify_path = notify_path.rstrip("/")
        self._summary_path = summary_path.rstrip("/")
        self._timeout = timeout
        self._transfer_timeout = transfer_timeout
        self._headers: Dict[str, str] = {}
        if api_token:
            self._headers["Authorization"] = f"Bearer {api_token}"
        self._client = client or httpx.AsyncClient(timeout=timeout)

    @classmethod
    def from_config(cls, config: AppConfig) -> "HttpUploadBackend":
        return cls(
            base_url=config.backend.base_url,
            credential_path=config.backend.credential_path,
            notify_path=config.backend.notify_path,
            summary_path=config.backend.summary_path,
            api_token=config.secrets.backend.api_token,
            timeout=config.ingestion.step_timeout_seconds,
            transfer_timeout=config.ingestion.transfer_timeout_seconds,
        )

    # -----------------------------------------------------------------------
    # Internal helpers
    # -----------------------------------------------------------------------

    def _url(self, path: str) -> str:
        return f"{self._base_url}{path}"

    async def _get_json(self, url: str, error_type: type) -> Any:
        try:
            response = await self._client.get(url, headers=self._headers, timeout=self._timeout)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as exc:
            raise error_type(f"HTTP {exc.response.status_code} from {url}") from exc
        except httpx.HTTPError as exc:
            raise error_type(_describe(exc)) from exc
        except ValueError as exc:
            raise error_type(f"invalid JSON from {url}") from exc

    # -----------------------------------------------------------------------
    # UploadBackend implementation
    # -----------------------------------------------------------------------

    async def fetch_upload_credential(self, file_name: str) -> UploadCredential:
        url = self._url(self._credential_path)
        try:
            response = await self._client.post(
                url,
                json={"fileName": file_name},
                headers=self._headers,
                timeout=self._timeout,
            )
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as exc:
            raise CredentialError(f"HTTP {exc.response.status_code} from {url}") from exc
        except httpx.HTTPError as exc:
            raise CredentialError(_describe(exc)) from exc
        except ValueError as exc:
            raise CredentialError(f"invalid JSON from {url}") from exc

        target_url = data.get("url") or data.get("targetUrl") if isinstance(data, dict) else None
        if not target_url:
            raise CredentialError("credential response has no target url")

        fields = data.get("fields") or data.get("formFields") or {}
        hint = data.get("objectKey")
        logger.debug("[HttpBackend] credential for %s -> %s", file_name, target_url)
        return UploadCredential(
            target_url=target_url,
            form_fields={str(k): str(v) for k, v in fields.items()},
            object_key_hint=hint,
        )

    async def transfer(
        self, credential: UploadCredential, file: FileDescriptor
    ) -> AsyncIterator[TransferEvent]:
        positions: asyncio.Queue = asyncio.Queue()
        body = _ProgressReader(file.content, positions.put_nowait)
        request = asyncio.ensure_future(
            self._client.post(
                credential.target_url,
                data=credential.form_fields,
                files={"file": (file.name, body, file.mime_type or "application/octet-stream")},
                timeout=self._transfer_timeout,
            )
        )
        waiter: Optional[asyncio.Future] = None

        try:
            while not request.done():
                waiter = asyncio.ensure_future(positions.get())
                await asyncio.wait({request, waiter}, return_when=asyncio.FIRST_COMPLETED)
                if waiter.done():
                    yield TransferProgress(bytes_acked=waiter.result(), total_bytes=file.size)
                else:
                    waiter.cancel()
            while not positions.empty():
                yield TransferProgress(bytes_acked=positions.get_nowait(), total_bytes=file.size)
            response = request.result()
        except httpx.HTTPError as exc:
            raise TransferError(_describe(exc)) from exc
        finally:
            if waiter is not None and not waiter.done():
                waiter.cancel()
            if not request.done():
                request.cancel()

        if response.status_code >= 400:
            raise TransferError(f"HTTP {response.status_code} from object store")

        key = credential.form_fields.get("key")
        if key:
            key = key.replace(_FILENAME_PLACEHOLDER, file.name)
        yield TransferComplete(object_key=key or credential.object_key_hint)

    async def notify(self, file_name: str) -> str:
        url = self._url(f"{self._notify_path}/{quote(file_name, safe='')}")
        data = await self._get_json(url, NotifyError)
        key = None
        if isinstance(data, dict):
            key = data.get("objectKey") or (data.get("fields") or {}).get("key")
        if not key:
            raise NotifyError("notify response has no object key")
        return key

    async def trigger_summary(self, object_key: str) -> SummaryPayload:
        url = self._url(f"{self._summary_path}/{quote(object_key, safe='')}")
        data = await self._get_json(url, SummaryError)
        if isinstance(data, str):
            return SummaryPayload(summary=data)
        if not isinstance(data, dict):
            raise SummaryError("unexpected summary response")
        try:
            return SummaryPayload.model_validate(data)
        except ValueError as exc:
            raise SummaryError(f"malformed summary: {exc}") from exc

    async def aclose(self) -> None:
        await self._client.aclose()
