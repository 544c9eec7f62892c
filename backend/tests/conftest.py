"""Shared test fixtures and configuration for backend tests."""
import asyncio
from typing import AsyncIterator, Dict, Iterable, List, Optional

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from maestro.config import AppConfig
from maestro.files.router import router as files_router
from maestro.files.schemas import FileDescriptor, SummaryPayload
from maestro.files.store import FileRecordStore
from maestro.pipeline import IngestPipeline, set_pipeline
from maestro.sessions.router import router as sessions_router
from maestro.upload.backend import (
    TransferComplete,
    TransferEvent,
    TransferProgress,
    UploadBackend,
    UploadCredential,
)
from maestro.upload.errors import CredentialError, NotifyError, SummaryError, TransferError


class FakeUploadBackend(UploadBackend):
    """In-memory UploadBackend.

    Args:
        fractions: Fractions of the payload reported as acknowledged, in order.
        fail: file name -> step ("credential", "transfer", "notify", "summary")
            at which that file fails.
        hold: file names whose transfer blocks until ``release`` is set.
    """

    def __init__(
        self,
        fractions: Iterable[float] = (0.0, 0.5, 1.0),
        fail: Optional[Dict[str, str]] = None,
        hold: Iterable[str] = (),
    ) -> None:
        self.fractions = list(fractions)
        self.fail = dict(fail or {})
        self.hold = set(hold)
        self.release = asyncio.Event()
        self.calls: List[tuple] = []
        self.in_flight = 0
        self.max_in_flight = 0
        self.closed = False

    async def fetch_upload_credential(self, file_name: str) -> UploadCredential:
        self.calls.append(("credential", file_name))
        await asyncio.sleep(0)
        if self.fail.get(file_name) == "credential":
            raise CredentialError("403 from credential service")
        return UploadCredential(
            target_url="https://bucket.example.com/",
            form_fields={"key": f"uploads/{file_name}", "policy": "p"},
        )

    async def transfer(
        self, credential: UploadCredential, file: FileDescriptor
    ) -> AsyncIterator[TransferEvent]:
        self.calls.append(("transfer", file.name))
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if file.name in self.hold:
                await self.release.wait()
            for index, fraction in enumerate(self.fractions):
                yield TransferProgress(bytes_acked=int(file.size * fraction), total_bytes=file.size)
                await asyncio.sleep(0)
                if index == 0 and self.fail.get(file.name) == "transfer":
                    raise TransferError("connection reset")
            yield TransferComplete(object_key=credential.form_fields.get("key"))
        finally:
            self.in_flight -= 1

    async def notify(self, file_name: str) -> str:
        self.calls.append(("notify", file_name))
        if self.fail.get(file_name) == "notify":
            raise NotifyError("404 from notify")
        return f"processed/{file_name}"

    async def trigger_summary(self, object_key: str) -> SummaryPayload:
        self.calls.append(("summary", object_key))
        await asyncio.sleep(0)
        if any(
            step == "summary" and object_key.endswith(name) for name, step in self.fail.items()
        ):
            raise SummaryError("summarizer unavailable")
        return SummaryPayload(summary=f"Summary of {object_key}")

    async def aclose(self) -> None:
        self.closed = True


def make_file(name: str, size: int = 100, mime_type: str = "text/plain") -> FileDescriptor:
    return FileDescriptor(name=name, mime_type=mime_type, content=b"x" * size)


@pytest.fixture
def backend() -> FakeUploadBackend:
    return FakeUploadBackend()


@pytest.fixture
def store() -> FileRecordStore:
    return FileRecordStore()


@pytest.fixture
def pipeline(backend):
    """Install an IngestPipeline over the fake backend for the test."""
    instance = IngestPipeline(backend, AppConfig())
    set_pipeline(instance)
    yield instance
    set_pipeline(None)


@pytest.fixture
def api_client(pipeline):
    """Provide a TestClient for an app with the ingestion routers.

    Built locally (not from maestro.main) so no lifespan replaces the fake
    pipeline.
    """
    app = FastAPI()
    app.include_router(files_router)
    app.include_router(sessions_router)
    return TestClient(app)
