"""Per-file upload workflow.

Drives one file through the remote protocol, strictly in sequence:

    1. credential fetch   -> UploadCredential
    2. binary transfer    -> progress events, then the object key
    3. notify (optional)  -> object key assigned by the backend
    4. summary trigger    -> SummaryPayload

State machine:

    Idle -> Uploading -> Summarizing -> Completed
               |              |
               +----> Error <-+

The orchestrator never touches shared state. ``run()`` is an async
generator of FileRecord deltas; the caller merges them into the store.
Every step is bounded by a timeout and a timed-out step fails exactly like
a transport error for that step. Nothing is retried here.
"""
import asyncio
import logging
import math
from dataclasses import dataclass
from typing import AsyncIterator, Awaitable, Optional, Type, TypeVar

from maestro.files.schemas import FileDescriptor, FileRecord, FileStatus, SummaryPayload, format_file_size

from .backend import TransferComplete, UploadBackend, UploadCredential
from .errors import (
    CredentialError,
    IngestError,
    NotifyError,
    SummaryError,
    TransferError,
    UploadCancelledError,
)

logger = logging.getLogger(__name__)

DEFAULT_STEP_TIMEOUT_SECONDS = 30.0
DEFAULT_TRANSFER_TIMEOUT_SECONDS = 300.0

T = TypeVar("T")


def transfer_percent(bytes_acked: int, total_bytes: int) -> int:
    """Percent of the payload acknowledged by the transport.

    Rounded half-up and held at 99 until every byte is acknowledged.
    """
    if total_bytes <= 0 or bytes_acked >= total_bytes:
        return 100
    percent = math.floor(bytes_acked / total_bytes * 100 + 0.5)
    return max(0, min(99, percent))


@dataclass
class UploadTask:
    """Intermediate results of one upload attempt."""
    file: FileDescriptor
    size_label: str
    credential: Optional[UploadCredential] = None
    object_key: Optional[str] = None
    summary: Optional[SummaryPayload] = None


class UploadOrchestrator:
    """Runs one upload attempt for one file.

    Args:
        file: The admitted file.
        backend: Remote collaborators.
        notify_enabled: Run the notify stage between transfer and summary.
        step_timeout: Bound for credential, notify and summary calls.
        transfer_timeout: Bound for the whole binary transfer.
    """

    def __init__(
        self,
        file: FileDescriptor,
        backend: UploadBackend,
        notify_enabled: bool = False,
        step_timeout: float = DEFAULT_STEP_TIMEOUT_SECONDS,
        transfer_timeout: float = DEFAULT_TRANSFER_TIMEOUT_SECONDS,
    ) -> None:
        self.task = UploadTask(file=file, size_label=format_file_size(file.size))
        self.status: Optional[FileStatus] = None  # None while idle
        self._backend = backend
        self._notify_enabled = notify_enabled
        self._step_timeout = step_timeout
        self._transfer_timeout = transfer_timeout

    @property
    def name(self) -> str:
        return self.task.file.name

    @property
    def summary(self) -> Optional[SummaryPayload]:
        return self.task.summary

    # -----------------------------------------------------------------------
    # Records
    # -----------------------------------------------------------------------

    def _record(
        self,
        status: FileStatus,
        progress: Optional[int] = None,
        error: Optional[str] = None,
    ) -> FileRecord:
        self.status = status
        return FileRecord(
            name=self.name,
            size=self.task.size_label,
            status=status,
            progress=progress,
            error=error,
        )

    def cancelled_record(self) -> FileRecord:
        """Terminal record for an attempt torn down before finishing."""
        return self._record(FileStatus.ERROR, error=UploadCancelledError().describe())

    # -----------------------------------------------------------------------
    # Workflow
    # -----------------------------------------------------------------------

    async def run(self) -> AsyncIterator[FileRecord]:
        """Execute the workflow, yielding every status change in order."""
        logger.info("[Upload] %s: starting (%s)", self.name, self.task.size_label)
        yield self._record(FileStatus.UPLOADING, progress=0)

        try:
            self.task.credential = await self._bounded(
                self._backend.fetch_upload_credential(self.name),
                self._step_timeout,
                CredentialError,
            )

            async for record in self._transfer(self.task.credential):
                yield record

            yield self._record(FileStatus.SUMMARIZING, progress=100)

            object_key = await self._resolve_object_key()
            self.task.summary = await self._bounded(
                self._backend.trigger_summary(object_key),
                self._step_timeout,
                SummaryError,
            )
        except IngestError as exc:
            logger.warning("[Upload] %s: %s", self.name, exc.describe())
            yield self._record(FileStatus.ERROR, error=exc.describe())
            return

        logger.info("[Upload] %s: completed", self.name)
        yield self._record(FileStatus.COMPLETED)

    async def _transfer(self, credential: UploadCredential) -> AsyncIterator[FileRecord]:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self._transfer_timeout
        events = self._backend.transfer(credential, self.task.file).__aiter__()
        last_progress = 0

        try:
            while True:
                remaining = deadline - loop.time()
                if remaining <= 0:
                    raise TransferError(f"timed out after {self._transfer_timeout:g}s")
                try:
                    event = await asyncio.wait_for(events.__anext__(), remaining)
                except StopAsyncIteration:
                    raise TransferError("transfer ended before completion") from None
                except asyncio.TimeoutError:
                    raise TransferError(f"timed out after {self._transfer_timeout:g}s") from None
                except IngestError:
                    raise
                except Exception as exc:  # pylint: disable=broad-except
                    raise TransferError(str(exc) or type(exc).__name__) from exc

                if isinstance(event, TransferComplete):
                    self.task.object_key = event.object_key
                    return

                progress = transfer_percent(event.bytes_acked, event.total_bytes)
                if progress > last_progress:
                    last_progress = progress
                    logger.debug("[Upload] %s: %d%%", self.name, progress)
                    yield self._record(FileStatus.UPLOADING, progress=progress)
        finally:
            aclose = getattr(events, "aclose", None)
            if aclose is not None:
                await aclose()

    async def _resolve_object_key(self) -> str:
        if self._notify_enabled:
            return await self._bounded(
                self._backend.notify(self.name), self._step_timeout, NotifyError
            )

        key = self.task.object_key or (
            self.task.credential.object_key_hint if self.task.credential else None
        )
        if not key:
            raise SummaryError("no object key available")
        return key

    async def _bounded(self, call: Awaitable[T], timeout: float, error_type: Type[IngestError]) -> T:
        """Await one remote call, mapping timeouts and stray errors to ``error_type``."""
        try:
            return await asyncio.wait_for(call, timeout)
        except asyncio.TimeoutError:
            raise error_type(f"timed out after {timeout:g}s") from None
        except IngestError:
            raise
        except Exception as exc:  # pylint: disable=broad-except
            raise error_type(str(exc) or type(exc).__name__) from exc
