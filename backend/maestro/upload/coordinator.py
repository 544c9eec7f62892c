"""Batch ingestion: validation plus concurrent upload orchestrators.

``IngestCoordinator.ingest()`` validates a selection, turns rejected files
into immediate error records, and runs one UploadOrchestrator task per
accepted file. All records go through the store; every change the store
accepts is also yielded to the caller so a UI can stream it.

A batch finishes only after every accepted file is terminal. A failed file
never cancels or rolls back its siblings.
"""
import asyncio
import logging
from typing import AsyncIterator, Dict, List, Optional, Sequence, Set

from maestro.config import IngestionSettings
from maestro.files.schemas import FileDescriptor, FileRecord, FileStatus, format_file_size
from maestro.files.store import FileRecordStore
from maestro.files.validator import validate

from .backend import UploadBackend
from .orchestrator import UploadOrchestrator

logger = logging.getLogger(__name__)

# Sentinel put on the event queue when a worker finishes
_DONE = object()


class IngestCoordinator:
    """Fans a batch out to parallel orchestrators and merges their output.

    Args:
        store: The shared FileRecordStore.
        backend: Remote collaborators handed to each orchestrator.
        settings: Batch limit and step timeouts.
        notify_enabled: Whether orchestrators run the notify stage.
    """

    def __init__(
        self,
        store: FileRecordStore,
        backend: UploadBackend,
        settings: Optional[IngestionSettings] = None,
        notify_enabled: bool = False,
    ) -> None:
        self._store = store
        self._backend = backend
        self._settings = settings or IngestionSettings()
        self._notify_enabled = notify_enabled
        self._semaphore = asyncio.Semaphore(self._settings.max_files)
        self._workers: Set[asyncio.Task] = set()

    @property
    def max_files(self) -> int:
        return self._settings.max_files

    def _orchestrator(self, file: FileDescriptor) -> UploadOrchestrator:
        return UploadOrchestrator(
            file,
            self._backend,
            notify_enabled=self._notify_enabled,
            step_timeout=self._settings.step_timeout_seconds,
            transfer_timeout=self._settings.transfer_timeout_seconds,
        )

    # -----------------------------------------------------------------------
    # Public API
    # -----------------------------------------------------------------------

    async def ingest(self, batch: Sequence[FileDescriptor]) -> AsyncIterator[FileRecord]:
        """Ingest a batch, yielding every record change as it is merged."""
        result = validate(batch, max_files=self._settings.max_files)

        rejected = self._rejection_records(batch, result.accepted, result.rejections)
        accepted = self._unique_by_name(result.accepted)
        if rejected:
            logger.info("[Ingest] rejected %d file(s): %s", len(rejected), "; ".join(result.rejections))
            # A refused submission is not an upload attempt: it never replaces a
            # record the store already holds or one this batch is about to start
            known = set(self._store.names()) | {file.name for file in accepted}
            self._store.apply([record for record in rejected if record.name not in known])
            for record in rejected:
                yield record

        if not accepted:
            return

        queue: asyncio.Queue = asyncio.Queue()
        workers = [
            asyncio.ensure_future(self._run_one(self._orchestrator(file), queue))
            for file in accepted
        ]
        self._workers.update(workers)
        logger.info("[Ingest] started %d upload(s)", len(workers))

        try:
            remaining = len(workers)
            while remaining:
                item = await queue.get()
                if item is _DONE:
                    remaining -= 1
                    continue
                yield item
        finally:
            for worker in workers:
                if not worker.done():
                    worker.cancel()
            await asyncio.gather(*workers, return_exceptions=True)
            self._workers.difference_update(workers)

        logger.info("[Ingest] batch finished")

    async def ingest_all(self, batch: Sequence[FileDescriptor]) -> List[FileRecord]:
        """Run a batch to completion and return the final record per file."""
        final: Dict[str, FileRecord] = {}
        async for record in self.ingest(batch):
            final[record.name] = record
        return list(final.values())

    async def cancel(self) -> None:
        """Tear down every in-flight upload; each is recorded as cancelled."""
        workers = list(self._workers)
        for worker in workers:
            worker.cancel()
        await asyncio.gather(*workers, return_exceptions=True)

    # -----------------------------------------------------------------------
    # Internal helpers
    # -----------------------------------------------------------------------

    @staticmethod
    def _unique_by_name(files: Sequence[FileDescriptor]) -> List[FileDescriptor]:
        """One file per name; the last occurrence wins, at the first one's position."""
        by_name: Dict[str, FileDescriptor] = {}
        for file in files:
            by_name[file.name] = file
        if len(by_name) < len(files):
            logger.info("[Ingest] dropped %d duplicate name(s) from batch", len(files) - len(by_name))
        return list(by_name.values())

    @staticmethod
    def _rejection_records(
        batch: Sequence[FileDescriptor],
        accepted: Sequence[FileDescriptor],
        rejections: Sequence[str],
    ) -> List[FileRecord]:
        accepted_ids = {id(file) for file in accepted}
        rejected_files = [file for file in batch if id(file) not in accepted_ids]
        if not rejected_files:
            return []

        # Whole-batch refusal carries one message; per-file rejections are in order
        if len(rejections) == 1 and len(rejected_files) == len(batch) and not accepted:
            messages = rejections * len(rejected_files)
        else:
            messages = list(rejections)

        return [
            FileRecord(
                name=file.name,
                size=format_file_size(file.size),
                status=FileStatus.ERROR,
                error=message,
            )
            for file, message in zip(rejected_files, messages)
        ]

    def _merge(self, orchestrator: UploadOrchestrator, record: FileRecord, queue: asyncio.Queue) -> None:
        if record.status is FileStatus.COMPLETED and orchestrator.summary is not None:
            self._store.attach_summary(record.name, orchestrator.summary)
        for changed in self._store.apply([record]):
            queue.put_nowait(changed)

    async def _run_one(self, orchestrator: UploadOrchestrator, queue: asyncio.Queue) -> None:
        try:
            async with self._semaphore:
                async for record in orchestrator.run():
                    self._merge(orchestrator, record, queue)
        except asyncio.CancelledError:
            if orchestrator.status is None or not orchestrator.status.is_terminal:
                logger.info("[Ingest] %s: cancelled", orchestrator.name)
                self._merge(orchestrator, orchestrator.cancelled_record(), queue)
            raise
        finally:
            queue.put_nowait(_DONE)
