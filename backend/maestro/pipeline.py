"""IngestPipeline — wires the store, session binder and upload backend.

This is the surface exposed to UI/session layers:

    pipeline.ingest(files)          -> async stream of FileRecord changes
    pipeline.current_records()      -> snapshot of the store
    pipeline.toggle_selection(name) / pipeline.selected_records()
    pipeline.sessions               -> SessionBinder (create/bind/active files)

A module-level singleton is initialised in ``maestro/main.py`` from config.
"""
import logging
from typing import AsyncIterator, List, Optional, Sequence

from maestro.config import AppConfig
from maestro.files.schemas import FileDescriptor, FileRecord
from maestro.files.store import FileRecordStore
from maestro.sessions.service import SessionBinder
from maestro.upload.backend import UploadBackend
from maestro.upload.coordinator import IngestCoordinator

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Singleton
# ---------------------------------------------------------------------------

_pipeline: Optional["IngestPipeline"] = None


def get_pipeline() -> Optional["IngestPipeline"]:
    """Return the global IngestPipeline, or None if not yet initialised."""
    return _pipeline


def set_pipeline(pipeline: Optional["IngestPipeline"]) -> None:
    """Set (or replace) the global IngestPipeline instance."""
    global _pipeline
    _pipeline = pipeline


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------

class IngestPipeline:
    """Owns the single FileRecordStore and everything that reads or feeds it.

    Args:
        backend: Remote collaborators used by every upload.
        config: Application config (ingestion limits, notify stage).
    """

    def __init__(self, backend: UploadBackend, config: Optional[AppConfig] = None) -> None:
        self.config = config or AppConfig()
        self.backend = backend
        self.store = FileRecordStore()
        self.sessions = SessionBinder(self.store)
        self.store.add_listener(self.sessions.on_batch_ready)

    def coordinator(self) -> IngestCoordinator:
        """A fresh coordinator for one batch."""
        return IngestCoordinator(
            self.store,
            self.backend,
            settings=self.config.ingestion,
            notify_enabled=self.config.backend.notify_enabled,
        )

    async def ingest(self, files: Sequence[FileDescriptor]) -> AsyncIterator[FileRecord]:
        async for record in self.coordinator().ingest(files):
            yield record

    def current_records(self) -> List[FileRecord]:
        return self.store.snapshot()

    def toggle_selection(self, name: str) -> bool:
        return self.sessions.selection.toggle(name)

    def selected_records(self) -> List[FileRecord]:
        return self.sessions.selection.current()

    async def aclose(self) -> None:
        await self.backend.aclose()
        logger.info("Ingest pipeline closed")
