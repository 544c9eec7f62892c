"""Upload workflow module for Maestro.

Drives admitted files through the remote protocol:
credential fetch -> binary transfer -> (notify) -> summary trigger.

Usage:
    from maestro.upload import HttpUploadBackend, IngestCoordinator

    backend = HttpUploadBackend(base_url="https://ingest.example.com")
    coordinator = IngestCoordinator(store, backend)
    async for record in coordinator.ingest(files):
        ...
"""
from .backend import (
    TransferComplete,
    TransferEvent,
    TransferProgress,
    UploadBackend,
    UploadCredential,
)
from .coordinator import IngestCoordinator
from .errors import (
    CredentialError,
    IngestError,
    NotifyError,
    SummaryError,
    TransferError,
    UploadCancelledError,
)
from .http_backend import HttpUploadBackend
from .orchestrator import UploadOrchestrator, UploadTask, transfer_percent

__all__ = [
    "CredentialError",
    "HttpUploadBackend",
    "IngestCoordinator",
    "IngestError",
    "NotifyError",
    "SummaryError",
    "TransferComplete",
    "TransferError",
    "TransferEvent",
    "TransferProgress",
    "UploadBackend",
    "UploadCancelledError",
    "UploadCredential",
    "UploadOrchestrator",
    "UploadTask",
    "transfer_percent",
]
