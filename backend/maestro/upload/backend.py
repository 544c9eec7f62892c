"""Abstract UploadBackend interface.

Every backend flavour (HTTP API + S3 presigned POST, test fakes, ...) must
implement this interface so the orchestrator stays transport-agnostic.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import AsyncIterator, Dict, Optional, Union

from maestro.files.schemas import FileDescriptor, SummaryPayload


@dataclass
class UploadCredential:
    """Time-limited authorization for one direct transfer.

    Attributes:
        target_url: Where the payload is posted.
        form_fields: Fields that must accompany the payload.
        object_key_hint: Object key, when the backend already knows it.
    """
    target_url: str
    form_fields: Dict[str, str] = field(default_factory=dict)
    object_key_hint: Optional[str] = None


@dataclass
class TransferProgress:
    bytes_acked: int
    total_bytes: int


@dataclass
class TransferComplete:
    object_key: Optional[str] = None


TransferEvent = Union[TransferProgress, TransferComplete]


class UploadBackend(ABC):
    """Remote collaborators of the upload workflow."""

    @abstractmethod
    async def fetch_upload_credential(self, file_name: str) -> UploadCredential:
        """Request an upload credential for ``file_name``.

        Raises:
            CredentialError: On any failure.
        """

    @abstractmethod
    def transfer(
        self, credential: UploadCredential, file: FileDescriptor
    ) -> AsyncIterator[TransferEvent]:
        """Send the payload, yielding progress then a single TransferComplete.

        Raises:
            TransferError: On any transport failure.
        """

    @abstractmethod
    async def notify(self, file_name: str) -> str:
        """Tell the backend the transfer finished; return the object key.

        Raises:
            NotifyError: On any failure.
        """

    @abstractmethod
    async def trigger_summary(self, object_key: str) -> SummaryPayload:
        """Request the summary of a stored object.

        Raises:
            SummaryError: On any failure.
        """

    async def aclose(self) -> None:
        """Release transport resources. No-op by default."""
