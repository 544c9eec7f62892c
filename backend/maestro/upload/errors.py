"""Failure taxonomy of the upload workflow.

Each remote step has its own error type. The ``cause`` attribute is the
short, stable identifier shown at the start of a failed FileRecord's
``error`` message.
"""


class IngestError(Exception):
    """Base exception for upload workflow failures."""
    cause = "ingest-failed"

    def __init__(self, message: str = ""):
        self.message = message
        super().__init__(message or self.cause)

    def describe(self) -> str:
        """Render as ``"<cause>: <message>"`` for a FileRecord error field."""
        return f"{self.cause}: {self.message}" if self.message else self.cause


class CredentialError(IngestError):
    """Raised when the upload credential cannot be obtained."""
    cause = "credential-fetch-failed"


class TransferError(IngestError):
    """Raised when the binary transfer to the object store fails."""
    cause = "transfer-failed"


class NotifyError(IngestError):
    """Raised when the backend notify call fails."""
    cause = "notify-failed"


class SummaryError(IngestError):
    """Raised when summarization cannot be triggered or fails."""
    cause = "summarize-failed"


class UploadCancelledError(IngestError):
    """Raised (or recorded) when an upload is torn down before finishing."""
    cause = "cancelled"
