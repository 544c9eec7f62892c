"""Pydantic schemas for file ingestion.

This module defines the data models shared by the ingestion pipeline:
- FileStatus: Enum for the per-file lifecycle (uploading, summarizing, completed, error)
- FileRecord: The canonical status entry for one file, keyed by name
- FileDescriptor: A candidate file handed to ingestion (name, MIME type, bytes)
- SummaryPayload: Structured summary returned by the summarization backend
- ValidationResult: Outcome of the admission checks

Field names of payloads exchanged with the browser use camelCase aliases to
match the TypeScript convention of the front-end.
"""
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


# Batch limit enforced by the validator and the coordinator
MAX_FILES = 5

SIZE_UNITS = ("Bytes", "KB", "MB", "GB")


class FileStatus(str, Enum):
    """Lifecycle of one upload attempt.

    UPLOADING -> SUMMARIZING -> COMPLETED, or any state -> ERROR.
    COMPLETED and ERROR are terminal.
    """
    UPLOADING = "uploading"
    SUMMARIZING = "summarizing"
    COMPLETED = "completed"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (FileStatus.COMPLETED, FileStatus.ERROR)


class FileRecord(BaseModel):
    """Status entry for one file.

    Records are immutable; producers emit new records and the store merges
    them by ``name``.
    """
    model_config = ConfigDict(frozen=True)

    name: str = Field(..., description="File name, unique within a store")
    size: str = Field(..., description="Human-readable size label")
    status: FileStatus = Field(..., description="Current lifecycle status")
    progress: Optional[int] = Field(
        default=None, ge=0, le=100,
        description="Percent complete while uploading or summarizing",
    )
    error: Optional[str] = Field(default=None, description="Failure message when status is error")


class FileDescriptor(BaseModel):
    """A file selected by the user, before admission."""
    name: str = Field(..., description="Original filename")
    mime_type: str = Field(default="", description="MIME type reported by the client")
    content: bytes = Field(default=b"", repr=False, description="File payload")

    @property
    def size(self) -> int:
        return len(self.content)


class KeyPoint(BaseModel):
    title: str = ""
    description: str = ""
    type: str = "info"


class Metric(BaseModel):
    label: str = ""
    value: str = ""
    change: str = ""


class SummaryPayload(BaseModel):
    """Summary produced by the backend for one stored object.

    Every field is optional; backends that only return free text fill
    ``summary`` and leave the structured lists empty.
    """
    model_config = ConfigDict(populate_by_name=True)

    summary: str = Field(default="", description="Free-text summary")
    key_points: List[KeyPoint] = Field(default_factory=list, alias="keyPoints")
    metrics: List[Metric] = Field(default_factory=list)
    recommendations: List[str] = Field(default_factory=list)


class ValidationResult(BaseModel):
    """Outcome of ``validate()``."""
    accepted: List[FileDescriptor] = Field(default_factory=list)
    rejections: List[str] = Field(default_factory=list)


def format_file_size(num_bytes: int) -> str:
    """Format a byte count as a base-1024 size label.

    Values are rounded to two decimals with trailing zeros dropped. Sizes
    beyond the largest unit stay in GB.

    Examples:
        >>> format_file_size(0)
        '0 Bytes'
        >>> format_file_size(1536)
        '1.5 KB'
        >>> format_file_size(1073741824)
        '1 GB'
    """
    if num_bytes < 0:
        raise ValueError(f"File size cannot be negative: {num_bytes}")
    if num_bytes == 0:
        return "0 Bytes"

    exponent = 0
    while exponent < len(SIZE_UNITS) - 1 and num_bytes >= 1024 ** (exponent + 1):
        exponent += 1

    value = round(num_bytes / 1024 ** exponent, 2)
    return f"{value:g} {SIZE_UNITS[exponent]}"


# File size limit for one upload: 20MB
MAX_FILE_SIZE_BYTES = 20 * 1024 * 1024


class FileCandidate(BaseModel):
    """Name and MIME type of a file the user is about to submit."""
    name: str = Field(..., description="Filename")
    mimeType: str = Field(default="", description="MIME type reported by the browser")


class ValidateRequest(BaseModel):
    """Request body for POST /files/validate."""
    files: List[FileCandidate] = Field(default_factory=list, description="Candidate files")


class ValidateResponse(BaseModel):
    """Names admitted by the validator and the rejection messages."""
    accepted: List[str] = Field(default_factory=list, description="Accepted file names")
    rejections: List[str] = Field(default_factory=list, description="Rejection messages")
