"""Admission checks for a file selection.

Runs before any network call. A batch larger than the file limit is refused
as a whole; otherwise each file is checked on its own so one bad file does
not block its valid siblings.
"""
import mimetypes
from typing import Iterable, List, Optional, Sequence

from .schemas import MAX_FILES, FileDescriptor, ValidationResult

PDF_MIME_TYPE = "application/pdf"

# Extensions offered by the file picker. Informational only: admission is
# decided on the MIME type.
ACCEPTED_EXTENSIONS = (".txt", ".md", ".pdf", ".json", ".csv", ".log", ".xml", ".yaml", ".yml")


def is_accepted_mime_type(mime_type: str) -> bool:
    """Return True for text/* and PDF MIME types."""
    return "text/" in (mime_type or "") or mime_type == PDF_MIME_TYPE


def guess_mime_type(filename: str, extensions: Iterable[str] = ACCEPTED_EXTENSIONS) -> str:
    """Guess a MIME type for clients that did not send one.

    Accepted extensions that the platform does not map to a text type
    (e.g. ``.md``, ``.log``, ``.yaml`` on some systems) are treated as
    ``text/plain``.
    """
    guessed, _ = mimetypes.guess_type(filename)
    if guessed and is_accepted_mime_type(guessed):
        return guessed
    lowered = filename.lower()
    if any(lowered.endswith(ext) for ext in extensions):
        return PDF_MIME_TYPE if lowered.endswith(".pdf") else "text/plain"
    return guessed or "application/octet-stream"


def validate(
    candidates: Sequence[FileDescriptor],
    max_files: Optional[int] = None,
) -> ValidationResult:
    """Split a selection into accepted files and rejection messages.

    Args:
        candidates: Files selected by the user.
        max_files: Batch limit. Defaults to MAX_FILES.

    Returns:
        ValidationResult. When the batch exceeds the limit, ``accepted`` is
        empty and ``rejections`` holds a single message citing the limit.
    """
    limit = MAX_FILES if max_files is None else max_files

    if len(candidates) > limit:
        return ValidationResult(accepted=[], rejections=[f"Maximum {limit} files allowed."])

    accepted: List[FileDescriptor] = []
    rejections: List[str] = []
    for candidate in candidates:
        if is_accepted_mime_type(candidate.mime_type):
            accepted.append(candidate)
        else:
            rejections.append(f"{candidate.name} is not a text or PDF file")

    return ValidationResult(accepted=accepted, rejections=rejections)
