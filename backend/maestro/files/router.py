"""FastAPI router for file ingestion endpoints.

Endpoints:
    POST   /files/ingest          — Upload a batch; streams FileRecord changes as NDJSON
    POST   /files/validate        — Run admission checks without uploading
    GET    /files                 — Snapshot of every FileRecord
    GET    /files/{name}          — One FileRecord
    GET    /files/{name}/summary  — Summary of a completed file
    DELETE /files                 — Drop every record (logout / reset)
"""
import logging
from typing import AsyncIterator, List

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
from fastapi.responses import StreamingResponse

from maestro.pipeline import IngestPipeline, get_pipeline

from .schemas import (
    FileDescriptor,
    FileRecord,
    SummaryPayload,
    ValidateRequest,
    ValidateResponse,
)
from .validator import guess_mime_type, validate

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/files", tags=["files"])

# Browsers and HTTP clients fall back to this when they cannot tell the type
_UNKNOWN_MIME_TYPE = "application/octet-stream"


def require_pipeline() -> IngestPipeline:
    """Dependency returning the live pipeline, or 503 when not configured."""
    pipeline = get_pipeline()
    if pipeline is None:
        logger.warning("[files] Ingest pipeline not configured, returning 503")
        raise HTTPException(status_code=503, detail="Ingest pipeline not configured")
    return pipeline


async def _to_descriptor(upload: UploadFile, max_bytes: int, extensions: List[str]) -> FileDescriptor:
    content = await upload.read()
    name = upload.filename or "unnamed"
    if len(content) > max_bytes:
        raise HTTPException(
            status_code=413,
            detail=f"{name} exceeds the upload limit of {max_bytes} bytes",
        )
    mime_type = upload.content_type or ""
    if not mime_type or mime_type == _UNKNOWN_MIME_TYPE:
        mime_type = guess_mime_type(name, extensions)
    return FileDescriptor(name=name, mime_type=mime_type, content=content)


@router.post("/ingest")
async def ingest_files(
    files: List[UploadFile] = File(...),
    pipeline: IngestPipeline = Depends(require_pipeline),
) -> StreamingResponse:
    """Upload a batch of files and stream their status changes.

    Each line of the response body is one JSON-encoded FileRecord. The
    stream ends once every accepted file is completed or failed. Rejected
    files appear first as error records.

    Raises:
        HTTPException 413: If any file exceeds the size limit.
        HTTPException 503: If the pipeline is not configured.
    """
    ingestion = pipeline.config.ingestion
    descriptors = [
        await _to_descriptor(upload, ingestion.max_file_size_bytes, ingestion.accepted_extensions)
        for upload in files
    ]
    logger.info(
        "[files/ingest] Received %d file(s): %s",
        len(descriptors),
        ", ".join(d.name for d in descriptors),
    )

    async def stream() -> AsyncIterator[str]:
        async for record in pipeline.ingest(descriptors):
            yield record.model_dump_json() + "\n"

    return StreamingResponse(stream(), media_type="application/x-ndjson")


@router.post("/validate", response_model=ValidateResponse)
async def validate_files(
    request: ValidateRequest,
    pipeline: IngestPipeline = Depends(require_pipeline),
) -> ValidateResponse:
    """Check a selection against the file limit and accepted types."""
    candidates = [FileDescriptor(name=f.name, mime_type=f.mimeType) for f in request.files]
    result = validate(candidates, max_files=pipeline.config.ingestion.max_files)
    return ValidateResponse(
        accepted=[f.name for f in result.accepted],
        rejections=result.rejections,
    )


@router.get("", response_model=List[FileRecord])
async def list_records(pipeline: IngestPipeline = Depends(require_pipeline)) -> List[FileRecord]:
    """Return the latest merged FileRecord list."""
    return pipeline.current_records()


@router.delete("")
async def clear_records(pipeline: IngestPipeline = Depends(require_pipeline)) -> dict:
    """Drop every record and summary."""
    count = len(pipeline.current_records())
    pipeline.store.clear()
    logger.info(f"Cleared {count} file record(s)")
    return {"deleted_count": count}


@router.get("/{name}", response_model=FileRecord)
async def get_record(name: str, pipeline: IngestPipeline = Depends(require_pipeline)) -> FileRecord:
    record = pipeline.store.get(name)
    if record is None:
        raise HTTPException(status_code=404, detail="File not found")
    return record


@router.get("/{name}/summary", response_model=SummaryPayload)
async def get_summary(name: str, pipeline: IngestPipeline = Depends(require_pipeline)) -> SummaryPayload:
    """Return the summary of a completed file.

    Raises:
        HTTPException 404: If the file is unknown or has no summary yet.
    """
    summary = pipeline.store.summary(name)
    if summary is None:
        raise HTTPException(status_code=404, detail="Summary not available")
    return summary
