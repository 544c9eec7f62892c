"""FastAPI router for chat sessions and file selection.

Endpoints:
    POST /sessions                          — Start a new chat (becomes active)
    GET  /sessions                          — List sessions
    GET  /sessions/selection                — Selected files of the active session
    POST /sessions/selection/{name}/toggle  — Toggle one file in the selection
    GET  /sessions/{id}                     — One session with its messages
    POST /sessions/{id}/activate            — Switch the active session
    PUT  /sessions/{id}/files               — Replace the session's file set
    GET  /sessions/{id}/files               — Records of the session's files
    POST /sessions/{id}/queries             — Submit a query with the selected files
"""
import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException

from maestro.files.router import require_pipeline
from maestro.files.schemas import FileRecord
from maestro.pipeline import IngestPipeline

from .schemas import BindFilesRequest, QueryRequest, SelectionResponse, Session, SessionMessage
from .service import SessionNotFoundError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/sessions", tags=["sessions"])


def _selection(pipeline: IngestPipeline) -> SelectionResponse:
    selection = pipeline.sessions.selection
    return SelectionResponse(
        sessionId=pipeline.sessions.active_session_id or "",
        names=selection.names(),
        records=selection.current(),
    )


@router.post("", response_model=Session)
async def create_session(pipeline: IngestPipeline = Depends(require_pipeline)) -> Session:
    return pipeline.sessions.create_session()


@router.get("", response_model=List[Session])
async def list_sessions(pipeline: IngestPipeline = Depends(require_pipeline)) -> List[Session]:
    return pipeline.sessions.list_sessions()


@router.get("/selection", response_model=SelectionResponse)
async def get_selection(pipeline: IngestPipeline = Depends(require_pipeline)) -> SelectionResponse:
    return _selection(pipeline)


@router.post("/selection/{name}/toggle", response_model=SelectionResponse)
async def toggle_selection(
    name: str, pipeline: IngestPipeline = Depends(require_pipeline)
) -> SelectionResponse:
    """Toggle ``name`` in the active session's selection.

    Raises:
        HTTPException 404: If no file with that name has been ingested.
    """
    if pipeline.store.get(name) is None:
        raise HTTPException(status_code=404, detail="File not found")
    pipeline.toggle_selection(name)
    return _selection(pipeline)


@router.get("/{session_id}", response_model=Session)
async def get_session(session_id: str, pipeline: IngestPipeline = Depends(require_pipeline)) -> Session:
    try:
        return pipeline.sessions.get_session(session_id)
    except SessionNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.post("/{session_id}/activate", response_model=Session)
async def activate_session(
    session_id: str, pipeline: IngestPipeline = Depends(require_pipeline)
) -> Session:
    """Switch the active session; the selection starts empty."""
    try:
        return pipeline.sessions.activate(session_id)
    except SessionNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.put("/{session_id}/files", response_model=Session)
async def bind_files(
    session_id: str,
    request: BindFilesRequest,
    pipeline: IngestPipeline = Depends(require_pipeline),
) -> Session:
    try:
        return pipeline.sessions.bind_files(session_id, request.names)
    except SessionNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.get("/{session_id}/files", response_model=List[FileRecord])
async def active_files(
    session_id: str, pipeline: IngestPipeline = Depends(require_pipeline)
) -> List[FileRecord]:
    try:
        return pipeline.sessions.active_files(session_id)
    except SessionNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.post("/{session_id}/queries", response_model=SessionMessage)
async def submit_query(
    session_id: str,
    request: QueryRequest,
    pipeline: IngestPipeline = Depends(require_pipeline),
) -> SessionMessage:
    """Append the user's query, tagged with the selected files, to the session.

    Raises:
        HTTPException 400: If the query is blank.
        HTTPException 404: If the session does not exist.
    """
    try:
        message = pipeline.sessions.submit_query(session_id, request.query)
    except SessionNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    logger.info(
        "[sessions] query in %s with %d file(s) selected", session_id, len(message.files)
    )
    return message
