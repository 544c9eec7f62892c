"""Pydantic schemas for chat sessions.

Note:
    Field names of request bodies use camelCase (e.g., sessionId) to match
    the TypeScript/JavaScript convention used by the front-end.
"""
import time
import uuid
from enum import Enum
from typing import List

from pydantic import BaseModel, Field

from maestro.files.schemas import FileRecord


class MessageType(str, Enum):
    """Type of session message.

    Attributes:
        USER: A query typed by the user.
        ASSISTANT: An answer produced for a query.
    """
    USER = "user"
    ASSISTANT = "assistant"


class SessionMessage(BaseModel):
    """A single message in a session history.

    Attributes:
        id: Unique message identifier (auto-generated UUID).
        type: Who wrote the message.
        content: Message text.
        files: Names of the files selected when the message was sent.
        ts: Unix timestamp (seconds since epoch).
    """
    id: str = Field(default_factory=lambda: str(uuid.uuid4()), description="Unique message ID")
    type: MessageType = Field(default=MessageType.USER, description="Message type")
    content: str = Field(..., description="Message content")
    files: List[str] = Field(default_factory=list, description="Files used as query context")
    ts: float = Field(default_factory=time.time, description="Timestamp in seconds since epoch")


class Session(BaseModel):
    """A chat/query context.

    ``files`` holds names only; records are resolved against the store when
    read, so a name whose record is gone simply resolves to nothing.
    """
    id: str = Field(default_factory=lambda: str(uuid.uuid4()), description="Session ID")
    messages: List[SessionMessage] = Field(default_factory=list, description="Append-only history")
    files: List[str] = Field(default_factory=list, description="File names bound to the session")
    created_at: float = Field(default_factory=time.time, description="Creation timestamp")


class BindFilesRequest(BaseModel):
    """Request body for PUT /sessions/{id}/files."""
    names: List[str] = Field(default_factory=list, description="File names to bind")


class QueryRequest(BaseModel):
    """Request body for POST /sessions/{id}/queries."""
    query: str = Field(..., description="Query text")


class SelectionResponse(BaseModel):
    """Current selection for the active session."""
    sessionId: str = Field(default="", description="Active session ID (empty if none)")
    names: List[str] = Field(default_factory=list, description="Selected file names")
    records: List[FileRecord] = Field(default_factory=list, description="Selected records")
