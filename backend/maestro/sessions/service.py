"""Session binder: associates uploaded files with chat sessions.

Sessions hold file *names* only. The FileRecordStore owns the records and
every read resolves names against it, so a stale name resolves to nothing
instead of failing.

Exactly one session is active at a time. The SelectionManager belongs to
the active session and is reset whenever:
    - another session is activated (or a new one is created), or
    - the active session's file set is rebound.
Progress updates to files never touch the selection.

Thread Safety:
    Designed for use from a single event loop; not thread-safe.
"""
import logging
from typing import Dict, Iterable, List, Optional

from maestro.files.schemas import FileRecord
from maestro.files.store import FileRecordStore

from .schemas import MessageType, Session, SessionMessage
from .selection import SelectionManager

logger = logging.getLogger(__name__)


class SessionNotFoundError(KeyError):
    """Raised when a session ID is unknown."""

    def __init__(self, session_id: str):
        self.session_id = session_id
        super().__init__(session_id)

    def __str__(self) -> str:
        return f"Session not found: {self.session_id}"


class SessionBinder:
    """Creates sessions and scopes store records to them.

    Attributes:
        sessions: session_id -> Session, in creation order.
        selection: Selection of the active session.
    """

    def __init__(self, store: FileRecordStore) -> None:
        self._store = store
        self.sessions: Dict[str, Session] = {}
        self.selection = SelectionManager(store)
        self._active_id: Optional[str] = None

    # -----------------------------------------------------------------------
    # Session lifecycle
    # -----------------------------------------------------------------------

    @property
    def active_session_id(self) -> Optional[str]:
        return self._active_id

    def create_session(self) -> Session:
        """Start a new chat with no files and no messages; it becomes active."""
        session = Session()
        self.sessions[session.id] = session
        self._switch_to(session.id)
        logger.info("[Sessions] created session %s", session.id)
        return session

    def get_session(self, session_id: str) -> Session:
        session = self.sessions.get(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    def list_sessions(self) -> List[Session]:
        return list(self.sessions.values())

    def activate(self, session_id: str) -> Session:
        """Make ``session_id`` the active session and reset the selection."""
        session = self.get_session(session_id)
        self._switch_to(session_id)
        return session

    def _switch_to(self, session_id: str) -> None:
        self._active_id = session_id
        self.selection.clear()

    # -----------------------------------------------------------------------
    # File binding
    # -----------------------------------------------------------------------

    def bind_files(self, session_id: str, names: Iterable[str]) -> Session:
        """Replace the session's file-name set (duplicates dropped, order kept)."""
        session = self.get_session(session_id)
        session.files = list(dict.fromkeys(names))
        if session_id == self._active_id:
            self.selection.clear()
        logger.info("[Sessions] bound %d file(s) to session %s", len(session.files), session_id)
        return session

    def active_files(self, session_id: str) -> List[FileRecord]:
        """Records bound to the session, resolved against the store now."""
        return self._store.resolve(self.get_session(session_id).files)

    def on_batch_ready(self, updates: List[FileRecord]) -> None:
        """Store listener: scope the store's files to the active session.

        Creates a session when none exists. Rebinds (and so clears the
        selection) only when the set of names actually changed.
        """
        if self._active_id is None:
            self.create_session()
        session = self.sessions[self._active_id]
        names = self._store.names()
        if names != session.files:
            self.bind_files(session.id, names)

    # -----------------------------------------------------------------------
    # Messages
    # -----------------------------------------------------------------------

    def append_message(
        self,
        session_id: str,
        content: str,
        message_type: MessageType = MessageType.USER,
        files: Optional[List[str]] = None,
    ) -> SessionMessage:
        session = self.get_session(session_id)
        message = SessionMessage(type=message_type, content=content, files=list(files or []))
        session.messages.append(message)
        return message

    def submit_query(self, session_id: str, query: str) -> SessionMessage:
        """Record a user query with the currently selected files as context.

        Raises:
            ValueError: If the query is blank.
            SessionNotFoundError: If the session does not exist.
        """
        if not query or not query.strip():
            raise ValueError("Query must not be empty")
        files = self.selection.names() if session_id == self._active_id else []
        return self.append_message(session_id, query.strip(), MessageType.USER, files)
