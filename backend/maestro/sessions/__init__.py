"""Chat session module for Maestro.

A session is a chat/query context. It scopes which uploaded files are
"active" for answering queries and keeps an append-only message history.

Services:
    - SessionBinder: creates sessions, binds file names, tracks the active session.
    - SelectionManager: the user-toggled subset of files used as query context.
"""
