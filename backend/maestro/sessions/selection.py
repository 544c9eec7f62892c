"""User-toggled subset of files used as query context.

The selection is a view over the FileRecordStore: it stores names only and
resolves them on read, so progress updates to selected files never change
what is selected.
"""
import logging
from typing import List

from maestro.files.schemas import FileRecord
from maestro.files.store import FileRecordStore

logger = logging.getLogger(__name__)


class SelectionManager:
    """Ordered set of selected file names."""

    def __init__(self, store: FileRecordStore) -> None:
        self._store = store
        self._names: List[str] = []

    def toggle(self, name: str) -> bool:
        """Flip selection of ``name``. Returns the new selected state."""
        if name in self._names:
            self._names.remove(name)
            selected = False
        else:
            self._names.append(name)
            selected = True
        logger.debug("[Selection] %s -> %s", name, "selected" if selected else "unselected")
        return selected

    def is_selected(self, name: str) -> bool:
        return name in self._names

    def names(self) -> List[str]:
        return list(self._names)

    def current(self) -> List[FileRecord]:
        """Selected records in selection order, skipping names no longer stored."""
        return self._store.resolve(self._names)

    def clear(self) -> None:
        self._names.clear()
