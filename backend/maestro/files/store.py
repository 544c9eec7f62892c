"""Canonical, name-keyed store of FileRecords.

Every producer of status (upload progress, polling, chat actions) goes
through ``FileRecordStore.apply``; nothing else mutates the record list.
Readers only ever get snapshot copies.

Merge rules:
    - An update replaces the existing record only when its status or its
      progress differs. Identical updates are dropped so consumers are not
      re-notified for nothing.
    - Unknown names are appended in update order.
    - Applying the same updates twice yields the same list as applying
      them once.

Thread Safety:
    ``apply`` holds a lock for the whole merge, so concurrent producers are
    merged one call at a time in arrival order. Listeners run after the
    lock is released and may read the store.
"""
import logging
import threading
from typing import Callable, Dict, Iterable, List, Optional, Sequence

from .schemas import FileRecord, FileStatus, SummaryPayload

logger = logging.getLogger(__name__)

BatchReadyListener = Callable[[List[FileRecord]], None]


def _differs(existing: FileRecord, update: FileRecord) -> bool:
    return existing.status != update.status or existing.progress != update.progress


def merge(current: Sequence[FileRecord], updates: Iterable[FileRecord]) -> List[FileRecord]:
    """Merge ``updates`` into ``current`` and return the new record list.

    Output preserves the order of ``current`` and appends names seen for the
    first time in ``updates`` order. No two output records share a name.
    """
    by_name: Dict[str, FileRecord] = {}
    for record in current:
        by_name[record.name] = record

    for update in updates:
        existing = by_name.get(update.name)
        if existing is None or _differs(existing, update):
            by_name[update.name] = update

    return list(by_name.values())


class FileRecordStore:
    """Holds the latest merged FileRecord list.

    Attributes:
        _records: Name -> record, in first-seen order.
        _summaries: Name -> summary payload of the last completed attempt.
        _listeners: Batch-ready callbacks.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._records: Dict[str, FileRecord] = {}
        self._summaries: Dict[str, SummaryPayload] = {}
        self._listeners: List[BatchReadyListener] = []

    # -----------------------------------------------------------------------
    # Writes
    # -----------------------------------------------------------------------

    def apply(self, updates: Sequence[FileRecord]) -> List[FileRecord]:
        """Merge a batch of updates.

        Returns the updates that actually changed the store, in order.
        Fires batch-ready listeners once if any update in the batch is
        completed.
        """
        changed: List[FileRecord] = []
        with self._lock:
            for update in updates:
                existing = self._records.get(update.name)
                if existing is not None and not _differs(existing, update):
                    continue
                # A fresh attempt on a finished file invalidates its old summary
                if (
                    existing is not None
                    and existing.status.is_terminal
                    and not update.status.is_terminal
                ):
                    self._summaries.pop(update.name, None)
                self._records[update.name] = update
                changed.append(update)

        if changed:
            logger.debug(
                "[Store] merged %d/%d update(s): %s",
                len(changed),
                len(updates),
                ", ".join(f"{r.name}={r.status.value}" for r in changed),
            )

        if any(update.status is FileStatus.COMPLETED for update in updates):
            self._notify_batch_ready(list(updates))

        return changed

    def attach_summary(self, name: str, summary: SummaryPayload) -> None:
        with self._lock:
            self._summaries[name] = summary

    def clear(self) -> None:
        """Drop every record and summary (logout / reset)."""
        with self._lock:
            self._records.clear()
            self._summaries.clear()

    # -----------------------------------------------------------------------
    # Reads
    # -----------------------------------------------------------------------

    def snapshot(self) -> List[FileRecord]:
        with self._lock:
            return list(self._records.values())

    def names(self) -> List[str]:
        with self._lock:
            return list(self._records.keys())

    def get(self, name: str) -> Optional[FileRecord]:
        with self._lock:
            return self._records.get(name)

    def summary(self, name: str) -> Optional[SummaryPayload]:
        with self._lock:
            return self._summaries.get(name)

    def resolve(self, names: Iterable[str]) -> List[FileRecord]:
        """Return records for ``names`` in the given order, skipping unknown ones."""
        with self._lock:
            return [self._records[name] for name in names if name in self._records]

    # -----------------------------------------------------------------------
    # Batch-ready signal
    # -----------------------------------------------------------------------

    def add_listener(self, listener: BatchReadyListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: BatchReadyListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _notify_batch_ready(self, updates: List[FileRecord]) -> None:
        for listener in list(self._listeners):
            try:
                listener(updates)
            except Exception as exc:  # pylint: disable=broad-except
                logger.error("[Store] batch-ready listener %r failed: %s", listener, exc)
