"""In-memory storage for user records."""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from dataclasses import replace
from typing import Callable, Iterator, List, Optional

from .models import UserRecord

logger = logging.getLogger("usermanagement.store")


class RecordStore:
    """Ordered collection of user records guarded by a single lock.

    Every read and write acquires the lock. The lock is re-entrant so the
    record service can hold it across a read-check-write sequence via
    :meth:`locked` while still calling the individual store operations.
    Identifiers come from a counter that only ever increases.
    """

    def __init__(self) -> None:
        self._records: List[UserRecord] = []
        self._next_id = 1
        self._lock = threading.RLock()

    @contextmanager
    def locked(self) -> Iterator["RecordStore"]:
        with self._lock:
            yield self

    def list(self) -> List[UserRecord]:
        """Return active records in insertion order."""

        with self._lock:
            return [record for record in self._records if record.is_active]

    def all(self) -> List[UserRecord]:
        with self._lock:
            return list(self._records)

    def get_by_id(self, record_id: int) -> Optional[UserRecord]:
        with self._lock:
            for record in self._records:
                if record.id == record_id and record.is_active:
                    return record
            return None

    def find(
        self,
        predicate: Callable[[UserRecord], bool],
        *,
        include_inactive: bool = False,
    ) -> Optional[UserRecord]:
        with self._lock:
            for record in self._records:
                if not include_inactive and not record.is_active:
                    continue
                if predicate(record):
                    return record
            return None

    def insert(self, record: UserRecord) -> UserRecord:
        """Assign the next identifier to ``record`` and append it."""

        with self._lock:
            stored = replace(record, id=self._next_id)
            self._next_id += 1
            self._records.append(stored)
            logger.debug("Stored user record %s", stored.id)
            return stored

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)


__all__ = ["RecordStore"]
