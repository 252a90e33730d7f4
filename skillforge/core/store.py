"""
Generic in-memory entity store

Every concrete store (users, courses, payments) is an EntityStore bound to a
record model. Records are kept as pydantic models and handed out as deep
copies, so callers can only change state through store operations.
"""

import threading
import uuid
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, Generic, Iterator, List, Optional, Type, TypeVar

from skillforge.models.base import Record

T = TypeVar("T", bound=Record)

Predicate = Callable[[T], bool]

_IMMUTABLE_FIELDS = ("id", "created_at")


class EntityStore(Generic[T]):
    model: Type[T]
    id_prefix: str = "rec"

    def __init__(self):
        self._records: Dict[str, T] = {}
        self._lock = threading.RLock()
        self._last_timestamp: Optional[datetime] = None

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    def _now(self) -> datetime:
        now = datetime.now(timezone.utc)
        # Timestamps are strictly increasing within a store
        if self._last_timestamp is not None and now <= self._last_timestamp:
            now = self._last_timestamp + timedelta(microseconds=1)
        self._last_timestamp = now
        return now

    def _new_id(self) -> str:
        return f"{self.id_prefix}_{uuid.uuid4().hex}"

    @staticmethod
    def _copy(record: T) -> T:
        return record.model_copy(deep=True)

    @contextmanager
    def locked(self):
        """Hold the store lock across a compound read-check-write."""
        with self._lock:
            yield self

    # ------------------------------------------------------------------
    # CRUD
    # ------------------------------------------------------------------
    def create(self, fields: dict) -> T:
        with self._lock:
            now = self._now()
            data = dict(fields)
            data.update(id=self._new_id(), created_at=now, updated_at=now)
            record = self.model.model_validate(data)
            self._records[record.id] = record
            return self._copy(record)

    def find_by_id(self, record_id: str) -> Optional[T]:
        with self._lock:
            record = self._records.get(record_id)
            return self._copy(record) if record is not None else None

    def find_by(self, *predicates: Predicate) -> Iterator[T]:
        """Lazily yield records matching every predicate, in insertion order."""
        with self._lock:
            snapshot = list(self._records.values())
        for record in snapshot:
            if all(predicate(record) for predicate in predicates):
                yield self._copy(record)

    def find_one(self, *predicates: Predicate) -> Optional[T]:
        return next(self.find_by(*predicates), None)

    def all(self) -> List[T]:
        return list(self.find_by())

    def count(self, *predicates: Predicate) -> int:
        return sum(1 for _ in self.find_by(*predicates))

    def update(self, record_id: str, partial: dict) -> Optional[T]:
        with self._lock:
            current = self._records.get(record_id)
            if current is None:
                return None

            data = current.model_dump()
            for field, value in partial.items():
                if field in _IMMUTABLE_FIELDS:
                    continue
                data[field] = value
            data["updated_at"] = self._now()

            record = self.model.model_validate(data)
            self._records[record_id] = record
            return self._copy(record)

    def delete(self, record_id: str) -> bool:
        with self._lock:
            return self._records.pop(record_id, None) is not None

    def clear(self) -> None:
        with self._lock:
            self._records.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)
