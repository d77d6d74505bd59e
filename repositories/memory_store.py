"""
In-memory RecordStore.

Used by the test suite and for local runs without a Supabase project.
Documents are deep-copied on the way in and out so callers can never mutate
stored state by accident.
"""

from __future__ import annotations

import copy
import threading
from typing import Any, Dict, List, Mapping, Optional

from domain.errors import RecordStoreError
from repositories.record_store import StoredDocument

_MISSING = object()


def _field(doc: Mapping[str, Any], path: str) -> Any:
    current: Any = doc
    for part in path.split("."):
        if not isinstance(current, Mapping) or part not in current:
            return _MISSING
        current = current[part]
    return current


class InMemoryRecordStore:
    def __init__(self, environment: str = "regular") -> None:
        self.environment = environment
        self._tables: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self._lock = threading.Lock()

    def _table(self, table: str) -> Dict[str, Dict[str, Any]]:
        return self._tables.setdefault(table, {})

    def get(self, table: str, key: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            doc = self._table(table).get(key)
            return copy.deepcopy(doc) if doc is not None else None

    def put(self, table: str, key: str, doc: Mapping[str, Any]) -> None:
        with self._lock:
            self._table(table)[key] = copy.deepcopy(dict(doc))

    def patch(self, table: str, key: str, fields: Mapping[str, Any]) -> None:
        with self._lock:
            existing = self._table(table).get(key)
            if existing is None:
                raise RecordStoreError(f"Cannot patch missing document {table}/{key}", table=table, key=key)
            existing.update(copy.deepcopy(dict(fields)))

    def delete(self, table: str, key: str) -> bool:
        with self._lock:
            return self._table(table).pop(key, None) is not None

    def query(self, table: str, field_equals: Mapping[str, Any]) -> List[StoredDocument]:
        with self._lock:
            return [
                StoredDocument(key=key, doc=copy.deepcopy(doc))
                for key, doc in self._table(table).items()
                if all(_field(doc, name) == value for name, value in field_equals.items())
            ]

    def scan(self, table: str) -> List[StoredDocument]:
        return self.query(table, {})


__all__ = ["InMemoryRecordStore"]
