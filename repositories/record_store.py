"""
RecordStore driver contract.

The core depends only on this document-store contract, not on a database
product. Documents are JSON-compatible dicts addressed by `(table, key)`.
Field names passed to `query` may be dotted paths into nested documents
(``"client.email"``).

Implementations:
- `repositories.supabase_store.SupabaseRecordStore` (production)
- `repositories.memory_store.InMemoryRecordStore` (tests, local runs)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Protocol

# Logical tables.
PROFILES_TABLE: str = "client_profiles"
ORDERS_TABLE: str = "order_records"
ARCHIVE_TABLE: str = "archived_orders"
RECIPIENTS_TABLE: str = "push_recipients"

ALL_TABLES = (PROFILES_TABLE, ORDERS_TABLE, ARCHIVE_TABLE, RECIPIENTS_TABLE)


@dataclass(frozen=True, slots=True)
class StoredDocument:
    key: str
    doc: Dict[str, Any]


class RecordStore(Protocol):
    """Document store used by every repository."""

    environment: str

    def get(self, table: str, key: str) -> Optional[Dict[str, Any]]:
        """Return the document or None if absent."""
        ...

    def put(self, table: str, key: str, doc: Mapping[str, Any]) -> None:
        """Create or fully replace a document."""
        ...

    def patch(self, table: str, key: str, fields: Mapping[str, Any]) -> None:
        """Shallow-merge `fields` into an existing document (RecordStoreError if absent)."""
        ...

    def delete(self, table: str, key: str) -> bool:
        """Delete a document; True if it existed."""
        ...

    def query(self, table: str, field_equals: Mapping[str, Any]) -> List[StoredDocument]:
        """Documents whose fields equal every value in `field_equals`."""
        ...

    def scan(self, table: str) -> List[StoredDocument]:
        """Every document in `table`."""
        ...


__all__ = [
    "RecordStore",
    "StoredDocument",
    "PROFILES_TABLE",
    "ORDERS_TABLE",
    "ARCHIVE_TABLE",
    "RECIPIENTS_TABLE",
    "ALL_TABLES",
]
