"""
Archived order repository (persistence).

Archived orders are written once by soft delete and afterwards only removed.
Reads are tolerant: a stored entry whose timestamps cannot be parsed comes
back as `ArchiveEntry(archived=None)` so the purge step can report it
instead of guessing.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from domain.archive import ArchivedOrder
from domain.normalization import normalize_client, normalize_instant, normalize_order
from domain.time import to_iso_utc
from repositories.record_store import ARCHIVE_TABLE, RecordStore, StoredDocument


@dataclass(frozen=True, slots=True)
class ArchiveEntry:
    key: str
    archived: Optional[ArchivedOrder]
    raw: Dict[str, Any]


def _archive_to_row(archived: ArchivedOrder) -> Dict[str, Any]:
    return {
        "originalOrderId": archived.original_order_id,
        "clientEmail": archived.order.client_email,
        "order": archived.order.to_document(),
        "client": archived.client_address.to_document() if archived.client_address else None,
        "deletedAt": to_iso_utc(archived.deleted_at),
        "retentionDeadline": to_iso_utc(archived.retention_deadline),
        "sourceEnv": archived.source_env,
        "deletedBy": archived.deleted_by,
    }


def _row_to_archive(row: StoredDocument) -> Optional[ArchivedOrder]:
    """Convert a stored document into an ArchivedOrder (None if unreadable)."""

    doc = row.doc
    deleted_at = normalize_instant(doc.get("deletedAt"))
    deadline = normalize_instant(doc.get("retentionDeadline"))
    if deleted_at is None or deadline is None or deadline <= deleted_at:
        return None

    client = doc.get("client")
    return ArchivedOrder(
        original_order_id=str(doc.get("originalOrderId") or row.key),
        order=normalize_order(doc.get("order") or {}, client_email=str(doc.get("clientEmail") or "")),
        deleted_at=deleted_at,
        retention_deadline=deadline,
        source_env=str(doc.get("sourceEnv") or ""),
        client_address=normalize_client(client) if client else None,
        deleted_by=str(doc.get("deletedBy") or ""),
    )


class ArchiveRepository:
    def __init__(self, store: RecordStore) -> None:
        self._store = store

    def save(self, archived: ArchivedOrder) -> None:
        self._store.put(ARCHIVE_TABLE, archived.original_order_id, _archive_to_row(archived))

    def get(self, original_order_id: str) -> Optional[ArchivedOrder]:
        raw = self._store.get(ARCHIVE_TABLE, original_order_id)
        if raw is None:
            return None
        return _row_to_archive(StoredDocument(key=original_order_id, doc=raw))

    def exists(self, original_order_id: str) -> bool:
        return self._store.get(ARCHIVE_TABLE, original_order_id) is not None

    def delete(self, original_order_id: str) -> bool:
        return self._store.delete(ARCHIVE_TABLE, original_order_id)

    def list_entries(self) -> List[ArchiveEntry]:
        return [
            ArchiveEntry(key=row.key, archived=_row_to_archive(row), raw=row.doc)
            for row in self._store.scan(ARCHIVE_TABLE)
        ]


__all__ = ["ArchiveRepository", "ArchiveEntry"]
