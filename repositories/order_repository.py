"""
Order repository (persistence).

This module provides *only* persistence operations for canonical
`OrderRecord` documents. It does not enforce business rules (status
transitions, dual writes); it only reads, writes and deletes.

Canonical key: the boundary form of the order id, ``"<email>_<token>"``.
Documents written by older tooling may sit under another key (mixed-case
email, for one), so lookups hand back the stored key with each order and
writes to an existing document go to that key.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional

from domain.identifiers import OrderId
from domain.normalization import normalize_order
from domain.order import OrderRecord
from repositories.record_store import ORDERS_TABLE, RecordStore, StoredDocument

# Fields a bare token may be stored under.
_TOKEN_FIELDS = ("orderToken", "invoiceNumber", "orderNumber")


@dataclass(frozen=True, slots=True)
class StoredOrder:
    """A canonical order and the key its document is stored under."""
    key: str
    order: OrderRecord


def _row_to_order(row: StoredDocument) -> StoredOrder:
    """Convert a stored document into a StoredOrder."""

    return StoredOrder(key=row.key, order=normalize_order(row.doc))


class OrderRepository:
    def __init__(self, store: RecordStore) -> None:
        self._store = store

    @property
    def environment(self) -> str:
        return self._store.environment

    def save(self, order: OrderRecord, key: Optional[str] = None) -> None:
        """
        Create or replace the canonical document for `order`.

        `key` defaults to the order's boundary id; pass the stored key when
        rewriting a document found by `find_candidates`.
        """

        self._store.put(ORDERS_TABLE, key or order.order_id.serialize(), order.to_document())

    def get(self, order_id: OrderId) -> Optional[OrderRecord]:
        """Direct key lookup; returns None if absent."""

        raw = self._store.get(ORDERS_TABLE, order_id.serialize())
        if raw is None:
            return None
        return normalize_order(raw, client_email=order_id.client_email or "")

    def delete(self, order_id: OrderId) -> bool:
        return self.delete_key(order_id.serialize())

    def delete_key(self, key: str) -> bool:
        """Delete by stored key; False if nothing was stored there."""

        return self._store.delete(ORDERS_TABLE, key)

    def list_for_client(self, email: str) -> List[StoredOrder]:
        """All canonical orders of one client (possibly empty)."""

        rows = self._store.query(ORDERS_TABLE, {"clientEmail": email})
        return [_row_to_order(row) for row in rows]

    def find_candidates(self, order_id: OrderId) -> List[StoredOrder]:
        """
        Candidate orders for matching `order_id`.

        Scoped to the client when the identifier names one; otherwise the
        token is probed against every identity field and the results are
        deduplicated by key.
        """

        if order_id.client_email is not None:
            return self.list_for_client(order_id.client_email)

        by_key: Dict[str, StoredDocument] = {}
        for field in _TOKEN_FIELDS:
            for row in self._store.query(ORDERS_TABLE, {field: order_id.order_token}):
                by_key.setdefault(row.key, row)
        return [_row_to_order(row) for row in by_key.values()]


__all__ = ["OrderRepository", "StoredOrder"]
