"""
Push recipient registry.

Recipient tokens keyed by token, each with the owning email. The notification
collaborator reports tokens it could not deliver to; those are pruned here.
"""

from __future__ import annotations

from typing import Iterable, List

from domain.identifiers import normalize_email
from domain.time import to_iso_utc, utc_now
from repositories.record_store import RECIPIENTS_TABLE, RecordStore


class RecipientRepository:
    def __init__(self, store: RecordStore) -> None:
        self._store = store

    def register(self, token: str, email: str) -> None:
        self._store.put(
            RECIPIENTS_TABLE,
            token,
            {"token": token, "email": normalize_email(email), "registeredAt": to_iso_utc(utc_now())},
        )

    def list_tokens(self) -> List[str]:
        return [row.key for row in self._store.scan(RECIPIENTS_TABLE)]

    def remove(self, tokens: Iterable[str]) -> int:
        """Delete `tokens`; returns how many existed."""

        removed = 0
        for token in set(tokens):
            if self._store.delete(RECIPIENTS_TABLE, token):
                removed += 1
        return removed


__all__ = ["RecipientRepository"]
