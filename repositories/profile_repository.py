"""
Client profile repository.

Provides read/write access to client profile documents, keyed by lowercased
email. Profiles are stored in whatever shape their generation wrote; typed
reads go through `domain.normalization` so callers see a `ClientProfile`.

This module does not decide *when* a profile is migrated or pruned; it only
persists what the services ask for.
"""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional

from domain.client import ClientProfile
from domain.identifiers import normalize_email
from domain.normalization import normalize_profile
from repositories.record_store import PROFILES_TABLE, RecordStore, StoredDocument


class ProfileRepository:
    def __init__(self, store: RecordStore) -> None:
        self._store = store

    @property
    def environment(self) -> str:
        return self._store.environment

    def get(self, email: str) -> Optional[ClientProfile]:
        """
        Get a profile by email.

        Args:
            email: client email (any case)

        Returns:
            ClientProfile or None if not found

        Example:
            profile = repo.get("Ana@Example.com")
            if profile and profile.is_legacy:
                # still has embedded orders
        """

        key = normalize_email(email)
        raw = self._store.get(PROFILES_TABLE, key)
        if raw is None:
            return None
        return normalize_profile(raw, key)

    def get_raw(self, email: str) -> Optional[Dict[str, Any]]:
        return self._store.get(PROFILES_TABLE, normalize_email(email))

    def save_raw(self, email: str, doc: Mapping[str, Any]) -> None:
        self._store.put(PROFILES_TABLE, normalize_email(email), doc)

    def patch(self, email: str, fields: Mapping[str, Any]) -> None:
        self._store.patch(PROFILES_TABLE, normalize_email(email), fields)

    def replace(self, email: str, doc: Mapping[str, Any]) -> None:
        """
        Delete-then-recreate the profile under the same key.

        A partial update cannot clear the arbitrary extra keys legacy
        documents carry; a full rewrite can.
        """

        key = normalize_email(email)
        self._store.delete(PROFILES_TABLE, key)
        self._store.put(PROFILES_TABLE, key, doc)

    def delete(self, email: str) -> bool:
        return self._store.delete(PROFILES_TABLE, normalize_email(email))

    def list_all(self) -> List[StoredDocument]:
        return self._store.scan(PROFILES_TABLE)


__all__ = ["ProfileRepository"]
