"""
Batch deletion of everything stored for one identity (account deletion).

Client identity has been written under many field names over the years, so
every table is probed once per alias field. Probes run concurrently; their
hits are unioned per table, deduplicated and deleted concurrently. A failed
probe or delete is recorded and never aborts the rest.

Finally the primary profile is read back; if it survived, its delete is
retried once.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence, Set, Tuple

from domain.errors import OrderSyncError
from domain.identifiers import normalize_email
from repositories.record_store import (
    ARCHIVE_TABLE,
    ORDERS_TABLE,
    PROFILES_TABLE,
    RECIPIENTS_TABLE,
    RecordStore,
    StoredDocument,
)
from services.fanout import DEFAULT_JOIN_TIMEOUT_SECONDS, run_all

logger = logging.getLogger(__name__)

# Alias fields holding the client email, per table.
ORDER_EMAIL_FIELDS = ("clientEmail", "client.email", "client.userAuth.email", "userAuthEmail", "email")
PROFILE_EMAIL_FIELDS = ("email", "correo", "clientEmail", "userAuth.email")
ARCHIVE_EMAIL_FIELDS = ("clientEmail", "order.clientEmail")
RECIPIENT_EMAIL_FIELDS = ("email",)

# Alias fields holding the external (auth provider) id, per table.
ORDER_EXTERNAL_ID_FIELDS = ("userId",)
PROFILE_EXTERNAL_ID_FIELDS = ("uid", "externalId")


@dataclass(frozen=True, slots=True)
class BatchDeleteResult:
    """
    Result of deleting one identity.

    orders_deleted: canonical order documents removed
    profiles_deleted: profile documents removed
    other_deleted: archived orders and push recipients removed
    failed_probes: "<env>:<table>:<field>=<value>" of probes that errored or timed out
    failed_deletes: "<env>:<table>/<key>" of deletes that errored or timed out
    """
    orders_deleted: int = 0
    profiles_deleted: int = 0
    other_deleted: int = 0
    failed_probes: List[str] = field(default_factory=list)
    failed_deletes: List[str] = field(default_factory=list)

    @property
    def complete(self) -> bool:
        return not self.failed_probes and not self.failed_deletes


def _probe_values(email: str) -> List[str]:
    # Stored values are not consistently lowercased.
    raw = email.strip()
    values = [normalize_email(raw)]
    if raw and raw != values[0]:
        values.append(raw)
    return [v for v in values if v]


class BatchDeleter:
    def __init__(
        self,
        stores: Sequence[RecordStore],
        *,
        max_workers: int = 8,
        timeout: float = DEFAULT_JOIN_TIMEOUT_SECONDS,
    ) -> None:
        if not stores:
            raise ValueError("BatchDeleter needs at least one store")
        self._stores = list(stores)
        self._max_workers = max_workers
        self._timeout = timeout

    def _probes(self, email: str, external_id: Optional[str]) -> List[Tuple[str, RecordStore, str, Callable[[], List[StoredDocument]]]]:
        probes: List[Tuple[str, RecordStore, str, Callable[[], List[StoredDocument]]]] = []

        def add(store: RecordStore, table: str, field_name: str, value: str) -> None:
            name = f"{store.environment}:{table}:{field_name}={value}"
            probes.append((name, store, table, lambda: store.query(table, {field_name: value})))

        emails = _probe_values(email)
        ext = (external_id or "").strip()

        for store in self._stores:
            for value in emails:
                key_name = f"{store.environment}:{PROFILES_TABLE}:key={value}"
                probes.append((key_name, store, PROFILES_TABLE, self._key_probe(store, value)))
                for f in PROFILE_EMAIL_FIELDS:
                    add(store, PROFILES_TABLE, f, value)
                for f in ORDER_EMAIL_FIELDS:
                    add(store, ORDERS_TABLE, f, value)
                for f in ARCHIVE_EMAIL_FIELDS:
                    add(store, ARCHIVE_TABLE, f, value)
                for f in RECIPIENT_EMAIL_FIELDS:
                    add(store, RECIPIENTS_TABLE, f, value)
            if ext:
                for f in PROFILE_EXTERNAL_ID_FIELDS:
                    add(store, PROFILES_TABLE, f, ext)
                for f in ORDER_EXTERNAL_ID_FIELDS:
                    add(store, ORDERS_TABLE, f, ext)
        return probes

    @staticmethod
    def _key_probe(store: RecordStore, key: str) -> Callable[[], List[StoredDocument]]:
        def probe() -> List[StoredDocument]:
            doc = store.get(PROFILES_TABLE, key)
            return [] if doc is None else [StoredDocument(key=key, doc=doc)]

        return probe

    def delete_all_for_identity(self, email: str, external_id: Optional[str] = None) -> BatchDeleteResult:
        """
        Delete every record belonging to `email` (and `external_id`) in every
        configured store.

        Raises:
            ValueError: neither an email nor an external id was given; an empty
                identity must never turn into an unfiltered delete
        """

        if not _probe_values(email) and not (external_id or "").strip():
            raise ValueError("An email or external id is required")

        probes = self._probes(email, external_id)
        probe_result = run_all(
            [(name, fn) for name, _, _, fn in probes],
            max_workers=self._max_workers,
            timeout=self._timeout,
        )

        failed_probes: List[str] = []
        # (store index, table) -> keys
        hits: Dict[Tuple[int, str], Set[str]] = {}
        store_index = {id(s): i for i, s in enumerate(self._stores)}
        for (name, store, table, _), outcome in zip(probes, probe_result.outcomes):
            if not outcome.ok:
                failed_probes.append(name)
                continue
            bucket = hits.setdefault((store_index[id(store)], table), set())
            bucket.update(row.key for row in outcome.value or [])

        targets = [
            (index, table, key)
            for (index, table), keys in sorted(hits.items())
            for key in sorted(keys)
        ]
        delete_result = run_all(
            [
                (f"{self._stores[i].environment}:{table}/{key}", self._deleter(self._stores[i], table, key))
                for i, table, key in targets
            ],
            max_workers=self._max_workers,
            timeout=self._timeout,
        )

        counts = {ORDERS_TABLE: 0, PROFILES_TABLE: 0, "other": 0}
        failed_deletes: Set[str] = set()
        for (i, table, key), outcome in zip(targets, delete_result.outcomes):
            if not outcome.ok:
                failed_deletes.add(f"{self._stores[i].environment}:{table}/{key}")
                continue
            if outcome.value:
                counts[table if table in counts else "other"] += 1

        for store in self._stores:
            for key in _probe_values(email):
                name = f"{store.environment}:{PROFILES_TABLE}/{key}"
                if self._verify_profile_gone(store, key):
                    if name in failed_deletes:
                        failed_deletes.discard(name)
                        counts[PROFILES_TABLE] += 1
                else:
                    failed_deletes.add(name)

        result = BatchDeleteResult(
            orders_deleted=counts[ORDERS_TABLE],
            profiles_deleted=counts[PROFILES_TABLE],
            other_deleted=counts["other"],
            failed_probes=failed_probes,
            failed_deletes=sorted(failed_deletes),
        )
        log = logger.info if result.complete else logger.warning
        log(
            f"Identity deletion: {result.orders_deleted} orders, {result.profiles_deleted} profiles, "
            f"{result.other_deleted} other",
            extra={
                "email": normalize_email(email),
                "failed_probes": result.failed_probes,
                "failed_deletes": result.failed_deletes,
            },
        )
        return result

    @staticmethod
    def _deleter(store: RecordStore, table: str, key: str) -> Callable[[], bool]:
        return lambda: store.delete(table, key)

    def _verify_profile_gone(self, store: RecordStore, key: str) -> bool:
        """Read the primary profile back; retry its delete once if it survived."""

        try:
            if store.get(PROFILES_TABLE, key) is None:
                return True
            logger.warning(
                f"Profile {key} survived deletion; retrying once",
                extra={"email": key, "environment": store.environment},
            )
            store.delete(PROFILES_TABLE, key)
            return store.get(PROFILES_TABLE, key) is None
        except OrderSyncError as e:
            logger.warning(
                f"Verification of profile {key} deletion failed: {e}",
                extra={"email": key, "environment": store.environment},
            )
            return False


__all__ = ["BatchDeleter", "BatchDeleteResult"]
