"""
Order lifecycle: migration, soft delete, purge.

Handles:
- Migration of legacy embedded orders into canonical order documents
- Soft delete (archive first, then remove every live copy)
- Scheduled purge of archived orders past their retention deadline
- Explicit permanent delete and archive listing

Batch operations (migrate_all, purge_expired) always complete their scan and
report per-item outcomes. Single-item operations raise from the
`domain.errors` taxonomy.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Dict, List, Optional, Set, Union

from domain.archive import ArchivedOrder
from domain.client import Client
from domain.errors import OrderNotFoundError, RecordStoreError
from domain.identifiers import OrderId, normalize_email
from domain.normalization import (
    embedded_order_slots,
    is_deleted_snapshot,
    normalize_order,
    normalize_profile,
    profile_attributes,
)
from domain.order import OrderRecord
from domain.time import require_utc_timestamp, utc_now
from repositories.archive_repository import ArchiveRepository
from repositories.order_repository import OrderRepository
from repositories.profile_repository import ProfileRepository
from repositories.record_store import RecordStore
from services.dual_write_service import (
    CANONICAL_TARGET,
    LEGACY_TARGET,
    DualWriteCoordinator,
    LegacyCopy,
    StoreWriteResult,
    WriteOutcome,
    summarize,
)

logger = logging.getLogger(__name__)


# ============================================================================
# Results
# ============================================================================

@dataclass(frozen=True, slots=True)
class MigrationResult:
    """
    Result of migrating one profile.

    migrated_order_count: canonical order documents written
    already_present_count: embedded orders whose canonical copy was kept
        because it was at least as recent as the snapshot
    deleted_skipped_count: embedded orders flagged ``isDeleted``; they are
        never migrated and are dropped with the rest of the order data
    skipped: True if the profile was not eligible (missing or already migrated)
    reason: why it was skipped ("" when not skipped)
    errors: per-order or profile-rewrite errors; non-empty means the profile
        was left untouched for a later re-run
    """
    email: str
    migrated_order_count: int = 0
    already_present_count: int = 0
    deleted_skipped_count: int = 0
    skipped: bool = False
    reason: str = ""
    errors: List[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.errors


@dataclass(frozen=True, slots=True)
class MigrationSummary:
    profiles_scanned: int
    profiles_migrated: int
    profiles_skipped: int
    orders_migrated: int
    failures: List[MigrationResult]
    orders_already_present: int = 0
    deleted_orders_skipped: int = 0


@dataclass(frozen=True, slots=True)
class SoftDeleteResult:
    """
    Result of a soft delete.

    The archive write always succeeded when this is returned. `store_results`
    reports the removal of each live copy; a failed removal leaves the order
    both archived and live (outcome degraded) until it is deleted again.
    """
    archived: ArchivedOrder
    store_results: List[StoreWriteResult]

    @property
    def outcome(self) -> WriteOutcome:
        return summarize(tuple(self.store_results))


@dataclass(frozen=True, slots=True)
class PurgeResult:
    """
    Result of one purge pass.

    purged_count: archived orders removed
    kept_count: archived orders not yet due
    unreadable: keys of entries whose deadline could not be read (kept)
    failures: keys whose delete call failed (kept, retried next pass)
    """
    purged_count: int
    kept_count: int
    unreadable: List[str]
    failures: List[str]


@dataclass(frozen=True, slots=True)
class ArchiveListing:
    original_order_id: str
    archived: Optional[ArchivedOrder]
    remaining_days: Optional[int]


# ============================================================================
# Manager
# ============================================================================

def _supersedes(snapshot: OrderRecord, canonical: OrderRecord) -> bool:
    """True if an embedded snapshot is strictly newer than the canonical copy."""

    if snapshot.last_updated is None:
        return False
    if canonical.last_updated is None:
        return True
    return snapshot.last_updated > canonical.last_updated


class LifecycleManager:
    def __init__(
        self,
        store: RecordStore,
        *,
        source_env: str = "",
        coordinator: Optional[DualWriteCoordinator] = None,
    ) -> None:
        self._orders = OrderRepository(store)
        self._profiles = ProfileRepository(store)
        self._archive = ArchiveRepository(store)
        self._coordinator = coordinator or DualWriteCoordinator(store)
        self.environment = store.environment
        self.source_env = source_env or store.environment

    # ------------------------------------------------------------------
    # Migration
    # ------------------------------------------------------------------

    def migrate_profile(self, email: str) -> MigrationResult:
        """
        Move a legacy profile's embedded orders into canonical documents.

        Every embedded order is written first. Only when all of them succeeded
        is the profile rewritten (delete-then-recreate) without order data.
        Re-running on a migrated profile is a no-op.

        The canonical store is authoritative: an existing canonical document
        is replaced only by a snapshot with a strictly later `lastUpdated`.
        Snapshots flagged ``isDeleted`` are never migrated.

        Example:
            result = manager.migrate_profile("ana@example.com")
            if result.errors:
                # profile untouched; run again later
        """

        key = normalize_email(email)
        raw = self._profiles.get_raw(key)
        if raw is None:
            return MigrationResult(email=key, skipped=True, reason="not_found")

        slots = embedded_order_slots(raw, include_deleted=True)
        if not slots:
            return MigrationResult(email=key, skipped=True, reason="already_migrated")
        profile = normalize_profile(raw, key)

        errors: List[str] = []
        seen: Set[str] = set()
        written = present = deleted = 0
        for _, snapshot in slots:
            if is_deleted_snapshot(snapshot):
                deleted += 1
                continue

            order = normalize_order(snapshot, client_email=key, client=profile.client)
            if order.client_email != key:
                # Embedded copies belong to the profile that holds them.
                order = replace(order, client_email=key)
            if order.client is None:
                order = replace(order, client=profile.client)

            order_key = order.order_id.serialize()
            if order_key in seen:
                errors.append(f"Duplicate order token {order.order_token!r} in profile {key}")
                continue
            seen.add(order_key)

            try:
                existing = self._orders.get(order.order_id)
                if existing is not None and not _supersedes(order, existing):
                    present += 1
                    continue
                self._orders.save(order)
            except RecordStoreError as e:
                errors.append(f"Failed to write order {order_key}: {e}")
                continue
            written += 1

        counts = {
            "migrated_order_count": written,
            "already_present_count": present,
            "deleted_skipped_count": deleted,
        }
        if errors:
            logger.warning(
                f"Migration of profile {key} incomplete; profile left untouched",
                extra={"email": key, "errors": errors, **counts},
            )
            return MigrationResult(email=key, errors=errors, **counts)

        try:
            self._profiles.replace(key, profile_attributes(raw, key))
        except RecordStoreError as e:
            errors.append(f"Failed to rewrite profile {key}: {e}")
            logger.warning(
                f"Profile rewrite failed after migrating {written} orders",
                extra={"email": key, "error": str(e)},
            )
            return MigrationResult(email=key, errors=errors, **counts)

        logger.info(
            f"Migrated {written} orders for profile {key}",
            extra={"email": key, "environment": self.environment, **counts},
        )
        return MigrationResult(email=key, **counts)

    def migrate_all(self) -> MigrationSummary:
        """Migrate every legacy profile in the store; never stops on one failure."""

        scanned = migrated = skipped = orders = present = deleted = 0
        failures: List[MigrationResult] = []

        for row in self._profiles.list_all():
            scanned += 1
            try:
                result = self.migrate_profile(row.key)
            except RecordStoreError as e:
                result = MigrationResult(email=row.key, errors=[str(e)])

            if result.skipped:
                skipped += 1
            elif result.errors:
                failures.append(result)
            else:
                migrated += 1
            orders += result.migrated_order_count
            present += result.already_present_count
            deleted += result.deleted_skipped_count

        summary = MigrationSummary(
            profiles_scanned=scanned,
            profiles_migrated=migrated,
            profiles_skipped=skipped,
            orders_migrated=orders,
            failures=failures,
            orders_already_present=present,
            deleted_orders_skipped=deleted,
        )
        logger.info(
            f"Migration pass: {migrated} migrated, {skipped} skipped, {len(failures)} failed",
            extra={"environment": self.environment, "orders_migrated": orders},
        )
        return summary

    # ------------------------------------------------------------------
    # Soft delete
    # ------------------------------------------------------------------

    def _client_address(self, order: OrderRecord) -> Optional[Client]:
        try:
            profile = self._profiles.get(order.client_email)
        except RecordStoreError as e:
            logger.warning(
                f"Could not read profile {order.client_email} for archive address",
                extra={"email": order.client_email, "error": str(e)},
            )
            profile = None
        if profile is not None:
            return profile.client.address_fields()
        if order.client is not None:
            return order.client.address_fields()
        return None

    def _remove_canonical(self, key: str) -> StoreWriteResult:
        try:
            deleted = self._orders.delete_key(key)
        except RecordStoreError as e:
            return StoreWriteResult(target=CANONICAL_TARGET, success=False, error=str(e))
        if not deleted:
            return StoreWriteResult(
                target=CANONICAL_TARGET,
                success=False,
                error=f"No canonical document under key {key!r}",
            )
        return StoreWriteResult(target=CANONICAL_TARGET, success=True)

    def _remove_legacy(self, copy: LegacyCopy) -> StoreWriteResult:
        try:
            raw = self._profiles.get_raw(copy.email)
            if raw is None:
                return StoreWriteResult(target=LEGACY_TARGET, success=True)

            if copy.slot is None:
                doc: Dict[str, Any] = profile_attributes(raw, copy.email)
                if isinstance(raw.get("orders"), list):
                    doc["orders"] = raw["orders"]
                self._profiles.replace(copy.email, doc)
            else:
                orders = list(raw.get("orders") or [])
                if copy.slot < len(orders):
                    del orders[copy.slot]
                self._profiles.patch(copy.email, {"orders": orders})
        except RecordStoreError as e:
            return StoreWriteResult(target=LEGACY_TARGET, success=False, error=str(e))
        return StoreWriteResult(target=LEGACY_TARGET, success=True)

    def soft_delete(
        self,
        order_id: Union[OrderId, str],
        *,
        deleted_by: str = "",
        now: Optional[datetime] = None,
    ) -> SoftDeleteResult:
        """
        Archive an order, then remove its live copies.

        Raises:
            OrderNotFoundError / AmbiguousOrderError: resolution failed
            RecordStoreError: the archive write failed (nothing was removed)
        """

        deleted_at = now or utc_now()
        location = self._coordinator.locate(order_id)
        order = location.primary

        archived = ArchivedOrder.create(
            order,
            deleted_at=deleted_at,
            source_env=self.source_env,
            client_address=self._client_address(order),
            deleted_by=deleted_by,
        )
        self._archive.save(archived)

        results: List[StoreWriteResult] = []
        if location.canonical is not None:
            results.append(self._remove_canonical(location.canonical_key or location.canonical.order_id.serialize()))
        if location.legacy is not None:
            results.append(self._remove_legacy(location.legacy))

        result = SoftDeleteResult(archived=archived, store_results=results)
        context = {
            "order_id": archived.original_order_id,
            "environment": self.environment,
            "retention_deadline": archived.retention_deadline.isoformat(),
            "outcome": result.outcome.value,
        }
        if result.outcome is WriteOutcome.OK:
            logger.info("Order archived", extra=context)
        else:
            logger.warning(
                "Order archived but not every live copy was removed",
                extra={**context, "modification_type": "partial_write_failure"},
            )
        return result

    # ------------------------------------------------------------------
    # Purge / archive
    # ------------------------------------------------------------------

    def purge_expired(self, now: Optional[datetime] = None) -> PurgeResult:
        """
        Delete every archived order whose retention deadline is <= now.

        Entries with an unreadable deadline are kept and reported. Running it
        twice with the same `now` deletes nothing the second time.
        """

        now = now or utc_now()
        require_utc_timestamp("now", now)

        purged = kept = 0
        unreadable: List[str] = []
        failures: List[str] = []

        for entry in self._archive.list_entries():
            if entry.archived is None:
                unreadable.append(entry.key)
                continue
            if not entry.archived.is_expired(now):
                kept += 1
                continue
            try:
                if self._archive.delete(entry.key):
                    purged += 1
            except RecordStoreError as e:
                logger.warning(
                    f"Failed to purge archived order {entry.key}",
                    extra={"order_id": entry.key, "error": str(e)},
                )
                failures.append(entry.key)

        if unreadable:
            logger.warning(
                f"{len(unreadable)} archived orders have an unreadable retention deadline",
                extra={"keys": unreadable, "modification_type": "malformed_legacy_data"},
            )
        logger.info(
            f"Purge pass: {purged} purged, {kept} retained",
            extra={"environment": self.environment, "now": now.isoformat()},
        )
        return PurgeResult(purged_count=purged, kept_count=kept, unreadable=unreadable, failures=failures)

    def permanently_delete(self, original_order_id: str) -> None:
        """
        Remove one archived order before its deadline.

        Raises:
            OrderNotFoundError: nothing archived under that id
        """

        if not self._archive.delete(original_order_id):
            raise OrderNotFoundError(original_order_id, "archive")
        logger.info("Archived order permanently deleted", extra={"order_id": original_order_id})

    def list_archived(self, now: Optional[datetime] = None) -> List[ArchiveListing]:
        """Archived orders with whole days left before purge, soonest first."""

        now = now or utc_now()
        listings = [
            ArchiveListing(
                original_order_id=entry.key,
                archived=entry.archived,
                remaining_days=entry.archived.remaining_days(now) if entry.archived else None,
            )
            for entry in self._archive.list_entries()
        ]
        listings.sort(key=lambda item: (item.remaining_days is None, item.remaining_days or 0, item.original_order_id))
        return listings


__all__ = [
    "LifecycleManager",
    "MigrationResult",
    "MigrationSummary",
    "SoftDeleteResult",
    "PurgeResult",
    "ArchiveListing",
]
