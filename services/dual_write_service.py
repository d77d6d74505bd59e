"""
Dual-write coordinator for order updates.

An order may exist in two places:
- the canonical per-order document (`order_records`);
- an embedded snapshot inside its client's legacy profile.

Every update is applied to each copy that exists, as independent sequential
writes. There is no rollback: a failed write is logged and reported in the
result, and the caller sees `WriteOutcome.DEGRADED` when some copies were
written and others were not.

Status validation happens before the first write, so a conflicting status
leaves every store unchanged.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Callable, List, Mapping, Optional, Tuple, Union

from domain.errors import AmbiguousOrderError, OrderNotFoundError, RecordStoreError
from domain.identifiers import OrderId
from domain.matching import MatchStatus, match, record_aliases, resolve
from domain.normalization import (
    embedded_order_slots,
    legacy_token,
    merge_into_snapshot,
    normalize_order,
    order_alias_values,
)
from domain.order import OrderPatch, OrderRecord, apply_patch
from domain.time import utc_now
from repositories.order_repository import OrderRepository, StoredOrder
from repositories.profile_repository import ProfileRepository
from repositories.record_store import RecordStore

logger = logging.getLogger(__name__)

CANONICAL_TARGET = "canonical"
LEGACY_TARGET = "legacy_embedded"


class WriteOutcome(str, Enum):
    OK = "ok"
    DEGRADED = "degraded"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class StoreWriteResult:
    """Result of writing one copy of an order."""
    target: str
    success: bool
    error: Optional[str] = None


@dataclass(frozen=True, slots=True)
class UpdateResult:
    """
    Result of a dual-write update.

    success: True unless every target failed
    outcome: ok / degraded / failed
    store_results: one entry per copy that was found and written
    order: the updated order as computed (None if nothing was written)
    """
    success: bool
    outcome: WriteOutcome
    store_results: Tuple[StoreWriteResult, ...]
    order: Optional[OrderRecord] = None


@dataclass(frozen=True, slots=True)
class LegacyCopy:
    """An order snapshot embedded in a profile document."""
    email: str
    slot: Optional[int]  # index in `orders`, or None for the top-level shape
    snapshot: Mapping[str, Any]
    record: OrderRecord


@dataclass(frozen=True, slots=True)
class OrderLocation:
    """
    Every copy of one logical order.

    canonical_key: key the canonical document is stored under, which is not
        always the recomputed boundary id
    """
    order_id: OrderId
    canonical: Optional[OrderRecord]
    legacy: Optional[LegacyCopy]
    legacy_error: Optional[str] = None
    canonical_key: Optional[str] = None

    @property
    def primary(self) -> OrderRecord:
        if self.canonical is not None:
            return self.canonical
        if self.legacy is not None:
            return self.legacy.record
        raise OrderNotFoundError(self.order_id.serialize(), "canonical and legacy embedded")


def summarize(results: Tuple[StoreWriteResult, ...]) -> WriteOutcome:
    ok = sum(1 for r in results if r.success)
    if ok == len(results):
        return WriteOutcome.OK
    if ok == 0:
        return WriteOutcome.FAILED
    return WriteOutcome.DEGRADED


def _stored_aliases(stored: StoredOrder) -> Mapping[str, str]:
    return record_aliases(stored.order)


def _coerce_id(order_id: Union[OrderId, str]) -> OrderId:
    return order_id if isinstance(order_id, OrderId) else OrderId.parse(order_id)


class DualWriteCoordinator:
    def __init__(self, store: RecordStore) -> None:
        self._orders = OrderRepository(store)
        self._profiles = ProfileRepository(store)
        self.environment = store.environment

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def _find_legacy(self, order_id: OrderId, email: str) -> Optional[LegacyCopy]:
        raw = self._profiles.get_raw(email)
        if raw is None:
            return None

        slots = embedded_order_slots(raw)

        def aliases(entry: Tuple[Optional[int], Mapping[str, Any]]) -> Mapping[str, str]:
            values = order_alias_values(entry[1])
            if not values:
                values["orderToken"] = legacy_token(entry[1])
            values["clientEmail"] = email
            return values

        result = match(order_id, slots, aliases)
        if result.status is MatchStatus.AMBIGUOUS:
            candidates = [aliases(slots[i]).get("orderToken") or aliases(slots[i]).get("orderId") or "?"
                          for i in result.candidate_indexes]
            raise AmbiguousOrderError(order_id.serialize(), candidates)
        if not result.found:
            return None

        slot, snapshot = result.item
        return LegacyCopy(
            email=email,
            slot=slot,
            snapshot=snapshot,
            record=normalize_order(snapshot, client_email=email),
        )

    def locate(self, order_id: Union[OrderId, str]) -> OrderLocation:
        """
        Find every copy of one logical order.

        Raises:
            OrderNotFoundError: no copy anywhere
            AmbiguousOrderError: the identifier matches several canonical
                orders, or several embedded ones when there is no canonical
                copy
        """

        oid = _coerce_id(order_id)

        candidates = self._orders.find_candidates(oid)
        canonical_match = match(oid, candidates, _stored_aliases)
        if canonical_match.status is MatchStatus.AMBIGUOUS:
            # Re-run through `resolve` for the candidate listing.
            resolve(oid, candidates, _stored_aliases)
        stored = canonical_match.item if canonical_match.found else None
        canonical = stored.order if stored is not None else None

        email = oid.client_email or (canonical.client_email if canonical else None)
        legacy: Optional[LegacyCopy] = None
        legacy_error: Optional[str] = None
        if email:
            try:
                legacy = self._find_legacy(oid, email)
            except AmbiguousOrderError as e:
                if canonical is None:
                    raise
                legacy_error = str(e)

        if canonical is None and legacy is None:
            raise OrderNotFoundError(oid.serialize(), "canonical and legacy embedded")

        return OrderLocation(
            order_id=oid,
            canonical=canonical,
            legacy=legacy,
            legacy_error=legacy_error,
            canonical_key=stored.key if stored is not None else None,
        )

    def resolve(self, order_id: Union[OrderId, str]) -> OrderRecord:
        """Resolve an identifier to one order, canonical copy first."""

        return self.locate(order_id).primary

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def _write_canonical(self, order: OrderRecord, key: Optional[str]) -> StoreWriteResult:
        try:
            self._orders.save(order, key)
        except RecordStoreError as e:
            return StoreWriteResult(target=CANONICAL_TARGET, success=False, error=str(e))
        return StoreWriteResult(target=CANONICAL_TARGET, success=True)

    def _write_legacy(self, copy: LegacyCopy, order: OrderRecord) -> StoreWriteResult:
        try:
            # Re-read so the array write is based on the current document.
            raw = self._profiles.get_raw(copy.email)
            if raw is None:
                raise RecordStoreError(f"Profile {copy.email} disappeared during update", key=copy.email)

            updated = merge_into_snapshot(copy.snapshot, order)
            if copy.slot is None:
                self._profiles.patch(copy.email, updated)
            else:
                orders = list(raw.get("orders") or [])
                if copy.slot >= len(orders):
                    raise RecordStoreError(f"Embedded order moved in profile {copy.email}", key=copy.email)
                orders[copy.slot] = updated
                self._profiles.patch(copy.email, {"orders": orders})
        except RecordStoreError as e:
            return StoreWriteResult(target=LEGACY_TARGET, success=False, error=str(e))
        return StoreWriteResult(target=LEGACY_TARGET, success=True)

    def _apply(
        self,
        order_id: Union[OrderId, str],
        transform: Callable[[OrderRecord], OrderRecord],
        action: str,
    ) -> UpdateResult:
        location = self.locate(order_id)

        # Compute every new version first: a StatusConflictError here means
        # nothing has been written yet.
        new_canonical = transform(location.canonical) if location.canonical is not None else None
        new_legacy = transform(location.legacy.record) if location.legacy is not None else None

        results: List[StoreWriteResult] = []
        if new_canonical is not None:
            results.append(self._write_canonical(new_canonical, location.canonical_key))
        if location.legacy is not None and new_legacy is not None:
            results.append(self._write_legacy(location.legacy, new_legacy))
        if location.legacy_error:
            results.append(StoreWriteResult(target=LEGACY_TARGET, success=False, error=location.legacy_error))

        store_results = tuple(results)
        outcome = summarize(store_results)
        context = {
            "order_id": location.order_id.serialize(),
            "action": action,
            "environment": self.environment,
            "outcome": outcome.value,
        }
        if outcome is WriteOutcome.OK:
            logger.info(f"Order {action} applied", extra=context)
        else:
            failed = [r.target for r in store_results if not r.success]
            logger.warning(
                f"Order {action} {outcome.value}: failed targets {failed}",
                extra={**context, "failed_targets": failed, "modification_type": "partial_write_failure"},
            )

        return UpdateResult(
            success=outcome is not WriteOutcome.FAILED,
            outcome=outcome,
            store_results=store_results,
            order=new_canonical or new_legacy,
        )

    def apply_update(
        self,
        order_id: Union[OrderId, str],
        patch: Union[OrderPatch, Mapping[str, Any]],
        *,
        at: Optional[datetime] = None,
    ) -> UpdateResult:
        """
        Apply a partial update to every copy of an order.

        Args:
            order_id: OrderId or boundary string ("email_token" or bare token)
            patch: OrderPatch or a mapping of wire field names
            at: operation start instant (defaults to now, UTC)

        Raises:
            ValueError: malformed patch
            OrderNotFoundError / AmbiguousOrderError: resolution failed
            StatusConflictError: status not reachable (no store was written)
            StoreUnavailableError: store not configured or unreachable
        """

        if not isinstance(patch, OrderPatch):
            patch = OrderPatch.from_mapping(patch)
        started = at or utc_now()
        return self._apply(order_id, lambda order: apply_patch(order, patch, started), "update")

    def mark_messages_read(self, order_id: Union[OrderId, str], *, at: Optional[datetime] = None) -> UpdateResult:
        """Flip `isRead` on every admin message, one document write per copy."""

        started = at or utc_now()
        return self._apply(order_id, lambda order: order.mark_messages_read().touched(started), "messages_read")


__all__ = [
    "DualWriteCoordinator",
    "UpdateResult",
    "StoreWriteResult",
    "WriteOutcome",
    "OrderLocation",
    "LegacyCopy",
    "summarize",
    "CANONICAL_TARGET",
    "LEGACY_TARGET",
]
