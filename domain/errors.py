"""
Domain: error taxonomy for order synchronization.

Single-item operations (resolve, update, soft delete of one order) fail fast
by raising one of these. Batch operations (migration, purge, batch delete)
never raise for a single item; they report per-item outcomes instead.

A partial dual-write failure is not an exception: it is reported as
`WriteOutcome.DEGRADED` on the update result.
"""

from __future__ import annotations

from typing import Optional, Sequence


class OrderSyncError(Exception):
    """Base class for all order synchronization errors."""


class OrderNotFoundError(OrderSyncError):
    """Identifier resolved to zero records."""

    def __init__(self, identifier: str, scope: str = "canonical") -> None:
        self.identifier = identifier
        self.scope = scope
        super().__init__(f"Order not found: {identifier!r} (searched {scope})")


class AmbiguousOrderError(OrderSyncError):
    """Identifier resolved to more than one record; never auto-resolved."""

    def __init__(self, identifier: str, candidates: Sequence[str]) -> None:
        self.identifier = identifier
        self.candidates = list(candidates)
        super().__init__(
            f"Identifier {identifier!r} matches {len(self.candidates)} orders; "
            "use a more specific identifier"
        )


class StatusConflictError(OrderSyncError):
    """Requested status is not reachable from the current status."""

    def __init__(self, current: str, requested: str) -> None:
        self.current = current
        self.requested = requested
        super().__init__(f"Cannot move order from {current!r} to {requested!r}")


class StoreUnavailableError(OrderSyncError, RuntimeError):
    """
    Store connectivity or configuration is missing.

    This is a configuration error, distinct from data errors, and must not be
    retried silently.
    """


class RecordStoreError(OrderSyncError):
    """A single store call failed (API error or timeout)."""

    def __init__(self, message: str, *, table: Optional[str] = None, key: Optional[str] = None) -> None:
        self.table = table
        self.key = key
        super().__init__(message)


__all__ = [
    "OrderSyncError",
    "OrderNotFoundError",
    "AmbiguousOrderError",
    "StatusConflictError",
    "StoreUnavailableError",
    "RecordStoreError",
]
