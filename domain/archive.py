"""
Domain: archived (soft-deleted) orders.

Contract excerpts implemented here:
- An ArchivedOrder keeps the original order id as its key.
- retention_deadline = deleted_at + RETENTION_WINDOW, always later than
  deleted_at.
- An ArchivedOrder is never mutated after creation; it is only removed, by
  the purge step or an explicit permanent delete.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from .client import Client
from .order import OrderRecord
from .time import require_utc_timestamp

# Policy: how long a soft-deleted order is kept before permanent purge.
RETENTION_WINDOW: timedelta = timedelta(days=30)


@dataclass(frozen=True, slots=True)
class ArchivedOrder:
    original_order_id: str
    order: OrderRecord
    deleted_at: datetime
    retention_deadline: datetime
    source_env: str
    client_address: Optional[Client] = None
    deleted_by: str = ""

    def __post_init__(self) -> None:
        require_utc_timestamp("deleted_at", self.deleted_at)
        require_utc_timestamp("retention_deadline", self.retention_deadline)
        if self.retention_deadline <= self.deleted_at:
            raise ValueError("retention_deadline must be later than deleted_at")

    @classmethod
    def create(
        cls,
        order: OrderRecord,
        *,
        deleted_at: datetime,
        source_env: str,
        client_address: Optional[Client] = None,
        deleted_by: str = "",
    ) -> "ArchivedOrder":
        return cls(
            original_order_id=order.order_id.serialize(),
            order=order,
            deleted_at=deleted_at,
            retention_deadline=deleted_at + RETENTION_WINDOW,
            source_env=source_env,
            client_address=client_address,
            deleted_by=deleted_by,
        )

    def is_expired(self, now: datetime) -> bool:
        return self.retention_deadline <= now

    def remaining_days(self, now: datetime) -> int:
        """Whole days left before purge (0 once due)."""

        seconds = (self.retention_deadline - now).total_seconds()
        return max(0, math.ceil(seconds / 86400))


__all__ = ["ArchivedOrder", "RETENTION_WINDOW"]
