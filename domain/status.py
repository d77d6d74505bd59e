"""
Domain: order status and payment status.

State machine:

    new ──► confirmed ──► shipped ──► delivered
     │          │            │
     └──────────┴────────────┴──────► cancelled

- `delivered` and `cancelled` are terminal.
- Re-applying the current status is a no-op, not a transition.
- Payment status is orthogonal (pending -> paid | failed) and never forces an
  order status change.
"""

from __future__ import annotations

from enum import Enum
from typing import Dict, FrozenSet, Optional


class OrderStatus(str, Enum):
    NEW = "new"
    CONFIRMED = "confirmed"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"


TERMINAL_STATUSES: FrozenSet[OrderStatus] = frozenset({OrderStatus.DELIVERED, OrderStatus.CANCELLED})

VALID_TRANSITIONS: Dict[OrderStatus, FrozenSet[OrderStatus]] = {
    OrderStatus.NEW: frozenset({OrderStatus.CONFIRMED, OrderStatus.CANCELLED}),
    OrderStatus.CONFIRMED: frozenset({OrderStatus.SHIPPED, OrderStatus.CANCELLED}),
    OrderStatus.SHIPPED: frozenset({OrderStatus.DELIVERED, OrderStatus.CANCELLED}),
    OrderStatus.DELIVERED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}

VALID_PAYMENT_TRANSITIONS: Dict[PaymentStatus, FrozenSet[PaymentStatus]] = {
    PaymentStatus.PENDING: frozenset({PaymentStatus.PAID, PaymentStatus.FAILED}),
    PaymentStatus.PAID: frozenset(),
    PaymentStatus.FAILED: frozenset(),
}

# Status words written by older clients.
_STATUS_ALIASES: Dict[str, OrderStatus] = {
    "new": OrderStatus.NEW,
    "pending": OrderStatus.NEW,
    "pendiente": OrderStatus.NEW,
    "nuevo": OrderStatus.NEW,
    "confirmed": OrderStatus.CONFIRMED,
    "confirmado": OrderStatus.CONFIRMED,
    "processing": OrderStatus.CONFIRMED,
    "shipped": OrderStatus.SHIPPED,
    "enviado": OrderStatus.SHIPPED,
    "delivered": OrderStatus.DELIVERED,
    "completed": OrderStatus.DELIVERED,
    "entregado": OrderStatus.DELIVERED,
    "cancelled": OrderStatus.CANCELLED,
    "canceled": OrderStatus.CANCELLED,
    "cancelado": OrderStatus.CANCELLED,
}

_PAYMENT_ALIASES: Dict[str, PaymentStatus] = {
    "pending": PaymentStatus.PENDING,
    "pendiente": PaymentStatus.PENDING,
    "paid": PaymentStatus.PAID,
    "pagado": PaymentStatus.PAID,
    "approved": PaymentStatus.PAID,
    "completed": PaymentStatus.PAID,
    "failed": PaymentStatus.FAILED,
    "rejected": PaymentStatus.FAILED,
    "rechazado": PaymentStatus.FAILED,
}


def parse_status(value: object) -> Optional[OrderStatus]:
    """Map a stored or requested status word to `OrderStatus` (None if unknown)."""

    if isinstance(value, OrderStatus):
        return value
    if not isinstance(value, str):
        return None
    return _STATUS_ALIASES.get(value.strip().lower())


def parse_payment_status(value: object) -> Optional[PaymentStatus]:
    if isinstance(value, PaymentStatus):
        return value
    if not isinstance(value, str):
        return None
    return _PAYMENT_ALIASES.get(value.strip().lower())


def can_transition(current: OrderStatus, requested: OrderStatus) -> bool:
    if current == requested:
        return True
    return requested in VALID_TRANSITIONS[current]


def can_transition_payment(current: PaymentStatus, requested: PaymentStatus) -> bool:
    if current == requested:
        return True
    return requested in VALID_PAYMENT_TRANSITIONS[current]


__all__ = [
    "OrderStatus",
    "PaymentStatus",
    "TERMINAL_STATUSES",
    "VALID_TRANSITIONS",
    "parse_status",
    "parse_payment_status",
    "can_transition",
    "can_transition_payment",
]
