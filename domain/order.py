"""
Domain: canonical order records and partial updates.

Contract excerpts implemented here:
- OrderRecord is keyed by (client_email, order_token).
- `status` transitions follow the state machine in `domain.status`.
- `last_updated` is monotonically non-decreasing.
- Admin messages are append-only and individually markable as read.

This module contains only pure domain entities: no I/O, no database.
Alias handling for legacy field names lives in `domain.normalization`.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional, Tuple

from .client import Client
from .errors import StatusConflictError
from .identifiers import OrderId, normalize_email
from .status import (
    OrderStatus,
    PaymentStatus,
    can_transition,
    can_transition_payment,
    parse_payment_status,
    parse_status,
)
from .time import require_utc_timestamp, to_iso_utc


@dataclass(frozen=True, slots=True)
class LineItem:
    product_id: str
    name: str
    quantity: int
    unit_price: Decimal
    variant: str = ""
    brand: str = ""

    def to_document(self) -> Dict[str, Any]:
        return {
            "productId": self.product_id,
            "name": self.name,
            "qty": self.quantity,
            "unitPrice": str(self.unit_price),
            "variant": self.variant,
            "brand": self.brand,
        }


@dataclass(frozen=True, slots=True)
class Tracking:
    number: str = ""
    courier: str = ""


@dataclass(frozen=True, slots=True)
class AdminMessage:
    message: str
    at: datetime
    is_read: bool = False
    attachments: Tuple[str, ...] = ()

    def __post_init__(self) -> None:
        require_utc_timestamp("at", self.at)

    def to_document(self) -> Dict[str, Any]:
        return {
            "message": self.message,
            "at": to_iso_utc(self.at),
            "isRead": self.is_read,
            "attachments": list(self.attachments),
        }


@dataclass(frozen=True, slots=True)
class OrderRecord:
    """
    Canonical per-order document.

    `extra` preserves fields written by other schema generations that this
    model does not know about, so a read-modify-write never drops them.
    """

    client_email: str
    order_token: str
    invoice_number: str = ""
    order_number: str = ""  # legacy alias still used by older clients
    items: Tuple[LineItem, ...] = ()
    subtotal: Decimal = Decimal("0")
    shipping_cost: Decimal = Decimal("0")
    total: Decimal = Decimal("0")
    status: OrderStatus = OrderStatus.NEW
    payment_status: PaymentStatus = PaymentStatus.PENDING
    payment_method: str = ""
    ordered_at: Optional[datetime] = None
    last_updated: Optional[datetime] = None
    document_url: str = ""
    tracking: Tracking = field(default_factory=Tracking)
    admin_messages: Tuple[AdminMessage, ...] = ()
    comment: str = ""
    client: Optional[Client] = None
    extra: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.order_token:
            raise ValueError("order_token must be non-empty")
        object.__setattr__(self, "client_email", normalize_email(self.client_email))
        if self.ordered_at is not None:
            require_utc_timestamp("ordered_at", self.ordered_at)
        if self.last_updated is not None:
            require_utc_timestamp("last_updated", self.last_updated)

    @property
    def order_id(self) -> OrderId:
        return OrderId.for_record(self.client_email, self.order_token)

    @property
    def has_unread_messages(self) -> bool:
        return any(not m.is_read for m in self.admin_messages)

    def with_status(self, requested: OrderStatus) -> "OrderRecord":
        """Return a copy in `requested` status; raises StatusConflictError if unreachable."""

        if not can_transition(self.status, requested):
            raise StatusConflictError(self.status.value, requested.value)
        return replace(self, status=requested)

    def with_payment_status(self, requested: PaymentStatus) -> "OrderRecord":
        if not can_transition_payment(self.payment_status, requested):
            raise StatusConflictError(self.payment_status.value, requested.value)
        return replace(self, payment_status=requested)

    def append_message(self, message: str, at: datetime, attachments: Tuple[str, ...] = ()) -> "OrderRecord":
        entry = AdminMessage(message=message, at=at, is_read=False, attachments=attachments)
        return replace(self, admin_messages=self.admin_messages + (entry,))

    def mark_messages_read(self) -> "OrderRecord":
        return replace(
            self,
            admin_messages=tuple(replace(m, is_read=True) for m in self.admin_messages),
        )

    def touched(self, at: datetime) -> "OrderRecord":
        """Set last_updated to `at`, never moving it backwards."""

        require_utc_timestamp("at", at)
        if self.last_updated is not None and self.last_updated > at:
            return self
        return replace(self, last_updated=at)

    def to_document(self) -> Dict[str, Any]:
        doc: Dict[str, Any] = dict(self.extra)
        doc.update(
            {
                "clientEmail": self.client_email,
                "orderToken": self.order_token,
                "invoiceNumber": self.invoice_number,
                "items": [item.to_document() for item in self.items],
                "subtotal": str(self.subtotal),
                "shippingCost": str(self.shipping_cost),
                "total": str(self.total),
                "status": self.status.value,
                "paymentStatus": self.payment_status.value,
                "paymentMethod": self.payment_method,
                "orderedAt": to_iso_utc(self.ordered_at),
                "lastUpdated": to_iso_utc(self.last_updated),
                "documentUrl": self.document_url,
                "tracking": {"number": self.tracking.number, "courier": self.tracking.courier},
                "adminMessages": [m.to_document() for m in self.admin_messages],
                "comment": self.comment,
            }
        )
        if self.order_number:
            doc["orderNumber"] = self.order_number
        if self.client is not None:
            doc["client"] = self.client.to_document()
        return doc


# Wire names accepted in an update patch.
_PATCH_KEYS = {
    "status",
    "paymentStatus",
    "paymentMethod",
    "trackingNumber",
    "courier",
    "comment",
    "documentUrl",
    "adminMessage",
}

# Keys `to_document` owns; a patch may never set them through `extra`.
_PROTECTED_KEYS = {
    "clientEmail",
    "orderToken",
    "orderNumber",
    "invoiceNumber",
    "items",
    "subtotal",
    "shippingCost",
    "total",
    "orderedAt",
    "lastUpdated",
    "tracking",
    "adminMessages",
    "client",
}


@dataclass(frozen=True, slots=True)
class OrderPatch:
    """
    Partial update for an order.

    Only `status` (and `payment_status`) are constrained; everything else is
    an unconstrained partial merge. Unknown keys are merged into `extra`.
    """

    status: Optional[OrderStatus] = None
    payment_status: Optional[PaymentStatus] = None
    payment_method: Optional[str] = None
    tracking_number: Optional[str] = None
    courier: Optional[str] = None
    comment: Optional[str] = None
    document_url: Optional[str] = None
    admin_message: Optional[str] = None
    attachments: Tuple[str, ...] = ()
    extra: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> "OrderPatch":
        """
        Build a patch from wire field names.

        Raises:
            ValueError: unknown status word, or an attempt to overwrite a
                protected key.
        """

        status = None
        if raw.get("status") is not None:
            status = parse_status(raw["status"])
            if status is None:
                raise ValueError(f"Unknown order status: {raw['status']!r}")

        payment_status = None
        if raw.get("paymentStatus") is not None:
            payment_status = parse_payment_status(raw["paymentStatus"])
            if payment_status is None:
                raise ValueError(f"Unknown payment status: {raw['paymentStatus']!r}")

        admin_message = None
        attachments: Tuple[str, ...] = ()
        message = raw.get("adminMessage")
        if isinstance(message, Mapping):
            admin_message = str(message.get("message") or "") or None
            attachments = tuple(str(a) for a in message.get("attachments") or ())
        elif message:
            admin_message = str(message)

        extra: Dict[str, Any] = {}
        for key, value in raw.items():
            if key in _PATCH_KEYS:
                continue
            if key in _PROTECTED_KEYS:
                raise ValueError(f"Field {key!r} cannot be patched")
            extra[key] = value

        def _text(key: str) -> Optional[str]:
            value = raw.get(key)
            return None if value is None else str(value)

        return cls(
            status=status,
            payment_status=payment_status,
            payment_method=_text("paymentMethod"),
            tracking_number=_text("trackingNumber"),
            courier=_text("courier"),
            comment=_text("comment"),
            document_url=_text("documentUrl"),
            admin_message=admin_message,
            attachments=attachments,
            extra=extra,
        )

    def is_empty(self) -> bool:
        return self == OrderPatch()

    def changed_fields(self) -> List[str]:
        names = [
            name
            for name in (
                "status",
                "payment_status",
                "payment_method",
                "tracking_number",
                "courier",
                "comment",
                "document_url",
                "admin_message",
            )
            if getattr(self, name) is not None
        ]
        return names + sorted(self.extra)


def apply_patch(order: OrderRecord, patch: OrderPatch, at: datetime) -> OrderRecord:
    """
    Merge `patch` into `order` and stamp `last_updated`.

    Raises:
        StatusConflictError: the requested status is unreachable.
    """

    updated = order
    if patch.status is not None:
        updated = updated.with_status(patch.status)
    if patch.payment_status is not None:
        updated = updated.with_payment_status(patch.payment_status)

    tracking = updated.tracking
    if patch.tracking_number is not None:
        tracking = replace(tracking, number=patch.tracking_number)
    if patch.courier is not None:
        tracking = replace(tracking, courier=patch.courier)

    changes: Dict[str, Any] = {"tracking": tracking}
    if patch.payment_method is not None:
        changes["payment_method"] = patch.payment_method
    if patch.comment is not None:
        changes["comment"] = patch.comment
    if patch.document_url is not None:
        changes["document_url"] = patch.document_url
    if patch.extra:
        merged = dict(updated.extra)
        merged.update(patch.extra)
        changes["extra"] = merged
    updated = replace(updated, **changes)

    if patch.admin_message is not None:
        updated = updated.append_message(patch.admin_message, at, patch.attachments)

    return updated.touched(at)


__all__ = [
    "LineItem",
    "Tracking",
    "AdminMessage",
    "OrderRecord",
    "OrderPatch",
    "apply_patch",
]
