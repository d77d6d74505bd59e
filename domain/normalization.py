"""
Field normalization for legacy and alternate record shapes.

Upstream data was written by several schema generations and client apps,
so the same attribute shows up under different keys (``nombre`` /
``firstName`` / ``name``) and timestamps arrive as ISO strings, epoch numbers,
provider-native timestamp objects or plain datetimes.

This module is the *only* place that knows about alias keys. Everything else
works on the typed `Client`, `ClientProfile` and `OrderRecord` shapes.

All functions here are total: absent or unparseable input yields an empty
string, zero or None, and a warning is logged for data that was present but
malformed. Nothing propagates an exception to the caller.
"""

from __future__ import annotations

import hashlib
import json
import logging
from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from .client import Client, ClientProfile
from .identifiers import OrderId, normalize_email
from .order import AdminMessage, LineItem, OrderRecord, Tracking
from .status import OrderStatus, PaymentStatus, parse_payment_status, parse_status

logger = logging.getLogger(__name__)


# ============================================================================
# Alias tables (priority order: first non-empty value wins)
# ============================================================================

CLIENT_ALIASES: Mapping[str, Tuple[str, ...]] = {
    "name": ("nombre", "firstName", "name"),
    "surname": ("apellido", "lastName", "surname"),
    "company": ("empresa", "company", "companyName"),
    "email": ("correo", "email", "clientEmail", "userAuth.email"),
    "phone": ("celular", "telefono", "phone"),
    "address": ("direccion", "address", "shippingAddress"),
    "city": ("ciudad", "city"),
    "department": ("departamento", "department"),
    "national_id": ("cedula", "nationalId"),
    "postal_code": ("codigoPostal", "postalCode"),
    "external_id": ("uid", "userId", "externalId"),
}

ORDER_ALIASES: Mapping[str, Tuple[str, ...]] = {
    "order_token": ("orderToken", "orderId", "id"),
    "invoice_number": ("invoiceNumber",),
    "order_number": ("orderNumber",),
    "client_email": ("clientEmail", "client.email", "client.userAuth.email", "userAuthEmail", "email", "correo"),
    "items": ("items", "products"),
    "subtotal": ("subtotal",),
    "shipping_cost": ("shippingCost", "shipping"),
    "total": ("total", "totalAmount"),
    "status": ("status",),
    "payment_status": ("paymentStatus",),
    "payment_method": ("paymentMethod", "metodoPago"),
    "ordered_at": ("orderedAt", "orderDate", "timestamp", "createdAt"),
    "last_updated": ("lastUpdated", "updatedAt"),
    "document_url": ("documentUrl", "fileUrl", "pdfUrl"),
    "tracking_number": ("tracking.number", "trackingNumber"),
    "courier": ("tracking.courier", "courier"),
    "admin_messages": ("adminMessages", "messages"),
    "comment": ("comment", "notes", "comentario"),
}

LINE_ITEM_ALIASES: Mapping[str, Tuple[str, ...]] = {
    "product_id": ("productId", "product_id", "id"),
    "name": ("name", "nombre", "productName"),
    "quantity": ("qty", "quantity", "cantidad"),
    "unit_price": ("unitPrice", "price", "precio"),
    "variant": ("variant", "selectedVariant", "selectedColor"),
    "brand": ("brand", "marca"),
}

# Fields that identify an order inside an embedded list. Used by the matcher
# through `order_alias_values`.
ORDER_IDENTITY_FIELDS: Tuple[str, ...] = ("orderToken", "orderId", "id", "invoiceNumber", "orderNumber")

# Top-level keys of a legacy profile that belong to the profile, not to an
# order written directly onto it.
_PROFILE_ONLY_KEYS = frozenset(
    key for field in ("name", "surname", "company", "phone", "national_id", "postal_code", "external_id")
    for key in CLIENT_ALIASES[field]
) | {"isActive", "lastLogin", "orders", "userAuth"}

# Keys an order document consumes into typed fields; everything else is
# carried in `OrderRecord.extra`.
_ORDER_CONSUMED_KEYS = frozenset(
    key.split(".")[0] for aliases in ORDER_ALIASES.values() for key in aliases
) | {"client"}


# ============================================================================
# Primitive helpers
# ============================================================================

def _lookup(raw: Mapping[str, Any], key: str) -> Any:
    """Read `key` from `raw`, following dotted paths into nested mappings."""

    current: Any = raw
    for part in key.split("."):
        if not isinstance(current, Mapping):
            return None
        current = current.get(part)
    return current


def _is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    if isinstance(value, (list, tuple, dict)):
        return len(value) == 0
    return False


def first_value(raw: Mapping[str, Any], aliases: Sequence[str]) -> Any:
    """Return the first non-empty value among `aliases` (None if all empty)."""

    if not isinstance(raw, Mapping):
        return None
    for key in aliases:
        value = _lookup(raw, key)
        if not _is_empty(value):
            return value
    return None


def first_text(raw: Mapping[str, Any], aliases: Sequence[str]) -> str:
    value = first_value(raw, aliases)
    if value is None:
        return ""
    if isinstance(value, (Mapping, list, tuple)):
        _log_malformed("text", value)
        return ""
    return str(value).strip()


def _log_malformed(field_name: str, value: Any) -> None:
    logger.warning(
        f"Malformed legacy value for '{field_name}' normalized to default",
        extra={
            "field_name": field_name,
            "original_value": repr(value)[:100],
            "modification_type": "malformed_legacy_data",
        },
    )


def normalize_decimal(value: Any, field_name: str = "amount") -> Decimal:
    if value is None or value == "":
        return Decimal("0")
    if isinstance(value, bool):
        _log_malformed(field_name, value)
        return Decimal("0")
    try:
        if isinstance(value, float):
            return Decimal(str(value))
        text = str(value).strip().replace("$", "").replace(",", "")
        result = Decimal(text)
    except (InvalidOperation, ValueError):
        _log_malformed(field_name, value)
        return Decimal("0")
    if not result.is_finite():
        _log_malformed(field_name, value)
        return Decimal("0")
    return result


def _normalize_int(value: Any, field_name: str) -> int:
    if value is None or value == "":
        return 0
    try:
        return int(Decimal(str(value)))
    except (InvalidOperation, ValueError):
        _log_malformed(field_name, value)
        return 0


# ============================================================================
# Instants
# ============================================================================

# Epoch numbers above this are milliseconds (JavaScript Date.now()).
_EPOCH_MILLIS_THRESHOLD = 100_000_000_000

_NATIVE_CONVERTERS = ("to_datetime", "ToDatetime", "toDate", "to_date")


def _as_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None or dt.utcoffset() is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def _from_epoch(value: float) -> Optional[datetime]:
    if value > _EPOCH_MILLIS_THRESHOLD:
        value = value / 1000.0
    try:
        return datetime.fromtimestamp(value, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return None


def normalize_instant(raw: Any) -> Optional[datetime]:
    """
    Normalize a heterogeneous timestamp to a UTC datetime.

    Handles:
    - ISO-8601 strings (with or without trailing 'Z', date-only)
    - provider-native timestamp objects exposing a zero-argument conversion
      (`to_datetime()`, `ToDatetime()`, `toDate()`)
    - `{"seconds": ..., "nanoseconds": ...}` / `{"_seconds": ...}` maps
    - `datetime` and `date` objects
    - epoch seconds (or milliseconds) as numbers or numeric strings

    Unrecognized shapes return None; this function never raises.
    """

    if raw is None or raw == "":
        return None

    try:
        if isinstance(raw, datetime):
            return _as_utc(raw)
        if isinstance(raw, date):
            return datetime(raw.year, raw.month, raw.day, tzinfo=timezone.utc)
        if isinstance(raw, bool):
            return None
        if isinstance(raw, (int, float)):
            return _from_epoch(float(raw))
        if isinstance(raw, str):
            text = raw.strip()
            try:
                return _from_epoch(float(text))
            except ValueError:
                pass
            return _as_utc(datetime.fromisoformat(text.replace("Z", "+00:00")))
        if isinstance(raw, Mapping):
            seconds = raw.get("seconds", raw.get("_seconds"))
            if isinstance(seconds, (int, float)) and not isinstance(seconds, bool):
                nanos = raw.get("nanoseconds", raw.get("_nanoseconds", raw.get("nanos", 0))) or 0
                return _from_epoch(float(seconds) + float(nanos) / 1e9)
            return None
        for name in _NATIVE_CONVERTERS:
            converter = getattr(raw, name, None)
            if callable(converter):
                converted = converter()
                if isinstance(converted, datetime):
                    return _as_utc(converted)
                return None
    except Exception:  # noqa: BLE001
        _log_malformed("instant", raw)
        return None

    return None


def _instant_field(raw: Mapping[str, Any], aliases: Sequence[str], field_name: str) -> Optional[datetime]:
    value = first_value(raw, aliases)
    result = normalize_instant(value)
    if value is not None and result is None:
        _log_malformed(field_name, value)
    return result


# ============================================================================
# Client
# ============================================================================

def normalize_client(raw: Any) -> Client:
    """
    Map an arbitrary bag of client fields onto `Client`.

    Example:
        normalize_client({"nombre": "Ana"}).name == "Ana"
        normalize_client({"firstName": "Ana"}).name == "Ana"
    """

    if not isinstance(raw, Mapping):
        if raw is not None:
            _log_malformed("client", raw)
        return Client()

    values = {field: first_text(raw, aliases) for field, aliases in CLIENT_ALIASES.items()}
    values["email"] = normalize_email(values["email"])
    return Client(**values)


def normalize_profile(raw: Mapping[str, Any], key: str) -> ClientProfile:
    """Build a `ClientProfile` from a stored profile document keyed by `key`."""

    if not isinstance(raw, Mapping):
        _log_malformed("profile", raw)
        raw = {}

    client = normalize_client(raw)
    email = normalize_email(key) or client.email
    if client.email != email:
        client = Client(**{**_client_kwargs(client), "email": email})

    return ClientProfile(
        email=email,
        client=client,
        is_active=raw.get("isActive") is not False,
        created_at=_instant_field(raw, ("createdAt",), "createdAt"),
        last_login_at=_instant_field(raw, ("lastLogin", "lastLoginAt"), "lastLogin"),
        embedded_orders=tuple(embedded_orders(raw)),
    )


def _client_kwargs(client: Client) -> Dict[str, str]:
    return {field: getattr(client, field) for field in CLIENT_ALIASES}


def is_deleted_snapshot(raw: Mapping[str, Any]) -> bool:
    """True for an embedded order that an admin marked ``isDeleted``."""

    return isinstance(raw, Mapping) and raw.get("isDeleted") is True


def embedded_order_slots(
    raw_profile: Any,
    *,
    include_deleted: bool = False,
) -> List[Tuple[Optional[int], Mapping[str, Any]]]:
    """
    Return the legacy order snapshots stored on a profile document, with
    where each one lives.

    Two generations exist:
    - an ``orders`` array of order snapshots (slot = index in that array);
    - the oldest shape, where one order's fields (``items``, ``totalAmount``,
      ``invoiceNumber`` ...) sit directly on the profile document (slot = None).

    Snapshots flagged ``isDeleted`` are left out unless `include_deleted`.
    Slots always index the stored array, so skipping never shifts them.
    """

    if not isinstance(raw_profile, Mapping):
        return []

    found: List[Tuple[Optional[int], Mapping[str, Any]]] = []
    orders = raw_profile.get("orders")
    if isinstance(orders, list):
        for index, entry in enumerate(orders):
            if isinstance(entry, Mapping):
                found.append((index, entry))
            else:
                _log_malformed("orders[]", entry)

    items = raw_profile.get("items")
    if isinstance(items, list) and items:
        found.append((None, {k: v for k, v in raw_profile.items() if k not in _PROFILE_ONLY_KEYS}))

    if include_deleted:
        return found
    return [(slot, snapshot) for slot, snapshot in found if not is_deleted_snapshot(snapshot)]


def embedded_orders(raw_profile: Any) -> List[Mapping[str, Any]]:
    """Legacy order snapshots stored on a profile document (both shapes)."""

    return [snapshot for _, snapshot in embedded_order_slots(raw_profile)]


def profile_attributes(raw_profile: Any, key: str) -> Dict[str, Any]:
    """Profile-only attributes of a stored profile document, without order data."""

    return normalize_profile(raw_profile, key).to_profile_document()


# ============================================================================
# Orders
# ============================================================================

def legacy_token(raw: Mapping[str, Any]) -> str:
    """
    Deterministic token for an embedded order that never had one.

    Derived from the order content so repeated migrations converge on the
    same canonical key.
    """

    try:
        payload = json.dumps(raw, sort_keys=True, default=str)
    except (TypeError, ValueError):
        payload = repr(sorted(raw.items(), key=lambda kv: str(kv[0])))
    return "legacy-" + hashlib.sha1(payload.encode("utf-8")).hexdigest()[:12]


def order_alias_values(raw: Mapping[str, Any]) -> Dict[str, str]:
    """Identity fields of a stored order, keyed by their stored field name."""

    values: Dict[str, str] = {}
    if not isinstance(raw, Mapping):
        return values
    for key in ORDER_IDENTITY_FIELDS:
        value = raw.get(key)
        if not _is_empty(value) and not isinstance(value, (Mapping, list)):
            values[key] = str(value).strip()
    return values


def _normalize_line_item(raw: Any) -> Optional[LineItem]:
    if not isinstance(raw, Mapping):
        _log_malformed("items[]", raw)
        return None
    return LineItem(
        product_id=first_text(raw, LINE_ITEM_ALIASES["product_id"]),
        name=first_text(raw, LINE_ITEM_ALIASES["name"]),
        quantity=_normalize_int(first_value(raw, LINE_ITEM_ALIASES["quantity"]), "quantity"),
        unit_price=normalize_decimal(first_value(raw, LINE_ITEM_ALIASES["unit_price"]), "unitPrice"),
        variant=first_text(raw, LINE_ITEM_ALIASES["variant"]),
        brand=first_text(raw, LINE_ITEM_ALIASES["brand"]),
    )


def _normalize_messages(raw: Any) -> Tuple[AdminMessage, ...]:
    if not isinstance(raw, list):
        return ()
    messages: List[AdminMessage] = []
    for entry in raw:
        if isinstance(entry, str):
            entry = {"message": entry}
        if not isinstance(entry, Mapping):
            _log_malformed("adminMessages[]", entry)
            continue
        at = normalize_instant(first_value(entry, ("at", "timestamp", "createdAt")))
        if at is None:
            at = datetime.fromtimestamp(0, tz=timezone.utc)
        attachments = entry.get("attachments") or ()
        messages.append(
            AdminMessage(
                message=first_text(entry, ("message", "text", "mensaje")),
                at=at,
                is_read=bool(entry.get("isRead", entry.get("read", False))),
                attachments=tuple(str(a) for a in attachments if not isinstance(a, Mapping))
                if isinstance(attachments, (list, tuple))
                else (),
            )
        )
    return tuple(messages)


def normalize_order(raw: Mapping[str, Any], client_email: str = "", client: Optional[Client] = None) -> OrderRecord:
    """
    Map a stored order (canonical document or legacy snapshot) onto `OrderRecord`.

    `client_email` / `client` supply the owner when the snapshot itself does
    not carry one (embedded copies inside a profile).
    """

    if not isinstance(raw, Mapping):
        _log_malformed("order", raw)
        raw = {}

    email = normalize_email(first_text(raw, ORDER_ALIASES["client_email"]) or client_email)
    invoice_number = first_text(raw, ORDER_ALIASES["invoice_number"])
    order_number = first_text(raw, ORDER_ALIASES["order_number"])
    token = first_text(raw, ORDER_ALIASES["order_token"]) or invoice_number or order_number or legacy_token(raw)

    # Some generations stored the external "email_token" form as the order id.
    if "@" in token:
        parsed = OrderId.parse(token)
        if parsed.client_email is not None and parsed.order_token != parsed.client_email:
            email = email or parsed.client_email
            if parsed.client_email == email:
                token = parsed.order_token

    raw_status = first_value(raw, ORDER_ALIASES["status"])
    status = parse_status(raw_status)
    if status is None:
        if raw_status is not None:
            _log_malformed("status", raw_status)
        status = OrderStatus.NEW

    raw_payment = first_value(raw, ORDER_ALIASES["payment_status"])
    payment_status = parse_payment_status(raw_payment)
    if payment_status is None:
        if raw_payment is not None:
            _log_malformed("paymentStatus", raw_payment)
        payment_status = PaymentStatus.PENDING

    raw_items = first_value(raw, ORDER_ALIASES["items"])
    items: Tuple[LineItem, ...] = ()
    if isinstance(raw_items, list):
        items = tuple(item for item in (_normalize_line_item(i) for i in raw_items) if item is not None)
    elif raw_items is not None:
        _log_malformed("items", raw_items)

    embedded_client = raw.get("client")
    if isinstance(embedded_client, Mapping):
        order_client: Optional[Client] = normalize_client(embedded_client)
    else:
        order_client = client

    total = normalize_decimal(first_value(raw, ORDER_ALIASES["total"]), "total")
    subtotal = normalize_decimal(first_value(raw, ORDER_ALIASES["subtotal"]), "subtotal")
    if subtotal == 0 and total != 0:
        subtotal = total

    extra = {k: v for k, v in raw.items() if k not in _ORDER_CONSUMED_KEYS}

    return OrderRecord(
        client_email=email,
        order_token=token,
        invoice_number=invoice_number,
        order_number=order_number,
        items=items,
        subtotal=subtotal,
        shipping_cost=normalize_decimal(first_value(raw, ORDER_ALIASES["shipping_cost"]), "shippingCost"),
        total=total,
        status=status,
        payment_status=payment_status,
        payment_method=first_text(raw, ORDER_ALIASES["payment_method"]),
        ordered_at=_instant_field(raw, ORDER_ALIASES["ordered_at"], "orderedAt"),
        last_updated=_instant_field(raw, ORDER_ALIASES["last_updated"], "lastUpdated"),
        document_url=first_text(raw, ORDER_ALIASES["document_url"]),
        tracking=Tracking(
            number=first_text(raw, ORDER_ALIASES["tracking_number"]),
            courier=first_text(raw, ORDER_ALIASES["courier"]),
        ),
        admin_messages=_normalize_messages(first_value(raw, ORDER_ALIASES["admin_messages"])),
        comment=first_text(raw, ORDER_ALIASES["comment"]),
        client=order_client,
        extra=extra,
    )


def merge_into_snapshot(raw: Mapping[str, Any], order: OrderRecord) -> Dict[str, Any]:
    """
    Write `order` back over a legacy snapshot.

    Keys the snapshot already had under a legacy alias keep that alias so
    older clients reading the embedded copy still find them.
    """

    updated: Dict[str, Any] = dict(raw)
    updated.update(order.to_document())
    for legacy_key, value in (
        ("orderId", order.order_token),
        ("totalAmount", str(order.total)),
        ("trackingNumber", order.tracking.number),
        ("notes", order.comment),
    ):
        if legacy_key in raw:
            updated[legacy_key] = value
    return updated


__all__ = [
    "CLIENT_ALIASES",
    "ORDER_ALIASES",
    "ORDER_IDENTITY_FIELDS",
    "normalize_client",
    "normalize_instant",
    "normalize_profile",
    "normalize_order",
    "normalize_decimal",
    "embedded_orders",
    "order_alias_values",
    "legacy_token",
    "merge_into_snapshot",
    "first_value",
    "first_text",
    "embedded_order_slots",
    "is_deleted_snapshot",
    "profile_attributes",
]
