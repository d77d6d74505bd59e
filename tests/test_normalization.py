"""
Tests for `domain/normalization.py`.

Covers contract rules:
- Each canonical field has a fixed alias priority; first non-empty wins.
- Instants from every historical shape normalize to UTC; unknown shapes are None.
- Normalization never raises; malformed input is logged and defaulted.
- Both legacy profile shapes yield embedded orders; isDeleted snapshots are
  hidden unless asked for.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

import pytest

from conftest import T0, make_order
from domain.normalization import (
    embedded_order_slots,
    embedded_orders,
    is_deleted_snapshot,
    legacy_token,
    merge_into_snapshot,
    normalize_client,
    normalize_instant,
    normalize_order,
    normalize_profile,
    profile_attributes,
)
from domain.status import OrderStatus

T0_EPOCH = 1735732800  # 2025-01-01T12:00:00Z


def _malformed_logged(caplog: pytest.LogCaptureFixture) -> bool:
    return any(getattr(r, "modification_type", None) == "malformed_legacy_data" for r in caplog.records)


class TestNormalizeClient:
    def test_spanish_and_english_names(self) -> None:
        assert normalize_client({"nombre": "Ana"}).name == "Ana"
        assert normalize_client({"firstName": "Ana"}).name == "Ana"
        assert normalize_client({"name": "Ana"}).name == "Ana"

    def test_priority_first_non_empty_wins(self) -> None:
        assert normalize_client({"nombre": "Ana", "firstName": "Bob"}).name == "Ana"
        assert normalize_client({"nombre": "  ", "firstName": "Bob"}).name == "Bob"

    def test_nested_email_is_lowercased(self) -> None:
        client = normalize_client({"userAuth": {"email": "Ana@Example.COM"}})
        assert client.email == "ana@example.com"

    def test_address_fields(self) -> None:
        client = normalize_client(
            {"direccion": "Calle 1", "ciudad": "Lima", "departamento": "LIM", "codigoPostal": 15001, "cedula": "X9"}
        )
        assert client.address == "Calle 1"
        assert client.city == "Lima"
        assert client.department == "LIM"
        assert client.postal_code == "15001"
        assert client.national_id == "X9"

    def test_non_mapping_is_defaulted_and_logged(self, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.WARNING):
            client = normalize_client("not a client")
        assert client.name == ""
        assert client.email == ""
        assert _malformed_logged(caplog)


class TestNormalizeInstant:
    @pytest.mark.parametrize(
        "raw",
        [
            "2025-01-01T12:00:00Z",
            "2025-01-01T12:00:00+00:00",
            "2025-01-01T12:00:00",
            "2025-01-01T09:00:00-03:00",
            T0_EPOCH,
            float(T0_EPOCH),
            T0_EPOCH * 1000,
            str(T0_EPOCH),
            {"seconds": T0_EPOCH, "nanoseconds": 0},
            {"_seconds": T0_EPOCH, "_nanoseconds": 0},
            datetime(2025, 1, 1, 12, 0, 0),
            datetime(2025, 1, 1, 7, 0, 0, tzinfo=timezone(timedelta(hours=-5))),
        ],
    )
    def test_known_shapes(self, raw: object) -> None:
        assert normalize_instant(raw) == T0

    @pytest.mark.parametrize("method", ["to_datetime", "ToDatetime", "toDate"])
    def test_provider_native_timestamps(self, method: str) -> None:
        native = type("NativeTimestamp", (), {method: lambda self: datetime(2025, 1, 1, 12, 0, 0)})()
        assert normalize_instant(native) == T0

    def test_date_is_midnight_utc(self) -> None:
        assert normalize_instant(date(2025, 1, 1)) == datetime(2025, 1, 1, tzinfo=timezone.utc)

    @pytest.mark.parametrize("raw", [None, "", "yesterday-ish", {"foo": 1}, True, [1, 2], object()])
    def test_unknown_shapes_are_none(self, raw: object) -> None:
        assert normalize_instant(raw) is None

    def test_failing_native_converter_never_raises(self) -> None:
        def boom(self: object) -> datetime:
            raise RuntimeError("broken")

        native = type("Broken", (), {"to_datetime": boom})()
        assert normalize_instant(native) is None


class TestNormalizeOrder:
    def test_legacy_snapshot(self) -> None:
        raw = {
            "orderId": "INV-9",
            "totalAmount": "1,250.50",
            "status": "pendiente",
            "notes": "leave at door",
            "orderDate": {"seconds": T0_EPOCH},
            "products": [{"nombre": "Lamp", "cantidad": "2", "precio": "10"}],
            "giftWrap": True,
        }
        order = normalize_order(raw, client_email="A@X.com")

        assert order.client_email == "a@x.com"
        assert order.order_token == "INV-9"
        assert order.total == Decimal("1250.50")
        assert order.subtotal == Decimal("1250.50")
        assert order.status is OrderStatus.NEW
        assert order.comment == "leave at door"
        assert order.ordered_at == T0
        assert order.items[0].name == "Lamp"
        assert order.items[0].quantity == 2
        assert order.items[0].unit_price == Decimal("10")
        assert order.extra == {"giftWrap": True}

    def test_composite_order_id_is_stripped(self) -> None:
        order = normalize_order({"orderId": "a@x.com_T7"}, client_email="a@x.com")
        assert order.order_token == "T7"

    def test_tokenless_order_gets_deterministic_token(self) -> None:
        raw = {"items": [{"name": "Lamp", "qty": 1, "price": 5}], "total": 5}
        first = normalize_order(raw, client_email="a@x.com")
        second = normalize_order(dict(raw), client_email="a@x.com")
        assert first.order_token.startswith("legacy-")
        assert first.order_token == second.order_token == legacy_token(raw)

    def test_malformed_values_default(self, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.WARNING):
            order = normalize_order({"orderToken": "T1", "total": "abc", "status": "teleported", "items": "none"})
        assert order.total == Decimal("0")
        assert order.status is OrderStatus.NEW
        assert order.items == ()
        assert _malformed_logged(caplog)

    def test_canonical_document_round_trip(self) -> None:
        order = make_order(comment="fragile", subtotal=Decimal("20.00"))
        assert normalize_order(order.to_document()) == order


class TestProfiles:
    def test_orders_array_shape(self) -> None:
        raw = {"email": "a@x.com", "orders": [{"orderToken": "INV-1"}, "garbage", {"orderToken": "INV-2"}]}
        slots = embedded_order_slots(raw)
        assert [slot for slot, _ in slots] == [0, 2]
        assert [o["orderToken"] for o in embedded_orders(raw)] == ["INV-1", "INV-2"]

    def test_top_level_order_shape(self) -> None:
        raw = {
            "email": "c@x.com",
            "nombre": "Cy",
            "isActive": True,
            "items": [{"nombre": "Lamp", "cantidad": 1, "precio": 5}],
            "totalAmount": 50,
            "invoiceNumber": "F-1",
        }
        snapshots = embedded_order_slots(raw)
        assert len(snapshots) == 1
        slot, snapshot = snapshots[0]
        assert slot is None
        assert snapshot["invoiceNumber"] == "F-1"
        assert "nombre" not in snapshot
        assert "isActive" not in snapshot

    def test_profile_key_wins_over_document_email(self) -> None:
        profile = normalize_profile({"correo": "other@x.com", "nombre": "Ana"}, "A@x.com")
        assert profile.email == "a@x.com"
        assert profile.client.email == "a@x.com"
        assert profile.client.name == "Ana"
        assert not profile.is_legacy

    def test_profile_attributes_drop_order_data(self) -> None:
        raw = {"email": "a@x.com", "nombre": "Ana", "orders": [{"orderToken": "INV-1"}], "items": [{"name": "x"}]}
        doc = profile_attributes(raw, "a@x.com")
        assert "orders" not in doc
        assert "items" not in doc
        assert doc["name"] == "Ana"
        assert doc["email"] == "a@x.com"

    def test_deleted_snapshots_are_hidden_by_default(self) -> None:
        raw = {"email": "a@x.com", "orders": [{"orderToken": "INV-1", "isDeleted": True}, {"orderToken": "INV-2"}]}

        assert embedded_order_slots(raw) == [(1, {"orderToken": "INV-2"})]
        assert [slot for slot, _ in embedded_order_slots(raw, include_deleted=True)] == [0, 1]
        assert is_deleted_snapshot(raw["orders"][0])
        assert not is_deleted_snapshot({"isDeleted": "yes"})

    def test_profile_with_only_deleted_orders_is_not_legacy(self) -> None:
        raw = {"email": "a@x.com", "orders": [{"orderToken": "INV-1", "isDeleted": True}]}
        assert not normalize_profile(raw, "a@x.com").is_legacy


def test_merge_into_snapshot_keeps_legacy_aliases() -> None:
    snapshot = {"orderId": "T1", "totalAmount": "10", "notes": "old", "custom": 1}
    order = normalize_order(snapshot, client_email="a@x.com")
    updated = merge_into_snapshot(snapshot, make_order(token="T1", comment="new", total=Decimal("12")))

    assert order.order_token == "T1"
    assert updated["notes"] == "new"
    assert updated["comment"] == "new"
    assert updated["orderId"] == "T1"
    assert updated["totalAmount"] == "12"
    assert updated["custom"] == 1
