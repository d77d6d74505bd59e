"""
Tests for `domain/identifiers.py`.

Covers contract rules:
- The email part ends at the first "_" after the "@".
- A string without "@" is a bare token; an email alone is the degraded form.
- serialize() is the inverse of parse() for canonical ids.
"""

from __future__ import annotations

from dataclasses import FrozenInstanceError

import pytest

from domain.identifiers import OrderId, strip_email_prefix


def test_parse_email_and_token() -> None:
    oid = OrderId.parse("a@x.com_INV-1")
    assert oid.client_email == "a@x.com"
    assert oid.order_token == "INV-1"
    assert not oid.is_bare


def test_parse_allows_underscores_in_local_part_and_token() -> None:
    oid = OrderId.parse("ana_b@x.com_INV_1")
    assert oid.client_email == "ana_b@x.com"
    assert oid.order_token == "INV_1"


def test_parse_bare_token() -> None:
    oid = OrderId.parse("  INV-7 ")
    assert oid.is_bare
    assert oid.client_email is None
    assert oid.order_token == "INV-7"


def test_parse_email_only_is_degraded_form() -> None:
    oid = OrderId.parse("Ana@X.com")
    assert oid.client_email == "ana@x.com"
    assert oid.order_token == "ana@x.com"
    assert oid.serialize() == "ana@x.com"


def test_parse_rejects_empty() -> None:
    with pytest.raises(ValueError):
        OrderId.parse("   ")


def test_serialize_lowercases_email_only() -> None:
    assert OrderId.parse("Ana@X.com_T-Mixed").serialize() == "ana@x.com_T-Mixed"


@pytest.mark.parametrize("raw", ["a@x.com_INV-1", "ana_b@x.com_INV_1", "INV-9", "legacy-0a1b2c3d4e5f"])
def test_parse_serialize_round_trip(raw: str) -> None:
    assert OrderId.parse(OrderId.parse(raw).serialize()) == OrderId.parse(raw)


def test_order_id_is_immutable() -> None:
    oid = OrderId.parse("a@x.com_INV-1")
    with pytest.raises(FrozenInstanceError):
        oid.order_token = "other"  # type: ignore[misc]


def test_strip_email_prefix() -> None:
    assert strip_email_prefix("a@x.com_T5") == "T5"
    assert strip_email_prefix("T5") is None
    assert strip_email_prefix("a@x.com") is None
