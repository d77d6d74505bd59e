"""
Tests for `domain/matching.py`.

Covers contract rules:
- The first strategy that yields any candidate decides the outcome.
- More than one candidate is ambiguous and never resolved to the first one.
- A client-scoped identifier only matches orders owned by that client.
"""

from __future__ import annotations

import pytest

from conftest import make_order
from domain.errors import AmbiguousOrderError, OrderNotFoundError
from domain.identifiers import OrderId
from domain.matching import MatchStatus, match, resolve
from domain.normalization import order_alias_values


def test_canonical_token_match() -> None:
    orders = [make_order(token="INV-1"), make_order(token="INV-2")]
    result = match(OrderId.parse("a@x.com_INV-2"), orders)

    assert result.found
    assert result.item is orders[1]
    assert result.index == 1
    assert result.strategy == "canonical"


def test_invoice_number_matches_canonically() -> None:
    orders = [make_order(token="T1", invoice_number="F-100")]
    result = match(OrderId.parse("F-100"), orders)
    assert result.found
    assert result.strategy == "canonical"


def test_other_clients_orders_are_out_of_scope() -> None:
    orders = [make_order(email="b@x.com", token="INV-1")]
    result = match(OrderId.parse("a@x.com_INV-1"), orders)
    assert result.status is MatchStatus.NOT_FOUND


def test_legacy_order_number_alias() -> None:
    orders = [make_order(token="T1", order_number="N-5")]
    result = match(OrderId.parse("N-5"), orders)
    assert result.found
    assert result.strategy == "legacy_alias"


def test_suffix_match_on_raw_snapshots() -> None:
    snapshots = [{"orderId": "a@x.com_T9"}, {"orderId": "T8"}]
    result = match(OrderId.parse("T9"), snapshots, order_alias_values)
    assert result.found
    assert result.index == 0
    assert result.strategy == "suffix"


def test_ambiguous_is_never_resolved_to_first() -> None:
    orders = [make_order(email="a@x.com", token="INV-1"), make_order(email="b@x.com", token="INV-1")]
    result = match(OrderId.parse("INV-1"), orders)

    assert result.status is MatchStatus.AMBIGUOUS
    assert result.item is None
    assert result.candidate_count == 2
    assert result.candidate_indexes == (0, 1)


def test_first_strategy_with_hits_decides() -> None:
    # One canonical hit beats a second candidate only reachable by suffix.
    snapshots = [{"orderToken": "T1"}, {"orderId": "z@x.com_T1"}]
    result = match(OrderId.parse("T1"), snapshots, order_alias_values)
    assert result.found
    assert result.index == 0
    assert result.strategy == "canonical"


def test_resolve_raises_not_found() -> None:
    with pytest.raises(OrderNotFoundError) as excinfo:
        resolve(OrderId.parse("a@x.com_NOPE"), [make_order()])
    assert excinfo.value.identifier == "a@x.com_NOPE"
    assert excinfo.value.scope == "canonical"


def test_resolve_raises_ambiguous_with_candidates() -> None:
    snapshots = [{"orderToken": "T1", "invoiceNumber": "F-1"}, {"orderToken": "T2", "invoiceNumber": "F-1"}]
    with pytest.raises(AmbiguousOrderError) as excinfo:
        resolve(OrderId.parse("F-1"), snapshots, order_alias_values, scope_name="legacy")
    assert excinfo.value.candidates == ["T1", "T2"]


def test_match_does_not_mutate_scope() -> None:
    snapshots = [{"orderToken": "T1"}]
    before = [dict(s) for s in snapshots]
    match(OrderId.parse("T1"), snapshots, order_alias_values)
    assert snapshots == before
