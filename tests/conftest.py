"""
Pytest configuration and shared fixtures.

This file adds the parent directory to the Python path so that tests
can import from the domain, repositories, services and api modules.
"""

import sys
from datetime import datetime, timezone
from decimal import Decimal
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional

import pytest

# Add the project root to the Python path
# so tests can import domain, repositories, etc.
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from domain.errors import RecordStoreError  # noqa: E402
from domain.order import LineItem, OrderRecord  # noqa: E402
from domain.status import OrderStatus  # noqa: E402
from repositories.memory_store import InMemoryRecordStore  # noqa: E402
from repositories.record_store import PROFILES_TABLE, StoredDocument  # noqa: E402

T0 = datetime(2025, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


class FlakyStore:
    """
    RecordStore wrapper that raises RecordStoreError for selected calls.

    `fail_when(method, predicate)` registers a rule; the predicate receives
    the call's positional arguments (table, key or filters, ...).
    """

    def __init__(self, inner: InMemoryRecordStore) -> None:
        self.inner = inner
        self.environment = inner.environment
        self._rules: List[tuple] = []
        self.calls: List[tuple] = []

    def fail_when(self, method: str, predicate: Callable[..., bool] = lambda *args: True) -> None:
        self._rules.append((method, predicate))

    def reset(self) -> None:
        self._rules.clear()

    def _check(self, method: str, *args: Any) -> None:
        self.calls.append((method,) + args)
        for name, predicate in self._rules:
            if name == method and predicate(*args):
                raise RecordStoreError(f"injected failure: {method}{args!r}")

    def get(self, table: str, key: str) -> Optional[Dict[str, Any]]:
        self._check("get", table, key)
        return self.inner.get(table, key)

    def put(self, table: str, key: str, doc: Mapping[str, Any]) -> None:
        self._check("put", table, key)
        self.inner.put(table, key, doc)

    def patch(self, table: str, key: str, fields: Mapping[str, Any]) -> None:
        self._check("patch", table, key)
        self.inner.patch(table, key, fields)

    def delete(self, table: str, key: str) -> bool:
        self._check("delete", table, key)
        return self.inner.delete(table, key)

    def query(self, table: str, field_equals: Mapping[str, Any]) -> List[StoredDocument]:
        self._check("query", table, dict(field_equals))
        return self.inner.query(table, field_equals)

    def scan(self, table: str) -> List[StoredDocument]:
        self._check("scan", table)
        return self.inner.scan(table)


@pytest.fixture
def store() -> InMemoryRecordStore:
    return InMemoryRecordStore()


@pytest.fixture
def flaky(store: InMemoryRecordStore) -> FlakyStore:
    return FlakyStore(store)


def make_order(
    email: str = "a@x.com",
    token: str = "INV-1",
    status: OrderStatus = OrderStatus.NEW,
    **kwargs: Any,
) -> OrderRecord:
    kwargs.setdefault("invoice_number", token)
    kwargs.setdefault(
        "items",
        (LineItem(product_id="P1", name="Lamp", quantity=2, unit_price=Decimal("10.00")),),
    )
    kwargs.setdefault("total", Decimal("20.00"))
    kwargs.setdefault("ordered_at", T0)
    kwargs.setdefault("last_updated", T0)
    return OrderRecord(client_email=email, order_token=token, status=status, **kwargs)


def put_profile(store: Any, email: str, doc: Mapping[str, Any]) -> None:
    store.put(PROFILES_TABLE, email.lower(), dict(doc))
