"""
Tests for `services/batch_delete_service.py`.

Covers contract rules:
- Every alias field of every table is probed; hits are unioned and deleted once.
- A failed probe or delete is reported and never aborts the rest.
- The primary profile is read back and its delete retried once.
- An empty identity is refused instead of becoming an unfiltered delete.
"""

from __future__ import annotations

import pytest

from conftest import FlakyStore, make_order, put_profile
from domain.client import Client
from repositories.memory_store import InMemoryRecordStore
from repositories.order_repository import OrderRepository
from repositories.record_store import ARCHIVE_TABLE, ORDERS_TABLE, PROFILES_TABLE, RECIPIENTS_TABLE
from services.batch_delete_service import BatchDeleter


def _seed_identity(store: InMemoryRecordStore) -> None:
    put_profile(store, "a@x.com", {"email": "a@x.com", "uid": "U1", "nombre": "Ana"})
    store.put(PROFILES_TABLE, "old-profile", {"correo": "A@X.com"})
    OrderRepository(store).save(make_order(client=Client(email="a@x.com", name="Ana")))
    store.put(ORDERS_TABLE, "legacy-order", {"client": {"email": "a@x.com"}, "orderToken": "L1"})
    store.put(ORDERS_TABLE, "app-order", {"userId": "U1", "orderToken": "L2"})
    store.put(ARCHIVE_TABLE, "a@x.com_OLD", {"clientEmail": "a@x.com", "order": {"clientEmail": "a@x.com"}})
    store.put(RECIPIENTS_TABLE, "token-1", {"email": "a@x.com", "token": "token-1"})
    OrderRepository(store).save(make_order(email="b@x.com"))


def test_deletes_every_alias_hit(store: InMemoryRecordStore) -> None:
    _seed_identity(store)

    result = BatchDeleter([store]).delete_all_for_identity("A@X.com", external_id="U1")

    assert result.complete
    assert result.orders_deleted == 3
    assert result.profiles_deleted == 2
    assert result.other_deleted == 2
    assert store.scan(PROFILES_TABLE) == []
    assert [row.key for row in store.scan(ORDERS_TABLE)] == ["b@x.com_INV-1"]
    assert store.scan(ARCHIVE_TABLE) == []
    assert store.scan(RECIPIENTS_TABLE) == []


def test_failed_probe_does_not_abort(store: InMemoryRecordStore, flaky: FlakyStore) -> None:
    put_profile(store, "a@x.com", {"email": "a@x.com"})
    OrderRepository(store).save(make_order(client=Client(email="a@x.com")))
    flaky.fail_when("query", lambda table, filters: table == ORDERS_TABLE and "clientEmail" in filters)

    result = BatchDeleter([flaky]).delete_all_for_identity("a@x.com")

    assert not result.complete
    assert result.failed_probes == ["regular:order_records:clientEmail=a@x.com"]
    # Still found through client.email.
    assert result.orders_deleted == 1
    assert store.scan(ORDERS_TABLE) == []


def test_failed_delete_is_reported(store: InMemoryRecordStore, flaky: FlakyStore) -> None:
    put_profile(store, "a@x.com", {"email": "a@x.com"})
    OrderRepository(store).save(make_order())
    flaky.fail_when("delete", lambda table, key: table == ORDERS_TABLE)

    result = BatchDeleter([flaky]).delete_all_for_identity("a@x.com")

    assert result.failed_deletes == ["regular:order_records/a@x.com_INV-1"]
    assert result.profiles_deleted == 1
    assert store.get(ORDERS_TABLE, "a@x.com_INV-1") is not None


def test_profile_delete_retried_once(store: InMemoryRecordStore, flaky: FlakyStore) -> None:
    put_profile(store, "a@x.com", {"email": "a@x.com"})
    attempts = []

    def first_profile_delete(table: str, key: str) -> bool:
        if table != PROFILES_TABLE:
            return False
        attempts.append(key)
        return len(attempts) == 1

    flaky.fail_when("delete", first_profile_delete)

    result = BatchDeleter([flaky]).delete_all_for_identity("a@x.com")

    assert result.complete
    assert result.profiles_deleted == 1
    assert len(attempts) == 2
    assert store.get(PROFILES_TABLE, "a@x.com") is None


class _StickyStore(InMemoryRecordStore):
    """Acknowledges the first profile delete without removing anything."""

    def __init__(self) -> None:
        super().__init__()
        self.ignored = 0

    def delete(self, table: str, key: str) -> bool:
        if table == PROFILES_TABLE and self.ignored == 0:
            self.ignored += 1
            return True
        return super().delete(table, key)


def test_surviving_profile_is_deleted_on_verification() -> None:
    store = _StickyStore()
    put_profile(store, "a@x.com", {"email": "a@x.com"})

    result = BatchDeleter([store]).delete_all_for_identity("a@x.com")

    assert result.complete
    assert store.ignored == 1
    assert store.get(PROFILES_TABLE, "a@x.com") is None


def test_profile_that_never_goes_away_is_reported(store: InMemoryRecordStore, flaky: FlakyStore) -> None:
    put_profile(store, "a@x.com", {"email": "a@x.com"})
    flaky.fail_when("delete", lambda table, key: table == PROFILES_TABLE)

    result = BatchDeleter([flaky]).delete_all_for_identity("a@x.com")

    assert result.failed_deletes == ["regular:client_profiles/a@x.com"]
    assert result.profiles_deleted == 0


@pytest.mark.parametrize("email", ["", "   "])
def test_empty_identity_is_refused(store: InMemoryRecordStore, email: str) -> None:
    OrderRepository(store).save(make_order())

    with pytest.raises(ValueError):
        BatchDeleter([store]).delete_all_for_identity(email)

    assert len(store.scan(ORDERS_TABLE)) == 1


def test_external_id_alone_is_enough(store: InMemoryRecordStore) -> None:
    store.put(ORDERS_TABLE, "app-order", {"userId": "U1", "orderToken": "L2"})

    result = BatchDeleter([store]).delete_all_for_identity("", external_id="U1")

    assert result.orders_deleted == 1


def test_every_store_is_cleared() -> None:
    regular = InMemoryRecordStore("regular")
    virtual = InMemoryRecordStore("virtual")
    for s in (regular, virtual):
        put_profile(s, "a@x.com", {"email": "a@x.com"})
        OrderRepository(s).save(make_order())

    result = BatchDeleter([regular, virtual]).delete_all_for_identity("a@x.com")

    assert result.complete
    assert result.orders_deleted == 2
    assert result.profiles_deleted == 2
    assert regular.scan(ORDERS_TABLE) == virtual.scan(ORDERS_TABLE) == []


def test_requires_a_store() -> None:
    with pytest.raises(ValueError):
        BatchDeleter([])
