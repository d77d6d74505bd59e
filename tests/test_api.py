"""
API tests.

The Supabase-backed stores are replaced with an in-memory store through
`app.dependency_overrides`, so these tests exercise routing, validation and
error mapping on top of the real services.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from fastapi import HTTPException
from fastapi.testclient import TestClient

from conftest import make_order, put_profile
from api.dependencies import get_all_stores, get_store, set_document_generator
from api.errors import to_http_exception
from api.main import app
from domain.errors import (
    AmbiguousOrderError,
    OrderNotFoundError,
    OrderSyncError,
    StatusConflictError,
    StoreUnavailableError,
)
from repositories.memory_store import InMemoryRecordStore
from repositories.order_repository import OrderRepository
from repositories.record_store import ORDERS_TABLE, PROFILES_TABLE

KEY = "a@x.com_INV-1"


class StaticGenerator:
    def generate(self, order) -> str:
        return f"https://files.example.com/{order.order_token}.pdf"


@pytest.fixture
def api_store() -> InMemoryRecordStore:
    store = InMemoryRecordStore()
    OrderRepository(store).save(make_order())
    put_profile(store, "a@x.com", {"email": "a@x.com", "nombre": "Ana", "orders": [{"orderId": "INV-1"}]})
    return store


@pytest.fixture
def client(api_store: InMemoryRecordStore):
    app.dependency_overrides[get_store] = lambda: api_store
    app.dependency_overrides[get_all_stores] = lambda: [api_store]
    yield TestClient(app)
    app.dependency_overrides.clear()
    set_document_generator(None)


def test_health(client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("SUPABASE_URL", raising=False)
    monkeypatch.setenv("VIRTUAL_SUPABASE_URL", "https://virtual.supabase.co")

    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    assert response.json()["environments"] == ["virtual"]


# ============================================================================
# Orders
# ============================================================================

def test_get_order(client: TestClient) -> None:
    response = client.get(f"/api/v1/orders/{KEY}")

    assert response.status_code == 200
    data = response.json()
    assert data["order_id"] == KEY
    assert data["status"] == "new"
    assert data["total"] == "20.00"
    assert data["items"][0]["quantity"] == 2


def test_get_unknown_order_is_404(client: TestClient) -> None:
    assert client.get("/api/v1/orders/a@x.com_NOPE").status_code == 404


def test_ambiguous_bare_token_is_409(client: TestClient, api_store: InMemoryRecordStore) -> None:
    OrderRepository(api_store).save(make_order(email="b@x.com"))

    response = client.get("/api/v1/orders/INV-1")

    assert response.status_code == 409
    assert len(response.json()["detail"]["candidates"]) == 2


def test_patch_updates_both_copies(client: TestClient, api_store: InMemoryRecordStore) -> None:
    response = client.patch(f"/api/v1/orders/{KEY}", json={"status": "confirmed", "trackingNumber": "TRK-9"})

    assert response.status_code == 200
    data = response.json()
    assert data["outcome"] == "ok"
    assert [r["target"] for r in data["store_results"]] == ["canonical", "legacy_embedded"]
    assert data["order"]["tracking_number"] == "TRK-9"
    assert api_store.get(PROFILES_TABLE, "a@x.com")["orders"][0]["status"] == "confirmed"


def test_patch_unreachable_status_is_409(client: TestClient, api_store: InMemoryRecordStore) -> None:
    before = api_store.get(ORDERS_TABLE, KEY)

    response = client.patch(f"/api/v1/orders/{KEY}", json={"status": "delivered"})

    assert response.status_code == 409
    assert response.json()["detail"]["current"] == "new"
    assert response.json()["detail"]["requested"] == "delivered"
    assert api_store.get(ORDERS_TABLE, KEY) == before


@pytest.mark.parametrize("body", [{"status": "teleported"}, {"orderToken": "other"}, {"invoiceNumber": "F-99"}])
def test_patch_invalid_body_is_422(client: TestClient, body: dict) -> None:
    assert client.patch(f"/api/v1/orders/{KEY}", json=body).status_code == 422


def test_mark_messages_read(client: TestClient) -> None:
    client.patch(f"/api/v1/orders/{KEY}", json={"adminMessage": "Packed"})

    response = client.post(f"/api/v1/orders/{KEY}/messages/read")

    assert response.status_code == 200
    assert response.json()["order"]["has_unread_messages"] is False


def test_generate_document(client: TestClient, api_store: InMemoryRecordStore) -> None:
    set_document_generator(StaticGenerator())

    response = client.post(f"/api/v1/orders/{KEY}/document")

    assert response.status_code == 200
    assert api_store.get(ORDERS_TABLE, KEY)["documentUrl"] == "https://files.example.com/INV-1.pdf"


def test_generate_document_without_generator_is_503(client: TestClient) -> None:
    assert client.post(f"/api/v1/orders/{KEY}/document").status_code == 503


def test_store_unavailable_is_503(client: TestClient) -> None:
    class Unreachable(InMemoryRecordStore):
        def query(self, table, field_equals):
            raise StoreUnavailableError("store not configured")

    app.dependency_overrides[get_store] = lambda: Unreachable()
    assert client.get(f"/api/v1/orders/{KEY}").status_code == 503


# ============================================================================
# Soft delete and archive
# ============================================================================

def test_soft_delete_then_archive_lifecycle(client: TestClient) -> None:
    response = client.request("DELETE", f"/api/v1/orders/{KEY}", json={"deleted_by": "admin@shop.com"})
    assert response.status_code == 200
    assert response.json()["outcome"] == "ok"

    assert client.get(f"/api/v1/orders/{KEY}").status_code == 404

    listing = client.get("/api/v1/archive").json()
    assert listing["total_count"] == 1
    assert listing["items"][0]["original_order_id"] == KEY
    assert listing["items"][0]["remaining_days"] == 30
    assert listing["items"][0]["deleted_by"] == "admin@shop.com"

    assert client.delete(f"/api/v1/archive/{KEY}").status_code == 204
    assert client.delete(f"/api/v1/archive/{KEY}").status_code == 404


def test_soft_delete_without_body(client: TestClient) -> None:
    assert client.delete(f"/api/v1/orders/{KEY}").status_code == 200


def test_purge(client: TestClient) -> None:
    client.delete(f"/api/v1/orders/{KEY}")
    future = (datetime.now(timezone.utc) + timedelta(days=31)).isoformat()

    response = client.post("/api/v1/archive/purge", json={"now": future})

    assert response.status_code == 200
    assert response.json()["purged_count"] == 1
    again = client.post("/api/v1/archive/purge", json={"now": future})
    assert again.json()["purged_count"] == 0


def test_purge_rejects_naive_now(client: TestClient) -> None:
    response = client.post("/api/v1/archive/purge", json={"now": "2025-01-01T00:00:00"})
    assert response.status_code == 422


# ============================================================================
# Migrations and accounts
# ============================================================================

def test_migrate_single_profile(client: TestClient, api_store: InMemoryRecordStore) -> None:
    response = client.post("/api/v1/migrations/profiles", json={"email": "a@x.com"})

    assert response.status_code == 200
    data = response.json()
    assert data["profiles_migrated"] == 1
    # The canonical INV-1 already exists and the snapshot is not newer.
    assert data["orders_migrated"] == 0
    assert data["orders_already_present"] == 1
    assert data["deleted_orders_skipped"] == 0
    assert "orders" not in api_store.get(PROFILES_TABLE, "a@x.com")


def test_migrate_all_is_idempotent(client: TestClient) -> None:
    first = client.post("/api/v1/migrations/profiles").json()
    second = client.post("/api/v1/migrations/profiles").json()

    assert first["profiles_migrated"] == 1
    assert second["profiles_migrated"] == 0
    assert second["profiles_skipped"] == 1


def test_delete_account(client: TestClient, api_store: InMemoryRecordStore) -> None:
    response = client.post("/api/v1/accounts/delete", json={"email": "a@x.com"})

    assert response.status_code == 200
    data = response.json()
    assert data["complete"] is True
    assert data["orders_deleted"] == 1
    assert data["profiles_deleted"] == 1
    assert api_store.scan(ORDERS_TABLE) == []


def test_delete_account_requires_email(client: TestClient) -> None:
    assert client.post("/api/v1/accounts/delete", json={"email": ""}).status_code == 422


# ============================================================================
# Dependencies and error mapping
# ============================================================================

def test_unknown_environment_is_400() -> None:
    with pytest.raises(HTTPException) as excinfo:
        get_store("staging")
    assert excinfo.value.status_code == 400


@pytest.mark.parametrize(
    "error,status",
    [
        (OrderNotFoundError("x"), 404),
        (AmbiguousOrderError("x", ["a", "b"]), 409),
        (StatusConflictError("delivered", "new"), 409),
        (StoreUnavailableError("down"), 503),
        (OrderSyncError("other"), 500),
    ],
)
def test_error_mapping(error: OrderSyncError, status: int) -> None:
    assert to_http_exception(error).status_code == status
