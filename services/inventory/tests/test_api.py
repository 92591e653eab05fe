import pytest
from fastapi.testclient import TestClient

from inventory_ledger.infrastructure.db import get_db
from inventory_ledger.main import app

ACME = {"X-Tenant-ID": "acme", "X-User-ID": "7"}
GLOBEX = {"X-Tenant-ID": "globex"}
BASE = "/api/v1/inventory"


@pytest.fixture
def client(session_factory):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def item(client):
    resp = client.post(f"{BASE}/items", json={"product_id": 1, "quantity_on_hand": "50"}, headers=ACME)
    assert resp.status_code == 201
    return resp.json()


def test_missing_tenant_header_rejected(client):
    resp = client.get(f"{BASE}/items")
    assert resp.status_code == 400
    assert resp.json()["error"] == "TENANT_SCOPE_REQUIRED"


def test_create_and_fetch_item(client, item):
    assert item["tenant_id"] == "acme"
    assert item["created_by"] == 7
    assert float(item["quantity_available"]) == 50

    resp = client.get(f"{BASE}/items/{item['id']}", headers=ACME)
    assert resp.status_code == 200
    assert resp.json()["id"] == item["id"]

    listing = client.get(f"{BASE}/items", params={"size": 5}, headers=ACME).json()
    assert listing["total"] == 1
    assert listing["size"] == 5


def test_other_tenant_gets_not_found(client, item):
    resp = client.get(f"{BASE}/items/{item['id']}", headers=GLOBEX)
    assert resp.status_code == 404
    assert resp.json() == {
        "error": "NOT_FOUND",
        "message": f"InventoryItem not found: {item['id']}",
        "details": {"entity": "InventoryItem", "id": item["id"]},
    }
    assert client.get(f"{BASE}/items", headers=GLOBEX).json()["total"] == 0


def test_reserve_beyond_available_is_conflict(client, item):
    resp = client.post(f"{BASE}/reservations", json={"item_id": item["id"], "quantity": "60"}, headers=ACME)
    assert resp.status_code == 409
    body = resp.json()
    assert body["error"] == "INSUFFICIENT_STOCK"
    assert float(body["details"]["available"]) == 50
    assert float(body["details"]["requested"]) == 60


def test_reservation_lifecycle_over_http(client, item):
    created = client.post(f"{BASE}/reservations", json={"item_id": item["id"], "quantity": "20"}, headers=ACME)
    assert created.status_code == 201
    reservation_id = created.json()["id"]

    assert client.post(f"{BASE}/reservations/{reservation_id}/confirm", headers=ACME).json()["status"] == "FULFILLED"
    again = client.post(f"{BASE}/reservations/{reservation_id}/release", headers=ACME)
    assert again.status_code == 409
    assert again.json()["error"] == "INVALID_STATE_TRANSITION"

    fetched = client.get(f"{BASE}/items/{item['id']}", headers=ACME).json()
    assert float(fetched["quantity_on_hand"]) == 30
    assert float(fetched["quantity_allocated"]) == 0


def test_movements_and_counts_over_http(client, item):
    receipt = client.post(f"{BASE}/transactions/receipts", json={"item_id": item["id"], "quantity": "5"}, headers=ACME)
    assert receipt.status_code == 201
    assert receipt.json()["transaction_type"] == "RECEIPT"

    transfer = client.post(f"{BASE}/transactions/transfers",
                           json={"item_id": item["id"], "quantity": "5", "to_location_id": 2}, headers=ACME)
    details = client.get(f"{BASE}/transactions/{transfer.json()['id']}/details", headers=ACME).json()
    assert details[0]["to_location_id"] == 2

    count = client.post(f"{BASE}/counts", json={"location_id": 1}, headers=ACME).json()
    line = client.post(f"{BASE}/counts/{count['id']}/details",
                       json={"item_id": item["id"], "counted_quantity": "52"}, headers=ACME)
    assert float(line.json()["variance"]) == -3
    assert client.post(f"{BASE}/counts/{count['id']}/complete", headers=ACME).json()["status"] == "COMPLETED"
    assert client.post(f"{BASE}/counts/{count['id']}/complete", headers=ACME).status_code == 409

    adjustments = client.get(f"{BASE}/adjustments", headers=ACME).json()
    assert adjustments["total"] == 1
    assert adjustments["items"][0]["reason_code"] == "CYCLE_COUNT"


def test_validation_errors(client, item):
    resp = client.post(f"{BASE}/adjustments", json={"item_id": item["id"], "quantity_delta": "0", "reason": "x"},
                       headers=ACME)
    assert resp.status_code == 422
    assert resp.json()["details"] == {"field": "quantity_delta", "reason": "must not be zero"}

    resp = client.put(f"{BASE}/items/{item['id']}", json={"notes": "ok", "status": "BROKEN"}, headers=ACME)
    assert resp.status_code == 422


def test_reorder_status_endpoint(client, item):
    client.post(f"{BASE}/policies", json={"product_id": 1, "reorder_point": "60"}, headers=ACME)
    resp = client.get(f"{BASE}/policies/reorder-status", params={"product_id": 1}, headers=ACME)
    assert resp.status_code == 200
    assert resp.json()["needs_reorder"] is True


def test_health_endpoints(client):
    assert client.get("/health").json()["status"] == "pass"
    assert client.get("/health/live").json() == {"status": "alive"}
    assert client.get("/info").json()["endpoints"]["inventory"] == BASE


def test_null_for_required_field_is_unprocessable(client, item):
    resp = client.put(f"{BASE}/items/{item['id']}", json={"status": None}, headers=ACME)
    assert resp.status_code == 422
    assert resp.json()["details"] == {"field": "status", "reason": "must not be null"}
    assert client.get(f"{BASE}/items/{item['id']}", headers=ACME).json()["status"] == "AVAILABLE"

    policy = client.post(f"{BASE}/policies", json={"product_id": 1}, headers=ACME).json()
    resp = client.put(f"{BASE}/policies/{policy['id']}", json={"valuation_method": None}, headers=ACME)
    assert resp.status_code == 422
    assert resp.json()["details"]["field"] == "valuation_method"


def test_sub_scale_quantity_is_unprocessable(client, item):
    resp = client.post(f"{BASE}/transactions/receipts", json={"item_id": item["id"], "quantity": "0.00004"},
                       headers=ACME)
    assert resp.status_code == 422
    assert resp.json()["details"] == {"field": "quantity", "reason": "at most 4 decimal places"}
    assert client.get(f"{BASE}/transactions", headers=ACME).json()["total"] == 0
