import os
import sys
from datetime import datetime
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

os.environ.setdefault("DATA_DIR", str(ROOT / "data"))
os.environ.setdefault("METRICS_ENABLED", "false")

from stockroom.crud.parties import create_customer, create_supplier
from stockroom.db.session import Base, get_db
from stockroom.deps.hooks import get_notifier
from stockroom.main import create_app

from stockroom import models  # noqa: F401


class RecordingNotifier:
    def __init__(self):
        self.low_stock = []
        self.statuses = []

    def notify_low_stock(self, user_id, item_name, current_stock, threshold):
        self.low_stock.append((user_id, item_name, current_stock, threshold))

    def notify_order_status(self, user_id, order_id, status):
        self.statuses.append((user_id, order_id, status))


@pytest.fixture()
def db_session():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    TestingSessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session, TestingSessionLocal
    finally:
        session.close()


@pytest.fixture()
def notifier():
    return RecordingNotifier()


@pytest.fixture()
def client(db_session, notifier):
    _, TestingSessionLocal = db_session
    app = create_app()

    def override_get_db():
        db = TestingSessionLocal()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_notifier] = lambda: notifier
    return TestClient(app)


def _new_item(client, **fields):
    payload = {"name": "Widget", "unit_price": "20.50", "price": "24.00"}
    payload.update(fields)
    response = client.post("/api/v1/inventory/items", json=payload)
    assert response.status_code == 201, response.text
    return response.json()


def test_health_and_request_id(client):
    response = client.get("/health", headers={"X-Request-ID": "abc-123"})

    assert response.status_code == 200
    assert response.json() == {"ok": True}
    assert response.headers["X-Request-ID"] == "abc-123"


def test_item_lifecycle_and_balance(client):
    item = _new_item(client, current_stock=75)
    assert item["current_stock"] == 75

    response = client.post(f"/api/v1/inventory/items/{item['id']}/adjust", json={"quantity": 25, "direction": "add"})
    assert response.status_code == 200
    assert response.json()["current_stock"] == 100

    response = client.post(
        f"/api/v1/inventory/items/{item['id']}/adjust",
        json={"quantity": 150, "direction": "subtract"},
    )
    assert response.status_code == 409
    body = response.json()
    assert body["code"] == "insufficient_stock"
    assert body["details"]["available"] == 100

    balance = client.get(f"/api/v1/inventory/items/{item['id']}/balance").json()
    assert balance["running_balance"] == 100
    assert balance["current_stock"] == 100
    assert balance["drift"] == 0
    assert balance["pending_quantity"] == 0

    history = client.get(f"/api/v1/inventory/items/{item['id']}/transactions").json()
    assert [(t["type"], t["quantity"]) for t in history] == [("IN", 75), ("IN", 25)]


def test_low_stock_hook_through_api(client, notifier):
    item = _new_item(client, current_stock=6, reorder_level=5)

    client.post(
        f"/api/v1/inventory/items/{item['id']}/adjust",
        json={"quantity": 2, "direction": "subtract", "notify_user_id": 9},
    )

    assert notifier.low_stock == [(9, "Widget", 4, 5)]


def test_unknown_item_returns_envelope(client):
    response = client.get("/api/v1/inventory/items/999")

    assert response.status_code == 404
    assert response.json()["code"] == "not_found"


def test_request_validation_uses_envelope(client):
    item = _new_item(client)

    response = client.post(f"/api/v1/inventory/items/{item['id']}/adjust", json={"quantity": 0, "direction": "add"})

    assert response.status_code == 422
    assert response.json()["code"] == "validation_error"


def test_order_flow(client, db_session, notifier):
    session, _ = db_session
    customer = create_customer(session, {"name": "Client A"})
    item = _new_item(client)

    response = client.post(
        "/api/v1/orders",
        json={"customer_id": customer.id, "items": [{"inventory_item_id": item["id"], "quantity": 2}]},
    )
    assert response.status_code == 201, response.text
    order = response.json()
    assert order["total_amount"] == "41.00"
    assert order["items"][0]["total_price"] == "41.00"

    missing = client.post(
        "/api/v1/orders",
        json={"customer_id": customer.id, "items": [{"inventory_item_id": 999, "quantity": 1}]},
    )
    assert missing.status_code == 404
    assert missing.json()["message"] == "Inventory item 999 not found"
    assert len(client.get("/api/v1/orders").json()) == 1

    line_id = order["items"][0]["id"]
    client.patch(f"/api/v1/order-items/{line_id}", json={"quantity": 3})
    totals = client.get(f"/api/v1/orders/{order['id']}/total").json()
    assert totals["total"] == "61.50"
    assert totals["stored_total"] == "41.00"

    response = client.patch(f"/api/v1/orders/{order['id']}/status", json={"status": "Completed", "notify_user_id": 2})
    assert response.json()["status"] == "Completed"
    assert notifier.statuses == [(2, order["id"], "Completed")]

    response = client.patch(f"/api/v1/orders/{order['id']}/status", json={"status": "Pending"})
    assert response.status_code == 409
    assert response.json()["code"] == "invalid_transition"


def test_purchase_order_receive_flow(client, db_session):
    session, _ = db_session
    supplier = create_supplier(session, {"name": "Acme Supply"})
    item = _new_item(client, current_stock=10)

    response = client.post(
        "/api/v1/purchase-orders",
        json={
            "supplier_id": supplier.id,
            "expected_delivery_date": "2000-01-01T00:00:00",
            "items": [{"inventory_item_id": item["id"], "quantity": 40}],
        },
    )
    assert response.status_code == 201, response.text
    po = response.json()

    overdue = client.get("/api/v1/purchase-orders/overdue").json()
    assert [p["id"] for p in overdue] == [po["id"]]
    assert client.get(f"/api/v1/inventory/items/{item['id']}/balance").json()["pending_quantity"] == 40

    received = client.post(f"/api/v1/purchase-orders/{po['id']}/receive", json={"user_id": 4}).json()
    assert received["status"] == "Completed"
    assert received["received_date"] is not None
    assert client.get("/api/v1/purchase-orders/overdue").json() == []
    assert client.get("/api/v1/purchase-orders/pending").json() == []

    stocked = client.get(f"/api/v1/inventory/items/{item['id']}").json()
    assert stocked["current_stock"] == 50
