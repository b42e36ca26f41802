"""
HTTP surface under /api, with in-memory services swapped in through
dependency overrides
"""
import pytest
from fastapi.testclient import TestClient

from dependencies import get_engine, get_feed, get_identity_registry, get_order_store
from server import app
from services.errors import Unauthenticated

from fakes import line_item, snapshot


@pytest.fixture
def client(feed, store, registry, engine):
    app.dependency_overrides[get_order_store] = lambda: store
    app.dependency_overrides[get_identity_registry] = lambda: registry
    app.dependency_overrides[get_feed] = lambda: feed
    app.dependency_overrides[get_engine] = lambda: engine
    yield TestClient(app)
    app.dependency_overrides.clear()


class TestRoot:
    def test_root(self, client):
        response = client.get("/api/")
        assert response.status_code == 200
        assert response.json()["status"] == "running"

    def test_scheduler_status(self, client):
        data = client.get("/api/scheduler/status").json()
        assert "running" in data
        assert "last_run" in data


class TestOrdersApi:
    def test_reconcile_and_read_back(self, client, feed):
        feed.put(snapshot("SW-2001", [line_item("a", "Natey Am3"), line_item("b", "Innato Em4")]))

        response = client.post("/api/orders/2001/reconcile")
        assert response.status_code == 200
        assert response.json()["action"] == "created"

        detail = client.get("/api/orders/SW-2001").json()
        assert detail["order"]["order_number"] == "SW-2001"
        assert [i["serial_number"] for i in detail["items"]] == ["SW-2001-1", "SW-2001-2"]

        listing = client.get("/api/orders").json()
        assert listing["total_count"] == 1

    def test_reconcile_missing_upstream(self, client):
        assert client.post("/api/orders/9999/reconcile").status_code == 404

    def test_reconcile_unauthenticated(self, client, feed):
        feed.error = Unauthenticated("Shopify credentials not configured")
        assert client.post("/api/orders/2001/reconcile").status_code == 401

    def test_batch_reconcile(self, client, feed):
        feed.put(snapshot("SW-2001", [line_item("a")]))

        data = client.post("/api/orders/reconcile", json={"order_numbers": ["2001", "2002"]}).json()

        assert data["succeeded"] == 1
        assert data["failed"] == 1

    def test_create_placeholder_order(self, client):
        response = client.post("/api/orders", json={"order_number": "1600", "customer_name": "Walk-in"})
        assert response.status_code == 200
        assert response.json()["order_number"] == "SW-1600"
        assert response.json()["external_order_id"] is None

        duplicate = client.post("/api/orders", json={"order_number": "SW-1600", "customer_name": "Walk-in"})
        assert duplicate.status_code == 409

    def test_archive_order(self, client):
        client.post("/api/orders", json={"order_number": "1600", "customer_name": "Walk-in"})

        assert client.put("/api/orders/1600/archive").status_code == 200
        assert client.get("/api/orders").json()["total_count"] == 0
        assert client.get("/api/orders?include_archived=true").json()["total_count"] == 1

    def test_unknown_order(self, client):
        assert client.get("/api/orders/SW-0404").status_code == 404

    def test_tracking_refresh(self, client):
        data = client.post("/api/orders/tracking/refresh", json={}).json()
        assert data["success"] is True
        assert data["total_orders"] == 0


class TestItemsApi:
    def test_building_freezes_and_worksheet_shows_frozen_specs(self, client, feed):
        feed.put(snapshot("SW-1542", [line_item("a", "Natey Am3"), line_item("b", "Innato Dm4 (432Hz)")]))
        client.post("/api/orders/1542/reconcile")
        items = client.get("/api/items").json()["items"]
        item_id = items[1]["item_id"]

        response = client.patch(f"/api/items/{item_id}/status", json={"status": "building", "checked": True})
        assert response.status_code == 200
        assert response.json()["freeze"]["status"] == "frozen"

        # Upstream renames the product; the frozen identity holds
        feed.put(snapshot("SW-1542", [line_item("a", "Natey Am3"), line_item("b", "Natey Gm3")]))
        client.post("/api/orders/1542/reconcile")

        worksheet = client.get("/api/items").json()["items"]
        assert worksheet[1]["serial_number"] == "SW-1542-2"
        assert worksheet[1]["item_type"] == "INNATO Dm4"
        assert worksheet[1]["specifications"]["frequency"] == "432"

    def test_unknown_status_is_rejected(self, client, store):
        assert client.patch("/api/items/1/status", json={"status": "glazing", "checked": True}).status_code == 422

    def test_missing_item(self, client):
        assert client.get("/api/items/404").status_code == 404

    def test_archive_item(self, client, feed):
        feed.put(snapshot("SW-1542", [line_item("a")]))
        client.post("/api/orders/1542/reconcile")
        item_id = client.get("/api/items").json()["items"][0]["item_id"]

        response = client.put(f"/api/items/{item_id}/archive", json={"reason": "Cracked in firing"})

        assert response.status_code == 200
        assert client.get("/api/items").json()["total_count"] == 0


class TestSerialNumbersApi:
    def test_freeze_is_write_once(self, client):
        body = {"serial_number": "SW-1542-2", "specifications": {"type": "INNATO", "tuning": "Dm4", "frequency": "432"}}

        first = client.post("/api/serial-numbers/freeze", json=body).json()
        second = client.post("/api/serial-numbers/freeze", json={**body, "specifications": {"type": "NATEY"}}).json()

        assert first["status"] == "frozen"
        assert second["status"] == "alreadyFrozen"
        record = client.get("/api/serial-numbers/SW-1542-2").json()
        assert record["type"] == "INNATO"
        assert record["display_tuning"] == "Dm4"

    def test_malformed_serial(self, client):
        response = client.post("/api/serial-numbers/freeze", json={"serial_number": "nope", "specifications": {}})
        assert response.status_code == 400

    def test_unfrozen_serial(self, client):
        assert client.get("/api/serial-numbers/1542-9").status_code == 404

    def test_binding_lookup(self, client):
        client.post("/api/serial-numbers/freeze", json={
            "serial_number": "1542-1", "specifications": {"type": "NATEY"}, "line_item_id": "ext-100"
        })

        assert client.get("/api/serial-numbers/bindings/ext-100").json()["serial_number"] == "1542-1"
        assert client.get("/api/serial-numbers/bindings/ext-999").status_code == 404
