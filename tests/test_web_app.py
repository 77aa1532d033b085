import io
import json

import pytest

from web_app import create_app

ADMIN = {"X-Actor-Id": "1", "X-Actor-Admin": "true"}
MASTER = {"X-Actor-Id": "2"}


@pytest.fixture
def client(ledger, admin, master):
    return create_app(ledger).test_client()


def _new_order(client, **body):
    resp = client.post("/api/orders", json={"title": "Strat", **body}, headers=MASTER)
    assert resp.status_code == 201
    return resp.get_json()["order"]


class TestErrors:
    def test_missing_actor(self, client):
        resp = client.get("/api/orders")
        assert resp.status_code == 401
        assert resp.get_json() == {"ok": False, "message": "Unauthorized"}

    def test_validation_issues(self, client):
        resp = client.post("/api/orders", json={"title": ""}, headers=MASTER)
        body = resp.get_json()
        assert resp.status_code == 400
        assert body["ok"] is False
        assert body["issues"] == [{"field": "title", "message": "is required"}]

    def test_non_object_body(self, client):
        resp = client.post("/api/orders", json=["title"], headers=MASTER)
        assert resp.status_code == 400

    def test_bad_limit(self, client):
        resp = client.get("/api/orders?limit=-1", headers=MASTER)
        assert resp.status_code == 400
        assert resp.get_json()["issues"][0]["field"] == "limit"

    def test_not_found(self, client):
        assert client.get("/api/orders/99", headers=MASTER).status_code == 404

    def test_forbidden(self, client):
        assert client.get("/api/admin/users", headers=MASTER).status_code == 403
        assert client.get("/api/admin/analytics", headers=MASTER).status_code == 403

    def test_locked_order_conflict(self, client):
        order = _new_order(client)
        client.post(f"/api/orders/{order['id']}/status", json={"status": "PAID"}, headers=ADMIN)

        resp = client.post(f"/api/orders/{order['id']}/comments", json={"text": "late"}, headers=MASTER)

        assert resp.status_code == 409
        assert resp.get_json()["ok"] is False

    def test_unexpected_error_is_hidden(self, client, ledger, monkeypatch):
        def boom(*args, **kwargs):
            raise RuntimeError("connection reset")

        monkeypatch.setattr(ledger.orders, "list_orders", boom)
        resp = client.get("/api/orders", headers=MASTER)

        assert resp.status_code == 500
        assert resp.get_json() == {"ok": False, "message": "Internal error"}


class TestRoutes:
    def test_order_payload_is_camel_case(self, client):
        order = _new_order(client, guitarSerial="MX1", customerPhone="+7 900")
        assert order["guitarSerial"] == "MX1"
        assert order["invoiceTotalCents"] == 0
        assert order["createdAt"].endswith("Z")

    def test_work_and_part_flow(self, client):
        order = _new_order(client)
        oid = order["id"]

        resp = client.post(
            f"/api/orders/{oid}/works/custom",
            json={"serviceName": "Setup", "performerId": 2, "unitPriceCents": 150000},
            headers=ADMIN,
        )
        assert resp.status_code == 201
        assert resp.get_json()["work"]["commissionCentsSnapshot"] == 60000

        client.post(f"/api/orders/{oid}/parts", json={"name": "Strings", "unitPriceCents": 90000}, headers=MASTER)

        detail = client.get(f"/api/orders/{oid}", headers=MASTER).get_json()["order"]
        assert detail["invoiceTotalCents"] == 240000
        assert [w["performerName"] for w in detail["works"]] == ["master1"]

    def test_patch_sends_only_given_fields(self, client):
        order = _new_order(client, customerName="Ivan")

        resp = client.patch(f"/api/orders/{order['id']}", json={"title": "Strat '62"}, headers=ADMIN)

        assert resp.status_code == 200
        assert resp.get_json()["order"]["customerName"] == "Ivan"

    def test_shop_expenses(self, client):
        resp = client.post(
            "/api/admin/expenses",
            json={"title": "Rent", "amountCents": 100, "expenseDate": "2025-03-05"},
            headers=ADMIN,
        )
        assert resp.status_code == 201

        rows = client.get("/api/admin/expenses?from=2025-03-01&to=2025-03-31", headers=ADMIN).get_json()["expenses"]
        assert [r["title"] for r in rows] == ["Rent"]
        assert rows[0]["expenseDate"] == "2025-03-05T00:00:00.000Z"

    def test_analytics_shape(self, client):
        resp = client.get("/api/admin/analytics?from=2025-03-01&to=2025-03-03&bucket=day", headers=ADMIN)
        body = resp.get_json()
        assert body["ok"] is True
        assert len(body["series"]) == 3
        assert body["range"] == {"from": "2025-03-01", "to": "2025-03-03", "bucket": "day"}

        mine = client.get("/api/me/commission?from=2025-03-01&to=2025-03-03", headers=MASTER).get_json()
        assert mine["totals"] == {"commissionCents": 0, "laborCents": 0}

    def test_auth_events(self, client, store):
        assert client.post("/api/auth/login-event", headers=MASTER).status_code == 200
        assert [a["action"] for a in store.tables["audit"].values()] == ["LOGIN"]

    def test_catalog_upload(self, client):
        payload = json.dumps([{"name": "Setup", "defaultPriceCents": 150000}]).encode("utf-8")
        resp = client.post(
            "/api/admin/services/import",
            data={"file": (io.BytesIO(payload), "services.json")},
            headers=ADMIN,
            content_type="multipart/form-data",
        )
        assert resp.status_code == 200
        assert resp.get_json()["imported"] == 1

        services = client.get("/api/services", headers=MASTER).get_json()["services"]
        assert [s["name"] for s in services] == ["Setup"]
