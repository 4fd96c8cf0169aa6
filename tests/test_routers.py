import unittest
from datetime import datetime, timedelta
from unittest.mock import patch

from fastapi import FastAPI
from fastapi.testclient import TestClient
from ledger_fixtures import add_product, make_session_factory

from inventory_ledger.config import Settings
from inventory_ledger.core.dates import ledger_today
from inventory_ledger.dependencies import get_db
from inventory_ledger.routers import (
    admin_router,
    health_router,
    inventory_router,
    ledger_router,
    movements_router,
)


def _build_app(session_factory) -> FastAPI:
    app = FastAPI()
    for router in (health_router, inventory_router, movements_router, ledger_router, admin_router):
        app.include_router(router)

    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    return app


class LedgerApiTest(unittest.TestCase):
    def setUp(self):
        self.Session = make_session_factory()
        db = self.Session()
        self.product_id = add_product(db, "SKU-API").id
        db.close()
        self.client = TestClient(_build_app(self.Session))
        self.today = ledger_today()
        self.now = datetime.combine(self.today, datetime.min.time()).replace(hour=9)

    def _record(self, invoice_id, quantity_change, unit_cost=None, when=None):
        return self.client.post(
            "/ledger/movements",
            json={
                "product_id": self.product_id,
                "invoice_id": invoice_id,
                "invoice_date": (when or self.now).isoformat(),
                "quantity_change": quantity_change,
                "unit_cost": unit_cost,
            },
        )

    def test_health(self):
        response = self.client.get("/health")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["status"], "ok")

    def test_record_then_read_position(self):
        response = self._record(1, 100, 10.0)
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["quantity_after"], 100)

        response = self._record(2, 50, 16.0)
        self.assertAlmostEqual(response.json()["avg_cost_after"], 12.0)

        response = self.client.get(f"/inventory/products/{self.product_id}/position")
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["available_qty"], 150)
        self.assertAlmostEqual(body["avg_cost"], 12.0)
        self.assertEqual(body["snapshot_date"], self.today.isoformat())

        today = self.client.get("/inventory/today").json()
        self.assertEqual(len(today["snapshots"]), 1)
        daily = self.client.get("/inventory/daily", params={"date": self.today.isoformat()}).json()
        self.assertEqual(daily["snapshots"], today["snapshots"])

        recent = self.client.get("/stock-movements/recent/1").json()
        self.assertEqual([row["invoice_id"] for row in recent], [2])

    def test_recalculate_edit_and_delete(self):
        self._record(1, 100, 10.0)
        self._record(2, 50, 16.0)
        self._record(3, -30)

        response = self.client.post(
            "/ledger/recalculate",
            json={
                "product_id": self.product_id,
                "invoice_id": 1,
                "action": "edit",
                "new_quantity_change": 80,
            },
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["movements_rewritten"], 3)

        response = self.client.post(
            "/ledger/recalculate",
            json={"product_id": self.product_id, "invoice_id": 3, "action": "delete"},
        )
        self.assertEqual(response.status_code, 200)

        position = self.client.get(f"/inventory/products/{self.product_id}/position").json()
        self.assertEqual(position["available_qty"], 130)

    def test_recalculate_error_mapping(self):
        self._record(1, 10, 1.0)

        missing = self.client.post(
            "/ledger/recalculate",
            json={"product_id": self.product_id, "invoice_id": 99, "action": "delete"},
        )
        self.assertEqual(missing.status_code, 404)
        self.assertEqual(missing.json()["detail"]["code"], "MOVEMENT_NOT_FOUND")

        invalid = self.client.post(
            "/ledger/recalculate",
            json={
                "product_id": self.product_id,
                "invoice_id": 1,
                "action": "edit",
                "new_quantity_change": 0,
            },
        )
        self.assertEqual(invalid.status_code, 400)
        self.assertEqual(invalid.json()["detail"]["code"], "INVALID_MOVEMENT")

        unknown_action = self.client.post(
            "/ledger/recalculate",
            json={"product_id": self.product_id, "invoice_id": 1, "action": "merge"},
        )
        self.assertEqual(unknown_action.status_code, 422)

    def test_record_for_unknown_product(self):
        response = self.client.post(
            "/ledger/movements",
            json={
                "product_id": 999,
                "invoice_id": 1,
                "invoice_date": self.now.isoformat(),
                "quantity_change": 5,
            },
        )
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()["detail"]["code"], "PRODUCT_NOT_FOUND")

    def test_low_stock_and_history(self):
        yesterday = self.now - timedelta(days=1)
        self._record(1, 3, 1.0, when=yesterday)

        low = self.client.get("/inventory/low-stock/5").json()
        self.assertEqual([row["available_qty"] for row in low["snapshots"]], [3])
        self.assertEqual(self.client.get("/inventory/low-stock/2").json()["snapshots"], [])

        history = self.client.get("/inventory/history", params={"product_id": self.product_id}).json()
        self.assertEqual(
            [row["date"] for row in history["snapshots"]],
            [self.today.isoformat(), (self.today - timedelta(days=1)).isoformat()],
        )

        bad_range = self.client.get(
            "/inventory/history",
            params={"start": self.today.isoformat(), "end": (self.today - timedelta(days=1)).isoformat()},
        )
        self.assertEqual(bad_range.status_code, 400)

    def test_admin_jobs(self):
        response = self.client.post("/admin/daily-snapshot")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["processed"], 1)

        response = self.client.post("/admin/daily-snapshot")
        self.assertEqual(response.json()["skipped"], 1)

        response = self.client.post("/admin/recompute-positions", json={"product_id": self.product_id})
        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.json()["success"])
        self.assertEqual(response.json()["result"]["gaps_found"], 0)

        response = self.client.post("/admin/recompute-positions", json={"product_id": 999})
        self.assertEqual(response.status_code, 404)

    def test_unknown_product_position(self):
        response = self.client.get("/inventory/products/999/position")
        self.assertEqual(response.status_code, 404)

    def test_writes_require_api_key_when_configured(self):
        settings = Settings(ADMIN_API_KEY="secret")
        with patch("inventory_ledger.core.security.get_settings", return_value=settings):
            denied = self._record(1, 5, 1.0)
            self.assertEqual(denied.status_code, 401)

            allowed = self.client.post(
                "/ledger/movements",
                headers={"X-API-Key": "secret"},
                json={
                    "product_id": self.product_id,
                    "invoice_id": 1,
                    "invoice_date": self.now.isoformat(),
                    "quantity_change": 5,
                    "unit_cost": 1.0,
                },
            )
            self.assertEqual(allowed.status_code, 200)

            reads_stay_open = self.client.get("/inventory/today")
            self.assertEqual(reads_stay_open.status_code, 200)


if __name__ == "__main__":
    unittest.main()
