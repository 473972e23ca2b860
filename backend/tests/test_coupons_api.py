import unittest

from fastapi import FastAPI
from fastapi.testclient import TestClient

from coupon_engine.api.endpoints import admin, coupons
from coupon_engine.api.errors import register_error_handlers
from coupon_engine.core.database import get_db
from coupon_engine.core.security import CurrentUser, get_current_user
from coupon_engine.models.coupon import AffiliateCoupon

from db_support import add_commissions, add_product, add_profile, add_subscription, add_template, make_session_factory


AFFILIATE = CurrentUser(id="aff-1", email="bob@example.test", role="user")
ADMIN = CurrentUser(id="admin-1", email="admin@example.test", role="admin")


class CouponsApiTestCase(unittest.TestCase):
    def setUp(self):
        self.engine, self.SessionLocal = make_session_factory()
        self.db = self.SessionLocal()
        add_product(self.db, "P1", "Shop", "https://shop.test/p1")
        add_product(self.db, "P2", "Renda", "https://renda.test")
        add_profile(self.db, "aff-1", "bob")
        self.welcome = add_template(self.db, "WELCOME10", "P1")
        self.user = AFFILIATE

        app = FastAPI()
        register_error_handlers(app)
        app.include_router(coupons.router, prefix="/api")
        app.include_router(admin.router, prefix="/api")

        def override_get_db():
            db = self.SessionLocal()
            try:
                yield db
            finally:
                db.close()

        app.dependency_overrides[get_db] = override_get_db
        app.dependency_overrides[get_current_user] = lambda: self.user
        self.client = TestClient(app)

    def tearDown(self):
        self.db.close()
        self.engine.dispose()


class TestAffiliateRoutes(CouponsApiTestCase):
    def test_board_shows_preview(self):
        resp = self.client.get("/api/coupons")
        self.assertEqual(resp.status_code, 200)
        items = resp.json()
        self.assertEqual(len(items), 1)
        self.assertEqual(items[0]["resolved_code"], "BOBWELCOME10")
        self.assertEqual(items[0]["link"], "https://shop.test/p1/BOBWELCOME10")
        self.assertTrue(items[0]["is_preview"])
        self.assertTrue(items[0]["eligibility"]["eligible"])

    def test_activate_then_repeat(self):
        first = self.client.post(f"/api/coupons/{self.welcome.id}/activate", json={"product_id": "P1"})
        self.assertEqual(first.status_code, 201)
        body = first.json()
        self.assertTrue(body["created"])
        self.assertEqual(body["activation"]["custom_code"], "BOBWELCOME10")
        self.assertEqual(body["activation"]["state"], "active")
        self.assertEqual(body["link"], "https://shop.test/p1/BOBWELCOME10")

        second = self.client.post(f"/api/coupons/{self.welcome.id}/activate")
        self.assertEqual(second.status_code, 200)
        self.assertFalse(second.json()["created"])
        self.assertEqual(second.json()["activation"]["id"], body["activation"]["id"])

    def test_toggle_routes(self):
        activation_id = self.client.post(f"/api/coupons/{self.welcome.id}/activate").json()["activation"]["id"]

        off = self.client.post(f"/api/coupons/activations/{activation_id}/deactivate")
        self.assertEqual(off.status_code, 200)
        self.assertEqual(off.json()["state"], "inactive")

        on = self.client.post(f"/api/coupons/activations/{activation_id}/reactivate")
        self.assertEqual(on.json()["state"], "active")
        self.assertEqual(on.json()["custom_code"], "BOBWELCOME10")

        listed = self.client.get("/api/coupons/activations").json()
        self.assertEqual([a["id"] for a in listed], [activation_id])

    def test_unknown_activation(self):
        resp = self.client.post("/api/coupons/activations/nope/deactivate")
        self.assertEqual(resp.status_code, 404)
        self.assertEqual(resp.json()["code"], "activation_not_found")

    def test_missing_handle(self):
        self.user = CurrentUser(id="aff-2", email="x@example.test", role="user")
        add_profile(self.db, "aff-2", None)
        resp = self.client.post(f"/api/coupons/{self.welcome.id}/activate")
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.json()["code"], "validation_error")

    def test_eligibility_failure_lists_requirements(self):
        gated = add_template(self.db, "RENDA", "P2")
        self.user = ADMIN
        self.client.put("/api/admin/products/P2/eligibility-policy", json={"minimum_cross_product_sales": 10})
        self.user = AFFILIATE
        add_subscription(self.db, "aff-1", "PRO Anual")
        add_commissions(self.db, "aff-1", "P1", 9)

        resp = self.client.post(f"/api/coupons/{gated.id}/activate")
        self.assertEqual(resp.status_code, 403)
        self.assertEqual(resp.json()["unmet_requirements"], ["requires 1 more sales of other products"])

        status = self.client.get("/api/coupons/eligibility/P2").json()
        self.assertFalse(status["eligible"])
        self.assertEqual(status["sales_remaining"], 1)
        self.assertEqual(status["required_plan_marker"], "PRO")


class TestAdminRoutes(CouponsApiTestCase):
    def test_non_admin_is_rejected(self):
        resp = self.client.get("/api/admin/coupons")
        self.assertEqual(resp.status_code, 403)

    def test_created_template_appears_on_board(self):
        self.client.get("/api/coupons")
        self.user = ADMIN
        created = self.client.post(
            "/api/admin/coupons",
            json={"code": "save 20", "name": "Save 20", "kind": "percentage", "value": 20, "product_id": "P1"},
        )
        self.assertEqual(created.status_code, 201)
        self.assertEqual(created.json()["code"], "SAVE20")

        self.user = AFFILIATE
        codes = {item["resolved_code"] for item in self.client.get("/api/coupons").json()}
        self.assertIn("BOBSAVE20", codes)

    def test_invalid_code_and_unknown_product(self):
        self.user = ADMIN
        bad_code = self.client.post("/api/admin/coupons", json={"code": "SAVE-20", "name": "x"})
        self.assertEqual(bad_code.status_code, 400)
        bad_product = self.client.post("/api/admin/coupons", json={"code": "SAVE20", "name": "x", "product_id": "P9"})
        self.assertEqual(bad_product.status_code, 404)

    def test_non_ascii_code_is_rejected(self):
        self.user = ADMIN
        resp = self.client.post("/api/admin/coupons", json={"code": "promoção", "name": "Promo"})
        self.assertEqual(resp.status_code, 400)
        codes = [c["code"] for c in self.client.get("/api/admin/coupons").json()]
        self.assertEqual(codes, ["WELCOME10"])

    def test_retiring_template_hides_it(self):
        self.user = ADMIN
        resp = self.client.patch(f"/api/admin/coupons/{self.welcome.id}", json={"is_active": False})
        self.assertEqual(resp.status_code, 200)
        self.assertFalse(resp.json()["is_active"])
        self.user = AFFILIATE
        self.assertEqual(self.client.get("/api/coupons").json(), [])

    def test_policy_defaults_and_delete(self):
        self.user = ADMIN
        resp = self.client.put("/api/admin/products/P2/eligibility-policy", json={})
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["minimum_cross_product_sales"], 10)
        self.assertEqual(resp.json()["requires_plan_name_contains"], "PRO")
        deleted = self.client.delete("/api/admin/products/P2/eligibility-policy")
        self.assertEqual(deleted.json()["deleted"], 1)

    def test_soft_delete_path(self):
        self.client.post(f"/api/coupons/{self.welcome.id}/activate")
        self.user = ADMIN
        resp = self.client.post("/api/admin/affiliates/aff-1/coupons/soft-delete", json={})
        self.assertEqual(resp.json()["deleted"], 1)

        self.user = AFFILIATE
        self.assertEqual(self.client.get("/api/coupons/activations").json(), [])
        rows = self.db.query(AffiliateCoupon).all()
        self.assertEqual(len(rows), 1)
        self.assertIsNotNone(rows[0].deleted_at)


if __name__ == "__main__":
    unittest.main()
