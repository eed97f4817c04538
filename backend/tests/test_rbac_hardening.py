import os
import unittest
from unittest.mock import patch

import jwt
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.config import get_settings
from app.core.dependencies import get_db
from app.main import app
from app.models.service_order import Base, Client, Equipment, ServiceOrder

SECRET = "rbac-test-secret"


class RbacHardeningTests(unittest.TestCase):
    def setUp(self):
        self.engine = create_engine(
            "sqlite://",
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
        Base.metadata.create_all(self.engine)
        self.SessionLocal = sessionmaker(bind=self.engine)

        def override_get_db():
            db = self.SessionLocal()
            try:
                yield db
            finally:
                db.close()

        app.dependency_overrides[get_db] = override_get_db

        self.env = patch.dict(os.environ, {"JWT_SECRET": SECRET, "JWT_AUDIENCE": ""})
        self.env.start()
        get_settings.cache_clear()

        self.client = TestClient(app)

    def tearDown(self):
        self.client.close()
        app.dependency_overrides.clear()
        self.env.stop()
        get_settings.cache_clear()
        Base.metadata.drop_all(self.engine)
        self.engine.dispose()

    def _headers(self, role="ADMIN", secret=SECRET):
        token = jwt.encode({"sub": "7", "role": role}, secret, algorithm="HS256")
        return {"Authorization": f"Bearer {token}"}

    def _seed_order(self):
        with self.SessionLocal() as db:
            client = Client(name="Acme", contact_name="Maria", email="", phone="1", address="x")
            equipment = Equipment(type="desktop", brand="HP", model="800", serial_number="S1")
            db.add_all([client, equipment])
            db.flush()
            order = ServiceOrder(
                order_number="ORD-2026-1000",
                client_id=client.id,
                equipment_id=equipment.id,
                description="Noise",
                photos=[],
            )
            db.add(order)
            db.commit()
            return order.id

    def test_health_is_public(self):
        r = self.client.get("/health")
        self.assertEqual(r.status_code, 200)
        self.assertEqual(r.json(), {"status": "ok"})
        self.assertEqual(r.headers.get("X-Content-Type-Options"), "nosniff")

    def test_api_requires_token(self):
        for path in ("/api/service-orders", "/api/clients", "/api/dashboard/stats"):
            r = self.client.get(path)
            self.assertEqual(r.status_code, 401, path)

    def test_invalid_token_is_rejected(self):
        r = self.client.get("/api/service-orders", headers=self._headers(secret="wrong-secret"))
        self.assertEqual(r.status_code, 401)
        self.assertEqual(r.json()["detail"], "Invalid token")

    def test_any_role_can_read_orders(self):
        order_id = self._seed_order()
        for role in ("ADMIN", "MANAGER", "TECHNICIAN", "USER"):
            r = self.client.get(f"/api/service-orders/{order_id}", headers=self._headers(role))
            self.assertEqual(r.status_code, 200, role)

    def test_users_endpoint_is_admin_only(self):
        for role in ("MANAGER", "TECHNICIAN", "USER"):
            r = self.client.get("/api/users", headers=self._headers(role))
            self.assertEqual(r.status_code, 403, role)

        r = self.client.get("/api/users", headers=self._headers("ADMIN"))
        self.assertEqual(r.status_code, 200)
        self.assertEqual(r.json(), [])

    def test_technician_create_requires_manager(self):
        r = self.client.post(
            "/api/technicians",
            json={"userId": 1, "specialization": "Hardware"},
            headers=self._headers("TECHNICIAN"),
        )
        self.assertEqual(r.status_code, 403)

    def test_company_settings_write_is_admin_only(self):
        body = {"name": "X", "address": "Y", "phone": "1", "email": "a@b.c"}
        r = self.client.put("/api/company-settings", json=body, headers=self._headers("USER"))
        self.assertEqual(r.status_code, 403)

        r = self.client.put("/api/company-settings", json=body, headers=self._headers("ADMIN"))
        self.assertEqual(r.status_code, 200)


if __name__ == "__main__":
    unittest.main()
