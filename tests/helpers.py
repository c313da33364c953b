from __future__ import annotations

import unittest
from typing import Any

from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from staffhub import models  # noqa: F401
from staffhub.db import Base, SessionLocal, engine
from staffhub.models import Employee
from staffhub.schemas import GeofenceLocationForm
from staffhub.security import sign_in_throttle
from staffhub.settings import get_settings

TEST_PASSWORD = "secret123"


def reset_database() -> None:
    Base.metadata.drop_all(engine)
    Base.metadata.create_all(engine)


def api_headers(token: str | None = None) -> dict[str, str]:
    headers = {"apikey": get_settings().public_api_key}
    if token:
        headers["Authorization"] = f"Bearer {token}"
    return headers


def make_employee(db: Session, name: str, code: str, **kwargs: Any) -> Employee:
    employee = Employee(name=name, employee_id=code, **kwargs)
    db.add(employee)
    db.commit()
    db.refresh(employee)
    return employee


def location_form(**overrides: Any) -> GeofenceLocationForm:
    payload: dict[str, Any] = {
        "name": "HQ",
        "address": "1 Main Street",
        "latitude": -6.2,
        "longitude": 106.8,
        "radius": 100,
        "assigned_employees": [],
    }
    payload.update(overrides)
    return GeofenceLocationForm.model_validate(payload)


class DatabaseTestCase(unittest.TestCase):
    def setUp(self) -> None:
        reset_database()
        self.db = SessionLocal()

    def tearDown(self) -> None:
        self.db.close()
        Base.metadata.drop_all(engine)


class ApiTestCase(DatabaseTestCase):
    """Runs the real app against the in-memory database without startup guards."""

    def setUp(self) -> None:
        super().setUp()
        sign_in_throttle.reset()
        from staffhub.main import app

        self.app = app
        self.client = TestClient(app)

    def tearDown(self) -> None:
        self.app.dependency_overrides.clear()
        sign_in_throttle.reset()
        super().tearDown()

    def register(self, email: str = "admin@example.com", password: str = TEST_PASSWORD) -> None:
        response = self.client.post(
            "/api/auth/sign-up",
            data={"email": email, "password": password},
            headers=api_headers(),
        )
        self.assertEqual(response.status_code, 201, response.text)

    def sign_in(self, email: str = "admin@example.com", password: str = TEST_PASSWORD) -> str:
        response = self.client.post(
            "/api/auth/sign-in",
            json={"email": email, "password": password},
            headers=api_headers(),
        )
        self.assertEqual(response.status_code, 200, response.text)
        return response.json()["access_token"]

    def register_and_sign_in(self, email: str = "admin@example.com") -> str:
        self.register(email)
        return self.sign_in(email)
