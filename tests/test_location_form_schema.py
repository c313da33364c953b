from __future__ import annotations

import unittest
import uuid

from pydantic import ValidationError

from staffhub.schemas import MAX_RADIUS, GeofenceLocationForm, SignUpCredentials


def _payload(**overrides):  # type: ignore[no-untyped-def]
    payload = {
        "name": "HQ",
        "address": "1 Main Street",
        "latitude": -6.2,
        "longitude": 106.8,
        "radius": 100,
    }
    payload.update(overrides)
    return payload


class GeofenceLocationFormTests(unittest.TestCase):
    def _messages(self, **overrides) -> list[str]:  # type: ignore[no-untyped-def]
        with self.assertRaises(ValidationError) as ctx:
            GeofenceLocationForm.model_validate(_payload(**overrides))
        return [str(item["msg"]) for item in ctx.exception.errors()]

    def test_valid_payload_trims_text(self) -> None:
        form = GeofenceLocationForm.model_validate(_payload(name="  HQ  ", address=" 1 Main Street "))
        self.assertEqual(form.name, "HQ")
        self.assertEqual(form.address, "1 Main Street")
        self.assertEqual(form.assigned_employees, [])

    def test_latitude_out_of_range(self) -> None:
        messages = self._messages(latitude=95)
        self.assertTrue(any("Latitude must be between -90 and 90" in item for item in messages))

    def test_longitude_out_of_range(self) -> None:
        messages = self._messages(longitude=-180.5)
        self.assertTrue(any("Longitude must be between -180 and 180" in item for item in messages))

    def test_boundaries_are_inclusive(self) -> None:
        form = GeofenceLocationForm.model_validate(_payload(latitude=-90, longitude=180))
        self.assertEqual((form.latitude, form.longitude), (-90, 180))

    def test_radius_must_be_positive(self) -> None:
        for radius in (0, -5):
            with self.subTest(radius=radius):
                messages = self._messages(radius=radius)
                self.assertTrue(any("Radius must be greater than 0" in item for item in messages))

    def test_radius_must_be_whole_meters(self) -> None:
        self._messages(radius=12.5)

    def test_radius_is_capped_at_the_column_range(self) -> None:
        self.assertEqual(GeofenceLocationForm.model_validate(_payload(radius=MAX_RADIUS)).radius, MAX_RADIUS)
        for radius in (MAX_RADIUS + 1, 10**20):
            with self.subTest(radius=radius):
                messages = self._messages(radius=radius)
                self.assertTrue(any(f"Radius must be at most {MAX_RADIUS}" in item for item in messages))

    def test_booleans_are_not_numbers(self) -> None:
        messages = self._messages(latitude=True, longitude=False, radius=True)
        self.assertTrue(any("Latitude must be a number" in item for item in messages))
        self.assertTrue(any("Longitude must be a number" in item for item in messages))
        self.assertTrue(any("Radius must be a number" in item for item in messages))

    def test_blank_name_and_address_are_required(self) -> None:
        messages = self._messages(name="   ", address="")
        self.assertTrue(any("Name is required" in item for item in messages))
        self.assertTrue(any("Address is required" in item for item in messages))

    def test_numeric_strings_are_accepted(self) -> None:
        form = GeofenceLocationForm.model_validate(_payload(latitude="-6.2088", longitude="106.8456", radius="250"))
        self.assertAlmostEqual(form.latitude, -6.2088)
        self.assertEqual(form.radius, 250)

    def test_non_finite_numbers_are_rejected(self) -> None:
        self._messages(latitude=float("nan"))
        self._messages(longitude=float("inf"))

    def test_camel_case_selection_alias_and_null(self) -> None:
        employee_id = uuid.uuid4()
        form = GeofenceLocationForm.model_validate(_payload(assignedEmployees=[str(employee_id)]))
        self.assertEqual(form.assigned_employees, [employee_id])
        self.assertEqual(GeofenceLocationForm.model_validate(_payload(assigned_employees=None)).assigned_employees, [])


class SignUpCredentialsTests(unittest.TestCase):
    def test_short_password_is_rejected(self) -> None:
        with self.assertRaises(ValidationError):
            SignUpCredentials(email="ayu@example.com", password="12345")

    def test_confirmation_must_match(self) -> None:
        with self.assertRaises(ValidationError) as ctx:
            SignUpCredentials(email="ayu@example.com", password="secret123", confirm_password="secret124")
        self.assertIn("Passwords do not match", str(ctx.exception))


if __name__ == "__main__":
    unittest.main()
