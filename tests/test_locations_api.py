from __future__ import annotations

import unittest
import uuid
from io import BytesIO

from openpyxl import load_workbook
from sqlalchemy import select

from helpers import ApiTestCase, api_headers, make_employee
from staffhub.models import AuditLog


class LocationsEndpointTests(ApiTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.token = self.register_and_sign_in()
        self.headers = api_headers(self.token)
        self.ayu = make_employee(self.db, "Ayu Lestari", "E-001")
        self.budi = make_employee(self.db, "Budi Santoso", "E-002")

    def _create(self, **overrides):  # type: ignore[no-untyped-def]
        payload = {
            "name": "HQ",
            "address": "1 Main Street",
            "latitude": -6.2,
            "longitude": 106.8,
            "radius": 100,
            "assignedEmployees": [str(self.ayu.id), str(self.budi.id)],
        }
        payload.update(overrides)
        response = self.client.post("/api/locations", json=payload, headers=self.headers)
        self.assertEqual(response.status_code, 201, response.text)
        return response.json()

    def test_create_read_update_delete(self) -> None:
        created = self._create()
        location_id = created["id"]
        self.assertEqual(created["assigned_employees"], [str(self.ayu.id), str(self.budi.id)])

        fetched = self.client.get(f"/api/locations/{location_id}", headers=self.headers)
        self.assertEqual(fetched.status_code, 200)
        self.assertEqual(
            [item["employee_id"] for item in fetched.json()["employee_details"]],
            ["E-001", "E-002"],
        )

        updated = self.client.put(
            f"/api/locations/{location_id}",
            json={
                "name": "HQ North",
                "address": "1 Main Street",
                "latitude": "-6.21",
                "longitude": "106.81",
                "radius": "250",
                "assigned_employees": [str(self.ayu.id)],
            },
            headers=self.headers,
        )
        self.assertEqual(updated.status_code, 200, updated.text)
        self.assertEqual(updated.json()["radius"], 250)
        assignments = self.client.get(f"/api/locations/{location_id}/assignments", headers=self.headers)
        self.assertEqual(assignments.json()["employee_ids"], [str(self.ayu.id)])

        deleted = self.client.delete(f"/api/locations/{location_id}", headers=self.headers)
        self.assertEqual(deleted.status_code, 200)
        missing = self.client.get(f"/api/locations/{location_id}", headers=self.headers)
        self.assertEqual(missing.status_code, 404)
        self.assertEqual(missing.json()["error"]["code"], "LOCATION_NOT_FOUND")

        self.db.expire_all()
        actions = set(self.db.scalars(select(AuditLog.action)).all())
        self.assertTrue({"LOCATION_CREATED", "LOCATION_UPDATED", "LOCATION_DELETED"} <= actions)

    def test_invalid_coordinates_are_rejected(self) -> None:
        response = self.client.post(
            "/api/locations",
            json={"name": "HQ", "address": "x", "latitude": 95, "longitude": 0, "radius": 100},
            headers=self.headers,
        )

        self.assertEqual(response.status_code, 422)
        error = response.json()["error"]
        self.assertEqual(error["code"], "VALIDATION_ERROR")
        self.assertIn("Latitude must be between -90 and 90", error["message"])

    def test_out_of_range_radius_is_rejected_before_writing(self) -> None:
        response = self.client.post(
            "/api/locations",
            json={"name": "HQ", "address": "x", "latitude": 0, "longitude": 0, "radius": 2_147_483_648},
            headers=self.headers,
        )

        self.assertEqual(response.status_code, 422, response.text)
        error = response.json()["error"]
        self.assertEqual(error["code"], "VALIDATION_ERROR")
        self.assertIn("Radius must be at most", error["message"])
        listed = self.client.get("/api/locations", headers=self.headers)
        self.assertEqual(listed.json(), [])

    def test_unknown_employee_is_rejected(self) -> None:
        response = self.client.post(
            "/api/locations",
            json={
                "name": "HQ",
                "address": "x",
                "latitude": 0,
                "longitude": 0,
                "radius": 10,
                "assigned_employees": [str(uuid.uuid4())],
            },
            headers=self.headers,
        )

        self.assertEqual(response.status_code, 422)
        self.assertEqual(response.json()["error"]["code"], "UNKNOWN_EMPLOYEE")

    def test_list_search_matches_name_or_address(self) -> None:
        self._create(name="Main Office", address="1 Harbour Road")
        self._create(name="Depot", address="12 Office Park")
        self._create(name="Warehouse", address="7 Dock Lane")

        response = self.client.get("/api/locations", params={"q": "OFFICE"}, headers=self.headers)

        self.assertEqual(response.status_code, 200)
        self.assertEqual(sorted(item["name"] for item in response.json()), ["Depot", "Main Office"])

    def test_requires_signed_in_user(self) -> None:
        response = self.client.get("/api/locations", headers=api_headers())

        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json()["error"]["code"], "INVALID_TOKEN")

    def test_map_view_endpoint_highlights_selection(self) -> None:
        first = self._create(name="Main Office", latitude=-6.17, longitude=106.82)
        self._create(name="Depot", latitude=-6.3, longitude=106.9)

        response = self.client.get(
            "/api/locations/map",
            params={"selected_id": first["id"]},
            headers=self.headers,
        )

        self.assertEqual(response.status_code, 200, response.text)
        body = response.json()
        self.assertEqual(body["zoom"], 15)
        self.assertEqual(body["center"], [-6.17, 106.82])
        selected = [item for item in body["features"] if item["selected"]]
        self.assertEqual([item["name"] for item in selected], ["Main Office"])

    def test_export_xlsx(self) -> None:
        self._create(name="Main Office")

        response = self.client.get("/api/locations/export.xlsx", headers=self.headers)

        self.assertEqual(response.status_code, 200)
        self.assertIn("geofence-locations.xlsx", response.headers["content-disposition"])
        ws = load_workbook(BytesIO(response.content))["Locations"]
        values = [cell.value for row in ws.iter_rows() for cell in row]
        self.assertIn("Main Office", values)
        self.assertIn("Ayu Lestari (E-001), Budi Santoso (E-002)", values)


class EmployeesEndpointTests(ApiTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.headers = api_headers(self.register_and_sign_in())

    def test_create_and_search_employees(self) -> None:
        created = self.client.post(
            "/api/employees",
            json={"name": "Ayu Lestari", "employee_id": "E-001"},
            headers=self.headers,
        )
        self.assertEqual(created.status_code, 201, created.text)
        self.client.post("/api/employees", json={"name": "Budi Santoso", "employee_id": "E-002"}, headers=self.headers)

        response = self.client.get("/api/employees", params={"q": "e-002"}, headers=self.headers)

        self.assertEqual([item["name"] for item in response.json()], ["Budi Santoso"])

    def test_duplicate_employee_code_conflicts(self) -> None:
        payload = {"name": "Ayu Lestari", "employee_id": "E-001"}
        self.client.post("/api/employees", json=payload, headers=self.headers)

        response = self.client.post("/api/employees", json=payload, headers=self.headers)

        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.json()["error"]["code"], "EMPLOYEE_ID_EXISTS")

    def test_replace_employee_locations(self) -> None:
        employee = make_employee(self.db, "Ayu Lestari", "E-001")
        location = self.client.post(
            "/api/locations",
            json={"name": "Depot", "address": "x", "latitude": 0, "longitude": 0, "radius": 10},
            headers=self.headers,
        ).json()

        response = self.client.put(
            f"/api/employees/{employee.id}/locations",
            json={"location_ids": [location["id"], location["id"]]},
            headers=self.headers,
        )

        self.assertEqual(response.status_code, 200, response.text)
        self.assertEqual(response.json()["location_ids"], [location["id"]])
        listed = self.client.get(f"/api/employees/{employee.id}/locations", headers=self.headers)
        self.assertEqual(listed.json()["location_ids"], [location["id"]])

    def test_branches(self) -> None:
        created = self.client.post("/api/branches", json={"name": "Jakarta"}, headers=self.headers)
        duplicate = self.client.post("/api/branches", json={"name": "Jakarta"}, headers=self.headers)

        self.assertEqual(created.status_code, 201, created.text)
        self.assertEqual(duplicate.status_code, 409)
        self.assertEqual(
            [item["name"] for item in self.client.get("/api/branches", headers=self.headers).json()],
            ["Jakarta"],
        )


if __name__ == "__main__":
    unittest.main()
