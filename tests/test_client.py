from __future__ import annotations

import os
import unittest
import uuid
from datetime import datetime, timezone
from unittest.mock import MagicMock, patch

import requests

from helpers import TEST_PASSWORD, ApiTestCase, make_employee
from staffhub.client.backend import BackendClient, BackendError
from staffhub.client.config import ClientConfig
from staffhub.client.dialog import DialogMode, DialogState, GeofenceLocationDialog
from staffhub.client.locations_page import DELETE_CONFIRMATION, LocationsPage, Tab
from staffhub.client.notifications import Notifier, Variant
from staffhub.client.router import AppRouter, Placeholder
from staffhub.client.selector import EmployeeSelector
from staffhub.errors import ConfigurationError
from staffhub.schemas import EmployeeRead, GeofenceLocationRead
from staffhub.settings import get_settings


def _employee(name: str, code: str) -> EmployeeRead:
    return EmployeeRead(id=uuid.uuid4(), name=name, employee_id=code)


def _location(name: str = "HQ", assigned: list[uuid.UUID] | None = None) -> GeofenceLocationRead:
    now = datetime(2024, 7, 10, tzinfo=timezone.utc)
    return GeofenceLocationRead(
        id=uuid.uuid4(),
        name=name,
        address="1 Main Street",
        latitude=-6.2,
        longitude=106.8,
        radius=100,
        created_at=now,
        updated_at=now,
        assigned_employees=assigned or [],
    )


class NotifierTests(unittest.TestCase):
    def test_success_and_error_variants(self) -> None:
        notifier = Notifier()

        ok = notifier.success("Location added successfully")
        failed = notifier.error("Failed to delete location")

        self.assertEqual((ok.title, ok.variant), ("Success", Variant.DEFAULT))
        self.assertEqual((failed.title, failed.variant), ("Error", Variant.DESTRUCTIVE))
        self.assertIs(notifier.latest, failed)

    def test_dismiss_and_limit(self) -> None:
        notifier = Notifier(limit=2)
        first = notifier.notify("one")
        notifier.notify("two")
        third = notifier.notify("three")

        self.assertNotIn(first, notifier.notifications)
        notifier.dismiss(third.id)
        self.assertEqual([item.title for item in notifier.notifications], ["two"])
        notifier.clear()
        self.assertIsNone(notifier.latest)


class EmployeeSelectorTests(unittest.TestCase):
    def setUp(self) -> None:
        self.ayu = _employee("Ayu Lestari", "E-001")
        self.budi = _employee("Budi Santoso", "E-002")
        self.selector = EmployeeSelector([self.ayu, self.budi])

    def test_toggle_keeps_insertion_order(self) -> None:
        self.selector.toggle(self.budi.id)
        self.selector.toggle(self.ayu.id)

        self.assertEqual(self.selector.selected, [self.budi.id, self.ayu.id])
        self.assertEqual(self.selector.summary(), "2 employees selected")

        self.selector.toggle(self.budi.id)
        self.assertEqual(self.selector.selected, [self.ayu.id])
        self.assertEqual(self.selector.summary(), "1 employee selected")

    def test_search_by_name_or_code(self) -> None:
        self.selector.search = "budi"
        self.assertEqual(self.selector.visible(), [self.budi])
        self.selector.search = "e-001"
        self.assertEqual(self.selector.visible(), [self.ayu])

    def test_selected_ids_missing_from_list_are_kept(self) -> None:
        unknown = uuid.uuid4()
        self.selector.set_selected([unknown, unknown])

        self.assertEqual(self.selector.selected, [unknown])
        self.assertTrue(self.selector.is_selected(unknown))
        self.selector.clear()
        self.assertEqual(self.selector.summary(), "Select employees")


class GeofenceLocationDialogTests(unittest.TestCase):
    def setUp(self) -> None:
        self.backend = MagicMock(spec=BackendClient)
        self.backend.list_employees.return_value = []
        self.backend.list_location_employee_ids.return_value = []
        self.notifier = Notifier()
        self.saved: list[GeofenceLocationRead] = []
        self.dialog = GeofenceLocationDialog(self.backend, self.notifier, on_success=self.saved.append)

    def _fill(self) -> None:
        for field, value in {"name": "HQ", "address": "1 Main Street", "latitude": "-6.2", "longitude": "106.8"}.items():
            self.dialog.set_value(field, value)

    def test_open_create_defaults(self) -> None:
        self.dialog.open_create()

        self.assertEqual(self.dialog.title, "Add New Location")
        self.assertEqual(self.dialog.values["radius"], 100)
        self.assertEqual(self.dialog.values["latitude"], 0)
        self.backend.list_employees.assert_called_once()
        self.backend.list_location_employee_ids.assert_not_called()

    def test_validation_errors_block_submit(self) -> None:
        self.dialog.open_create(autoload=False)
        self._fill()
        self.dialog.set_value("radius", 0)
        self.dialog.set_value("latitude", 91)

        self.assertIsNone(self.dialog.submit())

        self.assertEqual(self.dialog.errors["radius"], "Radius must be greater than 0")
        self.assertEqual(self.dialog.errors["latitude"], "Latitude must be between -90 and 90")
        self.backend.create_location.assert_not_called()
        self.assertIs(self.dialog.state, DialogState.OPEN)

    def test_successful_create_closes_and_notifies(self) -> None:
        created = _location()
        self.backend.create_location.return_value = created
        self.dialog.open_create(autoload=False)
        self._fill()
        employee_id = uuid.uuid4()
        self.dialog.selector.toggle(employee_id)

        result = self.dialog.submit()

        self.assertIs(result, created)
        form = self.backend.create_location.call_args.args[0]
        self.assertEqual(form.assigned_employees, [employee_id])
        self.assertAlmostEqual(form.latitude, -6.2)
        self.assertIs(self.dialog.state, DialogState.CLOSED)
        self.assertEqual(self.notifier.latest.description, "Location added successfully")
        self.assertEqual(self.saved, [created])

    def test_failed_save_stays_open_with_error(self) -> None:
        self.backend.update_location.side_effect = BackendError(500, "INTERNAL_ERROR", "database unavailable")
        self.dialog.open_edit(_location(), autoload=False)

        self.assertIsNone(self.dialog.submit())

        self.assertIs(self.dialog.state, DialogState.OPEN)
        self.assertEqual(self.dialog.error, "database unavailable")
        self.assertEqual(self.notifier.latest.description, "Failed to save location: database unavailable")
        self.assertEqual(self.notifier.latest.variant, Variant.DESTRUCTIVE)
        self.assertEqual(self.saved, [])

    def test_second_submit_is_refused_while_saving(self) -> None:
        self.dialog.open_create(autoload=False)
        self._fill()
        self.dialog.state = DialogState.SUBMITTING

        self.assertIsNone(self.dialog.submit())
        self.backend.create_location.assert_not_called()

    def test_stale_side_loads_are_dropped(self) -> None:
        first = _location("First")
        second = _location("Second")
        old_generation = self.dialog.open_edit(first, autoload=False)
        new_generation = self.dialog.open_edit(second, autoload=False)

        self.assertFalse(self.dialog.apply_assignments(old_generation, [uuid.uuid4()]))
        self.assertEqual(self.dialog.selector.selected, [])
        self.assertTrue(self.dialog.apply_assignments(new_generation, []))

        self.dialog.close()
        self.assertFalse(self.dialog.apply_employees(new_generation, [_employee("Late", "E-999")]))
        self.assertEqual(self.dialog.selector.employees, [])

    def test_edit_prefills_and_loads_assignments(self) -> None:
        employee_id = uuid.uuid4()
        self.backend.list_location_employee_ids.return_value = [employee_id]
        location = _location(assigned=[])

        self.dialog.open_edit(location)

        self.assertIs(self.dialog.mode, DialogMode.EDIT)
        self.assertEqual(self.dialog.title, "Edit Location")
        self.assertEqual(self.dialog.values["name"], "HQ")
        self.assertEqual(self.dialog.selector.selected, [employee_id])

    def test_failed_assignment_load_names_the_assignment_set(self) -> None:
        self.backend.list_employees.return_value = [_employee("Ayu Lestari", "E-001")]
        self.backend.list_location_employee_ids.side_effect = BackendError(0, "NETWORK_ERROR", "offline")

        self.dialog.open_edit(_location())

        self.assertEqual(self.notifier.latest.description, "Failed to load assigned employees")
        self.assertEqual(len(self.dialog.selector.employees), 1)
        self.assertFalse(self.dialog.loading)

    def test_failed_employee_load_names_the_employee_list(self) -> None:
        self.backend.list_employees.side_effect = BackendError(0, "NETWORK_ERROR", "offline")

        self.dialog.open_create()

        self.assertEqual(self.notifier.latest.description, "Failed to load employees")
        self.assertFalse(self.dialog.loading)

    def test_pick_on_map_only_while_open(self) -> None:
        self.assertFalse(self.dialog.pick_on_map(-6.1, 106.7))
        self.dialog.open_create(autoload=False)

        self.assertTrue(self.dialog.pick_on_map(-6.1, 106.7))
        self.assertEqual((self.dialog.values["latitude"], self.dialog.values["longitude"]), (-6.1, 106.7))


class LocationsPageUnitTests(unittest.TestCase):
    def setUp(self) -> None:
        self.backend = MagicMock(spec=BackendClient)
        self.notifier = Notifier()

    def test_failed_refresh_keeps_previous_list(self) -> None:
        page = LocationsPage(self.backend, self.notifier)
        existing = [_location("HQ")]
        page.locations = list(existing)
        self.backend.list_locations.side_effect = BackendError(0, "NETWORK_ERROR", "offline")

        page.refresh()

        self.assertEqual(page.locations, existing)
        self.assertFalse(page.loading)
        self.assertEqual(self.notifier.latest.description, "Failed to load geofence locations")

    def test_delete_requires_confirmation(self) -> None:
        prompts: list[str] = []
        page = LocationsPage(self.backend, self.notifier, confirm=lambda text: prompts.append(text) or False)

        self.assertFalse(page.delete(uuid.uuid4()))

        self.assertEqual(prompts, [DELETE_CONFIRMATION])
        self.backend.delete_location.assert_not_called()

    def test_failed_delete_notifies(self) -> None:
        self.backend.delete_location.side_effect = BackendError(500, "INTERNAL_ERROR", "boom")
        page = LocationsPage(self.backend, self.notifier)

        self.assertFalse(page.delete(uuid.uuid4(), confirm=True))
        self.assertEqual(self.notifier.latest.description, "Failed to delete location")

    def test_search_tabs_and_first_match(self) -> None:
        page = LocationsPage(self.backend, self.notifier)
        office = _location("Main Office")
        page.locations = [_location("Warehouse"), office]

        self.assertEqual(page.search("office"), [office])
        self.assertEqual(page.pan_to_first_match(), office)
        self.assertEqual(page.selected_id, office.id)
        self.assertEqual(page.switch_tab("map"), Tab.MAP)
        self.assertEqual(page.map_view().zoom, 15)
        self.assertEqual([row["name"] for row in page.table_rows()], ["Main Office"])


class BackendClientTests(ApiTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.backend = BackendClient("http://testserver", get_settings().public_api_key, http=self.client)

    def _signed_in(self) -> BackendClient:
        self.backend.sign_up("admin@example.com", TEST_PASSWORD)
        self.backend.sign_in("admin@example.com", TEST_PASSWORD)
        return self.backend

    def test_error_envelope_becomes_backend_error(self) -> None:
        with self.assertRaises(BackendError) as ctx:
            self.backend.sign_in("nobody@example.com", "wrong")

        self.assertEqual(ctx.exception.status_code, 400)
        self.assertEqual(ctx.exception.code, "INVALID_CREDENTIALS")
        self.assertIsNone(self.backend.session)

    def test_network_failure_becomes_backend_error(self) -> None:
        http = MagicMock()
        http.request.side_effect = requests.ConnectionError("connection refused")
        backend = BackendClient("http://staffhub.invalid", "key", http=http)

        with self.assertRaises(BackendError) as ctx:
            backend.list_locations()

        self.assertEqual(ctx.exception.code, "NETWORK_ERROR")

    def test_session_lifecycle(self) -> None:
        backend = self._signed_in()
        self.assertEqual(backend.get_user().email, "admin@example.com")
        self.assertEqual(backend.get_session().user.email, "admin@example.com")

        backend.sign_out()

        self.assertIsNone(backend.session)
        self.assertIsNone(backend.get_user())

    def test_locations_page_end_to_end(self) -> None:
        backend = self._signed_in()
        ayu = make_employee(self.db, "Ayu Lestari", "E-001")
        notifier = Notifier()
        page = LocationsPage(backend, notifier, confirm=lambda _text: True)

        page.add()
        self.assertEqual([item.name for item in page.dialog.selector.employees], ["Ayu Lestari"])
        for field, value in {"name": "HQ", "address": "1 Main Street", "latitude": -6.2, "longitude": 106.8}.items():
            page.dialog.set_value(field, value)
        page.dialog.selector.toggle(ayu.id)
        created = page.submit()

        self.assertIsNotNone(created)
        self.assertEqual(notifier.latest.description, "Location added successfully")
        self.assertEqual([item.name for item in page.locations], ["HQ"])
        self.assertEqual(page.locations[0].assigned_employees, [ayu.id])

        page.edit(created.id)
        self.assertEqual(page.dialog.selector.selected, [ayu.id])
        page.dialog.selector.toggle(ayu.id)
        page.dialog.set_value("radius", 250)
        page.submit()
        self.assertEqual(notifier.latest.description, "Location updated successfully")
        self.assertEqual(page.locations[0].assigned_employees, [])
        self.assertEqual(page.locations[0].radius, 250)

        self.assertIsNotNone(page.export_xlsx())
        self.assertTrue(page.delete(created.id))
        self.assertEqual(notifier.latest.description, "Location deleted successfully")
        self.assertEqual(page.locations, [])


class AppRouterTests(ApiTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.backend = BackendClient("http://testserver", get_settings().public_api_key, http=self.client)

    def test_protected_route_redirects_to_login(self) -> None:
        router = AppRouter(self.backend)

        navigation = router.navigate("/locations")

        self.assertTrue(navigation.redirected)
        self.assertEqual(navigation.path, "/login")
        self.assertEqual(navigation.page, Placeholder("login"))

    def test_locations_page_is_loaded_once(self) -> None:
        self.backend.sign_up("admin@example.com", TEST_PASSWORD)
        self.backend.sign_in("admin@example.com", TEST_PASSWORD)
        router = AppRouter(self.backend)
        self.assertNotIn("locations", router.pages)

        first = router.navigate("/locations")
        second = router.navigate("/locations/")

        self.assertIsInstance(first.page, LocationsPage)
        self.assertIs(first.page, second.page)
        self.assertFalse(first.redirected)


class ClientConfigTests(unittest.TestCase):
    def test_missing_values_fail_fast(self) -> None:
        with patch.dict(os.environ, {"STAFFHUB_URL": "", "STAFFHUB_API_KEY": ""}):
            with self.assertRaises(ConfigurationError) as ctx:
                ClientConfig.from_env()

        self.assertEqual(ctx.exception.missing, ["STAFFHUB_URL", "STAFFHUB_API_KEY"])

    def test_values_are_read_from_environment(self) -> None:
        with patch.dict(os.environ, {"STAFFHUB_URL": "https://staffhub.example.com", "STAFFHUB_API_KEY": "anon"}):
            config = ClientConfig.from_env()

        backend = BackendClient.from_config(config, http=MagicMock())
        self.assertEqual(backend.url, "https://staffhub.example.com")
        self.assertEqual(backend.api_key, "anon")


if __name__ == "__main__":
    unittest.main()
