from __future__ import annotations

import enum
import logging
import uuid
from collections.abc import Callable
from typing import Any

from pydantic import ValidationError

from staffhub.client.backend import BackendClient, BackendError
from staffhub.client.notifications import Notifier
from staffhub.client.selector import EmployeeSelector
from staffhub.schemas import EmployeeRead, GeofenceLocationForm, GeofenceLocationRead
from staffhub.services.map_view import pick_coordinates

logger = logging.getLogger("staffhub.client.dialog")

DEFAULT_RADIUS = 100


class DialogState(str, enum.Enum):
    CLOSED = "closed"
    OPEN = "open"
    SUBMITTING = "submitting"


class DialogMode(str, enum.Enum):
    CREATE = "create"
    EDIT = "edit"


def _blank_values() -> dict[str, Any]:
    return {"name": "", "address": "", "latitude": 0, "longitude": 0, "radius": DEFAULT_RADIUS}


def field_errors(exc: ValidationError) -> dict[str, str]:
    errors: dict[str, str] = {}
    for item in exc.errors():
        loc = item.get("loc") or ("form",)
        field = str(loc[0])
        if field == "assignedEmployees":
            field = "assigned_employees"
        errors.setdefault(field, str(item.get("msg") or "Invalid value").removeprefix("Value error, "))
    return errors


class GeofenceLocationDialog:
    def __init__(
        self,
        backend: BackendClient,
        notifier: Notifier,
        on_success: Callable[[GeofenceLocationRead], None] | None = None,
    ):
        self.backend = backend
        self.notifier = notifier
        self.on_success = on_success
        self.state = DialogState.CLOSED
        self.mode = DialogMode.CREATE
        # Bumped on every open and close; side-loads tagged with an older value are dropped.
        self.generation = 0
        self.location_id: uuid.UUID | None = None
        self.values: dict[str, Any] = _blank_values()
        self.errors: dict[str, str] = {}
        self.error: str | None = None
        self.loading = False
        self.selector = EmployeeSelector()

    @property
    def is_open(self) -> bool:
        return self.state is not DialogState.CLOSED

    @property
    def title(self) -> str:
        return "Edit Location" if self.mode is DialogMode.EDIT else "Add New Location"

    def _reset(self, mode: DialogMode) -> int:
        self.generation += 1
        self.mode = mode
        self.state = DialogState.OPEN
        self.errors = {}
        self.error = None
        self.selector = EmployeeSelector()
        return self.generation

    def open_create(self, *, autoload: bool = True) -> int:
        generation = self._reset(DialogMode.CREATE)
        self.location_id = None
        self.values = _blank_values()
        if autoload:
            self.load()
        return generation

    def open_edit(self, location: GeofenceLocationRead, *, autoload: bool = True) -> int:
        generation = self._reset(DialogMode.EDIT)
        self.location_id = location.id
        self.values = {
            "name": location.name,
            "address": location.address or "",
            "latitude": location.latitude,
            "longitude": location.longitude,
            "radius": location.radius,
        }
        self.selector.set_selected(location.assigned_employees or [])
        if autoload:
            self.load()
        return generation

    def close(self) -> None:
        self.generation += 1
        self.state = DialogState.CLOSED
        self.loading = False

    def _is_current(self, generation: int, what: str) -> bool:
        if generation != self.generation or self.state is DialogState.CLOSED:
            logger.info(
                "dialog_stale_response_dropped",
                extra={"what": what, "generation": generation, "current_generation": self.generation},
            )
            return False
        return True

    def apply_employees(self, generation: int, employees: list[EmployeeRead]) -> bool:
        if not self._is_current(generation, "employees"):
            return False
        self.selector.set_employees(employees)
        return True

    def apply_assignments(self, generation: int, employee_ids: list[uuid.UUID]) -> bool:
        if not self._is_current(generation, "assignments"):
            return False
        self.selector.set_selected(employee_ids)
        return True

    def _side_load(
        self,
        generation: int,
        what: str,
        fetch: Callable[[], Any],
        apply: Callable[[int, Any], bool],
    ) -> None:
        try:
            result = fetch()
        except BackendError as exc:
            logger.warning("dialog_load_failed", extra={"what": what, "code": exc.code, "generation": generation})
            if generation == self.generation:
                self.notifier.error(f"Failed to load {what}")
            return
        apply(generation, result)

    def load(self) -> None:
        """Side-load the employee list and, when editing, the current assignment set."""
        generation = self.generation
        location_id = self.location_id
        self.loading = True
        try:
            self._side_load(generation, "employees", self.backend.list_employees, self.apply_employees)
            if self.mode is DialogMode.EDIT and location_id is not None:
                self._side_load(
                    generation,
                    "assigned employees",
                    lambda: self.backend.list_location_employee_ids(location_id),
                    self.apply_assignments,
                )
        finally:
            if generation == self.generation:
                self.loading = False

    def set_value(self, field: str, value: Any) -> None:
        if field not in self.values:
            raise KeyError(field)
        self.values[field] = value
        self.errors.pop(field, None)

    def pick_on_map(self, latitude: float, longitude: float) -> bool:
        picked = pick_coordinates(latitude, longitude, self.is_open)
        if picked is None:
            return False
        self.values["latitude"], self.values["longitude"] = picked
        self.errors.pop("latitude", None)
        self.errors.pop("longitude", None)
        return True

    def validate(self) -> GeofenceLocationForm | None:
        try:
            form = GeofenceLocationForm.model_validate(
                {**self.values, "assigned_employees": self.selector.selected}
            )
        except ValidationError as exc:
            self.errors = field_errors(exc)
            return None
        self.errors = {}
        return form

    def submit(self) -> GeofenceLocationRead | None:
        if self.state is DialogState.SUBMITTING:
            logger.info("dialog_submit_refused", extra={"generation": self.generation})
            return None
        if self.state is DialogState.CLOSED:
            return None

        form = self.validate()
        if form is None:
            return None

        self.state = DialogState.SUBMITTING
        self.error = None
        try:
            if self.mode is DialogMode.EDIT and self.location_id is not None:
                saved = self.backend.update_location(self.location_id, form)
                message = "Location updated successfully"
            else:
                saved = self.backend.create_location(form)
                message = "Location added successfully"
        except BackendError as exc:
            logger.warning("dialog_save_failed", extra={"code": exc.code, "status_code": exc.status_code})
            self.state = DialogState.OPEN
            self.error = exc.message
            self.notifier.error(f"Failed to save location: {exc.message}")
            return None

        self.close()
        self.notifier.success(message)
        if self.on_success is not None:
            self.on_success(saved)
        return saved
