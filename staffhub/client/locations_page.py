from __future__ import annotations

import enum
import logging
import uuid
from collections.abc import Callable

from staffhub.client.backend import BackendClient, BackendError
from staffhub.client.dialog import GeofenceLocationDialog
from staffhub.client.notifications import Notifier
from staffhub.schemas import GeofenceLocationRead, MapViewRead
from staffhub.services.exports import format_location_row
from staffhub.services.locations import filter_locations
from staffhub.services.map_view import build_map_view, first_match

logger = logging.getLogger("staffhub.client.locations_page")

DELETE_CONFIRMATION = "Are you sure you want to delete this location?"


class Tab(str, enum.Enum):
    TABLE = "table"
    MAP = "map"


class LocationsPage:
    def __init__(
        self,
        backend: BackendClient,
        notifier: Notifier | None = None,
        confirm: Callable[[str], bool] | None = None,
    ):
        self.backend = backend
        self.notifier = notifier or Notifier()
        self.confirm = confirm
        self.locations: list[GeofenceLocationRead] = []
        self.loading = False
        self.selected_id: uuid.UUID | None = None
        self.tab = Tab.TABLE
        self.query = ""
        self.dialog = GeofenceLocationDialog(backend, self.notifier, on_success=self._on_saved)

    def _on_saved(self, _location: GeofenceLocationRead) -> None:
        self.refresh()

    @property
    def visible_locations(self) -> list[GeofenceLocationRead]:
        return filter_locations(self.locations, self.query)

    @property
    def selected(self) -> GeofenceLocationRead | None:
        for location in self.locations:
            if location.id == self.selected_id:
                return location
        return None

    def refresh(self) -> list[GeofenceLocationRead]:
        self.loading = True
        try:
            self.locations = self.backend.list_locations()
        except BackendError as exc:
            logger.warning("locations_load_failed", extra={"code": exc.code, "status_code": exc.status_code})
            self.notifier.error("Failed to load geofence locations")
        finally:
            self.loading = False
        if self.selected_id is not None and self.selected is None:
            self.selected_id = None
        return self.locations

    def add(self) -> None:
        self.dialog.open_create()

    def edit(self, location_id: uuid.UUID) -> None:
        for location in self.locations:
            if location.id == location_id:
                self.dialog.open_edit(location)
                return
        self.notifier.error("Location not found")

    def submit(self) -> GeofenceLocationRead | None:
        return self.dialog.submit()

    def delete(self, location_id: uuid.UUID, confirm: bool | None = None) -> bool:
        if confirm is None:
            confirm = self.confirm(DELETE_CONFIRMATION) if self.confirm is not None else False
        if not confirm:
            return False
        try:
            self.backend.delete_location(location_id)
        except BackendError as exc:
            logger.warning("location_delete_failed", extra={"code": exc.code, "location_id": str(location_id)})
            self.notifier.error("Failed to delete location")
            return False
        self.notifier.success("Location deleted successfully")
        if self.selected_id == location_id:
            self.selected_id = None
        self.refresh()
        return True

    def select(self, location_id: uuid.UUID | None) -> None:
        self.selected_id = location_id

    def switch_tab(self, tab: Tab | str) -> Tab:
        self.tab = Tab(tab)
        return self.tab

    def search(self, query: str) -> list[GeofenceLocationRead]:
        self.query = query
        return self.visible_locations

    def table_rows(self) -> list[dict[str, str]]:
        return [format_location_row(location) for location in self.visible_locations]

    def map_view(self) -> MapViewRead:
        return build_map_view(self.locations, selected_id=self.selected_id, query=self.query)

    def pan_to_first_match(self) -> GeofenceLocationRead | None:
        match = first_match(self.locations, self.query)
        if match is not None:
            self.selected_id = match.id
        return match

    def export_xlsx(self) -> bytes | None:
        try:
            return self.backend.export_locations_xlsx(self.query or None)
        except BackendError as exc:
            logger.warning("locations_export_failed", extra={"code": exc.code})
            self.notifier.error("Failed to export locations")
            return None
