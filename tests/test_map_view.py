from __future__ import annotations

import unittest
import uuid

from staffhub.schemas import GeofenceLocationRead
from staffhub.services.map_view import (
    DEFAULT_CENTER,
    build_map_view,
    first_match,
    pick_coordinates,
)


def _location(name: str, address: str, lat: float, lng: float) -> GeofenceLocationRead:
    return GeofenceLocationRead(
        id=uuid.uuid4(),
        name=name,
        address=address,
        latitude=lat,
        longitude=lng,
        radius=150,
        created_at="2024-07-10T00:00:00Z",
        updated_at="2024-07-10T00:00:00Z",
    )


class MapViewTests(unittest.TestCase):
    def setUp(self) -> None:
        self.office = _location("Main Office", "1 Harbour Road", -6.17, 106.82)
        self.depot = _location("Depot", "12 Office Park", -6.3, 106.9)
        self.warehouse = _location("Warehouse", "7 Dock Lane", -6.1, 106.7)
        self.locations = [self.office, self.depot, self.warehouse]

    def test_default_center_without_locations(self) -> None:
        view = build_map_view([])
        self.assertEqual(view.center, DEFAULT_CENTER)
        self.assertEqual(view.zoom, 13)
        self.assertEqual(view.features, [])

    def test_centers_on_first_location_when_nothing_selected(self) -> None:
        view = build_map_view(self.locations)
        self.assertEqual(view.center, (-6.17, 106.82))
        self.assertEqual(view.zoom, 13)
        self.assertEqual(len(view.features), 3)

    def test_selected_location_is_highlighted_and_zoomed(self) -> None:
        view = build_map_view(self.locations, selected_id=self.depot.id)

        self.assertEqual(view.center, (-6.3, 106.9))
        self.assertEqual(view.zoom, 15)
        selected = [item for item in view.features if item.selected]
        self.assertEqual([item.location_id for item in selected], [self.depot.id])
        self.assertEqual(selected[0].circle_style.fill_color, "#2563eb")
        self.assertEqual(selected[0].circle_style.color, "#1d4ed8")
        others = [item for item in view.features if not item.selected]
        self.assertTrue(all(item.circle_style.fill_color == "#3b82f6" for item in others))
        self.assertTrue(all(item.circle_style.fill_opacity == 0.3 for item in view.features))

    def test_search_narrows_rendered_set(self) -> None:
        view = build_map_view(self.locations, query="office")
        self.assertEqual(view.match_count, 2)
        self.assertEqual({item.location_id for item in view.features}, {self.office.id, self.depot.id})

    def test_first_match(self) -> None:
        self.assertIs(first_match(self.locations, "dock"), self.warehouse)
        self.assertIsNone(first_match(self.locations, "nowhere"))
        self.assertIsNone(first_match(self.locations, ""))

    def test_pick_coordinates_only_in_interactive_mode(self) -> None:
        self.assertEqual(pick_coordinates(-6.2, 106.8, True), (-6.2, 106.8))
        self.assertIsNone(pick_coordinates(-6.2, 106.8, False))
        self.assertIsNone(pick_coordinates(91, 0, True))
        self.assertIsNone(pick_coordinates(0, 181, True))


if __name__ == "__main__":
    unittest.main()
