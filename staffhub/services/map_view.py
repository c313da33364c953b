from __future__ import annotations

import math
import uuid
from collections.abc import Sequence
from typing import TypeVar

from staffhub.schemas import CircleStyleRead, GeofenceLocationRead, MapFeatureRead, MapViewRead
from staffhub.services.locations import filter_locations, location_matches

DEFAULT_CENTER: tuple[float, float] = (-6.2088, 106.8456)
DEFAULT_ZOOM = 13
SELECTED_ZOOM = 15

SELECTED_STYLE = CircleStyleRead(fill_color="#2563eb", fill_opacity=0.3, color="#1d4ed8", weight=2)
DEFAULT_STYLE = CircleStyleRead(fill_color="#3b82f6", fill_opacity=0.3, color="#60a5fa", weight=2)

LocationT = TypeVar("LocationT", bound=GeofenceLocationRead)


def circle_style(selected: bool) -> CircleStyleRead:
    return SELECTED_STYLE if selected else DEFAULT_STYLE


def pick_coordinates(latitude: float, longitude: float, interactive: bool) -> tuple[float, float] | None:
    """Coordinates of a map click, or None when the map is read-only or the point is off the globe."""
    if not interactive:
        return None
    try:
        lat = float(latitude)
        lng = float(longitude)
    except (TypeError, ValueError):
        return None
    if not (math.isfinite(lat) and math.isfinite(lng)):
        return None
    if not (-90 <= lat <= 90 and -180 <= lng <= 180):
        return None
    return lat, lng


def first_match(locations: Sequence[LocationT], query: str | None) -> LocationT | None:
    if not (query or "").strip():
        return None
    for location in locations:
        if location_matches(location, query):
            return location
    return None


def viewport(
    rendered: Sequence[GeofenceLocationRead],
    selected_id: uuid.UUID | None,
) -> tuple[tuple[float, float], int]:
    if selected_id is not None:
        for location in rendered:
            if location.id == selected_id:
                return (location.latitude, location.longitude), SELECTED_ZOOM
    if rendered:
        return (rendered[0].latitude, rendered[0].longitude), DEFAULT_ZOOM
    return DEFAULT_CENTER, DEFAULT_ZOOM


def build_map_view(
    locations: Sequence[GeofenceLocationRead],
    *,
    selected_id: uuid.UUID | None = None,
    query: str | None = None,
) -> MapViewRead:
    rendered = filter_locations(locations, query)
    center, zoom = viewport(rendered, selected_id)
    features = [
        MapFeatureRead(
            location_id=location.id,
            name=location.name,
            address=location.address,
            latitude=location.latitude,
            longitude=location.longitude,
            radius=location.radius,
            selected=location.id == selected_id,
            circle_style=circle_style(location.id == selected_id),
        )
        for location in rendered
    ]
    return MapViewRead(
        center=center,
        zoom=zoom,
        query=(query or "").strip(),
        match_count=len(rendered),
        features=features,
    )
