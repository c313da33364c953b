from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query, Request, Response, status
from sqlalchemy.orm import Session

from staffhub.audit import log_request_audit
from staffhub.db import get_db
from staffhub.policies import enforce
from staffhub.schemas import (
    GeofenceLocationForm,
    GeofenceLocationRead,
    LocationAssignmentsRead,
    MapViewRead,
    OkResponse,
)
from staffhub.security import CurrentUser, require_api_key, require_user
from staffhub.services.exports import build_locations_xlsx_bytes
from staffhub.services.locations import (
    create_location,
    delete_location,
    filter_locations,
    get_location,
    list_location_employee_ids,
    list_locations,
    update_location,
)
from staffhub.services.map_view import build_map_view

router = APIRouter(tags=["locations"], dependencies=[Depends(require_api_key)])
XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
TABLE = "geofence_locations"


@router.get("/api/locations", response_model=list[GeofenceLocationRead])
def list_locations_endpoint(
    q: str | None = Query(default=None, max_length=255),
    current: CurrentUser = Depends(require_user),
    db: Session = Depends(get_db),
) -> list[GeofenceLocationRead]:
    enforce(TABLE, user_id=current.id)
    return filter_locations(list_locations(db), q)


@router.post("/api/locations", response_model=GeofenceLocationRead, status_code=status.HTTP_201_CREATED)
def create_location_endpoint(
    payload: GeofenceLocationForm,
    request: Request,
    current: CurrentUser = Depends(require_user),
    db: Session = Depends(get_db),
) -> GeofenceLocationRead:
    enforce(TABLE, user_id=current.id, write=True)
    location = create_location(db, payload)
    log_request_audit(
        db,
        request,
        action="LOCATION_CREATED",
        entity_type="geofence_location",
        entity_id=str(location.id),
        details={"name": location.name, "assigned_count": len(location.assigned_employees or [])},
    )
    return location


@router.get("/api/locations/map", response_model=MapViewRead)
def location_map_endpoint(
    q: str | None = Query(default=None, max_length=255),
    selected_id: uuid.UUID | None = Query(default=None),
    current: CurrentUser = Depends(require_user),
    db: Session = Depends(get_db),
) -> MapViewRead:
    enforce(TABLE, user_id=current.id)
    return build_map_view(list_locations(db), selected_id=selected_id, query=q)


@router.get("/api/locations/export.xlsx")
def export_locations_endpoint(
    q: str | None = Query(default=None, max_length=255),
    current: CurrentUser = Depends(require_user),
    db: Session = Depends(get_db),
) -> Response:
    enforce(TABLE, user_id=current.id)
    content = build_locations_xlsx_bytes(filter_locations(list_locations(db), q), query=q)
    return Response(
        content=content,
        media_type=XLSX_MEDIA_TYPE,
        headers={
            "Content-Disposition": 'attachment; filename="geofence-locations.xlsx"',
        },
    )


@router.get("/api/locations/{location_id}", response_model=GeofenceLocationRead)
def get_location_endpoint(
    location_id: uuid.UUID,
    current: CurrentUser = Depends(require_user),
    db: Session = Depends(get_db),
) -> GeofenceLocationRead:
    enforce(TABLE, user_id=current.id)
    return get_location(db, location_id)


@router.put("/api/locations/{location_id}", response_model=GeofenceLocationRead)
def update_location_endpoint(
    location_id: uuid.UUID,
    payload: GeofenceLocationForm,
    request: Request,
    current: CurrentUser = Depends(require_user),
    db: Session = Depends(get_db),
) -> GeofenceLocationRead:
    enforce(TABLE, user_id=current.id, write=True)
    location = update_location(db, location_id, payload)
    log_request_audit(
        db,
        request,
        action="LOCATION_UPDATED",
        entity_type="geofence_location",
        entity_id=str(location.id),
        details={"name": location.name, "assigned_count": len(location.assigned_employees or [])},
    )
    return location


@router.delete("/api/locations/{location_id}", response_model=OkResponse)
def delete_location_endpoint(
    location_id: uuid.UUID,
    request: Request,
    current: CurrentUser = Depends(require_user),
    db: Session = Depends(get_db),
) -> OkResponse:
    enforce(TABLE, user_id=current.id, write=True)
    delete_location(db, location_id)
    log_request_audit(
        db,
        request,
        action="LOCATION_DELETED",
        entity_type="geofence_location",
        entity_id=str(location_id),
    )
    return OkResponse()


@router.get("/api/locations/{location_id}/assignments", response_model=LocationAssignmentsRead)
def location_assignments_endpoint(
    location_id: uuid.UUID,
    current: CurrentUser = Depends(require_user),
    db: Session = Depends(get_db),
) -> LocationAssignmentsRead:
    enforce("employee_location_assignments", user_id=current.id)
    return LocationAssignmentsRead(
        location_id=location_id,
        employee_ids=list_location_employee_ids(db, location_id),
    )
