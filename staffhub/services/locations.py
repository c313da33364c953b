from __future__ import annotations

import logging
import uuid
from collections import defaultdict
from collections.abc import Iterable, Sequence
from datetime import datetime, timezone
from typing import Protocol, TypeVar

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from staffhub.errors import ApiError
from staffhub.models import Employee, EmployeeLocationAssignment, GeofenceLocation
from staffhub.realtime import queue_change
from staffhub.schemas import EmployeeSummaryRead, GeofenceLocationForm, GeofenceLocationRead

logger = logging.getLogger("staffhub.locations")

ASSIGNMENTS_TABLE = "employee_location_assignments"


class _Searchable(Protocol):
    name: str
    address: str


SearchableT = TypeVar("SearchableT", bound=_Searchable)


def normalize_ids(raw_ids: Iterable[uuid.UUID | str] | None) -> list[uuid.UUID]:
    normalized: list[uuid.UUID] = []
    seen: set[uuid.UUID] = set()
    for raw_id in raw_ids or []:
        value = raw_id if isinstance(raw_id, uuid.UUID) else uuid.UUID(str(raw_id))
        if value in seen:
            continue
        seen.add(value)
        normalized.append(value)
    return normalized


def location_matches(location: _Searchable, query: str | None) -> bool:
    needle = (query or "").strip().lower()
    if not needle:
        return True
    return needle in (location.name or "").lower() or needle in (location.address or "").lower()


def filter_locations(locations: Sequence[SearchableT], query: str | None) -> list[SearchableT]:
    return [location for location in locations if location_matches(location, query)]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _get_location_or_404(db: Session, location_id: uuid.UUID) -> GeofenceLocation:
    location = db.get(GeofenceLocation, location_id)
    if location is None:
        raise ApiError(status_code=404, code="LOCATION_NOT_FOUND", message="Location not found.")
    return location


def _ensure_employees_exist(db: Session, employee_ids: list[uuid.UUID]) -> None:
    if not employee_ids:
        return
    found = set(db.scalars(select(Employee.id).where(Employee.id.in_(employee_ids))).all())
    missing = [str(item) for item in employee_ids if item not in found]
    if missing:
        raise ApiError(
            status_code=422,
            code="UNKNOWN_EMPLOYEE",
            message=f"Unknown employee ids: {', '.join(missing)}",
        )


def _ensure_locations_exist(db: Session, location_ids: list[uuid.UUID]) -> None:
    if not location_ids:
        return
    found = set(db.scalars(select(GeofenceLocation.id).where(GeofenceLocation.id.in_(location_ids))).all())
    missing = [str(item) for item in location_ids if item not in found]
    if missing:
        raise ApiError(
            status_code=422,
            code="UNKNOWN_LOCATION",
            message=f"Unknown location ids: {', '.join(missing)}",
        )


def _assignments_by_location(
    db: Session,
    location_ids: list[uuid.UUID],
) -> tuple[dict[uuid.UUID, list[uuid.UUID]], dict[uuid.UUID, list[EmployeeSummaryRead]]]:
    employee_ids: dict[uuid.UUID, list[uuid.UUID]] = defaultdict(list)
    details: dict[uuid.UUID, list[EmployeeSummaryRead]] = defaultdict(list)
    if not location_ids:
        return employee_ids, details

    rows = db.execute(
        select(
            EmployeeLocationAssignment.location_id,
            EmployeeLocationAssignment.employee_id,
            Employee.name,
            Employee.employee_id,
        )
        .join(Employee, Employee.id == EmployeeLocationAssignment.employee_id)
        .where(EmployeeLocationAssignment.location_id.in_(location_ids))
        .order_by(Employee.name.asc(), Employee.id.asc())
    ).all()
    for location_id, employee_id, employee_name, employee_code in rows:
        employee_ids[location_id].append(employee_id)
        details[location_id].append(EmployeeSummaryRead(name=employee_name, employee_id=employee_code))
    return employee_ids, details


def list_locations(db: Session) -> list[GeofenceLocationRead]:
    locations = list(
        db.scalars(
            select(GeofenceLocation).order_by(GeofenceLocation.created_at.desc(), GeofenceLocation.id.desc())
        ).all()
    )
    reads = [GeofenceLocationRead.model_validate(item) for item in locations]
    if not reads:
        return []

    try:
        employee_ids, details = _assignments_by_location(db, [item.id for item in reads])
    except SQLAlchemyError:
        db.rollback()
        logger.exception("location_assignments_fetch_failed", extra={"location_count": len(reads)})
        return reads

    return [
        item.model_copy(
            update={
                "assigned_employees": employee_ids.get(item.id, []),
                "employee_details": details.get(item.id, []),
            }
        )
        for item in reads
    ]


def get_location(db: Session, location_id: uuid.UUID) -> GeofenceLocationRead:
    location = _get_location_or_404(db, location_id)
    read = GeofenceLocationRead.model_validate(location)
    employee_ids, details = _assignments_by_location(db, [location.id])
    return read.model_copy(
        update={
            "assigned_employees": employee_ids.get(location.id, []),
            "employee_details": details.get(location.id, []),
        }
    )


def list_location_employee_ids(db: Session, location_id: uuid.UUID) -> list[uuid.UUID]:
    _get_location_or_404(db, location_id)
    stmt = (
        select(EmployeeLocationAssignment.employee_id)
        .join(Employee, Employee.id == EmployeeLocationAssignment.employee_id)
        .where(EmployeeLocationAssignment.location_id == location_id)
        .order_by(Employee.name.asc(), Employee.id.asc())
    )
    return list(db.scalars(stmt).all())


def list_employee_location_ids(db: Session, employee_id: uuid.UUID) -> list[uuid.UUID]:
    if db.get(Employee, employee_id) is None:
        raise ApiError(status_code=404, code="EMPLOYEE_NOT_FOUND", message="Employee not found.")
    stmt = (
        select(EmployeeLocationAssignment.location_id)
        .join(GeofenceLocation, GeofenceLocation.id == EmployeeLocationAssignment.location_id)
        .where(EmployeeLocationAssignment.employee_id == employee_id)
        .order_by(GeofenceLocation.name.asc(), GeofenceLocation.id.asc())
    )
    return list(db.scalars(stmt).all())


def _delete_assignments(db: Session, *, location_id: uuid.UUID | None = None, employee_id: uuid.UUID | None = None) -> None:
    condition = (
        EmployeeLocationAssignment.location_id == location_id
        if location_id is not None
        else EmployeeLocationAssignment.employee_id == employee_id
    )
    existing = db.execute(
        select(
            EmployeeLocationAssignment.id,
            EmployeeLocationAssignment.employee_id,
            EmployeeLocationAssignment.location_id,
        ).where(condition)
    ).all()
    db.execute(delete(EmployeeLocationAssignment).where(condition))
    for assignment_id, assigned_employee_id, assigned_location_id in existing:
        queue_change(
            db,
            ASSIGNMENTS_TABLE,
            "DELETE",
            {"id": assignment_id, "employee_id": assigned_employee_id, "location_id": assigned_location_id},
        )


def _insert_assignments(db: Session, pairs: Iterable[tuple[uuid.UUID, uuid.UUID]]) -> None:
    for employee_id, location_id in pairs:
        db.add(EmployeeLocationAssignment(employee_id=employee_id, location_id=location_id))


def replace_location_assignments(db: Session, location_id: uuid.UUID, employee_ids: list[uuid.UUID]) -> None:
    """Replace the full assignment set of a location; the caller commits."""
    _delete_assignments(db, location_id=location_id)
    _insert_assignments(db, ((employee_id, location_id) for employee_id in employee_ids))
    db.flush()


def _commit_or_conflict(db: Session) -> None:
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise ApiError(
            status_code=409,
            code="ASSIGNMENT_CONFLICT",
            message="Location assignments conflict with existing rows.",
        ) from exc


def create_location(db: Session, payload: GeofenceLocationForm) -> GeofenceLocationRead:
    employee_ids = normalize_ids(payload.assigned_employees)
    _ensure_employees_exist(db, employee_ids)

    now = _utcnow()
    location = GeofenceLocation(
        name=payload.name,
        address=payload.address,
        latitude=payload.latitude,
        longitude=payload.longitude,
        radius=payload.radius,
        created_at=now,
        updated_at=now,
    )
    db.add(location)
    try:
        db.flush()
        _insert_assignments(db, ((employee_id, location.id) for employee_id in employee_ids))
        db.flush()
    except IntegrityError as exc:
        db.rollback()
        raise ApiError(
            status_code=409,
            code="ASSIGNMENT_CONFLICT",
            message="Location assignments conflict with existing rows.",
        ) from exc
    _commit_or_conflict(db)
    db.refresh(location)

    logger.info(
        "location_created",
        extra={"location_id": str(location.id), "assigned_count": len(employee_ids)},
    )
    return get_location(db, location.id)


def update_location(db: Session, location_id: uuid.UUID, payload: GeofenceLocationForm) -> GeofenceLocationRead:
    location = _get_location_or_404(db, location_id)
    employee_ids = normalize_ids(payload.assigned_employees)
    _ensure_employees_exist(db, employee_ids)

    location.name = payload.name
    location.address = payload.address
    location.latitude = payload.latitude
    location.longitude = payload.longitude
    location.radius = payload.radius
    location.updated_at = _utcnow()

    # Delete and re-insert share one transaction so readers never see an empty set.
    try:
        replace_location_assignments(db, location.id, employee_ids)
    except IntegrityError as exc:
        db.rollback()
        raise ApiError(
            status_code=409,
            code="ASSIGNMENT_CONFLICT",
            message="Location assignments conflict with existing rows.",
        ) from exc
    _commit_or_conflict(db)
    db.refresh(location)

    logger.info(
        "location_updated",
        extra={"location_id": str(location.id), "assigned_count": len(employee_ids)},
    )
    return get_location(db, location.id)


def delete_location(db: Session, location_id: uuid.UUID) -> None:
    location = _get_location_or_404(db, location_id)
    cascaded = db.execute(
        select(EmployeeLocationAssignment.id, EmployeeLocationAssignment.employee_id).where(
            EmployeeLocationAssignment.location_id == location_id
        )
    ).all()
    db.delete(location)
    for assignment_id, employee_id in cascaded:
        queue_change(
            db,
            ASSIGNMENTS_TABLE,
            "DELETE",
            {"id": assignment_id, "employee_id": employee_id, "location_id": location_id},
        )
    db.commit()
    logger.info(
        "location_deleted",
        extra={"location_id": str(location_id), "cascaded_assignments": len(cascaded)},
    )


def replace_employee_locations(
    db: Session,
    employee_id: uuid.UUID,
    raw_location_ids: Iterable[uuid.UUID | str],
) -> list[uuid.UUID]:
    if db.get(Employee, employee_id) is None:
        raise ApiError(status_code=404, code="EMPLOYEE_NOT_FOUND", message="Employee not found.")
    location_ids = normalize_ids(raw_location_ids)
    _ensure_locations_exist(db, location_ids)

    try:
        _delete_assignments(db, employee_id=employee_id)
        _insert_assignments(db, ((employee_id, location_id) for location_id in location_ids))
        db.flush()
    except IntegrityError as exc:
        db.rollback()
        raise ApiError(
            status_code=409,
            code="ASSIGNMENT_CONFLICT",
            message="Location assignments conflict with existing rows.",
        ) from exc
    _commit_or_conflict(db)

    logger.info(
        "employee_locations_replaced",
        extra={"employee_id": str(employee_id), "assigned_count": len(location_ids)},
    )
    return location_ids
