from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.orm import Session

from staffhub.audit import log_request_audit
from staffhub.db import get_db
from staffhub.policies import enforce
from staffhub.schemas import (
    BranchCreate,
    BranchRead,
    EmployeeCreate,
    EmployeeLocationsRead,
    EmployeeLocationsUpdate,
    EmployeeRead,
)
from staffhub.security import CurrentUser, require_api_key, require_user
from staffhub.services.employees import create_branch, create_employee, list_branches, list_employees
from staffhub.services.locations import list_employee_location_ids, replace_employee_locations

router = APIRouter(tags=["employees"], dependencies=[Depends(require_api_key)])


@router.get("/api/employees", response_model=list[EmployeeRead])
def list_employees_endpoint(
    q: str | None = Query(default=None, max_length=255),
    include_inactive: bool = Query(default=True),
    current: CurrentUser = Depends(require_user),
    db: Session = Depends(get_db),
) -> list[EmployeeRead]:
    enforce("employees", user_id=current.id)
    return [EmployeeRead.model_validate(item) for item in list_employees(db, query=q, include_inactive=include_inactive)]


@router.post("/api/employees", response_model=EmployeeRead, status_code=status.HTTP_201_CREATED)
def create_employee_endpoint(
    payload: EmployeeCreate,
    request: Request,
    current: CurrentUser = Depends(require_user),
    db: Session = Depends(get_db),
) -> EmployeeRead:
    enforce("employees", user_id=current.id, write=True)
    employee = create_employee(db, payload)
    log_request_audit(
        db,
        request,
        action="EMPLOYEE_CREATED",
        entity_type="employee",
        entity_id=str(employee.id),
        details={"employee_id": employee.employee_id},
    )
    return EmployeeRead.model_validate(employee)


@router.get("/api/employees/{employee_id}/locations", response_model=EmployeeLocationsRead)
def employee_locations_endpoint(
    employee_id: uuid.UUID,
    current: CurrentUser = Depends(require_user),
    db: Session = Depends(get_db),
) -> EmployeeLocationsRead:
    enforce("employee_location_assignments", user_id=current.id)
    return EmployeeLocationsRead(employee_id=employee_id, location_ids=list_employee_location_ids(db, employee_id))


@router.put("/api/employees/{employee_id}/locations", response_model=EmployeeLocationsRead)
def replace_employee_locations_endpoint(
    employee_id: uuid.UUID,
    payload: EmployeeLocationsUpdate,
    request: Request,
    current: CurrentUser = Depends(require_user),
    db: Session = Depends(get_db),
) -> EmployeeLocationsRead:
    enforce("employee_location_assignments", user_id=current.id, write=True)
    location_ids = replace_employee_locations(db, employee_id, payload.location_ids)
    log_request_audit(
        db,
        request,
        action="EMPLOYEE_LOCATIONS_REPLACED",
        entity_type="employee",
        entity_id=str(employee_id),
        details={"location_ids": [str(item) for item in location_ids]},
    )
    return EmployeeLocationsRead(employee_id=employee_id, location_ids=location_ids)


@router.get("/api/branches", response_model=list[BranchRead])
def list_branches_endpoint(
    current: CurrentUser = Depends(require_user),
    db: Session = Depends(get_db),
) -> list[BranchRead]:
    enforce("branches", user_id=current.id)
    return [BranchRead.model_validate(item) for item in list_branches(db)]


@router.post("/api/branches", response_model=BranchRead, status_code=status.HTTP_201_CREATED)
def create_branch_endpoint(
    payload: BranchCreate,
    request: Request,
    current: CurrentUser = Depends(require_user),
    db: Session = Depends(get_db),
) -> BranchRead:
    enforce("branches", user_id=current.id, write=True)
    branch = create_branch(db, payload)
    log_request_audit(
        db,
        request,
        action="BRANCH_CREATED",
        entity_type="branch",
        entity_id=str(branch.id),
        details={"name": branch.name},
    )
    return BranchRead.model_validate(branch)
