from __future__ import annotations

import logging
import uuid

from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from staffhub.errors import ApiError
from staffhub.models import Branch, Employee
from staffhub.schemas import BranchCreate, EmployeeCreate

logger = logging.getLogger("staffhub.employees")


def list_employees(db: Session, *, query: str | None = None, include_inactive: bool = True) -> list[Employee]:
    stmt = select(Employee)
    needle = (query or "").strip().lower()
    if needle:
        pattern = f"%{needle}%"
        stmt = stmt.where(
            or_(
                func.lower(Employee.name).like(pattern),
                func.lower(Employee.employee_id).like(pattern),
            )
        )
    if not include_inactive:
        stmt = stmt.where(Employee.is_active.is_(True))
    stmt = stmt.order_by(Employee.name.asc(), Employee.id.asc())
    return list(db.scalars(stmt).all())


def get_employee(db: Session, employee_id: uuid.UUID) -> Employee:
    employee = db.get(Employee, employee_id)
    if employee is None:
        raise ApiError(status_code=404, code="EMPLOYEE_NOT_FOUND", message="Employee not found.")
    return employee


def create_employee(db: Session, payload: EmployeeCreate) -> Employee:
    employee_code = payload.employee_id.strip()
    if not employee_code:
        raise ApiError(status_code=422, code="VALIDATION_ERROR", message="Employee ID is required")

    if payload.branch_id is not None and db.get(Branch, payload.branch_id) is None:
        raise ApiError(status_code=404, code="BRANCH_NOT_FOUND", message="Branch not found.")

    existing = db.scalar(select(Employee.id).where(Employee.employee_id == employee_code))
    if existing is not None:
        raise ApiError(
            status_code=409,
            code="EMPLOYEE_ID_EXISTS",
            message=f"Employee ID {employee_code} is already in use.",
        )

    employee = Employee(
        name=payload.name.strip(),
        employee_id=employee_code,
        branch_id=payload.branch_id,
        is_active=payload.is_active,
    )
    db.add(employee)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise ApiError(
            status_code=409,
            code="EMPLOYEE_ID_EXISTS",
            message=f"Employee ID {employee_code} is already in use.",
        ) from exc
    db.refresh(employee)
    logger.info("employee_created", extra={"employee_id": str(employee.id), "employee_code": employee_code})
    return employee


def list_branches(db: Session) -> list[Branch]:
    return list(db.scalars(select(Branch).order_by(Branch.name.asc(), Branch.id.asc())).all())


def create_branch(db: Session, payload: BranchCreate) -> Branch:
    name = payload.name.strip()
    if db.scalar(select(Branch.id).where(Branch.name == name)) is not None:
        raise ApiError(status_code=409, code="BRANCH_NAME_EXISTS", message=f"Branch {name} already exists.")

    branch = Branch(name=name, address=(payload.address or "").strip() or None)
    db.add(branch)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise ApiError(status_code=409, code="BRANCH_NAME_EXISTS", message=f"Branch {name} already exists.") from exc
    db.refresh(branch)
    logger.info("branch_created", extra={"branch_id": str(branch.id)})
    return branch
