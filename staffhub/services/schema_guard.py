"""Startup check that the live database matches what the models expect.

Reports drift only; migrations own the schema.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import inspect, text
from sqlalchemy.engine import Engine

EXPECTED_HEAD = "0003_profiles"

REQUIRED_TABLE_COLUMNS: dict[str, set[str]] = {
    "employees": {"id", "name", "employee_id", "branch_id"},
    "geofence_locations": {"id", "name", "address", "latitude", "longitude", "radius", "created_at", "updated_at"},
    "employee_location_assignments": {"id", "employee_id", "location_id", "created_at"},
    "auth_users": {"id", "email", "password_hash"},
    "auth_sessions": {"id", "jti", "user_id", "expires_at", "revoked_at"},
    "profiles": {"id", "alias", "fuel_name", "selfie_url", "ktp_url", "kk_url", "cv_url"},
    "alembic_version": {"version_num"},
}

REQUIRED_UNIQUE_CONSTRAINTS: dict[str, set[str]] = {
    "employee_location_assignments": {"uq_employee_location_assignments_pair"},
}

REQUIRED_ENUM_VALUES: dict[str, set[str]] = {
    "audit_actor_type": {"USER", "SYSTEM"},
}


@dataclass(frozen=True, slots=True)
class SchemaGuardResult:
    ok: bool
    checked_at_utc: datetime
    issues: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "ok": self.ok,
            "checked_at_utc": self.checked_at_utc.isoformat(),
            "issues": list(self.issues),
            "warnings": list(self.warnings),
            "issue_count": len(self.issues),
            "warning_count": len(self.warnings),
        }


@dataclass(slots=True)
class _Findings:
    issues: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


def _joined(values: set[str], present: set[str]) -> str:
    return ",".join(sorted(values - present))


def _check_tables(inspector: Any, tables: set[str], findings: _Findings) -> None:
    for table_name, required_columns in REQUIRED_TABLE_COLUMNS.items():
        if table_name not in tables:
            findings.issues.append(f"MISSING_TABLE:{table_name}")
            continue
        try:
            column_names = {str(item.get("name")) for item in inspector.get_columns(table_name)}
        except Exception as exc:  # pragma: no cover
            findings.issues.append(f"TABLE_UNREADABLE:{table_name}:{exc.__class__.__name__}")
            continue
        if required_columns - column_names:
            findings.issues.append(f"MISSING_COLUMNS:{table_name}:{_joined(required_columns, column_names)}")


def _check_unique_constraints(inspector: Any, tables: set[str], findings: _Findings) -> None:
    for table_name, required_names in REQUIRED_UNIQUE_CONSTRAINTS.items():
        if table_name not in tables:
            continue
        try:
            names = {str(item.get("name")) for item in inspector.get_unique_constraints(table_name)}
        except Exception as exc:  # pragma: no cover
            findings.warnings.append(f"CONSTRAINT_INSPECTION_FAILED:{table_name}:{exc.__class__.__name__}")
            continue
        if required_names - names:
            findings.issues.append(f"MISSING_UNIQUE_CONSTRAINTS:{table_name}:{_joined(required_names, names)}")


def _check_enums(inspector: Any, findings: _Findings) -> None:
    # Only PostgreSQL has named enums; elsewhere this degrades to warnings.
    try:
        enums = inspector.get_enums() or []
    except Exception as exc:
        findings.warnings.append(f"ENUM_INSPECTION_FAILED:{exc.__class__.__name__}")
        return

    labels_by_name = {
        str(item.get("name")): {str(label) for label in item.get("labels") or []}
        for item in enums
        if item.get("name")
    }
    for enum_name, required_values in REQUIRED_ENUM_VALUES.items():
        labels = labels_by_name.get(enum_name)
        if labels is None:
            findings.warnings.append(f"ENUM_NOT_FOUND:{enum_name}")
        elif required_values - labels:
            findings.issues.append(f"MISSING_ENUM_VALUES:{enum_name}:{_joined(required_values, labels)}")


def _check_alembic_version(engine: Engine, findings: _Findings) -> None:
    try:
        with engine.connect() as connection:
            row = connection.execute(text("SELECT version_num FROM alembic_version LIMIT 1")).scalar()
    except Exception as exc:  # pragma: no cover
        findings.issues.append(f"ALEMBIC_VERSION_CHECK_FAILED:{exc.__class__.__name__}")
        return

    version = str(row).strip() if row is not None else ""
    if not version:
        findings.issues.append("ALEMBIC_VERSION_EMPTY")
    elif version != EXPECTED_HEAD:
        findings.warnings.append(f"ALEMBIC_HEAD_MISMATCH:{version}")


def verify_runtime_schema(engine: Engine) -> SchemaGuardResult:
    checked_at_utc = datetime.now(timezone.utc)
    inspector = inspect(engine)
    tables = set(inspector.get_table_names())
    findings = _Findings()

    _check_tables(inspector, tables, findings)
    _check_unique_constraints(inspector, tables, findings)
    _check_enums(inspector, findings)
    if "alembic_version" in tables:
        _check_alembic_version(engine, findings)

    return SchemaGuardResult(
        ok=not findings.issues,
        checked_at_utc=checked_at_utc,
        issues=findings.issues,
        warnings=findings.warnings,
    )
