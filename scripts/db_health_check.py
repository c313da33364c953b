#!/usr/bin/env python
"""Print a JSON report on migration state and assignment integrity."""
from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import inspect, text
from sqlalchemy.engine import Connection, Engine

from staffhub.db import build_engine
from staffhub.services.schema_guard import EXPECTED_HEAD
from staffhub.settings import get_settings

REQUIRED_BY_REVISION = {
    "0001+": ["branches", "employees", "auth_users", "auth_sessions", "audit_logs"],
    "0002+": ["geofence_locations", "employee_location_assignments"],
    "0003+": ["profiles"],
}

ASSIGNMENT_TABLES = {"employee_location_assignments", "geofence_locations", "employees"}

_ORPHAN_SQL = """
    select a.id
    from employee_location_assignments a
    left join {table} t on t.id = a.{column}
    where t.id is null
    limit 20
"""

_DUPLICATE_PAIR_SQL = """
    select employee_id, location_id, count(*)
    from employee_location_assignments
    group by employee_id, location_id
    having count(*) > 1
"""


def _check(name: str, failed: bool, details: Any, *, soft: bool = False) -> dict[str, Any]:
    status = ("warn" if soft else "fail") if failed else "ok"
    return {"name": name, "status": status, "details": details}


def _assignment_checks(conn: Connection) -> list[dict[str, Any]]:
    results = []
    for name, table, column in (
        ("assignment_orphan_location", "geofence_locations", "location_id"),
        ("assignment_orphan_employee", "employees", "employee_id"),
    ):
        rows = conn.execute(text(_ORPHAN_SQL.format(table=table, column=column))).fetchall()
        results.append(_check(name, bool(rows), {"sample_ids": [str(row[0]) for row in rows]}))

    pairs = conn.execute(text(_DUPLICATE_PAIR_SQL)).fetchall()
    results.append(
        _check("assignment_duplicate_pair", bool(pairs), {"rows": [[str(item) for item in row] for row in pairs]})
    )
    return results


def run(engine: Engine | None = None) -> dict[str, Any]:
    engine = engine or build_engine(get_settings().database_url)
    tables = set(inspect(engine).get_table_names())
    checks: list[dict[str, Any]] = []

    with engine.connect() as conn:
        versions: list[str] = []
        if "alembic_version" in tables:
            versions = list(conn.execute(text("select version_num from alembic_version")).scalars())
        checks.append(_check("alembic_version", not versions, {"current": versions}))
        checks.append(
            _check(
                "migration_up_to_date",
                EXPECTED_HEAD not in versions,
                {"expected_head": EXPECTED_HEAD, "current": versions},
                soft=True,
            )
        )

        missing = {
            revision: absent
            for revision, required in REQUIRED_BY_REVISION.items()
            if (absent := [table for table in required if table not in tables])
        }
        checks.append(_check("missing_tables_by_revision", bool(missing), missing))

        if ASSIGNMENT_TABLES <= tables:
            checks.extend(_assignment_checks(conn))

    return {
        "generated_at_utc": datetime.now(timezone.utc).isoformat(),
        "dialect": engine.dialect.name,
        "checks": checks,
    }


if __name__ == "__main__":
    print(json.dumps(run(), ensure_ascii=False, indent=2))
