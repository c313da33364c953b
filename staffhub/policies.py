from __future__ import annotations

import enum
import uuid
from dataclasses import dataclass

from staffhub.errors import ApiError


class PolicyRule(str, enum.Enum):
    AUTHENTICATED = "AUTHENTICATED"
    OWNER_ONLY = "OWNER_ONLY"


@dataclass(frozen=True, slots=True)
class TablePolicy:
    table: str
    read: PolicyRule
    write: PolicyRule
    realtime: bool = False


ACCESS_POLICIES: dict[str, TablePolicy] = {
    "profiles": TablePolicy(
        table="profiles",
        read=PolicyRule.OWNER_ONLY,
        write=PolicyRule.OWNER_ONLY,
        realtime=True,
    ),
    # Location data is shared by every signed-in user.
    "geofence_locations": TablePolicy(
        table="geofence_locations",
        read=PolicyRule.AUTHENTICATED,
        write=PolicyRule.AUTHENTICATED,
        realtime=True,
    ),
    "employee_location_assignments": TablePolicy(
        table="employee_location_assignments",
        read=PolicyRule.AUTHENTICATED,
        write=PolicyRule.AUTHENTICATED,
        realtime=True,
    ),
    "employees": TablePolicy(
        table="employees",
        read=PolicyRule.AUTHENTICATED,
        write=PolicyRule.AUTHENTICATED,
        realtime=True,
    ),
    "branches": TablePolicy(
        table="branches",
        read=PolicyRule.AUTHENTICATED,
        write=PolicyRule.AUTHENTICATED,
    ),
}


def realtime_tables() -> frozenset[str]:
    return frozenset(name for name, policy in ACCESS_POLICIES.items() if policy.realtime)


def is_allowed(
    table: str,
    *,
    user_id: uuid.UUID | None,
    owner_id: uuid.UUID | None = None,
    write: bool = False,
) -> bool:
    policy = ACCESS_POLICIES.get(table)
    if policy is None or user_id is None:
        return False
    rule = policy.write if write else policy.read
    if rule is PolicyRule.AUTHENTICATED:
        return True
    return owner_id is not None and owner_id == user_id


def enforce(
    table: str,
    *,
    user_id: uuid.UUID | None,
    owner_id: uuid.UUID | None = None,
    write: bool = False,
) -> None:
    if not is_allowed(table, user_id=user_id, owner_id=owner_id, write=write):
        raise ApiError(status_code=403, code="FORBIDDEN", message="Insufficient permissions.")
