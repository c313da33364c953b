"""Write-only audit journal.

Every row is committed on its own. A journal failure is logged and never
turns a successful request into an error.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from fastapi import Request
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from staffhub.models import AuditActorType, AuditLog

logger = logging.getLogger("staffhub.audit")

SYSTEM_ACTOR = "system"


def client_ip(request: Request) -> str | None:
    forwarded_for = request.headers.get("x-forwarded-for")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()
    return request.client.host if request.client else None


def user_agent(request: Request) -> str | None:
    return request.headers.get("user-agent")


def log_audit(
    db: Session,
    *,
    actor_type: AuditActorType,
    actor_id: str,
    action: str,
    success: bool,
    entity_type: str | None = None,
    entity_id: str | None = None,
    ip: str | None = None,
    user_agent: str | None = None,
    details: dict[str, Any] | None = None,
    request_id: str | None = None,
) -> bool:
    fields: dict[str, Any] = {
        "actor_type": actor_type,
        "actor_id": actor_id,
        "action": action,
        "entity_type": entity_type,
        "entity_id": entity_id,
        "ip": ip,
        "user_agent": user_agent,
        "success": success,
        "details": details or {},
    }
    db.add(AuditLog(ts_utc=datetime.now(timezone.utc), **fields))
    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception(
            "audit_log_write_failed",
            extra={"request_id": request_id, "action": action, "actor_id": actor_id, "success": success},
        )
        return False

    logger.info("audit_event", extra={"request_id": request_id, **fields, "actor_type": actor_type.value})
    return True


def log_request_audit(
    db: Session,
    request: Request,
    *,
    action: str,
    entity_type: str | None = None,
    entity_id: str | None = None,
    details: dict[str, Any] | None = None,
    success: bool = True,
) -> bool:
    """Journal an action on behalf of whoever the request was authenticated as."""
    actor_id = str(getattr(request.state, "actor_id", SYSTEM_ACTOR))
    return log_audit(
        db,
        actor_type=AuditActorType.SYSTEM if actor_id == SYSTEM_ACTOR else AuditActorType.USER,
        actor_id=actor_id,
        action=action,
        success=success,
        entity_type=entity_type,
        entity_id=entity_id,
        ip=client_ip(request),
        user_agent=user_agent(request),
        details=details,
        request_id=getattr(request.state, "request_id", None),
    )
