from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import RedirectResponse
from pydantic import BaseModel
from sqlalchemy.orm import Session

from staffhub.db import get_db
from staffhub.errors import ApiError
from staffhub.routing import resolve_route
from staffhub.security import resolve_session
from staffhub.settings import get_settings

logger = logging.getLogger("staffhub.pages")
router = APIRouter(tags=["pages"])

_RESERVED_PREFIXES = ("api/", "realtime/", "storage/")


class PageRead(BaseModel):
    path: str
    page: str
    authenticated: bool


def _has_session(request: Request, db: Session) -> bool:
    token = request.cookies.get(get_settings().session_cookie_name)
    if not token:
        return False
    try:
        current = resolve_session(db, token)
    except ApiError:
        return False
    request.state.actor = "user"
    request.state.actor_id = str(current.id)
    return True


@router.get("/{full_path:path}", response_model=PageRead)
def page_endpoint(full_path: str, request: Request, db: Session = Depends(get_db)):
    if full_path.startswith(_RESERVED_PREFIXES):
        raise ApiError(status_code=404, code="NOT_FOUND", message="Not found.")

    authenticated = _has_session(request, db)
    decision = resolve_route(f"/{full_path}", authenticated=authenticated)
    if decision.is_redirect:
        logger.info(
            "page_redirect",
            extra={"path": decision.path, "redirect_to": decision.redirect_to, "authenticated": authenticated},
        )
        return RedirectResponse(url=decision.redirect_to, status_code=303)
    return PageRead(path=decision.path, page=decision.route.page, authenticated=authenticated)
