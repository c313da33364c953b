from __future__ import annotations

import asyncio
import hmac
import logging
import uuid
from contextlib import suppress
from typing import Any

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect, status

from staffhub.db import SessionLocal
from staffhub.errors import ApiError
from staffhub.policies import is_allowed, realtime_tables
from staffhub.realtime import manager
from staffhub.security import resolve_session
from staffhub.settings import get_settings

logger = logging.getLogger("staffhub.realtime")
router = APIRouter(tags=["realtime"])


def _owner_of(message: dict[str, Any]) -> uuid.UUID | None:
    record_id = (message.get("record") or {}).get("id")
    try:
        return uuid.UUID(str(record_id))
    except ValueError:
        return None


def _api_key_valid(provided: str | None) -> bool:
    expected = (get_settings().public_api_key or "").strip()
    value = (provided or "").strip()
    return bool(expected and value and hmac.compare_digest(value, expected))


async def stop_sender(sender: asyncio.Task[None], *, table: str, user_id: uuid.UUID) -> None:
    """Cancel the per-socket sender; a send failure it died on is logged, not re-raised."""
    sender.cancel()
    with suppress(asyncio.CancelledError):
        try:
            await sender
        except Exception:
            logger.exception("realtime_send_failed", extra={"table": table, "user_id": str(user_id)})


@router.websocket("/realtime/v1/{table}")
async def realtime_channel(
    websocket: WebSocket,
    table: str,
    token: str | None = Query(default=None),
    apikey: str | None = Query(default=None),
) -> None:
    if not _api_key_valid(apikey or websocket.headers.get("apikey")):
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return
    if table not in realtime_tables():
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return
    if not token:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    with SessionLocal() as db:
        try:
            current = resolve_session(db, token)
        except ApiError:
            await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
            return
    if not is_allowed(table, user_id=current.id, owner_id=current.id):
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    queue = await manager.connect(websocket, table)

    async def _pump() -> None:
        while True:
            message = await queue.get()
            if not is_allowed(table, user_id=current.id, owner_id=_owner_of(message)):
                continue
            await websocket.send_json(message)

    sender = asyncio.create_task(_pump())
    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        logger.info("realtime_disconnected", extra={"table": table, "user_id": str(current.id)})
    finally:
        manager.disconnect(websocket)
        await stop_sender(sender, table=table, user_id=current.id)
