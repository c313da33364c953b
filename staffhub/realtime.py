from __future__ import annotations

import asyncio
import logging
import threading
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Literal

from fastapi import WebSocket
from fastapi.encoders import jsonable_encoder
from sqlalchemy import event, inspect
from sqlalchemy.orm import Session

from staffhub.policies import realtime_tables

logger = logging.getLogger("staffhub.realtime")

ChangeType = Literal["INSERT", "UPDATE", "DELETE"]
_PENDING_KEY = "realtime_pending"


@dataclass(frozen=True, slots=True)
class ChangeEvent:
    table: str
    type: ChangeType
    record: dict[str, Any]
    commit_ts: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_message(self) -> dict[str, Any]:
        return jsonable_encoder(
            {
                "table": self.table,
                "type": self.type,
                "record": self.record,
                "commit_timestamp": self.commit_ts,
            }
        )


class ChangeFeed:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._subscribers: dict[str, list[Callable[[ChangeEvent], None]]] = defaultdict(list)

    def subscribe(self, table: str, callback: Callable[[ChangeEvent], None]) -> Callable[[], None]:
        with self._lock:
            self._subscribers[table].append(callback)

        def _unsubscribe() -> None:
            with self._lock:
                callbacks = self._subscribers.get(table, [])
                if callback in callbacks:
                    callbacks.remove(callback)

        return _unsubscribe

    def subscriber_count(self, table: str) -> int:
        with self._lock:
            return len(self._subscribers.get(table, []))

    def publish(self, change: ChangeEvent) -> None:
        with self._lock:
            callbacks = list(self._subscribers.get(change.table, []))
        for callback in callbacks:
            try:
                callback(change)
            except Exception:
                logger.exception("realtime_subscriber_failed", extra={"table": change.table, "type": change.type})


feed = ChangeFeed()


def _record_of(obj: Any) -> dict[str, Any]:
    mapper = inspect(obj).mapper
    return {attr.key: getattr(obj, attr.key) for attr in mapper.column_attrs}


def queue_change(db: Session, table: str, change_type: ChangeType, record: dict[str, Any]) -> None:
    """Stage a change that bypasses the unit of work, e.g. a bulk delete."""
    if table not in realtime_tables():
        return
    pending: list[ChangeEvent] = db.info.setdefault(_PENDING_KEY, [])
    pending.append(ChangeEvent(table=table, type=change_type, record=record))


@event.listens_for(Session, "after_flush")
def _collect_changes(session: Session, _flush_context) -> None:  # type: ignore[no-untyped-def]
    published = realtime_tables()
    for change_type, objects in (("INSERT", session.new), ("UPDATE", session.dirty), ("DELETE", session.deleted)):
        for obj in objects:
            table = getattr(obj, "__tablename__", None)
            if table not in published:
                continue
            if change_type == "UPDATE" and not session.is_modified(obj, include_collections=False):
                continue
            queue_change(session, table, change_type, _record_of(obj))  # type: ignore[arg-type]


@event.listens_for(Session, "after_commit")
def _publish_changes(session: Session) -> None:
    pending: list[ChangeEvent] = session.info.pop(_PENDING_KEY, [])
    for change in pending:
        feed.publish(change)


@event.listens_for(Session, "after_rollback")
def _discard_changes(session: Session) -> None:
    session.info.pop(_PENDING_KEY, None)


class ConnectionManager:
    def __init__(self, change_feed: ChangeFeed) -> None:
        self._feed = change_feed
        self._active: dict[int, Callable[[], None]] = {}

    async def connect(self, websocket: WebSocket, table: str) -> asyncio.Queue[dict[str, Any]]:
        loop = asyncio.get_running_loop()
        queue: asyncio.Queue[dict[str, Any]] = asyncio.Queue()

        def _forward(change: ChangeEvent) -> None:
            loop.call_soon_threadsafe(queue.put_nowait, change.to_message())

        self._active[id(websocket)] = self._feed.subscribe(table, _forward)
        await websocket.accept()
        await websocket.send_json({"type": "SUBSCRIBED", "table": table})
        logger.info("realtime_subscribed", extra={"table": table, "subscribers": self._feed.subscriber_count(table)})
        return queue

    def disconnect(self, websocket: WebSocket) -> None:
        unsubscribe = self._active.pop(id(websocket), None)
        if unsubscribe is not None:
            unsubscribe()


manager = ConnectionManager(feed)
