from __future__ import annotations

import enum
import itertools
import logging
from dataclasses import dataclass

logger = logging.getLogger("staffhub.client.notifications")


class Variant(str, enum.Enum):
    DEFAULT = "default"
    DESTRUCTIVE = "destructive"


@dataclass(frozen=True, slots=True)
class Notification:
    id: int
    title: str
    description: str = ""
    variant: Variant = Variant.DEFAULT


class Notifier:
    """Dismissible user-facing notifications, newest last."""

    def __init__(self, limit: int | None = None):
        self.limit = limit
        self._items: list[Notification] = []
        self._ids = itertools.count(1)

    @property
    def notifications(self) -> list[Notification]:
        return list(self._items)

    @property
    def latest(self) -> Notification | None:
        return self._items[-1] if self._items else None

    def notify(self, title: str, description: str = "", variant: Variant = Variant.DEFAULT) -> Notification:
        item = Notification(id=next(self._ids), title=title, description=description, variant=Variant(variant))
        self._items.append(item)
        if self.limit is not None and len(self._items) > self.limit:
            del self._items[: len(self._items) - self.limit]
        logger.info("notification", extra={"title": title, "variant": item.variant.value})
        return item

    def success(self, description: str) -> Notification:
        return self.notify("Success", description)

    def error(self, description: str) -> Notification:
        return self.notify("Error", description, Variant.DESTRUCTIVE)

    def dismiss(self, notification_id: int) -> None:
        self._items = [item for item in self._items if item.id != notification_id]

    def clear(self) -> None:
        self._items.clear()
