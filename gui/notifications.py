"""Transient user-facing notifications (toasts)."""

from __future__ import annotations

import itertools
from dataclasses import dataclass
from enum import Enum
from typing import Iterator


class NotificationLevel(str, Enum):
    INFO = "info"
    SUCCESS = "success"
    ERROR = "error"


@dataclass(frozen=True, slots=True)
class Notification:
    id: int
    text: str
    level: NotificationLevel


class Notifications:
    """
    Ordered notifications keyed by an opaque increasing id.

    Entries leave only through dismiss(); the Qt shell implements its display
    timeout by dispatching the same DismissNotification message.
    """

    def __init__(self) -> None:
        self._items: dict[int, Notification] = {}
        self._ids = itertools.count(1)

    def push(self, text: str, level: NotificationLevel = NotificationLevel.INFO) -> Notification:
        item = Notification(id=next(self._ids), text=text, level=level)
        self._items[item.id] = item
        return item

    def dismiss(self, notification_id: int) -> bool:
        """Remove one entry. Returns False if the id is unknown."""
        return self._items.pop(notification_id, None) is not None

    def snapshot(self) -> tuple[Notification, ...]:
        return tuple(self._items.values())

    def __iter__(self) -> Iterator[Notification]:
        return iter(self.snapshot())

    def __len__(self) -> int:
        return len(self._items)
