from __future__ import annotations

import itertools
import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from .errors import BoardError

logger = logging.getLogger(__name__)

LEVEL_ERROR = "error"
LEVEL_BUSY = "busy"


@dataclass(frozen=True)
class Notification:
    """A dismissible message for the operator."""
    id: int
    level: str
    message: str
    item_id: Optional[str] = None
    error: Optional[BoardError] = None


NotificationListener = Callable[[Notification], None]


class Notifier:
    """Collects operator notifications and fans them out to subscribers."""

    def __init__(self) -> None:
        self._ids = itertools.count(1)
        self._pending: Dict[int, Notification] = {}
        self._listeners: List[NotificationListener] = []

    def subscribe(self, listener: NotificationListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def notify(self, level: str, message: str, item_id: Optional[str] = None,
               error: Optional[BoardError] = None) -> Notification:
        note = Notification(next(self._ids), level, message, item_id, error)
        self._pending[note.id] = note
        for listener in list(self._listeners):
            try:
                listener(note)
            except Exception:
                logger.exception("notification listener %r failed", listener)
        return note

    def pending(self) -> List[Notification]:
        return list(self._pending.values())

    def dismiss(self, notification_id: int) -> bool:
        return self._pending.pop(notification_id, None) is not None
