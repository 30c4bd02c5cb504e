"""
Transient user-facing notices (the toasts of the review screens).
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from dataclasses import field
from datetime import datetime
from datetime import timezone
from enum import Enum

logger = logging.getLogger(__name__)


class NoticeLevel(str, Enum):
    INFO = "info"
    SUCCESS = "success"
    ERROR = "error"


@dataclass(frozen=True)
class Notice:
    level: NoticeLevel
    text: str
    created: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class NoticeBoard:
    """
    Collects notices and fans them out to listeners.

    Non-blocking by nature: posting never raises, a failing listener is
    logged and skipped.
    """

    def __init__(self, limit: int = 50):
        """``limit`` caps the notices kept; listeners see every notice."""
        self.limit = limit
        self.notices: list[Notice] = []
        self._listeners: list[Callable[[Notice], None]] = []

    def subscribe(self, listener: Callable[[Notice], None]) -> None:
        self._listeners.append(listener)

    def post(self, level: NoticeLevel, text: str) -> Notice:
        notice = Notice(level=level, text=text)
        self.notices.append(notice)
        if len(self.notices) > self.limit:
            del self.notices[: len(self.notices) - self.limit]

        for listener in self._listeners:
            try:
                listener(notice)
            except Exception:
                logger.exception("Notice listener failed")
        return notice

    def info(self, text: str) -> Notice:
        return self.post(NoticeLevel.INFO, text)

    def success(self, text: str) -> Notice:
        return self.post(NoticeLevel.SUCCESS, text)

    def error(self, text: str) -> Notice:
        return self.post(NoticeLevel.ERROR, text)

    def clear(self) -> None:
        self.notices.clear()
