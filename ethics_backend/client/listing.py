"""
Live list of applications (the office's index page).

Newly submitted applications arrive on ``application-list`` and are folded
into the page already held; nothing already shown is ever dropped.
"""

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from dataclasses import field
from dataclasses import replace
from typing import Any

from ethics_backend.client.notices import NoticeBoard
from ethics_backend.client.reconciler import merge_identified
from ethics_backend.client.transport import ChannelClient
from ethics_backend.client.transport import Subscription

logger = logging.getLogger(__name__)

APPLICATION_LIST_CHANNEL = "application-list"
APPLICATION_CREATED = "ApplicationCreated"


@dataclass(frozen=True)
class ApplicationPage:
    data: list[dict[str, Any]] = field(default_factory=list)
    total: int = 0
    current_page: int = 1
    per_page: int = 10

    @classmethod
    def from_response(cls, payload: Mapping[str, Any]) -> "ApplicationPage":
        return cls(
            data=list(payload.get("data") or []),
            total=payload.get("total", 0),
            current_page=payload.get("current_page", 1),
            per_page=payload.get("per_page", 10),
        )


def add_created(page: ApplicationPage, application: Mapping[str, Any]) -> tuple[ApplicationPage, bool]:
    """
    Fold a created application into ``page``.

    A new id is shown first (the list is newest first) and counted in
    ``total``; a known id is merged in place.
    """
    known = any(item.get("id") == application.get("id") for item in page.data)
    if not known:
        return replace(page, data=[dict(application), *page.data], total=page.total + 1), True

    data, changed = merge_identified(page.data, [application])
    if not changed:
        return page, False
    return replace(page, data=data), True


def merge_page(page: ApplicationPage, fetched: ApplicationPage) -> ApplicationPage:
    """Merge a re-fetched page, keeping entries the fetch did not return."""
    data, _ = merge_identified(page.data, fetched.data)
    return replace(
        page,
        data=list(data),
        total=max(fetched.total, page.total),
        current_page=fetched.current_page,
        per_page=fetched.per_page,
    )


class ApplicationListFeed:
    """Keeps an ``ApplicationPage`` in sync with ``application-list``."""

    def __init__(
        self,
        page: ApplicationPage,
        *,
        channels: ChannelClient | None = None,
        notices: NoticeBoard | None = None,
    ):
        self.page = page
        self.channels = channels
        self.notices = notices if notices is not None else NoticeBoard()
        self._subscription: Subscription | None = None

    def connect(self) -> None:
        if self.channels is None or self._subscription is not None:
            return
        try:
            self._subscription = self.channels.subscribe(APPLICATION_LIST_CHANNEL, self.dispatch)
        except Exception:
            logger.exception("Live updates unavailable for the application list")

    def close(self) -> None:
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None

    def dispatch(self, event: str, payload: dict[str, Any]) -> None:
        if event != APPLICATION_CREATED:
            return
        application = payload.get("application")
        if not isinstance(application, Mapping) or "id" not in application:
            logger.warning("Ignoring %s event without an application", event)
            return

        self.page, changed = add_created(self.page, application)
        if changed:
            self.notices.info(f"New application: {application.get('research_title', '')}".strip())
