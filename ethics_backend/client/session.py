"""
Client-side session over one Application.

Holds the snapshot and is its only writer: every change goes through the
reconciler and replaces the held snapshot wholesale. Two triggers feed it,
in any relative order:

* responses to the user's own actions (``handle_update``);
* push events on ``application.{id}`` (``connect``).
"""

import logging
from collections.abc import Callable
from collections.abc import Mapping
from typing import Any

from pydantic import ValidationError

from ethics_backend.client import reconciler
from ethics_backend.client.exceptions import ClientError
from ethics_backend.client.notices import NoticeBoard
from ethics_backend.client.pending import PendingMutation
from ethics_backend.client.schemas import ApplicationUpdatedPayload
from ethics_backend.client.schemas import parse_message
from ethics_backend.client.schemas import parse_partial
from ethics_backend.client.transport import ApplicationApiClient
from ethics_backend.client.transport import ChannelClient
from ethics_backend.client.transport import Subscription

logger = logging.getLogger(__name__)

APPLICATION_UPDATED = "ApplicationUpdated"
FEEDBACK_SENT = "SendAndUpdateFeedback"

SENDING = "sending..."
SEND_FAILED = "Failed to send message"


def application_channel(application_id: str) -> str:
    return f"application.{application_id}"


class ApplicationSession:
    """
    The state a review screen keeps for one application.

    Collaborators are injected; ``channels`` and ``notices`` are optional so
    the session also works as a plain state holder.
    """

    def __init__(
        self,
        application: Mapping[str, Any],
        *,
        api: ApplicationApiClient | None = None,
        channels: ChannelClient | None = None,
        notices: NoticeBoard | None = None,
        user_name: str = "",
    ):
        self.application = application
        self.api = api
        self.channels = channels
        self.notices = notices if notices is not None else NoticeBoard()
        self.user_name = user_name
        self.pending: dict[str, PendingMutation] = {}
        self._listeners: list[Callable[[Mapping[str, Any]], None]] = []
        self._subscription: Subscription | None = None

    @property
    def id(self) -> str:
        return self.application["id"]

    def on_change(self, listener: Callable[[Mapping[str, Any]], None]) -> None:
        self._listeners.append(listener)

    def _replace(self, application: Mapping[str, Any]) -> None:
        self.application = application
        for listener in self._listeners:
            listener(application)

    # Updates

    def handle_update(self, payload: Mapping[str, Any], *, from_push: bool = False) -> bool:
        """
        Merge an ``{application, message}`` payload into the snapshot.

        Returns whether the snapshot changed. Push-sourced changes raise a
        notice with the event message or a generated default.
        """
        partial = payload.get("application")
        if not isinstance(partial, Mapping):
            logger.warning("Update for application %s carries no application partial", self.id)
            return False

        application, changed = reconciler.merge(self.application, parse_partial(dict(partial)))
        if not changed:
            return False

        self._replace(application)
        if from_push:
            title = partial.get("research_title") or self.application.get("research_title", "")
            self.notices.info(payload.get("message") or f"{title} has a new update")
        return True

    def add_status(self, status: Mapping[str, Any]) -> None:
        self._replace(reconciler.add_status(self.application, status))

    def add_message(self, status_id: str, message: Mapping[str, Any]) -> None:
        self._replace(reconciler.add_message(self.application, status_id, message))

    def update_message(self, status_id: str, message: Mapping[str, Any], pending_id: str = reconciler.SENTINEL_ID) -> None:
        self._replace(reconciler.replace_message(self.application, status_id, message, pending_id))

    def remove_message(self, status_id: str, pending_id: str = reconciler.SENTINEL_ID) -> None:
        self._replace(reconciler.remove_message(self.application, status_id, pending_id))

    def receive_message(self, message: Mapping[str, Any]) -> bool:
        application, changed = reconciler.upsert_message(self.application, message)
        if changed:
            self._replace(application)
        return changed

    # Optimistic feedback

    def send_message(self, status_id: str, content: str) -> bool:
        """
        Post feedback on a status with an optimistic local copy.

        The message shows up at once as ``sending...`` under a local id; it
        is swapped for the server's copy on success and removed on failure.
        """
        remarks = content.strip()
        if not remarks:
            return False
        if self.api is None:
            msg = "send_message needs an API client"
            raise ClientError(msg)

        mutation = PendingMutation()
        self.pending[mutation.local_id] = mutation
        self.add_message(
            status_id,
            {
                "id": mutation.local_id,
                "app_profile_id": self.id,
                "app_status_id": status_id,
                "remarks": remarks,
                "by": self.user_name,
                "read_status": SENDING,
            },
        )

        try:
            confirmed = self.api.post_message(status_id, remarks=remarks, by=self.user_name)
        except ClientError as exc:
            logger.warning("Sending feedback on status %s failed: %s", status_id, exc)
            mutation.fail(str(exc))
            self.remove_message(status_id, mutation.local_id)
            self.notices.error(SEND_FAILED)
            return False
        finally:
            self.pending.pop(mutation.local_id, None)

        mutation.confirm(confirmed["id"])
        self.update_message(status_id, confirmed, mutation.local_id)
        return True

    # Push channel

    def connect(self) -> None:
        """Subscribe to ``application.{id}``; failures only cost live updates."""
        if self.channels is None or self._subscription is not None:
            return
        try:
            self._subscription = self.channels.subscribe(application_channel(self.id), self.dispatch)
        except Exception:
            logger.exception("Live updates unavailable for application %s", self.id)

    def close(self) -> None:
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None

    def dispatch(self, event: str, payload: dict[str, Any]) -> None:
        """Route one push event."""
        if event == APPLICATION_UPDATED:
            try:
                envelope = ApplicationUpdatedPayload.model_validate(payload)
            except ValidationError as exc:
                logger.warning("Ignoring malformed %s event: %s", event, exc.errors())
                return
            self.handle_update(envelope.model_dump(), from_push=True)
        elif event == FEEDBACK_SENT:
            message = parse_message(payload.get("message_thread") or {})
            if message is not None:
                self.receive_message(message)
        else:
            logger.debug("Ignoring event %s on application %s", event, self.id)
