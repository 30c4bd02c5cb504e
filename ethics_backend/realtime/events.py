"""
Events pushed to review screens.

Channels:
- application.{id}: ApplicationUpdated, SendAndUpdateFeedback
- application-list: ApplicationCreated
"""

from dataclasses import dataclass
from dataclasses import field
from typing import Any

APPLICATION_LIST_CHANNEL = "application-list"

# Request header carrying the realtime connection id of the caller.
SOCKET_ID_HEADER = "X-Socket-ID"

APPLICATION_CREATED = "ApplicationCreated"
APPLICATION_UPDATED = "ApplicationUpdated"
FEEDBACK_SENT = "SendAndUpdateFeedback"


def application_channel(application_id) -> str:
    return f"application.{application_id}"


@dataclass(frozen=True)
class BroadcastEvent:
    """
    One event on one channel.

    ``socket_id`` identifies the connection that caused the event; that
    connection already has the result from its HTTP response and is skipped
    on delivery.
    """

    channel: str
    name: str
    payload: dict[str, Any] = field(default_factory=dict)
    socket_id: str | None = None

    def to_message(self) -> dict[str, Any]:
        return {
            "channel": self.channel,
            "event": self.name,
            "data": self.payload,
            "socket_id": self.socket_id,
        }

    @classmethod
    def from_message(cls, message: dict[str, Any]) -> "BroadcastEvent":
        return cls(
            channel=message["channel"],
            name=message["event"],
            payload=message.get("data") or {},
            socket_id=message.get("socket_id"),
        )


def application_updated(application, partial: dict[str, Any], message: str = "", socket_id: str | None = None) -> BroadcastEvent:
    """``partial`` is the same sparse application view the HTTP response carries."""
    return BroadcastEvent(
        channel=application_channel(application.id),
        name=APPLICATION_UPDATED,
        payload={
            "application": partial,
            "message": message or f"{application.research_title} has a new update.",
        },
        socket_id=socket_id,
    )


def feedback_sent(message_thread: dict[str, Any], message: str | None = None, socket_id: str | None = None) -> BroadcastEvent:
    return BroadcastEvent(
        channel=application_channel(message_thread["app_profile_id"]),
        name=FEEDBACK_SENT,
        payload={"message_thread": message_thread, "message": message},
        socket_id=socket_id,
    )


def application_created(summary: dict[str, Any]) -> BroadcastEvent:
    return BroadcastEvent(
        channel=APPLICATION_LIST_CHANNEL,
        name=APPLICATION_CREATED,
        payload={"application": summary},
    )
