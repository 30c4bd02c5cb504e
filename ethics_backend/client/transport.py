"""
Client-side collaborators of the application session.

Both are constructed explicitly and handed to the session:

* ``ApplicationApiClient``: request/response calls to the REST API, on
  top of ``httpx``.
* ``ChannelClient``: subscriptions to the push channels; the
  ``BroadcasterChannelClient`` implementation attaches to a broadcaster
  backend of ``ethics_backend.realtime``.
"""

import logging
import uuid
from collections.abc import Callable
from typing import Any
from typing import Protocol

import httpx

from ethics_backend.client.exceptions import TransportError

logger = logging.getLogger(__name__)

SOCKET_ID_HEADER = "X-Socket-ID"

Listener = Callable[[str, dict[str, Any]], None]


class Subscription(Protocol):
    def unsubscribe(self) -> None: ...


class ChannelClient(Protocol):
    socket_id: str

    def subscribe(self, channel: str, listener: Listener) -> Subscription: ...


def new_socket_id() -> str:
    return uuid.uuid4().hex


class BroadcasterChannelClient:
    """Listen to a broadcaster backend as one socket."""

    def __init__(self, broadcaster, socket_id: str | None = None):
        self.broadcaster = broadcaster
        self.socket_id = socket_id or new_socket_id()

    def subscribe(self, channel: str, listener: Listener) -> Subscription:
        return self.broadcaster.subscribe(channel, listener, socket_id=self.socket_id)


class ApplicationApiClient:
    """
    Thin JSON client for the ethics review API.

    Every failure (network error, timeout, non-2xx answer) surfaces as
    ``TransportError``.
    """

    def __init__(
        self,
        base_url: str,
        *,
        socket_id: str | None = None,
        headers: dict[str, str] | None = None,
        timeout: float = 10.0,
        transport: httpx.BaseTransport | None = None,
    ):
        default_headers = {"Accept": "application/json"}
        if socket_id:
            default_headers[SOCKET_ID_HEADER] = socket_id
        default_headers.update(headers or {})
        self.client = httpx.Client(
            base_url=base_url,
            headers=default_headers,
            timeout=timeout,
            transport=transport,
        )

    def close(self) -> None:
        self.client.close()

    def __enter__(self) -> "ApplicationApiClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def request(self, method: str, path: str, **kwargs) -> dict[str, Any]:
        try:
            response = self.client.request(method, path, **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            logger.warning("%s %s answered %s", method, path, exc.response.status_code)
            raise TransportError(
                f"{method} {path} failed with status {exc.response.status_code}",
                status_code=exc.response.status_code,
            ) from exc
        except httpx.HTTPError as exc:
            logger.warning("%s %s failed: %s", method, path, exc)
            raise TransportError(f"{method} {path} failed: {exc}") from exc

        if not response.content:
            return {}
        return response.json()

    def get_application(self, application_id: str) -> dict[str, Any]:
        return self.request("GET", f"/applications/{application_id}")

    def list_applications(self, page: int = 1, **filters) -> dict[str, Any]:
        return self.request("GET", "/applications/", params={"page": page, **filters})

    def post_message(self, status_id: str, remarks: str, by: str) -> dict[str, Any]:
        """Store a feedback message; returns the confirmed message thread."""
        data = self.request(
            "POST",
            f"/statuses/{status_id}/messages",
            json={"remarks": remarks, "by": by},
        )
        if "message_thread" not in data:
            msg = f"POST /statuses/{status_id}/messages returned no message thread"
            raise TransportError(msg)
        return data["message_thread"]

    def mark_message_read(self, message_id: str, read_status: str) -> dict[str, Any]:
        return self.request("PATCH", f"/messages/{message_id}", json={"read_status": read_status})

    def update_status(self, application_id: str, status_id: str, **data) -> dict[str, Any]:
        return self.request(
            "PATCH",
            f"/applications/{application_id}/statuses/{status_id}",
            json=data,
        )
