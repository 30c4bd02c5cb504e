"""
Tests for the client-side application session.

The API is served by ``httpx.MockTransport``; push events go through an
in-process broadcaster.
"""

import json

import httpx
import pytest

from ethics_backend.client.notices import NoticeLevel
from ethics_backend.client.session import SEND_FAILED
from ethics_backend.client.session import SENDING
from ethics_backend.client.session import ApplicationSession
from ethics_backend.client.transport import SOCKET_ID_HEADER
from ethics_backend.client.transport import ApplicationApiClient
from ethics_backend.client.transport import BroadcasterChannelClient
from ethics_backend.realtime.backends import LocMemBroadcaster
from ethics_backend.realtime.events import BroadcastEvent


def make_application():
    return {
        "id": "app-1",
        "research_title": "Sleep and memory",
        "protocol_code": None,
        "statuses": [
            {
                "id": "s1",
                "name": "Application Requirements",
                "sequence": 1,
                "status": "In Progress",
                "updated_at": "2024-01-01T10:00:00+00:00",
                "messages": [],
            },
        ],
        "requirements": [{"id": "r1", "name": "Informed consent", "status": "Submitted"}],
    }


def api_client(handler, socket_id="sock-1"):
    return ApplicationApiClient(
        "http://testserver/api",
        socket_id=socket_id,
        transport=httpx.MockTransport(handler),
    )


@pytest.fixture
def broadcaster():
    return LocMemBroadcaster()


class TestHandleUpdate:
    """Responses to the user's own actions."""

    def test_response_merge_raises_no_notice(self):
        session = ApplicationSession(make_application())

        changed = session.handle_update({"application": {"protocol_code": "PC-001"}, "message": "Assigned"})

        assert changed is True
        assert session.application["protocol_code"] == "PC-001"
        assert session.notices.notices == []

    def test_push_merge_raises_event_notice(self):
        session = ApplicationSession(make_application())

        session.handle_update({"application": {"protocol_code": "PC-001"}, "message": "Protocol assigned"}, from_push=True)

        assert [n.text for n in session.notices.notices] == ["Protocol assigned"]

    def test_push_without_message_uses_default_notice(self):
        session = ApplicationSession(make_application())

        session.handle_update({"application": {"review_type": "expedited"}}, from_push=True)

        assert session.notices.notices[0].text == "Sleep and memory has a new update"

    def test_unchanged_push_is_silent(self):
        session = ApplicationSession(make_application())
        snapshot = session.application

        changed = session.handle_update({"application": {"research_title": "Sleep and memory"}}, from_push=True)

        assert changed is False
        assert session.application is snapshot
        assert session.notices.notices == []

    def test_payload_without_application_is_ignored(self):
        session = ApplicationSession(make_application())

        assert session.handle_update({"message": "nothing"}) is False

    def test_listeners_see_new_snapshot(self):
        session = ApplicationSession(make_application())
        seen = []
        session.on_change(seen.append)

        session.handle_update({"application": {"protocol_code": "PC-002"}})

        assert seen == [session.application]


class TestSendMessage:
    """Optimistic feedback posting."""

    def test_confirmed_message_replaces_local_copy(self):
        seen_during_flight = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen_during_flight.extend(session.application["statuses"][0]["messages"])
            body = json.loads(request.content)
            assert request.headers[SOCKET_ID_HEADER] == "sock-1"
            return httpx.Response(
                201,
                json={
                    "message_thread": {
                        "id": "m1",
                        "app_profile_id": "app-1",
                        "app_status_id": "s1",
                        "remarks": body["remarks"],
                        "by": body["by"],
                        "read_status": "sent",
                        "updated_at": "2024-01-01T11:00:00+00:00",
                    },
                    "message": "Message sent.",
                },
            )

        session = ApplicationSession(make_application(), api=api_client(handler), user_name="Dr. Reyes")

        assert session.send_message("s1", "  Please upload the consent form  ") is True

        assert seen_during_flight[0]["read_status"] == SENDING
        assert seen_during_flight[0]["id"].startswith("local-")
        messages = session.application["statuses"][0]["messages"]
        assert len(messages) == 1
        assert messages[0]["id"] == "m1"
        assert messages[0]["remarks"] == "Please upload the consent form"
        assert session.pending == {}

    def test_failed_send_rolls_back(self):
        session = ApplicationSession(
            make_application(),
            api=api_client(lambda request: httpx.Response(500, json={"code": "INTERNAL_ERROR"})),
        )

        assert session.send_message("s1", "Hello") is False

        assert session.application["statuses"][0]["messages"] == []
        assert session.notices.notices[-1].level is NoticeLevel.ERROR
        assert session.notices.notices[-1].text == SEND_FAILED
        assert session.pending == {}

    def test_network_error_rolls_back(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        session = ApplicationSession(make_application(), api=api_client(handler))

        assert session.send_message("s1", "Hello") is False
        assert session.application["statuses"][0]["messages"] == []

    def test_blank_message_is_not_sent(self):
        calls = []
        session = ApplicationSession(make_application(), api=api_client(lambda r: calls.append(r)))

        assert session.send_message("s1", "   ") is False
        assert calls == []

    def test_echo_of_own_message_is_not_duplicated(self):
        confirmed = {
            "id": "m1",
            "app_profile_id": "app-1",
            "app_status_id": "s1",
            "remarks": "Hello",
            "by": "Dr. Reyes",
            "read_status": "sent",
            "updated_at": "2024-01-01T11:00:00+00:00",
        }
        session = ApplicationSession(
            make_application(),
            api=api_client(lambda request: httpx.Response(201, json={"message_thread": confirmed})),
        )
        session.send_message("s1", "Hello")

        session.dispatch("SendAndUpdateFeedback", {"message_thread": dict(confirmed), "message": None})

        assert len(session.application["statuses"][0]["messages"]) == 1

    def test_push_before_response_is_not_duplicated(self):
        confirmed = {
            "id": "m1",
            "app_profile_id": "app-1",
            "app_status_id": "s1",
            "remarks": "Hello",
            "by": "Dr. Reyes",
            "read_status": "sent",
            "updated_at": "2024-01-01T11:00:00+00:00",
        }
        session = ApplicationSession(make_application())

        def handler(request):
            session.dispatch("SendAndUpdateFeedback", {"message_thread": dict(confirmed), "message": None})
            return httpx.Response(201, json={"message_thread": confirmed})

        session.api = api_client(handler)

        assert session.send_message("s1", "Hello") is True
        assert [m["id"] for m in session.application["statuses"][0]["messages"]] == ["m1"]


class TestPushChannel:
    def test_updates_from_other_sockets_are_merged(self, broadcaster):
        session = ApplicationSession(make_application(), channels=BroadcasterChannelClient(broadcaster, "viewer"))
        session.connect()

        broadcaster.publish(
            BroadcastEvent(
                channel="application.app-1",
                name="ApplicationUpdated",
                payload={
                    "application": {"requirements": [{"id": "r2", "name": "CV", "status": "Submitted"}]},
                    "message": "New requirements uploaded.",
                },
                socket_id="office",
            )
        )

        assert [r["id"] for r in session.application["requirements"]] == ["r1", "r2"]
        assert session.notices.notices[-1].text == "New requirements uploaded."

    def test_own_socket_events_are_skipped(self, broadcaster):
        session = ApplicationSession(make_application(), channels=BroadcasterChannelClient(broadcaster, "me"))
        session.connect()

        broadcaster.publish(
            BroadcastEvent(
                channel="application.app-1",
                name="ApplicationUpdated",
                payload={"application": {"protocol_code": "PC-001"}},
                socket_id="me",
            )
        )

        assert session.application["protocol_code"] is None

    def test_feedback_event_appends_message(self, broadcaster):
        session = ApplicationSession(make_application(), channels=BroadcasterChannelClient(broadcaster))
        session.connect()

        broadcaster.publish(
            BroadcastEvent(
                channel="application.app-1",
                name="SendAndUpdateFeedback",
                payload={
                    "message_thread": {"id": "m5", "app_status_id": "s1", "remarks": "Noted", "read_status": "sent"},
                    "message": "New message from Staff in Application Requirements",
                },
            )
        )

        assert session.application["statuses"][0]["messages"][0]["id"] == "m5"

    def test_malformed_event_is_ignored(self, broadcaster):
        session = ApplicationSession(make_application(), channels=BroadcasterChannelClient(broadcaster))
        session.connect()
        snapshot = session.application

        broadcaster.publish(BroadcastEvent(channel="application.app-1", name="ApplicationUpdated", payload={"application": "?"}))
        broadcaster.publish(BroadcastEvent(channel="application.app-1", name="SendAndUpdateFeedback", payload={}))

        assert session.application is snapshot

    def test_close_stops_updates(self, broadcaster):
        session = ApplicationSession(make_application(), channels=BroadcasterChannelClient(broadcaster))
        session.connect()
        session.close()

        broadcaster.publish(
            BroadcastEvent(
                channel="application.app-1",
                name="ApplicationUpdated",
                payload={"application": {"protocol_code": "PC-009"}},
            )
        )

        assert session.application["protocol_code"] is None

    def test_subscription_failure_degrades_to_no_live_updates(self):
        class BrokenChannels:
            socket_id = "x"

            def subscribe(self, channel, listener):
                raise ConnectionError("broker down")

        session = ApplicationSession(make_application(), channels=BrokenChannels())

        session.connect()

        assert session.handle_update({"application": {"protocol_code": "PC-001"}}) is True


class TestApiClient:
    def test_update_status_sends_socket_id(self):
        captured = {}

        def handler(request):
            captured["path"] = request.url.path
            captured["socket"] = request.headers.get(SOCKET_ID_HEADER)
            captured["body"] = json.loads(request.content)
            return httpx.Response(200, json={"application": {"id": "app-1"}, "message": "ok"})

        with api_client(handler, socket_id="sock-9") as client:
            data = client.update_status("app-1", "s1", status="Approved", is_completed=True)

        assert captured["path"] == "/api/applications/app-1/statuses/s1"
        assert captured["socket"] == "sock-9"
        assert captured["body"] == {"status": "Approved", "is_completed": True}
        assert data["message"] == "ok"

    def test_error_status_raises_transport_error(self):
        from ethics_backend.client.exceptions import TransportError

        with api_client(lambda request: httpx.Response(404, json={})) as client:
            with pytest.raises(TransportError) as exc_info:
                client.get_application("missing")

        assert exc_info.value.status_code == 404
