import pytest
from django.db import transaction

from ethics_backend.realtime.broadcasting import broadcast
from ethics_backend.realtime.broadcasting import get_broadcaster
from ethics_backend.realtime.events import BroadcastEvent
from ethics_backend.realtime.events import application_created
from ethics_backend.realtime.tasks import deliver_event

pytestmark = pytest.mark.django_db


class TestBroadcast:
    def test_event_is_sent_after_commit(self, broadcaster, django_capture_on_commit_callbacks):
        with django_capture_on_commit_callbacks(execute=True):
            broadcast(application_created({"id": "app-1", "research_title": "Sleep"}))
            assert broadcaster.history == []

        [event] = broadcaster.history
        assert event.name == "ApplicationCreated"
        assert event.payload["application"]["id"] == "app-1"

    def test_rolled_back_transaction_sends_nothing(self, broadcaster, django_capture_on_commit_callbacks):
        with django_capture_on_commit_callbacks(execute=True):
            with pytest.raises(RuntimeError), transaction.atomic():
                broadcast(application_created({"id": "app-1"}))
                raise RuntimeError("rollback")

        assert broadcaster.history == []

    def test_configured_backend_is_shared(self, broadcaster):
        assert get_broadcaster() is broadcaster


class TestDeliverEvent:
    def test_publishes_serialized_event(self, broadcaster):
        event = BroadcastEvent(channel="application.app-1", name="ApplicationUpdated", payload={"message": "hi"}, socket_id="s1")

        deliver_event(event.to_message())

        assert broadcaster.history == [event]
