"""
Entry point for publishing events from the service layer.

Events are only sent once the surrounding transaction commits, and are
delivered by a Celery task so a slow broker never holds a request.
"""

import logging
from functools import lru_cache

from django.conf import settings
from django.db import transaction
from django.utils.module_loading import import_string

from ethics_backend.realtime.backends import BaseBroadcaster
from ethics_backend.realtime.events import BroadcastEvent

logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def get_broadcaster() -> BaseBroadcaster:
    """Instantiate the backend configured by ``BROADCAST_BACKEND``."""
    backend_class = import_string(settings.BROADCAST_BACKEND)
    return backend_class(**getattr(settings, "BROADCAST_OPTIONS", {}))


def reset_broadcaster() -> None:
    get_broadcaster.cache_clear()


def broadcast(event: BroadcastEvent) -> None:
    """Schedule delivery of ``event`` after the current transaction commits."""
    from ethics_backend.realtime.tasks import deliver_event

    message = event.to_message()
    logger.debug("Queueing %s on %s", event.name, event.channel)
    transaction.on_commit(lambda: deliver_event.delay(message))
