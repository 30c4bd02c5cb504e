"""
Celery tasks delivering broadcast events.
"""

import logging

from celery import shared_task

from ethics_backend.realtime.broadcasting import get_broadcaster
from ethics_backend.realtime.events import BroadcastEvent

logger = logging.getLogger(__name__)


@shared_task(bind=True, max_retries=3, ignore_result=True)
def deliver_event(self, message: dict) -> None:
    """
    Publish one serialized ``BroadcastEvent``.

    A broker failure is retried; delivery is best effort and never affects
    the action that produced the event.
    """
    event = BroadcastEvent.from_message(message)
    try:
        delivered = get_broadcaster().publish(event)
    except Exception as e:
        logger.exception("Error broadcasting %s on %s: %s", event.name, event.channel, e)
        raise self.retry(exc=e, countdown=5)

    logger.info("Broadcast %s on %s to %s listener(s)", event.name, event.channel, delivered)
