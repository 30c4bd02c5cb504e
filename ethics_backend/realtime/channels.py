"""
Channel authorization.

A viewer may join ``application.{id}`` when they own the application or
belong to the review office, and ``application-list`` when they belong to
the review office. Unknown channels are refused.
"""

import logging
import re

from django.utils.crypto import constant_time_compare
from django.utils.crypto import salted_hmac

from ethics_backend.core.roles import is_reviewer
from ethics_backend.realtime.events import APPLICATION_LIST_CHANNEL

logger = logging.getLogger(__name__)

APPLICATION_CHANNEL_RE = re.compile(r"^application\.(?P<application_id>[0-9a-fA-F-]{32,36})$")
SIGNATURE_SALT = "ethics_backend.realtime.channels"


def authorize_channel(user, channel_name: str) -> bool:
    """Return whether ``user`` may subscribe to ``channel_name``."""
    from ethics_backend.applications.models import AppProfile

    if not user or not user.is_authenticated:
        return False

    if channel_name == APPLICATION_LIST_CHANNEL:
        return is_reviewer(user)

    match = APPLICATION_CHANNEL_RE.match(channel_name)
    if match is None:
        logger.debug("Refusing unknown channel %s", channel_name)
        return False

    application = AppProfile.objects.filter(id=match.group("application_id")).only("id", "user_id").first()
    if application is None:
        return False
    return application.can_be_viewed_by(user)


def sign_subscription(socket_id: str, channel_name: str) -> str:
    """Token proving the server authorized ``socket_id`` on ``channel_name``."""
    return salted_hmac(SIGNATURE_SALT, f"{socket_id}:{channel_name}", algorithm="sha256").hexdigest()


def verify_subscription(socket_id: str, channel_name: str, token: str) -> bool:
    return constant_time_compare(sign_subscription(socket_id, channel_name), token)
