"""
Broadcasting auth API controller.

Realtime clients call this before joining a private channel.
"""

import logging

from django.http import HttpRequest
from ninja import Schema
from ninja_extra import api_controller
from ninja_extra import http_post

from ethics_backend.core.api import BaseAPI
from ethics_backend.core.api import IsAuthenticated
from ethics_backend.core.exceptions import ErrorSchema
from ethics_backend.core.exceptions import PermissionDeniedError
from ethics_backend.realtime.channels import authorize_channel
from ethics_backend.realtime.channels import sign_subscription

logger = logging.getLogger(__name__)


class ChannelAuthSchema(Schema):
    socket_id: str
    channel_name: str


class ChannelAuthResponseSchema(Schema):
    socket_id: str
    channel_name: str
    auth: str


@api_controller("/broadcasting", tags=["Broadcasting"], permissions=[IsAuthenticated])
class BroadcastingController(BaseAPI):
    @http_post(
        "/auth",
        response={200: ChannelAuthResponseSchema, 401: ErrorSchema, 403: ErrorSchema},
        url_name="broadcasting_auth",
    )
    def authenticate_channel(self, request: HttpRequest, data: ChannelAuthSchema):
        """Authorize the current user's socket on a channel."""
        if not authorize_channel(request.user, data.channel_name):
            logger.info("Channel %s refused to %s", data.channel_name, request.user)
            return PermissionDeniedError("You cannot listen to this channel.").to_response()

        return 200, ChannelAuthResponseSchema(
            socket_id=data.socket_id,
            channel_name=data.channel_name,
            auth=sign_subscription(data.socket_id, data.channel_name),
        )
