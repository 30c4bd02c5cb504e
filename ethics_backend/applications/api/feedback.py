"""
Feedback threads API controllers.

Messages are posted on one pipeline stage and pushed to the application
channel as SendAndUpdateFeedback.
"""

from uuid import UUID

from django.http import HttpRequest
from django.shortcuts import get_object_or_404
from ninja_extra import api_controller
from ninja_extra import http_get
from ninja_extra import http_patch
from ninja_extra import http_post

from ethics_backend.applications import payloads
from ethics_backend.applications import services
from ethics_backend.applications.api.applications import socket_id
from ethics_backend.applications.models import AppStatus
from ethics_backend.applications.models import MessageThread
from ethics_backend.applications.schemas import MessageCreateSchema
from ethics_backend.applications.schemas import MessageThreadResponseSchema
from ethics_backend.applications.schemas import MessageUpdateSchema
from ethics_backend.core.api import BaseAPI
from ethics_backend.core.api import IsAuthenticated
from ethics_backend.core.exceptions import APIException
from ethics_backend.core.exceptions import ErrorSchema
from ethics_backend.core.exceptions import NotOwnerError


@api_controller("/statuses", tags=["Feedback"], permissions=[IsAuthenticated])
class StatusMessagesController(BaseAPI):
    """Feedback thread of a pipeline stage."""

    @http_get(
        "/{status_id}/messages",
        response={200: list[dict], 403: ErrorSchema, 404: ErrorSchema},
        url_name="status_messages_list",
    )
    def list_messages(self, request: HttpRequest, status_id: UUID):
        status = get_object_or_404(AppStatus.objects.select_related("app_profile"), id=status_id)
        if not status.app_profile.can_be_viewed_by(request.user):
            return NotOwnerError().to_response()
        return 200, [payloads.message_payload(m) for m in status.messages.all()]

    @http_post(
        "/{status_id}/messages",
        response={201: MessageThreadResponseSchema, 400: ErrorSchema, 403: ErrorSchema, 404: ErrorSchema},
        url_name="status_messages_create",
    )
    def post_message(self, request: HttpRequest, status_id: UUID, data: MessageCreateSchema):
        """Post a message; the sender gets the stored message back in the response."""
        status = get_object_or_404(AppStatus.objects.select_related("app_profile"), id=status_id)
        if not status.app_profile.can_be_viewed_by(request.user):
            return NotOwnerError().to_response()

        try:
            message = services.post_message(
                status,
                remarks=data.remarks,
                by=data.by or request.user.display_name,
                socket_id=socket_id(request),
            )
        except APIException as exc:
            return exc.to_response()

        return 201, MessageThreadResponseSchema(message_thread=message, message="Message sent.")


@api_controller("/messages", tags=["Feedback"], permissions=[IsAuthenticated])
class MessageController(BaseAPI):
    @http_patch(
        "/{message_id}",
        response={200: MessageThreadResponseSchema, 403: ErrorSchema, 404: ErrorSchema},
        url_name="messages_update",
    )
    def update_message(self, request: HttpRequest, message_id: UUID, data: MessageUpdateSchema):
        """Update the read status of a message."""
        message = get_object_or_404(MessageThread.objects.select_related("app_profile"), id=message_id)
        if not message.app_profile.can_be_viewed_by(request.user):
            return NotOwnerError().to_response()

        thread = services.mark_message_read(message, data.read_status, socket_id=socket_id(request))
        return 200, MessageThreadResponseSchema(message_thread=thread)
