"""
Base schemas for the API.
"""

from typing import Any

from ninja import Schema


class MessageSchema(Schema):
    """Schema for simple message responses."""

    message: str


class SuccessSchema(Schema):
    """Schema for success responses."""

    success: bool
    message: str | None = None


class ApplicationUpdateSchema(Schema):
    """
    Response of every state-changing action on an application.

    ``application`` is a partial view of the aggregate: only the fields
    the action touched. Clients fold it into their snapshot.
    """

    application: dict[str, Any]
    message: str | None = None
