"""
Request and response schemas of the applications API.

Responses carry application payloads as plain dicts built by
``ethics_backend.applications.payloads``.
"""

from datetime import datetime
from typing import Any
from uuid import UUID

from ninja import Schema
from pydantic import Field

from ethics_backend.applications.models import ReviewType


class PersonSchema(Schema):
    firstname: str
    lastname: str


class ApplicationCreateSchema(Schema):
    """Schema for submitting a new application."""

    research_title: str = Field(..., min_length=1, max_length=500)
    firstname: str
    lastname: str
    members: list[PersonSchema] = []


class ApplicationListSchema(Schema):
    """One page of the application list, newest first."""

    data: list[dict[str, Any]]
    total: int
    current_page: int
    per_page: int


class StatusCreateSchema(Schema):
    name: str
    status: str


class StatusUpdateSchema(Schema):
    """Record progress on a stage; ``is_completed`` closes it."""

    status: str
    is_completed: bool = False
    next_status: str | None = None
    message: str | None = None


class MessageCreateSchema(Schema):
    remarks: str = Field(..., min_length=1)
    by: str | None = None


class MessageUpdateSchema(Schema):
    read_status: str = "read"


class MessageThreadResponseSchema(Schema):
    message_thread: dict[str, Any]
    message: str | None = None


class RequirementReviewSchema(Schema):
    """Bulk review of uploaded requirements."""

    requirement_ids: list[UUID]
    requirement_status: str
    new_status: str
    is_completed: bool = False
    is_additional: bool = False
    message: str | None = None


class ProtocolAssignSchema(Schema):
    protocol_code: str = Field(..., min_length=1, max_length=100)
    message: str | None = None


class ReviewTypeAssignSchema(Schema):
    review_type: ReviewType
    can_proceed: bool = False


class MeetingScheduleSchema(Schema):
    meeting_date: datetime
    panel_members: list[PersonSchema] = []


class AnnouncementSchema(Schema):
    content: str = Field(..., min_length=1)


class DashboardStatsSchema(Schema):
    total_applications: int
    applications_by_status: dict[str, int]
    applications_by_review_type: dict[str, int]
    open_by_step: dict[str, int]
    unsigned_decision_letters: int
