from ethics_backend.applications.schemas.applications import AnnouncementSchema
from ethics_backend.applications.schemas.applications import ApplicationCreateSchema
from ethics_backend.applications.schemas.applications import ApplicationListSchema
from ethics_backend.applications.schemas.applications import DashboardStatsSchema
from ethics_backend.applications.schemas.applications import MeetingScheduleSchema
from ethics_backend.applications.schemas.applications import MessageCreateSchema
from ethics_backend.applications.schemas.applications import MessageThreadResponseSchema
from ethics_backend.applications.schemas.applications import MessageUpdateSchema
from ethics_backend.applications.schemas.applications import PersonSchema
from ethics_backend.applications.schemas.applications import ProtocolAssignSchema
from ethics_backend.applications.schemas.applications import RequirementReviewSchema
from ethics_backend.applications.schemas.applications import ReviewTypeAssignSchema
from ethics_backend.applications.schemas.applications import StatusCreateSchema
from ethics_backend.applications.schemas.applications import StatusUpdateSchema
from ethics_backend.core.schemas import ApplicationUpdateSchema
from ethics_backend.core.schemas import MessageSchema

__all__ = [
    "AnnouncementSchema",
    "ApplicationCreateSchema",
    "ApplicationListSchema",
    "ApplicationUpdateSchema",
    "DashboardStatsSchema",
    "MeetingScheduleSchema",
    "MessageCreateSchema",
    "MessageSchema",
    "MessageThreadResponseSchema",
    "MessageUpdateSchema",
    "PersonSchema",
    "ProtocolAssignSchema",
    "RequirementReviewSchema",
    "ReviewTypeAssignSchema",
    "StatusCreateSchema",
    "StatusUpdateSchema",
]
