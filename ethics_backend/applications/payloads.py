"""
Wire representation of the Application aggregate.

Responses and broadcast events share these builders, so the same row is
always serialised identically; clients rely on that when they compare
``updated_at`` tokens. Timestamps are ISO-8601 strings, ids are strings.

``application_payload(app, relations=[...])`` builds a partial view: the
profile's own fields plus only the relations an action touched.
"""

from typing import Any

from ethics_backend.applications.models import AppMember
from ethics_backend.applications.models import AppProfile
from ethics_backend.applications.models import AppStatus
from ethics_backend.applications.models import DecisionLetter
from ethics_backend.applications.models import Document
from ethics_backend.applications.models import EthicsClearance
from ethics_backend.applications.models import Meeting
from ethics_backend.applications.models import MessagePost
from ethics_backend.applications.models import MessageThread
from ethics_backend.applications.models import PanelMember
from ethics_backend.applications.models import Requirement
from ethics_backend.applications.models import ReviewerReport
from ethics_backend.applications.models import ReviewResult
from ethics_backend.applications.models import ReviewTypeLog

ALL_RELATIONS = (
    "members",
    "statuses",
    "requirements",
    "documents",
    "review_results",
    "panels",
    "reviewer_reports",
    "review_type_logs",
    "decision_letter",
    "ethics_clearance",
    "meeting",
    "message_post",
)


def iso(value) -> str | None:
    return value.isoformat() if value is not None else None


def file_url(field) -> str | None:
    if not field:
        return None
    return field.name


def _base(instance) -> dict[str, Any]:
    return {
        "id": str(instance.id),
        "created_at": iso(instance.created),
        "updated_at": iso(instance.modified),
    }


def message_payload(message: MessageThread) -> dict[str, Any]:
    return {
        **_base(message),
        "app_profile_id": str(message.app_profile_id),
        "app_status_id": str(message.app_status_id),
        "remarks": message.remarks,
        "by": message.by,
        "read_status": message.read_status,
    }


def status_payload(status: AppStatus, with_messages: bool = False) -> dict[str, Any]:
    """
    Messages are left out by default: a partial status without a
    ``messages`` key leaves the thread a client holds untouched.
    """
    data = {
        **_base(status),
        "app_profile_id": str(status.app_profile_id),
        "name": status.name,
        "sequence": status.sequence,
        "status": status.status,
        "start": iso(status.start),
        "end": iso(status.end),
    }
    if with_messages:
        data["messages"] = [message_payload(m) for m in status.messages.all()]
    return data


def member_payload(member: AppMember) -> dict[str, Any]:
    return {**_base(member), "firstname": member.firstname, "lastname": member.lastname}


def requirement_payload(requirement: Requirement) -> dict[str, Any]:
    return {
        **_base(requirement),
        "app_profile_id": str(requirement.app_profile_id),
        "name": requirement.name,
        "file_url": file_url(requirement.file),
        "date_uploaded": iso(requirement.date_uploaded),
        "status": requirement.status,
        "is_additional": requirement.is_additional,
    }


def document_payload(document: Document) -> dict[str, Any]:
    return {
        **_base(document),
        "review_result_id": str(document.review_result_id),
        "file_url": file_url(document.file),
        "remarks": document.remarks,
        "version": document.version,
        "status": document.status,
    }


def review_result_payload(result: ReviewResult) -> dict[str, Any]:
    return {
        **_base(result),
        "name": result.name,
        "file_url": file_url(result.file),
        "date_uploaded": iso(result.date_uploaded),
        "status": result.status,
        "version": result.version,
    }


def reviewer_report_payload(report: ReviewerReport) -> dict[str, Any]:
    return {
        **_base(report),
        "message": report.message,
        "status": report.status,
        "file_url": file_url(report.file),
    }


def panel_member_payload(member: PanelMember) -> dict[str, Any]:
    return {**_base(member), "firstname": member.firstname, "lastname": member.lastname}


def review_type_log_payload(log: ReviewTypeLog) -> dict[str, Any]:
    return {**_base(log), "review_type": log.review_type, "assigned_by": log.assigned_by}


def meeting_payload(meeting: Meeting | None) -> dict[str, Any] | None:
    if meeting is None:
        return None
    return {**_base(meeting), "meeting_date": iso(meeting.meeting_date), "status": meeting.status}


def decision_letter_payload(letter: DecisionLetter | None) -> dict[str, Any] | None:
    if letter is None:
        return None
    return {
        **_base(letter),
        "file_name": letter.file_name,
        "file_url": file_url(letter.file),
        "is_signed": letter.is_signed,
        "date_uploaded": iso(letter.date_uploaded),
    }


def ethics_clearance_payload(clearance: EthicsClearance | None) -> dict[str, Any] | None:
    if clearance is None:
        return None
    return {
        **_base(clearance),
        "file_url": file_url(clearance.file),
        "date_clearance": iso(clearance.date_clearance),
        "date_uploaded": iso(clearance.date_uploaded),
        "effective_start_date": iso(clearance.effective_start_date),
        "effective_end_date": iso(clearance.effective_end_date),
    }


def message_post_payload(post: MessagePost | None) -> dict[str, Any] | None:
    if post is None:
        return None
    return {**_base(post), "content": post.content}


def profile_payload(application: AppProfile) -> dict[str, Any]:
    """The application's own columns, without relations."""
    return {
        **_base(application),
        "user_id": str(application.user_id),
        "firstname": application.firstname,
        "lastname": application.lastname,
        "research_title": application.research_title,
        "date_applied": iso(application.date_applied),
        "protocol_code": application.protocol_code,
        "protocol_date_updated": iso(application.protocol_date_updated),
        "review_type": application.review_type,
        "proof_of_payment_url": file_url(application.proof_of_payment),
        "payment_date": iso(application.payment_date),
        "payment_details": application.payment_details,
    }


_SINGULAR = {
    "decision_letter": decision_letter_payload,
    "ethics_clearance": ethics_clearance_payload,
    "meeting": meeting_payload,
    "message_post": message_post_payload,
}

_COLLECTIONS = {
    "members": member_payload,
    "requirements": requirement_payload,
    "documents": document_payload,
    "review_results": review_result_payload,
    "panels": panel_member_payload,
    "reviewer_reports": reviewer_report_payload,
    "review_type_logs": review_type_log_payload,
}


def application_payload(
    application: AppProfile,
    relations=(),
    **overrides,
) -> dict[str, Any]:
    """
    Build an application partial.

    ``relations`` names relations to include in full; ``overrides`` sets
    relation keys to explicit item lists (e.g. only the statuses that
    changed) or values.
    """
    data = profile_payload(application)
    for relation in relations:
        if relation == "statuses":
            data["statuses"] = [status_payload(s, with_messages=True) for s in application.statuses.all()]
        elif relation in _COLLECTIONS:
            builder = _COLLECTIONS[relation]
            data[relation] = [builder(item) for item in getattr(application, relation).all()]
        elif relation in _SINGULAR:
            data[relation] = _SINGULAR[relation](getattr(application, relation, None))
        else:
            msg = f"Unknown application relation: {relation}"
            raise ValueError(msg)
    data.update(overrides)
    return data


def application_summary(application: AppProfile) -> dict[str, Any]:
    """Row of the application list: profile, members and current step."""
    current = application.current_status
    return {
        **profile_payload(application),
        "members": [member_payload(m) for m in application.members.all()],
        "statuses": [status_payload(current)] if current else [],
    }
