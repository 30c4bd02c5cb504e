"""
Partial-update schemas for the Application aggregate.

Every field is optional: a payload only carries what changed. Unknown
fields are allowed and kept, the server being the source of truth for
shape. ``parse_partial`` returns exactly the keys that were sent, with
``None`` preserved as an explicit "clear".
"""

import logging
from typing import Any
from typing import Literal

from pydantic import BaseModel
from pydantic import ConfigDict
from pydantic import ValidationError

logger = logging.getLogger(__name__)

ReviewType = Literal["exempted", "expedited", "full board"]


class PartialModel(BaseModel):
    model_config = ConfigDict(extra="allow")


class Identified(PartialModel):
    """An item of a collection with identity; merged by ``id``."""

    id: str
    created_at: str | None = None
    updated_at: str | None = None


class MessagePayload(Identified):
    app_profile_id: str | None = None
    app_status_id: str | None = None
    remarks: str | None = None
    by: str | None = None
    read_status: str | None = None


class StatusPartial(Identified):
    app_profile_id: str | None = None
    name: str | None = None
    sequence: int | None = None
    status: str | None = None
    start: str | None = None
    end: str | None = None
    messages: list[MessagePayload] | None = None


class MemberPartial(Identified):
    firstname: str | None = None
    lastname: str | None = None


class RequirementPartial(Identified):
    name: str | None = None
    file_url: str | None = None
    date_uploaded: str | None = None
    status: str | None = None
    is_additional: bool | None = None


class DocumentPartial(Identified):
    review_result_id: str | None = None
    file_url: str | None = None
    remarks: str | None = None
    version: int | None = None
    status: str | None = None


class ReviewResultPartial(Identified):
    name: str | None = None
    file_url: str | None = None
    date_uploaded: str | None = None
    status: str | None = None
    version: int | None = None
    documents: list[DocumentPartial] | None = None


class PanelMemberPartial(Identified):
    firstname: str | None = None
    lastname: str | None = None


class ReviewerReportPartial(Identified):
    message: str | None = None
    status: str | None = None
    file_url: str | None = None


class ReviewTypeLogPartial(Identified):
    review_type: str | None = None
    assigned_by: str | None = None


class DecisionLetterPartial(Identified):
    file_name: str | None = None
    file_url: str | None = None
    is_signed: bool | None = None
    date_uploaded: str | None = None


class EthicsClearancePartial(Identified):
    file_url: str | None = None
    date_clearance: str | None = None
    date_uploaded: str | None = None
    effective_start_date: str | None = None
    effective_end_date: str | None = None


class MeetingPartial(Identified):
    meeting_date: str | None = None
    status: str | None = None


class MessagePostPartial(Identified):
    content: str | None = None


class ApplicationPartial(PartialModel):
    """Sparse view of an Application: any subset of its fields."""

    id: str | None = None
    user_id: str | None = None
    firstname: str | None = None
    lastname: str | None = None
    research_title: str | None = None
    date_applied: str | None = None
    protocol_code: str | None = None
    protocol_date_updated: str | None = None
    review_type: ReviewType | None = None
    proof_of_payment_url: str | None = None
    payment_date: str | None = None
    payment_details: str | None = None
    created_at: str | None = None
    updated_at: str | None = None

    members: list[MemberPartial] | None = None
    statuses: list[StatusPartial] | None = None
    requirements: list[RequirementPartial] | None = None
    documents: list[DocumentPartial] | None = None
    review_results: list[ReviewResultPartial] | None = None
    panels: list[PanelMemberPartial] | None = None
    reviewer_reports: list[ReviewerReportPartial] | None = None
    review_type_logs: list[ReviewTypeLogPartial] | None = None

    decision_letter: DecisionLetterPartial | None = None
    ethics_clearance: EthicsClearancePartial | None = None
    meeting: MeetingPartial | None = None
    message_post: MessagePostPartial | None = None


class ApplicationUpdatedPayload(PartialModel):
    application: dict[str, Any]
    message: str | None = None


class FeedbackPayload(PartialModel):
    message_thread: MessagePayload
    message: str | None = None


def parse_partial(payload: dict[str, Any]) -> dict[str, Any]:
    """
    Validate an application partial and return the keys actually sent.

    A payload that does not match the schema is logged and handed back
    untouched: the reconciler accepts any mapping.
    """
    try:
        return ApplicationPartial.model_validate(payload).model_dump(exclude_unset=True)
    except ValidationError as exc:
        logger.warning("Unexpected application partial shape, merging as-is: %s", exc.errors())
        return dict(payload)


def parse_message(payload: dict[str, Any]) -> dict[str, Any] | None:
    """Validate a pushed message thread; None when it has no identity."""
    try:
        return MessagePayload.model_validate(payload).model_dump(exclude_unset=True)
    except ValidationError as exc:
        logger.warning("Dropping malformed message thread: %s", exc.errors())
        return None
