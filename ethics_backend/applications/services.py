"""
Pipeline actions on applications.

Each action runs in one transaction, then broadcasts the partial view of
the application it changed on ``application.{id}``. The same partial is
returned to the caller as ``ActionResult.application``: the HTTP response
and the push event are interchangeable for clients.
"""

import logging
import os
from dataclasses import dataclass
from dataclasses import field
from datetime import datetime
from typing import Any

from django.conf import settings
from django.db import transaction
from django.db.models import Count
from django.utils import timezone
from django_fsm import InvalidResultState
from django_fsm import TransitionNotAllowed

from ethics_backend.applications import payloads
from ethics_backend.applications.models import LAST_STEP
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
from ethics_backend.applications.models import PipelineStep
from ethics_backend.applications.models import Requirement
from ethics_backend.applications.models import ReviewerReport
from ethics_backend.applications.models import ReviewResult
from ethics_backend.applications.models import ReviewType
from ethics_backend.applications.models import ReviewTypeLog
from ethics_backend.applications.models import StatusState
from ethics_backend.core.exceptions import BadRequestError
from ethics_backend.core.exceptions import FileTooLargeError
from ethics_backend.core.exceptions import InvalidFileTypeError
from ethics_backend.core.exceptions import InvalidTransitionError
from ethics_backend.core.exceptions import NotFoundError
from ethics_backend.core.exceptions import ProtocolCodeInUseError
from ethics_backend.core.exceptions import StepNotReachedError
from ethics_backend.core.exceptions import ValidationError
from ethics_backend.realtime import events
from ethics_backend.realtime.broadcasting import broadcast

logger = logging.getLogger(__name__)

SENT = "sent"

# Stage states waiting on the review office.
AWAITING_OFFICE = [StatusState.PENDING, StatusState.SUBMITTED, StatusState.UPLOADED, StatusState.AWAITING_CONFIRMATION]


@dataclass
class ActionResult:
    """Outcome of a pipeline action: the partial application and a notice."""

    application: dict[str, Any]
    message: str
    extra: dict[str, Any] = field(default_factory=dict)


# Helpers


def validate_upload(upload) -> None:
    """Reject files with a disallowed extension or above the size limit."""
    extension = os.path.splitext(upload.name)[1].lower().lstrip(".")
    if extension not in settings.REQUIREMENT_ALLOWED_EXTENSIONS:
        raise InvalidFileTypeError(
            details={"file": upload.name, "allowed": list(settings.REQUIREMENT_ALLOWED_EXTENSIONS)},
        )
    if upload.size > settings.REQUIREMENT_MAX_UPLOAD_SIZE:
        raise FileTooLargeError(details={"file": upload.name, "max_size": settings.REQUIREMENT_MAX_UPLOAD_SIZE})


def get_step_status(application: AppProfile, step: PipelineStep) -> AppStatus:
    status = application.status_at(step)
    if status is None:
        raise StepNotReachedError(f"The application has not reached the {step.label} step yet.")
    return status


def set_state(status: AppStatus, state: str, is_completed: bool = False) -> None:
    """Move ``status`` to ``state``, closing it when ``is_completed``."""
    try:
        if is_completed:
            status.complete(state)
        else:
            status.record(state)
    except (TransitionNotAllowed, InvalidResultState) as exc:
        logger.info("Refused %s -> %s on status %s", status.status, state, status.id)
        raise InvalidTransitionError(
            details={"status_id": str(status.id), "from": status.status, "to": state},
        ) from exc
    status.save()


def open_step(application: AppProfile, sequence: int, name: str | None = None) -> AppStatus:
    """Create the next pipeline stage, In Progress from now."""
    sequence = min(int(sequence), LAST_STEP)
    return AppStatus.objects.create(
        app_profile=application,
        name=name or PipelineStep(sequence).label,
        sequence=sequence,
        status=StatusState.IN_PROGRESS,
        start=timezone.now(),
    )


def advance(application: AppProfile, status: AppStatus, outcome: str, next_name: str | None = None) -> list[AppStatus]:
    """Close ``status`` with ``outcome`` and open the following step."""
    set_state(status, outcome, is_completed=True)
    changed = [status]
    if status.sequence < LAST_STEP:
        changed.append(open_step(application, status.next_sequence, next_name))
    return changed


def publish_update(
    application: AppProfile,
    partial: dict[str, Any],
    message: str = "",
    socket_id: str | None = None,
) -> None:
    broadcast(events.application_updated(application, partial, message=message, socket_id=socket_id))


def _statuses(statuses: list[AppStatus]) -> list[dict[str, Any]]:
    return [payloads.status_payload(s) for s in statuses]


# Submission


def submit_application(
    user,
    *,
    research_title: str,
    firstname: str,
    lastname: str,
    members: list[dict[str, str]] | None = None,
    requirements: dict[str, list] | None = None,
) -> AppProfile:
    """Create an application with its first pipeline step."""
    for uploads in (requirements or {}).values():
        for upload in uploads:
            validate_upload(upload)

    with transaction.atomic():
        application = AppProfile.objects.create(
            user=user,
            research_title=research_title.strip(),
            firstname=firstname,
            lastname=lastname,
        )
        AppMember.objects.bulk_create(
            [
                AppMember(app_profile=application, firstname=m.get("firstname", ""), lastname=m.get("lastname", ""))
                for m in members or []
            ]
        )
        for name, uploads in (requirements or {}).items():
            for upload in uploads:
                Requirement.objects.create(
                    app_profile=application,
                    name=name,
                    file=upload,
                    status=StatusState.SUBMITTED,
                )
        open_step(application, PipelineStep.REQUIREMENTS)

        broadcast(events.application_created(payloads.application_summary(application)))

    logger.info("Application %s submitted by %s", application.id, user)
    return application


def delete_application(application: AppProfile) -> None:
    application_id = application.id
    files = [r.file for r in application.requirements.all()]
    with transaction.atomic():
        application.delete()
    for stored in files:
        stored.delete(save=False)
    logger.info("Application %s deleted", application_id)


# Generic step transitions


def create_status(application: AppProfile, name: str, state: str, socket_id: str | None = None) -> ActionResult:
    sequence = application.statuses.count() + 1
    if sequence > LAST_STEP:
        raise BadRequestError("The application already went through every step.")

    with transaction.atomic():
        status = AppStatus.objects.create(
            app_profile=application,
            name=name,
            sequence=sequence,
            status=state,
            start=timezone.now(),
        )
        partial = payloads.application_payload(application, statuses=[payloads.status_payload(status, with_messages=True)])
        publish_update(application, partial, socket_id=socket_id)

    return ActionResult(partial, f"{application.research_title} moved to {status.name}.", {"status": partial["statuses"][0]})


def update_status(
    application: AppProfile,
    status: AppStatus,
    *,
    new_status: str,
    is_completed: bool = False,
    next_status: str | None = None,
    message: str | None = None,
    socket_id: str | None = None,
) -> ActionResult:
    """
    Record ``new_status`` on a stage; optionally complete it and open the
    next one (named ``next_status``, sequence + 1 capped at the last step).
    """
    if status.app_profile_id != application.id:
        raise NotFoundError("Status not found for this application.")

    with transaction.atomic():
        set_state(status, new_status, is_completed=is_completed)
        changed = [status]
        if is_completed and next_status:
            changed.append(open_step(application, status.next_sequence, next_status))

        partial = payloads.application_payload(application, statuses=_statuses(changed))
        publish_update(application, partial, message=message or "", socket_id=socket_id)

    logger.info("Status %s of application %s is now %s", status.sequence, application.id, status.status)
    return ActionResult(
        partial,
        message or f"{application.research_title} has been updated.",
        {
            "status": payloads.status_payload(status),
            "next_status": payloads.status_payload(changed[1]) if len(changed) > 1 else None,
        },
    )


# Step 1 / 9: requirements


def upload_requirements(
    application: AppProfile,
    requirements: dict[str, list],
    *,
    is_additional: bool = False,
    socket_id: str | None = None,
) -> ActionResult:
    """
    Store uploaded requirement files, grouped by requirement name.

    A requirement name already holding a file of the same name is skipped.
    """
    for uploads in requirements.values():
        for upload in uploads:
            validate_upload(upload)

    created = []
    with transaction.atomic():
        for name, uploads in requirements.items():
            existing = {
                os.path.basename(r.file.name)
                for r in application.requirements.filter(name=name)
            }
            if any(upload.name in existing for upload in uploads):
                logger.debug("Requirement %s already uploaded for %s", name, application.id)
                continue
            for upload in uploads:
                created.append(
                    Requirement.objects.create(
                        app_profile=application,
                        name=name,
                        file=upload,
                        status=StatusState.SUBMITTED,
                        is_additional=is_additional,
                    )
                )

        partial = payloads.application_payload(
            application,
            requirements=[payloads.requirement_payload(r) for r in created],
        )
        if created:
            publish_update(
                application,
                partial,
                message=f"{application.research_title} has new requirements uploaded.",
                socket_id=socket_id,
            )

    return ActionResult(partial, f"{len(created)} requirement(s) uploaded.")


def review_requirements(
    application: AppProfile,
    *,
    requirement_ids: list,
    requirement_status: str,
    new_status: str,
    is_completed: bool = False,
    is_additional: bool = False,
    message: str | None = None,
    socket_id: str | None = None,
) -> ActionResult:
    """
    Mark requirements (e.g. Approved, Needs Revision) and record progress
    on the requirements step; completing it opens the following step.
    """
    step = PipelineStep.ADDITIONAL_REQUIREMENTS if is_additional else PipelineStep.REQUIREMENTS
    status = get_step_status(application, step)

    with transaction.atomic():
        requirements = list(application.requirements.filter(id__in=requirement_ids))
        for requirement in requirements:
            requirement.status = requirement_status
            requirement.save(update_fields=["status", "modified"])

        if is_completed:
            changed = advance(application, status, new_status)
        else:
            set_state(status, new_status)
            changed = [status]

        partial = payloads.application_payload(
            application,
            requirements=[payloads.requirement_payload(r) for r in requirements],
            statuses=_statuses(changed),
        )
        publish_update(application, partial, message=message or "", socket_id=socket_id)

    return ActionResult(partial, message or "Requirements reviewed successfully.")


def delete_requirement(requirement: Requirement, socket_id: str | None = None) -> ActionResult:
    """
    Delete a requirement file.

    Clients merge collections additively, so the removal is announced as
    the requirement in the Removed state rather than by its absence.
    """
    application = requirement.app_profile
    was_submitted = requirement.status == StatusState.SUBMITTED
    removed = {**payloads.requirement_payload(requirement), "status": StatusState.REMOVED.value}
    stored = requirement.file

    with transaction.atomic():
        requirement.delete()
        partial = payloads.application_payload(application, requirements=[removed])
        if was_submitted:
            publish_update(application, partial, socket_id=socket_id)
        transaction.on_commit(lambda: stored.delete(save=False))

    return ActionResult(partial, "Requirement deleted.")


# Step 2: protocol code


def assign_protocol_code(
    application: AppProfile,
    protocol_code: str,
    *,
    message: str | None = None,
    socket_id: str | None = None,
) -> ActionResult:
    code = protocol_code.strip()
    if not code:
        raise ValidationError("A protocol code is required.")
    if AppProfile.objects.filter(protocol_code=code).exclude(id=application.id).exists():
        raise ProtocolCodeInUseError(details={"protocol_code": code})

    status = get_step_status(application, PipelineStep.PROTOCOL_ASSIGNMENT)
    with transaction.atomic():
        application.protocol_code = code
        application.protocol_date_updated = timezone.now()
        application.save(update_fields=["protocol_code", "protocol_date_updated", "modified"])
        changed = advance(application, status, StatusState.ASSIGNED) if not status.is_completed else []

        partial = payloads.application_payload(application, statuses=_statuses(changed))
        text = message or f"Protocol code {code} assigned to {application.research_title}."
        publish_update(application, partial, message=text, socket_id=socket_id)

    return ActionResult(partial, text)


# Step 4: review type


def assign_review_type(
    application: AppProfile,
    *,
    review_type: str,
    assigned_by: str,
    can_proceed: bool,
    socket_id: str | None = None,
) -> ActionResult:
    """Set the review type, log who assigned it, optionally move to step 5."""
    if review_type not in ReviewType.values:
        raise ValidationError(f"Unknown review type: {review_type}")

    with transaction.atomic():
        application.review_type = review_type
        application.save(update_fields=["review_type", "modified"])
        log = ReviewTypeLog.objects.create(
            app_profile=application,
            review_type=review_type,
            assigned_by=assigned_by,
        )

        changed = []
        if can_proceed:
            status = get_step_status(application, PipelineStep.REVIEW_TYPE)
            changed = advance(application, status, StatusState.ASSIGNED)

        partial = payloads.application_payload(
            application,
            review_type_logs=[payloads.review_type_log_payload(log)],
            statuses=_statuses(changed),
        )
        publish_update(application, partial, message=f"{assigned_by} has assigned {review_type}", socket_id=socket_id)

    return ActionResult(partial, "Review type assigned successfully")


# Step 5: decision letter


def upload_decision_letter(application: AppProfile, upload, socket_id: str | None = None) -> ActionResult:
    validate_upload(upload)
    status = get_step_status(application, PipelineStep.DECISION_LETTER)

    with transaction.atomic():
        letter, _ = DecisionLetter.objects.update_or_create(
            app_profile=application,
            defaults={
                "file_name": upload.name,
                "file": upload,
                "is_signed": False,
                "date_uploaded": timezone.now(),
            },
        )
        set_state(status, StatusState.UPLOADED)

        partial = payloads.application_payload(
            application,
            decision_letter=payloads.decision_letter_payload(letter),
            statuses=_statuses([status]),
        )
        publish_update(
            application,
            partial,
            message=f"A decision letter was uploaded for {application.research_title}.",
            socket_id=socket_id,
        )

    return ActionResult(partial, "Decision letter uploaded.")


def sign_decision_letter(application: AppProfile, signed_by: str, socket_id: str | None = None) -> ActionResult:
    letter = getattr(application, "decision_letter", None)
    if letter is None:
        raise BadRequestError("No decision letter to sign.")
    if letter.is_signed:
        raise BadRequestError("The decision letter is already signed.")
    status = get_step_status(application, PipelineStep.DECISION_LETTER)

    with transaction.atomic():
        letter.is_signed = True
        letter.save(update_fields=["is_signed", "modified"])
        changed = advance(application, status, StatusState.SIGNED)

        partial = payloads.application_payload(
            application,
            decision_letter=payloads.decision_letter_payload(letter),
            statuses=_statuses(changed),
        )
        publish_update(application, partial, message=f"{signed_by} signed the decision letter.", socket_id=socket_id)

    return ActionResult(partial, "Decision letter signed.")


# Step 6: payment


def upload_payment(
    application: AppProfile,
    upload,
    *,
    payment_details: str = "",
    socket_id: str | None = None,
) -> ActionResult:
    validate_upload(upload)
    status = get_step_status(application, PipelineStep.PAYMENT)

    with transaction.atomic():
        application.proof_of_payment = upload
        application.payment_date = timezone.now()
        application.payment_details = payment_details
        application.save()
        set_state(status, StatusState.AWAITING_CONFIRMATION)

        partial = payloads.application_payload(application, statuses=_statuses([status]))
        publish_update(
            application,
            partial,
            message=f"Proof of payment uploaded for {application.research_title}.",
            socket_id=socket_id,
        )

    return ActionResult(partial, "Proof of payment uploaded.")


# Step 7: panel meeting


def schedule_meeting(
    application: AppProfile,
    *,
    meeting_date: datetime,
    panel_members: list[dict[str, str]] | None = None,
    socket_id: str | None = None,
) -> ActionResult:
    status = get_step_status(application, PipelineStep.PANEL_MEETING)

    with transaction.atomic():
        meeting, _ = Meeting.objects.update_or_create(
            app_profile=application,
            defaults={"meeting_date": meeting_date, "status": "Scheduled"},
        )
        panels = [
            PanelMember.objects.create(app_profile=application, firstname=m["firstname"], lastname=m["lastname"])
            for m in panel_members or []
        ]
        set_state(status, StatusState.IN_PROGRESS)

        partial = payloads.application_payload(
            application,
            meeting=payloads.meeting_payload(meeting),
            panels=[payloads.panel_member_payload(p) for p in panels],
            statuses=_statuses([status]),
        )
        publish_update(
            application,
            partial,
            message=f"Panel meeting scheduled on {meeting_date:%B %d, %Y}.",
            socket_id=socket_id,
        )

    return ActionResult(partial, "Meeting scheduled.")


# Step 8: review results


def add_review_result(
    application: AppProfile,
    *,
    name: str,
    upload=None,
    manuscripts: list | None = None,
    status: str | None = None,
    socket_id: str | None = None,
) -> ActionResult:
    """Upload a review result; re-uploading the same name bumps its version."""
    for document in [upload, *(manuscripts or [])]:
        if document is not None:
            validate_upload(document)
    step = get_step_status(application, PipelineStep.REVIEW_RESULT)

    with transaction.atomic():
        version = application.review_results.filter(name=name).count() + 1
        result = ReviewResult.objects.create(
            app_profile=application,
            name=name,
            file=upload,
            date_uploaded=timezone.now() if upload is not None else None,
            status=status or StatusState.UPLOADED,
            version=version,
        )
        documents = [
            Document.objects.create(
                app_profile=application,
                review_result=result,
                file=manuscript,
                version=version,
                status="Original" if version == 1 else "Revised",
            )
            for manuscript in manuscripts or []
        ]
        set_state(step, StatusState.UPLOADED)

        partial = payloads.application_payload(
            application,
            review_results=[payloads.review_result_payload(result)],
            documents=[payloads.document_payload(d) for d in documents],
            statuses=_statuses([step]),
        )
        publish_update(application, partial, message=f"Review result {name} uploaded.", socket_id=socket_id)

    return ActionResult(partial, "Review result uploaded.")


def add_reviewer_report(application: AppProfile, *, message: str, upload, socket_id: str | None = None) -> ActionResult:
    validate_upload(upload)
    with transaction.atomic():
        report = ReviewerReport.objects.create(app_profile=application, message=message, file=upload)
        partial = payloads.application_payload(
            application,
            reviewer_reports=[payloads.reviewer_report_payload(report)],
        )
        publish_update(application, partial, socket_id=socket_id)

    return ActionResult(partial, "Reviewer report added.")


# Step 10: ethics clearance


def upload_ethics_clearance(
    application: AppProfile,
    upload,
    *,
    date_clearance: datetime,
    effective_start_date: datetime | None = None,
    effective_end_date: datetime | None = None,
    socket_id: str | None = None,
) -> ActionResult:
    """Store the clearance certificate and close the pipeline."""
    validate_upload(upload)
    if effective_start_date and effective_end_date and effective_end_date < effective_start_date:
        raise ValidationError("The clearance cannot end before it starts.")
    status = get_step_status(application, PipelineStep.ETHICS_CLEARANCE)

    with transaction.atomic():
        clearance, _ = EthicsClearance.objects.update_or_create(
            app_profile=application,
            defaults={
                "file": upload,
                "date_clearance": date_clearance,
                "date_uploaded": timezone.now(),
                "effective_start_date": effective_start_date,
                "effective_end_date": effective_end_date,
            },
        )
        set_state(status, StatusState.COMPLETED, is_completed=True)

        partial = payloads.application_payload(
            application,
            ethics_clearance=payloads.ethics_clearance_payload(clearance),
            statuses=_statuses([status]),
        )
        publish_update(
            application,
            partial,
            message=f"{application.research_title} has been granted ethics clearance.",
            socket_id=socket_id,
        )

    return ActionResult(partial, "Ethics clearance uploaded.")


# Feedback


def post_message(status: AppStatus, *, remarks: str, by: str, socket_id: str | None = None) -> dict[str, Any]:
    """Store a feedback message on a stage and push it to the thread."""
    text = remarks.strip()
    if not text:
        raise ValidationError("The message cannot be empty.")

    with transaction.atomic():
        message = MessageThread.objects.create(
            app_profile_id=status.app_profile_id,
            app_status=status,
            remarks=text,
            by=by,
            read_status=SENT,
        )
        data = payloads.message_payload(message)
        broadcast(events.feedback_sent(data, f"New message from {by} in {status.name}", socket_id=socket_id))

    return data


def mark_message_read(message: MessageThread, read_status: str, socket_id: str | None = None) -> dict[str, Any]:
    with transaction.atomic():
        message.read_status = read_status
        message.save(update_fields=["read_status", "modified"])
        data = payloads.message_payload(message)
        broadcast(events.feedback_sent(data, socket_id=socket_id))

    return data


# Announcement


def post_announcement(application: AppProfile, content: str, socket_id: str | None = None) -> ActionResult:
    with transaction.atomic():
        post, _ = MessagePost.objects.update_or_create(app_profile=application, defaults={"content": content})
        partial = payloads.application_payload(application, message_post=payloads.message_post_payload(post))
        publish_update(application, partial, socket_id=socket_id)

    return ActionResult(partial, "Announcement posted.")


def clear_announcement(application: AppProfile, socket_id: str | None = None) -> ActionResult:
    with transaction.atomic():
        MessagePost.objects.filter(app_profile=application).delete()
        partial = payloads.application_payload(application, message_post=None)
        publish_update(application, partial, socket_id=socket_id)

    return ActionResult(partial, "Announcement removed.")


# Dashboard


def dashboard_stats() -> dict[str, Any]:
    """Counters of the office dashboard."""
    applications = AppProfile.objects.all()
    open_statuses = AppStatus.objects.filter(end__isnull=True)

    by_step = dict(open_statuses.order_by().values_list("sequence").annotate(total=Count("id")))
    by_review_type = dict(
        applications.exclude(review_type__isnull=True)
        .order_by()
        .values_list("review_type")
        .annotate(total=Count("id"))
    )
    awaiting = open_statuses.filter(status__in=AWAITING_OFFICE).values("app_profile_id").distinct()

    return {
        "total_applications": applications.count(),
        "applications_by_status": {
            "pending": awaiting.count(),
            "in_progress": open_statuses.values("app_profile_id").distinct().count(),
            "completed": applications.filter(
                statuses__sequence=LAST_STEP,
                statuses__status=StatusState.COMPLETED,
            )
            .distinct()
            .count(),
        },
        "applications_by_review_type": {value: by_review_type.get(value, 0) for value in ReviewType.values},
        "open_by_step": {str(step.label): by_step.get(step.value, 0) for step in PipelineStep},
        "unsigned_decision_letters": DecisionLetter.objects.filter(is_signed=False).count(),
    }
