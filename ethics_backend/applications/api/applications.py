"""
Applications API controller.

Every state-changing endpoint answers with ``ApplicationUpdateSchema``: the
partial application the action produced and a notice. The same partial is
broadcast on ``application.{id}`` to everyone but the caller's socket
(``X-Socket-ID`` header).
"""

import logging
from datetime import datetime
from uuid import UUID

from django.db.models import Q
from django.http import HttpRequest
from django.shortcuts import get_object_or_404
from ninja import File
from ninja import Form
from ninja import UploadedFile
from ninja_extra import api_controller
from ninja_extra import http_delete
from ninja_extra import http_get
from ninja_extra import http_patch
from ninja_extra import http_post

from ethics_backend.applications import payloads
from ethics_backend.applications import services
from ethics_backend.applications.models import AppProfile
from ethics_backend.applications.models import AppStatus
from ethics_backend.applications.models import StatusState
from ethics_backend.applications.schemas import AnnouncementSchema
from ethics_backend.applications.schemas import ApplicationCreateSchema
from ethics_backend.applications.schemas import ApplicationListSchema
from ethics_backend.applications.schemas import ApplicationUpdateSchema
from ethics_backend.applications.schemas import MeetingScheduleSchema
from ethics_backend.applications.schemas import MessageSchema
from ethics_backend.applications.schemas import ProtocolAssignSchema
from ethics_backend.applications.schemas import RequirementReviewSchema
from ethics_backend.applications.schemas import ReviewTypeAssignSchema
from ethics_backend.applications.schemas import StatusCreateSchema
from ethics_backend.applications.schemas import StatusUpdateSchema
from ethics_backend.core.api import BaseAPI
from ethics_backend.core.api import IsAuthenticated
from ethics_backend.core.exceptions import APIException
from ethics_backend.core.exceptions import ErrorSchema
from ethics_backend.core.exceptions import NotOwnerError
from ethics_backend.core.exceptions import PermissionDeniedError
from ethics_backend.core.roles import is_chairperson
from ethics_backend.core.roles import is_reviewer
from ethics_backend.realtime.events import SOCKET_ID_HEADER

logger = logging.getLogger(__name__)

ERRORS = {
    400: ErrorSchema,
    401: ErrorSchema,
    403: ErrorSchema,
    404: ErrorSchema,
    409: ErrorSchema,
    413: ErrorSchema,
    415: ErrorSchema,
}


def socket_id(request: HttpRequest) -> str | None:
    """Socket id of the caller's realtime connection, if any."""
    return request.headers.get(SOCKET_ID_HEADER) or None


def to_update(result: services.ActionResult) -> ApplicationUpdateSchema:
    return ApplicationUpdateSchema(application=result.application, message=result.message)


@api_controller("/applications", tags=["Applications"], permissions=[IsAuthenticated])
class ApplicationController(BaseAPI):
    """Applications and the ten-step review pipeline."""

    def get_application(self, request: HttpRequest, application_id: UUID) -> AppProfile:
        application = get_object_or_404(AppProfile, id=application_id)
        if not application.can_be_viewed_by(request.user):
            raise NotOwnerError()
        return application

    def get_reviewed_application(self, request: HttpRequest, application_id: UUID) -> AppProfile:
        if not is_reviewer(request.user):
            raise PermissionDeniedError("Reserved for the ethics review office.")
        return get_object_or_404(AppProfile, id=application_id)

    # Applications

    @http_get("/", response={200: ApplicationListSchema, 401: ErrorSchema}, url_name="applications_list")
    def list_applications(
        self,
        request: HttpRequest,
        page: int = 1,
        per_page: int = 10,
        search: str | None = None,
        review_type: str | None = None,
        step: int | None = None,
    ):
        """
        List applications, newest first.
        The review office sees every application, researchers their own.
        """
        applications = AppProfile.objects.all()
        if not is_reviewer(request.user):
            applications = applications.filter(user=request.user)

        if search:
            applications = applications.filter(
                Q(research_title__icontains=search)
                | Q(protocol_code__icontains=search)
                | Q(firstname__icontains=search)
                | Q(lastname__icontains=search)
            )
        if review_type:
            applications = applications.filter(review_type=review_type)
        if step:
            applications = applications.filter(statuses__sequence=step, statuses__end__isnull=True).distinct()

        page = max(page, 1)
        per_page = min(max(per_page, 1), 100)
        total = applications.count()
        offset = (page - 1) * per_page
        rows = applications.prefetch_related("members", "statuses")[offset : offset + per_page]

        return 200, ApplicationListSchema(
            data=[payloads.application_summary(a) for a in rows],
            total=total,
            current_page=page,
            per_page=per_page,
        )

    @http_post("/", response={201: ApplicationUpdateSchema, **ERRORS}, url_name="applications_create")
    def create_application(self, request: HttpRequest, data: ApplicationCreateSchema):
        """Submit a new application. Requirements are uploaded afterwards."""
        application = services.submit_application(
            request.user,
            research_title=data.research_title,
            firstname=data.firstname,
            lastname=data.lastname,
            members=[m.model_dump() for m in data.members],
        )
        return 201, ApplicationUpdateSchema(
            application=payloads.application_payload(application, relations=("members", "statuses")),
            message="Application submitted.",
        )

    @http_get("/{application_id}", response={200: dict, **ERRORS}, url_name="applications_detail")
    def get_detail(self, request: HttpRequest, application_id: UUID):
        """Full application snapshot with every relation."""
        try:
            application = self.get_application(request, application_id)
        except APIException as exc:
            return exc.to_response()
        return 200, payloads.application_payload(application, relations=payloads.ALL_RELATIONS)

    @http_delete("/{application_id}", response={200: MessageSchema, **ERRORS}, url_name="applications_delete")
    def delete_application(self, request: HttpRequest, application_id: UUID):
        try:
            application = self.get_reviewed_application(request, application_id)
        except APIException as exc:
            return exc.to_response()
        services.delete_application(application)
        return 200, MessageSchema(message="Application deleted.")

    # Statuses

    @http_post(
        "/{application_id}/statuses",
        response={201: ApplicationUpdateSchema, **ERRORS},
        url_name="applications_status_create",
    )
    def create_status(self, request: HttpRequest, application_id: UUID, data: StatusCreateSchema):
        try:
            application = self.get_reviewed_application(request, application_id)
            result = services.create_status(application, data.name, data.status, socket_id=socket_id(request))
        except APIException as exc:
            return exc.to_response()
        return 201, to_update(result)

    @http_patch(
        "/{application_id}/statuses/{status_id}",
        response={200: ApplicationUpdateSchema, **ERRORS},
        url_name="applications_status_update",
    )
    def update_status(self, request: HttpRequest, application_id: UUID, status_id: UUID, data: StatusUpdateSchema):
        """Record progress on a stage, optionally closing it and opening the next one."""
        try:
            application = self.get_reviewed_application(request, application_id)
            status = get_object_or_404(AppStatus, id=status_id, app_profile=application)
            result = services.update_status(
                application,
                status,
                new_status=data.status,
                is_completed=data.is_completed,
                next_status=data.next_status,
                message=data.message,
                socket_id=socket_id(request),
            )
        except APIException as exc:
            return exc.to_response()
        return 200, to_update(result)

    # Requirements

    @http_post(
        "/{application_id}/requirements",
        response={201: ApplicationUpdateSchema, **ERRORS},
        url_name="applications_requirements_upload",
    )
    def upload_requirements(
        self,
        request: HttpRequest,
        application_id: UUID,
        name: str = Form(...),
        is_additional: bool = Form(False),
        files: list[UploadedFile] = File(...),
    ):
        """Upload the files of one requirement (step 1, or step 9 when additional)."""
        try:
            application = self.get_application(request, application_id)
            result = services.upload_requirements(
                application,
                {name: files},
                is_additional=is_additional,
                socket_id=socket_id(request),
            )
        except APIException as exc:
            return exc.to_response()
        return 201, to_update(result)

    @http_patch(
        "/{application_id}/requirements",
        response={200: ApplicationUpdateSchema, **ERRORS},
        url_name="applications_requirements_review",
    )
    def review_requirements(self, request: HttpRequest, application_id: UUID, data: RequirementReviewSchema):
        """
        Set the status of uploaded requirements and record progress on the step.
        Researchers may only submit their own requirements; approving them
        and closing the step is left to the review office.
        """
        try:
            if is_reviewer(request.user):
                application = self.get_reviewed_application(request, application_id)
            else:
                application = self.get_application(request, application_id)
                if data.is_completed or data.requirement_status != StatusState.SUBMITTED:
                    raise PermissionDeniedError("Only the ethics review office can approve requirements.")
            result = services.review_requirements(
                application,
                requirement_ids=data.requirement_ids,
                requirement_status=data.requirement_status,
                new_status=data.new_status,
                is_completed=data.is_completed,
                is_additional=data.is_additional,
                message=data.message,
                socket_id=socket_id(request),
            )
        except APIException as exc:
            return exc.to_response()
        return 200, to_update(result)

    # Steps 2 to 10

    @http_post(
        "/{application_id}/protocol",
        response={200: ApplicationUpdateSchema, **ERRORS},
        url_name="applications_protocol",
    )
    def assign_protocol(self, request: HttpRequest, application_id: UUID, data: ProtocolAssignSchema):
        try:
            application = self.get_reviewed_application(request, application_id)
            result = services.assign_protocol_code(
                application,
                data.protocol_code,
                message=data.message,
                socket_id=socket_id(request),
            )
        except APIException as exc:
            return exc.to_response()
        return 200, to_update(result)

    @http_post(
        "/{application_id}/review-type",
        response={200: ApplicationUpdateSchema, **ERRORS},
        url_name="applications_review_type",
    )
    def assign_review_type(self, request: HttpRequest, application_id: UUID, data: ReviewTypeAssignSchema):
        try:
            application = self.get_reviewed_application(request, application_id)
            result = services.assign_review_type(
                application,
                review_type=data.review_type,
                assigned_by=request.user.display_name,
                can_proceed=data.can_proceed,
                socket_id=socket_id(request),
            )
        except APIException as exc:
            return exc.to_response()
        return 200, to_update(result)

    @http_post(
        "/{application_id}/decision-letter",
        response={200: ApplicationUpdateSchema, **ERRORS},
        url_name="applications_decision_letter",
    )
    def upload_decision_letter(self, request: HttpRequest, application_id: UUID, file: UploadedFile = File(...)):
        try:
            application = self.get_reviewed_application(request, application_id)
            result = services.upload_decision_letter(application, file, socket_id=socket_id(request))
        except APIException as exc:
            return exc.to_response()
        return 200, to_update(result)

    @http_post(
        "/{application_id}/decision-letter/sign",
        response={200: ApplicationUpdateSchema, **ERRORS},
        url_name="applications_decision_letter_sign",
    )
    def sign_decision_letter(self, request: HttpRequest, application_id: UUID):
        """Only the chairperson signs decision letters."""
        if not is_chairperson(request.user):
            return PermissionDeniedError("Only the chairperson can sign decision letters.").to_response()
        try:
            application = get_object_or_404(AppProfile, id=application_id)
            result = services.sign_decision_letter(
                application,
                request.user.display_name,
                socket_id=socket_id(request),
            )
        except APIException as exc:
            return exc.to_response()
        return 200, to_update(result)

    @http_post(
        "/{application_id}/payment",
        response={200: ApplicationUpdateSchema, **ERRORS},
        url_name="applications_payment",
    )
    def upload_payment(
        self,
        request: HttpRequest,
        application_id: UUID,
        payment_details: str = Form(""),
        file: UploadedFile = File(...),
    ):
        """Upload the proof of payment (researcher)."""
        try:
            application = self.get_application(request, application_id)
            result = services.upload_payment(
                application,
                file,
                payment_details=payment_details,
                socket_id=socket_id(request),
            )
        except APIException as exc:
            return exc.to_response()
        return 200, to_update(result)

    @http_post(
        "/{application_id}/meeting",
        response={200: ApplicationUpdateSchema, **ERRORS},
        url_name="applications_meeting",
    )
    def schedule_meeting(self, request: HttpRequest, application_id: UUID, data: MeetingScheduleSchema):
        try:
            application = self.get_reviewed_application(request, application_id)
            result = services.schedule_meeting(
                application,
                meeting_date=data.meeting_date,
                panel_members=[m.model_dump() for m in data.panel_members],
                socket_id=socket_id(request),
            )
        except APIException as exc:
            return exc.to_response()
        return 200, to_update(result)

    @http_post(
        "/{application_id}/review-results",
        response={201: ApplicationUpdateSchema, **ERRORS},
        url_name="applications_review_results",
    )
    def add_review_result(
        self,
        request: HttpRequest,
        application_id: UUID,
        name: str = Form(...),
        status: str | None = Form(None),
        file: UploadedFile | None = File(None),
        manuscripts: list[UploadedFile] = File([]),
    ):
        try:
            application = self.get_reviewed_application(request, application_id)
            result = services.add_review_result(
                application,
                name=name,
                upload=file,
                manuscripts=manuscripts,
                status=status,
                socket_id=socket_id(request),
            )
        except APIException as exc:
            return exc.to_response()
        return 201, to_update(result)

    @http_post(
        "/{application_id}/reviewer-reports",
        response={201: ApplicationUpdateSchema, **ERRORS},
        url_name="applications_reviewer_reports",
    )
    def add_reviewer_report(
        self,
        request: HttpRequest,
        application_id: UUID,
        message: str = Form(...),
        file: UploadedFile = File(...),
    ):
        try:
            application = self.get_reviewed_application(request, application_id)
            result = services.add_reviewer_report(
                application,
                message=message,
                upload=file,
                socket_id=socket_id(request),
            )
        except APIException as exc:
            return exc.to_response()
        return 201, to_update(result)

    @http_post(
        "/{application_id}/ethics-clearance",
        response={200: ApplicationUpdateSchema, **ERRORS},
        url_name="applications_ethics_clearance",
    )
    def upload_ethics_clearance(
        self,
        request: HttpRequest,
        application_id: UUID,
        date_clearance: datetime = Form(...),
        effective_start_date: datetime | None = Form(None),
        effective_end_date: datetime | None = Form(None),
        file: UploadedFile = File(...),
    ):
        """Upload the clearance certificate; closes the pipeline."""
        try:
            application = self.get_reviewed_application(request, application_id)
            result = services.upload_ethics_clearance(
                application,
                file,
                date_clearance=date_clearance,
                effective_start_date=effective_start_date,
                effective_end_date=effective_end_date,
                socket_id=socket_id(request),
            )
        except APIException as exc:
            return exc.to_response()
        return 200, to_update(result)

    @http_post(
        "/{application_id}/announcement",
        response={200: ApplicationUpdateSchema, **ERRORS},
        url_name="applications_announcement",
    )
    def post_announcement(self, request: HttpRequest, application_id: UUID, data: AnnouncementSchema):
        try:
            application = self.get_reviewed_application(request, application_id)
            result = services.post_announcement(application, data.content, socket_id=socket_id(request))
        except APIException as exc:
            return exc.to_response()
        return 200, to_update(result)

    @http_delete(
        "/{application_id}/announcement",
        response={200: ApplicationUpdateSchema, **ERRORS},
        url_name="applications_announcement_clear",
    )
    def clear_announcement(self, request: HttpRequest, application_id: UUID):
        try:
            application = self.get_reviewed_application(request, application_id)
            result = services.clear_announcement(application, socket_id=socket_id(request))
        except APIException as exc:
            return exc.to_response()
        return 200, to_update(result)
