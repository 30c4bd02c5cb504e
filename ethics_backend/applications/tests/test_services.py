"""
Tests for the pipeline service layer and the events it broadcasts.
"""

from datetime import timedelta

import pytest
from django.core.files.uploadedfile import SimpleUploadedFile
from django.utils import timezone

from ethics_backend.applications import services
from ethics_backend.applications.models import AppStatus
from ethics_backend.applications.models import MessagePost
from ethics_backend.applications.models import PipelineStep
from ethics_backend.applications.models import Requirement
from ethics_backend.applications.models import ReviewTypeLog
from ethics_backend.applications.models import StatusState
from ethics_backend.applications.tests.factories import AppProfileFactory
from ethics_backend.applications.tests.factories import AppStatusFactory
from ethics_backend.applications.tests.factories import DecisionLetterFactory
from ethics_backend.applications.tests.factories import MessageThreadFactory
from ethics_backend.applications.tests.factories import RequirementFactory
from ethics_backend.applications.tests.factories import application_at_step
from ethics_backend.core.exceptions import BadRequestError
from ethics_backend.core.exceptions import FileTooLargeError
from ethics_backend.core.exceptions import InvalidFileTypeError
from ethics_backend.core.exceptions import InvalidTransitionError
from ethics_backend.core.exceptions import ProtocolCodeInUseError
from ethics_backend.core.exceptions import StepNotReachedError
from ethics_backend.core.exceptions import ValidationError
from ethics_backend.realtime.events import APPLICATION_CREATED
from ethics_backend.realtime.events import APPLICATION_LIST_CHANNEL
from ethics_backend.realtime.events import APPLICATION_UPDATED
from ethics_backend.realtime.events import FEEDBACK_SENT
from ethics_backend.realtime.events import application_channel
from ethics_backend.users.tests.factories import researcher

pytestmark = pytest.mark.django_db


def pdf(name="document.pdf", size=32):
    return SimpleUploadedFile(name, b"%" * size, content_type="application/pdf")


def status_of(application, step):
    return AppStatus.objects.get(app_profile=application, sequence=step)


class TestSubmitApplication:
    def test_creates_first_step_and_announces_it(self, broadcaster, django_capture_on_commit_callbacks):
        user = researcher()

        with django_capture_on_commit_callbacks(execute=True):
            application = services.submit_application(
                user,
                research_title="  Sleep and memory  ",
                firstname="Ana",
                lastname="Reyes",
                members=[{"firstname": "Ben", "lastname": "Cruz"}],
                requirements={"Informed Consent Form": [pdf("consent.pdf")]},
            )

        assert application.research_title == "Sleep and memory"
        assert application.members.count() == 1
        assert application.requirements.get().status == StatusState.SUBMITTED
        first = application.current_status
        assert first.sequence == PipelineStep.REQUIREMENTS
        assert first.status == StatusState.IN_PROGRESS

        [event] = broadcaster.events_on(APPLICATION_LIST_CHANNEL)
        assert event.name == APPLICATION_CREATED
        assert event.payload["application"]["id"] == str(application.id)
        assert event.payload["application"]["statuses"][0]["name"] == "Application Requirements"

    def test_rejects_invalid_file_before_saving(self):
        with pytest.raises(InvalidFileTypeError):
            services.submit_application(
                researcher(),
                research_title="Title",
                firstname="Ana",
                lastname="Reyes",
                requirements={"Protocol": [SimpleUploadedFile("run.exe", b"MZ")]},
            )


class TestUpdateStatus:
    """Generic step transitions."""

    def test_complete_opens_next_step(self, broadcaster, django_capture_on_commit_callbacks):
        application = application_at_step(PipelineStep.INITIAL_REVIEW)
        status = status_of(application, PipelineStep.INITIAL_REVIEW)

        with django_capture_on_commit_callbacks(execute=True):
            result = services.update_status(
                application,
                status,
                new_status=StatusState.DONE,
                is_completed=True,
                next_status="Review Type",
                message="Initial review done",
                socket_id="sock-1",
            )

        status.refresh_from_db()
        assert status.status == StatusState.DONE
        assert status.end is not None
        following = status_of(application, PipelineStep.REVIEW_TYPE)
        assert following.status == StatusState.IN_PROGRESS

        assert [s["id"] for s in result.application["statuses"]] == [str(status.id), str(following.id)]
        assert result.message == "Initial review done"

        [event] = broadcaster.events_on(application_channel(application.id))
        assert event.name == APPLICATION_UPDATED
        assert event.socket_id == "sock-1"
        assert event.payload == {"application": result.application, "message": "Initial review done"}

    def test_partial_carries_only_changed_statuses(self):
        application = application_at_step(PipelineStep.INITIAL_REVIEW)

        result = services.update_status(
            application,
            status_of(application, PipelineStep.INITIAL_REVIEW),
            new_status=StatusState.SUBMITTED,
        )

        assert len(result.application["statuses"]) == 1
        assert "requirements" not in result.application
        assert "messages" not in result.application["statuses"][0]

    def test_default_broadcast_message(self, broadcaster, django_capture_on_commit_callbacks):
        application = application_at_step(PipelineStep.REQUIREMENTS, research_title="Sleep study")

        with django_capture_on_commit_callbacks(execute=True):
            services.update_status(
                application,
                status_of(application, PipelineStep.REQUIREMENTS),
                new_status=StatusState.SUBMITTED,
            )

        [event] = broadcaster.events_on(application_channel(application.id))
        assert event.payload["message"] == "Sleep study has a new update."

    def test_completed_step_cannot_move(self, broadcaster, django_capture_on_commit_callbacks):
        application = application_at_step(PipelineStep.REQUIREMENTS)
        status = status_of(application, PipelineStep.REQUIREMENTS)
        services.update_status(application, status, new_status=StatusState.COMPLETED, is_completed=True)

        with django_capture_on_commit_callbacks(execute=True), pytest.raises(InvalidTransitionError):
            services.update_status(application, status, new_status=StatusState.IN_PROGRESS)

        assert broadcaster.events_on(application_channel(application.id)) == []

    def test_custom_state_is_recorded(self, broadcaster, django_capture_on_commit_callbacks):
        application = application_at_step(PipelineStep.REQUIREMENTS)
        status = status_of(application, PipelineStep.REQUIREMENTS)

        with django_capture_on_commit_callbacks(execute=True):
            services.update_status(application, status, new_status="Waiting for Approval")

        status.refresh_from_db()
        assert status.status == "Waiting for Approval"
        assert not status.is_completed
        [event] = broadcaster.events_on(application_channel(application.id))
        assert event.payload["application"]["statuses"][0]["status"] == "Waiting for Approval"

    def test_blank_state_is_refused(self):
        application = application_at_step(PipelineStep.REQUIREMENTS)

        with pytest.raises(InvalidTransitionError):
            services.update_status(application, status_of(application, PipelineStep.REQUIREMENTS), new_status=" ")

    def test_next_step_is_capped_at_last(self):
        application = application_at_step(PipelineStep.ETHICS_CLEARANCE)

        result = services.update_status(
            application,
            status_of(application, PipelineStep.ETHICS_CLEARANCE),
            new_status=StatusState.DONE,
            is_completed=True,
            next_status="Ethics Clearance",
        )

        assert result.extra["next_status"]["sequence"] == PipelineStep.ETHICS_CLEARANCE

    def test_create_status_appends_step(self):
        application = application_at_step(PipelineStep.REQUIREMENTS)

        result = services.create_status(application, "Protocol Assignment", StatusState.IN_PROGRESS)

        assert result.extra["status"]["sequence"] == 2
        assert result.extra["status"]["messages"] == []


class TestRequirements:
    def test_upload_skips_files_already_uploaded(self):
        application = application_at_step(PipelineStep.REQUIREMENTS)
        services.upload_requirements(application, {"Protocol": [pdf("protocol.pdf")]})

        result = services.upload_requirements(
            application,
            {"Protocol": [pdf("protocol.pdf")], "CV": [pdf("cv.pdf")]},
        )

        assert application.requirements.filter(name="Protocol").count() == 1
        assert [r["name"] for r in result.application["requirements"]] == ["CV"]

    def test_upload_checks_extension_and_size(self, settings):
        application = application_at_step(PipelineStep.REQUIREMENTS)
        settings.REQUIREMENT_MAX_UPLOAD_SIZE = 10

        with pytest.raises(FileTooLargeError):
            services.upload_requirements(application, {"Protocol": [pdf(size=11)]})
        with pytest.raises(InvalidFileTypeError):
            services.upload_requirements(application, {"Protocol": [SimpleUploadedFile("notes.txt", b"x")]})
        assert not application.requirements.exists()

    def test_review_completes_step_and_opens_protocol_assignment(self):
        application = application_at_step(PipelineStep.REQUIREMENTS)
        first = RequirementFactory(app_profile=application)
        second = RequirementFactory(app_profile=application, name="Research Protocol")

        result = services.review_requirements(
            application,
            requirement_ids=[first.id, second.id],
            requirement_status=StatusState.APPROVED,
            new_status=StatusState.APPROVED,
            is_completed=True,
        )

        first.refresh_from_db()
        assert first.status == StatusState.APPROVED
        assert status_of(application, PipelineStep.PROTOCOL_ASSIGNMENT).status == StatusState.IN_PROGRESS
        assert {r["status"] for r in result.application["requirements"]} == {"Approved"}
        assert len(result.application["statuses"]) == 2

    def test_additional_requirements_use_step_nine(self):
        application = application_at_step(PipelineStep.ADDITIONAL_REQUIREMENTS)

        services.review_requirements(
            application,
            requirement_ids=[],
            requirement_status=StatusState.APPROVED,
            new_status=StatusState.APPROVED,
            is_completed=True,
            is_additional=True,
        )

        assert status_of(application, PipelineStep.ETHICS_CLEARANCE).status == StatusState.IN_PROGRESS

    def test_delete_submitted_requirement_is_announced(self, broadcaster, django_capture_on_commit_callbacks):
        requirement = RequirementFactory()
        requirement_id = requirement.id
        application = requirement.app_profile

        with django_capture_on_commit_callbacks(execute=True):
            result = services.delete_requirement(requirement, socket_id="sock-2")

        assert not Requirement.objects.filter(id=requirement_id).exists()
        assert result.application["requirements"][0]["status"] == StatusState.REMOVED
        [event] = broadcaster.events_on(application_channel(application.id))
        assert event.socket_id == "sock-2"
        assert event.payload["application"]["requirements"][0]["id"] == str(requirement_id)

    def test_delete_reviewed_requirement_is_silent(self, broadcaster, django_capture_on_commit_callbacks):
        requirement = RequirementFactory(status=StatusState.APPROVED)

        with django_capture_on_commit_callbacks(execute=True):
            services.delete_requirement(requirement)

        assert broadcaster.history == []


class TestReviewSteps:
    def test_assign_protocol_code(self):
        application = application_at_step(PipelineStep.PROTOCOL_ASSIGNMENT)

        result = services.assign_protocol_code(application, " PC-2024-001 ")

        application.refresh_from_db()
        assert application.protocol_code == "PC-2024-001"
        assert application.protocol_date_updated is not None
        assert result.application["protocol_code"] == "PC-2024-001"
        assert status_of(application, PipelineStep.INITIAL_REVIEW).status == StatusState.IN_PROGRESS

    def test_protocol_code_must_be_unique(self):
        AppProfileFactory(protocol_code="PC-1")
        application = application_at_step(PipelineStep.PROTOCOL_ASSIGNMENT)

        with pytest.raises(ProtocolCodeInUseError):
            services.assign_protocol_code(application, "PC-1")

    def test_step_must_be_reached(self):
        application = application_at_step(PipelineStep.REQUIREMENTS)

        with pytest.raises(StepNotReachedError):
            services.assign_protocol_code(application, "PC-9")

    def test_assign_review_type_logs_and_proceeds(self, broadcaster, django_capture_on_commit_callbacks):
        application = application_at_step(PipelineStep.REVIEW_TYPE)

        with django_capture_on_commit_callbacks(execute=True):
            result = services.assign_review_type(
                application,
                review_type="expedited",
                assigned_by="Dr. Santos",
                can_proceed=True,
            )

        assert result.message == "Review type assigned successfully"
        assert ReviewTypeLog.objects.filter(app_profile=application, assigned_by="Dr. Santos").exists()
        assert result.application["review_type"] == "expedited"
        assert len(result.application["review_type_logs"]) == 1
        assert status_of(application, PipelineStep.DECISION_LETTER).status == StatusState.IN_PROGRESS
        [event] = broadcaster.events_on(application_channel(application.id))
        assert event.payload["message"] == "Dr. Santos has assigned expedited"

    def test_assign_review_type_without_proceeding(self):
        application = application_at_step(PipelineStep.REVIEW_TYPE)

        result = services.assign_review_type(
            application,
            review_type="full board",
            assigned_by="Dr. Santos",
            can_proceed=False,
        )

        assert result.application["statuses"] == []
        assert application.status_at(PipelineStep.DECISION_LETTER) is None

    def test_unknown_review_type(self):
        with pytest.raises(ValidationError):
            services.assign_review_type(
                application_at_step(PipelineStep.REVIEW_TYPE),
                review_type="speedy",
                assigned_by="x",
                can_proceed=False,
            )

    def test_decision_letter_upload_then_sign(self):
        application = application_at_step(PipelineStep.DECISION_LETTER)

        uploaded = services.upload_decision_letter(application, pdf("decision.pdf"))
        assert uploaded.application["decision_letter"]["is_signed"] is False
        assert status_of(application, PipelineStep.DECISION_LETTER).status == StatusState.UPLOADED

        signed = services.sign_decision_letter(application, "Dr. Chair")

        assert signed.application["decision_letter"]["is_signed"] is True
        assert status_of(application, PipelineStep.DECISION_LETTER).status == StatusState.SIGNED
        assert status_of(application, PipelineStep.PAYMENT).status == StatusState.IN_PROGRESS

    def test_signed_letter_cannot_be_signed_again(self):
        application = application_at_step(PipelineStep.DECISION_LETTER)
        DecisionLetterFactory(app_profile=application, is_signed=True)

        with pytest.raises(BadRequestError):
            services.sign_decision_letter(application, "Dr. Chair")

    def test_upload_payment_awaits_confirmation(self):
        application = application_at_step(PipelineStep.PAYMENT)

        result = services.upload_payment(application, pdf("receipt.pdf"), payment_details="OR #42")

        assert result.application["payment_details"] == "OR #42"
        assert result.application["proof_of_payment_url"]
        assert status_of(application, PipelineStep.PAYMENT).status == StatusState.AWAITING_CONFIRMATION

    def test_schedule_meeting_with_panel(self):
        application = application_at_step(PipelineStep.PANEL_MEETING)
        meeting_date = timezone.now() + timedelta(days=7)

        result = services.schedule_meeting(
            application,
            meeting_date=meeting_date,
            panel_members=[{"firstname": "Liza", "lastname": "Tan"}],
        )

        assert result.application["meeting"]["status"] == "Scheduled"
        assert [p["lastname"] for p in result.application["panels"]] == ["Tan"]

    def test_review_results_are_versioned(self):
        application = application_at_step(PipelineStep.REVIEW_RESULT)

        services.add_review_result(application, name="Board review", upload=pdf("r1.pdf"))
        result = services.add_review_result(
            application,
            name="Board review",
            upload=pdf("r2.pdf"),
            manuscripts=[pdf("manuscript.pdf")],
        )

        assert result.application["review_results"][0]["version"] == 2
        assert result.application["documents"][0]["status"] == "Revised"
        assert status_of(application, PipelineStep.REVIEW_RESULT).status == StatusState.UPLOADED

    def test_reviewer_report(self):
        application = application_at_step(PipelineStep.REVIEW_RESULT)

        result = services.add_reviewer_report(application, message="Minor revisions", upload=pdf("report.pdf"))

        assert result.application["reviewer_reports"][0]["message"] == "Minor revisions"

    def test_ethics_clearance_closes_pipeline(self):
        application = application_at_step(PipelineStep.ETHICS_CLEARANCE)
        start = timezone.now()

        result = services.upload_ethics_clearance(
            application,
            pdf("clearance.pdf"),
            date_clearance=start,
            effective_start_date=start,
            effective_end_date=start + timedelta(days=365),
        )

        status = status_of(application, PipelineStep.ETHICS_CLEARANCE)
        assert status.status == StatusState.COMPLETED
        assert status.is_completed
        assert result.application["ethics_clearance"]["file_url"]

    def test_clearance_dates_must_be_ordered(self):
        application = application_at_step(PipelineStep.ETHICS_CLEARANCE)
        start = timezone.now()

        with pytest.raises(ValidationError):
            services.upload_ethics_clearance(
                application,
                pdf(),
                date_clearance=start,
                effective_start_date=start,
                effective_end_date=start - timedelta(days=1),
            )


class TestFeedback:
    def test_post_message_is_pushed(self, broadcaster, django_capture_on_commit_callbacks):
        status = AppStatusFactory(name="Application Requirements")

        with django_capture_on_commit_callbacks(execute=True):
            message = services.post_message(status, remarks=" Please sign page 2 ", by="Staff", socket_id="sock-3")

        assert message["remarks"] == "Please sign page 2"
        assert message["read_status"] == services.SENT
        [event] = broadcaster.events_on(application_channel(status.app_profile_id))
        assert event.name == FEEDBACK_SENT
        assert event.socket_id == "sock-3"
        assert event.payload["message"] == "New message from Staff in Application Requirements"
        assert event.payload["message_thread"] == message

    def test_empty_message_rejected(self):
        with pytest.raises(ValidationError):
            services.post_message(AppStatusFactory(), remarks="   ", by="Staff")

    def test_mark_read_pushes_same_message(self, broadcaster, django_capture_on_commit_callbacks):
        message = MessageThreadFactory()

        with django_capture_on_commit_callbacks(execute=True):
            data = services.mark_message_read(message, "read")

        assert data["id"] == str(message.id)
        assert data["read_status"] == "read"
        [event] = broadcaster.history
        assert event.payload["message"] is None

    def test_no_event_without_commit(self, broadcaster, django_capture_on_commit_callbacks):
        with django_capture_on_commit_callbacks(execute=False) as callbacks:
            services.post_message(AppStatusFactory(), remarks="Hello", by="Staff")

        assert len(callbacks) == 1
        assert broadcaster.history == []


class TestAnnouncement:
    def test_post_then_clear(self):
        application = AppProfileFactory()

        posted = services.post_announcement(application, "Office closed on Friday")
        assert posted.application["message_post"]["content"] == "Office closed on Friday"

        cleared = services.clear_announcement(application)

        assert cleared.application["message_post"] is None
        assert not MessagePost.objects.filter(app_profile=application).exists()


class TestDashboardStats:
    def test_counts(self):
        application_at_step(PipelineStep.REQUIREMENTS)
        reviewed = application_at_step(PipelineStep.PAYMENT, review_type="expedited")
        AppStatus.objects.filter(app_profile=reviewed, sequence=PipelineStep.PAYMENT).update(
            status=StatusState.AWAITING_CONFIRMATION,
        )
        finished = application_at_step(PipelineStep.ETHICS_CLEARANCE)
        services.upload_ethics_clearance(finished, pdf(), date_clearance=timezone.now())

        stats = services.dashboard_stats()

        assert stats["total_applications"] == 3
        assert stats["applications_by_status"] == {"pending": 1, "in_progress": 2, "completed": 1}
        assert stats["applications_by_review_type"]["expedited"] == 1
        assert stats["open_by_step"]["Application Requirements"] == 1
        assert stats["open_by_step"]["Payment Made"] == 1
        assert stats["open_by_step"]["Ethics Clearance"] == 0
