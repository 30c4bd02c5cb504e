"""
Tests for the application models.
"""

import pytest
from django_fsm import InvalidResultState
from django_fsm import TransitionNotAllowed

from ethics_backend.applications.models import AppStatus
from ethics_backend.applications.models import PipelineStep
from ethics_backend.applications.models import StatusState
from ethics_backend.applications.models import application_upload_path
from ethics_backend.applications.tests.factories import AppProfileFactory
from ethics_backend.applications.tests.factories import AppStatusFactory
from ethics_backend.applications.tests.factories import RequirementFactory
from ethics_backend.applications.tests.factories import application_at_step
from ethics_backend.users.tests.factories import UserFactory
from ethics_backend.users.tests.factories import researcher
from ethics_backend.users.tests.factories import staff_member

pytestmark = pytest.mark.django_db


class TestAppProfile:
    def test_owner_and_office_can_view(self):
        application = AppProfileFactory()

        assert application.can_be_viewed_by(application.user)
        assert application.can_be_viewed_by(staff_member())
        assert not application.can_be_viewed_by(researcher())

    def test_anonymous_cannot_view(self):
        from django.contrib.auth.models import AnonymousUser

        assert not AppProfileFactory().can_be_viewed_by(AnonymousUser())

    def test_django_staff_flag_counts_as_office(self):
        assert AppProfileFactory().can_be_viewed_by(UserFactory(is_staff=True))

    def test_current_status_is_latest_step(self):
        application = application_at_step(PipelineStep.INITIAL_REVIEW)

        assert application.current_status.sequence == PipelineStep.INITIAL_REVIEW
        assert application.status_at(PipelineStep.REQUIREMENTS).is_completed

    def test_current_status_none_without_statuses(self):
        assert AppProfileFactory().current_status is None


class TestAppStatusTransitions:
    """Lifecycle of a pipeline stage."""

    def test_record_keeps_stage_open(self):
        status = AppStatusFactory()

        status.record(StatusState.SUBMITTED)
        status.save()

        status.refresh_from_db()
        assert status.status == StatusState.SUBMITTED
        assert status.end is None

    def test_complete_stamps_end(self):
        status = AppStatusFactory()

        status.complete(StatusState.APPROVED)

        assert status.status == StatusState.APPROVED
        assert status.is_completed

    def test_record_cannot_set_final_state(self):
        status = AppStatusFactory()

        with pytest.raises(InvalidResultState):
            status.record(StatusState.COMPLETED)

    def test_record_accepts_any_label(self):
        status = AppStatusFactory()

        status.record("Waiting for Approval")
        status.save()
        status.record(StatusState.IN_PROGRESS)

        assert status.status == StatusState.IN_PROGRESS
        assert status.end is None

    def test_complete_from_custom_label(self):
        status = AppStatusFactory(status="Waiting for Approval")

        status.complete(StatusState.APPROVED)

        assert status.status == StatusState.APPROVED
        assert status.is_completed

    @pytest.mark.parametrize("state", ["", "   ", "x" * 51])
    def test_blank_or_overlong_label_is_refused(self, state):
        status = AppStatusFactory()

        with pytest.raises(InvalidResultState):
            status.record(state)

    def test_final_states_cannot_be_left(self):
        status = AppStatusFactory()
        status.complete(StatusState.COMPLETED)

        with pytest.raises(TransitionNotAllowed):
            status.record(StatusState.IN_PROGRESS)
        with pytest.raises(TransitionNotAllowed):
            status.remove()

    def test_remove(self):
        status = AppStatusFactory()

        status.remove()

        assert status.status == StatusState.REMOVED
        assert status.is_completed

    def test_next_sequence_is_capped(self):
        assert AppStatusFactory(sequence=PipelineStep.PAYMENT).next_sequence == PipelineStep.PANEL_MEETING
        assert AppStatusFactory(sequence=PipelineStep.ETHICS_CLEARANCE).next_sequence == PipelineStep.ETHICS_CLEARANCE

    def test_ordering_follows_sequence(self):
        application = application_at_step(PipelineStep.REVIEW_TYPE)

        assert [s.sequence for s in AppStatus.objects.filter(app_profile=application)] == [1, 2, 3, 4]


class TestUploadPath:
    def test_files_are_grouped_per_application(self):
        requirement = RequirementFactory.build(app_profile=AppProfileFactory())

        path = application_upload_path(requirement, "consent.pdf")

        assert path == f"applications/{requirement.app_profile_id}/requirement/consent.pdf"
