"""
Models for research ethics applications.

Contains:
- AppProfile: one ethics review case (the Application aggregate root)
- AppStatus: one stage of the ten-step pipeline, with its feedback thread
- MessageThread: feedback message posted on a stage
- Requirement, ReviewResult, Document, ReviewerReport: uploaded files
- AppMember, PanelMember: people attached to the case
- Meeting, DecisionLetter, EthicsClearance, MessagePost: singular entities
- ReviewTypeLog: audit trail of review type assignments
"""

import logging

from django.conf import settings
from django.db import models
from django.utils import timezone
from django.utils.translation import gettext_lazy as _
from django_fsm import RETURN_VALUE
from django_fsm import FSMField
from django_fsm import InvalidResultState
from django_fsm import transition

from ethics_backend.core.models import BaseModel
from ethics_backend.core.roles import is_reviewer

logger = logging.getLogger(__name__)


class PipelineStep(models.IntegerChoices):
    """The ten steps every application goes through, in order."""

    REQUIREMENTS = 1, _("Application Requirements")
    PROTOCOL_ASSIGNMENT = 2, _("Protocol Assignment")
    INITIAL_REVIEW = 3, _("Initial Review")
    REVIEW_TYPE = 4, _("Review Type")
    DECISION_LETTER = 5, _("Decision Letter")
    PAYMENT = 6, _("Payment Made")
    PANEL_MEETING = 7, _("Panel Meeting")
    REVIEW_RESULT = 8, _("Review Result")
    ADDITIONAL_REQUIREMENTS = 9, _("Additional Requirements")
    ETHICS_CLEARANCE = 10, _("Ethics Clearance")


LAST_STEP = PipelineStep.ETHICS_CLEARANCE


class StatusState(models.TextChoices):
    """Lifecycle states of a pipeline stage."""

    PENDING = "Pending", _("Pending")
    IN_PROGRESS = "In Progress", _("In Progress")
    SUBMITTED = "Submitted", _("Submitted")
    UPLOADED = "Uploaded", _("Uploaded")
    AWAITING_CONFIRMATION = "Awaiting Confirmation", _("Awaiting Confirmation")
    ASSIGNED = "Assigned", _("Assigned")
    DONE = "Done", _("Done")
    APPROVED = "Approved", _("Approved")
    SIGNED = "Signed", _("Signed")
    COMPLETED = "Completed", _("Completed")
    REMOVED = "Removed", _("Removed")


# States a closed stage can no longer leave.
FINAL_STATES = [StatusState.COMPLETED, StatusState.REMOVED]

STATE_MAX_LENGTH = 50


class FreeTextState(RETURN_VALUE):
    """
    Transition target taken from the method's return value.

    Stage states are free text; StatusState only lists the usual ones.
    Blank, overlong and excluded labels are refused.
    """

    def __init__(self, exclude=()):
        super().__init__()
        self.exclude = list(exclude)

    def get_state(self, model, transition, result, *args, **kwargs):
        state = (result or "").strip()
        if not state or len(state) > STATE_MAX_LENGTH or state in self.exclude:
            raise InvalidResultState(f"{result!r} is not a valid stage state")
        return state


class ReviewType(models.TextChoices):
    EXEMPTED = "exempted", _("Exempted Review")
    EXPEDITED = "expedited", _("Expedited Review")
    FULL_BOARD = "full board", _("Full Board Review")


def application_upload_path(instance, filename: str) -> str:
    """Files of one application live under its own folder."""
    folder = instance.__class__.__name__.lower()
    profile_id = getattr(instance, "app_profile_id", None) or instance.pk
    return f"applications/{profile_id}/{folder}/{filename}"


class AppProfile(BaseModel):
    """
    A research ethics application.

    Inherits from BaseModel:
        - id: UUID primary key
        - created: auto-set on creation
        - modified: auto-updated on save
    """

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="applications",
        verbose_name=_("researcher"),
    )
    firstname = models.CharField(_("first name"), max_length=150)
    lastname = models.CharField(_("last name"), max_length=150)
    research_title = models.CharField(_("research title"), max_length=500)
    date_applied = models.DateTimeField(_("date applied"), default=timezone.now)

    protocol_code = models.CharField(_("protocol code"), max_length=100, null=True, blank=True)
    protocol_date_updated = models.DateTimeField(_("protocol date updated"), null=True, blank=True)
    review_type = models.CharField(
        _("review type"),
        max_length=20,
        choices=ReviewType.choices,
        null=True,
        blank=True,
    )

    proof_of_payment = models.FileField(
        _("proof of payment"),
        upload_to=application_upload_path,
        null=True,
        blank=True,
    )
    payment_date = models.DateTimeField(_("payment date"), null=True, blank=True)
    payment_details = models.TextField(_("payment details"), null=True, blank=True)

    class Meta:
        verbose_name = _("application")
        verbose_name_plural = _("applications")
        ordering = ["-date_applied"]

    def __str__(self) -> str:
        return self.research_title

    def can_be_viewed_by(self, user) -> bool:
        """The owning researcher and the review office see an application."""
        if not user or not user.is_authenticated:
            return False
        if self.user_id == user.id:
            return True
        return is_reviewer(user)

    @property
    def current_status(self) -> "AppStatus | None":
        """The latest stage of the pipeline."""
        return self.statuses.order_by("-sequence", "-created").first()

    def status_at(self, step: PipelineStep | int) -> "AppStatus | None":
        return self.statuses.filter(sequence=int(step)).order_by("-created").first()


class AppMember(BaseModel):
    """Co-applicant listed on the application."""

    app_profile = models.ForeignKey(AppProfile, on_delete=models.CASCADE, related_name="members")
    firstname = models.CharField(_("first name"), max_length=150, blank=True, default="")
    lastname = models.CharField(_("last name"), max_length=150, blank=True, default="")

    class Meta:
        ordering = ["created"]

    def __str__(self) -> str:
        return f"{self.firstname} {self.lastname}".strip()


class AppStatus(BaseModel):
    """
    One stage instance of the pipeline.

    ``end`` set means the stage is complete. Uses django-fsm for the
    lifecycle state: open stages may record any state, closing a stage
    (``complete``) stamps ``end``, and Completed/Removed stages are final.
    """

    app_profile = models.ForeignKey(AppProfile, on_delete=models.CASCADE, related_name="statuses")
    name = models.CharField(_("name"), max_length=100)
    sequence = models.PositiveSmallIntegerField(_("sequence"), choices=PipelineStep.choices)
    status = FSMField(
        _("status"),
        default=StatusState.IN_PROGRESS,
        max_length=STATE_MAX_LENGTH,
    )
    start = models.DateTimeField(_("start"), default=timezone.now)
    end = models.DateTimeField(_("end"), null=True, blank=True)

    class Meta:
        verbose_name = _("application status")
        verbose_name_plural = _("application statuses")
        ordering = ["sequence", "created"]

    def __str__(self) -> str:
        return f"{self.sequence}. {self.name} ({self.status})"

    @property
    def is_completed(self) -> bool:
        return self.end is not None

    @property
    def next_sequence(self) -> int:
        """Sequence of the stage after this one, capped at the last step."""
        return min(self.sequence + 1, LAST_STEP)

    # FSM Transitions

    def is_open(self) -> bool:
        return self.status not in FINAL_STATES

    @transition(field=status, source="*", target=FreeTextState(exclude=FINAL_STATES), conditions=[is_open])
    def record(self, state: str) -> str:
        """Record progress on an open stage. Any label but a final one."""
        return state

    @transition(field=status, source="*", target=FreeTextState(), conditions=[is_open])
    def complete(self, state: str) -> str:
        """Close the stage with its outcome (Approved, Done, Signed...)."""
        self.end = timezone.now()
        return state

    @transition(field=status, source="*", target=StatusState.REMOVED, conditions=[is_open])
    def remove(self):
        """Withdraw the stage."""
        self.end = timezone.now()


class MessageThread(BaseModel):
    """A feedback message on one stage."""

    app_profile = models.ForeignKey(AppProfile, on_delete=models.CASCADE, related_name="message_threads")
    app_status = models.ForeignKey(AppStatus, on_delete=models.CASCADE, related_name="messages")
    remarks = models.TextField(_("remarks"))
    by = models.CharField(_("by"), max_length=255)
    read_status = models.CharField(_("read status"), max_length=100, null=True, blank=True)

    class Meta:
        ordering = ["created"]

    def __str__(self) -> str:
        return f"{self.by}: {self.remarks[:50]}"


class Requirement(BaseModel):
    """A file uploaded for step 1 (or step 9 when ``is_additional``)."""

    app_profile = models.ForeignKey(AppProfile, on_delete=models.CASCADE, related_name="requirements")
    name = models.CharField(_("name"), max_length=255)
    file = models.FileField(_("file"), upload_to=application_upload_path, max_length=500)
    date_uploaded = models.DateTimeField(_("date uploaded"), default=timezone.now)
    status = models.CharField(_("status"), max_length=50, null=True, blank=True)
    is_additional = models.BooleanField(_("additional requirement"), default=False)

    class Meta:
        ordering = ["created"]

    def __str__(self) -> str:
        return self.name


class ReviewResult(BaseModel):
    """Outcome of the board review (step 8), versioned on resubmission."""

    app_profile = models.ForeignKey(AppProfile, on_delete=models.CASCADE, related_name="review_results")
    name = models.CharField(_("name"), max_length=255)
    file = models.FileField(_("file"), upload_to=application_upload_path, max_length=500, null=True, blank=True)
    date_uploaded = models.DateTimeField(_("date uploaded"), null=True, blank=True)
    status = models.CharField(_("status"), max_length=50, null=True, blank=True)
    version = models.PositiveIntegerField(_("version"), default=1)

    class Meta:
        ordering = ["created"]

    def __str__(self) -> str:
        return f"{self.name} v{self.version}"


class Document(BaseModel):
    """A manuscript attached to a review result."""

    app_profile = models.ForeignKey(AppProfile, on_delete=models.CASCADE, related_name="documents")
    review_result = models.ForeignKey(ReviewResult, on_delete=models.CASCADE, related_name="documents")
    file = models.FileField(_("file"), upload_to=application_upload_path, max_length=500)
    remarks = models.TextField(_("remarks"), null=True, blank=True)
    version = models.PositiveIntegerField(_("version"), default=1)
    status = models.CharField(_("status"), max_length=50, default="Original")

    class Meta:
        ordering = ["created"]


class ReviewerReport(BaseModel):
    """Report written by a reviewer of the panel."""

    app_profile = models.ForeignKey(AppProfile, on_delete=models.CASCADE, related_name="reviewer_reports")
    message = models.TextField(_("message"))
    status = models.CharField(_("status"), max_length=50, default="draft")
    file = models.FileField(_("file"), upload_to=application_upload_path, max_length=500)

    class Meta:
        ordering = ["created"]


class PanelMember(BaseModel):
    app_profile = models.ForeignKey(AppProfile, on_delete=models.CASCADE, related_name="panels")
    firstname = models.CharField(_("first name"), max_length=150)
    lastname = models.CharField(_("last name"), max_length=150)

    class Meta:
        ordering = ["created"]

    def __str__(self) -> str:
        return f"{self.firstname} {self.lastname}"


class Meeting(BaseModel):
    app_profile = models.OneToOneField(AppProfile, on_delete=models.CASCADE, related_name="meeting")
    meeting_date = models.DateTimeField(_("meeting date"))
    status = models.CharField(_("status"), max_length=50, null=True, blank=True)


class DecisionLetter(BaseModel):
    app_profile = models.OneToOneField(AppProfile, on_delete=models.CASCADE, related_name="decision_letter")
    file_name = models.CharField(_("file name"), max_length=255)
    file = models.FileField(_("file"), upload_to=application_upload_path, max_length=500)
    is_signed = models.BooleanField(_("signed"), default=False)
    date_uploaded = models.DateTimeField(_("date uploaded"), default=timezone.now)


class EthicsClearance(BaseModel):
    app_profile = models.OneToOneField(AppProfile, on_delete=models.CASCADE, related_name="ethics_clearance")
    file = models.FileField(_("file"), upload_to=application_upload_path, max_length=500)
    date_clearance = models.DateTimeField(_("date of clearance"))
    date_uploaded = models.DateTimeField(_("date uploaded"), default=timezone.now)
    effective_start_date = models.DateTimeField(_("effective start date"), null=True, blank=True)
    effective_end_date = models.DateTimeField(_("effective end date"), null=True, blank=True)


class MessagePost(BaseModel):
    """Announcement pinned on the application by the office."""

    app_profile = models.OneToOneField(AppProfile, on_delete=models.CASCADE, related_name="message_post")
    content = models.TextField(_("content"))


class ReviewTypeLog(BaseModel):
    app_profile = models.ForeignKey(AppProfile, on_delete=models.CASCADE, related_name="review_type_logs")
    review_type = models.CharField(_("review type"), max_length=20, choices=ReviewType.choices)
    assigned_by = models.CharField(_("assigned by"), max_length=255)

    class Meta:
        ordering = ["-created"]
