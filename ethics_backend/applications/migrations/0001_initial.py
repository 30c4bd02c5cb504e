import uuid

import django.db.models.deletion
import django.utils.timezone
import django_fsm
import model_utils.fields
from django.conf import settings
from django.db import migrations
from django.db import models

import ethics_backend.applications.models

STEP_CHOICES = [
    (1, "Application Requirements"),
    (2, "Protocol Assignment"),
    (3, "Initial Review"),
    (4, "Review Type"),
    (5, "Decision Letter"),
    (6, "Payment Made"),
    (7, "Panel Meeting"),
    (8, "Review Result"),
    (9, "Additional Requirements"),
    (10, "Ethics Clearance"),
]

REVIEW_TYPE_CHOICES = [
    ("exempted", "Exempted Review"),
    ("expedited", "Expedited Review"),
    ("full board", "Full Board Review"),
]


def base_fields():
    return [
        ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
        (
            "created",
            model_utils.fields.AutoCreatedField(default=django.utils.timezone.now, editable=False, verbose_name="created"),
        ),
        (
            "modified",
            model_utils.fields.AutoLastModifiedField(
                default=django.utils.timezone.now, editable=False, verbose_name="modified"
            ),
        ),
    ]


def profile_fk(related_name, one_to_one=False):
    field = models.OneToOneField if one_to_one else models.ForeignKey
    return (
        "app_profile",
        field(
            on_delete=django.db.models.deletion.CASCADE,
            related_name=related_name,
            to="applications.appprofile",
        ),
    )


def upload_field(verbose_name, **kwargs):
    return models.FileField(
        max_length=500,
        upload_to=ethics_backend.applications.models.application_upload_path,
        verbose_name=verbose_name,
        **kwargs,
    )


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="AppProfile",
            fields=[
                *base_fields(),
                ("firstname", models.CharField(max_length=150, verbose_name="first name")),
                ("lastname", models.CharField(max_length=150, verbose_name="last name")),
                ("research_title", models.CharField(max_length=500, verbose_name="research title")),
                ("date_applied", models.DateTimeField(default=django.utils.timezone.now, verbose_name="date applied")),
                ("protocol_code", models.CharField(blank=True, max_length=100, null=True, verbose_name="protocol code")),
                (
                    "protocol_date_updated",
                    models.DateTimeField(blank=True, null=True, verbose_name="protocol date updated"),
                ),
                (
                    "review_type",
                    models.CharField(
                        blank=True, choices=REVIEW_TYPE_CHOICES, max_length=20, null=True, verbose_name="review type"
                    ),
                ),
                (
                    "proof_of_payment",
                    models.FileField(
                        blank=True,
                        null=True,
                        upload_to=ethics_backend.applications.models.application_upload_path,
                        verbose_name="proof of payment",
                    ),
                ),
                ("payment_date", models.DateTimeField(blank=True, null=True, verbose_name="payment date")),
                ("payment_details", models.TextField(blank=True, null=True, verbose_name="payment details")),
                (
                    "user",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="applications",
                        to=settings.AUTH_USER_MODEL,
                        verbose_name="researcher",
                    ),
                ),
            ],
            options={
                "verbose_name": "application",
                "verbose_name_plural": "applications",
                "ordering": ["-date_applied"],
            },
        ),
        migrations.CreateModel(
            name="AppMember",
            fields=[
                *base_fields(),
                ("firstname", models.CharField(blank=True, default="", max_length=150, verbose_name="first name")),
                ("lastname", models.CharField(blank=True, default="", max_length=150, verbose_name="last name")),
                profile_fk("members"),
            ],
            options={"ordering": ["created"]},
        ),
        migrations.CreateModel(
            name="AppStatus",
            fields=[
                *base_fields(),
                ("name", models.CharField(max_length=100, verbose_name="name")),
                ("sequence", models.PositiveSmallIntegerField(choices=STEP_CHOICES, verbose_name="sequence")),
                ("status", django_fsm.FSMField(default="In Progress", max_length=50, verbose_name="status")),
                ("start", models.DateTimeField(default=django.utils.timezone.now, verbose_name="start")),
                ("end", models.DateTimeField(blank=True, null=True, verbose_name="end")),
                profile_fk("statuses"),
            ],
            options={
                "verbose_name": "application status",
                "verbose_name_plural": "application statuses",
                "ordering": ["sequence", "created"],
            },
        ),
        migrations.CreateModel(
            name="MessageThread",
            fields=[
                *base_fields(),
                ("remarks", models.TextField(verbose_name="remarks")),
                ("by", models.CharField(max_length=255, verbose_name="by")),
                ("read_status", models.CharField(blank=True, max_length=100, null=True, verbose_name="read status")),
                profile_fk("message_threads"),
                (
                    "app_status",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="messages",
                        to="applications.appstatus",
                    ),
                ),
            ],
            options={"ordering": ["created"]},
        ),
        migrations.CreateModel(
            name="Requirement",
            fields=[
                *base_fields(),
                ("name", models.CharField(max_length=255, verbose_name="name")),
                ("file", upload_field("file")),
                ("date_uploaded", models.DateTimeField(default=django.utils.timezone.now, verbose_name="date uploaded")),
                ("status", models.CharField(blank=True, max_length=50, null=True, verbose_name="status")),
                ("is_additional", models.BooleanField(default=False, verbose_name="additional requirement")),
                profile_fk("requirements"),
            ],
            options={"ordering": ["created"]},
        ),
        migrations.CreateModel(
            name="ReviewResult",
            fields=[
                *base_fields(),
                ("name", models.CharField(max_length=255, verbose_name="name")),
                ("file", upload_field("file", blank=True, null=True)),
                ("date_uploaded", models.DateTimeField(blank=True, null=True, verbose_name="date uploaded")),
                ("status", models.CharField(blank=True, max_length=50, null=True, verbose_name="status")),
                ("version", models.PositiveIntegerField(default=1, verbose_name="version")),
                profile_fk("review_results"),
            ],
            options={"ordering": ["created"]},
        ),
        migrations.CreateModel(
            name="Document",
            fields=[
                *base_fields(),
                ("file", upload_field("file")),
                ("remarks", models.TextField(blank=True, null=True, verbose_name="remarks")),
                ("version", models.PositiveIntegerField(default=1, verbose_name="version")),
                ("status", models.CharField(default="Original", max_length=50, verbose_name="status")),
                profile_fk("documents"),
                (
                    "review_result",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="documents",
                        to="applications.reviewresult",
                    ),
                ),
            ],
            options={"ordering": ["created"]},
        ),
        migrations.CreateModel(
            name="ReviewerReport",
            fields=[
                *base_fields(),
                ("message", models.TextField(verbose_name="message")),
                ("status", models.CharField(default="draft", max_length=50, verbose_name="status")),
                ("file", upload_field("file")),
                profile_fk("reviewer_reports"),
            ],
            options={"ordering": ["created"]},
        ),
        migrations.CreateModel(
            name="PanelMember",
            fields=[
                *base_fields(),
                ("firstname", models.CharField(max_length=150, verbose_name="first name")),
                ("lastname", models.CharField(max_length=150, verbose_name="last name")),
                profile_fk("panels"),
            ],
            options={"ordering": ["created"]},
        ),
        migrations.CreateModel(
            name="Meeting",
            fields=[
                *base_fields(),
                ("meeting_date", models.DateTimeField(verbose_name="meeting date")),
                ("status", models.CharField(blank=True, max_length=50, null=True, verbose_name="status")),
                profile_fk("meeting", one_to_one=True),
            ],
            options={"abstract": False},
        ),
        migrations.CreateModel(
            name="DecisionLetter",
            fields=[
                *base_fields(),
                ("file_name", models.CharField(max_length=255, verbose_name="file name")),
                ("file", upload_field("file")),
                ("is_signed", models.BooleanField(default=False, verbose_name="signed")),
                ("date_uploaded", models.DateTimeField(default=django.utils.timezone.now, verbose_name="date uploaded")),
                profile_fk("decision_letter", one_to_one=True),
            ],
            options={"abstract": False},
        ),
        migrations.CreateModel(
            name="EthicsClearance",
            fields=[
                *base_fields(),
                ("file", upload_field("file")),
                ("date_clearance", models.DateTimeField(verbose_name="date of clearance")),
                ("date_uploaded", models.DateTimeField(default=django.utils.timezone.now, verbose_name="date uploaded")),
                (
                    "effective_start_date",
                    models.DateTimeField(blank=True, null=True, verbose_name="effective start date"),
                ),
                ("effective_end_date", models.DateTimeField(blank=True, null=True, verbose_name="effective end date")),
                profile_fk("ethics_clearance", one_to_one=True),
            ],
            options={"abstract": False},
        ),
        migrations.CreateModel(
            name="MessagePost",
            fields=[
                *base_fields(),
                ("content", models.TextField(verbose_name="content")),
                profile_fk("message_post", one_to_one=True),
            ],
            options={"abstract": False},
        ),
        migrations.CreateModel(
            name="ReviewTypeLog",
            fields=[
                *base_fields(),
                ("review_type", models.CharField(choices=REVIEW_TYPE_CHOICES, max_length=20, verbose_name="review type")),
                ("assigned_by", models.CharField(max_length=255, verbose_name="assigned by")),
                profile_fk("review_type_logs"),
            ],
            options={"ordering": ["-created"]},
        ),
    ]
