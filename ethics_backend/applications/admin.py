from django.contrib import admin
from django.utils.translation import gettext_lazy as _

from .models import AppMember
from .models import AppProfile
from .models import AppStatus
from .models import DecisionLetter
from .models import EthicsClearance
from .models import MessageThread
from .models import Requirement
from .models import ReviewResult
from .models import ReviewTypeLog


class AppMemberInline(admin.TabularInline):
    model = AppMember
    extra = 0


class AppStatusInline(admin.TabularInline):
    model = AppStatus
    extra = 0
    fields = ["sequence", "name", "status", "start", "end"]
    readonly_fields = ["status"]


class RequirementInline(admin.TabularInline):
    model = Requirement
    extra = 0
    fields = ["name", "file", "status", "is_additional", "date_uploaded"]


@admin.register(AppProfile)
class AppProfileAdmin(admin.ModelAdmin):
    list_display = ["research_title", "protocol_code", "user", "review_type", "date_applied"]
    list_filter = ["review_type", "date_applied"]
    search_fields = ["research_title", "protocol_code", "firstname", "lastname", "user__email"]
    raw_id_fields = ["user"]
    inlines = [AppMemberInline, AppStatusInline, RequirementInline]
    fieldsets = (
        (None, {"fields": ("user", "research_title", "firstname", "lastname", "date_applied")}),
        (_("Review"), {"fields": ("protocol_code", "protocol_date_updated", "review_type")}),
        (_("Payment"), {"fields": ("proof_of_payment", "payment_date", "payment_details")}),
    )


@admin.register(AppStatus)
class AppStatusAdmin(admin.ModelAdmin):
    list_display = ["app_profile", "sequence", "name", "status", "start", "end"]
    list_filter = ["sequence", "status"]
    search_fields = ["app_profile__research_title", "name"]
    raw_id_fields = ["app_profile"]
    readonly_fields = ["status", "created", "modified"]


@admin.register(MessageThread)
class MessageThreadAdmin(admin.ModelAdmin):
    list_display = ["app_status", "by", "read_status", "created"]
    list_filter = ["read_status"]
    search_fields = ["remarks", "by"]
    raw_id_fields = ["app_profile", "app_status"]


@admin.register(ReviewResult)
class ReviewResultAdmin(admin.ModelAdmin):
    list_display = ["app_profile", "name", "version", "status", "date_uploaded"]
    raw_id_fields = ["app_profile"]


@admin.register(DecisionLetter)
class DecisionLetterAdmin(admin.ModelAdmin):
    list_display = ["app_profile", "file_name", "is_signed", "date_uploaded"]
    list_filter = ["is_signed"]
    raw_id_fields = ["app_profile"]


@admin.register(EthicsClearance)
class EthicsClearanceAdmin(admin.ModelAdmin):
    list_display = ["app_profile", "date_clearance", "effective_start_date", "effective_end_date"]
    raw_id_fields = ["app_profile"]


@admin.register(ReviewTypeLog)
class ReviewTypeLogAdmin(admin.ModelAdmin):
    list_display = ["app_profile", "review_type", "assigned_by", "created"]
    list_filter = ["review_type"]
    raw_id_fields = ["app_profile"]
