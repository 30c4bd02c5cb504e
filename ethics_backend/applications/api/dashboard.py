"""
Dashboard API controller.
"""

from django.http import HttpRequest
from ninja_extra import api_controller
from ninja_extra import http_get

from ethics_backend.applications import services
from ethics_backend.applications.schemas import DashboardStatsSchema
from ethics_backend.core.api import BaseAPI
from ethics_backend.core.api import IsReviewer
from ethics_backend.core.exceptions import ErrorSchema


@api_controller("/dashboard", tags=["Dashboard"], permissions=[IsReviewer])
class DashboardController(BaseAPI):
    @http_get("/stats", response={200: DashboardStatsSchema, 403: ErrorSchema}, url_name="dashboard_stats")
    def stats(self, request: HttpRequest):
        """Counters for the review office dashboard."""
        return 200, DashboardStatsSchema(**services.dashboard_stats())
