"""
Applications API controllers.

- ApplicationController: applications and pipeline steps (/api/applications/)
- StatusMessagesController, MessageController: feedback threads
- RequirementController: requirement downloads and removal
- DashboardController: review office counters
"""

from ethics_backend.applications.api.applications import ApplicationController
from ethics_backend.applications.api.dashboard import DashboardController
from ethics_backend.applications.api.feedback import MessageController
from ethics_backend.applications.api.feedback import StatusMessagesController
from ethics_backend.applications.api.requirements import RequirementController

__all__ = [
    "ApplicationController",
    "DashboardController",
    "MessageController",
    "RequirementController",
    "StatusMessagesController",
]
