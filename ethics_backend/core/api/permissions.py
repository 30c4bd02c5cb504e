"""
Permission classes for API controllers.
"""

from typing import Any

from django.http import HttpRequest
from ninja_extra import permissions

from ethics_backend.core.roles import is_reviewer


class IsAuthenticated(permissions.BasePermission):
    """
    Permission class that requires authentication.

    Checks if the user is authenticated before allowing access.
    """

    message = "Authentication required."

    def has_permission(self, request: HttpRequest, controller: Any) -> bool:
        """Check if the user is authenticated."""
        return bool(request.user and request.user.is_authenticated)


class IsReviewer(permissions.BasePermission):
    """
    Permission class for the ethics office.

    Staff, chairpersons and admins move applications through the pipeline;
    researchers only submit and follow their own applications.
    """

    message = "Reserved for the ethics review office."

    def has_permission(self, request: HttpRequest, controller: Any) -> bool:
        """Check if the user belongs to the review office."""
        return is_reviewer(request.user)


class AllowAny(permissions.BasePermission):
    """
    Permission class that allows any access.

    Used for public endpoints that don't require authentication.
    """

    def has_permission(self, request: HttpRequest, controller: Any) -> bool:
        """Always return True."""
        return True
