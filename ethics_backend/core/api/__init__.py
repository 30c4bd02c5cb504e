from ethics_backend.core.api.base import BaseAPI
from ethics_backend.core.api.permissions import AllowAny
from ethics_backend.core.api.permissions import IsAuthenticated
from ethics_backend.core.api.permissions import IsReviewer

__all__ = ["BaseAPI", "IsAuthenticated", "IsReviewer", "AllowAny"]
