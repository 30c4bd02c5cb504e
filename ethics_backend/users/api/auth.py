"""
Authentication API controller.
"""

import logging

from django.contrib.auth import authenticate
from django.contrib.auth import login
from django.contrib.auth import logout
from django.http import HttpRequest
from django.middleware.csrf import get_token
from ninja_extra import api_controller
from ninja_extra import http_get
from ninja_extra import http_post

from ethics_backend.core.api import AllowAny
from ethics_backend.core.api import BaseAPI
from ethics_backend.core.exceptions import AccountDisabledError
from ethics_backend.core.exceptions import BadRequestError
from ethics_backend.core.exceptions import ErrorSchema
from ethics_backend.core.exceptions import InvalidCredentialsError
from ethics_backend.core.exceptions import NotAuthenticatedError
from ethics_backend.core.schemas import SuccessSchema
from ethics_backend.users.models import User
from ethics_backend.users.schemas import CSRFTokenSchema
from ethics_backend.users.schemas import LoginResponseSchema
from ethics_backend.users.schemas import LoginSchema
from ethics_backend.users.schemas import UserSchema

logger = logging.getLogger(__name__)


@api_controller("/auth", tags=["Authentication"], permissions=[AllowAny])
class AuthController(BaseAPI):
    """Session authentication endpoints."""

    @http_get("/csrf", response=CSRFTokenSchema, url_name="auth_csrf")
    def get_csrf_token(self, request: HttpRequest):
        """Get a CSRF token for subsequent POST requests."""
        return CSRFTokenSchema(csrf_token=get_token(request))

    @http_post(
        "/login",
        response={200: LoginResponseSchema, 401: ErrorSchema, 400: ErrorSchema},
        url_name="auth_login",
    )
    def login_view(self, request: HttpRequest, data: LoginSchema):
        """Authenticate user with email and password."""
        if not data.email or not data.password:
            return BadRequestError("Email and password are required.").to_response()

        user = authenticate(request, username=data.email, password=data.password)

        if user is None:
            # authenticate() returns None for inactive accounts too
            inactive = User.objects.filter(email__iexact=data.email, is_active=False).first()
            if inactive is not None and inactive.check_password(data.password):
                return AccountDisabledError().to_response()
            logger.info("Failed login attempt for %s", data.email)
            return InvalidCredentialsError().to_response()

        login(request, user)

        return 200, LoginResponseSchema(
            success=True,
            user=UserSchema.from_user(user),
            csrf_token=get_token(request),
        )

    @http_post("/logout", response={200: SuccessSchema}, url_name="auth_logout")
    def logout_view(self, request: HttpRequest):
        """Logout the current user and clear session."""
        logout(request)
        return 200, SuccessSchema(success=True, message="Logged out.")

    @http_get(
        "/me",
        response={200: UserSchema, 401: ErrorSchema},
        url_name="auth_me",
    )
    def me_view(self, request: HttpRequest):
        """Get the current authenticated user's information."""
        if not request.user.is_authenticated:
            return NotAuthenticatedError().to_response()

        return 200, UserSchema.from_user(request.user)
