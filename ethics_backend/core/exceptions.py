"""
Exceptions of the ethics review API.

The pipeline services raise them; controllers turn them into responses
with to_response(). django-fsm refusals surface as InvalidTransitionError.
"""

from ninja import Schema


class ErrorSchema(Schema):
    """Standard error response schema."""

    code: str
    message: str
    details: dict | None = None


class APIException(Exception):
    """Base exception for API errors."""

    status_code: int = 500
    code: str = "INTERNAL_ERROR"
    message: str = "Something went wrong. Please try again."

    def __init__(
        self,
        message: str | None = None,
        code: str | None = None,
        details: dict | None = None,
    ):
        self.message = message or self.__class__.message
        self.code = code or self.__class__.code
        self.details = details
        super().__init__(self.message)

    def to_response(self) -> tuple[int, ErrorSchema]:
        """Convert exception to API response tuple."""
        return self.status_code, ErrorSchema(
            code=self.code,
            message=self.message,
            details=self.details,
        )


# Authentication Exceptions
class NotAuthenticatedError(APIException):
    """User is not authenticated."""

    status_code = 401
    code = "NOT_AUTHENTICATED"
    message = "Authentication required."


class InvalidCredentialsError(APIException):
    """Invalid login credentials."""

    status_code = 401
    code = "INVALID_CREDENTIALS"
    message = "Invalid email or password."


class AccountDisabledError(APIException):
    """User account is disabled."""

    status_code = 401
    code = "ACCOUNT_DISABLED"
    message = "This account is disabled."


# Authorization Exceptions
class PermissionDeniedError(APIException):
    """User doesn't have required permissions."""

    status_code = 403
    code = "PERMISSION_DENIED"
    message = "You do not have permission to perform this action."


class NotOwnerError(APIException):
    """User is not the owner of the resource."""

    status_code = 403
    code = "NOT_OWNER"
    message = "You are not the owner of this resource."


# Resource Exceptions
class NotFoundError(APIException):
    """Resource not found."""

    status_code = 404
    code = "NOT_FOUND"
    message = "Resource not found."


class AlreadyExistsError(APIException):
    """Resource already exists."""

    status_code = 409
    code = "ALREADY_EXISTS"
    message = "This resource already exists."


class ProtocolCodeInUseError(AlreadyExistsError):
    """Protocol codes identify one application each."""

    code = "PROTOCOL_CODE_IN_USE"
    message = "This protocol code is already assigned to another application."


# Validation Exceptions
class ValidationError(APIException):
    """Invalid input data."""

    status_code = 400
    code = "VALIDATION_ERROR"
    message = "Invalid data."


class BadRequestError(APIException):
    """Bad request."""

    status_code = 400
    code = "BAD_REQUEST"
    message = "Invalid request."


class InvalidTransitionError(BadRequestError):
    """A pipeline status cannot move to the requested state."""

    code = "INVALID_TRANSITION"
    message = "This step cannot be updated from its current state."


class StepNotReachedError(BadRequestError):
    """The application has no status for the requested step yet."""

    code = "STEP_NOT_REACHED"
    message = "The application has not reached this step yet."


# File Exceptions
class FileTooLargeError(APIException):
    """File exceeds size limit."""

    status_code = 413
    code = "FILE_TOO_LARGE"
    message = "The file exceeds the maximum allowed size."


class InvalidFileTypeError(APIException):
    """File type not allowed."""

    status_code = 415
    code = "INVALID_FILE_TYPE"
    message = "This file type is not allowed."
