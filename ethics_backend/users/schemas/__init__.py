from ethics_backend.users.schemas.auth import CSRFTokenSchema
from ethics_backend.users.schemas.auth import LoginResponseSchema
from ethics_backend.users.schemas.auth import LoginSchema
from ethics_backend.users.schemas.auth import UserSchema

__all__ = [
    "CSRFTokenSchema",
    "LoginResponseSchema",
    "LoginSchema",
    "UserSchema",
]
