"""
Authentication schemas for login and session introspection.
"""

from typing import TYPE_CHECKING
from uuid import UUID

from ninja import Schema
from pydantic import EmailStr

from ethics_backend.core.roles import get_user_roles
from ethics_backend.core.roles import is_chairperson
from ethics_backend.core.roles import is_reviewer

if TYPE_CHECKING:
    from ethics_backend.users.models import User


class LoginSchema(Schema):
    email: EmailStr
    password: str


class UserSchema(Schema):
    """
    The signed-in account.

    ``is_reviewer`` tells the client to follow the application-list
    channel; ``can_sign`` unlocks decision letter signing.
    """

    id: UUID
    first_name: str
    last_name: str
    display_name: str
    email: str
    roles: list[str]
    is_staff: bool
    is_reviewer: bool
    can_sign: bool

    @staticmethod
    def from_user(user: "User") -> "UserSchema":
        return UserSchema(
            id=user.id,
            first_name=user.first_name,
            last_name=user.last_name,
            display_name=user.display_name,
            email=user.email,
            roles=get_user_roles(user),
            is_staff=user.is_staff,
            is_reviewer=is_reviewer(user),
            can_sign=is_chairperson(user),
        )


class LoginResponseSchema(Schema):
    success: bool
    user: UserSchema | None = None
    csrf_token: str | None = None


class CSRFTokenSchema(Schema):
    csrf_token: str
