"""
Role definitions for the ethics review office.

Defines the roles used across the platform:
- Researcher: submits proposals and follows their own applications
- Staff: secretariat moving applications through the pipeline
- Chairperson: chairs the review board, signs decision letters
- Admin: system administrators with full access
"""

from enum import Enum


class Role(str, Enum):
    """
    Enum of available roles.

    Values match Django Group names exactly.
    """

    RESEARCHER = "Researcher"
    STAFF = "Staff"
    CHAIRPERSON = "Chairperson"
    ADMIN = "Admin"


REVIEWER_ROLES = [Role.STAFF, Role.CHAIRPERSON, Role.ADMIN]


def get_user_roles(user) -> list[str]:
    """
    Get the list of role names for a user.

    Args:
        user: Django User instance

    Returns:
        List of role names the user belongs to
    """
    if not user or not user.is_authenticated:
        return []

    return list(user.groups.values_list("name", flat=True))


def user_has_role(user, role: Role | str) -> bool:
    """
    Check if a user has a specific role.

    Args:
        user: Django User instance
        role: Role enum value or role name string

    Returns:
        True if user has the role
    """
    if not user or not user.is_authenticated:
        return False

    role_name = role.value if isinstance(role, Role) else role
    return user.groups.filter(name=role_name).exists()


def user_has_any_role(user, roles: list[Role | str]) -> bool:
    """
    Check if a user has any of the specified roles.

    Args:
        user: Django User instance
        roles: List of Role enum values or role name strings

    Returns:
        True if user has at least one of the roles
    """
    if not user or not user.is_authenticated:
        return False

    role_names = [r.value if isinstance(r, Role) else r for r in roles]
    return user.groups.filter(name__in=role_names).exists()


def is_admin(user) -> bool:
    """True for superusers or users with the Admin role."""
    if not user or not user.is_authenticated:
        return False
    if user.is_superuser:
        return True
    return user_has_role(user, Role.ADMIN)


def is_reviewer(user) -> bool:
    """
    Check if user works for the review office.

    Returns True for superusers, Django staff accounts, and users with the
    Staff, Chairperson or Admin roles.
    """
    if not user or not user.is_authenticated:
        return False
    if user.is_superuser or user.is_staff:
        return True
    return user_has_any_role(user, REVIEWER_ROLES)


def is_chairperson(user) -> bool:
    """Only chairpersons (and admins) sign decision letters."""
    return is_admin(user) or user_has_role(user, Role.CHAIRPERSON)
