"""
Tests for the role system and permission classes.
"""

import pytest
from django.contrib.auth.models import AnonymousUser
from django.contrib.auth.models import Group
from django.test import RequestFactory

from ethics_backend.core.api.permissions import IsAuthenticated
from ethics_backend.core.api.permissions import IsReviewer
from ethics_backend.core.roles import Role
from ethics_backend.core.roles import get_user_roles
from ethics_backend.core.roles import is_admin
from ethics_backend.core.roles import is_chairperson
from ethics_backend.core.roles import is_reviewer
from ethics_backend.core.roles import user_has_any_role
from ethics_backend.core.roles import user_has_role
from ethics_backend.users.tests.factories import UserFactory


@pytest.fixture
def role_groups(db):
    """Create all role groups."""
    groups = {}
    for role in Role:
        groups[role] = Group.objects.get_or_create(name=role.value)[0]
    return groups


def make_request(user=None):
    """Create a request with the given user."""
    request = RequestFactory().get("/")
    request.user = user if user else AnonymousUser()
    return request


class TestRoleEnum:
    """Tests for the Role enum."""

    def test_role_values(self):
        assert len(Role) == 4
        assert Role.RESEARCHER.value == "Researcher"
        assert Role.STAFF.value == "Staff"
        assert Role.CHAIRPERSON.value == "Chairperson"
        assert Role.ADMIN.value == "Admin"


@pytest.mark.django_db
class TestRoleHelpers:
    """Tests for the role lookup helpers."""

    def test_unauthenticated_user_returns_empty(self):
        assert get_user_roles(None) == []
        assert user_has_role(None, Role.STAFF) is False
        assert user_has_any_role(None, [Role.STAFF]) is False

    def test_user_with_single_role(self, role_groups):
        user = UserFactory()
        user.groups.add(role_groups[Role.STAFF])

        assert get_user_roles(user) == ["Staff"]
        assert user_has_role(user, Role.STAFF) is True
        assert user_has_role(user, "Chairperson") is False

    def test_accepts_mixed_role_types(self, role_groups):
        user = UserFactory()
        user.groups.add(role_groups[Role.CHAIRPERSON])

        assert user_has_any_role(user, [Role.STAFF, "Chairperson"]) is True

    def test_researcher_is_not_reviewer(self, role_groups):
        user = UserFactory()
        user.groups.add(role_groups[Role.RESEARCHER])

        assert is_reviewer(user) is False
        assert is_chairperson(user) is False

    @pytest.mark.parametrize("role", [Role.STAFF, Role.CHAIRPERSON, Role.ADMIN])
    def test_office_roles_are_reviewers(self, role_groups, role):
        user = UserFactory()
        user.groups.add(role_groups[role])

        assert is_reviewer(user) is True

    def test_django_staff_flag_is_reviewer(self):
        assert is_reviewer(UserFactory(is_staff=True)) is True

    def test_only_chairperson_signs(self, role_groups):
        staff = UserFactory()
        staff.groups.add(role_groups[Role.STAFF])
        chair = UserFactory()
        chair.groups.add(role_groups[Role.CHAIRPERSON])

        assert is_chairperson(staff) is False
        assert is_chairperson(chair) is True

    def test_admins_sign_too(self, role_groups):
        admin = UserFactory()
        admin.groups.add(role_groups[Role.ADMIN])
        superuser = UserFactory(is_superuser=True)
        chair = UserFactory()
        chair.groups.add(role_groups[Role.CHAIRPERSON])

        assert is_admin(admin) is True
        assert is_admin(superuser) is True
        assert is_admin(chair) is False
        assert is_chairperson(admin) is True
        assert is_chairperson(superuser) is True
        assert is_admin(AnonymousUser()) is False


@pytest.mark.django_db
class TestPermissionClasses:
    """Tests for IsAuthenticated and IsReviewer."""

    def test_anonymous_user_denied(self):
        assert IsAuthenticated().has_permission(make_request(), None) is False
        assert IsReviewer().has_permission(make_request(), None) is False

    def test_authenticated_researcher(self, role_groups):
        user = UserFactory()
        user.groups.add(role_groups[Role.RESEARCHER])
        request = make_request(user)

        assert IsAuthenticated().has_permission(request, None) is True
        assert IsReviewer().has_permission(request, None) is False

    def test_staff_member_allowed(self, role_groups):
        user = UserFactory()
        user.groups.add(role_groups[Role.STAFF])

        assert IsReviewer().has_permission(make_request(user), None) is True
