from collections.abc import Sequence
from typing import Any

from django.contrib.auth.models import Group
from factory import Faker
from factory import post_generation
from factory.django import DjangoModelFactory

from ethics_backend.core.roles import Role
from ethics_backend.users.models import User


class UserFactory(DjangoModelFactory[User]):
    email = Faker("email")
    first_name = Faker("first_name")
    last_name = Faker("last_name")

    @post_generation
    def password(self, create: bool, extracted: Sequence[Any], **kwargs):  # noqa: FBT001
        password = (
            extracted
            if extracted
            else Faker(
                "password",
                length=42,
                special_chars=True,
                digits=True,
                upper_case=True,
                lower_case=True,
            ).evaluate(None, None, extra={"locale": None})
        )
        self.set_password(password)

    @post_generation
    def roles(self, create: bool, extracted: Sequence[Role] | None, **kwargs):  # noqa: FBT001
        if not create or not extracted:
            return
        for role in extracted:
            self.groups.add(Group.objects.get_or_create(name=role.value)[0])

    @classmethod
    def _after_postgeneration(cls, instance, create, results=None):
        """Save again the instance if creating and at least one hook ran."""
        if create and results and not cls._meta.skip_postgeneration_save:
            instance.save()

    class Meta:
        model = User
        django_get_or_create = ["email"]


def researcher(**kwargs) -> User:
    return UserFactory(roles=[Role.RESEARCHER], **kwargs)


def staff_member(**kwargs) -> User:
    return UserFactory(roles=[Role.STAFF], **kwargs)


def chairperson(**kwargs) -> User:
    return UserFactory(roles=[Role.CHAIRPERSON], **kwargs)
