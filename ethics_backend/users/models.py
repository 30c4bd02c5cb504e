import uuid
from typing import ClassVar

from django.contrib.auth.models import AbstractUser
from django.db.models import CharField
from django.db.models import EmailField
from django.db.models import UUIDField
from django.utils.translation import gettext_lazy as _

from .managers import UserManager


class User(AbstractUser):
    """
    Account of a researcher or of the review office.

    Login is by email. Roles (Researcher, Staff, Chairperson, Admin) are
    Django groups, see ethics_backend.core.roles.
    """

    id = UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    first_name = CharField(_("first name"), max_length=150)
    last_name = CharField(_("last name"), max_length=150, blank=True)
    email = EmailField(_("email address"), unique=True)
    username = None  # type: ignore[assignment]

    USERNAME_FIELD = "email"
    REQUIRED_FIELDS = ["first_name"]

    objects: ClassVar[UserManager] = UserManager()

    class Meta:
        verbose_name = _("user")
        verbose_name_plural = _("users")
        ordering = ["last_name", "first_name"]

    def __str__(self) -> str:
        return self.email

    @property
    def display_name(self) -> str:
        """Name signed on feedback messages, review type logs and decision letters."""
        return f"{self.first_name} {self.last_name}".strip() or self.email
