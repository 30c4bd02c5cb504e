from django.apps import AppConfig
from django.utils.translation import gettext_lazy as _


class ApplicationsConfig(AppConfig):
    name = "ethics_backend.applications"
    verbose_name = _("Ethics Review Applications")
