import pytest

from ethics_backend.realtime.broadcasting import get_broadcaster
from ethics_backend.realtime.broadcasting import reset_broadcaster
from ethics_backend.users.models import User
from ethics_backend.users.tests.factories import UserFactory


@pytest.fixture(autouse=True)
def _media_storage(settings, tmpdir) -> None:
    settings.MEDIA_ROOT = tmpdir.strpath


@pytest.fixture
def user(db) -> User:
    return UserFactory()


@pytest.fixture
def broadcaster(settings):
    """In-process broadcaster, emptied before and after each test."""
    settings.BROADCAST_BACKEND = "ethics_backend.realtime.backends.LocMemBroadcaster"
    settings.BROADCAST_OPTIONS = {}
    reset_broadcaster()
    backend = get_broadcaster()
    backend.clear()
    yield backend
    backend.clear()
    reset_broadcaster()
