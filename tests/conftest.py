from unittest import mock

import pytest

from .fixture_helpers import BASE_URL
from .fixture_helpers import FakeNextcloud
from caldav_service import ConnectionManager
from caldav_service.config import ENVIRONMENT


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    for var in ENVIRONMENT:
        monkeypatch.delenv(var, raising=False)


@pytest.fixture
def server():
    fake = FakeNextcloud()
    with mock.patch("caldav_service.davclient.AsyncSession", return_value=fake):
        yield fake


@pytest.fixture
def manager(server):
    return ConnectionManager(BASE_URL, request_token="csrf-token")
