"""
tests/conftest.py
Shared fixtures: a controllable clock, an on-disk store and a mocked cloud client.
"""

import pytest
from unittest.mock import MagicMock
from rankkeeper.configuration import CloudSettings
from rankkeeper.rating_store import RatingStore
from rankkeeper.remote import CloudClient
from rankkeeper.scheduler import ManualScheduler
from rankkeeper.schema import PushResult, RemoteSnapshot


class FakeClock:
    """Epoch milliseconds that only move when a test says so"""

    def __init__(self, now=1_000_000):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, milliseconds=1000):
        self.now += milliseconds
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store_path(tmp_path):
    return str(tmp_path / "ratings_store.json")


@pytest.fixture
def store(store_path, clock):
    rating_store = RatingStore(store_path, clock=clock)
    rating_store.load()
    return rating_store


@pytest.fixture
def scheduler():
    return ManualScheduler()


@pytest.fixture
def client():
    mock_client = MagicMock(spec=CloudClient)
    mock_client.settings = CloudSettings(enabled=True, base_url="https://example.test")
    mock_client.push.return_value = PushResult(success=True)
    mock_client.push_incremental.return_value = PushResult(success=True)
    mock_client.pull.return_value = RemoteSnapshot(success=True)
    return mock_client
