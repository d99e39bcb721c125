"""Pytest configuration and fixtures."""

from typing import Dict

import pytest

from banwatch.messages import get_messages
from banwatch.services.record_store import RecordStore
from fakes import FakeSteam, RecordingNotifier


@pytest.fixture
async def store(tmp_path):
    """Record store backed by a fresh SQLite file."""
    record_store = RecordStore(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    await record_store.init()
    yield record_store
    await record_store.close()


@pytest.fixture
def fake_steam() -> FakeSteam:
    return FakeSteam()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def messages() -> Dict[str, str]:
    return get_messages("en")
