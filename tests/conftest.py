"""
Shared fixtures for the bridge tests.
"""

import pytest

from tests.helpers import ManualScheduler, RecordingPost
from webbridge.infra.config import get_default_config
from webbridge.infra.settings import SettingsStore


@pytest.fixture
def scheduler() -> ManualScheduler:
    return ManualScheduler()


@pytest.fixture
def settings() -> SettingsStore:
    return SettingsStore(get_default_config(), persist=False)


@pytest.fixture
def post() -> RecordingPost:
    return RecordingPost()
