from __future__ import annotations

import pytest

from tests.fakes import RecordingSink, RecordingWait


@pytest.fixture
def no_wait() -> RecordingWait:
    return RecordingWait()


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch, tmp_path):
    """Keep a developer's .env and exported settings out of the tests."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr("keyindex.config.load_dotenv", lambda *args, **kwargs: False)
    for name in (
        "GITHUB_TOKEN",
        "GITHUB_API_BASE_URL",
        "GITHUB_GRAPHQL_URL",
        "GITHUB_REQUEST_TIMEOUT",
        "REDIS_SERVER",
        "REDIS_PASSWORD",
        "REDIS_DB",
        "REDIS_KEY_PREFIX",
        "KEYINDEX_PAGE_SIZE",
        "KEYINDEX_BACKOFF_BASE",
        "KEYINDEX_BACKOFF_MAX",
        "KEYINDEX_BACKOFF_JITTER",
        "KEYINDEX_MAX_ATTEMPTS",
        "KEYINDEX_SCHEDULE_INTERVAL_HOURS",
        "KEYINDEX_MISFIRE_GRACE_TIME",
        "LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)
