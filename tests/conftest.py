from datetime import datetime, timezone

import pytest

from taskloom.groups.types import RegisteredGroup
from taskloom.infrastructure import config
from taskloom.infrastructure.database import AppDatabase


@pytest.fixture
def db() -> AppDatabase:
    """Create an in-memory database for testing."""
    app_db = AppDatabase()
    app_db._init_test()
    return app_db


class FakeClock:
    """Settable clock for TaskManager."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2026, 1, 1, 9, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
def data_dirs(tmp_path, monkeypatch):
    """Point DATA_DIR and GROUPS_DIR at a temp directory."""
    monkeypatch.setattr(config, "DATA_DIR", tmp_path / "data")
    monkeypatch.setattr(config, "GROUPS_DIR", tmp_path / "groups")
    return tmp_path


@pytest.fixture
def groups() -> dict[str, RegisteredGroup]:
    return {
        "main@chat": RegisteredGroup(jid="main@chat", name="Main", folder="main", added_at="2026-01-01T00:00:00.000+00:00"),
        "alpha@chat": RegisteredGroup(jid="alpha@chat", name="Alpha", folder="alpha", added_at="2026-01-01T00:00:00.000+00:00"),
        "beta@chat": RegisteredGroup(jid="beta@chat", name="Beta", folder="beta", added_at="2026-01-01T00:00:00.000+00:00"),
    }


class RecordingSender:
    """Messaging collaborator that records what was sent."""

    def __init__(self, fail: bool = False) -> None:
        self.sent: list[tuple[str, str]] = []
        self.fail = fail

    async def __call__(self, jid: str, text: str) -> None:
        if self.fail:
            raise ConnectionError("transport down")
        self.sent.append((jid, text))


@pytest.fixture
def sender() -> RecordingSender:
    return RecordingSender()


@pytest.fixture
def failing_sender() -> RecordingSender:
    return RecordingSender(fail=True)
