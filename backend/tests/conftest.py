"""Shared test fixtures and dummy classes."""

from __future__ import annotations

import asyncio

import pytest
import pytest_asyncio

from models import get_engine, get_session_factory, init_db
from services.alarm_service import AlarmService
from services.alarm_store import AlarmStore
from services.notifier import Notifier

NOW = 1_727_206_611


class RecordingSubscriber:
    """Notification subscriber that keeps every payload."""

    def __init__(self, name: str = "recorder") -> None:
        self.name = name
        self.payloads: list[dict] = []

    async def send(self, payload: dict) -> None:
        self.payloads.append(payload)


class FailingSubscriber:
    """Notification subscriber whose transport is down."""

    name = "broken"

    def __init__(self) -> None:
        self.calls = 0

    async def send(self, payload: dict) -> None:
        self.calls += 1
        raise RuntimeError("endpoint gone")


class SlowSubscriber:
    """Notification subscriber with a slow transport."""

    name = "slow"

    def __init__(self, delay: float = 0.5) -> None:
        self.delay = delay
        self.payloads: list[dict] = []

    async def send(self, payload: dict) -> None:
        await asyncio.sleep(self.delay)
        self.payloads.append(payload)


class FakeClock:
    """Settable replacement for time.time."""

    def __init__(self, now: int = NOW) -> None:
        self.now = now

    def __call__(self) -> float:
        return float(self.now)

    def advance(self, seconds: int) -> None:
        self.now += seconds


@pytest_asyncio.fixture
async def db_engine(tmp_path):
    engine = get_engine(f"sqlite+aiosqlite:///{tmp_path / 'data' / 'alarms.db'}", echo=False)
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return get_session_factory(db_engine)


@pytest.fixture
def store(session_factory) -> AlarmStore:
    return AlarmStore(session_factory)


@pytest.fixture
def recorder() -> RecordingSubscriber:
    return RecordingSubscriber()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def service(store, recorder, clock) -> AlarmService:
    return AlarmService(store, Notifier([recorder]), clock=clock)
