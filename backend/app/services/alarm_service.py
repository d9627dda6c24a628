"""AlarmService — entry point for raise / ack / clear / query.

Validates requests, converts seconds-from-now into absolute unix timestamps,
and runs every read-modify-write on a row under that alarm_id's lock so the
API path and the scheduler never interleave on the same alarm.
"""
from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from contextlib import asynccontextmanager

from sqlalchemy.exc import SQLAlchemyError

from config import settings
from services import lifecycle
from services.alarm_store import AlarmStore
from services.lifecycle import (
    ALARM_CLASSES,
    AckAction,
    AlarmRecord,
    ClearAction,
    IncomingAlarm,
)
from services.notifier import Notifier

logger = logging.getLogger("alarmwatch.service")


class AlarmValidationError(ValueError):
    """Request rejected before touching the store."""


class KeyedLock:
    """One asyncio.Lock per key, dropped again once nobody holds or waits on it."""

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}
        self._users: dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, key: str):
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._users[key] = self._users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[key] -= 1
            if not self._users[key]:
                del self._users[key]
                self._locks.pop(key, None)

    def __len__(self) -> int:
        return len(self._locks)


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------

def validate_alarm_id(alarm_id) -> str:
    if not isinstance(alarm_id, str) or not alarm_id.strip():
        raise AlarmValidationError("'alarm_id' is required.")
    return alarm_id


def validate_alarm_class(alarm_class) -> int:
    if isinstance(alarm_class, bool) or not isinstance(alarm_class, int):
        raise AlarmValidationError(f"'alarm_class' must be one of {ALARM_CLASSES}, got {alarm_class!r}")
    if alarm_class not in ALARM_CLASSES:
        raise AlarmValidationError(f"'alarm_class' must be one of {ALARM_CLASSES}, got {alarm_class}")
    return alarm_class


def to_timestamp(name: str, seconds: int | None, now: int) -> int | None:
    """Seconds-from-now -> absolute unix seconds. None or 0 means no value."""
    if seconds is None or seconds == 0:
        return None
    if isinstance(seconds, bool) or not isinstance(seconds, int):
        raise AlarmValidationError(f"'{name}' must be an integer number of seconds")
    if seconds < 0:
        raise AlarmValidationError(f"'{name}' must not be negative")
    return now + seconds


class AlarmService:

    def __init__(
        self,
        store: AlarmStore,
        notifier: Notifier,
        *,
        clock: Callable[[], float] = time.time,
        default_state: str = settings.DEFAULT_ALARM_STATE,
    ):
        self.store = store
        self.notifier = notifier
        self.clock = clock
        self.default_state = default_state
        self.locks = KeyedLock()

    def now(self) -> int:
        return int(self.clock())

    # ------------------------------------------------------------------
    # API operations
    # ------------------------------------------------------------------

    async def raise_alarm(
        self,
        alarm_id: str,
        alarm_class: int,
        alarm_state: str | None = None,
        require_ack: bool = False,
        duration: int | None = None,
        delay_class_1: int | None = None,
        delay_class_2: int | None = None,
        delay_class_3: int | None = None,
        *,
        now: int | None = None,
    ) -> AlarmRecord:
        alarm_id = validate_alarm_id(alarm_id)
        alarm_class = validate_alarm_class(alarm_class)
        now = self.now() if now is None else now

        incoming = IncomingAlarm(
            alarm_id=alarm_id,
            alarm_class=alarm_class,
            alarm_state=alarm_state or self.default_state,
            raised_time=now,
            require_ack=bool(require_ack),
            delete_time=to_timestamp("duration", duration, now),
            class_1_time=to_timestamp("delay_class_1", delay_class_1, now),
            class_2_time=to_timestamp("delay_class_2", delay_class_2, now),
            class_3_time=to_timestamp("delay_class_3", delay_class_3, now),
        )

        async with self.locks.hold(alarm_id):
            existing = await self.store.get(alarm_id)
            outcome = lifecycle.raise_alarm(existing, incoming)
            record = await self.store.upsert(outcome.record)

        logger.info(
            "Alarm raised: %s class=%d state=%s ack=%s staged=%s",
            alarm_id, record.alarm_class, record.alarm_state, record.require_ack, record.has_staged,
        )
        if outcome.notify:
            await self._notify(record)
        return record

    async def ack_alarm(self, alarm_id: str) -> AlarmRecord | None:
        alarm_id = validate_alarm_id(alarm_id)

        async with self.locks.hold(alarm_id):
            existing = await self.store.get(alarm_id)
            if existing is None:
                logger.debug("Ack for unknown alarm %s ignored", alarm_id)
                return None
            outcome = lifecycle.acknowledge(existing)
            if outcome.action == AckAction.noop:
                return existing
            record = await self.store.upsert(outcome.record)

        logger.info("Alarm acknowledged: %s (%s)", alarm_id, outcome.action.value)
        if outcome.action == AckAction.revealed and lifecycle.should_notify(record.alarm_class):
            await self._notify(record)
        return record

    async def clear_alarm(self, alarm_id: str, *, now: int | None = None) -> ClearAction:
        alarm_id = validate_alarm_id(alarm_id)
        now = self.now() if now is None else now

        async with self.locks.hold(alarm_id):
            existing = await self.store.get(alarm_id)
            outcome = lifecycle.clear(existing, now)
            if outcome.action == ClearAction.deleted:
                await self.store.delete(alarm_id)
            elif outcome.action == ClearAction.deferred:
                await self.store.upsert(outcome.record)

        if outcome.action != ClearAction.noop:
            logger.info("Alarm cleared: %s (%s)", alarm_id, outcome.action.value)
        return outcome.action

    async def get_alarms(
        self,
        alarm_id: str | None = None,
        before: int | None = None,
        after: int | None = None,
    ) -> list[AlarmRecord]:
        return await self.store.query(
            alarm_id=alarm_id or None,
            raised_before=before or None,
            raised_after=after or None,
        )

    # ------------------------------------------------------------------
    # Scheduler steps
    # ------------------------------------------------------------------

    async def expire_due(self, alarm_id: str, now: int) -> bool:
        async with self.locks.hold(alarm_id):
            record = await self.store.get(alarm_id)
            if record is None or not lifecycle.expire(record, now):
                return False
            deleted = await self.store.delete(alarm_id)

        if deleted:
            logger.info("Expired alarm deleted: %s", alarm_id)
        return bool(deleted)

    async def advance_due(self, alarm_id: str, now: int) -> int | None:
        async with self.locks.hold(alarm_id):
            record = await self.store.get(alarm_id)
            if record is None:
                return None
            updated, new_class = lifecycle.apply_due_transitions(record, now)
            if updated == record:
                return None
            updated = await self.store.upsert(updated)

        if new_class is not None:
            logger.info("Alarm %s transitioned to class %d", alarm_id, new_class)
            if lifecycle.should_notify(new_class):
                await self._notify(updated)
        return new_class

    # ------------------------------------------------------------------

    async def _notify(self, record: AlarmRecord) -> None:
        try:
            counts = await self.store.count_by_class()
        except SQLAlchemyError as exc:
            logger.error("Notification for %s skipped, counting alarms failed: %s", record.alarm_id, exc)
            return
        await self.notifier.notify(
            record.alarm_id,
            record.alarm_state,
            record.alarm_class,
            counts.get(1, 0),
            counts.get(2, 0),
        )
