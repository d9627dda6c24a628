"""Alarm lifecycle rules.

Pure decision logic, no I/O. Every function takes the current AlarmRecord
(or None) and returns a new immutable record plus what the caller has to do
about it (notify, delete, ...). Persistence and locking live in
AlarmStore / AlarmService.

Raise merge rules:
- no existing row            -> insert as-is
- existing, no pending ack   -> incoming overwrites the row
- existing, pending ack      -> higher priority promotes in place,
                                lower priority is staged until ack,
                                same priority refreshes state
Schedule slots (class_1/2/3_time) keep an existing value unless the
incoming raise supplies a new one.
"""
from __future__ import annotations

import enum
from dataclasses import dataclass, replace

ALARM_CLASSES = (1, 2, 3)
NOTIFY_MAX_CLASS = 2
SCHEDULE_SLOTS = {1: "class_1_time", 2: "class_2_time", 3: "class_3_time"}


class DuplicateAlarmError(Exception):
    """Raise with the same id, class and state as the displayed alarm."""

    def __init__(self, alarm_id: str, alarm_class: int, alarm_state: str):
        self.alarm_id = alarm_id
        self.alarm_class = alarm_class
        self.alarm_state = alarm_state
        super().__init__(
            f"Alarm {alarm_id!r} with class {alarm_class} and state {alarm_state!r} already exists"
        )


@dataclass(frozen=True)
class AlarmRecord:
    alarm_id: str
    alarm_class: int
    alarm_state: str
    raised_time: int
    require_ack: bool = False
    delete_time: int | None = None
    class_1_time: int | None = None
    class_2_time: int | None = None
    class_3_time: int | None = None
    time_after_ack: int | None = None
    class_after_ack: int | None = None
    state_after_ack: str | None = None

    @property
    def has_staged(self) -> bool:
        return (
            self.time_after_ack is not None
            and self.class_after_ack is not None
            and self.state_after_ack is not None
        )


@dataclass(frozen=True)
class IncomingAlarm:
    """A raise request with all delays already converted to absolute timestamps."""

    alarm_id: str
    alarm_class: int
    alarm_state: str
    raised_time: int
    require_ack: bool = False
    delete_time: int | None = None
    class_1_time: int | None = None
    class_2_time: int | None = None
    class_3_time: int | None = None

    def to_record(self) -> AlarmRecord:
        return AlarmRecord(
            alarm_id=self.alarm_id,
            alarm_class=self.alarm_class,
            alarm_state=self.alarm_state,
            raised_time=self.raised_time,
            require_ack=self.require_ack,
            delete_time=self.delete_time,
            class_1_time=self.class_1_time,
            class_2_time=self.class_2_time,
            class_3_time=self.class_3_time,
        )


@dataclass(frozen=True)
class RaiseOutcome:
    record: AlarmRecord
    notify: bool


class AckAction(str, enum.Enum):
    noop = "noop"
    acknowledged = "acknowledged"
    revealed = "revealed"


@dataclass(frozen=True)
class AckOutcome:
    record: AlarmRecord
    action: AckAction


class ClearAction(str, enum.Enum):
    noop = "noop"
    deleted = "deleted"
    deferred = "deferred"


@dataclass(frozen=True)
class ClearOutcome:
    action: ClearAction
    record: AlarmRecord | None = None


def should_notify(alarm_class: int | None) -> bool:
    return alarm_class is not None and alarm_class <= NOTIFY_MAX_CLASS


def _merge_schedule(existing: AlarmRecord, incoming: IncomingAlarm) -> dict[str, int | None]:
    merged: dict[str, int | None] = {}
    for field in SCHEDULE_SLOTS.values():
        new_value = getattr(incoming, field)
        old_value = getattr(existing, field)
        merged[field] = new_value if new_value is not None or old_value is None else old_value
    return merged


def raise_alarm(existing: AlarmRecord | None, incoming: IncomingAlarm) -> RaiseOutcome:
    if existing is None:
        return RaiseOutcome(incoming.to_record(), should_notify(incoming.alarm_class))

    if (
        existing.alarm_class == incoming.alarm_class
        and existing.alarm_state == incoming.alarm_state
    ):
        raise DuplicateAlarmError(incoming.alarm_id, incoming.alarm_class, incoming.alarm_state)

    schedule = _merge_schedule(existing, incoming)

    if not existing.require_ack:
        record = replace(
            existing,
            alarm_class=incoming.alarm_class,
            alarm_state=incoming.alarm_state,
            raised_time=incoming.raised_time,
            require_ack=incoming.require_ack,
            delete_time=incoming.delete_time,
            time_after_ack=None,
            class_after_ack=None,
            state_after_ack=None,
            **schedule,
        )
        return RaiseOutcome(record, should_notify(record.alarm_class))

    # Pending acknowledgment: the unacknowledged event keeps its raised_time.
    if incoming.alarm_class < existing.alarm_class:
        record = replace(
            existing,
            alarm_class=incoming.alarm_class,
            alarm_state=incoming.alarm_state,
            delete_time=incoming.delete_time,
            **schedule,
        )
        notify = should_notify(record.alarm_class) and record.alarm_class != existing.alarm_class
        return RaiseOutcome(record, notify)

    if incoming.alarm_class > existing.alarm_class:
        record = replace(
            existing,
            time_after_ack=incoming.raised_time,
            class_after_ack=incoming.alarm_class,
            state_after_ack=incoming.alarm_state,
            delete_time=incoming.delete_time,
            **schedule,
        )
        return RaiseOutcome(record, False)

    record = replace(
        existing,
        alarm_state=incoming.alarm_state,
        delete_time=incoming.delete_time,
        **schedule,
    )
    return RaiseOutcome(record, False)


def acknowledge(record: AlarmRecord) -> AckOutcome:
    if not record.require_ack:
        return AckOutcome(record, AckAction.noop)

    if record.has_staged:
        revealed = replace(
            record,
            raised_time=record.time_after_ack,
            alarm_class=record.class_after_ack,
            alarm_state=record.state_after_ack,
            require_ack=False,
            time_after_ack=None,
            class_after_ack=None,
            state_after_ack=None,
        )
        return AckOutcome(revealed, AckAction.revealed)

    return AckOutcome(replace(record, require_ack=False), AckAction.acknowledged)


def clear(record: AlarmRecord | None, now: int) -> ClearOutcome:
    if record is None:
        return ClearOutcome(ClearAction.noop)
    if record.require_ack:
        return ClearOutcome(ClearAction.deferred, replace(record, delete_time=now))
    return ClearOutcome(ClearAction.deleted, record)


def apply_due_transitions(record: AlarmRecord, now: int) -> tuple[AlarmRecord, int | None]:
    """Apply at most one due class transition; class 1 is checked first."""
    for alarm_class, field in SCHEDULE_SLOTS.items():
        due_at = getattr(record, field)
        if due_at is None or due_at > now:
            continue
        if alarm_class == record.alarm_class:
            return replace(record, **{field: None}), None
        return replace(record, alarm_class=alarm_class, **{field: None}), alarm_class
    return record, None


def expire(record: AlarmRecord, now: int) -> bool:
    return record.delete_time is not None and record.delete_time <= now and not record.require_ack


def deletion_due(record: AlarmRecord, now: int) -> bool:
    return record.delete_time is not None and record.delete_time <= now


def transition_due(record: AlarmRecord, now: int) -> bool:
    return any(
        getattr(record, field) is not None and getattr(record, field) <= now
        for field in SCHEDULE_SLOTS.values()
    )
