import pytest

from services.lifecycle import (
    AckAction,
    AlarmRecord,
    ClearAction,
    DuplicateAlarmError,
    IncomingAlarm,
    acknowledge,
    apply_due_transitions,
    clear,
    deletion_due,
    expire,
    raise_alarm,
    transition_due,
)

T0 = 1_000_000


def incoming(alarm_class: int, state: str = "on", **kwargs) -> IncomingAlarm:
    kwargs.setdefault("raised_time", T0 + 10)
    return IncomingAlarm(alarm_id="tank", alarm_class=alarm_class, alarm_state=state, **kwargs)


def record(alarm_class: int, state: str = "on", **kwargs) -> AlarmRecord:
    kwargs.setdefault("raised_time", T0)
    return AlarmRecord(alarm_id="tank", alarm_class=alarm_class, alarm_state=state, **kwargs)


# ---------------------------------------------------------------------------
# raise
# ---------------------------------------------------------------------------

@pytest.mark.parametrize("alarm_class, notify", [(1, True), (2, True), (3, False)])
def test_raise_new_alarm_inserts_as_is(alarm_class, notify) -> None:
    req = incoming(alarm_class, "active", delete_time=T0 + 60, class_1_time=T0 + 5)
    outcome = raise_alarm(None, req)

    assert outcome.record == req.to_record()
    assert outcome.notify is notify


def test_raise_duplicate_class_and_state_is_rejected() -> None:
    existing = record(2, "active")
    with pytest.raises(DuplicateAlarmError):
        raise_alarm(existing, incoming(2, "active"))


def test_raise_same_class_new_state_is_not_duplicate() -> None:
    outcome = raise_alarm(record(2, "active"), incoming(2, "fault"))
    assert outcome.record.alarm_state == "fault"


def test_raise_without_pending_ack_overwrites_row() -> None:
    existing = record(3, "off", delete_time=T0 + 100)
    req = incoming(2, "fault", require_ack=True, delete_time=None)

    outcome = raise_alarm(existing, req)

    assert outcome.record.alarm_class == 2
    assert outcome.record.alarm_state == "fault"
    assert outcome.record.raised_time == T0 + 10
    assert outcome.record.require_ack is True
    assert outcome.record.delete_time is None
    assert outcome.notify is True


def test_raise_without_pending_ack_to_class_3_does_not_notify() -> None:
    outcome = raise_alarm(record(1, "active"), incoming(3, "gone"))
    assert outcome.record.alarm_class == 3
    assert outcome.notify is False


def test_raise_keeps_existing_schedule_when_incoming_has_none() -> None:
    existing = record(3, class_1_time=T0 + 50, class_2_time=T0 + 20)
    outcome = raise_alarm(existing, incoming(3, "changed"))

    assert outcome.record.class_1_time == T0 + 50
    assert outcome.record.class_2_time == T0 + 20
    assert outcome.record.class_3_time is None


def test_raise_incoming_schedule_replaces_existing_slot() -> None:
    existing = record(3, class_1_time=T0 + 50)
    outcome = raise_alarm(existing, incoming(3, "changed", class_1_time=T0 + 99, class_3_time=T0 + 7))

    assert outcome.record.class_1_time == T0 + 99
    assert outcome.record.class_3_time == T0 + 7


def test_raise_pending_ack_higher_priority_promotes_in_place() -> None:
    existing = record(2, "warn", require_ack=True, delete_time=T0 + 30)
    outcome = raise_alarm(existing, incoming(1, "critical", delete_time=T0 + 90))

    assert outcome.record.alarm_class == 1
    assert outcome.record.alarm_state == "critical"
    assert outcome.record.delete_time == T0 + 90
    assert outcome.record.require_ack is True
    assert outcome.record.raised_time == T0
    assert outcome.notify is True


def test_raise_pending_ack_promotion_from_event_notifies() -> None:
    existing = record(3, "evt", require_ack=True)
    outcome = raise_alarm(existing, incoming(2, "warn"))
    assert outcome.record.alarm_class == 2
    assert outcome.notify is True


def test_raise_pending_ack_lower_priority_is_staged() -> None:
    existing = record(1, "critical", require_ack=True)
    outcome = raise_alarm(existing, incoming(3, "recovered", delete_time=T0 + 500))

    assert outcome.record.alarm_class == 1
    assert outcome.record.alarm_state == "critical"
    assert outcome.record.raised_time == T0
    assert outcome.record.time_after_ack == T0 + 10
    assert outcome.record.class_after_ack == 3
    assert outcome.record.state_after_ack == "recovered"
    assert outcome.record.delete_time == T0 + 500
    assert outcome.notify is False


def test_raise_pending_ack_same_priority_refreshes_state() -> None:
    existing = record(2, "warn", require_ack=True, delete_time=T0 + 30)
    outcome = raise_alarm(existing, incoming(2, "still warn"))

    assert outcome.record.alarm_state == "still warn"
    assert outcome.record.delete_time is None
    assert outcome.record.raised_time == T0
    assert outcome.record.require_ack is True
    assert outcome.notify is False


def test_raise_pending_ack_schedule_follows_fill_rule() -> None:
    existing = record(1, "critical", require_ack=True, class_2_time=T0 + 40)
    outcome = raise_alarm(existing, incoming(3, "ok", class_3_time=T0 + 80))

    assert outcome.record.class_2_time == T0 + 40
    assert outcome.record.class_3_time == T0 + 80


# ---------------------------------------------------------------------------
# acknowledge
# ---------------------------------------------------------------------------

def test_ack_without_require_ack_is_noop() -> None:
    rec = record(2)
    outcome = acknowledge(rec)
    assert outcome.action == AckAction.noop
    assert outcome.record is rec


def test_ack_reveals_staged_values() -> None:
    rec = record(
        1, "critical", require_ack=True,
        time_after_ack=T0 + 10, class_after_ack=3, state_after_ack="recovered",
    )
    outcome = acknowledge(rec)

    assert outcome.action == AckAction.revealed
    assert outcome.record.alarm_class == 3
    assert outcome.record.alarm_state == "recovered"
    assert outcome.record.raised_time == T0 + 10
    assert outcome.record.require_ack is False
    assert outcome.record.time_after_ack is None
    assert outcome.record.class_after_ack is None
    assert outcome.record.state_after_ack is None


def test_ack_without_staged_values_only_clears_flag() -> None:
    rec = record(1, "critical", require_ack=True)
    outcome = acknowledge(rec)

    assert outcome.action == AckAction.acknowledged
    assert outcome.record == record(1, "critical", require_ack=False)


# ---------------------------------------------------------------------------
# clear / expire
# ---------------------------------------------------------------------------

def test_clear_missing_record_is_noop() -> None:
    assert clear(None, T0).action == ClearAction.noop


def test_clear_unacknowledged_defers_deletion() -> None:
    outcome = clear(record(1, require_ack=True), T0 + 5)
    assert outcome.action == ClearAction.deferred
    assert outcome.record.delete_time == T0 + 5


def test_clear_acknowledged_deletes_now() -> None:
    assert clear(record(1), T0).action == ClearAction.deleted


def test_expire_requires_due_time_and_no_pending_ack() -> None:
    assert expire(record(2, delete_time=T0), T0) is True
    assert expire(record(2, delete_time=T0 + 1), T0) is False
    assert expire(record(2), T0) is False
    assert expire(record(2, delete_time=T0 - 50, require_ack=True), T0) is False


# ---------------------------------------------------------------------------
# scheduled transitions
# ---------------------------------------------------------------------------

def test_due_transition_changes_class_and_clears_slot() -> None:
    updated, new_class = apply_due_transitions(record(3, class_2_time=T0), T0)
    assert new_class == 2
    assert updated.alarm_class == 2
    assert updated.class_2_time is None


def test_class_1_wins_when_several_slots_are_due() -> None:
    rec = record(3, class_1_time=T0 - 1, class_2_time=T0 - 5, class_3_time=T0 - 9)
    updated, new_class = apply_due_transitions(rec, T0)

    assert new_class == 1
    assert updated.alarm_class == 1
    assert updated.class_1_time is None
    assert updated.class_2_time == T0 - 5
    assert updated.class_3_time == T0 - 9


def test_due_slot_for_current_class_clears_without_signal() -> None:
    updated, new_class = apply_due_transitions(record(2, class_2_time=T0), T0)
    assert new_class is None
    assert updated.class_2_time is None
    assert updated.alarm_class == 2


def test_future_slots_leave_record_unchanged() -> None:
    rec = record(3, class_1_time=T0 + 1)
    updated, new_class = apply_due_transitions(rec, T0)
    assert updated is rec
    assert new_class is None


def test_class_1_transition_ignores_pending_ack() -> None:
    rec = record(3, "evt", require_ack=True, class_1_time=T0)
    updated, new_class = apply_due_transitions(rec, T0)
    assert new_class == 1
    assert updated.require_ack is True


def test_due_helpers() -> None:
    assert deletion_due(record(2, delete_time=T0), T0)
    assert not deletion_due(record(2), T0)
    assert transition_due(record(2, class_3_time=T0 - 1), T0)
    assert not transition_due(record(2, class_3_time=T0 + 1), T0)
