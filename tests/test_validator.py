"""Tests for per-event validation."""
from datetime import datetime, timedelta, timezone
from machine_events.event_models import EventInput, format_timestamp
from machine_events.services.validator import MAX_DURATION_MS, RejectionReason, validate

NOW = datetime(2024, 1, 15, 10, 0, tzinfo=timezone.utc)


def make_event(**overrides) -> EventInput:
    data = {
        "eventId": "E-1",
        "eventTime": NOW - timedelta(minutes=5),
        "machineId": "M-1",
        "durationMs": 1000,
        "defectCount": 0,
    }
    data.update(overrides)
    return EventInput(**data)


def test_valid_event_accepted():
    assert validate(make_event(), NOW) is None


def test_duration_bounds_inclusive():
    assert validate(make_event(durationMs=0), NOW) is None
    assert validate(make_event(durationMs=MAX_DURATION_MS), NOW) is None


def test_duration_too_long_rejected():
    assert validate(make_event(durationMs=22_000_000), NOW) == RejectionReason.INVALID_DURATION


def test_negative_duration_rejected():
    assert validate(make_event(durationMs=-1), NOW) == RejectionReason.INVALID_DURATION


def test_future_event_time_rejected():
    evt = make_event(eventTime=NOW + timedelta(minutes=20))
    assert validate(evt, NOW) == RejectionReason.FUTURE_EVENT_TIME


def test_event_time_at_tolerance_edge_accepted():
    evt = make_event(eventTime=NOW + timedelta(minutes=15))
    assert validate(evt, NOW) is None


def test_missing_event_id_rejected():
    assert validate(make_event(eventId=None), NOW) == RejectionReason.MISSING_MANDATORY_FIELDS
    assert validate(make_event(eventId=""), NOW) == RejectionReason.MISSING_MANDATORY_FIELDS


def test_missing_machine_id_rejected():
    assert validate(make_event(machineId=None), NOW) == RejectionReason.MISSING_MANDATORY_FIELDS


def test_missing_event_time_rejected():
    assert validate(make_event(eventTime=None), NOW) == RejectionReason.MISSING_MANDATORY_FIELDS


def test_first_failure_wins():
    """Duration is checked before time, time before mandatory fields."""
    evt = make_event(durationMs=-5, eventTime=NOW + timedelta(hours=1), eventId=None)
    assert validate(evt, NOW) == RejectionReason.INVALID_DURATION

    evt = make_event(eventTime=NOW + timedelta(hours=1), machineId=None)
    assert validate(evt, NOW) == RejectionReason.FUTURE_EVENT_TIME


def test_event_time_truncated_to_millis():
    evt = make_event(eventTime=datetime(2024, 1, 15, 9, 0, 0, 123456, tzinfo=timezone.utc))
    assert evt.event_time.microsecond == 123000


def test_naive_event_time_read_as_utc():
    evt = make_event(eventTime="2024-01-15T09:00:00")
    assert evt.event_time == datetime(2024, 1, 15, 9, 0, tzinfo=timezone.utc)


def test_timestamp_format_omits_zero_fraction():
    assert format_timestamp(datetime(2024, 1, 15, 10, 0, tzinfo=timezone.utc)) == "2024-01-15T10:00:00Z"
    assert format_timestamp(datetime(2024, 1, 15, 10, 0, 0, 250000, tzinfo=timezone.utc)) == "2024-01-15T10:00:00.250Z"
