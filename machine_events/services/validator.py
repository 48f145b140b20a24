"""Per-event structural and business-rule checks."""
from datetime import datetime, timedelta
from enum import Enum
from ..event_models import EventInput

MAX_DURATION_MS = 21_600_000  # 6 hours
FUTURE_TOLERANCE = timedelta(minutes=15)


class RejectionReason(str, Enum):
    """Why a candidate event was refused."""
    INVALID_DURATION = "INVALID_DURATION"
    FUTURE_EVENT_TIME = "FUTURE_EVENT_TIME"
    MISSING_MANDATORY_FIELDS = "MISSING_MANDATORY_FIELDS"


def validate(evt: EventInput, now: datetime) -> RejectionReason | None:
    """
    Check one candidate event against the processing instant.

    Checks run in a fixed order and the first failure wins.

    Args:
        evt: Candidate event
        now: Processing instant of the batch the event belongs to

    Returns:
        The rejection reason, or None if the event is acceptable
    """
    if not 0 <= evt.duration_ms <= MAX_DURATION_MS:
        return RejectionReason.INVALID_DURATION
    if evt.event_time is not None and evt.event_time > now + FUTURE_TOLERANCE:
        return RejectionReason.FUTURE_EVENT_TIME
    if not evt.event_id or not evt.machine_id or evt.event_time is None:
        return RejectionReason.MISSING_MANDATORY_FIELDS
    return None
