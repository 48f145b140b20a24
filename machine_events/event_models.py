"""Machine event models: immutable batch input and the stored record."""
from datetime import datetime, timezone
from pydantic import BaseModel, ConfigDict, Field, field_validator

# Sentinel for "defect count unknown"; excluded from every defect total
UNKNOWN_DEFECT_COUNT = -1


def to_utc_millis(value: datetime) -> datetime:
    """Normalise a timestamp to UTC with millisecond precision."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    else:
        value = value.astimezone(timezone.utc)
    return value.replace(microsecond=value.microsecond - value.microsecond % 1000)


def format_timestamp(value: datetime) -> str:
    """Render a timestamp as ISO-8601 with a trailing Z, omitting a zero fraction."""
    value = to_utc_millis(value)
    timespec = "milliseconds" if value.microsecond else "seconds"
    return value.isoformat(timespec=timespec).replace("+00:00", "Z")


class EventInput(BaseModel):
    """One candidate event as submitted in a batch.

    Mandatory fields are optional at this layer so that a missing value is
    judged per event by the validator instead of failing the whole batch.
    """
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    event_id: str | None = Field(default=None, alias="eventId")
    event_time: datetime | None = Field(default=None, alias="eventTime")
    machine_id: str | None = Field(default=None, alias="machineId")
    duration_ms: int = Field(default=0, alias="durationMs")
    defect_count: int = Field(default=0, alias="defectCount")

    @field_validator("event_time")
    @classmethod
    def _truncate_event_time(cls, value: datetime | None) -> datetime | None:
        return to_utc_millis(value) if value is not None else None


class StoredEvent(BaseModel):
    """Persisted event record, keyed by event_id."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    event_id: str = Field(..., alias="eventId")
    event_time: datetime = Field(..., alias="eventTime")
    machine_id: str = Field(..., alias="machineId")
    duration_ms: int = Field(..., alias="durationMs")
    defect_count: int = Field(..., alias="defectCount")
    received_time: datetime = Field(..., alias="receivedTime")

    @field_validator("event_time", "received_time")
    @classmethod
    def _truncate_timestamps(cls, value: datetime) -> datetime:
        return to_utc_millis(value)

    @property
    def defect_known(self) -> bool:
        return self.defect_count != UNKNOWN_DEFECT_COUNT

    @classmethod
    def from_input(cls, evt: EventInput, received_time: datetime) -> "StoredEvent":
        return cls(
            event_id=evt.event_id,
            event_time=evt.event_time,
            machine_id=evt.machine_id,
            duration_ms=evt.duration_ms,
            defect_count=evt.defect_count,
            received_time=received_time,
        )

    def same_payload(self, evt: EventInput) -> bool:
        """Compare the fields that define payload identity."""
        return (
            self.machine_id == evt.machine_id
            and self.event_time == evt.event_time
            and self.duration_ms == evt.duration_ms
            and self.defect_count == evt.defect_count
        )

    def with_payload(self, evt: EventInput, received_time: datetime) -> "StoredEvent":
        """Return a copy carrying the payload of evt, received at received_time."""
        return self.model_copy(update={
            "machine_id": evt.machine_id,
            "event_time": evt.event_time,
            "duration_ms": evt.duration_ms,
            "defect_count": evt.defect_count,
            "received_time": to_utc_millis(received_time),
        })
