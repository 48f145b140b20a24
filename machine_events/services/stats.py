"""Per-machine health statistics over a time window."""
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable
from ..event_models import StoredEvent
from ..store.base import EventStore

WARNING_RATE_THRESHOLD = 2.0
_CENTS = Decimal("0.01")


def round_half_up(value: float) -> float:
    """Round to two decimals, halves away from zero, on the float's exact value."""
    return float(Decimal(value).quantize(_CENTS, rounding=ROUND_HALF_UP))


@dataclass
class MachineStats:
    machine_id: str
    start: datetime
    end: datetime
    events_count: int
    defects_count: int
    avg_defect_rate: float
    status: str


def summarize(machine_id: str, start: datetime, end: datetime, records: Iterable[StoredEvent]) -> MachineStats:
    """Compute counts, defect rate per hour and status for records already in [start, end)."""
    events_count = 0
    defects_count = 0
    for record in records:
        events_count += 1
        if record.defect_known:
            defects_count += record.defect_count

    window_hours = (end - start).total_seconds() / 3600
    rate = defects_count / window_hours if window_hours > 0 else 0.0

    return MachineStats(
        machine_id=machine_id,
        start=start,
        end=end,
        events_count=events_count,
        defects_count=defects_count,
        avg_defect_rate=round_half_up(rate),
        status="Healthy" if rate < WARNING_RATE_THRESHOLD else "Warning",
    )


class StatsAggregator:
    """Reads a machine's window from the store and summarizes it."""

    def __init__(self, store: EventStore):
        self._store = store

    async def machine_stats(self, machine_id: str, start: datetime, end: datetime) -> MachineStats:
        records = await self._store.scan_machine(machine_id, start, end)
        return summarize(machine_id, start, end, records)
