"""Cross-machine ranking of defect totals."""
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable
from ..event_models import StoredEvent
from .stats import round_half_up
from ..store.base import EventStore

DEFAULT_TOP_LIMIT = 10


@dataclass
class DefectLine:
    machine_id: str
    total_defects: int
    event_count: int
    defects_percent: float


def rank(records: Iterable[StoredEvent], limit: int = DEFAULT_TOP_LIMIT) -> list[DefectLine]:
    """
    Rank machines by known defect total.

    Ordered by total defects descending, ties by machine id ascending.
    """
    if limit <= 0:
        return []

    totals: dict[str, list[int]] = {}
    for record in records:
        counts = totals.setdefault(record.machine_id, [0, 0])
        counts[0] += 1
        if record.defect_known:
            counts[1] += record.defect_count

    ordered = sorted(totals.items(), key=lambda item: (-item[1][1], item[0]))
    lines = []
    for machine_id, (event_count, total_defects) in ordered[:limit]:
        percent = total_defects / event_count * 100 if event_count else 0.0
        lines.append(DefectLine(
            machine_id=machine_id,
            total_defects=total_defects,
            event_count=event_count,
            defects_percent=round_half_up(percent),
        ))
    return lines


class TopDefectRanker:
    """Reads every machine's window from the store and ranks it."""

    def __init__(self, store: EventStore):
        self._store = store

    async def top_defects(self, start: datetime, end: datetime, limit: int = DEFAULT_TOP_LIMIT) -> list[DefectLine]:
        records = await self._store.scan_window(start, end)
        return rank(records, limit)
