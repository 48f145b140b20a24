from pydantic import BaseModel, ConfigDict, Field
from typing import List
from ..services.reconciler import ReconcileResult
from ..services.stats import MachineStats
from ..services.ranking import DefectLine
from ..event_models import format_timestamp


class CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class RejectionDetail(CamelModel):
    event_id: str | None = Field(None, alias="eventId")
    reason: str


class BatchSummary(CamelModel):
    accepted: int
    deduped: int
    updated: int
    rejected: int
    rejections: List[RejectionDetail] = Field(default_factory=list)

    @classmethod
    def from_result(cls, result: ReconcileResult) -> "BatchSummary":
        return cls(
            accepted=result.accepted,
            deduped=result.deduped,
            updated=result.updated,
            rejected=result.rejected,
            rejections=[RejectionDetail(event_id=r.event_id, reason=r.reason.value) for r in result.rejections],
        )


class StatsResponse(CamelModel):
    machine_id: str = Field(..., alias="machineId")
    start: str
    end: str
    events_count: int = Field(..., alias="eventsCount")
    defects_count: int = Field(..., alias="defectsCount")
    avg_defect_rate: float = Field(..., alias="avgDefectRate")
    status: str

    @classmethod
    def from_stats(cls, stats: MachineStats) -> "StatsResponse":
        return cls(
            machine_id=stats.machine_id,
            start=format_timestamp(stats.start),
            end=format_timestamp(stats.end),
            events_count=stats.events_count,
            defects_count=stats.defects_count,
            avg_defect_rate=stats.avg_defect_rate,
            status=stats.status,
        )


class TopDefectLineResponse(CamelModel):
    line_id: str = Field(..., alias="lineId")
    total_defects: int = Field(..., alias="totalDefects")
    event_count: int = Field(..., alias="eventCount")
    defects_percent: float = Field(..., alias="defectsPercent")

    @classmethod
    def from_line(cls, line: DefectLine) -> "TopDefectLineResponse":
        return cls(
            line_id=line.machine_id,
            total_defects=line.total_defects,
            event_count=line.event_count,
            defects_percent=line.defects_percent,
        )
