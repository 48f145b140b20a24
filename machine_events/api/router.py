from datetime import datetime
from fastapi import APIRouter, Query
from typing import List
from .schemas import BatchSummary, StatsResponse, TopDefectLineResponse
from ..event_models import EventInput
from ..services.event_service import service
from ..services.ranking import DEFAULT_TOP_LIMIT

router = APIRouter(prefix="/events", tags=["events"])


@router.post("/batch", response_model=BatchSummary)
async def ingest_batch(events: List[EventInput]):
    result = await service.process_batch(events)
    return BatchSummary.from_result(result)


@router.get("/stats", response_model=StatsResponse)
async def machine_stats(
    machine_id: str = Query(..., alias="machineId"),
    start: datetime = Query(...),
    end: datetime = Query(...),
):
    stats = await service.machine_stats(machine_id, start, end)
    return StatsResponse.from_stats(stats)


@router.get("/stats/top-defect-lines", response_model=List[TopDefectLineResponse])
async def top_defect_lines(
    start: datetime = Query(..., alias="from"),
    end: datetime = Query(..., alias="to"),
    limit: int = DEFAULT_TOP_LIMIT,
    factory_id: str | None = Query(None, alias="factoryId"),
):
    # factoryId is accepted for API compatibility; machines are not grouped by factory
    lines = await service.top_defect_lines(start, end, limit)
    return [TopDefectLineResponse.from_line(line) for line in lines]
