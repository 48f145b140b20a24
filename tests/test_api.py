"""Tests for the events HTTP API."""
import uuid
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock
import pytest
from httpx import AsyncClient, ASGITransport
from machine_events.main import app
from machine_events.services.event_service import service
from machine_events.store.base import StoreError

# Fixed past window, well clear of the future-time check
START = datetime(2024, 1, 15, 0, 0, tzinfo=timezone.utc)
END = START + timedelta(hours=4)


def iso(value: datetime) -> str:
    return value.isoformat().replace("+00:00", "Z")


def event_json(event_id: str, machine_id: str, defects: int = 0, duration: int = 1000, at: datetime | None = None) -> dict:
    return {
        "eventId": event_id,
        "eventTime": iso(at or START + timedelta(hours=1)),
        "machineId": machine_id,
        "durationMs": duration,
        "defectCount": defects,
    }


def unique(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:8]}"


@pytest.mark.asyncio
async def test_ingest_batch_summary():
    machine = unique("M")
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        response = await client.post("/events/batch", json=[
            event_json(unique("E"), machine),
            event_json(unique("E"), machine, duration=22_000_000),
            event_json("", machine),
        ])

        assert response.status_code == 200
        data = response.json()
        assert data["accepted"] == 1
        assert data["deduped"] == 0
        assert data["updated"] == 0
        assert data["rejected"] == 2
        assert [r["reason"] for r in data["rejections"]] == ["INVALID_DURATION", "MISSING_MANDATORY_FIELDS"]
        assert data["rejections"][1]["eventId"] == ""


@pytest.mark.asyncio
async def test_ingest_duplicate_then_update():
    machine, event_id = unique("M"), unique("E")
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        first = await client.post("/events/batch", json=[event_json(event_id, machine)])
        again = await client.post("/events/batch", json=[event_json(event_id, machine)])
        changed = await client.post("/events/batch", json=[event_json(event_id, machine, defects=3)])

        assert first.json()["accepted"] == 1
        assert again.json()["deduped"] == 1
        assert changed.json()["updated"] == 1


@pytest.mark.asyncio
async def test_missing_fields_rejected_per_event():
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        response = await client.post("/events/batch", json=[{"eventId": unique("E"), "durationMs": 10}])

        assert response.status_code == 200
        data = response.json()
        assert data["rejected"] == 1
        assert data["rejections"][0]["reason"] == "MISSING_MANDATORY_FIELDS"


@pytest.mark.asyncio
async def test_future_event_rejected():
    future = datetime.now(timezone.utc) + timedelta(minutes=20)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        response = await client.post("/events/batch", json=[event_json(unique("E"), unique("M"), at=future)])

        data = response.json()
        assert data["rejected"] == 1
        assert data["rejections"][0]["reason"] == "FUTURE_EVENT_TIME"


@pytest.mark.asyncio
async def test_machine_stats_endpoint():
    machine = unique("M")
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        await client.post("/events/batch", json=[
            event_json(unique("E"), machine, defects=10),
            event_json(unique("E"), machine, defects=-1),
            event_json(unique("E"), machine, defects=5, at=END),
        ])

        response = await client.get(
            "/events/stats",
            params={"machineId": machine, "start": iso(START), "end": iso(END)},
        )

        assert response.status_code == 200
        assert response.json() == {
            "machineId": machine,
            "start": "2024-01-15T00:00:00Z",
            "end": "2024-01-15T04:00:00Z",
            "eventsCount": 2,
            "defectsCount": 10,
            "avgDefectRate": 2.5,
            "status": "Warning",
        }


@pytest.mark.asyncio
async def test_machine_stats_requires_params():
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        response = await client.get("/events/stats", params={"machineId": "M-1"})
        assert response.status_code == 422


@pytest.mark.asyncio
async def test_top_defect_lines_endpoint():
    # A window of its own so other tests' events do not interfere
    start = datetime(2023, 6, 1, tzinfo=timezone.utc)
    end = start + timedelta(days=1)
    at = start + timedelta(hours=1)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        await client.post("/events/batch", json=[
            event_json(unique("E"), "LINE-A", defects=1, at=at),
            event_json(unique("E"), "LINE-A", defects=2, at=at),
            event_json(unique("E"), "LINE-B", defects=9, at=at),
            event_json(unique("E"), "LINE-C", defects=-1, at=at),
        ])

        response = await client.get(
            "/events/stats/top-defect-lines",
            params={"factoryId": "F-1", "from": iso(start), "to": iso(end), "limit": 2},
        )

        assert response.status_code == 200
        assert response.json() == [
            {"lineId": "LINE-B", "totalDefects": 9, "eventCount": 1, "defectsPercent": 900.0},
            {"lineId": "LINE-A", "totalDefects": 3, "eventCount": 2, "defectsPercent": 150.0},
        ]


@pytest.mark.asyncio
async def test_store_failure_returns_503(monkeypatch):
    monkeypatch.setattr(service, "process_batch", AsyncMock(side_effect=StoreError("down")))
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        response = await client.post("/events/batch", json=[event_json(unique("E"), unique("M"))])

        assert response.status_code == 503
        data = response.json()
        assert data["error"] == "StoreUnavailable"
        assert data["path"] == "/events/batch"
        assert data["correlation_id"]


@pytest.mark.asyncio
async def test_non_list_body_rejected():
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        response = await client.post("/events/batch", json={"eventId": "E-1"})
        assert response.status_code == 422
