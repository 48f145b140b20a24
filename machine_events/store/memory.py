"""In-memory event store adapter."""
import asyncio
import weakref
from contextlib import asynccontextmanager
from datetime import datetime
from typing import AsyncIterator, Iterable, Sequence
import structlog
from .base import CommitDecision, EventStore
from ..event_models import StoredEvent

log = structlog.get_logger()


class InMemoryStore(EventStore):
    """In-memory implementation of the event store.

    Batches are serialised per event id: a commit holds an asyncio.Lock for
    every id it touches, taken in sorted order so two overlapping batches
    cannot deadlock. Batches with disjoint ids never wait on each other.
    """

    def __init__(self):
        self._records: dict[str, StoredEvent] = {}
        self._locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()

    def __len__(self) -> int:
        return len(self._records)

    @asynccontextmanager
    async def _locked(self, event_ids: Iterable[str]) -> AsyncIterator[None]:
        held: list[asyncio.Lock] = []
        try:
            for event_id in sorted(set(event_ids)):
                lock = self._locks.get(event_id)
                if lock is None:
                    lock = asyncio.Lock()
                    self._locks[event_id] = lock
                await lock.acquire()
                held.append(lock)
            yield
        finally:
            for lock in reversed(held):
                lock.release()

    async def get_many(self, event_ids: Iterable[str]) -> dict[str, StoredEvent]:
        return {i: self._records[i] for i in event_ids if i in self._records}

    async def upsert_many(self, records: Sequence[StoredEvent]) -> None:
        self._records.update({r.event_id: r for r in records})

    async def scan_machine(self, machine_id: str, start: datetime, end: datetime) -> list[StoredEvent]:
        return _ordered(
            r for r in self._records.values()
            if r.machine_id == machine_id and start <= r.event_time < end
        )

    async def scan_window(self, start: datetime, end: datetime) -> list[StoredEvent]:
        return _ordered(r for r in self._records.values() if start <= r.event_time < end)

    async def atomic_update(self, event_ids: Iterable[str], decide: CommitDecision) -> Sequence[StoredEvent]:
        ids = list(event_ids)
        async with self._locked(ids):
            snapshot = await self.get_many(ids)
            records = list(decide(snapshot))
            await self.upsert_many(records)
        log.debug("store.committed", adapter="memory", written=len(records))
        return records

    async def health_check(self) -> bool:
        """In-memory store is always healthy."""
        return True


def _ordered(records: Iterable[StoredEvent]) -> list[StoredEvent]:
    return sorted(records, key=lambda r: (r.event_time, r.event_id))
