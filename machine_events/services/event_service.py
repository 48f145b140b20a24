"""Event service: batch ingestion and window queries over a pluggable store."""
from datetime import datetime, timezone
from typing import Callable, Sequence
import structlog
import time
from .reconciler import Reconciler, ReconcileResult
from .stats import MachineStats, StatsAggregator
from .ranking import DEFAULT_TOP_LIMIT, DefectLine, TopDefectRanker
from ..event_models import EventInput, StoredEvent, to_utc_millis
from ..metrics import Metrics
from ..store.base import EventStore
from ..store.memory import InMemoryStore
from ..store.redis_store import RedisStore
from ..config import get_settings

log = structlog.get_logger()
settings = get_settings()

_metrics: Metrics | None = None


def set_metrics(metrics: Metrics):
    """Attach the Prometheus metrics the service records batch outcomes to."""
    global _metrics
    _metrics = metrics


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class EventService:
    """
    Event service that delegates storage to a pluggable store adapter.

    The adapter is selected based on the STORE_ADAPTER configuration setting.
    """

    def __init__(self, store: EventStore | None = None, clock: Callable[[], datetime] = utc_now):
        """
        Initialize event service with optional store and clock.

        Args:
            store: Store adapter to use (defaults to configured adapter)
            clock: Source of the per-batch processing instant
        """
        if store is None:
            store = _create_default_store()
        self._store = store
        self._clock = clock
        self._reconciler = Reconciler()
        self._stats = StatsAggregator(store)
        self._ranker = TopDefectRanker(store)

    @property
    def store(self) -> EventStore:
        return self._store

    async def process_batch(self, events: Sequence[EventInput]) -> ReconcileResult:
        """
        Reconcile a batch against stored state and persist the outcome.

        The processing instant is read once and shared by every event.
        Reconciliation runs inside the store's atomic update, so the
        conflict rule is applied to the freshest stored values and either
        every change of the batch is written or none is.

        Raises:
            StoreError: If the batch could not be committed
        """
        start_time = time.time()
        now = to_utc_millis(self._clock())
        outcome: list[ReconcileResult] = []

        def decide(snapshot) -> list[StoredEvent]:
            # May run again after a commit conflict; keep the last decision only
            result = self._reconciler.reconcile(events, snapshot, now)
            outcome[:] = [result]
            return result.records

        ids = {e.event_id for e in events if e.event_id}
        await self._store.atomic_update(ids, decide)
        result = outcome[0]

        duration = time.time() - start_time
        if _metrics is not None:
            _metrics.record_batch(result.accepted, result.deduped, result.updated, result.rejected, duration)

        log.info(
            "batch.processed",
            size=len(events),
            accepted=result.accepted,
            deduped=result.deduped,
            updated=result.updated,
            rejected=result.rejected,
            duration_ms=round(duration * 1000, 2),
        )
        return result

    async def machine_stats(self, machine_id: str, start: datetime, end: datetime) -> MachineStats:
        """Health statistics for one machine over [start, end)."""
        return await self._stats.machine_stats(machine_id, to_utc_millis(start), to_utc_millis(end))

    async def top_defect_lines(self, start: datetime, end: datetime, limit: int = DEFAULT_TOP_LIMIT) -> list[DefectLine]:
        """Machines ranked by known defects over [start, end)."""
        return await self._ranker.top_defects(to_utc_millis(start), to_utc_millis(end), limit)

    async def health_check(self) -> bool:
        """Check store adapter health."""
        return await self._store.health_check()


def _create_default_store() -> EventStore:
    """
    Create the default store based on configuration.

    Returns:
        EventStore instance based on STORE_ADAPTER setting
    """
    if settings.STORE_ADAPTER == "redis":
        if not settings.REDIS_URL:
            log.warning(
                "store.fallback",
                requested="redis",
                actual="memory",
                reason="REDIS_URL not configured"
            )
            return InMemoryStore()

        log.info("store.selected", type="redis", url=str(settings.REDIS_URL))
        return RedisStore()
    else:
        log.info("store.selected", type="memory")
        return InMemoryStore()


# Global event service instance
service = EventService()
