"""Redis event store adapter."""
from datetime import datetime, timedelta, timezone
from typing import Iterable, Mapping, Sequence
import structlog
import orjson
from redis import Redis
from redis.client import Pipeline
from redis.exceptions import RedisError, WatchError
from .base import CommitDecision, EventStore, StoreConflictError, StoreError
from ..event_models import StoredEvent
from ..config import get_settings

log = structlog.get_logger()
settings = get_settings()

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def _epoch_ms(value: datetime) -> int:
    return (value - _EPOCH) // timedelta(milliseconds=1)


class RedisStore(EventStore):
    """Redis implementation of the event store.

    Layout under the key prefix:
    - ``event:{id}``: JSON record
    - ``machine:{machine_id}``: sorted set of ids scored by event time (ms)
    - ``window``: sorted set of every id scored by event time (ms)

    Batch commits use optimistic transactions: the record keys are WATCHed,
    the decision is taken on the values read, and MULTI/EXEC applies the
    writes. A concurrent write to any watched key aborts EXEC and the
    decision is re-run against the fresh values.
    """

    def __init__(self, redis_url: str | None = None, key_prefix: str | None = None, max_retries: int | None = None):
        """
        Initialize Redis store adapter.

        Args:
            redis_url: Redis connection URL (defaults to settings.REDIS_URL)
            key_prefix: Namespace for every key (defaults to settings.REDIS_KEY_PREFIX)
            max_retries: Commit attempts before giving up (defaults to settings.STORE_MAX_RETRIES)
        """
        self.redis_url = redis_url or str(settings.REDIS_URL)
        self.key_prefix = key_prefix or settings.REDIS_KEY_PREFIX
        self.max_retries = max_retries or settings.STORE_MAX_RETRIES
        self._client: Redis | None = None

    def _get_client(self) -> Redis:
        """Get or create Redis client."""
        if self._client is None:
            self._client = Redis.from_url(
                self.redis_url,
                decode_responses=False,  # Records are orjson bytes
                socket_connect_timeout=5,
                socket_timeout=5
            )
        return self._client

    def _event_key(self, event_id: str) -> str:
        return f"{self.key_prefix}:event:{event_id}"

    def _machine_key(self, machine_id: str) -> str:
        return f"{self.key_prefix}:machine:{machine_id}"

    @property
    def _window_key(self) -> str:
        return f"{self.key_prefix}:window"

    @staticmethod
    def _decode(raw: bytes | None) -> StoredEvent | None:
        if raw is None:
            return None
        return StoredEvent.model_validate(orjson.loads(raw))

    @staticmethod
    def _encode(record: StoredEvent) -> bytes:
        return orjson.dumps(record.model_dump(mode="json", by_alias=True))

    def _read(self, conn: Redis | Pipeline, event_ids: list[str]) -> dict[str, StoredEvent]:
        if not event_ids:
            return {}
        values = conn.mget([self._event_key(i) for i in event_ids])
        found = {}
        for event_id, raw in zip(event_ids, values):
            record = self._decode(raw)
            if record is not None:
                found[event_id] = record
        return found

    def _queue_writes(self, pipe: Pipeline, records: Sequence[StoredEvent], previous: Mapping[str, StoredEvent]):
        for record in records:
            old = previous.get(record.event_id)
            if old is not None and old.machine_id != record.machine_id:
                pipe.zrem(self._machine_key(old.machine_id), record.event_id)
            score = _epoch_ms(record.event_time)
            pipe.set(self._event_key(record.event_id), self._encode(record))
            pipe.zadd(self._machine_key(record.machine_id), {record.event_id: score})
            pipe.zadd(self._window_key, {record.event_id: score})

    def _scan(self, index_key: str, start: datetime, end: datetime) -> list[StoredEvent]:
        client = self._get_client()
        # "(" makes the upper bound exclusive: [start, end)
        members = client.zrangebyscore(index_key, _epoch_ms(start), f"({_epoch_ms(end)}")
        ids = [m.decode() if isinstance(m, bytes) else m for m in members]
        found = self._read(client, ids)
        return [found[i] for i in ids if i in found]

    async def get_many(self, event_ids: Iterable[str]) -> dict[str, StoredEvent]:
        try:
            return self._read(self._get_client(), list(event_ids))
        except RedisError as e:
            log.error("redis.read_failed", error=str(e))
            raise StoreError(str(e)) from e

    async def upsert_many(self, records: Sequence[StoredEvent]) -> None:
        await self.atomic_update([r.event_id for r in records], lambda _: records)

    async def scan_machine(self, machine_id: str, start: datetime, end: datetime) -> list[StoredEvent]:
        try:
            return self._scan(self._machine_key(machine_id), start, end)
        except RedisError as e:
            log.error("redis.scan_failed", error=str(e), machine_id=machine_id)
            raise StoreError(str(e)) from e

    async def scan_window(self, start: datetime, end: datetime) -> list[StoredEvent]:
        try:
            return self._scan(self._window_key, start, end)
        except RedisError as e:
            log.error("redis.scan_failed", error=str(e))
            raise StoreError(str(e)) from e

    async def atomic_update(self, event_ids: Iterable[str], decide: CommitDecision) -> Sequence[StoredEvent]:
        ids = sorted(set(event_ids))
        if not ids:
            return list(decide({}))

        keys = [self._event_key(i) for i in ids]
        client = self._get_client()
        for attempt in range(1, self.max_retries + 1):
            try:
                with client.pipeline(transaction=True) as pipe:
                    pipe.watch(*keys)
                    snapshot = self._read(pipe, ids)
                    records = list(decide(snapshot))
                    pipe.multi()
                    self._queue_writes(pipe, records, snapshot)
                    pipe.execute()
                log.debug("store.committed", adapter="redis", written=len(records), attempt=attempt)
                return records
            except WatchError:
                log.warning("store.conflict_retry", adapter="redis", attempt=attempt, ids=len(ids))
            except RedisError as e:
                log.error("redis.commit_failed", error=str(e))
                raise StoreError(str(e)) from e

        raise StoreConflictError(f"batch commit lost to concurrent writers {self.max_retries} times")

    async def health_check(self) -> bool:
        """
        Check Redis connection health.

        Returns:
            True if Redis is accessible, False otherwise
        """
        try:
            client = self._get_client()
            return client.ping()
        except Exception as e:
            log.warning("redis.health_check_failed", error=str(e))
            return False

    def close(self):
        """Close Redis connection."""
        if self._client:
            self._client.close()
            self._client = None
