"""Event record store adapters."""
from .base import CommitDecision, EventStore, StoreConflictError, StoreError
from .memory import InMemoryStore
from .redis_store import RedisStore

__all__ = [
    "CommitDecision",
    "EventStore",
    "StoreError",
    "StoreConflictError",
    "InMemoryStore",
    "RedisStore",
]
