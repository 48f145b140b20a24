"""Base adapter interface for event record stores."""
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Callable, Iterable, Mapping, Sequence
from ..event_models import StoredEvent

# Receives the freshest stored records for a batch's ids, returns records to write
CommitDecision = Callable[[Mapping[str, StoredEvent]], Sequence[StoredEvent]]


class StoreError(Exception):
    """Raised when the backing store cannot complete a read or write."""


class StoreConflictError(StoreError):
    """Raised when a batch commit keeps losing to concurrent writers."""


class EventStore(ABC):
    """Abstract interface for event record store implementations."""

    @abstractmethod
    async def get_many(self, event_ids: Iterable[str]) -> dict[str, StoredEvent]:
        """
        Look up stored records by event id.

        Args:
            event_ids: Ids to fetch; unknown ids are omitted from the result

        Returns:
            Mapping of event id to stored record
        """
        pass

    @abstractmethod
    async def upsert_many(self, records: Sequence[StoredEvent]) -> None:
        """
        Insert or replace records as a single unit.

        Args:
            records: Records to write, at most one per event id
        """
        pass

    @abstractmethod
    async def scan_machine(self, machine_id: str, start: datetime, end: datetime) -> list[StoredEvent]:
        """
        Return a machine's records with event_time in [start, end).
        """
        pass

    @abstractmethod
    async def scan_window(self, start: datetime, end: datetime) -> list[StoredEvent]:
        """
        Return records of every machine with event_time in [start, end).
        """
        pass

    @abstractmethod
    async def atomic_update(self, event_ids: Iterable[str], decide: CommitDecision) -> Sequence[StoredEvent]:
        """
        Read, decide and write a batch with no interleaving writer on its ids.

        decide may be called more than once; only the records returned by
        the final call are persisted.

        Args:
            event_ids: Ids the batch touches
            decide: Callback turning the freshest snapshot into records to write

        Returns:
            The records that were written

        Raises:
            StoreError: If the write could not be applied; nothing is persisted
        """
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        """
        Check if the store is healthy and accessible.

        Returns:
            True if the store is healthy, False otherwise
        """
        pass
