"""Batch reconciliation of candidate events against stored state."""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Mapping, Sequence
import structlog
from .validator import RejectionReason, validate
from ..event_models import EventInput, StoredEvent

log = structlog.get_logger()


@dataclass
class Rejection:
    event_id: str | None
    reason: RejectionReason


@dataclass
class ReconcileResult:
    """Outcome of one batch: records to write plus per-outcome counts."""
    records: list[StoredEvent] = field(default_factory=list)
    accepted: int = 0
    deduped: int = 0
    updated: int = 0
    rejected: int = 0
    rejections: list[Rejection] = field(default_factory=list)


class Reconciler:
    """
    Decides, event by event and in input order, what a batch changes.

    Every event is judged against a merged view: the stored snapshot
    overlaid with whatever earlier events of the same batch created or
    updated. The single processing instant ``now`` is used for validation
    and as the received time of every record written.
    """

    def reconcile(
        self,
        events: Sequence[EventInput],
        existing: Mapping[str, StoredEvent],
        now: datetime,
    ) -> ReconcileResult:
        """
        Reconcile a batch.

        Args:
            events: Candidate events in submission order
            existing: Stored records for the batch's ids
            now: Processing instant of the batch

        Returns:
            ReconcileResult with one record per changed id (last state wins)
        """
        result = ReconcileResult()
        view: dict[str, StoredEvent] = dict(existing)
        changed: dict[str, StoredEvent] = {}

        for evt in events:
            reason = validate(evt, now)
            if reason is not None:
                result.rejected += 1
                result.rejections.append(Rejection(evt.event_id, reason))
                log.debug("batch.rejected_event", event_id=evt.event_id, reason=reason.value)
                continue

            current = view.get(evt.event_id)
            if current is None:
                record = StoredEvent.from_input(evt, now)
                result.accepted += 1
            elif current.same_payload(evt):
                result.deduped += 1
                continue
            elif current.received_time > now:
                # Stored version came from a batch processed after this one
                result.deduped += 1
                continue
            else:
                record = current.with_payload(evt, now)
                result.updated += 1

            view[evt.event_id] = record
            changed[evt.event_id] = record

        result.records = list(changed.values())
        return result
