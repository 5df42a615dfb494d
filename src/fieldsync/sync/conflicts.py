"""
Last-write-wins collapsing of queued updates.

When the same record was updated several times while offline, only the most
recent update needs to reach the backend. Sending stale intermediate states
is wasteful and can overwrite newer server data.

  Input:  [update lotes:abc @10:00], [update lotes:abc @10:05], [create lotes:xyz]
  Output: [update lotes:abc @10:05], [create lotes:xyz]

Creates and deletes always pass through. Relative order of the kept records
is preserved so a create still precedes any surviving update of the same
entity.
"""
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Sequence, Tuple

from fieldsync.models.mutation import MutationOperation, MutationRecord, utc_now


@dataclass(frozen=True)
class ConflictNotification:
    """An automatically resolved conflict, shown in the sync panel for information."""

    resource: str
    record_id: str
    superseded: int  # how many older updates were dropped
    message: str
    resolved_at: datetime = field(default_factory=utc_now)
    id: str = field(default_factory=lambda: uuid.uuid4().hex)


def _key(record: MutationRecord) -> Tuple[str, str]:
    return (record.resource, record.record_id)


def collapse_updates(records: Sequence[MutationRecord]) -> List[MutationRecord]:
    """
    Keep only the latest update per (resource, record_id).

    A later record replaces the current winner only if its created_at is
    strictly greater. Pure: the input and the store are left untouched.
    """
    winners: Dict[Tuple[str, str], MutationRecord] = {}
    for record in records:
        if record.operation != MutationOperation.UPDATE:
            continue
        current = winners.get(_key(record))
        if current is None or record.created_at > current.created_at:
            winners[_key(record)] = record

    return [
        r for r in records
        if r.operation != MutationOperation.UPDATE or winners[_key(r)] is r
    ]


def superseded_by(
    records: Sequence[MutationRecord], kept: Sequence[MutationRecord]
) -> List[MutationRecord]:
    """Records present in `records` but dropped from `kept`, in input order."""
    kept_ids = {id(r) for r in kept}
    return [r for r in records if id(r) not in kept_ids]


def build_conflict_notifications(
    superseded: Sequence[MutationRecord],
) -> List[ConflictNotification]:
    """One notification per (resource, record_id) that had updates collapsed."""
    counts: Dict[Tuple[str, str], int] = {}
    for record in superseded:
        counts[_key(record)] = counts.get(_key(record), 0) + 1

    return [
        ConflictNotification(
            resource=resource,
            record_id=record_id,
            superseded=n,
            message=f"{n} older update(s) to {resource}/{record_id} replaced by the latest local change",
        )
        for (resource, record_id), n in counts.items()
    ]
