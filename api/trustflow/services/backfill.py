"""Bulk recompute for every user who has received pushes.

Used by the admin endpoint and scripts/backfill_trust_flow.py. Each user is
recomputed in its own transaction so one failure does not roll back the
rest of the page; failures are reported per user.
"""

import uuid
from dataclasses import dataclass
from typing import Optional

import structlog

from trustflow.exceptions import TransientStoreError
from trustflow.models.reputation import ChangeReason
from trustflow.services.cache import get_cached
from trustflow.services.ledger import list_targets_with_pushes
from trustflow.services.orchestrator import SessionFactory
from trustflow.services.scoring import ScoringParams, recompute_trust_flow

log = structlog.get_logger()

# Differences below this are rounding noise, not a change
CHANGE_EPSILON = 0.01


@dataclass(frozen=True)
class BackfillEntry:
    user_id: uuid.UUID
    push_count: int
    old_value: Optional[float] = None
    new_value: Optional[float] = None
    changed: bool = False
    error: Optional[str] = None


async def backfill_trust_flow(
    session_factory: SessionFactory,
    limit: int,
    offset: int = 0,
    *,
    calculated_by: str = "admin",
    params: Optional[ScoringParams] = None,
) -> list[BackfillEntry]:
    params = params or ScoringParams.from_settings()

    async with session_factory() as db:
        targets = await list_targets_with_pushes(db, limit=limit, offset=offset)

    entries: list[BackfillEntry] = []
    for user_id, push_count in targets:
        try:
            async with session_factory() as db:
                cached = await get_cached(db, user_id)
                old_value = cached.value if cached is not None else params.base_value
                result = await recompute_trust_flow(
                    db,
                    user_id,
                    params=params,
                    change_reason=ChangeReason.backfill,
                    calculated_by=calculated_by,
                )
                await db.commit()
        except TransientStoreError as exc:
            log.warning("trust_flow_backfill_failed", user_id=str(user_id), error=exc.message)
            entries.append(BackfillEntry(user_id=user_id, push_count=push_count, error=exc.message))
            continue

        changed = abs(old_value - result.value) > CHANGE_EPSILON
        entries.append(
            BackfillEntry(
                user_id=user_id,
                push_count=push_count,
                old_value=old_value,
                new_value=result.value,
                changed=changed,
            )
        )

    log.info(
        "trust_flow_backfill_page",
        offset=offset,
        processed=len(entries),
        changed=sum(1 for e in entries if e.changed),
        failed=sum(1 for e in entries if e.error),
    )
    return entries
