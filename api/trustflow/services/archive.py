"""Contribution archive: one immutable scoring record per push.

`record_if_absent` is a single INSERT ... ON CONFLICT (push_id) DO NOTHING,
so two recomputes racing on the same push leave exactly one row and the
loser can tell it lost.
"""

from collections.abc import Iterable

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from trustflow.database import upsert_insert
from trustflow.metrics import contributions_archived
from trustflow.models.contribution import PushContribution


async def record_if_absent(
    db: AsyncSession,
    push_id: int,
    pusher_value: float,
    base_weight: float,
    repeat_count: int,
    effective_weight: float,
    contribution: float,
) -> bool:
    """Persist a contribution unless one already exists for `push_id`.

    Returns True if this call inserted the row.
    """
    stmt = (
        upsert_insert(db, PushContribution)
        .values(
            push_id=push_id,
            pusher_value=pusher_value,
            base_weight=base_weight,
            repeat_count=repeat_count,
            effective_weight=effective_weight,
            contribution=contribution,
        )
        .on_conflict_do_nothing(index_elements=[PushContribution.push_id])
        .returning(PushContribution.push_id)
    )
    result = await db.execute(stmt)
    inserted = result.scalar_one_or_none() is not None
    if inserted:
        contributions_archived.inc()
    return inserted


async def get_by_push_ids(
    db: AsyncSession,
    push_ids: Iterable[int],
) -> dict[int, PushContribution]:
    ids = list(push_ids)
    if not ids:
        return {}
    result = await db.execute(
        select(PushContribution).where(PushContribution.push_id.in_(ids))
    )
    return {row.push_id: row for row in result.scalars().all()}
