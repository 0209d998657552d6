"""Trust Flow cache: last applied value, band and computation time per user.

Writes are a single conditional upsert:

    INSERT ... ON CONFLICT (user_id) DO UPDATE ...
    WHERE user_trust_flow.computed_at < excluded.computed_at

so an out-of-order write from a recompute that started earlier is dropped
by the database rather than by a Python-side read-modify-write. computed_at
is the snapshot time of the recompute, not its finish time.

Writers for the same user are serialized for the rest of the transaction,
so the old value recorded in trust_flow_changes is exactly the value the
write replaced.
"""

import uuid
from collections.abc import Iterable
from datetime import datetime
from typing import Optional

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from trustflow.database import acquire_write_lock, upsert_insert
from trustflow.metrics import cache_writes
from trustflow.models.reputation import ChangeReason, TrustFlowChange, UserTrustFlow
from trustflow.services.bands import color_band_for

log = structlog.get_logger()


def cache_lock_key(user_id: uuid.UUID) -> int:
    """Advisory lock key for one user's cache row (low half of the id)."""
    return int.from_bytes(user_id.bytes[8:], "big", signed=True)


async def get_cached(db: AsyncSession, user_id: uuid.UUID) -> Optional[UserTrustFlow]:
    result = await db.execute(
        select(UserTrustFlow)
        .where(UserTrustFlow.user_id == user_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def get_cached_values(
    db: AsyncSession,
    user_ids: Iterable[uuid.UUID],
) -> dict[uuid.UUID, float]:
    """Cached values for a set of users. Users without a cache row are absent."""
    ids = list(user_ids)
    if not ids:
        return {}
    result = await db.execute(
        select(UserTrustFlow.user_id, UserTrustFlow.value).where(
            UserTrustFlow.user_id.in_(ids)
        )
    )
    return {row.user_id: row.value for row in result.all()}


async def put_cached(
    db: AsyncSession,
    user_id: uuid.UUID,
    value: float,
    computed_at: datetime,
    *,
    change_reason: ChangeReason = ChangeReason.manual_recalc,
    push_id: Optional[int] = None,
    calculated_by: str = "api",
) -> bool:
    """Store a computed value if `computed_at` is newer than what is stored.

    The band is derived from the value here; it cannot be set on its own.
    Returns True if the write was applied. An applied write that changes the
    value is also appended to trust_flow_changes.
    """
    # Held until commit, so `previous` is the row this write replaces
    await acquire_write_lock(db, cache_lock_key(user_id))
    previous = await get_cached(db, user_id)
    old_value = previous.value if previous is not None else None
    band = color_band_for(value)

    stmt = upsert_insert(db, UserTrustFlow).values(
        user_id=user_id,
        value=value,
        color_band=band,
        computed_at=computed_at,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=[UserTrustFlow.user_id],
        set_={
            "value": stmt.excluded.value,
            "color_band": stmt.excluded.color_band,
            "computed_at": stmt.excluded.computed_at,
        },
        where=UserTrustFlow.computed_at < stmt.excluded.computed_at,
    ).returning(UserTrustFlow.user_id)

    result = await db.execute(stmt)
    applied = result.scalar_one_or_none() is not None

    if not applied:
        cache_writes.labels(result="superseded").inc()
        log.info("trust_flow_cache_write_superseded", user_id=str(user_id))
        return False

    cache_writes.labels(result="applied").inc()
    if old_value != value:
        db.add(
            TrustFlowChange(
                user_id=user_id,
                old_value=old_value,
                new_value=value,
                change_reason=change_reason,
                push_id=push_id,
                calculated_by=calculated_by,
            )
        )
        await db.flush()
    return True
