"""Admin Trust Flow adjustments: permanent bonuses and penalties.

An adjustment is recorded with positive `points` and a kind; it is stored
signed (penalties negative). The sum of a user's adjustments is added to
BASE_VALUE + contributions before the floor clamp on every recompute.
"""

import math
import uuid
from typing import Optional

import structlog
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from trustflow.exceptions import AdjustmentValidationError
from trustflow.models.adjustment import AdjustmentKind, TrustFlowAdjustment

log = structlog.get_logger()


def signed_points(kind: AdjustmentKind, points: float) -> float:
    if not math.isfinite(points) or points <= 0:
        raise AdjustmentValidationError("points must be a positive number")
    kind = AdjustmentKind(kind)
    if kind is AdjustmentKind.bonus:
        return points
    if kind is AdjustmentKind.penalty:
        return -points
    raise ValueError(f"Unhandled adjustment kind: {kind!r}")


async def record_adjustment(
    db: AsyncSession,
    user_id: uuid.UUID,
    kind: AdjustmentKind,
    points: float,
    *,
    reason: Optional[str] = None,
    created_by: Optional[uuid.UUID] = None,
) -> TrustFlowAdjustment:
    """Append an adjustment. The caller commits and triggers the recompute."""
    adjustment = TrustFlowAdjustment(
        user_id=user_id,
        points=signed_points(kind, points),
        kind=AdjustmentKind(kind),
        reason=(reason or "").strip() or None,
        created_by=created_by,
    )
    db.add(adjustment)
    await db.flush()  # populate adjustment.id

    log.info(
        "trust_flow_adjustment_recorded",
        adjustment_id=adjustment.id,
        user_id=str(user_id),
        kind=adjustment.kind.value,
        points=adjustment.points,
        created_by=str(created_by) if created_by else None,
    )
    return adjustment


async def total_adjustments(db: AsyncSession, user_id: uuid.UUID) -> float:
    result = await db.execute(
        select(func.coalesce(func.sum(TrustFlowAdjustment.points), 0.0)).where(
            TrustFlowAdjustment.user_id == user_id
        )
    )
    return float(result.scalar_one())


async def list_adjustments(db: AsyncSession, user_id: uuid.UUID) -> list[TrustFlowAdjustment]:
    result = await db.execute(
        select(TrustFlowAdjustment)
        .where(TrustFlowAdjustment.user_id == user_id)
        .order_by(TrustFlowAdjustment.created_at.asc(), TrustFlowAdjustment.id.asc())
    )
    return list(result.scalars().all())
