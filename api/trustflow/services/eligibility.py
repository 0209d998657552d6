"""Push admission control (anti-gaming).

Rules, evaluated in order:
1. A user cannot push themselves.
2. Per-target limit: at most N pushes from the sender to the same target
   within a trailing window (default 5 per 30 days).
3. Sender-wide limit: at most M pushes from the sender to anyone within a
   trailing window (default 30 per 24 hours).

`evaluate` is the pure decision. `check_eligibility` feeds it live counts and
is what the advisory endpoint calls; the ledger calls the same function again
inside its admission transaction, which is where the rule is actually
enforced.
"""

import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from trustflow.config import Settings, settings
from trustflow.models.push import TrustPush
from trustflow.timeutils import utcnow

SELF_PUSH_REASON = "Cannot push yourself"


@dataclass(frozen=True)
class RateLimitPolicy:
    """Admission limits. A limit <= 0 disables that rule."""

    per_target_limit: int
    per_target_window: timedelta
    total_limit: int
    total_window: timedelta

    @classmethod
    def from_settings(cls, app_settings: Settings = settings) -> "RateLimitPolicy":
        return cls(
            per_target_limit=app_settings.push_limit_per_target,
            per_target_window=timedelta(days=app_settings.push_limit_per_target_window_days),
            total_limit=app_settings.push_limit_total,
            total_window=timedelta(hours=app_settings.push_limit_total_window_hours),
        )


@dataclass(frozen=True)
class Eligibility:
    can_push: bool
    reason: Optional[str] = None


def _describe_window(window: timedelta) -> str:
    if window.days and window == timedelta(days=window.days):
        return f"{window.days} days" if window.days != 1 else "24 hours"
    hours = int(window.total_seconds() // 3600)
    return f"{hours} hours" if hours != 1 else "hour"


def evaluate(
    from_user_id: uuid.UUID,
    to_user_id: uuid.UUID,
    pushes_to_target: int,
    pushes_total: int,
    policy: RateLimitPolicy,
) -> Eligibility:
    if from_user_id == to_user_id:
        return Eligibility(False, SELF_PUSH_REASON)

    if policy.per_target_limit > 0 and pushes_to_target >= policy.per_target_limit:
        return Eligibility(
            False,
            f"Maximum {policy.per_target_limit} pushes to this user per "
            f"{_describe_window(policy.per_target_window)} reached",
        )

    if policy.total_limit > 0 and pushes_total >= policy.total_limit:
        return Eligibility(
            False,
            f"Maximum {policy.total_limit} pushes per "
            f"{_describe_window(policy.total_window)} reached",
        )

    return Eligibility(True)


async def count_recent_pushes(
    db: AsyncSession,
    from_user_id: uuid.UUID,
    since: datetime,
    to_user_id: Optional[uuid.UUID] = None,
) -> int:
    stmt = (
        select(func.count(TrustPush.id))
        .where(TrustPush.from_user_id == from_user_id)
        .where(TrustPush.created_at >= since)
    )
    if to_user_id is not None:
        stmt = stmt.where(TrustPush.to_user_id == to_user_id)
    result = await db.execute(stmt)
    return int(result.scalar_one())


async def check_eligibility(
    db: AsyncSession,
    from_user_id: uuid.UUID,
    to_user_id: uuid.UUID,
    policy: Optional[RateLimitPolicy] = None,
    now: Optional[datetime] = None,
) -> Eligibility:
    """Decide whether `from_user_id` may push `to_user_id` right now.

    The self-push rule short-circuits before any query is issued.
    """
    policy = policy or RateLimitPolicy.from_settings()
    if from_user_id == to_user_id:
        return Eligibility(False, SELF_PUSH_REASON)

    now = now or utcnow()
    to_target = 0
    if policy.per_target_limit > 0:
        to_target = await count_recent_pushes(
            db, from_user_id, now - policy.per_target_window, to_user_id=to_user_id
        )
    total = 0
    if policy.total_limit > 0:
        total = await count_recent_pushes(db, from_user_id, now - policy.total_window)

    return evaluate(from_user_id, to_user_id, to_target, total, policy)
