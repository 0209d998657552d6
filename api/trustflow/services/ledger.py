"""Push ledger: append-only store of directed feedback events.

Admission is a single step. `append_push` validates the push, serializes
concurrent admissions from the same sender, re-evaluates the eligibility
rules against the ledger as it stands inside the transaction, and only then
inserts. An advisory pre-check done in a separate request therefore cannot
be raced past by two concurrent submissions.

On PostgreSQL the serialization is a transaction-scoped advisory lock keyed
by the sender id (released on commit/rollback). On SQLite, used for local
runs and tests, the database write lock is taken before the limits are
counted.
"""

import uuid
from datetime import datetime
from typing import Optional

import structlog
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from trustflow.config import settings
from trustflow.database import acquire_write_lock
from trustflow.exceptions import EligibilityRejection, PushValidationError
from trustflow.metrics import push_admissions
from trustflow.models.push import ContextType, PushKind, TrustPush
from trustflow.services.eligibility import (
    SELF_PUSH_REASON,
    RateLimitPolicy,
    check_eligibility,
)
from trustflow.timeutils import utcnow

log = structlog.get_logger()


def validate_push(
    from_user_id: uuid.UUID,
    to_user_id: uuid.UUID,
    reason: str,
    min_reason_length: int = settings.push_reason_min_length,
) -> str:
    """Return the normalized reason or raise PushValidationError.

    Surrounding whitespace does not count toward the minimum length.
    """
    if from_user_id == to_user_id:
        raise PushValidationError(SELF_PUSH_REASON, field="toUserId")
    normalized = (reason or "").strip()
    if len(normalized) < min_reason_length:
        raise PushValidationError(
            f"Reason must be at least {min_reason_length} characters "
            f"(got {len(normalized)})",
            field="reason",
        )
    return normalized


def sender_lock_key(from_user_id: uuid.UUID) -> int:
    """Signed 64-bit advisory lock key derived from the sender id."""
    return int.from_bytes(from_user_id.bytes[:8], "big", signed=True)


async def append_push(
    db: AsyncSession,
    from_user_id: uuid.UUID,
    to_user_id: uuid.UUID,
    kind: PushKind,
    reason: str,
    *,
    context_type: Optional[ContextType] = None,
    context_id: Optional[str] = None,
    created_at: Optional[datetime] = None,
    policy: Optional[RateLimitPolicy] = None,
) -> TrustPush:
    """Admit and append one push. The caller owns commit/rollback.

    Raises:
        PushValidationError: self-push or reason shorter than the minimum.
        EligibilityRejection: the sender is over an admission rate limit.
    """
    try:
        normalized_reason = validate_push(from_user_id, to_user_id, reason)
    except PushValidationError:
        push_admissions.labels(kind=PushKind(kind).value, outcome="invalid").inc()
        raise

    created_at = created_at or utcnow()
    await acquire_write_lock(db, sender_lock_key(from_user_id))

    eligibility = await check_eligibility(
        db, from_user_id, to_user_id, policy=policy, now=created_at
    )
    if not eligibility.can_push:
        push_admissions.labels(kind=PushKind(kind).value, outcome="rejected").inc()
        log.info(
            "push_rejected",
            from_user_id=str(from_user_id),
            to_user_id=str(to_user_id),
            reason=eligibility.reason,
        )
        raise EligibilityRejection(eligibility.reason or "Push not allowed")

    push = TrustPush(
        from_user_id=from_user_id,
        to_user_id=to_user_id,
        kind=PushKind(kind),
        reason=normalized_reason,
        context_type=ContextType(context_type) if context_type else None,
        context_id=context_id,
        created_at=created_at,
    )
    db.add(push)
    await db.flush()  # populate push.id

    push_admissions.labels(kind=push.kind.value, outcome="accepted").inc()
    log.info(
        "push_appended",
        push_id=push.id,
        from_user_id=str(from_user_id),
        to_user_id=str(to_user_id),
        kind=push.kind.value,
    )
    return push


async def list_received_by(db: AsyncSession, target_user_id: uuid.UUID) -> list[TrustPush]:
    """All pushes received by a user, oldest first, ties broken by id."""
    result = await db.execute(
        select(TrustPush)
        .where(TrustPush.to_user_id == target_user_id)
        .order_by(TrustPush.created_at.asc(), TrustPush.id.asc())
    )
    return list(result.scalars().all())


async def list_between(
    db: AsyncSession,
    from_user_id: uuid.UUID,
    target_user_id: uuid.UUID,
) -> list[TrustPush]:
    result = await db.execute(
        select(TrustPush)
        .where(TrustPush.from_user_id == from_user_id)
        .where(TrustPush.to_user_id == target_user_id)
        .order_by(TrustPush.created_at.asc(), TrustPush.id.asc())
    )
    return list(result.scalars().all())


async def list_targets_with_pushes(
    db: AsyncSession,
    limit: int,
    offset: int = 0,
) -> list[tuple[uuid.UUID, int]]:
    """Distinct push targets with their push counts, most pushed first."""
    push_count = func.count(TrustPush.id).label("push_count")
    result = await db.execute(
        select(TrustPush.to_user_id, push_count)
        .group_by(TrustPush.to_user_id)
        .order_by(push_count.desc(), TrustPush.to_user_id.asc())
        .limit(limit)
        .offset(offset)
    )
    return [(row.to_user_id, int(row.push_count)) for row in result.all()]
