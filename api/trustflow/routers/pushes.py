"""Push submission endpoints.

POST /api/v1/pushes              -- push another user (positive or negative)
POST /api/v1/pushes/eligibility  -- advisory pre-check for the UI
"""

import uuid

from fastapi import APIRouter, HTTPException
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from trustflow.dependencies import CurrentUser, DbSession, SessionFactory
from trustflow.exceptions import EligibilityRejection, PushValidationError
from trustflow.middleware.rate_limiter import ReadRateLimit, WriteRateLimit
from trustflow.models.reputation import ChangeReason
from trustflow.models.user import User
from trustflow.schemas.common import ErrorResponse
from trustflow.schemas.push import (
    EligibilityRequest,
    EligibilityResponse,
    PushCreate,
    PushCreated,
)
from trustflow.schemas.trust_flow import TrustFlowSummary
from trustflow.services.eligibility import check_eligibility
from trustflow.services.ledger import append_push
from trustflow.services.orchestrator import recompute_with_retry

router = APIRouter(prefix="/api/v1", tags=["pushes"])


async def _ensure_user_exists(db: AsyncSession, user_id: uuid.UUID) -> None:
    result = await db.execute(select(User.id).where(User.id == user_id))
    if result.scalar_one_or_none() is None:
        raise HTTPException(status_code=404, detail="User not found")


@router.post(
    "/pushes",
    response_model=PushCreated,
    status_code=201,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def submit_push(
    body: PushCreate,
    user: CurrentUser,
    db: DbSession,
    session_factory: SessionFactory,
    _rate: WriteRateLimit,
) -> PushCreated:
    """Push another user.

    Validation rules enforced (all 400 with a human-readable detail):
    - Cannot push yourself
    - Reason must be at least 100 characters
    - Per-target and sender-wide rate limits, checked inside the same
      transaction as the insert

    After the push is committed the target's Trust Flow is recomputed with
    bounded retries. If the recompute cannot see the new push in time, the
    last cached value (or the base value) is returned instead.
    """
    await _ensure_user_exists(db, body.to_user_id)

    try:
        push = await append_push(
            db,
            from_user_id=user.id,
            to_user_id=body.to_user_id,
            kind=body.kind,
            reason=body.reason,
            context_type=body.context_type,
            context_id=body.context_id,
        )
    except (PushValidationError, EligibilityRejection) as exc:
        await db.rollback()
        raise HTTPException(status_code=400, detail=exc.message)

    push_id, created_at = push.id, push.created_at
    await db.commit()

    reading = await recompute_with_retry(
        session_factory,
        body.to_user_id,
        must_include=push_id,
        change_reason=ChangeReason.push_created,
    )

    return PushCreated(
        id=push_id,
        created_at=created_at,
        trust_flow=TrustFlowSummary(value=reading.value, color_band=reading.color_band),
    )


@router.post(
    "/pushes/eligibility",
    response_model=EligibilityResponse,
    response_model_exclude_none=True,
)
async def check_push_eligibility(
    body: EligibilityRequest,
    user: CurrentUser,
    db: DbSession,
    _rate: ReadRateLimit,
) -> EligibilityResponse:
    """Tell the UI whether the current user may push `toUserId` right now.

    Advisory only: POST /pushes re-checks inside its own transaction.
    """
    eligibility = await check_eligibility(db, user.id, body.to_user_id)
    return EligibilityResponse(can_push=eligibility.can_push, reason=eligibility.reason)
