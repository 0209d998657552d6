"""Trust Flow read endpoints.

GET /api/v1/users/{user_id}/trust-flow          -- cached value, or recompute on demand
GET /api/v1/users/{user_id}/trust-flow/history  -- received pushes (self or admin)
"""

import uuid

from fastapi import APIRouter, HTTPException, Query
from sqlalchemy import select

from trustflow.dependencies import CurrentUser, DbSession, SessionFactory
from trustflow.middleware.rate_limiter import ReadRateLimit
from trustflow.models.user import User
from trustflow.schemas.trust_flow import (
    ContributionItem,
    PushHistoryItem,
    TrustFlowHistoryResponse,
    TrustFlowResponse,
)
from trustflow.services.archive import get_by_push_ids
from trustflow.services.ledger import list_received_by
from trustflow.services.orchestrator import read_trust_flow

router = APIRouter(prefix="/api/v1", tags=["trust-flow"])


@router.get("/users/{user_id}/trust-flow", response_model=TrustFlowResponse)
async def get_trust_flow(
    user_id: uuid.UUID,
    user: CurrentUser,
    db: DbSession,
    session_factory: SessionFactory,
    _rate: ReadRateLimit,
    recalculate: bool = Query(False, description="Force a fresh recompute before responding"),
) -> TrustFlowResponse:
    """Get a user's Trust Flow value and color band.

    Served from the cache. A user with no cached value is computed once.
    `recalculate=true` always recomputes first. If a recompute fails, the last
    cached value (or the base value) is returned with `stale: true`.
    """
    result = await db.execute(select(User.id).where(User.id == user_id))
    if result.scalar_one_or_none() is None:
        raise HTTPException(status_code=404, detail="User not found")

    reading = await read_trust_flow(session_factory, user_id, recalculate=recalculate)
    return TrustFlowResponse(
        user_id=user_id,
        value=reading.value,
        color_band=reading.color_band,
        label=reading.color_band.label,
        computed_at=reading.computed_at,
        stale=reading.stale,
    )


@router.get(
    "/users/{user_id}/trust-flow/history",
    response_model=TrustFlowHistoryResponse,
    response_model_exclude_none=True,
)
async def get_trust_flow_history(
    user_id: uuid.UUID,
    user: CurrentUser,
    db: DbSession,
    _rate: ReadRateLimit,
) -> TrustFlowHistoryResponse:
    """List the pushes a user has received, oldest first.

    Only the user themselves or an admin may read this. Admins also get the
    archived contribution breakdown of every push that has been scored.
    """
    if user.id != user_id and not user.is_admin:
        raise HTTPException(status_code=403, detail="Not allowed to view this history")

    pushes = await list_received_by(db, user_id)
    records = await get_by_push_ids(db, [p.id for p in pushes]) if user.is_admin else {}

    items = []
    for push in pushes:
        record = records.get(push.id)
        items.append(
            PushHistoryItem(
                id=push.id,
                from_user_id=push.from_user_id,
                kind=push.kind,
                reason=push.reason,
                context_type=push.context_type,
                context_id=push.context_id,
                created_at=push.created_at,
                contribution=ContributionItem.model_validate(record) if record else None,
            )
        )
    return TrustFlowHistoryResponse(user_id=user_id, pushes=items)
