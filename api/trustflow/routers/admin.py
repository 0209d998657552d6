"""Admin Trust Flow maintenance.

POST /api/v1/admin/trust-flow/backfill                 -- recompute every user who has received pushes
POST /api/v1/admin/trust-flow/adjustments              -- permanent bonus or penalty for one user
GET  /api/v1/admin/trust-flow/adjustments/{user_id}    -- a user's adjustments and their total
"""

import uuid

from fastapi import APIRouter, HTTPException, Query
from sqlalchemy import select

from trustflow.config import settings
from trustflow.dependencies import DbSession, RequireAdmin, SessionFactory
from trustflow.exceptions import AdjustmentValidationError
from trustflow.models.reputation import ChangeReason
from trustflow.models.user import User
from trustflow.schemas.adjustment import (
    AdjustmentCreate,
    AdjustmentCreated,
    AdjustmentItem,
    AdjustmentListResponse,
)
from trustflow.schemas.common import ErrorResponse
from trustflow.schemas.trust_flow import BackfillItem, BackfillResponse, TrustFlowSummary
from trustflow.services.adjustments import list_adjustments, record_adjustment
from trustflow.services.backfill import backfill_trust_flow
from trustflow.services.orchestrator import recompute_with_retry

router = APIRouter(prefix="/api/v1/admin", tags=["admin"])


@router.post("/trust-flow/backfill", response_model=BackfillResponse)
async def backfill(
    admin: RequireAdmin,
    session_factory: SessionFactory,
    limit: int = Query(100, ge=1, le=settings.backfill_max_batch),
    offset: int = Query(0, ge=0),
) -> BackfillResponse:
    """Recompute and cache Trust Flow for one page of pushed users.

    Users are ordered by how many pushes they have received. Each user is
    committed separately; per-user failures are reported in `results`.
    """
    entries = await backfill_trust_flow(session_factory, limit=limit, offset=offset)
    return BackfillResponse(
        processed=len(entries),
        changed=sum(1 for e in entries if e.changed),
        failed=sum(1 for e in entries if e.error),
        results=[BackfillItem.model_validate(e) for e in entries],
    )


@router.post(
    "/trust-flow/adjustments",
    response_model=AdjustmentCreated,
    status_code=201,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def create_adjustment(
    body: AdjustmentCreate,
    admin: RequireAdmin,
    db: DbSession,
    session_factory: SessionFactory,
) -> AdjustmentCreated:
    """Record a permanent bonus or penalty and recompute the user's Trust Flow.

    `points` is positive for both kinds; a penalty is subtracted. Adjustments
    are part of every later recompute, and the floor clamp still applies.
    """
    result = await db.execute(select(User.id).where(User.id == body.user_id))
    if result.scalar_one_or_none() is None:
        raise HTTPException(status_code=404, detail="User not found")

    try:
        adjustment = await record_adjustment(
            db,
            body.user_id,
            body.kind,
            body.points,
            reason=body.reason,
            created_by=admin.id,
        )
    except AdjustmentValidationError as exc:
        await db.rollback()
        raise HTTPException(status_code=400, detail=exc.message)

    await db.commit()
    await db.refresh(adjustment)

    reading = await recompute_with_retry(
        session_factory,
        body.user_id,
        change_reason=ChangeReason.admin_adjustment,
        calculated_by="admin",
    )

    return AdjustmentCreated(
        id=adjustment.id,
        user_id=adjustment.user_id,
        kind=adjustment.kind,
        points=adjustment.points,
        reason=adjustment.reason,
        created_by=adjustment.created_by,
        created_at=adjustment.created_at,
        trust_flow=TrustFlowSummary(value=reading.value, color_band=reading.color_band),
    )


@router.get("/trust-flow/adjustments/{user_id}", response_model=AdjustmentListResponse)
async def get_adjustments(
    user_id: uuid.UUID,
    admin: RequireAdmin,
    db: DbSession,
) -> AdjustmentListResponse:
    adjustments = await list_adjustments(db, user_id)
    return AdjustmentListResponse(
        user_id=user_id,
        total=sum(a.points for a in adjustments),
        adjustments=[AdjustmentItem.model_validate(a) for a in adjustments],
    )
