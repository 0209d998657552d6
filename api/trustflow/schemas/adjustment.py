"""Pydantic schemas for admin Trust Flow adjustments."""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import Field

from trustflow.models.adjustment import AdjustmentKind
from trustflow.schemas.common import CamelModel
from trustflow.schemas.trust_flow import TrustFlowSummary


class AdjustmentCreate(CamelModel):
    """Request schema for a bonus or penalty. `points` is always positive."""

    user_id: uuid.UUID
    kind: AdjustmentKind
    points: float = Field(..., gt=0, le=1000)
    reason: Optional[str] = Field(None, max_length=2000)


class AdjustmentItem(CamelModel):
    id: int
    user_id: uuid.UUID
    kind: AdjustmentKind
    points: float
    reason: Optional[str] = None
    created_by: Optional[uuid.UUID] = None
    created_at: datetime


class AdjustmentCreated(AdjustmentItem):
    """An accepted adjustment with the user's refreshed Trust Flow."""

    trust_flow: TrustFlowSummary


class AdjustmentListResponse(CamelModel):
    user_id: uuid.UUID
    total: float
    adjustments: list[AdjustmentItem]
