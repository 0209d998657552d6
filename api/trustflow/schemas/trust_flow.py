"""Pydantic schemas for Trust Flow reads, history and admin backfill.

TrustFlowResponse is the top-level response for GET /api/v1/users/{id}/trust-flow.
PushHistoryItem is one received push; `contribution` is filled for admins only
and omitted from the JSON otherwise.
"""

import uuid
from datetime import datetime
from typing import Optional

from trustflow.models.push import ContextType, PushKind
from trustflow.models.reputation import ColorBand
from trustflow.schemas.common import CamelModel


class TrustFlowSummary(CamelModel):
    value: float
    color_band: ColorBand


class TrustFlowResponse(TrustFlowSummary):
    user_id: uuid.UUID
    label: str
    computed_at: Optional[datetime] = None
    stale: bool = False


class ContributionItem(CamelModel):
    pusher_value: float
    base_weight: float
    repeat_count: int
    effective_weight: float
    contribution: float


class PushHistoryItem(CamelModel):
    id: int
    from_user_id: uuid.UUID
    kind: PushKind
    reason: str
    context_type: Optional[ContextType] = None
    context_id: Optional[str] = None
    created_at: datetime
    contribution: Optional[ContributionItem] = None


class TrustFlowHistoryResponse(CamelModel):
    user_id: uuid.UUID
    pushes: list[PushHistoryItem]


class BackfillItem(CamelModel):
    user_id: uuid.UUID
    push_count: int
    old_value: Optional[float] = None
    new_value: Optional[float] = None
    changed: bool = False
    error: Optional[str] = None


class BackfillResponse(CamelModel):
    processed: int
    changed: int
    failed: int
    results: list[BackfillItem]
