"""Pydantic schemas for push submission and the eligibility pre-check.

The reason length and self-push rules are enforced by the ledger, not here,
so that they come back as 400 with the same message whichever path hits them.
"""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import Field

from trustflow.models.push import ContextType, PushKind
from trustflow.schemas.common import CamelModel
from trustflow.schemas.trust_flow import TrustFlowSummary


class PushCreate(CamelModel):
    """Request schema for pushing another user."""

    to_user_id: uuid.UUID
    kind: PushKind
    reason: str = Field(..., max_length=5000)
    context_type: Optional[ContextType] = None
    context_id: Optional[str] = Field(None, max_length=100)


class PushCreated(CamelModel):
    """Response schema for an accepted push, with the target's refreshed Trust Flow."""

    id: int
    created_at: datetime
    trust_flow: TrustFlowSummary


class EligibilityRequest(CamelModel):
    to_user_id: uuid.UUID


class EligibilityResponse(CamelModel):
    can_push: bool
    reason: Optional[str] = None
