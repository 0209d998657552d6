"""Trust Flow Pydantic schemas package.

Re-exports all request and response schemas for convenient importing:

    from trustflow.schemas import PushCreate, TrustFlowResponse, ...
"""

from trustflow.schemas.adjustment import (
    AdjustmentCreate,
    AdjustmentCreated,
    AdjustmentItem,
    AdjustmentListResponse,
)
from trustflow.schemas.auth import TokenCreate, TokenResponse
from trustflow.schemas.common import CamelModel, ErrorResponse
from trustflow.schemas.push import (
    EligibilityRequest,
    EligibilityResponse,
    PushCreate,
    PushCreated,
)
from trustflow.schemas.trust_flow import (
    BackfillItem,
    BackfillResponse,
    ContributionItem,
    PushHistoryItem,
    TrustFlowHistoryResponse,
    TrustFlowResponse,
    TrustFlowSummary,
)

__all__ = [
    # Push
    "PushCreate",
    "PushCreated",
    "EligibilityRequest",
    "EligibilityResponse",
    # Trust Flow
    "TrustFlowSummary",
    "TrustFlowResponse",
    "ContributionItem",
    "PushHistoryItem",
    "TrustFlowHistoryResponse",
    "BackfillItem",
    "BackfillResponse",
    # Admin adjustments
    "AdjustmentCreate",
    "AdjustmentCreated",
    "AdjustmentItem",
    "AdjustmentListResponse",
    # Auth
    "TokenCreate",
    "TokenResponse",
    # Common
    "CamelModel",
    "ErrorResponse",
]
