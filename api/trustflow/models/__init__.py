from .adjustment import AdjustmentKind, TrustFlowAdjustment
from .base import Base
from .contribution import PushContribution
from .push import ContextType, PushKind, TrustPush
from .reputation import ChangeReason, ColorBand, TrustFlowChange, UserTrustFlow
from .user import User

__all__ = [
    "Base",
    "User",
    "TrustPush",
    "PushKind",
    "ContextType",
    "PushContribution",
    "UserTrustFlow",
    "TrustFlowChange",
    "ColorBand",
    "ChangeReason",
    "TrustFlowAdjustment",
    "AdjustmentKind",
]
