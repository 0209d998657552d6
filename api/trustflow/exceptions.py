"""Domain exceptions for the Trust Flow engine.

Routers translate these into HTTP responses; the recompute path retries
TransientStoreError and degrades to a safe default instead of surfacing it.
"""


class TrustFlowError(Exception):
    """Base exception for Trust Flow errors."""

    def __init__(self, message: str, error_type: str = "trust_flow_error"):
        self.message = message
        self.error_type = error_type
        super().__init__(message)


class PushValidationError(TrustFlowError):
    """Raised when a push is structurally invalid (self-push, short reason)."""

    def __init__(self, message: str, field: str | None = None):
        super().__init__(message, "invalid_push")
        self.field = field


class EligibilityRejection(TrustFlowError):
    """Raised when the sender is over an admission rate limit."""

    def __init__(self, reason: str):
        super().__init__(reason, "push_not_allowed")
        self.reason = reason


class TransientStoreError(TrustFlowError):
    """Raised when a ledger or cache read/write fails in a retryable way."""

    def __init__(self, message: str, operation: str | None = None):
        super().__init__(message, "transient_store_error")
        self.operation = operation


class AdjustmentValidationError(TrustFlowError):
    """Raised when an admin adjustment's points are not a positive number."""

    def __init__(self, message: str):
        super().__init__(message, "invalid_adjustment")
