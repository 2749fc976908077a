"""
Custom exceptions for model backends and plan storage.
PII-safe: These exceptions never carry user text.
"""
from enum import Enum


class ServiceErrorCode(str, Enum):
    """PII-safe error codes for service failures."""
    MODEL_ERROR = "MODEL_ERROR"
    BACKEND_UNAVAILABLE = "BACKEND_UNAVAILABLE"
    TIMEOUT = "TIMEOUT"
    RATE_LIMITED = "RATE_LIMITED"
    NOT_FOUND = "NOT_FOUND"
    STORE_ERROR = "STORE_ERROR"


class ServiceError(Exception):
    """
    Base exception for service errors.

    Attributes:
        error_code: PII-safe error code for logging and response
        status_code: HTTP status code to return
        retryable: Whether the client should retry
        message: PII-safe message (no user content)
    """

    def __init__(
        self,
        error_code: ServiceErrorCode,
        message: str = "Request failed",
        status_code: int = 500,
        retryable: bool = True
    ):
        self.error_code = error_code
        self.message = message
        self.status_code = status_code
        self.retryable = retryable
        super().__init__(message)


class BackendUnavailableError(ServiceError):
    """Raised when the model backend is not reachable."""

    def __init__(self, backend: str = "unknown"):
        super().__init__(
            error_code=ServiceErrorCode.BACKEND_UNAVAILABLE,
            message=f"Backend unavailable: {backend}",
            status_code=503,
            retryable=True
        )


class BackendTimeoutError(ServiceError):
    """Raised when the model backend request times out."""

    def __init__(self, timeout_ms: int = 0):
        super().__init__(
            error_code=ServiceErrorCode.TIMEOUT,
            message=f"Backend timeout after {timeout_ms}ms",
            status_code=503,
            retryable=True
        )


class RateLimitedError(ServiceError):
    """Raised when the model backend returns 429."""

    def __init__(self):
        super().__init__(
            error_code=ServiceErrorCode.RATE_LIMITED,
            message="Rate limited by backend",
            status_code=429,
            retryable=True
        )


class ModelError(ServiceError):
    """Raised when the model returns unusable output."""

    def __init__(self, reason: str = "Invalid model output"):
        super().__init__(
            error_code=ServiceErrorCode.MODEL_ERROR,
            message=reason,
            status_code=500,
            retryable=True
        )


class PlanNotFoundError(ServiceError):
    """Raised when a saved plan does not exist for the user."""

    def __init__(self):
        super().__init__(
            error_code=ServiceErrorCode.NOT_FOUND,
            message="Plan not found",
            status_code=404,
            retryable=False
        )


class PlanStoreError(ServiceError):
    """Raised when the document store rejects or fails an operation."""

    def __init__(self, operation: str = "unknown"):
        super().__init__(
            error_code=ServiceErrorCode.STORE_ERROR,
            message=f"Plan store operation failed: {operation}",
            status_code=503,
            retryable=True
        )
