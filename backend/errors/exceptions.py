"""
Custom exception hierarchy for EduConnect.

All exceptions inherit from EduConnectError and include:
- code: ErrorCode for categorization
- message: Human-readable error message
- details: Optional additional context
- recoverable: Whether the user can retry/fix the issue
- context: Additional key-value pairs for debugging

Provider errors are never surfaced to end users; the fallback orchestrator
catches ProviderError and moves on to the next provider.
"""

from typing import Any, Optional
from .codes import ErrorCode


class EduConnectError(Exception):
    """Base exception for all EduConnect errors.

    Attributes:
        code: The ErrorCode categorizing this error
        message: Human-readable error message
        details: Optional additional context for the user
        recoverable: Whether the error can be resolved by user action
        context: Additional debugging information
    """

    code: ErrorCode = ErrorCode.INTERNAL_UNEXPECTED
    recoverable: bool = False

    def __init__(
        self,
        message: str,
        details: Optional[str] = None,
        code: Optional[ErrorCode] = None,
        recoverable: Optional[bool] = None,
        **context: Any,
    ):
        self.message = message
        self.details = details
        self.context = context if context else None

        # Allow overriding class defaults
        if code is not None:
            self.code = code
        if recoverable is not None:
            self.recoverable = recoverable

        super().__init__(message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} - {self.details}"
        return self.message

    def to_dict(self) -> dict:
        """Convert exception to dictionary for JSON serialization."""
        return {
            "code": self.code.value,
            "message": self.message,
            "details": self.details,
            "recoverable": self.recoverable,
            "context": self.context,
        }


class ProviderError(EduConnectError):
    """Any failure of a single AI provider call."""

    code = ErrorCode.PROVIDER_UNAVAILABLE
    recoverable = True

    def __init__(
        self,
        message: str,
        details: Optional[str] = None,
        provider: Optional[str] = None,
        code: Optional[ErrorCode] = None,
        **context: Any,
    ):
        self.provider = provider
        ctx = {**context}
        if provider:
            ctx["provider"] = provider
        super().__init__(message, details, code=code, **ctx)


class ProviderUnavailableError(ProviderError):
    """Network failure, non-success status or timeout from a provider."""

    code = ErrorCode.PROVIDER_UNAVAILABLE

    def __init__(
        self,
        message: str,
        details: Optional[str] = None,
        provider: Optional[str] = None,
        error_type: Optional[str] = None,
        status_code: Optional[int] = None,
        **context: Any,
    ):
        # Set appropriate code based on error type
        if error_type == "timeout":
            code = ErrorCode.PROVIDER_TIMEOUT
        elif error_type == "status":
            code = ErrorCode.PROVIDER_BAD_STATUS
        elif error_type == "stream_unsupported":
            code = ErrorCode.PROVIDER_STREAM_UNSUPPORTED
        else:
            code = ErrorCode.PROVIDER_UNAVAILABLE

        ctx = {**context}
        if status_code:
            ctx["status_code"] = status_code
        super().__init__(message, details, provider=provider, code=code, **ctx)


class ProviderAuthError(ProviderError):
    """Missing or rejected provider credentials (a configuration problem)."""

    code = ErrorCode.PROVIDER_AUTH_FAILED
    recoverable = False


class StoreWriteError(EduConnectError):
    """A write that could not be made durable anywhere."""

    code = ErrorCode.STORE_WRITE_FAILED
    recoverable = False

    def __init__(
        self,
        message: str,
        details: Optional[str] = None,
        tier: Optional[str] = None,
        **context: Any,
    ):
        ctx = {**context}
        if tier:
            ctx["tier"] = tier
        super().__init__(message, details, **ctx)


class StoreReadError(EduConnectError):
    """Neither storage tier could serve a read."""

    code = ErrorCode.STORE_READ_FAILED
    recoverable = True


class StreamInterruptedError(EduConnectError):
    """A provider stream stopped before signalling completion."""

    code = ErrorCode.STREAM_INTERRUPTED
    recoverable = True


class ValidationError(EduConnectError):
    """Error during input validation."""

    code = ErrorCode.VALIDATION_MISSING_PARAM
    recoverable = True

    def __init__(
        self,
        message: str,
        details: Optional[str] = None,
        parameter: Optional[str] = None,
        expected: Optional[str] = None,
        received: Optional[str] = None,
        **context: Any,
    ):
        ctx = {**context}
        if parameter:
            ctx["parameter"] = parameter
        if expected:
            ctx["expected"] = expected
        if received:
            ctx["received"] = received
        super().__init__(message, details, **ctx)


class NotFoundError(EduConnectError):
    """Error when a required resource is not found."""

    code = ErrorCode.NOT_FOUND_POST
    recoverable = True

    def __init__(
        self,
        message: str,
        details: Optional[str] = None,
        resource_type: Optional[str] = None,
        resource_id: Optional[Any] = None,
        **context: Any,
    ):
        # Set appropriate code based on resource type
        if resource_type == "like":
            code = ErrorCode.NOT_FOUND_LIKE
        elif resource_type == "save":
            code = ErrorCode.NOT_FOUND_SAVE
        elif resource_type == "provider":
            code = ErrorCode.NOT_FOUND_PROVIDER
        else:
            code = ErrorCode.NOT_FOUND_POST

        ctx = {**context}
        if resource_type:
            ctx["resource_type"] = resource_type
        if resource_id is not None:
            ctx["resource_id"] = resource_id
        super().__init__(message, details, code=code, **ctx)


class ConflictError(EduConnectError):
    """A duplicate like/save for the same (user, post) pair."""

    code = ErrorCode.CONFLICT_ALREADY_LIKED
    recoverable = True

    def __init__(
        self,
        message: str,
        details: Optional[str] = None,
        interaction: Optional[str] = None,
        **context: Any,
    ):
        code = ErrorCode.CONFLICT_ALREADY_SAVED if interaction == "save" else ErrorCode.CONFLICT_ALREADY_LIKED
        ctx = {**context}
        if interaction:
            ctx["interaction"] = interaction
        super().__init__(message, details, code=code, **ctx)
