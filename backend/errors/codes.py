"""
Error codes for the EduConnect backend.

Provides a standardized taxonomy of error codes organized by category.
Use these codes consistently across all error responses.
"""

from enum import Enum


class ErrorCode(str, Enum):
    """Standardized error codes for EduConnect.

    Categories:
    - PROVIDER_*: AI provider failures (recovered by the fallback chain)
    - STORE_*: Conversation / post storage failures
    - STREAM_*: Streaming relay failures
    - VALIDATION_*: Input validation errors
    - NOT_FOUND_*: Resource not found errors
    - CONFLICT_*: Duplicate interaction errors
    - INTERNAL_*: Internal/unexpected errors
    """

    # Provider errors (AI backends)
    PROVIDER_UNAVAILABLE = "PROVIDER_UNAVAILABLE"
    PROVIDER_TIMEOUT = "PROVIDER_TIMEOUT"
    PROVIDER_BAD_STATUS = "PROVIDER_BAD_STATUS"
    PROVIDER_AUTH_FAILED = "PROVIDER_AUTH_FAILED"
    PROVIDER_STREAM_UNSUPPORTED = "PROVIDER_STREAM_UNSUPPORTED"

    # Storage errors
    STORE_WRITE_FAILED = "STORE_WRITE_FAILED"
    STORE_READ_FAILED = "STORE_READ_FAILED"

    # Streaming errors
    STREAM_INTERRUPTED = "STREAM_INTERRUPTED"

    # Validation errors (input checking)
    VALIDATION_MISSING_PARAM = "VALIDATION_MISSING_PARAM"
    VALIDATION_INVALID_TYPE = "VALIDATION_INVALID_TYPE"
    VALIDATION_OUT_OF_RANGE = "VALIDATION_OUT_OF_RANGE"
    VALIDATION_INVALID_FORMAT = "VALIDATION_INVALID_FORMAT"

    # Not found errors (missing resources)
    NOT_FOUND_POST = "NOT_FOUND_POST"
    NOT_FOUND_LIKE = "NOT_FOUND_LIKE"
    NOT_FOUND_SAVE = "NOT_FOUND_SAVE"
    NOT_FOUND_PROVIDER = "NOT_FOUND_PROVIDER"

    # Conflict errors (idempotent interactions)
    CONFLICT_ALREADY_LIKED = "CONFLICT_ALREADY_LIKED"
    CONFLICT_ALREADY_SAVED = "CONFLICT_ALREADY_SAVED"

    # Internal errors (unexpected failures)
    INTERNAL_UNEXPECTED = "INTERNAL_UNEXPECTED"
    INTERNAL_CONFIG_ERROR = "INTERNAL_CONFIG_ERROR"
    INTERNAL_STATE_ERROR = "INTERNAL_STATE_ERROR"
