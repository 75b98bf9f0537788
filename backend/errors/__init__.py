"""
EduConnect Error Handling Module

Provides standardized error codes, exceptions, and response builders
for consistent error handling across the application.

Usage:
    from errors import (
        # Error codes
        ErrorCode,

        # Exceptions
        EduConnectError,
        ProviderError,
        ProviderUnavailableError,
        ProviderAuthError,
        StoreWriteError,
        StoreReadError,
        StreamInterruptedError,
        ValidationError,
        NotFoundError,
        ConflictError,

        # Response builders
        error_response,
        success_response,

        # Handlers
        register_exception_handlers,
        log_error,
    )

Example:
    from errors import NotFoundError, ConflictError

    async def like_post(store, user_id, post_id):
        post = await store.get_post(post_id)
        if post is None:
            raise NotFoundError("Post not found", resource_type="post", resource_id=post_id)
        ...
"""

from .codes import ErrorCode
from .exceptions import (
    EduConnectError,
    ProviderError,
    ProviderUnavailableError,
    ProviderAuthError,
    StoreWriteError,
    StoreReadError,
    StreamInterruptedError,
    ValidationError,
    NotFoundError,
    ConflictError,
)
from .response import (
    error_response,
    success_response,
)
from .handlers import (
    log_error,
    register_exception_handlers,
    status_for,
)

__all__ = [
    # Error codes
    "ErrorCode",
    # Exceptions
    "EduConnectError",
    "ProviderError",
    "ProviderUnavailableError",
    "ProviderAuthError",
    "StoreWriteError",
    "StoreReadError",
    "StreamInterruptedError",
    "ValidationError",
    "NotFoundError",
    "ConflictError",
    # Response builders
    "error_response",
    "success_response",
    # Handlers
    "log_error",
    "register_exception_handlers",
    "status_for",
]
