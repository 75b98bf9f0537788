"""
Standard response builders for EduConnect.

Provides consistent JSON envelopes for both error and success paths
across the chat, post and analytics routes.
"""

from typing import Any, Optional
from .codes import ErrorCode
from .exceptions import EduConnectError


def error_response(error: EduConnectError | Exception, route: Optional[str] = None, include_context: bool = True) -> dict:
    """Build a standard error response dictionary.

    Args:
        error: The exception to convert to a response
        route: Optional route name for context
        include_context: Whether to include the context dict (disable for privacy)

    Returns:
        Standard error response dict with success=False

    Example:
        >>> from errors import ConflictError, error_response
        >>> err = ConflictError("Post already liked", interaction="like")
        >>> error_response(err, route="posts")
        {
            "success": False,
            "message": "Post already liked",
            "error": {
                "code": "CONFLICT_ALREADY_LIKED",
                "message": "Post already liked",
                "details": None,
                "route": "posts",
                "recoverable": True,
                "context": {"interaction": "like"}
            }
        }
    """
    if isinstance(error, EduConnectError):
        return {
            "success": False,
            "message": error.message,
            "error": {
                "code": error.code.value,
                "message": error.message,
                "details": error.details,
                "route": route,
                "recoverable": error.recoverable,
                "context": error.context if include_context else None,
            },
        }

    # Internal failures never leak their text
    return {
        "success": False,
        "message": "Internal server error",
        "error": {
            "code": ErrorCode.INTERNAL_UNEXPECTED.value,
            "message": "Internal server error",
            "details": None,
            "route": route,
            "recoverable": False,
            "context": None,
        },
    }


def success_response(data: Optional[dict] = None, **kwargs: Any) -> dict:
    """Build a standard success response dictionary.

    Example:
        >>> success_response(message="Post liked successfully")
        {"success": True, "message": "Post liked successfully"}

        >>> success_response({"posts": []})
        {"success": True, "posts": []}
    """
    response = {"success": True}
    if data:
        response.update(data)
    response.update(kwargs)
    return response
