"""
Error taxonomy for AI features.

Every error carries a short machine-readable `code` so hosts can branch on it
without matching class names.
"""

from __future__ import annotations


class AIFeaturesError(Exception):
    """Base exception for AI feature errors."""

    code = "ai_error"

    def __init__(self, message: str | None = None):
        self.message = message or self.__class__.__doc__ or self.code
        super().__init__(self.message)


class UnauthorizedError(AIFeaturesError):
    """User not authorized for AI features."""

    code = "unauthorized"


class NotConfiguredError(AIFeaturesError):
    """AI features are not configured."""

    code = "not_configured"


class InvalidResponseError(AIFeaturesError):
    """Invalid response from AI service."""

    code = "invalid_response"


class NetworkError(AIFeaturesError):
    """AI service is unreachable."""

    code = "network"


class ServerError(AIFeaturesError):
    """AI service returned an error."""

    code = "server"

    def __init__(
        self, message: str | None = None, status_code: int | None = None, retryable: bool = False
    ):
        super().__init__(message)
        self.status_code = status_code
        self.retryable = retryable


class RecordValidationError(AIFeaturesError):
    """Remote record failed validation."""

    code = "record_validation"

    def __init__(self, message: str | None = None, record_id: str | None = None):
        super().__init__(message)
        self.record_id = record_id


def is_retryable(error: BaseException) -> bool:
    """Transient failures only: connectivity, throttling, server-side 5xx."""
    if isinstance(error, NetworkError):
        return True
    if isinstance(error, ServerError):
        return error.retryable
    return False
