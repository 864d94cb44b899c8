"""
Service-layer exceptions.

Services raise these; the app translates them into JSON error responses
carrying the exception's HTTP status.
"""

from __future__ import annotations

from typing import Any, Optional


class StreakrError(Exception):
    """Base exception for STREAKr service errors."""

    status_code = 500

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"ok": False, "error": self.message}
        payload.update(self.details)
        return payload


class ValidationError(StreakrError):
    status_code = 400


class AuthError(StreakrError):
    status_code = 401


class ForbiddenError(StreakrError):
    status_code = 403


class NotFoundError(StreakrError):
    status_code = 404


class ConflictError(StreakrError):
    """The request is valid but the current state does not allow it."""

    status_code = 409


class UpstreamError(StreakrError):
    """A third-party service (Squiggle, storage) failed or returned garbage."""

    status_code = 502
