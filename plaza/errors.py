"""
plaza.errors — Domain Error Taxonomy
=====================================

Every failure a caller can observe is one of these classes.  Each carries
the HTTP status it maps to and a stable ``code`` string; the API layer
turns them into ``{"error": code, "message": ...}`` bodies.  Services raise
them directly so the same rules apply to HTTP and realtime callers.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any


class PlazaError(Exception):
    """Base class for all domain errors."""

    status_code: int = 400
    code: str = "Error"
    default_message: str = "Request failed"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.default_message)
        self.message = message or self.default_message

    def payload(self) -> dict[str, Any]:
        return {"error": self.code, "message": self.message}

    def headers(self) -> dict[str, str] | None:
        """Extra HTTP response headers, if any."""
        return None


class ValidationError(PlazaError):
    code = "ValidationError"
    default_message = "Invalid request"

    def __init__(self, message: str | None = None, errors: list | None = None) -> None:
        super().__init__(message)
        self.errors = errors or []

    def payload(self) -> dict[str, Any]:
        body = super().payload()
        if self.errors:
            body["errors"] = self.errors
        return body


class Unauthenticated(PlazaError):
    status_code = 401
    code = "Unauthenticated"
    default_message = "Not authenticated"


class Forbidden(PlazaError):
    status_code = 403
    code = "Forbidden"
    default_message = "Access denied"


class AccountNotFound(PlazaError):
    status_code = 404
    code = "AccountNotFound"
    default_message = "Account not found"


class DuplicateAccount(PlazaError):
    status_code = 409
    code = "DuplicateAccount"
    default_message = "Username or email already exists"


class InvalidCredentials(PlazaError):
    code = "InvalidCredentials"
    default_message = "Invalid credentials"


class AccountBanned(PlazaError):
    status_code = 403
    code = "AccountBanned"
    default_message = "Account banned"

    def __init__(self, reason: str | None, expires: datetime | None) -> None:
        super().__init__()
        self.reason = reason
        self.expires = expires

    def payload(self) -> dict[str, Any]:
        body = super().payload()
        body["banReason"] = self.reason
        body["banExpires"] = self.expires.isoformat() if self.expires else None
        return body


class DuplicateCode(PlazaError):
    status_code = 409
    code = "DuplicateCode"
    default_message = "Promo code already exists"


class InvalidReward(PlazaError):
    code = "InvalidReward"
    default_message = "Reward must be a positive integer"


class CodeNotFound(PlazaError):
    status_code = 404
    code = "CodeNotFound"
    default_message = "Invalid code"


class CodeExhausted(PlazaError):
    status_code = 409
    code = "CodeExhausted"
    default_message = "Code has no uses left"


class RateLimited(PlazaError):
    status_code = 429
    code = "RateLimited"
    default_message = "Too many requests, try again later."

    def __init__(self, retry_after: int) -> None:
        super().__init__()
        self.retry_after = retry_after

    def payload(self) -> dict[str, Any]:
        body = super().payload()
        body["retryAfter"] = self.retry_after
        return body

    def headers(self) -> dict[str, str]:
        return {"Retry-After": str(self.retry_after)}


class InternalError(PlazaError):
    status_code = 500
    code = "InternalError"
    default_message = "Internal server error"
