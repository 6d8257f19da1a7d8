from __future__ import annotations

from typing import Any, Optional


class DomainError(Exception):
    """Base exception for business rule violations."""

    status_code = 400


class ValidationError(DomainError):
    """Raised when input data is invalid or violates domain rules."""


class AuthenticationError(DomainError):
    """Raised when login credentials are invalid."""

    status_code = 401

    def __init__(self, message: str, *, mfa_required: bool = False):
        super().__init__(message)
        self.mfa_required = mfa_required


class AuthorizationError(DomainError):
    """Raised when a user lacks permission for an action."""

    status_code = 403


class NotFoundError(DomainError):
    status_code = 404


class ConflictError(DomainError):
    status_code = 409


class RateLimitError(DomainError):
    status_code = 429


class QRCodeError(DomainError):
    """QR scanning failure tagged with a QRErrorCode value."""

    def __init__(self, message: str, code: str, details: Optional[Any] = None):
        super().__init__(message)
        self.code = code
        self.details = details
