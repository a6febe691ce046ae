"""Error taxonomy raised by the authentication service.

Every error carries a ``reason`` that the router translates into an HTTP
status code. Subclasses fix the default reason for their failure class; a few
call sites override it (for example a missing account is a ``bad_request``
during email lookups but ``not_found`` for authenticated profile operations).
"""
from __future__ import annotations

from typing import Optional


class AuthServiceError(RuntimeError):
    """Raised when authentication operations fail."""

    default_reason = "bad_request"

    def __init__(self, message: str, reason: Optional[str] = None) -> None:
        super().__init__(message)
        self.reason = reason or self.default_reason


class InvalidInputError(AuthServiceError):
    """Client input is inconsistent, e.g. password and confirmation differ."""


class ConflictError(AuthServiceError):
    """The email is already taken by an account or an organization."""


class NotFoundError(AuthServiceError):
    """No account matches the lookup."""


class InvalidCredentialsError(AuthServiceError):
    """Unknown account or wrong password; the two are indistinguishable."""


class NotVerifiedError(AuthServiceError):
    """The account has not completed OTP verification."""


class AlreadyVerifiedError(AuthServiceError):
    """The account is verified, so a verification OTP is meaningless."""


class ExpiredError(AuthServiceError):
    """The OTP is past its validity window."""


class InvalidOTPError(AuthServiceError):
    """The submitted OTP does not match the pending one."""


class SuspendedError(AuthServiceError):
    """The account is suspended and may not obtain tokens."""

    default_reason = "forbidden"


class UnauthorizedError(AuthServiceError):
    """A token is missing, malformed or expired."""

    default_reason = "unauthorized"


class ForbiddenError(AuthServiceError):
    """A refresh token is valid but no longer the account's live token."""

    default_reason = "forbidden"


class ServerError(AuthServiceError):
    """The store, the notifier or the token signer failed."""

    default_reason = "server_error"

    def __init__(self, message: str = "Server error", reason: Optional[str] = None) -> None:
        super().__init__(message, reason)


__all__ = [
    "AuthServiceError",
    "InvalidInputError",
    "ConflictError",
    "NotFoundError",
    "InvalidCredentialsError",
    "NotVerifiedError",
    "AlreadyVerifiedError",
    "ExpiredError",
    "InvalidOTPError",
    "SuspendedError",
    "UnauthorizedError",
    "ForbiddenError",
    "ServerError",
]
