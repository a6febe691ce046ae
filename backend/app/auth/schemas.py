"""Pydantic schemas for authentication APIs."""
from __future__ import annotations

from datetime import datetime
from typing import Annotated, List, Optional

from email_validator import EmailNotValidError, validate_email
from pydantic import AfterValidator, BaseModel, ConfigDict, Field

from backend.app.auth.enums import AccountStatus, AccountType

# bcrypt only considers the first 72 bytes of a password.
PASSWORD_MAX_LENGTH = 72


def _check_email(value: str) -> str:
    """Validate the address syntax and return it exactly as submitted."""

    try:
        validate_email(value, check_deliverability=False)
    except EmailNotValidError as exc:
        raise ValueError(str(exc)) from exc
    return value


# Addresses are stored and compared as submitted, so no normalization happens here.
SubmittedEmail = Annotated[str, AfterValidator(_check_email)]


class _FrozenModel(BaseModel):
    """Base immutable schema."""

    model_config = ConfigDict(frozen=True)


class AccountProfile(_FrozenModel):
    """Public account information exposed through the API."""

    id: str = Field(..., min_length=1)
    account_type: AccountType
    full_name: str
    professional_title: Optional[str] = None
    email: str
    is_verified: bool
    status: AccountStatus
    profile_status: int
    profile_picture: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class AccountSummary(_FrozenModel):
    """Directory entry listing an account's public fields."""

    full_name: str
    email: str
    profile_picture: Optional[str] = None


class AccountDirectoryResponse(_FrozenModel):
    """Response payload listing all accounts."""

    accounts: List[AccountSummary]


class MessageResponse(_FrozenModel):
    """Response payload carrying a human readable outcome."""

    message: str = Field(..., min_length=1)


class TokenPair(_FrozenModel):
    """Access and refresh tokens returned after authentication."""

    access_token: str = Field(..., min_length=1)
    refresh_token: str = Field(..., min_length=1)
    token_type: str = Field("bearer", min_length=1)
    expires_in: int = Field(..., ge=1)


class LoginResponse(_FrozenModel):
    """Response payload returned after a successful login."""

    message: str = Field(..., min_length=1)
    account: AccountProfile
    tokens: TokenPair


class AccessTokenResponse(_FrozenModel):
    """Response payload when exchanging a refresh token for an access token."""

    message: str = Field(..., min_length=1)
    access_token: str = Field(..., min_length=1)
    token_type: str = Field("bearer", min_length=1)
    expires_in: int = Field(..., ge=1)


class ProfileResponse(_FrozenModel):
    """Response payload returned after a profile update."""

    message: str = Field(..., min_length=1)
    account: AccountProfile


class RegisterRequest(BaseModel):
    """Registration input payload."""

    account_type: AccountType = AccountType.INDIVIDUAL
    full_name: str = Field(..., min_length=1, max_length=255)
    professional_title: Optional[str] = Field(default=None, max_length=255)
    email: SubmittedEmail
    password: str = Field(..., min_length=1, max_length=PASSWORD_MAX_LENGTH)
    confirm_password: str = Field(..., min_length=1, max_length=PASSWORD_MAX_LENGTH)


class VerifyOTPRequest(BaseModel):
    """OTP verification payload."""

    email: SubmittedEmail
    otp: str = Field(..., min_length=1, max_length=16)


class LoginRequest(BaseModel):
    """Login request payload."""

    email: SubmittedEmail
    password: str = Field(..., min_length=1, max_length=PASSWORD_MAX_LENGTH)


class RefreshRequest(BaseModel):
    """Refresh token request payload; the cookie is used when ``token`` is absent."""

    token: Optional[str] = None


class ForgotPasswordRequest(BaseModel):
    """Password reset initiation payload."""

    email: SubmittedEmail


class ResetPasswordRequest(BaseModel):
    """Password reset completion payload."""

    email: SubmittedEmail
    otp: str = Field(..., min_length=1, max_length=16)
    new_password: str = Field(..., min_length=1, max_length=PASSWORD_MAX_LENGTH)


class UpdateProfileRequest(BaseModel):
    """Profile update payload; blank fields keep their current value."""

    full_name: Optional[str] = Field(default=None, max_length=255)
    profile_picture: Optional[str] = Field(default=None, max_length=1024)


class ChangePasswordRequest(BaseModel):
    """Password change payload for an authenticated account."""

    old_password: str = Field(..., min_length=1, max_length=PASSWORD_MAX_LENGTH)
    new_password: str = Field(..., min_length=1, max_length=PASSWORD_MAX_LENGTH)


__all__ = [
    "SubmittedEmail",
    "AccountProfile",
    "AccountSummary",
    "AccountDirectoryResponse",
    "MessageResponse",
    "TokenPair",
    "LoginResponse",
    "AccessTokenResponse",
    "ProfileResponse",
    "RegisterRequest",
    "VerifyOTPRequest",
    "LoginRequest",
    "RefreshRequest",
    "ForgotPasswordRequest",
    "ResetPasswordRequest",
    "UpdateProfileRequest",
    "ChangePasswordRequest",
]
