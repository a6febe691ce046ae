"""SQLAlchemy ORM models for authentication tables."""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional
from uuid import uuid4

from sqlalchemy import Boolean, DateTime, Integer, String, Text, Enum as SAEnum
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from backend.app.auth.enums import AccountStatus, AccountType

INITIAL_PROFILE_STATUS = 33
COMPLETED_PROFILE_STATUS = 100


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AuthBase(DeclarativeBase):
    """Base declarative class for authentication models."""


class Account(AuthBase):
    """Persisted user account."""

    __tablename__ = "accounts"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))
    account_type: Mapped[AccountType] = mapped_column(
        SAEnum(AccountType, name="account_type", native_enum=False, length=16),
        default=AccountType.INDIVIDUAL,
        nullable=False,
    )
    full_name: Mapped[str] = mapped_column(String(255))
    professional_title: Mapped[Optional[str]] = mapped_column(String(255))
    email: Mapped[str] = mapped_column(String(320), unique=True, index=True)
    hashed_password: Mapped[str] = mapped_column(String(255))
    is_verified: Mapped[bool] = mapped_column(Boolean, default=False)
    otp: Mapped[Optional[str]] = mapped_column(String(16))
    otp_created_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    # Only the most recently issued refresh token is honoured.
    refresh_token: Mapped[Optional[str]] = mapped_column(Text)
    status: Mapped[AccountStatus] = mapped_column(
        SAEnum(AccountStatus, name="account_status", native_enum=False, length=16),
        default=AccountStatus.NORMAL,
        nullable=False,
    )
    profile_status: Mapped[int] = mapped_column(Integer, default=INITIAL_PROFILE_STATUS)
    profile_picture: Mapped[Optional[str]] = mapped_column(String(1024))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow
    )


class Organization(AuthBase):
    """Organization record whose work email shares the account email namespace."""

    __tablename__ = "organizations"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))
    name: Mapped[str] = mapped_column(String(255))
    work_email: Mapped[str] = mapped_column(String(320), unique=True, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)


class Application(AuthBase):
    """Job application owned by an account."""

    __tablename__ = "applications"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(36), index=True)
    title: Mapped[str] = mapped_column(String(255), default="")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)


class ActivityLog(AuthBase):
    """Audit trail entry for account-level actions."""

    __tablename__ = "activity_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(36), index=True)
    action: Mapped[str] = mapped_column(String(64))
    description: Mapped[str] = mapped_column(String(255))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)


__all__ = [
    "AuthBase",
    "Account",
    "Organization",
    "Application",
    "ActivityLog",
    "AccountStatus",
    "AccountType",
    "INITIAL_PROFILE_STATUS",
    "COMPLETED_PROFILE_STATUS",
]
