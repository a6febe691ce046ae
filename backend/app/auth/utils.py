"""Utilities for JWT handling, OTP generation, and email dispatch."""
from __future__ import annotations

import asyncio
import logging
import secrets
from datetime import datetime, timedelta, timezone
from email.message import EmailMessage
from typing import Any, Dict, Optional
from uuid import uuid4

from aiosmtplib import SMTPException, send
from jose import ExpiredSignatureError, JWTError, jwt

from backend.app.config import AuthJWTConfig, AuthOTPConfig, AuthSMTPConfig

LOGGER = logging.getLogger(__name__)

OTP_VERIFICATION_SUBJECT = "OTP Verification Code"
PASSWORD_RESET_SUBJECT = "Password Reset OTP"


class JWTManager:
    """Helper for encoding and decoding access and refresh JSON Web Tokens."""

    def __init__(self, config: AuthJWTConfig) -> None:
        self._config = config

    @property
    def access_token_ttl(self) -> timedelta:
        return self._config.access_token_ttl

    @property
    def refresh_token_ttl(self) -> timedelta:
        return self._config.refresh_token_ttl

    def create_access_token(
        self,
        subject: str,
        expires_delta: Optional[timedelta] = None,
        issued_at: Optional[datetime] = None,
    ) -> str:
        """Create a signed access token for the account identifier."""

        return self._encode(
            subject,
            secret=self._config.access_secret_key,
            ttl=expires_delta or self._config.access_token_ttl,
            issued_at=issued_at,
        )

    def create_refresh_token(
        self,
        subject: str,
        expires_delta: Optional[timedelta] = None,
        issued_at: Optional[datetime] = None,
    ) -> str:
        """Create a signed refresh token for the account identifier."""

        return self._encode(
            subject,
            secret=self._config.refresh_secret_key,
            ttl=expires_delta or self._config.refresh_token_ttl,
            issued_at=issued_at,
        )

    def decode_access_token(self, token: str) -> Dict[str, Any]:
        """Decode and validate an access token."""

        return jwt.decode(token, self._config.access_secret_key, algorithms=[self._config.algorithm])

    def decode_refresh_token(self, token: str) -> Dict[str, Any]:
        """Decode and validate a refresh token."""

        return jwt.decode(token, self._config.refresh_secret_key, algorithms=[self._config.algorithm])

    def _encode(
        self, subject: str, *, secret: str, ttl: timedelta, issued_at: Optional[datetime]
    ) -> str:
        now = issued_at or datetime.now(timezone.utc)
        payload: Dict[str, Any] = {
            "sub": subject,
            "iat": int(now.timestamp()),
            "exp": int((now + ttl).timestamp()),
            # Keeps two tokens minted in the same second distinct.
            "jti": uuid4().hex,
        }
        return jwt.encode(payload, secret, algorithm=self._config.algorithm)


def generate_otp(length: int = 6) -> str:
    """Generate a numeric one-time passcode using a CSPRNG."""

    if length < 1:
        msg = "OTP length must be positive"
        raise ValueError(msg)
    return "".join(str(secrets.randbelow(10)) for _ in range(length))


class NotificationError(RuntimeError):
    """Raised when an email could not be delivered."""


def build_otp_email(
    smtp_config: AuthSMTPConfig, recipient: str, subject: str, otp: str, ttl_minutes: int
) -> EmailMessage:
    """Render the one-time passcode email template."""

    message = EmailMessage()
    message["From"] = smtp_config.from_email
    message["To"] = recipient
    message["Subject"] = subject
    message.set_content(
        (
            "Hello,\n\n"
            f"Your TalentBridge verification code is: {otp}\n"
            f"The code expires in {ttl_minutes} minutes.\n\n"
            "If you did not request this code, please ignore this email."
        )
    )
    return message


class EmailDispatcher:
    """Send transactional authentication emails."""

    def __init__(self, smtp_config: AuthSMTPConfig, otp_config: AuthOTPConfig) -> None:
        self._smtp_config = smtp_config
        self._otp_config = otp_config

    async def send_otp_email(self, recipient: str, subject: str, otp: str) -> None:
        """Deliver an OTP email and wait for the SMTP exchange to finish.

        Raises:
            NotificationError: If delivery fails or exceeds the configured timeout.
        """

        message = build_otp_email(
            self._smtp_config, recipient, subject, otp, self._otp_config.ttl_minutes
        )
        try:
            await send(
                message,
                hostname=self._smtp_config.host,
                port=self._smtp_config.port,
                username=self._smtp_config.username or None,
                password=self._smtp_config.password or None,
                start_tls=self._smtp_config.use_tls,
                timeout=self._smtp_config.timeout_seconds,
            )
        except (SMTPException, OSError, asyncio.TimeoutError) as exc:
            LOGGER.warning(
                "Failed to send OTP email",
                extra={"subject": subject, "smtp_host": self._smtp_config.host},
            )
            raise NotificationError("Unable to deliver email") from exc


__all__ = [
    "JWTManager",
    "EmailDispatcher",
    "NotificationError",
    "build_otp_email",
    "generate_otp",
    "ExpiredSignatureError",
    "JWTError",
    "OTP_VERIFICATION_SUBJECT",
    "PASSWORD_RESET_SUBJECT",
]
