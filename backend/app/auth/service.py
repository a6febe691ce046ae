"""Service layer orchestrating the account and session lifecycle.

An account moves from *unverified* (registration) to *verified* (OTP
confirmation); only verified, non-suspended accounts can log in. A login mints
an access token and a refresh token and stores the refresh token on the
account, replacing whatever was stored before. Refreshing checks the presented
token against that stored value, so only the latest login's refresh token is
honoured.
"""
from __future__ import annotations

import logging
import secrets
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from backend.app.auth.enums import AccountStatus
from backend.app.auth.errors import (
    AlreadyVerifiedError,
    ConflictError,
    ExpiredError,
    ForbiddenError,
    InvalidCredentialsError,
    InvalidInputError,
    InvalidOTPError,
    NotFoundError,
    NotVerifiedError,
    ServerError,
    SuspendedError,
    UnauthorizedError,
)
from backend.app.auth.models import COMPLETED_PROFILE_STATUS, Account
from backend.app.auth.repository import AuthRepository
from backend.app.auth.schemas import (
    AccessTokenResponse,
    AccountDirectoryResponse,
    AccountProfile,
    AccountSummary,
    ChangePasswordRequest,
    ForgotPasswordRequest,
    LoginRequest,
    LoginResponse,
    MessageResponse,
    ProfileResponse,
    RegisterRequest,
    ResetPasswordRequest,
    TokenPair,
    UpdateProfileRequest,
    VerifyOTPRequest,
)
from backend.app.auth.utils import (
    OTP_VERIFICATION_SUBJECT,
    PASSWORD_RESET_SUBJECT,
    EmailDispatcher,
    ExpiredSignatureError,
    JWTError,
    JWTManager,
    NotificationError,
    generate_otp,
)
from backend.app.config import AuthConfig

LOGGER = logging.getLogger(__name__)

INVALID_CREDENTIALS = "Invalid credentials"
USER_NOT_FOUND = "User not found"
INVALID_OTP = "Invalid OTP"
INVALID_REFRESH_TOKEN = "Invalid refresh token"


class AuthService:
    """Coordinate repository operations, OTP delivery and JWT generation."""

    def __init__(
        self,
        config: AuthConfig,
        repository: AuthRepository,
        jwt_manager: JWTManager,
        email_dispatcher: EmailDispatcher,
    ) -> None:
        self._config = config
        self._repository = repository
        self._jwt_manager = jwt_manager
        self._email_dispatcher = email_dispatcher

    @staticmethod
    def _now() -> datetime:
        """Return current UTC timestamp."""

        return datetime.now(timezone.utc)

    @staticmethod
    def _ensure_timezone(value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    @staticmethod
    def _to_profile(account: Account) -> AccountProfile:
        """Convert ORM account model into API schema."""

        return AccountProfile(
            id=account.id,
            account_type=account.account_type,
            full_name=account.full_name,
            professional_title=account.professional_title,
            email=account.email,
            is_verified=account.is_verified,
            status=account.status,
            profile_status=account.profile_status,
            profile_picture=account.profile_picture,
            created_at=account.created_at,
            updated_at=account.updated_at,
        )

    async def _commit(self, operation: str) -> None:
        """Commit the unit of work, translating store failures into ``ServerError``."""

        try:
            await self._repository.commit()
        except SQLAlchemyError as exc:
            LOGGER.exception("Failed to persist %s", operation)
            await self._repository.rollback()
            raise ServerError() from exc

    async def _send_otp(self, account: Account, otp: str, subject: str) -> None:
        try:
            await self._email_dispatcher.send_otp_email(account.email, subject, otp)
        except NotificationError as exc:
            LOGGER.error("OTP email delivery failed", extra={"account_id": account.id})
            raise ServerError() from exc

    def _issue_otp(self, account: Account) -> str:
        otp = generate_otp(self._config.otp.length)
        account.otp = otp
        account.otp_created_at = self._now()
        return otp

    def _check_otp(self, account: Account, otp: str) -> None:
        """Validate a submitted OTP against the account's pending one.

        Raises:
            InvalidOTPError: If no OTP is pending or the code does not match.
            ExpiredError: If the pending OTP is older than the configured window.
        """

        if account.otp is None or account.otp_created_at is None:
            raise InvalidOTPError(INVALID_OTP)
        elapsed = self._now() - self._ensure_timezone(account.otp_created_at)
        if elapsed > self._config.otp.ttl:
            raise ExpiredError("OTP has expired")
        if not secrets.compare_digest(account.otp, otp):
            raise InvalidOTPError(INVALID_OTP)

    async def _require_account(self, account_id: str) -> Account:
        account = await self._repository.get_account_by_id(account_id)
        if account is None:
            raise NotFoundError(USER_NOT_FOUND, reason="not_found")
        return account

    async def register_user(self, payload: RegisterRequest) -> MessageResponse:
        """Create an unverified account and email it a verification OTP."""

        if payload.password != payload.confirm_password:
            raise InvalidInputError("Passwords do not match")

        email = str(payload.email)
        if await self._repository.get_account_by_email(email) is not None:
            raise ConflictError("User already exists")
        if await self._repository.get_organization_by_work_email(email) is not None:
            raise ConflictError("Organization with this email already exists")

        try:
            account = await self._repository.create_account(
                email=email,
                password=payload.password,
                full_name=payload.full_name,
                professional_title=payload.professional_title,
                account_type=payload.account_type,
            )
            otp = self._issue_otp(account)
            await self._repository.flush()
        except IntegrityError as exc:
            await self._repository.rollback()
            raise ConflictError("User already exists") from exc
        except SQLAlchemyError as exc:
            LOGGER.exception("Failed to create account")
            await self._repository.rollback()
            raise ServerError() from exc
        await self._commit("registration")
        LOGGER.info("Registered account", extra={"account_id": account.id})

        await self._send_otp(account, otp, OTP_VERIFICATION_SUBJECT)
        return MessageResponse(message="Registration successful, OTP sent to your email")

    async def verify_otp(self, payload: VerifyOTPRequest) -> MessageResponse:
        """Mark the account verified when the submitted OTP is valid."""

        account = await self._repository.get_account_by_email(str(payload.email))
        if account is None:
            raise NotFoundError(USER_NOT_FOUND)
        self._check_otp(account, payload.otp)

        account.is_verified = True
        account.otp = None
        account.otp_created_at = None
        await self._commit("OTP verification")
        LOGGER.info("Account verified", extra={"account_id": account.id})
        return MessageResponse(message="OTP verified, account activated")

    async def login(self, payload: LoginRequest) -> LoginResponse:
        """Authenticate credentials and return a fresh token pair."""

        account = await self._repository.get_account_by_email(str(payload.email))
        hashed = account.hashed_password if account is not None else None
        if account is None or not self._repository.verify_password(payload.password, hashed):
            raise InvalidCredentialsError(INVALID_CREDENTIALS)
        if not account.is_verified:
            raise NotVerifiedError("Account not verified")
        if account.status == AccountStatus.SUSPENDED:
            LOGGER.info("Rejected login for suspended account", extra={"account_id": account.id})
            raise SuspendedError("Your account has been suspended. Please Contact Support.")

        access_token = self._jwt_manager.create_access_token(account.id)
        refresh_token = self._jwt_manager.create_refresh_token(account.id)
        # Overwriting the stored token ends any earlier session for this account.
        account.refresh_token = refresh_token
        await self._commit("login")

        pair = TokenPair(
            access_token=access_token,
            refresh_token=refresh_token,
            token_type="bearer",
            expires_in=int(self._jwt_manager.access_token_ttl.total_seconds()),
        )
        return LoginResponse(
            message="Login successful",
            account=self._to_profile(account),
            tokens=pair,
        )

    async def refresh_access_token(self, token: Optional[str]) -> AccessTokenResponse:
        """Exchange the account's live refresh token for a new access token.

        The refresh token itself is not rotated.
        """

        if not token:
            raise UnauthorizedError("No refresh token found")
        try:
            claims = self._jwt_manager.decode_refresh_token(token)
        except ExpiredSignatureError as exc:
            raise UnauthorizedError("Your session has expired. Please log in again.") from exc
        except JWTError as exc:
            raise UnauthorizedError("Session expired, please log in again") from exc

        subject = claims.get("sub")
        account = await self._repository.get_account_by_id(subject) if subject else None
        if (
            account is None
            or account.refresh_token is None
            or not secrets.compare_digest(account.refresh_token, token)
        ):
            raise ForbiddenError(INVALID_REFRESH_TOKEN)
        if account.status == AccountStatus.SUSPENDED:
            raise SuspendedError("Your account has been suspended. Please Contact Support.")

        access_token = self._jwt_manager.create_access_token(account.id)
        return AccessTokenResponse(
            message="Token refreshed",
            access_token=access_token,
            token_type="bearer",
            expires_in=int(self._jwt_manager.access_token_ttl.total_seconds()),
        )

    async def logout(self) -> MessageResponse:
        """Acknowledge a logout; the caller clears the refresh cookie.

        The stored refresh token is left in place and stays valid until the
        next login replaces it.
        """

        return MessageResponse(message="Logged out successfully")

    async def forgot_password(self, payload: ForgotPasswordRequest) -> MessageResponse:
        """Email a password reset OTP."""

        account = await self._repository.get_account_by_email(str(payload.email))
        if account is None:
            raise NotFoundError(USER_NOT_FOUND)
        otp = self._issue_otp(account)
        await self._commit("password reset OTP")
        await self._send_otp(account, otp, PASSWORD_RESET_SUBJECT)
        return MessageResponse(message="OTP sent to your email")

    async def reset_password(self, payload: ResetPasswordRequest) -> MessageResponse:
        """Replace the password once the reset OTP has been validated."""

        account = await self._repository.get_account_by_email(str(payload.email))
        if account is None:
            raise NotFoundError(USER_NOT_FOUND)
        self._check_otp(account, payload.otp)

        try:
            await self._repository.set_password(account, payload.new_password)
        except SQLAlchemyError as exc:
            LOGGER.exception("Failed to reset password")
            await self._repository.rollback()
            raise ServerError() from exc
        await self._commit("password reset")
        LOGGER.info("Password reset", extra={"account_id": account.id})
        return MessageResponse(message="Password reset successful")

    async def resend_otp(self, email: str) -> MessageResponse:
        """Issue a new verification OTP for an unverified account."""

        account = await self._repository.get_account_by_email(email)
        if account is None:
            raise NotFoundError(USER_NOT_FOUND)
        if account.is_verified:
            raise AlreadyVerifiedError("Account is already verified")
        otp = self._issue_otp(account)
        await self._commit("OTP resend")
        await self._send_otp(account, otp, OTP_VERIFICATION_SUBJECT)
        return MessageResponse(message="New OTP sent to your email")

    async def list_accounts(self) -> AccountDirectoryResponse:
        """Return the public directory fields of every account."""

        accounts = await self._repository.list_accounts()
        return AccountDirectoryResponse(
            accounts=[
                AccountSummary(
                    full_name=account.full_name,
                    email=account.email,
                    profile_picture=account.profile_picture,
                )
                for account in accounts
            ]
        )

    async def update_profile(
        self, account_id: str, payload: UpdateProfileRequest
    ) -> ProfileResponse:
        """Update the caller's name and picture and mark the profile complete."""

        account = await self._require_account(account_id)
        account.full_name = payload.full_name or account.full_name
        account.profile_picture = payload.profile_picture or account.profile_picture
        account.profile_status = COMPLETED_PROFILE_STATUS
        try:
            await self._repository.record_activity(
                account.id, "update profile", "User updated profile successfully"
            )
        except SQLAlchemyError as exc:
            LOGGER.exception("Failed to record profile update")
            await self._repository.rollback()
            raise ServerError() from exc
        await self._commit("profile update")
        return ProfileResponse(
            message="Profile updated successfully", account=self._to_profile(account)
        )

    async def change_password(
        self, account_id: str, payload: ChangePasswordRequest
    ) -> MessageResponse:
        """Replace the caller's password after checking the current one."""

        account = await self._require_account(account_id)
        if not self._repository.verify_password(payload.old_password, account.hashed_password):
            raise InvalidCredentialsError("Old password is incorrect")
        try:
            await self._repository.set_password(account, payload.new_password)
            await self._repository.record_activity(
                account.id, "change password", "User changed password successfully"
            )
        except SQLAlchemyError as exc:
            LOGGER.exception("Failed to change password")
            await self._repository.rollback()
            raise ServerError() from exc
        await self._commit("password change")
        return MessageResponse(message="Password changed successfully")

    async def delete_account(self, account_id: str) -> MessageResponse:
        """Delete the caller's account together with the applications it owns."""

        account = await self._require_account(account_id)
        try:
            removed = await self._repository.delete_account(account)
        except SQLAlchemyError as exc:
            LOGGER.exception("Failed to delete account", extra={"account_id": account_id})
            await self._repository.rollback()
            raise ServerError() from exc
        await self._commit("account deletion")
        LOGGER.info(
            "Deleted account",
            extra={"account_id": account_id, "applications_removed": removed},
        )
        return MessageResponse(message="User account deleted successfully")

    def authenticate(self, token: str) -> str:
        """Validate a bearer access token and return the account identifier."""

        try:
            payload = self._jwt_manager.decode_access_token(token)
        except JWTError as exc:
            raise UnauthorizedError("Invalid access token") from exc

        subject = payload.get("sub")
        if not subject:
            raise UnauthorizedError("Invalid access token")
        return str(subject)


__all__ = ["AuthService"]
