"""Tests for authentication utilities and the account lifecycle service."""
from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from typing import List, Optional, Tuple

import pytest
from passlib.context import CryptContext
from pydantic import ValidationError
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine

from backend.app.auth.enums import AccountStatus, AccountType
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
from backend.app.auth.models import ActivityLog, Application, AuthBase, Organization
from backend.app.auth.repository import AuthRepository
from backend.app.auth.schemas import (
    ChangePasswordRequest,
    ForgotPasswordRequest,
    LoginRequest,
    RegisterRequest,
    ResetPasswordRequest,
    UpdateProfileRequest,
    VerifyOTPRequest,
)
from backend.app.auth.service import AuthService
from backend.app.auth.utils import (
    OTP_VERIFICATION_SUBJECT,
    PASSWORD_RESET_SUBJECT,
    JWTError,
    JWTManager,
    NotificationError,
    generate_otp,
)
from backend.app.config import AuthConfig, AuthJWTConfig, AuthOTPConfig, AuthSMTPConfig


class StubEmailDispatcher:
    """Collect emails instead of sending them over SMTP."""

    def __init__(self, fail: bool = False) -> None:
        self.messages: List[Tuple[str, str, str]] = []
        self._fail = fail

    async def send_otp_email(self, recipient: str, subject: str, otp: str) -> None:
        if self._fail:
            raise NotificationError("smtp unavailable")
        self.messages.append((recipient, subject, otp))

    @property
    def last_otp(self) -> str:
        return self.messages[-1][2]


def _jwt_config() -> AuthJWTConfig:
    return AuthJWTConfig(
        access_secret_key="access-secret-key-that-is-long-enough-0123456",
        refresh_secret_key="refresh-secret-key-that-is-long-enough-654321",
        algorithm="HS256",
        access_token_expires_minutes=60,
        refresh_token_expires_minutes=240,
    )


def _auth_config() -> AuthConfig:
    return AuthConfig(
        database_url="sqlite+aiosqlite:///:memory:",
        jwt=_jwt_config(),
        otp=AuthOTPConfig(length=6, ttl_minutes=15),
        smtp=AuthSMTPConfig(
            host="localhost",
            port=1025,
            username="",
            password="",
            use_tls=False,
            from_email="no-reply@example.com",
        ),
    )


async def _setup_repository() -> Tuple[AuthRepository, AsyncEngine]:
    engine = create_async_engine("sqlite+aiosqlite:///:memory:")
    async with engine.begin() as connection:
        await connection.run_sync(AuthBase.metadata.create_all)
    session_factory = async_sessionmaker(engine, expire_on_commit=False)
    session = session_factory()
    # Low bcrypt cost keeps the suite fast.
    repo = AuthRepository(session, CryptContext(schemes=["bcrypt"], bcrypt__rounds=4))
    return repo, engine


async def _teardown(repo: AuthRepository, engine: AsyncEngine) -> None:
    await repo.session.close()
    await engine.dispose()


def _service(repo: AuthRepository, dispatcher: Optional[StubEmailDispatcher] = None) -> AuthService:
    config = _auth_config()
    return AuthService(
        config,
        repo,
        JWTManager(config.jwt),
        dispatcher or StubEmailDispatcher(),
    )


def _register_payload(email: str = "a@x.com", password: str = "P1", confirm: str = "P1") -> RegisterRequest:
    return RegisterRequest(
        account_type=AccountType.INDIVIDUAL,
        full_name="Ada Lovelace",
        professional_title="Engineer",
        email=email,
        password=password,
        confirm_password=confirm,
    )


async def _register_and_verify(
    service: AuthService, dispatcher: StubEmailDispatcher, email: str = "a@x.com", password: str = "P1"
) -> None:
    await service.register_user(_register_payload(email, password, password))
    await service.verify_otp(VerifyOTPRequest(email=email, otp=dispatcher.last_otp))


def _wrong_otp(otp: str) -> str:
    return "".join("1" if char != "1" else "2" for char in otp)


def test_password_hashing_round_trip() -> None:
    async def _run() -> None:
        repo, engine = await _setup_repository()
        hashed = repo.hash_password("correct horse battery staple")
        assert hashed != "correct horse battery staple"
        assert repo.verify_password("correct horse battery staple", hashed)
        assert not repo.verify_password("wrong", hashed)
        assert not repo.verify_password("anything", None)
        await _teardown(repo, engine)

    asyncio.run(_run())


def test_password_length_restriction() -> None:
    """Passwords longer than bcrypt's limit should be rejected."""

    with pytest.raises(ValidationError):
        _register_payload(password="x" * 73, confirm="x" * 73)


def test_jwt_expiry_enforced() -> None:
    manager = JWTManager(_jwt_config())
    token = manager.create_access_token(
        "account-id",
        expires_delta=timedelta(seconds=1),
        issued_at=datetime.now(timezone.utc) - timedelta(seconds=5),
    )
    with pytest.raises(JWTError):
        manager.decode_access_token(token)


def test_access_and_refresh_tokens_use_separate_secrets() -> None:
    manager = JWTManager(_jwt_config())
    access = manager.create_access_token("account-id")
    refresh = manager.create_refresh_token("account-id")

    assert manager.decode_access_token(access)["sub"] == "account-id"
    assert manager.decode_refresh_token(refresh)["sub"] == "account-id"
    with pytest.raises(JWTError):
        manager.decode_refresh_token(access)
    with pytest.raises(JWTError):
        manager.decode_access_token(refresh)


def test_tokens_issued_in_same_instant_differ() -> None:
    manager = JWTManager(_jwt_config())
    issued_at = datetime.now(timezone.utc)
    first = manager.create_refresh_token("account-id", issued_at=issued_at)
    second = manager.create_refresh_token("account-id", issued_at=issued_at)
    assert first != second


def test_generate_otp_is_numeric() -> None:
    otp = generate_otp(6)
    assert len(otp) == 6
    assert otp.isdigit()
    with pytest.raises(ValueError):
        generate_otp(0)


def test_jwt_config_rejects_shared_secret() -> None:
    with pytest.raises(ValidationError):
        AuthJWTConfig(
            access_secret_key="same-secret-key-that-is-long-enough-000000",
            refresh_secret_key="same-secret-key-that-is-long-enough-000000",
        )


def test_register_stores_hash_and_sends_otp() -> None:
    async def _run() -> None:
        repo, engine = await _setup_repository()
        dispatcher = StubEmailDispatcher()
        service = _service(repo, dispatcher)

        response = await service.register_user(_register_payload())

        assert "OTP sent" in response.message
        account = await repo.get_account_by_email("a@x.com")
        assert account is not None
        assert account.hashed_password != "P1"
        assert repo.verify_password("P1", account.hashed_password)
        assert account.is_verified is False
        assert account.profile_status == 33
        assert account.refresh_token is None
        assert account.otp is not None and account.otp_created_at is not None
        assert dispatcher.messages == [("a@x.com", OTP_VERIFICATION_SUBJECT, account.otp)]
        await _teardown(repo, engine)

    asyncio.run(_run())


def test_register_password_mismatch_creates_nothing() -> None:
    async def _run() -> None:
        repo, engine = await _setup_repository()
        dispatcher = StubEmailDispatcher()
        service = _service(repo, dispatcher)

        with pytest.raises(InvalidInputError) as excinfo:
            await service.register_user(_register_payload(password="P1", confirm="P2"))

        assert excinfo.value.reason == "bad_request"
        assert await repo.get_account_by_email("a@x.com") is None
        assert dispatcher.messages == []
        await _teardown(repo, engine)

    asyncio.run(_run())


def test_register_rejects_account_and_organization_emails() -> None:
    async def _run() -> None:
        repo, engine = await _setup_repository()
        service = _service(repo)
        await service.register_user(_register_payload())
        repo.session.add(Organization(name="Acme", work_email="hr@acme.com"))
        await repo.commit()

        with pytest.raises(ConflictError):
            await service.register_user(_register_payload())
        with pytest.raises(ConflictError) as excinfo:
            await service.register_user(_register_payload(email="hr@acme.com"))
        assert "Organization" in str(excinfo.value)
        assert await repo.get_account_by_email("hr@acme.com") is None
        await _teardown(repo, engine)

    asyncio.run(_run())


def test_register_surfaces_email_failure_as_server_error() -> None:
    async def _run() -> None:
        repo, engine = await _setup_repository()
        service = _service(repo, StubEmailDispatcher(fail=True))

        with pytest.raises(ServerError) as excinfo:
            await service.register_user(_register_payload())

        assert excinfo.value.reason == "server_error"
        assert str(excinfo.value) == "Server error"
        await _teardown(repo, engine)

    asyncio.run(_run())


def test_register_keeps_email_exactly_as_submitted() -> None:
    async def _run() -> None:
        repo, engine = await _setup_repository()
        dispatcher = StubEmailDispatcher()
        service = _service(repo, dispatcher)

        await service.register_user(_register_payload(email="User@Example.COM"))

        account = await repo.get_account_by_email("User@Example.COM")
        assert account is not None
        assert account.email == "User@Example.COM"
        assert dispatcher.messages[-1][0] == "User@Example.COM"
        assert await repo.get_account_by_email("user@example.com") is None

        await service.resend_otp("User@Example.COM")
        assert len(dispatcher.messages) == 2
        await _teardown(repo, engine)

    asyncio.run(_run())


def test_register_rejects_malformed_email() -> None:
    with pytest.raises(ValidationError):
        _register_payload(email="not-an-address")


def test_register_concurrent_duplicate_reports_conflict(monkeypatch) -> None:
    async def _run() -> None:
        repo, engine = await _setup_repository()
        service = _service(repo)
        await service.register_user(_register_payload())

        async def _missing(_email: str) -> None:
            return None

        # Simulates a second request that passed the existence check before the first committed.
        monkeypatch.setattr(repo, "get_account_by_email", _missing)
        with pytest.raises(ConflictError) as excinfo:
            await service.register_user(_register_payload())
        monkeypatch.undo()

        assert str(excinfo.value) == "User already exists"
        assert excinfo.value.reason == "bad_request"
        assert len(await repo.list_accounts()) == 1
        await _teardown(repo, engine)

    asyncio.run(_run())


def test_verify_otp_rejects_wrong_code_then_accepts_correct_one() -> None:
    async def _run() -> None:
        repo, engine = await _setup_repository()
        dispatcher = StubEmailDispatcher()
        service = _service(repo, dispatcher)
        await service.register_user(_register_payload())
        otp = dispatcher.last_otp

        with pytest.raises(InvalidOTPError):
            await service.verify_otp(VerifyOTPRequest(email="a@x.com", otp=_wrong_otp(otp)))

        await service.verify_otp(VerifyOTPRequest(email="a@x.com", otp=otp))
        account = await repo.get_account_by_email("a@x.com")
        assert account is not None
        assert account.is_verified is True
        assert account.otp is None
        assert account.otp_created_at is None

        # A consumed OTP cannot be replayed.
        with pytest.raises(InvalidOTPError):
            await service.verify_otp(VerifyOTPRequest(email="a@x.com", otp=otp))
        await _teardown(repo, engine)

    asyncio.run(_run())


def test_verify_otp_expires_after_window() -> None:
    async def _run() -> None:
        repo, engine = await _setup_repository()
        dispatcher = StubEmailDispatcher()
        service = _service(repo, dispatcher)
        await service.register_user(_register_payload())
        account = await repo.get_account_by_email("a@x.com")
        assert account is not None
        account.otp_created_at = datetime.now(timezone.utc) - timedelta(minutes=15, seconds=5)
        await repo.commit()

        with pytest.raises(ExpiredError):
            await service.verify_otp(VerifyOTPRequest(email="a@x.com", otp=dispatcher.last_otp))
        assert account.is_verified is False
        await _teardown(repo, engine)

    asyncio.run(_run())


def test_verify_otp_unknown_email() -> None:
    async def _run() -> None:
        repo, engine = await _setup_repository()
        service = _service(repo)
        with pytest.raises(NotFoundError) as excinfo:
            await service.verify_otp(VerifyOTPRequest(email="ghost@x.com", otp="123456"))
        assert excinfo.value.reason == "bad_request"
        await _teardown(repo, engine)

    asyncio.run(_run())


def test_login_rejects_unknown_email_and_wrong_password_uniformly() -> None:
    async def _run() -> None:
        repo, engine = await _setup_repository()
        dispatcher = StubEmailDispatcher()
        service = _service(repo, dispatcher)
        await _register_and_verify(service, dispatcher)

        with pytest.raises(InvalidCredentialsError) as unknown:
            await service.login(LoginRequest(email="ghost@x.com", password="P1"))
        with pytest.raises(InvalidCredentialsError) as wrong:
            await service.login(LoginRequest(email="a@x.com", password="nope"))
        assert str(unknown.value) == str(wrong.value) == "Invalid credentials"
        await _teardown(repo, engine)

    asyncio.run(_run())


def test_login_requires_verified_account() -> None:
    async def _run() -> None:
        repo, engine = await _setup_repository()
        service = _service(repo)
        await service.register_user(_register_payload())

        with pytest.raises(NotVerifiedError):
            await service.login(LoginRequest(email="a@x.com", password="P1"))
        account = await repo.get_account_by_email("a@x.com")
        assert account is not None and account.refresh_token is None
        await _teardown(repo, engine)

    asyncio.run(_run())


def test_login_rejects_suspended_account() -> None:
    async def _run() -> None:
        repo, engine = await _setup_repository()
        dispatcher = StubEmailDispatcher()
        service = _service(repo, dispatcher)
        await _register_and_verify(service, dispatcher)
        account = await repo.get_account_by_email("a@x.com")
        assert account is not None
        account.status = AccountStatus.SUSPENDED
        await repo.commit()

        with pytest.raises(SuspendedError) as excinfo:
            await service.login(LoginRequest(email="a@x.com", password="P1"))
        assert excinfo.value.reason == "forbidden"
        assert account.refresh_token is None
        await _teardown(repo, engine)

    asyncio.run(_run())


def test_login_stores_refresh_token_and_returns_pair() -> None:
    async def _run() -> None:
        repo, engine = await _setup_repository()
        dispatcher = StubEmailDispatcher()
        service = _service(repo, dispatcher)
        await _register_and_verify(service, dispatcher)

        response = await service.login(LoginRequest(email="a@x.com", password="P1"))

        account = await repo.get_account_by_email("a@x.com")
        assert account is not None
        assert account.refresh_token == response.tokens.refresh_token
        assert response.tokens.expires_in == 3600
        assert response.account.email == "a@x.com"
        assert response.account.is_verified is True
        assert service.authenticate(response.tokens.access_token) == account.id
        await _teardown(repo, engine)

    asyncio.run(_run())


def test_second_login_invalidates_first_refresh_token() -> None:
    async def _run() -> None:
        repo, engine = await _setup_repository()
        dispatcher = StubEmailDispatcher()
        service = _service(repo, dispatcher)
        await _register_and_verify(service, dispatcher)

        first = await service.login(LoginRequest(email="a@x.com", password="P1"))
        second = await service.login(LoginRequest(email="a@x.com", password="P1"))

        with pytest.raises(ForbiddenError) as excinfo:
            await service.refresh_access_token(first.tokens.refresh_token)
        assert str(excinfo.value) == "Invalid refresh token"

        refreshed = await service.refresh_access_token(second.tokens.refresh_token)
        assert refreshed.access_token
        assert not hasattr(refreshed, "refresh_token")
        account = await repo.get_account_by_email("a@x.com")
        assert account is not None
        assert account.refresh_token == second.tokens.refresh_token
        await _teardown(repo, engine)

    asyncio.run(_run())


def test_refresh_rejects_missing_invalid_and_expired_tokens() -> None:
    async def _run() -> None:
        repo, engine = await _setup_repository()
        dispatcher = StubEmailDispatcher()
        service = _service(repo, dispatcher)
        await _register_and_verify(service, dispatcher)
        account = await repo.get_account_by_email("a@x.com")
        assert account is not None

        with pytest.raises(UnauthorizedError):
            await service.refresh_access_token(None)
        with pytest.raises(UnauthorizedError):
            await service.refresh_access_token("not-a-jwt")

        manager = JWTManager(_jwt_config())
        expired = manager.create_refresh_token(
            account.id,
            expires_delta=timedelta(seconds=1),
            issued_at=datetime.now(timezone.utc) - timedelta(minutes=5),
        )
        account.refresh_token = expired
        await repo.commit()
        with pytest.raises(UnauthorizedError) as excinfo:
            await service.refresh_access_token(expired)
        assert "expired" in str(excinfo.value)
        await _teardown(repo, engine)

    asyncio.run(_run())


def test_refresh_rejects_suspended_account() -> None:
    async def _run() -> None:
        repo, engine = await _setup_repository()
        dispatcher = StubEmailDispatcher()
        service = _service(repo, dispatcher)
        await _register_and_verify(service, dispatcher)
        login = await service.login(LoginRequest(email="a@x.com", password="P1"))
        account = await repo.get_account_by_email("a@x.com")
        assert account is not None
        account.status = AccountStatus.SUSPENDED
        await repo.commit()

        with pytest.raises(SuspendedError):
            await service.refresh_access_token(login.tokens.refresh_token)
        await _teardown(repo, engine)

    asyncio.run(_run())


def test_logout_keeps_stored_refresh_token() -> None:
    async def _run() -> None:
        repo, engine = await _setup_repository()
        dispatcher = StubEmailDispatcher()
        service = _service(repo, dispatcher)
        await _register_and_verify(service, dispatcher)
        login = await service.login(LoginRequest(email="a@x.com", password="P1"))

        await service.logout()

        account = await repo.get_account_by_email("a@x.com")
        assert account is not None
        assert account.refresh_token == login.tokens.refresh_token
        await _teardown(repo, engine)

    asyncio.run(_run())


def test_reset_password_requires_valid_otp() -> None:
    async def _run() -> None:
        repo, engine = await _setup_repository()
        dispatcher = StubEmailDispatcher()
        service = _service(repo, dispatcher)
        await _register_and_verify(service, dispatcher)

        # No OTP is pending once verification consumed it.
        with pytest.raises(InvalidOTPError):
            await service.reset_password(
                ResetPasswordRequest(email="a@x.com", otp="000000", new_password="P2")
            )

        await service.forgot_password(ForgotPasswordRequest(email="a@x.com"))
        assert dispatcher.messages[-1][1] == PASSWORD_RESET_SUBJECT
        otp = dispatcher.last_otp

        with pytest.raises(InvalidOTPError):
            await service.reset_password(
                ResetPasswordRequest(email="a@x.com", otp=_wrong_otp(otp), new_password="P2")
            )
        with pytest.raises(NotFoundError):
            await service.reset_password(
                ResetPasswordRequest(email="ghost@x.com", otp=otp, new_password="P2")
            )

        await service.reset_password(
            ResetPasswordRequest(email="a@x.com", otp=otp, new_password="P2")
        )
        account = await repo.get_account_by_email("a@x.com")
        assert account is not None
        assert account.otp is None
        assert repo.verify_password("P2", account.hashed_password)
        with pytest.raises(InvalidCredentialsError):
            await service.login(LoginRequest(email="a@x.com", password="P1"))
        assert (await service.login(LoginRequest(email="a@x.com", password="P2"))).tokens
        await _teardown(repo, engine)

    asyncio.run(_run())


def test_reset_password_rejects_expired_otp() -> None:
    async def _run() -> None:
        repo, engine = await _setup_repository()
        dispatcher = StubEmailDispatcher()
        service = _service(repo, dispatcher)
        await _register_and_verify(service, dispatcher)
        await service.forgot_password(ForgotPasswordRequest(email="a@x.com"))
        account = await repo.get_account_by_email("a@x.com")
        assert account is not None
        account.otp_created_at = datetime.now(timezone.utc) - timedelta(minutes=20)
        await repo.commit()

        with pytest.raises(ExpiredError):
            await service.reset_password(
                ResetPasswordRequest(email="a@x.com", otp=dispatcher.last_otp, new_password="P2")
            )
        assert repo.verify_password("P1", account.hashed_password)
        await _teardown(repo, engine)

    asyncio.run(_run())


def test_forgot_password_unknown_email() -> None:
    async def _run() -> None:
        repo, engine = await _setup_repository()
        service = _service(repo)
        with pytest.raises(NotFoundError):
            await service.forgot_password(ForgotPasswordRequest(email="ghost@x.com"))
        await _teardown(repo, engine)

    asyncio.run(_run())


def test_resend_otp_only_for_unverified_accounts() -> None:
    async def _run() -> None:
        repo, engine = await _setup_repository()
        dispatcher = StubEmailDispatcher()
        service = _service(repo, dispatcher)
        await service.register_user(_register_payload())

        await service.resend_otp("a@x.com")
        assert len(dispatcher.messages) == 2
        account = await repo.get_account_by_email("a@x.com")
        assert account is not None
        assert account.otp == dispatcher.last_otp

        await service.verify_otp(VerifyOTPRequest(email="a@x.com", otp=dispatcher.last_otp))
        with pytest.raises(AlreadyVerifiedError):
            await service.resend_otp("a@x.com")
        with pytest.raises(NotFoundError):
            await service.resend_otp("ghost@x.com")
        await _teardown(repo, engine)

    asyncio.run(_run())


def test_update_profile_completes_profile_and_logs_activity() -> None:
    async def _run() -> None:
        repo, engine = await _setup_repository()
        dispatcher = StubEmailDispatcher()
        service = _service(repo, dispatcher)
        await _register_and_verify(service, dispatcher)
        account = await repo.get_account_by_email("a@x.com")
        assert account is not None

        response = await service.update_profile(
            account.id, UpdateProfileRequest(full_name="", profile_picture="https://cdn/p.png")
        )

        assert response.account.full_name == "Ada Lovelace"
        assert response.account.profile_picture == "https://cdn/p.png"
        assert response.account.profile_status == 100
        logs = (await repo.session.execute(select(ActivityLog))).scalars().all()
        assert [entry.action for entry in logs] == ["update profile"]

        with pytest.raises(NotFoundError) as excinfo:
            await service.update_profile("missing-id", UpdateProfileRequest(full_name="X"))
        assert excinfo.value.reason == "not_found"
        await _teardown(repo, engine)

    asyncio.run(_run())


def test_change_password_checks_old_password() -> None:
    async def _run() -> None:
        repo, engine = await _setup_repository()
        dispatcher = StubEmailDispatcher()
        service = _service(repo, dispatcher)
        await _register_and_verify(service, dispatcher)
        account = await repo.get_account_by_email("a@x.com")
        assert account is not None

        with pytest.raises(InvalidCredentialsError) as excinfo:
            await service.change_password(
                account.id, ChangePasswordRequest(old_password="bad", new_password="P2")
            )
        assert str(excinfo.value) == "Old password is incorrect"

        await service.change_password(
            account.id, ChangePasswordRequest(old_password="P1", new_password="P2")
        )
        assert repo.verify_password("P2", account.hashed_password)
        await _teardown(repo, engine)

    asyncio.run(_run())


def test_delete_account_removes_owned_applications() -> None:
    async def _run() -> None:
        repo, engine = await _setup_repository()
        dispatcher = StubEmailDispatcher()
        service = _service(repo, dispatcher)
        await _register_and_verify(service, dispatcher)
        await _register_and_verify(service, dispatcher, email="b@x.com")
        owner = await repo.get_account_by_email("a@x.com")
        other = await repo.get_account_by_email("b@x.com")
        assert owner is not None and other is not None
        owner_id = owner.id
        repo.session.add_all(
            [Application(user_id=owner_id, title=f"Role {index}") for index in range(3)]
            + [Application(user_id=other.id, title="Unrelated")]
        )
        await repo.commit()

        await service.delete_account(owner_id)

        assert await repo.get_account_by_id(owner_id) is None
        owned = await repo.session.execute(
            select(func.count()).select_from(Application).where(Application.user_id == owner_id)
        )
        assert owned.scalar_one() == 0
        remaining = await repo.session.execute(select(func.count()).select_from(Application))
        assert remaining.scalar_one() == 1
        with pytest.raises(NotFoundError):
            await service.delete_account(owner_id)
        await _teardown(repo, engine)

    asyncio.run(_run())


def test_list_accounts_returns_public_fields() -> None:
    async def _run() -> None:
        repo, engine = await _setup_repository()
        service = _service(repo)
        await service.register_user(_register_payload())
        await service.register_user(_register_payload(email="b@x.com"))

        directory = await service.list_accounts()

        assert [entry.email for entry in directory.accounts] == ["a@x.com", "b@x.com"]
        assert set(directory.accounts[0].model_dump()) == {"full_name", "email", "profile_picture"}
        await _teardown(repo, engine)

    asyncio.run(_run())


def test_authenticate_rejects_refresh_token() -> None:
    async def _run() -> None:
        repo, engine = await _setup_repository()
        service = _service(repo)
        refresh = JWTManager(_jwt_config()).create_refresh_token("account-id")
        with pytest.raises(UnauthorizedError):
            service.authenticate(refresh)
        await _teardown(repo, engine)

    asyncio.run(_run())
