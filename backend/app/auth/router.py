"""FastAPI router for authentication endpoints."""
from __future__ import annotations

from typing import AsyncIterator, Optional, cast

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from backend.app.auth.errors import AuthServiceError
from backend.app.auth.repository import AuthRepository
from backend.app.auth.schemas import (
    AccessTokenResponse,
    AccountDirectoryResponse,
    ChangePasswordRequest,
    ForgotPasswordRequest,
    LoginRequest,
    LoginResponse,
    MessageResponse,
    ProfileResponse,
    RefreshRequest,
    RegisterRequest,
    ResetPasswordRequest,
    UpdateProfileRequest,
    VerifyOTPRequest,
)
from backend.app.auth.service import AuthService
from backend.app.auth.utils import EmailDispatcher, JWTManager
from backend.app.config import AppConfig, AuthConfig

router = APIRouter(prefix="/api/auth", tags=["auth"])

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login")


def _status_from_reason(reason: str) -> int:
    """Translate service error reasons into HTTP status codes."""

    mapping = {
        "bad_request": status.HTTP_400_BAD_REQUEST,
        "unauthorized": status.HTTP_401_UNAUTHORIZED,
        "forbidden": status.HTTP_403_FORBIDDEN,
        "not_found": status.HTTP_404_NOT_FOUND,
        "server_error": status.HTTP_500_INTERNAL_SERVER_ERROR,
    }
    return mapping.get(reason, status.HTTP_400_BAD_REQUEST)


def _http_error(exc: AuthServiceError) -> HTTPException:
    return HTTPException(status_code=_status_from_reason(exc.reason), detail=str(exc))


def get_app_config(request: Request) -> AppConfig:
    """Resolve the application configuration from the application state."""

    return request.app.state.app_config


def get_auth_config(request: Request) -> AuthConfig:
    """Resolve the auth configuration from the application state."""

    return request.app.state.auth_config


async def get_auth_session(request: Request) -> AsyncIterator[AsyncSession]:
    """Yield an auth database session."""

    session_factory = cast(
        async_sessionmaker[AsyncSession], request.app.state.auth_session_factory
    )
    async with session_factory() as session:
        yield session


def get_jwt_manager(request: Request) -> JWTManager:
    """Return the JWT manager stored on the app state."""

    return request.app.state.jwt_manager


def get_email_dispatcher(request: Request) -> EmailDispatcher:
    """Return the email dispatcher stored on the app state."""

    return request.app.state.email_dispatcher


async def get_auth_service(
    session: AsyncSession = Depends(get_auth_session),
    config: AuthConfig = Depends(get_auth_config),
    jwt_manager: JWTManager = Depends(get_jwt_manager),
    dispatcher: EmailDispatcher = Depends(get_email_dispatcher),
) -> AuthService:
    """Construct an AuthService for the current request."""

    repository = AuthRepository(session)
    return AuthService(
        config=config,
        repository=repository,
        jwt_manager=jwt_manager,
        email_dispatcher=dispatcher,
    )


async def get_current_account_id(
    token: str = Depends(oauth2_scheme),
    service: AuthService = Depends(get_auth_service),
) -> str:
    """Validate the bearer access token and return the caller's account id."""

    try:
        return service.authenticate(token)
    except AuthServiceError as exc:
        raise _http_error(exc) from exc


def _set_refresh_cookie(response: Response, config: AppConfig, token: str) -> None:
    cookie = config.auth.cookie
    response.set_cookie(
        key=cookie.name,
        value=token,
        max_age=int(config.auth.jwt.refresh_token_ttl.total_seconds()),
        httponly=True,
        secure=config.app.is_production,
        samesite=cookie.same_site,
    )


@router.post("/register", response_model=MessageResponse)
async def register(
    payload: RegisterRequest, service: AuthService = Depends(get_auth_service)
) -> MessageResponse:
    """Register a new account and email its verification OTP."""

    try:
        return await service.register_user(payload)
    except AuthServiceError as exc:
        raise _http_error(exc) from exc


@router.post("/verify-otp", response_model=MessageResponse)
async def verify_otp(
    payload: VerifyOTPRequest, service: AuthService = Depends(get_auth_service)
) -> MessageResponse:
    """Verify an account using the emailed OTP."""

    try:
        return await service.verify_otp(payload)
    except AuthServiceError as exc:
        raise _http_error(exc) from exc


@router.post("/login", response_model=LoginResponse)
async def login(
    payload: LoginRequest,
    response: Response,
    service: AuthService = Depends(get_auth_service),
    config: AppConfig = Depends(get_app_config),
) -> LoginResponse:
    """Authenticate credentials, set the refresh cookie and return the token pair."""

    try:
        result = await service.login(payload)
    except AuthServiceError as exc:
        raise _http_error(exc) from exc
    _set_refresh_cookie(response, config, result.tokens.refresh_token)
    return result


@router.post("/refresh-token", response_model=AccessTokenResponse)
async def refresh_token(
    request: Request,
    payload: Optional[RefreshRequest] = None,
    service: AuthService = Depends(get_auth_service),
    config: AuthConfig = Depends(get_auth_config),
) -> AccessTokenResponse:
    """Issue a new access token from the body token or, failing that, the cookie."""

    token = payload.token if payload is not None else None
    if not token:
        token = request.cookies.get(config.cookie.name)
    try:
        return await service.refresh_access_token(token)
    except AuthServiceError as exc:
        raise _http_error(exc) from exc


@router.post("/logout", response_model=MessageResponse)
async def logout(
    response: Response,
    service: AuthService = Depends(get_auth_service),
    config: AppConfig = Depends(get_app_config),
) -> MessageResponse:
    """Clear the refresh cookie."""

    result = await service.logout()
    response.delete_cookie(
        key=config.auth.cookie.name,
        httponly=True,
        secure=config.app.is_production,
        samesite=config.auth.cookie.same_site,
    )
    return result


@router.post("/forgot-password", response_model=MessageResponse)
async def forgot_password(
    payload: ForgotPasswordRequest, service: AuthService = Depends(get_auth_service)
) -> MessageResponse:
    """Email a password reset OTP."""

    try:
        return await service.forgot_password(payload)
    except AuthServiceError as exc:
        raise _http_error(exc) from exc


@router.post("/reset-password", response_model=MessageResponse)
async def reset_password(
    payload: ResetPasswordRequest, service: AuthService = Depends(get_auth_service)
) -> MessageResponse:
    """Reset the password using a valid OTP."""

    try:
        return await service.reset_password(payload)
    except AuthServiceError as exc:
        raise _http_error(exc) from exc


@router.post("/resend-otp/{email}", response_model=MessageResponse)
async def resend_otp(email: str, service: AuthService = Depends(get_auth_service)) -> MessageResponse:
    """Send a fresh verification OTP to an unverified account."""

    try:
        return await service.resend_otp(email)
    except AuthServiceError as exc:
        raise _http_error(exc) from exc


@router.get("/users", response_model=AccountDirectoryResponse)
async def list_users(
    service: AuthService = Depends(get_auth_service),
    _account_id: str = Depends(get_current_account_id),
) -> AccountDirectoryResponse:
    """List the public fields of every account."""

    return await service.list_accounts()


@router.put("/profile", response_model=ProfileResponse)
async def update_profile(
    payload: UpdateProfileRequest,
    service: AuthService = Depends(get_auth_service),
    account_id: str = Depends(get_current_account_id),
) -> ProfileResponse:
    """Update the caller's profile."""

    try:
        return await service.update_profile(account_id, payload)
    except AuthServiceError as exc:
        raise _http_error(exc) from exc


@router.put("/change-password", response_model=MessageResponse)
async def change_password(
    payload: ChangePasswordRequest,
    service: AuthService = Depends(get_auth_service),
    account_id: str = Depends(get_current_account_id),
) -> MessageResponse:
    """Change the caller's password."""

    try:
        return await service.change_password(account_id, payload)
    except AuthServiceError as exc:
        raise _http_error(exc) from exc


@router.delete("/account", response_model=MessageResponse)
async def delete_account(
    service: AuthService = Depends(get_auth_service),
    account_id: str = Depends(get_current_account_id),
) -> MessageResponse:
    """Delete the caller's account and its applications."""

    try:
        return await service.delete_account(account_id)
    except AuthServiceError as exc:
        raise _http_error(exc) from exc


__all__ = [
    "router",
    "get_current_account_id",
    "get_auth_service",
    "get_auth_session",
    "get_auth_config",
    "get_app_config",
]
