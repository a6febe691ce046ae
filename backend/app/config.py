"""Configuration loader for the TalentBridge authentication backend."""
from __future__ import annotations

import logging
import os
from datetime import timedelta
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Optional

from typing_extensions import Literal

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

LOGGER = logging.getLogger(__name__)

REPO_ROOT = Path(__file__).resolve().parents[2]
DEFAULT_ENV_FILE = REPO_ROOT / ".env"

# Environment variable -> (section path, key) inside the raw YAML mapping.
ENV_OVERRIDES = {
    "TALENTBRIDGE_ENVIRONMENT": (("app",), "environment"),
    "TALENTBRIDGE_DATABASE_URL": (("auth",), "database_url"),
    "TALENTBRIDGE_JWT_SECRET": (("auth", "jwt"), "access_secret_key"),
    "TALENTBRIDGE_REFRESH_SECRET": (("auth", "jwt"), "refresh_secret_key"),
    "TALENTBRIDGE_SMTP_HOST": (("auth", "smtp"), "host"),
    "TALENTBRIDGE_SMTP_USERNAME": (("auth", "smtp"), "username"),
    "TALENTBRIDGE_SMTP_PASSWORD": (("auth", "smtp"), "password"),
    "TALENTBRIDGE_LOG_LEVEL": (("logging",), "level"),
}


class ConfigError(RuntimeError):
    """Raised when configuration cannot be loaded."""


class _FrozenModel(BaseModel):
    """Base model enforcing immutability for config sections."""

    model_config = ConfigDict(frozen=True)


class ApplicationConfig(_FrozenModel):
    """Service identity and deployment environment."""

    name: str = Field(..., min_length=1)
    version: str = Field(..., min_length=1)
    environment: Literal["development", "test", "production"] = "development"
    allowed_origins: list[str] = Field(default_factory=list)

    @property
    def is_production(self) -> bool:
        """Return whether the service runs in a production environment."""

        return self.environment == "production"


class LoggingConfig(_FrozenModel):
    """Process-wide logging settings."""

    level: str = Field("INFO", min_length=1)
    format: str = Field("[%(levelname)s] %(name)s: %(message)s", min_length=1)


class AuthJWTConfig(_FrozenModel):
    """JWT signing settings for access and refresh tokens."""

    access_secret_key: str = Field(..., min_length=32)
    refresh_secret_key: str = Field(..., min_length=32)
    algorithm: str = Field("HS256", min_length=1)
    access_token_expires_minutes: int = Field(60, ge=1)
    refresh_token_expires_minutes: int = Field(240, ge=1)

    @model_validator(mode="after")
    def _validate_secrets(self) -> "AuthJWTConfig":
        if self.access_secret_key == self.refresh_secret_key:
            msg = "auth.jwt access and refresh secrets must differ"
            raise ValueError(msg)
        return self

    @property
    def access_token_ttl(self) -> timedelta:
        """Return the configured access token lifetime."""

        return timedelta(minutes=self.access_token_expires_minutes)

    @property
    def refresh_token_ttl(self) -> timedelta:
        """Return the configured refresh token lifetime."""

        return timedelta(minutes=self.refresh_token_expires_minutes)


class AuthOTPConfig(_FrozenModel):
    """One-time passcode settings."""

    length: int = Field(6, ge=4, le=10)
    ttl_minutes: int = Field(15, ge=1)

    @property
    def ttl(self) -> timedelta:
        """Return the OTP validity window."""

        return timedelta(minutes=self.ttl_minutes)


class AuthSMTPConfig(_FrozenModel):
    """SMTP credentials for transactional email delivery."""

    host: str = Field(..., min_length=1)
    port: int = Field(..., ge=1, le=65535)
    username: str = Field(default="")
    password: str = Field(default="")
    use_tls: bool = False
    from_email: str = Field(..., min_length=3)
    timeout_seconds: float = Field(10.0, gt=0)


class AuthCookieConfig(_FrozenModel):
    """Refresh token cookie settings."""

    name: str = Field("refreshToken", min_length=1)
    same_site: Literal["strict", "lax", "none"] = "strict"


class AuthConfig(_FrozenModel):
    """Top-level authentication configuration."""

    database_url: str = Field(..., min_length=1)
    database_pool_timeout_seconds: float = Field(10.0, gt=0)
    jwt: AuthJWTConfig
    otp: AuthOTPConfig = Field(default_factory=AuthOTPConfig)
    smtp: AuthSMTPConfig
    cookie: AuthCookieConfig = Field(default_factory=AuthCookieConfig)


class AppConfig(_FrozenModel):
    """Top-level application configuration composed from config.yaml."""

    app: ApplicationConfig
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    auth: AuthConfig

    @staticmethod
    def default_path() -> Path:
        """Return the default location of the configuration file.

        Returns:
            Path: Absolute path to config.yaml at the repository root.
        """
        return REPO_ROOT / "config.yaml"


def _determine_env_file_path() -> Optional[Path]:
    """Return the path to the environment file if one should be loaded."""

    override = os.getenv("TALENTBRIDGE_ENV_FILE")
    if override:
        candidate = Path(override).expanduser()
        if candidate.exists():
            return candidate
        LOGGER.warning("Configured environment file override does not exist: %s", candidate)
        return None
    if DEFAULT_ENV_FILE.exists():
        return DEFAULT_ENV_FILE
    return None


def _parse_env_line(raw_line: str) -> Optional[tuple[str, str]]:
    """Split a ``KEY=value`` line from a ``.env`` file.

    Blank lines, comments and lines without ``=`` yield ``None``. Quoted values
    are unwrapped; unquoted values lose any trailing ``# comment``.
    """

    line = raw_line.strip()
    if not line or line.startswith("#"):
        return None
    if line.lower().startswith("export "):
        line = line[7:].lstrip()
    key, separator, raw_value = line.partition("=")
    key = key.strip()
    if not separator or not key:
        return None
    value = raw_value.strip()
    if len(value) >= 2 and value[0] in {'"', "'"} and value[-1] == value[0]:
        return key, value[1:-1]
    comment_index = value.find("#")
    if comment_index != -1:
        value = value[:comment_index].rstrip()
    return key, value


def _load_env_file(path: Path) -> None:
    """Populate ``os.environ`` from a ``.env`` file without clobbering set values."""

    try:
        lines = path.read_text(encoding="utf-8").splitlines()
    except OSError:
        LOGGER.warning("Unable to read environment file at %s", path)
        return
    for raw_line in lines:
        parsed = _parse_env_line(raw_line)
        if parsed is None:
            continue
        key, value = parsed
        existing_value = os.environ.get(key)
        if existing_value is not None and existing_value.strip() != "":
            continue
        os.environ[key] = value


def _apply_environment_overrides(raw_content: Dict[str, Any]) -> Dict[str, Any]:
    """Merge environment-based overrides into the raw configuration mapping.

    Args:
        raw_content: Parsed YAML configuration prior to Pydantic validation.

    Returns:
        Dict[str, Any]: Configuration mapping with environment overrides applied.
    """

    env_file_path = _determine_env_file_path()
    if env_file_path is not None:
        _load_env_file(env_file_path)

    applied: list[str] = []
    for env_name, (sections, key) in ENV_OVERRIDES.items():
        value = os.getenv(env_name)
        if value is None or value.strip() == "":
            continue
        target = raw_content
        for section in sections:
            target = target.setdefault(section, {})
        target[key] = value.strip()
        applied.append(env_name)
    if applied:
        LOGGER.info("Configuration overridden from environment (keys=%s)", ",".join(applied))
    return raw_content


def _read_yaml(path: Path) -> Dict[str, Any]:
    """Read YAML content from disk.

    Args:
        path: Location of the YAML file.

    Returns:
        Dict[str, Any]: Parsed YAML content.

    Raises:
        ConfigError: If the file cannot be read or parsed.
    """
    try:
        with path.open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle)
    except FileNotFoundError as exc:
        LOGGER.error("Configuration file missing at %s", path)
        raise ConfigError("Configuration file not found") from exc
    except yaml.YAMLError as exc:
        LOGGER.error("Invalid YAML syntax in %s", path)
        raise ConfigError("Invalid YAML syntax") from exc
    if not isinstance(data, dict):
        LOGGER.error("Configuration root must be a mapping: %s", path)
        raise ConfigError("Configuration root must be a mapping")
    return data


@lru_cache(maxsize=1)
def load_config(path: Optional[Path] = None) -> AppConfig:
    """Load application configuration from YAML.

    Args:
        path: Optional override path to the YAML file.

    Returns:
        AppConfig: Parsed configuration object.

    Raises:
        ConfigError: If the configuration cannot be loaded or validated.
    """
    config_path = path or AppConfig.default_path()
    raw_content = _read_yaml(config_path)
    raw_content = _apply_environment_overrides(raw_content)
    try:
        return AppConfig(**raw_content)
    except ValidationError as exc:
        LOGGER.error("Invalid configuration values: %s", exc)
        raise ConfigError("Configuration validation failed") from exc
