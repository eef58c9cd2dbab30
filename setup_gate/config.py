"""
Setup gate settings.

Loaded from environment variables and an optional .env file. Every value the
gate, the password protection and the wizard consume lives here; nothing in
the core reads the environment directly.
"""

from pathlib import Path
from typing import List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class SetupSettings(BaseSettings):
    """Setup gate settings with development defaults."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # Environment
    environment: str = Field(default="development", alias="SETUP_ENV")

    # Routing
    setup_path: str = Field(default="/setup", alias="SETUP_PATH")
    excluded_paths: str = Field(
        default="/health,/static,/favicon.ico",
        alias="SETUP_EXCLUDED_PATHS",
    )

    # Completion marker
    marker_directory: str = Field(default="./app_data", alias="SETUP_MARKER_DIR")
    marker_file_name: str = Field(default=".setup-complete", alias="SETUP_MARKER_FILE")
    app_version: str = Field(default="1.0.0", alias="APP_VERSION")
    allow_setup_rerun: bool = Field(default=False, alias="SETUP_ALLOW_RERUN")

    # Password protection
    require_password: bool = Field(default=True, alias="SETUP_REQUIRE_PASSWORD")
    password_file_name: str = Field(default=".setup-password", alias="SETUP_PASSWORD_FILE")
    write_password_file: bool = Field(default=False, alias="SETUP_WRITE_PASSWORD_FILE")
    password_max_attempts: int = Field(default=5, alias="SETUP_PASSWORD_MAX_ATTEMPTS")
    password_lockout_seconds: int = Field(default=60, alias="SETUP_PASSWORD_LOCKOUT_SECONDS")
    password_attempt_window_seconds: int = Field(
        default=3600,
        alias="SETUP_PASSWORD_ATTEMPT_WINDOW_SECONDS",
    )
    verification_ttl_seconds: int = Field(default=3600, alias="SETUP_VERIFICATION_TTL_SECONDS")
    trust_forwarded_for: bool = Field(default=False, alias="SETUP_TRUST_FORWARDED_FOR")

    # Wizard sessions
    session_idle_minutes: int = Field(default=30, alias="SETUP_SESSION_IDLE_MINUTES")

    # Shared attempt/verification store (optional)
    redis_url: Optional[str] = Field(default=None, alias="REDIS_URL")

    # Logging
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_json: bool = Field(default=True, alias="LOG_JSON")

    @field_validator("setup_path")
    @classmethod
    def validate_setup_path(cls, v: str) -> str:
        """Setup path must be absolute; stored without trailing slash."""
        if not v.startswith("/"):
            raise ValueError("setup_path must start with '/'")
        return v.rstrip("/") or "/"

    @field_validator(
        "password_max_attempts",
        "password_lockout_seconds",
        "password_attempt_window_seconds",
        "verification_ttl_seconds",
        "session_idle_minutes",
    )
    @classmethod
    def validate_positive(cls, v: int, info) -> int:
        if v <= 0:
            raise ValueError(f"{info.field_name} must be positive")
        return v

    def get_excluded_paths_list(self) -> List[str]:
        """Parse comma-separated excluded prefixes into list."""
        return [p.strip() for p in self.excluded_paths.split(",") if p.strip()]

    @property
    def marker_path(self) -> Path:
        return Path(self.marker_directory) / self.marker_file_name

    @property
    def password_path(self) -> Path:
        return Path(self.marker_directory) / self.password_file_name


# Singleton
_settings: Optional[SetupSettings] = None


def get_setup_settings() -> SetupSettings:
    """Get setup settings singleton."""
    global _settings
    if _settings is None:
        _settings = SetupSettings()
    return _settings
