"""Application configuration.

Uses Pydantic BaseSettings for declarative environment variable binding.
A `.env` file is pre-loaded when one is found next to the backend or in the
current working directory.
"""
import os
import logging
from typing import Any, Optional
from pathlib import Path
from dotenv import load_dotenv

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

__all__ = ["Settings", "settings", "ENV_FILE_PATH", "ENV_FILE_LOADED"]

# Resolved .env path used at startup
ENV_FILE_PATH: Optional[Path] = None
ENV_FILE_LOADED: bool = False


def _find_env_file() -> Optional[Path]:
    """Find .env file from multiple possible locations."""
    global ENV_FILE_PATH, ENV_FILE_LOADED
    current_file = Path(__file__).resolve()
    possible_paths = [
        current_file.parent.parent.parent / '.env',
        current_file.parent.parent.parent.parent / '.env',
        Path.cwd() / '.env',
    ]

    for env_path in possible_paths:
        if env_path.exists():
            ENV_FILE_PATH = env_path
            ENV_FILE_LOADED = True
            logger.info(f"Found .env at: {env_path}")
            return env_path

    logger.debug("No .env file found - using environment variables and defaults")
    return None


_env_path = _find_env_file()
if _env_path:
    load_dotenv(dotenv_path=_env_path, override=False)


def _derive_async_database_url(url: str) -> str:
    """Derive async database URL from sync URL."""
    if "+aiosqlite" in url or "+asyncpg" in url:
        return url
    if url.startswith("sqlite:///"):
        return url.replace("sqlite:///", "sqlite+aiosqlite:///")
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+asyncpg://")
    if url.startswith("postgres://"):
        return url.replace("postgres://", "postgresql+asyncpg://")
    return url


def _parse_comma_list(value: str) -> list[str]:
    """Parse a comma-separated string into a list of stripped, non-empty strings."""
    return [item.strip() for item in value.split(",") if item.strip()]


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # --- Application settings ---
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    DATA_DIR: str = "/app/data" if os.path.exists("/app") else "data"

    # --- Database configuration ---
    DATABASE_URL: Optional[str] = None  # Computed in validator if not set
    PERSISTENCE_BACKEND: str = "sql"

    # --- Synchronization ---
    HEARTBEAT_INTERVAL_SECONDS: float = 30.0
    MAX_TOTAL_CONNECTIONS: int = 500
    MAX_MESSAGE_BYTES: int = 1_000_000

    # --- Game allocation ---
    GUID_LENGTH: int = 12
    GUID_MAX_ATTEMPTS: int = 0  # 0 = retry until an unused guid is found

    # --- Accounts ---
    JWT_SECRET_KEY: str = ""
    JWT_ALGORITHM: str = "HS256"
    JWT_EXPIRE_MINUTES: int = 60 * 24 * 7

    CORS_ORIGINS: Any = "*"  # str from env, overwritten to list[str] by validator

    # --- Computed fields (set by model_validator) ---
    DATABASE_URL_ASYNC: str = ""

    @model_validator(mode="after")
    def _derive_computed_fields(self) -> "Settings":
        """Fill database defaults and normalize list-valued settings."""
        if not self.DATABASE_URL:
            self.DATABASE_URL = f"sqlite:///{self.DATA_DIR}/livecode.db"
        self.DATABASE_URL_ASYNC = _derive_async_database_url(self.DATABASE_URL)

        if isinstance(self.CORS_ORIGINS, str):
            self.CORS_ORIGINS = _parse_comma_list(self.CORS_ORIGINS) or ["*"]

        if self.GUID_LENGTH < 4:
            raise ValueError("GUID_LENGTH must be at least 4")
        if self.HEARTBEAT_INTERVAL_SECONDS <= 0:
            raise ValueError("HEARTBEAT_INTERVAL_SECONDS must be positive")
        return self

    @property
    def guid_max_attempts(self) -> Optional[int]:
        """Retry cap for guid allocation, None when unbounded."""
        return self.GUID_MAX_ATTEMPTS if self.GUID_MAX_ATTEMPTS > 0 else None

    def validate_security(self) -> tuple[list[str], list[str]]:
        """Return (warnings, errors) for security-relevant configuration."""
        warnings: list[str] = []
        errors: list[str] = []
        if not self.JWT_SECRET_KEY:
            message = "JWT_SECRET_KEY is not configured. Login will be unavailable."
            if self.DEBUG:
                warnings.append(message)
            else:
                errors.append(message)
        if "*" in self.CORS_ORIGINS and not self.DEBUG:
            warnings.append("CORS_ORIGINS allows every origin.")
        return warnings, errors


settings = Settings()
