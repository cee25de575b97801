"""Storefront client configuration using pydantic-settings."""
import logging
from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Client settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # Bookstore REST API (paths are rooted at /api/...)
    api_url: str = Field(
        default="http://localhost:3000",
        validation_alias="BOOKSTORE_API_URL",
    )
    api_timeout: float = Field(
        default=30.0,
        gt=0,
        validation_alias="BOOKSTORE_API_TIMEOUT",
    )

    # Persisted session token (key-value file standing in for browser storage)
    token_file: Path = Field(
        default=Path("~/.bookstore/session.json"),
        validation_alias="BOOKSTORE_TOKEN_FILE",
    )
    token_key: str = Field(default="token", min_length=1, validation_alias="BOOKSTORE_TOKEN_KEY")

    # Empty secret means claims are decoded without signature verification
    jwt_secret: str = Field(default="", validation_alias="BOOKSTORE_JWT_SECRET")
    jwt_algorithms_str: str = Field(
        default="HS256",
        validation_alias="BOOKSTORE_JWT_ALGORITHMS",
    )

    search_debounce: float = Field(
        default=0.3,
        ge=0,
        validation_alias="BOOKSTORE_SEARCH_DEBOUNCE",
    )

    log_level: str = Field(default="INFO", validation_alias="BOOKSTORE_LOG_LEVEL")

    # Navigation targets used by the session guard
    login_route: str = Field(default="/Login", validation_alias="BOOKSTORE_LOGIN_ROUTE")
    home_route: str = Field(default="/", validation_alias="BOOKSTORE_HOME_ROUTE")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        """Normalize the log level and reject names logging does not know."""
        level = value.strip().upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"Unknown log level: {value}")
        return level

    @property
    def jwt_algorithms(self) -> list[str]:
        """Parse comma-separated JWT algorithms string into a list."""
        return [alg.strip() for alg in self.jwt_algorithms_str.split(",") if alg.strip()]

    @property
    def token_path(self) -> Path:
        """Token file path with the user directory expanded."""
        return self.token_file.expanduser()


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
