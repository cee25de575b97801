"""Pydantic schemas for the login and register endpoints."""
import re

from pydantic import BaseModel, Field, field_validator

# Seeded admin account; exempt from the email shape check.
ADMIN_EMAIL = "admin@localhost"

_EMAIL_PATTERN = re.compile(r"\S+@\S+\.\S+")


class Credentials(BaseModel):
    """Body for POST /api/auth/login and /api/auth/register."""

    email: str
    password: str = Field(..., min_length=6)

    @field_validator("email")
    @classmethod
    def validate_email(cls, value: str) -> str:
        """Require a non-empty, plausibly shaped email address."""
        value = value.strip()
        if not value:
            raise ValueError("Email is required")
        if value != ADMIN_EMAIL and not _EMAIL_PATTERN.search(value):
            raise ValueError("Email is invalid")
        return value


class TokenResponse(BaseModel):
    """Successful login/register response."""

    token: str = Field(..., min_length=1)
