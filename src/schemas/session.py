"""Session and token-claim schemas."""
from dataclasses import dataclass
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field


class Role(StrEnum):
    """Account role carried in the token payload."""

    ADMIN = "admin"
    REGULAR = "regular"


class SessionStatus(StrEnum):
    """Resolution state of the current session."""

    UNKNOWN = "unknown"
    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATED = "authenticated"


class Claims(BaseModel):
    """
    Identity payload decoded from the session token.

    Registered JWT claims (iat, exp, ...) are ignored.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    subject_id: int = Field(..., validation_alias="id")
    role: Role


@dataclass(frozen=True)
class Session:
    """
    Snapshot of the current session.

    The token is the source of truth; claims are always derived from it and
    are present exactly when the status is AUTHENTICATED.
    """

    token: str | None = None
    claims: Claims | None = None
    status: SessionStatus = SessionStatus.UNKNOWN

    def __post_init__(self) -> None:
        authenticated = self.status is SessionStatus.AUTHENTICATED
        if authenticated != (self.claims is not None):
            raise ValueError("Session claims must be present if and only if authenticated")
        if authenticated and not self.token:
            raise ValueError("Authenticated session requires a token")

    @property
    def is_authenticated(self) -> bool:
        return self.status is SessionStatus.AUTHENTICATED

    @property
    def is_admin(self) -> bool:
        return self.claims is not None and self.claims.role is Role.ADMIN


UNKNOWN_SESSION = Session()
ANONYMOUS_SESSION = Session(status=SessionStatus.UNAUTHENTICATED)
