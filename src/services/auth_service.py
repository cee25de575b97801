"""Login, registration and logout against the bookstore auth endpoints."""

import logging
from typing import Literal

import httpx
from pydantic import ValidationError

from core.exceptions import AuthRejectedError
from core.session import SessionGuard
from core.token_storage import TokenStorage
from schemas.auth import Credentials, TokenResponse
from schemas.session import Session
from shared.api_client import api_post, parse_response
from shared.api_errors import extract_error_message

logger = logging.getLogger(__name__)

LOGIN_PATH = "/api/auth/login"
REGISTER_PATH = "/api/auth/register"

AuthMethod = Literal["login", "register"]

_PATHS: dict[AuthMethod, str] = {
    "login": LOGIN_PATH,
    "register": REGISTER_PATH,
}


class AuthService:
    """
    Exchanges credentials for a session token.

    This is the only writer of the persisted token. After every write the
    guard is refreshed so all dependents observe the new session.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        storage: TokenStorage,
        guard: SessionGuard,
        token_key: str = "token",
    ) -> None:
        self._client = client
        self._storage = storage
        self._guard = guard
        self._token_key = token_key

    async def login(self, email: str, password: str) -> Session:
        """Sign in with an existing account."""
        return await self._authenticate("login", email, password)

    async def register(self, email: str, password: str) -> Session:
        """Create an account and sign in with it."""
        return await self._authenticate("register", email, password)

    def logout(self) -> Session:
        """Forget the persisted token."""
        self._storage.remove(self._token_key)
        return self._guard.refresh()

    async def _authenticate(self, method: AuthMethod, email: str, password: str) -> Session:
        """
        Validate credentials locally, call the API, and persist the token.

        Raises:
            AuthRejectedError: If the input is invalid or the API answers 400;
                the message is meant for the user verbatim.
            httpx.HTTPError: For other transport or status failures.
            ResponseValidationError: If the success body has no token.
        """
        try:
            credentials = Credentials(email=email, password=password)
        except ValidationError as e:
            raise AuthRejectedError(_first_error(e)) from e

        path = _PATHS[method]
        try:
            data = await api_post(self._client, path, None, json=credentials.model_dump())
        except httpx.HTTPStatusError as e:
            if e.response.status_code == 400:
                message = extract_error_message(e, default="Request rejected")
                logger.info("%s rejected: %s", method.title(), message)
                raise AuthRejectedError(message, status_code=400) from e
            raise

        token = parse_response(TokenResponse, data, path).token
        self._storage.set(self._token_key, token)
        session = self._guard.refresh()
        if session.claims is not None:
            logger.info("Signed in as user %d (%s)", session.claims.subject_id, session.claims.role)
        return session


def _first_error(e: ValidationError) -> str:
    err = e.errors()[0]
    message = err["msg"]
    # Drop pydantic's "Value error, " prefix from validator messages
    return message.removeprefix("Value error, ")
