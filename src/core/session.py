"""
Session guard: the single authority for who the current user is.

The guard reads the persisted bearer token on demand (poll-on-read), decodes
it into claims, and exposes guard checks that navigate away when unmet.
Exactly one guard exists per running client; dependents receive it by
injection and never read token storage themselves.
"""

import logging
from collections.abc import Callable, Sequence

import jwt
from pydantic import ValidationError

from core.exceptions import AuthenticationError, InvalidSessionError, SessionNotResolvedError
from core.notifications import Notifier
from core.token_storage import TokenStorage
from schemas.session import (
    ANONYMOUS_SESSION,
    UNKNOWN_SESSION,
    Claims,
    Session,
    SessionStatus,
)

logger = logging.getLogger(__name__)

Navigate = Callable[[str], None]
SessionListener = Callable[[Session, Session], None]

INVALID_SESSION_MESSAGE = "Could not verify your sign-in. Please sign in again."


def decode_claims(
    token: str,
    secret: str = "",
    algorithms: Sequence[str] = ("HS256",),
) -> Claims:
    """
    Decode a session token into claims.

    Without a secret the payload is read without verifying the signature,
    matching what a browser client can do, but expiry is still enforced.
    With a secret the signature is verified too.

    Raises:
        InvalidSessionError: If the token is malformed, fails verification,
            or its payload lacks a usable id/role.
    """
    try:
        if secret:
            payload = jwt.decode(token, secret, algorithms=list(algorithms))
        else:
            payload = jwt.decode(
                token, options={"verify_signature": False, "verify_exp": True},
            )
    except jwt.PyJWTError as e:
        raise InvalidSessionError(f"Invalid token: {e}") from e

    try:
        return Claims.model_validate(payload)
    except ValidationError as e:
        raise InvalidSessionError("Token payload is missing a valid id or role") from e


class SessionGuard:
    """
    Resolves and guards the current session.

    States: UNKNOWN (initial, never re-entered) then UNAUTHENTICATED or
    AUTHENTICATED, moving between the latter two as the persisted token
    changes. `loading` stays True until the first refresh() completes.
    """

    def __init__(
        self,
        storage: TokenStorage,
        notifier: Notifier,
        navigate: Navigate,
        *,
        token_key: str = "token",
        jwt_secret: str = "",
        jwt_algorithms: Sequence[str] = ("HS256",),
        login_route: str = "/Login",
        home_route: str = "/",
    ) -> None:
        self._storage = storage
        self._notifier = notifier
        self._navigate = navigate
        self._token_key = token_key
        self._jwt_secret = jwt_secret
        self._jwt_algorithms = tuple(jwt_algorithms)
        self._login_route = login_route
        self._home_route = home_route

        self._session = UNKNOWN_SESSION
        self._loading = True
        # Last token that failed to decode; re-reading it is a no-op
        self._rejected_token: str | None = None
        self._listeners: list[SessionListener] = []

    @property
    def session(self) -> Session:
        return self._session

    @property
    def loading(self) -> bool:
        return self._loading

    @property
    def status(self) -> SessionStatus:
        return self._session.status

    @property
    def token(self) -> str | None:
        return self._session.token

    @property
    def claims(self) -> Claims | None:
        return self._session.claims

    @property
    def is_authenticated(self) -> bool:
        return self._session.is_authenticated

    @property
    def is_admin(self) -> bool:
        return self._session.is_admin

    def subscribe(self, listener: SessionListener) -> Callable[[], None]:
        """
        Register a listener called as listener(previous, current) on every
        session change. Returns a callable that unsubscribes it.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def refresh(self) -> Session:
        """
        Re-read the persisted token and update the session.

        Idempotent while the persisted token is unchanged. A token that fails
        to decode resets the session to unauthenticated and raises one error
        notification; it never escapes as an exception.
        """
        stored = self._storage.get(self._token_key)

        if not stored:
            self._rejected_token = None
            self._loading = False
            self._transition(ANONYMOUS_SESSION)
            return self._session

        if stored == self._session.token or stored == self._rejected_token:
            return self._session

        try:
            claims = decode_claims(stored, self._jwt_secret, self._jwt_algorithms)
        except InvalidSessionError as e:
            logger.warning("Failed to decode session token: %s", e)
            self._rejected_token = stored
            self._loading = False
            self._transition(ANONYMOUS_SESSION)
            self._notifier.error(INVALID_SESSION_MESSAGE, kind="invalid_session")
            return self._session

        self._rejected_token = None
        self._loading = False
        self._transition(
            Session(token=stored, claims=claims, status=SessionStatus.AUTHENTICATED),
        )
        return self._session

    def bearer_token(self) -> str:
        """
        Refresh and return the current token.

        Raises:
            AuthenticationError: If there is no authenticated session.
        """
        session = self.refresh()
        if not session.is_authenticated or session.token is None:
            raise AuthenticationError("Not signed in")
        return session.token

    def require_authenticated(self) -> bool:
        """
        Navigate to the login route unless signed in.

        Returns True when the caller may proceed.

        Raises:
            SessionNotResolvedError: If called before the first refresh().
        """
        self._ensure_resolved()
        if self.refresh().is_authenticated:
            return True
        self._navigate(self._login_route)
        return False

    def require_admin(self) -> bool:
        """Navigate to the home route unless signed in as an admin."""
        self._ensure_resolved()
        if self.refresh().is_admin:
            return True
        self._navigate(self._home_route)
        return False

    def _ensure_resolved(self) -> None:
        if self._loading:
            raise SessionNotResolvedError()

    def _transition(self, new_session: Session) -> None:
        previous = self._session
        if new_session == previous:
            return
        self._session = new_session
        logger.debug("Session %s -> %s", previous.status, new_session.status)
        for listener in list(self._listeners):
            listener(previous, new_session)
