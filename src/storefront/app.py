"""
Storefront composition root.

Owns the shared HTTP client and the single SessionGuard, and injects them
into every service. Use as an async context manager:

    async with Storefront.from_settings(navigate=router.go) as store:
        store.session_guard.refresh()
        await store.cart.fetch_items()
"""

import logging
from types import TracebackType

import httpx

from core.config import Settings, get_settings
from core.notifications import Notifier
from core.session import Navigate, SessionGuard
from core.token_storage import FileTokenStorage, TokenStorage
from services.admin_service import AdminCatalogService
from services.auth_service import AuthService
from services.cart_service import CartService
from services.catalog_service import CatalogService
from shared.api_client import create_http_client

logger = logging.getLogger(__name__)


def _log_navigation(route: str) -> None:
    logger.info("Navigate to %s", route)


class Storefront:
    """The client-side services sharing one session guard."""

    def __init__(
        self,
        settings: Settings,
        storage: TokenStorage,
        navigate: Navigate | None = None,
        http_client: httpx.AsyncClient | None = None,
        notifier: Notifier | None = None,
    ) -> None:
        self.settings = settings
        self.storage = storage
        self.notifier = notifier or Notifier()
        self._owns_client = http_client is None
        self.http_client = http_client or create_http_client(settings)

        self.session_guard = SessionGuard(
            storage,
            self.notifier,
            navigate or _log_navigation,
            token_key=settings.token_key,
            jwt_secret=settings.jwt_secret,
            jwt_algorithms=settings.jwt_algorithms,
            login_route=settings.login_route,
            home_route=settings.home_route,
        )
        self.auth = AuthService(
            self.http_client, storage, self.session_guard, token_key=settings.token_key,
        )
        self.cart = CartService(self.http_client, self.session_guard, self.notifier)
        self.catalog = CatalogService(
            self.http_client, self.session_guard, search_debounce=settings.search_debounce,
        )
        self.admin = AdminCatalogService(self.http_client, self.session_guard)

    @classmethod
    def from_settings(
        cls,
        settings: Settings | None = None,
        navigate: Navigate | None = None,
        notifier: Notifier | None = None,
    ) -> "Storefront":
        """Build a storefront persisting its token in the configured file."""
        settings = settings or get_settings()
        return cls(
            settings, FileTokenStorage(settings.token_path), navigate=navigate, notifier=notifier,
        )

    async def start(self) -> None:
        """Resolve the session and, when signed in, load the cart."""
        session = self.session_guard.refresh()
        if session.is_authenticated:
            await self.cart.drain()

    async def aclose(self) -> None:
        """Cancel background refetches and close the HTTP client if owned."""
        await self.cart.aclose()
        if self._owns_client and not self.http_client.is_closed:
            await self.http_client.aclose()

    async def __aenter__(self) -> "Storefront":
        await self.start()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()
