"""Pytest fixtures for storefront client tests."""
from collections.abc import AsyncGenerator, Callable, Generator
from typing import Any
from unittest.mock import MagicMock

import httpx
import jwt
import pytest
import respx

from core.notifications import Notifier
from core.session import SessionGuard
from core.token_storage import MemoryTokenStorage
from services.cart_service import CartService

API_URL = "http://bookstore.test"
JWT_SECRET = "storefront-test-secret-0123456789abcdef"

TokenFactory = Callable[..., str]


@pytest.fixture
def token_factory() -> TokenFactory:
    """Mint HS256 session tokens carrying {id, role}."""

    def make(user_id: int = 1, role: str = "regular", secret: str = JWT_SECRET, **extra: Any) -> str:
        return jwt.encode({"id": user_id, "role": role, **extra}, secret, algorithm="HS256")

    return make


@pytest.fixture
def storage() -> MemoryTokenStorage:
    return MemoryTokenStorage()


@pytest.fixture
def notifier() -> Notifier:
    return Notifier()


@pytest.fixture
def navigate() -> MagicMock:
    return MagicMock()


@pytest.fixture
def guard(storage: MemoryTokenStorage, notifier: Notifier, navigate: MagicMock) -> SessionGuard:
    """Guard that decodes without signature verification, as a browser client does."""
    return SessionGuard(storage, notifier, navigate)


@pytest.fixture
def signed_in(
    storage: MemoryTokenStorage,
    guard: SessionGuard,
    token_factory: TokenFactory,
) -> str:
    """Persist a regular user's token and resolve the guard. Returns the token."""
    token = token_factory(user_id=7)
    storage.set("token", token)
    guard.refresh()
    return token


@pytest.fixture
def signed_in_admin(
    storage: MemoryTokenStorage,
    guard: SessionGuard,
    token_factory: TokenFactory,
) -> str:
    """Persist an admin token and resolve the guard. Returns the token."""
    token = token_factory(user_id=1, role="admin")
    storage.set("token", token)
    guard.refresh()
    return token


@pytest.fixture
def mock_api() -> Generator[respx.MockRouter]:
    """Mock the bookstore API transport."""
    with respx.mock(base_url=API_URL, assert_all_called=False) as respx_mock:
        yield respx_mock


@pytest.fixture
async def http_client(mock_api: respx.MockRouter) -> AsyncGenerator[httpx.AsyncClient]:  # noqa: ARG001
    """AsyncClient created inside the respx context so requests are mocked."""
    async with httpx.AsyncClient(base_url=API_URL) as client:
        yield client


@pytest.fixture
async def cart(
    http_client: httpx.AsyncClient,
    guard: SessionGuard,
    notifier: Notifier,
    signed_in: str,  # noqa: ARG001
) -> AsyncGenerator[CartService]:
    """Cart service for a signed-in regular user."""
    service = CartService(http_client, guard, notifier)
    yield service
    await service.aclose()


CartPayload = Callable[..., dict[str, Any]]


@pytest.fixture
def cart_payload() -> CartPayload:
    """Build a GET /api/cart body from (book_id, price, amount) tuples."""

    def build(*items: tuple[int, str, int]) -> dict[str, Any]:
        return {
            "items": [
                {
                    "id": book_id,
                    "title": f"Book {book_id}",
                    "price": price,
                    "amount": amount,
                    "coverImage": f"/covers/{book_id}.jpg",
                }
                for book_id, price, amount in items
            ],
        }

    return build
