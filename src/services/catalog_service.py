"""Read-side catalog access: books, search, categories and favorites."""

import asyncio
import logging

import httpx

from core.session import SessionGuard
from schemas.book import Book, Category
from shared.api_client import api_get, api_send, parse_response

logger = logging.getLogger(__name__)

BOOKS_PATH = "/api/books"
FAVORITES_PATH = "/api/books/favorites"
CATEGORIES_PATH = "/api/categories"


class CatalogService:
    """
    Catalog queries.

    Errors propagate to the caller (httpx.HTTPError or
    ResponseValidationError); use shared.api_errors.parse_http_error to
    turn status errors into user messages.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        guard: SessionGuard,
        search_debounce: float = 0.3,
    ) -> None:
        self._client = client
        self._guard = guard
        self._search_debounce = search_debounce
        self._pending_search: asyncio.Task | None = None

    def _optional_token(self) -> str | None:
        return self._guard.refresh().token

    async def list_books(self) -> list[Book]:
        data = await api_get(self._client, BOOKS_PATH)
        return parse_response(list[Book], data, BOOKS_PATH)

    async def get_book(self, book_id: int) -> Book:
        """Fetch one book. When signed in, `favorited` reflects the user's wishlist."""
        path = f"{BOOKS_PATH}/{book_id}"
        data = await api_get(self._client, path, self._optional_token())
        return parse_response(Book, data, path)

    async def search_books(self, query: str) -> list[Book]:
        """Search by free text. A blank query returns no results without a request."""
        query = query.strip()
        if not query:
            return []
        data = await api_get(self._client, BOOKS_PATH, params={"method": "search", "q": query})
        return parse_response(list[Book], data, BOOKS_PATH)

    async def search_books_debounced(self, query: str) -> list[Book] | None:
        """
        Search after the debounce delay, superseding any pending search.

        Returns None when a newer call replaced this one before its delay
        elapsed.
        """
        if self._pending_search is not None and not self._pending_search.done():
            self._pending_search.cancel()
        task = asyncio.ensure_future(self._delayed_search(query))
        self._pending_search = task
        try:
            return await task
        except asyncio.CancelledError:
            current = asyncio.current_task()
            if current is not None and current.cancelling():
                raise
            logger.debug("Search for %r superseded", query)
            return None

    async def _delayed_search(self, query: str) -> list[Book]:
        await asyncio.sleep(self._search_debounce)
        return await self.search_books(query)

    async def list_categories(self) -> list[Category]:
        data = await api_get(self._client, CATEGORIES_PATH)
        return parse_response(list[Category], data, CATEGORIES_PATH)

    async def get_category(self, category_id: int) -> Category:
        path = f"{CATEGORIES_PATH}/{category_id}"
        data = await api_get(self._client, path)
        return parse_response(Category, data, path)

    async def list_favorites(self) -> list[Book]:
        """
        Books on the signed-in user's wishlist.

        Raises:
            AuthenticationError: If not signed in.
        """
        data = await api_get(self._client, FAVORITES_PATH, self._guard.bearer_token())
        return parse_response(list[Book], data, FAVORITES_PATH)

    async def set_favorite(self, book_id: int, favorite: bool) -> None:
        """Add a book to, or remove it from, the wishlist."""
        action = "favorite" if favorite else "unfavorite"
        await api_send(
            self._client, "GET", f"{BOOKS_PATH}/{book_id}/{action}", self._guard.bearer_token(),
        )

    async def toggle_favorite(self, book: Book) -> Book:
        """Flip a book's favorite state and return the updated book."""
        favorite = not book.favorited
        await self.set_favorite(book.id, favorite)
        return book.model_copy(update={"favorited": favorite})
