"""Back-office catalog management: books, covers and categories."""

import logging

import httpx

from core.exceptions import PermissionDeniedError
from core.session import SessionGuard
from schemas.book import Book, BookInput, Category, CategoryInput, CoverUploadResponse
from shared.api_client import api_delete, api_post, api_put, api_upload, parse_response

logger = logging.getLogger(__name__)

BOOKS_PATH = "/api/books"
COVER_UPLOAD_PATH = "/api/books/upload-cover"
CATEGORIES_PATH = "/api/categories"


class AdminCatalogService:
    """
    Create, update and delete catalog entries.

    Every operation requires an admin session and raises
    PermissionDeniedError (or AuthenticationError when signed out) before
    any request is sent.
    """

    def __init__(self, client: httpx.AsyncClient, guard: SessionGuard) -> None:
        self._client = client
        self._guard = guard

    def _admin_token(self) -> str:
        token = self._guard.bearer_token()
        if not self._guard.is_admin:
            raise PermissionDeniedError("Admin role required")
        return token

    async def create_book(self, book: BookInput) -> Book:
        data = await api_post(
            self._client, BOOKS_PATH, self._admin_token(), json=book.model_dump(by_alias=True),
        )
        created = parse_response(Book, data, BOOKS_PATH)
        logger.info("Created book %d", created.id)
        return created

    async def update_book(self, book_id: int, book: BookInput) -> Book:
        path = f"{BOOKS_PATH}/{book_id}"
        data = await api_put(
            self._client, path, self._admin_token(), json=book.model_dump(by_alias=True),
        )
        return parse_response(Book, data, path)

    async def delete_book(self, book_id: int) -> None:
        await api_delete(self._client, f"{BOOKS_PATH}/{book_id}", self._admin_token())
        logger.info("Deleted book %d", book_id)

    async def upload_cover(
        self,
        filename: str,
        content: bytes,
        content_type: str = "image/jpeg",
    ) -> str:
        """Upload a cover image. Returns the stored cover path to put on the book."""
        data = await api_upload(
            self._client,
            COVER_UPLOAD_PATH,
            self._admin_token(),
            field="cover",
            filename=filename,
            content=content,
            content_type=content_type,
        )
        return parse_response(CoverUploadResponse, data, COVER_UPLOAD_PATH).file

    async def save_book(
        self,
        book: BookInput,
        book_id: int | None = None,
        cover: tuple[str, bytes, str] | None = None,
        current_cover: str = "",
    ) -> Book:
        """
        Create (book_id None) or update a book, uploading a new cover first.

        Args:
            book: Field values to save.
            book_id: Existing book to update, or None to create.
            cover: Optional (filename, content, content_type) of a new cover.
            current_cover: Cover path kept when no new cover is given.
        """
        if cover is not None:
            cover_image = await self.upload_cover(*cover)
        else:
            cover_image = current_cover or book.cover_image
        book = book.model_copy(update={"cover_image": cover_image})
        if book_id is None:
            return await self.create_book(book)
        return await self.update_book(book_id, book)

    async def create_category(self, name: str) -> Category:
        body = CategoryInput(name=name).model_dump()
        data = await api_post(self._client, CATEGORIES_PATH, self._admin_token(), json=body)
        return parse_response(Category, data, CATEGORIES_PATH)

    async def update_category(self, category_id: int, name: str) -> Category:
        path = f"{CATEGORIES_PATH}/{category_id}"
        body = CategoryInput(name=name).model_dump()
        data = await api_put(self._client, path, self._admin_token(), json=body)
        return parse_response(Category, data, path)

    async def delete_category(self, category_id: int) -> None:
        await api_delete(self._client, f"{CATEGORIES_PATH}/{category_id}", self._admin_token())
        logger.info("Deleted category %d", category_id)
