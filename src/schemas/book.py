"""Pydantic schemas for book and category endpoints."""
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator


class Category(BaseModel):
    """A book category."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: int
    name: str


class Book(BaseModel):
    """
    Book as returned by the catalog endpoints.

    List endpoints return the summary fields only; the detail endpoint adds
    the optional fields, and sets `favorited` when the request carried a token.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    id: int
    title: str
    price: Decimal
    cover_image: str = Field(default="", validation_alias="coverImage")
    categories: tuple[Category, ...] = ()
    description: str | None = None
    stocks_available: int | None = Field(default=None, validation_alias="stocksAvailable")
    sold: int | None = None
    favorited: bool | None = None
    publisher: str | None = None
    author: str | None = None
    weight: float | None = None
    full_description: str | None = Field(default=None, validation_alias="fullDescription")

    @field_validator("cover_image", mode="before")
    @classmethod
    def none_cover_to_empty(cls, value: str | None) -> str:
        return value or ""

    def accepts_quantity(self, quantity: int) -> bool:
        """Whether quantity is orderable: at least one and within known stock."""
        if quantity < 1:
            return False
        return self.stocks_available is None or quantity <= self.stocks_available


class BookInput(BaseModel):
    """Body for POST /api/books and PUT /api/books/{id}."""

    model_config = ConfigDict(populate_by_name=True)

    title: str = Field(..., min_length=1)
    description: str = ""
    stocks_available: int = Field(default=0, ge=0, serialization_alias="stocksAvailable")
    sold: int = Field(default=0, ge=0)
    price: Decimal = Field(..., ge=0)
    category_ids: list[int] = Field(default_factory=list, serialization_alias="categoryIds")
    cover_image: str = Field(default="", serialization_alias="coverImage")

    @field_serializer("price")
    def serialize_price(self, value: Decimal) -> float:
        return float(value)


class CategoryInput(BaseModel):
    """Body for POST /api/categories and PUT /api/categories/{id}."""

    name: str = Field(..., min_length=1)

    @field_validator("name", mode="before")
    @classmethod
    def strip_name(cls, value: str) -> str:
        return value.strip() if isinstance(value, str) else value


class CoverUploadResponse(BaseModel):
    """Response of POST /api/books/upload-cover; `file` is the stored cover path."""

    file: str
