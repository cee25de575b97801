"""Pydantic schemas for the shopping cart endpoints."""
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class CartItem(BaseModel):
    """
    One cart line as returned by GET /api/cart.

    Wire names (id, price, amount, coverImage) are accepted as aliases.
    Quantity 0 is a valid transient value for a line being removed.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    book_id: int = Field(..., validation_alias="id")
    title: str
    unit_price: Decimal = Field(..., validation_alias="price")
    quantity: int = Field(..., ge=0, validation_alias="amount")
    cover_image_url: str = Field(default="", validation_alias="coverImage")

    @field_validator("cover_image_url", mode="before")
    @classmethod
    def none_cover_to_empty(cls, value: str | None) -> str:
        return value or ""

    @property
    def subtotal(self) -> Decimal:
        return self.unit_price * self.quantity


class CartView(BaseModel):
    """
    Client view of the cart, in server response order.

    total_price is computed from the items on every read and is never stored.
    """

    model_config = ConfigDict(frozen=True)

    items: tuple[CartItem, ...]

    @model_validator(mode="after")
    def validate_unique_books(self) -> "CartView":
        """At most one line per book."""
        seen: set[int] = set()
        for item in self.items:
            if item.book_id in seen:
                raise ValueError(f"Duplicate cart line for book {item.book_id}")
            seen.add(item.book_id)
        return self

    @property
    def total_price(self) -> Decimal:
        return sum((item.subtotal for item in self.items), Decimal("0"))

    def quantity_of(self, book_id: int) -> int:
        """Quantity held for a book, 0 if the book is not in the cart."""
        for item in self.items:
            if item.book_id == book_id:
                return item.quantity
        return 0


EMPTY_CART = CartView(items=())


class CartUpdate(BaseModel):
    """Body for POST /api/cart. amount is the absolute target quantity, not a delta."""

    book_id: int = Field(..., serialization_alias="bookId")
    amount: int = Field(..., ge=0)
