"""
Cart synchronizer.

Keeps a client view of the shopping cart that is replaced wholesale by the
server's answer after every mutation (no optimistic merge). Fetches are
numbered; a response older than the newest applied one is discarded, so the
last fetch issued wins even when responses resolve out of order.
"""

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from decimal import Decimal
from typing import Literal

import httpx

from core.exceptions import AuthenticationError, ResponseValidationError
from core.notifications import Notifier
from core.session import SessionGuard
from schemas.book import Book
from schemas.cart import EMPTY_CART, CartItem, CartUpdate, CartView
from schemas.session import Session, SessionStatus
from shared.api_client import api_get, api_send, parse_response

logger = logging.getLogger(__name__)

CART_PATH = "/api/cart"
CHECKOUT_PATH = "/api/cart/checkout"

QuantityChange = Literal["removed", "increased", "decreased"]

_CHANGE_MESSAGES: dict[QuantityChange, str] = {
    "removed": "Removed item from cart",
    "increased": "Added item to cart",
    "decreased": "Reduced item quantity in cart",
}


def classify_quantity_change(previous: int, target: int) -> QuantityChange:
    """
    Classify a quantity change for the user notification.

    `previous` comes from the local view before the mutation and may be
    stale; the result is cosmetic only.
    """
    if target == 0:
        return "removed"
    if target > previous:
        return "increased"
    return "decreased"


class CartService:
    """Client-visible cart, reconciled against the server after each change."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        guard: SessionGuard,
        notifier: Notifier,
    ) -> None:
        self._client = client
        self._guard = guard
        self._notifier = notifier

        self._view = EMPTY_CART
        self._in_flight = 0
        self._issued_seq = 0
        self._applied_seq = 0
        self._background_tasks: set[asyncio.Task] = set()
        self.error: str | None = None

        self._unsubscribe = guard.subscribe(self._on_session_change)

    @property
    def view(self) -> CartView:
        return self._view

    @property
    def items(self) -> tuple[CartItem, ...]:
        return self._view.items

    @property
    def total_price(self) -> Decimal:
        return self._view.total_price

    @property
    def loading(self) -> bool:
        return self._in_flight > 0

    @asynccontextmanager
    async def _busy(self) -> AsyncIterator[None]:
        self._in_flight += 1
        try:
            yield
        finally:
            self._in_flight -= 1

    def _token_or_report(self, error: str, user_message: str) -> str | None:
        try:
            return self._guard.bearer_token()
        except AuthenticationError:
            self._report_failure(error, user_message, None)
            return None

    def _report_failure(self, error: str, user_message: str, exc: Exception | None) -> None:
        self.error = error
        if exc is None:
            logger.warning("%s: not signed in", error)
        else:
            logger.warning("%s: %s", error, exc, exc_info=exc)
        self._notifier.error(user_message)

    async def fetch_items(self) -> bool:
        """
        Replace the local view with the server's cart.

        On failure the last-known view is kept and an error notification is
        raised. Returns True when the response was applied.
        """
        token = self._token_or_report("Failed to fetch cart items", "Could not load your cart")
        if token is None:
            return False

        self._issued_seq += 1
        seq = self._issued_seq
        async with self._busy():
            try:
                data = await api_get(self._client, CART_PATH, token)
                view = parse_response(CartView, data, CART_PATH)
            except (httpx.HTTPError, ResponseValidationError) as e:
                if seq <= self._applied_seq:
                    logger.debug("Ignoring failure of stale cart fetch #%d: %s", seq, e)
                    return False
                self._report_failure("Failed to fetch cart items", "Could not load your cart", e)
                return False

        if seq <= self._applied_seq:
            logger.debug("Discarding stale cart response #%d (applied #%d)", seq, self._applied_seq)
            return False
        self._applied_seq = seq
        self._view = view
        self.error = None
        return True

    async def set_quantity(self, book_id: int, quantity: int) -> bool:
        """
        Set the absolute quantity of a book in the cart, then resynchronize.

        Negative quantities are ignored without a request. Quantity 0 removes
        the line. Returns True when the server accepted the change.
        """
        if quantity < 0:
            return False
        token = self._token_or_report(
            "Failed to add/update cart item", "Could not update your cart",
        )
        if token is None:
            return False

        previous = self._view.quantity_of(book_id)
        body = CartUpdate(book_id=book_id, amount=quantity).model_dump(by_alias=True)
        async with self._busy():
            try:
                await api_send(self._client, "POST", CART_PATH, token, json=body)
            except httpx.HTTPError as e:
                self._report_failure(
                    "Failed to add/update cart item", "Could not update your cart", e,
                )
                return False
            await self.fetch_items()

        change = classify_quantity_change(previous, quantity)
        self._notifier.success(_CHANGE_MESSAGES[change], kind=change)
        return True

    add_to_cart = set_quantity
    update_item = set_quantity

    async def add_book(self, book: Book, quantity: int) -> bool:
        """
        Put `quantity` copies of a book in the cart from its detail page.

        The quantity must be orderable for the book (at least one, within
        stock). Nothing is sent when the cart already holds that quantity.
        """
        if not book.accepts_quantity(quantity):
            logger.debug("Rejected quantity %d for book %d", quantity, book.id)
            return False
        if self._view.quantity_of(book.id) == quantity:
            return True
        return await self.set_quantity(book.id, quantity)

    async def checkout(self) -> bool:
        """
        Place the order for the current cart.

        The local view is cleared only after the server confirms; on failure
        it is left exactly as it was.
        """
        token = self._token_or_report("Failed to checkout", "Could not place your order")
        if token is None:
            return False

        async with self._busy():
            try:
                await api_send(self._client, "GET", CHECKOUT_PATH, token)
            except httpx.HTTPError as e:
                self._report_failure("Failed to checkout", "Could not place your order", e)
                return False

        self._discard_view()
        self.error = None
        self._notifier.success("Order placed", kind="checkout")
        return True

    def _discard_view(self) -> None:
        # Fetches issued before this point must not repopulate the view
        self._applied_seq = self._issued_seq
        self._view = EMPTY_CART

    def _on_session_change(self, previous: Session, current: Session) -> None:
        if current.token == previous.token:
            return
        self._discard_view()
        self.error = None
        if current.status is not SessionStatus.AUTHENTICATED:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running event loop; cart refetch left to the caller")
            return
        task = loop.create_task(self.fetch_items())
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)

    async def drain(self) -> None:
        """Wait for refetches started by session changes."""
        pending = [task for task in self._background_tasks if not task.done()]
        while pending:
            await asyncio.gather(*pending)
            pending = [task for task in self._background_tasks if not task.done()]

    async def aclose(self) -> None:
        """Stop following the session and cancel pending refetches."""
        self._unsubscribe()
        for task in list(self._background_tasks):
            if not task.done():
                task.cancel()
        self._background_tasks.clear()
