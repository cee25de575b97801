"""Tests for the cart synchronizer."""
import asyncio
import json
from decimal import Decimal
from typing import Any

import httpx
import pytest
import respx
from httpx import Response

from core.notifications import Notifier
from core.session import SessionGuard
from core.token_storage import MemoryTokenStorage
from schemas.book import Book
from services.cart_service import CartService, classify_quantity_change


def _success_kinds(notifier: Notifier) -> list[str | None]:
    return [n.kind for n in notifier.history if n.level == "success"]


def _errors(notifier: Notifier) -> list[str]:
    return [n.message for n in notifier.history if n.level == "error"]


class TestClassifyQuantityChange:
    """Tests for classify_quantity_change."""

    @pytest.mark.parametrize(
        ("previous", "target", "expected"),
        [
            (2, 0, "removed"),
            (0, 0, "removed"),
            (2, 3, "increased"),
            (0, 1, "increased"),
            (3, 2, "decreased"),
            (2, 2, "decreased"),
        ],
    )
    def test__classify_quantity_change(self, previous: int, target: int, expected: str) -> None:
        assert classify_quantity_change(previous, target) == expected


class TestFetchItems:
    """Tests for CartService.fetch_items."""

    async def test__fetch_items__replaces_view(
        self, cart: CartService, mock_api: respx.MockRouter, cart_payload, signed_in: str,
    ) -> None:
        route = mock_api.get("/api/cart").mock(
            return_value=Response(200, json=cart_payload((1, "10.00", 2), (4, "5.50", 1))),
        )

        assert await cart.fetch_items() is True

        assert [item.book_id for item in cart.items] == [1, 4]
        assert cart.items[0].unit_price == Decimal("10.00")
        assert cart.items[0].quantity == 2
        assert cart.items[1].cover_image_url == "/covers/4.jpg"
        assert cart.total_price == Decimal("25.50")
        assert cart.error is None
        assert route.calls[0].request.headers["authorization"] == f"Bearer {signed_in}"

    async def test__fetch_items__null_cover_loads_with_empty_cover(
        self, cart: CartService, mock_api: respx.MockRouter, cart_payload, notifier: Notifier,
    ) -> None:
        body = cart_payload((1, "10.00", 2), (4, "5.50", 1))
        body["items"][0]["coverImage"] = None
        mock_api.get("/api/cart").mock(return_value=Response(200, json=body))

        assert await cart.fetch_items() is True

        assert cart.items[0].cover_image_url == ""
        assert cart.items[1].cover_image_url == "/covers/4.jpg"
        assert cart.total_price == Decimal("25.50")
        assert _errors(notifier) == []

    async def test__fetch_items__keeps_server_order(
        self, cart: CartService, mock_api: respx.MockRouter, cart_payload,
    ) -> None:
        mock_api.get("/api/cart").mock(
            side_effect=[
                Response(200, json=cart_payload((1, "1.00", 1), (2, "2.00", 1))),
                Response(200, json=cart_payload((2, "2.00", 1), (1, "1.00", 1))),
            ],
        )

        await cart.fetch_items()
        await cart.fetch_items()

        assert [item.book_id for item in cart.items] == [2, 1]

    async def test__fetch_items__server_error_keeps_last_view(
        self, cart: CartService, mock_api: respx.MockRouter, cart_payload, notifier: Notifier,
    ) -> None:
        mock_api.get("/api/cart").mock(
            side_effect=[
                Response(200, json=cart_payload((1, "10.00", 2))),
                Response(500, json={"message": "boom"}),
            ],
        )
        await cart.fetch_items()
        before = cart.view

        assert await cart.fetch_items() is False

        assert cart.view is before
        assert cart.error == "Failed to fetch cart items"
        assert _errors(notifier) == ["Could not load your cart"]

    async def test__fetch_items__network_error_keeps_last_view(
        self, cart: CartService, mock_api: respx.MockRouter, cart_payload,
    ) -> None:
        mock_api.get("/api/cart").mock(
            side_effect=[
                Response(200, json=cart_payload((3, "7.25", 1))),
                httpx.ConnectError("connection refused"),
            ],
        )
        await cart.fetch_items()

        assert await cart.fetch_items() is False
        assert [item.book_id for item in cart.items] == [3]

    @pytest.mark.parametrize(
        "body",
        [
            {"wrong": []},
            {"items": [{"id": 1, "title": "x", "price": "1.00"}]},
            {"items": [{"id": 1, "title": "x", "price": "abc", "amount": 1}]},
            {"items": [{"id": 1, "title": "x", "price": "1.00", "amount": -1}]},
            [],
        ],
    )
    async def test__fetch_items__malformed_payload_is_a_fetch_error(
        self,
        cart: CartService,
        mock_api: respx.MockRouter,
        notifier: Notifier,
        body: Any,
    ) -> None:
        mock_api.get("/api/cart").mock(return_value=Response(200, json=body))

        assert await cart.fetch_items() is False
        assert cart.items == ()
        assert len(_errors(notifier)) == 1

    async def test__fetch_items__duplicate_book_lines_rejected(
        self, cart: CartService, mock_api: respx.MockRouter, cart_payload,
    ) -> None:
        mock_api.get("/api/cart").mock(
            return_value=Response(200, json=cart_payload((1, "1.00", 1), (1, "1.00", 2))),
        )

        assert await cart.fetch_items() is False
        assert cart.items == ()

    async def test__fetch_items__signed_out_sends_nothing(
        self,
        http_client: httpx.AsyncClient,
        guard: SessionGuard,
        notifier: Notifier,
        mock_api: respx.MockRouter,
    ) -> None:
        route = mock_api.get("/api/cart")
        guard.refresh()
        service = CartService(http_client, guard, notifier)

        assert await service.fetch_items() is False

        assert not route.called
        assert service.error == "Failed to fetch cart items"
        assert len(_errors(notifier)) == 1

    async def test__fetch_items__discards_response_older_than_applied(
        self, cart: CartService, cart_payload, monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        release_first = asyncio.Event()
        responses = iter([
            (cart_payload((1, "1.00", 1)), release_first),
            (cart_payload((2, "2.00", 5)), None),
        ])

        async def fake_api_get(*args: Any, **kwargs: Any) -> dict[str, Any]:  # noqa: ARG001
            data, gate = next(responses)
            if gate is not None:
                await gate.wait()
            return data

        monkeypatch.setattr("services.cart_service.api_get", fake_api_get)

        first = asyncio.create_task(cart.fetch_items())
        await asyncio.sleep(0)
        assert cart.loading is True

        assert await cart.fetch_items() is True
        release_first.set()
        assert await first is False

        assert [item.book_id for item in cart.items] == [2]
        assert cart.loading is False

    async def test__fetch_items__stale_failure_is_not_reported(
        self,
        cart: CartService,
        cart_payload,
        notifier: Notifier,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        release_first = asyncio.Event()
        calls = 0

        async def fake_api_get(*args: Any, **kwargs: Any) -> dict[str, Any]:  # noqa: ARG001
            nonlocal calls
            calls += 1
            if calls == 1:
                await release_first.wait()
                raise httpx.ConnectError("connection reset")
            return cart_payload((2, "2.00", 5))

        monkeypatch.setattr("services.cart_service.api_get", fake_api_get)

        first = asyncio.create_task(cart.fetch_items())
        await asyncio.sleep(0)

        assert await cart.fetch_items() is True
        release_first.set()
        assert await first is False

        assert [item.book_id for item in cart.items] == [2]
        assert cart.error is None
        assert _errors(notifier) == []


class TestSetQuantity:
    """Tests for CartService.set_quantity."""

    async def test__set_quantity__negative_is_silent_noop(
        self, cart: CartService, mock_api: respx.MockRouter, cart_payload, notifier: Notifier,
    ) -> None:
        mock_api.get("/api/cart").mock(return_value=Response(200, json=cart_payload((1, "10.00", 2))))
        await cart.fetch_items()
        before = cart.view
        post = mock_api.post("/api/cart")
        calls_before = len(mock_api.calls)

        assert await cart.set_quantity(1, -1) is False

        assert cart.view is before
        assert not post.called
        assert len(mock_api.calls) == calls_before
        assert notifier.history == ()

    async def test__set_quantity__increase_sends_absolute_quantity(
        self, cart: CartService, mock_api: respx.MockRouter, cart_payload, notifier: Notifier,
    ) -> None:
        mock_api.get("/api/cart").mock(
            side_effect=[
                Response(200, json=cart_payload((1, "10.00", 2))),
                Response(200, json=cart_payload((1, "10.00", 3))),
            ],
        )
        post = mock_api.post("/api/cart").mock(return_value=Response(200))
        await cart.fetch_items()

        assert await cart.set_quantity(1, 3) is True

        assert json.loads(post.calls[0].request.content) == {"bookId": 1, "amount": 3}
        assert cart.view.quantity_of(1) == 3
        assert cart.total_price == Decimal("30.00")
        assert _success_kinds(notifier) == ["increased"]

    async def test__set_quantity__view_reflects_server_not_request(
        self, cart: CartService, mock_api: respx.MockRouter, cart_payload,
    ) -> None:
        # Server clamps to available stock
        mock_api.get("/api/cart").mock(return_value=Response(200, json=cart_payload((1, "10.00", 4))))
        mock_api.post("/api/cart").mock(return_value=Response(204))

        await cart.set_quantity(1, 99)

        assert cart.view.quantity_of(1) == 4

    async def test__set_quantity__zero_then_empty_fetch_removes(
        self, cart: CartService, mock_api: respx.MockRouter, cart_payload, notifier: Notifier,
    ) -> None:
        mock_api.get("/api/cart").mock(
            side_effect=[
                Response(200, json=cart_payload((1, "10.00", 2))),
                Response(200, json=cart_payload()),
            ],
        )
        mock_api.post("/api/cart").mock(return_value=Response(200, json={}))
        await cart.fetch_items()

        assert await cart.set_quantity(1, 0) is True

        assert cart.items == ()
        assert cart.total_price == Decimal("0")
        assert _success_kinds(notifier) == ["removed"]

    async def test__set_quantity__decrease_notification(
        self, cart: CartService, mock_api: respx.MockRouter, cart_payload, notifier: Notifier,
    ) -> None:
        mock_api.get("/api/cart").mock(
            side_effect=[
                Response(200, json=cart_payload((1, "10.00", 3))),
                Response(200, json=cart_payload((1, "10.00", 2))),
            ],
        )
        mock_api.post("/api/cart").mock(return_value=Response(200))
        await cart.fetch_items()

        await cart.set_quantity(1, 2)

        assert _success_kinds(notifier) == ["decreased"]

    async def test__set_quantity__new_book_counts_as_increase(
        self, cart: CartService, mock_api: respx.MockRouter, cart_payload, notifier: Notifier,
    ) -> None:
        mock_api.get("/api/cart").mock(return_value=Response(200, json=cart_payload((9, "3.00", 1))))
        mock_api.post("/api/cart").mock(return_value=Response(200))

        await cart.add_to_cart(9, 1)

        assert _success_kinds(notifier) == ["increased"]

    async def test__set_quantity__post_failure_keeps_view_and_skips_fetch(
        self, cart: CartService, mock_api: respx.MockRouter, cart_payload, notifier: Notifier,
    ) -> None:
        get_route = mock_api.get("/api/cart").mock(
            return_value=Response(200, json=cart_payload((1, "10.00", 2))),
        )
        mock_api.post("/api/cart").mock(return_value=Response(500))
        await cart.fetch_items()
        before = cart.view

        assert await cart.set_quantity(1, 5) is False

        assert cart.view == before
        assert get_route.call_count == 1
        assert cart.error == "Failed to add/update cart item"
        assert _errors(notifier) == ["Could not update your cart"]
        assert _success_kinds(notifier) == []

    def test__update_item__is_set_quantity(self) -> None:
        assert CartService.update_item is CartService.set_quantity
        assert CartService.add_to_cart is CartService.set_quantity


class TestAddBook:
    """Tests for CartService.add_book."""

    @pytest.fixture
    def book(self) -> Book:
        return Book(id=3, title="Dune", price=Decimal("12.00"), stocks_available=4)

    @pytest.mark.parametrize("quantity", [0, -1, 5])
    async def test__add_book__rejects_unorderable_quantity(
        self, cart: CartService, mock_api: respx.MockRouter, book: Book, quantity: int,
    ) -> None:
        post = mock_api.post("/api/cart")

        assert await cart.add_book(book, quantity) is False
        assert not post.called

    async def test__add_book__same_quantity_sends_nothing(
        self, cart: CartService, mock_api: respx.MockRouter, cart_payload, book: Book,
    ) -> None:
        mock_api.get("/api/cart").mock(return_value=Response(200, json=cart_payload((3, "12.00", 2))))
        post = mock_api.post("/api/cart")
        await cart.fetch_items()

        assert await cart.add_book(book, 2) is True
        assert not post.called

    async def test__add_book__within_stock_updates_cart(
        self, cart: CartService, mock_api: respx.MockRouter, cart_payload, book: Book,
    ) -> None:
        mock_api.get("/api/cart").mock(return_value=Response(200, json=cart_payload((3, "12.00", 4))))
        post = mock_api.post("/api/cart").mock(return_value=Response(200))

        assert await cart.add_book(book, 4) is True
        assert json.loads(post.calls[0].request.content) == {"bookId": 3, "amount": 4}


class TestCheckout:
    """Tests for CartService.checkout."""

    async def test__checkout__success_clears_without_refetch(
        self, cart: CartService, mock_api: respx.MockRouter, cart_payload, notifier: Notifier,
    ) -> None:
        get_route = mock_api.get("/api/cart").mock(
            return_value=Response(200, json=cart_payload((1, "10.00", 2))),
        )
        checkout_route = mock_api.get("/api/cart/checkout").mock(return_value=Response(200))
        await cart.fetch_items()

        assert await cart.checkout() is True

        assert cart.items == ()
        assert cart.total_price == Decimal("0")
        assert checkout_route.called
        assert get_route.call_count == 1
        assert _success_kinds(notifier) == ["checkout"]

    @pytest.mark.parametrize(
        "failure",
        [Response(500), Response(401), httpx.ReadTimeout("timed out")],
    )
    async def test__checkout__failure_leaves_view_unchanged(
        self,
        cart: CartService,
        mock_api: respx.MockRouter,
        cart_payload,
        notifier: Notifier,
        failure: Response | Exception,
    ) -> None:
        mock_api.get("/api/cart").mock(
            return_value=Response(200, json=cart_payload((1, "10.00", 2), (2, "3.00", 1))),
        )
        mock_api.get("/api/cart/checkout").mock(side_effect=[failure])
        await cart.fetch_items()
        before = cart.view
        before_dump = before.model_dump_json()

        assert await cart.checkout() is False

        assert cart.view is before
        assert cart.view.model_dump_json() == before_dump
        assert cart.error == "Failed to checkout"
        assert _errors(notifier) == ["Could not place your order"]

    async def test__checkout__in_flight_fetch_does_not_repopulate(
        self, cart: CartService, mock_api: respx.MockRouter, cart_payload,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        mock_api.get("/api/cart/checkout").mock(return_value=Response(200))
        release = asyncio.Event()

        async def slow_api_get(*args: Any, **kwargs: Any) -> dict[str, Any]:  # noqa: ARG001
            await release.wait()
            return cart_payload((1, "10.00", 2))

        monkeypatch.setattr("services.cart_service.api_get", slow_api_get)

        pending = asyncio.create_task(cart.fetch_items())
        await asyncio.sleep(0)
        assert await cart.checkout() is True
        release.set()

        assert await pending is False
        assert cart.items == ()


class TestSessionCoupling:
    """Tests for the cart following session changes."""

    async def test__session_change__new_login_refetches(
        self,
        http_client: httpx.AsyncClient,
        guard: SessionGuard,
        storage: MemoryTokenStorage,
        notifier: Notifier,
        mock_api: respx.MockRouter,
        cart_payload,
        token_factory,
    ) -> None:
        route = mock_api.get("/api/cart").mock(
            return_value=Response(200, json=cart_payload((5, "4.00", 3))),
        )
        guard.refresh()
        service = CartService(http_client, guard, notifier)

        token = token_factory(user_id=11)
        storage.set("token", token)
        guard.refresh()
        await service.drain()

        assert route.call_count == 1
        assert route.calls[0].request.headers["authorization"] == f"Bearer {token}"
        assert service.view.quantity_of(5) == 3
        await service.aclose()

    async def test__session_change__logout_discards_view(
        self,
        cart: CartService,
        guard: SessionGuard,
        storage: MemoryTokenStorage,
        mock_api: respx.MockRouter,
        cart_payload,
    ) -> None:
        mock_api.get("/api/cart").mock(return_value=Response(200, json=cart_payload((1, "1.00", 1))))
        await cart.fetch_items()

        storage.remove("token")
        guard.refresh()

        assert cart.items == ()

    async def test__session_change__user_switch_discards_previous_cart(
        self,
        cart: CartService,
        guard: SessionGuard,
        storage: MemoryTokenStorage,
        mock_api: respx.MockRouter,
        cart_payload,
        token_factory,
    ) -> None:
        mock_api.get("/api/cart").mock(
            side_effect=[
                Response(200, json=cart_payload((1, "1.00", 1))),
                Response(200, json=cart_payload((2, "2.00", 2))),
            ],
        )
        await cart.fetch_items()

        storage.set("token", token_factory(user_id=99))
        guard.refresh()
        assert cart.items == ()
        await cart.drain()

        assert [item.book_id for item in cart.items] == [2]

    async def test__aclose__stops_following_session(
        self,
        cart: CartService,
        guard: SessionGuard,
        storage: MemoryTokenStorage,
        mock_api: respx.MockRouter,
        token_factory,
    ) -> None:
        route = mock_api.get("/api/cart").mock(return_value=Response(200, json={"items": []}))
        await cart.aclose()

        storage.set("token", token_factory(user_id=50))
        guard.refresh()
        await cart.drain()

        assert not route.called
