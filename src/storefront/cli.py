"""
Command-line front end for the storefront client.

Usage:
    python -m storefront login EMAIL PASSWORD
    python -m storefront whoami
    python -m storefront cart
    python -m storefront set-quantity BOOK_ID QUANTITY
    python -m storefront checkout
    python -m storefront search QUERY
    python -m storefront favorites
    python -m storefront logout
"""

import argparse
import asyncio
import logging
import sys

import httpx

from core.config import get_settings
from core.exceptions import AuthRejectedError, StorefrontError
from core.log_config import configure_logging
from core.notifications import Notification, Notifier
from shared.api_errors import parse_http_error

from .app import Storefront

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="storefront", description="Bookstore client.")
    subparsers = parser.add_subparsers(dest="command", required=True)

    for name in ("login", "register"):
        sub = subparsers.add_parser(name, help=f"{name.title()} and store the session token")
        sub.add_argument("email")
        sub.add_argument("password")

    subparsers.add_parser("logout", help="Forget the stored session token")
    subparsers.add_parser("whoami", help="Show the current session")
    subparsers.add_parser("cart", help="Show the cart and its total")

    set_qty = subparsers.add_parser("set-quantity", help="Set the quantity of a book in the cart")
    set_qty.add_argument("book_id", type=int)
    set_qty.add_argument("quantity", type=int)

    subparsers.add_parser("checkout", help="Place the order for the current cart")

    search = subparsers.add_parser("search", help="Search books")
    search.add_argument("query")

    subparsers.add_parser("favorites", help="List wishlist books")
    return parser


def _print_navigation(route: str) -> None:
    print(f"-> {route}")


def _print_notification(notification: Notification) -> None:
    stream = sys.stdout if notification.level == "success" else sys.stderr
    print(notification.message, file=stream)


async def run(args: argparse.Namespace) -> int:  # noqa: PLR0911, PLR0912
    """Execute one command. Returns the process exit code."""
    notifier = Notifier()
    # Must subscribe before start(): the startup cart load notifies
    notifier.subscribe(_print_notification)
    async with Storefront.from_settings(navigate=_print_navigation, notifier=notifier) as store:
        command = args.command

        if command in ("login", "register"):
            method = store.auth.login if command == "login" else store.auth.register
            session = await method(args.email, args.password)
            print(f"Signed in ({session.claims.role})" if session.claims else "Not signed in")
            return 0

        if command == "logout":
            store.auth.logout()
            print("Signed out")
            return 0

        if command == "whoami":
            session = store.session_guard.session
            if session.claims is None:
                print(session.status)
                return 1
            print(f"user {session.claims.subject_id} ({session.claims.role})")
            return 0

        needs_session = command in ("cart", "set-quantity", "checkout")
        if needs_session and not store.session_guard.require_authenticated():
            return 1

        if command == "cart":
            # start() already loaded the cart for the signed-in session
            if store.cart.error is not None:
                return 1
            for item in store.cart.items:
                print(f"{item.book_id}\t{item.quantity} x {item.unit_price}\t{item.title}")
            print(f"Total: {store.cart.total_price:.2f}")
            return 0

        if command == "set-quantity":
            return 0 if await store.cart.set_quantity(args.book_id, args.quantity) else 1

        if command == "checkout":
            return 0 if await store.cart.checkout() else 1

        if command == "search":
            for book in await store.catalog.search_books(args.query):
                print(f"{book.id}\t{book.price}\t{book.title}")
            return 0

        if command == "favorites":
            for book in await store.catalog.list_favorites():
                print(f"{book.id}\t{book.price}\t{book.title}")
            return 0

    return 2


def main(argv: list[str] | None = None) -> int:
    """Entry point for the storefront command."""
    configure_logging(get_settings())
    args = build_parser().parse_args(argv)
    try:
        return asyncio.run(run(args))
    except AuthRejectedError as e:
        print(str(e), file=sys.stderr)
        return 1
    except httpx.HTTPStatusError as e:
        print(parse_http_error(e).message, file=sys.stderr)
        return 1
    except (httpx.RequestError, StorefrontError) as e:
        logger.debug("Command failed", exc_info=True)
        print(f"Error: {e}", file=sys.stderr)
        return 1
