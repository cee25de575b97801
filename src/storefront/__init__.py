"""Async client for the bookstore REST API: session guard, cart, catalog and admin."""

from .app import Storefront

__all__ = ["Storefront"]
