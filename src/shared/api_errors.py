"""
Shared API error parsing for the storefront services.

Extracts a semantic category and a user-presentable message from HTTP
errors returned by the bookstore API. Callers decide how to surface the
parsed error (notification, exception, error field).
"""

from dataclasses import dataclass
from typing import Literal

import httpx

ErrorCategory = Literal[
    "auth",        # 401 - Missing, invalid or expired token
    "forbidden",   # 403 - Role does not allow the action
    "not_found",   # 404 - Resource not found
    "validation",  # 400/422 - Input rejected by the server
    "internal",    # 5xx or unexpected status
]


@dataclass
class ParsedApiError:
    """Parsed API error with semantic category and message."""

    category: ErrorCategory
    message: str
    status_code: int


def parse_http_error(
    e: httpx.HTTPStatusError,
    entity_type: str = "",
    entity_id: str | int | None = None,
) -> ParsedApiError:
    """
    Parse HTTP error into semantic categories.

    Args:
        e: The HTTP status error from httpx
        entity_type: Type of entity (e.g., "book", "category") for error messages
        entity_id: ID of the entity for error messages

    Returns:
        ParsedApiError with category and message
    """
    status = e.response.status_code

    if status == 401:
        return ParsedApiError("auth", "Invalid or expired session", status)

    if status == 403:
        return ParsedApiError("forbidden", "Access denied", status)

    if status == 404:
        subject = entity_type.title() if entity_type else "Resource"
        if entity_id is not None:
            return ParsedApiError("not_found", f"{subject} {entity_id} not found", status)
        return ParsedApiError("not_found", f"{subject} not found", status)

    if status in (400, 422):
        return ParsedApiError("validation", extract_error_message(e), status)

    return ParsedApiError("internal", f"API error {status}", status)


def extract_error_message(e: httpx.HTTPStatusError, default: str = "Validation error") -> str:
    """
    Extract the server's message from an error response.

    The bookstore API answers rejected input with {"message": "..."}; a
    FastAPI-style {"detail": ...} body is accepted too.
    """
    try:
        body = e.response.json()
    except ValueError:
        text = e.response.text.strip() if e.response.text else ""
        return text or default
    if isinstance(body, str) and body:
        return body
    if not isinstance(body, dict):
        return default
    message = body.get("message")
    if isinstance(message, str) and message:
        return message
    detail = body.get("detail")
    if isinstance(detail, str) and detail:
        return detail
    if isinstance(detail, dict):
        return str(detail.get("message", default))
    if isinstance(detail, list):
        messages = []
        for err in detail:
            if isinstance(err, dict):
                loc = err.get("loc", ["unknown"])
                field = loc[-1] if loc else "unknown"
                messages.append(f"{field}: {err.get('msg', 'invalid')}")
        return "; ".join(messages) if messages else default
    return default
