"""HTTP client helpers for calling the bookstore API."""

from functools import lru_cache
from typing import Any, TypeVar

import httpx
from pydantic import TypeAdapter, ValidationError

from core.config import Settings
from core.exceptions import ResponseValidationError

T = TypeVar("T")

REQUEST_SOURCE = "bookstore-storefront"


def create_http_client(settings: Settings) -> httpx.AsyncClient:
    """Create the shared AsyncClient for API requests."""
    return httpx.AsyncClient(
        base_url=settings.api_url,
        timeout=settings.api_timeout,
    )


def _get_headers(token: str | None) -> dict[str, str]:
    """Get common headers for API requests; anonymous requests omit Authorization."""
    headers = {"X-Request-Source": REQUEST_SOURCE}
    if token:
        headers["Authorization"] = f"Bearer {token}"
    return headers


def _json_body(response: httpx.Response) -> Any:
    """Decode a JSON body, treating an empty body as None."""
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError as e:
        raise ResponseValidationError(response.request.url.path, "body is not valid JSON") from e


async def api_send(
    client: httpx.AsyncClient,
    method: str,
    path: str,
    token: str | None,
    json: dict[str, Any] | None = None,
) -> None:
    """Make a request whose response body is not used (2xx, possibly empty)."""
    response = await client.request(
        method,
        path,
        json=json,
        headers=_get_headers(token),
    )
    response.raise_for_status()


async def api_get(
    client: httpx.AsyncClient,
    path: str,
    token: str | None = None,
    params: dict[str, Any] | None = None,
) -> Any:
    """Make a GET request to the API, authenticated when a token is given."""
    response = await client.get(
        path,
        params=params,
        headers=_get_headers(token),
    )
    response.raise_for_status()
    return _json_body(response)


async def api_post(
    client: httpx.AsyncClient,
    path: str,
    token: str | None,
    json: dict[str, Any] | None = None,
) -> Any:
    """Make a POST request to the API."""
    response = await client.post(
        path,
        json=json,
        headers=_get_headers(token),
    )
    response.raise_for_status()
    return _json_body(response)


async def api_put(
    client: httpx.AsyncClient,
    path: str,
    token: str,
    json: dict[str, Any],
) -> Any:
    """Make an authenticated PUT request to the API."""
    response = await client.put(
        path,
        json=json,
        headers=_get_headers(token),
    )
    response.raise_for_status()
    return _json_body(response)


async def api_delete(
    client: httpx.AsyncClient,
    path: str,
    token: str,
) -> None:
    """Make an authenticated DELETE request to the API."""
    response = await client.delete(path, headers=_get_headers(token))
    response.raise_for_status()


async def api_upload(
    client: httpx.AsyncClient,
    path: str,
    token: str,
    field: str,
    filename: str,
    content: bytes,
    content_type: str = "application/octet-stream",
) -> Any:
    """Upload a single file as multipart/form-data."""
    response = await client.post(
        path,
        files={field: (filename, content, content_type)},
        headers=_get_headers(token),
    )
    response.raise_for_status()
    return _json_body(response)


@lru_cache(maxsize=64)
def _adapter(schema: Any) -> TypeAdapter:
    return TypeAdapter(schema)


def parse_response(schema: type[T], data: Any, path: str) -> T:
    """
    Validate a decoded response body against a schema.

    This is the deserialization boundary for every API call: callers get a
    typed value or a ResponseValidationError, never an unchecked dict.
    """
    try:
        return _adapter(schema).validate_python(data)
    except ValidationError as e:
        raise ResponseValidationError(path, _summarize(e)) from e


def _summarize(e: ValidationError) -> str:
    parts = []
    for err in e.errors()[:3]:
        loc = ".".join(str(p) for p in err["loc"]) or "body"
        parts.append(f"{loc}: {err['msg']}")
    if e.error_count() > 3:
        parts.append(f"... {e.error_count() - 3} more")
    return "; ".join(parts)
