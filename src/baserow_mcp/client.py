"""Async HTTP client wrapper for the Baserow table-rows API.

Handles:
  - Base URL injection and ``Authorization: Token ...`` header
  - ``user_field_names=true`` on every row request
  - Filter query building (``filter__<field>__<mode>=<value>``)
  - Error normalization into two distinct exceptions:
      BaserowApiError        the server answered with a non-2xx status
      BaserowConnectionError the request never completed
"""

from __future__ import annotations

import logging
from typing import Any, Literal

import httpx

from baserow_mcp.settings import Settings

logger = logging.getLogger(__name__)

FilterMode = Literal["equal", "contains"]
FilterValue = str | int | float | bool | None


class BaserowError(Exception):
    """Base class for failures talking to Baserow."""


class BaserowApiError(BaserowError):
    """Raised when Baserow responds with a non-success status code."""

    def __init__(self, status_code: int, body: Any) -> None:
        """Initialise with the HTTP status code and the raw response body."""
        self.status_code = status_code
        self.body = body

        detail = ""
        if isinstance(body, dict):
            detail = " ".join(
                str(part) for part in (body.get("error"), body.get("detail")) if part
            )
        elif isinstance(body, str):
            detail = body.strip()[:200]

        prefix = {
            401: "Authentication failed: ",
            403: "Permission denied: ",
            404: "Resource not found: ",
            400: "Request rejected: ",
        }.get(status_code, f"HTTP {status_code}: ")

        super().__init__(f"{prefix}{detail or response_text_fallback(status_code)}")


class BaserowConnectionError(BaserowError):
    """Raised when the request failed before a response was obtained."""

    def __init__(self, cause: Exception) -> None:
        self.cause = cause
        super().__init__(f"Failed to connect to Baserow API: {cause}")


def response_text_fallback(status_code: int) -> str:
    """Return a human-readable fallback message for a given HTTP status code."""
    return {
        400: "Bad request.",
        401: "Unauthorized, the database token may be invalid.",
        403: "Forbidden.",
        404: "Not found.",
        413: "Request entity too large.",
        429: "Rate limit exceeded.",
        500: "Internal server error.",
    }.get(status_code, f"HTTP {status_code} error.")


def build_filter_params(
    filters: dict[str, FilterValue] | None, mode: FilterMode
) -> dict[str, str]:
    """Translate a ``{field: value}`` mapping into Baserow filter parameters.

    ``None`` values are skipped; booleans use Baserow's lower-case spelling.
    """
    params: dict[str, str] = {}
    for field, value in (filters or {}).items():
        if value is None:
            continue
        if isinstance(value, bool):
            value = "true" if value else "false"
        params[f"filter__{field}__{mode}"] = str(value)
    return params


class BaserowClient:
    """Thin async wrapper around httpx for Baserow's row endpoints."""

    def __init__(
        self,
        settings: Settings,
        token: str,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Create a client bound to the configured instance and token."""
        self._settings = settings
        self._client = httpx.AsyncClient(
            base_url=settings.api_url.rstrip("/"),
            timeout=30.0,
            verify=True,
            transport=transport,
            headers={
                "Accept": "application/json",
                "Authorization": f"Token {token}",
            },
        )
        logger.debug("BaserowClient initialised with base URL %s", settings.api_url)

    @staticmethod
    def _rows_path(table_id: int, row_id: int | None = None) -> str:
        if row_id is None:
            return f"/api/database/rows/table/{int(table_id)}/"
        return f"/api/database/rows/table/{int(table_id)}/{int(row_id)}/"

    @staticmethod
    def _raise_for_status(response: httpx.Response) -> None:
        if response.is_success:
            return
        if "application/json" in response.headers.get("content-type", ""):
            try:
                body: Any = response.json()
            except ValueError:
                body = response.text
        else:
            body = response.text
        logger.error("Baserow API error %d: %s", response.status_code, body)
        raise BaserowApiError(response.status_code, body)

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        logger.debug("Baserow API %s %s", method, path)
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.RequestError as exc:
            logger.error("Baserow connection error: %s", exc)
            raise BaserowConnectionError(exc) from exc
        self._raise_for_status(response)
        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    async def list_rows(
        self,
        table_id: int,
        *,
        filters: dict[str, FilterValue] | None = None,
        page: int | None = None,
        size: int | None = None,
        mode: FilterMode | None = None,
    ) -> dict[str, Any]:
        """Return one page of rows: ``{count, next, previous, results}``."""
        params: dict[str, str] = {"user_field_names": "true"}
        if page is not None:
            params["page"] = str(page)
        if size is not None:
            params["size"] = str(size)
        params.update(build_filter_params(filters, mode or self._settings.filter_mode))
        return await self._request("GET", self._rows_path(table_id), params=params)

    async def get_row(self, table_id: int, row_id: int) -> dict[str, Any]:
        """Return a single row."""
        return await self._request(
            "GET",
            self._rows_path(table_id, row_id),
            params={"user_field_names": "true"},
        )

    async def create_row(self, table_id: int, data: dict[str, Any]) -> dict[str, Any]:
        """Create a row and return it as stored."""
        return await self._request(
            "POST",
            self._rows_path(table_id),
            params={"user_field_names": "true"},
            json=data,
        )

    async def update_row(
        self, table_id: int, row_id: int, data: dict[str, Any]
    ) -> dict[str, Any]:
        """Patch the supplied fields of a row and return it."""
        return await self._request(
            "PATCH",
            self._rows_path(table_id, row_id),
            params={"user_field_names": "true"},
            json=data,
        )

    async def delete_row(self, table_id: int, row_id: int) -> None:
        """Delete a row permanently."""
        await self._request("DELETE", self._rows_path(table_id, row_id))

    async def aclose(self) -> None:
        """Close the underlying HTTP client connection."""
        await self._client.aclose()

    async def __aenter__(self) -> BaserowClient:
        return self

    async def __aexit__(self, *_: Any) -> None:
        await self.aclose()
