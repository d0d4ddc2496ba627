"""Tool-call pipeline: validate, guard, route, shape, and wrap in an envelope.

Every tool call ends in one of two shapes::

    {"success": True, "data": ..., "metadata": {...}}        # metadata optional
    {"success": False, "error": {"code", "message", "details"?}}

``ToolHandler.handle_tool_call`` never raises; every exception is mapped to
an error envelope in ``_error_response``.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import Any

from baserow_mcp.allowlist import UnauthorizedTableAccess
from baserow_mcp.client import BaserowApiError, BaserowConnectionError
from baserow_mcp.models import (
    WRITE_COMMANDS,
    CreateRequest,
    DeleteRequest,
    ReadRequest,
    RequestValidationError,
    UnknownToolError,
    UpdateRequest,
    parse_request,
)
from baserow_mcp.settings import Settings
from baserow_mcp.shaping import shape_list_response
from baserow_mcp.tables import TablesService
from baserow_mcp.workflows import PartialWriteError, WorkflowError, Workflows

logger = logging.getLogger(__name__)

DEFAULT_READ_SIZE = 100

VALIDATION_ERROR = "VALIDATION_ERROR"
UNKNOWN_TOOL = "UNKNOWN_TOOL"
UNAUTHORIZED_TABLE = "UNAUTHORIZED_TABLE_ACCESS"
API_ERROR = "BASEROW_API_ERROR"
CONNECTION_ERROR = "CONNECTION_ERROR"
READ_ONLY_MODE = "READ_ONLY_MODE"
WRITE_RATE_LIMITED = "WRITE_RATE_LIMITED"
INTERNAL_ERROR = "INTERNAL_ERROR"

_READ_ONLY_ERROR = (
    "This server is running in read-only mode (BASEROW_READ_ONLY=true). "
    "Write operations (create, update, delete, batch_create, process_bpr) "
    "are disabled."
)

_RATE_LIMIT_ERROR = (
    "Write operation rate limit exceeded (max {limit} per session). "
    "This safety limit prevents runaway automation. "
    "Adjust BASEROW_MAX_WRITE_CALLS_PER_SESSION to change the limit."
)


def success_response(
    data: Any, metadata: dict[str, Any] | None = None
) -> dict[str, Any]:
    response: dict[str, Any] = {"success": True, "data": data}
    if metadata:
        response["metadata"] = metadata
    return response


def error_response(
    code: str, message: str, details: dict[str, Any] | None = None
) -> dict[str, Any]:
    error: dict[str, Any] = {"code": code, "message": message}
    if details is not None:
        error["details"] = details
    return {"success": False, "error": error}


class WriteRejected(Exception):
    """Raised by WriteGuard when a write tool may not run."""

    def __init__(self, code: str, message: str) -> None:
        self.code = code
        super().__init__(message)


class WriteGuard:
    """Read-only switch and per-session write-call budget.

    One guard lives for the whole server lifespan (one MCP session over
    stdio); limit 0 disables the budget.
    """

    def __init__(self, read_only: bool, max_calls: int) -> None:
        self.read_only = read_only
        self.max_calls = max_calls
        self.calls = 0

    def check(self, command: str) -> None:
        if self.read_only:
            raise WriteRejected(READ_ONLY_MODE, _READ_ONLY_ERROR)
        if self.max_calls > 0:
            self.calls += 1
            if self.calls > self.max_calls:
                logger.warning(
                    "Write rate limit reached (%d/%d): %s denied",
                    self.calls,
                    self.max_calls,
                    command,
                )
                raise WriteRejected(
                    WRITE_RATE_LIMITED, _RATE_LIMIT_ERROR.format(limit=self.max_calls)
                )


class ToolHandler:
    """Entry point for every MCP tool call."""

    def __init__(
        self,
        tables: TablesService,
        workflows: Workflows,
        settings: Settings,
        write_guard: WriteGuard | None = None,
    ) -> None:
        self._tables = tables
        self._workflows = workflows
        self._settings = settings
        self._write_guard = write_guard or WriteGuard(
            settings.read_only, settings.max_write_calls_per_session
        )
        self._routes: dict[str, Callable[[Any], Awaitable[dict[str, Any]]]] = {
            "list_tables": self._list_tables,
            "read": self._read,
            "create": self._create,
            "update": self._update,
            "delete": self._delete,
            "batch_create": self._wrap(workflows.batch_create),
            "get_bom": self._wrap(workflows.get_bom),
            "process_bpr": self._wrap(workflows.process_bpr),
            "search_parts": self._wrap(workflows.search_parts),
        }

    @property
    def write_guard(self) -> WriteGuard:
        return self._write_guard

    async def handle_tool_call(self, tool_name: str, args: Any) -> dict[str, Any]:
        """Validate *args* for *tool_name*, run it, and return an envelope."""
        logger.info("Handling tool call: %s", tool_name)
        logger.debug("Tool arguments: %s", args)
        try:
            request = parse_request(tool_name, args)
            if tool_name in WRITE_COMMANDS:
                self._write_guard.check(tool_name)
            return await self._routes[tool_name](request)
        except Exception as exc:
            return self._error_response(exc)

    # -- routes --------------------------------------------------------------

    @staticmethod
    def _wrap(
        operation: Callable[[Any], Awaitable[dict[str, Any]]],
    ) -> Callable[[Any], Awaitable[dict[str, Any]]]:
        async def run(request: Any) -> dict[str, Any]:
            return success_response(await operation(request))

        return run

    async def _list_tables(self, _request: Any) -> dict[str, Any]:
        tables = [table.as_dict() for table in self._tables.list_tables()]
        return success_response({"tables": tables})

    async def _read(self, request: ReadRequest) -> dict[str, Any]:
        cap = self._settings.max_records_per_page
        size = request.size or DEFAULT_READ_SIZE
        if cap > 0:
            size = min(size, cap)

        response = await self._tables.list_records(
            request.table, request.filters, request.page, size
        )
        shaped = shape_list_response(
            response,
            max_records=cap,
            max_chars=self._settings.max_response_chars,
        )
        return success_response(
            shaped,
            {
                "count": response.get("count"),
                "page": request.page or 1,
                "size": size,
                "next": response.get("next"),
                "previous": response.get("previous"),
            },
        )

    async def _create(self, request: CreateRequest) -> dict[str, Any]:
        record = await self._tables.create_record(request.table, dict(request.data))
        return success_response(record)

    async def _update(self, request: UpdateRequest) -> dict[str, Any]:
        record = await self._tables.update_record(
            request.table, request.record_id, dict(request.data)
        )
        return success_response(record)

    async def _delete(self, request: DeleteRequest) -> dict[str, Any]:
        await self._tables.delete_record(request.table, request.record_id)
        return success_response({"deleted": True, "record_id": request.record_id})

    # -- errors --------------------------------------------------------------

    def _error_response(self, exc: Exception) -> dict[str, Any]:
        """Map an exception to its error envelope."""
        if isinstance(exc, PartialWriteError):
            response = self._error_response(exc.cause)
            error = response["error"]
            error["message"] = str(exc)
            error["details"] = {
                **(error.get("details") or {}),
                "operation": exc.operation,
                "created_record_ids": list(exc.created_ids),
            }
            return response

        if isinstance(exc, RequestValidationError):
            logger.warning("Validation failed: %s", exc)
            return error_response(
                VALIDATION_ERROR,
                str(exc),
                {"violations": [v.as_dict() for v in exc.violations]},
            )
        if isinstance(exc, UnknownToolError):
            logger.warning("%s", exc)
            return error_response(UNKNOWN_TOOL, str(exc), {"tool": exc.tool})
        if isinstance(exc, UnauthorizedTableAccess):
            return error_response(UNAUTHORIZED_TABLE, str(exc), {"table": exc.table})
        if isinstance(exc, WriteRejected):
            return error_response(exc.code, str(exc))
        if isinstance(exc, WorkflowError):
            logger.warning("Workflow error %s: %s", exc.code, exc.message)
            return error_response(exc.code, exc.message, exc.details)
        if isinstance(exc, BaserowApiError):
            return error_response(
                API_ERROR,
                str(exc),
                {"status_code": exc.status_code, "response": exc.body},
            )
        if isinstance(exc, BaserowConnectionError):
            return error_response(CONNECTION_ERROR, str(exc), {"cause": str(exc.cause)})

        logger.error("Unexpected error while handling tool call", exc_info=exc)
        return error_response(INTERNAL_ERROR, "An unexpected internal error occurred")
