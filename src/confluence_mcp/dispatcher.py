"""Tool dispatch boundary.

Validates arguments into the tool's request model and hands the typed request
to its handler. Every failure leaves this layer as a :class:`ToolCallError`
whose message names the tool.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from loguru import logger
from pydantic import ValidationError

from .errors import ConfluenceMCPError, InvalidToolArguments, ToolCallError
from .service import ConfluenceService
from .tools import TOOLS_BY_NAME, ToolSpec, advertised_tools


class ToolDispatcher:
    """Route MCP tool calls to :class:`ConfluenceService` operations."""

    def __init__(self, service: ConfluenceService) -> None:
        self.service = service

    @property
    def read_only(self) -> bool:
        return self.service.access.read_only

    def list_tools(self) -> list[ToolSpec]:
        return advertised_tools(self.read_only)

    async def dispatch(self, tool_name: str, args: Mapping[str, Any] | None) -> dict[str, Any]:
        """Execute ``tool_name`` with the raw argument mapping.

        Mutating tools stay callable in read-only mode so the service rejects
        them with :class:`~confluence_mcp.errors.ReadOnlyViolation`.
        """
        spec = TOOLS_BY_NAME.get(tool_name)
        if spec is None:
            raise ToolCallError(tool_name, ValueError(f"Unknown tool: {tool_name}"))

        try:
            request = spec.request_model.model_validate(dict(args or {}))
        except ValidationError as exc:
            invalid = InvalidToolArguments(tool_name, exc.errors(include_url=False))
            logger.warning(invalid.message)
            raise ToolCallError(tool_name, invalid) from exc

        summary = request.model_dump(exclude={"content", "task_description"}, exclude_none=True)
        logger.info(f"{tool_name} called with {summary}")
        try:
            return await spec.handler(self.service, request)
        except ConfluenceMCPError as exc:
            logger.error(f"{tool_name} failed: {exc.message}")
            raise ToolCallError(tool_name, exc) from exc
