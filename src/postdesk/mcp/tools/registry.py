"""ToolSpec and ToolRegistry for MCP tool dispatch.

Key concepts:
- ToolSpec: Immutable dataclass linking a Tool definition to an async
  handler with standardized signature (workspace, args) -> CallToolResult.
- ToolRegistry: Holds the specs by name, optionally dropping tools that
  write to the workspace, and provides list_tools() and call_tool()
  dispatch with error translation.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING

import mcp.types as types

if TYPE_CHECKING:
    from ..lifespan import Workspace

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ToolSpec:
    """Immutable specification for a single MCP tool.

    Attributes:
        tool: The MCP Tool definition (name, description, inputSchema).
        handler: Async handler with signature (workspace, args) -> CallToolResult.
        writes: True if the tool changes files or the repository.
    """

    tool: types.Tool
    handler: Callable[[Workspace, dict], Awaitable[types.CallToolResult]]
    writes: bool = False


class ToolRegistry:
    """Registry of ToolSpecs.

    With ``read_only=True`` only tools that never write are registered.
    """

    def __init__(self, specs: list[ToolSpec], read_only: bool = False):
        self._specs: dict[str, ToolSpec] = {}
        for spec in specs:
            if read_only and spec.writes:
                continue
            self._specs[spec.tool.name] = spec

    def list_tools(self) -> list[types.Tool]:
        """Return list of types.Tool for all registered specs."""
        return [spec.tool for spec in self._specs.values()]

    def tool_count(self) -> int:
        """Return number of registered tools."""
        return len(self._specs)

    async def call_tool(
        self,
        name: str,
        arguments: dict | None,
        workspace: Workspace,
    ) -> types.CallToolResult:
        """Dispatch tool call to registered handler.

        Domain errors (no open document, rejected or failed publish, file
        and validation errors) become structured error results with a
        corrective action; anything else is logged and reported as a
        server error.

        Args:
            name: Tool name to invoke.
            arguments: Tool arguments (may be None).
            workspace: Shared workspace state.

        Returns:
            CallToolResult from the handler.

        Raises:
            ValueError: If tool name is not registered (unknown or filtered out).
        """
        from .errors import build_error_response, translate_exception

        spec = self._specs.get(name)
        if spec is None:
            raise ValueError(f"Unknown tool: {name}")
        args = arguments or {}
        try:
            return await spec.handler(workspace, args)
        except Exception as e:
            translated = translate_exception(e)
            if translated is not None:
                logger.warning("Tool %s failed: %s", name, e)
                return translated
            logger.exception("Unexpected error in tool %s", name)
            return build_error_response(
                "server_error",
                str(e),
                "Retry the operation; check the server log if it keeps failing.",
            )
