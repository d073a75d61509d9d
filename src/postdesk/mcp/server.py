"""MCP Server for postdesk using stdio transport.

This module implements the Model Context Protocol server that lets AI
agents open, edit, save and publish markdown posts in one workspace.

Transport: stdio (for Claude Desktop/Code integration)
Protocol: JSON-RPC 2.0 over MCP
"""

import argparse
import asyncio
import logging
import sys

import mcp.server.stdio
import mcp.types as types
from mcp.server import NotificationOptions, Server
from mcp.server.models import InitializationOptions

from .. import __version__
from ..logger import setup_logging
from .lifespan import Workspace, server_lifespan
from .tools import ALL_SPECS, ToolRegistry, build_error_response

logger = logging.getLogger(__name__)

# Initialize server instance
server = Server("postdesk")

# Global workspace instance (initialized in lifespan)
_workspace: Workspace | None = None

# Global registry instance (initialized in main)
_registry: ToolRegistry | None = None


# ---------------------------------------------------------------------------
# Global accessors
# ---------------------------------------------------------------------------


def get_workspace() -> Workspace:
    """Get the global Workspace instance.

    Raises:
        RuntimeError: If the workspace is not initialized
    """
    if _workspace is None:
        raise RuntimeError(
            "Workspace not initialized. Server lifespan not started."
        )
    return _workspace


def set_workspace(workspace: Workspace | None) -> None:
    global _workspace
    _workspace = workspace


def get_registry() -> ToolRegistry:
    """Get the global ToolRegistry instance.

    Raises:
        RuntimeError: If registry is not initialized
    """
    if _registry is None:
        raise RuntimeError("ToolRegistry not initialized.")
    return _registry


def set_registry(registry: ToolRegistry | None) -> None:
    global _registry
    _registry = registry


# ---------------------------------------------------------------------------
# MCP protocol handlers
# ---------------------------------------------------------------------------


@server.list_tools()
async def handle_list_tools() -> list[types.Tool]:
    """List available tools from the ToolRegistry."""
    return get_registry().list_tools()


@server.call_tool()
async def handle_call_tool(
    name: str, arguments: dict | None
) -> types.CallToolResult:
    """Handle tool execution via ToolRegistry dispatch.

    Args:
        name: The name of the tool to execute.
        arguments: Tool arguments (optional).

    Returns:
        CallToolResult with tool output content and optional isError flag.
    """
    workspace = get_workspace()
    try:
        return await get_registry().call_tool(name, arguments, workspace)
    except ValueError as e:
        # Unknown or filtered-out tool name
        return build_error_response(
            "unknown_tool",
            str(e),
            "Use list_tools to see available tools.",
        )


# ---------------------------------------------------------------------------
# Server lifecycle
# ---------------------------------------------------------------------------


async def main(config_overrides: dict | None = None):
    """Run the MCP server with stdio transport.

    Sets up logging for MCP mode (file only, never stdout), loads the
    workspace via the lifespan manager, and serves JSON-RPC over stdio.

    Args:
        config_overrides: Optional dict with config values to override (root, branch, remote, debug, log_file, read_only)
    """
    overrides = config_overrides or {}

    # Must run before stdio_server: nothing may reach stdout during
    # protocol negotiation
    setup_logging(
        mode="mcp",
        debug=overrides.get("debug", False),
        log_file=overrides.get("log_file"),
    )

    registry = ToolRegistry(ALL_SPECS, read_only=overrides.get("read_only", False))
    logger.info(
        "Registered %d tools (of %d total)",
        registry.tool_count(),
        len(ALL_SPECS),
    )
    if overrides.get("read_only"):
        print(
            f"Read-only mode: {registry.tool_count()} of {len(ALL_SPECS)} tools enabled",
            file=sys.stderr,
        )
    set_registry(registry)

    # set_workspace() is called here rather than in the lifespan so that
    # running this file as __main__ still sets the global of this module
    async with server_lifespan(config_overrides=overrides) as ctx:
        set_workspace(ctx["workspace"])
        try:
            async with mcp.server.stdio.stdio_server() as (
                read_stream,
                write_stream,
            ):
                init_options = InitializationOptions(
                    server_name="postdesk",
                    server_version=__version__,
                    capabilities=server.get_capabilities(
                        notification_options=NotificationOptions(),
                        experimental_capabilities={},
                    ),
                )
                await server.run(read_stream, write_stream, init_options)
        finally:
            set_workspace(None)
            set_registry(None)


def run() -> None:
    """Entry point that handles errors gracefully and parses CLI arguments."""
    parser = argparse.ArgumentParser(
        description="Postdesk MCP Server - edit and publish markdown posts in a git workspace",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Run with default config (from .env or .postdesk/config.yml)
  postdesk-mcp

  # Serve a specific blog repository
  postdesk-mcp --root ~/src/blog

  # Push to a different branch when HEAD is detached
  postdesk-mcp --root ~/src/blog --branch gh-pages

  # Only expose tools that never write files or commit
  postdesk-mcp --read-only

  # Custom log file location
  postdesk-mcp --log-file /var/log/postdesk.log

Note: This server uses stdio transport for JSON-RPC communication with MCP clients.
All user-facing messages are written to stderr. Do not pipe stdin/stdout manually.
        """,
    )

    parser.add_argument(
        "--root",
        help="Workspace root, normally a git repository root (takes precedence over POSTDESK_ROOT and config files)",
    )
    parser.add_argument(
        "--branch",
        help="Branch to push to when HEAD is detached (takes precedence over POSTDESK_BRANCH)",
    )
    parser.add_argument(
        "--remote",
        help="Remote to push to (takes precedence over POSTDESK_REMOTE, default: origin)",
    )
    parser.add_argument(
        "--read-only",
        action="store_true",
        help="Register only tools that never write files or commit",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )
    parser.add_argument(
        "--log-file",
        default="/tmp/postdesk.log",
        help="Log file path (default: /tmp/postdesk.log)",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"postdesk version {__version__}",
    )

    args = parser.parse_args()

    config_overrides = {}
    if args.root:
        config_overrides["root"] = args.root
    if args.branch:
        config_overrides["branch"] = args.branch
    if args.remote:
        config_overrides["remote"] = args.remote
    if args.read_only:
        config_overrides["read_only"] = True
    if args.debug:
        config_overrides["debug"] = True
    if args.log_file:
        config_overrides["log_file"] = args.log_file

    if config_overrides:
        print(
            f"Config overrides from CLI: {', '.join(config_overrides)}",
            file=sys.stderr,
        )

    try:
        asyncio.run(main(config_overrides=config_overrides or None))
    except RuntimeError:
        # Error already printed to stderr by lifespan manager
        sys.exit(1)
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        sys.exit(0)


if __name__ == "__main__":
    run()
