"""Error response builders and shared utilities for MCP tool handlers.

This module provides structured error responses with corrective actions
to help AI agents recover from errors without human intervention, plus
shared formatting utilities used across tool modules.
"""

import json
from typing import Any

import mcp.types as types

from ...errors import NoDocumentOpen, PublishError, PublishRejected


def build_error_response(
    error_type: str, message: str, corrective_action: str
) -> types.CallToolResult:
    """Build a structured error response with corrective action.

    Args:
        error_type: Error category (not_found, no_document, publish_rejected, publish_failed, validation_error, io_error, server_error)
        message: Human-readable error description
        corrective_action: Specific action the agent can take to resolve the error

    Returns:
        CallToolResult with isError=True

    Examples:
        >>> build_error_response("not_found", "File not found: a.md", "Use document_list to find posts.")
        CallToolResult(content=[TextContent(...)], isError=True)
    """
    error_text = f"Error ({error_type}): {message}\n\nAction: {corrective_action}"

    return types.CallToolResult(
        content=[types.TextContent(type="text", text=error_text)],
        isError=True,
    )


def text_result(
    text: str, structured: dict[str, Any] | None = None
) -> types.CallToolResult:
    """Build a successful result with text and optional structured content.

    Values JSON cannot carry (dates in frontmatter) are sent as strings.
    """
    if structured is not None:
        structured = json.loads(json.dumps(structured, default=str))
    return types.CallToolResult(
        content=[types.TextContent(type="text", text=text)],
        structuredContent=structured,
    )


def translate_exception(error: Exception) -> types.CallToolResult | None:
    """Map a domain exception to an error response.

    Returns:
        CallToolResult, or None if *error* is not a known domain error.
    """
    match error:
        case NoDocumentOpen():
            return build_error_response(
                "no_document",
                str(error),
                "Open a post with document_open or create one with document_create.",
            )
        case PublishRejected():
            return build_error_response(
                "publish_rejected",
                str(error),
                "Check git_status and document_state, save pending changes, then retry.",
            )
        case PublishError():
            return build_error_response(
                "publish_failed",
                str(error),
                "Nothing was committed. Fix the repository problem and publish again.",
            )
        case FileNotFoundError():
            return build_error_response(
                "not_found",
                str(error),
                "Use document_list to find existing posts.",
            )
        case FileExistsError():
            return build_error_response(
                "already_exists",
                str(error),
                "Choose a different file name.",
            )
        case ValueError():
            return build_error_response(
                "validation_error",
                str(error),
                "Check parameter values and retry.",
            )
        case OSError():
            return build_error_response(
                "io_error",
                str(error),
                "Check file permissions and free disk space, then retry.",
            )
        case _:
            return None
