"""MCP tool handlers for postdesk.

This package contains MCP tool implementations that wrap the editing
session and publish pipeline with async handlers and structured error
responses.
"""

from .document import DOCUMENT_SPECS, DOCUMENT_TOOLS
from .errors import build_error_response
from .publish import PUBLISH_SPECS, PUBLISH_TOOLS
from .registry import ToolRegistry, ToolSpec

ALL_SPECS: list[ToolSpec] = PUBLISH_SPECS + DOCUMENT_SPECS

__all__ = [
    "build_error_response",
    # Registry
    "ToolSpec",
    "ToolRegistry",
    # Spec lists
    "ALL_SPECS",
    "DOCUMENT_SPECS",
    "PUBLISH_SPECS",
    # Tool lists
    "DOCUMENT_TOOLS",
    "PUBLISH_TOOLS",
]
