"""Repository and publish tool handlers for MCP server.

``git_status`` reports whether publishing is possible at all;
``document_publish`` runs stage -> commit -> push for the open post. A
push that does not go through is a successful result carrying the
manual push command, not an error.
"""

import logging
from typing import Any

import mcp.types as types

from ...core.async_utils import run_sync
from ...git.models import PublishResult
from ..lifespan import Workspace
from .document import state_payload
from .errors import text_result
from .registry import ToolSpec

logger = logging.getLogger(__name__)


# Tool definitions for list_tools()
PUBLISH_TOOLS = [
    types.Tool(
        name="git_status",
        description="Check whether the workspace root is a git repository, which branch is checked out, and which posts have uncommitted changes. Publishing is only possible inside a repository root.",
        annotations=types.ToolAnnotations(
            readOnlyHint=True,
            destructiveHint=False,
            idempotentHint=True,
            openWorldHint=False,
        ),
        inputSchema={"type": "object", "properties": {}, "required": []},
    ),
    types.Tool(
        name="document_publish",
        description="Publish the open post: save it if needed, then stage only that file, commit and push. If the push fails the commit is kept and the result includes the command to push manually.",
        annotations=types.ToolAnnotations(
            readOnlyHint=False,
            destructiveHint=False,
            idempotentHint=False,
            openWorldHint=True,
        ),
        inputSchema={
            "type": "object",
            "properties": {
                "commit_message": {
                    "type": "string",
                    "description": "Commit message (default: 'Create: <file>' or 'Update: <file>')",
                },
                "branch": {
                    "type": "string",
                    "description": "Remote branch to push to (default: the current branch)",
                },
            },
            "required": [],
        },
    ),
]


def format_publish_result(result: PublishResult) -> str:
    """Human-readable publish outcome."""
    lines = [result.message or ("Published." if result.pushed else "Push needed.")]
    if result.needs_manual_push:
        if result.hint is not None:
            lines.append(f"Hint ({result.hint.kind.value}): {result.hint.message}")
        if result.manual_push_command:
            lines.append("")
            lines.append("Run this to finish publishing:")
            lines.append(f"  {result.manual_push_command}")
    return "\n".join(lines)


async def _handle_git_status(workspace: Workspace, args: dict[str, Any]) -> types.CallToolResult:
    root = workspace.storage.root
    status = await run_sync(workspace.probe.probe, root)
    if not status.is_repository:
        return text_result(
            f"Not a repository: {status.error}",
            status.model_dump(),
        )

    changed = await run_sync(workspace.probe.list_changed_documents, root)
    lines = [f"Branch: {status.current_branch or 'detached HEAD'}"]
    if changed:
        lines.append("Changed posts:")
        lines.extend(f"- {path}" for path in changed)
    else:
        lines.append("No uncommitted post changes.")

    structured = status.model_dump()
    structured["changed_documents"] = changed
    return text_result("\n".join(lines), structured)


async def _handle_publish(workspace: Workspace, args: dict[str, Any]) -> types.CallToolResult:
    result = await workspace.session.publish(
        commit_message=args.get("commit_message") or None,
        branch=args.get("branch") or None,
    )
    structured = result.model_dump(mode="json")
    structured["state"] = state_payload(workspace.session)
    return text_result(format_publish_result(result), structured)


PUBLISH_SPECS: list[ToolSpec] = [
    ToolSpec(tool=PUBLISH_TOOLS[0], handler=_handle_git_status),
    ToolSpec(tool=PUBLISH_TOOLS[1], handler=_handle_publish, writes=True),
]
