"""Document tool handlers for MCP server.

This module defines MCP tools for the editing session: listing, opening
and creating posts, reading and editing the body in either
representation, metadata updates, save, discard, rename and delete, plus
a summary of the frontmatter fields used across all posts.
"""

import json
import logging
from typing import Any

import mcp.types as types

from ...document.frontmatter import parse_document
from ...document.meta_schema import analyze_meta, get_field_values
from ...document.models import Document
from ...document.session import EditorSession
from ...file_handler import flatten_tree
from ..lifespan import Workspace
from .errors import build_error_response, text_result
from .registry import ToolSpec

logger = logging.getLogger(__name__)


def _readonly(idempotent: bool = True) -> types.ToolAnnotations:
    return types.ToolAnnotations(
        readOnlyHint=True,
        destructiveHint=False,
        idempotentHint=idempotent,
        openWorldHint=False,
    )


def _writing(destructive: bool = False, idempotent: bool = False) -> types.ToolAnnotations:
    return types.ToolAnnotations(
        readOnlyHint=False,
        destructiveHint=destructive,
        idempotentHint=idempotent,
        openWorldHint=False,
    )


_NO_ARGS = {"type": "object", "properties": {}, "required": []}

# Tool definitions for list_tools()
DOCUMENT_TOOLS = [
    types.Tool(
        name="document_list",
        description="List markdown posts in the workspace (or a folder of it), with the files git reports as changed.",
        annotations=_readonly(),
        inputSchema={
            "type": "object",
            "properties": {
                "folder": {
                    "type": "string",
                    "description": "Workspace-relative folder to list (default: workspace root)",
                },
            },
            "required": [],
        },
    ),
    types.Tool(
        name="document_open",
        description="Open a post for editing. Replaces the currently open post; unsaved changes to it are dropped.",
        annotations=_writing(idempotent=True),
        inputSchema={
            "type": "object",
            "properties": {
                "path": {
                    "type": "string",
                    "description": "Workspace-relative path of the post",
                },
            },
            "required": ["path"],
        },
    ),
    types.Tool(
        name="document_create",
        description="Create a new post file with the configured default metadata and open it. The file is written immediately.",
        annotations=_writing(),
        inputSchema={
            "type": "object",
            "properties": {
                "name": {
                    "type": "string",
                    "description": "File name (default: new-post-<timestamp>.md)",
                },
                "folder": {
                    "type": "string",
                    "description": "Workspace-relative folder (default: configured new post folder)",
                },
            },
            "required": [],
        },
    ),
    types.Tool(
        name="document_state",
        description="Report whether the open post has unsaved changes (is_dirty) and saved changes not yet pushed (has_pending_publish).",
        annotations=_readonly(),
        inputSchema=_NO_ARGS,
    ),
    types.Tool(
        name="document_read",
        description="Read the open post: metadata plus the body as markdown or as a structured document tree.",
        annotations=_readonly(),
        inputSchema={
            "type": "object",
            "properties": {
                "representation": {
                    "type": "string",
                    "enum": ["raw", "structured"],
                    "description": "Body representation (default: the current editor mode)",
                },
            },
            "required": [],
        },
    ),
    types.Tool(
        name="document_edit",
        description="Edit the body of the open post. 'raw' takes markdown text; 'structured' takes a document tree (type/attrs/content/text/marks). An edit that does not change the content is ignored.",
        annotations=_writing(idempotent=True),
        inputSchema={
            "type": "object",
            "properties": {
                "representation": {
                    "type": "string",
                    "enum": ["raw", "structured"],
                    "description": "Representation of value",
                },
                "value": {
                    "description": "Markdown string (raw) or document tree object (structured)",
                },
            },
            "required": ["representation", "value"],
        },
    ),
    types.Tool(
        name="document_toggle_mode",
        description="Switch the editor between raw markdown and the structured view. Never changes content.",
        annotations=_writing(),
        inputSchema=_NO_ARGS,
    ),
    types.Tool(
        name="document_replace",
        description="Replace the whole body of the open post, optionally merging metadata fields.",
        annotations=_writing(destructive=True, idempotent=True),
        inputSchema={
            "type": "object",
            "properties": {
                "markdown": {
                    "type": "string",
                    "description": "New body (markdown, without frontmatter)",
                },
                "frontmatter": {
                    "type": "object",
                    "description": "Metadata fields to merge (null removes a field)",
                },
            },
            "required": ["markdown"],
        },
    ),
    types.Tool(
        name="document_update_meta",
        description="Merge metadata fields into the open post's frontmatter. An empty title is stored as 'Untitled Post'.",
        annotations=_writing(idempotent=True),
        inputSchema={
            "type": "object",
            "properties": {
                "frontmatter": {
                    "type": "object",
                    "description": "Fields to set (null removes a field)",
                },
            },
            "required": ["frontmatter"],
        },
    ),
    types.Tool(
        name="document_save",
        description="Write the open post to disk. Does nothing when there are no unsaved changes.",
        annotations=_writing(idempotent=True),
        inputSchema=_NO_ARGS,
    ),
    types.Tool(
        name="document_discard",
        description="Drop unsaved changes and reload the post from disk.",
        annotations=_writing(destructive=True, idempotent=True),
        inputSchema=_NO_ARGS,
    ),
    types.Tool(
        name="document_rename",
        description="Rename the open post within its folder (saving pending edits first) and reopen it.",
        annotations=_writing(),
        inputSchema={
            "type": "object",
            "properties": {
                "name": {
                    "type": "string",
                    "description": "New file name",
                },
            },
            "required": ["name"],
        },
    ),
    types.Tool(
        name="document_delete",
        description="Delete the open post's file and close it.",
        annotations=_writing(destructive=True),
        inputSchema=_NO_ARGS,
    ),
    types.Tool(
        name="document_close",
        description="Close the open post. Unsaved changes are dropped.",
        annotations=_writing(idempotent=True),
        inputSchema=_NO_ARGS,
    ),
    types.Tool(
        name="document_meta_schema",
        description="Summarize the frontmatter fields used across posts: inferred type, sample values and whether every post sets it. With 'field', list that field's distinct values instead (list values contribute their items).",
        annotations=_readonly(),
        inputSchema={
            "type": "object",
            "properties": {
                "folder": {
                    "type": "string",
                    "description": "Workspace-relative folder to scan (default: workspace root)",
                },
                "field": {
                    "type": "string",
                    "description": "Frontmatter key whose distinct values to list",
                },
            },
            "required": [],
        },
    ),
]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def state_payload(session: EditorSession) -> dict[str, Any]:
    """Structured state of the session, shared by most tool results."""
    state = session.get_document_state()
    payload: dict[str, Any] = {
        "open": session.is_open,
        "is_dirty": state.is_dirty,
        "has_pending_publish": state.has_pending_publish,
        "status": state.status.value,
        "mode": session.mode.value,
    }
    if session.is_open:
        payload["path"] = session.document.path
        payload["title"] = session.document.display_title
    return payload


def _state_line(payload: dict[str, Any]) -> str:
    if not payload["open"]:
        return "No document open."
    return (
        f"{payload['path']}: {payload['status']} "
        f"(dirty={payload['is_dirty']}, pending publish={payload['has_pending_publish']}, "
        f"mode={payload['mode']})"
    )


def _require_str(args: dict[str, Any], key: str) -> str:
    value = args.get(key)
    if not isinstance(value, str) or not value:
        raise ValueError(f"{key} is required")
    return value


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------


async def _handle_list(workspace: Workspace, args: dict[str, Any]) -> types.CallToolResult:
    folder = args.get("folder") or None
    tree = await workspace.storage.list_tree_async(folder)
    files = flatten_tree(tree)
    changed = set(workspace.probe.list_changed_documents(workspace.storage.root))

    if not files:
        return text_result(
            "No markdown posts found.", {"files": [], "changed": []}
        )

    lines = [f"{len(files)} post(s):"]
    for path in files:
        marker = " (changed)" if path in changed else ""
        lines.append(f"- {path}{marker}")
    return text_result(
        "\n".join(lines),
        {"files": files, "changed": sorted(changed & set(files))},
    )


async def _handle_open(workspace: Workspace, args: dict[str, Any]) -> types.CallToolResult:
    path = _require_str(args, "path")
    document = await workspace.session.open_document(path)
    payload = state_payload(workspace.session)
    payload["frontmatter"] = document.frontmatter
    return text_result(f"Opened {document.path}\n{_state_line(payload)}", payload)


async def _handle_create(workspace: Workspace, args: dict[str, Any]) -> types.CallToolResult:
    document = await workspace.session.create_document(
        name=args.get("name") or None, folder=args.get("folder") or None
    )
    payload = state_payload(workspace.session)
    return text_result(f"Created {document.path}\n{_state_line(payload)}", payload)


async def _handle_state(workspace: Workspace, args: dict[str, Any]) -> types.CallToolResult:
    payload = state_payload(workspace.session)
    return text_result(_state_line(payload), payload)


async def _handle_read(workspace: Workspace, args: dict[str, Any]) -> types.CallToolResult:
    session = workspace.session
    document = session.document
    representation = args.get("representation") or session.mode.value

    payload = state_payload(session)
    payload["frontmatter"] = document.frontmatter
    payload["post_url"] = session.post_url

    match representation:
        case "raw":
            payload["markdown"] = document.body
            body_text = document.body
        case "structured":
            tree = session.structured.to_dict()
            payload["structured"] = tree
            body_text = json.dumps(tree, indent=2, ensure_ascii=False)
        case _:
            raise ValueError(
                f"Invalid representation '{representation}': must be 'raw' or 'structured'"
            )

    meta = json.dumps(document.frontmatter, indent=2, ensure_ascii=False, default=str)
    text = f"# {document.display_title}\n\nFrontmatter:\n{meta}\n\nBody ({representation}):\n{body_text}"
    return text_result(text, payload)


async def _handle_edit(workspace: Workspace, args: dict[str, Any]) -> types.CallToolResult:
    representation = _require_str(args, "representation")
    if "value" not in args:
        return build_error_response(
            "validation_error",
            "value is required",
            "Provide markdown text (raw) or a document tree (structured).",
        )
    changed = workspace.session.edit(representation, args["value"])
    payload = state_payload(workspace.session)
    payload["changed"] = changed
    summary = "Edit applied." if changed else "No change: content is identical."
    return text_result(f"{summary}\n{_state_line(payload)}", payload)


async def _handle_toggle_mode(workspace: Workspace, args: dict[str, Any]) -> types.CallToolResult:
    mode = workspace.session.toggle_mode()
    payload = state_payload(workspace.session)
    return text_result(f"Editor mode: {mode.value}", payload)


async def _handle_replace(workspace: Workspace, args: dict[str, Any]) -> types.CallToolResult:
    markdown = args.get("markdown")
    if not isinstance(markdown, str):
        raise ValueError("markdown is required")
    patch = args.get("frontmatter") or None
    if patch is not None and not isinstance(patch, dict):
        raise ValueError("frontmatter must be an object")
    workspace.session.replace_content(markdown, patch)
    payload = state_payload(workspace.session)
    return text_result(f"Content replaced.\n{_state_line(payload)}", payload)


async def _handle_update_meta(workspace: Workspace, args: dict[str, Any]) -> types.CallToolResult:
    patch = args.get("frontmatter")
    if not isinstance(patch, dict) or not patch:
        raise ValueError("frontmatter must be a non-empty object")
    patch = dict(patch)
    session = workspace.session
    changed = False
    if "title" in patch:
        title = patch.pop("title")
        changed = session.set_title("" if title is None else str(title))
    if patch:
        changed = session.update_frontmatter(patch) or changed
    payload = state_payload(session)
    payload["changed"] = changed
    summary = "Metadata updated." if changed else "No change: metadata is identical."
    return text_result(f"{summary}\n{_state_line(payload)}", payload)


async def _handle_save(workspace: Workspace, args: dict[str, Any]) -> types.CallToolResult:
    saved = await workspace.session.save()
    payload = state_payload(workspace.session)
    payload["saved"] = saved
    summary = "Saved." if saved else "Nothing to save."
    return text_result(f"{summary}\n{_state_line(payload)}", payload)


async def _handle_discard(workspace: Workspace, args: dict[str, Any]) -> types.CallToolResult:
    discarded = await workspace.session.discard()
    payload = state_payload(workspace.session)
    payload["discarded"] = discarded
    summary = "Changes discarded." if discarded else "Nothing to discard."
    return text_result(f"{summary}\n{_state_line(payload)}", payload)


async def _handle_rename(workspace: Workspace, args: dict[str, Any]) -> types.CallToolResult:
    name = _require_str(args, "name")
    document = await workspace.session.rename(name)
    payload = state_payload(workspace.session)
    return text_result(f"Renamed to {document.path}\n{_state_line(payload)}", payload)


async def _handle_delete(workspace: Workspace, args: dict[str, Any]) -> types.CallToolResult:
    path = workspace.session.document.path
    await workspace.session.delete()
    return text_result(f"Deleted {path}", {"deleted": path})


async def _handle_close(workspace: Workspace, args: dict[str, Any]) -> types.CallToolResult:
    workspace.session.close()
    return text_result("Closed.", state_payload(workspace.session))


async def _load_documents(workspace: Workspace, folder: str | None) -> list[Document]:
    storage = workspace.storage
    documents = []
    for path in flatten_tree(await storage.list_tree_async(folder)):
        try:
            content = await storage.read_file_async(path)
        except OSError as e:
            logger.warning("Skipping unreadable post %s: %s", path, e)
            continue
        documents.append(parse_document(content, path))
    return documents


async def _handle_meta_schema(workspace: Workspace, args: dict[str, Any]) -> types.CallToolResult:
    documents = await _load_documents(workspace, args.get("folder") or None)
    field = args.get("field")

    if field:
        values = get_field_values(documents, field)
        if not values:
            return text_result(f"No values for '{field}'.", {"field": field, "values": []})
        lines = [f"{len(values)} value(s) for '{field}':"]
        lines.extend(f"- {value}" for value in values)
        return text_result("\n".join(lines), {"field": field, "values": values})

    schema = analyze_meta(documents)
    if not schema.fields:
        return text_result("No frontmatter fields found.", {"posts": len(documents), "fields": []})

    lines = [f"{len(schema.fields)} field(s) across {len(documents)} post(s):"]
    for meta_field in schema.fields:
        required = ", required" if meta_field.required else ""
        lines.append(f"- {meta_field.key} ({meta_field.type}{required})")
    return text_result(
        "\n".join(lines),
        {"posts": len(documents), "fields": schema.model_dump(mode="json")["fields"]},
    )


DOCUMENT_SPECS: list[ToolSpec] = [
    ToolSpec(tool=DOCUMENT_TOOLS[0], handler=_handle_list),
    ToolSpec(tool=DOCUMENT_TOOLS[1], handler=_handle_open),
    ToolSpec(tool=DOCUMENT_TOOLS[2], handler=_handle_create, writes=True),
    ToolSpec(tool=DOCUMENT_TOOLS[3], handler=_handle_state),
    ToolSpec(tool=DOCUMENT_TOOLS[4], handler=_handle_read),
    ToolSpec(tool=DOCUMENT_TOOLS[5], handler=_handle_edit),
    ToolSpec(tool=DOCUMENT_TOOLS[6], handler=_handle_toggle_mode),
    ToolSpec(tool=DOCUMENT_TOOLS[7], handler=_handle_replace),
    ToolSpec(tool=DOCUMENT_TOOLS[8], handler=_handle_update_meta),
    ToolSpec(tool=DOCUMENT_TOOLS[9], handler=_handle_save, writes=True),
    ToolSpec(tool=DOCUMENT_TOOLS[10], handler=_handle_discard),
    ToolSpec(tool=DOCUMENT_TOOLS[11], handler=_handle_rename, writes=True),
    ToolSpec(tool=DOCUMENT_TOOLS[12], handler=_handle_delete, writes=True),
    ToolSpec(tool=DOCUMENT_TOOLS[13], handler=_handle_close),
    ToolSpec(tool=DOCUMENT_TOOLS[14], handler=_handle_meta_schema),
]
