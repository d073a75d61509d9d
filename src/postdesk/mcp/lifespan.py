"""Lifespan management for MCP server startup and shutdown."""

import logging
import sys
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any

from dotenv import load_dotenv

from ..config import Settings, load_config
from ..config_loader import discover_config_files, load_hierarchical_config
from ..config_schema import build_config, to_settings
from ..core.async_utils import run_sync
from ..document.session import EditorSession
from ..file_handler import WorkspaceStorage
from ..git.pipeline import PublishPipeline
from ..git.probe import GitStatusProbe

logger = logging.getLogger(__name__)


@dataclass
class Workspace:
    """Everything the tool handlers share for one workspace root."""

    settings: Settings
    storage: WorkspaceStorage
    probe: GitStatusProbe
    pipeline: PublishPipeline
    session: EditorSession

    @classmethod
    def from_settings(cls, settings: Settings) -> "Workspace":
        storage = WorkspaceStorage(settings.workspace_root)
        probe = GitStatusProbe()
        pipeline = PublishPipeline(settings, probe)
        session = EditorSession(
            settings, storage=storage, probe=probe, pipeline=pipeline
        )
        return cls(settings, storage, probe, pipeline, session)


def _stderr_print(msg: str) -> None:
    """Print message to stderr for user feedback (safe in MCP mode)."""
    print(msg, file=sys.stderr, flush=True)


@asynccontextmanager
async def server_lifespan(
    config_overrides: dict[str, Any] | None = None,
) -> AsyncIterator[dict[str, Any]]:
    """
    Manage server startup and shutdown lifecycle.

    On startup:
    - Load .env file (so values are available for env var lookups and YAML interpolation)
    - Load YAML config file if present (as fallback values)
    - Merge all sources via load_config(): CLI > env vars > .env > YAML > defaults
    - Probe the workspace root; a missing repository is reported but not fatal

    On shutdown:
    - Close the open document (unsaved changes are not written)

    Args:
        config_overrides: Optional dict with config values from CLI (root, branch, remote, debug)

    Yields:
        Dict with 'workspace' key containing the initialized Workspace

    Raises:
        RuntimeError: If configuration is invalid.
    """
    logger.info("MCP server starting...")
    _stderr_print("Postdesk MCP Server starting...")

    overrides = config_overrides or {}
    try:
        # .env first, so ${VAR} interpolation in YAML can use its values
        load_dotenv()

        base: Settings | None = None
        sources = []
        config_files = discover_config_files()
        if config_files:
            unified = build_config(load_hierarchical_config())
            base = to_settings(unified)
            sources.append(f"config file: {config_files[0]}")

        settings = load_config(
            root=overrides.get("root"),
            branch=overrides.get("branch"),
            remote=overrides.get("remote"),
            debug=overrides.get("debug", False),
            base=base,
        )

        if overrides:
            sources.append("CLI arguments")
        sources.append("environment variables")
        source_desc = ", ".join(sources)
        logger.info("Configuration loaded from: %s", source_desc)
        _stderr_print(f"  Configuration loaded from: {source_desc}")
        logger.info("Workspace root: %s", settings.workspace_root)
        _stderr_print(f"  Workspace root: {settings.workspace_root}")
    except ValueError as e:
        logger.error("Configuration error: %s", e)
        _stderr_print(f"ERROR: Configuration error: {e}")
        _stderr_print("  Ensure POSTDESK_ROOT points to an existing directory.")
        raise RuntimeError(
            f"Configuration error: {e}. Ensure POSTDESK_ROOT points to an existing directory."
        ) from e

    workspace = Workspace.from_settings(settings)

    status = await run_sync(workspace.probe.probe, settings.workspace_root)
    if status.is_repository:
        branch = status.current_branch or "detached HEAD"
        logger.info("Repository found, branch: %s", branch)
        _stderr_print(f"  Repository branch: {branch}")
    else:
        logger.warning("Publishing disabled: %s", status.error)
        _stderr_print(f"  Publishing disabled: {status.error}")

    _stderr_print("Server ready. Waiting for MCP client connection...")

    try:
        yield {"workspace": workspace}
    finally:
        if workspace.session.is_open and workspace.session.state.is_dirty:
            logger.warning(
                "Shutting down with unsaved changes to %s",
                workspace.session.document.path,
            )
        workspace.session.close()
        logger.info("MCP server shutting down")
        _stderr_print("Postdesk MCP Server shutting down.")
