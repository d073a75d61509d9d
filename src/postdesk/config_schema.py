"""Unified configuration schema for postdesk.

Defines Pydantic models for the unified config structure with dedicated
sections for the workspace, git publishing, the editor and logging.
Includes an adapter that turns the unified config into the ``Settings``
value handed to sessions and publish pipelines.

Usage:
    from postdesk.config_schema import build_config, to_settings

    raw = load_hierarchical_config()
    unified = build_config(raw)
    settings = to_settings(unified, cli_overrides={"root": "/srv/blog"})
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Literal

from pydantic import BaseModel, Field

if TYPE_CHECKING:
    from .config import Settings

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Section models
# ---------------------------------------------------------------------------


class WorkspaceConfig(BaseModel):
    """Workspace directory settings.

    ``root`` is optional so env vars and CLI args can supply it at runtime.
    """

    root: str | None = Field(
        default=None, description="Workspace (repository root) directory"
    )
    new_post_folder: str | None = Field(
        default=None,
        description="Folder (relative to root) where new posts are created",
    )

    model_config = {"frozen": True}


class GitConfig(BaseModel):
    """Publishing settings for the git working tree."""

    remote: str = Field(default="origin", description="Remote to push to")
    default_branch: str = Field(
        default="main",
        description="Branch used when HEAD is detached or unreadable",
    )
    author_name: str | None = Field(
        default=None, description="Commit author name override"
    )
    author_email: str | None = Field(
        default=None, description="Commit author email override"
    )
    push_ssh_remotes: bool = Field(
        default=True,
        description="Attempt pushes to SSH remotes (false: report a manual push instead)",
    )
    push_timeout: int = Field(
        default=60,
        ge=1,
        le=3600,
        description="Seconds before an in-flight push is abandoned (1-3600)",
    )

    model_config = {"frozen": True}


class EditorConfig(BaseModel):
    """Editor defaults.

    Attributes:
        default_mode: Representation a freshly opened document starts in.
        default_meta: Frontmatter seeded into newly created posts.
        field_multiplicity: Per-field ``single`` / ``multi`` coercion
            applied when a document is written.
        base_url: Site base URL used to build post URLs.
        url_format: Post URL pattern with ``{FIELD}`` placeholders.
    """

    default_mode: Literal["raw", "structured"] = "structured"
    default_meta: dict[str, Any] = Field(default_factory=dict)
    field_multiplicity: dict[str, Literal["single", "multi"]] = Field(
        default_factory=dict
    )
    base_url: str | None = None
    url_format: str | None = None

    model_config = {"frozen": True}


class LoggingConfig(BaseModel):
    """Logging configuration.

    Attributes:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        file: Optional log file path.
    """

    level: str = Field(default="INFO", description="Log level")
    file: str | None = Field(default=None, description="Log file path")

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Top-level unified config
# ---------------------------------------------------------------------------


class UnifiedConfig(BaseModel):
    """Top-level unified configuration.

    Aggregates all config sections. Every section has sensible defaults,
    so ``UnifiedConfig()`` (zero-config) is always valid.
    """

    workspace: WorkspaceConfig = Field(default_factory=WorkspaceConfig)
    git: GitConfig = Field(default_factory=GitConfig)
    editor: EditorConfig = Field(default_factory=EditorConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Factory function
# ---------------------------------------------------------------------------


def build_config(raw_data: dict) -> UnifiedConfig:
    """Construct a ``UnifiedConfig`` from the raw dict returned by
    ``load_hierarchical_config()``.

    Handles missing sections gracefully; anything absent gets defaults.

    Args:
        raw_data: Merged configuration dictionary.

    Returns:
        Validated ``UnifiedConfig`` instance.
    """
    if not raw_data:
        return UnifiedConfig()

    return UnifiedConfig(**raw_data)


# ---------------------------------------------------------------------------
# Adapter: UnifiedConfig -> Settings dataclass
# ---------------------------------------------------------------------------


def to_settings(
    unified: UnifiedConfig,
    cli_overrides: dict | None = None,
) -> Settings:
    """Convert a ``UnifiedConfig`` into the ``Settings`` dataclass,
    applying CLI overrides on top.

    CLI overrides dict keys: root, branch, remote, debug.

    Args:
        unified: The unified config produced by ``build_config()``.
        cli_overrides: Optional dict of CLI argument values.

    Returns:
        ``Settings`` instance (NOT validated; caller should run
        ``validate_config()`` separately if needed).
    """
    from .config import Settings

    overrides = cli_overrides or {}

    return Settings(
        workspace_root=overrides.get("root") or unified.workspace.root or "",
        new_post_folder=unified.workspace.new_post_folder,
        remote=overrides.get("remote") or unified.git.remote,
        default_branch=overrides.get("branch")
        or unified.git.default_branch,
        author_name=unified.git.author_name,
        author_email=unified.git.author_email,
        push_ssh_remotes=unified.git.push_ssh_remotes,
        push_timeout=unified.git.push_timeout,
        default_mode=unified.editor.default_mode,
        default_meta=dict(unified.editor.default_meta),
        field_multiplicity=dict(unified.editor.field_multiplicity),
        base_url=unified.editor.base_url,
        url_format=unified.editor.url_format,
        debug=overrides.get("debug", False),
    )
