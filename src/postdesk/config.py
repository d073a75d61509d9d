"""Runtime settings for postdesk.

Reads workspace and publishing settings from CLI args, environment
variables, .env files, and YAML config file fallbacks. The resulting
``Settings`` value is passed explicitly to sessions and publish pipelines;
nothing below the entry points reads configuration on its own.

Precedence (highest to lowest):
    CLI args > Environment variables > .env file > YAML config > Built-in defaults

Environment variables:
    POSTDESK_ROOT: Workspace directory, normally a repository root (required)
    POSTDESK_BRANCH: Fallback branch when HEAD is detached (optional, default: main)
    POSTDESK_REMOTE: Remote to push to (optional, default: origin)
    POSTDESK_GIT_AUTHOR: Commit author name (optional)
    POSTDESK_GIT_EMAIL: Commit author email (optional)
    POSTDESK_PUSH_SSH: Attempt pushes to SSH remotes (optional, default: true)
    POSTDESK_PUSH_TIMEOUT: Push timeout in seconds (optional, default: 60)
    POSTDESK_EDITOR_MODE: Initial editor mode, raw or structured (optional)
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .validators import validate_branch_name

logger = logging.getLogger(__name__)


@dataclass
class Settings:
    workspace_root: str
    new_post_folder: str | None = None
    remote: str = "origin"
    default_branch: str = "main"
    author_name: str | None = None
    author_email: str | None = None
    push_ssh_remotes: bool = True
    push_timeout: int = 60
    default_mode: str = "structured"
    default_meta: dict[str, Any] = field(default_factory=dict)
    field_multiplicity: dict[str, str] = field(default_factory=dict)
    base_url: str | None = None
    url_format: str | None = None
    debug: bool = False

    @property
    def root_path(self) -> Path:
        return Path(self.workspace_root)


def validate_config(settings: Settings) -> None:
    """Validate settings values and raise ValueError if invalid.

    Normalizes ``workspace_root`` to an absolute, resolved path.

    Args:
        settings: Settings instance to validate.

    Raises:
        ValueError: If the workspace is missing or another value is out of range.
    """
    if not settings.workspace_root.strip():
        raise ValueError(
            "Workspace root cannot be empty. Set POSTDESK_ROOT environment variable."
        )

    root = Path(settings.workspace_root.strip()).expanduser().resolve()
    if not root.exists():
        raise ValueError(f"Workspace root not found: {root}")
    if not root.is_dir():
        raise ValueError(f"Workspace root is not a directory: {root}")
    settings.workspace_root = str(root)

    is_valid, message = validate_branch_name(settings.default_branch)
    if not is_valid:
        raise ValueError(message)

    if not settings.remote.strip():
        raise ValueError("Remote name cannot be empty")

    if not (1 <= settings.push_timeout <= 3600):
        raise ValueError(
            f"Invalid push timeout '{settings.push_timeout}': must be a number between 1 and 3600"
        )

    if settings.default_mode not in ("raw", "structured"):
        raise ValueError(
            f"Invalid editor mode '{settings.default_mode}': must be 'raw' or 'structured'"
        )

    for key, multiplicity in settings.field_multiplicity.items():
        if multiplicity not in ("single", "multi"):
            raise ValueError(
                f"Invalid multiplicity '{multiplicity}' for field '{key}': must be 'single' or 'multi'"
            )

    if not settings.push_ssh_remotes:
        logger.info(
            "Pushes to SSH remotes disabled; SSH publishes will need a manual push"
        )


def _get_bool_env(key: str) -> bool | None:
    """Return True/False from env var, or None if unset."""
    val = os.getenv(key)
    if val is None:
        return None
    return val.lower() in ("true", "1", "yes", "on")


def load_config(
    root: str | None = None,
    branch: str | None = None,
    remote: str | None = None,
    debug: bool = False,
    base: Settings | None = None,
) -> Settings:
    """Load settings with unified precedence.

    Resolution order for each field (highest to lowest):
        CLI arg > env var / .env > base (YAML-derived) > built-in default

    The caller is responsible for calling ``load_dotenv()`` before this
    function so that .env values are available via ``os.getenv()``.

    Args:
        root: Override workspace root.
        branch: Override fallback branch.
        remote: Override remote name.
        debug: Enable debug logging (CLI flag).
        base: Settings built from YAML config (see
            ``config_schema.to_settings``). Used as fallback when CLI arg
            and env var are both unset.

    Returns:
        Validated Settings instance.

    Raises:
        ValueError: If the workspace root is missing after checking all
            sources, or a value is invalid.
    """
    fb = base or Settings(workspace_root="")

    workspace_root = root or os.getenv("POSTDESK_ROOT") or fb.workspace_root
    if not workspace_root:
        raise ValueError(
            "Workspace root not found. Set POSTDESK_ROOT environment variable, "
            "pass --root CLI argument, or add 'workspace.root' to config.yml."
        )

    final_branch = (
        branch or os.getenv("POSTDESK_BRANCH") or fb.default_branch
    )
    final_remote = remote or os.getenv("POSTDESK_REMOTE") or fb.remote
    author_name = os.getenv("POSTDESK_GIT_AUTHOR") or fb.author_name
    author_email = os.getenv("POSTDESK_GIT_EMAIL") or fb.author_email
    default_mode = os.getenv("POSTDESK_EDITOR_MODE") or fb.default_mode

    env_push_ssh = _get_bool_env("POSTDESK_PUSH_SSH")
    push_ssh = fb.push_ssh_remotes if env_push_ssh is None else env_push_ssh

    if debug:
        final_debug = True
    else:
        env_debug = _get_bool_env("POSTDESK_DEBUG")
        final_debug = fb.debug if env_debug is None else env_debug

    timeout_raw = os.getenv("POSTDESK_PUSH_TIMEOUT")
    if timeout_raw is not None:
        try:
            push_timeout = int(timeout_raw)
        except ValueError:
            raise ValueError(
                f"Invalid POSTDESK_PUSH_TIMEOUT '{timeout_raw}': must be a number between 1 and 3600"
            ) from None
    else:
        push_timeout = fb.push_timeout

    settings = Settings(
        workspace_root=workspace_root,
        new_post_folder=fb.new_post_folder,
        remote=final_remote,
        default_branch=final_branch,
        author_name=author_name,
        author_email=author_email,
        push_ssh_remotes=push_ssh,
        push_timeout=push_timeout,
        default_mode=default_mode,
        default_meta=dict(fb.default_meta),
        field_multiplicity=dict(fb.field_multiplicity),
        base_url=fb.base_url,
        url_format=fb.url_format,
        debug=final_debug,
    )

    validate_config(settings)

    return settings
