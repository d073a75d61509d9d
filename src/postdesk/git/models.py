"""Value models for repository status and publish results."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel


class PublishStage(str, Enum):
    """Where a single publish attempt is."""

    IDLE = "idle"
    STAGING = "staging"
    COMMITTING = "committing"
    PUSHING = "pushing"
    DONE_PUSHED = "done_pushed"
    DONE_NEEDS_MANUAL_PUSH = "done_needs_manual_push"
    FAILED = "failed"

    @property
    def is_running(self) -> bool:
        return self in (
            PublishStage.STAGING,
            PublishStage.COMMITTING,
            PublishStage.PUSHING,
        )


class GitStatus(BaseModel):
    """Result of probing a working directory.

    Attributes:
        is_repository: True if the directory is a repository root.
        current_branch: Checked-out branch, None when HEAD is detached or
            there is no repository.
        has_changes: True if the working tree has uncommitted changes.
        error: User-facing explanation when ``is_repository`` is False.
    """

    is_repository: bool
    current_branch: str | None = None
    has_changes: bool = False
    error: str | None = None

    model_config = {"frozen": True}


class PushHintKind(str, Enum):
    SSH_TRANSPORT = "ssh_transport"
    AUTHENTICATION = "authentication"
    NETWORK = "network"
    RATE_LIMIT = "rate_limit"
    PERMISSION = "permission"
    NOT_FOUND = "not_found"
    NO_REMOTE = "no_remote"
    UNKNOWN = "unknown"


class PushHint(BaseModel):
    """A guess at why a push failed, shown as advice next to the manual
    push command. It is never verified."""

    kind: PushHintKind
    message: str

    model_config = {"frozen": True}


class PublishResult(BaseModel):
    """Outcome of a publish run that got past the commit step.

    ``pushed`` and ``needs_manual_push`` are never both true: either the
    remote has the commit, or the user has to push it themselves.
    """

    pushed: bool
    needs_manual_push: bool
    commit_sha: str | None = None
    branch: str | None = None
    remote: str | None = None
    hint: PushHint | None = None
    manual_push_command: str | None = None
    message: str = ""

    model_config = {"frozen": True}

    @property
    def short_sha(self) -> str | None:
        return self.commit_sha[:7] if self.commit_sha else None

    @property
    def stage(self) -> PublishStage:
        if self.pushed:
            return PublishStage.DONE_PUSHED
        return PublishStage.DONE_NEEDS_MANUAL_PUSH
