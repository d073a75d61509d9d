"""Repository probing and the publish pipeline."""

from .hints import (
    classify_push_failure,
    generate_commit_message,
    is_ssh_url,
    manual_push_command,
)
from .models import GitStatus, PublishResult, PublishStage, PushHint, PushHintKind
from .pipeline import PublishPipeline
from .probe import NOT_A_REPOSITORY, GitStatusProbe

__all__ = [
    "GitStatus",
    "GitStatusProbe",
    "NOT_A_REPOSITORY",
    "PublishPipeline",
    "PublishResult",
    "PublishStage",
    "PushHint",
    "PushHintKind",
    "classify_push_failure",
    "generate_commit_message",
    "is_ssh_url",
    "manual_push_command",
]
