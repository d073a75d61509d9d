"""Push failure hints, manual push commands and commit messages."""

import shlex
from datetime import datetime

from .models import PushHint, PushHintKind

_AUTH_MARKERS = ("401", "403", "unauthorized", "authentication", "credentials")
_TOKEN_MARKERS = ("invalid", "expired", "revoked")
_NETWORK_MARKERS = (
    "network",
    "fetch failed",
    "connection",
    "timeout",
    "timed out",
    "enotfound",
    "could not resolve host",
    "unable to access",
)
_RATE_LIMIT_MARKERS = ("429", "rate limit", "too many requests")
_PERMISSION_MARKERS = ("permission", "forbidden", "protected branch")
_NOT_FOUND_MARKERS = (
    "404",
    "not found",
    "repository does not exist",
    "does not appear to be a git repository",
)

_HINT_MESSAGES = {
    PushHintKind.SSH_TRANSPORT: (
        "The remote uses SSH, which this environment may not be able to "
        "reach. Push from a terminal that has your SSH key."
    ),
    PushHintKind.AUTHENTICATION: (
        "The remote may have rejected the credentials. Check that your "
        "token or credential helper is still valid."
    ),
    PushHintKind.NETWORK: (
        "The remote may be unreachable. Check the connection and try again."
    ),
    PushHintKind.RATE_LIMIT: (
        "The remote may be rate limiting requests. Wait a few minutes and "
        "try again."
    ),
    PushHintKind.PERMISSION: (
        "You may not have write access to this repository or branch."
    ),
    PushHintKind.NOT_FOUND: (
        "The remote repository may not exist or may not be accessible."
    ),
    PushHintKind.NO_REMOTE: (
        "No remote is configured for this repository. Add one with "
        "'git remote add'."
    ),
    PushHintKind.UNKNOWN: "The push failed for an unrecognized reason.",
}


def is_ssh_url(remote_url: str | None) -> bool:
    return bool(remote_url and remote_url.startswith(("git@", "ssh://")))


def classify_push_failure(
    remote_url: str | None, error_text: str | None
) -> PushHint:
    """Guess why a push failed.

    SSH remotes are reported as a transport problem whatever the error
    says; otherwise the error text is matched against known phrases.

    Args:
        remote_url: URL of the remote that was pushed to, if known.
        error_text: Error output of the failed push.

    Returns:
        Soft hint for the user.
    """
    if remote_url is None:
        kind = PushHintKind.NO_REMOTE
    elif is_ssh_url(remote_url):
        kind = PushHintKind.SSH_TRANSPORT
    else:
        kind = _classify_text(error_text or "")
    return PushHint(kind=kind, message=_HINT_MESSAGES[kind])


def _classify_text(error_text: str) -> PushHintKind:
    lower = error_text.lower()

    is_auth = any(marker in lower for marker in _AUTH_MARKERS)
    is_token = "token" in lower and any(m in lower for m in _TOKEN_MARKERS)
    if is_auth or is_token:
        return PushHintKind.AUTHENTICATION
    if any(marker in lower for marker in _NETWORK_MARKERS):
        return PushHintKind.NETWORK
    if any(marker in lower for marker in _RATE_LIMIT_MARKERS):
        return PushHintKind.RATE_LIMIT
    if any(marker in lower for marker in _PERMISSION_MARKERS):
        return PushHintKind.PERMISSION
    if any(marker in lower for marker in _NOT_FOUND_MARKERS):
        return PushHintKind.NOT_FOUND
    return PushHintKind.UNKNOWN


def manual_push_command(working_dir: str, remote: str, branch: str) -> str:
    """The command the user runs to finish a publish by hand."""
    return (
        f"cd {shlex.quote(str(working_dir))} && "
        f"git push {shlex.quote(remote)} {shlex.quote(branch)}"
    )


def generate_commit_message(
    file_name: str, action: str = "update", now: datetime | None = None
) -> str:
    """Default commit message for publishing *file_name*.

    Args:
        file_name: Name of the published file.
        action: ``"create"`` for a new post, anything else for an update.
        now: Timestamp for the message body (default: current local time).
    """
    timestamp = (now or datetime.now()).strftime("%b %d, %Y, %H:%M")
    if action == "create":
        return f"Create: {file_name}\n\nCreated via postdesk on {timestamp}"
    return f"Update: {file_name}\n\nUpdated via postdesk on {timestamp}"
