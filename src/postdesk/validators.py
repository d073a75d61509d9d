"""
Input validation functions for postdesk.

Provides validation for document paths, file names, commit messages and
branch names so that bad input is refused before any file or git
operation starts.
"""

import re

_BRANCH_FORBIDDEN = re.compile(r"[\s~^:?*\[\\]|\.\.|@\{|//")

# ---------------------------------------------------------------------------
# Error message formatting helpers
# ---------------------------------------------------------------------------


def format_validation_error(field_name: str, reason: str) -> str:
    """
    Generate consistent error message for validation failures.

    Args:
        field_name: Human-readable field name (e.g., "File name")
        reason: Description of validation failure (e.g., "cannot be empty")

    Returns:
        Formatted error message string
    """
    return f"{field_name} {reason}"


def validate_document_path(path: str) -> tuple[bool, str]:
    """
    Validate a workspace-relative document path.

    Args:
        path: Relative path such as ``posts/hello.md``

    Returns:
        Tuple of (is_valid, error_message).
        Returns (True, "") if valid, (False, reason) if invalid.

    Validation rules:
        - Cannot be empty or whitespace-only
        - Must be relative (no leading '/')
        - Cannot contain '..' segments (path traversal protection)
        - Cannot have empty path segments (e.g., 'posts//a.md')
        - Cannot point inside the '.git' directory
    """
    if not path or not path.strip():
        return (
            False,
            format_validation_error("Document path", "cannot be empty"),
        )

    if path.startswith("/") or re.match(r"^[A-Za-z]:[\\/]", path):
        return (
            False,
            format_validation_error("Document path", "must be relative"),
        )

    segments = path.replace("\\", "/").split("/")

    if ".." in segments:
        return (
            False,
            format_validation_error("Document path", "cannot contain '..'"),
        )

    if "" in segments:
        return (
            False,
            format_validation_error(
                "Document path", "cannot have empty path segments"
            ),
        )

    if segments[0] == ".git":
        return (
            False,
            format_validation_error(
                "Document path", "cannot point inside .git"
            ),
        )

    return (True, "")


def validate_file_name(name: str) -> tuple[bool, str]:
    """
    Validate a bare file name used for new or renamed documents.

    Validation rules:
        - Cannot be empty or whitespace-only
        - Cannot contain path separators
        - Cannot start with '.'
    """
    if not name or not name.strip():
        return (
            False,
            format_validation_error("File name", "cannot be empty"),
        )

    if "/" in name or "\\" in name:
        return (
            False,
            format_validation_error(
                "File name", "cannot contain path separators"
            ),
        )

    if name.startswith("."):
        return (
            False,
            format_validation_error("File name", "cannot start with '.'"),
        )

    return (True, "")


def validate_commit_message(
    message: str, max_size: int = 10_000
) -> tuple[bool, str]:
    """
    Validate a commit message.

    Args:
        message: The commit message to validate
        max_size: Maximum size in bytes (default: 10,000)

    Returns:
        Tuple of (is_valid, error_message).
    """
    if not message or not message.strip():
        return (
            False,
            format_validation_error("Commit message", "cannot be empty"),
        )

    if len(message.encode("utf-8")) > max_size:
        return (
            False,
            format_validation_error(
                "Commit message",
                f"exceeds maximum size of {max_size} bytes",
            ),
        )

    return (True, "")


def validate_branch_name(branch: str) -> tuple[bool, str]:
    """
    Validate a branch name against the common git ref-format rules.

    Validation rules:
        - Cannot be empty
        - Cannot start with '-' or '/' or end with '/', '.' or '.lock'
        - Cannot contain whitespace, '~', '^', ':', '?', '*', '[', '\\',
          '..', '@{' or '//'
    """
    if not branch or not branch.strip():
        return (
            False,
            format_validation_error("Branch name", "cannot be empty"),
        )

    if branch.startswith(("-", "/")) or branch.endswith(("/", ".", ".lock")):
        return (
            False,
            format_validation_error(
                "Branch name", f"'{branch}' is not a valid ref name"
            ),
        )

    if _BRANCH_FORBIDDEN.search(branch):
        return (
            False,
            format_validation_error(
                "Branch name", f"'{branch}' contains forbidden characters"
            ),
        )

    return (True, "")
