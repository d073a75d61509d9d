"""Split markdown files into frontmatter and body, and join them back.

Frontmatter is the YAML mapping between two ``---`` lines at the top of a
file. Parsing never fails: a file whose frontmatter is not valid YAML keeps
its body and gets a title derived from the file name.
"""

import datetime
import logging
import re
from pathlib import PurePosixPath
from typing import Any

import yaml

from .models import UNTITLED_TITLE, Document

logger = logging.getLogger(__name__)

_FRONTMATTER = re.compile(
    r"\A---[ \t]*\r?\n(?:(.*?)\r?\n)?(?:---|\.\.\.)[ \t]*(?:\r?\n|\Z)",
    re.DOTALL,
)
_PLACEHOLDER = re.compile(r"\{([A-Z_]+)\}")

_SCALAR_TYPES = (str, int, float, bool, datetime.date, datetime.datetime)


class FrontmatterError(ValueError):
    """Raised when frontmatter is not a YAML mapping."""


def split_frontmatter(content: str) -> tuple[dict[str, Any], str, bool]:
    """Separate the frontmatter block from the body.

    Returns:
        Tuple of (metadata, body, has_block). ``has_block`` is False when
        the content does not start with a frontmatter block.

    Raises:
        FrontmatterError: If the block is not valid YAML or not a mapping.
    """
    match = _FRONTMATTER.match(content)
    if match is None:
        return ({}, content, False)

    try:
        data = yaml.safe_load(match.group(1) or "")
    except yaml.YAMLError as e:
        raise FrontmatterError(f"Invalid frontmatter YAML: {e}") from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise FrontmatterError(
            f"Frontmatter must be a mapping, got {type(data).__name__}"
        )
    return ({str(k): v for k, v in data.items()}, content[match.end():], True)


def _as_list(value: Any) -> list:
    if isinstance(value, list):
        return value
    if value in ("", None):
        return []
    return [value]


def parse_document(content: str, path: str) -> Document:
    """Parse file content into a ``Document``.

    - Null values become empty strings.
    - ``title`` defaults to the file name without extension.
    - A singular ``category`` seeds ``categories`` when that key is absent.
    - Scalar ``categories`` and ``tags`` become one-element lists.

    Args:
        content: Full file content
        path: Workspace-relative path of the file

    Returns:
        Parsed document; never raises on malformed frontmatter
    """
    stem = PurePosixPath(path).stem
    cleaned = content.strip()

    try:
        data, body, _ = split_frontmatter(cleaned)
    except FrontmatterError as e:
        logger.warning("Malformed frontmatter in %s: %s", path, e)
        body = cleaned
        if cleaned.startswith("---"):
            parts = cleaned.split("---")
            if len(parts) >= 3:
                body = "---".join(parts[2:]).strip()
        return Document(path=path, body=body, frontmatter={"title": stem})

    frontmatter = {key: "" if value is None else value for key, value in data.items()}

    if not frontmatter.get("title"):
        frontmatter["title"] = stem

    if "categories" in frontmatter:
        frontmatter["categories"] = _as_list(frontmatter["categories"])
    elif "category" in frontmatter:
        frontmatter["categories"] = _as_list(frontmatter["category"])

    if "tags" in frontmatter:
        frontmatter["tags"] = _as_list(frontmatter["tags"])

    return Document(path=path, body=body.strip("\n"), frontmatter=frontmatter)


def _apply_multiplicity(value: Any, multiplicity: str | None) -> Any:
    if multiplicity == "single" and isinstance(value, list):
        return value[0] if value else ""
    if multiplicity == "multi" and isinstance(value, str):
        trimmed = value.strip()
        return [trimmed] if trimmed else []
    return value


def stringify_document(
    document: Document, multiplicity: dict[str, str] | None = None
) -> str:
    """Serialize a document back to file content.

    ``None`` values are dropped; empty strings and empty lists are kept.
    ``multiplicity`` maps field names to ``single`` (a list collapses to its
    first element) or ``multi`` (a string becomes a one-element list).
    A document without frontmatter is written as its body alone.
    """
    multiplicity = multiplicity or {}
    cleaned: dict[str, Any] = {}
    for key, value in document.frontmatter.items():
        if value is None:
            continue
        cleaned[key] = _apply_multiplicity(value, multiplicity.get(key))

    body = document.body
    if body and not body.endswith("\n"):
        body += "\n"

    if not cleaned:
        return body

    dumped = yaml.safe_dump(
        cleaned,
        sort_keys=False,
        allow_unicode=True,
        default_flow_style=False,
    )
    return f"---\n{dumped}---\n{body}"


def _check_value(key: str, value: Any) -> None:
    if value is None or isinstance(value, _SCALAR_TYPES):
        return
    if isinstance(value, list):
        if all(isinstance(item, str) for item in value):
            return
        raise ValueError(f"Frontmatter field '{key}' must be a list of strings")
    if isinstance(value, dict):
        for nested_key, nested_value in value.items():
            if not isinstance(nested_key, str) or not nested_key:
                raise ValueError(
                    f"Frontmatter field '{key}' has an invalid nested key: {nested_key!r}"
                )
            _check_value(f"{key}.{nested_key}", nested_value)
        return
    raise ValueError(
        f"Frontmatter field '{key}' has unsupported type {type(value).__name__}"
    )


def update_frontmatter(
    frontmatter: dict[str, Any], patch: dict[str, Any]
) -> dict[str, Any]:
    """Return *frontmatter* with *patch* merged over it.

    Keys not in the patch are kept, in their original order; new keys are
    appended. A ``None`` value marks a field for removal on write.

    Raises:
        ValueError: If a key is empty or a value has an unsupported type.
    """
    for key, value in patch.items():
        if not isinstance(key, str) or not key:
            raise ValueError(f"Frontmatter keys must be non-empty strings: {key!r}")
        _check_value(key, value)
    merged = dict(frontmatter)
    merged.update(patch)
    return merged


def new_document(path: str, defaults: dict[str, Any] | None = None) -> Document:
    """Create an in-memory document seeded with the configured defaults."""
    frontmatter: dict[str, Any] = {"title": UNTITLED_TITLE}
    frontmatter.update(defaults or {})
    frontmatter["title"] = frontmatter.get("title") or UNTITLED_TITLE
    return Document(path=path, body="", frontmatter=frontmatter)


def build_post_url(
    base_url: str | None,
    url_format: str | None,
    frontmatter: dict[str, Any],
) -> str | None:
    """Fill ``{FIELD}`` placeholders in *url_format* from frontmatter.

    Placeholder names are upper case and looked up as lower-case keys; list
    values are joined with commas.

    Returns:
        Absolute post URL, or None if the base URL, the format or any
        referenced field is missing or empty.
    """
    if not base_url or not url_format:
        return None

    path = url_format
    for match in _PLACEHOLDER.finditer(url_format):
        value = frontmatter.get(match.group(1).lower())
        if value in (None, "", []):
            return None
        text = ",".join(str(v) for v in value) if isinstance(value, list) else str(value)
        path = path.replace(match.group(0), text, 1)

    return f"{base_url.rstrip('/')}/{path.lstrip('/')}"
