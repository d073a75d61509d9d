"""Infer a frontmatter schema from the posts of a workspace.

The schema lists every frontmatter key seen across the posts, with a type
guessed from its first non-empty value and up to ten distinct sample
values. Clients use it to offer consistent metadata fields when editing.
"""

from __future__ import annotations

import datetime
import email.utils
import json
import re
from collections.abc import Iterable
from typing import Any, Literal

from pydantic import BaseModel, Field

from .models import Document

FieldType = Literal["string", "number", "boolean", "date", "array", "object"]

COMMON_FIELDS = ("title", "date", "author", "description", "categories", "tags")
MAX_COMMON_VALUES = 10

_DATE_PATTERNS = [
    re.compile(r"^\d{4}-\d{2}-\d{2}"),
    re.compile(r"^\d{4}/\d{2}/\d{2}"),
    re.compile(r"^\d{2}[-/.]\d{2}[-/.]\d{4}"),
    re.compile(r"^\d{2}[-/.]\d{2}[-/.]\d{2}"),
    re.compile(r"^\d{1,2}\s+\w+\s+\d{4}"),
    re.compile(r"^\w+\s+\d{1,2},?\s+\d{4}"),
]
_MIN_YEAR = 1970
_MAX_YEAR = 2100


class MetaField(BaseModel):
    key: str
    type: FieldType = "string"
    common_values: list[Any] = Field(default_factory=list)
    required: bool = False

    model_config = {"frozen": True}


class MetaSchema(BaseModel):
    fields: list[MetaField] = Field(default_factory=list)

    model_config = {"frozen": True}

    def get(self, key: str) -> MetaField | None:
        for field in self.fields:
            if field.key == key:
                return field
        return None

    @property
    def keys(self) -> list[str]:
        return [field.key for field in self.fields]


def _is_empty(value: Any) -> bool:
    return value is None or value == ""


def _identity(value: Any) -> str:
    """Key under which two frontmatter values count as the same value."""
    return json.dumps(value, sort_keys=True, default=str)


def _parse_date(text: str) -> datetime.datetime | None:
    try:
        return datetime.datetime.fromisoformat(text)
    except ValueError:
        pass
    try:
        return email.utils.parsedate_to_datetime(text)
    except (TypeError, ValueError, IndexError):
        return None


def is_date_string(text: str) -> bool:
    """Whether *text* looks like a date.

    Common day/month/year layouts match by shape alone. Anything else must
    parse as an ISO 8601 or RFC 2822 date between 1970 and 2100.
    """
    if any(pattern.match(text) for pattern in _DATE_PATTERNS):
        return True
    parsed = _parse_date(text)
    if parsed is None:
        return False
    return _MIN_YEAR <= parsed.year <= _MAX_YEAR


def infer_field_type(values: list[Any]) -> FieldType:
    """Guess a field type from the first sample value; ``string`` if none."""
    if not values:
        return "string"
    first = values[0]
    if isinstance(first, list):
        return "array"
    # bool before number: bool is an int subclass
    if isinstance(first, bool):
        return "boolean"
    if isinstance(first, (int, float)):
        return "number"
    if isinstance(first, (datetime.date, datetime.datetime)):
        return "date"
    if isinstance(first, str) and is_date_string(first):
        return "date"
    if isinstance(first, dict):
        return "object"
    return "string"


def _field_order(key: str) -> tuple[int, str]:
    if key in COMMON_FIELDS:
        return (COMMON_FIELDS.index(key), "")
    return (len(COMMON_FIELDS), key)


def analyze_meta(documents: Iterable[Document]) -> MetaSchema:
    """Collect the frontmatter fields used across *documents*.

    Fields are ordered with the common blog fields first (title, date,
    author, description, categories, tags), the rest alphabetically. A
    field is required when every document has a non-empty value for it.

    Args:
        documents: Parsed posts

    Returns:
        Schema with one ``MetaField`` per distinct key
    """
    samples: dict[str, dict[str, Any]] = {}
    filled: dict[str, int] = {}
    count = 0

    for document in documents:
        count += 1
        for key, value in document.frontmatter.items():
            distinct = samples.setdefault(key, {})
            if _is_empty(value):
                continue
            filled[key] = filled.get(key, 0) + 1
            distinct.setdefault(_identity(value), value)

    fields = []
    for key in sorted(samples, key=_field_order):
        values = list(samples[key].values())
        fields.append(
            MetaField(
                key=key,
                type=infer_field_type(values),
                common_values=values[:MAX_COMMON_VALUES],
                required=count > 0 and filled.get(key, 0) == count,
            )
        )
    return MetaSchema(fields=fields)


def _value_order(value: Any) -> tuple[int, Any]:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return (0, value)
    return (1, str(value))


def get_field_values(documents: Iterable[Document], key: str) -> list[Any]:
    """Distinct non-empty values of *key* across *documents*.

    List values contribute their items, so a ``tags`` field yields the
    individual tags. Numbers sort numerically ahead of everything else,
    which sorts by its text.
    """
    distinct: dict[str, Any] = {}
    for document in documents:
        value = document.frontmatter.get(key)
        if _is_empty(value):
            continue
        for item in value if isinstance(value, list) else [value]:
            if not _is_empty(item):
                distinct.setdefault(_identity(item), item)
    return sorted(distinct.values(), key=_value_order)
