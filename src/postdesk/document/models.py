"""Document value model."""

from __future__ import annotations

from pathlib import PurePosixPath
from typing import Any

from pydantic import BaseModel, Field

UNTITLED_TITLE = "Untitled Post"


class Document(BaseModel):
    """One markdown post: workspace-relative path, body and frontmatter.

    ``path`` identifies the document for the lifetime of an editing
    session. ``frontmatter`` keeps the key order found in the file.
    """

    path: str
    body: str = ""
    frontmatter: dict[str, Any] = Field(default_factory=dict)

    model_config = {"frozen": True}

    @property
    def name(self) -> str:
        return PurePosixPath(self.path).name

    @property
    def stem(self) -> str:
        return PurePosixPath(self.path).stem

    @property
    def title(self) -> str:
        value = self.frontmatter.get("title")
        return "" if value is None else str(value)

    @property
    def is_untitled(self) -> bool:
        return self.title == UNTITLED_TITLE

    @property
    def display_title(self) -> str:
        if self.is_untitled or not self.title:
            return "Untitled"
        return self.title

    def with_body(self, body: str) -> Document:
        return self.model_copy(update={"body": body})

    def with_frontmatter(self, frontmatter: dict[str, Any]) -> Document:
        return self.model_copy(update={"frontmatter": dict(frontmatter)})
