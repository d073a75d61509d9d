"""Interface of the content generation collaborator.

Generation is a single call returning a finished post. The result is
applied to an open document through ``EditorSession.apply_generated``,
which replaces the body and merges the metadata.
"""

from __future__ import annotations

from typing import Any, Protocol

from pydantic import BaseModel, Field


class GeneratedContent(BaseModel):
    title: str = ""
    body: str = ""
    meta: dict[str, Any] = Field(default_factory=dict)

    model_config = {"frozen": True}


class ContentGenerator(Protocol):
    def generate(
        self, provider_config: dict[str, Any], prompt: str
    ) -> GeneratedContent: ...
