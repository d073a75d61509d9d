"""Common types and utilities for representation conversion."""

from dataclasses import dataclass, field

from .models import Node


@dataclass
class ConversionResult:
    """Result of converting markdown with metadata and warnings.

    Attributes:
        document: Structured document produced from the markdown
        markdown: Normalized markdown serialized back from ``document``
        warnings: Lossy constructs found in the input
    """

    document: Node
    markdown: str = ""
    warnings: list[str] = field(default_factory=list)

    @property
    def lossless(self) -> bool:
        return not self.warnings


def normalize_markdown(markdown_text: str) -> str:
    """Round-trip *markdown_text* through the structured form.

    The result is the canonical spelling the structured editor would write
    back: ``normalize_markdown(normalize_markdown(m)) == normalize_markdown(m)``.
    """
    from postdesk.converters.markdown_to_structured import to_structured
    from postdesk.converters.structured_to_markdown import to_markdown

    return to_markdown(to_structured(markdown_text))
