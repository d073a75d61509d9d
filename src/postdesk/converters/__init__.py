"""Representation conversion between markdown and the structured document tree."""

from .common import ConversionResult, normalize_markdown
from .markdown_to_structured import (
    StructuredBuilder,
    convert_with_warnings,
    parse_markdown,
    to_structured,
)
from .models import Mark, Node, plain_text, plain_text_document
from .structured_to_markdown import MarkdownSerializer, to_markdown

__all__ = [
    "ConversionResult",
    "Mark",
    "MarkdownSerializer",
    "Node",
    "StructuredBuilder",
    "convert_with_warnings",
    "normalize_markdown",
    "parse_markdown",
    "plain_text",
    "plain_text_document",
    "to_markdown",
    "to_structured",
]
