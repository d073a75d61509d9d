"""Structured document tree.

The tree uses the JSON shape of ProseMirror-based editors: every node has a
``type``, optional ``attrs`` and either ``content`` (child nodes) or ``text``
(text leaves). Inline formatting lives in ``marks`` on text and image leaves.
Nodes are immutable; edits produce new trees.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

# Block node types
DOC = "doc"
PARAGRAPH = "paragraph"
HEADING = "heading"
BULLET_LIST = "bulletList"
ORDERED_LIST = "orderedList"
LIST_ITEM = "listItem"
TASK_LIST = "taskList"
TASK_ITEM = "taskItem"
BLOCKQUOTE = "blockquote"
CODE_BLOCK = "codeBlock"
HORIZONTAL_RULE = "horizontalRule"
TABLE = "table"
TABLE_ROW = "tableRow"
TABLE_HEADER = "tableHeader"
TABLE_CELL = "tableCell"

# Inline node types
TEXT = "text"
HARD_BREAK = "hardBreak"
IMAGE = "image"

# Marks, outermost first
LINK = "link"
BOLD = "bold"
ITALIC = "italic"
STRIKE = "strike"
CODE = "code"

MARK_ORDER: tuple[str, ...] = (LINK, BOLD, ITALIC, STRIKE, CODE)

LIST_TYPES = frozenset({BULLET_LIST, ORDERED_LIST, TASK_LIST})
INLINE_TYPES = frozenset({TEXT, HARD_BREAK, IMAGE})


class Mark(BaseModel):
    type: str
    attrs: dict[str, Any] = Field(default_factory=dict)

    model_config = {"frozen": True}


class Node(BaseModel):
    """One node of the structured document tree."""

    type: str
    attrs: dict[str, Any] = Field(default_factory=dict)
    content: list[Node] = Field(default_factory=list)
    text: str | None = None
    marks: list[Mark] = Field(default_factory=list)

    model_config = {"frozen": True}

    @property
    def is_inline(self) -> bool:
        return self.type in INLINE_TYPES

    def mark_types(self) -> set[str]:
        return {mark.type for mark in self.marks}

    def get_mark(self, mark_type: str) -> Mark | None:
        for mark in self.marks:
            if mark.type == mark_type:
                return mark
        return None

    def to_dict(self) -> dict[str, Any]:
        """Editor JSON with empty fields left out."""
        return self.model_dump(exclude_defaults=True)


Node.model_rebuild()


def sort_marks(marks: list[Mark]) -> list[Mark]:
    """Return *marks* deduplicated by type, in canonical order.

    Unknown mark types sort after the known ones, by name.
    """
    by_type: dict[str, Mark] = {}
    for mark in marks:
        by_type.setdefault(mark.type, mark)

    def _rank(mark: Mark) -> tuple[int, str]:
        if mark.type in MARK_ORDER:
            return (MARK_ORDER.index(mark.type), mark.type)
        return (len(MARK_ORDER), mark.type)

    return sorted(by_type.values(), key=_rank)


def text_node(text: str, marks: list[Mark] | None = None) -> Node:
    return Node(type=TEXT, text=text, marks=sort_marks(marks or []))


def paragraph(*children: Node) -> Node:
    return Node(type=PARAGRAPH, content=list(children))


def doc(*blocks: Node) -> Node:
    return Node(type=DOC, content=list(blocks))


def plain_text_document(text: str) -> Node:
    """Wrap *text* verbatim in a single paragraph, one hard break per line."""
    children: list[Node] = []
    for index, line in enumerate(text.split("\n")):
        if index:
            children.append(Node(type=HARD_BREAK))
        if line:
            children.append(text_node(line))
    if not text:
        return doc()
    return doc(paragraph(*children))


def plain_text(node: Node) -> str:
    """Readable text of *node*: blocks separated by blank lines, hard breaks
    as newlines, image alt text inline."""
    if node.type == TEXT:
        return node.text or ""
    if node.type == HARD_BREAK:
        return "\n"
    if node.type == IMAGE:
        return str(node.attrs.get("alt") or "")
    if node.content and all(child.is_inline for child in node.content):
        return "".join(plain_text(child) for child in node.content)
    parts = [plain_text(child) for child in node.content]
    return "\n\n".join(part for part in parts if part)
