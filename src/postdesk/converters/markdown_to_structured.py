"""Markdown to structured document conversion using the mistune AST."""

import logging
import re
from typing import Any, Iterable

import mistune

from .common import ConversionResult
from .models import (
    BLOCKQUOTE,
    BOLD,
    BULLET_LIST,
    CODE,
    CODE_BLOCK,
    DOC,
    HARD_BREAK,
    HEADING,
    HORIZONTAL_RULE,
    IMAGE,
    ITALIC,
    LINK,
    LIST_ITEM,
    ORDERED_LIST,
    PARAGRAPH,
    STRIKE,
    TABLE,
    TABLE_CELL,
    TABLE_HEADER,
    TABLE_ROW,
    TASK_ITEM,
    TASK_LIST,
    TEXT,
    Mark,
    Node,
    plain_text_document,
    sort_marks,
    text_node,
)
from .structured_to_markdown import to_markdown

logger = logging.getLogger(__name__)

PLUGINS = ["table", "strikethrough", "task_lists"]

_INLINE_MARKS = {
    "emphasis": ITALIC,
    "strong": BOLD,
    "strikethrough": STRIKE,
}


def parse_markdown(markdown_text: str) -> list[dict[str, Any]]:
    """Parse markdown into mistune's AST token list."""
    markdown = mistune.create_markdown(renderer=None, plugins=PLUGINS)
    tokens = markdown(markdown_text)
    return tokens  # type: ignore[return-value]


def _token_text(token: dict[str, Any]) -> str:
    """Flatten a token back to its visible text."""
    if token.get("type") in ("softbreak", "linebreak"):
        return " "
    if "raw" in token:
        return token["raw"]
    if "children" in token:
        return "".join(_token_text(child) for child in token["children"])
    return token.get("text", "")


class StructuredBuilder:
    """Builds a structured ``Node`` tree from mistune AST tokens.

    Block tokens dispatch to ``block_<type>`` methods, inline tokens to
    ``inline_<type>``. Token types without a method fall back to their
    text, so nothing the parser emits is dropped.
    """

    # -------------------------------------------------------------------------
    # Blocks
    # -------------------------------------------------------------------------

    def build(self, tokens: list[dict[str, Any]]) -> Node:
        return Node(type=DOC, content=self.blocks(tokens))

    def blocks(self, tokens: Iterable[dict[str, Any]]) -> list[Node]:
        nodes: list[Node] = []
        for token in tokens:
            method = getattr(self, f"block_{token.get('type')}", None)
            if method is None:
                node = self.block_fallback(token)
            else:
                node = method(token)
            if node is not None:
                nodes.append(node)
        return nodes

    def block_blank_line(self, token: dict[str, Any]) -> None:
        return None

    def block_paragraph(self, token: dict[str, Any]) -> Node:
        return Node(type=PARAGRAPH, content=self.inlines(token["children"]))

    # Tight list items hold block_text instead of paragraph
    block_block_text = block_paragraph

    def block_heading(self, token: dict[str, Any]) -> Node:
        level = min(max(int(token.get("attrs", {}).get("level", 1)), 1), 6)
        return Node(
            type=HEADING,
            attrs={"level": level},
            content=self.inlines(token["children"]),
        )

    def block_thematic_break(self, token: dict[str, Any]) -> Node:
        return Node(type=HORIZONTAL_RULE)

    def block_block_code(self, token: dict[str, Any]) -> Node:
        code: str = token.get("raw", "")
        if code.endswith("\n"):
            code = code[:-1]
        info = (token.get("attrs") or {}).get("info") or ""
        language = info.split()[0] if info.strip() else None
        return Node(
            type=CODE_BLOCK,
            attrs={"language": language},
            content=[text_node(code)] if code else [],
        )

    def block_block_quote(self, token: dict[str, Any]) -> Node:
        return Node(type=BLOCKQUOTE, content=self.blocks(token["children"]))

    def block_block_html(self, token: dict[str, Any]) -> Node | None:
        raw = token.get("raw", "").strip("\n")
        if not raw.strip():
            return None
        document = plain_text_document(raw)
        return document.content[0]

    def block_list(self, token: dict[str, Any]) -> Node:
        attrs = token.get("attrs", {})
        items: list[dict[str, Any]] = token.get("children", [])
        ordered = bool(attrs.get("ordered"))

        if ordered:
            return Node(
                type=ORDERED_LIST,
                attrs={"start": int(attrs.get("start", 1))},
                content=[self._list_item(item) for item in items],
            )

        if items and all(item.get("type") == "task_list_item" for item in items):
            return Node(
                type=TASK_LIST,
                content=[
                    Node(
                        type=TASK_ITEM,
                        attrs={"checked": bool(item["attrs"].get("checked"))},
                        content=self.blocks(item.get("children", [])),
                    )
                    for item in items
                ],
            )

        return Node(
            type=BULLET_LIST,
            content=[self._list_item(item) for item in items],
        )

    def _list_item(self, item: dict[str, Any]) -> Node:
        content = self.blocks(item.get("children", []))
        if item.get("type") == "task_list_item":
            # A checkbox outside a pure task list is kept as literal text
            box = "[x] " if item.get("attrs", {}).get("checked") else "[ ] "
            if content and content[0].type == PARAGRAPH:
                first = content[0]
                merged: list[Node] = []
                self._append_text(merged, box, [])
                for child in first.content:
                    if child.type == TEXT:
                        self._append_text(merged, child.text or "", child.marks)
                    else:
                        merged.append(child)
                content[0] = Node(type=PARAGRAPH, content=merged)
            else:
                content.insert(0, Node(type=PARAGRAPH, content=[text_node(box.strip())]))
        return Node(type=LIST_ITEM, content=content)

    def block_table(self, token: dict[str, Any]) -> Node:
        rows: list[Node] = []
        for part in token.get("children", []):
            if part.get("type") == "table_head":
                rows.append(self._table_row(part.get("children", []), TABLE_HEADER))
            elif part.get("type") == "table_body":
                for row in part.get("children", []):
                    rows.append(
                        self._table_row(row.get("children", []), TABLE_CELL)
                    )
        return Node(type=TABLE, content=rows)

    def _table_row(self, cells: list[dict[str, Any]], cell_type: str) -> Node:
        return Node(
            type=TABLE_ROW,
            content=[
                Node(
                    type=cell_type,
                    attrs={"align": (cell.get("attrs") or {}).get("align")},
                    content=[
                        Node(
                            type=PARAGRAPH,
                            content=self.inlines(cell.get("children", [])),
                        )
                    ],
                )
                for cell in cells
            ],
        )

    def block_fallback(self, token: dict[str, Any]) -> Node | None:
        text = _token_text(token).strip("\n")
        logger.debug(
            "Unsupported block token %r kept as text", token.get("type")
        )
        if not text.strip():
            return None
        return plain_text_document(text).content[0]

    # -------------------------------------------------------------------------
    # Inlines
    # -------------------------------------------------------------------------

    def inlines(self, tokens: Iterable[dict[str, Any]]) -> list[Node]:
        nodes: list[Node] = []
        self._collect(tokens, [], nodes)
        return nodes

    def _collect(
        self,
        tokens: Iterable[dict[str, Any]],
        marks: list[Mark],
        out: list[Node],
    ) -> None:
        for token in tokens:
            token_type = token.get("type", "")
            if token_type in _INLINE_MARKS:
                self._collect(
                    token.get("children", []),
                    marks + [Mark(type=_INLINE_MARKS[token_type])],
                    out,
                )
                continue
            method = getattr(self, f"inline_{token_type}", None)
            if method is None:
                self._append_text(out, _token_text(token), marks)
            else:
                method(token, marks, out)

    def _append_text(
        self, out: list[Node], text: str, marks: list[Mark]
    ) -> None:
        if not text:
            return
        marks = sort_marks(marks)
        if out and out[-1].type == TEXT and out[-1].marks == marks:
            out[-1] = text_node((out[-1].text or "") + text, marks)
        else:
            out.append(text_node(text, marks))

    def inline_text(self, token, marks, out) -> None:
        self._append_text(out, token.get("raw", ""), marks)

    def inline_softbreak(self, token, marks, out) -> None:
        self._append_text(out, " ", marks)

    def inline_linebreak(self, token, marks, out) -> None:
        out.append(Node(type=HARD_BREAK))

    def inline_codespan(self, token, marks, out) -> None:
        self._append_text(out, token.get("raw", ""), marks + [Mark(type=CODE)])

    def inline_inline_html(self, token, marks, out) -> None:
        self._append_text(out, token.get("raw", "").replace("\n", " "), marks)

    def inline_link(self, token, marks, out) -> None:
        attrs = token.get("attrs") or {}
        link_attrs: dict[str, Any] = {"href": attrs.get("url", "")}
        if attrs.get("title"):
            link_attrs["title"] = attrs["title"]
        self._collect(
            token.get("children", []),
            marks + [Mark(type=LINK, attrs=link_attrs)],
            out,
        )

    def inline_image(self, token, marks, out) -> None:
        attrs = token.get("attrs") or {}
        alt = "".join(_token_text(child) for child in token.get("children", []))
        out.append(
            Node(
                type=IMAGE,
                attrs={
                    "src": attrs.get("url", ""),
                    "alt": alt or None,
                    "title": attrs.get("title") or None,
                },
                marks=sort_marks(marks),
            )
        )


def to_structured(markdown_text: str) -> Node:
    """Convert markdown to a structured document.

    Never raises: if the parser fails, the text is kept verbatim in a single
    plain-text paragraph.

    Args:
        markdown_text: Markdown body (without frontmatter)

    Returns:
        ``doc`` node
    """
    try:
        return StructuredBuilder().build(parse_markdown(markdown_text))
    except Exception:
        logger.warning(
            "Markdown parse failed, keeping content as plain text",
            exc_info=True,
        )
        return plain_text_document(markdown_text)


def convert_with_warnings(markdown_text: str) -> ConversionResult:
    """
    Convert markdown to a structured document and report lossy constructs.

    Args:
        markdown_text: Markdown body

    Returns:
        ConversionResult with the document and any warnings
    """
    warnings = []

    if re.search(r"<[a-zA-Z/][^>]*>", markdown_text):
        warnings.append(
            "HTML tags detected - they are kept as literal text."
        )

    if re.search(r"^ {0,3}\S.*\n {0,3}(=+|-+)[ \t]*$", markdown_text, re.MULTILINE):
        warnings.append(
            "Setext headings detected - they will be rewritten as '#' headings."
        )

    if re.search(r"(?:\A|\n\n)(?: {4}|\t)\S", markdown_text):
        warnings.append(
            "Indented code blocks detected - they will be rewritten as fenced code."
        )

    if re.search(r"^ {0,3}\[[^\]]+\]:\s*\S+", markdown_text, re.MULTILINE):
        warnings.append(
            "Reference-style links detected - they will be rewritten inline."
        )

    document = to_structured(markdown_text)
    return ConversionResult(
        document=document,
        markdown=to_markdown(document),
        warnings=warnings,
    )
