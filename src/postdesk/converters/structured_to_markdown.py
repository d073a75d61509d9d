"""Structured document to markdown serialization.

Output is normalized rather than a copy of whatever markdown the document
came from: ATX headings, ``-`` bullets, ``1.`` ordered markers, fenced code,
``---`` rules and tight lists. Serializing a document parsed from this
module's own output reproduces that output exactly.
"""

import logging
import re

from .models import (
    BOLD,
    CODE,
    DOC,
    HARD_BREAK,
    HEADING,
    HORIZONTAL_RULE,
    IMAGE,
    INLINE_TYPES,
    ITALIC,
    LINK,
    LIST_ITEM,
    LIST_TYPES,
    MARK_ORDER,
    ORDERED_LIST,
    PARAGRAPH,
    STRIKE,
    TABLE_ROW,
    TASK_ITEM,
    TASK_LIST,
    TEXT,
    Mark,
    Node,
    plain_text,
    text_node,
)

logger = logging.getLogger(__name__)

_ESCAPE_CHARS = re.compile(r"([\\*`\[\]~<])")
# '_' cannot open or close emphasis between two alphanumerics
_ESCAPE_UNDERSCORE = re.compile(r"(?<![A-Za-z0-9])_|_(?![A-Za-z0-9])")

_LINE_START_ESCAPES = (
    re.compile(r"^([#>])"),
    re.compile(r"^([-+])(?=[ \t]|$)"),
    re.compile(r"^([-=])(?=[-=]*[ \t]*$)"),
)
_ORDERED_LINE_START = re.compile(r"^(\d{1,9})([.)])(?=[ \t]|$)")
_URL_NEEDS_BRACKETS = re.compile(r"[\s()<>]")
_THEMATIC_BREAK = re.compile(r"^ {0,3}([-*_])(?:[ \t]*\1){2,}[ \t]*$")
_BARE_MARKER = re.compile(r"^(?:[-*+]|\d{1,9}[.)])$")

_ALIGN_ROW = {
    "left": ":---",
    "right": "---:",
    "center": ":---:",
}

_WRAPPERS = {
    BOLD: ("**", "**"),
    ITALIC: ("*", "*"),
    STRIKE: ("~~", "~~"),
}


def escape_text(text: str, in_table: bool = False) -> str:
    """Backslash-escape characters that would start inline markup."""
    text = _ESCAPE_CHARS.sub(r"\\\1", text)
    text = _ESCAPE_UNDERSCORE.sub(r"\\_", text)
    if in_table:
        text = text.replace("|", "\\|")
    return text


def escape_line_start(line: str) -> str:
    """Escape a leading character that would turn the line into a block."""
    for pattern in _LINE_START_ESCAPES:
        if pattern.match(line):
            return "\\" + line
    match = _ORDERED_LINE_START.match(line)
    if match:
        return f"{match.group(1)}\\{line[len(match.group(1)):]}"
    return line


def code_span(code: str) -> str:
    code = code.replace("\n", " ")
    runs = re.findall(r"`+", code)
    fence = "`" * (max(len(run) for run in runs) + 1 if runs else 1)
    if (
        code.startswith("`")
        or code.endswith("`")
        or (code.startswith(" ") and code.endswith(" ") and code.strip())
    ):
        code = f" {code} "
    return f"{fence}{code}{fence}"


def _mark_rank(mark: Mark) -> int:
    if mark.type in MARK_ORDER:
        return MARK_ORDER.index(mark.type)
    return len(MARK_ORDER)


def _strip_breaks(nodes: list[Node]) -> list[Node]:
    start, end = 0, len(nodes)
    while start < end and nodes[start].type == HARD_BREAK:
        start += 1
    while end > start and nodes[end - 1].type == HARD_BREAK:
        end -= 1
    return nodes[start:end]


def _indent(body: str, prefix: str) -> str:
    pad = " " * len(prefix)
    lines = body.split("\n")
    out = [(prefix + lines[0]).rstrip() if lines[0] else prefix.rstrip()]
    out.extend(pad + line if line else "" for line in lines[1:])
    return "\n".join(out)


def _list_start(node: Node) -> int:
    return int(node.attrs.get("start") or 1)


def _interrupts_paragraph(node: Node, text: str) -> bool:
    """Whether the list rendered as *text* can start on the line right after
    a paragraph.

    Only a list whose first item has content, and an ordered list only when
    it starts at 1, interrupts a paragraph; otherwise the marker line is read
    as paragraph text or a setext underline.
    """
    if node.type == ORDERED_LIST and _list_start(node) != 1:
        return False
    return not _BARE_MARKER.match(text.split("\n", 1)[0])


class MarkdownSerializer:
    """Writes a structured ``Node`` tree as markdown.

    Block nodes dispatch to ``render_<type>`` methods. Unknown block types
    are written as their plain text.
    """

    # -------------------------------------------------------------------------
    # Blocks
    # -------------------------------------------------------------------------

    def render_blocks(self, nodes: list[Node]) -> list[tuple[Node, str]]:
        """Render sibling blocks, returning ``(node, markdown)`` pairs for
        the non-empty ones."""
        rendered: list[tuple[Node, str]] = []
        prev_family: str | None = None
        prev_alternate = False

        for node in self._group_inline(nodes):
            if node.type in LIST_TYPES:
                family = "ordered" if node.type == ORDERED_LIST else "bullet"
                # Same-family lists back to back would merge into one
                alternate = family == prev_family and not prev_alternate
                text = self.render_list(node, alternate)
                if not text:
                    continue
                prev_family, prev_alternate = family, alternate
            else:
                text = self.render_block(node)
                if not text:
                    continue
                prev_family, prev_alternate = None, False
            rendered.append((node, text))
        return rendered

    def _group_inline(self, nodes: list[Node]) -> list[Node]:
        """Wrap stray inline nodes at block level into paragraphs."""
        grouped: list[Node] = []
        run: list[Node] = []
        for node in nodes:
            if node.type in INLINE_TYPES:
                run.append(node)
                continue
            if run:
                grouped.append(Node(type=PARAGRAPH, content=run))
                run = []
            grouped.append(node)
        if run:
            grouped.append(Node(type=PARAGRAPH, content=run))
        return grouped

    def render_block(self, node: Node) -> str:
        method = getattr(self, f"render_{node.type}", None)
        if method is None:
            logger.debug("Unknown block type %r written as text", node.type)
            return self.render_paragraph(
                Node(type=PARAGRAPH, content=[text_node(plain_text(node))])
            )
        return method(node)

    def join_blocks(self, nodes: list[Node]) -> str:
        return "\n\n".join(text for _, text in self.render_blocks(nodes))

    def render_doc(self, node: Node) -> str:
        return self.join_blocks(node.content)

    def render_paragraph(self, node: Node) -> str:
        text = self.render_inline(_strip_breaks(node.content))
        lines = [escape_line_start(line.lstrip(" \t")) for line in text.split("\n")]
        result = "\n".join(lines).rstrip()
        return result if result.strip() else ""

    def render_heading(self, node: Node) -> str:
        level = min(max(int(node.attrs.get("level") or 1), 1), 6)
        content = [
            text_node(" ") if child.type == HARD_BREAK else child
            for child in node.content
        ]
        text = self.render_inline(content).strip()
        if text.endswith("#"):
            text = text[:-1] + "\\#"
        marker = "#" * level
        return f"{marker} {text}" if text else marker

    def render_horizontalRule(self, node: Node) -> str:
        return "---"

    def render_codeBlock(self, node: Node) -> str:
        code = "".join(
            "\n" if child.type == HARD_BREAK else (child.text or "")
            for child in node.content
        )
        language = str(node.attrs.get("language") or "").strip()
        char = "~" if "`" in language else "`"
        runs = re.findall(re.escape(char) + "+", code)
        fence = char * max(3, max((len(run) for run in runs), default=0) + 1)
        if code:
            return f"{fence}{language}\n{code}\n{fence}"
        return f"{fence}{language}\n{fence}"

    def render_blockquote(self, node: Node) -> str:
        body = self.join_blocks(node.content)
        if not body:
            return ">"
        return "\n".join(f"> {line}" if line else ">" for line in body.split("\n"))

    def render_list(self, node: Node, alternate: bool = False) -> str:
        items: list[str] = []
        start = _list_start(node)
        for index, item in enumerate(node.content):
            if node.type == ORDERED_LIST:
                marker = f"{start + index}{')' if alternate else '.'}"
            else:
                marker = "*" if alternate else "-"

            blocks = item.content if item.type in (LIST_ITEM, TASK_ITEM) else [item]
            if node.type == TASK_LIST and blocks and blocks[0].type == HEADING:
                # The checkbox is only recognized in front of paragraph text
                blocks = [self._heading_as_paragraph(blocks[0]), *blocks[1:]]
            body = self.render_item_body(blocks)
            if node.type == TASK_LIST:
                box = "[x]" if item.attrs.get("checked") else "[ ]"
                body = f"{box} {body}" if body else box

            prefix = marker + " "
            if body and _THEMATIC_BREAK.match(prefix + body.split("\n", 1)[0]):
                # '- - -' from nested empty items would read as a rule, so
                # the item body starts on the next line
                items.append(_indent("\n" + body, prefix))
            else:
                items.append(_indent(body, prefix))
        return "\n".join(items)

    def _heading_as_paragraph(self, node: Node) -> Node:
        return Node(
            type=PARAGRAPH,
            content=[
                text_node(" ") if child.type == HARD_BREAK else child
                for child in node.content
            ],
        )

    def render_item_body(self, blocks: list[Node]) -> str:
        rendered = self.render_blocks(blocks)
        parts: list[str] = []
        for index, (node, text) in enumerate(rendered):
            if index == 0 and node.type == HORIZONTAL_RULE:
                # '- ---' would read as a single thematic break
                text = "___"
            if index:
                prev = rendered[index - 1][0]
                tight = (
                    prev.type == PARAGRAPH
                    and node.type in LIST_TYPES
                    and _interrupts_paragraph(node, text)
                )
                parts.append("\n" if tight else "\n\n")
            parts.append(text)
        return "".join(parts)

    def render_table(self, node: Node) -> str:
        rows = [row for row in node.content if row.type == TABLE_ROW]
        if not rows:
            return ""
        width = max(len(row.content) for row in rows)
        if not width:
            return ""

        header = rows[0]
        aligns = [cell.attrs.get("align") for cell in header.content]
        aligns += [None] * (width - len(aligns))

        lines = [self._table_line(header, width)]
        lines.append(
            "| " + " | ".join(_ALIGN_ROW.get(align, "---") for align in aligns) + " |"
        )
        lines.extend(self._table_line(row, width) for row in rows[1:])
        return "\n".join(lines)

    def _table_line(self, row: Node, width: int) -> str:
        cells = [self._table_cell(cell) for cell in row.content[:width]]
        cells += [""] * (width - len(cells))
        return "| " + " | ".join(cells) + " |"

    def _table_cell(self, cell: Node) -> str:
        inline: list[Node] = []
        for block in cell.content:
            children = block.content if block.type not in INLINE_TYPES else [block]
            if inline and children:
                inline.append(text_node(" "))
            inline.extend(
                text_node(" ") if child.type == HARD_BREAK else child
                for child in children
            )
        return self.render_inline(inline, in_table=True).strip()

    # -------------------------------------------------------------------------
    # Inlines
    # -------------------------------------------------------------------------

    def render_inline(
        self,
        nodes: list[Node],
        active: list[Mark] | None = None,
        in_table: bool = False,
    ) -> str:
        """Render inline nodes, opening each mark over the longest run of
        neighbours that share it."""
        active = active or []
        parts: list[str] = []
        index = 0
        while index < len(nodes):
            node = nodes[index]
            pending = [
                mark
                for mark in node.marks
                if mark.type != CODE and mark not in active
            ]
            if not pending:
                parts.append(self.render_leaf(node, in_table))
                index += 1
                continue

            def run_end(mark: Mark) -> int:
                end = index
                while end < len(nodes) and mark in nodes[end].marks:
                    end += 1
                return end

            mark = max(pending, key=lambda m: (run_end(m), -_mark_rank(m)))
            end = run_end(mark)
            inner = self.render_inline(nodes[index:end], active + [mark], in_table)
            parts.append(self.wrap(mark, inner))
            index = end

        out = ""
        for part in parts:
            # 'text!' followed by a link would read as an image
            if part.startswith("[") and out.endswith("!"):
                out = out[:-1] + "\\!"
            out += part
        return out

    def wrap(self, mark: Mark, inner: str) -> str:
        if not inner.strip():
            return inner
        stripped = inner.strip(" ")
        lead = inner[: len(inner) - len(inner.lstrip(" "))]
        trail = inner[len(inner.rstrip(" ")) :]

        if mark.type == LINK:
            return f"{lead}[{stripped}]({self.link_target(mark.attrs)}){trail}"
        if mark.type in _WRAPPERS:
            opening, closing = _WRAPPERS[mark.type]
            return f"{lead}{opening}{stripped}{closing}{trail}"
        return inner

    def link_target(self, attrs: dict) -> str:
        href = str(attrs.get("href") or attrs.get("src") or "")
        if _URL_NEEDS_BRACKETS.search(href):
            href = "<" + href.replace("<", "%3C").replace(">", "%3E") + ">"
        title = attrs.get("title")
        if title:
            escaped = str(title).replace("\\", "\\\\").replace('"', '\\"')
            return f'{href} "{escaped}"'
        return href

    def render_leaf(self, node: Node, in_table: bool = False) -> str:
        if node.type == TEXT:
            text = (node.text or "").replace("\n", " ")
            if node.get_mark(CODE) is not None:
                return code_span(text) if text else ""
            return escape_text(text, in_table)
        if node.type == HARD_BREAK:
            return "\\\n"
        if node.type == IMAGE:
            alt = escape_text(str(node.attrs.get("alt") or ""), in_table)
            return f"![{alt}]({self.link_target(node.attrs)})"
        return escape_text(plain_text(node), in_table)


def to_markdown(node: Node) -> str:
    """Serialize a structured document (or any block node) to markdown.

    Args:
        node: ``doc`` node, or a single block

    Returns:
        Markdown text without a trailing newline
    """
    serializer = MarkdownSerializer()
    if node.type == DOC:
        return serializer.render_doc(node)
    return serializer.join_blocks([node])
