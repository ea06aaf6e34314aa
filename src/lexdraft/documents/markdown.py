"""Conversions between the constrained markdown subset and the canonical tree.

The subset is what the extraction phase is asked to produce: paragraphs, ``###``
sub-headings, ``**bold**``/``*italic*`` emphasis and flat bullet lists. Ordered
lists, block quotes, fenced code and ``[text](href)`` links are accepted as well
so a mirror rendered from an edited tree parses back to the same structure.
"""

from __future__ import annotations

import re
from collections.abc import Iterable

from lexdraft.documents import tree as t
from lexdraft.documents.tree import Node
from lexdraft.types import Section

INLINE_PATTERN = re.compile(r"\*\*\*(.+?)\*\*\*|\*\*(.+?)\*\*|\*(.+?)\*|\[([^\]]+)\]\(([^)\s]+)\)")
HEADING_PATTERN = re.compile(r"^(#{1,6})\s+(.+?)\s*#*\s*$")
BULLET_PATTERN = re.compile(r"^\s*[-*+]\s+(.*)$")
ORDERED_PATTERN = re.compile(r"^\s*\d+[.)]\s+(.*)$")
QUOTE_PATTERN = re.compile(r"^\s*>\s?(.*)$")
RULE_PATTERN = re.compile(r"^\s*(?:-{3,}|\*{3,}|_{3,})\s*$")
FENCE = "```"


def parse_inline(value: str, marks: list[Node] | None = None) -> list[Node]:
    """Split inline markdown into text runs carrying bold/italic/link marks."""
    base = list(marks or [])
    nodes: list[Node] = []
    last = 0
    for match in INLINE_PATTERN.finditer(value):
        if match.start() > last:
            nodes.append(t.text(value[last : match.start()], base))
        if match.group(1) is not None:
            # ``***x***`` is what inline_to_markdown writes for bold plus italic.
            nodes.extend(parse_inline(match.group(1), base + [t.mark("bold"), t.mark("italic")]))
        elif match.group(2) is not None:
            nodes.extend(parse_inline(match.group(2), base + [t.mark("bold")]))
        elif match.group(3) is not None:
            nodes.extend(parse_inline(match.group(3), base + [t.mark("italic")]))
        else:
            nodes.extend(parse_inline(match.group(4), base + [t.mark("link", href=match.group(5))]))
        last = match.end()

    if last < len(value):
        nodes.append(t.text(value[last:], base))
    return [node for node in nodes if node["text"]]


class _BlockBuilder:
    def __init__(self, min_heading_level: int):
        self.min_heading_level = min_heading_level
        self.nodes: list[Node] = []
        self.paragraph: list[str] = []
        self.quote: list[str] = []
        self.list_kind: str | None = None
        self.items: list[list[str]] = []

    def flush_paragraph(self) -> None:
        joined = " ".join(line.strip() for line in self.paragraph if line.strip())
        if joined:
            self.nodes.append(t.paragraph(parse_inline(joined)))
        self.paragraph = []

    def flush_quote(self) -> None:
        joined = " ".join(line.strip() for line in self.quote if line.strip())
        if joined:
            self.nodes.append(t.blockquote([t.paragraph(parse_inline(joined))]))
        self.quote = []

    def flush_list(self) -> None:
        items = []
        for parts in self.items:
            joined = " ".join(part.strip() for part in parts if part.strip())
            if joined:
                items.append(t.list_item(parse_inline(joined)))
        if items:
            builder = t.bullet_list if self.list_kind == t.BULLET_LIST else t.ordered_list
            self.nodes.append(builder(items))
        self.list_kind = None
        self.items = []

    def flush(self) -> None:
        self.flush_paragraph()
        self.flush_quote()
        self.flush_list()

    def add_item(self, kind: str, value: str) -> None:
        self.flush_paragraph()
        self.flush_quote()
        if self.list_kind != kind:
            self.flush_list()
            self.list_kind = kind
        self.items.append([value])

    def add_heading(self, level: int, value: str) -> None:
        self.flush()
        level = max(level, self.min_heading_level)
        children = parse_inline(value.strip())
        if children:
            self.nodes.append(t.heading(level, children))

    def add_text(self, line: str) -> None:
        if self.list_kind is not None and self.items:
            self.items[-1].append(line)
            return
        self.flush_quote()
        self.paragraph.append(line)


def markdown_to_nodes(markdown: str, *, min_heading_level: int = 3) -> list[Node]:
    """Parse one section's markdown body into block nodes.

    Headings shallower than ``min_heading_level`` are demoted so a body can never
    open a new section by accident.
    """
    builder = _BlockBuilder(min_heading_level)
    lines = (markdown or "").replace("\r\n", "\n").split("\n")
    index = 0
    while index < len(lines):
        line = lines[index]
        stripped = line.strip()

        if stripped.startswith(FENCE):
            builder.flush()
            index += 1
            code: list[str] = []
            while index < len(lines) and not lines[index].strip().startswith(FENCE):
                code.append(lines[index])
                index += 1
            builder.nodes.append(t.code_block("\n".join(code)))
            index += 1
            continue

        if not stripped:
            builder.flush()
        elif RULE_PATTERN.match(line):
            builder.flush()
        elif match := HEADING_PATTERN.match(stripped):
            builder.add_heading(len(match.group(1)), match.group(2))
        elif match := BULLET_PATTERN.match(line):
            builder.add_item(t.BULLET_LIST, match.group(1))
        elif match := ORDERED_PATTERN.match(line):
            builder.add_item(t.ORDERED_LIST, match.group(1))
        elif match := QUOTE_PATTERN.match(line):
            builder.flush_paragraph()
            builder.flush_list()
            builder.quote.append(match.group(1))
        else:
            builder.add_text(line)
        index += 1

    builder.flush()
    return builder.nodes


def section_nodes(section: Section) -> list[Node]:
    title = parse_inline(section.title.strip()) or [t.text(section.id)]
    return [t.heading(t.SECTION_LEVEL, title, section.id), *markdown_to_nodes(section.content)]


def sections_to_tree(sections: Iterable[Section]) -> Node:
    content: list[Node] = []
    for section in sections:
        content.extend(section_nodes(section))
    return t.document(content)


def inline_to_markdown(nodes: Iterable[Node]) -> str:
    parts: list[str] = []
    for node in nodes:
        kind = t.node_type(node)
        if kind == t.HARD_BREAK:
            parts.append("\n")
            continue
        if kind != t.TEXT:
            parts.append(inline_to_markdown(t.children_of(node)))
            continue
        value = node.get("text")
        if not isinstance(value, str) or not value:
            continue
        for item in node.get("marks") or []:
            mark_type = t.node_type(item)
            if mark_type == "bold":
                value = f"**{value}**"
            elif mark_type == "italic":
                value = f"*{value}*"
            elif mark_type == "link":
                href = t.attrs_of(item).get("href")
                if href:
                    value = f"[{value}]({href})"
        parts.append(value)
    return "".join(parts)


def _list_item_markdown(item: Node) -> str:
    pieces = []
    for child in t.children_of(item):
        if t.node_type(child) in (t.BULLET_LIST, t.ORDERED_LIST):
            pieces.append(" ".join(_list_item_markdown(nested) for nested in t.children_of(child)))
        elif t.node_type(child) == t.PARAGRAPH:
            pieces.append(inline_to_markdown(t.children_of(child)))
        else:
            pieces.append(inline_to_markdown([child]))
    return " ".join(piece.strip() for piece in pieces if piece.strip())


def block_to_markdown(node: Node) -> str:
    kind = t.node_type(node)
    if kind == t.HEADING:
        title = inline_to_markdown(t.children_of(node)).strip()
        return f"{'#' * t.heading_level(node)} {title}" if title else ""
    if kind == t.PARAGRAPH:
        return inline_to_markdown(t.children_of(node)).strip()
    if kind == t.BULLET_LIST:
        lines = [_list_item_markdown(item) for item in t.children_of(node)]
        return "\n".join(f"- {line}" for line in lines if line)
    if kind == t.ORDERED_LIST:
        lines = [line for line in (_list_item_markdown(item) for item in t.children_of(node)) if line]
        return "\n".join(f"{number}. {line}" for number, line in enumerate(lines, start=1))
    if kind == t.LIST_ITEM:
        line = _list_item_markdown(node)
        return f"- {line}" if line else ""
    if kind == t.BLOCKQUOTE:
        inner = nodes_to_markdown(t.children_of(node))
        return "\n".join(f"> {line}" if line else ">" for line in inner.split("\n")) if inner else ""
    if kind == t.CODE_BLOCK:
        code = t.plain_text(node)
        return f"{FENCE}\n{code}\n{FENCE}" if code else ""
    if kind == t.TEXT or kind == t.HARD_BREAK:
        return inline_to_markdown([node]).strip()
    return nodes_to_markdown(t.children_of(node))


def nodes_to_markdown(nodes: Iterable[Node]) -> str:
    blocks = [block_to_markdown(node) for node in nodes]
    return "\n\n".join(block for block in blocks if block)


def tree_to_plain_text(tree: Node | None) -> str:
    """Flat markdown mirror of a tree: ``## Title`` blocks followed by their content."""
    return nodes_to_markdown(t.top_level_blocks(tree))


def normalize_markdown(markdown: str) -> str:
    """Re-render section markdown through the tree so mirror and tree agree."""
    return nodes_to_markdown(markdown_to_nodes(markdown))
