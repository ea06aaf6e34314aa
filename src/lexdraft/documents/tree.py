"""Canonical section-tree node vocabulary.

Trees are stored as JSON-native dicts so they round-trip through the database and
the editor unchanged. The root node is serialized with type ``doc``.
"""

from __future__ import annotations

from typing import Any

DOC = "doc"
HEADING = "heading"
PARAGRAPH = "paragraph"
BULLET_LIST = "bulletList"
ORDERED_LIST = "orderedList"
LIST_ITEM = "listItem"
BLOCKQUOTE = "blockquote"
CODE_BLOCK = "codeBlock"
HARD_BREAK = "hardBreak"
TEXT = "text"

ROOT_TYPES = {DOC, "document"}
BLOCK_TYPES = {HEADING, PARAGRAPH, BULLET_LIST, ORDERED_LIST, LIST_ITEM, BLOCKQUOTE, CODE_BLOCK}
MARK_ORDER = ("bold", "italic", "underline", "strike", "link")
SECTION_LEVEL = 2

Node = dict[str, Any]


def text(value: str, marks: list[Node] | None = None) -> Node:
    node: Node = {"type": TEXT, "text": value}
    if marks:
        node["marks"] = [dict(mark) for mark in marks]
    return node


def mark(kind: str, **attrs: Any) -> Node:
    if attrs:
        return {"type": kind, "attrs": attrs}
    return {"type": kind}


def heading(level: int, children: list[Node], section_id: str | None = None) -> Node:
    attrs: dict[str, Any] = {"level": level}
    if section_id:
        attrs["id"] = section_id
    return {"type": HEADING, "attrs": attrs, "content": children}


def paragraph(children: list[Node]) -> Node:
    return {"type": PARAGRAPH, "content": children}


def list_item(children: list[Node]) -> Node:
    return {"type": LIST_ITEM, "content": [paragraph(children)]}


def bullet_list(items: list[Node]) -> Node:
    return {"type": BULLET_LIST, "content": items}


def ordered_list(items: list[Node]) -> Node:
    return {"type": ORDERED_LIST, "content": items}


def blockquote(children: list[Node]) -> Node:
    return {"type": BLOCKQUOTE, "content": children}


def code_block(value: str) -> Node:
    return {"type": CODE_BLOCK, "content": [text(value)] if value else []}


def hard_break() -> Node:
    return {"type": HARD_BREAK}


def document(children: list[Node]) -> Node:
    return {"type": DOC, "content": children}


def node_type(node: Any) -> str:
    if not isinstance(node, dict):
        return ""
    value = node.get("type")
    return value if isinstance(value, str) else ""


def children_of(node: Any) -> list[Node]:
    if not isinstance(node, dict):
        return []
    content = node.get("content")
    if not isinstance(content, list):
        return []
    return [child for child in content if isinstance(child, dict)]


def attrs_of(node: Any) -> dict[str, Any]:
    if not isinstance(node, dict):
        return {}
    attrs = node.get("attrs")
    return attrs if isinstance(attrs, dict) else {}


def heading_level(node: Any) -> int:
    level = attrs_of(node).get("level", SECTION_LEVEL)
    try:
        level = int(level)
    except (TypeError, ValueError):
        return SECTION_LEVEL
    return min(max(level, 1), 6)


def is_heading(node: Any, max_level: int | None = None) -> bool:
    if node_type(node) != HEADING:
        return False
    return max_level is None or heading_level(node) <= max_level


def is_section_heading(node: Any) -> bool:
    return node_type(node) == HEADING and heading_level(node) == SECTION_LEVEL


def plain_text(node: Any) -> str:
    """Concatenated text content of a node, ignoring marks."""
    kind = node_type(node)
    if kind == TEXT:
        value = node.get("text")
        return value if isinstance(value, str) else ""
    if kind == HARD_BREAK:
        return "\n"
    return "".join(plain_text(child) for child in children_of(node))


def top_level_blocks(tree: Any) -> list[Node]:
    if node_type(tree) not in ROOT_TYPES:
        return []
    return children_of(tree)

