"""Display markup -> canonical tree, for edits coming back from the editor."""

from __future__ import annotations

import re

from bs4 import BeautifulSoup, Comment, NavigableString, Tag

from lexdraft.documents import tree as t
from lexdraft.documents.tree import Node

_MARK_TAGS = {
    "strong": "bold",
    "b": "bold",
    "em": "italic",
    "i": "italic",
    "u": "underline",
    "s": "strike",
    "strike": "strike",
    "del": "strike",
}
_HEADINGS = {f"h{level}": level for level in range(1, 7)}
_BLOCK_NAMES = {"p", "ul", "ol", "li", "blockquote", "pre", "div", "section", "article", *_HEADINGS}


def _inline(element: Tag | NavigableString, marks: list[Node]) -> list[Node]:
    if isinstance(element, Comment):
        return []
    if isinstance(element, NavigableString):
        value = re.sub(r"\s+", " ", str(element))
        return [t.text(value, marks)] if value else []

    name = element.name or ""
    if name == "br":
        return [t.hard_break()]
    if name in _MARK_TAGS:
        marks = marks + [t.mark(_MARK_TAGS[name])]
    elif name == "a":
        href = element.get("href")
        if isinstance(href, str) and href:
            marks = marks + [t.mark("link", href=href)]

    nodes: list[Node] = []
    for child in element.children:
        nodes.extend(_inline(child, marks))
    return nodes


def _trim(nodes: list[Node]) -> list[Node]:
    texts = [node for node in nodes if t.node_type(node) == t.TEXT]
    if texts:
        texts[0]["text"] = texts[0]["text"].lstrip()
        texts[-1]["text"] = texts[-1]["text"].rstrip()
    return [node for node in nodes if t.node_type(node) != t.TEXT or node["text"]]


def _list_items(element: Tag) -> list[Node]:
    items: list[Node] = []
    for child in element.children:
        if isinstance(child, Tag) and child.name == "li":
            blocks = _blocks(child)
            if blocks:
                items.append({"type": t.LIST_ITEM, "content": blocks})
    return items


def _block(element: Tag) -> list[Node]:
    name = element.name or ""
    if name in _HEADINGS:
        children = _trim(_inline(element, []))
        if not children:
            return []
        section_id = element.get("id")
        return [t.heading(_HEADINGS[name], children, section_id if isinstance(section_id, str) else None)]
    if name == "p":
        children = _trim(_inline(element, []))
        return [t.paragraph(children)] if children else []
    if name in ("ul", "ol"):
        items = _list_items(element)
        if not items:
            return []
        return [t.bullet_list(items) if name == "ul" else t.ordered_list(items)]
    if name == "blockquote":
        children = _blocks(element)
        return [t.blockquote(children)] if children else []
    if name == "pre":
        code = element.get_text()
        return [t.code_block(code)] if code.strip() else []
    return _blocks(element)


def _blocks(element: Tag | BeautifulSoup) -> list[Node]:
    nodes: list[Node] = []
    pending: list[Node] = []

    def flush() -> None:
        trimmed = _trim(pending[:])
        if trimmed:
            nodes.append(t.paragraph(trimmed))
        pending.clear()

    for child in element.children:
        if isinstance(child, Tag) and child.name in _BLOCK_NAMES:
            flush()
            nodes.extend(_block(child))
        elif isinstance(child, (Tag, NavigableString)):
            pending.extend(_inline(child, []))
    flush()
    return nodes


def markup_to_tree(markup: str) -> Node:
    soup = BeautifulSoup(markup or "", "html.parser")
    return t.document(_blocks(soup))
