"""Canonical tree -> display markup (HTML consumed by the rich-text editor)."""

from __future__ import annotations

from typing import Any

from lexdraft.documents import tree as t

_BLOCK_TAGS = {
    t.PARAGRAPH: "p",
    t.BULLET_LIST: "ul",
    t.ORDERED_LIST: "ol",
    t.LIST_ITEM: "li",
    t.BLOCKQUOTE: "blockquote",
}


def escape_text(value: str) -> str:
    return value.replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")


def escape_attr(value: str) -> str:
    return escape_text(value).replace('"', "&quot;")


def _apply_mark(value: str, mark: Any) -> str:
    kind = t.node_type(mark)
    if kind == "bold":
        return f"<strong>{value}</strong>"
    if kind == "italic":
        return f"<em>{value}</em>"
    if kind == "underline":
        return f"<u>{value}</u>"
    if kind == "strike":
        return f"<s>{value}</s>"
    if kind == "link":
        href = t.attrs_of(mark).get("href")
        href = href if isinstance(href, str) and href else "#"
        return f'<a href="{escape_attr(href)}">{value}</a>'
    return value


def render_text(node: dict[str, Any]) -> str:
    value = node.get("text")
    if not isinstance(value, str) or not value:
        return ""
    rendered = escape_text(value)
    marks = node.get("marks")
    if isinstance(marks, list):
        for mark in marks:
            rendered = _apply_mark(rendered, mark)
    return rendered


def render_node(node: Any) -> str:
    kind = t.node_type(node)
    if not kind:
        return ""
    if kind == t.TEXT:
        return render_text(node)
    if kind == t.HARD_BREAK:
        return "<br>"

    inner = render_nodes(t.children_of(node))
    if kind in t.ROOT_TYPES:
        return inner
    if not inner:
        return ""
    if kind == t.HEADING:
        level = t.heading_level(node)
        section_id = t.attrs_of(node).get("id")
        id_attr = f' id="{escape_attr(section_id)}"' if isinstance(section_id, str) and section_id else ""
        return f"<h{level}{id_attr}>{inner}</h{level}>"
    if kind == t.CODE_BLOCK:
        return f"<pre><code>{inner}</code></pre>"
    tag = _BLOCK_TAGS.get(kind)
    if tag is None:
        return inner
    return f"<{tag}>{inner}</{tag}>"


def render_nodes(nodes: list[Any]) -> str:
    return "".join(render_node(node) for node in nodes)


def render_markup(tree: Any) -> str:
    """Depth-first render. Never raises: malformed or empty nodes render as nothing."""
    if tree is None:
        return ""
    if isinstance(tree, list):
        return render_nodes(tree)
    return render_node(tree)
