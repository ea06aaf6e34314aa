from __future__ import annotations

import copy
import re
from collections.abc import Iterable

from lexdraft.documents import tree as t
from lexdraft.documents.markdown import (
    markdown_to_nodes,
    normalize_markdown,
    parse_inline,
)
from lexdraft.documents.tree import Node
from lexdraft.errors import SectionNotFound
from lexdraft.types import SectionOutline

MIRROR_HEADING = re.compile(r"^##[ \t]+(.+?)[ \t]*$", re.MULTILINE)
# Anything at level 1 or 2 closes a section, matching section_bounds on the tree.
SECTION_BREAK = re.compile(r"^#{1,2}[ \t]+\S", re.MULTILINE)
FENCED_BLOCK = re.compile(r"^```.*?^```[ \t]*$", re.MULTILINE | re.DOTALL)


def slugify(value: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "_", value.strip().lower()).strip("_")
    return slug or "section"


def _unique(slug: str, seen: set[str]) -> str:
    candidate = slug
    suffix = 2
    while candidate in seen:
        candidate = f"{slug}_{suffix}"
        suffix += 1
    seen.add(candidate)
    return candidate


def extract_sections(tree: Node | None) -> list[SectionOutline]:
    """Section cache derived from the level-2 headings of a tree."""
    outlines: list[SectionOutline] = []
    seen: set[str] = set()
    for node in t.top_level_blocks(tree):
        if not t.is_section_heading(node):
            continue
        heading = t.plain_text(node).strip()
        if not heading:
            continue
        section_id = t.attrs_of(node).get("id")
        if not isinstance(section_id, str) or not section_id or section_id in seen:
            section_id = _unique(slugify(heading), seen)
        else:
            seen.add(section_id)
        outlines.append(SectionOutline(id=section_id, heading=heading))
    return outlines


def split_plain_text(mirror: str) -> tuple[str, list[tuple[str, str]]]:
    """Split a mirror into its preamble and ``(title, body)`` pairs."""
    matches = list(MIRROR_HEADING.finditer(mirror or ""))
    if not matches:
        return (mirror or "").strip(), []

    preamble = mirror[: matches[0].start()].strip()
    blocks: list[tuple[str, str]] = []
    for index, match in enumerate(matches):
        end = matches[index + 1].start() if index + 1 < len(matches) else len(mirror)
        blocks.append((match.group(1).strip(), mirror[match.end() : end].strip()))
    return preamble, blocks


def _assign_ids(titles: Iterable[str], known: Iterable[SectionOutline] | None) -> list[str]:
    available: dict[str, list[str]] = {}
    for outline in known or []:
        available.setdefault(outline.heading, []).append(outline.id)

    seen: set[str] = set()
    ids: list[str] = []
    for title in titles:
        reuse = available.get(title) or []
        while reuse and reuse[0] in seen:
            reuse.pop(0)
        if reuse:
            section_id = reuse.pop(0)
            seen.add(section_id)
        else:
            section_id = _unique(slugify(title), seen)
        ids.append(section_id)
    return ids


def sections_from_plain_text(
    mirror: str,
    known: Iterable[SectionOutline] | None = None,
) -> list[SectionOutline]:
    _, blocks = split_plain_text(mirror)
    titles = [title for title, _ in blocks]
    return [SectionOutline(id=section_id, heading=title) for section_id, title in zip(_assign_ids(titles, known), titles)]


def plain_text_to_tree(mirror: str, known: Iterable[SectionOutline] | None = None) -> Node:
    """Parse a ``## Title`` mirror back into a canonical tree.

    Ids of ``known`` sections are reused when their heading text still matches.
    """
    preamble, blocks = split_plain_text(mirror)
    content: list[Node] = markdown_to_nodes(preamble) if preamble else []
    ids = _assign_ids([title for title, _ in blocks], known)
    for section_id, (title, body) in zip(ids, blocks):
        content.append(t.heading(t.SECTION_LEVEL, parse_inline(title) or [t.text(title)], section_id))
        content.extend(markdown_to_nodes(body))
    return t.document(content)


def find_section_heading(tree: Node | None, section_id: str) -> int | None:
    for index, node in enumerate(t.top_level_blocks(tree)):
        if t.is_section_heading(node) and t.attrs_of(node).get("id") == section_id:
            return index
    return None


def section_bounds(tree: Node | None, section_id: str) -> tuple[int, int] | None:
    """``(heading_index, end_index)`` for a section; end is exclusive."""
    blocks = t.top_level_blocks(tree)
    start = find_section_heading(tree, section_id)
    if start is None:
        return None
    end = start + 1
    while end < len(blocks) and not t.is_heading(blocks[end], max_level=t.SECTION_LEVEL):
        end += 1
    return start, end


def section_body(tree: Node | None, section_id: str) -> list[Node]:
    bounds = section_bounds(tree, section_id)
    if bounds is None:
        raise SectionNotFound(section_id)
    blocks = t.top_level_blocks(tree)
    return blocks[bounds[0] + 1 : bounds[1]]


def replace_section_in_tree(tree: Node, section_id: str, new_nodes: list[Node]) -> Node:
    """Return a copy of ``tree`` with one section's body swapped out.

    The heading node and every block outside the section are carried over unchanged.
    """
    bounds = section_bounds(tree, section_id)
    if bounds is None:
        raise SectionNotFound(section_id)
    start, end = bounds
    blocks = t.top_level_blocks(tree)
    updated = copy.deepcopy(tree)
    updated["content"] = [
        *copy.deepcopy(blocks[: start + 1]),
        *copy.deepcopy(new_nodes),
        *copy.deepcopy(blocks[end:]),
    ]
    return updated


def replace_section_in_plain_text(
    mirror: str,
    heading: str,
    markdown: str,
    *,
    occurrence: int = 0,
) -> str | None:
    """Swap the body under ``## <heading>`` up to the next ``#`` or ``##`` heading or the end.

    Text outside that span is returned byte-identical. ``None`` when the heading
    is not present. Heading-like lines inside fenced code are ignored.
    """
    mirror = mirror or ""
    fenced = [block.span() for block in FENCED_BLOCK.finditer(mirror)]

    def in_code(position: int) -> bool:
        return any(start <= position < end for start, end in fenced)

    matches = [
        match
        for match in MIRROR_HEADING.finditer(mirror)
        if match.group(1).strip() == heading.strip() and not in_code(match.start())
    ]
    if occurrence >= len(matches):
        return None

    match = matches[occurrence]
    following = next(
        (candidate for candidate in SECTION_BREAK.finditer(mirror, match.end()) if not in_code(candidate.start())),
        None,
    )
    body = normalize_markdown(markdown)
    if following is None:
        return f"{mirror[: match.end()]}\n\n{body}" if body else mirror[: match.end()]
    separator = "\n\n" if body else ""
    return f"{mirror[: match.end()]}\n\n{body}{separator}{mirror[following.start():]}"


def heading_occurrence(sections: list[SectionOutline], section_id: str) -> int:
    """How many earlier sections share the target's heading text."""
    for index, outline in enumerate(sections):
        if outline.id == section_id:
            return sum(1 for other in sections[:index] if other.heading == outline.heading)
    raise SectionNotFound(section_id)


def assign_section_ids(tree: Node) -> Node:
    """Copy of ``tree`` whose level-2 headings all carry the ids ``extract_sections`` reports."""
    updated = copy.deepcopy(tree)
    outlines = iter(extract_sections(updated))
    for node in t.top_level_blocks(updated):
        if t.is_section_heading(node) and t.plain_text(node).strip():
            node["attrs"] = {**t.attrs_of(node), "id": next(outlines).id}
    return updated
