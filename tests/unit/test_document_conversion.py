from lexdraft.documents import tree as t
from lexdraft.documents.html import markup_to_tree
from lexdraft.documents.markdown import (
    markdown_to_nodes,
    normalize_markdown,
    parse_inline,
    sections_to_tree,
    tree_to_plain_text,
)
from lexdraft.documents.render import render_markup
from lexdraft.documents.sections import plain_text_to_tree
from lexdraft.types import Section, SectionOutline


def _sections() -> list[Section]:
    return [
        Section(id="intro", title="Introduction", content="Dr. Okafor is a **leading** researcher."),
        Section(id="criterion_awards", title="Awards", content="### NeurIPS\n\n- Outstanding Paper 2023\n- *Best Poster* 2021"),
    ]


def test_sections_become_level_two_headings_with_ids() -> None:
    tree = sections_to_tree(_sections())

    blocks = t.top_level_blocks(tree)
    assert tree["type"] == "doc"
    assert blocks[0] == {
        "type": "heading",
        "attrs": {"level": 2, "id": "intro"},
        "content": [{"type": "text", "text": "Introduction"}],
    }
    assert blocks[1]["type"] == "paragraph"
    assert blocks[1]["content"][1] == {"type": "text", "text": "leading", "marks": [{"type": "bold"}]}
    assert [t.heading_level(node) for node in blocks if t.is_heading(node)] == [2, 2, 3]
    assert blocks[-1]["type"] == "bulletList"


def test_section_bodies_cannot_open_new_sections() -> None:
    nodes = markdown_to_nodes("# Rogue\n\n## Also rogue\n\ntext")
    assert [t.heading_level(node) for node in nodes if t.is_heading(node)] == [3, 3]


def test_nested_inline_marks() -> None:
    nodes = parse_inline("**bold *and italic* too**")
    assert nodes[0] == {"type": "text", "text": "bold ", "marks": [{"type": "bold"}]}
    assert nodes[1]["marks"] == [{"type": "bold"}, {"type": "italic"}]


def test_bold_italic_text_survives_the_mirror() -> None:
    tree = t.document(
        [
            t.heading(2, [t.text("S")], "s"),
            t.paragraph([t.text("x", [t.mark("bold"), t.mark("italic")]), t.text(" and "), t.text("y", [t.mark("italic")])]),
        ]
    )

    mirror = tree_to_plain_text(tree)
    reparsed = plain_text_to_tree(mirror, known=[SectionOutline(id="s", heading="S")])

    assert mirror == "## S\n\n***x*** and *y*"
    assert reparsed == tree
    assert tree_to_plain_text(reparsed) == mirror


def test_plain_text_mirror_follows_the_tree() -> None:
    mirror = tree_to_plain_text(sections_to_tree(_sections()))
    assert mirror == (
        "## Introduction\n\n"
        "Dr. Okafor is a **leading** researcher.\n\n"
        "## Awards\n\n"
        "### NeurIPS\n\n"
        "- Outstanding Paper 2023\n"
        "- *Best Poster* 2021"
    )


def test_normalize_markdown_is_idempotent() -> None:
    body = "Some  *text*\nwrapped over lines.\n\n1) first\n2) second\n\n> quoted"
    once = normalize_markdown(body)
    assert normalize_markdown(once) == once


def test_render_escapes_text_and_applies_marks_in_order() -> None:
    node = t.text("R&D <lab>", [t.mark("bold"), t.mark("italic"), t.mark("link", href='https://x.test/?a="1"')])
    html = render_markup(t.document([t.paragraph([node])]))
    assert html == '<p><a href="https://x.test/?a=&quot;1&quot;"><em><strong>R&amp;D &lt;lab&gt;</strong></em></a></p>'


def test_render_headings_lists_and_breaks() -> None:
    tree = t.document(
        [
            t.heading(2, [t.text("Awards")], "criterion_awards"),
            t.bullet_list([t.list_item([t.text("one")]), t.list_item([t.text("two")])]),
            t.paragraph([t.text("a"), t.hard_break(), t.text("b")]),
            t.code_block("x < y"),
        ]
    )
    assert render_markup(tree) == (
        '<h2 id="criterion_awards">Awards</h2>'
        "<ul><li><p>one</p></li><li><p>two</p></li></ul>"
        "<p>a<br>b</p>"
        "<pre><code>x &lt; y</code></pre>"
    )


def test_render_never_raises_on_malformed_nodes() -> None:
    assert render_markup(None) == ""
    assert render_markup({"content": "nope"}) == ""
    assert render_markup({"type": "doc", "content": [None, 7, {"type": "paragraph"}, {"type": "text"}]}) == ""
    assert render_markup([{"type": "mystery", "content": [{"type": "text", "text": "kept"}]}]) == "kept"


def test_render_is_deterministic() -> None:
    tree = sections_to_tree(_sections())
    assert render_markup(tree) == render_markup(tree)


def test_markup_parses_back_to_the_same_tree() -> None:
    tree = sections_to_tree(_sections())
    parsed = markup_to_tree(render_markup(tree))
    assert parsed == tree
    assert render_markup(parsed) == render_markup(tree)


def test_markup_from_the_editor_keeps_ids_and_marks() -> None:
    tree = markup_to_tree(
        '<h2 id="intro">Introduction</h2>'
        "<p>Plain <strong>bold</strong> and <em>slanted</em> and <u>under</u></p>"
        "<ol><li>first</li></ol>"
        "<!-- editor note -->"
        "loose text"
    )
    blocks = t.top_level_blocks(tree)
    assert blocks[0]["attrs"] == {"level": 2, "id": "intro"}
    assert [node.get("marks") for node in blocks[1]["content"]] == [
        None,
        [{"type": "bold"}],
        None,
        [{"type": "italic"}],
        None,
        [{"type": "underline"}],
    ]
    assert blocks[2] == {"type": "orderedList", "content": [{"type": "listItem", "content": [t.paragraph([t.text("first")])]}]}
    assert blocks[3] == t.paragraph([t.text("loose text")])
