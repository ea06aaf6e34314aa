import copy

import pytest

from lexdraft.documents import tree as t
from lexdraft.documents.markdown import markdown_to_nodes, sections_to_tree, tree_to_plain_text
from lexdraft.documents.render import render_markup
from lexdraft.documents.sections import (
    assign_section_ids,
    extract_sections,
    heading_occurrence,
    plain_text_to_tree,
    replace_section_in_plain_text,
    replace_section_in_tree,
    section_body,
    sections_from_plain_text,
)
from lexdraft.errors import SectionNotFound
from lexdraft.types import Section, SectionOutline


def _tree():
    return sections_to_tree(
        [
            Section(id="intro", title="Introduction", content="Opening paragraph."),
            Section(id="criterion_awards", title="Awards", content="### Prizes\n\nOld awards text."),
            Section(id="conclusion", title="Conclusion", content="Closing paragraph."),
        ]
    )


def test_extract_sections_reads_ids_and_headings() -> None:
    assert extract_sections(_tree()) == [
        SectionOutline(id="intro", heading="Introduction"),
        SectionOutline(id="criterion_awards", heading="Awards"),
        SectionOutline(id="conclusion", heading="Conclusion"),
    ]


def test_extract_sections_slugifies_missing_and_duplicate_ids() -> None:
    tree = t.document(
        [
            t.heading(2, [t.text("Original Contribution")]),
            t.heading(2, [t.text("Original Contribution")]),
            t.heading(2, [t.text("Press")], "press"),
            t.heading(2, [t.text("Press Again")], "press"),
            t.heading(2, []),
        ]
    )
    assert [outline.id for outline in extract_sections(tree)] == [
        "original_contribution",
        "original_contribution_2",
        "press",
        "press_again",
    ]


def test_replacing_a_section_leaves_the_others_untouched() -> None:
    tree = _tree()
    before = copy.deepcopy(tree)

    updated = replace_section_in_tree(tree, "criterion_awards", markdown_to_nodes("New **awards** text."))

    assert tree == before
    assert extract_sections(updated) == extract_sections(tree)
    assert section_body(updated, "intro") == section_body(tree, "intro")
    assert section_body(updated, "conclusion") == section_body(tree, "conclusion")
    assert t.plain_text(t.document(section_body(updated, "criterion_awards"))) == "New awards text."


def test_replace_unknown_section_raises() -> None:
    with pytest.raises(SectionNotFound):
        replace_section_in_tree(_tree(), "nope", [])
    with pytest.raises(SectionNotFound):
        section_body(_tree(), "nope")


def test_last_section_runs_to_the_end_of_the_document() -> None:
    updated = replace_section_in_tree(_tree(), "conclusion", markdown_to_nodes("One.\n\nTwo."))
    assert [t.plain_text(node) for node in section_body(updated, "conclusion")] == ["One.", "Two."]


def test_mirror_replace_keeps_surrounding_text_byte_identical() -> None:
    mirror = tree_to_plain_text(_tree())
    updated = replace_section_in_plain_text(mirror, "Awards", "Fresh *awards* text.")

    head, _, rest = mirror.partition("## Awards")
    tail = rest[rest.index("## Conclusion") :]
    assert updated == f"{head}## Awards\n\nFresh *awards* text.\n\n{tail}"


def test_mirror_replace_targets_the_requested_occurrence() -> None:
    mirror = "## Notes\n\nfirst\n\n## Notes\n\nsecond"
    assert replace_section_in_plain_text(mirror, "Notes", "changed", occurrence=1) == "## Notes\n\nfirst\n\n## Notes\n\nchanged"
    assert replace_section_in_plain_text(mirror, "Notes", "changed", occurrence=2) is None
    assert replace_section_in_plain_text(mirror, "Missing", "changed") is None


def test_mirror_replace_stops_at_a_level_one_heading_but_not_inside_code() -> None:
    mirror = "## Setup\n\n```\n# not a heading\n## nor this\n```\n\n# Appendix\n\nkeep me"

    updated = replace_section_in_plain_text(mirror, "Setup", "Short.")

    assert updated == "## Setup\n\nShort.\n\n# Appendix\n\nkeep me"
    assert replace_section_in_plain_text(mirror, "nor this", "x") is None


def test_heading_occurrence_counts_earlier_duplicates() -> None:
    outlines = [
        SectionOutline(id="notes", heading="Notes"),
        SectionOutline(id="notes_2", heading="Notes"),
    ]
    assert heading_occurrence(outlines, "notes_2") == 1
    with pytest.raises(SectionNotFound):
        heading_occurrence(outlines, "other")


def test_plain_text_to_tree_reuses_known_ids() -> None:
    mirror = "Preamble line.\n\n## Awards\n\nBody.\n\n## New Part\n\nMore."
    tree = plain_text_to_tree(mirror, known=[SectionOutline(id="criterion_awards", heading="Awards")])

    assert [outline.id for outline in extract_sections(tree)] == ["criterion_awards", "new_part"]
    assert t.top_level_blocks(tree)[0] == t.paragraph([t.text("Preamble line.")])
    assert tree_to_plain_text(tree) == mirror


def test_sections_from_plain_text_without_headings() -> None:
    assert sections_from_plain_text("just text") == []


def test_assign_section_ids_writes_derived_ids_into_headings() -> None:
    tree = t.document([t.heading(2, [t.text("Awards")]), t.paragraph([t.text("x")]), t.heading(2, [t.text("Awards")])])
    with_ids = assign_section_ids(tree)

    assert "id" not in tree["content"][0]["attrs"]
    assert render_markup(with_ids).startswith('<h2 id="awards">Awards</h2>')
    assert with_ids["content"][2]["attrs"]["id"] == "awards_2"
    assert extract_sections(with_ids) == extract_sections(tree)
