"""Draft lifecycle: generation, section regeneration, manual edits and versions.

The manager owns every write to a draft's content fields. Callers submit a
request (generate, regenerate, edit, restore) and get the new draft state back
instead of mutating a shared copy.
"""

from __future__ import annotations

import logging
from typing import Any

from lexdraft.agents.drafting import DocumentDrafter, get_kind
from lexdraft.config import Settings, get_settings
from lexdraft.db.models import Draft, DraftVersion
from lexdraft.db.repositories import Repository
from lexdraft.documents import tree as t
from lexdraft.documents.html import markup_to_tree
from lexdraft.documents.markdown import inline_to_markdown, markdown_to_nodes, tree_to_plain_text
from lexdraft.documents.render import render_markup
from lexdraft.documents.sections import (
    assign_section_ids,
    extract_sections,
    find_section_heading,
    heading_occurrence,
    plain_text_to_tree,
    replace_section_in_plain_text,
    replace_section_in_tree,
    sections_from_plain_text,
)
from lexdraft.errors import (
    AccessError,
    DraftStateError,
    GenerationInProgress,
    NotFoundError,
    PersistenceFailure,
    SectionNotFound,
    SectionRegenerationError,
)
from lexdraft.types import DraftEdit, SectionOutline

logger = logging.getLogger(__name__)

GENERATION_FAILED_MESSAGE = "Document generation failed. Please try again."
KEEP_STATUS_AFTER_GENERATION = {"in_review", "final"}


def _outlines(draft: Draft) -> list[SectionOutline]:
    return [SectionOutline.model_validate(row) for row in draft.sections_json or []]


def _sections_json(outlines: list[SectionOutline]) -> list[dict[str, Any]]:
    return [outline.model_dump() for outline in outlines]


def serialize_draft(draft: Draft, *, include_markup: bool = True) -> dict[str, Any]:
    payload = {
        "id": draft.id,
        "client_id": draft.client_id,
        "document_type": draft.document_type,
        "recommender_id": draft.recommender_id,
        "title": draft.title,
        "status": draft.status,
        "content": draft.content_json,
        "plain_text": draft.plain_text,
        "sections": draft.sections_json or [],
        "last_error": draft.last_error,
        "created_at": draft.created_at.isoformat(),
        "updated_at": draft.updated_at.isoformat(),
    }
    if include_markup:
        payload["markup"] = render_markup(draft.content_json)
    return payload


def serialize_version(version: DraftVersion) -> dict[str, Any]:
    return {
        "id": version.id,
        "draft_id": version.draft_id,
        "note": version.note,
        "content": version.content_json,
        "plain_text": version.plain_text,
        "sections": version.sections_json or [],
        "created_by": version.created_by,
        "created_at": version.created_at.isoformat(),
    }


class DraftLifecycleManager:
    def __init__(
        self,
        repo: Repository,
        drafter: DocumentDrafter,
        *,
        settings: Settings | None = None,
    ):
        self.repo = repo
        self.drafter = drafter
        self.settings = settings or get_settings()

    def ensure_draft(self, client_id: str, document_type: str, recommender_id: str | None = None) -> Draft:
        kind = get_kind(document_type)
        client = self.repo.require_client(client_id)
        if kind.requires_recommender:
            if not recommender_id:
                raise ValueError(f"{document_type} requires a recommender")
            recommender = self.repo.get_recommender(recommender_id)
            if recommender is None:
                raise NotFoundError(f"recommender {recommender_id} not found")
            if recommender.client_id != client_id:
                raise AccessError("Recommender does not belong to this client.")
        elif recommender_id:
            raise ValueError(f"{document_type} does not take a recommender")

        title = f"{kind.label[:1].upper()}{kind.label[1:]}"
        if client.full_name:
            title = f"{title} - {client.full_name}"
        draft, created = self.repo.get_or_create_draft(client_id, document_type, recommender_id, title=title)
        if created:
            logger.info("Created draft id=%s type=%s client=%s", draft.id, document_type, client_id)
        return draft

    def state(self, draft_id: str) -> dict[str, Any]:
        return serialize_draft(self.repo.require_draft(draft_id))

    def begin_generation(self, draft_id: str) -> Draft:
        """Claim the draft for a full generation run, or raise if one is already in flight."""
        self.repo.require_draft(draft_id)
        if not self.repo.claim_generation(draft_id):
            raise GenerationInProgress(draft_id)
        draft = self.repo.require_draft(draft_id)
        logger.info("Draft %s -> generating (was %s)", draft_id, draft.status_before_generation)
        return draft

    async def run_generation(self, draft_id: str) -> Draft:
        """Complete a generation the caller already claimed with ``begin_generation``."""
        draft = self.repo.require_draft(draft_id)
        if draft.status != "generating":
            raise DraftStateError(f"draft {draft_id} has not been claimed for generation")
        previous = draft.status_before_generation or "not_started"

        try:
            document = await self.drafter.generate(draft.client_id, draft.document_type, draft.recommender_id)
        except Exception:
            logger.exception("Generation failed draft=%s; restoring status=%s", draft_id, previous)
            self._restore_after_failure(draft_id, previous)
            raise

        next_status = previous if previous in KEEP_STATUS_AFTER_GENERATION else "draft"
        try:
            draft = self.repo.update_draft(
                draft_id,
                content_json=document.tree,
                plain_text=document.plain_text,
                sections_json=_sections_json(document.sections),
                status=next_status,
                status_before_generation=None,
                last_error="",
            )
        except PersistenceFailure:
            logger.exception("Could not store generated content draft=%s", draft_id)
            self._restore_after_failure(draft_id, previous)
            raise

        logger.info("Draft %s -> %s sections=%s", draft_id, next_status, len(document.sections))
        return draft

    async def generate(self, draft_id: str) -> Draft:
        self.begin_generation(draft_id)
        return await self.run_generation(draft_id)

    def _restore_after_failure(self, draft_id: str, previous: str) -> None:
        try:
            self.repo.update_draft(
                draft_id,
                status=previous,
                status_before_generation=None,
                last_error=GENERATION_FAILED_MESSAGE,
            )
        except PersistenceFailure:
            logger.exception("Could not restore draft status draft=%s", draft_id)

    async def regenerate_section(self, draft_id: str, section_id: str, instruction: str | None = None) -> Draft:
        """Replace one section's body, leaving every other section untouched.

        The draft's top-level status is not changed. On failure the content is left
        as it was and ``last_error`` names the section.
        """
        draft = self.repo.require_draft(draft_id)
        if draft.status == "generating":
            raise DraftStateError(f"draft {draft_id} is generating; section regeneration is not allowed")

        outlines = _outlines(draft) or self._derive_outlines(draft)
        target = next((outline for outline in outlines if outline.id == section_id), None)
        if target is None:
            raise SectionNotFound(section_id)

        try:
            content = await self.drafter.regenerate_section(
                client_id=draft.client_id,
                document_type=draft.document_type,
                title=draft.title,
                mirror=draft.plain_text or "",
                section_id=section_id,
                section_title=target.heading,
                instruction=instruction,
            )
            if not content.strip():
                raise SectionRegenerationError(section_id, "the model returned an empty section")
        except SectionRegenerationError:
            self._record_section_failure(draft_id, section_id)
            raise
        except Exception as exc:
            self._record_section_failure(draft_id, section_id)
            raise SectionRegenerationError(section_id, str(exc)) from exc

        draft = self.repo.require_draft(draft_id)
        if draft.status == "generating":
            raise DraftStateError(f"draft {draft_id} started a full generation; section result discarded")
        tree, mirror, outlines = self._replace_section(draft, section_id, content)
        draft = self.repo.update_draft(
            draft_id,
            content_json=tree,
            plain_text=mirror,
            sections_json=_sections_json(outlines),
            last_error="",
        )
        logger.info("Regenerated section draft=%s section=%s", draft_id, section_id)
        return draft

    def _record_section_failure(self, draft_id: str, section_id: str) -> None:
        logger.exception("Section regeneration failed draft=%s section=%s", draft_id, section_id)
        self.repo.update_draft(draft_id, last_error=str(SectionRegenerationError(section_id)))

    def _derive_outlines(self, draft: Draft) -> list[SectionOutline]:
        if draft.content_json:
            return extract_sections(draft.content_json)
        return sections_from_plain_text(draft.plain_text or "")

    def _replace_section(
        self,
        draft: Draft,
        section_id: str,
        content: str,
    ) -> tuple[dict[str, Any] | None, str, list[SectionOutline]]:
        mirror = draft.plain_text or ""
        tree = draft.content_json
        if tree and find_section_heading(tree, section_id) is not None:
            updated = replace_section_in_tree(tree, section_id, markdown_to_nodes(content))
            blocks = t.top_level_blocks(tree)
            index = find_section_heading(tree, section_id)
            heading_text = inline_to_markdown(t.children_of(blocks[index])).strip()
            occurrence = sum(
                1
                for node in blocks[:index]
                if t.is_section_heading(node) and inline_to_markdown(t.children_of(node)).strip() == heading_text
            )
            new_mirror = replace_section_in_plain_text(mirror, heading_text, content, occurrence=occurrence)
            if new_mirror is None:
                new_mirror = tree_to_plain_text(updated)
            return updated, new_mirror, extract_sections(updated)

        outlines = _outlines(draft) or sections_from_plain_text(mirror)
        target = next((outline for outline in outlines if outline.id == section_id), None)
        if target is None:
            raise SectionNotFound(section_id)
        new_mirror = replace_section_in_plain_text(
            mirror,
            target.heading,
            content,
            occurrence=heading_occurrence(outlines, section_id),
        )
        if new_mirror is None:
            raise SectionNotFound(section_id)
        return tree, new_mirror, sections_from_plain_text(new_mirror, known=outlines)

    def apply_edit(self, draft_id: str, edit: DraftEdit) -> dict[str, Any]:
        """Apply a manual edit and return the resulting canonical state."""
        draft = self.repo.require_draft(draft_id)
        if draft.status == "generating":
            raise DraftStateError(f"draft {draft_id} is generating; edits are not accepted")

        values: dict[str, Any] = {}
        if edit.has_content:
            tree, mirror, outlines = self._content_from_edit(draft, edit)
            values.update(content_json=tree, plain_text=mirror, sections_json=_sections_json(outlines))
            if draft.status == "not_started" and edit.status is None:
                values["status"] = "draft"
        if edit.title is not None:
            values["title"] = edit.title
        if edit.status is not None:
            if edit.status != "not_started" and values.get("plain_text", draft.plain_text) is None:
                raise DraftStateError(f"draft {draft_id} has no content yet; it cannot be marked {edit.status}")
            values["status"] = edit.status
        if not values:
            return serialize_draft(draft)

        draft = self.repo.update_draft(draft_id, **values)
        return serialize_draft(draft)

    def _content_from_edit(
        self,
        draft: Draft,
        edit: DraftEdit,
    ) -> tuple[dict[str, Any] | None, str, list[SectionOutline]]:
        if edit.tree is not None:
            tree = assign_section_ids(edit.tree)
        elif edit.markup is not None:
            tree = assign_section_ids(markup_to_tree(edit.markup))
        elif draft.content_json:
            mirror = edit.plain_text or ""
            tree = plain_text_to_tree(mirror, known=_outlines(draft))
            return tree, mirror, extract_sections(tree)
        else:
            mirror = edit.plain_text or ""
            return None, mirror, sections_from_plain_text(mirror, known=_outlines(draft))
        return tree, tree_to_plain_text(tree), extract_sections(tree)

    def save_version(self, draft_id: str, note: str = "", created_by: str = "") -> DraftVersion:
        draft = self.repo.require_draft(draft_id)
        if draft.status == "generating":
            raise DraftStateError(f"draft {draft_id} is generating; nothing stable to snapshot")
        version = self.repo.create_version(draft, note=note, created_by=created_by)
        logger.info("Saved version id=%s draft=%s", version.id, draft_id)
        return version

    def list_versions(self, draft_id: str) -> list[DraftVersion]:
        self.repo.require_draft(draft_id)
        return self.repo.list_versions(draft_id)

    def get_version(self, draft_id: str, version_id: str) -> DraftVersion:
        version = self.repo.get_version(draft_id, version_id)
        if version is None:
            raise NotFoundError(f"version {version_id} not found for draft {draft_id}")
        return version

    def restore_version(self, draft_id: str, version_id: str) -> Draft:
        draft = self.repo.require_draft(draft_id)
        if draft.status == "generating":
            raise DraftStateError(f"draft {draft_id} is generating; restore is not allowed")
        version = self.get_version(draft_id, version_id)
        values: dict[str, Any] = {
            "content_json": version.content_json,
            "plain_text": version.plain_text,
            "sections_json": version.sections_json or [],
            "last_error": "",
        }
        if draft.status == "not_started" and version.plain_text is not None:
            values["status"] = "draft"
        elif draft.status != "not_started" and version.plain_text is None:
            # Snapshot taken before any content: an empty mirror keeps the status valid.
            values["plain_text"] = ""
        draft = self.repo.update_draft(draft_id, **values)
        logger.info("Restored version id=%s draft=%s", version_id, draft_id)
        return draft
