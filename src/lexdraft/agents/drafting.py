from __future__ import annotations

import logging
import re
from dataclasses import dataclass

from lexdraft.agents.extraction import extract_structured
from lexdraft.agents.research import AgentModel, ResearchLoop
from lexdraft.agents.tools import build_drafting_tools
from lexdraft.config import Settings, get_settings
from lexdraft.db.repositories import Repository
from lexdraft.documents.markdown import sections_to_tree, tree_to_plain_text
from lexdraft.documents.sections import extract_sections
from lexdraft.llm import prompts
from lexdraft.retrieval.service import EvidenceRetriever
from lexdraft.types import DraftSections, GeneratedDocument, RegeneratedSection, Section

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class DocumentKind:
    document_type: str
    label: str
    system_prompt: str
    budget_tier: str
    requires_recommender: bool = False

    def step_budget(self, settings: Settings) -> int:
        return {
            "simple": settings.step_budget_simple,
            "standard": settings.step_budget_standard,
            "evidentiary": settings.step_budget_evidentiary,
        }[self.budget_tier]


CATALOGUE: dict[str, DocumentKind] = {
    kind.document_type: kind
    for kind in (
        DocumentKind("petition_letter", "I-140 petition letter", prompts.PETITION_LETTER_SYSTEM, "evidentiary"),
        DocumentKind("personal_statement", "personal statement", prompts.PERSONAL_STATEMENT_SYSTEM, "simple"),
        DocumentKind(
            "recommendation_letter",
            "recommendation letter",
            prompts.RECOMMENDATION_LETTER_SYSTEM,
            "standard",
            requires_recommender=True,
        ),
        DocumentKind("exhibit_list", "exhibit list", prompts.EXHIBIT_LIST_SYSTEM, "standard"),
        DocumentKind("table_of_contents", "table of contents", prompts.TABLE_OF_CONTENTS_SYSTEM, "simple"),
        DocumentKind("rfe_response", "RFE response", prompts.RFE_RESPONSE_SYSTEM, "evidentiary"),
    )
}

_TOP_HEADING = re.compile(r"^#{1,2}[ \t]+", re.MULTILINE)


def get_kind(document_type: str) -> DocumentKind:
    kind = CATALOGUE.get(document_type)
    if kind is None:
        raise ValueError(f"unknown document type '{document_type}'")
    return kind


def build_document(sections: list[Section]) -> GeneratedDocument:
    """Sections -> canonical tree, with the mirror and section cache derived from that tree."""
    cleaned = [section.model_copy(update={"content": clean_section_markdown(section.content, section.title)}) for section in sections]
    tree = sections_to_tree(cleaned)
    return GeneratedDocument(tree=tree, sections=extract_sections(tree), plain_text=tree_to_plain_text(tree))


def clean_section_markdown(content: str, title: str) -> str:
    """Drop a repeated section heading and demote stray top-level headings to ``###``."""
    text = content.strip()
    first_line, _, rest = text.partition("\n")
    if first_line.lstrip("#").strip() == title.strip() and first_line.startswith("#"):
        text = rest.strip()
    return _TOP_HEADING.sub("### ", text)


class DocumentDrafter:
    """Runs research then extraction for one document type or one section of it."""

    def __init__(
        self,
        repo: Repository,
        model: AgentModel,
        retriever: EvidenceRetriever,
        settings: Settings | None = None,
    ):
        self.repo = repo
        self.model = model
        self.retriever = retriever
        self.settings = settings or get_settings()

    async def generate(
        self,
        client_id: str,
        document_type: str,
        recommender_id: str | None = None,
    ) -> GeneratedDocument:
        kind = get_kind(document_type)
        if kind.requires_recommender and not recommender_id:
            raise ValueError(f"{document_type} requires a recommender")

        client = self.repo.require_client(client_id)
        name = client.full_name or "the client"
        field = client.field_of_expertise or "Not specified"
        recommender_line = ""
        if recommender_id:
            recommender_line = f"The letter is written by recommender {recommender_id}; call get_recommender with that ID first.\n"

        tools = build_drafting_tools(self.repo, client_id, self.retriever, self.settings)
        research = await ResearchLoop(self.model, step_budget=kind.step_budget(self.settings)).run(
            system=kind.system_prompt,
            prompt=prompts.RESEARCH_TASK_PROMPT.format(
                label=kind.label,
                client_name=name,
                field=field,
                recommender_line=recommender_line,
            ),
            tools=tools,
        )
        logger.info(
            "Drafting research done type=%s client=%s steps=%s completed=%s",
            document_type,
            client_id,
            research.steps,
            research.completed,
        )

        result = await extract_structured(
            self.model,
            prompt=prompts.SECTIONS_EXTRACTION_PROMPT.format(
                label=kind.label,
                markup_rules=prompts.MARKUP_RULES,
                client_name=name,
                field=field,
                brief=research.brief,
            ),
            output_model=DraftSections,
            schema_name="draft_sections",
        )
        return build_document(result.sections)

    async def regenerate_section(
        self,
        *,
        client_id: str,
        document_type: str,
        title: str,
        mirror: str,
        section_id: str,
        section_title: str,
        instruction: str | None = None,
    ) -> str:
        """New markdown body for one section; the heading itself is not included."""
        kind = get_kind(document_type)
        instruction_block = f"\n## User Instruction\n{instruction.strip()}\n" if instruction and instruction.strip() else ""
        tools = build_drafting_tools(self.repo, client_id, self.retriever, self.settings)
        research = await ResearchLoop(self.model, step_budget=self.settings.step_budget_section).run(
            system=kind.system_prompt,
            prompt=prompts.SECTION_REGENERATION_PROMPT.format(
                label=kind.label,
                title=title or kind.label,
                mirror=mirror or "(no existing text)",
                section_id=section_id,
                section_title=section_title,
                instruction_block=instruction_block,
            ),
            tools=tools,
        )
        result = await extract_structured(
            self.model,
            prompt=prompts.SECTION_EXTRACTION_PROMPT.format(
                section_title=section_title,
                markup_rules=prompts.MARKUP_RULES,
                brief=research.brief,
            ),
            output_model=RegeneratedSection,
            schema_name="regenerated_section",
        )
        return clean_section_markdown(result.content, section_title)
