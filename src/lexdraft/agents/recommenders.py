from __future__ import annotations

import logging

from lexdraft.agents.extraction import extract_structured
from lexdraft.agents.research import AgentModel, ResearchLoop
from lexdraft.agents.tools import build_drafting_tools
from lexdraft.config import Settings, get_settings
from lexdraft.core.scoring import CRITERION_SLUGS, normalize_slug
from lexdraft.db.models import Recommender
from lexdraft.db.repositories import Repository
from lexdraft.llm import prompts
from lexdraft.retrieval.service import EvidenceRetriever
from lexdraft.types import RecommenderSuggestion, RecommenderSuggestions

logger = logging.getLogger(__name__)


def suggestion_notes(suggestion: RecommenderSuggestion) -> str:
    parts = []
    if suggestion.ideal_qualifications:
        parts.append(f"Ideal qualifications: {suggestion.ideal_qualifications}")
    if suggestion.sample_talking_points:
        points = "\n".join(f"- {point}" for point in suggestion.sample_talking_points)
        parts.append(f"Sample talking points:\n{points}")
    return "\n\n".join(parts)


def relevant_criteria(values: list[str]) -> list[str]:
    slugs: list[str] = []
    for value in values:
        slug = normalize_slug(value)
        if slug and slug not in slugs:
            slugs.append(slug)
    return slugs


class RecommenderSuggester:
    """Suggests recommender role types and stores each as a ``suggested`` recommender."""

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

    async def suggest(self, client_id: str) -> list[Recommender]:
        client = self.repo.require_client(client_id)
        existing = [f"{row.name} ({row.status})" for row in self.repo.list_recommenders(client_id)]
        tools = build_drafting_tools(self.repo, client_id, self.retriever, self.settings)
        research = await ResearchLoop(self.model, step_budget=self.settings.step_budget_recommender).run(
            system=prompts.RECOMMENDER_SYSTEM,
            prompt=prompts.RECOMMENDER_TASK_PROMPT.format(
                client_name=client.full_name or "the client",
                field=client.field_of_expertise or "Not specified",
                existing=", ".join(existing) or "none",
            ),
            tools=tools,
        )
        output = await extract_structured(
            self.model,
            prompt=prompts.RECOMMENDER_EXTRACTION_PROMPT.format(slugs=", ".join(CRITERION_SLUGS), brief=research.brief),
            output_model=RecommenderSuggestions,
            schema_name="recommender_suggestions",
        )

        created = [
            self.repo.create_recommender(
                client_id,
                name=suggestion.role_type,
                status="suggested",
                source_type="ai_suggested",
                ai_reasoning=suggestion.reasoning,
                criteria_relevance_json=relevant_criteria(suggestion.criteria_relevance),
                notes=suggestion_notes(suggestion),
            )
            for suggestion in output.suggestions
        ]
        logger.info("Stored recommender suggestions client=%s count=%s", client_id, len(created))
        return created
