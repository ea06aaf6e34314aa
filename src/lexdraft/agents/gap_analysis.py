from __future__ import annotations

import logging

from lexdraft.agents.extraction import extract_structured
from lexdraft.agents.research import AgentModel, ResearchLoop
from lexdraft.agents.tools import build_assessment_tools
from lexdraft.config import Settings, get_settings
from lexdraft.core.scoring import CRITERION_LABELS, CRITERION_SLUGS, normalize_slug
from lexdraft.db.models import GapAnalysis
from lexdraft.db.repositories import Repository
from lexdraft.llm import prompts
from lexdraft.retrieval.service import EvidenceRetriever
from lexdraft.types import GapAnalysisOutput

logger = logging.getLogger(__name__)


class GapAnalyzer:
    """Appends a new gap-analysis snapshot per run; the newest one is what drafting tools read."""

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

    async def analyze(self, client_id: str) -> GapAnalysis:
        client = self.repo.require_client(client_id)
        tools = build_assessment_tools(self.repo, client_id, self.retriever, self.settings)
        research = await ResearchLoop(self.model, step_budget=self.settings.step_budget_gap_analysis).run(
            system=prompts.GAP_ANALYSIS_SYSTEM,
            prompt=prompts.GAP_ANALYSIS_TASK_PROMPT.format(
                client_name=client.full_name or "the client",
                field=client.field_of_expertise or "Not specified",
            ),
            tools=tools,
        )
        output = await extract_structured(
            self.model,
            prompt=prompts.GAP_ANALYSIS_EXTRACTION_PROMPT.format(slugs=", ".join(CRITERION_SLUGS), brief=research.brief),
            output_model=GapAnalysisOutput,
            schema_name="gap_analysis",
        )

        criteria = []
        for item in output.criteria:
            slug = normalize_slug(item.slug)
            criteria.append(
                item.model_copy(update={"slug": slug, "label": item.label or CRITERION_LABELS.get(slug, slug)}).model_dump(
                    by_alias=True
                )
            )
        gap = self.repo.create_gap_analysis(
            client_id,
            overall_strength=output.overall_strength,
            summary=output.summary,
            criteria=criteria,
            priority_actions=output.priority_actions,
        )
        logger.info("Stored gap analysis client=%s strength=%s", client_id, gap.overall_strength)
        return gap
