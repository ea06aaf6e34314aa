"""EB-1A eligibility evaluation: research, extraction, then a deterministic verdict."""

from __future__ import annotations

import logging

from lexdraft.agents.extraction import extract_structured
from lexdraft.agents.research import AgentModel, ResearchLoop
from lexdraft.agents.tools import build_assessment_tools
from lexdraft.config import Settings, get_settings
from lexdraft.core.scoring import CRITERION_LABELS, CRITERION_SLUGS, normalize_slug, verdict_for_criteria
from lexdraft.db.models import EligibilityReport
from lexdraft.db.repositories import Repository
from lexdraft.errors import EvaluationInProgress, ExtractionFailure, PersistenceFailure
from lexdraft.llm import prompts
from lexdraft.retrieval.service import EvidenceRetriever
from lexdraft.types import CriterionScore, EvaluationOutput

logger = logging.getLogger(__name__)


def criteria_by_slug(output: EvaluationOutput) -> dict[str, CriterionScore]:
    """Index the model's criteria by canonical slug; each of the ten must appear exactly once."""
    indexed: dict[str, CriterionScore] = {}
    for item in output.criteria:
        slug = normalize_slug(item.slug)
        if slug not in CRITERION_LABELS:
            raise ExtractionFailure(f"unknown criterion '{item.slug}' in evaluation output")
        if slug in indexed:
            raise ExtractionFailure(f"criterion '{slug}' appears more than once in evaluation output")
        indexed[slug] = item.model_copy(update={"slug": slug, "label": item.label or CRITERION_LABELS[slug]})
    missing = [slug for slug in CRITERION_SLUGS if slug not in indexed]
    if missing:
        raise ExtractionFailure(f"evaluation output is missing criteria: {', '.join(missing)}")
    return indexed


class EligibilityEvaluator:
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

    def begin(self, client_id: str) -> str:
        """Put the client under review and return the status to restore on failure."""
        self.repo.require_client(client_id)
        previous_status = self.repo.claim_review(client_id)
        if previous_status is None:
            raise EvaluationInProgress(client_id)
        logger.info("Evaluation started client=%s previous_status=%s", client_id, previous_status)
        return previous_status

    async def evaluate(self, client_id: str, previous_status: str | None = None) -> EligibilityReport:
        """Run a full evaluation. Pass ``previous_status`` when ``begin`` was already called."""
        if previous_status is None:
            previous_status = self.begin(client_id)

        try:
            report = await self._run(client_id)
        except Exception:
            logger.exception("Evaluation failed client=%s; restoring status=%s", client_id, previous_status)
            try:
                self.repo.update_client_status(client_id, previous_status)
            except PersistenceFailure:
                logger.exception("Could not restore client status client=%s", client_id)
            raise

        self.repo.update_client_status(client_id, "reviewed")
        logger.info("Evaluation finished client=%s verdict=%s", client_id, report.verdict)
        return report

    async def _run(self, client_id: str) -> EligibilityReport:
        client = self.repo.require_client(client_id)
        tools = build_assessment_tools(self.repo, client_id, self.retriever, self.settings)
        research = await ResearchLoop(self.model, step_budget=self.settings.step_budget_evaluator).run(
            system=prompts.EVALUATOR_SYSTEM,
            prompt=prompts.EVALUATOR_TASK_PROMPT.format(
                client_name=client.full_name or "the client",
                field=client.field_of_expertise or "Not specified",
            ),
            tools=tools,
        )
        output = await extract_structured(
            self.model,
            prompt=prompts.EVALUATION_EXTRACTION_PROMPT.format(slugs=", ".join(CRITERION_SLUGS), brief=research.brief),
            output_model=EvaluationOutput,
            schema_name="eligibility_evaluation",
        )
        indexed = criteria_by_slug(output)
        verdict = verdict_for_criteria({slug: item.score for slug, item in indexed.items()})
        return self.repo.upsert_eligibility_report(
            client_id,
            verdict=verdict,
            summary=output.summary,
            criteria=[indexed[slug].model_dump() for slug in CRITERION_SLUGS],
            raw_output=research.brief,
        )
