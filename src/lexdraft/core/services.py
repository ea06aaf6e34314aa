"""Wiring for the long-running operations exposed to the API and CLI.

Each ``run_*`` coroutine opens its own database session so it can run after the
request that scheduled it has returned.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass

from sqlalchemy.orm import Session

from lexdraft.agents.drafting import DocumentDrafter
from lexdraft.agents.evaluator import EligibilityEvaluator
from lexdraft.agents.gap_analysis import GapAnalyzer
from lexdraft.agents.recommenders import RecommenderSuggester
from lexdraft.agents.research import AgentModel
from lexdraft.config import Settings, get_settings
from lexdraft.core.lifecycle import DraftLifecycleManager
from lexdraft.db.repositories import Repository
from lexdraft.db.session import session_scope
from lexdraft.errors import LexdraftError
from lexdraft.llm.router import LLMRouter
from lexdraft.retrieval.service import EvidenceRetriever, build_retriever

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class CaseServices:
    repo: Repository
    lifecycle: DraftLifecycleManager
    evaluator: EligibilityEvaluator
    suggester: RecommenderSuggester
    gap_analyzer: GapAnalyzer


def build_services(
    session: Session,
    *,
    settings: Settings | None = None,
    model: AgentModel | None = None,
    retriever: EvidenceRetriever | None = None,
) -> CaseServices:
    settings = settings or get_settings()
    model = model or LLMRouter(settings)
    retriever = retriever or build_retriever(settings)
    repo = Repository(session)
    drafter = DocumentDrafter(repo, model, retriever, settings)
    return CaseServices(
        repo=repo,
        lifecycle=DraftLifecycleManager(repo, drafter, settings=settings),
        evaluator=EligibilityEvaluator(repo, model, retriever, settings),
        suggester=RecommenderSuggester(repo, model, retriever, settings),
        gap_analyzer=GapAnalyzer(repo, model, retriever, settings),
    )


@contextmanager
def service_scope(**kwargs) -> Iterator[CaseServices]:
    with session_scope() as session:
        yield build_services(session, **kwargs)


async def run_generation(draft_id: str, **kwargs) -> None:
    """Finish a generation already claimed by the caller."""
    with service_scope(**kwargs) as services:
        try:
            await services.lifecycle.run_generation(draft_id)
        except LexdraftError as exc:
            logger.warning("Background generation ended with error draft=%s error=%s", draft_id, exc)


async def run_section_regeneration(draft_id: str, section_id: str, instruction: str | None = None, **kwargs) -> None:
    with service_scope(**kwargs) as services:
        try:
            await services.lifecycle.regenerate_section(draft_id, section_id, instruction)
        except LexdraftError as exc:
            logger.warning("Background regeneration ended with error draft=%s error=%s", draft_id, exc)


async def run_evaluation(client_id: str, previous_status: str | None = None, **kwargs) -> None:
    """Finish an evaluation; ``previous_status`` comes from a caller that already ran ``begin``."""
    with service_scope(**kwargs) as services:
        try:
            await services.evaluator.evaluate(client_id, previous_status)
        except LexdraftError as exc:
            logger.warning("Background evaluation ended with error client=%s error=%s", client_id, exc)


async def run_recommender_suggestions(client_id: str, **kwargs) -> None:
    with service_scope(**kwargs) as services:
        try:
            await services.suggester.suggest(client_id)
        except LexdraftError as exc:
            logger.warning("Background suggestion run ended with error client=%s error=%s", client_id, exc)


async def run_gap_analysis(client_id: str, **kwargs) -> None:
    with service_scope(**kwargs) as services:
        try:
            await services.gap_analyzer.analyze(client_id)
        except LexdraftError as exc:
            logger.warning("Background gap analysis ended with error client=%s error=%s", client_id, exc)
