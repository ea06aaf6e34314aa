import asyncio
import json

from lexdraft.agents.tools import build_drafting_tools
from lexdraft.config import Settings
from lexdraft.core.autosave import Autosaver
from lexdraft.core.polling import wait_for_generation
from lexdraft.core.scoring import CRITERION_SLUGS
from lexdraft.core.services import build_services
from lexdraft.types import DraftEdit


def _criteria(**scores: int) -> list[dict]:
    return [{"slug": slug, "score": scores.get(slug, 1), "analysis": ""} for slug in CRITERION_SLUGS]


def test_case_from_evaluation_to_versioned_petition(
    db, repo, sample_client, scripted_model, static_retriever, make_tool_turn, evidence_chunks, three_sections
) -> None:
    model = scripted_model(
        steps=[
            make_tool_turn(("get_intake_data", {}), ("search_evidence", {"query": "awards and publications"})),
        ],
        extractions=[
            {"summary": "Award and publications stand out.", "criteria": _criteria(awards=4, scholarly_articles=5, judging=2)},
            {
                "overallStrength": "weak",
                "summary": "Needs more independent evidence.",
                "criteria": [{"slug": "judging", "strength": 2, "gaps": ["No reviewer invitations"]}],
                "priorityActions": ["Collect reviewer invitations"],
            },
            {
                "suggestions": [
                    {"roleType": f"Independent expert {index}", "reasoning": "Cited the work", "criteriaRelevance": ["awards"]}
                    for index in range(5)
                ]
            },
            three_sections,
            {"content": "The NeurIPS award is granted to fewer than 0.1% of submissions."},
        ],
    )
    settings = Settings(step_budget_evaluator=3, step_budget_evidentiary=3, step_budget_section=2)
    services = build_services(db, settings=settings, model=model, retriever=static_retriever(evidence_chunks))
    client_id = sample_client.id

    report = asyncio.run(services.evaluator.evaluate(client_id))
    assert report.verdict == "weak"
    assert report.raw_output == "Research brief: evidence gathered."

    gap = asyncio.run(services.gap_analyzer.analyze(client_id))
    assert gap.priority_actions_json == ["Collect reviewer invitations"]

    suggested = asyncio.run(services.suggester.suggest(client_id))
    assert {row.status for row in suggested} == {"suggested"}

    petition = services.lifecycle.ensure_draft(client_id, "petition_letter")
    services.lifecycle.begin_generation(petition.id)
    asyncio.run(services.lifecycle.run_generation(petition.id))
    status = wait_for_generation(
        lambda: services.repo.require_draft(petition.id).status, interval_sec=0, max_attempts=3, sleep=lambda _: None
    )
    assert status == "draft"

    generation_prompt = model.extract_calls[3]["prompt"]
    assert "Ada Okafor" in generation_prompt

    version = services.lifecycle.save_version(petition.id, note="first draft")

    draft = asyncio.run(services.lifecycle.regenerate_section(petition.id, "criterion_awards"))
    assert "fewer than 0.1% of submissions" in draft.plain_text
    assert draft.plain_text.startswith("## Introduction\n\nDr. Okafor is a **leading** researcher")

    async def edit_session():
        async def save(edit):
            services.lifecycle.apply_edit(petition.id, edit)

        saver = Autosaver(save, quiet_period=0.01)
        saver.submit(DraftEdit(plain_text=draft.plain_text.replace("approved & granted", "approved")))
        saver.submit(DraftEdit(status="in_review"))
        await saver.close()
        return saver.writes

    assert asyncio.run(edit_session()) == 1
    edited = services.lifecycle.state(petition.id)
    assert edited["status"] == "in_review"
    assert edited["plain_text"].endswith("The petition should be approved.")

    restored = services.lifecycle.restore_version(petition.id, version.id)
    assert restored.status == "in_review"
    assert "fewer than 0.1%" not in restored.plain_text
    assert restored.plain_text.endswith("approved & granted.")

    registry = build_drafting_tools(repo, client_id, static_retriever())
    registry_view = json.loads(asyncio.run(registry.execute("get_existing_drafts", {})).output)
    assert registry_view[0]["status"] == "in_review"
