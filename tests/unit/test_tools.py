import asyncio
import json

from lexdraft.agents.tools import Tool, ToolRegistry, NoInput, SearchInput, build_assessment_tools, build_drafting_tools
from lexdraft.config import Settings
from lexdraft.errors import AccessError


def _run(coro):
    return asyncio.run(coro)


def test_registry_reports_unknown_tools_as_text() -> None:
    async def handler(_):
        return "ok"

    registry = ToolRegistry([Tool("ping", "Ping", NoInput, handler)])
    record = _run(registry.execute("pong", {}))

    assert record.failed
    assert record.error == "Unknown tool 'pong'. Available tools: ping."


def test_registry_validates_input_before_calling_the_handler() -> None:
    calls = []

    async def handler(payload):
        calls.append(payload)
        return "found"

    registry = ToolRegistry([Tool("search", "Search", SearchInput, handler)])
    record = _run(registry.execute("search", {"query": ""}))

    assert calls == []
    assert record.error.startswith("Invalid input for search: query:")


def test_registry_turns_handler_failures_into_text() -> None:
    async def denied(_):
        raise AccessError("Recommender does not belong to this client.")

    async def broken(_):
        raise RuntimeError("database is gone")

    registry = ToolRegistry([Tool("denied", "", NoInput, denied), Tool("broken", "", NoInput, broken)])

    assert _run(registry.execute("denied", {})).error == "Access denied: Recommender does not belong to this client."
    assert _run(registry.execute("broken", {})).error == "Tool broken failed: database is gone"


def test_registry_truncates_long_output() -> None:
    async def chatty(_):
        return "x" * 50

    registry = ToolRegistry([Tool("chatty", "", NoInput, chatty)], max_output_chars=10)
    assert _run(registry.execute("chatty", {})).output == "x" * 10 + "..."


def test_tool_specs_are_openai_function_definitions(repo, sample_client, static_retriever) -> None:
    registry = build_drafting_tools(repo, sample_client.id, static_retriever())

    assert registry.names == [
        "get_client_profile",
        "search_vault",
        "get_gap_analysis",
        "get_eligibility_report",
        "get_existing_drafts",
        "get_recommender",
    ]
    specs = {spec["function"]["name"]: spec for spec in registry.specs()}
    assert specs["search_vault"]["type"] == "function"
    assert specs["search_vault"]["function"]["parameters"]["required"] == ["query"]
    assert "recommenderId" in specs["get_recommender"]["function"]["parameters"]["properties"]
    assert specs["get_client_profile"]["function"]["parameters"]["properties"] == {}


def test_client_profile_merges_intake_and_criterion_responses(repo, sample_client, static_retriever) -> None:
    registry = build_assessment_tools(repo, sample_client.id, static_retriever())
    payload = json.loads(_run(registry.execute("get_intake_data", {})).output)

    assert payload["personal"]["name"] == "Ada Okafor"
    assert payload["personal"]["fieldOfExpertise"] == "Machine learning"
    assert payload["achievement"] == {"hasMajorAchievement": False}
    assert payload["criterionResponses"] == {"awards": {"items": ["NeurIPS Outstanding Paper 2023"]}}


def test_search_scopes_to_client_documents(repo, sample_client, static_retriever, evidence_chunks) -> None:
    retriever = static_retriever(evidence_chunks)
    registry = build_drafting_tools(repo, sample_client.id, retriever, Settings(retrieval_top_k=1))

    record = _run(registry.execute("search_vault", {"query": "awards"}))

    assert record.output == "[NeurIPS award letter] (score: 0.91)\nOutstanding Paper Award, NeurIPS 2023."
    (query,) = retriever.queries
    assert sorted(query["document_ids"]) == ["doc-award", "doc-citations"]
    assert (query["query"], query["top_k"], query["corpus_ref"]) == ("awards", 1, "vault-1")


def test_search_messages_when_nothing_is_available(repo, static_retriever) -> None:
    client = repo.create_client(first_name="No", last_name="Docs")
    registry = build_assessment_tools(repo, client.id, static_retriever())
    assert _run(registry.execute("search_evidence", {"query": "x"})).output == "No documents uploaded by client."

    repo.add_evidence_document(client.id, name="cv.pdf")
    assert _run(registry.execute("search_evidence", {"query": "x"})).output == (
        "No relevant evidence found in uploaded documents."
    )


def test_lookups_without_records_say_so(repo, sample_client, static_retriever) -> None:
    registry = build_drafting_tools(repo, sample_client.id, static_retriever())

    assert _run(registry.execute("get_gap_analysis", {})).output == "No gap analysis available for this client."
    assert _run(registry.execute("get_eligibility_report", {})).output == (
        "No eligibility report available for this client."
    )
    assert _run(registry.execute("get_existing_drafts", {})).output == "No existing drafts for this client."
    assert _run(registry.execute("get_recommender", {"recommenderId": "missing"})).output == (
        "Recommender with ID missing not found."
    )


def test_recommender_of_another_client_is_denied(repo, sample_client, static_retriever) -> None:
    other = repo.create_client(first_name="Other", last_name="Client")
    foreign = repo.create_recommender(other.id, name="Prof. Hidden")
    own = repo.create_recommender(sample_client.id, name="Prof. Lee", organization="MIT")
    registry = build_drafting_tools(repo, sample_client.id, static_retriever())

    denied = _run(registry.execute("get_recommender", {"recommenderId": foreign.id}))
    allowed = _run(registry.execute("get_recommender", {"recommender_id": own.id}))

    assert denied.error == "Access denied: Recommender does not belong to this client."
    assert "Prof. Hidden" not in denied.output
    assert json.loads(allowed.output)["organization"] == "MIT"


def test_existing_drafts_are_previewed(repo, sample_client, static_retriever) -> None:
    draft, _ = repo.get_or_create_draft(sample_client.id, "petition_letter", title="Petition")
    repo.update_draft(draft.id, plain_text="a" * 2500, status="draft")
    registry = build_drafting_tools(repo, sample_client.id, static_retriever())

    rows = json.loads(_run(registry.execute("get_existing_drafts", {})).output)

    assert rows[0]["documentType"] == "petition_letter"
    assert rows[0]["plainText"] == "a" * 2000 + "..."
