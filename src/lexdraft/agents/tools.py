"""Client-scoped tools the research loop may call.

Each tool owns a pydantic input model and an async handler returning text. The
registry is a closed dispatch table keyed by tool name: unknown names, invalid
input and handler failures all come back as text so the model can react.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from lexdraft.config import Settings, get_settings
from lexdraft.db.repositories import Repository
from lexdraft.errors import AccessError, ToolExecutionError
from lexdraft.retrieval.service import EvidenceRetriever
from lexdraft.types import RankedChunk, ToolCallRecord

logger = logging.getLogger(__name__)

DRAFT_PREVIEW_CHARS = 2000


class NoInput(BaseModel):
    model_config = ConfigDict(extra="ignore")


class SearchInput(BaseModel):
    query: str = Field(min_length=1, description="Search query to find relevant content in the client's documents")


class RecommenderInput(BaseModel):
    recommender_id: str = Field(alias="recommenderId", min_length=1, description="The ID of the recommender to retrieve")

    model_config = ConfigDict(populate_by_name=True)


@dataclass(slots=True)
class Tool:
    name: str
    description: str
    input_model: type[BaseModel]
    handler: Callable[[Any], Awaitable[str]]

    def spec(self) -> dict[str, Any]:
        schema = self.input_model.model_json_schema()
        schema.pop("title", None)
        schema.setdefault("properties", {})
        return {
            "type": "function",
            "function": {"name": self.name, "description": self.description, "parameters": schema},
        }


class ToolRegistry:
    def __init__(self, tools: list[Tool], *, max_output_chars: int = 12000):
        self._tools = {tool.name: tool for tool in tools}
        self.max_output_chars = max_output_chars

    @property
    def names(self) -> list[str]:
        return list(self._tools)

    def specs(self) -> list[dict[str, Any]]:
        return [tool.spec() for tool in self._tools.values()]

    async def execute(self, name: str, arguments: dict[str, Any]) -> ToolCallRecord:
        record = ToolCallRecord(name=name, input=dict(arguments))
        tool = self._tools.get(name)
        if tool is None:
            record.error = f"Unknown tool '{name}'. Available tools: {', '.join(self._tools)}."
            logger.warning("Model requested unknown tool=%s", name)
            return record

        try:
            payload = tool.input_model.model_validate(arguments)
        except ValidationError as exc:
            record.error = f"Invalid input for {name}: {_validation_summary(exc)}"
            logger.warning("Invalid tool input tool=%s errors=%s", name, exc.error_count())
            return record

        try:
            output = await tool.handler(payload)
        except AccessError as exc:
            record.error = f"Access denied: {exc}"
            logger.warning("Tool access denied tool=%s reason=%s", name, exc)
            return record
        except Exception as exc:
            # Tool failures are reported to the model, never raised out of the loop.
            record.error = f"Tool {name} failed: {exc}"
            logger.warning("Tool execution failed tool=%s error=%s", name, exc, exc_info=True)
            return record

        record.output = _truncate(output, self.max_output_chars)
        return record


def _validation_summary(exc: ValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(item) for item in error.get("loc", ())) or "input"
        parts.append(f"{location}: {error.get('msg', 'invalid')}")
    return "; ".join(parts)


def _truncate(value: str, limit: int) -> str:
    if limit <= 0 or len(value) <= limit:
        return value
    return value[:limit] + "..."


def format_chunks(chunks: list[RankedChunk]) -> str:
    return "\n\n---\n\n".join(f"[{chunk.document_name}] (score: {chunk.score:.2f})\n{chunk.text}" for chunk in chunks)


class CaseTools:
    """Tool handlers bound to one client. Every lookup is checked against ``client_id``."""

    def __init__(
        self,
        repo: Repository,
        client_id: str,
        retriever: EvidenceRetriever,
        settings: Settings | None = None,
    ):
        self.repo = repo
        self.client_id = client_id
        self.retriever = retriever
        self.settings = settings or get_settings()

    def _client(self):
        client = self.repo.get_client(self.client_id)
        if client is None:
            raise ToolExecutionError(f"Client {self.client_id} not found.")
        return client

    async def client_profile(self, _: NoInput) -> str:
        client = self._client()
        criterion_data = {row.criterion: row.responses_json for row in self.repo.list_criterion_responses(client.id)}
        profile = dict(client.profile_json or {})
        return json.dumps(
            {
                "personal": {
                    "name": client.full_name,
                    "email": client.email,
                    "citizenship": client.citizenship,
                    "fieldOfExpertise": client.field_of_expertise,
                    "currentEmployer": client.current_employer,
                    "education": client.education_json or [],
                },
                **profile,
                "criterionResponses": criterion_data,
            },
            ensure_ascii=True,
            default=str,
        )

    async def _search(self, query: str, *, no_documents: str, no_matches: str) -> str:
        client = self._client()
        document_ids = [document.id for document in self.repo.list_evidence_documents(client.id)]
        if not document_ids:
            return no_documents
        chunks = await self.retriever.search(
            query,
            document_ids,
            self.settings.retrieval_top_k,
            client.vault_id or client.id,
        )
        if not chunks:
            return no_matches
        return format_chunks(chunks)

    async def search_vault(self, payload: SearchInput) -> str:
        return await self._search(
            payload.query,
            no_documents="No documents in client vault.",
            no_matches="No relevant content found in vault documents.",
        )

    async def search_evidence(self, payload: SearchInput) -> str:
        return await self._search(
            payload.query,
            no_documents="No documents uploaded by client.",
            no_matches="No relevant evidence found in uploaded documents.",
        )

    async def gap_analysis(self, _: NoInput) -> str:
        gap = self.repo.latest_gap_analysis(self.client_id)
        if gap is None:
            return "No gap analysis available for this client."
        return json.dumps(
            {
                "overallStrength": gap.overall_strength,
                "summary": gap.summary,
                "criteria": gap.criteria_json,
                "priorityActions": gap.priority_actions_json,
            }
        )

    async def eligibility_report(self, _: NoInput) -> str:
        report = self.repo.get_eligibility_report(self.client_id)
        if report is None:
            return "No eligibility report available for this client."
        return json.dumps({"verdict": report.verdict, "summary": report.summary, "criteria": report.criteria_json})

    async def existing_drafts(self, _: NoInput) -> str:
        drafts = self.repo.list_drafts(self.client_id)
        if not drafts:
            return "No existing drafts for this client."
        rows = []
        for draft in drafts:
            text = draft.plain_text
            if text and len(text) > DRAFT_PREVIEW_CHARS:
                text = text[:DRAFT_PREVIEW_CHARS] + "..."
            rows.append(
                {
                    "id": draft.id,
                    "documentType": draft.document_type,
                    "title": draft.title,
                    "status": draft.status,
                    "plainText": text or None,
                    "updatedAt": draft.updated_at.isoformat(),
                }
            )
        return json.dumps(rows)

    async def recommender(self, payload: RecommenderInput) -> str:
        recommender = self.repo.get_recommender(payload.recommender_id)
        if recommender is None:
            return f"Recommender with ID {payload.recommender_id} not found."
        if recommender.client_id != self.client_id:
            raise AccessError("Recommender does not belong to this client.")
        return json.dumps(
            {
                "id": recommender.id,
                "name": recommender.name,
                "title": recommender.title,
                "organization": recommender.organization,
                "relationship": recommender.relationship,
                "linkedinUrl": recommender.linkedin_url,
                "email": recommender.email,
                "phone": recommender.phone,
                "notes": recommender.notes,
                "status": recommender.status,
                "sourceType": recommender.source_type,
                "aiReasoning": recommender.ai_reasoning,
                "criteriaRelevance": recommender.criteria_relevance_json,
            }
        )


def build_drafting_tools(
    repo: Repository,
    client_id: str,
    retriever: EvidenceRetriever,
    settings: Settings | None = None,
) -> ToolRegistry:
    settings = settings or get_settings()
    case = CaseTools(repo, client_id, retriever, settings)
    return ToolRegistry(
        [
            Tool(
                "get_client_profile",
                "Retrieve the client's full intake profile including personal info, education, "
                "achievements and criterion responses",
                NoInput,
                case.client_profile,
            ),
            Tool(
                "search_vault",
                "Search the client's vault documents for relevant content. Use to find evidence, "
                "facts or context from uploaded files.",
                SearchInput,
                case.search_vault,
            ),
            Tool(
                "get_gap_analysis",
                "Retrieve the most recent gap analysis for the client: strength assessment, "
                "criteria gaps and priority actions",
                NoInput,
                case.gap_analysis,
            ),
            Tool(
                "get_eligibility_report",
                "Retrieve the EB-1A eligibility report including verdict and criterion scores",
                NoInput,
                case.eligibility_report,
            ),
            Tool(
                "get_existing_drafts",
                "List the client's existing drafts with type, title, status and text, for cross-referencing",
                NoInput,
                case.existing_drafts,
            ),
            Tool(
                "get_recommender",
                "Retrieve full details for a specific recommender by ID",
                RecommenderInput,
                case.recommender,
            ),
        ],
        max_output_chars=settings.tool_output_max_chars,
    )


def build_assessment_tools(
    repo: Repository,
    client_id: str,
    retriever: EvidenceRetriever,
    settings: Settings | None = None,
) -> ToolRegistry:
    """Profile lookup and evidence search only, for the evaluator and gap analysis."""
    settings = settings or get_settings()
    case = CaseTools(repo, client_id, retriever, settings)
    return ToolRegistry(
        [
            Tool(
                "get_intake_data",
                "Retrieve the client's intake form data including personal info, achievements "
                "and criterion-specific responses",
                NoInput,
                case.client_profile,
            ),
            Tool(
                "search_evidence",
                "Search the client's uploaded documents for evidence related to a specific query",
                SearchInput,
                case.search_evidence,
            ),
        ],
        max_output_chars=settings.tool_output_max_chars,
    )
