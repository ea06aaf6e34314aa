from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from lexdraft.types import ClientStatus, DocumentType, DraftStatus, RecommenderStatus


class ClientCreateRequest(BaseModel):
    first_name: str
    last_name: str
    email: str = ""
    citizenship: str = ""
    field_of_expertise: str = ""
    current_employer: str = ""
    education: list[Any] = Field(default_factory=list)
    profile: dict[str, Any] = Field(default_factory=dict)
    vault_id: str = ""
    status: ClientStatus = "draft"
    criterion_responses: dict[str, dict[str, Any]] = Field(default_factory=dict)


class ClientResponse(BaseModel):
    id: str
    first_name: str
    last_name: str
    email: str
    field_of_expertise: str
    vault_id: str
    status: str


class EvidenceDocumentRequest(BaseModel):
    name: str = Field(min_length=1)
    document_type: str = ""
    document_id: str | None = None


class EvidenceDocumentResponse(BaseModel):
    id: str
    name: str
    document_type: str


class DraftCreateRequest(BaseModel):
    document_type: DocumentType
    recommender_id: str | None = None


class DraftSummaryResponse(BaseModel):
    id: str
    document_type: str
    recommender_id: str | None
    title: str
    status: str
    last_error: str
    updated_at: str


class DraftUpdateRequest(BaseModel):
    content: dict[str, Any] | None = None
    markup: str | None = None
    plain_text: str | None = None
    title: str | None = None
    status: DraftStatus | None = None


class RegenerateSectionRequest(BaseModel):
    section_id: str = Field(min_length=1)
    instruction: str | None = None


class VersionCreateRequest(BaseModel):
    note: str = ""
    created_by: str = ""


class VersionSummaryResponse(BaseModel):
    id: str
    draft_id: str
    note: str
    created_by: str
    created_at: str


class AcceptedResponse(BaseModel):
    status: str = "accepted"
    detail: str = ""
    draft_id: str | None = None
    client_id: str | None = None


class RecommenderCreateRequest(BaseModel):
    name: str = Field(min_length=1)
    title: str = ""
    organization: str = ""
    relationship: str = ""
    linkedin_url: str = ""
    email: str = ""
    phone: str = ""
    notes: str = ""
    status: RecommenderStatus = "identified"
    criteria_relevance: list[str] = Field(default_factory=list)


class RecommenderUpdateRequest(BaseModel):
    name: str | None = None
    title: str | None = None
    organization: str | None = None
    relationship: str | None = None
    notes: str | None = None
    status: RecommenderStatus | None = None
    criteria_relevance: list[str] | None = None


class RecommenderResponse(BaseModel):
    id: str
    client_id: str
    name: str
    title: str
    organization: str
    relationship: str
    notes: str
    status: str
    source_type: str
    ai_reasoning: str
    criteria_relevance: list[str]


class EligibilityReportResponse(BaseModel):
    client_id: str
    verdict: str
    summary: str
    criteria: list[dict[str, Any]]
    updated_at: str


class GapAnalysisResponse(BaseModel):
    id: str
    client_id: str
    overall_strength: str
    summary: str
    criteria: list[dict[str, Any]]
    priority_actions: list[str]
    created_at: str
