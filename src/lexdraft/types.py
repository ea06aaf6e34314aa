from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator, model_validator

DocumentType = Literal[
    "petition_letter",
    "personal_statement",
    "recommendation_letter",
    "exhibit_list",
    "table_of_contents",
    "rfe_response",
]
DraftStatus = Literal["not_started", "generating", "draft", "in_review", "final"]
Verdict = Literal["strong", "moderate", "weak", "insufficient"]
RecommenderStatus = Literal[
    "suggested",
    "identified",
    "contacted",
    "confirmed",
    "letter_drafted",
    "letter_finalized",
]
RecommenderSource = Literal["manual", "ai_suggested", "linkedin_extract"]
ClientStatus = Literal["draft", "submitted", "under_review", "reviewed"]
LLMProviderName = Literal["openai", "local"]

DOCUMENT_TYPES: tuple[str, ...] = (
    "petition_letter",
    "personal_statement",
    "recommendation_letter",
    "exhibit_list",
    "table_of_contents",
    "rfe_response",
)
DRAFT_STATUSES: tuple[str, ...] = ("not_started", "generating", "draft", "in_review", "final")


class RankedChunk(BaseModel):
    document_id: str
    document_name: str = ""
    document_type: str = ""
    chunk_index: int = 0
    text: str = ""
    score: float = 0.0


class Section(BaseModel):
    id: str = Field(min_length=1, description="Machine-readable slug, e.g. 'intro' or 'criterion_awards'")
    title: str = Field(min_length=1, description="Section heading text")
    content: str = Field(description="Full section content in markdown")


class SectionOutline(BaseModel):
    id: str
    heading: str


class DraftSections(BaseModel):
    sections: list[Section] = Field(min_length=1)

    @model_validator(mode="after")
    def validate_unique_ids(self) -> "DraftSections":
        seen: set[str] = set()
        for section in self.sections:
            if section.id in seen:
                raise ValueError(f"duplicate section id '{section.id}'")
            seen.add(section.id)
        return self


class RegeneratedSection(BaseModel):
    content: str = Field(min_length=1, description="The regenerated section content in markdown")


class CriterionScore(BaseModel):
    slug: str
    label: str = ""
    score: int = Field(ge=1, le=5)
    analysis: str = ""
    evidence: list[str] = Field(default_factory=list)


class EvaluationOutput(BaseModel):
    summary: str
    criteria: list[CriterionScore] = Field(min_length=10, max_length=10)


class CriterionGap(BaseModel):
    slug: str
    label: str = ""
    strength: int = Field(default=1, ge=1, le=5)
    existing_evidence: list[str] = Field(default_factory=list, alias="existingEvidence")
    gaps: list[str] = Field(default_factory=list)
    recommendations: list[str] = Field(default_factory=list)

    model_config = {"populate_by_name": True}


class GapAnalysisOutput(BaseModel):
    overall_strength: Verdict = Field(alias="overallStrength")
    summary: str
    criteria: list[CriterionGap] = Field(default_factory=list)
    priority_actions: list[str] = Field(default_factory=list, alias="priorityActions")

    model_config = {"populate_by_name": True}


class RecommenderSuggestion(BaseModel):
    role_type: str = Field(alias="roleType", min_length=1)
    reasoning: str
    criteria_relevance: list[str] = Field(default_factory=list, alias="criteriaRelevance")
    ideal_qualifications: str = Field(default="", alias="idealQualifications")
    sample_talking_points: list[str] = Field(default_factory=list, alias="sampleTalkingPoints")

    model_config = {"populate_by_name": True}


class RecommenderSuggestions(BaseModel):
    suggestions: list[RecommenderSuggestion] = Field(min_length=5, max_length=8)


class ToolCallRequest(BaseModel):
    id: str
    name: str
    arguments: dict[str, Any] = Field(default_factory=dict)


class ModelTurn(BaseModel):
    """One model decision inside the research loop: either tool calls or a final answer."""

    content: str = ""
    tool_calls: list[ToolCallRequest] = Field(default_factory=list)
    raw: dict[str, Any] = Field(default_factory=dict)

    @property
    def is_final(self) -> bool:
        return not self.tool_calls


class ToolCallRecord(BaseModel):
    name: str
    input: dict[str, Any] = Field(default_factory=dict)
    output: str = ""
    error: str = ""

    @property
    def failed(self) -> bool:
        return bool(self.error)


class ResearchResult(BaseModel):
    brief: str
    steps: int
    completed: bool
    tool_calls: list[ToolCallRecord] = Field(default_factory=list)


class GeneratedDocument(BaseModel):
    tree: dict[str, Any]
    sections: list[SectionOutline]
    plain_text: str


class DraftEdit(BaseModel):
    """A manual edit submitted to the lifecycle manager.

    Exactly one representation is expected; when several are given the structured
    tree wins over display markup, which wins over the plain-text mirror.
    """

    tree: dict[str, Any] | None = None
    markup: str | None = None
    plain_text: str | None = None
    title: str | None = None
    status: DraftStatus | None = None

    @field_validator("status")
    @classmethod
    def validate_status(cls, value: DraftStatus | None) -> DraftStatus | None:
        if value == "generating":
            raise ValueError("status 'generating' cannot be set by an edit")
        return value

    @property
    def has_content(self) -> bool:
        return self.tree is not None or self.markup is not None or self.plain_text is not None
