from __future__ import annotations

from typing import Any

from sqlalchemy import JSON, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from lexdraft.db.base import Base, TimestampMixin, new_id


class Client(TimestampMixin, Base):
    __tablename__ = "clients"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_id)
    first_name: Mapped[str] = mapped_column(String(120), default="", nullable=False)
    last_name: Mapped[str] = mapped_column(String(120), default="", nullable=False)
    email: Mapped[str] = mapped_column(String(255), default="", nullable=False)
    citizenship: Mapped[str] = mapped_column(String(120), default="", nullable=False)
    field_of_expertise: Mapped[str] = mapped_column(String(255), default="", nullable=False)
    current_employer: Mapped[str] = mapped_column(String(255), default="", nullable=False)
    education_json: Mapped[list[Any]] = mapped_column(JSON, default=list, nullable=False)
    profile_json: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict, nullable=False)
    vault_id: Mapped[str] = mapped_column(String(64), default="", nullable=False)
    status: Mapped[str] = mapped_column(String(40), default="draft", nullable=False)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class CriterionResponse(TimestampMixin, Base):
    __tablename__ = "criterion_responses"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_id)
    client_id: Mapped[str] = mapped_column(ForeignKey("clients.id", ondelete="CASCADE"), index=True)
    criterion: Mapped[str] = mapped_column(String(80), nullable=False)
    responses_json: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict, nullable=False)


class EvidenceDocument(TimestampMixin, Base):
    __tablename__ = "evidence_documents"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=new_id)
    client_id: Mapped[str] = mapped_column(ForeignKey("clients.id", ondelete="CASCADE"), index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    document_type: Mapped[str] = mapped_column(String(80), default="", nullable=False)
    status: Mapped[str] = mapped_column(String(40), default="indexed", nullable=False)


class Recommender(TimestampMixin, Base):
    __tablename__ = "recommenders"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_id)
    client_id: Mapped[str] = mapped_column(ForeignKey("clients.id", ondelete="CASCADE"), index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    title: Mapped[str] = mapped_column(String(255), default="", nullable=False)
    organization: Mapped[str] = mapped_column(String(255), default="", nullable=False)
    relationship: Mapped[str] = mapped_column(String(255), default="", nullable=False)
    linkedin_url: Mapped[str] = mapped_column(String(500), default="", nullable=False)
    email: Mapped[str] = mapped_column(String(255), default="", nullable=False)
    phone: Mapped[str] = mapped_column(String(50), default="", nullable=False)
    notes: Mapped[str] = mapped_column(Text, default="", nullable=False)
    status: Mapped[str] = mapped_column(String(40), default="identified", nullable=False)
    source_type: Mapped[str] = mapped_column(String(40), default="manual", nullable=False)
    ai_reasoning: Mapped[str] = mapped_column(Text, default="", nullable=False)
    criteria_relevance_json: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)


class Draft(TimestampMixin, Base):
    __tablename__ = "drafts"
    __table_args__ = (Index("ix_drafts_triple", "client_id", "document_type", "recommender_id", unique=True),)

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_id)
    client_id: Mapped[str] = mapped_column(ForeignKey("clients.id", ondelete="CASCADE"), index=True)
    document_type: Mapped[str] = mapped_column(String(40), nullable=False)
    recommender_id: Mapped[str | None] = mapped_column(
        ForeignKey("recommenders.id", ondelete="SET NULL"), nullable=True
    )
    title: Mapped[str] = mapped_column(String(255), default="", nullable=False)
    status: Mapped[str] = mapped_column(String(40), default="not_started", nullable=False)
    status_before_generation: Mapped[str | None] = mapped_column(String(40), nullable=True)
    content_json: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    plain_text: Mapped[str | None] = mapped_column(Text, nullable=True)
    sections_json: Mapped[list[dict[str, Any]]] = mapped_column(JSON, default=list, nullable=False)
    last_error: Mapped[str] = mapped_column(Text, default="", nullable=False)


class DraftVersion(TimestampMixin, Base):
    __tablename__ = "draft_versions"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_id)
    draft_id: Mapped[str] = mapped_column(ForeignKey("drafts.id", ondelete="CASCADE"), index=True)
    note: Mapped[str] = mapped_column(Text, default="", nullable=False)
    content_json: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    plain_text: Mapped[str | None] = mapped_column(Text, nullable=True)
    sections_json: Mapped[list[dict[str, Any]]] = mapped_column(JSON, default=list, nullable=False)
    created_by: Mapped[str] = mapped_column(String(120), default="", nullable=False)


class EligibilityReport(TimestampMixin, Base):
    __tablename__ = "eligibility_reports"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_id)
    client_id: Mapped[str] = mapped_column(ForeignKey("clients.id", ondelete="CASCADE"), unique=True)
    verdict: Mapped[str] = mapped_column(String(40), nullable=False)
    summary: Mapped[str] = mapped_column(Text, default="", nullable=False)
    criteria_json: Mapped[list[dict[str, Any]]] = mapped_column(JSON, default=list, nullable=False)
    raw_output: Mapped[str] = mapped_column(Text, default="", nullable=False)


class GapAnalysis(TimestampMixin, Base):
    __tablename__ = "gap_analyses"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_id)
    client_id: Mapped[str] = mapped_column(ForeignKey("clients.id", ondelete="CASCADE"), index=True)
    overall_strength: Mapped[str] = mapped_column(String(40), nullable=False)
    summary: Mapped[str] = mapped_column(Text, default="", nullable=False)
    criteria_json: Mapped[list[dict[str, Any]]] = mapped_column(JSON, default=list, nullable=False)
    priority_actions_json: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
