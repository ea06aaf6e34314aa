from __future__ import annotations

import copy
from typing import Any

from sqlalchemy import and_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from lexdraft.db.models import (
    Client,
    CriterionResponse,
    Draft,
    DraftVersion,
    EligibilityReport,
    EvidenceDocument,
    GapAnalysis,
    Recommender,
)
from lexdraft.errors import NotFoundError, PersistenceFailure

CLIENT_FIELDS = {
    "first_name",
    "last_name",
    "email",
    "citizenship",
    "field_of_expertise",
    "current_employer",
    "education_json",
    "profile_json",
    "vault_id",
    "status",
}
RECOMMENDER_FIELDS = {
    "name",
    "title",
    "organization",
    "relationship",
    "linkedin_url",
    "email",
    "phone",
    "notes",
    "status",
    "source_type",
    "ai_reasoning",
    "criteria_relevance_json",
}
DRAFT_FIELDS = {
    "title",
    "status",
    "status_before_generation",
    "content_json",
    "plain_text",
    "sections_json",
    "last_error",
}


class Repository:
    def __init__(self, session: Session):
        self.session = session

    def _commit(self) -> None:
        try:
            self.session.commit()
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise PersistenceFailure(str(exc)) from exc

    def create_client(self, **values: Any) -> Client:
        unknown = set(values) - CLIENT_FIELDS
        if unknown:
            raise ValueError(f"unknown client fields: {sorted(unknown)}")
        client = Client(**values)
        self.session.add(client)
        self._commit()
        self.session.refresh(client)
        return client

    def get_client(self, client_id: str) -> Client | None:
        return self.session.get(Client, client_id)

    def require_client(self, client_id: str) -> Client:
        client = self.get_client(client_id)
        if client is None:
            raise NotFoundError(f"client {client_id} not found")
        return client

    def update_client_status(self, client_id: str, status: str) -> Client:
        client = self.require_client(client_id)
        client.status = status
        self._commit()
        self.session.refresh(client)
        return client

    def claim_review(self, client_id: str) -> str | None:
        """Move a client into ``under_review`` and return the status it had.

        ``None`` when the client is already under review or changed status since it
        was read, so only one evaluation can hold the client at a time.
        """
        previous = self.require_client(client_id).status
        if previous == "under_review":
            return None
        statement = (
            update(Client)
            .where(and_(Client.id == client_id, Client.status == previous))
            .values(status="under_review")
            .execution_options(synchronize_session=False)
        )
        result = self.session.execute(statement)
        self._commit()
        self.session.expire_all()
        return previous if result.rowcount == 1 else None

    def set_criterion_response(self, client_id: str, criterion: str, responses: dict[str, Any]) -> CriterionResponse:
        existing = self.session.scalar(
            select(CriterionResponse).where(
                and_(CriterionResponse.client_id == client_id, CriterionResponse.criterion == criterion)
            )
        )
        if existing:
            existing.responses_json = responses
            obj = existing
        else:
            obj = CriterionResponse(client_id=client_id, criterion=criterion, responses_json=responses)
            self.session.add(obj)
        self._commit()
        self.session.refresh(obj)
        return obj

    def list_criterion_responses(self, client_id: str) -> list[CriterionResponse]:
        statement = select(CriterionResponse).where(CriterionResponse.client_id == client_id)
        return list(self.session.scalars(statement.order_by(CriterionResponse.criterion.asc())).all())

    def add_evidence_document(
        self,
        client_id: str,
        *,
        name: str,
        document_type: str = "",
        document_id: str | None = None,
    ) -> EvidenceDocument:
        document = EvidenceDocument(client_id=client_id, name=name, document_type=document_type)
        if document_id:
            document.id = document_id
        self.session.add(document)
        self._commit()
        self.session.refresh(document)
        return document

    def list_evidence_documents(self, client_id: str) -> list[EvidenceDocument]:
        statement = select(EvidenceDocument).where(EvidenceDocument.client_id == client_id)
        return list(self.session.scalars(statement.order_by(EvidenceDocument.created_at.asc())).all())

    def create_recommender(self, client_id: str, **values: Any) -> Recommender:
        unknown = set(values) - RECOMMENDER_FIELDS
        if unknown:
            raise ValueError(f"unknown recommender fields: {sorted(unknown)}")
        recommender = Recommender(client_id=client_id, **values)
        self.session.add(recommender)
        self._commit()
        self.session.refresh(recommender)
        return recommender

    def get_recommender(self, recommender_id: str) -> Recommender | None:
        return self.session.get(Recommender, recommender_id)

    def list_recommenders(self, client_id: str) -> list[Recommender]:
        statement = select(Recommender).where(Recommender.client_id == client_id)
        return list(self.session.scalars(statement.order_by(Recommender.created_at.asc())).all())

    def update_recommender(self, recommender_id: str, **values: Any) -> Recommender:
        recommender = self.get_recommender(recommender_id)
        if recommender is None:
            raise NotFoundError(f"recommender {recommender_id} not found")
        for key, value in values.items():
            if key not in RECOMMENDER_FIELDS:
                raise ValueError(f"unknown recommender field '{key}'")
            setattr(recommender, key, value)
        self._commit()
        self.session.refresh(recommender)
        return recommender

    def find_draft(self, client_id: str, document_type: str, recommender_id: str | None) -> Draft | None:
        recommender_clause = (
            Draft.recommender_id.is_(None) if recommender_id is None else Draft.recommender_id == recommender_id
        )
        statement = select(Draft).where(
            and_(Draft.client_id == client_id, Draft.document_type == document_type, recommender_clause)
        )
        return self.session.scalar(statement)

    def get_or_create_draft(
        self,
        client_id: str,
        document_type: str,
        recommender_id: str | None = None,
        title: str = "",
    ) -> tuple[Draft, bool]:
        existing = self.find_draft(client_id, document_type, recommender_id)
        if existing:
            return existing, False

        draft = Draft(
            client_id=client_id,
            document_type=document_type,
            recommender_id=recommender_id,
            title=title,
            status="not_started",
            sections_json=[],
        )
        self.session.add(draft)
        self._commit()
        self.session.refresh(draft)
        return draft, True

    def get_draft(self, draft_id: str) -> Draft | None:
        return self.session.get(Draft, draft_id)

    def require_draft(self, draft_id: str) -> Draft:
        draft = self.get_draft(draft_id)
        if draft is None:
            raise NotFoundError(f"draft {draft_id} not found")
        return draft

    def list_drafts(self, client_id: str) -> list[Draft]:
        statement = select(Draft).where(Draft.client_id == client_id).order_by(Draft.updated_at.desc())
        return list(self.session.scalars(statement).all())

    def claim_generation(self, draft_id: str) -> bool:
        """Atomically move a draft into ``generating``; False when it already is."""
        statement = (
            update(Draft)
            .where(and_(Draft.id == draft_id, Draft.status != "generating"))
            .values(status="generating", status_before_generation=Draft.status, last_error="")
            .execution_options(synchronize_session=False)
        )
        result = self.session.execute(statement)
        self._commit()
        self.session.expire_all()
        return result.rowcount == 1

    def update_draft(self, draft_id: str, **values: Any) -> Draft:
        draft = self.require_draft(draft_id)
        for key, value in values.items():
            if key not in DRAFT_FIELDS:
                raise ValueError(f"unknown draft field '{key}'")
            setattr(draft, key, copy.deepcopy(value))
        self._commit()
        self.session.refresh(draft)
        return draft

    def create_version(self, draft: Draft, *, note: str = "", created_by: str = "") -> DraftVersion:
        version = DraftVersion(
            draft_id=draft.id,
            note=note,
            content_json=copy.deepcopy(draft.content_json),
            plain_text=draft.plain_text,
            sections_json=copy.deepcopy(draft.sections_json or []),
            created_by=created_by,
        )
        self.session.add(version)
        self._commit()
        self.session.refresh(version)
        return version

    def list_versions(self, draft_id: str) -> list[DraftVersion]:
        statement = select(DraftVersion).where(DraftVersion.draft_id == draft_id)
        return list(self.session.scalars(statement.order_by(DraftVersion.created_at.desc())).all())

    def get_version(self, draft_id: str, version_id: str) -> DraftVersion | None:
        statement = select(DraftVersion).where(and_(DraftVersion.id == version_id, DraftVersion.draft_id == draft_id))
        return self.session.scalar(statement)

    def upsert_eligibility_report(
        self,
        client_id: str,
        *,
        verdict: str,
        summary: str,
        criteria: list[dict[str, Any]],
        raw_output: str = "",
    ) -> EligibilityReport:
        report = self.get_eligibility_report(client_id)
        if report is None:
            report = EligibilityReport(client_id=client_id, verdict=verdict)
            self.session.add(report)
        report.verdict = verdict
        report.summary = summary
        report.criteria_json = criteria
        report.raw_output = raw_output
        self._commit()
        self.session.refresh(report)
        return report

    def get_eligibility_report(self, client_id: str) -> EligibilityReport | None:
        return self.session.scalar(select(EligibilityReport).where(EligibilityReport.client_id == client_id))

    def create_gap_analysis(
        self,
        client_id: str,
        *,
        overall_strength: str,
        summary: str,
        criteria: list[dict[str, Any]],
        priority_actions: list[str],
    ) -> GapAnalysis:
        gap = GapAnalysis(
            client_id=client_id,
            overall_strength=overall_strength,
            summary=summary,
            criteria_json=criteria,
            priority_actions_json=priority_actions,
        )
        self.session.add(gap)
        self._commit()
        self.session.refresh(gap)
        return gap

    def latest_gap_analysis(self, client_id: str) -> GapAnalysis | None:
        statement = (
            select(GapAnalysis)
            .where(GapAnalysis.client_id == client_id)
            .order_by(GapAnalysis.created_at.desc())
            .limit(1)
        )
        return self.session.scalar(statement)
