from __future__ import annotations

from typing import Any

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException
from pydantic import ValidationError

from lexdraft.api.deps import get_job_options, get_services
from lexdraft.api.schemas import (
    AcceptedResponse,
    ClientCreateRequest,
    ClientResponse,
    DraftCreateRequest,
    DraftSummaryResponse,
    DraftUpdateRequest,
    EligibilityReportResponse,
    EvidenceDocumentRequest,
    EvidenceDocumentResponse,
    GapAnalysisResponse,
    RecommenderCreateRequest,
    RecommenderResponse,
    RecommenderUpdateRequest,
    RegenerateSectionRequest,
    VersionCreateRequest,
    VersionSummaryResponse,
)
from lexdraft.core import services as jobs
from lexdraft.core.lifecycle import serialize_draft, serialize_version
from lexdraft.core.services import CaseServices
from lexdraft.db.models import Draft, Recommender
from lexdraft.errors import (
    AccessError,
    DraftStateError,
    EvaluationInProgress,
    NotFoundError,
    SectionNotFound,
)
from lexdraft.types import DraftEdit

router = APIRouter(prefix="/api", tags=["api"])


def _http_error(exc: Exception) -> HTTPException:
    if isinstance(exc, NotFoundError | SectionNotFound):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, DraftStateError | EvaluationInProgress):
        return HTTPException(status_code=409, detail=str(exc))
    if isinstance(exc, AccessError):
        return HTTPException(status_code=403, detail=str(exc))
    return HTTPException(status_code=400, detail=str(exc))


def _client_response(client: Any) -> ClientResponse:
    return ClientResponse(
        id=client.id,
        first_name=client.first_name,
        last_name=client.last_name,
        email=client.email,
        field_of_expertise=client.field_of_expertise,
        vault_id=client.vault_id,
        status=client.status,
    )


def _recommender_response(row: Recommender) -> RecommenderResponse:
    return RecommenderResponse(
        id=row.id,
        client_id=row.client_id,
        name=row.name,
        title=row.title,
        organization=row.organization,
        relationship=row.relationship,
        notes=row.notes,
        status=row.status,
        source_type=row.source_type,
        ai_reasoning=row.ai_reasoning,
        criteria_relevance=list(row.criteria_relevance_json or []),
    )


def _client_draft(services: CaseServices, client_id: str, draft_id: str) -> Draft:
    draft = services.repo.get_draft(draft_id)
    if draft is None or draft.client_id != client_id:
        raise HTTPException(status_code=404, detail="Draft not found")
    return draft


def _require_client(services: CaseServices, client_id: str) -> None:
    if services.repo.get_client(client_id) is None:
        raise HTTPException(status_code=404, detail="Client not found")


@router.post("/clients", response_model=ClientResponse)
def create_client(payload: ClientCreateRequest, services: CaseServices = Depends(get_services)) -> ClientResponse:
    client = services.repo.create_client(
        first_name=payload.first_name,
        last_name=payload.last_name,
        email=payload.email,
        citizenship=payload.citizenship,
        field_of_expertise=payload.field_of_expertise,
        current_employer=payload.current_employer,
        education_json=payload.education,
        profile_json=payload.profile,
        vault_id=payload.vault_id,
        status=payload.status,
    )
    for criterion, responses in payload.criterion_responses.items():
        services.repo.set_criterion_response(client.id, criterion, responses)
    return _client_response(client)


@router.get("/clients/{client_id}", response_model=ClientResponse)
def get_client(client_id: str, services: CaseServices = Depends(get_services)) -> ClientResponse:
    client = services.repo.get_client(client_id)
    if client is None:
        raise HTTPException(status_code=404, detail="Client not found")
    return _client_response(client)


@router.post("/clients/{client_id}/documents", response_model=EvidenceDocumentResponse)
def add_document(
    client_id: str,
    payload: EvidenceDocumentRequest,
    services: CaseServices = Depends(get_services),
) -> EvidenceDocumentResponse:
    _require_client(services, client_id)
    document = services.repo.add_evidence_document(
        client_id,
        name=payload.name,
        document_type=payload.document_type,
        document_id=payload.document_id,
    )
    return EvidenceDocumentResponse(id=document.id, name=document.name, document_type=document.document_type)


@router.post("/clients/{client_id}/drafts")
def ensure_draft(client_id: str, payload: DraftCreateRequest, services: CaseServices = Depends(get_services)) -> dict:
    try:
        draft = services.lifecycle.ensure_draft(client_id, payload.document_type, payload.recommender_id)
    except (ValueError, AccessError) as exc:
        raise _http_error(exc) from exc
    return serialize_draft(draft)


@router.get("/clients/{client_id}/drafts", response_model=list[DraftSummaryResponse])
def list_drafts(client_id: str, services: CaseServices = Depends(get_services)) -> list[DraftSummaryResponse]:
    _require_client(services, client_id)
    return [
        DraftSummaryResponse(
            id=row.id,
            document_type=row.document_type,
            recommender_id=row.recommender_id,
            title=row.title,
            status=row.status,
            last_error=row.last_error,
            updated_at=row.updated_at.isoformat(),
        )
        for row in services.repo.list_drafts(client_id)
    ]


@router.get("/clients/{client_id}/drafts/{draft_id}")
def get_draft(client_id: str, draft_id: str, services: CaseServices = Depends(get_services)) -> dict:
    return serialize_draft(_client_draft(services, client_id, draft_id))


@router.post("/clients/{client_id}/drafts/{draft_id}/generate", status_code=202, response_model=AcceptedResponse)
def generate_draft(
    client_id: str,
    draft_id: str,
    background_tasks: BackgroundTasks,
    services: CaseServices = Depends(get_services),
    job_options: dict = Depends(get_job_options),
) -> AcceptedResponse:
    _client_draft(services, client_id, draft_id)
    try:
        services.lifecycle.begin_generation(draft_id)
    except DraftStateError as exc:
        raise _http_error(exc) from exc
    background_tasks.add_task(jobs.run_generation, draft_id, **job_options)
    return AcceptedResponse(detail="Generation started", draft_id=draft_id)


@router.post("/clients/{client_id}/drafts/{draft_id}/regenerate", status_code=202, response_model=AcceptedResponse)
def regenerate_section(
    client_id: str,
    draft_id: str,
    payload: RegenerateSectionRequest,
    background_tasks: BackgroundTasks,
    services: CaseServices = Depends(get_services),
    job_options: dict = Depends(get_job_options),
) -> AcceptedResponse:
    draft = _client_draft(services, client_id, draft_id)
    if draft.status == "generating":
        raise HTTPException(status_code=409, detail="Draft is generating")
    known = {row.get("id") for row in draft.sections_json or []}
    if payload.section_id not in known:
        raise HTTPException(status_code=404, detail=f"Section '{payload.section_id}' not found")
    background_tasks.add_task(
        jobs.run_section_regeneration,
        draft_id,
        payload.section_id,
        payload.instruction,
        **job_options,
    )
    return AcceptedResponse(detail=f"Regenerating section '{payload.section_id}'", draft_id=draft_id)


@router.patch("/clients/{client_id}/drafts/{draft_id}")
def update_draft(
    client_id: str,
    draft_id: str,
    payload: DraftUpdateRequest,
    services: CaseServices = Depends(get_services),
) -> dict:
    _client_draft(services, client_id, draft_id)
    try:
        edit = DraftEdit(
            tree=payload.content,
            markup=payload.markup,
            plain_text=payload.plain_text,
            title=payload.title,
            status=payload.status,
        )
        return services.lifecycle.apply_edit(draft_id, edit)
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except (ValueError, DraftStateError) as exc:
        raise _http_error(exc) from exc


@router.post("/clients/{client_id}/drafts/{draft_id}/versions", response_model=VersionSummaryResponse)
def save_version(
    client_id: str,
    draft_id: str,
    payload: VersionCreateRequest,
    services: CaseServices = Depends(get_services),
) -> VersionSummaryResponse:
    _client_draft(services, client_id, draft_id)
    try:
        version = services.lifecycle.save_version(draft_id, note=payload.note, created_by=payload.created_by)
    except DraftStateError as exc:
        raise _http_error(exc) from exc
    return VersionSummaryResponse(
        id=version.id,
        draft_id=version.draft_id,
        note=version.note,
        created_by=version.created_by,
        created_at=version.created_at.isoformat(),
    )


@router.get("/clients/{client_id}/drafts/{draft_id}/versions", response_model=list[VersionSummaryResponse])
def list_versions(
    client_id: str,
    draft_id: str,
    services: CaseServices = Depends(get_services),
) -> list[VersionSummaryResponse]:
    _client_draft(services, client_id, draft_id)
    return [
        VersionSummaryResponse(
            id=row.id,
            draft_id=row.draft_id,
            note=row.note,
            created_by=row.created_by,
            created_at=row.created_at.isoformat(),
        )
        for row in services.lifecycle.list_versions(draft_id)
    ]


@router.get("/clients/{client_id}/drafts/{draft_id}/versions/{version_id}")
def get_version(
    client_id: str,
    draft_id: str,
    version_id: str,
    services: CaseServices = Depends(get_services),
) -> dict:
    _client_draft(services, client_id, draft_id)
    try:
        return serialize_version(services.lifecycle.get_version(draft_id, version_id))
    except NotFoundError as exc:
        raise _http_error(exc) from exc


@router.post("/clients/{client_id}/drafts/{draft_id}/versions/{version_id}/restore")
def restore_version(
    client_id: str,
    draft_id: str,
    version_id: str,
    services: CaseServices = Depends(get_services),
) -> dict:
    _client_draft(services, client_id, draft_id)
    try:
        draft = services.lifecycle.restore_version(draft_id, version_id)
    except (NotFoundError, DraftStateError) as exc:
        raise _http_error(exc) from exc
    return serialize_draft(draft)


@router.post("/clients/{client_id}/evaluate", status_code=202, response_model=AcceptedResponse)
def evaluate_client(
    client_id: str,
    background_tasks: BackgroundTasks,
    services: CaseServices = Depends(get_services),
    job_options: dict = Depends(get_job_options),
) -> AcceptedResponse:
    _require_client(services, client_id)
    try:
        previous_status = services.evaluator.begin(client_id)
    except EvaluationInProgress as exc:
        raise _http_error(exc) from exc
    background_tasks.add_task(jobs.run_evaluation, client_id, previous_status, **job_options)
    return AcceptedResponse(detail="Evaluation started", client_id=client_id)


@router.get("/clients/{client_id}/eligibility", response_model=EligibilityReportResponse)
def get_eligibility(client_id: str, services: CaseServices = Depends(get_services)) -> EligibilityReportResponse:
    report = services.repo.get_eligibility_report(client_id)
    if report is None:
        raise HTTPException(status_code=404, detail="Eligibility report not found")
    return EligibilityReportResponse(
        client_id=report.client_id,
        verdict=report.verdict,
        summary=report.summary,
        criteria=report.criteria_json,
        updated_at=report.updated_at.isoformat(),
    )


@router.post("/clients/{client_id}/recommenders/suggest", status_code=202, response_model=AcceptedResponse)
def suggest_recommenders(
    client_id: str,
    background_tasks: BackgroundTasks,
    services: CaseServices = Depends(get_services),
    job_options: dict = Depends(get_job_options),
) -> AcceptedResponse:
    _require_client(services, client_id)
    background_tasks.add_task(jobs.run_recommender_suggestions, client_id, **job_options)
    return AcceptedResponse(detail="Recommender suggestions started", client_id=client_id)


@router.get("/clients/{client_id}/recommenders", response_model=list[RecommenderResponse])
def list_recommenders(client_id: str, services: CaseServices = Depends(get_services)) -> list[RecommenderResponse]:
    _require_client(services, client_id)
    return [_recommender_response(row) for row in services.repo.list_recommenders(client_id)]


@router.post("/clients/{client_id}/recommenders", response_model=RecommenderResponse)
def create_recommender(
    client_id: str,
    payload: RecommenderCreateRequest,
    services: CaseServices = Depends(get_services),
) -> RecommenderResponse:
    _require_client(services, client_id)
    values = payload.model_dump(exclude={"criteria_relevance"})
    row = services.repo.create_recommender(
        client_id,
        **values,
        source_type="manual",
        criteria_relevance_json=payload.criteria_relevance,
    )
    return _recommender_response(row)


@router.patch("/clients/{client_id}/recommenders/{recommender_id}", response_model=RecommenderResponse)
def update_recommender(
    client_id: str,
    recommender_id: str,
    payload: RecommenderUpdateRequest,
    services: CaseServices = Depends(get_services),
) -> RecommenderResponse:
    row = services.repo.get_recommender(recommender_id)
    if row is None or row.client_id != client_id:
        raise HTTPException(status_code=404, detail="Recommender not found")
    values = payload.model_dump(exclude_none=True, exclude={"criteria_relevance"})
    if payload.criteria_relevance is not None:
        values["criteria_relevance_json"] = payload.criteria_relevance
    return _recommender_response(services.repo.update_recommender(recommender_id, **values))


@router.post("/clients/{client_id}/gap-analysis", status_code=202, response_model=AcceptedResponse)
def refresh_gap_analysis(
    client_id: str,
    background_tasks: BackgroundTasks,
    services: CaseServices = Depends(get_services),
    job_options: dict = Depends(get_job_options),
) -> AcceptedResponse:
    _require_client(services, client_id)
    background_tasks.add_task(jobs.run_gap_analysis, client_id, **job_options)
    return AcceptedResponse(detail="Gap analysis started", client_id=client_id)


@router.get("/clients/{client_id}/gap-analysis", response_model=GapAnalysisResponse)
def latest_gap_analysis(client_id: str, services: CaseServices = Depends(get_services)) -> GapAnalysisResponse:
    gap = services.repo.latest_gap_analysis(client_id)
    if gap is None:
        raise HTTPException(status_code=404, detail="Gap analysis not found")
    return GapAnalysisResponse(
        id=gap.id,
        client_id=gap.client_id,
        overall_strength=gap.overall_strength,
        summary=gap.summary,
        criteria=gap.criteria_json,
        priority_actions=gap.priority_actions_json,
        created_at=gap.created_at.isoformat(),
    )
