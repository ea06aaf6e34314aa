import pytest
from fastapi.testclient import TestClient

from lexdraft.api.app import create_app
from lexdraft.api.deps import get_job_options
from lexdraft.core.scoring import CRITERION_SLUGS
from lexdraft.db.repositories import Repository
from lexdraft.db.session import SessionLocal


@pytest.fixture()
def model(scripted_model):
    return scripted_model()


@pytest.fixture()
def client(model, static_retriever, evidence_chunks):
    app = create_app()
    app.dependency_overrides[get_job_options] = lambda: {"model": model, "retriever": static_retriever(evidence_chunks)}
    return TestClient(app)


def _create_case(client: TestClient) -> str:
    response = client.post(
        "/api/clients",
        json={
            "first_name": "Ada",
            "last_name": "Okafor",
            "field_of_expertise": "Machine learning",
            "vault_id": "vault-1",
            "status": "submitted",
            "criterion_responses": {"awards": {"items": ["NeurIPS Outstanding Paper 2023"]}},
        },
    )
    assert response.status_code == 200
    client_id = response.json()["id"]
    document = client.post(
        f"/api/clients/{client_id}/documents",
        json={"name": "NeurIPS award letter", "document_type": "award"},
    )
    assert document.status_code == 200
    return client_id


def test_health_reports_unconfigured_dependencies() -> None:
    body = TestClient(create_app()).get("/health").json()
    assert body["status"] == "ok"
    assert body["env"] == "test"
    assert "openai" not in body["providers"]
    assert body["retrieval"] is False


def test_generate_runs_in_background_and_returns_202(client, model, three_sections) -> None:
    model.extractions.append(three_sections)
    client_id = _create_case(client)
    draft = client.post(f"/api/clients/{client_id}/drafts", json={"document_type": "petition_letter"}).json()
    assert draft["status"] == "not_started"

    accepted = client.post(f"/api/clients/{client_id}/drafts/{draft['id']}/generate")
    assert accepted.status_code == 202
    assert accepted.json()["draft_id"] == draft["id"]

    state = client.get(f"/api/clients/{client_id}/drafts/{draft['id']}").json()
    assert state["status"] == "draft"
    assert [section["id"] for section in state["sections"]] == ["intro", "criterion_awards", "conclusion"]
    assert state["markup"].startswith('<h2 id="intro">Introduction</h2>')

    listing = client.get(f"/api/clients/{client_id}/drafts").json()
    assert [row["id"] for row in listing] == [draft["id"]]


def test_generate_while_generating_is_a_conflict(client, model) -> None:
    client_id = _create_case(client)
    draft = client.post(f"/api/clients/{client_id}/drafts", json={"document_type": "exhibit_list"}).json()
    with SessionLocal() as session:
        assert Repository(session).claim_generation(draft["id"])

    response = client.post(f"/api/clients/{client_id}/drafts/{draft['id']}/generate")

    assert response.status_code == 409
    assert model.step_calls == []
    regenerate = client.post(
        f"/api/clients/{client_id}/drafts/{draft['id']}/regenerate", json={"section_id": "intro"}
    )
    assert regenerate.status_code == 409
    patch = client.patch(f"/api/clients/{client_id}/drafts/{draft['id']}", json={"plain_text": "## A\n\nB"})
    assert patch.status_code == 409


def test_evaluate_while_under_review_is_a_conflict(client, model) -> None:
    client_id = _create_case(client)
    with SessionLocal() as session:
        assert Repository(session).claim_review(client_id) == "submitted"

    response = client.post(f"/api/clients/{client_id}/evaluate")

    assert response.status_code == 409
    assert model.step_calls == []
    assert client.get(f"/api/clients/{client_id}").json()["status"] == "under_review"


def test_failed_background_generation_is_visible_on_the_draft(client, model) -> None:
    model.extractions.append({})
    client_id = _create_case(client)
    draft = client.post(f"/api/clients/{client_id}/drafts", json={"document_type": "personal_statement"}).json()

    assert client.post(f"/api/clients/{client_id}/drafts/{draft['id']}/generate").status_code == 202

    state = client.get(f"/api/clients/{client_id}/drafts/{draft['id']}").json()
    assert state["status"] == "not_started"
    assert state["last_error"] == "Document generation failed. Please try again."


def test_regenerate_edit_and_versions(client, model, three_sections) -> None:
    model.extractions.extend([three_sections, {"content": "Conclusion rewritten."}])
    client_id = _create_case(client)
    draft_id = client.post(f"/api/clients/{client_id}/drafts", json={"document_type": "rfe_response"}).json()["id"]
    base = f"/api/clients/{client_id}/drafts/{draft_id}"
    client.post(f"{base}/generate")

    assert client.post(f"{base}/regenerate", json={"section_id": "press"}).status_code == 404
    assert client.post(f"{base}/regenerate", json={"section_id": "conclusion", "instruction": "Be brief"}).status_code == 202
    state = client.get(base).json()
    assert state["plain_text"].endswith("## Conclusion\n\nConclusion rewritten.")

    version = client.post(f"{base}/versions", json={"note": "after regeneration"}).json()
    edited = client.patch(base, json={"markup": "<h2>Only</h2><p>one section</p>", "status": "in_review"})
    assert edited.status_code == 200
    assert edited.json()["sections"] == [{"id": "only", "heading": "Only"}]

    assert client.patch(base, json={"status": "generating"}).status_code == 400

    versions = client.get(f"{base}/versions").json()
    assert [row["id"] for row in versions] == [version["id"]]
    assert client.get(f"{base}/versions/{version['id']}").json()["note"] == "after regeneration"
    assert client.get(f"{base}/versions/missing").status_code == 404

    restored = client.post(f"{base}/versions/{version['id']}/restore").json()
    assert restored["plain_text"] == state["plain_text"]
    assert restored["status"] == "in_review"


def test_unknown_draft_or_foreign_draft_is_not_found(client) -> None:
    first = _create_case(client)
    second = _create_case(client)
    draft_id = client.post(f"/api/clients/{first}/drafts", json={"document_type": "exhibit_list"}).json()["id"]

    assert client.get(f"/api/clients/{second}/drafts/{draft_id}").status_code == 404
    assert client.get(f"/api/clients/{first}/drafts/nope").status_code == 404
    assert client.post(f"/api/clients/{first}/drafts", json={"document_type": "recommendation_letter"}).status_code == 400


def test_evaluation_and_recommenders_endpoints(client, model) -> None:
    model.extractions.append(
        {
            "summary": "Two standout criteria.",
            "criteria": [
                {"slug": slug, "score": {"awards": 4, "scholarly_articles": 5}.get(slug, 2)} for slug in CRITERION_SLUGS
            ],
        }
    )
    client_id = _create_case(client)

    assert client.get(f"/api/clients/{client_id}/eligibility").status_code == 404
    assert client.post(f"/api/clients/{client_id}/evaluate").status_code == 202

    report = client.get(f"/api/clients/{client_id}/eligibility").json()
    assert report["verdict"] == "weak"
    assert client.get(f"/api/clients/{client_id}").json()["status"] == "reviewed"

    created = client.post(
        f"/api/clients/{client_id}/recommenders",
        json={"name": "Prof. Lee", "organization": "MIT", "criteria_relevance": ["judging"]},
    ).json()
    assert created["source_type"] == "manual"
    updated = client.patch(
        f"/api/clients/{client_id}/recommenders/{created['id']}", json={"status": "contacted"}
    ).json()
    assert updated["status"] == "contacted"
    assert updated["criteria_relevance"] == ["judging"]

    letter = client.post(
        f"/api/clients/{client_id}/drafts",
        json={"document_type": "recommendation_letter", "recommender_id": created["id"]},
    )
    assert letter.status_code == 200
    assert letter.json()["recommender_id"] == created["id"]
