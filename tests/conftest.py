from __future__ import annotations

import os
import tempfile
from pathlib import Path

_DB_DIR = Path(tempfile.mkdtemp(prefix="lexdraft-tests-"))
os.environ["DATABASE_URL"] = f"sqlite:///{_DB_DIR / 'test.db'}"
os.environ["DATA_DIR"] = str(_DB_DIR)
os.environ["APP_ENV"] = "test"
os.environ["OPENAI_API_KEY"] = ""
os.environ["RETRIEVAL_BASE_URL"] = ""

import pytest  # noqa: E402

from lexdraft.db.base import Base  # noqa: E402
from lexdraft.db.repositories import Repository  # noqa: E402
from lexdraft.db.session import SessionLocal, engine  # noqa: E402
from lexdraft.db import models  # noqa: E402,F401
from lexdraft.types import ModelTurn, RankedChunk, ToolCallRequest  # noqa: E402


@pytest.fixture(autouse=True)
def reset_db() -> None:
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture()
def db():
    with SessionLocal() as session:
        yield session


@pytest.fixture()
def repo(db) -> Repository:
    return Repository(db)


class ScriptedModel:
    """Stands in for the LLM router: replays research turns and extraction payloads.

    ``steps`` items are ModelTurn objects or exceptions; once exhausted every step
    returns a final answer. ``extractions`` items are dicts, exceptions, or
    callables taking the prompt.
    """

    def __init__(self, *, steps=None, extractions=None, final_text: str = "Research brief: evidence gathered."):
        self.steps = list(steps or [])
        self.extractions = list(extractions or [])
        self.final_text = final_text
        self.step_calls: list[list[dict]] = []
        self.extract_calls: list[dict] = []

    async def step(self, *, messages, tools):
        self.step_calls.append([dict(message) for message in messages])
        if self.steps:
            item = self.steps.pop(0)
            if isinstance(item, Exception):
                raise item
            return item
        return ModelTurn(content=self.final_text)

    async def extract(self, *, prompt, schema_name, schema, system=""):
        self.extract_calls.append({"prompt": prompt, "schema_name": schema_name, "schema": schema})
        item = self.extractions.pop(0) if self.extractions else {}
        if callable(item):
            item = item(prompt)
        if isinstance(item, Exception):
            raise item
        return item


class StaticRetriever:
    def __init__(self, chunks=None):
        self.chunks = list(chunks or [])
        self.queries: list[dict] = []

    async def search(self, query, document_ids, top_k, corpus_ref):
        self.queries.append(
            {"query": query, "document_ids": list(document_ids), "top_k": top_k, "corpus_ref": corpus_ref}
        )
        return self.chunks[:top_k]


def tool_turn(*calls: tuple[str, dict], content: str = "") -> ModelTurn:
    return ModelTurn(
        content=content,
        tool_calls=[
            ToolCallRequest(id=f"call_{index}", name=name, arguments=arguments)
            for index, (name, arguments) in enumerate(calls)
        ],
    )


@pytest.fixture()
def scripted_model():
    return ScriptedModel


@pytest.fixture()
def static_retriever():
    return StaticRetriever


@pytest.fixture()
def make_tool_turn():
    return tool_turn


@pytest.fixture()
def evidence_chunks() -> list[RankedChunk]:
    return [
        RankedChunk(
            document_id="doc-award",
            document_name="NeurIPS award letter",
            document_type="award",
            chunk_index=0,
            text="Outstanding Paper Award, NeurIPS 2023.",
            score=0.91,
        ),
        RankedChunk(
            document_id="doc-citations",
            document_name="citation report",
            document_type="citations",
            chunk_index=2,
            text="Google Scholar: 4,812 citations, h-index 31.",
            score=0.84,
        ),
    ]


@pytest.fixture()
def sample_client(repo: Repository):
    client = repo.create_client(
        first_name="Ada",
        last_name="Okafor",
        field_of_expertise="Machine learning",
        vault_id="vault-1",
        status="submitted",
        profile_json={"achievement": {"hasMajorAchievement": False}},
    )
    repo.set_criterion_response(client.id, "awards", {"items": ["NeurIPS Outstanding Paper 2023"]})
    repo.add_evidence_document(client.id, name="NeurIPS award letter", document_type="award", document_id="doc-award")
    repo.add_evidence_document(client.id, name="citation report", document_type="citations", document_id="doc-citations")
    return client


def sections_payload(*sections: tuple[str, str, str]) -> dict:
    return {"sections": [{"id": sid, "title": title, "content": content} for sid, title, content in sections]}


@pytest.fixture()
def three_sections() -> dict:
    return sections_payload(
        ("intro", "Introduction", "Dr. Okafor is a **leading** researcher in *machine learning*."),
        ("criterion_awards", "Awards", "### NeurIPS\n\nShe received the Outstanding Paper Award.\n\n- NeurIPS 2023\n- ICML 2022"),
        ("conclusion", "Conclusion", "The petition should be approved & granted."),
    )
