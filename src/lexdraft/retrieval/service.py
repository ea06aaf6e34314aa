from __future__ import annotations

import asyncio
import logging
from typing import Any, Protocol

import requests
from pydantic import ValidationError

from lexdraft.config import Settings, get_settings
from lexdraft.types import RankedChunk

logger = logging.getLogger(__name__)


class EvidenceRetriever(Protocol):
    async def search(
        self,
        query: str,
        document_ids: list[str],
        top_k: int,
        corpus_ref: str,
    ) -> list[RankedChunk]: ...


class EmptyEvidenceRetriever:
    """Used when no retrieval service is configured: nothing is indexed."""

    async def search(self, query: str, document_ids: list[str], top_k: int, corpus_ref: str) -> list[RankedChunk]:
        return []


class HttpEvidenceRetriever:
    """Client for the external chunk/embedding search service.

    ``POST {base_url}/search`` with ``{query, documentIds, topK, corpusRef}``;
    the response is ``{"matches": [RankedChunk, ...]}`` using camelCase keys.
    """

    def __init__(self, base_url: str, timeout_sec: int = 20, session: requests.Session | None = None):
        self.base_url = base_url.rstrip("/")
        self.timeout_sec = timeout_sec
        self.http = session or requests.Session()

    async def search(self, query: str, document_ids: list[str], top_k: int, corpus_ref: str) -> list[RankedChunk]:
        if not document_ids or not corpus_ref:
            return []
        return await asyncio.to_thread(self._search_sync, query, document_ids, top_k, corpus_ref)

    def _search_sync(self, query: str, document_ids: list[str], top_k: int, corpus_ref: str) -> list[RankedChunk]:
        response = self.http.post(
            f"{self.base_url}/search",
            json={"query": query, "documentIds": document_ids, "topK": top_k, "corpusRef": corpus_ref},
            timeout=self.timeout_sec,
        )
        response.raise_for_status()
        payload = response.json()
        return parse_matches(payload.get("matches", []) if isinstance(payload, dict) else [])


def parse_matches(rows: list[Any]) -> list[RankedChunk]:
    chunks: list[RankedChunk] = []
    for row in rows:
        if not isinstance(row, dict):
            continue
        try:
            chunks.append(
                RankedChunk(
                    document_id=str(row.get("documentId", row.get("document_id", ""))),
                    document_name=str(row.get("documentName", row.get("document_name", ""))),
                    document_type=str(row.get("documentType", row.get("document_type", ""))),
                    chunk_index=int(row.get("chunkIndex", row.get("chunk_index", 0)) or 0),
                    text=str(row.get("text", "")),
                    score=float(row.get("score", 0.0) or 0.0),
                )
            )
        except (TypeError, ValueError, ValidationError):
            logger.warning("Skipping malformed retrieval match %s", row)
    return sorted(chunks, key=lambda chunk: chunk.score, reverse=True)


def build_retriever(settings: Settings | None = None) -> EvidenceRetriever:
    settings = settings or get_settings()
    if not settings.retrieval_base_url:
        return EmptyEvidenceRetriever()
    return HttpEvidenceRetriever(settings.retrieval_base_url, timeout_sec=settings.retrieval_timeout_sec)
