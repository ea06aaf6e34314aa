from __future__ import annotations

import logging
from typing import Any

from lexdraft.config import Settings, get_settings
from lexdraft.errors import ExtractionFailure, GenerationError, MalformedModelOutput
from lexdraft.llm.providers import LLMProvider, ProviderPool
from lexdraft.types import ModelTurn

logger = logging.getLogger(__name__)


class LLMRouter:
    """Routes the two generation phases to a primary provider with one fallback.

    ``step`` serves research-loop decisions, ``extract`` serves structured output.
    Both raise ``GenerationError`` once every usable provider has failed. Output that
    is not a JSON object also moves ``extract`` on to the fallback; when any provider
    answered that way, ``ExtractionFailure`` is raised instead.
    """

    def __init__(self, settings: Settings | None = None, pool: ProviderPool | None = None):
        self.settings = settings or get_settings()
        self.pool = pool or ProviderPool(self.settings)

    async def step(self, *, messages: list[dict[str, Any]], tools: list[dict[str, Any]]) -> ModelTurn:
        errors: list[str] = []
        for provider in self._providers_for("research"):
            try:
                return await provider.complete_step(messages=messages, tools=tools)
            except Exception as exc:
                logger.warning("LLM step failed provider=%s error=%s", provider.config.name, exc)
                errors.append(f"{provider.config.name}: {exc}")
        raise GenerationError(_failure_message("research step", errors))

    async def extract(self, *, prompt: str, schema_name: str, schema: dict[str, Any], system: str = "") -> dict[str, Any]:
        errors: list[str] = []
        malformed = False
        for provider in self._providers_for("extract"):
            try:
                return await provider.complete_structured(
                    prompt=prompt, schema_name=schema_name, schema=schema, system=system
                )
            except MalformedModelOutput as exc:
                logger.warning("LLM structured output unusable provider=%s error=%s", provider.config.name, exc)
                errors.append(f"{provider.config.name}: {exc}")
                malformed = True
            except Exception as exc:
                logger.warning("LLM structured call failed provider=%s error=%s", provider.config.name, exc)
                errors.append(f"{provider.config.name}: {exc}")
        # A provider did answer, so this is bad output rather than an outage.
        if malformed:
            raise ExtractionFailure(_failure_message("structured extraction", errors))
        raise GenerationError(_failure_message("structured extraction", errors))

    def _providers_for(self, task: str) -> list[LLMProvider]:
        provider_name = {
            "research": self.settings.llm_router_research_provider,
            "extract": self.settings.llm_router_extract_provider,
        }.get(task, self.settings.llm_router_default)

        if provider_name == "local":
            ordered = [self.pool.local(), self.pool.openai()]
        else:
            ordered = [self.pool.openai(), self.pool.local()]

        usable: list[LLMProvider] = []
        for provider in ordered:
            if provider.config.name == "openai" and not self.settings.openai_api_key:
                continue
            if provider.config.name == "local" and not self.settings.local_llm_enabled:
                continue
            usable.append(provider)
        return usable


def _failure_message(what: str, errors: list[str]) -> str:
    if not errors:
        return f"{what} failed: no model provider is configured"
    return f"{what} failed on every provider ({'; '.join(errors)})"
