from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any

from openai import AsyncOpenAI

from lexdraft.config import Settings
from lexdraft.errors import MalformedModelOutput
from lexdraft.types import ModelTurn, ToolCallRequest

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ProviderConfig:
    name: str
    base_url: str
    api_key: str
    timeout_sec: int
    model_research: str
    model_extract: str


class LLMProvider:
    def __init__(self, config: ProviderConfig):
        self.config = config
        self.client = AsyncOpenAI(
            base_url=config.base_url,
            api_key=config.api_key,
            timeout=float(config.timeout_sec),
        )

    async def complete_step(
        self,
        *,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]],
        model: str | None = None,
    ) -> ModelTurn:
        kwargs: dict[str, Any] = {"model": model or self.config.model_research, "messages": messages}
        if tools:
            kwargs["tools"] = tools
        response = await self.client.chat.completions.create(**kwargs)
        return self._turn_from_chat(response)

    async def complete_structured(
        self,
        *,
        prompt: str,
        schema_name: str,
        schema: dict[str, Any],
        system: str = "",
        model: str | None = None,
    ) -> dict[str, Any]:
        model = model or self.config.model_extract
        try:
            text = await self._structured_via_responses(
                model=model, prompt=prompt, system=system, schema_name=schema_name, schema=schema
            )
        except Exception as exc:
            if not self._is_unsupported_responses_endpoint(exc):
                raise

            logger.warning(
                "Responses API unavailable for provider=%s base_url=%s; "
                "falling back to chat.completions (%s)",
                self.config.name,
                self.config.base_url,
                exc,
            )
            text = await self._structured_via_chat(
                model=model, prompt=prompt, system=system, schema_name=schema_name, schema=schema
            )
        return parse_json(text)

    async def _structured_via_responses(
        self,
        *,
        model: str,
        prompt: str,
        system: str,
        schema_name: str,
        schema: dict[str, Any],
    ) -> str:
        items: list[dict[str, Any]] = []
        if system:
            items.append({"role": "system", "content": [{"type": "input_text", "text": system}]})
        items.append({"role": "user", "content": [{"type": "input_text", "text": prompt}]})
        response = await self.client.responses.create(
            model=model,
            input=items,
            text={"format": {"type": "json_schema", "name": schema_name, "schema": schema, "strict": False}},
        )
        return getattr(response, "output_text", "") or ""

    async def _structured_via_chat(
        self,
        *,
        model: str,
        prompt: str,
        system: str,
        schema_name: str,
        schema: dict[str, Any],
    ) -> str:
        messages: list[dict[str, Any]] = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": prompt})
        response = await self.client.chat.completions.create(
            model=model,
            messages=messages,
            response_format={
                "type": "json_schema",
                "json_schema": {"name": schema_name, "schema": schema, "strict": False},
            },
        )
        return self._turn_from_chat(response).content

    @staticmethod
    def _turn_from_chat(response: Any) -> ModelTurn:
        choices = getattr(response, "choices", None) or []
        raw = response.model_dump() if hasattr(response, "model_dump") else {}
        if not isinstance(raw, dict):
            raw = {"raw": raw}
        if not choices:
            return ModelTurn(content="", raw=raw)

        message = getattr(choices[0], "message", None)
        if message is None:
            return ModelTurn(content="", raw=raw)

        content = getattr(message, "content", "") or ""
        if not isinstance(content, str):
            content = str(content)

        calls: list[ToolCallRequest] = []
        for call in getattr(message, "tool_calls", None) or []:
            function = getattr(call, "function", None)
            if function is None:
                logger.warning("Tool call missing function field: %s", call)
                continue
            try:
                arguments = json.loads(function.arguments or "{}")
            except json.JSONDecodeError:
                logger.warning("Malformed tool arguments for tool=%s: %.200s", function.name, function.arguments)
                arguments = {}
            if not isinstance(arguments, dict):
                arguments = {}
            calls.append(ToolCallRequest(id=call.id, name=function.name, arguments=arguments))
        return ModelTurn(content=content, tool_calls=calls, raw=raw)

    @staticmethod
    def _is_unsupported_responses_endpoint(exc: Exception) -> bool:
        status_code = getattr(exc, "status_code", None)
        if status_code == 404:
            return True

        message = str(exc).strip().lower()
        if not message:
            return False

        return "not found" in message or "404" in message


def parse_json(content: str) -> dict[str, Any]:
    """JSON object from model output, tolerating a fenced ```json block."""
    candidate = content.strip()
    if not candidate:
        raise MalformedModelOutput("No structured output generated.")

    if "```" in candidate:
        parts = candidate.split("```")
        for part in parts:
            part = part.strip()
            if part.startswith("json"):
                part = part[4:].strip()
            if part.startswith("{") and part.endswith("}"):
                candidate = part
                break

    try:
        value = json.loads(candidate)
    except json.JSONDecodeError as exc:
        logger.warning("Failed to parse JSON model output: %s", exc)
        raise MalformedModelOutput(f"model output is not valid JSON: {exc}") from exc
    if not isinstance(value, dict):
        raise MalformedModelOutput(f"model output is a JSON {type(value).__name__}, expected an object")
    return value


class ProviderPool:
    def __init__(self, settings: Settings):
        self.settings = settings
        self._openai: LLMProvider | None = None
        self._local: LLMProvider | None = None

    def openai(self) -> LLMProvider:
        if self._openai is None:
            self._openai = LLMProvider(
                ProviderConfig(
                    name="openai",
                    base_url=self.settings.openai_base_url,
                    api_key=self.settings.openai_api_key,
                    timeout_sec=self.settings.openai_timeout_sec,
                    model_research=self.settings.openai_model_research,
                    model_extract=self.settings.openai_model_extract,
                )
            )
        return self._openai

    def local(self) -> LLMProvider:
        if self._local is None:
            self._local = LLMProvider(
                ProviderConfig(
                    name="local",
                    base_url=self.settings.local_llm_base_url,
                    api_key=self.settings.local_llm_api_key,
                    timeout_sec=self.settings.local_llm_timeout_sec,
                    model_research=self.settings.local_llm_model,
                    model_extract=self.settings.local_llm_model,
                )
            )
        return self._local
