from __future__ import annotations

import asyncio
from types import SimpleNamespace

import pytest

from lexdraft.config import Settings
from lexdraft.errors import ExtractionFailure, GenerationError, MalformedModelOutput
from lexdraft.llm.providers import LLMProvider, ProviderConfig, parse_json
from lexdraft.llm.router import LLMRouter
from lexdraft.types import ModelTurn


class DummyAPIError(Exception):
    def __init__(self, message: str, *, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class FakeResponsePayload:
    def __init__(self, *, output_text: str = ""):
        self.output_text = output_text

    def model_dump(self) -> dict:
        return {"output_text": self.output_text}


class FakeChatPayload:
    def __init__(self, *, content: str | None = "", tool_calls: list | None = None):
        self.choices = [SimpleNamespace(message=SimpleNamespace(content=content, tool_calls=tool_calls))]

    def model_dump(self) -> dict:
        return {"id": "chat_1"}


class FakeAsyncAPI:
    def __init__(self, fn):
        self._fn = fn
        self.calls: list[dict] = []

    async def create(self, **kwargs):
        self.calls.append(kwargs)
        return self._fn(**kwargs)


class FakeClient:
    def __init__(self, *, responses_fn=None, chat_fn=None):
        self.responses = FakeAsyncAPI(responses_fn or (lambda **_: FakeResponsePayload()))
        self.chat = SimpleNamespace(completions=FakeAsyncAPI(chat_fn or (lambda **_: FakeChatPayload())))


def _provider_with_fake_client(fake_client: FakeClient) -> LLMProvider:
    provider = LLMProvider(
        ProviderConfig(
            name="openai",
            base_url="http://localhost:9999/v1",
            api_key="dummy",
            timeout_sec=5,
            model_research="research-model",
            model_extract="extract-model",
        )
    )
    provider.client = fake_client
    return provider


def _tool_call(call_id: str, name: str, arguments: str):
    return SimpleNamespace(id=call_id, function=SimpleNamespace(name=name, arguments=arguments))


def test_complete_step_parses_tool_calls() -> None:
    def chat_fn(**kwargs):
        return FakeChatPayload(
            content=None,
            tool_calls=[
                _tool_call("call_1", "search_vault", '{"query": "awards"}'),
                _tool_call("call_2", "get_client_profile", "{not json"),
            ],
        )

    client = FakeClient(chat_fn=chat_fn)
    provider = _provider_with_fake_client(client)
    tools = [{"type": "function", "function": {"name": "search_vault", "parameters": {}}}]

    turn = asyncio.run(provider.complete_step(messages=[{"role": "user", "content": "go"}], tools=tools))

    assert not turn.is_final
    assert [(call.id, call.name, call.arguments) for call in turn.tool_calls] == [
        ("call_1", "search_vault", {"query": "awards"}),
        ("call_2", "get_client_profile", {}),
    ]
    assert client.chat.completions.calls[0]["model"] == "research-model"
    assert client.chat.completions.calls[0]["tools"] == tools


def test_complete_step_final_answer_has_no_tool_calls() -> None:
    provider = _provider_with_fake_client(FakeClient(chat_fn=lambda **_: FakeChatPayload(content="brief")))

    turn = asyncio.run(provider.complete_step(messages=[], tools=[]))

    assert turn.is_final
    assert turn.content == "brief"
    assert "tools" not in provider.client.chat.completions.calls[0]


def test_structured_output_uses_responses_when_available() -> None:
    client = FakeClient(responses_fn=lambda **_: FakeResponsePayload(output_text='{"summary": "ok"}'))
    provider = _provider_with_fake_client(client)

    payload = asyncio.run(
        provider.complete_structured(prompt="p", schema_name="evaluation", schema={"type": "object"}, system="sys")
    )

    assert payload == {"summary": "ok"}
    request = client.responses.calls[0]
    assert request["model"] == "extract-model"
    assert request["text"]["format"]["name"] == "evaluation"
    assert request["input"][0]["role"] == "system"
    assert client.chat.completions.calls == []


def test_structured_output_falls_back_to_chat_on_responses_not_found() -> None:
    def responses_fn(**kwargs):
        raise DummyAPIError("Not found", status_code=404)

    client = FakeClient(responses_fn=responses_fn, chat_fn=lambda **_: FakeChatPayload(content='{"status":"ok"}'))
    provider = _provider_with_fake_client(client)

    payload = asyncio.run(provider.complete_structured(prompt="p", schema_name="s", schema={}))

    assert payload == {"status": "ok"}
    assert client.chat.completions.calls[0]["response_format"]["type"] == "json_schema"


def test_structured_output_raises_other_errors() -> None:
    def responses_fn(**kwargs):
        raise DummyAPIError("rate limited", status_code=429)

    provider = _provider_with_fake_client(FakeClient(responses_fn=responses_fn))

    with pytest.raises(DummyAPIError, match="rate limited"):
        asyncio.run(provider.complete_structured(prompt="p", schema_name="s", schema={}))


def test_parse_json_handles_fences_and_rejects_non_objects() -> None:
    assert parse_json('```json\n{"a": 1}\n```') == {"a": 1}
    for garbage in ("[1, 2]", "not json", "   "):
        with pytest.raises(MalformedModelOutput):
            parse_json(garbage)


def test_structured_output_that_is_not_json_raises() -> None:
    client = FakeClient(responses_fn=lambda **_: FakeResponsePayload(output_text="Sure! Here are the sections:"))
    provider = _provider_with_fake_client(client)

    with pytest.raises(MalformedModelOutput):
        asyncio.run(provider.complete_structured(prompt="p", schema_name="s", schema={}))


class FakeProvider:
    def __init__(self, name: str, *, fail: bool = False, garbled: bool = False):
        self.config = SimpleNamespace(name=name)
        self.fail = fail
        self.garbled = garbled
        self.calls = 0

    async def complete_step(self, *, messages, tools):
        self.calls += 1
        if self.fail:
            raise RuntimeError(f"{self.config.name} is down")
        return ModelTurn(content=f"from {self.config.name}")

    async def complete_structured(self, *, prompt, schema_name, schema, system=""):
        self.calls += 1
        if self.fail:
            raise RuntimeError(f"{self.config.name} is down")
        if self.garbled:
            return parse_json("I could not produce JSON for this.")
        return {"provider": self.config.name}


def _router(settings: Settings, openai: FakeProvider, local: FakeProvider) -> LLMRouter:
    return LLMRouter(settings=settings, pool=SimpleNamespace(openai=lambda: openai, local=lambda: local))


def test_router_falls_back_to_the_second_provider() -> None:
    openai, local = FakeProvider("openai", fail=True), FakeProvider("local")
    router = _router(Settings(openai_api_key="sk-test", local_llm_enabled=True), openai, local)

    turn = asyncio.run(router.step(messages=[], tools=[]))

    assert turn.content == "from local"
    assert (openai.calls, local.calls) == (1, 1)


def test_router_prefers_local_when_configured_for_extraction() -> None:
    openai, local = FakeProvider("openai"), FakeProvider("local")
    settings = Settings(openai_api_key="sk-test", local_llm_enabled=True, llm_router_extract_provider="local")

    payload = asyncio.run(_router(settings, openai, local).extract(prompt="p", schema_name="s", schema={}))

    assert payload == {"provider": "local"}
    assert openai.calls == 0


def test_router_raises_generation_error_when_every_provider_fails() -> None:
    openai, local = FakeProvider("openai", fail=True), FakeProvider("local", fail=True)
    router = _router(Settings(openai_api_key="sk-test", local_llm_enabled=True), openai, local)

    with pytest.raises(GenerationError, match="openai is down; local: local is down"):
        asyncio.run(router.extract(prompt="p", schema_name="s", schema={}))


def test_router_without_configured_providers_raises() -> None:
    openai, local = FakeProvider("openai"), FakeProvider("local")
    router = _router(Settings(openai_api_key="", local_llm_enabled=False), openai, local)

    with pytest.raises(GenerationError, match="no model provider is configured"):
        asyncio.run(router.step(messages=[], tools=[]))
    assert openai.calls == 0


def test_router_falls_back_when_structured_output_is_garbled() -> None:
    openai, local = FakeProvider("openai", garbled=True), FakeProvider("local")
    router = _router(Settings(openai_api_key="sk-test", local_llm_enabled=True), openai, local)

    payload = asyncio.run(router.extract(prompt="p", schema_name="s", schema={}))

    assert payload == {"provider": "local"}
    assert (openai.calls, local.calls) == (1, 1)


def test_router_reports_garbled_output_as_extraction_failure() -> None:
    openai, local = FakeProvider("openai", garbled=True), FakeProvider("local", fail=True)
    router = _router(Settings(openai_api_key="sk-test", local_llm_enabled=True), openai, local)

    with pytest.raises(ExtractionFailure, match="openai: model output is not valid JSON"):
        asyncio.run(router.extract(prompt="p", schema_name="s", schema={}))
