from __future__ import annotations

from types import SimpleNamespace

import pytest

from gatekeeper.llm.providers import LLMProvider, ProviderConfig, parse_json


class DummyAPIError(Exception):
    def __init__(self, message: str, *, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class FakeChatPayload:
    def __init__(self, *, content: str | None):
        self.choices = [SimpleNamespace(message=SimpleNamespace(content=content))]


class FakeChatCompletionsAPI:
    def __init__(self, fn):
        self._fn = fn
        self.calls: list[dict] = []

    def create(self, **kwargs):
        self.calls.append(kwargs)
        return self._fn(**kwargs)


class FakeClient:
    def __init__(self, chat_fn):
        self.chat = SimpleNamespace(completions=FakeChatCompletionsAPI(chat_fn))


def _provider_with_fake_client(fake_client: FakeClient) -> LLMProvider:
    provider = LLMProvider(
        ProviderConfig(
            name="screening",
            base_url="http://localhost:9999/v1",
            api_key="dummy",
            timeout_sec=5,
        )
    )
    provider.client = fake_client
    return provider


def test_complete_json_requests_json_mode() -> None:
    client = FakeClient(lambda **kwargs: FakeChatPayload(content='{"score": 88, "verdict": "Proceed"}'))
    provider = _provider_with_fake_client(client)

    payload = provider.complete_json(model="gemini-2.0-flash", prompt="score this")

    assert payload == {"score": 88, "verdict": "Proceed"}
    call = client.chat.completions.calls[0]
    assert call["response_format"] == {"type": "json_object"}
    assert call["messages"] == [{"role": "user", "content": "score this"}]


def test_complete_json_retries_without_json_mode_when_rejected() -> None:
    def chat_fn(**kwargs):
        if "response_format" in kwargs:
            raise DummyAPIError("response_format is not supported", status_code=400)
        return FakeChatPayload(content='```json\n{"score": 40}\n```')

    client = FakeClient(chat_fn)
    payload = _provider_with_fake_client(client).complete_json(model="m", prompt="p")

    assert payload == {"score": 40}
    assert len(client.chat.completions.calls) == 2


def test_complete_json_propagates_other_errors() -> None:
    def chat_fn(**kwargs):
        raise DummyAPIError("rate limited", status_code=429)

    with pytest.raises(DummyAPIError, match="rate limited"):
        _provider_with_fake_client(FakeClient(chat_fn)).complete_json(model="m", prompt="p")


def test_empty_message_content_parses_to_empty_mapping() -> None:
    provider = _provider_with_fake_client(FakeClient(lambda **kwargs: FakeChatPayload(content=None)))
    assert provider.complete_json(model="m", prompt="p") == {}


def test_parse_json_tolerates_fences_and_rejects_non_objects() -> None:
    assert parse_json('Here you go:\n```json\n{"score": 1}\n```') == {"score": 1}
    assert parse_json("[1, 2]") == {}
    assert parse_json("not json") == {}
    assert parse_json("") == {}
