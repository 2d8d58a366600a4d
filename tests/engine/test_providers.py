"""AI provider adapter tests against a mocked HTTP transport."""

from __future__ import annotations

import json

import httpx
import pytest

from smartlinker.engine.cache import SuggestionCache, make_cache_key
from smartlinker.engine.errors import InvalidResponse, NoApiKey, ProviderError, RateLimitExceeded
from smartlinker.engine.providers import (
    DeepSeekProvider,
    GeminiProvider,
    OpenAIProvider,
    build_provider,
    parse_suggestion_payload,
    strip_code_fences,
)
from smartlinker.engine.ratelimit import SlidingWindowCounter

from .conftest import chat_reply, mock_client

REPLY = {"suggestions": [{"section_index": 0, "target_post_id": 5, "anchor_text": "pour over", "relevance_score": 0.9}]}


class Recorder:
    """Transport handler that records requests and replays canned responses."""

    def __init__(self, *responses: httpx.Response) -> None:
        self.responses = list(responses)
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.responses.pop(0)


def test_openai_request_shape_and_parsed_reply(engine_config, local_backend):
    recorder = Recorder(chat_reply(json.dumps(REPLY)))
    provider = build_provider(engine_config, "sk-test", name="openai", client=mock_client(recorder))

    assert provider.complete("the prompt") == REPLY

    request = recorder.requests[0]
    assert request.url == "https://api.openai.com/v1/chat/completions"
    assert request.headers["Authorization"] == "Bearer sk-test"
    body = json.loads(request.content)
    assert body["model"] == "gpt-4o-mini"
    assert body["messages"][0]["role"] == "system"
    assert body["messages"][1] == {"role": "user", "content": "the prompt"}
    assert body["temperature"] == 0.8
    assert body["max_tokens"] == 1500
    assert body["frequency_penalty"] == 0.3
    assert body["presence_penalty"] == 0.3


def test_deepseek_uses_its_own_endpoint(engine_config):
    recorder = Recorder(chat_reply(json.dumps(REPLY)))
    provider = build_provider(engine_config, "ds-key", name="deepseek", client=mock_client(recorder))
    assert isinstance(provider, DeepSeekProvider)

    provider.complete("prompt")
    request = recorder.requests[0]
    assert request.url == "https://api.deepseek.com/v1/chat/completions"
    body = json.loads(request.content)
    assert body["model"] == "deepseek-chat"
    assert body["temperature"] == 0.7
    assert "frequency_penalty" not in body


def test_gemini_generate_content(engine_config):
    recorder = Recorder(
        httpx.Response(200, json={"candidates": [{"content": {"parts": [{"text": json.dumps(REPLY)}]}}]})
    )
    provider = build_provider(engine_config, "g-key", name="gemini", client=mock_client(recorder))
    assert isinstance(provider, GeminiProvider)

    assert provider.complete("prompt") == REPLY
    request = recorder.requests[0]
    assert request.url.path == "/v1beta/models/gemini-1.5-flash:generateContent"
    assert request.headers["x-goog-api-key"] == "g-key"
    body = json.loads(request.content)
    assert body["contents"][0]["parts"][0]["text"] == "prompt"
    assert body["generationConfig"]["responseMimeType"] == "application/json"
    assert "systemInstruction" in body


def test_non_json_reply_is_invalid_and_not_cached(local_backend):
    cache = SuggestionCache(local_backend)
    recorder = Recorder(httpx.Response(200, text="not json"))
    provider = OpenAIProvider("sk-test", cache=cache, client=mock_client(recorder))

    with pytest.raises(InvalidResponse):
        provider.complete("prompt")
    assert local_backend.get(make_cache_key("prompt", "gpt-4o-mini")) is None


def test_reply_without_suggestions_array_is_invalid(local_backend):
    cache = SuggestionCache(local_backend)
    recorder = Recorder(chat_reply('{"links": []}'))
    provider = OpenAIProvider("sk-test", cache=cache, client=mock_client(recorder))

    with pytest.raises(InvalidResponse) as excinfo:
        provider.complete("prompt")
    assert excinfo.value.raw == '{"links": []}'
    assert cache.get("prompt", "gpt-4o-mini") is None


def test_fenced_reply_is_parsed():
    recorder = Recorder(chat_reply("```json\n" + json.dumps(REPLY) + "\n```"))
    provider = OpenAIProvider("sk-test", client=mock_client(recorder))
    assert provider.complete("prompt") == REPLY


def test_cached_reply_skips_network_and_rate_limit(local_backend):
    cache = SuggestionCache(local_backend)
    limiter = SlidingWindowCounter(local_backend, limit=1, window=3600)
    recorder = Recorder(chat_reply(json.dumps(REPLY)))
    provider = OpenAIProvider("sk-test", cache=cache, limiter=limiter, client=mock_client(recorder))

    assert provider.complete("prompt") == REPLY
    assert provider.complete("prompt") == {"suggestions": REPLY["suggestions"]}
    assert len(recorder.requests) == 1


def test_rate_limit_is_checked_before_any_request(local_backend):
    limiter = SlidingWindowCounter(local_backend, limit=1, window=3600)
    recorder = Recorder(chat_reply(json.dumps(REPLY)), chat_reply(json.dumps(REPLY)))
    provider = OpenAIProvider("sk-test", limiter=limiter, client=mock_client(recorder))

    provider.complete("first prompt")
    with pytest.raises(RateLimitExceeded):
        provider.complete("second prompt")
    assert len(recorder.requests) == 1


def test_missing_api_key_raises_before_any_request():
    recorder = Recorder()
    provider = OpenAIProvider("", client=mock_client(recorder))
    assert not provider.is_configured()
    with pytest.raises(NoApiKey):
        provider.complete("prompt")
    assert recorder.requests == []


def test_http_error_surfaces_vendor_message():
    recorder = Recorder(httpx.Response(401, json={"error": {"message": "Incorrect API key provided"}}))
    provider = OpenAIProvider("sk-bad", client=mock_client(recorder))
    with pytest.raises(ProviderError, match="Incorrect API key provided"):
        provider.complete("prompt")


def test_transport_error_is_provider_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    provider = OpenAIProvider("sk-test", client=mock_client(handler))
    with pytest.raises(ProviderError):
        provider.complete("prompt")


def test_empty_content_is_invalid():
    recorder = Recorder(httpx.Response(200, json={"choices": []}))
    provider = OpenAIProvider("sk-test", client=mock_client(recorder))
    with pytest.raises(InvalidResponse):
        provider.complete("prompt")


def test_openai_model_list_is_filtered_and_cached(local_backend):
    recorder = Recorder(
        httpx.Response(200, json={"data": [{"id": "gpt-4o"}, {"id": "whisper-1"}, {"id": "gpt-4o-mini"}]})
    )
    provider = OpenAIProvider("sk-test", model_store=local_backend, client=mock_client(recorder))

    assert provider.list_models() == {"gpt-4o": "gpt-4o", "gpt-4o-mini": "gpt-4o-mini"}
    assert provider.list_models() == {"gpt-4o": "gpt-4o", "gpt-4o-mini": "gpt-4o-mini"}
    assert len(recorder.requests) == 1
    assert recorder.requests[0].url == "https://api.openai.com/v1/models"


def test_model_list_failure_uses_fallback_without_caching(local_backend):
    recorder = Recorder(httpx.Response(500, json={}), httpx.Response(500, json={}))
    provider = OpenAIProvider("sk-test", model_store=local_backend, client=mock_client(recorder))

    assert provider.list_models() == OpenAIProvider.fallback_models
    assert provider.list_models() == OpenAIProvider.fallback_models
    assert len(recorder.requests) == 2


def test_gemini_models_require_generate_content(local_backend):
    recorder = Recorder(
        httpx.Response(
            200,
            json={
                "models": [
                    {
                        "name": "models/gemini-1.5-pro",
                        "displayName": "Gemini 1.5 Pro",
                        "supportedGenerationMethods": ["generateContent", "countTokens"],
                    },
                    {"name": "models/embedding-001", "supportedGenerationMethods": ["embedContent"]},
                ]
            },
        )
    )
    provider = GeminiProvider("g-key", model_store=local_backend, client=mock_client(recorder))
    assert provider.list_models() == {"gemini-1.5-pro": "Gemini 1.5 Pro"}


def test_resolve_model_falls_back_to_default(local_backend):
    recorder = Recorder(httpx.Response(200, json={"data": [{"id": "gpt-4o"}]}))
    provider = OpenAIProvider("sk-test", "gpt-legacy", model_store=local_backend, client=mock_client(recorder))
    assert provider.resolve_model() == "gpt-4o-mini"
    assert provider.resolve_model("gpt-4o") == "gpt-4o"


def test_build_provider_attaches_hourly_limit(engine_config, local_backend):
    provider = build_provider(engine_config, "sk-test", name="openai", counter_store=local_backend)
    assert provider.limiter is not None
    assert provider.limiter.limit == 10

    deepseek = build_provider(engine_config, "ds-key", name="deepseek", counter_store=local_backend)
    assert deepseek.limiter is None


def test_unknown_provider_name_is_rejected(engine_config):
    with pytest.raises(ValueError):
        build_provider(engine_config, "key", name="llama")


def test_payload_helpers():
    assert strip_code_fences("```json\n{}\n```") == "{}"
    assert parse_suggestion_payload('```\n{"suggestions": []}\n```') == {"suggestions": []}
    with pytest.raises(InvalidResponse):
        parse_suggestion_payload("[]")
