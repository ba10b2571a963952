from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional

import pytest
import requests

from cac_web.adapters import llm_providers
from cac_web.adapters.llm_providers import (
    AnthropicProvider,
    GeminiProvider,
    OpenAIProvider,
    PerplexityProvider,
    ProviderRegistry,
)
from cac_web.domain.errors import ProviderError
from cac_web.domain.models import AnalysisOptions, Parsed, ProviderSpec
from cac_web.services.ai_gateway import AIGateway
from cac_web.services.prompt_resolver import PromptResolver
from cac_web.tests.fakes import DEFAULT_SPECS, FakePromptStore, creds


# -----------------------------
# Test doubles
# -----------------------------
@dataclass
class FakeResponse:
    status_code: int = 200
    body: Any = None
    reason: str = "OK"

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300

    def json(self):
        if isinstance(self.body, Exception):
            raise self.body
        return self.body


@dataclass
class RecordingPost:
    response: Optional[FakeResponse] = None
    error: Optional[Exception] = None
    by_host: dict = field(default_factory=dict)
    calls: list = field(default_factory=list)

    def __call__(self, url, **kwargs):
        self.calls.append((url, kwargs))
        if self.error is not None:
            raise self.error
        for host, response in self.by_host.items():
            if f"//{host}/" in url:
                return response
        return self.response


@pytest.fixture
def post(monkeypatch):
    recorder = RecordingPost(response=FakeResponse(body={}))
    monkeypatch.setattr(llm_providers.requests, "post", recorder)
    return recorder


# -----------------------------
# Request / response shapes
# -----------------------------
def test_openai_shape(post):
    post.response = FakeResponse(body={"choices": [{"message": {"content": "hi"}}]})

    out = OpenAIProvider(model="gpt-test", timeout_seconds=12, connect_timeout_seconds=3).complete("prompt", "sk-1")

    assert out == "hi"
    url, kw = post.calls[0]
    assert url == "https://api.openai.com/v1/chat/completions"
    assert kw["headers"]["Authorization"] == "Bearer sk-1"
    assert kw["json"]["model"] == "gpt-test"
    assert kw["json"]["messages"] == [{"role": "user", "content": "prompt"}]
    assert kw["timeout"] == (3, 12)


def test_anthropic_shape(post):
    post.response = FakeResponse(body={"content": [{"type": "text", "text": "hello"}]})

    assert AnthropicProvider().complete("prompt", "ak-1") == "hello"
    url, kw = post.calls[0]
    assert url == "https://api.anthropic.com/v1/messages"
    assert kw["headers"]["x-api-key"] == "ak-1"
    assert kw["headers"]["anthropic-version"] == "2023-06-01"
    assert kw["json"]["max_tokens"] == 4000


def test_gemini_shape(post):
    post.response = FakeResponse(body={"candidates": [{"content": {"parts": [{"text": "gem"}]}}]})

    assert GeminiProvider(model="gemini-x").complete("prompt", "gk-1") == "gem"
    url, kw = post.calls[0]
    assert url.endswith("/models/gemini-x:generateContent")
    assert kw["params"] == {"key": "gk-1"}
    assert kw["json"]["contents"] == [{"parts": [{"text": "prompt"}]}]


def test_perplexity_shape(post):
    post.response = FakeResponse(body={"choices": [{"message": {"content": "pp"}}]})

    assert PerplexityProvider().complete("prompt", "pk-1") == "pp"
    assert post.calls[0][0] == "https://api.perplexity.ai/chat/completions"


# -----------------------------
# Structured error codes
# -----------------------------
@pytest.mark.parametrize(
    "status, code",
    [(401, "invalid_api_key"), (403, "invalid_api_key"), (429, "rate_limited"), (503, "upstream_error"), (400, "http_error")],
)
def test_non_2xx_maps_to_code(post, status, code):
    post.response = FakeResponse(status_code=status, reason="nope")

    with pytest.raises(ProviderError) as exc:
        OpenAIProvider().complete("p", "k")

    assert exc.value.code == code
    assert exc.value.status_code == status
    assert exc.value.provider == "openai"


@pytest.mark.parametrize(
    "error, code",
    [
        (requests.Timeout("slow"), "timeout"),
        (requests.ConnectionError("refused"), "connection_error"),
        (requests.RequestException("other"), "http_error"),
    ],
)
def test_transport_errors_map_to_code(post, error, code):
    post.error = error

    with pytest.raises(ProviderError) as exc:
        AnthropicProvider().complete("p", "k")

    assert exc.value.code == code


@pytest.mark.parametrize(
    "body",
    [
        {"choices": []},
        {"choices": [{"message": {"content": [{"type": "text", "text": "hi"}]}}]},
        {"choices": [{"message": {"content": 42}}]},
    ],
)
def test_unexpected_body_is_bad_response(post, body):
    post.response = FakeResponse(body=body)
    with pytest.raises(ProviderError) as exc:
        OpenAIProvider().complete("p", "k")
    assert exc.value.code == "bad_response"


def test_null_content_is_empty_text(post):
    post.response = FakeResponse(body={"choices": [{"message": {"content": None}}]})
    assert OpenAIProvider().complete("p", "k") == ""


def test_non_text_content_falls_back_to_next_provider(post):
    post.by_host = {
        "api.openai.com": FakeResponse(body={"choices": [{"message": {"content": [{"type": "text", "text": "hi"}]}}]}),
        "api.anthropic.com": FakeResponse(body={"content": [{"type": "text", "text": '{"ok": true}'}]}),
    }
    gateway = AIGateway(
        providers=DEFAULT_SPECS,
        registry=ProviderRegistry({"openai": OpenAIProvider(), "anthropic": AnthropicProvider()}),
        prompts=PromptResolver(prompt_store=FakePromptStore()),
    )

    attempt = gateway.analyze("Acme", creds("openai", "anthropic"), AnalysisOptions())

    assert attempt.provider == "anthropic"
    assert attempt.result == Parsed({"ok": True})
    assert [c[0] for c in post.calls] == [
        "https://api.openai.com/v1/chat/completions",
        "https://api.anthropic.com/v1/messages",
    ]


def test_non_json_body_is_bad_response(post):
    post.response = FakeResponse(body=ValueError("not json"))
    with pytest.raises(ProviderError) as exc:
        PerplexityProvider().complete("p", "k")
    assert exc.value.code == "bad_response"


# -----------------------------
# Registry
# -----------------------------
def test_registry_from_specs_applies_model_and_timeouts():
    registry = ProviderRegistry.from_specs(
        [ProviderSpec("openai", 1, 0.03, "gpt-custom"), ProviderSpec("mystery", 5, 0.0)],
        timeout_seconds=7,
        connect_timeout_seconds=2,
    )

    openai = registry.get("openai")
    assert isinstance(openai, OpenAIProvider)
    assert openai.model == "gpt-custom"
    assert openai.timeout_seconds == 7
    assert "mystery" not in registry


def test_registry_unknown_provider_is_unsupported():
    with pytest.raises(ProviderError) as exc:
        ProviderRegistry({}).get("mistral")
    assert exc.value.code == "unsupported_provider"
