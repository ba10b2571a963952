from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Mapping, Optional

import requests

from cac_web.domain.errors import ProviderError

logger = logging.getLogger(__name__)

DEFAULT_TEMPERATURE = 0.3
DEFAULT_MAX_TOKENS = 4000


def _error_code_for_status(status_code: int) -> str:
    if status_code in (401, 403):
        return "invalid_api_key"
    if status_code == 429:
        return "rate_limited"
    if status_code >= 500:
        return "upstream_error"
    return "http_error"


class LlmProvider:
    """Strategy interface: one vendor, one request/response call."""
    name = ""

    def complete(self, prompt: str, secret: str) -> str:
        raise NotImplementedError


@dataclass(frozen=True)
class HttpLlmProvider(LlmProvider):
    """
    Shared HTTP plumbing for the vendor adapters.
    No retry, no backoff: a non-2xx, a timeout or an unreadable body is a
    ProviderError and the gateway moves on to the next provider.
    """
    model: str = ""
    timeout_seconds: float = 60
    connect_timeout_seconds: float = 10
    base_url: str = ""

    def _post(
        self,
        url: str,
        payload: dict,
        headers: Mapping[str, str],
        params: Optional[Mapping[str, str]] = None,
    ) -> Any:
        try:
            resp = requests.post(
                url,
                json=payload,
                headers=dict(headers),
                params=params,
                timeout=(self.connect_timeout_seconds, self.timeout_seconds),
            )
        except requests.Timeout as e:
            raise ProviderError(self.name, "timeout", f"{self.name} request timed out") from e
        except requests.ConnectionError as e:
            raise ProviderError(self.name, "connection_error", f"{self.name} connection failed: {e}") from e
        except requests.RequestException as e:
            raise ProviderError(self.name, "http_error", f"{self.name} request failed: {e}") from e

        if not resp.ok:
            raise ProviderError(
                self.name,
                _error_code_for_status(resp.status_code),
                f"{self.name} API error: {resp.status_code} {resp.reason}",
                status_code=resp.status_code,
            )

        try:
            return resp.json()
        except ValueError as e:
            raise ProviderError(self.name, "bad_response", f"{self.name} returned a non-JSON body") from e

    def _extract(self, extractor, body: Any) -> str:
        try:
            text = extractor(body)
        except (KeyError, IndexError, TypeError) as e:
            raise ProviderError(self.name, "bad_response", f"{self.name} response had an unexpected shape") from e

        if text is None:
            return ""
        if not isinstance(text, str):
            raise ProviderError(
                self.name,
                "bad_response",
                f"{self.name} response content was {type(text).__name__}, not text",
            )
        return text


@dataclass(frozen=True)
class OpenAIProvider(HttpLlmProvider):
    name = "openai"
    model: str = "gpt-4o"
    base_url: str = "https://api.openai.com/v1/chat/completions"

    def complete(self, prompt: str, secret: str) -> str:
        body = self._post(
            self.base_url,
            {
                "model": self.model,
                "messages": [{"role": "user", "content": prompt}],
                "temperature": DEFAULT_TEMPERATURE,
                "max_tokens": DEFAULT_MAX_TOKENS,
            },
            {"Authorization": f"Bearer {secret}", "Content-Type": "application/json"},
        )
        return self._extract(lambda b: b["choices"][0]["message"]["content"], body)


@dataclass(frozen=True)
class AnthropicProvider(HttpLlmProvider):
    name = "anthropic"
    model: str = "claude-3-5-sonnet-20241022"
    base_url: str = "https://api.anthropic.com/v1/messages"
    api_version: str = "2023-06-01"

    def complete(self, prompt: str, secret: str) -> str:
        body = self._post(
            self.base_url,
            {
                "model": self.model,
                "max_tokens": DEFAULT_MAX_TOKENS,
                "messages": [{"role": "user", "content": prompt}],
            },
            {
                "x-api-key": secret,
                "anthropic-version": self.api_version,
                "Content-Type": "application/json",
            },
        )
        return self._extract(lambda b: b["content"][0]["text"], body)


@dataclass(frozen=True)
class GeminiProvider(HttpLlmProvider):
    name = "gemini"
    model: str = "gemini-1.5-pro"
    base_url: str = "https://generativelanguage.googleapis.com/v1beta/models"

    def complete(self, prompt: str, secret: str) -> str:
        body = self._post(
            f"{self.base_url}/{self.model}:generateContent",
            {
                "contents": [{"parts": [{"text": prompt}]}],
                "generationConfig": {
                    "temperature": DEFAULT_TEMPERATURE,
                    "maxOutputTokens": DEFAULT_MAX_TOKENS,
                },
            },
            {"Content-Type": "application/json"},
            params={"key": secret},
        )
        return self._extract(lambda b: b["candidates"][0]["content"]["parts"][0]["text"], body)


@dataclass(frozen=True)
class PerplexityProvider(HttpLlmProvider):
    name = "perplexity"
    model: str = "llama-3.1-sonar-large-128k-online"
    base_url: str = "https://api.perplexity.ai/chat/completions"

    def complete(self, prompt: str, secret: str) -> str:
        body = self._post(
            self.base_url,
            {
                "model": self.model,
                "messages": [{"role": "user", "content": prompt}],
                "temperature": DEFAULT_TEMPERATURE,
                "max_tokens": DEFAULT_MAX_TOKENS,
            },
            {"Authorization": f"Bearer {secret}", "Content-Type": "application/json"},
        )
        return self._extract(lambda b: b["choices"][0]["message"]["content"], body)


PROVIDER_CLASSES = {
    cls.name: cls
    for cls in (OpenAIProvider, AnthropicProvider, GeminiProvider, PerplexityProvider)
}


class ProviderRegistry:
    """Maps provider name -> adapter instance."""

    def __init__(self, providers: Mapping[str, LlmProvider]):
        self._providers = dict(providers)

    @classmethod
    def from_specs(cls, specs, timeout_seconds: float, connect_timeout_seconds: float) -> "ProviderRegistry":
        providers: dict[str, LlmProvider] = {}
        for spec in specs:
            provider_cls = PROVIDER_CLASSES.get(spec.name)
            if provider_cls is None:
                logger.warning("No adapter for configured provider %r; it will be skipped", spec.name)
                continue
            kwargs = dict(timeout_seconds=timeout_seconds, connect_timeout_seconds=connect_timeout_seconds)
            if spec.model:
                kwargs["model"] = spec.model
            providers[spec.name] = provider_cls(**kwargs)
        return cls(providers)

    def get(self, name: str) -> LlmProvider:
        provider = self._providers.get(name)
        if provider is None:
            raise ProviderError(name, "unsupported_provider", f"Unsupported provider: {name}")
        return provider

    def __contains__(self, name: str) -> bool:
        return name in self._providers
