from __future__ import annotations

from typing import Optional


class AnalysisError(Exception):
    """Base for errors raised by the analysis service."""


class ValidationError(AnalysisError):
    pass


class NotFoundError(AnalysisError):
    pass


class NoCredentialsError(AnalysisError):
    def __init__(self, message: str = "No active API keys found"):
        super().__init__(message)


class ProviderError(AnalysisError):
    """
    Failure of a single provider call. `code` is one of:
    invalid_api_key, rate_limited, upstream_error, http_error, timeout,
    connection_error, bad_response, empty_response, unsupported_provider,
    adapter_error.
    """

    def __init__(self, provider: str, code: str, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.provider = provider
        self.code = code
        self.status_code = status_code


class AllProvidersFailedError(AnalysisError):
    def __init__(self, competitor: str, errors: Optional[list[ProviderError]] = None):
        super().__init__(f"All AI providers failed for {competitor}")
        self.competitor = competitor
        self.errors = list(errors or [])
