from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Sequence

from cac_web.adapters.llm_providers import ProviderRegistry
from cac_web.domain.errors import AllProvidersFailedError, ProviderError
from cac_web.domain.models import (
    AnalysisOptions,
    ProviderAttempt,
    ProviderCredential,
    ProviderSpec,
    parse_provider_output,
)
from cac_web.services.prompt_resolver import PromptResolver

logger = logging.getLogger(__name__)


@dataclass
class AIGateway:
    """
    Routes one competitor through the ranked providers the user holds keys for.

    Priority alone decides the order; cost is recorded on the attempt but never
    used for selection. The first non-empty answer wins.
    """
    providers: Sequence[ProviderSpec]
    registry: ProviderRegistry
    prompts: PromptResolver

    def available_providers(self, credentials: Sequence[ProviderCredential]) -> list[ProviderSpec]:
        held = {c.provider for c in credentials}
        candidates = [p for p in self.providers if p.name in held]
        return sorted(candidates, key=lambda p: p.priority)

    def analyze(
        self,
        competitor: str,
        credentials: Sequence[ProviderCredential],
        options: AnalysisOptions,
    ) -> ProviderAttempt:
        secrets = {}
        for c in credentials:
            secrets.setdefault(c.provider, c.secret)

        errors: list[ProviderError] = []
        for spec in self.available_providers(credentials):
            logger.info("Trying %s for %s", spec.name, competitor)
            try:
                prompt = self.prompts.analysis_prompt(competitor, options)
                text = self.registry.get(spec.name).complete(prompt, secrets[spec.name])
                if not (text or "").strip():
                    raise ProviderError(spec.name, "empty_response", f"{spec.name} returned an empty response")
            except ProviderError as e:
                logger.warning("%s failed for %s [%s]: %s", spec.name, competitor, e.code, e)
                errors.append(e)
                continue
            except Exception as e:
                # any adapter fault still falls through to the next provider
                logger.exception("%s raised unexpectedly for %s", spec.name, competitor)
                errors.append(ProviderError(spec.name, "adapter_error", str(e) or e.__class__.__name__))
                continue

            logger.info("%s succeeded for %s", spec.name, competitor)
            return ProviderAttempt(
                competitor=competitor,
                provider=spec.name,
                cost=spec.cost,
                result=parse_provider_output(text),
                success=True,
            )

        raise AllProvidersFailedError(competitor, errors)
