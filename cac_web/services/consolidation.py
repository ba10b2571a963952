from __future__ import annotations

import json
import logging
from collections import Counter
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional, Sequence

from cac_web.adapters.llm_providers import LlmProvider
from cac_web.domain.models import (
    ConsolidatedResult,
    Parsed,
    ProviderAttempt,
    ProviderCredential,
    parse_provider_output,
)
from cac_web.services.prompt_resolver import PromptResolver

logger = logging.getLogger(__name__)

INSIGHT_EXCERPT_CHARS = 2000
INSIGHT_FAILURE = {"error": "Failed to generate insights"}


def _first(data: dict, *keys: str) -> Any:
    for k in keys:
        if k in data:
            return data[k]
    return None


def _as_text_list(value: Any) -> list[str]:
    if isinstance(value, str):
        return [value.strip()] if value.strip() else []
    if isinstance(value, list):
        return [str(v).strip() for v in value if isinstance(v, (str, int, float)) and str(v).strip()]
    return []


def _swot_part(data: dict, name: str) -> list[str]:
    direct = _first(data, name, name.capitalize())
    if direct is not None:
        return _as_text_list(direct)
    swot = _first(data, "swot", "SWOT", "swot_analysis", "swotAnalysis")
    if isinstance(swot, dict):
        return _as_text_list(_first(swot, name, name.capitalize()))
    return []


def _market_share(data: dict) -> Optional[float]:
    raw = _first(data, "market_share", "marketShare")
    if isinstance(raw, (int, float)):
        return float(raw)
    if isinstance(raw, str):
        try:
            return float(raw.strip().rstrip("%"))
        except ValueError:
            return None
    return None


def build_consolidated_insights(attempts: Sequence[ProviderAttempt]) -> dict:
    """
    Cross-competitor view over the parsed analyses. Raw answers contribute
    nothing; with no structured data this is the neutral default block.
    """
    parsed = [(a.competitor, a.result.data) for a in attempts
              if isinstance(a.result, Parsed) and isinstance(a.result.data, dict)]

    shares = [(c, s) for c, s in ((c, _market_share(d)) for c, d in parsed) if s is not None]
    leaders: list[str] = []
    if shares:
        top = max(s for _, s in shares)
        leaders = [c for c, s in shares if s == top]

    strength_counts: Counter = Counter()
    display: dict[str, str] = {}
    for _, data in parsed:
        seen = set()
        for s in _swot_part(data, "strengths"):
            key = s.lower()
            if key not in seen:
                seen.add(key)
                strength_counts[key] += 1
                display.setdefault(key, s)
    common_strengths = [display[k] for k, n in strength_counts.items() if n >= 2]

    gaps: list[str] = []
    for _, data in parsed:
        for o in _swot_part(data, "opportunities"):
            if o.lower() not in {g.lower() for g in gaps}:
                gaps.append(o)

    threat_level = "medium"
    for _, data in parsed:
        level = _first(data, "threat_level", "threatLevel")
        if isinstance(level, str) and level.strip().lower() == "high":
            threat_level = "high"
            break

    return {
        "marketLeaders": leaders,
        "commonStrengths": common_strengths,
        "marketGaps": gaps,
        "threatLevel": threat_level,
        "recommendedActions": [],
    }


def consolidate(attempts: Sequence[ProviderAttempt]) -> ConsolidatedResult:
    providers: list[str] = []
    for a in attempts:
        if a.provider not in providers:
            providers.append(a.provider)

    return ConsolidatedResult(
        competitors=[a.competitor for a in attempts],
        analyses=[
            {
                "competitor": a.competitor,
                "provider": a.provider,
                "cost": a.cost,
                "data": a.result.to_json(),
            }
            for a in attempts
        ],
        summary={
            "totalCompetitors": len(attempts),
            "successfulAnalyses": sum(1 for a in attempts if a.success),
            "totalCost": round(sum(a.cost for a in attempts), 6),
            "providers": providers,
        },
        consolidated_insights=build_consolidated_insights(attempts),
        generated_at=datetime.now(timezone.utc).isoformat(),
    )


@dataclass
class InsightGenerator:
    """
    One extra call, always through the OpenAI adapter with the user's OpenAI key.
    Never raises: a failure becomes an error object inside the job result.
    """
    openai: LlmProvider
    prompts: PromptResolver
    provider_name: str = "openai"

    def generate(self, consolidated: dict, credentials: Sequence[ProviderCredential]) -> dict:
        credential = next((c for c in credentials if c.provider == self.provider_name), None)
        if credential is None:
            logger.warning("No %s key available; skipping insight generation", self.provider_name)
            return dict(INSIGHT_FAILURE)

        excerpt = json.dumps(consolidated)[:INSIGHT_EXCERPT_CHARS]
        try:
            prompt = self.prompts.insights_prompt(excerpt)
            text = self.openai.complete(prompt, credential.secret)
        except Exception:
            logger.exception("Failed to generate insights")
            return dict(INSIGHT_FAILURE)

        return parse_provider_output(text).to_json()
