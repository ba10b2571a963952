from __future__ import annotations

import logging
import re
from dataclasses import dataclass

from cac_web.domain.models import AnalysisOptions
from cac_web.repositories.reference_stores import PromptStore

logger = logging.getLogger(__name__)

DEFAULT_ANALYSIS_PROMPT = """Analyze the competitor "{competitor}" and provide comprehensive business intelligence including:
- Company overview and business model
- Market position and competitive advantages
- Financial performance (if available)
- Strengths, weaknesses, opportunities, threats
- Recent news and developments
{financial_analysis}
{sentiment_analysis}
{deep_dive}

Format response as structured JSON."""

DEFAULT_INSIGHTS_PROMPT = """Based on this competitor analysis data: {analysis_data}

Generate actionable business insights including:
- Key competitive threats
- Market opportunities
- Strategic recommendations
- Action items

Format as structured JSON."""

FINANCIAL_CLAUSE = "- Detailed financial analysis"
SENTIMENT_CLAUSE = "- Market sentiment analysis"
DEEP_DIVE_CLAUSE = "- Deep dive into product strategy and roadmap"

_PLACEHOLDER_RE = re.compile(r"\{([a-z_]+)\}")


def fill_template(template: str, values: dict[str, str]) -> str:
    """
    Single pass over the template: each known {name} is replaced by its value,
    unknown ones are left as written. Substituted text is never scanned again.
    """
    def _sub(m: re.Match) -> str:
        key = m.group(1)
        return values[key] if key in values else m.group(0)

    return _PLACEHOLDER_RE.sub(_sub, template or "")


@dataclass
class PromptResolver:
    """
    Admin prompt lookup with a hardcoded fallback.
    A store failure is treated like a missing prompt.
    """
    prompt_store: PromptStore
    analysis_key: str = "competitor_analysis_main"
    insights_key: str = "competitor_analysis_insights"

    def get_prompt(self, prompt_key: str, fallback: str = "") -> str:
        try:
            content = self.prompt_store.get_active_prompt(prompt_key)
        except Exception as e:
            logger.warning("Error fetching admin prompt %r, using fallback: %s", prompt_key, e)
            return fallback

        if not content:
            logger.warning("Admin prompt %r not found, using fallback", prompt_key)
            return fallback

        logger.debug("Using admin prompt %r", prompt_key)
        return content

    def analysis_prompt(self, competitor: str, options: AnalysisOptions) -> str:
        template = self.get_prompt(self.analysis_key, DEFAULT_ANALYSIS_PROMPT)
        return fill_template(
            template,
            {
                "competitor": competitor,
                "financial_analysis": FINANCIAL_CLAUSE if options.include_financials else "",
                "sentiment_analysis": SENTIMENT_CLAUSE if options.include_sentiment else "",
                "deep_dive": DEEP_DIVE_CLAUSE if options.deep_dive else "",
            },
        )

    def insights_prompt(self, analysis_excerpt: str) -> str:
        template = self.get_prompt(self.insights_key, DEFAULT_INSIGHTS_PROMPT)
        return fill_template(template, {"analysis_data": analysis_excerpt})
