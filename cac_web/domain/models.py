######## models.py
########

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional, Union

STATUS_RUNNING = "running"
STATUS_COMPLETED = "completed"
STATUS_FAILED = "failed"

TERMINAL_STATUSES = frozenset({STATUS_COMPLETED, STATUS_FAILED})


def utcnow() -> datetime:
    # stored timestamps are naive UTC
    return datetime.now(timezone.utc).replace(tzinfo=None)


@dataclass(frozen=True)
class AnalysisOptions:
    include_financials: bool = False
    include_sentiment: bool = False
    deep_dive: bool = False

    @classmethod
    def from_request(cls, raw: Optional[dict]) -> "AnalysisOptions":
        raw = raw if isinstance(raw, dict) else {}
        return cls(
            include_financials=raw.get("includeFinancials") is True,
            include_sentiment=raw.get("includeSentiment") is True,
            deep_dive=raw.get("deepDive") is True,
        )

    def to_dict(self) -> dict:
        return {
            "includeFinancials": self.include_financials,
            "includeSentiment": self.include_sentiment,
            "deepDive": self.deep_dive,
        }


@dataclass(frozen=True)
class AuthUser:
    id: str
    email: str = ""


@dataclass(frozen=True)
class ProviderCredential:
    provider: str
    secret: str                 # opaque; handed to the adapter as-is
    is_active: bool = True
    status: str = "active"


@dataclass(frozen=True)
class ProviderSpec:
    name: str
    priority: int
    cost: float                 # nominal USD per call, informational only
    model: str = ""


# -----------------------------
# Provider output: Parsed | Raw
# -----------------------------
@dataclass(frozen=True)
class Parsed:
    data: Any

    def to_json(self) -> Any:
        return self.data


@dataclass(frozen=True)
class Raw:
    text: str

    def to_json(self) -> Any:
        return {"raw": self.text}


ProviderOutput = Union[Parsed, Raw]

_FENCE_RE = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", flags=re.DOTALL | re.IGNORECASE)


def parse_provider_output(text: Optional[str]) -> ProviderOutput:
    """
    LLM output is not guaranteed to be JSON. Objects and arrays are kept as
    Parsed (a ```json fence around them is tolerated); anything else is Raw.
    """
    text = text or ""
    candidate = text.strip()
    m = _FENCE_RE.match(candidate)
    if m:
        candidate = m.group(1)

    try:
        data = json.loads(candidate)
    except ValueError:
        return Raw(text)

    if isinstance(data, (dict, list)):
        return Parsed(data)
    return Raw(text)


@dataclass(frozen=True)
class ProviderAttempt:
    competitor: str
    provider: str
    cost: float
    result: ProviderOutput
    success: bool = True


@dataclass(frozen=True)
class ConsolidatedResult:
    competitors: list[str]
    analyses: list[dict]
    summary: dict
    consolidated_insights: dict
    generated_at: str

    def to_dict(self) -> dict:
        return {
            "competitors": list(self.competitors),
            "analyses": list(self.analyses),
            "summary": dict(self.summary),
            "consolidatedInsights": dict(self.consolidated_insights),
            "generatedAt": self.generated_at,
        }


def _iso(dt: Optional[datetime]) -> Optional[str]:
    return dt.isoformat() if dt else None


@dataclass(frozen=True)
class AnalysisJob:
    id: str
    user_id: str
    session_id: str
    competitors: list[str]
    analysis_type: str = "comprehensive"
    options: AnalysisOptions = field(default_factory=AnalysisOptions)
    status: str = STATUS_RUNNING
    progress_percentage: int = 0
    current_step: str = ""
    analysis_data: Optional[dict] = None
    business_insights: Optional[dict] = None
    error_message: Optional[str] = None
    total_competitors: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def progress_view(self) -> dict:
        return {
            "id": self.id,
            "status": self.status,
            "progress_percentage": self.progress_percentage,
            "current_step": self.current_step,
            "error_message": self.error_message,
        }

    def to_dict(self) -> dict:
        """The stored row, JSON columns decoded."""
        return {
            "id": self.id,
            "user_id": self.user_id,
            "session_id": self.session_id,
            "competitors": list(self.competitors),
            "analysis_type": self.analysis_type,
            "options": self.options.to_dict(),
            "status": self.status,
            "progress_percentage": self.progress_percentage,
            "current_step": self.current_step,
            "analysis_data": self.analysis_data,
            "business_insights": self.business_insights,
            "error_message": self.error_message,
            "total_competitors": self.total_competitors,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
            "completed_at": _iso(self.completed_at),
        }
