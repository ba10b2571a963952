from __future__ import annotations

import json

import pytest

from cac_web.domain.models import Parsed, ProviderAttempt, Raw, parse_provider_output
from cac_web.services.consolidation import (
    INSIGHT_EXCERPT_CHARS,
    InsightGenerator,
    build_consolidated_insights,
    consolidate,
)
from cac_web.services.prompt_resolver import PromptResolver
from cac_web.tests.fakes import FakePromptStore, ScriptedProvider, creds


def attempt(competitor, provider="openai", cost=0.03, result=None) -> ProviderAttempt:
    return ProviderAttempt(competitor=competitor, provider=provider, cost=cost, result=result or Parsed({}))


# -----------------------------
# parse_provider_output
# -----------------------------
@pytest.mark.parametrize(
    "text, expected",
    [
        ('{"a": 1}', Parsed({"a": 1})),
        ("[1, 2]", Parsed([1, 2])),
        ('```json\n{"a": 1}\n```', Parsed({"a": 1})),
        ("not json", Raw("not json")),
        ("42", Raw("42")),
        ("", Raw("")),
        (None, Raw("")),
    ],
)
def test_parse_provider_output(text, expected):
    assert parse_provider_output(text) == expected


def test_raw_serialises_as_raw_object():
    assert Raw("hello").to_json() == {"raw": "hello"}


# -----------------------------
# consolidate
# -----------------------------
def test_consolidate_summary_and_analyses():
    result = consolidate([
        attempt("Acme", "openai", 0.03, Parsed({"x": 1})),
        attempt("Globex", "anthropic", 0.025, Raw("free text")),
        attempt("Initech", "openai", 0.03),
    ]).to_dict()

    assert result["competitors"] == ["Acme", "Globex", "Initech"]
    assert result["analyses"][0] == {"competitor": "Acme", "provider": "openai", "cost": 0.03, "data": {"x": 1}}
    assert result["analyses"][1]["data"] == {"raw": "free text"}
    assert result["summary"]["totalCompetitors"] == 3
    assert result["summary"]["successfulAnalyses"] == 3
    assert result["summary"]["totalCost"] == pytest.approx(0.085)
    assert result["summary"]["providers"] == ["openai", "anthropic"]
    assert "generatedAt" in result
    json.dumps(result)  # storable as-is


def test_consolidated_insights_default_block():
    assert build_consolidated_insights([attempt("Acme", result=Raw("x"))]) == {
        "marketLeaders": [],
        "commonStrengths": [],
        "marketGaps": [],
        "threatLevel": "medium",
        "recommendedActions": [],
    }


def test_consolidated_insights_from_parsed_data():
    block = build_consolidated_insights([
        attempt("Acme", result=Parsed({
            "market_share": "35%",
            "strengths": ["Brand", "Distribution"],
            "opportunities": ["EMEA"],
        })),
        attempt("Globex", result=Parsed({
            "marketShare": 20,
            "swot": {"strengths": ["brand"], "opportunities": ["emea", "SMB"]},
            "threatLevel": "High",
        })),
    ])

    assert block["marketLeaders"] == ["Acme"]
    assert block["commonStrengths"] == ["Brand"]
    assert block["marketGaps"] == ["EMEA", "SMB"]
    assert block["threatLevel"] == "high"


# -----------------------------
# InsightGenerator
# -----------------------------
def make_generator(reply) -> tuple[InsightGenerator, ScriptedProvider]:
    openai = ScriptedProvider("openai", reply)
    return InsightGenerator(openai=openai, prompts=PromptResolver(prompt_store=FakePromptStore())), openai


def test_insights_single_call_with_truncated_excerpt():
    gen, openai = make_generator('{"actions": ["price cut"]}')
    consolidated = {"competitors": ["Acme"], "blob": "x" * 5000}

    out = gen.generate(consolidated, creds("anthropic", "openai"))

    assert out == {"actions": ["price cut"]}
    assert len(openai.calls) == 1
    prompt, secret = openai.calls[0]
    assert secret == "openai-key"
    excerpt = json.dumps(consolidated)[:INSIGHT_EXCERPT_CHARS]
    assert excerpt in prompt
    assert json.dumps(consolidated)[:INSIGHT_EXCERPT_CHARS + 1] not in prompt


def test_insights_raw_reply_wrapped():
    gen, _ = make_generator("Cut prices.")
    assert gen.generate({}, creds("openai")) == {"raw": "Cut prices."}


def test_insights_error_returns_error_object():
    gen, _ = make_generator(RuntimeError("down"))
    assert gen.generate({}, creds("openai")) == {"error": "Failed to generate insights"}


def test_insights_without_openai_key_skips_call():
    gen, openai = make_generator("{}")
    assert gen.generate({}, creds("gemini")) == {"error": "Failed to generate insights"}
    assert openai.calls == []
