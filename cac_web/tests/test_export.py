from __future__ import annotations

import csv
import io
import json
from datetime import datetime

import pytest

from cac_web.domain.errors import ValidationError
from cac_web.domain.models import AnalysisJob
from cac_web.services.export import export_job, job_to_csv


def completed_job(**overrides) -> AnalysisJob:
    fields = dict(
        id="job-1",
        user_id="user-1",
        session_id="sess-1",
        competitors=["Acme", "Globex, Inc."],
        status="completed",
        progress_percentage=100,
        analysis_data={
            "competitors": ["Acme", "Globex, Inc."],
            "analyses": [
                {"competitor": "Acme", "provider": "openai", "cost": 0.03, "data": {}},
                {"competitor": "Globex, Inc.", "provider": "gemini", "cost": 0.02, "data": {"raw": "x"}},
            ],
        },
        business_insights={"actions": []},
        total_competitors=2,
        created_at=datetime(2025, 1, 2, 3, 4, 5),
    )
    fields.update(overrides)
    return AnalysisJob(**fields)


def test_csv_header_then_one_line_per_competitor():
    text = job_to_csv(completed_job())
    lines = text.split("\n")

    assert lines[0] == "competitor,status,created_at"
    assert len(lines) == 3
    rows = list(csv.reader(io.StringIO(text)))
    assert rows[1] == ["Acme", "completed", "2025-01-02T03:04:05"]
    assert rows[2][0] == "Globex, Inc."


def test_csv_for_job_without_results_is_header_only():
    assert job_to_csv(completed_job(status="running", analysis_data=None)) == "competitor,status,created_at"


def test_json_export_is_full_row():
    payload = export_job(completed_job(), "json")

    assert payload.content_type == "application/json"
    row = json.loads(payload.body)
    assert row["id"] == "job-1"
    assert row["status"] == "completed"
    assert row["analysis_data"]["analyses"][1]["data"] == {"raw": "x"}
    assert row["business_insights"] == {"actions": []}
    assert row["options"] == {"includeFinancials": False, "includeSentiment": False, "deepDive": False}


def test_csv_content_type():
    assert export_job(completed_job(), "CSV").content_type == "text/csv"


def test_unsupported_format():
    with pytest.raises(ValidationError, match="Unsupported format"):
        export_job(completed_job(), "xml")


@pytest.mark.parametrize("fmt", [5, ["csv"], {"format": "csv"}])
def test_non_string_format_is_unsupported(fmt):
    with pytest.raises(ValidationError, match="Unsupported format"):
        export_job(completed_job(), fmt)


def test_missing_format_defaults_to_json():
    assert export_job(completed_job(), None).content_type == "application/json"
