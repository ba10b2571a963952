from __future__ import annotations

import csv
import io
import json
from dataclasses import dataclass

from cac_web.domain.errors import ValidationError
from cac_web.domain.models import AnalysisJob

CSV_HEADERS = ["competitor", "status", "created_at"]
SUPPORTED_FORMATS = ("json", "csv")


@dataclass(frozen=True)
class ExportPayload:
    body: str
    content_type: str


def job_to_csv(job: AnalysisJob) -> str:
    """
    Minimal projection: one line per analysed competitor carrying the job's
    status and creation time. Not a full data export.
    """
    row = job.to_dict()
    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n")
    writer.writerow(CSV_HEADERS)

    analyses = (job.analysis_data or {}).get("analyses") or []
    for item in analyses:
        competitor = item.get("competitor", "") if isinstance(item, dict) else ""
        writer.writerow([competitor, row["status"], row["created_at"] or ""])

    return buf.getvalue().rstrip("\n")


def job_to_json(job: AnalysisJob) -> str:
    return json.dumps(job.to_dict(), indent=2)


def export_job(job: AnalysisJob, fmt: str) -> ExportPayload:
    if fmt is None or fmt == "":
        fmt = "json"
    if not isinstance(fmt, str):
        raise ValidationError("Unsupported format")
    fmt = fmt.strip().lower()
    if fmt == "json":
        return ExportPayload(job_to_json(job), "application/json")
    if fmt == "csv":
        return ExportPayload(job_to_csv(job), "text/csv")
    raise ValidationError("Unsupported format")
