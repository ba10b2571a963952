from __future__ import annotations

import json
from dataclasses import replace
from datetime import datetime
from typing import Optional

from cac_web.adapters.sqlserver_connection import (
    SqlServerConnection,
    dumps_or_none,
    loads_or_none,
    row_get,
)
from cac_web.domain.models import (
    STATUS_COMPLETED,
    STATUS_FAILED,
    STATUS_RUNNING,
    AnalysisJob,
    AnalysisOptions,
    utcnow,
)
from cac_web.repositories.analysis_repository import AnalysisRepository

_COLUMNS = """
    id,
    user_id,
    session_id,
    competitors,
    analysis_type,
    options,
    status,
    progress_percentage,
    current_step,
    analysis_data,
    business_insights,
    error_message,
    total_competitors,
    created_at,
    updated_at,
    completed_at
"""


class SqlServerAnalysisRepository(AnalysisRepository):
    def __init__(self, db: SqlServerConnection, table_name: str = "dbo.CompetitorAnalyses"):
        self.db = db
        self.table_name = table_name

    def _execute(self, sql: str, *params) -> int:
        with self.db.connect() as conn:
            cur = conn.cursor()
            cur.execute(sql, *params)
            return cur.rowcount

    @staticmethod
    def _to_job(r) -> AnalysisJob:
        competitors = loads_or_none(row_get(r, "competitors")) or []
        options = loads_or_none(row_get(r, "options")) or {}

        return AnalysisJob(
            id=str(row_get(r, "id", "")),
            user_id=str(row_get(r, "user_id", "")),
            session_id=str(row_get(r, "session_id", "") or ""),
            competitors=[str(c) for c in competitors] if isinstance(competitors, list) else [],
            analysis_type=str(row_get(r, "analysis_type", "") or "comprehensive"),
            options=AnalysisOptions.from_request(options),
            status=str(row_get(r, "status", STATUS_RUNNING)),
            progress_percentage=int(row_get(r, "progress_percentage", 0) or 0),
            current_step=str(row_get(r, "current_step", "") or ""),
            analysis_data=loads_or_none(row_get(r, "analysis_data")),
            business_insights=loads_or_none(row_get(r, "business_insights")),
            error_message=row_get(r, "error_message"),
            total_competitors=int(row_get(r, "total_competitors", 0) or 0),
            created_at=row_get(r, "created_at"),
            updated_at=row_get(r, "updated_at"),
            completed_at=row_get(r, "completed_at"),
        )

    def create(self, job: AnalysisJob) -> AnalysisJob:
        now = utcnow()
        q = f"""
        INSERT INTO {self.table_name}
            (id, user_id, session_id, competitors, analysis_type, options, status,
             progress_percentage, current_step, total_competitors, created_at, updated_at)
        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """
        self._execute(
            q,
            job.id,
            job.user_id,
            job.session_id,
            json.dumps(list(job.competitors)),
            job.analysis_type,
            json.dumps(job.options.to_dict()),
            job.status,
            job.progress_percentage,
            job.current_step,
            job.total_competitors,
            now,
            now,
        )
        return replace(job, created_at=now, updated_at=now)

    def get_for_user(self, job_id: str, user_id: str) -> Optional[AnalysisJob]:
        q = f"""
        SELECT {_COLUMNS}
        FROM {self.table_name}
        WHERE id = ?
          AND user_id = ?
        """
        with self.db.connect() as conn:
            cur = conn.cursor()
            r = cur.execute(q, job_id, user_id).fetchone()

        return self._to_job(r) if r else None

    def update_progress(self, job_id: str, progress: int, step: str) -> bool:
        q = f"""
        UPDATE {self.table_name}
        SET progress_percentage = ?,
            current_step = ?,
            updated_at = ?
        WHERE id = ?
          AND status = ?
          AND progress_percentage <= ?
        """
        return self._execute(q, progress, step, utcnow(), job_id, STATUS_RUNNING, progress) > 0

    def mark_completed(self, job_id: str, analysis_data: dict, insights: dict, step: str) -> bool:
        now = utcnow()
        q = f"""
        UPDATE {self.table_name}
        SET status = ?,
            progress_percentage = 100,
            current_step = ?,
            analysis_data = ?,
            business_insights = ?,
            completed_at = ?,
            updated_at = ?
        WHERE id = ?
          AND status = ?
        """
        rows = self._execute(
            q,
            STATUS_COMPLETED,
            step,
            dumps_or_none(analysis_data),
            dumps_or_none(insights),
            now,
            now,
            job_id,
            STATUS_RUNNING,
        )
        return rows > 0

    def mark_failed(self, job_id: str, error_message: str) -> bool:
        now = utcnow()
        q = f"""
        UPDATE {self.table_name}
        SET status = ?,
            error_message = ?,
            current_step = ?,
            completed_at = ?,
            updated_at = ?
        WHERE id = ?
          AND status = ?
        """
        step = f"Analysis failed: {error_message}"
        return self._execute(q, STATUS_FAILED, error_message, step, now, now, job_id, STATUS_RUNNING) > 0

    def fail_stale(self, older_than: datetime, error_message: str) -> int:
        now = utcnow()
        q = f"""
        UPDATE {self.table_name}
        SET status = ?,
            error_message = ?,
            current_step = ?,
            completed_at = ?,
            updated_at = ?
        WHERE status = ?
          AND updated_at < ?
        """
        step = f"Analysis failed: {error_message}"
        return self._execute(q, STATUS_FAILED, error_message, step, now, now, STATUS_RUNNING, older_than)
