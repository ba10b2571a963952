from __future__ import annotations

from datetime import datetime
from typing import Optional

from cac_web.domain.models import AnalysisJob


class AnalysisRepository:
    """
    Repository interface for job rows.

    Implementations enforce the row invariants themselves: progress never
    decreases, and status leaves `running` at most once. Every mutator
    returns False when the write was refused for that reason.
    """

    def create(self, job: AnalysisJob) -> AnalysisJob:
        raise NotImplementedError

    def get_for_user(self, job_id: str, user_id: str) -> Optional[AnalysisJob]:
        raise NotImplementedError

    def update_progress(self, job_id: str, progress: int, step: str) -> bool:
        raise NotImplementedError

    def mark_completed(self, job_id: str, analysis_data: dict, insights: dict, step: str) -> bool:
        raise NotImplementedError

    def mark_failed(self, job_id: str, error_message: str) -> bool:
        raise NotImplementedError

    def fail_stale(self, older_than: datetime, error_message: str) -> int:
        """Fail every running job not updated since `older_than`; returns the count."""
        raise NotImplementedError
