from __future__ import annotations

import logging
import uuid
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Callable, Optional, Sequence

from cac_web.domain.errors import NoCredentialsError, NotFoundError, ValidationError
from cac_web.domain.models import (
    AnalysisJob,
    AnalysisOptions,
    AuthUser,
    ProviderAttempt,
    ProviderCredential,
)
from cac_web.repositories.analysis_repository import AnalysisRepository
from cac_web.repositories.reference_stores import CredentialStore
from cac_web.services.ai_gateway import AIGateway
from cac_web.services.consolidation import InsightGenerator, consolidate
from cac_web.services.export import ExportPayload, export_job
from cac_web.services.job_runner import JobRunner

logger = logging.getLogger(__name__)

PROGRESS_INIT = 10
PROGRESS_COMPETITORS_START = 20
PROGRESS_COMPETITORS_SPAN = 60
PROGRESS_CONSOLIDATING = 90
PROGRESS_INSIGHTS = 95


class _JobNoLongerRunning(Exception):
    """The job row was failed elsewhere (watchdog or a concurrent writer)."""


def competitor_progress(done: int, total: int) -> int:
    """Linear 20..80 across the competitor list."""
    return PROGRESS_COMPETITORS_SPAN * done // total + PROGRESS_COMPETITORS_START


def _new_id() -> str:
    return str(uuid.uuid4())


def clean_competitors(raw) -> list[str]:
    if not isinstance(raw, list):
        return []
    return [str(c).strip() for c in raw if isinstance(c, str) and c.strip()]


@dataclass
class AnalysisService:
    """
    Service layer: owns one competitor-analysis job from creation to its
    terminal state. Routes stay thin and only call into this class.
    """
    repo: AnalysisRepository
    credentials: CredentialStore
    gateway: AIGateway
    insights: InsightGenerator
    runner: JobRunner
    competitor_workers: int = 1
    id_factory: Callable[[], str] = field(default=_new_id)

    # -----------------------------
    # Synchronous entry points
    # -----------------------------
    def start_analysis(
        self,
        user: AuthUser,
        competitors_raw,
        analysis_type: Optional[str] = None,
        options_raw: Optional[dict] = None,
    ) -> AnalysisJob:
        competitors = clean_competitors(competitors_raw)
        if not competitors:
            raise ValidationError("No competitors provided")

        options = AnalysisOptions.from_request(options_raw)
        job = AnalysisJob(
            id=self.id_factory(),
            user_id=user.id,
            session_id=self.id_factory(),
            competitors=competitors,
            analysis_type=(analysis_type or "").strip() or "comprehensive",
            options=options,
            total_competitors=len(competitors),
        )
        job = self.repo.create(job)
        logger.info("Starting analysis %s (session %s) for %d competitor(s)", job.id, job.session_id, len(competitors))

        self.runner.submit(job.id, lambda: self.run_job(job.id, user.id, competitors, options))
        return job

    def get_job(self, user: AuthUser, job_id: Optional[str]) -> AnalysisJob:
        if isinstance(job_id, bool) or not isinstance(job_id, (str, int)):
            job_id = ""
        job_id = str(job_id).strip()
        if not job_id:
            raise ValidationError("Analysis ID required")

        job = self.repo.get_for_user(job_id, user.id)
        if job is None:
            raise NotFoundError("Analysis not found")
        return job

    def get_progress(self, user: AuthUser, job_id: Optional[str]) -> dict:
        return self.get_job(user, job_id).progress_view()

    def export(self, user: AuthUser, job_id: Optional[str], fmt: Optional[str] = "json") -> ExportPayload:
        return export_job(self.get_job(user, job_id), fmt or "json")

    # -----------------------------
    # Background work
    # -----------------------------
    def run_job(
        self,
        job_id: str,
        user_id: str,
        competitors: Sequence[str],
        options: AnalysisOptions,
    ) -> None:
        """
        The detached part of a job. Never raises: any failure is written to
        the job row and processing stops. Every progress write is also a
        liveness check; once the row has left `running` no further provider
        calls are made.
        """
        try:
            self._progress(job_id, PROGRESS_INIT, "Initializing AI providers...")

            creds = self.credentials.get_active_credentials(user_id)
            if not creds:
                raise NoCredentialsError()

            self._progress(job_id, PROGRESS_COMPETITORS_START, "Processing competitors...")

            if self.competitor_workers > 1 and len(competitors) > 1:
                attempts = self._analyze_parallel(job_id, competitors, creds, options)
            else:
                attempts = self._analyze_sequential(job_id, competitors, creds, options)

            self._progress(job_id, PROGRESS_CONSOLIDATING, "Consolidating results...")
            consolidated = consolidate(attempts).to_dict()

            self._progress(job_id, PROGRESS_INSIGHTS, "Generating insights...")
            insights = self.insights.generate(consolidated, creds)

            if self.repo.mark_completed(job_id, consolidated, insights, "Analysis complete!"):
                logger.info("[%s] Analysis complete", job_id)
            else:
                logger.warning("[%s] Completion not recorded; job already left running state", job_id)

        except _JobNoLongerRunning:
            logger.info("[%s] Job left running state (failed or timed out elsewhere); stopping", job_id)
        except Exception as e:
            logger.exception("[%s] Analysis failed", job_id)
            self.repo.mark_failed(job_id, str(e) or e.__class__.__name__)

    def _progress(self, job_id: str, progress: int, step: str) -> None:
        if not self.repo.update_progress(job_id, progress, step):
            raise _JobNoLongerRunning(job_id)
        logger.info("[%s] Progress %d%% - %s", job_id, progress, step)

    def _analyze_sequential(
        self,
        job_id: str,
        competitors: Sequence[str],
        creds: Sequence[ProviderCredential],
        options: AnalysisOptions,
    ) -> list[ProviderAttempt]:
        results: list[ProviderAttempt] = []
        total = len(competitors)
        for i, competitor in enumerate(competitors):
            self._progress(job_id, competitor_progress(i + 1, total), f"Analyzing {competitor}...")
            results.append(self.gateway.analyze(competitor, creds, options))
        return results

    def _analyze_parallel(
        self,
        job_id: str,
        competitors: Sequence[str],
        creds: Sequence[ProviderCredential],
        options: AnalysisOptions,
    ) -> list[ProviderAttempt]:
        """
        Opt-in: a bounded pool per job. Progress counts completions, so it
        stays monotonic whatever order the competitors finish in. Results keep
        the input order.
        """
        total = len(competitors)
        results: list[Optional[ProviderAttempt]] = [None] * total
        workers = min(self.competitor_workers, total)

        pool = ThreadPoolExecutor(max_workers=workers, thread_name_prefix=f"analysis-{job_id[:8]}")
        try:
            futures = {
                pool.submit(self.gateway.analyze, competitor, creds, options): idx
                for idx, competitor in enumerate(competitors)
            }
            done = 0
            for fut in as_completed(futures):
                idx = futures[fut]
                results[idx] = fut.result()
                done += 1
                self._progress(job_id, competitor_progress(done, total), f"Analyzed {competitors[idx]}")
        finally:
            pool.shutdown(wait=False, cancel_futures=True)

        return [r for r in results if r is not None]
