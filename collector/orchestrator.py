"""Job orchestrator: audit trail, deadlines and status tracking for every run."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Awaitable, Callable, Optional

from sqlalchemy.orm import Session

from collector.config.database import SessionLocal
from collector.config.settings import settings
from collector.crawlers.github_client import GitHubClient
from collector.crawlers.github_trending import GitHubTrendingSource
from collector.jobs.ai import run_ai_job
from collector.jobs.base import JobOutcome
from collector.jobs.daily import run_daily_job
from collector.jobs.warm_cache import CacheWarmer, run_warm_cache_job
from collector.models.sync_log import JobType, SyncLog, SyncStatus
from collector.services.analyzer import RepositoryAnalyzer
from collector.utils.helpers import truncate_string, utc_now, utc_today
from collector.utils.redaction import sanitize_for_log, sanitize_log_extra

logger = logging.getLogger(__name__)

MAX_ERROR_MESSAGE = 2000

JobBody = Callable[[Session], Awaitable[JobOutcome]]


@dataclass(slots=True)
class JobStatus:
    """Last known state of one job type"""

    last_run: Optional[datetime] = None
    last_success: Optional[datetime] = None
    error: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "lastRun": self.last_run.isoformat() if self.last_run else None,
            "lastSuccess": self.last_success.isoformat() if self.last_success else None,
            "error": self.error,
        }


class JobStatusRegistry:
    """In-memory job status map shared by the orchestrator and the health endpoint."""

    HEALTH_KEYS = {
        JobType.DAILY: "daily",
        JobType.AI: "ai",
        JobType.WARM_CACHE: "warmCache",
    }

    def __init__(self) -> None:
        self._statuses: dict[JobType, JobStatus] = {job_type: JobStatus() for job_type in JobType}

    def get(self, job_type: JobType) -> JobStatus:
        return self._statuses[JobType(job_type)]

    def mark_started(self, job_type: JobType, at: Optional[datetime] = None) -> None:
        status = self.get(job_type)
        status.last_run = at or utc_now()
        status.error = None

    def mark_succeeded(self, job_type: JobType, at: Optional[datetime] = None) -> None:
        self.get(job_type).last_success = at or utc_now()

    def mark_failed(self, job_type: JobType, error: str) -> None:
        self.get(job_type).error = error

    def to_dict(self) -> dict[str, dict[str, Any]]:
        return {key: self._statuses[job_type].to_dict() for job_type, key in self.HEALTH_KEYS.items()}


def _describe(exc: BaseException) -> str:
    if isinstance(exc, asyncio.TimeoutError):
        return "Job exceeded its deadline"
    if isinstance(exc, asyncio.CancelledError):
        return "Job was cancelled"
    return _clean(str(exc) or type(exc).__name__)


def _clean(message: str) -> str:
    return truncate_string(str(sanitize_for_log(message)), MAX_ERROR_MESSAGE)


class JobOrchestrator:
    """
    Runs job bodies with a sync log row, a deadline and status tracking

    Collaborators are created through factories so tests can substitute
    fakes without touching module globals.
    """

    def __init__(
        self,
        *,
        session_factory: Callable[[], Session] = SessionLocal,
        registry: Optional[JobStatusRegistry] = None,
        trending_source_factory: Callable[[], Any] = GitHubTrendingSource,
        github_client_factory: Callable[[], Any] = GitHubClient,
        analyzer_factory: Optional[Callable[[], Optional[RepositoryAnalyzer]]] = None,
        warmer_factory: Callable[[], CacheWarmer] = CacheWarmer,
        job_timeout: Optional[float] = None,
    ) -> None:
        self._session_factory = session_factory
        self.registry = registry or JobStatusRegistry()
        self._trending_source_factory = trending_source_factory
        self._github_client_factory = github_client_factory
        self._analyzer_factory = analyzer_factory or self._default_analyzer
        self._warmer_factory = warmer_factory
        self._job_timeout = job_timeout or settings.JOB_TIMEOUT_SECONDS

    async def run(self, job_type: JobType, body: JobBody) -> SyncLog:
        """
        Run ``body`` once and record exactly one terminal state

        The running log row is committed before any work starts. Failures,
        timeouts and cancellation are recorded as ``failed`` and re-raised.
        An outcome that reports item failures puts its first error on the log
        and the status registry. If the failure itself cannot be stored, the
        job's own error still propagates.

        Args:
            job_type: Kind of job being run
            body: Coroutine function receiving the run's session

        Returns:
            The finished SyncLog
        """
        job_type = JobType(job_type)
        session = self._session_factory()
        started_at = utc_now()
        self.registry.mark_started(job_type, started_at)

        try:
            sync_log = SyncLog(sync_type=job_type.value, status=SyncStatus.RUNNING.value, started_at=started_at)
            session.add(sync_log)
            try:
                session.commit()
            except BaseException as exc:
                self.registry.mark_failed(job_type, _describe(exc))
                raise
            sync_log_id = sync_log.id
            logger.info(f"Job {job_type.value} started (sync log {sync_log_id})")

            try:
                outcome = await asyncio.wait_for(body(session), timeout=self._job_timeout)
            except BaseException as exc:
                message = _describe(exc)
                self.registry.mark_failed(job_type, message)
                logger.error(
                    f"Job {job_type.value} failed",
                    extra=sanitize_log_extra(sync_log_id=sync_log_id, error=message),
                )
                self._record_failure(session, sync_log, sync_log_id, message)
                raise

            error_message = outcome.error_message
            if error_message is None and outcome.records_failed:
                error_message = f"{outcome.records_failed} item(s) failed"
            if error_message is not None:
                error_message = _clean(error_message)

            sync_log.finish(
                outcome.status,
                records_processed=outcome.records_processed,
                records_failed=outcome.records_failed,
                error_message=error_message,
            )
            try:
                session.commit()
            except BaseException as exc:
                self.registry.mark_failed(job_type, _describe(exc))
                raise

            if error_message is not None:
                self.registry.mark_failed(job_type, error_message)
            if outcome.status != SyncStatus.FAILED:
                self.registry.mark_succeeded(job_type, sync_log.completed_at)
            logger.info(
                f"Job {job_type.value} finished as {outcome.status.value}: "
                f"{outcome.records_processed} processed, {outcome.records_failed} failed"
            )
            return sync_log
        finally:
            session.close()

    @staticmethod
    def _record_failure(session: Session, sync_log: SyncLog, sync_log_id: int, message: str) -> None:
        """Store the failed state; a store error is logged so the job's own error propagates"""
        try:
            session.rollback()
            sync_log.finish(SyncStatus.FAILED, records_failed=1, error_message=message)
            session.commit()
        except Exception as store_exc:
            logger.error(
                "Could not record job failure",
                extra=sanitize_log_extra(sync_log_id=sync_log_id, error=store_exc),
            )

    async def run_daily(self, snapshot_date: Optional[date] = None) -> SyncLog:
        snapshot_date = snapshot_date or utc_today()

        async def body(session: Session) -> JobOutcome:
            async with self._trending_source_factory() as source, self._github_client_factory() as github:
                return await run_daily_job(session, source=source, github=github, snapshot_date=snapshot_date)

        return await self.run(JobType.DAILY, body)

    async def run_ai(self, snapshot_date: Optional[date] = None) -> SyncLog:
        snapshot_date = snapshot_date or utc_today()

        async def body(session: Session) -> JobOutcome:
            return await run_ai_job(session, snapshot_date=snapshot_date, analyzer=self._analyzer_factory())

        return await self.run(JobType.AI, body)

    async def run_warm_cache(self, snapshot_date: Optional[date] = None) -> SyncLog:
        snapshot_date = snapshot_date or utc_today()

        async def body(session: Session) -> JobOutcome:
            async with self._warmer_factory() as warmer:
                return await run_warm_cache_job(session, warmer=warmer, snapshot_date=snapshot_date)

        return await self.run(JobType.WARM_CACHE, body)

    async def run_job(self, job_type: JobType, snapshot_date: Optional[date] = None) -> SyncLog:
        """Dispatch to the runner of ``job_type``"""
        runners = {
            JobType.DAILY: self.run_daily,
            JobType.AI: self.run_ai,
            JobType.WARM_CACHE: self.run_warm_cache,
        }
        return await runners[JobType(job_type)](snapshot_date)

    @staticmethod
    def _default_analyzer() -> Optional[RepositoryAnalyzer]:
        if not settings.OPENAI_API_KEY:
            return None
        return RepositoryAnalyzer(settings.OPENAI_API_KEY)


__all__ = ["JobBody", "JobOrchestrator", "JobStatus", "JobStatusRegistry"]
