import asyncio

import pytest
from conftest import SNAPSHOT_DATE, FakeGitHub, FakeTrendingSource, make_repo_detail, make_user_detail

from collector.crawlers.contracts import TrendingCandidate
from collector.jobs.base import JobOutcome
from collector.models import SyncLog
from collector.models.sync_log import JobType, SyncStatus
from collector.orchestrator import JobOrchestrator, JobStatusRegistry


def _orchestrator(session_factory, **kwargs) -> JobOrchestrator:
    return JobOrchestrator(session_factory=session_factory, **kwargs)


def test_running_log_is_committed_before_work(session_factory) -> None:
    orchestrator = _orchestrator(session_factory)
    observed: list[str] = []

    async def body(session) -> JobOutcome:
        # A separate session sees the committed running row.
        other = session_factory()
        try:
            observed.append(other.query(SyncLog).one().status)
        finally:
            other.close()
        return JobOutcome(records_processed=4, records_failed=1)

    sync_log = asyncio.run(orchestrator.run(JobType.DAILY, body))

    assert observed == ["running"]
    assert sync_log.status == "success"
    assert sync_log.records_processed == 4
    assert sync_log.records_failed == 1
    assert sync_log.completed_at is not None
    assert orchestrator.registry.get(JobType.DAILY).last_success is not None


def test_failure_is_recorded_then_reraised(session_factory) -> None:
    orchestrator = _orchestrator(session_factory)

    async def body(session) -> JobOutcome:
        raise RuntimeError("trending page unavailable, token=abc123")

    with pytest.raises(RuntimeError):
        asyncio.run(orchestrator.run(JobType.DAILY, body))

    check = session_factory()
    sync_log = check.query(SyncLog).one()
    check.close()
    assert sync_log.status == "failed"
    assert sync_log.records_failed == 1
    assert sync_log.completed_at is not None
    assert "trending page unavailable" in sync_log.error_message
    assert "abc123" not in sync_log.error_message

    status = orchestrator.registry.get(JobType.DAILY)
    assert status.last_run is not None
    assert status.last_success is None
    assert "trending page unavailable" in status.error


def test_deadline_is_recorded_as_failure(session_factory) -> None:
    orchestrator = _orchestrator(session_factory, job_timeout=0.01)

    async def body(session) -> JobOutcome:
        await asyncio.sleep(1)
        return JobOutcome()

    with pytest.raises(asyncio.TimeoutError):
        asyncio.run(orchestrator.run(JobType.WARM_CACHE, body))

    check = session_factory()
    sync_log = check.query(SyncLog).one()
    check.close()
    assert sync_log.sync_type == "warm-cache"
    assert sync_log.status == "failed"
    assert sync_log.error_message == "Job exceeded its deadline"


def test_sync_log_finishes_only_once() -> None:
    sync_log = SyncLog(sync_type="ai", status=SyncStatus.RUNNING.value)
    sync_log.finish(SyncStatus.SKIPPED)

    with pytest.raises(ValueError):
        sync_log.finish(SyncStatus.SUCCESS)
    with pytest.raises(ValueError):
        SyncLog(sync_type="ai", status="running").finish(SyncStatus.RUNNING)


def test_ai_without_key_is_skipped(session_factory) -> None:
    orchestrator = _orchestrator(session_factory, analyzer_factory=lambda: None)

    sync_log = asyncio.run(orchestrator.run_ai(SNAPSHOT_DATE))

    assert sync_log.status == "skipped"
    assert sync_log.records_processed == 0
    assert orchestrator.registry.get(JobType.AI).error is None


def test_run_daily_wires_factories(session_factory) -> None:
    source = FakeTrendingSource({None: [TrendingCandidate(full_name="octo/widget", stars_in_window=5)]})
    github = FakeGitHub(
        repos={"octo/widget": make_repo_detail("octo/widget")},
        users={"octo": make_user_detail("octo")},
    )
    orchestrator = _orchestrator(
        session_factory,
        trending_source_factory=lambda: source,
        github_client_factory=lambda: github,
    )

    sync_log = asyncio.run(orchestrator.run_daily(SNAPSHOT_DATE))

    assert sync_log.sync_type == "daily"
    assert sync_log.status == "success"
    assert sync_log.records_processed == 1


def test_registry_serializes_health_keys() -> None:
    registry = JobStatusRegistry()
    registry.mark_started(JobType.WARM_CACHE)
    registry.mark_failed(JobType.WARM_CACHE, "boom")

    payload = registry.to_dict()

    assert set(payload) == {"daily", "ai", "warmCache"}
    assert payload["daily"] == {"lastRun": None, "lastSuccess": None, "error": None}
    assert payload["warmCache"]["error"] == "boom"
    assert payload["warmCache"]["lastRun"] is not None


def _commit_fails_on(session_factory, call: int):
    def factory():
        session = session_factory()
        real_commit = session.commit
        commits = {"count": 0}

        def commit() -> None:
            commits["count"] += 1
            if commits["count"] == call:
                raise RuntimeError("database is down")
            real_commit()

        session.commit = commit
        return session

    return factory


def test_job_error_survives_failed_failure_commit(session_factory) -> None:
    orchestrator = _orchestrator(_commit_fails_on(session_factory, 2))

    async def body(session) -> JobOutcome:
        raise ValueError("upstream broke")

    with pytest.raises(ValueError, match="upstream broke"):
        asyncio.run(orchestrator.run(JobType.DAILY, body))

    status = orchestrator.registry.get(JobType.DAILY)
    assert status.error == "upstream broke"
    assert status.last_success is None


def test_running_row_commit_failure_marks_registry(session_factory) -> None:
    orchestrator = _orchestrator(_commit_fails_on(session_factory, 1))
    called: list[bool] = []

    async def body(session) -> JobOutcome:
        called.append(True)
        return JobOutcome()

    with pytest.raises(RuntimeError, match="database is down"):
        asyncio.run(orchestrator.run(JobType.AI, body))

    assert called == []
    assert orchestrator.registry.get(JobType.AI).error == "database is down"


def test_outcome_with_only_failures_is_recorded_as_failed(session_factory) -> None:
    orchestrator = _orchestrator(session_factory)

    async def body(session) -> JobOutcome:
        return JobOutcome(records_processed=0, records_failed=100)

    sync_log = asyncio.run(orchestrator.run(JobType.DAILY, body))

    assert sync_log.status == "failed"
    assert sync_log.records_failed == 100
    assert sync_log.error_message == "100 item(s) failed"
    status = orchestrator.registry.get(JobType.DAILY)
    assert status.error == "100 item(s) failed"
    assert status.last_success is None


def test_partial_item_failure_is_reported_on_success(session_factory) -> None:
    orchestrator = _orchestrator(session_factory)

    async def body(session) -> JobOutcome:
        return JobOutcome.from_counts(9, ["octo/gadget: UpstreamHTTPError: bad credentials token=abc123"])

    sync_log = asyncio.run(orchestrator.run(JobType.DAILY, body))

    assert sync_log.status == "success"
    assert sync_log.records_failed == 1
    assert "octo/gadget" in sync_log.error_message
    assert "abc123" not in sync_log.error_message
    status = orchestrator.registry.get(JobType.DAILY)
    assert status.last_success is not None
    assert status.error == sync_log.error_message
