import asyncio

from conftest import SNAPSHOT_DATE, FakeGitHub, FakeTrendingSource, make_repo_detail, make_user_detail

from collector.crawlers.contracts import TrendingCandidate
from collector.jobs.daily import fetch_trending_lists, run_daily_job
from collector.models import Developer, DeveloperSnapshot, Repository, RepositorySnapshot
from collector.models.sync_log import SyncStatus


def _fixtures():
    source = FakeTrendingSource(
        {
            None: [
                TrendingCandidate(full_name="octo/widget", stars_in_window=50),
                TrendingCandidate(full_name="acme/rocket", stars_in_window=300),
            ],
            "python": [
                TrendingCandidate(full_name="octo/widget", stars_in_window=120),
                TrendingCandidate(full_name="octo/gadget", stars_in_window=80),
            ],
        }
    )
    github = FakeGitHub(
        repos={
            "octo/widget": make_repo_detail("octo/widget", github_id=1, owner_id=10),
            "octo/gadget": make_repo_detail("octo/gadget", github_id=2, owner_id=10),
            "acme/rocket": make_repo_detail("acme/rocket", github_id=3, owner_id=20),
        },
        users={
            "octo": make_user_detail("octo", github_id=10),
            "acme": make_user_detail("acme", github_id=20),
        },
    )
    return source, github


def test_fetches_global_and_language_lists() -> None:
    source, _ = _fixtures()

    lists = asyncio.run(fetch_trending_lists(source, since="weekly", languages=["python", "go"]))

    assert source.calls == [("weekly", None), ("weekly", "python"), ("weekly", "go")]
    assert [len(items) for items in lists] == [2, 2, 0]


def test_daily_job_builds_ranked_snapshot(session) -> None:
    source, github = _fixtures()

    outcome = asyncio.run(
        run_daily_job(session, source=source, github=github, snapshot_date=SNAPSHOT_DATE, languages=["python"])
    )

    ranks = {row.repository.full_name: row.rank for row in session.query(RepositorySnapshot)}
    assert ranks == {"acme/rocket": 1, "octo/widget": 2, "octo/gadget": 3}
    widget = session.query(Repository).filter_by(full_name="octo/widget").one()
    assert widget.stars_growth_24h == 120
    assert outcome.records_processed == 3
    assert outcome.records_failed == 0
    assert github.user_calls == ["acme", "octo"]
    assert session.query(DeveloperSnapshot).count() == 2


def test_daily_rerun_is_idempotent(session) -> None:
    source, github = _fixtures()

    for _ in range(2):
        asyncio.run(
            run_daily_job(session, source=source, github=github, snapshot_date=SNAPSHOT_DATE, languages=["python"])
        )

    assert session.query(Repository).count() == 3
    assert session.query(RepositorySnapshot).count() == 3
    assert session.query(Developer).count() == 2
    assert session.query(DeveloperSnapshot).count() == 2


def test_item_failures_are_counted(session) -> None:
    source, github = _fixtures()
    github.failing.add("octo/gadget")
    github.failing.add("acme")

    outcome = asyncio.run(
        run_daily_job(
            session,
            source=source,
            github=github,
            snapshot_date=SNAPSHOT_DATE,
            languages=["python"],
            isolate_failures=True,
        )
    )

    assert outcome.records_processed == 2
    assert outcome.records_failed == 2
    assert outcome.status == SyncStatus.SUCCESS
    assert outcome.error_message.startswith("octo/gadget: UpstreamHTTPError")


def test_every_repository_failing_fails_the_run(session) -> None:
    source, github = _fixtures()
    github.failing.update({"octo/widget", "octo/gadget", "acme/rocket"})

    outcome = asyncio.run(
        run_daily_job(
            session,
            source=source,
            github=github,
            snapshot_date=SNAPSHOT_DATE,
            languages=["python"],
            isolate_failures=True,
        )
    )

    assert outcome.status == SyncStatus.FAILED
    assert outcome.records_processed == 0
    assert outcome.records_failed == 3
    assert outcome.error_message == "acme/rocket: UpstreamHTTPError: GitHub API error 404 for acme/rocket"
    assert github.user_calls == []
