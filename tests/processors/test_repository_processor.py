import asyncio
from datetime import timedelta

import pytest
from conftest import NOW, SNAPSHOT_DATE, FakeGitHub, make_repo_detail

from collector.crawlers.contracts import TrendingCandidate
from collector.errors import UpstreamHTTPError
from collector.models import Developer, Repository, RepositorySnapshot
from collector.processors.repositories import RepositoryUpsertProcessor


def _processor(session, github, **kwargs) -> RepositoryUpsertProcessor:
    return RepositoryUpsertProcessor(session, github, clock=lambda: NOW, **kwargs)


def _seed_previous_snapshot(session, full_name: str, *, stars: int, forks: int) -> None:
    repository = Repository(full_name=full_name, name=full_name.split("/")[1], stars=stars, forks=forks)
    session.add(repository)
    session.flush()
    session.add(
        RepositorySnapshot(
            repository_id=repository.id,
            snapshot_date=SNAPSHOT_DATE - timedelta(days=1),
            stars=stars,
            forks=forks,
            rank=1,
        )
    )
    session.commit()


def test_persists_repository_owner_and_snapshot(session) -> None:
    github = FakeGitHub({"octo/widget": make_repo_detail("octo/widget", stars=1000, forks=100)})
    candidates = [TrendingCandidate(full_name="octo/widget", language="Rust", stars_in_window=100)]

    result = asyncio.run(_processor(session, github).process(candidates, SNAPSHOT_DATE))

    repository = session.query(Repository).filter_by(full_name="octo/widget").one()
    owner = session.query(Developer).filter_by(login="octo").one()
    snapshot = session.query(RepositorySnapshot).one()

    assert result.repository_ids == [repository.id]
    assert result.owner_logins == ["octo"]
    assert repository.owner_id == owner.id
    assert owner.github_id == 500
    assert repository.has_readme is True
    assert repository.has_license is True
    assert repository.stars_growth_24h == 100
    assert snapshot.rank == 1
    assert snapshot.snapshot_date == SNAPSHOT_DATE
    # base 70, readme + license + recent push + low issue ratio
    assert snapshot.score == 98.0
    assert repository.score == snapshot.score


def test_growth_falls_back_to_previous_snapshot(session) -> None:
    _seed_previous_snapshot(session, "octo/widget", stars=900, forks=120)
    github = FakeGitHub({"octo/widget": make_repo_detail("octo/widget", stars=1000, forks=100)})
    candidates = [TrendingCandidate(full_name="octo/widget", stars_in_window=None)]

    asyncio.run(_processor(session, github).process(candidates, SNAPSHOT_DATE))

    snapshot = session.query(RepositorySnapshot).filter_by(snapshot_date=SNAPSHOT_DATE).one()
    assert snapshot.stars_growth == 100
    # Fork count dropped since yesterday; growth is floored at zero.
    assert snapshot.forks_growth == 0


def test_negative_reported_gain_is_floored(session) -> None:
    github = FakeGitHub({"octo/widget": make_repo_detail("octo/widget")})
    candidates = [TrendingCandidate(full_name="octo/widget", stars_in_window=-15)]

    asyncio.run(_processor(session, github).process(candidates, SNAPSHOT_DATE))

    snapshot = session.query(RepositorySnapshot).one()
    assert snapshot.stars_growth == 0
    assert snapshot.forks_growth == 0


def test_ranks_follow_input_order_not_completion_order(session) -> None:
    names = [f"owner{i}/repo{i}" for i in range(8)]
    github = FakeGitHub({name: make_repo_detail(name, github_id=i, owner_id=100 + i) for i, name in enumerate(names)})
    # Earlier items finish last.
    github.delays = {name: 0.01 * (len(names) - i) for i, name in enumerate(names)}
    candidates = [TrendingCandidate(full_name=name, stars_in_window=100 - i) for i, name in enumerate(names)]

    result = asyncio.run(_processor(session, github, concurrency=5).process(candidates, SNAPSHOT_DATE))

    ranks = {
        row.repository.full_name: row.rank
        for row in session.query(RepositorySnapshot).filter_by(snapshot_date=SNAPSHOT_DATE)
    }
    assert ranks == {name: i + 1 for i, name in enumerate(names)}
    assert [item.full_name for item in result.succeeded] == names
    assert result.owner_logins == [name.split("/")[0] for name in names]


def test_concurrency_is_bounded(session) -> None:
    names = [f"owner{i}/repo{i}" for i in range(12)]
    in_flight = 0
    peak = 0

    class TrackingGitHub(FakeGitHub):
        async def get_repo(self, full_name):
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(0.01)
            in_flight -= 1
            return await super().get_repo(full_name)

    github = TrackingGitHub({name: make_repo_detail(name, github_id=i, owner_id=i) for i, name in enumerate(names)})
    candidates = [TrendingCandidate(full_name=name, stars_in_window=1) for name in names]

    asyncio.run(_processor(session, github, concurrency=5).process(candidates, SNAPSHOT_DATE))

    assert peak == 5


def test_rerun_same_day_overwrites_in_place(session) -> None:
    github = FakeGitHub({"octo/widget": make_repo_detail("octo/widget", stars=1000)})
    candidates = [TrendingCandidate(full_name="octo/widget", stars_in_window=10)]
    processor = _processor(session, github)

    asyncio.run(processor.process(candidates, SNAPSHOT_DATE))
    github.repos["octo/widget"] = make_repo_detail("octo/widget", stars=1010)
    asyncio.run(processor.process([TrendingCandidate(full_name="octo/widget", stars_in_window=20)], SNAPSHOT_DATE))

    assert session.query(Repository).count() == 1
    assert session.query(Developer).count() == 1
    snapshots = session.query(RepositorySnapshot).all()
    assert len(snapshots) == 1
    assert snapshots[0].stars == 1010
    assert snapshots[0].stars_growth == 20


def test_isolated_failure_keeps_the_rest_of_the_batch(session) -> None:
    github = FakeGitHub(
        {
            "octo/widget": make_repo_detail("octo/widget", github_id=1, owner_id=1),
            "acme/rocket": make_repo_detail("acme/rocket", github_id=3, owner_id=3),
        }
    )
    candidates = [
        TrendingCandidate(full_name="octo/widget", stars_in_window=30),
        TrendingCandidate(full_name="gone/missing", stars_in_window=20),
        TrendingCandidate(full_name="acme/rocket", stars_in_window=10),
    ]

    result = asyncio.run(_processor(session, github, isolate_failures=True).process(candidates, SNAPSHOT_DATE))

    assert [failure.key for failure in result.failures] == ["gone/missing"]
    assert "UpstreamHTTPError" in result.failures[0].error
    ranks = {row.repository.full_name: row.rank for row in session.query(RepositorySnapshot)}
    assert ranks == {"octo/widget": 1, "acme/rocket": 3}


def test_failure_aborts_batch_when_isolation_is_off(session) -> None:
    names = ["octo/widget", "gone/missing", "acme/rocket"]
    github = FakeGitHub({"octo/widget": make_repo_detail("octo/widget"), "acme/rocket": make_repo_detail("acme/rocket")})
    github.delays = {"acme/rocket": 0.05}
    candidates = [TrendingCandidate(full_name=name, stars_in_window=1) for name in names]

    with pytest.raises(UpstreamHTTPError):
        asyncio.run(_processor(session, github, isolate_failures=False).process(candidates, SNAPSHOT_DATE))

    persisted = {row.full_name for row in session.query(Repository)}
    assert "acme/rocket" not in persisted
