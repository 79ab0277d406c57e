from __future__ import annotations

import asyncio
from datetime import UTC, date, datetime, timedelta
from typing import Any, Optional

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import collector.models  # noqa: F401
from collector.config.database import Base
from collector.crawlers.contracts import OwnerRef, RepoDetail, TrendingCandidate, UserDetail
from collector.errors import UpstreamHTTPError

SNAPSHOT_DATE = date(2024, 5, 2)
NOW = datetime(2024, 5, 2, 2, 0, tzinfo=UTC)


@pytest.fixture
def session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    factory = sessionmaker(bind=engine, autoflush=True, expire_on_commit=False)
    yield factory
    engine.dispose()


@pytest.fixture
def session(session_factory):
    db = session_factory()
    yield db
    db.close()


def make_repo_detail(
    full_name: str,
    *,
    github_id: int = 1,
    stars: int = 1000,
    forks: int = 100,
    open_issues: int = 10,
    language: Optional[str] = "Python",
    topics: Optional[list[str]] = None,
    license: Optional[str] = "MIT",
    archived: bool = False,
    pushed_days_ago: int = 1,
    owner_id: int = 500,
) -> RepoDetail:
    owner_login, name = full_name.split("/", 1)
    return RepoDetail(
        github_id=github_id,
        full_name=full_name,
        name=name,
        description=f"{name} description",
        language=language,
        topics=list(topics or []),
        license=license,
        homepage=None,
        stars=stars,
        forks=forks,
        watchers=stars,
        open_issues=open_issues,
        size=10,
        archived=archived,
        fork=False,
        pushed_at=NOW - timedelta(days=pushed_days_ago),
        created_at=NOW - timedelta(days=365),
        owner=OwnerRef(login=owner_login, github_id=owner_id, avatar_url=f"https://avatars/{owner_login}"),
    )


def make_user_detail(login: str, *, github_id: int = 500, followers: int = 99, public_repos: int = 3) -> UserDetail:
    return UserDetail(github_id=github_id, login=login, name=login.title(), followers=followers, public_repos=public_repos)


class FakeGitHub:
    """In-memory stand-in for GitHubClient."""

    def __init__(self, repos: Optional[dict[str, RepoDetail]] = None, users: Optional[dict[str, UserDetail]] = None):
        self.repos = dict(repos or {})
        self.users = dict(users or {})
        self.failing: set[str] = set()
        self.repo_calls: list[str] = []
        self.user_calls: list[str] = []
        self.delays: dict[str, float] = {}

    async def get_repo(self, full_name: str) -> RepoDetail:
        self.repo_calls.append(full_name)
        await asyncio.sleep(self.delays.get(full_name, 0))
        if full_name in self.failing or full_name not in self.repos:
            raise UpstreamHTTPError(f"GitHub API error 404 for {full_name}", status_code=404, url=full_name)
        return self.repos[full_name]

    async def get_user(self, login: str) -> UserDetail:
        self.user_calls.append(login)
        if login in self.failing or login not in self.users:
            raise UpstreamHTTPError(f"GitHub API error 404 for {login}", status_code=404, url=login)
        return self.users[login]

    async def __aenter__(self) -> "FakeGitHub":
        return self

    async def __aexit__(self, *_: Any) -> None:
        return None


class FakeTrendingSource:
    """Returns canned candidate lists keyed by language (None is the global list)."""

    def __init__(self, lists: dict[Optional[str], list[TrendingCandidate]]):
        self.lists = lists
        self.calls: list[tuple[str, Optional[str]]] = []

    async def fetch_candidates(self, since: str = "daily", language: Optional[str] = None) -> list[TrendingCandidate]:
        self.calls.append((since, language))
        return list(self.lists.get(language, []))

    async def __aenter__(self) -> "FakeTrendingSource":
        return self

    async def __aexit__(self, *_: Any) -> None:
        return None
