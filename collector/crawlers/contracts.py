"""Typed contracts for trending sources, GitHub payloads and per-item results."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Generic, Optional, TypeVar

from collector.errors import BadUpstreamDataError
from collector.utils.helpers import parse_datetime


T = TypeVar("T")


@dataclass(slots=True)
class TrendingCandidate:
    """One repository listed on a trending page."""

    full_name: str
    description: Optional[str] = None
    language: Optional[str] = None
    stars_total: Optional[int] = None
    forks_total: Optional[int] = None
    stars_in_window: Optional[int] = None
    """Stars gained during the trending window; None when the page did not report it."""

    @property
    def owner_login(self) -> str:
        return self.full_name.split("/", 1)[0]


@dataclass(slots=True)
class OwnerRef:
    """Minimal owner identity embedded in a repository payload."""

    login: str
    github_id: Optional[int] = None
    avatar_url: Optional[str] = None


@dataclass(slots=True)
class RepoDetail:
    """Authoritative repository metadata from the REST API."""

    github_id: int
    full_name: str
    name: str
    description: Optional[str]
    language: Optional[str]
    topics: list[str]
    license: Optional[str]
    homepage: Optional[str]
    stars: int
    forks: int
    watchers: int
    open_issues: int
    size: int
    archived: bool
    fork: bool
    pushed_at: Optional[datetime]
    created_at: Optional[datetime]
    owner: Optional[OwnerRef]

    @classmethod
    def from_api(cls, payload: Any) -> "RepoDetail":
        """Convert a ``GET /repos/{owner}/{repo}`` body into a :class:`RepoDetail`."""

        if not isinstance(payload, dict):
            raise BadUpstreamDataError("Repository payload is not an object")
        repo_id = payload.get("id")
        full_name = payload.get("full_name")
        if not isinstance(repo_id, int) or not isinstance(full_name, str) or "/" not in full_name:
            raise BadUpstreamDataError("Repository payload missing id or full_name")

        owner_payload = payload.get("owner") if isinstance(payload.get("owner"), dict) else {}
        owner = None
        if owner_payload.get("login"):
            owner_id = owner_payload.get("id")
            owner = OwnerRef(
                login=str(owner_payload["login"]),
                github_id=owner_id if isinstance(owner_id, int) else None,
                avatar_url=owner_payload.get("avatar_url"),
            )

        license_payload = payload.get("license") if isinstance(payload.get("license"), dict) else None
        license_name = None
        if license_payload:
            license_name = license_payload.get("spdx_id") or license_payload.get("name")

        topics = payload.get("topics") if isinstance(payload.get("topics"), list) else []

        return cls(
            github_id=repo_id,
            full_name=full_name,
            name=str(payload.get("name") or full_name.split("/", 1)[1]),
            description=payload.get("description"),
            language=payload.get("language"),
            topics=[str(topic).strip() for topic in topics if str(topic).strip()],
            license=license_name,
            homepage=payload.get("homepage") or None,
            stars=int(payload.get("stargazers_count") or 0),
            forks=int(payload.get("forks_count") or 0),
            watchers=int(payload.get("watchers_count") or 0),
            open_issues=int(payload.get("open_issues_count") or 0),
            size=int(payload.get("size") or 0),
            archived=bool(payload.get("archived") or False),
            fork=bool(payload.get("fork") or False),
            pushed_at=parse_datetime(payload.get("pushed_at")),
            created_at=parse_datetime(payload.get("created_at")),
            owner=owner,
        )


@dataclass(slots=True)
class UserDetail:
    """Authoritative user profile from the REST API."""

    github_id: int
    login: str
    name: Optional[str] = None
    avatar_url: Optional[str] = None
    bio: Optional[str] = None
    company: Optional[str] = None
    location: Optional[str] = None
    blog: Optional[str] = None
    email: Optional[str] = None
    twitter_username: Optional[str] = None
    followers: int = 0
    following: int = 0
    public_repos: int = 0
    public_gists: int = 0
    created_at: Optional[datetime] = None

    @classmethod
    def from_api(cls, payload: Any) -> "UserDetail":
        """Convert a ``GET /users/{login}`` body into a :class:`UserDetail`."""

        if not isinstance(payload, dict):
            raise BadUpstreamDataError("User payload is not an object")
        user_id = payload.get("id")
        login = payload.get("login")
        if not isinstance(user_id, int) or not isinstance(login, str) or not login:
            raise BadUpstreamDataError("User payload missing id or login")

        return cls(
            github_id=user_id,
            login=login,
            name=payload.get("name"),
            avatar_url=payload.get("avatar_url"),
            bio=payload.get("bio"),
            company=payload.get("company"),
            location=payload.get("location"),
            blog=payload.get("blog") or None,
            email=payload.get("email"),
            twitter_username=payload.get("twitter_username"),
            followers=int(payload.get("followers") or 0),
            following=int(payload.get("following") or 0),
            public_repos=int(payload.get("public_repos") or 0),
            public_gists=int(payload.get("public_gists") or 0),
            created_at=parse_datetime(payload.get("created_at")),
        )


class ItemState(str, Enum):
    """Outcome of processing one batch item."""

    OK = "ok"
    FAILED = "failed"


@dataclass(slots=True)
class ItemResult(Generic[T]):
    """Per-item outcome so one bad item does not discard finished work."""

    key: str
    state: ItemState
    value: Optional[T] = None
    error: Optional[str] = None

    @property
    def is_ok(self) -> bool:
        return self.state == ItemState.OK

    @property
    def is_failed(self) -> bool:
        return self.state == ItemState.FAILED

    @classmethod
    def ok(cls, key: str, value: T) -> "ItemResult[T]":
        return cls(key=key, state=ItemState.OK, value=value)

    @classmethod
    def failed(cls, key: str, error: BaseException | str) -> "ItemResult[T]":
        message = error if isinstance(error, str) else f"{type(error).__name__}: {error}"
        return cls(key=key, state=ItemState.FAILED, error=message)


@dataclass(slots=True)
class BatchResult(Generic[T]):
    """Ordered per-item results of a processor run."""

    items: list[ItemResult[T]] = field(default_factory=list)

    @property
    def succeeded(self) -> list[T]:
        return [item.value for item in self.items if item.is_ok and item.value is not None]

    @property
    def failures(self) -> list[ItemResult[T]]:
        return [item for item in self.items if item.is_failed]


__all__ = [
    "TrendingCandidate",
    "OwnerRef",
    "RepoDetail",
    "UserDetail",
    "ItemState",
    "ItemResult",
    "BatchResult",
]
