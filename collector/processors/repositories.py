"""Reconcile trending candidates into repositories and daily snapshots"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Callable, Optional, Sequence

from sqlalchemy.orm import Session

from collector.config.settings import settings
from collector.crawlers.contracts import BatchResult, ItemResult, RepoDetail, TrendingCandidate
from collector.models import Developer, Repository, RepositorySnapshot
from collector.services.scorer import RepoMetrics, ScorerService
from collector.utils.concurrency import gather_bounded
from collector.utils.helpers import previous_day, utc_now
from collector.utils.persistence import upsert_row
from collector.utils.redaction import sanitize_log_extra

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class PersistedRepository:
    """Identity of a repository written during a batch."""

    repository_id: int
    full_name: str
    owner_login: Optional[str]
    rank: int


class RepositoryBatchResult(BatchResult[PersistedRepository]):
    """Per-item results of a repository batch, in rank order."""

    @property
    def repository_ids(self) -> list[int]:
        return [item.repository_id for item in self.succeeded]

    @property
    def owner_logins(self) -> list[str]:
        return [item.owner_login for item in self.succeeded if item.owner_login]


class RepositoryUpsertProcessor:
    """Fetch detail, score and persist each trending candidate with bounded concurrency."""

    def __init__(
        self,
        session: Session,
        github,
        *,
        concurrency: Optional[int] = None,
        isolate_failures: Optional[bool] = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.session = session
        self.github = github
        self.concurrency = concurrency or settings.REPO_CONCURRENCY
        self.isolate_failures = (
            settings.ISOLATE_ITEM_FAILURES if isolate_failures is None else isolate_failures
        )
        self._clock = clock

    async def process(
        self,
        candidates: Sequence[TrendingCandidate],
        snapshot_date: date,
    ) -> RepositoryBatchResult:
        """
        Persist candidates as repositories and snapshots for ``snapshot_date``

        The rank of a candidate is its position in ``candidates`` (1-based),
        independent of the order in which the concurrent fetches complete.

        Args:
            candidates: Merged trending candidates in rank order
            snapshot_date: UTC day of the snapshot

        Returns:
            RepositoryBatchResult with one ItemResult per candidate
        """
        now = self._clock()
        previous_date = previous_day(snapshot_date)

        async def _process_one(index: int, candidate: TrendingCandidate) -> ItemResult[PersistedRepository]:
            try:
                detail = await self.github.get_repo(candidate.full_name)
                persisted = self._persist(index, candidate, detail, snapshot_date, previous_date, now)
                self.session.commit()
            except Exception as exc:
                self.session.rollback()
                if not self.isolate_failures:
                    raise
                logger.warning(
                    "Repository item failed",
                    extra=sanitize_log_extra(full_name=candidate.full_name, rank=index + 1, error=exc),
                )
                return ItemResult.failed(candidate.full_name, exc)
            return ItemResult.ok(candidate.full_name, persisted)

        items = await gather_bounded(candidates, _process_one, limit=self.concurrency)
        result = RepositoryBatchResult(items=items)

        logger.info(
            f"Processed {len(items)} repositories for {snapshot_date}: "
            f"{len(result.succeeded)} saved, {len(result.failures)} failed"
        )
        return result

    def _persist(
        self,
        index: int,
        candidate: TrendingCandidate,
        detail: RepoDetail,
        snapshot_date: date,
        previous_date: date,
        now: datetime,
    ) -> PersistedRepository:
        owner = None
        if detail.owner is not None and detail.owner.github_id is not None:
            owner, _ = upsert_row(
                self.session,
                Developer,
                keys={"login": detail.owner.login},
                values={"github_id": detail.owner.github_id, "avatar_url": detail.owner.avatar_url},
            )

        previous = self._previous_snapshot(candidate.full_name, previous_date)
        stars_growth = self._stars_growth(candidate, detail, previous)
        forks_growth = max(0, detail.forks - previous.forks) if previous is not None else 0

        has_license = bool(detail.license)
        score = ScorerService.hotness_score(
            RepoMetrics(
                stars_growth=stars_growth,
                forks_growth=forks_growth,
                # The trending feed only lists repositories that have a README.
                has_readme=True,
                has_license=has_license,
                last_commit_days=ScorerService.days_since(detail.pushed_at, now),
                open_issue_ratio=ScorerService.open_issue_ratio(detail.open_issues, detail.stars),
            )
        )

        repository, _ = upsert_row(
            self.session,
            Repository,
            keys={"full_name": candidate.full_name},
            values={
                "github_id": detail.github_id,
                "name": detail.name,
                "description": detail.description,
                "language": detail.language or candidate.language,
                "topics": list(detail.topics),
                "license": detail.license,
                "homepage": detail.homepage,
                "has_readme": True,
                "has_license": has_license,
                "is_archived": detail.archived,
                "is_fork": detail.fork,
                "stars": detail.stars,
                "forks": detail.forks,
                "watchers": detail.watchers,
                "open_issues": detail.open_issues,
                "size": detail.size,
                "score": score,
                "stars_growth_24h": stars_growth,
                "forks_growth_24h": forks_growth,
                "owner_id": owner.id if owner is not None else None,
                "pushed_at": detail.pushed_at,
                "repo_created_at": detail.created_at,
            },
        )
        self.session.flush()

        upsert_row(
            self.session,
            RepositorySnapshot,
            keys={"repository_id": repository.id, "snapshot_date": snapshot_date},
            values={
                "stars": detail.stars,
                "forks": detail.forks,
                "watchers": detail.watchers,
                "open_issues": detail.open_issues,
                "stars_growth": stars_growth,
                "forks_growth": forks_growth,
                "score": score,
                "rank": index + 1,
            },
        )

        return PersistedRepository(
            repository_id=repository.id,
            full_name=candidate.full_name,
            owner_login=owner.login if owner is not None else None,
            rank=index + 1,
        )

    def _previous_snapshot(self, full_name: str, previous_date: date) -> Optional[RepositorySnapshot]:
        return (
            self.session.query(RepositorySnapshot)
            .join(Repository, RepositorySnapshot.repository_id == Repository.id)
            .filter(Repository.full_name == full_name, RepositorySnapshot.snapshot_date == previous_date)
            .one_or_none()
        )

    @staticmethod
    def _stars_growth(
        candidate: TrendingCandidate,
        detail: RepoDetail,
        previous: Optional[RepositorySnapshot],
    ) -> int:
        if candidate.stars_in_window is not None:
            return max(0, candidate.stars_in_window)
        if previous is None:
            return 0
        return max(0, detail.stars - previous.stars)


__all__ = ["PersistedRepository", "RepositoryBatchResult", "RepositoryUpsertProcessor"]
