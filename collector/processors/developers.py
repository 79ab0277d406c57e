"""Reconcile repository owners into developer profiles and daily snapshots"""

from __future__ import annotations

import logging
from datetime import date
from typing import Iterable, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from collector.config.settings import settings
from collector.crawlers.contracts import BatchResult, ItemResult, UserDetail
from collector.models import Developer, DeveloperSnapshot, Repository
from collector.services.scorer import DeveloperMetrics, ScorerService
from collector.utils.persistence import upsert_row
from collector.utils.redaction import sanitize_log_extra

logger = logging.getLogger(__name__)


class DeveloperUpsertProcessor:
    """Refresh owner profiles one at a time and recompute their impact score."""

    def __init__(self, session: Session, github, *, isolate_failures: Optional[bool] = None) -> None:
        self.session = session
        self.github = github
        self.isolate_failures = (
            settings.ISOLATE_ITEM_FAILURES if isolate_failures is None else isolate_failures
        )

    async def process(self, logins: Iterable[str], snapshot_date: date) -> BatchResult[int]:
        """
        Persist profiles, aggregates and snapshots for distinct logins

        Args:
            logins: Owner logins (duplicates and blanks are ignored, first-seen order kept)
            snapshot_date: UTC day of the snapshot

        Returns:
            BatchResult of developer ids
        """
        unique = list(dict.fromkeys(login for login in logins if login))
        result: BatchResult[int] = BatchResult()

        for login in unique:
            try:
                detail = await self.github.get_user(login)
                developer_id = self._persist(detail, snapshot_date)
                self.session.commit()
            except Exception as exc:
                self.session.rollback()
                if not self.isolate_failures:
                    raise
                logger.warning("Developer item failed", extra=sanitize_log_extra(login=login, error=exc))
                result.items.append(ItemResult.failed(login, exc))
                continue
            result.items.append(ItemResult.ok(login, developer_id))

        logger.info(
            f"Processed {len(unique)} developers for {snapshot_date}: "
            f"{len(result.succeeded)} saved, {len(result.failures)} failed"
        )
        return result

    def _persist(self, detail: UserDetail, snapshot_date: date) -> int:
        developer, _ = upsert_row(
            self.session,
            Developer,
            keys={"login": detail.login},
            values={
                "github_id": detail.github_id,
                "name": detail.name,
                "avatar_url": detail.avatar_url,
                "bio": detail.bio,
                "company": detail.company,
                "location": detail.location,
                "blog": detail.blog,
                "email": detail.email,
                "twitter_username": detail.twitter_username,
                "followers": detail.followers,
                "following": detail.following,
                "public_repos": detail.public_repos,
                "public_gists": detail.public_gists,
                "dev_created_at": detail.created_at,
            },
        )
        self.session.flush()

        total_stars = (
            self.session.query(func.coalesce(func.sum(Repository.stars), 0))
            .filter(Repository.owner_id == developer.id)
            .scalar()
        )
        active_repos = (
            self.session.query(func.count(Repository.id))
            .filter(Repository.owner_id == developer.id, Repository.is_archived.is_(False))
            .scalar()
        )
        # No contribution source is wired yet.
        contributions = 0

        impact_score = ScorerService.impact_score(
            DeveloperMetrics(
                followers=developer.followers,
                active_repos=int(active_repos or 0),
                total_stars=int(total_stars or 0),
                contributions=contributions,
            )
        )

        developer.total_stars = int(total_stars or 0)
        developer.active_repos = int(active_repos or 0)
        developer.contributions = contributions
        developer.impact_score = impact_score

        upsert_row(
            self.session,
            DeveloperSnapshot,
            keys={"developer_id": developer.id, "snapshot_date": snapshot_date},
            values={
                "followers": developer.followers,
                "public_repos": developer.public_repos,
                "total_stars": developer.total_stars,
                "impact_score": impact_score,
            },
        )
        return developer.id


__all__ = ["DeveloperUpsertProcessor"]
