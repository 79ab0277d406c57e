"""Daily trending ingestion job"""

from __future__ import annotations

import logging
from datetime import date
from typing import List, Optional, Sequence

from sqlalchemy.orm import Session

from collector.config.settings import settings
from collector.crawlers.base import TrendingSource
from collector.crawlers.contracts import TrendingCandidate
from collector.jobs.base import JobOutcome
from collector.processors.developers import DeveloperUpsertProcessor
from collector.processors.repositories import RepositoryUpsertProcessor
from collector.services.merger import merge_trending
from collector.utils.concurrency import gather_bounded
from collector.utils.redaction import sanitize_log_extra

logger = logging.getLogger(__name__)


async def fetch_trending_lists(
    source: TrendingSource,
    *,
    since: Optional[str] = None,
    languages: Optional[Sequence[str]] = None,
) -> List[List[TrendingCandidate]]:
    """
    Fetch the global list and every per-language list concurrently

    Args:
        source: Trending source
        since: Trending window (defaults to TRENDING_SINCE)
        languages: Language slugs (defaults to TRENDING_LANGUAGES)

    Returns:
        Candidate lists, global first, then languages in the given order
    """
    since = since or settings.TRENDING_SINCE
    languages = list(settings.TRENDING_LANGUAGES if languages is None else languages)

    targets: List[Optional[str]] = [None, *languages]

    async def _fetch(_: int, language: Optional[str]) -> List[TrendingCandidate]:
        return await source.fetch_candidates(since, language)

    return await gather_bounded(targets, _fetch, limit=len(targets))


async def collect_trending(
    source: TrendingSource,
    *,
    since: Optional[str] = None,
    languages: Optional[Sequence[str]] = None,
    top_n: Optional[int] = None,
) -> List[TrendingCandidate]:
    """Fetch and merge trending lists into the ranked top candidates"""
    lists = await fetch_trending_lists(source, since=since, languages=languages)
    return merge_trending(lists, top_n=top_n or settings.TRENDING_TOP_N)


async def run_daily_job(
    session: Session,
    *,
    source: TrendingSource,
    github,
    snapshot_date: date,
    since: Optional[str] = None,
    languages: Optional[Sequence[str]] = None,
    top_n: Optional[int] = None,
    isolate_failures: Optional[bool] = None,
) -> JobOutcome:
    """
    Build today's ranked snapshot from the trending feed

    Steps:
    1. Fetch the global and per-language trending lists
    2. Merge them and keep the top candidates
    3. Reconcile repositories (bounded concurrency)
    4. Reconcile the owners of the persisted repositories

    Returns:
        JobOutcome where records_processed counts persisted repositories and
        records_failed counts repository and developer item failures
    """
    logger.info("Daily job started", extra=sanitize_log_extra(snapshot_date=snapshot_date.isoformat()))

    top = await collect_trending(source, since=since, languages=languages, top_n=top_n)

    repositories = await RepositoryUpsertProcessor(
        session, github, isolate_failures=isolate_failures
    ).process(top, snapshot_date)

    developers = await DeveloperUpsertProcessor(
        session, github, isolate_failures=isolate_failures
    ).process(repositories.owner_logins, snapshot_date)

    errors = [f"{item.key}: {item.error}" for item in [*repositories.failures, *developers.failures]]
    outcome = JobOutcome.from_counts(len(repositories.repository_ids), errors)
    logger.info(
        f"Daily job complete: {outcome.records_processed} repositories, "
        f"{len(developers.succeeded)} developers, {outcome.records_failed} failures"
    )
    return outcome


__all__ = ["collect_trending", "fetch_trending_lists", "run_daily_job"]
