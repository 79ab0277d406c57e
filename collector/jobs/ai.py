"""AI enrichment job for the day's top repositories"""

from __future__ import annotations

import json
import logging
from datetime import date
from typing import Any, List, Optional, Sequence

from sqlalchemy import String, or_
from sqlalchemy.orm import Session

from collector.config.settings import settings
from collector.jobs.base import JobOutcome
from collector.models import AiAnalysis, Repository, RepositorySnapshot
from collector.services.analyzer import RepositoryAnalyzer
from collector.utils.redaction import sanitize_log_extra

logger = logging.getLogger(__name__)


def build_analysis_context(repository: Repository, snapshot: RepositorySnapshot) -> dict[str, Any]:
    """Repository facts sent to the model"""
    return {
        "repo": repository.full_name,
        "description": repository.description,
        "language": repository.language,
        "topics": list(repository.topics or []),
        "stars": repository.stars,
        "forks": repository.forks,
        "starsGrowth24h": repository.stars_growth_24h,
        "forksGrowth24h": repository.forks_growth_24h,
        "score": snapshot.score,
    }


def suggest_similar_repos(
    session: Session,
    repository: Repository,
    limit: Optional[int] = None,
) -> List[int]:
    """
    Find related repositories by language or shared topics

    Args:
        session: Database session
        repository: Repository to find neighbours for
        limit: Maximum ids to return (defaults to SIMILAR_REPOS_LIMIT)

    Returns:
        Repository ids ordered by score, highest first, excluding ``repository``
    """
    limit = limit or settings.SIMILAR_REPOS_LIMIT
    topics = set(repository.topics or [])
    if not repository.language and not topics:
        return []

    # JSON has no portable overlap operator: the serialized topics narrow the
    # scan in SQL and the exact overlap is checked below.
    matches = [Repository.topics.cast(String).contains(json.dumps(topic)) for topic in sorted(topics)]
    if repository.language:
        matches.append(Repository.language == repository.language)
    query = session.query(Repository).filter(Repository.id != repository.id, or_(*matches))

    similar: List[int] = []
    for candidate in query.order_by(Repository.score.desc(), Repository.id.asc()):
        same_language = bool(repository.language) and candidate.language == repository.language
        if same_language or topics.intersection(candidate.topics or []):
            similar.append(candidate.id)
            if len(similar) >= limit:
                break
    return similar


async def run_ai_job(
    session: Session,
    *,
    snapshot_date: date,
    analyzer: Optional[RepositoryAnalyzer],
    top_n: Optional[int] = None,
    isolate_failures: Optional[bool] = None,
) -> JobOutcome:
    """
    Generate one analysis per top repository of the day

    The job is skipped when no analyzer is configured. Repositories that
    already have an analysis for ``snapshot_date`` are left untouched, so a
    re-run never calls the model twice for the same row.

    Returns:
        JobOutcome where records_processed counts newly written analyses
    """
    if analyzer is None:
        logger.warning("OPENAI_API_KEY not set; skipping AI analysis")
        return JobOutcome.skipped()

    isolate = settings.ISOLATE_ITEM_FAILURES if isolate_failures is None else isolate_failures
    top: Sequence[RepositorySnapshot] = (
        session.query(RepositorySnapshot)
        .filter(RepositorySnapshot.snapshot_date == snapshot_date)
        .order_by(RepositorySnapshot.score.desc(), RepositorySnapshot.rank.asc())
        .limit(top_n or settings.AI_TOP_N)
        .all()
    )

    processed = 0
    errors: List[str] = []
    for snapshot in top:
        repository = snapshot.repository
        existing = (
            session.query(AiAnalysis.id)
            .filter_by(repository_id=snapshot.repository_id, analysis_date=snapshot_date)
            .one_or_none()
        )
        if existing is not None:
            logger.info("Analysis exists, skipping", extra=sanitize_log_extra(full_name=repository.full_name))
            continue

        try:
            result = await analyzer.analyze(build_analysis_context(repository, snapshot))
            similar_repos = suggest_similar_repos(session, repository)
            session.add(
                AiAnalysis(
                    repository_id=snapshot.repository_id,
                    analysis_date=snapshot_date,
                    summary=result.summary,
                    highlights=result.highlights,
                    use_cases=result.use_cases,
                    tech_stack=result.tech_stack,
                    code_quality=result.code_quality,
                    similar_repos=similar_repos,
                    target_audience=result.target_audience,
                    model_version=result.model_version,
                    tokens_used=result.tokens_used,
                )
            )
            session.commit()
        except Exception as exc:
            session.rollback()
            if not isolate:
                raise
            errors.append(f"{repository.full_name}: {type(exc).__name__}: {exc}")
            logger.warning(
                "Repository analysis failed",
                extra=sanitize_log_extra(full_name=repository.full_name, error=exc),
            )
            continue
        processed += 1

    logger.info(f"AI job complete: {processed} analyses written, {len(errors)} failed, {len(top)} candidates")
    return JobOutcome.from_counts(processed, errors)


__all__ = ["build_analysis_context", "run_ai_job", "suggest_similar_repos"]
