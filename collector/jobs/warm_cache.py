"""Cache warm job: prime the serving API's hot read paths"""

from __future__ import annotations

import asyncio
import logging
from datetime import date
from typing import List, Optional, Sequence, Tuple
from urllib.parse import quote

import httpx
from sqlalchemy.orm import Session

from collector.config.settings import settings
from collector.errors import UpstreamHTTPError
from collector.jobs.base import JobOutcome
from collector.models import Repository, RepositorySnapshot
from collector.utils.concurrency import gather_bounded
from collector.utils.redaction import sanitize_log_extra

logger = logging.getLogger(__name__)

API_PREFIX = "/v1"
REPOSITORY_LISTING = "/repositories?limit=50&sort=score&period=daily"

TOP_LANGUAGES = (
    "JavaScript",
    "TypeScript",
    "Python",
    "Go",
    "Rust",
    "Java",
    "C++",
    "C#",
    "PHP",
    "Ruby",
)

CORE_PATHS = (
    REPOSITORY_LISTING,
    "/developers?limit=30&sort=impact",
    "/developers?limit=30&sort=followers",
    "/developers?limit=30&sort=stars",
    "/trends/languages?period=weekly",
    "/trends/topics?period=weekly",
)

OPTIONAL_PATHS = (
    "/trends/growth?metric=stars&period=daily&limit=10",
    "/trends/growth?metric=forks&period=daily&limit=10",
    "/trends/growth?metric=score&period=daily&limit=10",
)


class CacheWarmer:
    """Issues GET requests against the serving API through one shared concurrency cap."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        *,
        concurrency: Optional[int] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        origin = (base_url or settings.API_BASE_URL).rstrip("/")
        self._semaphore = asyncio.Semaphore(concurrency or settings.WARM_CACHE_CONCURRENCY)
        self._client = httpx.AsyncClient(
            base_url=f"{origin}{API_PREFIX}",
            headers={"Accept": "application/json", "User-Agent": settings.USER_AGENT},
            timeout=timeout or settings.HTTP_TIMEOUT_SECONDS,
            transport=transport,
        )
        self.succeeded = 0

    async def __aenter__(self) -> "CacheWarmer":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def hit(self, path: str) -> httpx.Response:
        """GET ``path``; a transport failure or non-2xx status raises UpstreamHTTPError"""
        async with self._semaphore:
            try:
                response = await self._client.get(path)
            except httpx.HTTPError as exc:
                raise UpstreamHTTPError(f"warm-cache request failed: {exc}", url=path) from exc

        if not response.is_success:
            raise UpstreamHTTPError(
                f"warm-cache: {response.status_code} {path}",
                status_code=response.status_code,
                url=path,
            )

        self.succeeded += 1
        logger.info(
            "Cache warmed",
            extra=sanitize_log_extra(path=path, cache=response.headers.get("x-cache")),
        )
        return response

    async def try_hit(self, path: str) -> Optional[httpx.Response]:
        """Like :meth:`hit` but a failed request only logs"""
        try:
            return await self.hit(path)
        except UpstreamHTTPError as exc:
            logger.info("Optional warm request failed", extra=sanitize_log_extra(path=path, error=exc))
            return None


def language_listing_path(language: str) -> str:
    return f"{REPOSITORY_LISTING}&language={quote(language, safe='')}"


def repository_paths(full_name: str) -> Tuple[str, str]:
    """Detail and analysis paths for one repository"""
    encoded = quote(full_name, safe="")
    return f"/repositories/{encoded}", f"/repositories/{encoded}/analysis"


def top_repository_names(session: Session, snapshot_date: date, limit: int) -> List[str]:
    """Full names of the day's top persisted repositories, by rank"""
    rows = (
        session.query(Repository.full_name)
        .join(RepositorySnapshot, RepositorySnapshot.repository_id == Repository.id)
        .filter(RepositorySnapshot.snapshot_date == snapshot_date)
        .order_by(RepositorySnapshot.rank.asc())
        .limit(limit)
        .all()
    )
    return [row.full_name for row in rows]


def listing_names(response: Optional[httpx.Response], limit: int) -> List[str]:
    """Full names from a repository listing body (``{"data": [{"fullName": ...}]}``)"""
    if response is None:
        return []
    try:
        payload = response.json()
    except ValueError:
        logger.warning("Repository listing is not JSON")
        return []

    data = payload.get("data") if isinstance(payload, dict) else None
    if not isinstance(data, list):
        return []
    names = [item.get("fullName") for item in data if isinstance(item, dict)]
    return [name for name in names if isinstance(name, str) and name][:limit]


async def run_warm_cache_job(
    session: Session,
    *,
    warmer: CacheWarmer,
    snapshot_date: date,
    top_repos: Optional[int] = None,
    languages: Sequence[str] = TOP_LANGUAGES,
) -> JobOutcome:
    """
    Warm list, trend, language and top-repository paths

    Core paths fail the job; growth trends and per-repository analyses are
    optional. Every request shares the warmer's concurrency cap.

    Returns:
        JobOutcome where records_processed counts successful requests
    """
    limit = top_repos or settings.WARM_TOP_REPOS
    logger.info(
        "Warm-cache job started",
        extra=sanitize_log_extra(snapshot_date=snapshot_date.isoformat()),
    )

    requests: List[Tuple[str, bool]] = [(path, False) for path in CORE_PATHS]
    requests += [(path, True) for path in OPTIONAL_PATHS]
    requests += [(language_listing_path(language), False) for language in languages]

    async def _request(_: int, request: Tuple[str, bool]) -> Optional[httpx.Response]:
        path, optional = request
        if optional:
            return await warmer.try_hit(path)
        return await warmer.hit(path)

    responses = await gather_bounded(requests, _request, limit=len(requests))

    names = top_repository_names(session, snapshot_date, limit)
    if not names:
        names = listing_names(responses[0], limit)

    async def _warm_repository(_: int, full_name: str) -> None:
        detail_path, analysis_path = repository_paths(full_name)
        await warmer.hit(detail_path)
        await warmer.try_hit(analysis_path)

    if names:
        await gather_bounded(names, _warm_repository, limit=len(names))

    logger.info(f"Warm-cache job complete: {warmer.succeeded} requests, {len(names)} repositories")
    return JobOutcome(records_processed=warmer.succeeded)


__all__ = [
    "CacheWarmer",
    "TOP_LANGUAGES",
    "language_listing_path",
    "repository_paths",
    "run_warm_cache_job",
]
