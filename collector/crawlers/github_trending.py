"""GitHub trending page scraper"""

from __future__ import annotations

import logging
import re
from typing import List, Optional
from urllib.parse import quote

import httpx
from bs4 import BeautifulSoup, Tag

from collector.config.settings import settings
from collector.crawlers.base import validate_window
from collector.crawlers.contracts import TrendingCandidate
from collector.errors import BadUpstreamDataError, UpstreamHTTPError
from collector.utils.helpers import parse_human_number
from collector.utils.redaction import sanitize_log_extra

logger = logging.getLogger(__name__)

_WINDOW_SUFFIX = re.compile(r"stars?\s+(today|this\s+week|this\s+month)", re.IGNORECASE)


class GitHubTrendingSource:
    """Scrapes ``github.com/trending`` into :class:`TrendingCandidate` lists."""

    def __init__(
        self,
        *,
        base_url: Optional[str] = None,
        user_agent: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._base_url = (base_url or settings.GITHUB_TRENDING_URL).rstrip("/")
        self._client = httpx.AsyncClient(
            headers={"User-Agent": user_agent or settings.USER_AGENT, "Accept": "text/html"},
            timeout=timeout or settings.HTTP_TIMEOUT_SECONDS,
            follow_redirects=True,
            transport=transport,
        )

    async def __aenter__(self) -> "GitHubTrendingSource":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    def build_url(self, since: str, language: Optional[str] = None) -> str:
        path = self._base_url
        if language:
            path = f"{path}/{quote(language.lower(), safe='')}"
        return f"{path}?since={since}"

    async def fetch_candidates(self, since: str = "daily", language: Optional[str] = None) -> List[TrendingCandidate]:
        validate_window(since)
        url = self.build_url(since, language)

        try:
            response = await self._client.get(url)
        except httpx.HTTPError as exc:
            raise UpstreamHTTPError(f"GitHub trending request failed: {exc}", url=url) from exc

        if response.status_code >= 400:
            raise UpstreamHTTPError(
                f"GitHub trending fetch failed: {response.status_code}",
                status_code=response.status_code,
                url=url,
            )

        candidates = parse_trending_page(response.text)
        logger.info(
            "Fetched trending candidates",
            extra=sanitize_log_extra(since=since, language=language, count=len(candidates)),
        )
        return candidates


def parse_trending_page(html: str) -> List[TrendingCandidate]:
    """
    Parse trending markup into candidates

    Items that fail to parse are skipped. A page where nothing could be parsed
    is treated as an unrecognized layout, unless GitHub rendered its explicit
    "no trending repositories" empty state.
    """
    soup = BeautifulSoup(html, "html.parser")
    rows = soup.select("article.Box-row")

    candidates: List[TrendingCandidate] = []
    for row in rows:
        try:
            candidate = _parse_row(row)
        except (AttributeError, TypeError, ValueError) as exc:
            logger.warning("Skipping unparseable trending item", extra=sanitize_log_extra(error=str(exc)))
            continue
        if candidate is not None:
            candidates.append(candidate)

    if candidates:
        return candidates
    if not rows and soup.select_one(".blankslate") is not None:
        return []
    raise BadUpstreamDataError(
        f"Trending page layout not recognized: parsed 0 of {len(rows)} item blocks"
    )


def _parse_row(row: Tag) -> Optional[TrendingCandidate]:
    link = row.select_one("h2 a")
    if link is None:
        return None

    full_name = re.sub(r"\s+", "", str(link.get("href") or "")).strip("/")
    if full_name.count("/") != 1:
        return None

    description = _text(row.select_one("p"))
    language = _text(row.select_one("[itemprop='programmingLanguage']"))
    stars_total = parse_human_number(_text(row.select_one("a[href$='/stargazers']")))
    forks_total = parse_human_number(_text(row.select_one("a[href$='/forks']")))

    window_text = _text(row.select_one("span.d-inline-block.float-sm-right")) or ""
    stars_in_window = parse_human_number(_WINDOW_SUFFIX.sub("", window_text).strip())

    return TrendingCandidate(
        full_name=full_name,
        description=description,
        language=language,
        stars_total=stars_total,
        forks_total=forks_total,
        stars_in_window=stars_in_window,
    )


def _text(node: Optional[Tag]) -> Optional[str]:
    if node is None:
        return None
    text = node.get_text(" ", strip=True)
    return text or None


__all__ = ["GitHubTrendingSource", "parse_trending_page"]
