"""Trend source adapters."""

from collector.crawlers.base import TRENDING_WINDOWS, TrendingSource
from collector.crawlers.contracts import (
    BatchResult,
    ItemResult,
    ItemState,
    OwnerRef,
    RepoDetail,
    TrendingCandidate,
    UserDetail,
)
from collector.crawlers.github_client import GitHubClient
from collector.crawlers.github_trending import GitHubTrendingSource, parse_trending_page

__all__ = [
    "TRENDING_WINDOWS",
    "TrendingSource",
    "TrendingCandidate",
    "OwnerRef",
    "RepoDetail",
    "UserDetail",
    "ItemState",
    "ItemResult",
    "BatchResult",
    "GitHubClient",
    "GitHubTrendingSource",
    "parse_trending_page",
]
