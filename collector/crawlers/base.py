"""Capability interface for trending sources"""

from typing import List, Optional, Protocol, runtime_checkable

from collector.crawlers.contracts import TrendingCandidate

TRENDING_WINDOWS = ("daily", "weekly", "monthly")


@runtime_checkable
class TrendingSource(Protocol):
    """
    Anything that can list trending repository candidates

    The pipeline depends only on this interface, so the HTML scraper can be
    swapped for another source (or a fake in tests).
    """

    async def fetch_candidates(
        self,
        since: str = "daily",
        language: Optional[str] = None,
    ) -> List[TrendingCandidate]:
        """
        Fetch the ranked candidate list for one window

        Args:
            since: Trending window ("daily", "weekly" or "monthly")
            language: Optional language filter (source-specific slug)

        Returns:
            Candidates in the order the source ranked them
        """
        ...


def validate_window(since: str) -> str:
    """Reject trending windows the sources do not understand"""
    if since not in TRENDING_WINDOWS:
        raise ValueError(f"Unsupported trending window: {since}")
    return since
