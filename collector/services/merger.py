"""Merge and deduplicate trending candidate lists"""

from typing import Dict, Iterable, List, Sequence
import logging

from collector.crawlers.contracts import TrendingCandidate

logger = logging.getLogger(__name__)

DEFAULT_TOP_N = 100


def _gain(candidate: TrendingCandidate) -> int:
    return candidate.stars_in_window or 0


def merge_trending(
    lists: Iterable[Sequence[TrendingCandidate]],
    top_n: int = DEFAULT_TOP_N
) -> List[TrendingCandidate]:
    """
    Combine global and per-language trending lists into one ranking

    Duplicates are resolved with a max-merge on the window star gain: a later
    occurrence only replaces the kept one when its gain is strictly greater,
    and the kept entry keeps its first-seen position. The result is ordered by
    gain (descending, stable so ties keep discovery order) and truncated.

    Args:
        lists: Candidate lists in discovery order (global list first)
        top_n: Maximum number of candidates to keep

    Returns:
        Deduplicated, ranked candidates
    """
    merged: Dict[str, TrendingCandidate] = {}
    seen = 0

    for candidates in lists:
        for candidate in candidates:
            seen += 1
            existing = merged.get(candidate.full_name)
            if existing is None or _gain(candidate) > _gain(existing):
                merged[candidate.full_name] = candidate

    ranked = sorted(merged.values(), key=_gain, reverse=True)[:top_n]

    logger.info(
        f"Merged {seen} trending entries -> {len(merged)} unique, kept top {len(ranked)}"
    )
    return ranked
