"""Score calculation service for repositories and developers"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional
import math

# Hotness weights
STARS_WEIGHT = 0.7
FORKS_WEIGHT = 0.3
README_BONUS = 0.10
LICENSE_BONUS = 0.05
RECENT_PUSH_BONUS = 0.15
LOW_ISSUE_RATIO_BONUS = 0.10
RECENT_PUSH_DAYS = 30
LOW_ISSUE_RATIO = 0.3

UNKNOWN_AGE_DAYS = 9999


def round_half_up(value: float) -> float:
    """Round to 2 decimals with halves going up (1.125 -> 1.13)"""
    return math.floor(value * 100 + 0.5) / 100


@dataclass(frozen=True)
class RepoMetrics:
    """Inputs of the repository hotness score"""
    stars_growth: int
    forks_growth: int
    has_readme: bool
    has_license: bool
    last_commit_days: int
    open_issue_ratio: float


@dataclass(frozen=True)
class DeveloperMetrics:
    """Inputs of the developer impact score"""
    followers: int
    active_repos: int
    total_stars: int
    contributions: int


class ScorerService:
    """Pure, deterministic scoring for repositories and developers"""

    @staticmethod
    def hotness_score(metrics: RepoMetrics) -> float:
        """
        Calculate the hotness score of a repository

        The score combines:
        - Base growth (stars weighted 0.7, forks weighted 0.3)
        - An additive multiplier: README, license, recent push and a low
          open-issue ratio each add their own bonus to 1.0

        Args:
            metrics: RepoMetrics to score

        Returns:
            Score rounded to 2 decimals
        """
        base_score = (
            metrics.stars_growth * STARS_WEIGHT
            + metrics.forks_growth * FORKS_WEIGHT
        )

        multiplier = 1.0
        if metrics.has_readme:
            multiplier += README_BONUS
        if metrics.has_license:
            multiplier += LICENSE_BONUS
        if metrics.last_commit_days < RECENT_PUSH_DAYS:
            multiplier += RECENT_PUSH_BONUS
        if metrics.open_issue_ratio < LOW_ISSUE_RATIO:
            multiplier += LOW_ISSUE_RATIO_BONUS

        return round_half_up(base_score * multiplier)

    @staticmethod
    def impact_score(metrics: DeveloperMetrics) -> float:
        """
        Calculate the impact score of a developer

        followers and total stars are log-scaled, active repositories count
        linearly and contributions saturate at 1000.

        Args:
            metrics: DeveloperMetrics to score

        Returns:
            Score rounded to 2 decimals
        """
        follower_score = math.log10(metrics.followers + 1)
        repo_score = metrics.active_repos * 0.5
        star_bonus = math.log10(metrics.total_stars + 1) * 0.3
        activity_bonus = min(metrics.contributions / 1000, 1) * 0.2

        return round_half_up(follower_score + repo_score + star_bonus + activity_bonus)

    @staticmethod
    def open_issue_ratio(open_issues: int, stars: int) -> float:
        """Share of open issues in open issues + stars (0 when both are 0)"""
        total = open_issues + stars
        if total <= 0:
            return 0.0
        return open_issues / total

    @staticmethod
    def days_since(moment: Optional[datetime], now: datetime) -> int:
        """Whole days between ``moment`` and ``now``; unknown moments count as very old"""
        if moment is None:
            return UNKNOWN_AGE_DAYS
        return math.floor((now - moment).total_seconds() / 86400)
