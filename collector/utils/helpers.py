"""Utility helper functions"""

from datetime import UTC, date, datetime, timedelta
from typing import Any, Optional
import re

_HUMAN_NUMBER = re.compile(r"^([0-9]*\.?[0-9]+)([kmb])?$")
_SUFFIX_MULTIPLIERS = {"k": 1_000, "m": 1_000_000, "b": 1_000_000_000}


def utc_now() -> datetime:
    """Current time as an aware UTC datetime"""
    return datetime.now(UTC)


def utc_today(now: Optional[datetime] = None) -> date:
    """
    UTC calendar day used as the snapshot date

    Args:
        now: Reference moment (defaults to the current time)

    Returns:
        The UTC date of ``now``
    """
    moment = now or utc_now()
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=UTC)
    return moment.astimezone(UTC).date()


def previous_day(day: date) -> date:
    """Calendar day immediately before ``day``"""
    return day - timedelta(days=1)


def parse_datetime(raw: Any) -> Optional[datetime]:
    """
    Parse an ISO-8601 timestamp as returned by the GitHub API

    Args:
        raw: Timestamp string such as "2024-05-01T10:00:00Z"

    Returns:
        Aware UTC datetime, or None when missing or unparseable
    """
    if not isinstance(raw, str) or not raw.strip():
        return None

    text = raw.strip().replace("Z", "+00:00")
    try:
        value = datetime.fromisoformat(text)
    except ValueError:
        return None

    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def parse_human_number(raw: Optional[str]) -> Optional[int]:
    """
    Parse a compacted count such as "1,234", "1.2k" or "3m"

    Args:
        raw: Text scraped from the page

    Returns:
        Integer value, or None when the text is not a number
    """
    if raw is None:
        return None

    text = raw.replace(",", "").strip().lower()
    if not text:
        return None

    match = _HUMAN_NUMBER.match(text)
    if not match:
        return None

    multiplier = _SUFFIX_MULTIPLIERS.get(match.group(2) or "", 1)
    return round(float(match.group(1)) * multiplier)


def truncate_string(text: str, max_length: int, suffix: str = "...") -> str:
    """
    Truncate string to maximum length

    Args:
        text: Text to truncate
        max_length: Maximum length
        suffix: Suffix to add if truncated

    Returns:
        Truncated string
    """
    if len(text) <= max_length:
        return text

    return text[:max_length - len(suffix)] + suffix
