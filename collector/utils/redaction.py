"""Log redaction for credentials and upstream payloads."""

from __future__ import annotations

import re
from typing import Any

REDACTED = "***REDACTED***"
MAX_LOG_STRING = 500

SENSITIVE_KEY_PARTS = ("authorization", "token", "api_key", "apikey", "secret", "password", "session", "cookie")
PAYLOAD_KEYS = frozenset({"body", "content", "markdown", "html", "raw", "prompt"})

_INLINE_SECRET_PATTERNS = (
    (re.compile(r"(?i)\b(bearer|token)\s+[A-Za-z0-9._\-]+"), rf"\1 {REDACTED}"),
    (re.compile(r"(?i)\b(access_token|api_key|token|key|secret|password)=[^&\s]+"), rf"\1={REDACTED}"),
    (re.compile(r"\b(?:sk|ghp|gho|ghs|github_pat)[-_][A-Za-z0-9_\-]{6,}"), REDACTED),
)


def _is_sensitive_key(key: str | None) -> bool:
    if not key:
        return False
    lowered = key.lower()
    if lowered.endswith("_tokens") or lowered == "tokens_used":
        return False
    return any(part in lowered for part in SENSITIVE_KEY_PARTS)


def _scrub_text(text: str) -> str:
    for pattern, replacement in _INLINE_SECRET_PATTERNS:
        text = pattern.sub(replacement, text)
    if len(text) > MAX_LOG_STRING:
        text = text[:MAX_LOG_STRING] + "..."
    return text


def sanitize_for_log(value: Any, key: str | None = None) -> Any:
    """Return a copy of ``value`` that is safe to write to logs."""
    if value is None:
        return None
    if _is_sensitive_key(key):
        return REDACTED
    if isinstance(value, dict):
        return {item_key: sanitize_for_log(item, key=str(item_key)) for item_key, item in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [sanitize_for_log(item) for item in value]
    if isinstance(value, BaseException):
        value = f"{type(value).__name__}: {value}"
    if isinstance(value, str):
        if key and key.lower() in PAYLOAD_KEYS:
            return f"<redacted payload len={len(value)}>"
        return _scrub_text(value)
    return value


def sanitize_log_extra(**fields: Any) -> dict[str, Any]:
    """Build a ``logging`` ``extra`` mapping with every field sanitized."""
    return {key: sanitize_for_log(value, key=key) for key, value in fields.items()}


__all__ = ["REDACTED", "sanitize_for_log", "sanitize_log_extra"]
