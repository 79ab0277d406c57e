"""GitHub REST client for authoritative repository and user detail."""

from __future__ import annotations

import logging
from typing import Any, Optional
from urllib.parse import quote

import httpx

from collector.config.settings import settings
from collector.crawlers.contracts import RepoDetail, UserDetail
from collector.errors import BadUpstreamDataError, UpstreamHTTPError
from collector.utils.redaction import sanitize_log_extra

logger = logging.getLogger(__name__)

GITHUB_API_VERSION = "2022-11-28"


def split_full_name(full_name: str) -> tuple[str, str]:
    owner, _, repo = full_name.strip().partition("/")
    if not owner or not repo or "/" in repo:
        raise ValueError(f"Invalid full name: {full_name!r}")
    return owner, repo


class GitHubClient:
    """Thin async REST client. Errors propagate to the caller; there is no retry here."""

    def __init__(
        self,
        token: Optional[str] = None,
        *,
        base_url: Optional[str] = None,
        user_agent: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        token = token if token is not None else settings.GITHUB_TOKEN
        headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": GITHUB_API_VERSION,
            "User-Agent": user_agent or settings.USER_AGENT,
        }
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._client = httpx.AsyncClient(
            base_url=(base_url or settings.GITHUB_API_URL).rstrip("/"),
            headers=headers,
            timeout=timeout or settings.HTTP_TIMEOUT_SECONDS,
            transport=transport,
        )

    async def __aenter__(self) -> "GitHubClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def get_repo(self, full_name: str) -> RepoDetail:
        owner, repo = split_full_name(full_name)
        payload = await self._request(f"/repos/{quote(owner, safe='')}/{quote(repo, safe='')}")
        return RepoDetail.from_api(payload)

    async def get_user(self, login: str) -> UserDetail:
        if not login or not login.strip():
            raise ValueError("login is required")
        payload = await self._request(f"/users/{quote(login.strip(), safe='')}")
        return UserDetail.from_api(payload)

    async def _request(self, path: str, params: Optional[dict[str, Any]] = None) -> Any:
        try:
            response = await self._client.get(path, params=params)
        except httpx.HTTPError as exc:
            logger.warning("GitHub request failed", extra=sanitize_log_extra(path=path, error=str(exc)))
            raise UpstreamHTTPError(f"GitHub request failed: {exc}", url=path) from exc

        if response.status_code >= 400:
            message = _error_message(response)
            logger.warning(
                "GitHub request failed",
                extra=sanitize_log_extra(path=path, status_code=response.status_code, error=message),
            )
            raise UpstreamHTTPError(
                f"GitHub API error {response.status_code} for {path}: {message}",
                status_code=response.status_code,
                url=path,
            )

        try:
            return response.json()
        except ValueError as exc:
            raise BadUpstreamDataError(f"GitHub returned non-JSON body for {path}") from exc


def _error_message(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return response.reason_phrase or "unknown error"
    if isinstance(payload, dict) and payload.get("message"):
        return str(payload["message"])
    return response.reason_phrase or "unknown error"


__all__ = ["GitHubClient", "GITHUB_API_VERSION", "split_full_name"]
