"""Repository analysis using the OpenAI chat completions API."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Optional

from openai import AsyncOpenAI
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from collector.config.settings import settings
from collector.errors import BadUpstreamDataError
from collector.utils.redaction import sanitize_log_extra

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are an expert open-source analyst. Return strictly-valid JSON only. "
    "No markdown. No extra text."
)


class AnalysisPayload(BaseModel):
    """Validated analysis schema returned by the model."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    summary: str = ""
    highlights: list[str] = Field(default_factory=list)
    use_cases: list[str] = Field(default_factory=list, alias="useCases")
    tech_stack: Optional[dict[str, Any]] = Field(default=None, alias="techStack")
    code_quality: Optional[dict[str, Any]] = Field(default=None, alias="codeQuality")
    target_audience: Optional[str] = Field(default=None, alias="targetAudience")

    @field_validator("summary", mode="before")
    @classmethod
    def validate_summary(cls, value: Any) -> str:
        if value is None:
            return ""
        return value

    @field_validator("highlights", "use_cases", mode="before")
    @classmethod
    def validate_string_lists(cls, value: Any) -> Any:
        if value is None:
            return []
        return value

    @field_validator("tech_stack", "code_quality", mode="before")
    @classmethod
    def keep_documents_only(cls, value: Any) -> Optional[dict[str, Any]]:
        return value if isinstance(value, dict) else None


@dataclass(slots=True)
class AnalysisResult:
    """Normalized analysis plus usage metadata."""

    summary: str
    highlights: list[str] = field(default_factory=list)
    use_cases: list[str] = field(default_factory=list)
    tech_stack: Optional[dict[str, Any]] = None
    code_quality: Optional[dict[str, Any]] = None
    target_audience: Optional[str] = None
    model_version: str = ""
    tokens_used: int = 0


class RepositoryAnalyzer:
    """Explain why a repository is trending with a single chat completion call."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        *,
        client: Optional[AsyncOpenAI] = None,
        model: Optional[str] = None,
        temperature: Optional[float] = None,
        timeout: Optional[float] = None,
    ) -> None:
        self.model = model or settings.OPENAI_MODEL
        self.temperature = settings.OPENAI_TEMPERATURE if temperature is None else temperature

        if client is not None:
            self.client = client
        else:
            api_key = api_key or settings.OPENAI_API_KEY
            if not api_key:
                raise ValueError("OPENAI_API_KEY is required for repository analysis")
            self.client = AsyncOpenAI(
                api_key=api_key,
                timeout=timeout or settings.HTTP_TIMEOUT_SECONDS,
                max_retries=0,
            )

    async def analyze(self, context: dict[str, Any]) -> AnalysisResult:
        """
        Generate an analysis for one repository

        Args:
            context: Repository facts (repo, description, language, topics,
                stars, forks, starsGrowth24h, forksGrowth24h, score)

        Returns:
            AnalysisResult with model version and token usage

        Raises:
            BadUpstreamDataError: when the response envelope or its JSON
                content is malformed. Transport and API errors from the
                openai SDK propagate unchanged.
        """
        response = await self.client.chat.completions.create(
            model=self.model,
            temperature=self.temperature,
            messages=[
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": self._build_prompt(context)},
            ],
            response_format={"type": "json_object"},
        )

        content = self._extract_content(response)
        payload = self._parse_content(content)
        usage = getattr(response, "usage", None)
        tokens_used = int(getattr(usage, "total_tokens", 0) or 0)

        logger.info(
            "Repository analysis generated",
            extra=sanitize_log_extra(repo=context.get("repo"), model=self.model, tokens_used=tokens_used),
        )

        return AnalysisResult(
            summary=payload.summary,
            highlights=payload.highlights,
            use_cases=payload.use_cases,
            tech_stack=payload.tech_stack,
            code_quality=payload.code_quality,
            target_audience=payload.target_audience,
            model_version=self.model,
            tokens_used=tokens_used,
        )

    @staticmethod
    def _build_prompt(context: dict[str, Any]) -> str:
        return (
            "Analyze why this repository is trending and provide actionable insight.\n"
            "Return JSON with keys: summary (string, 1-2 sentences), highlights (string[]), "
            "useCases (string[]), techStack (object|null), codeQuality (object|null), "
            "targetAudience (string|null).\n"
            f"Repository context: {json.dumps(context, ensure_ascii=False, default=str)}"
        )

    @staticmethod
    def _extract_content(response: Any) -> str:
        choices = getattr(response, "choices", None) or []
        if not choices:
            raise BadUpstreamDataError("OpenAI response has no choices")

        message = getattr(choices[0], "message", None)
        content = getattr(message, "content", None)
        if not isinstance(content, str) or not content.strip():
            raise BadUpstreamDataError("OpenAI response has no message content")
        return content

    @staticmethod
    def _parse_content(content: str) -> AnalysisPayload:
        try:
            parsed = json.loads(content)
        except json.JSONDecodeError as exc:
            raise BadUpstreamDataError("OpenAI returned non-JSON content") from exc

        if not isinstance(parsed, dict):
            raise BadUpstreamDataError("OpenAI content is not a JSON object")

        try:
            return AnalysisPayload.model_validate(parsed)
        except ValidationError as exc:
            raise BadUpstreamDataError(f"OpenAI content failed validation: {exc.error_count()} errors") from exc


__all__ = ["AnalysisPayload", "AnalysisResult", "RepositoryAnalyzer"]
