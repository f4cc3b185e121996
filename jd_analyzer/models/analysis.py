"""
Analysis Data Models

Pydantic models for the requests sent to and results received from the
analysis API. Results are frozen: once the pipeline hands one out it never
changes, so the same instance can safely sit in the cache and in the
caller's hands.
"""

from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from jd_analyzer.core.config.constants import MAX_CONTENT_LENGTH
from jd_analyzer.core.exceptions import InvalidInputError


class AnalysisType(str, Enum):
    """
    Kind of analysis requested.

    JD_ANALYSIS is the full analysis; "full-analysis" is accepted as an alias.
    """

    JD_ANALYSIS = "jd-analysis"
    KEYWORD_EXTRACTION = "keyword-extraction"
    SKILL_MATCHING = "skill-matching"

    @classmethod
    def _missing_(cls, value):
        if isinstance(value, str) and value.strip().lower() in ("full-analysis", "full_analysis"):
            return cls.JD_ANALYSIS
        return None

    @classmethod
    def parse(cls, value: "AnalysisType | str") -> "AnalysisType":
        try:
            return cls(value)
        except ValueError as e:
            raise InvalidInputError(
                f"Unsupported analysis type: {value!r}",
                code="INVALID_ANALYSIS_TYPE",
                details={"supported": [t.value for t in cls]},
            ) from e


class _ProviderModel(BaseModel):
    """Accepts the provider's camelCase JSON as well as snake_case names."""

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


class Keyword(_ProviderModel):
    text: str
    importance: float = Field(default=0.5, ge=0, le=1)
    category: Literal["technical", "soft", "domain"] = "technical"
    frequency: int = Field(default=1, ge=0)


class Skill(_ProviderModel):
    name: str
    category: str = "tools"
    importance: float = Field(default=0.5, ge=0, le=1)
    matched: bool = False
    user_level: int | None = None
    required_level: int = 0


class AnalysisResult(_ProviderModel):
    """
    Outcome of one analysis.

    Produced only by the AnalysisClient (parsed provider answer) or by the
    degraded-mode fallback (empty keywords/skills, confidence 0).
    """

    keywords: tuple[Keyword, ...] = ()
    skills: tuple[Skill, ...] = ()
    match_score: float | None = Field(default=None, ge=0, le=1)
    suggestions: tuple[str, ...] = ()
    confidence: float = Field(default=0.5, ge=0, le=1)
    processing_time_ms: int = Field(default=0, ge=0)

    @property
    def is_degraded(self) -> bool:
        return self.confidence == 0

    @classmethod
    def degraded(cls, suggestion: str, processing_time_ms: int = 0) -> "AnalysisResult":
        """Build the fallback result returned when the remote API is unavailable."""
        return cls(
            keywords=(),
            skills=(),
            match_score=None,
            suggestions=(suggestion,),
            confidence=0.0,
            processing_time_ms=max(0, int(processing_time_ms)),
        )


class AnalysisRequest(BaseModel):
    """
    A validated analysis request.

    Use AnalysisRequest.build(); it raises InvalidInputError (never a pydantic
    error) so invalid input is reported in the pipeline's error taxonomy and
    is never sent to the provider.
    """

    model_config = ConfigDict(frozen=True)

    content: str
    type: AnalysisType
    user_skills: tuple[str, ...] | None = None

    @classmethod
    def build(
        cls,
        content: str,
        analysis_type: AnalysisType | str = AnalysisType.JD_ANALYSIS,
        user_skills: list[str] | tuple[str, ...] | None = None,
    ) -> "AnalysisRequest":
        if not isinstance(content, str) or not content.strip():
            raise InvalidInputError("Content cannot be empty", code="INVALID_REQUEST")

        if len(content) > MAX_CONTENT_LENGTH:
            raise InvalidInputError(
                f"Content exceeds maximum length of {MAX_CONTENT_LENGTH:,} characters",
                code="CONTENT_TOO_LONG",
                details={"length": len(content), "max_length": MAX_CONTENT_LENGTH},
            )

        skills = None
        if user_skills is not None:
            # ordered set: first occurrence wins
            skills = tuple(dict.fromkeys(s.strip() for s in user_skills if s and s.strip()))

        return cls(content=content, type=AnalysisType.parse(analysis_type), user_skills=skills)


class TokenUsage(BaseModel):
    model_config = ConfigDict(frozen=True)

    prompt_tokens: int = Field(default=0, ge=0)
    completion_tokens: int = Field(default=0, ge=0)
    total_tokens: int = Field(default=0, ge=0)


class ProviderRequest(BaseModel):
    """Provider-specific chat completion request built by the AnalysisClient."""

    model_config = ConfigDict(frozen=True)

    model: str
    messages: tuple[dict[str, str], ...]
    max_tokens: int
    temperature: float
    response_format: dict[str, Any] = Field(default_factory=lambda: {"type": "json_object"})


class ProviderResponse(BaseModel):
    """Raw provider answer handed back by a transport."""

    model_config = ConfigDict(frozen=True)

    content: str
    usage: TokenUsage = Field(default_factory=TokenUsage)
    model: str | None = None


class AnalysisResponse(BaseModel):
    """What the AnalysisClient returns to the orchestrator."""

    model_config = ConfigDict(frozen=True)

    result: AnalysisResult
    usage: TokenUsage = Field(default_factory=TokenUsage)
    processing_time_ms: int = Field(default=0, ge=0)
