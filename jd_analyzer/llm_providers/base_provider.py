"""
Analysis Client and Transport Contract

This module defines the transport seam and the client that sits on top of it.

Architecture:
    AnalysisClient
        ├── builds the chat completion request (prompts per analysis type)
        ├── calls a Transport under an overall timeout
        ├── maps every failure onto the AnalysisError taxonomy
        └── parses the JSON answer into an AnalysisResult

Architectural Decision: transport as a plain async callable
- Any AI API (OpenAI, a proxy, a test double) fits behind one method
- The client never retries: retry, breaker, rate and cost policy belong to
  the service layer that wraps it
- Errors are normalized exactly once, here, at the boundary crossing
"""

import asyncio
import time
from collections.abc import Mapping
from typing import Any, Protocol, runtime_checkable

import openai
import orjson
from pydantic import ValidationError as PydanticValidationError

from jd_analyzer.core.clock import Clock, wall_clock_ms
from jd_analyzer.core.config.constants import Stage
from jd_analyzer.core.exceptions import (
    AnalysisError,
    AuthenticationError,
    InvalidResponseError,
    NetworkError,
    ProviderQuotaError,
    ProviderRequestError,
    RateLimitExceededError,
    RequestTimeoutError,
    ServerError,
    coerce_error,
)
from jd_analyzer.core.logging.logger import get_logger, log_stage
from jd_analyzer.models.analysis import (
    AnalysisRequest,
    AnalysisResponse,
    AnalysisResult,
    AnalysisType,
    ProviderRequest,
    ProviderResponse,
)

logger = get_logger(__name__)


@runtime_checkable
class Transport(Protocol):
    """
    Inbound transport consumed by the AnalysisClient.

    Returns the raw provider answer or raises. Raised errors may be
    AnalysisError subclasses, openai exceptions, ProviderHTTPError or any
    exception carrying a `status_code`; map_provider_error() handles them all.
    """

    async def __call__(self, request: ProviderRequest) -> ProviderResponse: ...


class ProviderHTTPError(Exception):
    """Error raised by generic HTTP transports that are not built on an SDK."""

    def __init__(
        self,
        status_code: int,
        message: str = "",
        code: str | None = None,
        headers: Mapping[str, str] | None = None,
    ):
        self.status_code = status_code
        self.message = message or f"Provider returned HTTP {status_code}"
        self.code = code
        self.headers = dict(headers or {})
        super().__init__(self.message)


# =============================================================================
# Error mapping
# =============================================================================


def _headers_of(exc: BaseException) -> Mapping[str, str]:
    headers = getattr(exc, "headers", None)
    if headers is None:
        response = getattr(exc, "response", None)
        headers = getattr(response, "headers", None)
    return headers or {}


def parse_retry_after_ms(headers: Mapping[str, str]) -> int | None:
    """Read `retry-after-ms` or `retry-after` (seconds) from response headers."""
    lowered = {str(k).lower(): v for k, v in headers.items()}

    raw_ms = lowered.get("retry-after-ms")
    if raw_ms is not None:
        try:
            return max(0, int(float(raw_ms)))
        except (TypeError, ValueError):
            pass

    raw = lowered.get("retry-after")
    if raw is None:
        return None
    try:
        return max(0, int(float(raw) * 1000))
    except (TypeError, ValueError):
        # HTTP-date form is not worth parsing here; fall back to backoff
        return None


def map_provider_error(exc: BaseException) -> AnalysisError:
    """
    Normalize a transport failure.

    Status mapping:
        401/403 → auth, 429 → rate_limit (quota when the provider says the
        account is out of credit), 402 → quota, other 4xx → validation,
        5xx → server, no status → network
    """
    if isinstance(exc, AnalysisError):
        return exc

    # APITimeoutError subclasses APIConnectionError, so check it first
    if isinstance(exc, (asyncio.TimeoutError, TimeoutError, openai.APITimeoutError)):
        return RequestTimeoutError.from_exception(exc, "Analysis request timed out")

    status = getattr(exc, "status_code", None)
    if isinstance(status, int):
        message = getattr(exc, "message", None) or str(exc) or f"Provider returned HTTP {status}"
        provider_code = getattr(exc, "code", None)
        details = {"status_code": status, "provider_code": provider_code}

        if status in (401, 403):
            return AuthenticationError(message, details=details).with_suggestion("Check OPENAI_API_KEY")
        if status == 429:
            if provider_code == "insufficient_quota":
                return ProviderQuotaError(message, details=details)
            return RateLimitExceededError(
                message,
                code="PROVIDER_RATE_LIMITED",
                retry_after_ms=parse_retry_after_ms(_headers_of(exc)),
                details=details,
            )
        if status == 402:
            return ProviderQuotaError(message, details=details)
        if 400 <= status < 500:
            return ProviderRequestError(message, details=details)
        if status >= 500:
            return ServerError(message, details=details)
        return NetworkError(message, details=details)

    if isinstance(exc, (openai.APIConnectionError, ConnectionError, OSError)):
        return NetworkError.from_exception(exc, "Could not connect to the analysis API")

    return coerce_error(exc)


# =============================================================================
# Prompts
# =============================================================================

_BASE_SYSTEM_PROMPT = (
    "You are a professional resume analysis assistant that helps job seekers "
    "understand job requirements and tailor their resumes. Always answer with a "
    "single JSON object."
)

_KEYWORD_SCHEMA = '{"text": "keyword", "importance": 0.9, "category": "technical|soft|domain", "frequency": 3}'
_SKILL_SCHEMA = (
    '{"name": "skill", "category": "frontend|backend|database|devops|mobile|design|soft-skills|tools|languages", '
    '"importance": 0.8, "matched": false, "userLevel": 3, "requiredLevel": 4}'
)

SYSTEM_PROMPTS: dict[AnalysisType, str] = {
    AnalysisType.JD_ANALYSIS: (
        f"{_BASE_SYSTEM_PROMPT}\nAnalyze the job description and return:\n"
        f'{{"keywords": [{_KEYWORD_SCHEMA}], "skills": [{_SKILL_SCHEMA}], '
        '"matchScore": 0, "suggestions": ["..."], "confidence": 0.85}'
    ),
    AnalysisType.KEYWORD_EXTRACTION: (
        f"{_BASE_SYSTEM_PROMPT}\nExtract the key skill terms from the job description and return:\n"
        f'{{"keywords": [{_KEYWORD_SCHEMA}], "skills": [], "matchScore": 0, '
        '"suggestions": [], "confidence": 0.85}'
    ),
    AnalysisType.SKILL_MATCHING: (
        f"{_BASE_SYSTEM_PROMPT}\nCompare the candidate skills with the job requirements and return:\n"
        f'{{"keywords": [], "skills": [{_SKILL_SCHEMA}], "matchScore": 0.75, '
        '"suggestions": ["..."], "confidence": 0.85}'
    ),
}


def build_user_prompt(request: AnalysisRequest) -> str:
    if request.type == AnalysisType.KEYWORD_EXTRACTION:
        return f"Extract the key skill terms from this job description:\n\n{request.content}"
    if request.type == AnalysisType.SKILL_MATCHING:
        skills = ", ".join(request.user_skills or ())
        return (
            "Assess how well the candidate skills match these job requirements.\n\n"
            f"Job requirements:\n{request.content}\n\nCandidate skills:\n{skills}"
        )
    return f"Analyze this job description and extract the key information:\n\n{request.content}"


# =============================================================================
# Client
# =============================================================================


class AnalysisClient:
    """
    Single-attempt client for the analysis API.

    STAGE-5: Remote call

    Usage:
        client = AnalysisClient(OpenAITransport(settings), model="gpt-4o")
        response = await client.analyze(AnalysisRequest.build(text))
    """

    def __init__(
        self,
        transport: Transport,
        model: str = "gpt-4o",
        max_tokens: int = 2000,
        temperature: float = 0.3,
        timeout_ms: int = 30000,
        clock: Clock = wall_clock_ms,
    ):
        self._transport = transport
        self.model = model
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.timeout_ms = timeout_ms
        self._clock = clock

        self._request_count = 0
        self._last_request_time = 0.0

    @property
    def transport(self) -> Transport:
        return self._transport

    @classmethod
    def from_settings(cls, settings, transport: Transport) -> "AnalysisClient":
        provider = settings.provider
        return cls(
            transport,
            model=provider.OPENAI_MODEL,
            max_tokens=provider.MAX_TOKENS,
            temperature=provider.TEMPERATURE,
            timeout_ms=provider.REQUEST_TIMEOUT_MS,
        )

    def build_provider_request(self, request: AnalysisRequest) -> ProviderRequest:
        return ProviderRequest(
            model=self.model,
            messages=(
                {"role": "system", "content": SYSTEM_PROMPTS[request.type]},
                {"role": "user", "content": build_user_prompt(request)},
            ),
            max_tokens=self.max_tokens,
            temperature=self.temperature,
        )

    async def analyze(self, request: AnalysisRequest) -> AnalysisResponse:
        """
        Run one remote analysis.

        Raises:
            AnalysisError: every failure, already normalized
        """
        provider_request = self.build_provider_request(request)
        self._request_count += 1
        self._last_request_time = self._clock()

        start = time.perf_counter()
        try:
            response = await asyncio.wait_for(
                self._transport(provider_request),
                timeout=self.timeout_ms / 1000.0,
            )
        except asyncio.TimeoutError as e:
            raise RequestTimeoutError(
                f"Analysis request timed out after {self.timeout_ms} ms",
                details={"timeout_ms": self.timeout_ms},
            ) from e
        except Exception as e:
            error = map_provider_error(e)
            log_stage(
                logger,
                Stage.PROVIDER_CALL,
                "Analysis API call failed",
                level="warning",
                error_code=error.code,
                category=error.category.value,
                retryable=error.retryable,
            )
            if error is e:
                raise
            raise error from e

        elapsed_ms = int((time.perf_counter() - start) * 1000)
        result = self.parse_result(response.content).model_copy(update={"processing_time_ms": elapsed_ms})

        log_stage(
            logger,
            Stage.PROVIDER_CALL,
            "Analysis API call succeeded",
            analysis_type=request.type.value,
            total_tokens=response.usage.total_tokens,
            duration_ms=elapsed_ms,
        )
        return AnalysisResponse(result=result, usage=response.usage, processing_time_ms=elapsed_ms)

    @staticmethod
    def parse_result(content: str) -> AnalysisResult:
        """Parse the provider's JSON answer; missing fields take model defaults."""
        try:
            parsed = orjson.loads(content or "{}")
        except orjson.JSONDecodeError as e:
            raise InvalidResponseError.from_exception(e, "Failed to parse API response") from e

        if not isinstance(parsed, dict):
            raise InvalidResponseError(
                "Failed to parse API response",
                details={"reason": f"expected a JSON object, got {type(parsed).__name__}"},
            )

        # Timing comes from the client, never from the model's answer
        parsed.pop("processingTimeMs", None)
        parsed.pop("processing_time_ms", None)
        parsed.pop("processingTime", None)

        try:
            return AnalysisResult.model_validate(parsed)
        except PydanticValidationError as e:
            raise InvalidResponseError.from_exception(
                e, "API response does not match the analysis schema", errors=e.error_count()
            ) from e

    def get_usage_stats(self) -> dict[str, Any]:
        return {
            "request_count": self._request_count,
            "last_request_time": self._last_request_time,
        }

    def reset_usage_stats(self) -> None:
        self._request_count = 0
        self._last_request_time = 0.0
