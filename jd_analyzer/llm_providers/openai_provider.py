"""
OpenAI Transport Implementation

Transport for the analysis client built on the official AsyncOpenAI client.

Architectural Decision: Use official SDK
- Provides best compatibility with OpenAI features (JSON response format)
- Handles connection pooling internally
- SDK retries are disabled; retrying is the resilience layer's job

openai exceptions are left to propagate: AnalysisClient maps them onto the
AnalysisError taxonomy in one place.
"""

from typing import Any

from openai import AsyncOpenAI

from jd_analyzer.core.exceptions import ConfigurationError
from jd_analyzer.core.logging import get_logger
from jd_analyzer.models.analysis import ProviderRequest, ProviderResponse, TokenUsage

logger = get_logger(__name__)

DEFAULT_BASE_URL = "https://api.openai.com/v1"


class OpenAITransport:
    """
    Usage:
        transport = OpenAITransport(api_key="sk-...")
        client = AnalysisClient(transport)
    """

    name = "openai"

    def __init__(
        self,
        api_key: str | None,
        base_url: str | None = None,
        timeout_ms: int = 30000,
        client: AsyncOpenAI | None = None,
    ):
        if client is None:
            if not api_key:
                raise ConfigurationError(
                    "OpenAI API key is not configured",
                    code="MISSING_API_KEY",
                ).with_suggestion("Set OPENAI_API_KEY in the environment or .env file")

            client = AsyncOpenAI(
                api_key=api_key,
                base_url=base_url if base_url and base_url != DEFAULT_BASE_URL else None,
                timeout=timeout_ms / 1000.0,
                max_retries=0,  # We handle retries in our resilience layer
            )

        self.client = client
        logger.info("OpenAI transport initialized", base_url=base_url or DEFAULT_BASE_URL)

    @classmethod
    def from_settings(cls, settings) -> "OpenAITransport":
        provider = settings.provider
        return cls(
            api_key=provider.OPENAI_API_KEY,
            base_url=provider.OPENAI_BASE_URL,
            timeout_ms=provider.REQUEST_TIMEOUT_MS,
        )

    async def __call__(self, request: ProviderRequest) -> ProviderResponse:
        completion = await self.client.chat.completions.create(
            model=request.model,
            messages=list(request.messages),
            max_tokens=request.max_tokens,
            temperature=request.temperature,
            response_format=request.response_format,
        )

        content = completion.choices[0].message.content if completion.choices else None
        usage = completion.usage
        return ProviderResponse(
            content=content or "{}",
            usage=TokenUsage(
                prompt_tokens=getattr(usage, "prompt_tokens", 0) or 0,
                completion_tokens=getattr(usage, "completion_tokens", 0) or 0,
                total_tokens=getattr(usage, "total_tokens", 0) or 0,
            ),
            model=completion.model,
        )

    async def health_check(self) -> dict[str, Any]:
        try:
            await self.client.models.list()
            return {"status": "healthy", "provider": self.name}
        except Exception as e:
            return {"status": "unhealthy", "error": str(e), "provider": self.name}

    async def close(self) -> None:
        await self.client.close()
