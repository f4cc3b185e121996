"""
LLM Providers Module

- **base_provider.py**: Transport protocol, AnalysisClient, error mapping
- **openai_provider.py**: OpenAI transport (AsyncOpenAI)
"""

from jd_analyzer.llm_providers.base_provider import (
    AnalysisClient,
    ProviderHTTPError,
    Transport,
    map_provider_error,
    parse_retry_after_ms,
)
from jd_analyzer.llm_providers.openai_provider import OpenAITransport

__all__ = [
    "AnalysisClient",
    "OpenAITransport",
    "ProviderHTTPError",
    "Transport",
    "map_provider_error",
    "parse_retry_after_ms",
]
