from jd_analyzer.models.analysis import (
    AnalysisRequest,
    AnalysisResponse,
    AnalysisResult,
    AnalysisType,
    Keyword,
    ProviderRequest,
    ProviderResponse,
    Skill,
    TokenUsage,
)
from jd_analyzer.models.cache import CacheEntry, CacheRecord

__all__ = [
    "AnalysisRequest",
    "AnalysisResponse",
    "AnalysisResult",
    "AnalysisType",
    "CacheEntry",
    "CacheRecord",
    "Keyword",
    "ProviderRequest",
    "ProviderResponse",
    "Skill",
    "TokenUsage",
]
