"""
jd_analyzer - resilient, cached client for a job-description analysis API.

Usage:
    from jd_analyzer import Settings, create_analysis_service

    async with create_analysis_service(Settings()) as service:
        result = await service.analyze(job_description, "jd-analysis")
"""

from jd_analyzer.core.config import Settings, get_settings
from jd_analyzer.core.exceptions import AnalysisError, ErrorCategory
from jd_analyzer.models import AnalysisResult, AnalysisType
from jd_analyzer.services import ResilientAnalysisService, create_analysis_service

__version__ = "1.0.0"

__all__ = [
    "AnalysisError",
    "AnalysisResult",
    "AnalysisType",
    "ErrorCategory",
    "ResilientAnalysisService",
    "Settings",
    "create_analysis_service",
    "get_settings",
]
