from jd_analyzer.services.analysis_service import (
    ResilientAnalysisService,
    create_analysis_service,
)

__all__ = ["ResilientAnalysisService", "create_analysis_service"]
