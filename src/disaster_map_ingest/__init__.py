from .config import ALLOWED_DISASTER_TYPES, SEVERITIES, PipelineConfig
from .models import AnalysisResult, IngestionSummary, ItemResult, PostCandidate, RawPost

__all__ = [
    "ALLOWED_DISASTER_TYPES",
    "SEVERITIES",
    "PipelineConfig",
    "RawPost",
    "PostCandidate",
    "AnalysisResult",
    "ItemResult",
    "IngestionSummary",
]
