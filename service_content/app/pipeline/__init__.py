"""
Read pipeline: data shaping and the request orchestrator.
"""

from .orchestrator import CacheStatus, ContentPipeline, PipelineOutcome, PipelineStage, freshness_headers
from .shaper import shape

__all__ = [
    "CacheStatus",
    "ContentPipeline",
    "PipelineOutcome",
    "PipelineStage",
    "freshness_headers",
    "shape",
]
