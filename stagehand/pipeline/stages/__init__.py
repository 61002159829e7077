from stagehand.pipeline.stages.authorization import AuthorizationStage
from stagehand.pipeline.stages.base import CallNext, Stage
from stagehand.pipeline.stages.cache_invalidation import CacheInvalidationStage
from stagehand.pipeline.stages.cache_read import CacheReadStage
from stagehand.pipeline.stages.exception_boundary import ExceptionBoundaryStage
from stagehand.pipeline.stages.performance import PerformanceStage
from stagehand.pipeline.stages.request_logging import RequestLoggingStage
from stagehand.pipeline.stages.validation import ValidationStage

__all__ = [
    "AuthorizationStage",
    "CacheInvalidationStage",
    "CacheReadStage",
    "CallNext",
    "ExceptionBoundaryStage",
    "PerformanceStage",
    "RequestLoggingStage",
    "Stage",
    "ValidationStage",
]
