"""
Stagehand - Request Pipeline
============================

Public surface of the pipeline: requests and their capabilities, validators,
results, and the dispatcher that ties them together.
"""

from stagehand.pipeline.dispatcher import PipelineDispatcher, build_default_stages
from stagehand.pipeline.keys import derive_cache_key, derive_invalidation_prefix
from stagehand.pipeline.requests import (
    CacheInvalidating,
    Cacheable,
    CacheKeyProvider,
    Request,
)
from stagehand.pipeline.results import (
    AbortResponse,
    Continue,
    ShortCircuit,
    StageResult,
    abort,
)
from stagehand.pipeline.validators import (
    ActionValidator,
    AuthorizationContext,
    FieldError,
    NotFoundContext,
    SchemaValidator,
    ValidationOutcome,
    ValidationStatus,
    ValidatorRegistry,
)

__all__ = [
    "AbortResponse",
    "ActionValidator",
    "AuthorizationContext",
    "CacheInvalidating",
    "CacheKeyProvider",
    "Cacheable",
    "Continue",
    "FieldError",
    "NotFoundContext",
    "PipelineDispatcher",
    "Request",
    "SchemaValidator",
    "ShortCircuit",
    "StageResult",
    "ValidationOutcome",
    "ValidationStatus",
    "ValidatorRegistry",
    "abort",
    "build_default_stages",
    "derive_cache_key",
    "derive_invalidation_prefix",
]
