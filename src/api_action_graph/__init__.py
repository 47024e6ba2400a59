"""API Action Graph - Turn API documentation sites into linked, executable actions."""

from .errors import (
    ClassificationNegative,
    FetchError,
    InvalidRootUrlError,
    ModelError,
    ParseError,
    PipelineError,
    ValidationError,
)
from .models import (
    Action,
    ApiConfig,
    ApiErrorResult,
    ApiSkippedResult,
    ApiSuccessResult,
    ManualLinkResult,
    PipelineResult,
    PrerequisiteReference,
    ProgressEventType,
    ProgressUpdate,
    UnresolvedPrerequisite,
)
from .settings import PipelineSettings

__version__ = "0.1.0"

__all__ = [
    "ClassificationNegative",
    "FetchError",
    "InvalidRootUrlError",
    "ModelError",
    "ParseError",
    "PipelineError",
    "ValidationError",
    "Action",
    "ApiConfig",
    "ApiErrorResult",
    "ApiSkippedResult",
    "ApiSuccessResult",
    "ManualLinkResult",
    "PipelineResult",
    "PrerequisiteReference",
    "ProgressEventType",
    "ProgressUpdate",
    "UnresolvedPrerequisite",
    "PipelineSettings",
]
