"""
Genome SOM Package

Self-organizing maps over MovieLens tag genome vectors, with movie and tag
search engines built on a trained map.
"""

from .core import SelfOrganizingMap
from .config import DistanceFunction, MatchingMethod, TrainingConfig
from .callbacks import Callback, CheckpointCallback, QuantizationErrorCallback
from .exceptions import (
    GenomeSOMError,
    InvalidDimensions,
    DimensionMismatch,
    DimensionalityMismatch,
    MalformedInput,
)
from .schemas import (
    PrioritizedTag,
    MovieRecord,
    MovieSearchRequest,
    MovieSearchResponse,
    TagSimilarityRequest,
    TagSimilarityResponse,
    MatchedTag,
)
from .search import (
    SearchIndex,
    MovieSearchIndex,
    TagSearchIndex,
    MovieSearchEngine,
    TagSearchEngine,
)
from .observability import (
    setup_logging,
    trace_operation,
    get_metrics,
    get_health_status,
    log_training_metrics,
    log_search_metrics,
    RequestTracingMiddleware,
)

__version__ = "0.1.0"

__all__ = [
    "SelfOrganizingMap",
    "DistanceFunction",
    "MatchingMethod",
    "TrainingConfig",
    "Callback",
    "CheckpointCallback",
    "QuantizationErrorCallback",
    "GenomeSOMError",
    "InvalidDimensions",
    "DimensionMismatch",
    "DimensionalityMismatch",
    "MalformedInput",
    "PrioritizedTag",
    "MovieRecord",
    "MovieSearchRequest",
    "MovieSearchResponse",
    "TagSimilarityRequest",
    "TagSimilarityResponse",
    "MatchedTag",
    "SearchIndex",
    "MovieSearchIndex",
    "TagSearchIndex",
    "MovieSearchEngine",
    "TagSearchEngine",
    "setup_logging",
    "trace_operation",
    "get_metrics",
    "get_health_status",
    "log_training_metrics",
    "log_search_metrics",
    "RequestTracingMiddleware",
]
