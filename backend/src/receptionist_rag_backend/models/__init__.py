"""Domain models for examples and interactions."""

from .examples import (
    DEFAULT_SUCCESS_RATE,
    PROMOTED_SUCCESS_RATE,
    Example,
    ExampleSource,
    ExampleStatistics,
    recompute_success_rate,
)
from .interactions import (
    MAX_RATING,
    MIN_RATING,
    InteractionFeedback,
    InteractionRecord,
    ResponseStrategy,
)
from .retrieval import RetrievalCandidate

__all__ = [
    "DEFAULT_SUCCESS_RATE",
    "PROMOTED_SUCCESS_RATE",
    "Example",
    "ExampleSource",
    "ExampleStatistics",
    "recompute_success_rate",
    "MAX_RATING",
    "MIN_RATING",
    "InteractionFeedback",
    "InteractionRecord",
    "ResponseStrategy",
    "RetrievalCandidate",
]
