"""Interaction log records."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
import uuid


class ResponseStrategy(str, Enum):
    """Response-generation path chosen by the response policy."""

    DIRECT_REUSE = "direct_reuse"        # Top example answer returned verbatim
    RAG_AUGMENTED = "rag_augmented"      # Search LLM with example context
    SEARCH_FALLBACK = "search_fallback"  # Search LLM with no example context


MIN_RATING = 1
MAX_RATING = 5


@dataclass(frozen=True)
class InteractionFeedback:
    """User feedback attached to an interaction."""

    rating: Optional[int] = None
    helpful: Optional[bool] = None
    comment: Optional[str] = None

    def __post_init__(self) -> None:
        if self.rating is not None and not MIN_RATING <= self.rating <= MAX_RATING:
            raise ValueError(
                f"Feedback rating must be between {MIN_RATING} and {MAX_RATING}, "
                f"got {self.rating}"
            )

    @property
    def is_empty(self) -> bool:
        return self.rating is None and self.helpful is None and not self.comment


@dataclass
class InteractionRecord:
    """Immutable log of one query/response exchange.

    ``feedback`` is the only field written after creation, and only once.
    """

    session_id: str
    user_message: str
    bot_response: str
    language: str
    confidence_score: float
    strategy: ResponseStrategy
    examples_used: list[str] = field(default_factory=list)
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    metadata: dict[str, Any] = field(default_factory=dict)
    feedback: Optional[InteractionFeedback] = None

    def __post_init__(self) -> None:
        if isinstance(self.strategy, str):
            self.strategy = ResponseStrategy(self.strategy)
        if not 0.0 <= self.confidence_score <= 1.0:
            raise ValueError(
                f"confidence_score must be between 0.0 and 1.0, got {self.confidence_score}"
            )
        fallback = self.strategy is ResponseStrategy.SEARCH_FALLBACK
        if fallback == bool(self.examples_used):
            raise ValueError(
                "examples_used must be empty exactly when strategy is search_fallback"
            )
