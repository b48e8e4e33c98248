"""Example records: reusable question/answer units in the knowledge base."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
import math
from typing import Optional
import uuid

DEFAULT_SUCCESS_RATE = 0.5
PROMOTED_SUCCESS_RATE = 0.8


class ExampleSource(str, Enum):
    """How an example entered the knowledge base."""

    MANUAL = "manual"        # Curated by an operator
    GENERATED = "generated"  # Bulk-generated by the search LLM
    LEARNED = "learned"      # Promoted from a helpful interaction


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Example:
    """A stored question/answer pair used as retrieval context.

    Attributes:
        question: Customer question text (embedded for similarity search)
        answer: Answer reused verbatim or used as generation context
        category: Service category (plumbing, hvac, electrical, roofing, general)
        language: ISO language code the pair is written in
        embedding: Vector for ``question``; computed on insert when absent
        source: Origin of the example
        usage_count: Number of times the example was used in a reply
        success_rate: Share of helpful feedback; 0.5 until first usage
        id: Unique example identifier
    """

    question: str
    answer: str
    category: str
    language: str
    embedding: Optional[list[float]] = None
    source: ExampleSource = ExampleSource.MANUAL
    usage_count: int = 0
    success_rate: float = DEFAULT_SUCCESS_RATE
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)

    def __post_init__(self) -> None:
        if isinstance(self.source, str):
            self.source = ExampleSource(self.source)
        if self.usage_count < 0:
            raise ValueError(f"Example usage_count must be >= 0, got {self.usage_count}")
        if not 0.0 <= self.success_rate <= 1.0:
            raise ValueError(
                f"Example success_rate must be between 0.0 and 1.0, got {self.success_rate}"
            )

    def missing_fields(self) -> list[str]:
        """Names of required text fields that are empty."""
        return [
            name
            for name in ("question", "answer", "category", "language")
            if not (getattr(self, name) or "").strip()
        ]


@dataclass(frozen=True)
class ExampleStatistics:
    """Aggregate counts over the example store."""

    total: int = 0
    by_language: dict[str, int] = field(default_factory=dict)
    by_category: dict[str, int] = field(default_factory=dict)
    by_source: dict[str, int] = field(default_factory=dict)


def recompute_success_rate(success_rate: float, usage_count: int, was_helpful: bool) -> float:
    """Fold one feedback signal into an example's success rate.

    ``usage_count`` is the stored count, already incremented when the example
    was used in the reply being rated. The prior success count is recovered as
    ``round(success_rate * usage_count)`` (half away from zero, matching
    PostgreSQL ``round(numeric)``). Helpful feedback never lowers the rate and
    unhelpful feedback never raises it.
    """
    if usage_count <= 0:
        return 1.0 if was_helpful else 0.0
    success_count = math.floor(success_rate * usage_count + 0.5)
    if was_helpful:
        return min(1.0, max(success_rate, (success_count + 1) / usage_count))
    return max(0.0, min(success_rate, success_count / usage_count))
