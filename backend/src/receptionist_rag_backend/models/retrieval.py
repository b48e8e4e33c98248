"""Transient retrieval results."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass(frozen=True)
class RetrievalCandidate:
    example_id: str
    question: str
    answer: str
    similarity: float
    category: Optional[str] = None
    usage_count: int = 0
    updated_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        if not 0.0 <= self.similarity <= 1.0:
            raise ValueError(
                f"RetrievalCandidate similarity must be between 0.0 and 1.0, got {self.similarity}"
            )
