"""In-process storage backend for development and tests.

Implements the same protocols as the PostgreSQL backend. Mutations run under
an asyncio lock so concurrent coroutines never lose updates.
"""

import asyncio
from collections import Counter
from dataclasses import replace
from datetime import datetime, timezone
from typing import Optional

import structlog

from receptionist_rag_backend.core.errors import (
    ExampleNotFoundError,
    FeedbackAlreadySubmittedError,
    InteractionNotFoundError,
    StorageError,
    ValidationError,
)
from receptionist_rag_backend.embeddings import EmbeddingProvider, cosine_similarity
from receptionist_rag_backend.models import (
    Example,
    ExampleStatistics,
    InteractionFeedback,
    InteractionRecord,
    RetrievalCandidate,
    recompute_success_rate,
)

from .base import prepare_example

logger = structlog.get_logger(__name__)


class InMemoryExampleStore:
    """Example store held in a dict, searched by brute-force cosine similarity."""

    def __init__(
        self,
        embedding_provider: Optional[EmbeddingProvider] = None,
        dimension: Optional[int] = None,
    ) -> None:
        self._embeddings = embedding_provider
        self._dimension = dimension
        self._examples: dict[str, Example] = {}
        self._lock = asyncio.Lock()

    async def search(
        self,
        embedding: list[float],
        threshold: float,
        max_results: int,
        language: str,
    ) -> list[RetrievalCandidate]:
        if max_results <= 0:
            return []
        scored: list[tuple[float, Example]] = []
        for example in list(self._examples.values()):
            if example.language != language or not example.embedding:
                continue
            if len(example.embedding) != len(embedding):
                continue
            similarity = cosine_similarity(embedding, example.embedding)
            if similarity >= threshold:
                scored.append((similarity, example))

        scored.sort(
            key=lambda item: (
                item[0],
                item[1].usage_count,
                item[1].updated_at.timestamp(),
            ),
            reverse=True,
        )
        return [
            RetrievalCandidate(
                example_id=example.id,
                question=example.question,
                answer=example.answer,
                similarity=similarity,
                category=example.category,
                usage_count=example.usage_count,
                updated_at=example.updated_at,
            )
            for similarity, example in scored[:max_results]
        ]

    async def insert(self, example: Example) -> str:
        embedding = await prepare_example(example, self._embeddings, self._dimension)
        async with self._lock:
            if example.id in self._examples:
                raise StorageError("insert_example", f"duplicate id {example.id}")
            if self._dimension is None:
                self._dimension = len(embedding)
            elif len(embedding) != self._dimension:
                raise ValidationError(
                    f"Example embedding has dimension {len(embedding)}, "
                    f"expected {self._dimension}"
                )
            self._examples[example.id] = replace(example, embedding=embedding)
        logger.debug("example_inserted", example_id=example.id, source=example.source.value)
        return example.id

    async def get(self, example_id: str) -> Optional[Example]:
        example = self._examples.get(example_id)
        return replace(example) if example else None

    async def increment_usage(self, example_id: str) -> int:
        async with self._lock:
            example = self._examples.get(example_id)
            if example is None:
                raise ExampleNotFoundError(example_id)
            example.usage_count += 1
            example.updated_at = datetime.now(timezone.utc)
            return example.usage_count

    async def update_success_rate(self, example_id: str, was_helpful: bool) -> float:
        async with self._lock:
            example = self._examples.get(example_id)
            if example is None:
                raise ExampleNotFoundError(example_id)
            example.success_rate = recompute_success_rate(
                example.success_rate, example.usage_count, was_helpful
            )
            example.updated_at = datetime.now(timezone.utc)
            return example.success_rate

    async def statistics(self) -> ExampleStatistics:
        examples = list(self._examples.values())
        return ExampleStatistics(
            total=len(examples),
            by_language=dict(Counter(ex.language for ex in examples)),
            by_category=dict(Counter(ex.category for ex in examples)),
            by_source=dict(Counter(ex.source.value for ex in examples)),
        )


class InMemoryInteractionStore:
    """Append-only interaction log held in process memory."""

    def __init__(self) -> None:
        self._records: dict[str, InteractionRecord] = {}
        self._lock = asyncio.Lock()

    async def append(self, record: InteractionRecord) -> None:
        async with self._lock:
            if record.id in self._records:
                raise StorageError("append_interaction", f"duplicate id {record.id}")
            self._records[record.id] = replace(record, examples_used=list(record.examples_used))

    async def get(self, interaction_id: str) -> Optional[InteractionRecord]:
        record = self._records.get(interaction_id)
        return replace(record) if record else None

    async def set_feedback(
        self,
        interaction_id: str,
        feedback: InteractionFeedback,
    ) -> InteractionRecord:
        async with self._lock:
            record = self._records.get(interaction_id)
            if record is None:
                raise InteractionNotFoundError(interaction_id)
            if record.feedback is not None:
                raise FeedbackAlreadySubmittedError(interaction_id)
            record.feedback = feedback
            return replace(record)

    async def history(self, session_id: str, limit: int = 50) -> list[InteractionRecord]:
        records = [r for r in self._records.values() if r.session_id == session_id]
        records.sort(key=lambda r: r.created_at)
        return [replace(r) for r in records[-limit:]] if limit > 0 else []
