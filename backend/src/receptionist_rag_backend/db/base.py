"""Storage protocols shared by the PostgreSQL and in-memory backends."""

from typing import Optional, Protocol

from receptionist_rag_backend.core.errors import ValidationError
from receptionist_rag_backend.embeddings import EmbeddingProvider
from receptionist_rag_backend.models import (
    Example,
    ExampleStatistics,
    InteractionFeedback,
    InteractionRecord,
    RetrievalCandidate,
)


class ExampleStore(Protocol):
    """Persistent collection of examples with similarity search.

    All mutations are single-row atomic operations; examples are never
    hard-deleted here.
    """

    async def search(
        self,
        embedding: list[float],
        threshold: float,
        max_results: int,
        language: str,
    ) -> list[RetrievalCandidate]:
        """Candidates with similarity >= threshold, best-first, at most max_results."""
        ...

    async def insert(self, example: Example) -> str:
        """Insert an example, embedding its question when needed, and return its id."""
        ...

    async def get(self, example_id: str) -> Optional[Example]:
        ...

    async def increment_usage(self, example_id: str) -> int:
        """Atomically add one to usage_count and return the new count."""
        ...

    async def update_success_rate(self, example_id: str, was_helpful: bool) -> float:
        """Atomically fold one feedback signal into success_rate and return it."""
        ...

    async def statistics(self) -> ExampleStatistics:
        ...


class InteractionStore(Protocol):
    """Append-only interaction log with a write-once feedback slot."""

    async def append(self, record: InteractionRecord) -> None:
        ...

    async def get(self, interaction_id: str) -> Optional[InteractionRecord]:
        ...

    async def set_feedback(
        self,
        interaction_id: str,
        feedback: InteractionFeedback,
    ) -> InteractionRecord:
        """Write feedback fields once and return the updated record."""
        ...

    async def history(self, session_id: str, limit: int = 50) -> list[InteractionRecord]:
        """Interactions of a session, oldest first."""
        ...


async def prepare_example(
    example: Example,
    embedding_provider: Optional[EmbeddingProvider],
    dimension: Optional[int],
) -> list[float]:
    """Validate an example for insertion and return its embedding.

    Raises:
        ValidationError: On missing required fields, no way to embed, or a
            vector whose dimension differs from the store's
    """
    missing = example.missing_fields()
    if missing:
        raise ValidationError(
            f"Example is missing required fields: {', '.join(missing)}",
            details={"missing": missing},
        )
    embedding = example.embedding
    if embedding is None:
        if embedding_provider is None:
            raise ValidationError(
                "Example has no embedding and no embedding provider is configured"
            )
        embedding = await embedding_provider.embed(example.question, example.language)
    if not embedding:
        raise ValidationError("Example embedding must not be empty")
    if dimension is not None and len(embedding) != dimension:
        raise ValidationError(
            f"Example embedding has dimension {len(embedding)}, expected {dimension}",
            details={"dimension": len(embedding), "expected": dimension},
        )
    return list(embedding)
