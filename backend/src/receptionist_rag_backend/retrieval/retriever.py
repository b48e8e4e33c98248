from __future__ import annotations

import asyncio
from typing import Awaitable, TypeVar

import structlog

from receptionist_rag_backend.core.errors import AppError, InvalidQueryError
from receptionist_rag_backend.db.base import ExampleStore
from receptionist_rag_backend.embeddings import EmbeddingProvider
from receptionist_rag_backend.models import RetrievalCandidate

from .constants import (
    DEFAULT_MAX_EXAMPLES,
    DEFAULT_RETRIEVAL_TIMEOUT_SECONDS,
    DEFAULT_SIMILARITY_THRESHOLD,
    QUERY_LOG_PREVIEW_CHARS,
)

logger = structlog.get_logger(__name__)

T = TypeVar("T")


class Retriever:
    """Semantic search over stored examples for one incoming query."""

    def __init__(
        self,
        store: ExampleStore,
        embeddings: EmbeddingProvider,
        timeout_seconds: float = DEFAULT_RETRIEVAL_TIMEOUT_SECONDS,
    ) -> None:
        self.store = store
        self.embeddings = embeddings
        self.timeout_seconds = timeout_seconds

    async def retrieve(
        self,
        query: str,
        language: str,
        max_examples: int = DEFAULT_MAX_EXAMPLES,
        threshold: float = DEFAULT_SIMILARITY_THRESHOLD,
    ) -> list[RetrievalCandidate]:
        """Return examples similar to ``query`` in ``language``, best first.

        An empty list means no sufficiently similar example exists.

        Raises:
            InvalidQueryError: If the query is empty or whitespace
            EmbeddingError: If the query could not be embedded
            StorageError: If the example store could not be searched
            asyncio.TimeoutError: If either step exceeds the timeout
        """
        if not query or not query.strip():
            raise InvalidQueryError()

        preview = query[:QUERY_LOG_PREVIEW_CHARS]
        try:
            embedding = await self._await_with_timeout(
                self.embeddings.embed(query, language),
                "retrieval_embedding_timeout",
            )
            candidates = await self._await_with_timeout(
                self.store.search(
                    embedding=embedding,
                    threshold=threshold,
                    max_results=max_examples,
                    language=language,
                ),
                "retrieval_search_timeout",
            )
        except asyncio.TimeoutError:
            raise
        except AppError as exc:
            logger.error("retrieval_failed", query=preview, error=str(exc))
            raise
        except Exception as exc:
            logger.error("retrieval_unexpected_error", query=preview, error=str(exc))
            raise

        logger.info(
            "retrieval_completed",
            query=preview,
            language=language,
            candidates=len(candidates),
            top_similarity=candidates[0].similarity if candidates else None,
        )
        return candidates

    async def _await_with_timeout(self, awaitable: Awaitable[T], event: str) -> T:
        if self.timeout_seconds <= 0:
            return await awaitable
        try:
            return await asyncio.wait_for(awaitable, timeout=self.timeout_seconds)
        except asyncio.TimeoutError as exc:
            logger.warning(event, timeout_seconds=self.timeout_seconds, error=str(exc))
            raise
