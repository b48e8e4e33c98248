"""Confidence-tiered response policy.

Given the retrieved candidates for a query, pick exactly one strategy:

- direct_reuse: the top example is similar enough to answer verbatim
- rag_augmented: weaker matches are passed to the search model as context
- search_fallback: nothing matched, the search model answers on its own

Retrieval is best-effort: a failed retrieval counts as "no candidates".
Generation is not: its errors propagate to the caller.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field, replace
from typing import Optional, Sequence

import structlog

from receptionist_rag_backend.classification import (
    SuggestedAction,
    detect_category,
    detect_suggested_actions,
)
from receptionist_rag_backend.core.errors import (
    EmbeddingError,
    InvalidQueryError,
    StorageError,
)
from receptionist_rag_backend.llm.completion import CompletionGateway
from receptionist_rag_backend.models import ResponseStrategy, RetrievalCandidate
from receptionist_rag_backend.observability.metrics import record_retrieval_failure
from receptionist_rag_backend.retrieval import Retriever
from receptionist_rag_backend.retrieval.constants import (
    DEFAULT_MAX_EXAMPLES,
    DEFAULT_SIMILARITY_THRESHOLD,
    DIRECT_REUSE_THRESHOLD,
    MAX_CONTEXT_EXAMPLES,
    QUERY_LOG_PREVIEW_CHARS,
)

logger = structlog.get_logger(__name__)

# Fixed confidences. Replace with calibrated scores once the model reports them.
DIRECT_REUSE_CONFIDENCE_FLOOR = DIRECT_REUSE_THRESHOLD  # Reuse confidence is the similarity itself.
RAG_AUGMENTED_CONFIDENCE = 0.75
SEARCH_FALLBACK_CONFIDENCE = 0.6

RAG_INSTRUCTIONS = (
    "Use the example conversations provided as reference. Act as a professional "
    "receptionist and answer the customer's question in 2-3 sentences."
)


@dataclass(frozen=True)
class PolicyDecision:
    """Outcome of the policy for one query.

    ``examples_used`` lists the ids to credit with a usage, best first.
    """

    response: str
    confidence: float
    strategy: ResponseStrategy
    category: str
    examples_used: list[str] = field(default_factory=list)
    suggested_actions: list[SuggestedAction] = field(default_factory=list)
    sources: list[str] = field(default_factory=list)
    top_similarity: Optional[float] = None
    retrieval_failed: bool = False


def _failure_reason(exc: BaseException) -> str:
    if isinstance(exc, asyncio.TimeoutError):
        return "timeout"
    if isinstance(exc, EmbeddingError):
        return "embedding"
    if isinstance(exc, StorageError):
        return "storage"
    return "unexpected"


class ResponsePolicy:
    """Chooses and executes a response strategy for one query."""

    def __init__(
        self,
        retriever: Retriever,
        completion: CompletionGateway,
        max_examples: int = DEFAULT_MAX_EXAMPLES,
        similarity_threshold: float = DEFAULT_SIMILARITY_THRESHOLD,
        direct_reuse_threshold: float = DIRECT_REUSE_THRESHOLD,
    ) -> None:
        self.retriever = retriever
        self.completion = completion
        self.max_examples = max_examples
        self.similarity_threshold = similarity_threshold
        self.direct_reuse_threshold = direct_reuse_threshold

    async def respond(self, query: str, language: str) -> PolicyDecision:
        """Retrieve candidates for ``query`` and answer it.

        Raises:
            InvalidQueryError: If the query is empty
            GenerationError: If the completion call fails or times out
        """
        retrieval_failed = False
        try:
            candidates = await self.retriever.retrieve(
                query,
                language,
                max_examples=self.max_examples,
                threshold=self.similarity_threshold,
            )
        except InvalidQueryError:
            raise
        except Exception as exc:
            reason = _failure_reason(exc)
            logger.warning(
                "retrieval_downgraded_to_fallback",
                query=query[:QUERY_LOG_PREVIEW_CHARS],
                reason=reason,
                error=str(exc),
            )
            record_retrieval_failure(reason)
            candidates = []
            retrieval_failed = True

        decision = await self.decide(query, candidates)
        if retrieval_failed:
            decision = replace(decision, retrieval_failed=True)
        return decision

    async def decide(
        self,
        query: str,
        candidates: Sequence[RetrievalCandidate],
    ) -> PolicyDecision:
        """Apply the tiered rule to already-retrieved candidates (best first)."""
        category = detect_category(query)
        actions = detect_suggested_actions(query)

        if candidates and candidates[0].similarity > self.direct_reuse_threshold:
            top = candidates[0]
            logger.info(
                "response_strategy_selected",
                strategy=ResponseStrategy.DIRECT_REUSE.value,
                example_id=top.example_id,
                similarity=top.similarity,
            )
            return PolicyDecision(
                response=top.answer,
                confidence=top.similarity,
                strategy=ResponseStrategy.DIRECT_REUSE,
                category=category,
                examples_used=[top.example_id],
                suggested_actions=actions,
                top_similarity=top.similarity,
            )

        if candidates:
            context = list(candidates[:MAX_CONTEXT_EXAMPLES])
            logger.info(
                "response_strategy_selected",
                strategy=ResponseStrategy.RAG_AUGMENTED.value,
                context_examples=len(context),
                similarity=candidates[0].similarity,
                category=category,
            )
            answer = await self.completion.generate_with_search(
                query,
                category,
                context_examples=context,
                instructions=RAG_INSTRUCTIONS,
            )
            return PolicyDecision(
                response=answer.text,
                confidence=RAG_AUGMENTED_CONFIDENCE,
                strategy=ResponseStrategy.RAG_AUGMENTED,
                category=category,
                examples_used=[candidate.example_id for candidate in context],
                suggested_actions=actions,
                sources=answer.sources,
                top_similarity=candidates[0].similarity,
            )

        logger.info(
            "response_strategy_selected",
            strategy=ResponseStrategy.SEARCH_FALLBACK.value,
            category=category,
        )
        answer = await self.completion.generate_with_search(query, category)
        return PolicyDecision(
            response=answer.text,
            confidence=SEARCH_FALLBACK_CONFIDENCE,
            strategy=ResponseStrategy.SEARCH_FALLBACK,
            category=category,
            suggested_actions=actions,
            sources=answer.sources,
        )
