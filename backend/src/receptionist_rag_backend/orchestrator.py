from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Optional
from uuid import uuid4

import structlog

from .classification import SuggestedAction, detect_language
from .core.errors import InvalidQueryError
from .db.base import ExampleStore, InteractionStore
from .interactions import InteractionLogger
from .models import InteractionRecord, ResponseStrategy
from .observability.metrics import record_chat_message, record_usage_update_failure
from .policy import PolicyDecision, ResponsePolicy
from .retrieval.constants import QUERY_LOG_PREVIEW_CHARS

logger = structlog.get_logger(__name__)

DEFAULT_HISTORY_LIMIT = 50


@dataclass
class ChatResult:
    response: str
    confidence: float
    examples_used: int
    session_id: str
    suggested_actions: list[SuggestedAction]
    interaction_id: str
    strategy: ResponseStrategy
    language: str
    category: str
    sources: list[str] = field(default_factory=list)
    logged: bool = True


class ChatOrchestrator:
    """Runs one inbound message through retrieval, generation and logging.

    Steps always run in that order; nothing is shared between calls except
    the injected stores and gateways.
    """

    def __init__(
        self,
        policy: ResponsePolicy,
        examples: ExampleStore,
        interactions: InteractionStore,
        interaction_logger: InteractionLogger,
        default_language: str = "en",
    ) -> None:
        self.policy = policy
        self.examples = examples
        self.interactions = interactions
        self.interaction_logger = interaction_logger
        self.default_language = default_language

    async def process_message(
        self,
        message: str,
        session_id: Optional[str] = None,
        language: Optional[str] = None,
    ) -> ChatResult:
        """Answer a customer message.

        Raises:
            InvalidQueryError: If the message is empty
            GenerationError: If the reply could not be generated
        """
        query = (message or "").strip()
        if not query:
            raise InvalidQueryError()

        session_id = session_id or str(uuid4())
        language = language or detect_language(query, self.default_language)

        decision = await self.policy.respond(query, language)
        await self._credit_examples(decision.examples_used)

        record = InteractionRecord(
            session_id=session_id,
            user_message=query,
            bot_response=decision.response,
            language=language,
            confidence_score=decision.confidence,
            strategy=decision.strategy,
            examples_used=list(decision.examples_used),
            metadata=self._metadata(decision),
        )
        logged = await self.interaction_logger.record(record)
        record_chat_message(decision.strategy.value, language, decision.confidence)

        logger.info(
            "chat_message_processed",
            interaction_id=record.id,
            session_id=session_id,
            query=query[:QUERY_LOG_PREVIEW_CHARS],
            strategy=decision.strategy.value,
            confidence=decision.confidence,
            examples_used=len(decision.examples_used),
        )
        return ChatResult(
            response=decision.response,
            confidence=decision.confidence,
            examples_used=len(decision.examples_used),
            session_id=session_id,
            suggested_actions=decision.suggested_actions,
            interaction_id=record.id,
            strategy=decision.strategy,
            language=language,
            category=decision.category,
            sources=decision.sources,
            logged=logged,
        )

    async def history(
        self, session_id: str, limit: int = DEFAULT_HISTORY_LIMIT
    ) -> list[InteractionRecord]:
        return await self.interactions.history(session_id, limit=limit)

    async def _credit_examples(self, example_ids: list[str]) -> None:
        # The reply is already computed; a failed increment must not withhold it.
        if not example_ids:
            return
        results = await asyncio.gather(
            *(self.examples.increment_usage(example_id) for example_id in example_ids),
            return_exceptions=True,
        )
        for example_id, result in zip(example_ids, results):
            if isinstance(result, BaseException):
                logger.warning(
                    "example_usage_increment_failed",
                    example_id=example_id,
                    error=str(result),
                )
                record_usage_update_failure()

    @staticmethod
    def _metadata(decision: PolicyDecision) -> dict:
        return {
            "category": decision.category,
            "sources": list(decision.sources),
            "suggested_actions": [action.type.value for action in decision.suggested_actions],
            "top_similarity": decision.top_similarity,
            "retrieval_failed": decision.retrieval_failed,
        }
