"""Learning feedback loop.

Feedback adjusts the success rate of every example that contributed to a
reply, and strongly positive feedback writes the exchange back into the
example store as a new learned example.
"""

from typing import Optional

import structlog

from receptionist_rag_backend.core.errors import (
    ExampleNotFoundError,
    FeedbackAlreadySubmittedError,
    InteractionNotFoundError,
    ValidationError,
)
from receptionist_rag_backend.db.base import ExampleStore, InteractionStore
from receptionist_rag_backend.embeddings import EmbeddingProvider
from receptionist_rag_backend.models import (
    MAX_RATING,
    MIN_RATING,
    PROMOTED_SUCCESS_RATE,
    Example,
    ExampleSource,
    InteractionFeedback,
    InteractionRecord,
)
from receptionist_rag_backend.observability.metrics import record_feedback, record_promotion

from .models import FeedbackOutcome, PromotionTrigger

logger = structlog.get_logger(__name__)

# Default configuration values
DEFAULT_AUTO_PROMOTE_ENABLED = True
DEFAULT_AUTO_PROMOTE_MIN_RATING = 4
AUTO_PROMOTE_CATEGORY = "general"
MAX_COMMENT_LENGTH = 2000


class LearningFeedbackLoop:
    """Applies user feedback to the example store.

    Errors are never swallowed here: feedback is an explicit user action and
    the caller must learn when it did not take effect.

    Example:
        loop = LearningFeedbackLoop(
            examples=example_store,
            interactions=interaction_store,
            embeddings=embedding_gateway,
        )
        outcome = await loop.submit_feedback(chat_id, rating=5, helpful=True)
    """

    def __init__(
        self,
        examples: ExampleStore,
        interactions: InteractionStore,
        embeddings: EmbeddingProvider,
        auto_promote_enabled: bool = DEFAULT_AUTO_PROMOTE_ENABLED,
        auto_promote_min_rating: int = DEFAULT_AUTO_PROMOTE_MIN_RATING,
    ) -> None:
        """Initialize the feedback loop.

        Args:
            examples: Store whose success rates and contents are updated
            interactions: Interaction log holding the feedback slot
            embeddings: Provider used to embed promoted questions
            auto_promote_enabled: Promote helpful, highly rated replies automatically
            auto_promote_min_rating: Lowest rating that triggers auto-promotion
        """
        self._examples = examples
        self._interactions = interactions
        self._embeddings = embeddings
        self._auto_promote_enabled = auto_promote_enabled
        self._auto_promote_min_rating = auto_promote_min_rating

    async def submit_feedback(
        self,
        interaction_id: str,
        rating: Optional[int] = None,
        helpful: Optional[bool] = None,
        comment: Optional[str] = None,
    ) -> FeedbackOutcome:
        """Record feedback for an interaction and learn from it.

        Args:
            interaction_id: Id of the logged interaction (the chat id)
            rating: Optional 1-5 rating
            helpful: Optional helpfulness flag; drives success-rate updates
            comment: Optional free-text comment

        Returns:
            FeedbackOutcome with the updated success rates

        Raises:
            ValidationError: If the rating is out of range or nothing was given
            InteractionNotFoundError: If the interaction does not exist
            FeedbackAlreadySubmittedError: If feedback was already recorded
            StorageError: If a store write fails
        """
        if rating is not None and not MIN_RATING <= rating <= MAX_RATING:
            raise ValidationError(
                f"rating must be between {MIN_RATING} and {MAX_RATING}",
                details={"rating": rating},
            )
        comment = comment.strip() if comment else None
        if comment and len(comment) > MAX_COMMENT_LENGTH:
            raise ValidationError(
                f"comment must be at most {MAX_COMMENT_LENGTH} characters",
                details={"length": len(comment)},
            )
        feedback = InteractionFeedback(rating=rating, helpful=helpful, comment=comment)
        if feedback.is_empty:
            raise ValidationError("Feedback must include a rating, helpful flag or comment")

        current = await self._interactions.get(interaction_id)
        if current is None:
            raise InteractionNotFoundError(interaction_id)
        if current.feedback is not None:
            raise FeedbackAlreadySubmittedError(interaction_id)

        # Embed before the one-time feedback write so a provider failure can be retried.
        promotion_embedding = None
        if self._should_auto_promote(feedback):
            promotion_embedding = await self._embeddings.embed(
                current.user_message, current.language
            )

        record = await self._interactions.set_feedback(interaction_id, feedback)
        record_feedback(helpful)

        success_rates: dict[str, float] = {}
        skipped: list[str] = []
        if helpful is not None:
            for example_id in record.examples_used:
                try:
                    success_rates[example_id] = await self._examples.update_success_rate(
                        example_id, helpful
                    )
                except ExampleNotFoundError:
                    # Logged interactions only hold weak references to examples.
                    logger.warning(
                        "feedback_example_missing",
                        interaction_id=interaction_id,
                        example_id=example_id,
                    )
                    skipped.append(example_id)

        promoted_id = None
        if promotion_embedding is not None:
            promoted_id = await self._promote(
                record,
                AUTO_PROMOTE_CATEGORY,
                PromotionTrigger.AUTO,
                embedding=promotion_embedding,
            )

        logger.info(
            "feedback_submitted",
            interaction_id=interaction_id,
            rating=rating,
            helpful=helpful,
            examples_updated=len(success_rates),
            promoted=promoted_id is not None,
        )
        return FeedbackOutcome(
            interaction_id=interaction_id,
            feedback=feedback,
            success_rates=success_rates,
            skipped_examples=skipped,
            promoted_example_id=promoted_id,
        )

    async def promote_to_example(self, interaction_id: str, category: str) -> str:
        """Write an interaction's question and reply back as a learned example.

        Raises:
            InteractionNotFoundError: If the interaction does not exist
            ValidationError: If the category is empty
        """
        if not category or not category.strip():
            raise ValidationError("category must not be empty")
        record = await self._interactions.get(interaction_id)
        if record is None:
            raise InteractionNotFoundError(interaction_id)
        return await self._promote(record, category.strip(), PromotionTrigger.MANUAL)

    def _should_auto_promote(self, feedback: InteractionFeedback) -> bool:
        return (
            self._auto_promote_enabled
            and feedback.helpful is True
            and feedback.rating is not None
            and feedback.rating >= self._auto_promote_min_rating
        )

    async def _promote(
        self,
        record: InteractionRecord,
        category: str,
        trigger: PromotionTrigger,
        embedding: Optional[list[float]] = None,
    ) -> str:
        if embedding is None:
            embedding = await self._embeddings.embed(record.user_message, record.language)
        example = Example(
            question=record.user_message,
            answer=record.bot_response,
            category=category,
            language=record.language,
            embedding=embedding,
            source=ExampleSource.LEARNED,
            success_rate=PROMOTED_SUCCESS_RATE,
        )
        example_id = await self._examples.insert(example)
        record_promotion(trigger.value)
        logger.info(
            "interaction_promoted",
            interaction_id=record.id,
            example_id=example_id,
            category=category,
            trigger=trigger.value,
        )
        return example_id
