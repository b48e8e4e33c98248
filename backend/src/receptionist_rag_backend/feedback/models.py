"""Data models for the learning feedback loop."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from receptionist_rag_backend.models import InteractionFeedback


class PromotionTrigger(str, Enum):
    """Why an interaction was promoted into the example store."""

    AUTO = "auto"      # Helpful feedback with a high rating
    MANUAL = "manual"  # Explicit administrative promotion


@dataclass(frozen=True)
class FeedbackOutcome:
    """Result of one feedback submission.

    Attributes:
        interaction_id: Interaction the feedback was attached to
        feedback: The stored feedback
        success_rates: New success rate per credited example id
        skipped_examples: Referenced examples that no longer exist
        promoted_example_id: Id of the learned example, if auto-promoted
    """

    interaction_id: str
    feedback: InteractionFeedback
    success_rates: dict[str, float] = field(default_factory=dict)
    skipped_examples: list[str] = field(default_factory=list)
    promoted_example_id: Optional[str] = None

    @property
    def promoted(self) -> bool:
        return self.promoted_example_id is not None
