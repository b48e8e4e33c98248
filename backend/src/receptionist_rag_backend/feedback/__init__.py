"""Learning feedback loop.

Components:
- LearningFeedbackLoop: Stores feedback, adjusts example success rates and
  promotes well-rated interactions into the example store
- FeedbackOutcome: What a feedback submission changed
- PromotionTrigger: Auto or manual promotion
"""

from .loop import (
    AUTO_PROMOTE_CATEGORY,
    DEFAULT_AUTO_PROMOTE_ENABLED,
    DEFAULT_AUTO_PROMOTE_MIN_RATING,
    LearningFeedbackLoop,
)
from .models import FeedbackOutcome, PromotionTrigger

__all__ = [
    "LearningFeedbackLoop",
    "FeedbackOutcome",
    "PromotionTrigger",
    "AUTO_PROMOTE_CATEGORY",
    "DEFAULT_AUTO_PROMOTE_ENABLED",
    "DEFAULT_AUTO_PROMOTE_MIN_RATING",
]
