"""Keyword classifiers for service category, language and suggested actions.

Each classifier is a pure function over the lower-cased message text, matched
by substring against fixed word lists. They can be swapped for a model-based
classifier without touching the response policy.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

DEFAULT_CATEGORY = "general"
DEFAULT_LANGUAGE = "en"

# Ordered: the first category with a matching keyword wins.
CATEGORY_KEYWORDS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("plumbing", ("plumb", "leak", "pipe", "drain", "faucet", "toilet", "sink", "water")),
    ("hvac", ("hvac", "heat", "ac", "air", "furnace", "thermostat", "duct", "cool")),
    ("electrical", ("electric", "wiring", "outlet", "breaker", "light", "switch", "power")),
    ("roofing", ("roof", "shingle", "gutter", "attic")),
)

LANGUAGE_KEYWORDS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("es", ("hola", "gracias", "necesito", "cuánto")),
    ("zh", ("你好", "谢谢", "需要")),
    ("vi", ("xin chào", "cảm ơn")),
)

EMERGENCY_PHONE = "1-800-EMERGENCY"


class ActionType(str, Enum):
    BOOK_APPOINTMENT = "book_appointment"
    GET_QUOTE = "get_quote"
    EMERGENCY_SERVICE = "emergency_service"


@dataclass(frozen=True)
class SuggestedAction:
    """Informational follow-up offered next to a reply."""

    type: ActionType
    label: str
    data: dict[str, Any] = field(default_factory=dict)


ACTION_KEYWORDS: tuple[tuple[tuple[str, ...], SuggestedAction], ...] = (
    (
        ("book", "appointment", "schedule"),
        SuggestedAction(
            type=ActionType.BOOK_APPOINTMENT,
            label="Book Appointment",
            data={"url": "/book", "action": "book_appointment"},
        ),
    ),
    (
        ("quote", "cost", "price"),
        SuggestedAction(
            type=ActionType.GET_QUOTE,
            label="Get Free Quote",
            data={"url": "/quote", "action": "get_quote"},
        ),
    ),
    (
        ("emergency", "urgent", "asap"),
        SuggestedAction(
            type=ActionType.EMERGENCY_SERVICE,
            label="Call Emergency Service",
            data={"phone": EMERGENCY_PHONE, "urgent": True},
        ),
    ),
)


def _contains_any(text: str, keywords: tuple[str, ...]) -> bool:
    return any(keyword in text for keyword in keywords)


def detect_category(message: str) -> str:
    """Map a message to a service category, ``general`` when nothing matches."""
    text = message.lower()
    for category, keywords in CATEGORY_KEYWORDS:
        if _contains_any(text, keywords):
            return category
    return DEFAULT_CATEGORY


def detect_language(message: str, default: str = DEFAULT_LANGUAGE) -> str:
    text = message.lower()
    for language, keywords in LANGUAGE_KEYWORDS:
        if _contains_any(text, keywords):
            return language
    return default


def detect_suggested_actions(message: str) -> list[SuggestedAction]:
    """Independent keyword scans; zero, one or several actions may match."""
    text = message.lower()
    return [
        SuggestedAction(type=action.type, label=action.label, data=dict(action.data))
        for keywords, action in ACTION_KEYWORDS
        if _contains_any(text, keywords)
    ]
