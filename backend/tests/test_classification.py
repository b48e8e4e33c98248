import pytest

from receptionist_rag_backend.classification import (
    ActionType,
    detect_category,
    detect_language,
    detect_suggested_actions,
)


@pytest.mark.parametrize(
    ("message", "expected"),
    [
        ("My kitchen faucet is leaking", "plumbing"),
        ("The furnace won't turn on", "hvac"),
        ("Breaker trips when I use the microwave", "electrical"),
        ("Missing shingles after the storm", "roofing"),
        ("What are your business hours?", "general"),
    ],
)
def test_detect_category(message, expected):
    assert detect_category(message) == expected


def test_detect_category_first_match_wins():
    # Mentions both a plumbing and an electrical keyword.
    assert detect_category("Water near the outlet") == "plumbing"


def test_spanish_hvac_message():
    message = "Hola, necesito reparar mi aire acondicionado"

    assert detect_language(message) == "es"
    assert detect_category(message) == "hvac"


@pytest.mark.parametrize(
    ("message", "expected"),
    [
        ("你好，我需要修理水管", "zh"),
        ("Xin chào, tôi cần thợ điện", "vi"),
        ("Hello, I need a plumber", "en"),
    ],
)
def test_detect_language(message, expected):
    assert detect_language(message) == expected


def test_detect_language_uses_given_default():
    assert detect_language("Bonjour", default="fr") == "fr"


def test_suggested_actions_for_booking():
    actions = detect_suggested_actions("Can I book an appointment for Tuesday?")

    assert [a.type for a in actions] == [ActionType.BOOK_APPOINTMENT]
    assert actions[0].data == {"url": "/book", "action": "book_appointment"}


def test_suggested_actions_multiple_matches():
    actions = detect_suggested_actions("Emergency! What would it cost to come ASAP?")

    assert {a.type for a in actions} == {ActionType.GET_QUOTE, ActionType.EMERGENCY_SERVICE}
    emergency = next(a for a in actions if a.type is ActionType.EMERGENCY_SERVICE)
    assert emergency.data["urgent"] is True


def test_suggested_actions_none():
    assert detect_suggested_actions("Thanks for your help") == []


def test_suggested_action_data_is_not_shared():
    first = detect_suggested_actions("I need a quote")[0]
    first.data["url"] = "/changed"

    assert detect_suggested_actions("I need a quote")[0].data["url"] == "/quote"
