import pytest
from fastapi import HTTPException
from starlette.requests import Request

from receptionist_rag_backend.api.routes.chat import (
    APOLOGY_MESSAGE,
    process_message,
    session_history,
    submit_feedback,
)
from receptionist_rag_backend.classification import detect_suggested_actions
from receptionist_rag_backend.config import load_settings
from receptionist_rag_backend.core.errors import GenerationError, GenerationTimeout
from receptionist_rag_backend.feedback import FeedbackOutcome
from receptionist_rag_backend.models import (
    InteractionFeedback,
    InteractionRecord,
    ResponseStrategy,
)
from receptionist_rag_backend.orchestrator import ChatResult
from receptionist_rag_backend.schemas import ChatRequest, FeedbackRequest


def _request() -> Request:
    return Request({"type": "http", "client": ("127.0.0.1", 5000), "headers": []})


class DummyOrchestrator:
    def __init__(self) -> None:
        self.calls = []

    async def process_message(self, message, session_id=None, language=None) -> ChatResult:
        self.calls.append((message, session_id, language))
        return ChatResult(
            response="Faucet repairs usually cost $150-$300.",
            confidence=0.9,
            examples_used=1,
            session_id=session_id or "generated-session",
            suggested_actions=detect_suggested_actions("What would it cost?"),
            interaction_id="chat-1",
            strategy=ResponseStrategy.DIRECT_REUSE,
            language=language or "en",
            category="plumbing",
        )

    async def history(self, session_id, limit=50):
        return [
            InteractionRecord(
                id="chat-1",
                session_id=session_id,
                user_message="How much to fix a leaky faucet?",
                bot_response="Faucet repairs usually cost $150-$300.",
                language="en",
                confidence_score=0.9,
                strategy=ResponseStrategy.DIRECT_REUSE,
                examples_used=["ex-1"],
                feedback=InteractionFeedback(rating=4, helpful=True),
            )
        ]


class ErrorOrchestrator:
    def __init__(self, error: Exception) -> None:
        self.error = error

    async def process_message(self, message, session_id=None, language=None) -> ChatResult:
        raise self.error


class DummyFeedbackLoop:
    async def submit_feedback(self, interaction_id, rating=None, helpful=None, comment=None):
        return FeedbackOutcome(
            interaction_id=interaction_id,
            feedback=InteractionFeedback(rating=rating, helpful=helpful, comment=comment),
            success_rates={"ex-1": 1.0},
            promoted_example_id="ex-2",
        )


class AllowLimiter:
    async def allow(self, key: str) -> bool:
        return True


class DenyLimiter:
    async def allow(self, key: str) -> bool:
        return False


@pytest.fixture
def settings():
    return load_settings()


@pytest.mark.asyncio
async def test_chat_endpoint_envelope(settings) -> None:
    orchestrator = DummyOrchestrator()
    payload = ChatRequest(message="  How much to fix a leaky faucet?  ", sessionId="session-1")

    response = await process_message(
        payload,
        _request(),
        orchestrator=orchestrator,
        limiter=AllowLimiter(),
        settings=settings,
    )

    assert orchestrator.calls == [("How much to fix a leaky faucet?", "session-1", None)]
    assert response.data.response == "Faucet repairs usually cost $150-$300."
    assert response.data.chat_id == "chat-1"
    assert response.data.strategy == "direct_reuse"
    assert response.data.suggested_actions[0].type == "get_quote"
    assert response.meta.request_id
    body = response.data.model_dump(by_alias=True)
    assert body["examplesUsed"] == 1
    assert body["sessionId"] == "session-1"


@pytest.mark.asyncio
async def test_chat_endpoint_rate_limit(settings) -> None:
    with pytest.raises(HTTPException) as exc_info:
        await process_message(
            ChatRequest(message="hello"),
            _request(),
            orchestrator=DummyOrchestrator(),
            limiter=DenyLimiter(),
            settings=settings,
        )

    assert exc_info.value.status_code == 429
    assert exc_info.value.headers["Retry-After"] == str(settings.rate_limit_retry_after_seconds)


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("error", "status"),
    [(GenerationError("bad gateway"), 502), (GenerationTimeout(30), 504)],
)
async def test_chat_endpoint_generation_failure_is_apology(settings, error, status) -> None:
    with pytest.raises(HTTPException) as exc_info:
        await process_message(
            ChatRequest(message="hello"),
            _request(),
            orchestrator=ErrorOrchestrator(error),
            limiter=AllowLimiter(),
            settings=settings,
        )

    assert exc_info.value.status_code == status
    assert exc_info.value.detail == APOLOGY_MESSAGE


def test_chat_request_rejects_blank_message() -> None:
    with pytest.raises(ValueError):
        ChatRequest(message="   ")


def test_chat_request_rejects_bad_language() -> None:
    with pytest.raises(ValueError):
        ChatRequest(message="hello", language="spanish")


@pytest.mark.asyncio
async def test_feedback_endpoint(settings) -> None:
    response = await submit_feedback(
        FeedbackRequest(rating=5, helpful=True),
        _request(),
        chat_id="chat-1",
        feedback_loop=DummyFeedbackLoop(),
        limiter=AllowLimiter(),
        settings=settings,
    )

    assert response["data"] == {
        "chatId": "chat-1",
        "examplesUpdated": {"ex-1": 1.0},
        "promotedExampleId": "ex-2",
    }
    assert response["meta"]["requestId"]


@pytest.mark.asyncio
async def test_feedback_endpoint_rate_limit(settings) -> None:
    with pytest.raises(HTTPException) as exc_info:
        await submit_feedback(
            FeedbackRequest(helpful=False),
            _request(),
            chat_id="chat-1",
            feedback_loop=DummyFeedbackLoop(),
            limiter=DenyLimiter(),
            settings=settings,
        )

    assert exc_info.value.status_code == 429


def test_feedback_request_rating_bounds() -> None:
    with pytest.raises(ValueError):
        FeedbackRequest(rating=6)


@pytest.mark.asyncio
async def test_history_endpoint() -> None:
    response = await session_history(
        session_id="session-1",
        limit=50,
        orchestrator=DummyOrchestrator(),
    )

    item = response["data"][0]
    assert item["chatId"] == "chat-1"
    assert item["examplesUsed"] == ["ex-1"]
    assert item["rating"] == 4
    assert item["helpful"] is True
