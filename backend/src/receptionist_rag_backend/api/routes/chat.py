"""Chat API endpoints.

- POST /chat: answer a customer message
- POST /chat/{chat_id}/feedback: rate a previous answer
- GET /chat/{session_id}/history: interactions of one session
"""

from typing import Any

import structlog
from fastapi import APIRouter, Depends, HTTPException, Path, Query, Request

from receptionist_rag_backend.config import Settings
from receptionist_rag_backend.core.errors import GenerationError
from receptionist_rag_backend.feedback import LearningFeedbackLoop
from receptionist_rag_backend.orchestrator import ChatOrchestrator, ChatResult
from receptionist_rag_backend.rate_limit import RateLimiter
from receptionist_rag_backend.schemas import (
    ChatEnvelope,
    ChatRequest,
    ChatResponse,
    FeedbackRequest,
    FeedbackResponse,
    HistoryItem,
    SuggestedActionModel,
)

from ..utils import client_key, rate_limit_exceeded, response_meta, success_response

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/chat", tags=["chat"])

APOLOGY_MESSAGE = (
    "Sorry, we couldn't prepare an answer right now. "
    "Please try again in a moment or call us directly."
)


# Dependency injection
async def get_settings(request: Request) -> Settings:
    """Get settings from app.state."""
    return request.app.state.settings


async def get_orchestrator(request: Request) -> ChatOrchestrator:
    """Get the chat orchestrator from app.state."""
    return request.app.state.orchestrator


async def get_feedback_loop(request: Request) -> LearningFeedbackLoop:
    """Get the feedback loop from app.state."""
    return request.app.state.feedback_loop


async def get_rate_limiter(request: Request) -> RateLimiter:
    """Get the rate limiter from app.state."""
    return request.app.state.rate_limiter


def _to_response(result: ChatResult) -> ChatResponse:
    return ChatResponse(
        response=result.response,
        confidence=result.confidence,
        examplesUsed=result.examples_used,
        sessionId=result.session_id,
        suggestedActions=[
            SuggestedActionModel(type=action.type.value, label=action.label, data=action.data)
            for action in result.suggested_actions
        ],
        chatId=result.interaction_id,
        strategy=result.strategy.value,
        language=result.language,
        category=result.category,
        sources=result.sources,
    )


@router.post(
    "",
    response_model=ChatEnvelope,
    summary="Answer a customer message",
)
async def process_message(
    payload: ChatRequest,
    request: Request,
    orchestrator: ChatOrchestrator = Depends(get_orchestrator),
    limiter: RateLimiter = Depends(get_rate_limiter),
    settings: Settings = Depends(get_settings),
) -> ChatEnvelope:
    """Run the message through retrieval, the response policy and logging."""
    if not await limiter.allow(client_key(request)):
        raise rate_limit_exceeded(settings.rate_limit_retry_after_seconds)

    try:
        result = await orchestrator.process_message(
            payload.message,
            session_id=payload.session_id,
            language=payload.language,
        )
    except GenerationError as exc:
        # The caller sees a channel-safe apology, never the provider error.
        logger.error(
            "chat_generation_failed",
            code=exc.code.value,
            error=exc.message,
            session_id=payload.session_id,
        )
        raise HTTPException(status_code=exc.status, detail=APOLOGY_MESSAGE) from exc

    return ChatEnvelope(data=_to_response(result), meta=response_meta())


@router.post(
    "/{chat_id}/feedback",
    summary="Submit feedback for an answer",
)
async def submit_feedback(
    payload: FeedbackRequest,
    request: Request,
    chat_id: str = Path(..., min_length=1, max_length=64),
    feedback_loop: LearningFeedbackLoop = Depends(get_feedback_loop),
    limiter: RateLimiter = Depends(get_rate_limiter),
    settings: Settings = Depends(get_settings),
) -> dict[str, Any]:
    if not await limiter.allow(client_key(request)):
        raise rate_limit_exceeded(settings.rate_limit_retry_after_seconds)

    outcome = await feedback_loop.submit_feedback(
        chat_id,
        rating=payload.rating,
        helpful=payload.helpful,
        comment=payload.comment,
    )
    data = FeedbackResponse(
        chatId=outcome.interaction_id,
        examplesUpdated=outcome.success_rates,
        promotedExampleId=outcome.promoted_example_id,
    )
    return success_response(data.model_dump(by_alias=True))


@router.get(
    "/{session_id}/history",
    summary="List the interactions of a session",
)
async def session_history(
    session_id: str = Path(..., min_length=1, max_length=255),
    limit: int = Query(50, ge=1, le=200),
    orchestrator: ChatOrchestrator = Depends(get_orchestrator),
) -> dict[str, Any]:
    records = await orchestrator.history(session_id, limit=limit)
    items = [
        HistoryItem(
            chatId=record.id,
            userMessage=record.user_message,
            botResponse=record.bot_response,
            language=record.language,
            confidence=record.confidence_score,
            strategy=record.strategy.value,
            examplesUsed=record.examples_used,
            timestamp=record.created_at,
            rating=record.feedback.rating if record.feedback else None,
            helpful=record.feedback.helpful if record.feedback else None,
        ).model_dump(by_alias=True, mode="json")
        for record in records
    ]
    return success_response(items)
