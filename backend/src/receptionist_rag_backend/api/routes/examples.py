"""Example store administration endpoints."""

from typing import Any, Optional

import structlog
from fastapi import APIRouter, Depends, Query, Request

from receptionist_rag_backend.config import Settings
from receptionist_rag_backend.curation import ExampleCurator
from receptionist_rag_backend.feedback import LearningFeedbackLoop
from receptionist_rag_backend.retrieval import Retriever
from receptionist_rag_backend.schemas import (
    BatchInsertResponse,
    ExampleCreateRequest,
    ExampleSearchHit,
    ExampleStatsResponse,
    GenerateExamplesRequest,
    LANGUAGE_PATTERN,
    PromoteRequest,
)

from ..utils import success_response

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/examples", tags=["examples"])


async def get_settings(request: Request) -> Settings:
    return request.app.state.settings


async def get_curator(request: Request) -> ExampleCurator:
    return request.app.state.curator


async def get_retriever(request: Request) -> Retriever:
    return request.app.state.retriever


async def get_feedback_loop(request: Request) -> LearningFeedbackLoop:
    return request.app.state.feedback_loop


@router.post("", status_code=201, summary="Add an example")
async def create_example(
    payload: ExampleCreateRequest,
    curator: ExampleCurator = Depends(get_curator),
) -> dict[str, Any]:
    example_id = await curator.add_example(
        question=payload.question,
        answer=payload.answer,
        category=payload.category,
        language=payload.language,
        source=payload.source,
    )
    return success_response({"id": example_id})


@router.get("/search", summary="Find examples similar to a query")
async def search_examples(
    query: str = Query(..., min_length=1, max_length=4000),
    language: str = Query("en", pattern=LANGUAGE_PATTERN),
    threshold: Optional[float] = Query(None, ge=0.0, le=1.0),
    limit: Optional[int] = Query(None, ge=1, le=50),
    retriever: Retriever = Depends(get_retriever),
    settings: Settings = Depends(get_settings),
) -> dict[str, Any]:
    candidates = await retriever.retrieve(
        query,
        language,
        max_examples=limit or settings.max_examples_to_retrieve,
        threshold=settings.similarity_threshold if threshold is None else threshold,
    )
    hits = [
        ExampleSearchHit(
            id=candidate.example_id,
            question=candidate.question,
            answer=candidate.answer,
            category=candidate.category,
            similarity=candidate.similarity,
        ).model_dump()
        for candidate in candidates
    ]
    return success_response(hits)


@router.post("/generate", status_code=201, summary="Generate examples with the search model")
async def generate_examples(
    payload: GenerateExamplesRequest,
    curator: ExampleCurator = Depends(get_curator),
) -> dict[str, Any]:
    result = await curator.generate_examples(
        payload.category,
        count=payload.count,
        language=payload.language,
    )
    data = BatchInsertResponse(
        added=result.added,
        failed=result.failed,
        example_ids=result.example_ids,
    )
    return success_response(data.model_dump())


@router.get("/stats", summary="Example counts by language, category and source")
async def example_stats(
    curator: ExampleCurator = Depends(get_curator),
) -> dict[str, Any]:
    stats = await curator.statistics()
    data = ExampleStatsResponse(
        total=stats.total,
        by_language=stats.by_language,
        by_category=stats.by_category,
        by_source=stats.by_source,
    )
    return success_response(data.model_dump())


@router.post("/promote", status_code=201, summary="Promote an interaction to an example")
async def promote_interaction(
    payload: PromoteRequest,
    feedback_loop: LearningFeedbackLoop = Depends(get_feedback_loop),
) -> dict[str, Any]:
    example_id = await feedback_loop.promote_to_example(payload.chat_id, payload.category)
    return success_response({"id": example_id, "chatId": payload.chat_id})
