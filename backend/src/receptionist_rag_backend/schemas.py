from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .models import ExampleSource

SESSION_ID_PATTERN = r"^[A-Za-z0-9_.:@+-]+$"
LANGUAGE_PATTERN = r"^[a-z]{2}(-[A-Z]{2})?$"


class ChatRequest(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True, populate_by_name=True)
    message: str = Field(..., min_length=1, max_length=4000)
    session_id: Optional[str] = Field(
        None,
        alias="sessionId",
        max_length=255,
        pattern=SESSION_ID_PATTERN,
    )
    language: Optional[str] = Field(None, pattern=LANGUAGE_PATTERN)

    @field_validator("message")
    @classmethod
    def validate_message(cls, value: str) -> str:
        """Validate message input."""
        trimmed = value.strip()
        if not trimmed:
            raise ValueError("message must not be blank")
        if "\x00" in trimmed:
            raise ValueError("message contains invalid characters")
        return trimmed


class SuggestedActionModel(BaseModel):
    type: str
    label: str
    data: dict[str, Any] = Field(default_factory=dict)


class ChatResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)
    response: str
    confidence: float
    examples_used: int = Field(alias="examplesUsed")
    session_id: str = Field(alias="sessionId")
    suggested_actions: list[SuggestedActionModel] = Field(
        default_factory=list, alias="suggestedActions"
    )
    chat_id: str = Field(alias="chatId")
    strategy: str
    language: str
    category: str
    sources: list[str] = Field(default_factory=list)


class ResponseMeta(BaseModel):
    model_config = ConfigDict(populate_by_name=True)
    request_id: str = Field(alias="requestId")
    timestamp: datetime


class ChatEnvelope(BaseModel):
    data: ChatResponse
    meta: ResponseMeta


class FeedbackRequest(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)
    rating: Optional[int] = Field(None, ge=1, le=5)
    helpful: Optional[bool] = None
    comment: Optional[str] = Field(None, max_length=2000)


class FeedbackResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)
    chat_id: str = Field(alias="chatId")
    examples_updated: dict[str, float] = Field(
        default_factory=dict, alias="examplesUpdated"
    )
    promoted_example_id: Optional[str] = Field(None, alias="promotedExampleId")


class HistoryItem(BaseModel):
    model_config = ConfigDict(populate_by_name=True)
    chat_id: str = Field(alias="chatId")
    user_message: str = Field(alias="userMessage")
    bot_response: str = Field(alias="botResponse")
    language: str
    confidence: float
    strategy: str
    examples_used: list[str] = Field(default_factory=list, alias="examplesUsed")
    timestamp: datetime
    rating: Optional[int] = None
    helpful: Optional[bool] = None


class ExampleCreateRequest(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)
    question: str = Field(..., min_length=1, max_length=4000)
    answer: str = Field(..., min_length=1, max_length=8000)
    category: str = Field(..., min_length=1, max_length=64)
    language: str = Field("en", pattern=LANGUAGE_PATTERN)
    source: ExampleSource = ExampleSource.MANUAL


class ExampleSearchHit(BaseModel):
    id: str
    question: str
    answer: str
    category: Optional[str] = None
    similarity: float


class GenerateExamplesRequest(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)
    category: str = Field(..., min_length=1, max_length=64)
    count: int = Field(5, ge=1, le=20)
    language: str = Field("en", pattern=LANGUAGE_PATTERN)


class BatchInsertResponse(BaseModel):
    added: int
    failed: int
    example_ids: list[str] = Field(default_factory=list)


class PromoteRequest(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True, populate_by_name=True)
    chat_id: str = Field(..., min_length=1, alias="chatId")
    category: str = Field(..., min_length=1, max_length=64)


class ExampleStatsResponse(BaseModel):
    total: int
    by_language: dict[str, int] = Field(default_factory=dict)
    by_category: dict[str, int] = Field(default_factory=dict)
    by_source: dict[str, int] = Field(default_factory=dict)
