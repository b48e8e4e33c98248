"""Core utilities for the receptionist RAG backend."""

from .errors import (
    AppError,
    EmbeddingError,
    ErrorCode,
    ExampleNotFoundError,
    FeedbackAlreadySubmittedError,
    GenerationError,
    GenerationTimeout,
    InteractionNotFoundError,
    InvalidQueryError,
    StorageError,
    ValidationError,
)

__all__ = [
    "AppError",
    "EmbeddingError",
    "ErrorCode",
    "ExampleNotFoundError",
    "FeedbackAlreadySubmittedError",
    "GenerationError",
    "GenerationTimeout",
    "InteractionNotFoundError",
    "InvalidQueryError",
    "StorageError",
    "ValidationError",
]
