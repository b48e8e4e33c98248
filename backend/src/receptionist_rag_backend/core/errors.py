"""Error handling with RFC 7807 Problem Details support."""

from enum import Enum
from typing import Any, Optional

from fastapi import HTTPException, Request
from fastapi.responses import JSONResponse


class ErrorCode(str, Enum):
    """Standardized error codes for the application."""

    VALIDATION_ERROR = "validation_error"
    INVALID_QUERY = "invalid_query"
    EMBEDDING_FAILED = "embedding_failed"
    GENERATION_FAILED = "generation_failed"
    GENERATION_TIMEOUT = "generation_timeout"
    STORAGE_ERROR = "storage_error"
    INTERACTION_NOT_FOUND = "interaction_not_found"
    EXAMPLE_NOT_FOUND = "example_not_found"
    FEEDBACK_ALREADY_SUBMITTED = "feedback_already_submitted"
    RATE_LIMIT_EXCEEDED = "rate_limit_exceeded"
    INTERNAL_ERROR = "internal_error"


class AppError(Exception):
    """
    Structured application error following RFC 7807 Problem Details.

    Attributes:
        code: Error code from ErrorCode enum
        message: Human-readable error message
        status: HTTP status code
        details: Additional error context
    """

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        status: int = 500,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        self.code = code
        self.message = message
        self.status = status
        self.details = details or {}
        super().__init__(message)

    def to_problem_detail(self, instance: str) -> dict[str, Any]:
        """
        Convert error to RFC 7807 Problem Details format.

        Args:
            instance: The request path where the error occurred

        Returns:
            Dictionary in RFC 7807 format
        """
        problem = {
            "type": f"https://api.example.com/errors/{self.code.value.replace('_', '-')}",
            "title": self.code.value.replace("_", " ").title(),
            "status": self.status,
            "detail": self.message,
            "instance": instance,
        }
        if self.details:
            problem["errors"] = self.details
        return problem


class ValidationError(AppError):
    """Validation error for request data or malformed examples."""

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None) -> None:
        super().__init__(
            code=ErrorCode.VALIDATION_ERROR,
            message=message,
            status=400,
            details=details,
        )


class InvalidQueryError(AppError):
    """Error for empty or whitespace-only queries."""

    def __init__(self, reason: str = "Query must not be empty") -> None:
        super().__init__(
            code=ErrorCode.INVALID_QUERY,
            message=reason,
            status=400,
        )


class EmbeddingError(AppError):
    """Error during embedding generation."""

    def __init__(self, reason: str, batch_size: Optional[int] = None) -> None:
        details = {}
        if batch_size is not None:
            details["batch_size"] = batch_size
        super().__init__(
            code=ErrorCode.EMBEDDING_FAILED,
            message=f"Embedding generation failed: {reason}",
            status=502,
            details=details,
        )


class GenerationError(AppError):
    """Error from the completion provider."""

    def __init__(
        self,
        reason: str,
        provider: Optional[str] = None,
        code: ErrorCode = ErrorCode.GENERATION_FAILED,
        status: int = 502,
    ) -> None:
        details = {}
        if provider:
            details["provider"] = provider
        super().__init__(
            code=code,
            message=f"Response generation failed: {reason}",
            status=status,
            details=details,
        )


class GenerationTimeout(GenerationError):
    """Completion call exceeded its time bound."""

    def __init__(self, timeout_seconds: float, provider: Optional[str] = None) -> None:
        super().__init__(
            reason=f"timed out after {timeout_seconds:g}s",
            provider=provider,
            code=ErrorCode.GENERATION_TIMEOUT,
            status=504,
        )
        self.timeout_seconds = timeout_seconds


class StorageError(AppError):
    """Example store or interaction log read/write failure."""

    def __init__(self, operation: str, reason: str) -> None:
        super().__init__(
            code=ErrorCode.STORAGE_ERROR,
            message=f"Storage error during {operation}: {reason}",
            status=503,
            details={"operation": operation},
        )


class InteractionNotFoundError(AppError):
    """Error when an interaction record is not found."""

    def __init__(self, interaction_id: str) -> None:
        super().__init__(
            code=ErrorCode.INTERACTION_NOT_FOUND,
            message=f"Interaction with ID '{interaction_id}' not found",
            status=404,
            details={"interaction_id": interaction_id},
        )


class ExampleNotFoundError(AppError):
    """Error when an example is not found."""

    def __init__(self, example_id: str) -> None:
        super().__init__(
            code=ErrorCode.EXAMPLE_NOT_FOUND,
            message=f"Example with ID '{example_id}' not found",
            status=404,
            details={"example_id": example_id},
        )


class FeedbackAlreadySubmittedError(AppError):
    """Feedback fields of an interaction can only be written once."""

    def __init__(self, interaction_id: str) -> None:
        super().__init__(
            code=ErrorCode.FEEDBACK_ALREADY_SUBMITTED,
            message=f"Feedback already submitted for interaction '{interaction_id}'",
            status=409,
            details={"interaction_id": interaction_id},
        )


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """
    FastAPI exception handler for AppError.

    Converts AppError to RFC 7807 Problem Details JSON response.

    Args:
        request: The FastAPI request object
        exc: The AppError exception

    Returns:
        JSONResponse with Problem Details format
    """
    return JSONResponse(
        status_code=exc.status,
        content=exc.to_problem_detail(str(request.url.path)),
    )


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Render HTTPException in the same Problem Details shape."""
    title = str(exc.detail) if exc.detail else "Error"
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "type": "about:blank",
            "title": title,
            "status": exc.status_code,
            "detail": title,
            "instance": str(request.url.path),
        },
        headers=getattr(exc, "headers", None),
    )
