"""Configuration management for the receptionist RAG backend."""

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional, cast

from dotenv import load_dotenv
import structlog

logger = structlog.get_logger(__name__)

STORAGE_BACKENDS = {"postgres", "memory"}
RATE_LIMIT_BACKENDS = {"memory", "redis"}


@dataclass(frozen=True)
class Settings:
    """Application settings loaded from environment variables."""

    app_env: str
    openai_api_key: str
    openai_model_id: str
    embedding_model: str
    embedding_dimensions: int
    embedding_timeout_seconds: float
    perplexity_api_key: str
    perplexity_model: str
    perplexity_base_url: str
    generation_timeout_seconds: float
    generation_temperature: float
    generation_max_tokens: int
    storage_backend: str
    database_url: Optional[str]
    db_pool_min: int
    db_pool_max: int
    max_examples_to_retrieve: int
    similarity_threshold: float
    direct_reuse_threshold: float
    default_language: str
    auto_promote_enabled: bool
    auto_promote_min_rating: int
    request_max_bytes: int
    rate_limit_per_minute: int
    rate_limit_backend: str
    rate_limit_retry_after_seconds: int
    redis_url: Optional[str]
    backend_host: str
    backend_port: int
    frontend_url: str


def _int_env(name: str, default: str) -> int:
    raw = os.getenv(name, default)
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be a valid integer. Check your .env file.") from exc


def _float_env(name: str, default: str) -> float:
    raw = os.getenv(name, default)
    try:
        return float(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be a valid number. Check your .env file.") from exc


def _bool_env(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


def load_settings() -> Settings:
    """
    Load settings from environment variables.

    Returns:
        Settings instance with all configuration values

    Raises:
        ValueError: If required environment variables are missing or invalid
    """
    load_dotenv()

    app_env = os.getenv("APP_ENV", "development").strip().lower()
    storage_backend = os.getenv("STORAGE_BACKEND", "postgres").strip().lower()
    if storage_backend not in STORAGE_BACKENDS:
        raise ValueError("STORAGE_BACKEND must be 'postgres' or 'memory'.")

    required = ["OPENAI_API_KEY", "PERPLEXITY_API_KEY"]
    if storage_backend == "postgres":
        required.append("DATABASE_URL")
    values = {key: os.getenv(key) for key in required}
    missing = [key for key, value in values.items() if not value]
    if missing:
        missing_list = ", ".join(sorted(missing))
        raise ValueError(
            "Missing required environment variables: "
            f"{missing_list}. Copy .env.example to .env and fill values."
        )

    embedding_dimensions = _int_env("EMBEDDING_DIMENSIONS", "1536")
    if embedding_dimensions < 1:
        raise ValueError("EMBEDDING_DIMENSIONS must be >= 1.")
    embedding_timeout_seconds = _float_env("EMBEDDING_TIMEOUT_SECONDS", "30")
    generation_timeout_seconds = _float_env("GENERATION_TIMEOUT_SECONDS", "30")
    if generation_timeout_seconds <= 0:
        raise ValueError("GENERATION_TIMEOUT_SECONDS must be > 0.")
    generation_temperature = _float_env("GENERATION_TEMPERATURE", "0.2")
    generation_max_tokens = _int_env("GENERATION_MAX_TOKENS", "1000")

    db_pool_min = _int_env("DB_POOL_MIN", "1")
    db_pool_max = _int_env("DB_POOL_MAX", "10")
    if db_pool_min < 1 or db_pool_max < db_pool_min:
        raise ValueError(
            "DB_POOL_MIN must be >= 1 and DB_POOL_MAX must be >= DB_POOL_MIN."
        )

    max_examples_to_retrieve = _int_env("MAX_EXAMPLES_TO_RETRIEVE", "5")
    if max_examples_to_retrieve < 1:
        raise ValueError("MAX_EXAMPLES_TO_RETRIEVE must be >= 1.")
    similarity_threshold = _float_env("SIMILARITY_THRESHOLD", "0.75")
    direct_reuse_threshold = _float_env("DIRECT_REUSE_THRESHOLD", "0.85")
    for name, value in (
        ("SIMILARITY_THRESHOLD", similarity_threshold),
        ("DIRECT_REUSE_THRESHOLD", direct_reuse_threshold),
    ):
        if not 0.0 <= value <= 1.0:
            raise ValueError(f"{name} must be between 0 and 1.")
    if direct_reuse_threshold < similarity_threshold:
        raise ValueError(
            f"DIRECT_REUSE_THRESHOLD ({direct_reuse_threshold}) must be >= "
            f"SIMILARITY_THRESHOLD ({similarity_threshold})."
        )

    auto_promote_min_rating = _int_env("AUTO_PROMOTE_MIN_RATING", "4")
    if not 1 <= auto_promote_min_rating <= 5:
        raise ValueError("AUTO_PROMOTE_MIN_RATING must be between 1 and 5.")

    request_max_bytes = _int_env("REQUEST_MAX_BYTES", "1048576")
    rate_limit_per_minute = _int_env("RATE_LIMIT_PER_MINUTE", "60")
    rate_limit_retry_after_seconds = _int_env("RATE_LIMIT_RETRY_AFTER_SECONDS", "60")
    if request_max_bytes < 1:
        raise ValueError("REQUEST_MAX_BYTES must be >= 1.")
    if rate_limit_per_minute < 1:
        raise ValueError("RATE_LIMIT_PER_MINUTE must be >= 1.")
    if rate_limit_retry_after_seconds < 1:
        raise ValueError("RATE_LIMIT_RETRY_AFTER_SECONDS must be >= 1.")
    rate_limit_backend = os.getenv("RATE_LIMIT_BACKEND", "memory").strip().lower()
    if rate_limit_backend not in RATE_LIMIT_BACKENDS:
        raise ValueError("RATE_LIMIT_BACKEND must be 'memory' or 'redis'.")
    redis_url = os.getenv("REDIS_URL") or None
    if rate_limit_backend == "redis" and not redis_url:
        raise ValueError("REDIS_URL is required when RATE_LIMIT_BACKEND=redis.")

    backend_port = _int_env("BACKEND_PORT", "8000")

    if storage_backend == "memory" and app_env not in {"development", "dev", "test", "local"}:
        logger.warning("memory_storage_outside_development", env=app_env)

    return Settings(
        app_env=app_env,
        openai_api_key=cast(str, values["OPENAI_API_KEY"]),
        openai_model_id=os.getenv("OPENAI_MODEL_ID", "gpt-4o-mini"),
        embedding_model=os.getenv("EMBEDDING_MODEL", "text-embedding-3-small"),
        embedding_dimensions=embedding_dimensions,
        embedding_timeout_seconds=embedding_timeout_seconds,
        perplexity_api_key=cast(str, values["PERPLEXITY_API_KEY"]),
        perplexity_model=os.getenv("PERPLEXITY_MODEL", "sonar-pro"),
        perplexity_base_url=os.getenv("PERPLEXITY_BASE_URL", "https://api.perplexity.ai"),
        generation_timeout_seconds=generation_timeout_seconds,
        generation_temperature=generation_temperature,
        generation_max_tokens=generation_max_tokens,
        storage_backend=storage_backend,
        database_url=values.get("DATABASE_URL") or os.getenv("DATABASE_URL"),
        db_pool_min=db_pool_min,
        db_pool_max=db_pool_max,
        max_examples_to_retrieve=max_examples_to_retrieve,
        similarity_threshold=similarity_threshold,
        direct_reuse_threshold=direct_reuse_threshold,
        default_language=os.getenv("DEFAULT_LANGUAGE", "en").strip().lower() or "en",
        auto_promote_enabled=_bool_env("AUTO_PROMOTE_ENABLED", "true"),
        auto_promote_min_rating=auto_promote_min_rating,
        request_max_bytes=request_max_bytes,
        rate_limit_per_minute=rate_limit_per_minute,
        rate_limit_backend=rate_limit_backend,
        rate_limit_retry_after_seconds=rate_limit_retry_after_seconds,
        redis_url=redis_url,
        backend_host=os.getenv("BACKEND_HOST", "0.0.0.0"),
        backend_port=backend_port,
        frontend_url=os.getenv("FRONTEND_URL", "http://localhost:3000"),
    )


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses lru_cache to ensure settings are only loaded once
    from environment variables.

    Returns:
        Cached Settings instance
    """
    return load_settings()
