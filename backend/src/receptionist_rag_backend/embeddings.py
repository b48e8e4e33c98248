"""OpenAI-compatible embedding gateway with a single internal retry."""

from typing import Optional, Protocol

import structlog
from openai import AsyncOpenAI
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential_jitter,
)

from receptionist_rag_backend.core.errors import EmbeddingError

logger = structlog.get_logger(__name__)

DEFAULT_EMBEDDING_MODEL = "text-embedding-3-small"
EMBEDDING_DIMENSION = 1536

# One call plus one retry
EMBED_ATTEMPTS = 2

MAX_BATCH_SIZE = 100  # OpenAI limit
MAX_TOKENS_PER_REQUEST = 8191  # Model token limit


class EmbeddingProvider(Protocol):
    """Protocol for embedding providers."""

    async def embed(self, text: str, language: Optional[str] = None) -> list[float]:
        """Generate embedding for text."""
        ...


class BatchEmbeddingProvider(EmbeddingProvider, Protocol):
    """Embedding provider that can embed many texts per request."""

    async def embed_many(self, texts: list[str]) -> list[list[float]]:
        ...


def _log_retry(retry_state: RetryCallState) -> None:
    logger.warning(
        "embedding_retry",
        attempt=retry_state.attempt_number,
        error=str(retry_state.outcome.exception()) if retry_state.outcome else None,
    )


class EmbeddingGateway:
    """
    Converts free text into fixed-length vectors.

    Features:
    - Rejects empty input before any provider call
    - One internal retry with exponential backoff, then EmbeddingError
    - Batch processing for bulk seeding (up to 100 texts per API call)
    - Dimension check so the store never mixes vector sizes
    """

    def __init__(
        self,
        api_key: Optional[str],
        model: str = DEFAULT_EMBEDDING_MODEL,
        dimensions: int = EMBEDDING_DIMENSION,
        base_url: Optional[str] = None,
        timeout: float = 30.0,
        retry_initial_wait: float = 1.0,
        client: Optional[AsyncOpenAI] = None,
    ) -> None:
        """
        Initialize the embedding gateway.

        Args:
            api_key: OpenAI-compatible API key
            model: Embedding model ID
            dimensions: Expected vector length
            base_url: OpenAI-compatible base URL override
            timeout: Request timeout in seconds
            retry_initial_wait: Backoff before the single retry, in seconds
            client: Preconfigured client (tests)
        """
        if client is None:
            client_kwargs: dict[str, object] = {
                "api_key": api_key or "",
                "timeout": timeout,
                # Retries are owned by this gateway
                "max_retries": 0,
            }
            if base_url:
                client_kwargs["base_url"] = base_url
            client = AsyncOpenAI(**client_kwargs)
        self.client = client
        self.model = model
        self.dimensions = dimensions
        self._retry_initial_wait = retry_initial_wait
        logger.info("embedding_gateway_initialized", model=model, timeout=timeout)

    async def _request(self, texts: list[str]) -> list[list[float]]:
        kwargs: dict[str, object] = {"model": self.model, "input": texts}
        if not self.model.endswith("ada-002"):
            kwargs["dimensions"] = self.dimensions
        try:
            response = await self.client.embeddings.create(**kwargs)
        except Exception as e:
            raise EmbeddingError(str(e), batch_size=len(texts)) from e
        vectors = [list(item.embedding) for item in response.data]
        if len(vectors) != len(texts):
            raise EmbeddingError(
                f"expected {len(texts)} vectors, got {len(vectors)}",
                batch_size=len(texts),
            )
        for vector in vectors:
            if len(vector) != self.dimensions:
                raise EmbeddingError(
                    f"expected dimension {self.dimensions}, got {len(vector)}",
                    batch_size=len(texts),
                )
        return vectors

    async def _embed_batch(self, texts: list[str]) -> list[list[float]]:
        """
        Embed a batch of texts, retrying once on failure.

        Raises:
            EmbeddingError: If both attempts fail
        """
        vectors: list[list[float]] = []
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(EMBED_ATTEMPTS),
            wait=wait_exponential_jitter(
                multiplier=self._retry_initial_wait,
                max=10,
                jitter=self._retry_initial_wait,
            ),
            retry=retry_if_exception_type(EmbeddingError),
            before_sleep=_log_retry,
            reraise=True,
        ):
            with attempt:
                vectors = await self._request(texts)
        return vectors

    @staticmethod
    def _prepare(text: str) -> str:
        if not text or not text.strip():
            raise EmbeddingError("input text is empty")
        # Rough character limit based on 4 chars per token
        max_chars = MAX_TOKENS_PER_REQUEST * 4
        if len(text) > max_chars:
            logger.warning(
                "text_truncated",
                original_length=len(text),
                truncated_to=max_chars,
            )
            return text[:max_chars]
        return text

    async def embed(self, text: str, language: Optional[str] = None) -> list[float]:
        """
        Generate the embedding for a single text.

        Args:
            text: Text to embed
            language: Language hint, recorded for diagnostics only

        Returns:
            Embedding vector

        Raises:
            EmbeddingError: On empty input or provider failure after one retry
        """
        vectors = await self._embed_batch([self._prepare(text)])
        logger.debug("embedding_generated", language=language, dimension=len(vectors[0]))
        return vectors[0]

    async def embed_many(
        self,
        texts: list[str],
        batch_size: int = MAX_BATCH_SIZE,
    ) -> list[list[float]]:
        """
        Generate embeddings for multiple texts with batching.

        Raises:
            EmbeddingError: If any text is empty or a batch fails after one retry
        """
        if not texts:
            return []
        processed = [self._prepare(text) for text in texts]

        embeddings: list[list[float]] = []
        total_batches = (len(processed) + batch_size - 1) // batch_size
        for batch_idx in range(0, len(processed), batch_size):
            batch = processed[batch_idx:batch_idx + batch_size]
            logger.debug(
                "embedding_batch",
                batch=batch_idx // batch_size + 1,
                total_batches=total_batches,
                batch_size=len(batch),
            )
            embeddings.extend(await self._embed_batch(batch))

        logger.info("embeddings_generated", total=len(texts), batches=total_batches)
        return embeddings


def cosine_similarity(vec1: list[float], vec2: list[float]) -> float:
    """
    Calculate cosine similarity between two vectors.

    Returns:
        Cosine similarity clamped to 0.0-1.0
    """
    if len(vec1) != len(vec2):
        raise ValueError(f"Vector dimensions don't match: {len(vec1)} vs {len(vec2)}")

    dot_product = sum(a * b for a, b in zip(vec1, vec2))
    magnitude1 = sum(a * a for a in vec1) ** 0.5
    magnitude2 = sum(b * b for b in vec2) ** 0.5

    if magnitude1 == 0 or magnitude2 == 0:
        return 0.0

    return max(0.0, min(1.0, dot_product / (magnitude1 * magnitude2)))
