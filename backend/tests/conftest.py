"""pytest fixtures for Receptionist RAG Backend tests."""

import os

# Set environment variables BEFORE any imports
os.environ.setdefault("OPENAI_API_KEY", "test-key")
os.environ.setdefault("PERPLEXITY_API_KEY", "test-perplexity-key")
os.environ.setdefault("STORAGE_BACKEND", "memory")
os.environ.setdefault("DATABASE_URL", "postgresql://localhost/test")
os.environ.setdefault("REDIS_URL", "redis://localhost:6379")

from typing import Optional
from unittest.mock import AsyncMock

import pytest

from receptionist_rag_backend.db.memory import InMemoryExampleStore, InMemoryInteractionStore
from receptionist_rag_backend.interactions import InteractionLogger
from receptionist_rag_backend.llm.completion import GeneratedExample, SearchAnswer
from receptionist_rag_backend.models import Example, ExampleSource
from receptionist_rag_backend.retrieval import Retriever

DIMENSION = 3

# Unit vectors chosen so cosine similarities are easy to reason about.
FAUCET_VECTOR = [1.0, 0.0, 0.0]
NEAR_FAUCET_VECTOR = [0.9, 0.4358898943540674, 0.0]  # cos = 0.9 with FAUCET_VECTOR
MIDDLE_VECTOR = [0.8, 0.6, 0.0]  # cos = 0.8 with FAUCET_VECTOR
UNRELATED_VECTOR = [0.0, 0.0, 1.0]


class FakeEmbeddings:
    """Deterministic embedding provider keyed by exact text."""

    def __init__(self, vectors: Optional[dict[str, list[float]]] = None, default=None) -> None:
        self.vectors = dict(vectors or {})
        self.default = default or UNRELATED_VECTOR
        self.calls: list[tuple[str, Optional[str]]] = []
        self.batches: list[list[str]] = []

    async def embed(self, text: str, language: Optional[str] = None) -> list[float]:
        self.calls.append((text, language))
        return list(self.vectors.get(text, self.default))

    async def embed_many(self, texts: list[str]) -> list[list[float]]:
        self.batches.append(list(texts))
        return [list(self.vectors.get(text, self.default)) for text in texts]


class FailingEmbeddings:
    def __init__(self, error: Exception) -> None:
        self.error = error

    async def embed(self, text: str, language: Optional[str] = None) -> list[float]:
        raise self.error


@pytest.fixture
def embeddings_factory():
    """Build a FakeEmbeddings with a custom text-to-vector mapping."""
    return FakeEmbeddings


@pytest.fixture
def failing_embeddings_factory():
    return FailingEmbeddings


@pytest.fixture
def fake_embeddings():
    """Embedding provider mapping the faucet questions to fixed vectors."""
    return FakeEmbeddings(
        {
            "How much to fix a leaky faucet?": FAUCET_VECTOR,
            "My faucet is leaking, what does a repair cost?": NEAR_FAUCET_VECTOR,
            "Do you repair kitchen sinks?": MIDDLE_VECTOR,
        }
    )


@pytest.fixture
def example_store(fake_embeddings):
    return InMemoryExampleStore(embedding_provider=fake_embeddings, dimension=DIMENSION)


@pytest.fixture
def interaction_store():
    return InMemoryInteractionStore()


@pytest.fixture
def interaction_logger(interaction_store):
    return InteractionLogger(interaction_store)


@pytest.fixture
def retriever(example_store, fake_embeddings):
    return Retriever(example_store, fake_embeddings)


@pytest.fixture
def mock_completion():
    """Completion gateway double returning canned search answers."""
    completion = AsyncMock()
    completion.generate_with_search = AsyncMock(
        return_value=SearchAnswer(
            text="A plumber can usually fix that within a day.",
            sources=["https://example.com/plumbing"],
        )
    )
    completion.generate = AsyncMock(return_value="Generated answer.")
    completion.generate_examples = AsyncMock(
        return_value=[
            GeneratedExample(question="Do you fix leaks?", answer="Yes, same day."),
            GeneratedExample(question="Do you unclog drains?", answer="Yes, from $99."),
        ]
    )
    return completion


@pytest.fixture
def faucet_example():
    """Stored example for the leaky faucet question."""
    return Example(
        question="How much to fix a leaky faucet?",
        answer="Faucet repairs usually cost $150-$300.",
        category="plumbing",
        language="en",
        embedding=FAUCET_VECTOR,
        source=ExampleSource.MANUAL,
    )
