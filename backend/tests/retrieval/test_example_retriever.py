"""Tests for the example retriever."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from receptionist_rag_backend.core.errors import (
    EmbeddingError,
    InvalidQueryError,
    StorageError,
)
from receptionist_rag_backend.retrieval import Retriever


@pytest.mark.asyncio
async def test_retrieve_returns_best_first(retriever, example_store, faucet_example):
    await example_store.insert(faucet_example)

    candidates = await retriever.retrieve(
        "My faucet is leaking, what does a repair cost?", "en", threshold=0.75
    )

    assert len(candidates) == 1
    assert candidates[0].example_id == faucet_example.id
    assert candidates[0].similarity == pytest.approx(0.9)


@pytest.mark.asyncio
async def test_retrieve_empty_when_store_has_no_match(retriever, example_store, faucet_example):
    await example_store.insert(faucet_example)

    assert await retriever.retrieve("What are your hours?", "en") == []


@pytest.mark.asyncio
async def test_retrieve_passes_language_to_embedding_and_search(fake_embeddings):
    store = MagicMock()
    store.search = AsyncMock(return_value=[])
    retriever = Retriever(store, fake_embeddings)

    await retriever.retrieve("Hola, necesito ayuda", "es", max_examples=3, threshold=0.8)

    assert fake_embeddings.calls == [("Hola, necesito ayuda", "es")]
    kwargs = store.search.call_args.kwargs
    assert kwargs["language"] == "es"
    assert kwargs["max_results"] == 3
    assert kwargs["threshold"] == 0.8


@pytest.mark.asyncio
@pytest.mark.parametrize("query", ["", "   "])
async def test_retrieve_rejects_blank_query(retriever, query):
    with pytest.raises(InvalidQueryError):
        await retriever.retrieve(query, "en")


@pytest.mark.asyncio
async def test_retrieve_propagates_embedding_failure(example_store, failing_embeddings_factory):
    retriever = Retriever(example_store, failing_embeddings_factory(EmbeddingError("down")))

    with pytest.raises(EmbeddingError):
        await retriever.retrieve("Leaky pipe", "en")


@pytest.mark.asyncio
async def test_retrieve_propagates_storage_failure(fake_embeddings):
    store = MagicMock()
    store.search = AsyncMock(side_effect=StorageError("search_examples", "timeout"))
    retriever = Retriever(store, fake_embeddings)

    with pytest.raises(StorageError):
        await retriever.retrieve("Leaky pipe", "en")


@pytest.mark.asyncio
async def test_retrieve_times_out_on_slow_search(fake_embeddings):
    async def slow_search(**kwargs):
        await asyncio.sleep(1)
        return []

    store = MagicMock()
    store.search = slow_search
    retriever = Retriever(store, fake_embeddings, timeout_seconds=0.01)

    with pytest.raises(asyncio.TimeoutError):
        await retriever.retrieve("Leaky pipe", "en")
