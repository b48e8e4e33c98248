"""Administrative operations for growing the example store."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Iterable, Optional

import structlog

from .core.errors import AppError, EmbeddingError
from .db.base import ExampleStore
from .embeddings import BatchEmbeddingProvider
from .llm.completion import CompletionGateway
from .models import Example, ExampleSource, ExampleStatistics

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class BatchInsertResult:
    added: int
    failed: int
    example_ids: list[str] = field(default_factory=list)


class ExampleCurator:
    """Manual, bulk and LLM-generated insertion of examples."""

    def __init__(
        self,
        store: ExampleStore,
        completion: Optional[CompletionGateway] = None,
        embeddings: Optional[BatchEmbeddingProvider] = None,
    ) -> None:
        self.store = store
        self.completion = completion
        self.embeddings = embeddings

    async def add_example(
        self,
        question: str,
        answer: str,
        category: str,
        language: str,
        source: ExampleSource = ExampleSource.MANUAL,
    ) -> str:
        """Insert one example; the store embeds its question.

        Raises:
            ValidationError: If a required field is empty
            EmbeddingError: If the question could not be embedded
        """
        example = Example(
            question=(question or "").strip(),
            answer=(answer or "").strip(),
            category=(category or "").strip(),
            language=(language or "").strip(),
            source=source,
        )
        example_id = await self.store.insert(example)
        logger.info(
            "example_added",
            example_id=example_id,
            category=example.category,
            language=example.language,
            source=example.source.value,
        )
        return example_id

    async def add_examples_batch(self, examples: Iterable[Example]) -> BatchInsertResult:
        """Insert examples one by one; a bad item is counted, not fatal.

        With a batch embedding provider, questions are embedded in as few
        requests as possible before the inserts.
        """
        examples = await self._embed_questions(list(examples))
        ids: list[str] = []
        failed = 0
        for example in examples:
            try:
                ids.append(await self.store.insert(example))
            except AppError as exc:
                failed += 1
                logger.warning(
                    "example_batch_item_failed",
                    question=example.question[:50],
                    code=exc.code.value,
                    error=exc.message,
                )
        logger.info("example_batch_inserted", added=len(ids), failed=failed)
        return BatchInsertResult(added=len(ids), failed=failed, example_ids=ids)

    async def _embed_questions(self, examples: list[Example]) -> list[Example]:
        if self.embeddings is None:
            return examples
        pending = [
            index
            for index, example in enumerate(examples)
            if example.embedding is None and example.question.strip()
        ]
        if not pending:
            return examples
        try:
            vectors = await self.embeddings.embed_many(
                [examples[index].question for index in pending]
            )
        except EmbeddingError as exc:
            # The store embeds each remaining item on insert and counts failures.
            logger.warning(
                "example_batch_embedding_failed",
                batch_size=len(pending),
                error=exc.message,
            )
            return examples
        embedded = list(examples)
        for index, vector in zip(pending, vectors):
            embedded[index] = replace(examples[index], embedding=vector)
        return embedded

    async def generate_examples(
        self,
        category: str,
        count: int = 5,
        language: str = "en",
    ) -> BatchInsertResult:
        """Ask the search model for examples and store them as ``generated``.

        Raises:
            GenerationError: If the model call fails or returns nothing usable
        """
        if self.completion is None:
            raise RuntimeError("Example generation requires a completion gateway")
        pairs = await self.completion.generate_examples(category, count)
        return await self.add_examples_batch(
            Example(
                question=pair.question,
                answer=pair.answer,
                category=category,
                language=language,
                source=ExampleSource.GENERATED,
            )
            for pair in pairs
        )

    async def statistics(self) -> ExampleStatistics:
        return await self.store.statistics()
