"""Completion gateway for reply generation.

Prompt layout is fixed for every call: the system role carries the persona and
domain instructions, each retrieved example is injected as its own additional
system message, and the user role carries only the raw customer query.
"""

from __future__ import annotations

import asyncio
import json
import re
import time
from dataclasses import dataclass, field
from typing import Any, Optional, Sequence

import structlog
from openai import APITimeoutError, AsyncOpenAI, OpenAIError

from receptionist_rag_backend.config import Settings
from receptionist_rag_backend.core.errors import (
    GenerationError,
    GenerationTimeout,
    ValidationError,
)
from receptionist_rag_backend.models import RetrievalCandidate
from receptionist_rag_backend.observability.metrics import (
    record_generation_failure,
    record_generation_latency,
)

from .providers import (
    OPENAI_PROVIDER,
    PERPLEXITY_PROVIDER,
    get_chat_adapter,
    get_search_adapter,
)

logger = structlog.get_logger(__name__)

RECEPTIONIST_PERSONA = (
    "You are a knowledgeable home service receptionist helping customers with "
    "their questions about plumbing, HVAC, electrical, and other home services."
)
CATEGORY_INSTRUCTIONS = (
    "The customer's question is about {category} home services. Give a concise, "
    "professional answer that a home service receptionist would give. Focus on "
    "practical information like typical costs, timeframes, and what customers "
    "should expect."
)
EXAMPLE_GENERATION_PERSONA = (
    "You are an expert in home services creating training data for a chatbot."
)
EXAMPLE_GENERATION_PROMPT = """Generate {count} common customer questions and professional answers for {category} home services.

Format as JSON array:
[
  {{"question": "...", "answer": "..."}},
  ...
]

Focus on:
- Pricing questions
- Timeline/urgency questions
- Process/what-to-expect questions
- Emergency situations

Answers should be concise (2-3 sentences) and helpful."""

MAX_GENERATED_EXAMPLES = 20
DEFAULT_TEMPERATURE = 0.2
DEFAULT_MAX_TOKENS = 1000
DEFAULT_GENERATION_TIMEOUT_SECONDS = 30.0

_JSON_ARRAY_PATTERN = re.compile(r"\[\s*{[\s\S]*}\s*\]")


@dataclass(frozen=True)
class SearchAnswer:
    """Reply text from the search model with the sources it cited."""

    text: str
    sources: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class GeneratedExample:
    question: str
    answer: str


def format_context_block(index: int, candidate: RetrievalCandidate) -> str:
    return f"Example {index}:\nQ: {candidate.question}\nA: {candidate.answer}"


def build_messages(
    query: str,
    category: str,
    context_examples: Sequence[RetrievalCandidate] = (),
    instructions: Optional[str] = None,
) -> list[dict[str, str]]:
    """Build the chat messages for one reply.

    Context examples never reach the user turn, so retrieved text cannot
    masquerade as the customer's own words.
    """
    system_parts = [RECEPTIONIST_PERSONA, CATEGORY_INSTRUCTIONS.format(category=category)]
    if instructions:
        system_parts.append(instructions)
    messages = [{"role": "system", "content": "\n\n".join(system_parts)}]
    for index, candidate in enumerate(context_examples, start=1):
        messages.append(
            {"role": "system", "content": format_context_block(index, candidate)}
        )
    messages.append({"role": "user", "content": query})
    return messages


def parse_generated_examples(content: str) -> list[GeneratedExample]:
    """Extract question/answer pairs from a JSON array embedded in model output.

    Raises:
        GenerationError: If no usable JSON array is present
    """
    match = _JSON_ARRAY_PATTERN.search(content)
    if not match:
        raise GenerationError("no JSON array in generated examples")
    try:
        items = json.loads(match.group(0))
    except json.JSONDecodeError as exc:
        raise GenerationError(f"invalid JSON in generated examples: {exc}") from exc

    examples: list[GeneratedExample] = []
    for item in items:
        if not isinstance(item, dict):
            continue
        question = str(item.get("question") or "").strip()
        answer = str(item.get("answer") or "").strip()
        if question and answer:
            examples.append(GeneratedExample(question=question, answer=answer))
    if not examples:
        raise GenerationError("generated examples contained no question/answer pairs")
    return examples


def _extract_sources(response: Any) -> list[str]:
    # Perplexity returns citations as a top-level field outside the OpenAI schema.
    citations = getattr(response, "citations", None) or []
    return [str(citation) for citation in citations if citation]


class CompletionGateway:
    """Wraps the chat model and the web-search model behind one interface.

    Calls are bounded by ``timeout_seconds`` and never retried.
    """

    def __init__(
        self,
        chat_client: AsyncOpenAI,
        search_client: AsyncOpenAI,
        chat_model: str,
        search_model: str,
        timeout_seconds: float = DEFAULT_GENERATION_TIMEOUT_SECONDS,
        temperature: float = DEFAULT_TEMPERATURE,
        max_tokens: int = DEFAULT_MAX_TOKENS,
    ) -> None:
        self.chat_client = chat_client
        self.search_client = search_client
        self.chat_model = chat_model
        self.search_model = search_model
        self.timeout_seconds = timeout_seconds
        self.temperature = temperature
        self.max_tokens = max_tokens

    @classmethod
    def from_settings(cls, settings: Settings) -> "CompletionGateway":
        chat = get_chat_adapter(settings)
        search = get_search_adapter(settings)
        return cls(
            chat_client=chat.create_client(),
            search_client=search.create_client(),
            chat_model=chat.model,
            search_model=search.model,
            timeout_seconds=settings.generation_timeout_seconds,
            temperature=settings.generation_temperature,
            max_tokens=settings.generation_max_tokens,
        )

    async def generate(
        self,
        query: str,
        context_examples: Sequence[RetrievalCandidate],
        category: str,
        instructions: Optional[str] = None,
    ) -> str:
        """Generate a reply with the chat model from retrieved examples only."""
        messages = build_messages(query, category, context_examples, instructions)
        response = await self._complete(
            self.chat_client, self.chat_model, messages, OPENAI_PROVIDER
        )
        return self._content(response, OPENAI_PROVIDER)

    async def generate_with_search(
        self,
        query: str,
        category: str,
        context_examples: Sequence[RetrievalCandidate] = (),
        instructions: Optional[str] = None,
    ) -> SearchAnswer:
        """Generate a reply with the web-search model, returning its citations."""
        messages = build_messages(query, category, context_examples, instructions)
        response = await self._complete(
            self.search_client, self.search_model, messages, PERPLEXITY_PROVIDER
        )
        text = self._content(response, PERPLEXITY_PROVIDER)
        sources = _extract_sources(response)
        logger.info(
            "search_generation_completed",
            category=category,
            context_examples=len(context_examples),
            sources=len(sources),
        )
        return SearchAnswer(text=text, sources=sources)

    async def generate_examples(self, category: str, count: int = 5) -> list[GeneratedExample]:
        """Ask the search model for ``count`` question/answer pairs about ``category``."""
        if not 1 <= count <= MAX_GENERATED_EXAMPLES:
            raise ValidationError(
                f"count must be between 1 and {MAX_GENERATED_EXAMPLES}",
                details={"count": count},
            )
        messages = [
            {"role": "system", "content": EXAMPLE_GENERATION_PERSONA},
            {
                "role": "user",
                "content": EXAMPLE_GENERATION_PROMPT.format(count=count, category=category),
            },
        ]
        response = await self._complete(
            self.search_client, self.search_model, messages, PERPLEXITY_PROVIDER
        )
        examples = parse_generated_examples(self._content(response, PERPLEXITY_PROVIDER))
        logger.info("examples_generated", category=category, requested=count, parsed=len(examples))
        return examples[:count]

    async def _complete(
        self,
        client: AsyncOpenAI,
        model: str,
        messages: list[dict[str, str]],
        provider: str,
    ) -> Any:
        start = time.perf_counter()
        request = client.chat.completions.create(
            model=model,
            messages=messages,
            temperature=self.temperature,
            max_tokens=self.max_tokens,
        )
        try:
            if self.timeout_seconds > 0:
                response = await asyncio.wait_for(request, timeout=self.timeout_seconds)
            else:
                response = await request
        except (asyncio.TimeoutError, APITimeoutError) as exc:
            record_generation_failure(provider, "timeout")
            logger.warning(
                "generation_timeout",
                provider=provider,
                model=model,
                timeout_seconds=self.timeout_seconds,
            )
            raise GenerationTimeout(self.timeout_seconds, provider=provider) from exc
        except OpenAIError as exc:
            record_generation_failure(provider, "error")
            logger.error("generation_failed", provider=provider, model=model, error=str(exc))
            raise GenerationError(str(exc), provider=provider) from exc
        finally:
            record_generation_latency(provider, time.perf_counter() - start)
        return response

    @staticmethod
    def _content(response: Any, provider: str) -> str:
        choices = getattr(response, "choices", None) or []
        content = choices[0].message.content if choices else None
        if not content or not content.strip():
            record_generation_failure(provider, "empty")
            raise GenerationError("provider returned an empty completion", provider=provider)
        return content.strip()
