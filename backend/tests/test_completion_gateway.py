"""Tests for the completion gateway and its prompt layout."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from receptionist_rag_backend.config import load_settings
from receptionist_rag_backend.core.errors import (
    ErrorCode,
    GenerationError,
    GenerationTimeout,
    ValidationError,
)
from receptionist_rag_backend.llm import (
    CompletionGateway,
    build_messages,
    get_search_adapter,
    parse_generated_examples,
)
from receptionist_rag_backend.models import RetrievalCandidate


def _completion(content, citations=None):
    message = MagicMock()
    message.content = content
    choice = MagicMock()
    choice.message = message
    response = MagicMock()
    response.choices = [choice]
    response.citations = citations
    return response


def _client(response=None, side_effect=None):
    client = MagicMock()
    client.chat.completions.create = AsyncMock(return_value=response, side_effect=side_effect)
    return client


def _gateway(chat_client=None, search_client=None, timeout_seconds=5.0):
    return CompletionGateway(
        chat_client=chat_client or _client(),
        search_client=search_client or _client(),
        chat_model="gpt-4o-mini",
        search_model="sonar-pro",
        timeout_seconds=timeout_seconds,
    )


CANDIDATES = [
    RetrievalCandidate(
        example_id="ex-1",
        question="How much to fix a leaky faucet?",
        answer="Usually $150-$300.",
        similarity=0.8,
    ),
    RetrievalCandidate(
        example_id="ex-2",
        question="Do you repair kitchen sinks?",
        answer="Yes, same week.",
        similarity=0.78,
    ),
]


class TestBuildMessages:
    def test_context_examples_are_separate_system_messages(self):
        messages = build_messages("My faucet drips", "plumbing", CANDIDATES, "Be brief.")

        assert [m["role"] for m in messages] == ["system", "system", "system", "user"]
        assert "plumbing home services" in messages[0]["content"]
        assert messages[0]["content"].endswith("Be brief.")
        assert messages[1]["content"] == (
            "Example 1:\nQ: How much to fix a leaky faucet?\nA: Usually $150-$300."
        )
        assert messages[2]["content"].startswith("Example 2:")

    def test_user_message_is_only_the_query(self):
        messages = build_messages("My faucet drips", "plumbing", CANDIDATES)

        assert messages[-1] == {"role": "user", "content": "My faucet drips"}

    def test_no_context(self):
        messages = build_messages("Hello", "general")

        assert len(messages) == 2


class TestParseGeneratedExamples:
    def test_extracts_array_from_surrounding_text(self):
        content = (
            "Here are the examples:\n"
            '[{"question": "Do you fix leaks?", "answer": "Yes."},'
            ' {"question": "", "answer": "skipped"}]\nThanks!'
        )

        examples = parse_generated_examples(content)

        assert len(examples) == 1
        assert examples[0].question == "Do you fix leaks?"

    def test_no_array(self):
        with pytest.raises(GenerationError):
            parse_generated_examples("I cannot help with that.")

    def test_invalid_json(self):
        with pytest.raises(GenerationError):
            parse_generated_examples('[{"question": "Q", "answer": }]')


class TestCompletionGateway:
    @pytest.mark.asyncio
    async def test_generate_uses_chat_model(self):
        chat = _client(_completion("  Faucet repairs start at $150.  "))
        gateway = _gateway(chat_client=chat)

        text = await gateway.generate("Faucet cost?", CANDIDATES, "plumbing")

        assert text == "Faucet repairs start at $150."
        kwargs = chat.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "gpt-4o-mini"
        assert kwargs["messages"][-1]["content"] == "Faucet cost?"

    @pytest.mark.asyncio
    async def test_generate_with_search_returns_sources(self):
        search = _client(_completion("We can help.", citations=["https://a.example", ""]))
        gateway = _gateway(search_client=search)

        answer = await gateway.generate_with_search("AC broken", "hvac")

        assert answer.text == "We can help."
        assert answer.sources == ["https://a.example"]
        assert search.chat.completions.create.call_args.kwargs["model"] == "sonar-pro"

    @pytest.mark.asyncio
    async def test_generate_with_search_without_citations(self):
        gateway = _gateway(search_client=_client(_completion("We can help.")))

        answer = await gateway.generate_with_search("AC broken", "hvac")

        assert answer.sources == []

    @pytest.mark.asyncio
    async def test_empty_completion_is_an_error(self):
        gateway = _gateway(search_client=_client(_completion("   ")))

        with pytest.raises(GenerationError):
            await gateway.generate_with_search("AC broken", "hvac")

    @pytest.mark.asyncio
    async def test_provider_error_is_wrapped(self):
        from openai import OpenAIError

        gateway = _gateway(search_client=_client(side_effect=OpenAIError("bad gateway")))

        with pytest.raises(GenerationError) as exc_info:
            await gateway.generate_with_search("AC broken", "hvac")

        assert exc_info.value.details["provider"] == "perplexity"

    @pytest.mark.asyncio
    async def test_slow_provider_times_out(self):
        async def slow_create(**kwargs):
            await asyncio.sleep(1)
            return _completion("too late")

        search = MagicMock()
        search.chat.completions.create = slow_create
        gateway = _gateway(search_client=search, timeout_seconds=0.01)

        with pytest.raises(GenerationTimeout) as exc_info:
            await gateway.generate_with_search("AC broken", "hvac")

        assert exc_info.value.code == ErrorCode.GENERATION_TIMEOUT
        assert exc_info.value.status == 504

    @pytest.mark.asyncio
    async def test_generate_examples(self):
        content = (
            '[{"question": "Q1?", "answer": "A1."}, {"question": "Q2?", "answer": "A2."},'
            ' {"question": "Q3?", "answer": "A3."}]'
        )
        search = _client(_completion(content))
        gateway = _gateway(search_client=search)

        examples = await gateway.generate_examples("roofing", count=2)

        assert [e.question for e in examples] == ["Q1?", "Q2?"]
        prompt = search.chat.completions.create.call_args.kwargs["messages"][1]["content"]
        assert "Generate 2 common customer questions" in prompt
        assert "roofing" in prompt

    @pytest.mark.asyncio
    @pytest.mark.parametrize("count", [0, 21])
    async def test_generate_examples_count_bounds(self, count):
        with pytest.raises(ValidationError):
            await _gateway().generate_examples("roofing", count=count)


def test_search_adapter_points_at_perplexity(monkeypatch):
    monkeypatch.setenv("STORAGE_BACKEND", "memory")
    monkeypatch.setenv("PERPLEXITY_BASE_URL", "https://api.perplexity.ai")
    settings = load_settings()

    adapter = get_search_adapter(settings)

    assert adapter.provider == "perplexity"
    assert adapter.openai_kwargs()["base_url"] == "https://api.perplexity.ai"
    assert adapter.openai_kwargs()["max_retries"] == 0
