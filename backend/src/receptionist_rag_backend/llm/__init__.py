"""LLM provider adapters and the completion gateway."""

from .completion import (
    CompletionGateway,
    GeneratedExample,
    SearchAnswer,
    build_messages,
    parse_generated_examples,
)
from .providers import (
    ChatProviderAdapter,
    get_chat_adapter,
    get_search_adapter,
)

__all__ = [
    "CompletionGateway",
    "GeneratedExample",
    "SearchAnswer",
    "build_messages",
    "parse_generated_examples",
    "ChatProviderAdapter",
    "get_chat_adapter",
    "get_search_adapter",
]
