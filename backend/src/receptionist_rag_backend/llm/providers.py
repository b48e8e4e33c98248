"""Provider adapter definitions for the completion clients."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

from openai import AsyncOpenAI

from ..config import Settings

OPENAI_PROVIDER = "openai"
PERPLEXITY_PROVIDER = "perplexity"


@dataclass(frozen=True)
class ChatProviderAdapter:
    """Adapter for an OpenAI-compatible chat completion provider."""

    provider: str
    api_key: Optional[str]
    base_url: Optional[str]
    model: str

    def openai_kwargs(self) -> dict[str, Any]:
        """Build kwargs for OpenAI-compatible clients.

        Retries are disabled: completion calls are never retried here.
        """
        kwargs: dict[str, Any] = {"api_key": self.api_key or "", "max_retries": 0}
        if self.base_url:
            kwargs["base_url"] = self.base_url
        return kwargs

    def create_client(self) -> AsyncOpenAI:
        return AsyncOpenAI(**self.openai_kwargs())


def get_chat_adapter(settings: Settings) -> ChatProviderAdapter:
    """Adapter for the plain chat model used for context-only generation."""
    return ChatProviderAdapter(
        provider=OPENAI_PROVIDER,
        api_key=settings.openai_api_key,
        base_url=None,
        model=settings.openai_model_id,
    )


def get_search_adapter(settings: Settings) -> ChatProviderAdapter:
    """Adapter for the web-search model (Perplexity's OpenAI-compatible API)."""
    return ChatProviderAdapter(
        provider=PERPLEXITY_PROVIDER,
        api_key=settings.perplexity_api_key,
        base_url=settings.perplexity_base_url,
        model=settings.perplexity_model,
    )
