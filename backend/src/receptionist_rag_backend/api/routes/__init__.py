"""API route modules."""

from .chat import router as chat_router
from .examples import router as examples_router

__all__ = [
    "chat_router",
    "examples_router",
]
