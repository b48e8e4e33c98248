"""Storage backends for examples and the interaction log."""

from .base import ExampleStore, InteractionStore, prepare_example
from .memory import InMemoryExampleStore, InMemoryInteractionStore
from .postgres import PostgresClient

__all__ = [
    "ExampleStore",
    "InteractionStore",
    "prepare_example",
    "InMemoryExampleStore",
    "InMemoryInteractionStore",
    "PostgresClient",
]
