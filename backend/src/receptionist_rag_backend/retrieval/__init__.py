"""Example retrieval for incoming messages."""

from receptionist_rag_backend.models import RetrievalCandidate

from .retriever import Retriever

__all__ = [
    "Retriever",
    "RetrievalCandidate",
]
