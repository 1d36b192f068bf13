"""Retrieval contracts.

Documents, the ranked retrieval context built from them, and the abstract
backend the Retrieval Context Service delegates to.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, Field


# ── Data models ──────────────────────────────────────────────────────


class Document(BaseModel):
    """A context document; never mutated by the gateway."""

    id: str
    title: str
    content: str
    metadata: dict[str, Any] = {}
    embedding: list[float] | None = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class RetrievalContext(BaseModel):
    """Ranked documents for a query, most relevant first."""

    documents: list[Document] = []
    query: str
    relevance_scores: list[float] = []  # parallel to documents
    total_tokens: int = 0


def estimate_tokens(text: str | None) -> int:
    """Rough token estimate: four characters per token."""
    return len(text) // 4 if text else 0


# ── Abstract backend ─────────────────────────────────────────────────


class RetrievalBackend(ABC):
    """Storage and similarity search for context documents.

    Implementations must only return documents scoring at or above
    *threshold*.
    """

    @abstractmethod
    def name(self) -> str:
        ...

    @abstractmethod
    async def retrieve(
        self,
        query: str,
        actor_id: str | None = None,
        limit: int = 5,
        threshold: float = 0.0,
    ) -> RetrievalContext:
        """Return ranked documents for *query*."""
        ...

    @abstractmethod
    async def search_documents(
        self, query: str, actor_id: str | None = None, limit: int = 5
    ) -> list[Document]:
        """Return up to *limit* documents matching *query*."""
        ...

    @abstractmethod
    async def store_document(
        self, document: Document, actor_id: str | None = None
    ) -> str:
        """Persist *document* and return its id."""
        ...
