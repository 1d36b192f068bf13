"""Vector database adapter contracts.

Interface for the local vector store behind the vector retrieval backend.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from pydantic import BaseModel


class VectorRecord(BaseModel):
    """A text chunk with its embedding, as stored in a collection."""

    id: str
    text: str
    metadata: dict[str, Any] = {}
    embedding: list[float] | None = None


class SearchResult(BaseModel):
    """A single result from a similarity search."""

    id: str
    text: str
    metadata: dict[str, Any] = {}
    score: float


class VectorDBAdapter(ABC):
    """Abstract base class for local vector database backends."""

    @abstractmethod
    async def search(
        self,
        collection: str,
        query_vector: list[float],
        top_k: int = 10,
        filters: dict[str, Any] | None = None,
    ) -> list[SearchResult]:
        """Search a collection by vector similarity, best match first."""
        ...

    @abstractmethod
    async def insert(self, collection: str, records: list[VectorRecord]) -> list[str]:
        """Insert records into a collection. Returns their IDs."""
        ...
