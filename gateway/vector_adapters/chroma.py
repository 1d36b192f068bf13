"""ChromaDB vector adapter.

Wraps chromadb.PersistentClient for the vector retrieval backend.
"""

from __future__ import annotations

import asyncio
from typing import Any

import chromadb

from contracts.vector_db import SearchResult, VectorDBAdapter, VectorRecord


def _distance_to_score(distance: float) -> float:
    return 1.0 / (1.0 + distance)


class ChromaVectorAdapter(VectorDBAdapter):
    """Vector adapter backed by ChromaDB with on-disk persistence."""

    def __init__(self, persist_path: str) -> None:
        self._client = chromadb.PersistentClient(path=persist_path)

    def _collection(self, name: str) -> chromadb.Collection:
        return self._client.get_or_create_collection(name=name)

    async def search(
        self,
        collection: str,
        query_vector: list[float],
        top_k: int = 10,
        filters: dict[str, Any] | None = None,
    ) -> list[SearchResult]:
        def _search() -> list[SearchResult]:
            result = self._collection(collection).query(
                query_embeddings=[query_vector],
                n_results=top_k,
                where=filters or None,
            )
            ids = result.get("ids", [[]])[0]
            texts = (result.get("documents") or [[]])[0]
            metadatas = (result.get("metadatas") or [[]])[0]
            distances = (result.get("distances") or [[]])[0]
            return [
                SearchResult(
                    id=doc_id,
                    text=texts[i] if i < len(texts) else "",
                    metadata=(metadatas[i] if i < len(metadatas) else None) or {},
                    score=_distance_to_score(distances[i] if i < len(distances) else 0.0),
                )
                for i, doc_id in enumerate(ids)
            ]

        return await asyncio.to_thread(_search)

    async def insert(self, collection: str, records: list[VectorRecord]) -> list[str]:
        def _insert() -> list[str]:
            embeddings = [r.embedding for r in records if r.embedding is not None]
            self._collection(collection).upsert(
                ids=[r.id for r in records],
                documents=[r.text for r in records],
                embeddings=embeddings if len(embeddings) == len(records) else None,
                metadatas=[r.metadata or None for r in records],
            )
            return [r.id for r in records]

        return await asyncio.to_thread(_insert)
