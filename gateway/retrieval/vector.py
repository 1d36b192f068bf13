"""Vector retrieval backend — embedding model plus a local vector store."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from contracts.embedding import EmbeddingAdapter
from contracts.retrieval import Document, RetrievalBackend, RetrievalContext, estimate_tokens
from contracts.vector_db import SearchResult, VectorDBAdapter, VectorRecord


def _to_document(result: SearchResult) -> Document:
    metadata = dict(result.metadata)
    title = metadata.pop("title", result.id)
    created_at = metadata.pop("created_at", None)
    metadata.pop("actor_id", None)
    return Document(
        id=result.id,
        title=title,
        content=result.text,
        metadata=metadata,
        created_at=datetime.fromisoformat(created_at) if created_at else datetime.now(timezone.utc),
    )


def _scalar_metadata(metadata: dict[str, Any]) -> dict[str, Any]:
    # Vector stores only keep flat scalar metadata.
    return {k: v for k, v in metadata.items() if isinstance(v, (str, int, float, bool))}


class VectorRetrievalBackend(RetrievalBackend):
    """Embeds the query and runs a similarity search over one collection."""

    def __init__(
        self,
        embedding: EmbeddingAdapter,
        store: VectorDBAdapter,
        collection: str = "documents",
    ) -> None:
        self._embedding = embedding
        self._store = store
        self._collection = collection

    def name(self) -> str:
        return "vector"

    async def _search(self, query: str, actor_id: str | None, limit: int) -> list[SearchResult]:
        # actor_id is recorded on stored documents but does not scope search.
        vectors = await self._embedding.embed([query])
        return await self._store.search(
            collection=self._collection,
            query_vector=vectors[0],
            top_k=limit,
        )

    async def retrieve(
        self,
        query: str,
        actor_id: str | None = None,
        limit: int = 5,
        threshold: float = 0.0,
    ) -> RetrievalContext:
        results = [r for r in await self._search(query, actor_id, limit) if r.score >= threshold]
        documents = [_to_document(r) for r in results]
        return RetrievalContext(
            documents=documents,
            query=query,
            relevance_scores=[r.score for r in results],
            total_tokens=sum(estimate_tokens(d.content) for d in documents),
        )

    async def search_documents(
        self, query: str, actor_id: str | None = None, limit: int = 5
    ) -> list[Document]:
        return [_to_document(r) for r in await self._search(query, actor_id, limit)]

    async def store_document(self, document: Document, actor_id: str | None = None) -> str:
        embedding = document.embedding
        if embedding is None:
            embedding = (await self._embedding.embed([document.content]))[0]

        metadata = _scalar_metadata(document.metadata)
        metadata["title"] = document.title
        metadata["created_at"] = document.created_at.isoformat()
        if actor_id:
            metadata["actor_id"] = actor_id

        ids = await self._store.insert(
            self._collection,
            [VectorRecord(id=document.id, text=document.content, metadata=metadata, embedding=embedding)],
        )
        return ids[0]
