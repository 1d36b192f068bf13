"""In-memory retrieval backends.

``StaticRetrievalBackend`` scores documents by keyword overlap with the query;
``NullRetrievalBackend`` never returns anything.
"""

from __future__ import annotations

import re
import threading

from contracts.retrieval import Document, RetrievalBackend, RetrievalContext, estimate_tokens

_WORD = re.compile(r"[a-z0-9]+")


def _terms(text: str) -> set[str]:
    return {w for w in _WORD.findall(text.lower()) if len(w) > 2}


def keyword_score(query: str, document: Document) -> float:
    """Fraction of query terms that occur in the document's title or content."""
    wanted = _terms(query)
    if not wanted:
        return 0.0
    found = _terms(f"{document.title} {document.content}")
    return len(wanted & found) / len(wanted)


class StaticRetrievalBackend(RetrievalBackend):
    """Keeps documents in memory, optionally partitioned by actor."""

    def __init__(self, documents: list[Document] | None = None) -> None:
        self._lock = threading.Lock()
        self._documents: list[tuple[str | None, Document]] = [
            (None, doc) for doc in documents or []
        ]

    def name(self) -> str:
        return "static"

    def _visible(self, actor_id: str | None) -> list[Document]:
        with self._lock:
            entries = list(self._documents)
        # Shared documents (no owner) are visible to every actor.
        return [doc for owner, doc in entries if owner is None or owner == actor_id]

    def _rank(self, query: str, actor_id: str | None) -> list[tuple[Document, float]]:
        scored = [(doc, keyword_score(query, doc)) for doc in self._visible(actor_id)]
        scored.sort(key=lambda pair: pair[1], reverse=True)
        return scored

    async def retrieve(
        self,
        query: str,
        actor_id: str | None = None,
        limit: int = 5,
        threshold: float = 0.0,
    ) -> RetrievalContext:
        ranked = [(doc, s) for doc, s in self._rank(query, actor_id) if s >= threshold and s > 0]
        ranked = ranked[:limit]
        return RetrievalContext(
            documents=[doc for doc, _ in ranked],
            query=query,
            relevance_scores=[s for _, s in ranked],
            total_tokens=sum(estimate_tokens(doc.content) for doc, _ in ranked),
        )

    async def search_documents(
        self, query: str, actor_id: str | None = None, limit: int = 5
    ) -> list[Document]:
        return [doc for doc, s in self._rank(query, actor_id) if s > 0][:limit]

    async def store_document(self, document: Document, actor_id: str | None = None) -> str:
        with self._lock:
            self._documents = [
                (owner, doc) for owner, doc in self._documents if doc.id != document.id
            ]
            self._documents.append((actor_id, document))
        return document.id


class NullRetrievalBackend(RetrievalBackend):
    """Retrieval disabled: every query yields an empty context."""

    def name(self) -> str:
        return "none"

    async def retrieve(
        self,
        query: str,
        actor_id: str | None = None,
        limit: int = 5,
        threshold: float = 0.0,
    ) -> RetrievalContext:
        return RetrievalContext(query=query)

    async def search_documents(
        self, query: str, actor_id: str | None = None, limit: int = 5
    ) -> list[Document]:
        return []

    async def store_document(self, document: Document, actor_id: str | None = None) -> str:
        raise RuntimeError("retrieval is disabled; documents cannot be stored")
