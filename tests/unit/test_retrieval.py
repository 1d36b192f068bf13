"""Unit tests for the retrieval context service and in-memory backends."""

from __future__ import annotations

import pytest

from contracts.api import Message, Role
from contracts.manifest import RetrievalConfig
from contracts.retrieval import Document, RetrievalBackend, RetrievalContext
from gateway.errors import RetrievalUnavailable, StorageFailed
from gateway.retrieval.service import (
    CONTEXT_MESSAGE_NAME,
    RetrievalContextService,
    has_context_message,
)
from gateway.retrieval.static import NullRetrievalBackend, StaticRetrievalBackend, keyword_score


# ── Helpers ─────────────────────────────────────────────────────────


def _doc(doc_id: str, title: str = "", content: str = "") -> Document:
    return Document(id=doc_id, title=title or doc_id, content=content or f"content of {doc_id}")


class FixedBackend(RetrievalBackend):
    """Returns a preset context regardless of the query."""

    def __init__(self, pairs: list[tuple[Document, float]]) -> None:
        self.pairs = pairs
        self.calls: list[dict] = []

    def name(self) -> str:
        return "fixed"

    async def retrieve(self, query, actor_id=None, limit=5, threshold=0.0) -> RetrievalContext:
        self.calls.append({"query": query, "actor_id": actor_id, "limit": limit, "threshold": threshold})
        return RetrievalContext(
            documents=[d for d, _ in self.pairs],
            query=query,
            relevance_scores=[s for _, s in self.pairs],
        )

    async def search_documents(self, query, actor_id=None, limit=5) -> list[Document]:
        return [d for d, _ in self.pairs][:limit]

    async def store_document(self, document, actor_id=None) -> str:
        return document.id


class BrokenBackend(RetrievalBackend):
    def name(self) -> str:
        return "broken"

    async def retrieve(self, query, actor_id=None, limit=5, threshold=0.0) -> RetrievalContext:
        raise ConnectionError("vector store offline")

    async def search_documents(self, query, actor_id=None, limit=5) -> list[Document]:
        raise ConnectionError("vector store offline")

    async def store_document(self, document, actor_id=None) -> str:
        raise ConnectionError("vector store offline")


def _context(*titles_and_scores: tuple[str, float], query: str = "q") -> RetrievalContext:
    return RetrievalContext(
        documents=[_doc(t.lower(), title=t, content=f"{t} body") for t, _ in titles_and_scores],
        query=query,
        relevance_scores=[s for _, s in titles_and_scores],
    )


# ── retrieve_context ────────────────────────────────────────────────


class TestRetrieveContext:
    @pytest.mark.asyncio
    async def test_passes_config_to_backend(self) -> None:
        backend = FixedBackend([])
        service = RetrievalContextService(backend, RetrievalConfig(max_documents=3, relevance_threshold=0.4))
        await service.retrieve_context("rust", actor_id="alice")
        assert backend.calls == [{"query": "rust", "actor_id": "alice", "limit": 3, "threshold": 0.4}]

    @pytest.mark.asyncio
    async def test_sorted_and_capped(self) -> None:
        backend = FixedBackend([(_doc("low"), 0.71), (_doc("high"), 0.95), (_doc("mid"), 0.8)])
        service = RetrievalContextService(backend, RetrievalConfig(max_documents=2))
        ctx = await service.retrieve_context("q")
        assert [d.id for d in ctx.documents] == ["high", "mid"]
        assert ctx.relevance_scores == [0.95, 0.8]

    @pytest.mark.asyncio
    async def test_token_budget_drops_lowest_relevance(self) -> None:
        body = "x" * 400
        backend = FixedBackend(
            [
                (_doc("c", content=body), 0.7),
                (_doc("a", content=body), 0.9),
                (_doc("b", content=body), 0.8),
            ]
        )
        service = RetrievalContextService(backend, RetrievalConfig(max_context_tokens=250))
        ctx = await service.retrieve_context("q")
        assert [d.id for d in ctx.documents] == ["a", "b"]
        assert 0 < ctx.total_tokens <= 250

    @pytest.mark.asyncio
    async def test_zero_budget_yields_nothing(self) -> None:
        backend = FixedBackend([(_doc("a"), 0.9)])
        service = RetrievalContextService(backend, RetrievalConfig(max_context_tokens=0))
        ctx = await service.retrieve_context("q")
        assert ctx.documents == []
        assert ctx.total_tokens == 0

    @pytest.mark.asyncio
    async def test_backend_failure_is_retrieval_unavailable(self) -> None:
        service = RetrievalContextService(BrokenBackend())
        with pytest.raises(RetrievalUnavailable, match="broken"):
            await service.retrieve_context("q")


# ── format_for_injection ────────────────────────────────────────────


class TestFormatForInjection:
    def test_exact_layout(self) -> None:
        text = RetrievalContextService.format_for_injection(
            _context(("Async Rust", 0.9), ("Tokio", 0.75), query="rust async")
        )
        assert text == (
            "# Relevant Context Documents\n\n"
            "Query: rust async\n\n"
            "## Document 1: Async Rust (Relevance: 0.90)\n"
            "Async Rust body\n\n"
            "## Document 2: Tokio (Relevance: 0.75)\n"
            "Tokio body\n\n"
            "Use the above context to provide more accurate and relevant responses.\n"
        )


# ── enhance_messages ────────────────────────────────────────────────


class TestEnhanceMessages:
    def _service(self) -> RetrievalContextService:
        return RetrievalContextService(NullRetrievalBackend())

    def test_inserted_before_first_user_message(self) -> None:
        messages = [
            Message(role=Role.SYSTEM, content="be brief"),
            Message(role=Role.USER, content="first"),
            Message(role=Role.ASSISTANT, content="reply"),
            Message(role=Role.USER, content="second"),
        ]
        enhanced = self._service().enhance_messages(messages, _context(("Doc", 0.9)))

        assert len(enhanced) == 5
        assert enhanced[0].content == "be brief"
        assert enhanced[1].role == Role.SYSTEM
        assert enhanced[1].name == CONTEXT_MESSAGE_NAME
        assert enhanced[1].content.startswith("# Relevant Context Documents")
        assert enhanced[2].content == "first"
        assert len(messages) == 4
        assert has_context_message(enhanced)
        assert not has_context_message(messages)

    def test_empty_context_returns_input_unchanged(self) -> None:
        messages = [Message(role=Role.USER, content="hi")]
        assert self._service().enhance_messages(messages, RetrievalContext(query="hi")) is messages

    def test_appended_without_user_message(self) -> None:
        messages = [Message(role=Role.SYSTEM, content="setup")]
        enhanced = self._service().enhance_messages(messages, _context(("Doc", 0.9)))
        assert [m.name for m in enhanced] == [None, CONTEXT_MESSAGE_NAME]


# ── search / store ──────────────────────────────────────────────────


class TestSearchAndStore:
    @pytest.mark.asyncio
    async def test_store_then_search(self) -> None:
        service = RetrievalContextService(StaticRetrievalBackend())
        doc = _doc("d1", title="Tokio runtime", content="Tokio schedules async tasks")
        assert await service.store_document(doc, actor_id="alice") == "d1"
        found = await service.search_documents("tokio tasks", actor_id="alice")
        assert [d.id for d in found] == ["d1"]

    @pytest.mark.asyncio
    async def test_search_failure(self) -> None:
        with pytest.raises(RetrievalUnavailable):
            await RetrievalContextService(BrokenBackend()).search_documents("q")

    @pytest.mark.asyncio
    async def test_store_failure(self) -> None:
        with pytest.raises(StorageFailed, match="d1"):
            await RetrievalContextService(BrokenBackend()).store_document(_doc("d1"))

    @pytest.mark.asyncio
    async def test_null_backend_rejects_store(self) -> None:
        with pytest.raises(StorageFailed):
            await RetrievalContextService(NullRetrievalBackend()).store_document(_doc("d1"))


# ── Static backend ──────────────────────────────────────────────────


class TestStaticBackend:
    def test_keyword_score(self) -> None:
        doc = _doc("d", title="Rust async", content="Futures and executors")
        assert keyword_score("rust async patterns", doc) == pytest.approx(2 / 3)
        assert keyword_score("a b", doc) == 0.0

    @pytest.mark.asyncio
    async def test_threshold_filters(self) -> None:
        backend = StaticRetrievalBackend(
            [
                _doc("full", title="Rust async", content="patterns for futures"),
                _doc("partial", title="Rust", content="ownership"),
                _doc("none", title="Gardening", content="tomatoes"),
            ]
        )
        ctx = await backend.retrieve("rust async patterns", threshold=0.7)
        assert [d.id for d in ctx.documents] == ["full"]
        assert ctx.relevance_scores == [1.0]

    @pytest.mark.asyncio
    async def test_actor_documents_are_private(self) -> None:
        backend = StaticRetrievalBackend([_doc("shared", title="Rust notes")])
        await backend.store_document(_doc("mine", title="Rust secrets"), actor_id="alice")

        alice = await backend.search_documents("rust", actor_id="alice")
        bob = await backend.search_documents("rust", actor_id="bob")
        assert {d.id for d in alice} == {"shared", "mine"}
        assert [d.id for d in bob] == ["shared"]

    @pytest.mark.asyncio
    async def test_store_replaces_same_id(self) -> None:
        backend = StaticRetrievalBackend([_doc("d1", title="old rust")])
        await backend.store_document(_doc("d1", title="new rust"))
        (doc,) = await backend.search_documents("rust")
        assert doc.title == "new rust"

    @pytest.mark.asyncio
    async def test_null_backend_is_empty(self) -> None:
        backend = NullRetrievalBackend()
        ctx = await backend.retrieve("anything")
        assert ctx.documents == [] and ctx.query == "anything"
        assert await backend.search_documents("anything") == []
