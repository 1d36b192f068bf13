"""Retrieval Context Service — ranked context documents for a query.

The backend filters by relevance threshold; this service caps the document
count, keeps the formatted context under the token budget, renders it, and
injects it into the conversation.
"""

from __future__ import annotations

from loguru import logger

from contracts.api import Message, Role
from contracts.manifest import RetrievalConfig
from contracts.retrieval import Document, RetrievalBackend, RetrievalContext, estimate_tokens

from gateway.errors import GatewayError, RetrievalUnavailable, StorageFailed

CONTEXT_MESSAGE_NAME = "rag_context"
CONTEXT_HEADER = "# Relevant Context Documents"
CONTEXT_INSTRUCTION = "Use the above context to provide more accurate and relevant responses."


def _format_section(position: int, document: Document, score: float) -> str:
    return f"## Document {position}: {document.title} (Relevance: {score:.2f})\n{document.content}\n\n"


class RetrievalContextService:
    """Wraps a RetrievalBackend with budget enforcement and prompt injection."""

    def __init__(self, backend: RetrievalBackend, config: RetrievalConfig | None = None) -> None:
        self._backend = backend
        self._config = config or RetrievalConfig()

    @property
    def backend(self) -> RetrievalBackend:
        return self._backend

    @property
    def config(self) -> RetrievalConfig:
        return self._config

    async def retrieve_context(self, query: str, actor_id: str | None = None) -> RetrievalContext:
        """Return at most ``max_documents`` documents within ``max_context_tokens``.

        Raises ``RetrievalUnavailable`` when the backend cannot be reached.
        """
        logger.info(f"Retrieving context for query: {query!r}")
        try:
            raw = await self._backend.retrieve(
                query,
                actor_id=actor_id,
                limit=self._config.max_documents,
                threshold=self._config.relevance_threshold,
            )
        except GatewayError:
            raise
        except Exception as exc:
            raise RetrievalUnavailable(
                f"Retrieval backend '{self._backend.name()}' unavailable: {exc}"
            ) from exc

        ranked = sorted(
            zip(raw.documents, raw.relevance_scores),
            key=lambda pair: pair[1],
            reverse=True,
        )[: self._config.max_documents]

        # Lowest-relevance documents are the first to go over budget.
        documents: list[Document] = []
        scores: list[float] = []
        total = 0
        for document, score in ranked:
            cost = estimate_tokens(_format_section(len(documents) + 1, document, score))
            if total + cost > self._config.max_context_tokens:
                break
            documents.append(document)
            scores.append(score)
            total += cost

        if len(documents) < len(ranked):
            logger.info(
                f"Dropped {len(ranked) - len(documents)} documents to stay under "
                f"{self._config.max_context_tokens} context tokens"
            )

        return RetrievalContext(
            documents=documents,
            query=query,
            relevance_scores=scores,
            total_tokens=total,
        )

    @staticmethod
    def format_for_injection(context: RetrievalContext) -> str:
        """Render *context* as the text of an injected system message."""
        parts = [f"{CONTEXT_HEADER}\n\n", f"Query: {context.query}\n\n"]
        for i, document in enumerate(context.documents):
            score = context.relevance_scores[i] if i < len(context.relevance_scores) else 0.0
            parts.append(_format_section(i + 1, document, score))
        parts.append(f"{CONTEXT_INSTRUCTION}\n")
        return "".join(parts)

    def enhance_messages(self, messages: list[Message], context: RetrievalContext) -> list[Message]:
        """Return *messages* with a context message before the first user turn.

        The input list is returned untouched when there are no documents.
        Without a user message the context message is appended.
        """
        if not context.documents:
            return messages

        context_message = Message(
            role=Role.SYSTEM,
            content=self.format_for_injection(context),
            name=CONTEXT_MESSAGE_NAME,
        )
        position = next(
            (i for i, msg in enumerate(messages) if msg.role == Role.USER),
            len(messages),
        )
        enhanced = list(messages)
        enhanced.insert(position, context_message)

        logger.info(f"Enhanced messages with context from {len(context.documents)} documents")
        return enhanced

    async def search_documents(
        self, query: str, actor_id: str | None = None, limit: int = 5
    ) -> list[Document]:
        logger.info(f"Searching documents for: {query!r} (actor: {actor_id})")
        try:
            return await self._backend.search_documents(query, actor_id=actor_id, limit=limit)
        except Exception as exc:
            raise RetrievalUnavailable(
                f"Retrieval backend '{self._backend.name()}' unavailable: {exc}"
            ) from exc

    async def store_document(self, document: Document, actor_id: str | None = None) -> str:
        logger.info(f"Storing document: {document.title} (actor: {actor_id})")
        try:
            return await self._backend.store_document(document, actor_id=actor_id)
        except Exception as exc:
            raise StorageFailed(f"Could not store document '{document.id}': {exc}") from exc


def has_context_message(messages: list[Message]) -> bool:
    return any(msg.name == CONTEXT_MESSAGE_NAME for msg in messages)
