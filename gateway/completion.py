"""Completion backends — produce the assistant text for direct answers."""

from __future__ import annotations

from abc import ABC, abstractmethod

from contracts.api import ChatRequest, Message, ToolSpec

from gateway.model_adapters.ollama import OllamaAdapter
from gateway.retrieval.service import has_context_message


class CompletionBackend(ABC):
    @abstractmethod
    async def complete(
        self,
        request: ChatRequest,
        messages: list[Message],
        tools: list[ToolSpec],
    ) -> str:
        """Return the assistant's reply text for *messages*."""
        ...


class TemplateCompletionBackend(CompletionBackend):
    """Describes the request instead of running a model."""

    async def complete(
        self,
        request: ChatRequest,
        messages: list[Message],
        tools: list[ToolSpec],
    ) -> str:
        return render_template_reply(request.model, messages, tools)


def render_template_reply(model: str, messages: list[Message], tools: list[ToolSpec]) -> str:
    context_info = (
        " (Enhanced with retrieved context from your documents)"
        if has_context_message(messages)
        else ""
    )
    tool_info = f" {len(tools)} tools are available." if tools else ""
    return (
        f"This is a response from the completion gateway. "
        f"You sent {len(messages)} messages to model '{model}'.{context_info}{tool_info}"
    )


class OllamaCompletionBackend(CompletionBackend):
    """Forwards the conversation to a local Ollama model."""

    def __init__(self, adapter: OllamaAdapter, default_model: str = "") -> None:
        self._adapter = adapter
        self._default_model = default_model

    async def complete(
        self,
        request: ChatRequest,
        messages: list[Message],
        tools: list[ToolSpec],
    ) -> str:
        options = {}
        if request.temperature is not None:
            options["temperature"] = request.temperature
        if request.max_tokens is not None:
            options["num_predict"] = request.max_tokens

        reply = await self._adapter.chat(
            messages,
            self._default_model or request.model,
            options=options or None,
        )
        if not reply.content:
            raise RuntimeError("model returned an empty reply")
        return reply.content
