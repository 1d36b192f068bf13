"""Unit tests for the completion backends."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from contracts.api import ChatRequest, Message, Role
from gateway.completion import (
    OllamaCompletionBackend,
    TemplateCompletionBackend,
    render_template_reply,
)
from gateway.retrieval.service import CONTEXT_MESSAGE_NAME
from gateway.tools.registry import create_default_registry


class TestTemplateReply:
    def test_plain(self) -> None:
        text = render_template_reply("m1", [Message(role=Role.USER, content="hi")], [])
        assert text == "This is a response from the completion gateway. You sent 1 messages to model 'm1'."

    def test_mentions_context_and_tools(self) -> None:
        messages = [
            Message(role=Role.SYSTEM, content="ctx", name=CONTEXT_MESSAGE_NAME),
            Message(role=Role.USER, content="hi"),
        ]
        text = render_template_reply("m1", messages, create_default_registry().list_tools())
        assert "You sent 2 messages" in text
        assert "(Enhanced with retrieved context from your documents)" in text
        assert text.endswith(" 3 tools are available.")

    @pytest.mark.asyncio
    async def test_backend_uses_request_model(self) -> None:
        request = ChatRequest(model="gpt-x", messages=[Message(role=Role.USER, content="hi")])
        text = await TemplateCompletionBackend().complete(request, request.messages, [])
        assert "model 'gpt-x'" in text


class TestOllamaCompletionBackend:
    @pytest.mark.asyncio
    async def test_forwards_sampling_options(self) -> None:
        adapter = MagicMock()
        adapter.chat = AsyncMock(return_value=Message(role=Role.ASSISTANT, content="answer"))
        request = ChatRequest(
            model="llama3.1:8b",
            messages=[Message(role=Role.USER, content="hi")],
            temperature=0.3,
            max_tokens=64,
        )

        text = await OllamaCompletionBackend(adapter).complete(request, request.messages, [])

        assert text == "answer"
        assert adapter.chat.call_args.args[1] == "llama3.1:8b"
        assert adapter.chat.call_args.kwargs["options"] == {"temperature": 0.3, "num_predict": 64}

    @pytest.mark.asyncio
    async def test_empty_reply_is_an_error(self) -> None:
        adapter = MagicMock()
        adapter.chat = AsyncMock(return_value=Message(role=Role.ASSISTANT, content=None))
        request = ChatRequest(model="m", messages=[Message(role=Role.USER, content="hi")])
        with pytest.raises(RuntimeError, match="empty reply"):
            await OllamaCompletionBackend(adapter, default_model="m").complete(request, request.messages, [])
