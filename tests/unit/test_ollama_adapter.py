"""Unit tests for OllamaAdapter message conversion and chat requests."""

from __future__ import annotations

import json
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from contracts.api import FunctionDefinition, Message, Role, ToolCall, ToolCallFunction, ToolSpec
from gateway.model_adapters.ollama import OllamaAdapter


class TestFromOllamaResponse:
    def test_plain_text_reply(self) -> None:
        msg = OllamaAdapter._from_ollama_response(
            {"message": {"role": "assistant", "content": "Hello!"}}
        )
        assert msg.role == Role.ASSISTANT
        assert msg.content == "Hello!"
        assert msg.tool_calls is None

    def test_native_tool_call(self) -> None:
        data = {
            "message": {
                "role": "assistant",
                "content": "",
                "tool_calls": [
                    {"function": {"name": "search_web", "arguments": {"query": "rust async"}}}
                ],
            }
        }
        msg = OllamaAdapter._from_ollama_response(data)

        assert msg.content is None
        assert msg.tool_calls is not None
        (call,) = msg.tool_calls
        assert call.id.startswith("call_")
        assert call.function.name == "search_web"
        assert json.loads(call.function.arguments) == {"query": "rust async"}

    def test_keeps_upstream_call_id(self) -> None:
        data = {
            "message": {
                "tool_calls": [{"id": "abc", "function": {"name": "read_file", "arguments": {}}}],
            }
        }
        msg = OllamaAdapter._from_ollama_response(data)
        assert msg.tool_calls is not None
        assert msg.tool_calls[0].id == "abc"

    def test_missing_message(self) -> None:
        msg = OllamaAdapter._from_ollama_response({})
        assert msg.content is None
        assert msg.tool_calls is None


class TestToOllamaMessage:
    def test_tool_call_arguments_become_objects(self) -> None:
        msg = Message(
            role=Role.ASSISTANT,
            tool_calls=[
                ToolCall(
                    id="call_1",
                    function=ToolCallFunction(name="read_file", arguments='{"path": "/tmp/a"}'),
                )
            ],
        )
        out = OllamaAdapter._to_ollama_message(msg)
        assert out["role"] == "assistant"
        assert "content" not in out
        assert out["tool_calls"][0]["function"]["arguments"] == {"path": "/tmp/a"}

    def test_unparseable_arguments_become_empty(self) -> None:
        msg = Message(
            role=Role.ASSISTANT,
            tool_calls=[
                ToolCall(id="call_1", function=ToolCallFunction(name="read_file", arguments="{oops"))
            ],
        )
        out = OllamaAdapter._to_ollama_message(msg)
        assert out["tool_calls"][0]["function"]["arguments"] == {}

    def test_tool_message_carries_call_id(self) -> None:
        msg = Message(role=Role.TOOL, content="result", tool_call_id="call_1")
        out = OllamaAdapter._to_ollama_message(msg)
        assert out == {"role": "tool", "content": "result", "tool_call_id": "call_1"}


class TestChat:
    @pytest.mark.asyncio
    async def test_posts_native_tools_and_options(self) -> None:
        mock_response = MagicMock()
        mock_response.raise_for_status = MagicMock()
        mock_response.json.return_value = {"message": {"role": "assistant", "content": "hi"}}

        mock_client = AsyncMock()
        mock_client.post.return_value = mock_response
        mock_client.__aenter__ = AsyncMock(return_value=mock_client)
        mock_client.__aexit__ = AsyncMock(return_value=False)

        tool = ToolSpec(function=FunctionDefinition(name="search_web", description="Search"))
        adapter = OllamaAdapter(base_url="http://ollama:11434")
        with patch("gateway.model_adapters.ollama.httpx.AsyncClient", return_value=mock_client):
            reply = await adapter.chat(
                [Message(role=Role.USER, content="hello")],
                model="llama3.1:8b",
                tools=[tool],
                options={"temperature": 0.2},
            )

        assert reply.content == "hi"
        url = mock_client.post.call_args.args[0]
        payload = mock_client.post.call_args.kwargs["json"]
        assert url == "http://ollama:11434/api/chat"
        assert payload["model"] == "llama3.1:8b"
        assert payload["stream"] is False
        assert payload["tools"][0]["function"]["name"] == "search_web"
        assert payload["options"] == {"temperature": 0.2}
