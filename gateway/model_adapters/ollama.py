"""Ollama model adapter.

Proxies chat requests to a local Ollama instance via httpx, using Ollama's
native tool calling.
"""

from __future__ import annotations

import json
import uuid
from typing import Any

import httpx

from contracts.api import Message, Role, ToolCall, ToolCallFunction, ToolSpec


class OllamaAdapter:
    """Async adapter for the Ollama /api/chat endpoint."""

    def __init__(self, base_url: str = "http://localhost:11434", timeout: float = 300.0) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout

    async def chat(
        self,
        messages: list[Message],
        model: str,
        tools: list[ToolSpec] | None = None,
        options: dict[str, Any] | None = None,
    ) -> Message:
        """Send messages to Ollama and return the assistant response."""
        payload: dict[str, Any] = {
            "model": model,
            "messages": [self._to_ollama_message(m) for m in messages],
            "stream": False,
        }
        if tools:
            payload["tools"] = [t.model_dump() for t in tools]
        if options:
            payload["options"] = options

        async with httpx.AsyncClient(timeout=self._timeout) as client:
            resp = await client.post(f"{self._base_url}/api/chat", json=payload)
            resp.raise_for_status()

        return self._from_ollama_response(resp.json())

    # ── format helpers ───────────────────────────────────────────────

    @staticmethod
    def _to_ollama_message(msg: Message) -> dict[str, Any]:
        m: dict[str, Any] = {"role": msg.role.value}
        if msg.content is not None:
            m["content"] = msg.content
        if msg.tool_calls:
            m["tool_calls"] = [
                {
                    "function": {
                        "name": tc.function.name,
                        "arguments": _loads_object(tc.function.arguments),
                    }
                }
                for tc in msg.tool_calls
            ]
        if msg.tool_call_id is not None:
            m["tool_call_id"] = msg.tool_call_id
        return m

    @staticmethod
    def _from_ollama_response(data: dict[str, Any]) -> Message:
        """Convert an Ollama chat response into a gateway Message."""
        msg_data = data.get("message", {})
        content = msg_data.get("content") or None

        tool_calls: list[ToolCall] | None = None
        raw_calls = msg_data.get("tool_calls")
        if raw_calls:
            tool_calls = []
            for tc in raw_calls:
                fn = tc.get("function", {})
                args = fn.get("arguments", {})
                tool_calls.append(
                    ToolCall(
                        id=tc.get("id") or f"call_{uuid.uuid4().hex}",
                        function=ToolCallFunction(
                            name=fn.get("name", ""),
                            arguments=json.dumps(args) if isinstance(args, dict) else str(args),
                        ),
                    )
                )

        return Message(role=Role.ASSISTANT, content=content, tool_calls=tool_calls)


def _loads_object(raw: str) -> Any:
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        return {}
