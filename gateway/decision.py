"""Tool-call decision policies.

A policy looks at the conversation and the resolved tool set and either
names one tool to call (with its arguments) or returns ``None`` to let the
gateway answer directly.
"""

from __future__ import annotations

import json
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

from loguru import logger

from contracts.api import Message, ToolSpec

from gateway.model_adapters.ollama import OllamaAdapter

DEFAULT_FILE_PATH = "/example/file.txt"
SEARCH_MAX_RESULTS = 3

_SEARCH_TERMS = ("search",)
_FILE_TERMS = ("file", "read")
_PATH_TOKEN = re.compile(r"^(?:~?\.{0,2}/[\w.\-/]*|[\w\-/]+\.[A-Za-z0-9]{1,8})$")


@dataclass(frozen=True)
class ToolDecision:
    tool_name: str
    arguments: dict[str, Any] = field(default_factory=dict)


class DecisionPolicy(ABC):
    """Decides whether a request should be answered with a tool call."""

    @abstractmethod
    async def decide(
        self,
        query: str,
        messages: list[Message],
        tools: list[ToolSpec],
        model: str,
    ) -> ToolDecision | None:
        ...


# ── Keyword heuristic ────────────────────────────────────────────────


def _find_tool(tools: list[ToolSpec], keyword: str, preferred: str | None = None) -> ToolSpec | None:
    if preferred:
        for tool in tools:
            if tool.function.name == preferred:
                return tool
    for tool in tools:
        if keyword in tool.function.name.lower():
            return tool
    return None


def _accepts(tool: ToolSpec, prop: str) -> bool:
    properties = tool.function.parameters.get("properties")
    return properties is None or prop in properties


def extract_path(query: str) -> str | None:
    """Return the first path-like token in *query*, if any."""
    for token in query.split():
        token = token.strip("'\"`,;:()[]{}<>")
        if token.endswith("."):
            token = token.rstrip(".")
        if token and _PATH_TOKEN.match(token):
            return token
    return None


class KeywordHeuristicPolicy(DecisionPolicy):
    """Routes on words in the latest user message.

    A search word selects a search-class tool; otherwise a file word selects a
    file-class tool (``read_file`` preferred).  Only tools in the resolved
    set are eligible.
    """

    async def decide(
        self,
        query: str,
        messages: list[Message],
        tools: list[ToolSpec],
        model: str,
    ) -> ToolDecision | None:
        text = query.lower()

        if any(term in text for term in _SEARCH_TERMS):
            tool = _find_tool(tools, "search")
            if tool is not None:
                args: dict[str, Any] = {"query": query}
                if _accepts(tool, "max_results"):
                    args["max_results"] = SEARCH_MAX_RESULTS
                return ToolDecision(tool.function.name, args)

        if any(term in text for term in _FILE_TERMS):
            tool = _find_tool(tools, "file", preferred="read_file")
            if tool is not None:
                return ToolDecision(tool.function.name, {"path": extract_path(query) or DEFAULT_FILE_PATH})

        return None


# ── Model-backed ─────────────────────────────────────────────────────


class ModelBackedPolicy(DecisionPolicy):
    """Asks a tool-capable model and adopts its first tool call."""

    def __init__(self, adapter: OllamaAdapter, default_model: str = "") -> None:
        self._adapter = adapter
        self._default_model = default_model

    async def decide(
        self,
        query: str,
        messages: list[Message],
        tools: list[ToolSpec],
        model: str,
    ) -> ToolDecision | None:
        if not tools:
            return None
        try:
            reply = await self._adapter.chat(messages, self._default_model or model, tools=tools)
        except Exception as exc:
            logger.warning(f"Model-backed tool decision failed, answering directly: {exc}")
            return None

        if not reply.tool_calls:
            return None

        call = reply.tool_calls[0]
        offered = {t.function.name for t in tools}
        if call.function.name not in offered:
            logger.warning(f"Model chose unknown tool '{call.function.name}', ignoring")
            return None
        try:
            args = json.loads(call.function.arguments or "{}")
        except json.JSONDecodeError:
            args = {}
        return ToolDecision(call.function.name, args if isinstance(args, dict) else {})
