"""Built-in web_search group.

The gateway ships no search engine; the echo executor acknowledges the call
so the tool-call round trip can be exercised end to end.  Register a group
named ``web_search`` with a real executor to replace it.
"""

from __future__ import annotations

import json
from typing import Any

from contracts.tool_sdk import ProviderGroup, ToolExecutor, ToolProvider

GROUP_NAME = "web_search"


def web_search_group() -> ProviderGroup:
    return ProviderGroup(
        name=GROUP_NAME,
        description="Web search capabilities",
        version="1.0.0",
        tools=[
            ToolProvider(
                name="search_web",
                description="Search the web for information",
                server_name=GROUP_NAME,
                parameters={
                    "type": "object",
                    "properties": {
                        "query": {"type": "string", "description": "Search query"},
                        "max_results": {
                            "type": "integer",
                            "description": "Maximum number of results to return",
                            "default": 5,
                        },
                    },
                    "required": ["query"],
                },
            ),
        ],
    )


class EchoSearchExecutor(ToolExecutor):
    """Returns a descriptive placeholder instead of live search results."""

    async def execute(self, tool_name: str, arguments: dict[str, Any]) -> str:
        return (
            f"Tool '{tool_name}' executed with arguments: {json.dumps(arguments, sort_keys=True)}. "
            f"(No search backend attached to group '{GROUP_NAME}')"
        )
