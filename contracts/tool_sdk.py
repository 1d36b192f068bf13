"""Tool SDK contracts.

Tools are contributed by provider groups (the MCP-server equivalent).  The
registry owns the tool entries; each group pairs with a ToolExecutor that
actually runs its tools.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from contracts.api import FunctionDefinition, ToolSpec


# ── Data models ──────────────────────────────────────────────────────


class ToolProvider(BaseModel):
    """A single named tool, owned by a provider group."""

    name: str
    description: str
    parameters: dict[str, Any] = Field(default_factory=dict)  # JSON Schema
    server_name: str

    def to_spec(self) -> ToolSpec:
        return ToolSpec(
            function=FunctionDefinition(
                name=self.name,
                description=self.description,
                parameters=self.parameters,
            )
        )


class GroupStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    ERROR = "error"


class ProviderGroup(BaseModel):
    """A capability source exposing one or more tools."""

    name: str
    description: str = ""
    version: str = "0.0.1"
    status: GroupStatus = GroupStatus.ACTIVE
    status_reason: str | None = None  # set when status is ERROR
    tools: list[ToolProvider] = []


# ── Execution entry point ────────────────────────────────────────────


class ToolExecutor(ABC):
    """Runs the tools of one provider group."""

    @abstractmethod
    async def execute(self, tool_name: str, arguments: dict[str, Any]) -> str:
        """Execute *tool_name* and return its textual result.

        Raise any exception to signal a provider-side failure.
        """
        ...
