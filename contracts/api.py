"""OpenAI-compatible API contracts for the completion gateway."""

from __future__ import annotations

import time
import uuid
from enum import Enum
from typing import Any, Literal, Union

from pydantic import BaseModel, Field, model_validator


class Role(str, Enum):
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


class FinishReason(str, Enum):
    STOP = "stop"
    LENGTH = "length"
    TOOL_CALLS = "tool_calls"
    CONTENT_FILTER = "content_filter"


class ToolCallFunction(BaseModel):
    name: str
    arguments: str = "{}"  # JSON-encoded string


class ToolCall(BaseModel):
    id: str
    type: Literal["function"] = "function"
    function: ToolCallFunction


class Message(BaseModel):
    role: Role
    content: str | None = None
    tool_calls: list[ToolCall] | None = None
    tool_call_id: str | None = None
    name: str | None = None

    @model_validator(mode="after")
    def _tool_message_has_call_id(self) -> "Message":
        if self.role == Role.TOOL and not self.tool_call_id:
            raise ValueError("tool messages must carry tool_call_id")
        return self


# ── Tool schemas ─────────────────────────────────────────────────────


class FunctionDefinition(BaseModel):
    name: str
    description: str = ""
    parameters: dict[str, Any] = Field(default_factory=dict)  # JSON Schema


class ToolSpec(BaseModel):
    """A tool as advertised to the model, in OpenAI function-calling shape."""

    type: Literal["function"] = "function"
    function: FunctionDefinition


class FunctionChoice(BaseModel):
    name: str


class NamedToolChoice(BaseModel):
    type: Literal["function"] = "function"
    function: FunctionChoice


# Advisory only; the orchestrator does not enforce it.
ToolChoice = Union[Literal["auto", "none", "required"], NamedToolChoice]


# ── Request / response ───────────────────────────────────────────────


class ChatRequest(BaseModel):
    model: str
    messages: list[Message]
    temperature: float | None = None
    max_tokens: int | None = None
    stream: bool = False
    tools: list[ToolSpec] | None = None
    tool_choice: ToolChoice | None = None

    @model_validator(mode="after")
    def _tool_results_answer_earlier_calls(self) -> "ChatRequest":
        emitted: set[str] = set()
        for msg in self.messages:
            if msg.role == Role.ASSISTANT:
                emitted.update(tc.id for tc in msg.tool_calls or [])
            elif msg.role == Role.TOOL and msg.tool_call_id not in emitted:
                raise ValueError(
                    f"tool message references unknown tool_call_id '{msg.tool_call_id}'"
                )
        return self


class Choice(BaseModel):
    index: int = 0
    message: Message
    finish_reason: FinishReason = FinishReason.STOP


class Usage(BaseModel):
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


class ChatResponse(BaseModel):
    id: str = Field(default_factory=lambda: f"chatcmpl-{uuid.uuid4().hex}")
    object: Literal["chat.completion"] = "chat.completion"
    created: int = Field(default_factory=lambda: int(time.time()))
    model: str
    choices: list[Choice]
    usage: Usage = Usage()


class ToolResult(BaseModel):
    """Textual result of executing a tool call on behalf of a caller."""

    tool_call_id: str
    name: str
    content: str
