"""Completion orchestrator — retrieval, tool resolution, decision, response.

Each call to ``run`` is independent; the orchestrator holds only shared,
read-mostly collaborators.
"""

from __future__ import annotations

import json
import uuid

from loguru import logger

from contracts.api import (
    ChatRequest,
    ChatResponse,
    Choice,
    FinishReason,
    Message,
    Role,
    ToolCall,
    ToolCallFunction,
    ToolResult,
    ToolSpec,
    Usage,
)
from contracts.audit import AuditEntry, AuditEvent, AuditLogger
from contracts.retrieval import estimate_tokens

from gateway.audit.logger import NullAuditLogger
from gateway.completion import CompletionBackend, TemplateCompletionBackend, render_template_reply
from gateway.decision import DecisionPolicy, KeywordHeuristicPolicy, ToolDecision
from gateway.errors import GatewayError, InvalidRequest, RetrievalUnavailable
from gateway.retrieval.service import RetrievalContextService
from gateway.tools.registry import ToolRegistry

TOOL_CALL_COMPLETION_TOKENS = 25
TEXT_COMPLETION_TOKENS = 75
TOKENS_PER_TOOL_CALL = 10


def extract_query(messages: list[Message]) -> str:
    """Content of the last user message, or an empty string."""
    for msg in reversed(messages):
        if msg.role == Role.USER:
            return msg.content or ""
    return ""


def calculate_prompt_tokens(messages: list[Message]) -> int:
    return sum(
        estimate_tokens(msg.content) + TOKENS_PER_TOOL_CALL * len(msg.tool_calls or [])
        for msg in messages
    )


def _usage(messages: list[Message], completion_tokens: int) -> Usage:
    prompt_tokens = calculate_prompt_tokens(messages)
    return Usage(
        prompt_tokens=prompt_tokens,
        completion_tokens=completion_tokens,
        total_tokens=prompt_tokens + completion_tokens,
    )


class CompletionOrchestrator:
    """Turns a chat-completion request into a response, one request at a time."""

    def __init__(
        self,
        registry: ToolRegistry,
        retrieval: RetrievalContextService,
        policy: DecisionPolicy | None = None,
        backend: CompletionBackend | None = None,
        audit: AuditLogger | None = None,
        app_name: str = "",
    ) -> None:
        self._registry = registry
        self._retrieval = retrieval
        self._policy = policy or KeywordHeuristicPolicy()
        self._backend = backend or TemplateCompletionBackend()
        self._audit = audit or NullAuditLogger()
        self._app_name = app_name

    async def run(self, request: ChatRequest, actor_id: str | None = None) -> ChatResponse:
        """Execute one chat completion.

        Raises ``InvalidRequest`` for requests the gateway does not support;
        every well-formed request gets a response.
        """
        if request.stream:
            raise InvalidRequest("stream=true is not supported by this gateway")

        response_id = f"chatcmpl-{uuid.uuid4().hex}"
        model = request.model
        logger.info(
            f"Chat completion request: model={model}, messages={len(request.messages)}, "
            f"tools={len(request.tools or [])}"
        )
        self._log(response_id, AuditEvent.REQUEST_START, model, {"messages": len(request.messages)})

        query = extract_query(request.messages)
        messages = await self._enhance(response_id, model, query, request.messages, actor_id)

        tools = self._resolve_tools(request)
        decision = await self._decide(query, messages, tools, model)

        if decision is not None:
            response = self._tool_call_response(response_id, model, messages, decision)
            self._log(
                response_id,
                AuditEvent.TOOL_DECISION,
                model,
                {"tool": decision.tool_name, "arguments": decision.arguments},
            )
        else:
            response = await self._text_response(response_id, request, messages, tools)

        self._log(
            response_id,
            AuditEvent.REQUEST_END,
            model,
            {
                "finish_reason": response.choices[0].finish_reason.value,
                "usage": response.usage.model_dump(),
            },
        )
        return response

    async def execute_tool(self, tool_call: ToolCall) -> ToolResult:
        """Run a tool call the gateway emitted earlier and wrap its result.

        ``ToolNotFound`` and ``ToolExecutionFailed`` propagate to the caller.
        """
        request_id = f"toolexec-{uuid.uuid4().hex}"
        detail = {"tool": tool_call.function.name, "call_id": tool_call.id}
        try:
            content = await self._registry.execute_tool(tool_call)
        except GatewayError as exc:
            self._log(request_id, AuditEvent.TOOL_RESULT, "", {**detail, "error": exc.message})
            raise
        self._log(request_id, AuditEvent.TOOL_RESULT, "", {**detail, "bytes": len(content)})
        return ToolResult(tool_call_id=tool_call.id, name=tool_call.function.name, content=content)

    # ── pipeline stages ─────────────────────────────────────────────

    async def _enhance(
        self,
        response_id: str,
        model: str,
        query: str,
        messages: list[Message],
        actor_id: str | None,
    ) -> list[Message]:
        if not query:
            self._log(response_id, AuditEvent.RETRIEVAL_SKIPPED, model, {"reason": "no user query"})
            return list(messages)

        try:
            context = await self._retrieval.retrieve_context(query, actor_id)
        except RetrievalUnavailable as exc:
            logger.warning(f"Retrieval unavailable, continuing without context: {exc}")
            self._log(response_id, AuditEvent.RETRIEVAL_SKIPPED, model, {"reason": str(exc)})
            return list(messages)

        self._log(
            response_id,
            AuditEvent.RETRIEVAL_CONTEXT,
            model,
            {
                "documents": [d.id for d in context.documents],
                "total_tokens": context.total_tokens,
            },
        )
        return self._retrieval.enhance_messages(list(messages), context)

    def _resolve_tools(self, request: ChatRequest) -> list[ToolSpec]:
        # Caller-supplied tools replace the registry's entirely.
        if request.tools is not None:
            return list(request.tools)
        return self._registry.list_tools()

    async def _decide(
        self,
        query: str,
        messages: list[Message],
        tools: list[ToolSpec],
        model: str,
    ) -> ToolDecision | None:
        if not tools:
            return None
        # A tool result is in the conversation: answer it, never call again.
        if any(msg.role == Role.TOOL for msg in messages):
            return None
        try:
            return await self._policy.decide(query, messages, tools, model)
        except Exception as exc:
            logger.error(f"Decision policy failed, answering directly: {exc}")
            return None

    # ── response builders ───────────────────────────────────────────

    def _tool_call_response(
        self,
        response_id: str,
        model: str,
        messages: list[Message],
        decision: ToolDecision,
    ) -> ChatResponse:
        tool_call = ToolCall(
            id=f"call_{uuid.uuid4().hex}",
            function=ToolCallFunction(
                name=decision.tool_name,
                arguments=json.dumps(decision.arguments),
            ),
        )
        return ChatResponse(
            id=response_id,
            model=model,
            choices=[
                Choice(
                    index=0,
                    message=Message(role=Role.ASSISTANT, content=None, tool_calls=[tool_call]),
                    finish_reason=FinishReason.TOOL_CALLS,
                )
            ],
            usage=_usage(messages, TOOL_CALL_COMPLETION_TOKENS),
        )

    async def _text_response(
        self,
        response_id: str,
        request: ChatRequest,
        messages: list[Message],
        tools: list[ToolSpec],
    ) -> ChatResponse:
        try:
            content = await self._backend.complete(request, messages, tools)
        except Exception as exc:
            logger.error(f"Completion backend failed, using template reply: {exc}")
            content = render_template_reply(request.model, messages, tools)

        return ChatResponse(
            id=response_id,
            model=request.model,
            choices=[
                Choice(
                    index=0,
                    message=Message(role=Role.ASSISTANT, content=content),
                    finish_reason=FinishReason.STOP,
                )
            ],
            usage=_usage(messages, TEXT_COMPLETION_TOKENS),
        )

    # ── audit ───────────────────────────────────────────────────────

    def _log(self, request_id: str, event: AuditEvent, model: str, detail: dict) -> None:
        try:
            self._audit.log(
                AuditEntry(
                    request_id=request_id,
                    event=event,
                    app=self._app_name,
                    model=model,
                    detail=detail,
                )
            )
        except OSError as exc:
            logger.error(f"Audit log write failed: {exc}")
