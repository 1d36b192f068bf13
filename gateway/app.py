"""Gateway FastAPI application.

``create_app`` wires routes to a components container.  Without an explicit
container the process-wide one is initialised on the first request.
"""

from __future__ import annotations

import time
from typing import Any

from fastapi import Depends, FastAPI, Header, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger

from contracts.api import ChatRequest, ChatResponse, ToolCall, ToolResult

from gateway.components import GatewayComponents, get_components
from gateway.errors import GatewayError, InvalidRequest

VERSION = "0.1.0"
LIVENESS_PATH = "/ai/health"


def _error_body(kind: str, message: str) -> dict[str, Any]:
    return {"error": {"type": kind, "message": message}}


def create_app(components: GatewayComponents | None = None) -> FastAPI:
    """Build the gateway app around *components* (or the lazy singleton)."""
    started = time.time()

    def components_dep() -> GatewayComponents:
        return components if components is not None else get_components()

    app = FastAPI(title="Completion Gateway", version=VERSION)

    app.add_middleware(
        CORSMiddleware,
        allow_origin_regex=r"^https?://(localhost|127\.0\.0\.1)(:\d+)?$",
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ── Error mapping ────────────────────────────────────────────────

    @app.exception_handler(GatewayError)
    async def gateway_error_handler(request: Request, exc: GatewayError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
        return JSONResponse(status_code=exc.status_code, content=_error_body(exc.kind, exc.message))

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err.get('loc', ()))}: {err.get('msg', '')}"
            for err in exc.errors()
        )
        return JSONResponse(
            status_code=InvalidRequest.status_code,
            content=_error_body(InvalidRequest.kind, problems or "invalid request body"),
        )

    # ── Endpoints ────────────────────────────────────────────────────

    @app.get(LIVENESS_PATH)
    async def liveness() -> Response:
        """Liveness probe used by the process manager."""
        return Response(status_code=200)

    @app.post("/v1/chat/completions")
    async def chat_completions(
        request: ChatRequest,
        x_actor_id: str | None = Header(default=None),
        c: GatewayComponents = Depends(components_dep),
    ) -> ChatResponse:
        """OpenAI-compatible chat completions."""
        return await c.orchestrator.run(request, actor_id=x_actor_id)

    @app.get("/v1/gateway/health")
    async def health(c: GatewayComponents = Depends(components_dep)) -> dict[str, Any]:
        """Extended health-check endpoint."""
        return {
            "status": "ok",
            "version": VERSION,
            "uptime_seconds": round(time.time() - started, 1),
            "app": c.manifest.app.name,
            "tools": len(c.registry),
            "groups": [g.name for g in c.registry.list_groups()],
            "retrieval_backend": c.retrieval.backend.name(),
            "decision_policy": c.manifest.decision.policy.value,
        }

    @app.get("/v1/gateway/tools")
    async def list_tools(c: GatewayComponents = Depends(components_dep)) -> dict[str, Any]:
        return {"tools": [t.model_dump() for t in c.registry.list_tools()]}

    @app.get("/v1/gateway/groups")
    async def list_groups(c: GatewayComponents = Depends(components_dep)) -> dict[str, Any]:
        return {"groups": [g.model_dump(mode="json") for g in c.registry.list_groups()]}

    @app.post("/v1/gateway/tools/execute")
    async def execute_tool(
        tool_call: ToolCall,
        c: GatewayComponents = Depends(components_dep),
    ) -> ToolResult:
        """Execute a tool call and return the result for the caller's tool turn."""
        return await c.orchestrator.execute_tool(tool_call)

    return app


app = create_app()
