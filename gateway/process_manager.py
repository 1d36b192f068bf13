"""Gateway process manager — run the gateway app on a local port.

The host process calls ``start`` and gets back either a port that has
answered its liveness probe or an exception; there is no "maybe started"
outcome.  ``status`` and ``base_url`` may be read from any thread at any time.
"""

from __future__ import annotations

import asyncio
import errno
import socket
import sys
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Any

import httpx
import uvicorn
from loguru import logger

from contracts.manifest import RuntimeConfig

from gateway.errors import BindFailure, HealthCheckExhausted


class GatewayState(str, Enum):
    STOPPED = "stopped"
    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"
    FAILED = "failed"


@dataclass(frozen=True)
class GatewayStatus:
    state: GatewayState
    port: int | None = None
    base_url: str | None = None
    error: str | None = None


def bind_listener(host: str, port: int) -> socket.socket:
    """Bind a TCP socket on *host*:*port*, or on an OS-assigned port if taken."""
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    if sys.platform != "win32":
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
    try:
        sock.bind((host, port))
    except OSError as exc:
        sock.close()
        if exc.errno == errno.EADDRINUSE and port != 0:
            logger.info(f"Port {port} is in use, letting the OS pick one")
            return bind_listener(host, 0)
        raise BindFailure(f"Cannot bind {host}:{port}: {exc}") from exc
    sock.setblocking(False)
    return sock


class GatewayProcessManager:
    """Owns the serving task for one gateway app."""

    def __init__(self, app: Any = None, config: RuntimeConfig | None = None) -> None:
        if app is None:
            from gateway.app import create_app

            app = create_app()
        self._app = app
        self._config = config or RuntimeConfig()
        self._status_lock = threading.Lock()
        self._status = GatewayStatus(state=GatewayState.STOPPED)
        self._server: uvicorn.Server | None = None
        self._task: asyncio.Task[None] | None = None
        self._sock: socket.socket | None = None

    # ── read-only queries ───────────────────────────────────────────

    def status(self) -> GatewayStatus:
        with self._status_lock:
            return self._status

    def base_url(self) -> str | None:
        return self.status().base_url

    def _publish(self, state: GatewayState, port: int | None = None, error: str | None = None) -> None:
        with self._status_lock:
            self._status = self._make_status(state, port, error)

    def _publish_from_starting(
        self, state: GatewayState, port: int | None = None, error: str | None = None
    ) -> bool:
        """Publish *state* only if startup has not been interrupted by ``stop``."""
        with self._status_lock:
            if self._status.state != GatewayState.STARTING:
                return False
            self._status = self._make_status(state, port, error)
            return True

    def _make_status(self, state: GatewayState, port: int | None, error: str | None) -> GatewayStatus:
        # Only a health-checked gateway advertises a URL.
        base_url = (
            f"http://{self._config.host}:{port}"
            if port is not None and state == GatewayState.RUNNING
            else None
        )
        return GatewayStatus(state=state, port=port, base_url=base_url, error=error)

    # ── lifecycle ───────────────────────────────────────────────────

    async def start(self, preferred_port: int | None = None) -> int:
        """Bind, serve, and verify health.  Returns the port actually bound.

        Raises ``BindFailure`` or ``HealthCheckExhausted``; the manager is
        then in the ``failed`` state.  If ``stop`` runs before the health
        check completes, raises ``RuntimeError`` and stays ``stopped``.
        """
        port = self._config.port if preferred_port is None else preferred_port
        with self._status_lock:
            if self._status.state not in (GatewayState.STOPPED, GatewayState.FAILED):
                raise RuntimeError(f"Gateway cannot start while {self._status.state.value}")
            self._status = GatewayStatus(state=GatewayState.STARTING)

        logger.info(f"Starting gateway on port {port}")
        try:
            sock = bind_listener(self._config.host, port)
        except BindFailure as exc:
            logger.error(str(exc))
            self._publish(GatewayState.FAILED, error=exc.message)
            raise

        actual_port = sock.getsockname()[1]
        if actual_port != port:
            logger.info(f"Gateway bound to port {actual_port} (requested {port})")
        self._sock = sock
        self._publish(GatewayState.STARTING, actual_port)

        server_config = uvicorn.Config(self._app, log_level="warning")
        self._server = uvicorn.Server(server_config)
        self._task = asyncio.create_task(self._serve(self._server, sock), name=f"gateway:{actual_port}")

        await asyncio.sleep(self._config.settle_delay)

        url = f"http://{self._config.host}:{actual_port}{self._config.health_path}"
        if await self.verify_health(url):
            if self._publish_from_starting(GatewayState.RUNNING, actual_port):
                logger.info(f"Gateway is healthy on port {actual_port}")
                return actual_port
            raise RuntimeError("Gateway was stopped during startup")

        await self._cancel_serving()
        exc = HealthCheckExhausted(url, self._config.health_attempts)
        self._publish_from_starting(GatewayState.FAILED, actual_port, error=exc.message)
        raise exc

    async def stop(self, drain_timeout: float | None = None) -> None:
        """Stop serving.

        By default the serving task is cancelled outright and in-flight
        requests are dropped.  With *drain_timeout*, the server is asked to
        exit and given that long to finish open requests first.
        """
        current = self.status()
        if current.state in (GatewayState.STOPPED, GatewayState.STOPPING):
            return
        logger.info("Stopping gateway...")
        self._publish(GatewayState.STOPPING, current.port)

        if drain_timeout is not None and self._server is not None and self._task is not None:
            self._server.should_exit = True
            try:
                await asyncio.wait_for(asyncio.shield(self._task), timeout=drain_timeout)
            except asyncio.TimeoutError:
                logger.warning(f"Gateway did not drain within {drain_timeout}s, cancelling")
            except Exception as exc:
                logger.warning(f"Gateway serving task ended with error: {exc}")

        await self._cancel_serving()
        self._publish(GatewayState.STOPPED)
        logger.info("Gateway stopped")

    # ── health ──────────────────────────────────────────────────────

    async def verify_health(self, url: str) -> bool:
        """Probe *url* up to ``health_attempts`` times, pausing between tries."""
        attempts = self._config.health_attempts
        async with httpx.AsyncClient(timeout=self._config.health_timeout, trust_env=False) as client:
            for attempt in range(1, attempts + 1):
                if await self._probe(client, url):
                    logger.info(f"Gateway health check passed (attempt {attempt})")
                    return True
                logger.warning(f"Gateway health check failed (attempt {attempt}/{attempts})")
                if attempt < attempts:
                    await asyncio.sleep(self._config.health_interval)
        logger.error(f"Gateway health check failed after {attempts} attempts")
        return False

    async def _probe(self, client: httpx.AsyncClient, url: str) -> bool:
        try:
            resp = await client.get(url)
        except httpx.HTTPError:
            return False
        return resp.is_success

    # ── serving task ────────────────────────────────────────────────

    @staticmethod
    async def _serve(server: uvicorn.Server, sock: socket.socket) -> None:
        try:
            await server.serve(sockets=[sock])
        except Exception as exc:
            logger.error(f"Gateway server error: {exc}")
            raise

    async def _cancel_serving(self) -> None:
        task, server, sock = self._task, self._server, self._sock
        self._task = self._server = self._sock = None

        if task is not None:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
            except Exception as exc:
                logger.warning(f"Gateway serving task ended with error: {exc}")
        # A cancelled uvicorn server never reaches its own shutdown.
        if server is not None:
            for listener in getattr(server, "servers", []):
                listener.close()
        if sock is not None:
            sock.close()
