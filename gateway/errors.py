"""Gateway error taxonomy.

Each error carries an HTTP status so the app can report it without a lookup
table; ``kind`` is the machine-readable name used in error bodies.
"""

from __future__ import annotations


class GatewayError(Exception):
    """Base class for every error raised by the gateway."""

    kind = "gateway_error"
    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class InvalidRequest(GatewayError):
    """Malformed or unsupported request body."""

    kind = "invalid_request"
    status_code = 400


class ToolNotFound(GatewayError):
    """No tool with the requested name is registered."""

    kind = "tool_not_found"
    status_code = 404

    def __init__(self, tool_name: str) -> None:
        super().__init__(f"Tool '{tool_name}' not found in registry")
        self.tool_name = tool_name


class ToolExecutionFailed(GatewayError):
    """The owning provider group failed to run the tool."""

    kind = "tool_execution_failed"
    status_code = 502

    def __init__(self, tool_name: str, group: str, reason: str) -> None:
        super().__init__(f"Tool '{tool_name}' (group '{group}') failed: {reason}")
        self.tool_name = tool_name
        self.group = group
        self.reason = reason


class RetrievalUnavailable(GatewayError):
    """The retrieval backend could not be reached."""

    kind = "retrieval_unavailable"
    status_code = 503


class StorageFailed(GatewayError):
    """The retrieval backend rejected a document."""

    kind = "storage_failed"
    status_code = 502


class BindFailure(GatewayError):
    """The gateway listener could not bind a port."""

    kind = "bind_failure"


class HealthCheckExhausted(GatewayError):
    """The gateway never answered its liveness probe."""

    kind = "health_check_exhausted"

    def __init__(self, url: str, attempts: int) -> None:
        super().__init__(f"Health check for {url} failed after {attempts} attempts")
        self.url = url
        self.attempts = attempts
