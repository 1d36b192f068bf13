"""Built-in filesystem group — read_file / write_file within allowed prefixes."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Any

from contracts.manifest import FilesystemToolConfig
from contracts.tool_sdk import ProviderGroup, ToolExecutor, ToolProvider

GROUP_NAME = "filesystem"


def filesystem_group() -> ProviderGroup:
    return ProviderGroup(
        name=GROUP_NAME,
        description="File system operations",
        version="1.0.0",
        tools=[
            ToolProvider(
                name="read_file",
                description="Read contents of a file",
                server_name=GROUP_NAME,
                parameters={
                    "type": "object",
                    "properties": {
                        "path": {"type": "string", "description": "Path to the file to read"},
                    },
                    "required": ["path"],
                },
            ),
            ToolProvider(
                name="write_file",
                description="Write content to a file",
                server_name=GROUP_NAME,
                parameters={
                    "type": "object",
                    "properties": {
                        "path": {"type": "string", "description": "Path to the file to write"},
                        "content": {"type": "string", "description": "Content to write to the file"},
                    },
                    "required": ["path", "content"],
                },
            ),
        ],
    )


def _is_allowed(resolved: Path, prefixes: list[str]) -> bool:
    # Path traversal prevention: resolved path must sit under an allowed prefix
    return any(resolved.is_relative_to(Path(prefix).resolve()) for prefix in prefixes)


class FilesystemExecutor(ToolExecutor):
    """Runs the filesystem group's tools under the manifest's path allowlists."""

    def __init__(self, config: FilesystemToolConfig | None = None) -> None:
        self._config = config or FilesystemToolConfig()

    async def execute(self, tool_name: str, arguments: dict[str, Any]) -> str:
        if tool_name == "read_file":
            return await asyncio.to_thread(self._read, arguments["path"])
        if tool_name == "write_file":
            return await asyncio.to_thread(self._write, arguments["path"], arguments["content"])
        raise ValueError(f"Unsupported filesystem tool: {tool_name}")

    def _read(self, file_path: str) -> str:
        resolved = Path(file_path).resolve()
        if not _is_allowed(resolved, self._config.allow_read):
            raise PermissionError(f"Path not allowed: {file_path}")
        return resolved.read_bytes()[: self._config.max_bytes].decode(errors="replace")

    def _write(self, file_path: str, content: str) -> str:
        resolved = Path(file_path).resolve()
        if not _is_allowed(resolved, self._config.allow_write):
            raise PermissionError(f"Path not allowed: {file_path}")

        data = content.encode()
        if len(data) > self._config.max_bytes:
            raise ValueError(f"Content exceeds max_bytes limit ({self._config.max_bytes})")

        resolved.parent.mkdir(parents=True, exist_ok=True)
        resolved.write_bytes(data)
        return json.dumps({"status": "ok", "bytes_written": len(data)})
