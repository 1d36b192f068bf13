"""Tool registry — provider groups, their tools, and tool-call dispatch.

Writers (register/unregister) are serialized under a lock and publish a new
immutable snapshot; readers grab the current snapshot without locking, so a
request in flight always sees a consistent index even while groups change.
"""

from __future__ import annotations

import json
import threading
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping

import jsonschema
from loguru import logger

from contracts.api import ToolCall, ToolSpec
from contracts.manifest import Manifest
from contracts.tool_sdk import GroupStatus, ProviderGroup, ToolExecutor, ToolProvider

from gateway.errors import ToolExecutionFailed, ToolNotFound
from gateway.tools.base import validate_args


@dataclass(frozen=True)
class _Snapshot:
    groups: Mapping[str, ProviderGroup] = field(default_factory=lambda: MappingProxyType({}))
    executors: Mapping[str, ToolExecutor] = field(default_factory=lambda: MappingProxyType({}))
    # tool name -> tool, in registration order
    tools: Mapping[str, ToolProvider] = field(default_factory=lambda: MappingProxyType({}))


class ToolRegistry:
    """Process-wide registry of provider groups and their tools.

    Tool names are unique across the registry.  When a group brings a tool
    whose name another group already owns, the newer registration wins and
    the collision is logged.
    """

    def __init__(self) -> None:
        self._write_lock = threading.Lock()
        self._snapshot = _Snapshot()

    # ── mutation ────────────────────────────────────────────────────

    def register_group(self, group: ProviderGroup, executor: ToolExecutor) -> None:
        """Insert or replace *group* and index every tool it carries."""
        logger.info(f"Registering provider group: {group.name} ({len(group.tools)} tools)")
        group = group.model_copy(deep=True)

        with self._write_lock:
            current = self._snapshot
            groups = dict(current.groups)
            executors = dict(current.executors)
            tools = dict(current.tools)

            # Replacing a group first drops whatever it still owns.
            if group.name in groups:
                tools = {n: t for n, t in tools.items() if t.server_name != group.name}

            for tool in group.tools:
                tool = tool.model_copy(update={"server_name": group.name})
                existing = tools.get(tool.name)
                if existing is not None and existing.server_name != group.name:
                    logger.warning(
                        f"Tool '{tool.name}' from group '{existing.server_name}' "
                        f"is replaced by group '{group.name}'"
                    )
                    del tools[tool.name]
                tools[tool.name] = tool

            groups[group.name] = group
            executors[group.name] = executor
            self._snapshot = _Snapshot(
                groups=MappingProxyType(groups),
                executors=MappingProxyType(executors),
                tools=MappingProxyType(tools),
            )

    def unregister_group(self, name: str) -> None:
        """Remove group *name* and every tool it still owns.  No-op if absent.

        Tool names the group had taken over revert to a remaining group that
        also declares them.
        """
        with self._write_lock:
            current = self._snapshot
            if name not in current.groups:
                return
            groups = {n: g for n, g in current.groups.items() if n != name}
            executors = {n: e for n, e in current.executors.items() if n != name}
            tools = {n: t for n, t in current.tools.items() if t.server_name != name}

            # Names this group had taken over fall back to an earlier declarer.
            freed = {n for n, t in current.tools.items() if t.server_name == name}
            for group in groups.values():
                for tool in group.tools:
                    if tool.name in freed and tool.name not in tools:
                        tools[tool.name] = tool.model_copy(update={"server_name": group.name})
            self._snapshot = _Snapshot(
                groups=MappingProxyType(groups),
                executors=MappingProxyType(executors),
                tools=MappingProxyType(tools),
            )
        logger.info(f"Unregistered provider group: {name}")

    # ── queries ─────────────────────────────────────────────────────

    def list_tools(self) -> list[ToolSpec]:
        """Export all tools in OpenAI function-calling format."""
        return [tool.to_spec() for tool in self._snapshot.tools.values()]

    def list_tool_names(self) -> list[str]:
        return list(self._snapshot.tools)

    def list_groups(self) -> list[ProviderGroup]:
        return [g.model_copy(deep=True) for g in self._snapshot.groups.values()]

    def get(self, name: str) -> ToolProvider:
        """Return a copy of tool *name*, or raise ``ToolNotFound``."""
        tool = self._snapshot.tools.get(name)
        if tool is None:
            raise ToolNotFound(name)
        return tool.model_copy(deep=True)

    def __len__(self) -> int:
        return len(self._snapshot.tools)

    # ── execution ───────────────────────────────────────────────────

    async def execute_tool(self, tool_call: ToolCall) -> str:
        """Dispatch *tool_call* to the owning group's executor.

        Raises ``ToolNotFound`` for unknown names and ``ToolExecutionFailed``
        for bad arguments, inactive groups, or provider failures.
        """
        snapshot = self._snapshot
        tool_name = tool_call.function.name
        tool = snapshot.tools.get(tool_name)
        if tool is None:
            raise ToolNotFound(tool_name)

        group_name = tool.server_name
        group = snapshot.groups[group_name]
        if group.status != GroupStatus.ACTIVE:
            reason = group.status_reason or group.status.value
            raise ToolExecutionFailed(tool_name, group_name, f"group unavailable: {reason}")

        args = _parse_arguments(tool_name, group_name, tool_call.function.arguments)
        try:
            validate_args(tool, args)
        except jsonschema.ValidationError as exc:
            raise ToolExecutionFailed(tool_name, group_name, f"invalid arguments: {exc.message}") from exc

        logger.info(f"Executing tool: {tool_name} via group: {group_name}")
        try:
            return await snapshot.executors[group_name].execute(tool_name, args)
        except Exception as exc:
            logger.error(f"Tool '{tool_name}' failed in group '{group_name}': {exc}")
            raise ToolExecutionFailed(tool_name, group_name, str(exc)) from exc


def _parse_arguments(tool_name: str, group_name: str, raw: str) -> dict[str, Any]:
    try:
        args = json.loads(raw) if raw.strip() else {}
    except json.JSONDecodeError as exc:
        raise ToolExecutionFailed(tool_name, group_name, f"arguments are not valid JSON: {exc}") from exc
    if not isinstance(args, dict):
        raise ToolExecutionFailed(tool_name, group_name, "arguments must be a JSON object")
    return args


def create_default_registry(manifest: Manifest | None = None) -> ToolRegistry:
    """Create a registry pre-loaded with the built-in provider groups."""
    from gateway.tools.filesystem import FilesystemExecutor, filesystem_group
    from gateway.tools.web_search import EchoSearchExecutor, web_search_group

    manifest = manifest or Manifest()
    registry = ToolRegistry()
    registry.register_group(
        filesystem_group(),
        FilesystemExecutor(manifest.tools.filesystem),
    )
    if manifest.tools.web_search:
        registry.register_group(web_search_group(), EchoSearchExecutor())
    logger.info(f"Initialized default provider groups with {len(registry)} tools")
    return registry
