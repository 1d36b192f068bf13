"""Unit tests for the built-in filesystem and web_search groups."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from contracts.manifest import FilesystemToolConfig
from gateway.tools.filesystem import FilesystemExecutor, filesystem_group
from gateway.tools.web_search import EchoSearchExecutor, web_search_group


def _executor(tmp_path: Path, max_bytes: int = 65536) -> FilesystemExecutor:
    return FilesystemExecutor(
        FilesystemToolConfig(
            allow_read=[str(tmp_path / "data")],
            allow_write=[str(tmp_path / "out")],
            max_bytes=max_bytes,
        )
    )


class TestFilesystemGroup:
    def test_tool_schemas(self) -> None:
        group = filesystem_group()
        tools = {t.name: t for t in group.tools}
        assert set(tools) == {"read_file", "write_file"}
        assert tools["read_file"].parameters["required"] == ["path"]
        assert tools["write_file"].parameters["required"] == ["path", "content"]


class TestReadFile:
    @pytest.mark.asyncio
    async def test_read_allowed(self, tmp_path: Path) -> None:
        (tmp_path / "data").mkdir()
        (tmp_path / "data" / "notes.txt").write_text("hello")
        result = await _executor(tmp_path).execute("read_file", {"path": str(tmp_path / "data" / "notes.txt")})
        assert result == "hello"

    @pytest.mark.asyncio
    async def test_read_outside_allowlist(self, tmp_path: Path) -> None:
        secret = tmp_path / "secret.txt"
        secret.write_text("nope")
        with pytest.raises(PermissionError):
            await _executor(tmp_path).execute("read_file", {"path": str(secret)})

    @pytest.mark.asyncio
    async def test_traversal_is_resolved(self, tmp_path: Path) -> None:
        (tmp_path / "data").mkdir()
        (tmp_path / "secret.txt").write_text("nope")
        sneaky = str(tmp_path / "data" / ".." / "secret.txt")
        with pytest.raises(PermissionError):
            await _executor(tmp_path).execute("read_file", {"path": sneaky})

    @pytest.mark.asyncio
    async def test_read_truncated_to_max_bytes(self, tmp_path: Path) -> None:
        (tmp_path / "data").mkdir()
        (tmp_path / "data" / "big.txt").write_text("x" * 100)
        result = await _executor(tmp_path, max_bytes=10).execute(
            "read_file", {"path": str(tmp_path / "data" / "big.txt")}
        )
        assert result == "x" * 10

    @pytest.mark.asyncio
    async def test_empty_allowlist_denies(self, tmp_path: Path) -> None:
        f = tmp_path / "a.txt"
        f.write_text("a")
        with pytest.raises(PermissionError):
            await FilesystemExecutor().execute("read_file", {"path": str(f)})


class TestWriteFile:
    @pytest.mark.asyncio
    async def test_write_allowed(self, tmp_path: Path) -> None:
        target = tmp_path / "out" / "sub" / "result.txt"
        result = await _executor(tmp_path).execute("write_file", {"path": str(target), "content": "done"})
        assert json.loads(result) == {"status": "ok", "bytes_written": 4}
        assert target.read_text() == "done"

    @pytest.mark.asyncio
    async def test_write_outside_allowlist(self, tmp_path: Path) -> None:
        with pytest.raises(PermissionError):
            await _executor(tmp_path).execute(
                "write_file", {"path": str(tmp_path / "data" / "x.txt"), "content": "x"}
            )

    @pytest.mark.asyncio
    async def test_write_over_limit(self, tmp_path: Path) -> None:
        with pytest.raises(ValueError, match="max_bytes"):
            await _executor(tmp_path, max_bytes=3).execute(
                "write_file", {"path": str(tmp_path / "out" / "x.txt"), "content": "toolong"}
            )

    @pytest.mark.asyncio
    async def test_unknown_tool(self, tmp_path: Path) -> None:
        with pytest.raises(ValueError, match="Unsupported"):
            await _executor(tmp_path).execute("delete_file", {})


class TestWebSearch:
    def test_group_schema(self) -> None:
        (tool,) = web_search_group().tools
        assert tool.name == "search_web"
        assert tool.parameters["properties"]["max_results"]["default"] == 5

    @pytest.mark.asyncio
    async def test_echo_result(self) -> None:
        result = await EchoSearchExecutor().execute("search_web", {"query": "rust", "max_results": 3})
        assert result.startswith("Tool 'search_web' executed with arguments: ")
        assert '{"max_results": 3, "query": "rust"}' in result
