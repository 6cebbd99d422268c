"""Tests for the Tool Sandbox."""

import base64
import json
import os
from pathlib import Path

import pytest

from team_orchestrator.team.messages import ToolCall
from team_orchestrator.team.sandbox import (
	WEB_SEARCH_UNAVAILABLE,
	ToolSandbox,
	describe_tools,
	prepare_context_root,
	tool_specs_for_subset,
)

from .helpers import tool_call


@pytest.fixture
def sandbox(tmp_path: Path) -> ToolSandbox:
	return ToolSandbox(prepare_context_root(tmp_path / "agent" / "context"))


def _run(sandbox: ToolSandbox, call: ToolCall) -> dict:
	return json.loads(sandbox.execute(call))


def _snapshot(root: Path) -> set[str]:
	return {str(p) for p in root.rglob("*")}


class TestToolSpecs:
	def test_unknown_names_dropped(self):
		specs = tool_specs_for_subset(["read_file", "shell", "web_search"])
		assert [s["function"]["name"] for s in specs] == ["read_file", "web_search"]

	def test_no_tools_is_none(self):
		assert describe_tools([]) is None
		assert describe_tools(["shell"]) is None


class TestWriteFile:
	def test_writes_utf8_and_records_path(self, sandbox):
		result = _run(sandbox, tool_call("write_file", path="notes/todo.md", content="héllo"))

		assert result == {"path": "notes/todo.md", "bytes_written": len("héllo".encode("utf-8"))}
		assert (sandbox.root / "notes" / "todo.md").read_text(encoding="utf-8") == "héllo"
		assert sandbox.writes == ["notes/todo.md"]

	def test_writes_base64(self, sandbox):
		payload = base64.b64encode(b"\x00\x01binary").decode()
		result = _run(sandbox, tool_call("write_file", path="blob.bin", content=payload, encoding="base64"))

		assert result["bytes_written"] == 8
		assert (sandbox.root / "blob.bin").read_bytes() == b"\x00\x01binary"

	def test_invalid_base64(self, sandbox):
		result = _run(sandbox, tool_call("write_file", path="x.bin", content="***", encoding="base64"))
		assert result["error"].startswith("Invalid base64 content")
		assert result["tool"] == "write_file"
		assert result["tool_call_id"] == "call-1"

	def test_content_required(self, sandbox):
		result = _run(sandbox, tool_call("write_file", path="x.md"))
		assert result["error"] == "write_file requires `content` string argument."

	def test_parent_traversal_escapes(self, tmp_path: Path, sandbox):
		before = _snapshot(tmp_path)

		result = _run(sandbox, tool_call("write_file", path="../../etc/passwd", content="root::0:0"))

		assert "escapes the agent context directory" in result["error"]
		assert _snapshot(tmp_path) == before
		assert sandbox.writes == []

	@pytest.mark.parametrize("path", ["../x.md", "a/../../x.md", "/tmp/x.md", "a\\..\\x.md", "C:/x.md"])
	def test_rejected_paths_do_not_touch_disk(self, tmp_path: Path, sandbox, path):
		before = _snapshot(tmp_path)

		result = _run(sandbox, tool_call("write_file", path=path, content="x"))

		assert "error" in result
		assert _snapshot(tmp_path) == before

	def test_symlinked_directory_escape(self, tmp_path: Path, sandbox):
		outside = tmp_path / "outside"
		outside.mkdir()
		os.symlink(outside, sandbox.root / "link")

		result = _run(sandbox, tool_call("write_file", path="link/stolen.md", content="x"))

		assert "escapes the agent context directory" in result["error"]
		assert not (outside / "stolen.md").exists()


class TestReadFile:
	def test_reads_file(self, sandbox):
		(sandbox.root / "a.md").write_text("alpha")
		assert _run(sandbox, tool_call("read_file", path="a.md")) == {"path": "a.md", "content": "alpha"}

	def test_directory_is_not_a_file(self, sandbox):
		(sandbox.root / "sub").mkdir()
		result = _run(sandbox, tool_call("read_file", path="sub"))
		assert result["error"] == "Requested path is not a file."

	def test_missing_file(self, sandbox):
		result = _run(sandbox, tool_call("read_file", path="nope.md"))
		assert "Unable to resolve path `nope.md`" in result["error"]

	def test_path_required(self, sandbox):
		result = _run(sandbox, tool_call("read_file"))
		assert result["error"] == "read_file requires `path` string argument."

	def test_symlinked_file_escape(self, tmp_path: Path, sandbox):
		secret = tmp_path / "secret.txt"
		secret.write_text("top secret")
		os.symlink(secret, sandbox.root / "innocent.md")

		result = _run(sandbox, tool_call("read_file", path="innocent.md"))

		assert "escapes the agent context directory" in result["error"]


class TestListFiles:
	def test_lists_root_recursively_sorted(self, sandbox):
		(sandbox.root / "b").mkdir()
		(sandbox.root / "b" / "z.md").write_text("z")
		(sandbox.root / "a.md").write_text("a")
		(sandbox.root / "b" / "c.md").write_text("c")

		result = _run(sandbox, tool_call("list_files"))

		assert result == {"path": "", "files": ["a.md", "b/c.md", "b/z.md"]}

	def test_lists_subdirectory(self, sandbox):
		(sandbox.root / "docs").mkdir()
		(sandbox.root / "docs" / "x.md").write_text("x")
		(sandbox.root / "top.md").write_text("t")

		result = _run(sandbox, tool_call("list_files", path="docs"))

		assert result["files"] == ["docs/x.md"]

	def test_file_is_not_a_directory(self, sandbox):
		(sandbox.root / "a.md").write_text("a")
		result = _run(sandbox, tool_call("list_files", path="a.md"))
		assert result["error"] == "Requested path is not a directory."


class TestDispatch:
	def test_web_search_always_fails(self, sandbox):
		result = _run(sandbox, tool_call("web_search", query="weather"))
		assert result["error"] == WEB_SEARCH_UNAVAILABLE

	def test_unsupported_tool(self, sandbox):
		result = _run(sandbox, tool_call("shell", command="rm -rf /"))
		assert result["error"] == "Unsupported tool `shell`."

	def test_missing_function_name(self, sandbox):
		result = _run(sandbox, ToolCall(id="c9", name="", arguments="{}"))
		assert result == {"error": "Tool call missing function.name", "tool_call_id": "c9"}

	def test_invalid_arguments_json(self, sandbox):
		result = _run(sandbox, ToolCall(id="c2", name="read_file", arguments="{broken"))
		assert result["error"].startswith("Invalid tool arguments JSON")
		assert result["tool"] == "read_file"

	def test_tool_outside_allowed_set(self, tmp_path: Path):
		root = prepare_context_root(tmp_path / "reader" / "context")
		sandbox = ToolSandbox(root, ["read_file"])

		result = _run(sandbox, tool_call("write_file", "c3", path="a.md", content="x"))

		assert result == {
			"error": "Tool `write_file` is not enabled for this agent.",
			"tool": "write_file",
			"tool_call_id": "c3",
		}
		assert sandbox.writes == []
		assert not (root / "a.md").exists()
