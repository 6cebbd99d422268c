"""
Tool Sandbox - executes agent tool calls confined to one context directory.

Every path argument must be a plain relative path. After joining it to the
canonical context root, the canonical target must still live under that
root, or the call fails with a sandbox escape. Tool failures come back as
`{"error": ...}` payloads for the model; they never abort the tool loop.
"""

import base64
import binascii
import json
import logging
import uuid
from pathlib import Path, PurePosixPath
from typing import Any, Iterable, Optional

from ..errors import (
	SandboxEscapeError,
	TeamError,
	TeamStorageError,
	TeamValidationError,
	ToolExecutionError,
)
from .identifiers import validate_relative_path
from .messages import ToolCall
from .store import collect_files, ensure_within_root, to_relative_display

logger = logging.getLogger(__name__)

WEB_SEARCH_UNAVAILABLE = "web_search is not available in local deterministic team mode."

TOOL_SPECS: dict[str, dict[str, Any]] = {
	"read_file": {
		"type": "function",
		"function": {
			"name": "read_file",
			"description": "Read a file from the current agent context directory.",
			"parameters": {
				"type": "object",
				"properties": {"path": {"type": "string"}},
				"required": ["path"],
				"additionalProperties": False,
			},
		},
	},
	"list_files": {
		"type": "function",
		"function": {
			"name": "list_files",
			"description": "List files from the current agent context directory.",
			"parameters": {
				"type": "object",
				"properties": {"path": {"type": "string"}},
				"required": [],
				"additionalProperties": False,
			},
		},
	},
	"write_file": {
		"type": "function",
		"function": {
			"name": "write_file",
			"description": "Write a file in the current agent context directory.",
			"parameters": {
				"type": "object",
				"properties": {
					"path": {"type": "string"},
					"content": {"type": "string"},
					"encoding": {"type": "string", "enum": ["utf-8", "base64"]},
				},
				"required": ["path", "content"],
				"additionalProperties": False,
			},
		},
	},
	"web_search": {
		"type": "function",
		"function": {
			"name": "web_search",
			"description": "Search the web for current information.",
			"parameters": {
				"type": "object",
				"properties": {"query": {"type": "string"}},
				"required": ["query"],
				"additionalProperties": False,
			},
		},
	},
}


def tool_specs_for_subset(subset: list[str]) -> list[dict[str, Any]]:
	"""Specs for the recognized names in `subset`; unknown names are dropped."""
	return [TOOL_SPECS[name] for name in subset if name in TOOL_SPECS]


def prepare_context_root(context_dir: Path) -> Path:
	"""Create the agent's context directory if needed and return its canonical path."""
	try:
		context_dir.mkdir(parents=True, exist_ok=True)
		return context_dir.resolve(strict=True)
	except OSError as e:
		raise TeamStorageError(f"Unable to resolve agent context directory: {e}", str(context_dir)) from e


def _string_arg(args: dict[str, Any], key: str, tool: str) -> str:
	value = args.get(key)
	if not isinstance(value, str):
		raise ToolExecutionError(f"{tool} requires `{key}` string argument.")
	return value


class ToolSandbox:
	"""
	Sandboxed file tools for one agent.

	`root` must already be canonical. Paths written during the sandbox's
	lifetime accumulate in `writes`. When `allowed` is given, only those
	tool names may run.
	"""

	def __init__(self, root: Path, allowed: Optional[Iterable[str]] = None):
		self.root = root
		self.allowed = set(allowed) if allowed is not None else None
		self.writes: list[str] = []

	def _validate(self, relative: str, allow_empty: bool = False) -> PurePosixPath:
		"""Relative path check; traversal and absolute inputs count as escapes."""
		try:
			return validate_relative_path(relative, "path", allow_empty)
		except TeamValidationError as e:
			if not relative.strip():
				raise
			raise SandboxEscapeError(relative) from e

	def _resolve_existing(self, relative: str, allow_empty: bool) -> Path:
		rel = self._validate(relative, allow_empty)
		joined = self.root / rel
		try:
			canonical = joined.resolve(strict=True)
		except OSError as e:
			raise ToolExecutionError(f"Unable to resolve path `{relative}`: {e}") from e
		ensure_within_root(self.root, canonical)
		return canonical

	def _resolve_write(self, relative: str) -> Path:
		rel = self._validate(relative)
		target = self.root / rel
		parent = target.parent

		# Check the deepest existing ancestor first so nothing is created outside the root
		existing = parent
		while not existing.exists():
			existing = existing.parent
		ensure_within_root(self.root, existing.resolve())

		try:
			parent.mkdir(parents=True, exist_ok=True)
			canonical_parent = parent.resolve(strict=True)
		except OSError as e:
			raise ToolExecutionError(f"Unable to create parent directories: {e}") from e
		ensure_within_root(self.root, canonical_parent)

		return target

	def read_file(self, args: dict[str, Any]) -> dict[str, Any]:
		path = _string_arg(args, "path", "read_file")
		target = self._resolve_existing(path, allow_empty=False)
		if not target.is_file():
			raise ToolExecutionError("Requested path is not a file.")
		try:
			content = target.read_text(encoding="utf-8")
		except (OSError, UnicodeDecodeError) as e:
			raise ToolExecutionError(f"Unable to read file `{path}`: {e}") from e
		return {"path": path, "content": content}

	def list_files(self, args: dict[str, Any]) -> dict[str, Any]:
		path = args.get("path") or ""
		if not isinstance(path, str):
			raise ToolExecutionError("list_files `path` must be a string.")
		target = self._resolve_existing(path, allow_empty=True)
		if not target.is_dir():
			raise ToolExecutionError("Requested path is not a directory.")

		return {"path": path, "files": collect_files(self.root, target)}

	def write_file(self, args: dict[str, Any]) -> dict[str, Any]:
		path = _string_arg(args, "path", "write_file")
		content = _string_arg(args, "content", "write_file")
		encoding = str(args.get("encoding") or "utf-8").lower()

		if encoding == "base64":
			try:
				data = base64.b64decode(content, validate=True)
			except (binascii.Error, ValueError) as e:
				raise ToolExecutionError(f"Invalid base64 content: {e}") from e
		else:
			data = content.encode("utf-8")

		target = self._resolve_write(path)
		# Never follow a symlink planted at the target out of the root
		if target.is_symlink():
			ensure_within_root(self.root, target.resolve())

		try:
			target.write_bytes(data)
		except OSError as e:
			raise ToolExecutionError(f"Unable to write file `{path}`: {e}") from e

		canonical = target.resolve()
		ensure_within_root(self.root, canonical)
		relative = to_relative_display(self.root, canonical)
		self.writes.append(relative)
		logger.debug(f"write_file {relative} ({len(data)} bytes)")

		return {"path": path, "bytes_written": len(data)}

	def web_search(self, args: dict[str, Any]) -> dict[str, Any]:
		raise ToolExecutionError(WEB_SEARCH_UNAVAILABLE)

	def execute(self, tool_call: ToolCall) -> str:
		"""
		Run one tool call and return the JSON string for the tool message.

		Never raises for tool-level failures; those become error objects
		carrying `error`, `tool` and `tool_call_id`.
		"""
		call_id = tool_call.id or "tool-call"

		if not tool_call.name:
			return json.dumps({"error": "Tool call missing function.name", "tool_call_id": call_id})

		name = tool_call.name
		try:
			args = tool_call.parsed_arguments()
		except ValueError as e:
			return json.dumps({"error": str(e), "tool_call_id": call_id, "tool": name})

		handlers = {
			"read_file": self.read_file,
			"list_files": self.list_files,
			"write_file": self.write_file,
			"web_search": self.web_search,
		}

		logger.debug(f"Tool call {call_id}: {name}")
		try:
			handler = handlers.get(name)
			if handler is None:
				raise ToolExecutionError(f"Unsupported tool `{name}`.")
			if self.allowed is not None and name not in self.allowed:
				raise ToolExecutionError(f"Tool `{name}` is not enabled for this agent.")
			result = handler(args)
		except SandboxEscapeError as e:
			logger.warning(f"Blocked sandbox escape in {name} ({call_id}): {e.path}")
			return json.dumps({"error": str(e), "tool": name, "tool_call_id": call_id})
		except TeamError as e:
			return json.dumps({"error": str(e), "tool": name, "tool_call_id": call_id})

		return json.dumps(result)


def tool_call_id_for(tool_call: ToolCall) -> str:
	"""The call's id, or a fresh `tool-<uuid>` when the model omitted one."""
	return tool_call.id or f"tool-{uuid.uuid4()}"


def tool_name_for(tool_call: ToolCall) -> str:
	return tool_call.name or "unknown_tool"


def describe_tools(subset: list[str]) -> Optional[list[dict[str, Any]]]:
	"""Tool definitions for a request, or None when the agent has no usable tools."""
	specs = tool_specs_for_subset(subset)
	return specs or None
