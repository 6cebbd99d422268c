"""Shared utilities for visualizer views."""

import json
from datetime import datetime, timezone
from typing import Any

from ..team.models import AgentState, StepState

STEP_ICONS = {
	StepState.PENDING: "[dim][ ][/dim]",
	StepState.RUNNING: "[yellow][~][/yellow]",
	StepState.COMPLETE: "[green][x][/green]",
	StepState.FAILED: "[red][!][/red]",
}

AGENT_STYLES = {
	AgentState.IDLE: "dim",
	AgentState.WORKING: "yellow",
	AgentState.REFLECTING: "magenta",
}


def format_timestamp(iso_str: str) -> str:
	"""Format an ISO timestamp as relative time (e.g. '2m ago') or absolute."""
	try:
		dt = datetime.fromisoformat(iso_str)
		if dt.tzinfo is None:
			dt = dt.replace(tzinfo=timezone.utc)
		total_secs = int((datetime.now(timezone.utc) - dt).total_seconds())

		if total_secs < 0:
			return iso_str[:19]
		if total_secs < 60:
			return f"{total_secs}s ago"
		if total_secs < 3600:
			return f"{total_secs // 60}m ago"
		if total_secs < 86400:
			return f"{total_secs // 3600}h ago"
		return f"{total_secs // 86400}d ago"
	except (ValueError, TypeError):
		return str(iso_str)[:19]


def truncate_text(text: str, max_len: int = 60) -> str:
	"""Single-line, shortened text for table display."""
	if not text:
		return ""
	flat = " ".join(text.split())
	if len(flat) <= max_len:
		return flat
	return flat[:max_len - 3] + "..."


def summarize_content(content: Any, max_len: int = 60) -> str:
	"""Short description of a journal entry's content."""
	if content is None:
		return ""
	if isinstance(content, str):
		return truncate_text(content, max_len)
	if isinstance(content, dict):
		for key in ("output_text", "instruction", "task_summary", "error"):
			if isinstance(content.get(key), str):
				return truncate_text(content[key], max_len)
		if "to" in content and "from" in content:
			return truncate_text(f"{content['from']} -> {content['to']}", max_len)
		if "pass" in content:
			verdict = "pass" if content["pass"] else "fail"
			return truncate_text(f"round {content.get('round', '?')}: {verdict}", max_len)
	return truncate_text(json.dumps(content), max_len)
