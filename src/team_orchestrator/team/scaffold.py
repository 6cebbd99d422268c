"""
Scaffold provisioning for a team directory.

Creates whatever the roster needs on disk and never overwrites existing
files, so user-edited prompts and tool lists survive re-provisioning.
"""

import json
import logging
from pathlib import Path
from typing import Any

from ..errors import TeamStorageError
from .identifiers import normalize_tool_subset
from .layout import TeamLayout
from .models import AgentConfig, TeamConfig
from .store import write_json_file, write_text_if_missing

logger = logging.getLogger(__name__)

AGENT_ROSTER_PLACEHOLDER = "{{agent_roster}}"

DEFAULT_SUPERVISOR_PROMPT = """You are the Supervisor of a local agent team.

Your team:
{{agent_roster}}

Your job is to decompose the user's task into a delegation plan.
Output ONLY valid JSON matching this schema:

{
  "task_summary": "string",
  "steps": [
    {
      "step_id": "string",
      "assigned_to": "agent_id",
      "instruction": "string: precise task for this agent",
      "depends_on": ["step_id"] | [],
      "expected_output": "string: what artifact or file to produce"
    }
  ],
  "reflection_required": true | false
}

Rules:
- Assign each step to exactly one agent by their id
- Respect dependencies: don't assign a step if its dependency isn't complete
- Be precise in instructions: agents only read what you write here
- If quality matters, set reflection_required: true"""


def default_supervisor_prompt() -> str:
	return DEFAULT_SUPERVISOR_PROMPT


def default_agent_prompt(agent: AgentConfig) -> str:
	description = agent.description.strip() or "Specialized contributor"
	return (
		f"You are {agent.role} ({agent.id}) in a local agent team.\n"
		"\n"
		f"Role summary: {description}\n"
		"\n"
		"Rules:\n"
		"- Follow the supervisor delegation exactly.\n"
		"- Use only available tools.\n"
		"- Write outputs that are deterministic and reproducible.\n"
		"- If asked for structured output, return valid JSON only.\n"
		"- Keep answers concise and implementation-focused."
	)


def ensure_team_scaffold(layout: TeamLayout, team_config: TeamConfig) -> None:
	"""Create shared folders, supervisor files, the journal file and every agent's folder."""
	for directory in (layout.supervisor_dir, layout.agents_root, layout.drafts_dir, layout.promoted_dir):
		try:
			directory.mkdir(parents=True, exist_ok=True)
		except OSError as e:
			raise TeamStorageError(f"Unable to create folder {directory}: {e}", str(directory)) from e

	write_text_if_missing(layout.supervisor_prompt, default_supervisor_prompt())
	write_text_if_missing(layout.supervisor_transcript, "")
	if not layout.supervisor_tools.exists():
		write_json_file(layout.supervisor_tools, [])

	write_text_if_missing(layout.bus_path, "")

	for agent in team_config.agents:
		ensure_agent_scaffold(layout, agent)


def ensure_agent_scaffold(layout: TeamLayout, agent: AgentConfig) -> None:
	"""Create one agent's prompt, transcript, tools file and context folder."""
	try:
		layout.agent_context(agent.id).mkdir(parents=True, exist_ok=True)
	except OSError as e:
		raise TeamStorageError(
			f"Unable to create agent folder {agent.id}: {e}", str(layout.agent_dir(agent.id))
		) from e

	write_text_if_missing(layout.agent_prompt(agent.id), default_agent_prompt(agent))
	write_text_if_missing(layout.agent_transcript(agent.id), "")

	tools_path = layout.agent_tools(agent.id)
	if not tools_path.exists():
		write_json_file(tools_path, normalize_tool_subset(agent.tool_subset))


def read_prompt(path: Path, fallback: str) -> str:
	"""Stored prompt text, or the fallback when the file is missing or unreadable."""
	try:
		return path.read_text(encoding="utf-8")
	except OSError:
		return fallback


def read_agent_tools(layout: TeamLayout, agent: AgentConfig) -> list[str]:
	"""Tool subset from the agent's tools.json, falling back to the roster entry."""
	tools_path = layout.agent_tools(agent.id)
	if not tools_path.exists():
		return normalize_tool_subset(agent.tool_subset)

	try:
		values = json.loads(tools_path.read_text(encoding="utf-8"))
	except (OSError, json.JSONDecodeError) as e:
		logger.warning(f"Unreadable tools file for {agent.id}, using roster tools: {e}")
		return normalize_tool_subset(agent.tool_subset)

	if not isinstance(values, list) or not all(isinstance(v, str) for v in values):
		logger.warning(f"tools.json for {agent.id} is not a list of names, using roster tools")
		return normalize_tool_subset(agent.tool_subset)

	return normalize_tool_subset(values)


def append_transcript(path: Path, messages: list[dict[str, Any]]) -> None:
	"""Append messages to a transcript.jsonl, one JSON object per line."""
	if not messages:
		return
	try:
		path.parent.mkdir(parents=True, exist_ok=True)
		with open(path, "a", encoding="utf-8") as f:
			for message in messages:
				f.write(json.dumps(message) + "\n")
	except OSError as e:
		raise TeamStorageError(f"Unable to append transcript message: {e}", str(path)) from e
