"""On-disk layout of one team (camp) directory."""

from dataclasses import dataclass
from pathlib import Path

TEAM_FILE_NAME = "team.json"
TEAM_BUS_FILE_NAME = "team_bus.jsonl"
TEAM_BUS_DB_NAME = "team_bus.db"
SUPERVISOR_DIR_NAME = "supervisor"
AGENTS_DIR_NAME = "agents"
TEAM_ARTIFACTS_DIR_NAME = "artifacts"
TEAM_DRAFTS_DIR_NAME = "drafts"
TEAM_PROMOTED_DIR_NAME = "promoted"

SYSTEM_PROMPT_FILE = "system_prompt.md"
TRANSCRIPT_FILE = "transcript.jsonl"
TOOLS_FILE = "tools.json"
CONTEXT_DIR_NAME = "context"

DRAFTS_PREFIX = f"{TEAM_ARTIFACTS_DIR_NAME}/{TEAM_DRAFTS_DIR_NAME}"
PROMOTED_PREFIX = f"{TEAM_ARTIFACTS_DIR_NAME}/{TEAM_PROMOTED_DIR_NAME}"


@dataclass(frozen=True)
class TeamLayout:
	"""Path helpers rooted at a team directory."""

	root: Path

	@property
	def team_json(self) -> Path:
		return self.root / TEAM_FILE_NAME

	@property
	def bus_path(self) -> Path:
		return self.root / TEAM_BUS_FILE_NAME

	@property
	def bus_db_path(self) -> Path:
		return self.root / TEAM_BUS_DB_NAME

	@property
	def supervisor_dir(self) -> Path:
		return self.root / SUPERVISOR_DIR_NAME

	@property
	def supervisor_prompt(self) -> Path:
		return self.supervisor_dir / SYSTEM_PROMPT_FILE

	@property
	def supervisor_transcript(self) -> Path:
		return self.supervisor_dir / TRANSCRIPT_FILE

	@property
	def supervisor_tools(self) -> Path:
		return self.supervisor_dir / TOOLS_FILE

	@property
	def agents_root(self) -> Path:
		return self.root / AGENTS_DIR_NAME

	def agent_dir(self, agent_id: str) -> Path:
		return self.agents_root / agent_id

	def agent_prompt(self, agent_id: str) -> Path:
		return self.agent_dir(agent_id) / SYSTEM_PROMPT_FILE

	def agent_transcript(self, agent_id: str) -> Path:
		return self.agent_dir(agent_id) / TRANSCRIPT_FILE

	def agent_tools(self, agent_id: str) -> Path:
		return self.agent_dir(agent_id) / TOOLS_FILE

	def agent_context(self, agent_id: str) -> Path:
		return self.agent_dir(agent_id) / CONTEXT_DIR_NAME

	@property
	def artifacts_dir(self) -> Path:
		return self.root / TEAM_ARTIFACTS_DIR_NAME

	@property
	def drafts_dir(self) -> Path:
		return self.artifacts_dir / TEAM_DRAFTS_DIR_NAME

	@property
	def promoted_dir(self) -> Path:
		return self.artifacts_dir / TEAM_PROMOTED_DIR_NAME
