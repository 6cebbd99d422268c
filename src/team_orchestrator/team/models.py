"""
Team Models - Pydantic schemas for team configuration, plans, and the event journal.

TeamConfig is the authoritative roster snapshot. Plans, step results and
critiques are immutable once produced; their history lives only in the
journal as BusEntry records.
"""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

TEAM_DEFAULT_MAX_REFLECTION_ROUNDS = 2
TEAM_MAX_REFLECTION_ROUNDS = 8
TEAM_MAX_AGENTS = 8
TEAM_MAX_TOOL_LOOPS = 6

SUPERVISOR_ID = "supervisor"
BROADCAST_ID = "all"


def now_iso8601() -> str:
	"""RFC3339 timestamp in UTC."""
	return datetime.now(timezone.utc).isoformat()


def now_timestamp_ms() -> int:
	return int(datetime.now(timezone.utc).timestamp() * 1000)


class BusTokenUsage(BaseModel):
	"""Token usage attached to a journal entry."""
	input: int = 0
	output: int = 0

	def add(self, other: "BusTokenUsage") -> None:
		"""Accumulate another usage record into this one."""
		self.input += other.input
		self.output += other.output


class AgentConfig(BaseModel):
	"""A configured worker identity on the roster."""
	id: str = Field(description="Unique, path-safe agent identifier")
	role: str = Field(description="Free-text role, e.g. 'writer' or 'critic'")
	model: str = Field(description="Model reference used for this agent")
	tool_subset: list[str] = Field(default_factory=list, description="Allowed tool names")
	description: str = Field(default="")


class TeamConfig(BaseModel):
	"""Team configuration persisted as team.json."""
	is_team: bool = True
	supervisor_model: str = ""
	agents: list[AgentConfig] = Field(default_factory=list)
	reflection_loops: bool = True
	max_reflection_rounds: int = TEAM_DEFAULT_MAX_REFLECTION_ROUNDS

	def find_agent(self, agent_id: str) -> Optional[AgentConfig]:
		"""Exact id lookup."""
		for agent in self.agents:
			if agent.id == agent_id:
				return agent
		return None

	def find_agent_by_role(self, role_name: str) -> Optional[AgentConfig]:
		"""First agent whose role or id matches case-insensitively."""
		wanted = role_name.lower()
		for agent in self.agents:
			if agent.role.lower() == wanted or agent.id.lower() == wanted:
				return agent
		return None


class TeamAgentCreateInput(BaseModel):
	"""Input for create-or-replace agent."""
	id: str
	role: str
	model: str
	tool_subset: list[str] = Field(default_factory=list)
	description: str = ""


class TeamSettingsUpdateInput(BaseModel):
	"""Input for team settings updates."""
	supervisor_model: str
	reflection_loops: bool
	max_reflection_rounds: int


class AgentMeta(BaseModel):
	"""Returned after an agent is created or replaced."""
	id: str
	role: str
	model: str
	tool_subset: list[str] = Field(default_factory=list)
	description: str = ""
	path: str


class DelegationStep(BaseModel):
	"""One unit of work in a plan, assigned to exactly one agent."""
	step_id: str
	assigned_to: str
	instruction: str
	depends_on: list[str] = Field(default_factory=list)
	expected_output: str = ""


class DecompositionPlan(BaseModel):
	"""A supervisor's decomposition of a user task."""
	task_summary: str = ""
	steps: list[DelegationStep] = Field(default_factory=list)
	reflection_required: bool = False


class BusEntryType(str, Enum):
	"""Kinds of journal entries."""
	DECOMPOSITION = "decomposition"
	DELEGATION = "delegation"
	RESULT = "result"
	CRITIQUE = "critique"
	PROMOTION = "promotion"
	ERROR = "error"


class BusEntry(BaseModel):
	"""
	One immutable journal record.

	Serialized with the wire names `type` and `from`; `step_id` is omitted
	when absent.
	"""
	model_config = ConfigDict(populate_by_name=True)

	id: str = Field(default_factory=lambda: str(uuid.uuid4()))
	timestamp: str = Field(default_factory=now_iso8601)
	entry_type: BusEntryType = Field(alias="type")
	from_: str = Field(alias="from")
	to: str
	step_id: Optional[str] = None
	content: Any = None
	token_usage: BusTokenUsage = Field(default_factory=BusTokenUsage)

	def to_json(self) -> str:
		"""Single-line JSON as written to the journal."""
		return self.model_dump_json(by_alias=True, exclude_none=True)

	def to_dict(self) -> dict[str, Any]:
		return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class AgentStepResult(BaseModel):
	"""Return value of one executed delegation step."""
	step_id: str
	agent_id: str
	output_text: str
	draft_path: str
	context_writes: list[str] = Field(default_factory=list)
	token_usage: BusTokenUsage = Field(default_factory=BusTokenUsage)


class CritiqueResult(BaseModel):
	"""A critic's structured verdict on an artifact."""
	model_config = ConfigDict(populate_by_name=True)

	issues: list[str] = Field(default_factory=list)
	suggestions: list[str] = Field(default_factory=list)
	pass_: bool = Field(default=False, alias="pass")


class ReflectionSummary(BaseModel):
	"""Outcome of a writer/critic reflection loop."""
	model_config = ConfigDict(populate_by_name=True)

	artifact_path: str
	promoted_path: str
	rounds_completed: int
	pass_: bool = Field(alias="pass")
	critiques: list[CritiqueResult] = Field(default_factory=list)


class StepState(str, Enum):
	"""Derived status of a plan step."""
	PENDING = "pending"
	RUNNING = "running"
	COMPLETE = "complete"
	FAILED = "failed"


class AgentState(str, Enum):
	"""Derived display status of an agent."""
	IDLE = "idle"
	WORKING = "working"
	REFLECTING = "reflecting"


class TeamStepStatus(BaseModel):
	step_id: str
	assigned_to: str
	expected_output: str
	status: StepState = StepState.PENDING


class TeamAgentStatus(BaseModel):
	id: str
	role: str
	model: str
	tool_subset: list[str] = Field(default_factory=list)
	status: AgentState = AgentState.IDLE
	token_usage: BusTokenUsage = Field(default_factory=BusTokenUsage)
	last_output_preview: Optional[str] = None


class TeamArtifactsStatus(BaseModel):
	drafts: list[str] = Field(default_factory=list)
	promoted: list[str] = Field(default_factory=list)


class TeamStatus(BaseModel):
	"""Derived, non-persisted view of a team, rebuilt from the journal on demand."""
	is_team: bool
	supervisor_model: str = ""
	reflection_loops: bool = False
	max_reflection_rounds: int = TEAM_DEFAULT_MAX_REFLECTION_ROUNDS
	agents: list[TeamAgentStatus] = Field(default_factory=list)
	steps: list[TeamStepStatus] = Field(default_factory=list)
	bus_entries: int = 0
	artifacts: TeamArtifactsStatus = Field(default_factory=TeamArtifactsStatus)

	@classmethod
	def inactive(cls) -> "TeamStatus":
		"""Status for a session that is not in team mode."""
		return cls(is_team=False)
