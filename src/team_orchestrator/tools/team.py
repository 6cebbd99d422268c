"""Team orchestration tools."""

import json
import logging
from typing import Callable, Optional

from mcp.server.fastmcp import FastMCP

from ..config import Config
from ..errors import TeamError
from ..providers.openai_compat import OpenAICompatibleChatService
from ..team.engine import TeamEngine
from ..team.messages import ChatCompletionService
from ..team.models import DelegationStep, TeamAgentCreateInput, TeamSettingsUpdateInput
from ..team.notify import LoggingSink

logger = logging.getLogger(__name__)

ChatFactory = Callable[[Config], ChatCompletionService]


def _split_csv(value: str) -> list[str]:
	return [item.strip() for item in value.split(",") if item.strip()]


def _error(e: TeamError) -> str:
	return json.dumps({"error": str(e)})


def register_team_tools(mcp: FastMCP, config: Config, chat_factory: Optional[ChatFactory] = None) -> None:
	"""Register team orchestration tools."""
	make_chat = chat_factory or OpenAICompatibleChatService.from_config

	def engine_for(camp_id: str) -> TeamEngine:
		return TeamEngine.for_camp(config, camp_id, make_chat(config), LoggingSink())

	@mcp.tool()
	async def team_create_agent(
		camp_id: str,
		agent_id: str,
		role: str,
		model: str,
		tool_subset: str = "",
		description: str = "",
	) -> str:
		"""
		Create or replace an agent on a camp's team roster.

		Args:
			camp_id: Camp identifier
			agent_id: Path-safe agent id (replaces an existing agent with the same id)
			role: Free-text role, e.g. "writer" or "critic"
			model: Model reference, e.g. "ollama:llama3.1"
			tool_subset: Comma-separated tools (read_file, list_files, write_file, web_search)
			description: Short role description used in the supervisor roster
		"""
		try:
			engine = engine_for(camp_id)
			meta = await engine.create_agent(TeamAgentCreateInput(
				id=agent_id,
				role=role,
				model=model,
				tool_subset=_split_csv(tool_subset),
				description=description,
			))
		except TeamError as e:
			return _error(e)
		return json.dumps({"success": True, "agent": meta.model_dump()}, indent=2)

	@mcp.tool()
	async def team_remove_agent(camp_id: str, agent_id: str) -> str:
		"""
		Remove an agent and delete its folder.

		Args:
			camp_id: Camp identifier
			agent_id: Agent to remove
		"""
		try:
			team_config = await engine_for(camp_id).remove_agent(agent_id)
		except TeamError as e:
			return _error(e)
		return json.dumps({"success": True, "team": team_config.model_dump()}, indent=2)

	@mcp.tool()
	async def team_update_settings(
		camp_id: str,
		supervisor_model: str,
		reflection_loops: bool = True,
		max_reflection_rounds: int = 2,
	) -> str:
		"""
		Update supervisor model and reflection settings.

		Args:
			camp_id: Camp identifier
			supervisor_model: Model used for task decomposition
			reflection_loops: Whether the writer revises after a failing critique
			max_reflection_rounds: Round cap, clamped to 1..8
		"""
		try:
			status = await engine_for(camp_id).update_settings(TeamSettingsUpdateInput(
				supervisor_model=supervisor_model,
				reflection_loops=reflection_loops,
				max_reflection_rounds=max_reflection_rounds,
			))
		except TeamError as e:
			return _error(e)
		return json.dumps({"success": True, "status": status.model_dump(mode="json")}, indent=2)

	@mcp.tool()
	async def team_decompose_task(camp_id: str, user_task: str) -> str:
		"""
		Have the supervisor decompose a task into a delegation plan.

		Args:
			camp_id: Camp identifier
			user_task: Free-text task description
		"""
		try:
			plan = await engine_for(camp_id).decompose_task(user_task)
		except TeamError as e:
			return _error(e)
		return json.dumps({"success": True, "plan": plan.model_dump()}, indent=2)

	@mcp.tool()
	async def team_execute_step(
		camp_id: str,
		agent_id: str,
		step_id: str,
		instruction: str,
		expected_output: str = "",
		depends_on: str = "",
		assigned_to: str = "",
	) -> str:
		"""
		Run one delegation step with an agent and write its draft artifact.

		Args:
			camp_id: Camp identifier
			agent_id: Agent that runs the step
			step_id: Step identifier from the plan
			instruction: What the agent must do
			expected_output: Artifact name to produce (default "<step_id>.md")
			depends_on: Comma-separated step ids this step depends on
			assigned_to: Step assignee from the plan (default: agent_id)
		"""
		step = DelegationStep(
			step_id=step_id,
			assigned_to=assigned_to or agent_id,
			instruction=instruction,
			depends_on=_split_csv(depends_on),
			expected_output=expected_output,
		)
		try:
			result = await engine_for(camp_id).execute_agent_step(agent_id, step)
		except TeamError as e:
			return _error(e)
		return json.dumps({"success": True, "result": result.model_dump()}, indent=2)

	@mcp.tool()
	async def team_run_reflection(camp_id: str, artifact_path: str, rounds: int = 0) -> str:
		"""
		Run writer/critic reflection rounds on a draft, then promote it.

		Args:
			camp_id: Camp identifier
			artifact_path: Draft path, e.g. "artifacts/drafts/report.md" or "report.md"
			rounds: Rounds to run (0 = configured maximum)
		"""
		try:
			summary = await engine_for(camp_id).run_reflection_loop(artifact_path, rounds)
		except TeamError as e:
			return _error(e)
		return json.dumps({"success": True, "summary": summary.model_dump(by_alias=True)}, indent=2)

	@mcp.tool()
	async def team_promote_artifact(camp_id: str, draft_path: str, tags: str = "") -> str:
		"""
		Promote a draft artifact without reflection.

		Args:
			camp_id: Camp identifier
			draft_path: Draft path, with or without the artifacts/drafts/ prefix
			tags: Optional comma-separated tags recorded with the promotion
		"""
		try:
			promoted_path = await engine_for(camp_id).promote_artifact(draft_path, _split_csv(tags))
		except TeamError as e:
			return _error(e)
		return json.dumps({"success": True, "promoted_path": promoted_path})

	@mcp.tool()
	async def team_get_bus(camp_id: str, limit: int = 0) -> str:
		"""
		Get the team's event journal.

		Args:
			camp_id: Camp identifier
			limit: Return only the most recent N entries (0 = all)
		"""
		try:
			entries = await engine_for(camp_id).get_team_bus()
		except TeamError as e:
			return _error(e)
		if limit > 0:
			entries = entries[-limit:]
		return json.dumps({"count": len(entries), "entries": [e.to_dict() for e in entries]}, indent=2)

	@mcp.tool()
	async def team_get_status(camp_id: str) -> str:
		"""
		Get derived team status: roster, step states, usage and artifacts.

		Args:
			camp_id: Camp identifier
		"""
		try:
			status = await engine_for(camp_id).get_team_status()
		except TeamError as e:
			return _error(e)
		return json.dumps(status.model_dump(mode="json"), indent=2)
