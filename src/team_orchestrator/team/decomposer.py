"""
Task Decomposer - turns a user task into a validated delegation plan.

The supervisor model sees the roster rendered into its system prompt and
must answer with a JSON plan. Models wrap JSON in prose or fences often
enough that parsing falls back through three stages before giving up.
The validated plan is journaled as one Decomposition entry followed by one
Delegation entry per step.
"""

import json
import logging
from typing import Optional, TypeVar

from pydantic import BaseModel, ValidationError

from ..errors import PlanParseError, TeamConfigurationError, TeamValidationError
from .identifiers import validate_simple_identifier
from .journal import Journal
from .layout import TeamLayout
from .messages import ChatCompletionService, SystemMessage, UserMessage, message_to_wire
from .models import (
	BROADCAST_ID,
	SUPERVISOR_ID,
	BusEntryType,
	DecompositionPlan,
	TeamConfig,
)
from .scaffold import AGENT_ROSTER_PLACEHOLDER, append_transcript, default_supervisor_prompt, read_prompt

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


def _try_parse(candidate: str, model: type[ModelT]) -> Optional[ModelT]:
	try:
		return model.model_validate(json.loads(candidate))
	except (json.JSONDecodeError, ValidationError, TypeError):
		return None


def _strip_fences(text: str) -> str:
	unwrapped = text
	while unwrapped.startswith("```json"):
		unwrapped = unwrapped[len("```json"):]
	while unwrapped.startswith("```"):
		unwrapped = unwrapped[len("```"):]
	while unwrapped.endswith("```"):
		unwrapped = unwrapped[:-len("```")]
	return unwrapped.strip()


def parse_json_from_output(raw: str, model: type[ModelT]) -> ModelT:
	"""
	Parse a pydantic model out of free-form model output.

	Stages:
		1. the trimmed output as-is
		2. with ```json / ``` fences stripped
		3. the substring between the first '{' and the last '}'

	Raises:
		PlanParseError: empty output, or every stage failed
	"""
	trimmed = (raw or "").strip()
	if not trimmed:
		raise PlanParseError("Model returned empty output where JSON was expected.")

	parsed = _try_parse(trimmed, model)
	if parsed is not None:
		return parsed

	unwrapped = _strip_fences(trimmed)
	parsed = _try_parse(unwrapped, model)
	if parsed is not None:
		return parsed

	start = unwrapped.find("{")
	end = unwrapped.rfind("}")
	if start != -1 and end != -1 and start < end:
		parsed = _try_parse(unwrapped[start:end + 1], model)
		if parsed is not None:
			return parsed

	raise PlanParseError("Unable to parse JSON payload from model output.")


def render_agent_roster(team_config: TeamConfig) -> str:
	"""One line per agent: id, role, model, tools, description."""
	if not team_config.agents:
		return "- No agents configured"

	lines = []
	for agent in team_config.agents:
		tools = ", ".join(agent.tool_subset) if agent.tool_subset else "none"
		description = agent.description.strip() or "No description"
		lines.append(
			f"- id: {agent.id}, role: {agent.role}, model: {agent.model}, "
			f"tools: [{tools}], description: {description}"
		)
	return "\n".join(lines)


def _step_identifier(value: str, field_name: str, context: str) -> str:
	try:
		return validate_simple_identifier(value, field_name)
	except TeamValidationError as e:
		raise TeamValidationError(f"{context}: {e}") from e


def validate_decomposition_plan(team_config: TeamConfig, plan: DecompositionPlan) -> DecompositionPlan:
	"""
	Validate a parsed plan against the roster and return the normalized copy.

	Dependencies must name steps of the same plan; cycles are not checked.

	Raises:
		TeamValidationError: naming the offending step
	"""
	plan = plan.model_copy(deep=True)

	if not plan.task_summary.strip():
		plan.task_summary = "Task decomposition"

	if not plan.steps:
		raise TeamValidationError("Supervisor returned no steps in decomposition plan.")

	roster = {agent.id for agent in team_config.agents}
	step_ids: set[str] = set()

	for index, step in enumerate(plan.steps, start=1):
		step.step_id = _step_identifier(
			step.step_id, "step_id", f"Decomposition step #{index} (`{step.step_id}`)"
		)
		context = f"Decomposition step `{step.step_id}`"
		if step.step_id in step_ids:
			raise TeamValidationError(f"Duplicate step_id `{step.step_id}` in decomposition plan.")
		step_ids.add(step.step_id)

		step.assigned_to = _step_identifier(step.assigned_to, "assigned_to", context)
		if step.assigned_to not in roster:
			raise TeamValidationError(
				f"Decomposition step `{step.step_id}` assigned to unknown agent `{step.assigned_to}`."
			)

		if not step.instruction.strip():
			raise TeamValidationError(f"Decomposition step `{step.step_id}` is missing instruction text.")

		if not step.expected_output.strip():
			step.expected_output = f"{step.step_id}.md"

		unique_deps: list[str] = []
		for dep in step.depends_on:
			normalized = _step_identifier(dep, "depends_on", context)
			if normalized not in unique_deps:
				unique_deps.append(normalized)
		step.depends_on = unique_deps

	for step in plan.steps:
		for dependency in step.depends_on:
			if dependency not in step_ids:
				raise TeamValidationError(
					f"Step `{step.step_id}` depends on unknown step `{dependency}`."
				)

	return plan


class TaskDecomposer:
	"""Runs the supervisor and journals the resulting plan."""

	def __init__(self, layout: TeamLayout, chat: ChatCompletionService, journal: Journal):
		self.layout = layout
		self.chat = chat
		self.journal = journal

	def build_system_prompt(self, team_config: TeamConfig) -> str:
		template = read_prompt(self.layout.supervisor_prompt, default_supervisor_prompt())
		return template.replace(AGENT_ROSTER_PLACEHOLDER, render_agent_roster(team_config))

	async def decompose(self, team_config: TeamConfig, user_task: str) -> DecompositionPlan:
		"""
		Decompose a user task into a validated, journaled plan.

		Raises:
			TeamConfigurationError: empty roster
			TeamValidationError: blank task, or an invalid plan
			ProviderError: the supervisor call failed
			PlanParseError: the supervisor did not return a usable plan
		"""
		if not team_config.agents:
			raise TeamConfigurationError("Team has no agents. Add at least one agent before decomposition.")

		task = (user_task or "").strip()
		if not task:
			raise TeamValidationError("user_task is required.")

		user_message = UserMessage(
			content=f"User task:\n{task}\n\nReturn ONLY valid JSON. Do not wrap in markdown fences."
		)
		messages = [SystemMessage(content=self.build_system_prompt(team_config)), user_message]

		logger.info(f"Decomposing task with supervisor model {team_config.supervisor_model}")
		response = await self.chat.send(team_config.supervisor_model, messages, None)

		append_transcript(self.layout.supervisor_transcript, [
			message_to_wire(user_message),
			{"role": "assistant", "content": response.output_text},
		])

		parsed = parse_json_from_output(response.output_text, DecompositionPlan)
		plan = validate_decomposition_plan(team_config, parsed)

		await self.journal.record(
			BusEntryType.DECOMPOSITION,
			SUPERVISOR_ID,
			BROADCAST_ID,
			content=plan.model_dump(mode="json"),
			token_usage=response.usage,
		)

		for step in plan.steps:
			await self.journal.record(
				BusEntryType.DELEGATION,
				SUPERVISOR_ID,
				step.assigned_to,
				step_id=step.step_id,
				content={
					"instruction": step.instruction,
					"depends_on": step.depends_on,
					"expected_output": step.expected_output,
				},
			)

		logger.info(f"Journaled plan '{plan.task_summary}' with {len(plan.steps)} steps")
		return plan
