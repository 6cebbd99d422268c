"""
Step Executor - runs one delegated step for one agent.

The agent gets a single user turn describing the step and may call its
allowed tools for up to TEAM_MAX_TOOL_LOOPS request/response round trips.
Tool calls within one assistant turn run sequentially. Running out of
iterations is not an error: the last captured text becomes the output.
"""

import logging
from pathlib import Path
from typing import Any, Optional

from ..errors import TeamError, TeamValidationError
from .identifiers import sanitize_filename, validate_simple_identifier
from .journal import Journal
from .layout import TeamLayout
from .messages import (
	AssistantMessage,
	ChatCompletionService,
	ChatMessage,
	SystemMessage,
	ToolMessage,
	UserMessage,
	message_to_wire,
)
from .models import (
	SUPERVISOR_ID,
	TEAM_MAX_TOOL_LOOPS,
	AgentConfig,
	AgentStepResult,
	BusEntryType,
	BusTokenUsage,
	DelegationStep,
	TeamConfig,
)
from .notify import STEP_COMPLETE, NotificationSink, push_best_effort
from .sandbox import ToolSandbox, describe_tools, prepare_context_root, tool_call_id_for, tool_name_for
from .scaffold import append_transcript, default_agent_prompt, read_agent_tools, read_prompt
from .session import SessionStore, touch_best_effort
from .store import ArtifactStore

logger = logging.getLogger(__name__)


def build_step_message(agent: AgentConfig, step: DelegationStep) -> str:
	dependencies = ", ".join(step.depends_on) if step.depends_on else "none"
	return (
		f"Delegation step id: {step.step_id}\n"
		f"Assigned role: {agent.role}\n"
		"\n"
		f"Instruction:\n{step.instruction.strip()}\n"
		"\n"
		f"Dependencies: {dependencies}\n"
		"\n"
		f"Expected output:\n{step.expected_output.strip()}\n"
		"\n"
		"When complete, provide the final result text for this step."
	)


class StepExecutor:
	"""Executes a DelegationStep with the assigned agent's model and tools."""

	def __init__(
		self,
		layout: TeamLayout,
		chat: ChatCompletionService,
		journal: Journal,
		artifacts: ArtifactStore,
		session_store: SessionStore,
		sink: Optional[NotificationSink] = None,
	):
		self.layout = layout
		self.chat = chat
		self.journal = journal
		self.artifacts = artifacts
		self.session_store = session_store
		self.sink = sink

	async def _run_tool_loop(
		self,
		agent: AgentConfig,
		messages: list[ChatMessage],
		tools: Optional[list[dict[str, Any]]],
		sandbox: ToolSandbox,
		transcript: list[dict[str, Any]],
	) -> tuple[str, BusTokenUsage]:
		usage = BusTokenUsage()
		final_output = ""

		for iteration in range(1, TEAM_MAX_TOOL_LOOPS + 1):
			response = await self.chat.send(agent.model, messages, tools)
			usage.add(response.usage)
			final_output = response.output_text.strip()

			assistant = AssistantMessage(content=response.output_text, tool_calls=response.tool_calls)
			messages.append(assistant)
			transcript.append(message_to_wire(assistant))

			if not response.tool_calls:
				break

			logger.debug(f"{agent.id} iteration {iteration}: {len(response.tool_calls)} tool call(s)")
			for call in response.tool_calls:
				call_id = tool_call_id_for(call)
				content = sandbox.execute(call.model_copy(update={"id": call_id}))
				tool_message = ToolMessage(tool_call_id=call_id, name=tool_name_for(call), content=content)
				messages.append(tool_message)
				transcript.append(message_to_wire(tool_message))
		else:
			logger.info(f"{agent.id} hit the {TEAM_MAX_TOOL_LOOPS}-iteration tool loop limit")

		return final_output, usage

	async def execute(self, team_config: TeamConfig, agent_id: str, step: DelegationStep) -> AgentStepResult:
		"""
		Run a step and write its output as a draft artifact.

		Args:
			team_config: Current roster
			agent_id: Agent that must match step.assigned_to
			step: The delegation step to run

		Returns:
			AgentStepResult, also journaled as a Result entry

		Raises:
			TeamValidationError: mismatched or unknown agent, bad identifiers
			ProviderError: the chat call failed (journaled as an Error entry)
		"""
		agent_id = validate_simple_identifier(agent_id, "agent_id")
		step_id = validate_simple_identifier(step.step_id, "step.step_id")
		if validate_simple_identifier(step.assigned_to, "step.assigned_to") != agent_id:
			raise TeamValidationError("Requested agent does not match step.assigned_to.")

		agent = team_config.find_agent(agent_id)
		if agent is None:
			raise TeamValidationError("Agent not found in team roster.")

		system_prompt = read_prompt(self.layout.agent_prompt(agent.id), default_agent_prompt(agent))
		allowed_tools = read_agent_tools(self.layout, agent)
		tools = describe_tools(allowed_tools)
		sandbox = ToolSandbox(prepare_context_root(self.layout.agent_context(agent.id)), allowed_tools)

		user_message = UserMessage(content=build_step_message(agent, step))
		messages: list[ChatMessage] = [SystemMessage(content=system_prompt), user_message]
		transcript = [message_to_wire(user_message)]

		logger.info(f"Executing step {step_id} with {agent.id} ({agent.model})")
		try:
			final_output, usage = await self._run_tool_loop(agent, messages, tools, sandbox, transcript)

			fallback_stem = Path(sanitize_filename(step_id, "step.md")).stem
			draft_name = sanitize_filename(step.expected_output, f"{step_id}-{agent.id}.md")
			draft_path = await self.artifacts.write_draft(draft_name, fallback_stem, final_output)
		except TeamError as e:
			append_transcript(self.layout.agent_transcript(agent.id), transcript)
			await self.journal.record(
				BusEntryType.ERROR,
				agent.id,
				SUPERVISOR_ID,
				step_id=step_id,
				content={"error": str(e)},
			)
			raise

		result = AgentStepResult(
			step_id=step_id,
			agent_id=agent.id,
			output_text=final_output,
			draft_path=draft_path,
			context_writes=list(sandbox.writes),
			token_usage=usage,
		)

		await self.journal.record(
			BusEntryType.RESULT,
			agent.id,
			SUPERVISOR_ID,
			step_id=step_id,
			content={
				"output_text": result.output_text,
				"draft_path": result.draft_path,
				"context_writes": result.context_writes,
			},
			token_usage=usage,
		)
		await push_best_effort(self.sink, STEP_COMPLETE, result.model_dump(mode="json"))
		await touch_best_effort(self.session_store)
		append_transcript(self.layout.agent_transcript(agent.id), transcript)

		logger.info(f"Step {step_id} complete: {draft_path} ({usage.input} in / {usage.output} out)")
		return result
