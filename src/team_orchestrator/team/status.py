"""
Status Aggregator - derives a TeamStatus from the journal.

Nothing here is persisted. The most recent Decomposition entry is the
current plan; earlier plans are superseded, not merged.
"""

import logging
from typing import Any, Optional

from pydantic import ValidationError

from .models import (
	SUPERVISOR_ID,
	AgentState,
	BusEntry,
	BusEntryType,
	BusTokenUsage,
	DecompositionPlan,
	StepState,
	TeamAgentStatus,
	TeamArtifactsStatus,
	TeamConfig,
	TeamStatus,
	TeamStepStatus,
)

logger = logging.getLogger(__name__)

PREVIEW_LENGTH = 200

_STEP_TRANSITIONS = {
	BusEntryType.DELEGATION: StepState.RUNNING,
	BusEntryType.RESULT: StepState.COMPLETE,
	BusEntryType.ERROR: StepState.FAILED,
}


def preview_from_content(content: Any) -> Optional[str]:
	"""Single-line, trimmed, 200-character preview of string or `output_text` content."""
	text = None
	if isinstance(content, str):
		text = content
	elif isinstance(content, dict) and isinstance(content.get("output_text"), str):
		text = content["output_text"]

	if text is None:
		return None
	normalized = text.replace("\n", " ").strip()
	if not normalized:
		return None
	return normalized[:PREVIEW_LENGTH]


def latest_plan(entries: list[BusEntry]) -> Optional[DecompositionPlan]:
	for entry in reversed(entries):
		if entry.entry_type != BusEntryType.DECOMPOSITION:
			continue
		try:
			return DecompositionPlan.model_validate(entry.content)
		except ValidationError as e:
			logger.warning(f"Skipping unreadable decomposition entry {entry.id}: {e}")
			return None
	return None


def build_team_status(
	team_config: TeamConfig,
	entries: list[BusEntry],
	drafts: list[str],
	promoted: list[str],
) -> TeamStatus:
	"""
	Aggregate roster, journal and artifact listings into a TeamStatus.

	Args:
		team_config: Current roster and settings
		entries: Full journal, in append order
		drafts: Sorted draft listing
		promoted: Sorted promoted listing

	Returns:
		TeamStatus with per-step and per-agent derived state
	"""
	plan = latest_plan(entries)
	step_states: dict[str, StepState] = {}
	if plan is not None:
		for step in plan.steps:
			step_states[step.step_id] = StepState.PENDING

	usage_by_agent: dict[str, BusTokenUsage] = {}
	preview_by_agent: dict[str, str] = {}
	last_type_by_agent: dict[str, BusEntryType] = {}

	for entry in entries:
		if entry.from_ != SUPERVISOR_ID:
			usage_by_agent.setdefault(entry.from_, BusTokenUsage()).add(entry.token_usage)
			last_type_by_agent[entry.from_] = entry.entry_type
			if entry.entry_type == BusEntryType.RESULT:
				preview = preview_from_content(entry.content)
				if preview is not None:
					preview_by_agent[entry.from_] = preview

		if entry.step_id and entry.entry_type in _STEP_TRANSITIONS:
			step_states[entry.step_id] = _STEP_TRANSITIONS[entry.entry_type]

	steps = []
	if plan is not None:
		for step in plan.steps:
			steps.append(TeamStepStatus(
				step_id=step.step_id,
				assigned_to=step.assigned_to,
				expected_output=step.expected_output,
				status=step_states.get(step.step_id, StepState.PENDING),
			))

	agents = []
	for agent in team_config.agents:
		if any(s.assigned_to == agent.id and s.status == StepState.RUNNING for s in steps):
			state = AgentState.WORKING
		elif last_type_by_agent.get(agent.id) == BusEntryType.CRITIQUE:
			state = AgentState.REFLECTING
		else:
			state = AgentState.IDLE

		agents.append(TeamAgentStatus(
			id=agent.id,
			role=agent.role,
			model=agent.model,
			tool_subset=list(agent.tool_subset),
			status=state,
			token_usage=usage_by_agent.get(agent.id, BusTokenUsage()),
			last_output_preview=preview_by_agent.get(agent.id),
		))

	return TeamStatus(
		is_team=True,
		supervisor_model=team_config.supervisor_model,
		reflection_loops=team_config.reflection_loops,
		max_reflection_rounds=team_config.max_reflection_rounds,
		agents=agents,
		steps=steps,
		bus_entries=len(entries),
		artifacts=TeamArtifactsStatus(drafts=sorted(drafts), promoted=sorted(promoted)),
	)
