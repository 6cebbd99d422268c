"""
Reflection Engine - writer/critic review rounds over a draft artifact.

Each round the critic returns a structured verdict, journaled whether or
not it passes. A failing verdict is followed by a writer revision that
overwrites the draft in place, unless reflection is disabled or the round
budget is spent. The draft is promoted after the loop in every case; the
verdict only shows up in the summary.
"""

import json
import logging
from pathlib import Path
from typing import Any, Optional

from ..errors import TeamConfigurationError, TeamStorageError
from .decomposer import parse_json_from_output
from .identifiers import normalize_artifact_tags
from .journal import Journal
from .layout import TeamLayout
from .messages import ChatCompletionService, SystemMessage, UserMessage
from .models import (
	BROADCAST_ID,
	SUPERVISOR_ID,
	AgentConfig,
	BusEntryType,
	BusTokenUsage,
	CritiqueResult,
	ReflectionSummary,
	TeamConfig,
)
from .notify import ARTIFACT_PROMOTED, REFLECTION_ROUND, NotificationSink, push_best_effort
from .scaffold import default_agent_prompt, read_prompt
from .session import SessionStore, touch_best_effort
from .store import ArtifactStore

logger = logging.getLogger(__name__)

WRITER_ROLE = "writer"
CRITIC_ROLE = "critic"


def resolve_round_budget(requested: int, configured_max: int) -> int:
	"""0 means the configured maximum; anything else is capped at it."""
	max_rounds = max(configured_max, 1)
	if requested <= 0:
		return max_rounds
	return min(requested, max_rounds)


def critic_request(artifact_body: str) -> str:
	return (
		"Review this artifact. Output structured critique as JSON with fields: "
		"issues: string[], suggestions: string[], pass: boolean.\n\n"
		f"Artifact:\n\n{artifact_body}"
	)


def writer_request(artifact_body: str, critique: CritiqueResult) -> str:
	critique_json = json.dumps(critique.model_dump(by_alias=True), indent=2)
	return (
		"Revise this artifact based on the critique. Output only the revised artifact text.\n\n"
		f"Current artifact:\n\n{artifact_body}\n\n"
		f"Critique JSON:\n{critique_json}"
	)


class ReflectionEngine:
	"""Runs reflection loops and promotes drafts."""

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

	async def _single_prompt(self, agent: AgentConfig, user_prompt: str) -> tuple[str, BusTokenUsage]:
		system_prompt = read_prompt(self.layout.agent_prompt(agent.id), default_agent_prompt(agent))
		response = await self.chat.send(
			agent.model,
			[SystemMessage(content=system_prompt), UserMessage(content=user_prompt)],
			None,
		)
		return response.output_text.strip(), response.usage

	async def run(self, team_config: TeamConfig, artifact_path: str, rounds: int) -> ReflectionSummary:
		"""
		Run up to `rounds` critique rounds, then promote the draft.

		Args:
			team_config: Current roster and reflection settings
			artifact_path: Draft path, with or without the artifacts/drafts/ prefix
			rounds: Requested rounds (0 = configured maximum)

		Raises:
			TeamConfigurationError: no writer or no critic on the roster
			PlanParseError: the critic did not return a usable verdict
		"""
		writer = team_config.find_agent_by_role(WRITER_ROLE)
		if writer is None:
			raise TeamConfigurationError("Team is missing a Writer agent required for reflection loop.")
		critic = team_config.find_agent_by_role(CRITIC_ROLE)
		if critic is None:
			raise TeamConfigurationError("Team is missing a Critic agent required for reflection loop.")

		budget = resolve_round_budget(rounds, team_config.max_reflection_rounds)
		draft_path = self.artifacts.resolve_draft(artifact_path)
		try:
			artifact_body = draft_path.read_text(encoding="utf-8")
		except OSError as e:
			raise TeamStorageError(f"Unable to read draft artifact: {e}", str(draft_path)) from e

		logger.info(f"Reflection on {artifact_path}: writer={writer.id}, critic={critic.id}, rounds={budget}")

		critiques: list[CritiqueResult] = []
		passed = False
		rounds_completed = 0

		for round_number in range(1, budget + 1):
			rounds_completed = round_number

			critique_raw, critique_usage = await self._single_prompt(critic, critic_request(artifact_body))
			critique = parse_json_from_output(critique_raw, CritiqueResult)
			critiques.append(critique)

			await self.journal.record(
				BusEntryType.CRITIQUE,
				critic.id,
				SUPERVISOR_ID,
				content={
					"round": round_number,
					"issues": critique.issues,
					"suggestions": critique.suggestions,
					"pass": critique.pass_,
				},
				token_usage=critique_usage,
			)
			await push_best_effort(self.sink, REFLECTION_ROUND, {
				"round": round_number,
				"artifact_path": artifact_path,
				"critique": critique.model_dump(by_alias=True),
			})
			logger.info(f"Round {round_number}: pass={critique.pass_}, {len(critique.issues)} issue(s)")

			if critique.pass_:
				passed = True
				break

			if not team_config.reflection_loops or round_number >= budget:
				break

			revision, writer_usage = await self._single_prompt(writer, writer_request(artifact_body, critique))
			artifact_body = revision
			await self.artifacts.overwrite_draft(draft_path, artifact_body)

			await self.journal.record(
				BusEntryType.RESULT,
				writer.id,
				critic.id,
				content={
					"round": round_number,
					"artifact_path": artifact_path,
					"output_text": revision,
				},
				token_usage=writer_usage,
			)

		from_path, promoted_path = await self._promote(
			draft_path, {"pass": passed, "rounds_completed": rounds_completed}
		)

		return ReflectionSummary(
			artifact_path=from_path,
			promoted_path=promoted_path,
			rounds_completed=rounds_completed,
			pass_=passed,
			critiques=critiques,
		)

	async def promote(self, draft_path: str, tags: Optional[list[str]] = None) -> str:
		"""
		Move a draft into the promoted set without reflection.

		Returns:
			Team-relative promoted path
		"""
		source = self.artifacts.resolve_draft(draft_path)
		extra: dict[str, Any] = {}
		if tags:
			normalized = normalize_artifact_tags(tags)
			if normalized:
				extra["tags"] = normalized
		_, promoted_path = await self._promote(source, extra)
		return promoted_path

	async def _promote(self, source: Path, extra: dict[str, Any]) -> tuple[str, str]:
		from_path, promoted_path = await self.artifacts.move_to_promoted(source)
		content = {"from": from_path, "to": promoted_path, **extra}

		await self.journal.record(BusEntryType.PROMOTION, SUPERVISOR_ID, BROADCAST_ID, content=content)
		await push_best_effort(self.sink, ARTIFACT_PROMOTED, content)
		await touch_best_effort(self.session_store)

		logger.info(f"Promoted {from_path} -> {promoted_path}")
		return from_path, promoted_path
