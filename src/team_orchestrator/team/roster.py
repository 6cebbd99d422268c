"""
Roster Manager - owns team configuration.

Every mutation re-reads the stored config, applies the change, normalizes,
writes it back and re-provisions the scaffold, so the filesystem and the
config never diverge. Each mutation also marks the parent session as a
team and bumps its update timestamp.
"""

import logging
import shutil

from ..errors import TeamConfigurationError, TeamStorageError, TeamValidationError
from .identifiers import normalize_tool_subset, validate_simple_identifier
from .layout import TeamLayout
from .models import (
	TEAM_DEFAULT_MAX_REFLECTION_ROUNDS,
	TEAM_MAX_AGENTS,
	TEAM_MAX_REFLECTION_ROUNDS,
	AgentConfig,
	AgentMeta,
	TeamAgentCreateInput,
	TeamConfig,
	TeamSettingsUpdateInput,
)
from .scaffold import ensure_agent_scaffold, ensure_team_scaffold
from .session import SessionStore
from .store import ConfigStore

logger = logging.getLogger(__name__)


def clamp_reflection_rounds(value: int) -> int:
	return max(1, min(int(value), TEAM_MAX_REFLECTION_ROUNDS))


def default_team_config(base_model: str) -> TeamConfig:
	return TeamConfig(
		is_team=True,
		supervisor_model=base_model,
		agents=[],
		reflection_loops=True,
		max_reflection_rounds=TEAM_DEFAULT_MAX_REFLECTION_ROUNDS,
	)


def normalize_team_config(team_config: TeamConfig, base_model: str) -> TeamConfig:
	"""
	Apply defaults and invariants to a loaded or edited config.

	Blank supervisor/agent models fall back to the session's base model,
	a zero round count becomes the default, rounds are capped at the
	maximum, and tool subsets are normalized.
	"""
	normalized = team_config.model_copy(deep=True)
	if not normalized.supervisor_model.strip():
		normalized.supervisor_model = base_model
	if normalized.max_reflection_rounds <= 0:
		normalized.max_reflection_rounds = TEAM_DEFAULT_MAX_REFLECTION_ROUNDS
	normalized.max_reflection_rounds = min(normalized.max_reflection_rounds, TEAM_MAX_REFLECTION_ROUNDS)

	for agent in normalized.agents:
		if not agent.model.strip():
			agent.model = base_model
		agent.tool_subset = normalize_tool_subset(agent.tool_subset)

	normalized.is_team = True
	return normalized


class RosterManager:
	"""Create, replace and remove agents; update team settings."""

	def __init__(self, layout: TeamLayout, config_store: ConfigStore, session_store: SessionStore):
		self.layout = layout
		self.config_store = config_store
		self.session_store = session_store

	async def load(self) -> TeamConfig:
		"""
		Load the normalized team config, switching the session into team mode.

		A missing config is created from defaults. The scaffold is always
		re-provisioned.
		"""
		session = await self.session_store.ensure_team_mode()
		stored = await self.config_store.load_config()
		if stored is None:
			team_config = default_team_config(session.model)
			await self.config_store.save_config(team_config)
			logger.info(f"Created default team config at {self.layout.team_json}")
		else:
			team_config = normalize_team_config(stored, session.model)

		ensure_team_scaffold(self.layout, team_config)
		return team_config

	async def save(self, team_config: TeamConfig) -> TeamConfig:
		"""Normalize, persist, re-provision, and mark the session updated."""
		session = await self.session_store.read()
		normalized = normalize_team_config(team_config, session.model)
		await self.config_store.save_config(normalized)
		ensure_team_scaffold(self.layout, normalized)
		await self.session_store.mark_team_updated()
		return normalized

	async def create_or_replace_agent(self, agent_input: TeamAgentCreateInput) -> AgentMeta:
		"""
		Upsert an agent by id.

		Raises:
			TeamValidationError: blank id/role/model or unsafe id
			TeamConfigurationError: adding a new agent to a full roster
		"""
		team_config = await self.load()

		agent_id = validate_simple_identifier(agent_input.id, "agent_config.id")
		exists = team_config.find_agent(agent_id) is not None
		if len(team_config.agents) >= TEAM_MAX_AGENTS and not exists:
			raise TeamConfigurationError(
				f"A team can have at most {TEAM_MAX_AGENTS} agents. Remove one before adding another."
			)

		role = agent_input.role.strip()
		if not role:
			raise TeamValidationError("agent_config.role is required.")

		model = agent_input.model.strip()
		if not model:
			raise TeamValidationError("agent_config.model is required.")

		agent = AgentConfig(
			id=agent_id,
			role=role,
			model=model,
			tool_subset=normalize_tool_subset(agent_input.tool_subset),
			description=agent_input.description.strip(),
		)

		if exists:
			team_config.agents = [agent if a.id == agent_id else a for a in team_config.agents]
		else:
			team_config.agents.append(agent)
		team_config.agents.sort(key=lambda a: a.id.lower())

		await self.save(team_config)
		ensure_agent_scaffold(self.layout, agent)
		logger.info(f"{'Replaced' if exists else 'Added'} agent {agent_id} ({role}, {model})")

		return AgentMeta(
			id=agent.id,
			role=agent.role,
			model=agent.model,
			tool_subset=list(agent.tool_subset),
			description=agent.description,
			path=str(self.layout.agent_dir(agent.id)),
		)

	async def remove_agent(self, agent_id: str) -> TeamConfig:
		"""
		Remove an agent and delete its directory.

		Raises:
			TeamValidationError: unknown or unsafe id
		"""
		team_config = await self.load()
		normalized_id = validate_simple_identifier(agent_id, "agent_id")

		remaining = [a for a in team_config.agents if a.id != normalized_id]
		if len(remaining) == len(team_config.agents):
			raise TeamValidationError("Agent not found in team roster.")
		team_config.agents = remaining

		target_dir = self.layout.agent_dir(normalized_id)
		if target_dir.exists():
			try:
				shutil.rmtree(target_dir)
			except OSError as e:
				raise TeamStorageError(f"Unable to remove agent folder: {e}", str(target_dir)) from e

		saved = await self.save(team_config)
		logger.info(f"Removed agent {normalized_id}")
		return saved

	async def update_settings(self, settings: TeamSettingsUpdateInput) -> TeamConfig:
		"""Set supervisor model, reflection flag and round cap (clamped to 1..8)."""
		team_config = await self.load()

		supervisor_model = settings.supervisor_model.strip()
		if not supervisor_model:
			raise TeamValidationError("supervisor_model is required.")

		team_config.supervisor_model = supervisor_model
		team_config.reflection_loops = settings.reflection_loops
		team_config.max_reflection_rounds = clamp_reflection_rounds(settings.max_reflection_rounds)

		saved = await self.save(team_config)
		logger.info(
			f"Updated team settings: supervisor={saved.supervisor_model}, "
			f"reflection_loops={saved.reflection_loops}, max_rounds={saved.max_reflection_rounds}"
		)
		return saved
