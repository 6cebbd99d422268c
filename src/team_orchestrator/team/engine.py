"""
TeamEngine - the public operation surface for one camp.

Wires the injected services (chat completion, config/journal/artifact/
session stores, notification sink) into the roster manager, decomposer,
step executor, reflection engine and status aggregator. Every operation
runs to completion as one async unit of work; there is no cancellation
and no locking.
"""

import logging
from pathlib import Path
from typing import Optional

from ..config import Config
from ..errors import TeamConfigurationError
from .decomposer import TaskDecomposer
from .executor import StepExecutor
from .journal import Journal
from .layout import TeamLayout
from .messages import ChatCompletionService
from .models import (
	AgentMeta,
	AgentStepResult,
	BusEntry,
	DecompositionPlan,
	DelegationStep,
	ReflectionSummary,
	TeamAgentCreateInput,
	TeamConfig,
	TeamSettingsUpdateInput,
	TeamStatus,
)
from .notify import NotificationSink
from .reflection import ReflectionEngine
from .roster import RosterManager
from .session import FileSessionStore, SessionStore, resolve_camp_dir
from .status import build_team_status
from .store import (
	ArtifactStore,
	ConfigStore,
	FileArtifactStore,
	FileConfigStore,
	JournalStore,
	JsonlJournalStore,
	SqliteJournalStore,
)

logger = logging.getLogger(__name__)


def make_journal_store(layout: TeamLayout, backend: str) -> JournalStore:
	"""Journal backing store by name ("jsonl" or "sqlite")."""
	if backend == "jsonl":
		return JsonlJournalStore(layout.bus_path)
	if backend == "sqlite":
		return SqliteJournalStore(layout.bus_db_path)
	raise TeamConfigurationError(f"Unknown journal backend: {backend}")


class TeamEngine:
	"""
	Team orchestration for a single camp directory.

	The camp directory is the team root. Services default to the
	file-backed implementations; tests substitute fakes.
	"""

	def __init__(
		self,
		camp_dir: Path,
		chat: ChatCompletionService,
		config_store: Optional[ConfigStore] = None,
		journal_store: Optional[JournalStore] = None,
		artifact_store: Optional[ArtifactStore] = None,
		session_store: Optional[SessionStore] = None,
		sink: Optional[NotificationSink] = None,
	):
		self.layout = TeamLayout(Path(camp_dir))
		self.chat = chat
		self.config_store = config_store or FileConfigStore(self.layout)
		self.artifacts = artifact_store or FileArtifactStore(self.layout)
		self.session_store = session_store or FileSessionStore(self.layout.root)
		self.sink = sink
		self.journal = Journal(journal_store or JsonlJournalStore(self.layout.bus_path), sink)

		self.roster = RosterManager(self.layout, self.config_store, self.session_store)
		self.decomposer = TaskDecomposer(self.layout, chat, self.journal)
		self.executor = StepExecutor(
			self.layout, chat, self.journal, self.artifacts, self.session_store, sink
		)
		self.reflection = ReflectionEngine(
			self.layout, chat, self.journal, self.artifacts, self.session_store, sink
		)

	@classmethod
	def for_camp(
		cls,
		config: Config,
		camp_id: str,
		chat: ChatCompletionService,
		sink: Optional[NotificationSink] = None,
	) -> "TeamEngine":
		"""Engine for an existing camp under the configured camps root."""
		camp_dir = resolve_camp_dir(config.camps_root, camp_id)
		layout = TeamLayout(camp_dir)
		return cls(
			camp_dir,
			chat,
			journal_store=make_journal_store(layout, config.journal_backend),
			sink=sink,
		)

	async def load_team_config(self) -> TeamConfig:
		return await self.roster.load()

	async def create_agent(self, agent_input: TeamAgentCreateInput) -> AgentMeta:
		return await self.roster.create_or_replace_agent(agent_input)

	async def remove_agent(self, agent_id: str) -> TeamConfig:
		return await self.roster.remove_agent(agent_id)

	async def update_settings(self, settings: TeamSettingsUpdateInput) -> TeamStatus:
		await self.roster.update_settings(settings)
		return await self.get_team_status()

	async def decompose_task(self, user_task: str) -> DecompositionPlan:
		team_config = await self.roster.load()
		return await self.decomposer.decompose(team_config, user_task)

	async def execute_agent_step(self, agent_id: str, step: DelegationStep) -> AgentStepResult:
		team_config = await self.roster.load()
		return await self.executor.execute(team_config, agent_id, step)

	async def run_reflection_loop(self, artifact_path: str, rounds: int = 0) -> ReflectionSummary:
		team_config = await self.roster.load()
		return await self.reflection.run(team_config, artifact_path, rounds)

	async def promote_artifact(self, draft_path: str, tags: Optional[list[str]] = None) -> str:
		await self.roster.load()
		return await self.reflection.promote(draft_path, tags)

	async def get_team_bus(self) -> list[BusEntry]:
		await self.roster.load()
		return await self.journal.read_all()

	async def get_team_status(self) -> TeamStatus:
		"""Derived status; an empty status when the camp is not in team mode."""
		session = await self.session_store.read()
		if not session.is_team:
			return TeamStatus.inactive()

		team_config = await self.roster.load()
		entries = await self.journal.read_all()
		return build_team_status(
			team_config,
			entries,
			self.artifacts.list_drafts(),
			self.artifacts.list_promoted(),
		)
