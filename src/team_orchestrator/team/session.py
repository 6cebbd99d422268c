"""
Parent session ("camp") record.

A camp directory holds camp.json plus, once in team mode, the team layout.
The orchestration layer only needs a few things from it: the base model,
the team-mode flag, and the update timestamp.
"""

import logging
from pathlib import Path
from typing import Optional, Protocol

from pydantic import BaseModel, ValidationError

from ..errors import TeamConfigurationError, TeamError, TeamStorageError
from .identifiers import validate_simple_identifier
from .models import now_timestamp_ms
from .store import read_json_file, write_json_file

logger = logging.getLogger(__name__)

CAMP_CONFIG_FILE = "camp.json"
CAMP_SCHEMA_VERSION = "0.2"


class SessionConfig(BaseModel):
	"""camp.json contents."""
	schema_version: str = CAMP_SCHEMA_VERSION
	id: str
	name: str = ""
	model: str = ""
	is_team: bool = False
	created_at: int = 0
	updated_at: int = 0


class SessionStore(Protocol):
	async def read(self) -> SessionConfig:
		...

	async def ensure_team_mode(self) -> SessionConfig:
		...

	async def mark_team_updated(self) -> None:
		...

	async def touch(self) -> None:
		...


class FileSessionStore:
	"""camp.json in the camp directory."""

	def __init__(self, camp_dir: Path):
		self.camp_dir = Path(camp_dir)

	@property
	def path(self) -> Path:
		return self.camp_dir / CAMP_CONFIG_FILE

	async def read(self) -> SessionConfig:
		data = read_json_file(self.path)
		if not isinstance(data, dict):
			raise TeamStorageError(f"{CAMP_CONFIG_FILE} must be a JSON object.", str(self.path))
		data.setdefault("id", self.camp_dir.name)
		try:
			return SessionConfig.model_validate(data)
		except ValidationError as e:
			raise TeamStorageError(f"Unable to parse {self.path}: {e}", str(self.path)) from e

	async def write(self, config: SessionConfig) -> None:
		write_json_file(self.path, config)

	async def ensure_team_mode(self) -> SessionConfig:
		"""Flip the session into team mode. Writes only when the flag changes."""
		config = await self.read()
		if not config.is_team:
			config.is_team = True
			config.updated_at = now_timestamp_ms()
			await self.write(config)
			logger.info(f"Camp {config.id} switched to team mode")
		return config

	async def mark_team_updated(self) -> None:
		config = await self.read()
		config.is_team = True
		config.updated_at = now_timestamp_ms()
		await self.write(config)

	async def touch(self) -> None:
		config = await self.read()
		config.updated_at = now_timestamp_ms()
		await self.write(config)


async def touch_best_effort(session_store: SessionStore) -> None:
	"""Bump the session timestamp after durable work; a failure is only logged."""
	try:
		await session_store.touch()
	except TeamError as e:
		logger.warning(f"Unable to update session timestamp: {e}")


def resolve_camp_dir(camps_root: Path, camp_id: str) -> Path:
	"""Validate a camp id and return its existing directory."""
	validated = validate_simple_identifier(camp_id, "camp_id")
	camp_dir = Path(camps_root) / validated
	if not camp_dir.is_dir():
		raise TeamConfigurationError("Camp not found.")
	return camp_dir


def create_camp(camps_root: Path, camp_id: str, model: str, name: Optional[str] = None) -> Path:
	"""Create a camp directory with a fresh camp.json. Existing camps are left alone."""
	validated = validate_simple_identifier(camp_id, "camp_id")
	camp_dir = Path(camps_root) / validated
	config_path = camp_dir / CAMP_CONFIG_FILE
	if config_path.exists():
		return camp_dir

	now = now_timestamp_ms()
	config = SessionConfig(
		id=validated,
		name=name or validated,
		model=model,
		created_at=now,
		updated_at=now,
	)
	camp_dir.mkdir(parents=True, exist_ok=True)
	write_json_file(config_path, config)
	logger.info(f"Created camp {validated} at {camp_dir}")
	return camp_dir
