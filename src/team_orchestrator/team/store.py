"""
Team Stores - persistence behind narrow repository interfaces.

Features:
- ConfigStore: authoritative team.json snapshot
- JournalStore: append-only event journal (JSON lines, or SQLite via aiosqlite)
- ArtifactStore: draft writes, promotion moves, directory listings

No advisory or OS-level locks are taken; every store assumes a single writer.
"""

import itertools
import json
import logging
import os
from pathlib import Path
from typing import Any, Iterator, Optional, Protocol

import aiosqlite
from pydantic import BaseModel, ValidationError

from ..errors import SandboxEscapeError, TeamStorageError, TeamValidationError
from .identifiers import validate_relative_path
from .layout import DRAFTS_PREFIX, PROMOTED_PREFIX, TeamLayout
from .models import BusEntry, TeamConfig, now_timestamp_ms

logger = logging.getLogger(__name__)


# =============================================================================
# JSON file helpers
# =============================================================================

def write_json_file(path: Path, value: Any) -> None:
	"""Write pretty JSON, creating parent folders."""
	if isinstance(value, BaseModel):
		payload = value.model_dump(mode="json", by_alias=True)
	else:
		payload = value
	try:
		path.parent.mkdir(parents=True, exist_ok=True)
		path.write_text(json.dumps(payload, indent=2) + "\n", encoding="utf-8")
	except OSError as e:
		raise TeamStorageError(f"Unable to write file {path}: {e}", str(path)) from e


def read_json_file(path: Path) -> Any:
	try:
		raw = path.read_text(encoding="utf-8")
	except OSError as e:
		raise TeamStorageError(f"Unable to read file {path}: {e}", str(path)) from e
	try:
		return json.loads(raw)
	except json.JSONDecodeError as e:
		raise TeamStorageError(f"Unable to parse JSON {path}: {e}", str(path)) from e


def write_text_if_missing(path: Path, contents: str) -> None:
	"""Create a text file unless something already exists there."""
	if path.exists():
		return
	try:
		path.parent.mkdir(parents=True, exist_ok=True)
		path.write_text(contents, encoding="utf-8")
	except OSError as e:
		raise TeamStorageError(f"Unable to write file {path}: {e}", str(path)) from e


def ensure_within_root(root: Path, target: Path) -> None:
	"""Prefix check on canonical paths. Raises SandboxEscapeError when target leaves root."""
	if not target.is_relative_to(root):
		raise SandboxEscapeError(str(target))


def to_relative_display(root: Path, path: Path) -> str:
	"""Forward-slash path of `path` relative to `root`; directories get a trailing '/'."""
	try:
		relative = path.relative_to(root)
	except ValueError as e:
		raise TeamStorageError("Resolved path is outside root.", str(path)) from e
	display = relative.as_posix()
	if display == ".":
		display = ""
	if path.is_dir() and display and not display.endswith("/"):
		display += "/"
	return display


def collect_files(root: Path, current: Optional[Path] = None) -> list[str]:
	"""Recursive file listing under canonical `root`, confined to it, sorted."""
	current = current or root
	files: list[str] = []
	if not current.exists():
		return files

	try:
		entries = list(current.iterdir())
	except OSError as e:
		raise TeamStorageError(f"Unable to read directory {current}: {e}", str(current)) from e

	for entry in entries:
		canonical = entry.resolve()
		ensure_within_root(root, canonical)
		if canonical.is_dir():
			files.extend(collect_files(root, canonical))
		elif canonical.is_file():
			files.append(to_relative_display(root, canonical))

	files.sort()
	return files


# =============================================================================
# Config store
# =============================================================================

class ConfigStore(Protocol):
	async def load_config(self) -> Optional[TeamConfig]:
		"""Stored config, or None when none has been written yet."""
		...

	async def save_config(self, config: TeamConfig) -> None:
		...


class FileConfigStore:
	"""team.json in the team root."""

	def __init__(self, layout: TeamLayout):
		self.layout = layout

	async def load_config(self) -> Optional[TeamConfig]:
		path = self.layout.team_json
		if not path.exists():
			return None
		data = read_json_file(path)
		try:
			return TeamConfig.model_validate(data)
		except ValidationError as e:
			raise TeamStorageError(f"Unable to parse team config {path}: {e}", str(path)) from e

	async def save_config(self, config: TeamConfig) -> None:
		write_json_file(self.layout.team_json, config)


# =============================================================================
# Journal stores
# =============================================================================

class JournalStore(Protocol):
	async def append_entry(self, entry: BusEntry) -> None:
		...

	async def read_entries(self) -> list[BusEntry]:
		"""All entries in append order."""
		...


class JsonlJournalStore:
	"""
	team_bus.jsonl: one JSON object per line.

	Each append opens the file, writes one line and flushes. Reading skips
	blank lines and fails on the first malformed one.
	"""

	def __init__(self, path: Path):
		self.path = Path(path)

	async def append_entry(self, entry: BusEntry) -> None:
		serialized = entry.to_json() + "\n"
		try:
			self.path.parent.mkdir(parents=True, exist_ok=True)
			with open(self.path, "a", encoding="utf-8") as f:
				f.write(serialized)
				f.flush()
		except OSError as e:
			raise TeamStorageError(f"Unable to append team bus entry to {self.path}: {e}", str(self.path)) from e

	async def read_entries(self) -> list[BusEntry]:
		if not self.path.exists():
			return []

		entries: list[BusEntry] = []
		try:
			with open(self.path, encoding="utf-8") as f:
				for line in f:
					trimmed = line.strip()
					if not trimmed:
						continue
					try:
						entries.append(BusEntry.model_validate_json(trimmed))
					except ValidationError as e:
						raise TeamStorageError(
							f"Unable to parse team bus entry: {e}", str(self.path)
						) from e
		except OSError as e:
			raise TeamStorageError(f"Unable to open team bus file {self.path}: {e}", str(self.path)) from e

		return entries


class SqliteJournalStore:
	"""
	SQLite-backed journal, a drop-in alternative to the JSON lines file.

	Each call opens its own connection, so the store needs no explicit
	lifecycle. Append order is the autoincrement sequence.

	Usage:
		store = SqliteJournalStore(layout.bus_db_path)
		await store.append_entry(entry)
		entries = await store.read_entries()
	"""

	def __init__(self, db_path: Path):
		self.db_path = Path(db_path)
		self.db_path.parent.mkdir(parents=True, exist_ok=True)

	async def _ensure_schema(self, db: aiosqlite.Connection) -> None:
		await db.execute("""
			CREATE TABLE IF NOT EXISTS bus_entries (
				seq INTEGER PRIMARY KEY AUTOINCREMENT,
				id TEXT NOT NULL UNIQUE,
				timestamp TEXT NOT NULL,
				type TEXT NOT NULL,
				data TEXT NOT NULL
			)
		""")

	async def append_entry(self, entry: BusEntry) -> None:
		try:
			async with aiosqlite.connect(str(self.db_path)) as db:
				await self._ensure_schema(db)
				await db.execute(
					"INSERT INTO bus_entries (id, timestamp, type, data) VALUES (?, ?, ?, ?)",
					(entry.id, entry.timestamp, entry.entry_type.value, entry.to_json()),
				)
				await db.commit()
		except aiosqlite.Error as e:
			raise TeamStorageError(f"Unable to append team bus entry: {e}", str(self.db_path)) from e

	async def read_entries(self) -> list[BusEntry]:
		if not self.db_path.exists():
			return []
		try:
			async with aiosqlite.connect(str(self.db_path)) as db:
				await self._ensure_schema(db)
				async with db.execute("SELECT data FROM bus_entries ORDER BY seq") as cursor:
					rows = await cursor.fetchall()
		except aiosqlite.Error as e:
			raise TeamStorageError(f"Unable to read team bus: {e}", str(self.db_path)) from e
		try:
			return [BusEntry.model_validate_json(row[0]) for row in rows]
		except ValidationError as e:
			raise TeamStorageError(f"Unable to parse team bus entry: {e}", str(self.db_path)) from e


# =============================================================================
# Artifact store
# =============================================================================

class ArtifactStore(Protocol):
	async def write_draft(self, filename: str, fallback_stem: str, content: str) -> str:
		...

	async def overwrite_draft(self, draft_path: Path, content: str) -> None:
		...

	def resolve_draft(self, artifact_path: str) -> Path:
		...

	async def move_to_promoted(self, draft_full_path: Path) -> tuple[str, str]:
		...

	def list_drafts(self) -> list[str]:
		...

	def list_promoted(self) -> list[str]:
		...


def _candidate_names(filename: str, stem: str, extension: str) -> Iterator[str]:
	"""`filename`, then `<stem>-<ms>.<ext>`, then numbered variants of that."""
	yield filename
	base = f"{stem}-{now_timestamp_ms()}"
	yield f"{base}.{extension}"
	for counter in itertools.count(1):
		yield f"{base}-{counter}.{extension}"


class FileArtifactStore:
	"""artifacts/drafts and artifacts/promoted under the team root."""

	def __init__(self, layout: TeamLayout):
		self.layout = layout

	def _canonical(self, directory: Path, label: str) -> Path:
		try:
			directory.mkdir(parents=True, exist_ok=True)
			return directory.resolve(strict=True)
		except OSError as e:
			raise TeamStorageError(f"Unable to resolve {label} folder: {e}", str(directory)) from e

	async def write_draft(self, filename: str, fallback_stem: str, content: str) -> str:
		"""
		Write a new draft and return its team-relative path.

		An existing file is never overwritten: the draft falls back to
		`<fallback_stem>-<ms timestamp>.md`, then `-1`, `-2`, ... suffixes.
		"""
		drafts = self._canonical(self.layout.drafts_dir, "drafts")
		for name in _candidate_names(filename, fallback_stem, "md"):
			target = drafts / name
			try:
				with open(target, "x", encoding="utf-8") as f:
					f.write(content)
			except FileExistsError:
				continue
			except OSError as e:
				raise TeamStorageError(f"Unable to write draft artifact: {e}", str(target)) from e
			return f"{DRAFTS_PREFIX}/{name}"

	async def overwrite_draft(self, draft_path: Path, content: str) -> None:
		try:
			draft_path.write_text(content, encoding="utf-8")
		except OSError as e:
			raise TeamStorageError(f"Unable to update draft during reflection: {e}", str(draft_path)) from e

	def resolve_draft(self, artifact_path: str) -> Path:
		"""
		Resolve a draft reference to its canonical file.

		Accepts the path with or without the `artifacts/drafts/` prefix.
		"""
		trimmed = (artifact_path or "").strip()
		if not trimmed:
			raise TeamValidationError("artifact_path is required.")

		relative = trimmed
		for prefix in (f"{DRAFTS_PREFIX}/", DRAFTS_PREFIX.replace("/", "\\") + "\\"):
			if trimmed.startswith(prefix):
				relative = trimmed[len(prefix):]
				break

		relative_path = validate_relative_path(relative, "artifact_path")
		drafts_root = self._canonical(self.layout.drafts_dir, "drafts")
		full_path = drafts_root / relative_path
		try:
			canonical = full_path.resolve(strict=True)
		except OSError as e:
			raise TeamStorageError(f"Unable to resolve draft artifact path: {e}", str(full_path)) from e
		ensure_within_root(drafts_root, canonical)

		if not canonical.is_file():
			raise TeamValidationError("artifact_path must point to a draft file.")

		return canonical

	def _unique_promoted_target(self, promoted_root: Path, source_filename: str) -> Path:
		source = Path(source_filename)
		stem = source.stem or "artifact"
		extension = source.suffix.lstrip(".") or "md"
		for name in _candidate_names(source_filename, stem, extension):
			target = promoted_root / name
			if not target.exists():
				return target

	async def move_to_promoted(self, draft_full_path: Path) -> tuple[str, str]:
		"""
		Move (not copy) a draft into the promoted set.

		Returns:
			(team-relative draft path, team-relative promoted path)
		"""
		drafts_root = self._canonical(self.layout.drafts_dir, "drafts")
		promoted_root = self._canonical(self.layout.promoted_dir, "promoted")

		try:
			source = draft_full_path.resolve(strict=True)
		except OSError as e:
			raise TeamStorageError(f"Unable to resolve draft artifact path: {e}", str(draft_full_path)) from e
		ensure_within_root(drafts_root, source)

		target = self._unique_promoted_target(promoted_root, source.name)
		try:
			os.replace(source, target)
		except OSError as e:
			raise TeamStorageError(f"Unable to promote artifact: {e}", str(source)) from e

		canonical_target = target.resolve()
		ensure_within_root(promoted_root, canonical_target)

		draft_relative = source.relative_to(drafts_root).as_posix()
		promoted_relative = to_relative_display(promoted_root, canonical_target)
		return f"{DRAFTS_PREFIX}/{draft_relative}", f"{PROMOTED_PREFIX}/{promoted_relative}"

	def list_drafts(self) -> list[str]:
		if not self.layout.drafts_dir.exists():
			return []
		root = self.layout.drafts_dir.resolve()
		return collect_files(root)

	def list_promoted(self) -> list[str]:
		if not self.layout.promoted_dir.exists():
			return []
		root = self.layout.promoted_dir.resolve()
		return collect_files(root)
