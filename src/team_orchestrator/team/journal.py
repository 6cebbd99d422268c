"""
Event journal facade.

The journal is the single source of truth for orchestration history.
Entries are durably appended first; the live push happens afterwards and
cannot fail the append.
"""

import logging
from typing import Any, Optional

from .models import BusEntry, BusEntryType, BusTokenUsage
from .notify import BUS_UPDATE, NotificationSink, push_best_effort
from .store import JournalStore

logger = logging.getLogger(__name__)


def make_bus_entry(
	entry_type: BusEntryType,
	from_: str,
	to: str,
	step_id: Optional[str] = None,
	content: Any = None,
	token_usage: Optional[BusTokenUsage] = None,
) -> BusEntry:
	"""Build a new entry with a fresh id and timestamp."""
	return BusEntry(
		entry_type=entry_type,
		from_=from_,
		to=to,
		step_id=step_id,
		content=content,
		token_usage=token_usage.model_copy() if token_usage else BusTokenUsage(),
	)


class Journal:
	"""Append-only journal with an optional notification sink."""

	def __init__(self, store: JournalStore, sink: Optional[NotificationSink] = None):
		self.store = store
		self.sink = sink

	async def append(self, entry: BusEntry) -> BusEntry:
		await self.store.append_entry(entry)
		logger.debug(f"Journaled {entry.entry_type.value} {entry.from_} -> {entry.to} ({entry.id})")
		await push_best_effort(self.sink, BUS_UPDATE, entry.to_dict())
		return entry

	async def record(
		self,
		entry_type: BusEntryType,
		from_: str,
		to: str,
		step_id: Optional[str] = None,
		content: Any = None,
		token_usage: Optional[BusTokenUsage] = None,
	) -> BusEntry:
		"""Build and append an entry in one call."""
		entry = make_bus_entry(entry_type, from_, to, step_id, content, token_usage)
		return await self.append(entry)

	async def read_all(self) -> list[BusEntry]:
		return await self.store.read_entries()
