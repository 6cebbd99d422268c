"""
Notification port for live observers.

Pushes are best-effort: a failing sink is logged and ignored, and never
touches durable state.
"""

import inspect
import logging
from typing import Any, Awaitable, Callable, Optional, Protocol, Union

logger = logging.getLogger(__name__)

BUS_UPDATE = "bus_update"
STEP_COMPLETE = "step_complete"
REFLECTION_ROUND = "reflection_round"
ARTIFACT_PROMOTED = "artifact_promoted"

NotifyCallback = Callable[[str, Any], Union[None, Awaitable[None]]]


class NotificationSink(Protocol):
	async def push(self, event: str, payload: Any) -> None:
		...


class NullSink:
	"""Drops every notification."""

	async def push(self, event: str, payload: Any) -> None:
		return None


class LoggingSink:
	"""Logs each notification at debug level."""

	async def push(self, event: str, payload: Any) -> None:
		logger.debug(f"team://{event} {payload}")


class CallbackSink:
	"""Forwards notifications to a sync or async callback."""

	def __init__(self, callback: NotifyCallback):
		self.callback = callback

	async def push(self, event: str, payload: Any) -> None:
		result = self.callback(event, payload)
		if inspect.isawaitable(result):
			await result


async def push_best_effort(sink: Optional[NotificationSink], event: str, payload: Any) -> None:
	"""Push to the sink, swallowing and logging any failure."""
	if sink is None:
		return
	try:
		await sink.push(event, payload)
	except Exception as e:
		logger.warning(f"Notification push failed for {event}: {e}")
