"""
Error taxonomy for team orchestration.

Every public operation raises one of these. The message is the
human-readable text callers surface verbatim; nothing here is retried.
"""

from typing import Optional


class TeamError(Exception):
	"""Base class for all orchestration errors."""
	pass


class TeamValidationError(TeamError):
	"""Bad identifiers, blank required fields, unknown agent/step references."""
	pass


class TeamConfigurationError(TeamError):
	"""The team is not set up for the requested operation."""
	pass


class ProviderError(TeamError):
	"""The chat-completion service failed (transport, HTTP, disabled provider)."""
	pass


class PlanParseError(TeamError):
	"""The model did not return usable JSON after every fallback stage."""
	pass


class TeamStorageError(TeamError):
	"""A filesystem or backing-store operation failed."""

	def __init__(self, message: str, path: Optional[str] = None):
		super().__init__(message)
		self.path = path


class SandboxEscapeError(TeamStorageError):
	"""A resolved path left the directory it was confined to."""

	def __init__(self, path: Optional[str] = None):
		super().__init__("Path escapes the agent context directory.", path)


class ToolExecutionError(TeamError):
	"""A sandboxed tool call failed. Reported back to the model, never raised out of the loop."""
	pass
