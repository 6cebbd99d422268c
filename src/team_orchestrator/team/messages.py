"""
Chat message variants and the chat-completion service interface.

Messages are tagged by `role`; each variant carries only the fields that
role needs. They are converted to the OpenAI-style wire shape once, at the
service boundary.
"""

import json
from typing import Annotated, Any, Literal, Optional, Protocol, Union

from pydantic import BaseModel, Field, TypeAdapter

from .models import BusTokenUsage


class ToolCall(BaseModel):
	"""A function call requested by the assistant."""
	id: str = ""
	name: str = ""
	arguments: str = "{}"

	def parsed_arguments(self) -> dict[str, Any]:
		"""Decode the JSON argument string. Raises ValueError on bad JSON or a non-object."""
		raw = self.arguments or "{}"
		try:
			parsed = json.loads(raw)
		except json.JSONDecodeError as e:
			raise ValueError(f"Invalid tool arguments JSON: {e}") from e
		if not isinstance(parsed, dict):
			raise ValueError("Invalid tool arguments JSON: expected an object")
		return parsed

	def to_wire(self) -> dict[str, Any]:
		return {
			"id": self.id,
			"type": "function",
			"function": {"name": self.name, "arguments": self.arguments},
		}

	@classmethod
	def from_wire(cls, payload: dict[str, Any]) -> "ToolCall":
		function = payload.get("function") or {}
		arguments = function.get("arguments", "{}")
		if not isinstance(arguments, str):
			arguments = json.dumps(arguments)
		return cls(
			id=payload.get("id") or "",
			name=function.get("name") or "",
			arguments=arguments,
		)


class SystemMessage(BaseModel):
	role: Literal["system"] = "system"
	content: str


class UserMessage(BaseModel):
	role: Literal["user"] = "user"
	content: str


class AssistantMessage(BaseModel):
	role: Literal["assistant"] = "assistant"
	content: str = ""
	tool_calls: list[ToolCall] = Field(default_factory=list)


class ToolMessage(BaseModel):
	role: Literal["tool"] = "tool"
	tool_call_id: str
	name: str
	content: str


ChatMessage = Annotated[
	Union[SystemMessage, UserMessage, AssistantMessage, ToolMessage],
	Field(discriminator="role"),
]

_message_adapter: TypeAdapter = TypeAdapter(ChatMessage)


def parse_message(payload: dict[str, Any]) -> ChatMessage:
	"""Validate a stored/wire dict into its tagged variant."""
	return _message_adapter.validate_python(payload)


def message_to_wire(message: ChatMessage) -> dict[str, Any]:
	"""OpenAI-compatible dict for one message."""
	if isinstance(message, AssistantMessage):
		wire: dict[str, Any] = {"role": "assistant", "content": message.content}
		if message.tool_calls:
			wire["tool_calls"] = [call.to_wire() for call in message.tool_calls]
		return wire
	return message.model_dump()


class ChatResponse(BaseModel):
	"""Normalized result of one chat-completion request."""
	output_text: str = ""
	usage: BusTokenUsage = Field(default_factory=BusTokenUsage)
	tool_calls: list[ToolCall] = Field(default_factory=list)


class ChatCompletionService(Protocol):
	"""
	External chat-completion transport.

	Implementations raise ProviderError with the provider's message on
	transport or provider failure. No retries are expected.
	"""

	async def send(
		self,
		model_ref: str,
		messages: list[ChatMessage],
		tools: Optional[list[dict[str, Any]]] = None,
	) -> ChatResponse:
		...
