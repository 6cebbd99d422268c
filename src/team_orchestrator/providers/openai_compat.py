"""
OpenAI-compatible chat-completion adapter.

Works with any server exposing POST {base_url}/chat/completions (Ollama's
/v1 endpoint, LM Studio, OpenRouter, vLLM). One request per call: no
streaming and no retries.
"""

import logging
from typing import Any, Optional

import aiohttp

from ..config import Config
from ..errors import ProviderError
from ..team.messages import ChatMessage, ChatResponse, ToolCall, message_to_wire
from ..team.models import BusTokenUsage

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 300
KNOWN_PROVIDERS = ("ollama", "lmstudio", "openrouter", "openai", "vllm")


def split_model_reference(model_ref: str) -> tuple[Optional[str], str]:
	"""
	Split "provider:model_id" into its parts.

	A reference without a provider prefix returns (None, model_ref). Tags
	like "llama3.1:8b" are kept intact when the prefix is a known provider.
	"""
	trimmed = (model_ref or "").strip()
	if not trimmed:
		raise ProviderError("Model reference is required.")

	provider, sep, model_id = trimmed.partition(":")
	if sep and provider.lower() in KNOWN_PROVIDERS and model_id.strip():
		return provider.lower(), model_id.strip()
	return None, trimmed


def _error_message(status: int, payload: Any, body: str) -> str:
	if isinstance(payload, dict):
		error = payload.get("error")
		if isinstance(error, dict) and error.get("message"):
			return f"Provider request failed ({status}): {error['message']}"
		if isinstance(error, str) and error:
			return f"Provider request failed ({status}): {error}"
	snippet = body.strip()[:500] or "empty response"
	return f"Provider request failed ({status}): {snippet}"


def parse_completion(payload: dict[str, Any]) -> ChatResponse:
	"""Normalize an OpenAI-style completion body into a ChatResponse."""
	choices = payload.get("choices") or []
	if not choices:
		raise ProviderError("Provider response contained no choices.")

	message = choices[0].get("message") or {}
	tool_calls = [ToolCall.from_wire(call) for call in message.get("tool_calls") or []]

	usage = payload.get("usage") or {}
	return ChatResponse(
		output_text=message.get("content") or "",
		usage=BusTokenUsage(
			input=int(usage.get("prompt_tokens") or 0),
			output=int(usage.get("completion_tokens") or 0),
		),
		tool_calls=tool_calls,
	)


class OpenAICompatibleChatService:
	"""
	ChatCompletionService over HTTP.

	Usage:
		chat = OpenAICompatibleChatService.from_config(get_config())
		response = await chat.send("ollama:llama3.1", messages)
	"""

	def __init__(
		self,
		base_url: str,
		api_key: str = "",
		temperature: float = 0.2,
		max_tokens: int = 2000,
		timeout: int = DEFAULT_TIMEOUT,
	):
		self.base_url = base_url.rstrip("/")
		self.api_key = api_key
		self.temperature = temperature
		self.max_tokens = max_tokens
		self.timeout = timeout

	@classmethod
	def from_config(cls, config: Config) -> "OpenAICompatibleChatService":
		return cls(
			base_url=config.provider_base_url,
			api_key=config.provider_api_key,
			temperature=config.temperature,
			max_tokens=config.max_tokens,
		)

	def build_request(
		self,
		model_ref: str,
		messages: list[ChatMessage],
		tools: Optional[list[dict[str, Any]]] = None,
	) -> dict[str, Any]:
		_, model_id = split_model_reference(model_ref)
		body: dict[str, Any] = {
			"model": model_id,
			"messages": [message_to_wire(m) for m in messages],
			"temperature": self.temperature,
			"max_tokens": self.max_tokens,
			"stream": False,
		}
		if tools:
			body["tools"] = tools
			body["tool_choice"] = "auto"
		return body

	async def send(
		self,
		model_ref: str,
		messages: list[ChatMessage],
		tools: Optional[list[dict[str, Any]]] = None,
	) -> ChatResponse:
		body = self.build_request(model_ref, messages, tools)
		headers = {"Content-Type": "application/json"}
		if self.api_key:
			headers["Authorization"] = f"Bearer {self.api_key}"

		url = f"{self.base_url}/chat/completions"
		logger.debug(f"POST {url} model={body['model']} messages={len(messages)} tools={len(tools or [])}")

		try:
			async with aiohttp.ClientSession(
				headers=headers,
				timeout=aiohttp.ClientTimeout(total=self.timeout),
			) as session:
				async with session.post(url, json=body) as response:
					text = await response.text()
					try:
						payload = await response.json(content_type=None)
					except ValueError:
						payload = None

					if response.status < 200 or response.status >= 300:
						raise ProviderError(_error_message(response.status, payload, text))
		except aiohttp.ClientError as e:
			raise ProviderError(f"Provider request failed: {e}") from e
		except TimeoutError as e:
			raise ProviderError(f"Provider request timed out after {self.timeout}s") from e

		if not isinstance(payload, dict):
			raise ProviderError("Provider returned a non-JSON response.")

		return parse_completion(payload)
