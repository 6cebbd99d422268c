"""Shared test fixtures and helpers for team-orchestrator tests."""

import json
from pathlib import Path
from typing import Any, Callable, Optional, Union

from team_orchestrator.errors import ProviderError
from team_orchestrator.team.engine import TeamEngine
from team_orchestrator.team.messages import ChatMessage, ChatResponse, ToolCall
from team_orchestrator.team.models import BusTokenUsage, TeamAgentCreateInput
from team_orchestrator.team.session import create_camp

Scripted = Union[ChatResponse, Exception, Callable[[str, list, Optional[list]], ChatResponse]]


class FakeChatService:
	"""
	Scripted ChatCompletionService.

	Responses are consumed in order; once the script runs out the last
	response repeats. An Exception in the script is raised instead.
	"""

	def __init__(self, responses: Optional[list[Scripted]] = None):
		self.responses = list(responses or [])
		self.calls: list[dict[str, Any]] = []

	def queue(self, *responses: Scripted) -> None:
		self.responses.extend(responses)

	async def send(
		self,
		model_ref: str,
		messages: list[ChatMessage],
		tools: Optional[list[dict[str, Any]]] = None,
	) -> ChatResponse:
		self.calls.append({"model": model_ref, "messages": list(messages), "tools": tools})
		if not self.responses:
			raise ProviderError("No scripted response left.")

		scripted = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
		if isinstance(scripted, Exception):
			raise scripted
		if callable(scripted):
			return scripted(model_ref, messages, tools)
		return scripted.model_copy(deep=True)


def text_response(text: str, input_tokens: int = 10, output_tokens: int = 5) -> ChatResponse:
	return ChatResponse(output_text=text, usage=BusTokenUsage(input=input_tokens, output=output_tokens))


def tool_response(*calls: ToolCall, text: str = "", input_tokens: int = 10, output_tokens: int = 5) -> ChatResponse:
	return ChatResponse(
		output_text=text,
		usage=BusTokenUsage(input=input_tokens, output=output_tokens),
		tool_calls=list(calls),
	)


def tool_call(name: str, call_id: str = "call-1", **arguments) -> ToolCall:
	return ToolCall(id=call_id, name=name, arguments=json.dumps(arguments))


def plan_json(steps: list[dict[str, Any]], task_summary: str = "Write a report", reflection_required: bool = False) -> str:
	return json.dumps({
		"task_summary": task_summary,
		"steps": steps,
		"reflection_required": reflection_required,
	})


def critique_json(passed: bool, issues: Optional[list[str]] = None, suggestions: Optional[list[str]] = None) -> str:
	return json.dumps({
		"issues": issues or [],
		"suggestions": suggestions or [],
		"pass": passed,
	})


def make_camp(tmp_path: Path, camp_id: str = "camp-1", model: str = "ollama:llama3.1") -> Path:
	"""Create a camp directory with a camp.json under tmp_path/camps."""
	return create_camp(tmp_path / "camps", camp_id, model)


def make_engine(tmp_path: Path, chat: Optional[FakeChatService] = None, **kwargs) -> TeamEngine:
	camp_dir = make_camp(tmp_path)
	return TeamEngine(camp_dir, chat or FakeChatService(), **kwargs)


async def add_agent(
	engine: TeamEngine,
	agent_id: str,
	role: str,
	tools: Optional[list[str]] = None,
	model: str = "ollama:llama3.1",
) -> None:
	await engine.create_agent(TeamAgentCreateInput(
		id=agent_id,
		role=role,
		model=model,
		tool_subset=tools or [],
		description=f"{role} agent",
	))


def capture_tools(config: Any, register_fn: Callable) -> dict:
	"""Register tools on a mock MCP and return the captured tool functions.

	Args:
		config: Config object to pass to the registration function
		register_fn: The registration function (e.g., register_team_tools)

	Returns:
		Dict mapping tool name to the tool function
	"""
	captured = {}

	class MockMCP:
		def tool(self):
			def decorator(fn):
				captured[fn.__name__] = fn
				return fn
			return decorator

	register_fn(MockMCP(), config)
	return captured
