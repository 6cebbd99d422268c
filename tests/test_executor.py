"""Tests for the Step Executor."""

import json
from pathlib import Path

import pytest
import pytest_asyncio

from team_orchestrator.errors import ProviderError, TeamStorageError, TeamValidationError
from team_orchestrator.team.messages import AssistantMessage, ToolCall, ToolMessage
from team_orchestrator.team.models import TEAM_MAX_TOOL_LOOPS, AgentState, BusEntryType, DelegationStep
from team_orchestrator.team.notify import STEP_COMPLETE, CallbackSink
from team_orchestrator.team.session import FileSessionStore

from .helpers import FakeChatService, add_agent, make_engine, text_response, tool_call, tool_response


def _step(step_id: str = "s1", assigned_to: str = "writer", expected_output: str = "report.md", **kwargs) -> DelegationStep:
	return DelegationStep(
		step_id=step_id,
		assigned_to=assigned_to,
		instruction=kwargs.get("instruction", "Write the report"),
		depends_on=kwargs.get("depends_on", []),
		expected_output=expected_output,
	)


class TestExecuteAgentStep:
	@pytest.fixture
	def chat(self):
		return FakeChatService()

	@pytest.fixture
	def events(self):
		return []

	@pytest_asyncio.fixture
	async def engine(self, tmp_path: Path, chat, events):
		engine = make_engine(tmp_path, chat, sink=CallbackSink(lambda e, p: events.append((e, p))))
		await add_agent(engine, "writer", "writer", tools=["read_file", "write_file", "list_files"])
		await add_agent(engine, "critic", "critic")
		return engine

	@pytest.mark.asyncio
	async def test_plain_answer_writes_draft_and_result(self, engine, chat, events):
		chat.queue(text_response("  # Report\n\nAll good.  ", input_tokens=11, output_tokens=22))

		result = await engine.execute_agent_step("writer", _step())

		assert result.output_text == "# Report\n\nAll good."
		assert result.draft_path == "artifacts/drafts/report.md"
		assert (engine.layout.root / result.draft_path).read_text() == "# Report\n\nAll good."
		assert result.context_writes == []
		assert (result.token_usage.input, result.token_usage.output) == (11, 22)

		entries = await engine.get_team_bus()
		assert len(entries) == 1
		entry = entries[0]
		assert entry.entry_type == BusEntryType.RESULT
		assert (entry.from_, entry.to, entry.step_id) == ("writer", "supervisor", "s1")
		assert entry.content == {
			"output_text": "# Report\n\nAll good.",
			"draft_path": "artifacts/drafts/report.md",
			"context_writes": [],
		}

		assert (STEP_COMPLETE, result.model_dump(mode="json")) in events

	@pytest.mark.asyncio
	async def test_user_turn_and_tool_specs(self, engine, chat):
		chat.queue(text_response("done"))

		await engine.execute_agent_step("writer", _step(depends_on=["s0", "s00"]))

		call = chat.calls[0]
		user_turn = call["messages"][1].content
		assert user_turn.startswith("Delegation step id: s1\nAssigned role: writer\n")
		assert "Instruction:\nWrite the report" in user_turn
		assert "Dependencies: s0, s00" in user_turn
		assert "Expected output:\nreport.md" in user_turn
		assert [t["function"]["name"] for t in call["tools"]] == ["read_file", "write_file", "list_files"]

	@pytest.mark.asyncio
	async def test_agent_without_tools_sends_none(self, engine, chat):
		chat.queue(text_response("looks fine"))
		await engine.execute_agent_step("critic", _step(assigned_to="critic"))
		assert chat.calls[0]["tools"] is None

	@pytest.mark.asyncio
	async def test_tool_loop_runs_calls_and_records_writes(self, engine, chat):
		chat.queue(
			tool_response(
				tool_call("write_file", "c1", path="notes/outline.md", content="outline"),
				tool_call("list_files", "c2"),
				text="working on it",
				input_tokens=3,
				output_tokens=4,
			),
			text_response("final text", input_tokens=5, output_tokens=6),
		)

		result = await engine.execute_agent_step("writer", _step())

		assert result.output_text == "final text"
		assert result.context_writes == ["notes/outline.md"]
		assert (result.token_usage.input, result.token_usage.output) == (8, 10)
		assert (engine.layout.agent_context("writer") / "notes" / "outline.md").read_text() == "outline"

		second = chat.calls[1]["messages"]
		assert isinstance(second[2], AssistantMessage)
		assert [c.id for c in second[2].tool_calls] == ["c1", "c2"]
		tool_messages = [m for m in second if isinstance(m, ToolMessage)]
		assert [m.tool_call_id for m in tool_messages] == ["c1", "c2"]
		assert json.loads(tool_messages[0].content) == {"path": "notes/outline.md", "bytes_written": 7}
		assert json.loads(tool_messages[1].content)["files"] == ["notes/outline.md"]

	@pytest.mark.asyncio
	async def test_tool_errors_do_not_abort_loop(self, engine, chat):
		chat.queue(
			tool_response(tool_call("write_file", "c1", path="../../etc/passwd", content="x")),
			text_response("recovered"),
		)

		result = await engine.execute_agent_step("writer", _step())

		assert result.output_text == "recovered"
		tool_message = chat.calls[1]["messages"][-1]
		assert "escapes the agent context directory" in json.loads(tool_message.content)["error"]

	@pytest.mark.asyncio
	async def test_missing_tool_call_id_is_generated(self, engine, chat):
		chat.queue(
			tool_response(ToolCall(id="", name="list_files", arguments="{}")),
			text_response("ok"),
		)

		await engine.execute_agent_step("writer", _step())

		tool_message = chat.calls[1]["messages"][-1]
		assert tool_message.tool_call_id.startswith("tool-")

	@pytest.mark.asyncio
	async def test_loop_bounded_at_six_round_trips(self, engine, chat):
		chat.queue(tool_response(tool_call("list_files", "loop"), text="still going"))

		result = await engine.execute_agent_step("writer", _step())

		assert len(chat.calls) == TEAM_MAX_TOOL_LOOPS == 6
		assert result.output_text == "still going"
		assert (engine.layout.root / result.draft_path).exists()

	@pytest.mark.asyncio
	async def test_draft_name_collision_falls_back_to_step_id(self, engine, chat):
		chat.queue(text_response("first"), text_response("second"))
		first = await engine.execute_agent_step("writer", _step())
		second = await engine.execute_agent_step("writer", _step())

		assert first.draft_path == "artifacts/drafts/report.md"
		assert second.draft_path.startswith("artifacts/drafts/s1-")
		assert second.draft_path.endswith(".md")
		assert (engine.layout.root / first.draft_path).read_text() == "first"
		assert (engine.layout.root / second.draft_path).read_text() == "second"

	@pytest.mark.asyncio
	async def test_blank_expected_output_uses_step_and_agent(self, engine, chat):
		chat.queue(text_response("x"))
		result = await engine.execute_agent_step("writer", _step(expected_output=""))
		assert result.draft_path == "artifacts/drafts/s1-writer.md"

	@pytest.mark.asyncio
	async def test_agent_must_match_assignment(self, engine):
		with pytest.raises(TeamValidationError, match="Requested agent does not match step.assigned_to."):
			await engine.execute_agent_step("critic", _step(assigned_to="writer"))

	@pytest.mark.asyncio
	async def test_unknown_agent(self, engine):
		with pytest.raises(TeamValidationError, match="Agent not found in team roster."):
			await engine.execute_agent_step("ghost", _step(assigned_to="ghost"))

	@pytest.mark.asyncio
	async def test_provider_failure_journaled_as_error(self, engine, chat):
		chat.queue(ProviderError("connection refused"))

		with pytest.raises(ProviderError, match="connection refused"):
			await engine.execute_agent_step("writer", _step())

		entries = await engine.get_team_bus()
		assert entries[-1].entry_type == BusEntryType.ERROR
		assert entries[-1].content == {"error": "connection refused"}
		status = await engine.get_team_status()
		assert status.bus_entries == 1
		assert list(engine.layout.drafts_dir.iterdir()) == []

	@pytest.mark.asyncio
	async def test_transcript_appended(self, engine, chat):
		chat.queue(
			tool_response(tool_call("list_files", "c1")),
			text_response("done"),
		)

		await engine.execute_agent_step("writer", _step())

		lines = engine.layout.agent_transcript("writer").read_text().splitlines()
		assert [json.loads(line)["role"] for line in lines] == ["user", "assistant", "tool", "assistant"]

	@pytest.mark.asyncio
	async def test_result_feeds_agent_preview(self, engine, chat):
		chat.queue(text_response("done"))
		await engine.execute_agent_step("writer", _step())

		status = await engine.get_team_status()
		writer = next(a for a in status.agents if a.id == "writer")
		assert writer.last_output_preview == "done"
		assert writer.status == AgentState.IDLE

	@pytest.mark.asyncio
	async def test_instruction_and_expected_output_trimmed(self, engine, chat):
		chat.queue(text_response("done"))

		await engine.execute_agent_step("writer", _step(instruction="  Write it  \n", expected_output=" report.md "))

		user_turn = chat.calls[0]["messages"][1].content
		assert "Instruction:\nWrite it\n" in user_turn
		assert "Expected output:\nreport.md\n" in user_turn

	@pytest.mark.asyncio
	async def test_tool_outside_agent_subset_is_refused(self, engine, chat):
		await add_agent(engine, "reader", "reader", tools=["read_file"])
		chat.queue(
			tool_response(tool_call("write_file", "c1", path="notes.md", content="x")),
			text_response("gave up"),
		)

		result = await engine.execute_agent_step("reader", _step(assigned_to="reader"))

		tool_message = chat.calls[1]["messages"][-1]
		assert json.loads(tool_message.content) == {
			"error": "Tool `write_file` is not enabled for this agent.",
			"tool": "write_file",
			"tool_call_id": "c1",
		}
		assert result.context_writes == []
		assert not (engine.layout.agent_context("reader") / "notes.md").exists()


class FailingTouchSessionStore(FileSessionStore):
	async def touch(self) -> None:
		raise TeamStorageError("disk full", "session.json")


class TestSessionTouchFailure:
	@pytest.mark.asyncio
	async def test_step_still_completes(self, tmp_path: Path):
		chat = FakeChatService([text_response("done")])
		engine = make_engine(tmp_path, chat, session_store=FailingTouchSessionStore(tmp_path / "camps" / "camp-1"))
		await add_agent(engine, "writer", "writer")

		result = await engine.execute_agent_step("writer", _step())

		assert result.draft_path == "artifacts/drafts/report.md"
		assert (await engine.get_team_bus())[-1].entry_type == BusEntryType.RESULT
		assert engine.layout.agent_transcript("writer").exists()
