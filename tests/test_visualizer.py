"""Tests for visualizer Rich views."""

import io
from datetime import datetime, timedelta, timezone

from rich.console import Console

from team_orchestrator.team.journal import make_bus_entry
from team_orchestrator.team.models import (
	AgentState,
	BusEntryType,
	BusTokenUsage,
	StepState,
	TeamAgentStatus,
	TeamArtifactsStatus,
	TeamStatus,
	TeamStepStatus,
)
from team_orchestrator.visualizer import render_bus, render_team_status
from team_orchestrator.visualizer.utils import format_timestamp, summarize_content, truncate_text


def _render(fn, *args, **kwargs) -> str:
	console = Console(file=io.StringIO(), width=200)
	fn(*args, console=console, **kwargs)
	return console.file.getvalue()


# -- utils tests --

def test_format_timestamp_recent():
	ts = (datetime.now(timezone.utc) - timedelta(minutes=5)).isoformat()
	assert format_timestamp(ts) == "5m ago"


def test_format_timestamp_invalid():
	assert format_timestamp("not-a-date") == "not-a-date"


def test_truncate_text_flattens_whitespace():
	assert truncate_text("a\nb   c") == "a b c"
	assert truncate_text("x" * 100, 10) == "xxxxxxx..."


def test_summarize_content_by_entry_kind():
	assert summarize_content({"output_text": "hello"}) == "hello"
	assert summarize_content({"from": "artifacts/drafts/a.md", "to": "artifacts/promoted/a.md"}) == (
		"artifacts/drafts/a.md -> artifacts/promoted/a.md"
	)
	assert summarize_content({"round": 2, "issues": [], "pass": False}) == "round 2: fail"
	assert summarize_content(None) == ""


# -- team status view --

def _status() -> TeamStatus:
	return TeamStatus(
		is_team=True,
		supervisor_model="ollama:llama3.1",
		reflection_loops=True,
		max_reflection_rounds=3,
		agents=[
			TeamAgentStatus(
				id="writer",
				role="writer",
				model="ollama:llama3.1",
				tool_subset=["write_file"],
				status=AgentState.WORKING,
				token_usage=BusTokenUsage(input=12, output=34),
				last_output_preview="First draft of the report",
			),
		],
		steps=[
			TeamStepStatus(step_id="s1", assigned_to="writer", expected_output="report.md", status=StepState.COMPLETE),
			TeamStepStatus(step_id="s2", assigned_to="critic", expected_output="review.md", status=StepState.PENDING),
		],
		bus_entries=7,
		artifacts=TeamArtifactsStatus(drafts=["report.md"], promoted=["final.md"]),
	)


def test_render_team_status():
	output = _render(render_team_status, _status())

	assert "ollama:llama3.1" in output
	assert "max 3 rounds" in output
	assert "7 entries" in output
	assert "writer" in output
	assert "working" in output
	assert "12/34" in output
	assert "1/2 steps complete" in output
	assert "s2 -> critic" in output
	assert "report.md" in output
	assert "final.md" in output


def test_render_team_status_not_team_mode():
	output = _render(render_team_status, TeamStatus.inactive())
	assert "not in team mode" in output


def test_render_team_status_no_agents():
	output = _render(render_team_status, TeamStatus(is_team=True, supervisor_model="ollama:llama3.1"))
	assert "No agents configured" in output


# -- journal view --

def test_render_bus_limits_entries():
	entries = [
		make_bus_entry(BusEntryType.DELEGATION, "supervisor", "writer", step_id=f"s{i}", content={"instruction": f"task {i}"})
		for i in range(5)
	]

	output = _render(render_bus, entries, limit=2)

	assert "last 2 of 5" in output
	assert "task 4" in output
	assert "task 0" not in output


def test_render_bus_empty():
	assert "No journal entries yet" in _render(render_bus, [])
