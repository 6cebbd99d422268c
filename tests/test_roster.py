"""Tests for the Roster Manager and scaffold provisioning."""

import json
from pathlib import Path

import pytest

from team_orchestrator.errors import TeamConfigurationError, TeamValidationError
from team_orchestrator.team.models import TeamAgentCreateInput, TeamSettingsUpdateInput
from team_orchestrator.team.session import FileSessionStore

from .helpers import add_agent, make_engine


class TestLoad:
	@pytest.mark.asyncio
	async def test_missing_config_writes_default_and_scaffold(self, tmp_path: Path):
		engine = make_engine(tmp_path)

		team_config = await engine.load_team_config()

		assert team_config.is_team
		assert team_config.supervisor_model == "ollama:llama3.1"
		assert team_config.reflection_loops is True
		assert team_config.max_reflection_rounds == 2
		layout = engine.layout
		assert layout.team_json.exists()
		assert layout.bus_path.exists()
		assert layout.supervisor_prompt.read_text().startswith("You are the Supervisor")
		assert json.loads(layout.supervisor_tools.read_text()) == []
		assert layout.drafts_dir.is_dir()
		assert layout.promoted_dir.is_dir()

	@pytest.mark.asyncio
	async def test_switches_session_into_team_mode(self, tmp_path: Path):
		engine = make_engine(tmp_path)
		await engine.load_team_config()

		session = await FileSessionStore(engine.layout.root).read()
		assert session.is_team

	@pytest.mark.asyncio
	async def test_normalizes_stored_config(self, tmp_path: Path):
		engine = make_engine(tmp_path)
		engine.layout.team_json.write_text(json.dumps({
			"is_team": True,
			"supervisor_model": "  ",
			"agents": [{"id": "w", "role": "writer", "model": "", "tool_subset": ["Read_File", "read_file"]}],
			"reflection_loops": True,
			"max_reflection_rounds": 0,
		}))

		team_config = await engine.load_team_config()

		assert team_config.supervisor_model == "ollama:llama3.1"
		assert team_config.max_reflection_rounds == 2
		assert team_config.agents[0].model == "ollama:llama3.1"
		assert team_config.agents[0].tool_subset == ["read_file"]


class TestCreateOrReplaceAgent:
	@pytest.mark.asyncio
	async def test_creates_agent_and_scaffold(self, tmp_path: Path):
		engine = make_engine(tmp_path)

		meta = await engine.create_agent(TeamAgentCreateInput(
			id=" writer ",
			role="Writer",
			model="ollama:llama3.1",
			tool_subset=["Write_File", "write_file", "read_file"],
			description="Drafts documents",
		))

		assert meta.id == "writer"
		assert meta.tool_subset == ["write_file", "read_file"]
		assert meta.path == str(engine.layout.agent_dir("writer"))
		assert engine.layout.agent_prompt("writer").read_text().startswith("You are Writer (writer)")
		assert json.loads(engine.layout.agent_tools("writer").read_text()) == ["write_file", "read_file"]
		assert engine.layout.agent_context("writer").is_dir()
		assert engine.layout.agent_transcript("writer").exists()

	@pytest.mark.asyncio
	async def test_upsert_replaces_by_id(self, tmp_path: Path):
		engine = make_engine(tmp_path)
		await add_agent(engine, "writer", "writer")
		await add_agent(engine, "writer", "editor", model="lmstudio:qwen")

		team_config = await engine.load_team_config()
		assert len(team_config.agents) == 1
		assert team_config.agents[0].role == "editor"
		assert team_config.agents[0].model == "lmstudio:qwen"

	@pytest.mark.asyncio
	async def test_roster_sorted_case_insensitively(self, tmp_path: Path):
		engine = make_engine(tmp_path)
		for agent_id in ["delta", "Bravo", "alpha", "Charlie"]:
			await add_agent(engine, agent_id, "worker")

		team_config = await engine.load_team_config()
		assert [a.id for a in team_config.agents] == ["alpha", "Bravo", "Charlie", "delta"]

	@pytest.mark.asyncio
	async def test_ninth_agent_rejected_but_replace_allowed(self, tmp_path: Path):
		engine = make_engine(tmp_path)
		for i in range(8):
			await add_agent(engine, f"agent{i}", "worker")

		with pytest.raises(TeamConfigurationError, match="at most 8 agents"):
			await add_agent(engine, "agent8", "worker")

		await add_agent(engine, "agent3", "critic")
		team_config = await engine.load_team_config()
		assert len(team_config.agents) == 8

	@pytest.mark.asyncio
	async def test_validation(self, tmp_path: Path):
		engine = make_engine(tmp_path)
		with pytest.raises(TeamValidationError, match="agent_config.id is required."):
			await add_agent(engine, "  ", "writer")
		with pytest.raises(TeamValidationError, match="path separators"):
			await add_agent(engine, "../evil", "writer")
		with pytest.raises(TeamValidationError, match="agent_config.role is required."):
			await add_agent(engine, "w", "  ")
		with pytest.raises(TeamValidationError, match="agent_config.model is required."):
			await add_agent(engine, "w", "writer", model=" ")

	@pytest.mark.asyncio
	async def test_existing_prompt_not_overwritten(self, tmp_path: Path):
		engine = make_engine(tmp_path)
		await add_agent(engine, "writer", "writer")
		engine.layout.agent_prompt("writer").write_text("custom prompt")

		await add_agent(engine, "writer", "writer", model="lmstudio:qwen")

		assert engine.layout.agent_prompt("writer").read_text() == "custom prompt"

	@pytest.mark.asyncio
	async def test_mutation_bumps_session_timestamp(self, tmp_path: Path):
		engine = make_engine(tmp_path)
		session_store = FileSessionStore(engine.layout.root)
		session = await session_store.read()
		session.updated_at = 0
		await session_store.write(session)

		await add_agent(engine, "writer", "writer")

		assert (await session_store.read()).updated_at > 0


class TestRemoveAgent:
	@pytest.mark.asyncio
	async def test_removes_agent_and_folder(self, tmp_path: Path):
		engine = make_engine(tmp_path)
		await add_agent(engine, "writer", "writer")
		await add_agent(engine, "critic", "critic")

		team_config = await engine.remove_agent("writer")

		assert [a.id for a in team_config.agents] == ["critic"]
		assert not engine.layout.agent_dir("writer").exists()
		assert engine.layout.agent_dir("critic").exists()

	@pytest.mark.asyncio
	async def test_unknown_agent(self, tmp_path: Path):
		engine = make_engine(tmp_path)
		with pytest.raises(TeamValidationError, match="Agent not found in team roster."):
			await engine.remove_agent("ghost")


class TestUpdateSettings:
	@pytest.mark.asyncio
	@pytest.mark.parametrize("requested,expected", [(0, 1), (3, 3), (8, 8), (50, 8)])
	async def test_rounds_clamped(self, tmp_path: Path, requested, expected):
		engine = make_engine(tmp_path)
		status = await engine.update_settings(TeamSettingsUpdateInput(
			supervisor_model="ollama:qwen",
			reflection_loops=False,
			max_reflection_rounds=requested,
		))

		assert status.max_reflection_rounds == expected
		assert status.supervisor_model == "ollama:qwen"
		assert status.reflection_loops is False
		assert status.is_team

	@pytest.mark.asyncio
	async def test_supervisor_model_required(self, tmp_path: Path):
		engine = make_engine(tmp_path)
		with pytest.raises(TeamValidationError, match="supervisor_model is required."):
			await engine.update_settings(TeamSettingsUpdateInput(
				supervisor_model="  ",
				reflection_loops=True,
				max_reflection_rounds=2,
			))
