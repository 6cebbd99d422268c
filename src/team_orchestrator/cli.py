"""CLI for team-orchestrator: roster, orchestration, viz, serve and doctor commands."""

import argparse
import asyncio
import json
import platform
import sys
from importlib.metadata import version as pkg_version

from rich.console import Console

from .config import Config, load_config
from .errors import TeamError
from .logging_config import setup_logging
from .providers.openai_compat import OpenAICompatibleChatService
from .team.engine import TeamEngine
from .team.models import DelegationStep, TeamAgentCreateInput, TeamSettingsUpdateInput
from .team.session import create_camp
from .visualizer import render_bus, render_team_status

console = Console()
err_console = Console(stderr=True)


def _split_csv(value: str) -> list[str]:
	return [item.strip() for item in (value or "").split(",") if item.strip()]


def _engine(args: argparse.Namespace, config: Config) -> TeamEngine:
	if getattr(args, "create", False):
		create_camp(config.camps_root, args.camp, config.default_model)
	return TeamEngine.for_camp(config, args.camp, OpenAICompatibleChatService.from_config(config))


def _print_json(data) -> None:
	print(json.dumps(data, indent=2))


async def _agent_add(args: argparse.Namespace, config: Config) -> None:
	meta = await _engine(args, config).create_agent(TeamAgentCreateInput(
		id=args.agent_id,
		role=args.role,
		model=args.model or config.default_model,
		tool_subset=_split_csv(args.tools),
		description=args.description,
	))
	_print_json(meta.model_dump())


async def _agent_remove(args: argparse.Namespace, config: Config) -> None:
	team_config = await _engine(args, config).remove_agent(args.agent_id)
	console.print(f"Removed [cyan]{args.agent_id}[/cyan]; {len(team_config.agents)} agent(s) remain.")


async def _settings(args: argparse.Namespace, config: Config) -> None:
	status = await _engine(args, config).update_settings(TeamSettingsUpdateInput(
		supervisor_model=args.supervisor_model,
		reflection_loops=not args.no_reflection,
		max_reflection_rounds=args.max_rounds,
	))
	render_team_status(status, console)


async def _decompose(args: argparse.Namespace, config: Config) -> None:
	plan = await _engine(args, config).decompose_task(args.task)
	_print_json(plan.model_dump())


async def _run_step(args: argparse.Namespace, config: Config) -> None:
	step = DelegationStep(
		step_id=args.step_id,
		assigned_to=args.agent_id,
		instruction=args.instruction,
		depends_on=_split_csv(args.depends_on),
		expected_output=args.expected_output,
	)
	result = await _engine(args, config).execute_agent_step(args.agent_id, step)
	_print_json(result.model_dump())


async def _reflect(args: argparse.Namespace, config: Config) -> None:
	summary = await _engine(args, config).run_reflection_loop(args.artifact_path, args.rounds)
	_print_json(summary.model_dump(by_alias=True))


async def _promote(args: argparse.Namespace, config: Config) -> None:
	promoted = await _engine(args, config).promote_artifact(args.draft_path, _split_csv(args.tags))
	console.print(f"Promoted to [green]{promoted}[/green]")


async def _bus(args: argparse.Namespace, config: Config) -> None:
	entries = await _engine(args, config).get_team_bus()
	if args.json:
		shown = entries[-args.limit:] if args.limit > 0 else entries
		_print_json([e.to_dict() for e in shown])
	else:
		render_bus(entries, console, limit=args.limit)


async def _status(args: argparse.Namespace, config: Config) -> None:
	status = await _engine(args, config).get_team_status()
	if args.json:
		_print_json(status.model_dump(mode="json"))
	else:
		render_team_status(status, console)


def run_team_command(args: argparse.Namespace) -> None:
	"""Run an async team subcommand, reporting orchestration errors in red."""
	config = load_config()
	setup_logging(level=config.log_level, log_dir=config.log_dir)
	try:
		asyncio.run(args.handler(args, config))
	except TeamError as e:
		err_console.print(f"[red]Error:[/red] {e}")
		sys.exit(1)


def cmd_serve(args: argparse.Namespace) -> None:
	"""Run the MCP server (stdio transport)."""
	from .server import mcp
	mcp.run()


def cmd_doctor(args: argparse.Namespace) -> None:
	"""Health check - verify installation and configuration."""
	print("team-orchestrator doctor")
	print(f"{'=' * 40}")

	config = load_config()
	issues: list[str] = []

	py_ver = f"{sys.version_info.major}.{sys.version_info.minor}.{sys.version_info.micro}"
	print(f"  Python:       {py_ver}")
	print(f"  Platform:     {platform.system()} {platform.machine()}")
	print()

	print("  Core deps:")
	for dep in ["mcp", "aiosqlite", "aiohttp", "platformdirs", "pydantic", "rich"]:
		try:
			print(f"    {dep:22s} {pkg_version(dep)}")
		except Exception:
			print(f"    {dep:22s} NOT INSTALLED")
			issues.append(f"{dep} package not installed")
	print()

	print("  Config:")
	print(f"    config dir:          {config.config_dir}")
	print(f"    camps root:          {config.camps_root}")
	print(f"    log dir:             {config.log_dir}")
	print(f"    default model:       {config.default_model}")
	print(f"    provider url:        {config.provider_base_url}")
	print(f"    journal backend:     {config.journal_backend}")
	toml_path = config.config_dir / "config.toml"
	print(f"    config.toml:         {'found' if toml_path.exists() else 'not found (using defaults)'}")
	print()

	if issues:
		print(f"  {len(issues)} issue(s) found:")
		for issue in issues:
			print(f"    - {issue}")
		sys.exit(1)
	else:
		print("  All checks passed.")


def build_parser() -> argparse.ArgumentParser:
	parser = argparse.ArgumentParser(
		prog="team-orchestrator",
		description="Local multi-agent team orchestration: decompose, delegate, reflect, promote",
	)
	subparsers = parser.add_subparsers(dest="command")

	camp_parent = argparse.ArgumentParser(add_help=False)
	camp_parent.add_argument("--camp", required=True, help="Camp id (team root under the camps directory)")
	camp_parent.add_argument("--create", action="store_true", help="Create the camp if it does not exist")

	def team_command(parent, name: str, handler, **kwargs) -> argparse.ArgumentParser:
		sub = parent.add_parser(name, parents=[camp_parent], **kwargs)
		sub.set_defaults(func=run_team_command, handler=handler)
		return sub

	# agent add/remove
	agent_parser = subparsers.add_parser("agent", help="Manage the team roster")
	agent_subparsers = agent_parser.add_subparsers(dest="agent_command")

	agent_add = team_command(agent_subparsers, "add", _agent_add, help="Create or replace an agent")
	agent_add.add_argument("agent_id", help="Path-safe agent id")
	agent_add.add_argument("--role", required=True, help="Role, e.g. writer or critic")
	agent_add.add_argument("--model", default="", help="Model reference (default: configured default model)")
	agent_add.add_argument("--tools", default="", help="Comma-separated tool names")
	agent_add.add_argument("--description", default="", help="Role description")

	agent_remove = team_command(agent_subparsers, "remove", _agent_remove, help="Remove an agent")
	agent_remove.add_argument("agent_id", help="Agent id to remove")

	# settings
	settings_parser = team_command(subparsers, "settings", _settings, help="Update team settings")
	settings_parser.add_argument("--supervisor-model", required=True, help="Supervisor model reference")
	settings_parser.add_argument("--max-rounds", type=int, default=2, help="Max reflection rounds (1-8)")
	settings_parser.add_argument("--no-reflection", action="store_true", help="Disable writer revisions")

	# decompose
	decompose_parser = team_command(subparsers, "decompose", _decompose, help="Decompose a task into a plan")
	decompose_parser.add_argument("task", help="Free-text user task")

	# run-step
	step_parser = team_command(subparsers, "run-step", _run_step, help="Execute one delegation step")
	step_parser.add_argument("agent_id", help="Agent that runs the step")
	step_parser.add_argument("step_id", help="Step id")
	step_parser.add_argument("instruction", help="Instruction text")
	step_parser.add_argument("--expected-output", default="", help="Artifact name to produce")
	step_parser.add_argument("--depends-on", default="", help="Comma-separated dependency step ids")

	# reflect
	reflect_parser = team_command(subparsers, "reflect", _reflect, help="Run a reflection loop, then promote")
	reflect_parser.add_argument("artifact_path", help="Draft path")
	reflect_parser.add_argument("--rounds", type=int, default=0, help="Rounds (0 = configured max)")

	# promote
	promote_parser = team_command(subparsers, "promote", _promote, help="Promote a draft artifact")
	promote_parser.add_argument("draft_path", help="Draft path")
	promote_parser.add_argument("--tags", default="", help="Comma-separated tags")

	# bus
	bus_parser = team_command(subparsers, "bus", _bus, help="Show the event journal")
	bus_parser.add_argument("--limit", type=int, default=50, help="Most recent N entries (0 = all)")
	bus_parser.add_argument("--json", action="store_true", help="Print raw JSON")

	# status
	status_parser = team_command(subparsers, "status", _status, help="Show derived team status")
	status_parser.add_argument("--json", action="store_true", help="Print raw JSON")

	# serve
	serve_parser = subparsers.add_parser("serve", help="Run MCP server (stdio)")
	serve_parser.set_defaults(func=cmd_serve)

	# doctor
	doctor_parser = subparsers.add_parser("doctor", help="Health check")
	doctor_parser.set_defaults(func=cmd_doctor)

	return parser


def main() -> None:
	"""CLI entry point."""
	parser = build_parser()
	args = parser.parse_args()

	if not args.command or not hasattr(args, "func"):
		parser.print_help()
		sys.exit(1)

	args.func(args)
