"""Rich views for team status and the event journal."""

from typing import Optional

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.tree import Tree

from ..team.models import BusEntry, StepState, TeamStatus
from .utils import AGENT_STYLES, STEP_ICONS, format_timestamp, summarize_content, truncate_text


def render_team_status(status: TeamStatus, console: Optional[Console] = None) -> None:
	"""Render roster, current plan steps and artifacts."""
	console = console or Console()

	if not status.is_team:
		console.print("[dim]Camp is not in team mode.[/dim]")
		return

	reflection = "on" if status.reflection_loops else "off"
	console.print(Panel(
		f"[bold]Supervisor:[/bold] {status.supervisor_model}\n"
		f"[bold]Reflection:[/bold] {reflection} (max {status.max_reflection_rounds} rounds)\n"
		f"[bold]Journal:[/bold] {status.bus_entries} entries",
		title="Team",
		border_style="cyan",
	))

	if status.agents:
		table = Table(title="Agents")
		table.add_column("Agent", style="cyan")
		table.add_column("Role")
		table.add_column("Model")
		table.add_column("Tools")
		table.add_column("Status")
		table.add_column("Tokens", justify="right")
		table.add_column("Last Output")

		for agent in status.agents:
			style = AGENT_STYLES.get(agent.status, "white")
			table.add_row(
				agent.id,
				agent.role,
				agent.model,
				", ".join(agent.tool_subset) or "-",
				f"[{style}]{agent.status.value}[/{style}]",
				f"{agent.token_usage.input}/{agent.token_usage.output}",
				truncate_text(agent.last_output_preview or "", 40),
			)
		console.print(table)
	else:
		console.print("[dim]No agents configured.[/dim]")

	if status.steps:
		done = sum(1 for s in status.steps if s.status == StepState.COMPLETE)
		tree = Tree(f"[bold]Current plan[/bold]  [dim]({done}/{len(status.steps)} steps complete)[/dim]")
		for step in status.steps:
			icon = STEP_ICONS.get(step.status, "[ ]")
			tree.add(f"{icon} [bold]{step.step_id}[/bold] -> {step.assigned_to} [dim]({step.expected_output})[/dim]")
		console.print(tree)

	artifacts = Tree("[bold]Artifacts[/bold]")
	drafts = artifacts.add(f"drafts [dim]({len(status.artifacts.drafts)})[/dim]")
	for path in status.artifacts.drafts:
		drafts.add(path)
	promoted = artifacts.add(f"promoted [dim]({len(status.artifacts.promoted)})[/dim]")
	for path in status.artifacts.promoted:
		promoted.add(f"[green]{path}[/green]")
	console.print(artifacts)


def render_bus(entries: list[BusEntry], console: Optional[Console] = None, limit: int = 50) -> None:
	"""Render the most recent journal entries, oldest first."""
	console = console or Console()

	if not entries:
		console.print("[dim]No journal entries yet.[/dim]")
		return

	shown = entries[-limit:] if limit > 0 else entries
	table = Table(title=f"Team Journal (last {len(shown)} of {len(entries)})")
	table.add_column("Time")
	table.add_column("Type", style="cyan")
	table.add_column("From")
	table.add_column("To")
	table.add_column("Step")
	table.add_column("Tokens", justify="right")
	table.add_column("Content")

	for entry in shown:
		table.add_row(
			format_timestamp(entry.timestamp),
			entry.entry_type.value,
			entry.from_,
			entry.to,
			entry.step_id or "",
			f"{entry.token_usage.input}/{entry.token_usage.output}",
			summarize_content(entry.content),
		)

	console.print(table)
