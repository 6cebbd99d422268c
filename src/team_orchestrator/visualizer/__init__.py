"""Visualizer package - Rich terminal views for team status and the journal."""

from .team_status import render_bus, render_team_status

__all__ = [
	"render_bus",
	"render_team_status",
]
