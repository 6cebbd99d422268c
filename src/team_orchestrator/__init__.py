"""team-orchestrator - local multi-agent team orchestration."""

__version__ = "0.1.0"
