"""Test suite for team-orchestrator."""
