"""Configuration system using platformdirs for cross-platform paths."""

import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path

import platformdirs

APP_NAME = "team-orchestrator"
APP_AUTHOR = "team-orchestrator"

JOURNAL_BACKENDS = ("jsonl", "sqlite")


@dataclass
class Config:
	"""Central configuration with XDG/platform conventions."""

	config_dir: Path = field(default_factory=lambda: Path(platformdirs.user_config_dir(APP_NAME)))
	data_dir: Path = field(default_factory=lambda: Path(platformdirs.user_data_dir(APP_NAME)))

	# Derived paths
	camps_root: Path = field(init=False)
	log_dir: Path = field(init=False)

	# User-configurable
	default_model: str = "ollama:llama3.1"
	provider_base_url: str = "http://localhost:11434/v1"
	provider_api_key: str = ""
	temperature: float = 0.2
	max_tokens: int = 2000
	journal_backend: str = "jsonl"
	log_level: str = "INFO"

	# Explicit camps root override survives __post_init__ recomputation
	camps_root_override: Path | None = None

	def __post_init__(self) -> None:
		self.camps_root = self.camps_root_override or self.data_dir / "camps"
		self.log_dir = self.data_dir / "logs"
		if self.journal_backend not in JOURNAL_BACKENDS:
			raise ValueError(
				f"journal_backend must be one of {', '.join(JOURNAL_BACKENDS)}, got '{self.journal_backend}'"
			)

	def ensure_dirs(self) -> None:
		"""Create all required directories."""
		self.config_dir.mkdir(parents=True, exist_ok=True)
		self.data_dir.mkdir(parents=True, exist_ok=True)
		self.camps_root.mkdir(parents=True, exist_ok=True)
		self.log_dir.mkdir(parents=True, exist_ok=True)


def _apply_env_overrides(config: Config) -> Config:
	"""Apply TEAM_ORCHESTRATOR_* environment variable overrides."""
	path_env = {
		"TEAM_ORCHESTRATOR_CONFIG_DIR": "config_dir",
		"TEAM_ORCHESTRATOR_DATA_DIR": "data_dir",
		"TEAM_ORCHESTRATOR_CAMPS_ROOT": "camps_root_override",
	}
	for env_key, attr in path_env.items():
		val = os.getenv(env_key)
		if val:
			setattr(config, attr, Path(val))

	str_env = {
		"TEAM_ORCHESTRATOR_DEFAULT_MODEL": "default_model",
		"TEAM_ORCHESTRATOR_PROVIDER_URL": "provider_base_url",
		"TEAM_ORCHESTRATOR_API_KEY": "provider_api_key",
		"TEAM_ORCHESTRATOR_JOURNAL_BACKEND": "journal_backend",
		"LOG_LEVEL": "log_level",
	}
	for env_key, attr in str_env.items():
		val = os.getenv(env_key)
		if val:
			setattr(config, attr, val)

	# Recompute derived paths after overrides
	config.__post_init__()
	return config


def _apply_toml(config: Config) -> Config:
	"""Apply config.toml overrides if file exists."""
	toml_path = config.config_dir / "config.toml"
	if not toml_path.exists():
		return config

	with open(toml_path, "rb") as f:
		data = tomllib.load(f)

	path_fields = {"config_dir", "data_dir"}
	for key, val in data.items():
		if key == "camps_root":
			config.camps_root_override = Path(os.path.expanduser(val))
		elif hasattr(config, key):
			if key in path_fields:
				setattr(config, key, Path(os.path.expanduser(val)))
			else:
				setattr(config, key, val)

	# Recompute derived paths after toml overrides
	config.__post_init__()
	return config


def load_config() -> Config:
	"""Load config with precedence: env vars > config.toml > defaults."""
	config = Config()
	config = _apply_toml(config)
	config = _apply_env_overrides(config)
	config.ensure_dirs()
	return config


# Singleton
_config: Config | None = None


def get_config() -> Config:
	"""Get or create the global config instance."""
	global _config
	if _config is None:
		_config = load_config()
	return _config
