"""Configuration loading for pmagent.

Settings come from an optional ``pmagent.yaml`` file, with environment
variables taking precedence over file values.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any

import yaml

from pmagent.agent.completion import DEFAULT_BASE_URL
from pmagent.agent.runner import DEFAULT_MODEL, MAX_TOOL_ITERATIONS, AgentConfig
from pmagent.context.models import DEFAULT_RULES_DIR
from pmagent.tickets import DEFAULT_REPO

if TYPE_CHECKING:
    from pmagent.state_store import TicketStore

CONFIG_FILENAME = "pmagent.yaml"

# Environment variable -> settings field
ENV_OVERRIDES = {
    "OPENAI_API_KEY": "openai_api_key",
    "OPENAI_MODEL": "openai_model",
    "OPENAI_BASE_URL": "openai_base_url",
    "PMAGENT_REPO_ROOT": "repo_root",
    "PMAGENT_RULES_DIR": "rules_dir",
    "PMAGENT_DB_PATH": "db_path",
    "PMAGENT_REPO": "repo_full_name",
    "PMAGENT_CONNECTED_REPO": "connected_repo",
    "GITHUB_TOKEN": "github_token",
}


class ConfigError(Exception):
    """Raised when configuration is invalid or missing."""


@dataclass
class AgentSettings:
    """Process-wide agent settings.

    Attributes:
        openai_api_key: API key for the completion endpoint.
        openai_model: Model name.
        openai_base_url: Completion endpoint base URL.
        repo_root: Repository checkout the agent works in.
        rules_dir: Rules directory relative to repo_root.
        db_path: Ticket store path; ticket tools are disabled when unset.
        repo_full_name: Repository scope for ticket numbering.
        connected_repo: GitHub "owner/name" inspected instead of repo_root.
        github_token: Token for the connected repository.
        max_steps: Tool round-trip cap per turn.
    """

    openai_api_key: str | None = None
    openai_model: str = DEFAULT_MODEL
    openai_base_url: str = DEFAULT_BASE_URL
    repo_root: str = "."
    rules_dir: str = DEFAULT_RULES_DIR
    db_path: str | None = None
    repo_full_name: str = DEFAULT_REPO
    connected_repo: str | None = None
    github_token: str | None = None
    max_steps: int = MAX_TOOL_ITERATIONS

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AgentSettings:
        """Create settings from a dictionary.

        Raises:
            ConfigError: If unknown keys are present or max_steps is invalid.
        """
        known = set(cls.__dataclass_fields__)
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigError(f"Unknown configuration keys: {', '.join(unknown)}")

        settings = cls(**{k: v for k, v in data.items() if v is not None})
        try:
            settings.max_steps = int(settings.max_steps)
        except (TypeError, ValueError) as e:
            raise ConfigError(f"max_steps must be an integer, got {settings.max_steps!r}") from e
        if settings.max_steps < 1:
            raise ConfigError("max_steps must be at least 1")
        return settings

    @property
    def store_enabled(self) -> bool:
        """Whether a ticket store is configured."""
        return bool(self.db_path and self.db_path.strip())

    def to_agent_config(self, store: TicketStore | None = None, **overrides: Any) -> AgentConfig:
        """Build the per-turn configuration.

        Args:
            store: Open ticket store, if ticket tools should be available
            **overrides: AgentConfig fields set for this turn only

        Raises:
            ConfigError: If no API key is configured.
        """
        if not self.openai_api_key:
            raise ConfigError("OPENAI_API_KEY is not set")
        if self.connected_repo and not self.github_token:
            raise ConfigError("GITHUB_TOKEN is required when PMAGENT_CONNECTED_REPO is set")
        values: dict[str, Any] = {
            "repo_root": str(Path(self.repo_root).resolve()),
            "openai_api_key": self.openai_api_key,
            "openai_model": self.openai_model,
            "openai_base_url": self.openai_base_url,
            "rules_dir": self.rules_dir,
            "store": store,
            "repo_full_name": self.repo_full_name,
            "connected_repo": self.connected_repo,
            "github_token": self.github_token,
            "max_steps": self.max_steps,
        }
        values.update(overrides)
        return AgentConfig(**values)


def _read_yaml(config_path: Path) -> dict[str, Any]:
    try:
        with open(config_path) as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {config_path}: {e}") from e
    except OSError as e:
        raise ConfigError(f"Cannot read {config_path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Configuration must be a YAML mapping, got {type(data).__name__}")
    return data


def find_config(start_path: Path | str | None = None) -> Path | None:
    """Find pmagent.yaml by walking up the directory tree.

    Returns:
        Path to the file, or None if there is none.
    """
    current = Path(start_path or Path.cwd()).resolve()
    for directory in (current, *current.parents):
        candidate = directory / CONFIG_FILENAME
        if candidate.exists():
            return candidate
    return None


def load_settings(
    config_path: Path | str | None = None,
    env: dict[str, str] | None = None,
) -> AgentSettings:
    """Load settings from YAML (if any) and the environment.

    Args:
        config_path: Explicit config file; auto-detected when None.
        env: Environment mapping (defaults to os.environ).

    Raises:
        ConfigError: If an explicit file is missing or any file is invalid.
    """
    if config_path is not None:
        path: Path | None = Path(config_path)
        if not path.exists():
            raise ConfigError(f"Configuration file not found: {path}")
    else:
        path = find_config()

    data = _read_yaml(path) if path is not None else {}
    environ = os.environ if env is None else env
    for variable, field_name in ENV_OVERRIDES.items():
        value = environ.get(variable)
        if value:
            data[field_name] = value
    return AgentSettings.from_dict(data)
