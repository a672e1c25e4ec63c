"""Configuration loader: reads optional YAML config and merges with defaults."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

import yaml

from agentboard.errors import ConfigError

CONFIG_PATH = Path("~/.config/agentboard/config.yaml")

NAME_POLICIES = ("exact", "casefold")

DEFAULTS = {
    "db_path": "~/.local/share/agentboard/agentboard.db",
    "upload_dir": "~/agentboard/exports",
    "port": 8788,
    "hidden_agents": [],
    "name_policy": "exact",
    "strict": False,
    "log_level": "WARNING",
}


@dataclass
class AgentboardConfig:
    db_path: Path
    upload_dir: Path
    port: int
    hidden_agents: list[str] = field(default_factory=list)
    name_policy: str = "exact"
    strict: bool = False
    log_level: str = "WARNING"


def save_config_value(key: str, value: object, config_path: Path | None = None) -> None:
    """Update a single key in the config file, preserving other settings."""
    if config_path is None:
        config_path = CONFIG_PATH
    config_path = config_path.expanduser()
    config_path.parent.mkdir(parents=True, exist_ok=True)

    existing: dict = {}
    if config_path.is_file():
        with open(config_path) as f:
            loaded = yaml.safe_load(f)
        if isinstance(loaded, dict):
            existing = loaded

    existing[key] = value
    with open(config_path, "w") as f:
        yaml.dump(existing, f, default_flow_style=False)


def load_config(config_path: Path | None = None) -> AgentboardConfig:
    """Load config from ~/.config/agentboard/config.yaml, merged with defaults.

    Expand ~ in paths. Create parent directories for db_path if they don't exist.
    If no config file exists, return defaults (don't error). An unknown
    name_policy raises ConfigError.
    """
    if config_path is None:
        config_path = CONFIG_PATH

    config_path = config_path.expanduser()

    merged = dict(DEFAULTS)

    if config_path.is_file():
        with open(config_path) as f:
            user_config = yaml.safe_load(f)
        if isinstance(user_config, dict):
            for key in DEFAULTS:
                if key in user_config:
                    merged[key] = user_config[key]

    name_policy = str(merged["name_policy"])
    if name_policy not in NAME_POLICIES:
        raise ConfigError(
            f"name_policy must be one of {', '.join(NAME_POLICIES)}, got {name_policy!r}"
        )

    hidden = merged["hidden_agents"] or []
    if isinstance(hidden, str):
        hidden = [hidden]

    db_path = Path(merged["db_path"]).expanduser()
    upload_dir = Path(merged["upload_dir"]).expanduser()

    db_path.parent.mkdir(parents=True, exist_ok=True)

    return AgentboardConfig(
        db_path=db_path,
        upload_dir=upload_dir,
        port=int(merged["port"]),
        hidden_agents=[str(h) for h in hidden],
        name_policy=name_policy,
        strict=bool(merged["strict"]),
        log_level=str(merged["log_level"]).upper(),
    )
