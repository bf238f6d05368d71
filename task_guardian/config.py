"""Config loading and validation for task-guardian.

Loads task-guardian.config.json if present, applies defaults, and expands ~
in paths. The TASK_GUARDIAN_DIR environment variable overrides task_dir.
"""

import json
import logging
import os
from pathlib import Path
from typing import Any

CONFIG_FILENAME = "task-guardian.config.json"

ENV_TASK_DIR = "TASK_GUARDIAN_DIR"


class ConfigError(Exception):
    """Raised when configuration is invalid."""


PATH_FIELDS = ["task_dir"]

DEFAULTS: dict[str, Any] = {
    "task_dir": ".task",
    "log_level": "WARNING",
}


def load_config(config_path: str | Path | None = None) -> dict[str, Any]:
    """Load and validate task-guardian.config.json.

    Args:
        config_path: Path to config file. Defaults to ./task-guardian.config.json.
            A missing default file is not an error; defaults are used.

    Returns:
        Validated config dict with defaults applied, env overrides and
        paths expanded.

    Raises:
        ConfigError: If an explicit file is missing, or any file is
            unreadable or has invalid content.
    """
    if config_path is None:
        config_path = Path.cwd() / CONFIG_FILENAME
        required = False
    else:
        config_path = Path(config_path)
        required = True

    config: dict[str, Any] = {}
    if config_path.exists():
        try:
            config = json.loads(config_path.read_text())
        except json.JSONDecodeError as e:
            raise ConfigError(f"Invalid JSON in {config_path}: {e}") from e
    elif required:
        raise ConfigError(f"Config file not found: {config_path}")

    _validate(config)
    _apply_defaults(config)
    _apply_env(config)
    _expand_paths(config)

    return config


def _validate(config: Any) -> None:
    if not isinstance(config, dict):
        raise ConfigError("Config must be a JSON object")
    level = config.get("log_level")
    if level is not None and not isinstance(logging.getLevelName(str(level).upper()), int):
        raise ConfigError(f"Unknown log_level: '{level}'")


def _apply_defaults(config: dict[str, Any]) -> None:
    """Apply default values for optional fields."""
    for key, default in DEFAULTS.items():
        if key not in config:
            config[key] = default


def _apply_env(config: dict[str, Any]) -> None:
    task_dir = os.environ.get(ENV_TASK_DIR)
    if task_dir:
        config["task_dir"] = task_dir


def _expand_paths(config: dict[str, Any]) -> None:
    """Expand ~ in path fields to the user's home directory."""
    for field in PATH_FIELDS:
        if field in config and isinstance(config[field], str):
            config[field] = str(Path(config[field]).expanduser())


def configure_logging(level: str) -> None:
    """Send log records to stderr; stdout belongs to the MCP transport."""
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
