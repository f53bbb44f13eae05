"""Configuration utilities for the resumeft CLI.

This module provides shared configuration functions used across CLI commands.
Settings are resolved in order: command-line options, RESUMEFT_*
environment variables, the config file, then built-in defaults.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any

from resumeft.core.config import TransferConfig


def get_config_dir() -> Path:
    """Get the configuration directory for resumeft.

    Returns:
        Path from RESUMEFT_CONFIG_DIR, or ~/.resumeft.
    """
    configured = os.environ.get("RESUMEFT_CONFIG_DIR")
    if configured:
        return Path(configured).expanduser()
    return Path.home() / ".resumeft"


def get_config_file() -> Path:
    """Get the path to the config file."""
    return get_config_dir() / "config.json"


def load_config() -> dict[str, Any]:
    """Load configuration from config file."""
    config_file = get_config_file()
    if config_file.exists():
        return dict(json.loads(config_file.read_text()))
    return {}


def build_config(**overrides: Any) -> TransferConfig:
    """Build the effective configuration for a command.

    Args:
        **overrides: Option values; None means "not given".

    Returns:
        Validated TransferConfig.

    Raises:
        ValueError: If the config file or environment holds invalid values.
    """
    try:
        file_values = load_config()
    except (OSError, json.JSONDecodeError) as e:
        raise ValueError(f"Cannot read {get_config_file()}: {e}") from e
    return TransferConfig.from_env(defaults=file_values, **overrides)
