"""Command-line interface and user configuration."""

from .cli import main
from .config import (
    Config,
    DEFAULT_CONFIG,
    ToolCallSettings,
    get_config_path,
    limits_from_config,
    load_config,
    save_config,
)

__all__ = [
    "main",
    "Config",
    "DEFAULT_CONFIG",
    "ToolCallSettings",
    "get_config_path",
    "limits_from_config",
    "load_config",
    "save_config",
]
