"""
User configuration persistence.

Stores planner endpoint settings and retrieval tool limits in a JSON file.
"""

import copy
import json
from pathlib import Path
from typing import TypedDict

from ..retrieval.results import RetrievalToolLimits


class ToolCallSettings(TypedDict, total=False):
    """Retrieval tool-call limits."""
    enabled: bool
    max_calls_per_turn: int  # 1-16
    max_result_tokens_per_turn: int  # 128-12000
    max_planning_time_ms: int  # 500-120000
    max_injected_entries: int  # 1-32


class Config(TypedDict, total=False):
    """User configuration."""
    provider: str  # openai, openrouter, lmstudio, ollama
    endpoint: str | None  # OpenAI-compatible API root
    model: str | None
    api_key: str | None
    timeout_ms: int
    context_token_budget: int
    tool_calls: ToolCallSettings


DEFAULT_CONFIG: Config = {
    "provider": "openai",
    "endpoint": None,
    "model": None,
    "api_key": None,
    "timeout_ms": 30000,
    "context_token_budget": 1200,
    "tool_calls": {
        "enabled": True,
        "max_calls_per_turn": 4,
        "max_result_tokens_per_turn": 1200,
        "max_planning_time_ms": 8000,
        "max_injected_entries": 6,
    },
}


def default_config() -> Config:
    return copy.deepcopy(DEFAULT_CONFIG)


def get_config_path(config_dir: Path | str = ".") -> Path:
    """Get path to config file."""
    return Path(config_dir) / ".lorevault_config.json"


def load_config(config_dir: Path | str = ".") -> Config:
    """Load config from file, or return defaults if not found."""
    path = get_config_path(config_dir)

    if not path.exists():
        return default_config()

    try:
        with open(path, "r", encoding="utf-8") as f:
            saved = json.load(f)
    except (json.JSONDecodeError, IOError):
        return default_config()

    if not isinstance(saved, dict):
        return default_config()

    # Merge with defaults to handle missing keys
    config = default_config()
    saved_tool_calls = saved.pop("tool_calls", None)
    config.update(saved)
    if isinstance(saved_tool_calls, dict):
        config["tool_calls"].update(saved_tool_calls)
    return config


def save_config(config: Config, config_dir: Path | str = ".") -> bool:
    """Save config to file. Returns True on success."""
    path = get_config_path(config_dir)

    # Ensure directory exists
    path.parent.mkdir(parents=True, exist_ok=True)

    try:
        with open(path, "w", encoding="utf-8") as f:
            json.dump(config, f, indent=2)
        return True
    except IOError:
        return False


def set_endpoint(endpoint: str, model: str | None = None, config_dir: Path | str = ".") -> None:
    """Save planner endpoint (and optionally model) preference."""
    config = load_config(config_dir)
    config["endpoint"] = endpoint
    if model is not None:
        config["model"] = model
    save_config(config, config_dir)


def set_model(model: str, config_dir: Path | str = ".") -> None:
    """Save planner model preference."""
    config = load_config(config_dir)
    config["model"] = model
    save_config(config, config_dir)


def set_tool_calls_enabled(enabled: bool, config_dir: Path | str = ".") -> None:
    """Save tool retrieval toggle."""
    config = load_config(config_dir)
    config["tool_calls"]["enabled"] = enabled
    save_config(config, config_dir)


def limits_from_config(config: Config) -> RetrievalToolLimits:
    """Build retrieval limits from the tool-call settings."""
    settings = {**DEFAULT_CONFIG["tool_calls"], **config.get("tool_calls", {})}
    return RetrievalToolLimits(
        max_calls=settings["max_calls_per_turn"],
        max_result_tokens=settings["max_result_tokens_per_turn"],
        max_planning_time_ms=settings["max_planning_time_ms"],
        max_injected_entries=settings["max_injected_entries"],
    ).clamped()
