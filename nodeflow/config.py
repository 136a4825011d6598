"""Shared nodeflow configuration utilities.

Centralises reading of ~/.nodeflow/configuration.json so that the engine,
the CLI and tests share one implementation.
"""

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

DEFAULT_MODEL = "openai:gpt-4o"
DEFAULT_STREAM_BUFFER_SIZE = 64
DEFAULT_HTTP_TIMEOUT_SECONDS = 30.0
DEFAULT_MAX_DEPENDENCY_DEPTH = 10
DEFAULT_FREE_AGENT_TIME_LIMIT_MINUTES = 30

# ---------------------------------------------------------------------------
# Low-level config file access
# ---------------------------------------------------------------------------

NODEFLOW_CONFIG_FILE = Path.home() / ".nodeflow" / "configuration.json"


def get_config_path() -> Path:
    """Return the config file path, honouring the NODEFLOW_CONFIG override."""
    override = os.environ.get("NODEFLOW_CONFIG")
    if override:
        return Path(override)
    return NODEFLOW_CONFIG_FILE


def get_nodeflow_config() -> dict[str, Any]:
    """Load configuration from disk. Missing or unreadable files yield ``{}``."""
    path = get_config_path()
    if not path.exists():
        return {}
    try:
        with open(path, encoding="utf-8-sig") as f:
            data = json.load(f)
    except (json.JSONDecodeError, OSError):
        return {}
    return data if isinstance(data, dict) else {}


# ---------------------------------------------------------------------------
# Derived helpers
# ---------------------------------------------------------------------------


def _engine_section() -> dict[str, Any]:
    return get_nodeflow_config().get("engine", {})


def get_default_model() -> str:
    """Return the fallback ``provider:model`` string."""
    llm = get_nodeflow_config().get("llm", {})
    if llm.get("provider") and llm.get("model"):
        return f"{llm['provider']}:{llm['model']}"
    return DEFAULT_MODEL


def get_stream_buffer_size() -> int:
    return int(_engine_section().get("stream_buffer_size", DEFAULT_STREAM_BUFFER_SIZE))


def get_http_timeout() -> float:
    return float(_engine_section().get("http_timeout_seconds", DEFAULT_HTTP_TIMEOUT_SECONDS))


def get_max_dependency_depth() -> int:
    return int(_engine_section().get("max_dependency_depth", DEFAULT_MAX_DEPENDENCY_DEPTH))


def get_free_agent_time_limit_minutes() -> int:
    quota = get_nodeflow_config().get("quota", {})
    return int(quota.get("free_agent_time_limit_minutes", DEFAULT_FREE_AGENT_TIME_LIMIT_MINUTES))


def get_log_level() -> str:
    return os.environ.get("LOG_LEVEL") or get_nodeflow_config().get("logging", {}).get(
        "level", "INFO"
    )


def get_log_format() -> str:
    return get_nodeflow_config().get("logging", {}).get("format", "auto")


# ---------------------------------------------------------------------------
# EngineConfig – shared by the engine and the CLI
# ---------------------------------------------------------------------------


@dataclass
class EngineConfig:
    """Engine configuration loaded from ~/.nodeflow/configuration.json."""

    default_model: str = field(default_factory=get_default_model)
    stream_buffer_size: int = field(default_factory=get_stream_buffer_size)
    http_timeout_seconds: float = field(default_factory=get_http_timeout)
    max_dependency_depth: int = field(default_factory=get_max_dependency_depth)
    free_agent_time_limit_minutes: int = field(default_factory=get_free_agent_time_limit_minutes)
    log_level: str = field(default_factory=get_log_level)
    log_format: str = field(default_factory=get_log_format)
