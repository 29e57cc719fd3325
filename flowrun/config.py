"""Shared flowrun configuration utilities.

Centralises reading of ~/.flowrun/configuration.json so that the executor
and the HTTP agent client share one implementation.
"""

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

# ---------------------------------------------------------------------------
# Low-level config file access
# ---------------------------------------------------------------------------

FLOWRUN_CONFIG_FILE = Path.home() / ".flowrun" / "configuration.json"

DEFAULT_AGENT_TIMEOUT_SECONDS = 120.0


def get_config_path() -> Path:
    """Return the configuration file path, honouring FLOWRUN_CONFIG."""
    override = os.environ.get("FLOWRUN_CONFIG")
    return Path(override) if override else FLOWRUN_CONFIG_FILE


def get_flowrun_config() -> dict[str, Any]:
    """Load configuration, returning {} when the file is missing or unreadable."""
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


def get_agent_endpoint() -> str | None:
    """Return the run-agent endpoint URL (FLOWRUN_AGENT_URL wins over the file)."""
    env_url = os.environ.get("FLOWRUN_AGENT_URL")
    if env_url:
        return env_url
    return get_flowrun_config().get("agent", {}).get("endpoint_url")


def get_agent_api_key() -> str | None:
    """Return the API key from the environment variable named in configuration."""
    agent = get_flowrun_config().get("agent", {})
    api_key_env_var = agent.get("api_key_env_var")
    if api_key_env_var:
        return os.environ.get(api_key_env_var)
    return None


def get_agent_timeout() -> float:
    return float(
        get_flowrun_config().get("agent", {}).get("timeout_seconds", DEFAULT_AGENT_TIMEOUT_SECONDS)
    )


def get_node_timeout() -> float | None:
    """Per-node execution timeout in seconds, or None for no limit."""
    value = get_flowrun_config().get("execution", {}).get("node_timeout_seconds")
    return float(value) if value is not None else None


def get_wave_pause() -> float:
    return float(get_flowrun_config().get("execution", {}).get("wave_pause_seconds", 0.0))


# ---------------------------------------------------------------------------
# ExecutorConfig
# ---------------------------------------------------------------------------


@dataclass
class ExecutorConfig:
    """Workflow executor settings loaded from the configuration file."""

    node_timeout_seconds: float | None = field(default_factory=get_node_timeout)
    wave_pause_seconds: float = field(default_factory=get_wave_pause)
