"""Tests for configuration loading."""

import json

from flowrun.config import (
    DEFAULT_AGENT_TIMEOUT_SECONDS,
    ExecutorConfig,
    get_agent_api_key,
    get_agent_endpoint,
    get_agent_timeout,
    get_config_path,
    get_flowrun_config,
)


def _write(path, data):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data) if not isinstance(data, str) else data)


def test_config_path_honours_env(isolated_config):
    assert get_config_path() == isolated_config


def test_missing_file_gives_defaults():
    assert get_flowrun_config() == {}
    assert get_agent_endpoint() is None
    assert get_agent_api_key() is None
    assert get_agent_timeout() == DEFAULT_AGENT_TIMEOUT_SECONDS

    config = ExecutorConfig()
    assert config.node_timeout_seconds is None
    assert config.wave_pause_seconds == 0.0


def test_corrupt_file_is_ignored(isolated_config):
    _write(isolated_config, "{not valid")
    assert get_flowrun_config() == {}


def test_non_object_file_is_ignored(isolated_config):
    _write(isolated_config, [1, 2, 3])
    assert get_flowrun_config() == {}


def test_execution_settings(isolated_config):
    _write(isolated_config, {"execution": {"node_timeout_seconds": 45, "wave_pause_seconds": 0.5}})

    config = ExecutorConfig()

    assert config.node_timeout_seconds == 45.0
    assert config.wave_pause_seconds == 0.5


def test_env_endpoint_wins_over_file(isolated_config, monkeypatch):
    _write(isolated_config, {"agent": {"endpoint_url": "https://file.example.com"}})
    assert get_agent_endpoint() == "https://file.example.com"

    monkeypatch.setenv("FLOWRUN_AGENT_URL", "https://env.example.com")
    assert get_agent_endpoint() == "https://env.example.com"


def test_api_key_read_from_named_env_var(isolated_config, monkeypatch):
    _write(isolated_config, {"agent": {"api_key_env_var": "AGENT_TOKEN"}})
    assert get_agent_api_key() is None

    monkeypatch.setenv("AGENT_TOKEN", "tok")
    assert get_agent_api_key() == "tok"
