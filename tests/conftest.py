"""Shared fixtures: isolate configuration and trace context per test."""

from __future__ import annotations

from pathlib import Path

import pytest

from flowrun.observability import clear_trace_context


@pytest.fixture(autouse=True)
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point configuration at an empty temp location and drop env overrides."""
    config_path = tmp_path / "flowrun" / "configuration.json"
    monkeypatch.setenv("FLOWRUN_CONFIG", str(config_path))
    monkeypatch.delenv("FLOWRUN_AGENT_URL", raising=False)
    return config_path


@pytest.fixture(autouse=True)
def clean_trace_context():
    clear_trace_context()
    yield
    clear_trace_context()
