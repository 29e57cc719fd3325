"""Tests for the structured and human-readable log formatters."""

import asyncio
import json
import logging

import pytest

from flowrun.observability import (
    HumanReadableFormatter,
    StructuredFormatter,
    configure_logging,
    get_trace_context,
    set_trace_context,
)


def _record(message="hello", level=logging.INFO, **extra):
    record = logging.LogRecord("flowrun.test", level, __file__, 1, message, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestStructuredFormatter:
    def test_includes_trace_context_and_extras(self):
        set_trace_context(run_id="abc123", workflow_id="wf")

        line = StructuredFormatter().format(_record(node_id="n1", severity="success"))
        data = json.loads(line)

        assert data["message"] == "hello"
        assert data["level"] == "info"
        assert data["run_id"] == "abc123"
        assert data["workflow_id"] == "wf"
        assert data["node_id"] == "n1"
        assert data["severity"] == "success"

    def test_strips_ansi_codes(self):
        data = json.loads(StructuredFormatter().format(_record("\033[32mgreen\033[0m")))
        assert data["message"] == "green"


class TestHumanReadableFormatter:
    def test_prefix_from_trace_context(self):
        set_trace_context(run_id="0123456789abcdef", workflow_id="wf", node_id="n1")

        line = HumanReadableFormatter().format(_record(level=logging.WARNING))

        assert "[run:89abcdef | wf:wf | node:n1]" in line
        assert "WARNING" in line
        assert line.endswith("hello")

    def test_no_prefix_without_context(self):
        line = HumanReadableFormatter().format(_record())
        assert "[run:" not in line


class TestTraceContext:
    def test_set_merges_fields(self):
        set_trace_context(run_id="r")
        set_trace_context(node_id="n")
        assert get_trace_context() == {"run_id": "r", "node_id": "n"}

    @pytest.mark.asyncio
    async def test_child_tasks_do_not_leak_node_id(self):
        set_trace_context(run_id="r")

        async def node(node_id):
            set_trace_context(node_id=node_id)
            await asyncio.sleep(0)
            return get_trace_context()["node_id"]

        seen = await asyncio.gather(node("a"), node("b"))

        assert seen == ["a", "b"]
        assert "node_id" not in get_trace_context()


def test_configure_logging_json(monkeypatch):
    monkeypatch.setenv("NO_COLOR", "")
    root = logging.getLogger()
    saved_handlers, saved_level = list(root.handlers), root.level
    try:
        configure_logging(level="debug", format="json")
        assert isinstance(root.handlers[0].formatter, StructuredFormatter)
        assert root.level == logging.DEBUG
    finally:
        root.handlers[:] = saved_handlers
        root.setLevel(saved_level)
