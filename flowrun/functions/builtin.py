"""Local function bodies for function nodes.

Pure, in-process string and JSON operations. Network-backed bodies (search,
scraping, API calls) and document exports live with the host application and
are plugged in through :meth:`LocalFunctionExecutor.register` or a separate
:class:`~flowrun.functions.executor.FunctionExecutor`.

Predicate bodies route their input to a ``true`` or ``false`` port and leave
the other port empty, so downstream edges can branch on the port name.
"""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Callable
from typing import Any
from urllib.parse import urlparse

from flowrun.functions.executor import FunctionExecutor, FunctionResult
from flowrun.graph.output_store import SEPARATOR

logger = logging.getLogger(__name__)

FunctionBody = Callable[[dict[str, Any], str], dict[str, str]]

URL_PATTERN = re.compile(r"https?://[^\s<>\"{}|\\^`\[\]]+", re.IGNORECASE)
_ARRAY_SEGMENT = re.compile(r"^([^.\[]+)\[(\d*)\]$")

BUILTIN_FUNCTIONS: dict[str, FunctionBody] = {}


def builtin(name: str) -> Callable[[FunctionBody], FunctionBody]:
    """Register a module-level function body under ``name``."""

    def decorator(body: FunctionBody) -> FunctionBody:
        BUILTIN_FUNCTIONS[name] = body
        return body

    return decorator


def _route(condition: bool, value: str) -> dict[str, str]:
    return {"true": value, "false": ""} if condition else {"true": "", "false": value}


def _to_text(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, bool) or value is None:
        return json.dumps(value)
    if isinstance(value, (dict, list)):
        return json.dumps(value, ensure_ascii=False)
    return str(value)


# ---------------------------------------------------------------------------
# Input / content
# ---------------------------------------------------------------------------


@builtin("text_input")
def text_input(config: dict[str, Any], node_input: str) -> dict[str, str]:
    return {"output": node_input or config.get("inputText") or ""}


@builtin("content")
def content(config: dict[str, Any], node_input: str) -> dict[str, str]:
    # Configured content only; input is ignored
    return {"output": config.get("content") or ""}


# ---------------------------------------------------------------------------
# String operations
# ---------------------------------------------------------------------------


@builtin("string_contains")
def string_contains(config: dict[str, Any], node_input: str) -> dict[str, str]:
    needle = config.get("searchText") or ""
    if config.get("caseSensitive"):
        found = needle in node_input
    else:
        found = needle.lower() in node_input.lower()
    return _route(found, node_input)


@builtin("string_concat")
def string_concat(config: dict[str, Any], node_input: str) -> dict[str, str]:
    # Upstream values arrive already joined by the resolver
    return {"output": node_input}


@builtin("string_replace")
def string_replace(config: dict[str, Any], node_input: str) -> dict[str, str]:
    find = config.get("find") or ""
    if not find:
        return {"output": node_input}
    return {"output": node_input.replace(find, config.get("replace") or "")}


@builtin("string_split")
def string_split(config: dict[str, Any], node_input: str) -> dict[str, str]:
    delimiter = config.get("delimiter") or ","
    return {"output": "\n".join(node_input.split(delimiter))}


@builtin("extract_urls")
def extract_urls(config: dict[str, Any], node_input: str) -> dict[str, str]:
    matches = URL_PATTERN.findall(node_input)
    if config.get("unique", True):
        matches = list(dict.fromkeys(matches))
    return {"output": "\n".join(matches)}


# ---------------------------------------------------------------------------
# Logic
# ---------------------------------------------------------------------------


@builtin("is_json")
def is_json(config: dict[str, Any], node_input: str) -> dict[str, str]:
    try:
        json.loads(node_input)
    except ValueError:
        return _route(False, node_input)
    return _route(True, node_input)


@builtin("is_empty")
def is_empty(config: dict[str, Any], node_input: str) -> dict[str, str]:
    return _route(node_input.strip() == "", node_input)


@builtin("is_url")
def is_url(config: dict[str, Any], node_input: str) -> dict[str, str]:
    candidate = node_input.strip()
    parsed = urlparse(candidate)
    valid = bool(parsed.scheme) and bool(parsed.netloc or parsed.path) and " " not in candidate
    return _route(valid, node_input)


@builtin("if_else")
def if_else(config: dict[str, Any], node_input: str) -> dict[str, str]:
    condition = config.get("condition") or ""
    return _route(condition.lower() in node_input.lower(), node_input)


# ---------------------------------------------------------------------------
# JSON
# ---------------------------------------------------------------------------


@builtin("format_json")
def format_json(config: dict[str, Any], node_input: str) -> dict[str, str]:
    try:
        parsed = json.loads(node_input)
    except ValueError as e:
        raise ValueError("Invalid JSON") from e
    return {"output": json.dumps(parsed, indent=2, ensure_ascii=False)}


@builtin("parse_json")
def parse_json(config: dict[str, Any], node_input: str) -> dict[str, str]:
    """
    Parse JSON input and optionally extract a value by path.

    Path syntax: ``a.b``, ``items[0].name``, ``items[].name``. A ``[]``
    wildcard followed by more path collects that sub-path from every item
    and joins the results with ``", "``; a trailing ``[]`` returns the array.
    """
    try:
        result = json.loads(node_input)
    except ValueError as e:
        raise ValueError(f"Invalid JSON: {e}") from e

    extract_path = config.get("extractPath")
    if extract_path:
        result = _extract(result, extract_path)

    if isinstance(result, (str, int, float, bool)):
        return {"output": _to_text(result)}
    return {"output": json.dumps(result, indent=2, ensure_ascii=False)}


def _extract(value: Any, path: str) -> Any:
    segments = path.split(".")
    for i, segment in enumerate(segments):
        if not segment:
            raise ValueError(f"Invalid path syntax: {path}")
        match = _ARRAY_SEGMENT.match(segment)
        if match is None:
            if not isinstance(value, dict) or segment not in value:
                raise ValueError(f"Path not found: {segment}")
            value = value[segment]
            continue

        name, index = match.groups()
        value = value.get(name) if isinstance(value, dict) else None
        if not isinstance(value, list):
            raise ValueError(f"{name} is not an array")

        if index == "":
            rest = ".".join(segments[i + 1 :])
            if not rest:
                return value
            picked = [_lookup(item, rest) for item in value]
            return ", ".join(_to_text(v) for v in picked if v is not None)

        idx = int(index)
        if idx >= len(value):
            raise ValueError(f"Array index {idx} out of bounds")
        value = value[idx]
    return value


def _lookup(value: Any, path: str) -> Any:
    """Lenient path lookup used under a wildcard: missing keys yield None."""
    for segment in path.split("."):
        match = _ARRAY_SEGMENT.match(segment)
        if match:
            name, index = match.groups()
            items = value.get(name) if isinstance(value, dict) else None
            if not isinstance(items, list) or not index or int(index) >= len(items):
                return None
            value = items[int(index)]
        elif isinstance(value, dict):
            value = value.get(segment)
        else:
            return None
    return value


# ---------------------------------------------------------------------------
# Executor
# ---------------------------------------------------------------------------


class LocalFunctionExecutor(FunctionExecutor):
    """
    Dispatches function nodes to in-process bodies by ``function_type``.

    Unknown types and exceptions raised by a body are reported as
    ``FunctionResult(success=False, ...)``, never raised.

    Example:
        executor = LocalFunctionExecutor()
        executor.register("shout", lambda config, text: {"output": text.upper() + "!"})
    """

    def __init__(self) -> None:
        self._bodies: dict[str, FunctionBody] = dict(BUILTIN_FUNCTIONS)
        self._bodies["memory"] = self._memory
        self._memory_store: dict[str, list[str]] = {}

    def register(self, name: str, body: FunctionBody) -> None:
        """Register (or replace) a function body."""
        self._bodies[name] = body

    @property
    def function_types(self) -> list[str]:
        return sorted(self._bodies)

    async def execute(self, node: Any, node_input: str) -> FunctionResult:
        function_type = getattr(node, "function_type", None) or getattr(node, "tool_type", "")
        body = self._bodies.get(function_type)
        if body is None:
            return FunctionResult(
                success=False, error=f"Unknown function type: {function_type}"
            )
        try:
            outputs = body(dict(getattr(node, "config", {}) or {}), node_input)
        except Exception as e:
            logger.debug(f"Function body '{function_type}' raised: {e}")
            return FunctionResult(success=False, error=str(e) or type(e).__name__)
        return FunctionResult(success=True, outputs=outputs)

    def _memory(self, config: dict[str, Any], node_input: str) -> dict[str, str]:
        key = config.get("memoryKey") or "default"
        self._memory_store.setdefault(key, []).append(node_input)
        return {"output": SEPARATOR.join(self._memory_store[key])}

    def memory_entries(self, key: str) -> list[str]:
        return list(self._memory_store.get(key, []))

    def clear_memory(self, key: str) -> None:
        self._memory_store.pop(key, None)
