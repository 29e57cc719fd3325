"""
Run Output Store - completed node outputs for the current run.

Keys are two-level ``(node_id, port)`` tuples rather than ``"node:port"``
strings, so node ids containing ``:`` never collide with port entries.
``port=None`` addresses a node's primary (single string) output.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, NamedTuple

if TYPE_CHECKING:
    from flowrun.graph.edge import EdgeSpec

logger = logging.getLogger(__name__)

SEPARATOR = "\n\n---\n\n"
NO_INPUT = "No input provided"

OutputValue = str | dict[str, str]


class OutputKey(NamedTuple):
    """Address of one stored output."""

    node_id: str
    port: str | None = None

    def __str__(self) -> str:
        return f"{self.node_id}:{self.port}" if self.port else self.node_id


def join_values(values: Iterable[str | None]) -> str:
    """Join the non-empty values with :data:`SEPARATOR`, preserving order."""
    return SEPARATOR.join(v for v in values if v)


def seed_or_default(seed_input: str | None) -> str:
    return seed_input or NO_INPUT


def value_of(output: OutputValue | None, port: str | None = None) -> str | None:
    """
    Read a string out of a node's ``output`` field.

    With a port, a port map yields exactly that port. Without one, a port map
    (a multi-output node wired without naming a port) is joined.
    """
    if output is None:
        return None
    if isinstance(output, dict):
        if port:
            return output.get(port)
        logger.warning("Multi-port output read without a port name; joining all ports")
        return join_values(output.values())
    return output


@dataclass
class ResolvedInput:
    """The input handed to one node."""

    text: str
    values: list[str] = field(default_factory=list)  # non-empty upstream values, edge order
    connection_count: int = 0

    @property
    def from_connections(self) -> bool:
        return bool(self.values)


class RunOutputStore:
    """Mapping of :class:`OutputKey` to completed output, filled as nodes finish."""

    def __init__(self) -> None:
        self._values: dict[OutputKey, OutputValue] = {}

    def record(
        self, node_id: str, primary: OutputValue, ports: dict[str, str] | None = None
    ) -> None:
        """Store a node's primary output and, when present, each named port."""
        for port, value in (ports or {}).items():
            self._values[OutputKey(node_id, port)] = value
        self._values[OutputKey(node_id)] = primary

    def get(self, node_id: str, port: str | None = None) -> OutputValue | None:
        return self._values.get(OutputKey(node_id, port))

    def __contains__(self, key: object) -> bool:
        return key in self._values

    def __len__(self) -> int:
        return len(self._values)

    def clear(self) -> None:
        self._values.clear()

    def as_dict(self) -> dict[str, OutputValue]:
        """Flattened ``{"node" | "node:port": value}`` view for display."""
        return {str(key): value for key, value in self._values.items()}

    def resolve_edge(self, edge: EdgeSpec) -> str | None:
        """Value an edge delivers: its named port, else the source's primary output."""
        if edge.source_port:
            return value_of(self._values.get(OutputKey(edge.source, edge.source_port)))
        return value_of(self._values.get(OutputKey(edge.source)))

    def resolve_input(self, edges: list[EdgeSpec], seed_input: str) -> ResolvedInput:
        """
        Combine every incoming edge's value for a full-graph run.

        Empty or missing values are dropped; the rest are joined in edge
        order. With no edges, or nothing left after dropping, the node gets
        the seed input (or ``"No input provided"``).
        """
        values = [v for v in (self.resolve_edge(e) for e in edges) if v]
        if not values:
            return ResolvedInput(text=seed_or_default(seed_input), connection_count=len(edges))
        return ResolvedInput(
            text=SEPARATOR.join(values), values=values, connection_count=len(edges)
        )
