"""Function-executor collaborator contract used by function and tool nodes."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from flowrun.graph.node import FunctionNodeSpec, ToolNodeSpec


@dataclass
class FunctionResult:
    """
    Result of a function body.

    ``outputs`` is keyed by port name; a single ``{"output": ...}`` entry is
    the common case.
    """

    success: bool
    outputs: dict[str, str] = field(default_factory=dict)
    error: str | None = None


class FunctionExecutor(ABC):
    """Runs the body of a function (or tool) node."""

    @abstractmethod
    async def execute(
        self, node: FunctionNodeSpec | ToolNodeSpec, node_input: str
    ) -> FunctionResult:
        """Execute the node's configured body against its resolved input."""
        pass
