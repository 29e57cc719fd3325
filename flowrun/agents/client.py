"""Agent-invocation collaborator: the contract agent nodes call through."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any


@dataclass
class ToolDescriptor:
    """A tool attached to an agent call."""

    tool_id: str
    config: dict[str, Any] = field(default_factory=dict)

    def to_wire(self) -> dict[str, Any]:
        return {"toolId": self.tool_id, "config": self.config}


@dataclass
class AgentRequest:
    """One agent invocation."""

    system_prompt: str
    user_prompt: str
    tools: list[ToolDescriptor] = field(default_factory=list)

    def to_wire(self) -> dict[str, Any]:
        return {
            "systemPrompt": self.system_prompt,
            "userPrompt": self.user_prompt,
            "tools": [t.to_wire() for t in self.tools],
        }


@dataclass
class ToolOutput:
    """A side output produced by one tool during an agent call."""

    tool_id: str
    output: Any = None
    tool_name: str | None = None


@dataclass
class AgentResponse:
    """Response from an agent call."""

    output: str
    tool_outputs: list[ToolOutput] = field(default_factory=list)


class AgentClient(ABC):
    """
    Abstract agent-invocation collaborator.

    Implementations raise :class:`flowrun.errors.AgentInvocationError` (or any
    exception carrying a readable message) on failure. The calling node turns
    the exception into an error status and an ``Error: ...`` output.
    """

    @abstractmethod
    async def invoke(self, request: AgentRequest) -> AgentResponse:
        """Run one agent call and return its text output and tool outputs."""
        pass
