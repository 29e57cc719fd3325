"""Agent-invocation collaborators."""

from flowrun.agents.client import (
    AgentClient,
    AgentRequest,
    AgentResponse,
    ToolDescriptor,
    ToolOutput,
)
from flowrun.agents.http import HttpAgentClient

__all__ = [
    "AgentClient",
    "AgentRequest",
    "AgentResponse",
    "ToolDescriptor",
    "ToolOutput",
    "HttpAgentClient",
]
