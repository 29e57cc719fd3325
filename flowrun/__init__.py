"""flowrun - execution engine for visual AI workflow graphs."""

from flowrun.agents import AgentClient, AgentRequest, AgentResponse, HttpAgentClient
from flowrun.functions import FunctionExecutor, FunctionResult, LocalFunctionExecutor
from flowrun.graph import (
    CancellationToken,
    EdgeSpec,
    ExecutionResult,
    ExecutionStrategy,
    GraphSpec,
    StageSpec,
    WorkflowExecutor,
)
from flowrun.runtime import LogEntry, LogLevel, RunLog

__version__ = "0.1.0"

__all__ = [
    "AgentClient",
    "AgentRequest",
    "AgentResponse",
    "HttpAgentClient",
    "FunctionExecutor",
    "FunctionResult",
    "LocalFunctionExecutor",
    "CancellationToken",
    "EdgeSpec",
    "ExecutionResult",
    "ExecutionStrategy",
    "GraphSpec",
    "StageSpec",
    "WorkflowExecutor",
    "LogEntry",
    "LogLevel",
    "RunLog",
]
