"""Graph structures: nodes, edges, stages and the workflow executor."""

from flowrun.graph.cancellation import CancellationToken
from flowrun.graph.edge import EdgeSpec, GraphSpec, StageSpec
from flowrun.graph.executor import ExecutionResult, ExecutionStrategy, WorkflowExecutor
from flowrun.graph.node import (
    AgentNodeSpec,
    AnyNode,
    FunctionNodeSpec,
    InputNodeSpec,
    JoinNodeSpec,
    NodeContext,
    NodeKind,
    NodeResult,
    NodeSpec,
    NodeStatus,
    OutputNodeSpec,
    ToolInstance,
    ToolNodeSpec,
    TransformNodeSpec,
    parse_node,
)
from flowrun.graph.output_store import (
    NO_INPUT,
    SEPARATOR,
    OutputKey,
    ResolvedInput,
    RunOutputStore,
)

__all__ = [
    # Node
    "NodeKind",
    "NodeStatus",
    "NodeSpec",
    "NodeContext",
    "NodeResult",
    "AnyNode",
    "InputNodeSpec",
    "AgentNodeSpec",
    "ToolInstance",
    "TransformNodeSpec",
    "JoinNodeSpec",
    "OutputNodeSpec",
    "FunctionNodeSpec",
    "ToolNodeSpec",
    "parse_node",
    # Edge / graph
    "EdgeSpec",
    "StageSpec",
    "GraphSpec",
    # Output store
    "OutputKey",
    "ResolvedInput",
    "RunOutputStore",
    "SEPARATOR",
    "NO_INPUT",
    # Executor
    "WorkflowExecutor",
    "ExecutionResult",
    "ExecutionStrategy",
    "CancellationToken",
]
