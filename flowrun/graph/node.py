"""
Node Model - the units of work in a workflow graph.

Each node kind is its own pydantic model, discriminated on ``kind``, carrying
its kind-specific configuration. Every kind implements one method::

    async def execute(self, ctx: NodeContext) -> NodeResult

so the resolvers drive nodes without knowing their concrete kind. Status
transitions and error capture happen in the executor at the node boundary;
``execute`` simply returns or raises.

Kinds:
- input: emits its configured text (or the run's seed input)
- agent: renders its prompt template and calls the agent collaborator
- transform: pure local string operation
- join: fan-in materialized as a node
- output: terminal presentation node, passes its input through
- function: delegates to the function-executor collaborator (may be multi-port)
- tool: delegates to the tool collaborator, shaped like a function node
"""

from __future__ import annotations

import json
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING, Annotated, Any, Literal

from pydantic import BaseModel, Field, TypeAdapter

from flowrun.agents.client import AgentRequest, ToolDescriptor, ToolOutput
from flowrun.errors import NodeExecutionError
from flowrun.graph.cancellation import CancellationToken
from flowrun.graph.output_store import SEPARATOR, OutputValue, join_values, seed_or_default
from flowrun.runtime.run_log import RunLog

if TYPE_CHECKING:
    from flowrun.agents.client import AgentClient
    from flowrun.functions.executor import FunctionExecutor


class NodeKind(StrEnum):
    INPUT = "input"
    AGENT = "agent"
    TRANSFORM = "transform"
    JOIN = "join"
    OUTPUT = "output"
    FUNCTION = "function"
    TOOL = "tool"


class NodeStatus(StrEnum):
    IDLE = "idle"
    RUNNING = "running"
    COMPLETE = "complete"  # success
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (NodeStatus.COMPLETE, NodeStatus.ERROR)


@dataclass
class NodeContext:
    """Everything a node needs to execute once."""

    node_input: str
    seed_input: str = ""
    upstream: list[str] = field(default_factory=list)  # individual non-empty upstream values
    run_log: RunLog = field(default_factory=RunLog)
    cancel_token: CancellationToken = field(default_factory=CancellationToken)
    agent_client: AgentClient | None = None
    function_executor: FunctionExecutor | None = None
    tool_executor: FunctionExecutor | None = None


@dataclass
class NodeResult:
    """Outcome of one successful node execution."""

    output: OutputValue
    ports: dict[str, str] = field(default_factory=dict)
    tool_outputs: list[ToolOutput] = field(default_factory=list)
    latency_ms: int = 0

    @property
    def primary(self) -> str:
        """Single-string view for consumers that are not port-aware."""
        if isinstance(self.output, dict):
            return join_values(self.output.values())
        return self.output

    @classmethod
    def from_ports(cls, outputs: dict[str, str]) -> NodeResult:
        """
        Shape a named-output map into a result.

        More than one entry keeps the full map as the node output. A single
        entry collapses to a string (``outputs["output"]`` if present).
        """
        if len(outputs) > 1:
            return cls(output=dict(outputs), ports=dict(outputs))
        primary = outputs.get("output") or next(iter(outputs.values()), "") or ""
        return cls(output=primary, ports=dict(outputs))


class NodeSpec(BaseModel):
    """Fields shared by every node kind."""

    id: str
    name: str = ""
    kind: NodeKind
    status: NodeStatus = NodeStatus.IDLE
    output: str | dict[str, str] | None = None

    model_config = {"extra": "allow"}

    @property
    def label(self) -> str:
        return self.name or self.id

    def reset(self) -> None:
        """Clear run state before a new run."""
        self.status = NodeStatus.IDLE
        self.output = None

    def record_result(self, result: NodeResult) -> None:
        self.status = NodeStatus.COMPLETE
        self.output = result.output

    def record_error(self, message: str) -> None:
        self.status = NodeStatus.ERROR
        self.output = f"Error: {message}"

    async def execute(self, ctx: NodeContext) -> NodeResult:
        raise NotImplementedError(f"Node kind '{self.kind}' has no execute()")


class InputNodeSpec(NodeSpec):
    kind: Literal["input"] = "input"
    text: str = ""

    async def execute(self, ctx: NodeContext) -> NodeResult:
        return NodeResult(output=self.text or ctx.seed_input)


class ToolInstance(BaseModel):
    """A tool attached to an agent node."""

    id: str = ""
    tool_id: str
    config: dict[str, Any] = Field(default_factory=dict)


class AgentNodeSpec(NodeSpec):
    """
    Agent call node.

    ``user_prompt`` is a template: ``{input}`` becomes the resolved input and
    ``{prompt}`` the run's seed input.
    """

    kind: Literal["agent"] = "agent"
    system_prompt: str = ""
    user_prompt: str = "{input}"
    tools: list[ToolInstance] = Field(default_factory=list)
    tool_outputs: list[dict[str, Any]] = Field(default_factory=list)

    def render_prompt(self, node_input: str, seed_input: str) -> str:
        return self.user_prompt.replace("{input}", node_input).replace(
            "{prompt}", seed_or_default(seed_input)
        )

    def reset(self) -> None:
        super().reset()
        self.tool_outputs = []

    def record_result(self, result: NodeResult) -> None:
        super().record_result(result)
        self.tool_outputs = [
            {"toolId": t.tool_id, "toolName": t.tool_name, "output": t.output}
            for t in result.tool_outputs
        ]

    async def execute(self, ctx: NodeContext) -> NodeResult:
        if ctx.agent_client is None:
            raise NodeExecutionError("No agent client configured")

        for tool in self.tools:
            ctx.run_log.running(f"Executing tool: {tool.tool_id.replace('_', ' ')}", self.id)

        request = AgentRequest(
            system_prompt=self.system_prompt,
            user_prompt=self.render_prompt(ctx.node_input, ctx.seed_input),
            tools=[ToolDescriptor(tool_id=t.tool_id, config=t.config) for t in self.tools],
        )
        response = await ctx.agent_client.invoke(request)

        for tool_output in response.tool_outputs:
            rendered = json.dumps(tool_output.output, indent=2, default=str)
            ctx.run_log.info(f"Tool Output [{tool_output.tool_id}]: {rendered}", self.id)

        return NodeResult(
            output=response.output or "No output generated",
            tool_outputs=list(response.tool_outputs),
        )


TRANSFORM_OPERATIONS: dict[str, Callable[[str], str]] = {
    "uppercase": str.upper,
    "lowercase": str.lower,
    "titlecase": str.title,
    "trim": str.strip,
    "reverse": lambda text: text[::-1],
}


class TransformNodeSpec(NodeSpec):
    kind: Literal["transform"] = "transform"
    operation: str = "uppercase"

    async def execute(self, ctx: NodeContext) -> NodeResult:
        op = TRANSFORM_OPERATIONS.get(self.operation)
        if op is None:
            raise ValueError(
                f"Unknown transform operation '{self.operation}'. "
                f"Valid: {sorted(TRANSFORM_OPERATIONS)}"
            )
        return NodeResult(output=op(ctx.node_input))


class JoinNodeSpec(NodeSpec):
    kind: Literal["join"] = "join"

    async def execute(self, ctx: NodeContext) -> NodeResult:
        if not ctx.upstream:
            return NodeResult(output=ctx.node_input)
        return NodeResult(output=SEPARATOR.join(ctx.upstream))


class OutputNodeSpec(NodeSpec):
    kind: Literal["output"] = "output"

    async def execute(self, ctx: NodeContext) -> NodeResult:
        return NodeResult(output=ctx.node_input)


class FunctionNodeSpec(NodeSpec):
    kind: Literal["function"] = "function"
    function_type: str
    config: dict[str, Any] = Field(default_factory=dict)
    output_ports: list[str] = Field(default_factory=lambda: ["output"])

    async def execute(self, ctx: NodeContext) -> NodeResult:
        if ctx.function_executor is None:
            raise NodeExecutionError("No function executor configured")
        result = await ctx.function_executor.execute(self, ctx.node_input)
        if not result.success:
            raise NodeExecutionError(result.error or "Function execution failed")
        return NodeResult.from_ports(result.outputs)


class ToolNodeSpec(NodeSpec):
    kind: Literal["tool"] = "tool"
    tool_type: str
    config: dict[str, Any] = Field(default_factory=dict)

    async def execute(self, ctx: NodeContext) -> NodeResult:
        if ctx.tool_executor is None:
            raise NodeExecutionError("No tool executor configured")
        result = await ctx.tool_executor.execute(self, ctx.node_input)
        if not result.success:
            raise NodeExecutionError(result.error or "Tool execution failed")
        return NodeResult.from_ports(result.outputs)


AnyNode = Annotated[
    InputNodeSpec
    | AgentNodeSpec
    | TransformNodeSpec
    | JoinNodeSpec
    | OutputNodeSpec
    | FunctionNodeSpec
    | ToolNodeSpec,
    Field(discriminator="kind"),
]

_node_adapter: TypeAdapter[AnyNode] = TypeAdapter(AnyNode)


def parse_node(data: dict[str, Any]) -> NodeSpec:
    """Build the node model matching ``data["kind"]``."""
    return _node_adapter.validate_python(data)
