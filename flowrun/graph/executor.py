"""
Workflow Executor - runs workflow graphs.

The executor:
1. Validates the graph and resets every node to idle
2. Picks the waves to run (explicit stages, topological levels, or
   readiness computed on the fly)
3. Runs every node of a wave concurrently and waits for all of them
4. Records outputs in the Run Output Store for downstream input resolution
5. Appends every user-meaningful transition to the Run Log

Both scheduling strategies share one wave runner and one per-node boundary,
so input resolution, status bookkeeping and logging are identical. Node
failures are captured at the node boundary and flow downstream as data
(``"Error: ..."``); only a structural failure (cycle) or cancellation stops
a run early.
"""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from collections import Counter
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from flowrun.agents.client import AgentClient
from flowrun.config import ExecutorConfig
from flowrun.errors import (
    GraphStructureError,
    GraphValidationError,
    NodeCancelledError,
    NodeTimeoutError,
)
from flowrun.functions.executor import FunctionExecutor
from flowrun.graph.cancellation import CancellationToken
from flowrun.graph.edge import GraphSpec
from flowrun.graph.node import (
    FunctionNodeSpec,
    NodeContext,
    NodeResult,
    NodeSpec,
    NodeStatus,
)
from flowrun.graph.output_store import (
    ResolvedInput,
    RunOutputStore,
    seed_or_default,
    value_of,
)
from flowrun.observability import set_trace_context
from flowrun.runtime.run_log import RunLog


class ExecutionStrategy(StrEnum):
    """How the executor decides which nodes run together."""

    STAGED = "staged"  # explicit stages (or topological levels when none are defined)
    READINESS = "readiness"  # recompute the ready set after every wave


@dataclass
class ExecutionResult:
    """Result of running a whole graph."""

    success: bool
    error: str | None = None
    outputs: dict[str, Any] = field(default_factory=dict)  # node id -> final output
    waves: list[list[str]] = field(default_factory=list)  # node ids per wave, in order
    failed_nodes: list[str] = field(default_factory=list)
    cancelled: bool = False
    duration_ms: int = 0

    @property
    def had_node_errors(self) -> bool:
        """True if the run finished but some nodes ended in error."""
        return bool(self.failed_nodes)


@dataclass
class _RunState:
    graph: GraphSpec
    seed_input: str
    store: RunOutputStore
    token: CancellationToken
    result: ExecutionResult


NodeUpdateCallback = Callable[[NodeSpec], None]


class WorkflowExecutor:
    """
    Executes workflow graphs.

    Example:
        executor = WorkflowExecutor(
            agent_client=HttpAgentClient(),
            function_executor=LocalFunctionExecutor(),
        )

        result = await executor.run(graph, seed_input="Summarise this")
        for entry in executor.run_log:
            print(entry.level, entry.message)
    """

    def __init__(
        self,
        agent_client: AgentClient | None = None,
        function_executor: FunctionExecutor | None = None,
        tool_executor: FunctionExecutor | None = None,
        run_log: RunLog | None = None,
        on_node_update: NodeUpdateCallback | None = None,
        config: ExecutorConfig | None = None,
    ):
        """
        Initialize the executor.

        Args:
            agent_client: Collaborator for agent nodes
            function_executor: Collaborator for function nodes
            tool_executor: Collaborator for tool nodes
            run_log: Log to append to (a new one is created if omitted)
            on_node_update: Called after every status/output change of a node
            config: Timeout and pacing settings (defaults from configuration file)
        """
        self.agent_client = agent_client
        self.function_executor = function_executor
        self.tool_executor = tool_executor
        self.run_log = run_log or RunLog()
        self.on_node_update = on_node_update
        self.config = config or ExecutorConfig()
        self.logger = logging.getLogger(__name__)
        self._active_graphs: set[int] = set()

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    async def run(
        self,
        graph: GraphSpec,
        seed_input: str = "",
        strategy: ExecutionStrategy | str = ExecutionStrategy.READINESS,
        cancel_token: CancellationToken | None = None,
    ) -> ExecutionResult:
        """
        Run the whole graph to completion.

        Args:
            graph: Graph to execute; node status/output are updated in place
            seed_input: Global seed input, used by nodes without upstream input
            strategy: Stage-ordered or readiness-based scheduling
            cancel_token: Optional token to abort the run

        Returns:
            ExecutionResult. ``success`` is False only for validation errors,
            structural failures and cancellation; node errors are reported in
            ``failed_nodes``.
        """
        strategy = ExecutionStrategy(strategy)
        started = time.perf_counter()

        try:
            self._check_graph(graph, strategy)
        except GraphValidationError as e:
            self.run_log.error(f"✗ {e}")
            return ExecutionResult(success=False, error=str(e))

        key = id(graph)
        if key in self._active_graphs:
            raise RuntimeError(f"Workflow '{graph.id}' is already running")
        self._active_graphs.add(key)

        run_id = uuid.uuid4().hex
        set_trace_context(run_id=run_id, workflow_id=graph.id)

        state = _RunState(
            graph=graph,
            seed_input=seed_input,
            store=RunOutputStore(),
            token=cancel_token or CancellationToken(),
            result=ExecutionResult(success=False),
        )

        try:
            self.run_log.info("🚀 Workflow execution started")
            graph.reset_run_state()
            for node in graph.nodes:
                self._notify(node)

            if strategy == ExecutionStrategy.STAGED:
                await self._drive_stages(state)
            else:
                await self._drive_readiness(state)

            if state.token.cancelled:
                reason = state.token.reason
                message = f"Execution cancelled: {reason}" if reason else "Execution cancelled"
                state.result.cancelled = True
                state.result.error = message
                self.run_log.warning(f"⏹ Workflow {message.lower()}")
            else:
                state.result.success = True
                self.run_log.success("🎉 Workflow execution completed")

        except GraphStructureError as e:
            state.result.error = str(e)
            self.run_log.error(f"✗ Workflow aborted: {e}")

        except asyncio.CancelledError:
            self.run_log.warning("⏹ Workflow execution interrupted")
            raise

        finally:
            self._active_graphs.discard(key)
            state.result.outputs = {
                n.id: n.output for n in graph.nodes if NodeStatus(n.status).is_terminal
            }
            state.result.duration_ms = int((time.perf_counter() - started) * 1000)

        return state.result

    async def run_staged(
        self,
        graph: GraphSpec,
        seed_input: str = "",
        cancel_token: CancellationToken | None = None,
    ) -> ExecutionResult:
        """Stage-ordered run: one wave per stage, in stage order."""
        return await self.run(graph, seed_input, ExecutionStrategy.STAGED, cancel_token)

    async def run_ready(
        self,
        graph: GraphSpec,
        seed_input: str = "",
        cancel_token: CancellationToken | None = None,
    ) -> ExecutionResult:
        """Readiness-based run: waves are computed from completed dependencies."""
        return await self.run(graph, seed_input, ExecutionStrategy.READINESS, cancel_token)

    async def run_single_node(
        self,
        graph: GraphSpec,
        node_id: str,
        seed_input: str = "",
        cancel_token: CancellationToken | None = None,
    ) -> NodeResult | None:
        """
        Test-run one node in isolation.

        Only the node's first incoming connection is read, from the source
        node's current ``output``. Nothing is reset and no other node runs.

        Returns:
            The NodeResult, or None if the node ended in error.

        Raises:
            KeyError: if ``node_id`` is not in the graph.
        """
        node = graph.get_node(node_id)
        if node is None:
            raise KeyError(f"Node '{node_id}' not found")

        resolved = self._resolve_first_input(graph, node_id, seed_input)
        if resolved.from_connections:
            self.run_log.info(
                f"{node.label} received input from {resolved.connection_count} connection(s)",
                node_id,
            )

        ctx = self._build_context(resolved, seed_input, cancel_token or CancellationToken())
        return await self._execute_node(node, ctx)

    def _check_graph(self, graph: GraphSpec, strategy: ExecutionStrategy) -> None:
        """
        Raises:
            GraphValidationError: if the graph cannot be run with ``strategy``.
        """
        staged = strategy == ExecutionStrategy.STAGED
        problems = graph.validate(require_stages=staged)
        if staged and not problems:
            problems = [
                f"Connection '{e.id}' ({e.source} → {e.target}) does not point to a later stage"
                for e in graph.stage_order_violations()
            ]
        if problems:
            raise GraphValidationError(problems)

    # ------------------------------------------------------------------
    # Schedulers
    # ------------------------------------------------------------------

    async def _drive_stages(self, state: _RunState) -> None:
        """Run explicit stages (or topological levels) strictly in order."""
        graph = state.graph
        names = [s.name for s in graph.stages]

        for index, wave in enumerate(graph.stage_waves()):
            if not wave:
                continue
            if state.token.cancelled:
                return

            kinds = Counter(str(graph.get_node(nid).kind) for nid in wave)
            summary = ", ".join(f"{count} {kind}(s)" for kind, count in kinds.items())
            title = f"Stage {index + 1}"
            if index < len(names) and names[index]:
                title += f" ({names[index]})"
            self.run_log.info(f"▸ {title}: Processing {summary}")

            await self._run_wave(state, wave)
            self.run_log.success(f"✓ {title} completed")

    async def _drive_readiness(self, state: _RunState) -> None:
        """
        Repeatedly run every node whose sources have all finished.

        Raises:
            GraphStructureError: when nodes remain but none can run.
        """
        graph = state.graph
        all_ids = graph.node_ids
        done: set[str] = set()
        in_flight: set[str] = set()
        wave_number = 0

        while len(done) < len(all_ids):
            if state.token.cancelled:
                return

            ready = [
                nid
                for nid in all_ids
                if nid not in done
                and nid not in in_flight
                and all(e.source in done for e in graph.get_incoming_edges(nid))
            ]
            if not ready:
                stuck = [nid for nid in all_ids if nid not in done]
                raise GraphStructureError(
                    "Workflow cannot complete: cycle or unsatisfiable dependencies "
                    f"among nodes {stuck}",
                    stuck_nodes=stuck,
                )

            wave_number += 1
            self.run_log.info(f"▸ Wave {wave_number}: executing {len(ready)} node(s)")

            in_flight.update(ready)
            await self._run_wave(state, ready)
            in_flight.difference_update(ready)
            done.update(ready)

            if self.config.wave_pause_seconds > 0:
                await asyncio.sleep(self.config.wave_pause_seconds)

    async def _run_wave(self, state: _RunState, node_ids: list[str]) -> None:
        """Start every node together and wait for all of them."""
        state.result.waves.append(list(node_ids))
        await asyncio.gather(*(self._run_node(state, nid) for nid in node_ids))

    async def _run_node(self, state: _RunState, node_id: str) -> None:
        graph = state.graph
        node = graph.get_node(node_id)
        set_trace_context(node_id=node_id)

        resolved = state.store.resolve_input(graph.get_incoming_edges(node_id), state.seed_input)
        if resolved.from_connections:
            self.run_log.info(
                f"{node.label} received input from {resolved.connection_count} connection(s) "
                f"({len(resolved.text)} chars)",
                node_id,
            )

        ctx = self._build_context(resolved, state.seed_input, state.token)
        result = await self._execute_node(node, ctx)

        if result is None:
            # Error text becomes ordinary input for downstream nodes
            state.store.record(node_id, node.output)
            state.result.failed_nodes.append(node_id)
        else:
            state.store.record(node_id, result.primary, result.ports)

    # ------------------------------------------------------------------
    # Node boundary
    # ------------------------------------------------------------------

    def _build_context(
        self, resolved: ResolvedInput, seed_input: str, token: CancellationToken
    ) -> NodeContext:
        return NodeContext(
            node_input=resolved.text,
            seed_input=seed_input,
            upstream=list(resolved.values),
            run_log=self.run_log,
            cancel_token=token,
            agent_client=self.agent_client,
            function_executor=self.function_executor,
            tool_executor=self.tool_executor,
        )

    async def _execute_node(self, node: NodeSpec, ctx: NodeContext) -> NodeResult | None:
        """
        Run one node: idle → running → complete | error.

        Exceptions from the node body are captured here and never escape,
        so sibling nodes in the same wave are unaffected.
        """
        kind_label = str(node.kind).capitalize()
        self.run_log.info(
            f"Starting {node.kind} {node.label} (input length: {len(ctx.node_input)} chars)",
            node.id,
        )
        node.status = NodeStatus.RUNNING
        self._notify(node)
        started = time.perf_counter()

        try:
            result = await self._invoke(node, ctx)
        except asyncio.CancelledError:
            node.record_error("Execution cancelled")
            self._notify(node)
            raise
        except Exception as e:
            message = str(e) or type(e).__name__
            node.record_error(message)
            self._notify(node)
            self.run_log.error(f"✗ {kind_label} {node.label} failed: {message}", node.id)
            self.logger.debug(f"Node '{node.id}' raised", exc_info=True)
            return None

        result.latency_ms = int((time.perf_counter() - started) * 1000)
        node.record_result(result)
        self._notify(node)
        self.run_log.success(
            f"✓ {kind_label} {node.label} completed (output length: {len(result.primary)} chars)",
            node.id,
        )
        return result

    async def _invoke(self, node: NodeSpec, ctx: NodeContext) -> NodeResult:
        """Race the node body against cancellation and the per-node timeout."""
        token = ctx.cancel_token
        token.raise_if_cancelled()

        timeout = self.config.node_timeout_seconds
        task = asyncio.ensure_future(node.execute(ctx))
        cancel_wait = asyncio.ensure_future(token.wait())
        try:
            done, _ = await asyncio.wait(
                {task, cancel_wait},
                timeout=timeout,
                return_when=asyncio.FIRST_COMPLETED,
            )
        except asyncio.CancelledError:
            task.cancel()
            raise
        finally:
            cancel_wait.cancel()

        if task in done:
            return task.result()

        task.cancel()
        await asyncio.gather(task, return_exceptions=True)
        if token.cancelled:
            raise NodeCancelledError(token.reason)
        raise NodeTimeoutError(timeout)

    def _resolve_first_input(
        self, graph: GraphSpec, node_id: str, seed_input: str
    ) -> ResolvedInput:
        edges = graph.get_incoming_edges(node_id)
        if not edges:
            return ResolvedInput(text=seed_or_default(seed_input))

        edge = edges[0]
        source = graph.get_node(edge.source)
        value = None
        if source is not None:
            value = value_of(source.output, edge.source_port)
            if (
                not value
                and isinstance(source, FunctionNodeSpec)
                and source.function_type == "content"
            ):
                value = source.config.get("content")

        if not value:
            return ResolvedInput(
                text=seed_or_default(seed_input), connection_count=len(edges)
            )
        return ResolvedInput(text=value, values=[value], connection_count=len(edges))

    def _notify(self, node: NodeSpec) -> None:
        if self.on_node_update is not None:
            self.on_node_update(node)
