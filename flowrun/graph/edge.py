"""
Edge Protocol - how nodes connect in a workflow graph.

Edges define:
1. Source and target nodes
2. Optionally, the named output port of a multi-output source

Stages (stage-ordered graphs only) partition the nodes into a total order.
Invariant: every edge points from an earlier stage to a later one. Stage
edits re-validate it and drop violating edges with a warning.
"""

from __future__ import annotations

import logging

from pydantic import BaseModel, Field

from flowrun.errors import GraphStructureError
from flowrun.graph.node import AnyNode, NodeSpec
from flowrun.runtime.run_log import RunLog

logger = logging.getLogger(__name__)


class EdgeSpec(BaseModel):
    """
    Specification for an edge between nodes.

    Examples:
        # Primary output
        EdgeSpec(id="e1", source="writer", target="reviewer")

        # One port of a multi-output function node
        EdgeSpec(id="e2", source="is_json", target="parser", source_port="true")
    """

    id: str
    source: str = Field(description="Source node ID")
    target: str = Field(description="Target node ID")
    source_port: str | None = Field(
        default=None,
        description="Named output port of the source; None means its primary output",
    )

    model_config = {"extra": "allow"}


class StageSpec(BaseModel):
    """An explicit, user-ordered group of nodes."""

    id: str
    name: str = ""
    nodes: list[str] = Field(default_factory=list, description="Member node IDs")


class GraphSpec(BaseModel):
    """
    Complete workflow graph: nodes, edges and (optionally) stages.

    Example:
        graph = GraphSpec(
            nodes=[
                InputNodeSpec(id="in", text="hello"),
                AgentNodeSpec(id="echo", system_prompt="echo"),
                OutputNodeSpec(id="out"),
            ],
            edges=[
                EdgeSpec(id="e1", source="in", target="echo"),
                EdgeSpec(id="e2", source="echo", target="out"),
            ],
        )
    """

    id: str = "workflow"
    name: str = ""
    nodes: list[AnyNode] = Field(default_factory=list)
    edges: list[EdgeSpec] = Field(default_factory=list)
    stages: list[StageSpec] = Field(default_factory=list)

    model_config = {"extra": "allow"}

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def get_node(self, node_id: str) -> NodeSpec | None:
        """Get a node by ID."""
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    @property
    def node_ids(self) -> list[str]:
        return [n.id for n in self.nodes]

    def get_incoming_edges(self, node_id: str) -> list[EdgeSpec]:
        """Get all edges entering a node, in edge-list order."""
        return [e for e in self.edges if e.target == node_id]

    def get_outgoing_edges(self, node_id: str) -> list[EdgeSpec]:
        return [e for e in self.edges if e.source == node_id]

    def reset_run_state(self) -> None:
        for node in self.nodes:
            node.reset()

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def validate(self, require_stages: bool = False) -> list[str]:
        """
        Validate the graph structure.

        Args:
            require_stages: When True (stage-ordered runs with explicit
                stages), every node must belong to a stage.

        Returns:
            List of problems; empty when the graph is valid.
        """
        errors = []

        seen: set[str] = set()
        for node in self.nodes:
            if node.id in seen:
                errors.append(f"Duplicate node ID: '{node.id}'")
            seen.add(node.id)

        for edge in self.edges:
            if edge.source not in seen:
                errors.append(f"Edge '{edge.id}' references missing source '{edge.source}'")
            if edge.target not in seen:
                errors.append(f"Edge '{edge.id}' references missing target '{edge.target}'")

        staged: dict[str, str] = {}
        for stage in self.stages:
            for node_id in stage.nodes:
                if node_id not in seen:
                    errors.append(f"Stage '{stage.id}' references missing node '{node_id}'")
                elif node_id in staged:
                    errors.append(
                        f"Node '{node_id}' is in both stage '{staged[node_id]}' "
                        f"and stage '{stage.id}'"
                    )
                else:
                    staged[node_id] = stage.id

        if require_stages and self.stages:
            for node in self.nodes:
                if node.id not in staged:
                    errors.append(f"Node '{node.id}' is not assigned to any stage")

        return errors

    # ------------------------------------------------------------------
    # Stage invariant
    # ------------------------------------------------------------------

    def stage_index(self, node_id: str) -> int | None:
        for index, stage in enumerate(self.stages):
            if node_id in stage.nodes:
                return index
        return None

    def stage_order_violations(self) -> list[EdgeSpec]:
        """Edges whose source stage is not strictly before their target stage."""
        violations = []
        for edge in self.edges:
            src = self.stage_index(edge.source)
            dst = self.stage_index(edge.target)
            if src is None or dst is None:
                continue
            if src >= dst:
                violations.append(edge)
        return violations

    def enforce_stage_order(self, run_log: RunLog | None = None) -> list[EdgeSpec]:
        """
        Drop every edge that violates the forward-only stage invariant.

        Returns:
            The dropped edges (empty when the graph already satisfies it).
        """
        dropped = self.stage_order_violations()
        if not dropped:
            return []
        dropped_ids = {e.id for e in dropped}
        self.edges = [e for e in self.edges if e.id not in dropped_ids]
        for edge in dropped:
            message = (
                f"⚠ Removed connection {self._label(edge.source)} → {self._label(edge.target)}: "
                "source stage must come before target stage"
            )
            if run_log is not None:
                run_log.warning(message)
            else:
                logger.warning(message)
        return dropped

    def move_stage(
        self, from_index: int, to_index: int, run_log: RunLog | None = None
    ) -> list[EdgeSpec]:
        """Move a stage to a new position, then repair the edge invariant."""
        if not 0 <= from_index < len(self.stages):
            raise IndexError(f"Stage index {from_index} out of range")
        if not 0 <= to_index < len(self.stages):
            raise IndexError(f"Stage index {to_index} out of range")
        stage = self.stages.pop(from_index)
        self.stages.insert(to_index, stage)
        return self.enforce_stage_order(run_log)

    def move_node(
        self, node_id: str, stage_id: str, run_log: RunLog | None = None
    ) -> list[EdgeSpec]:
        """Move a node into another stage, then repair the edge invariant."""
        if self.get_node(node_id) is None:
            raise KeyError(f"Node '{node_id}' not found")
        target = next((s for s in self.stages if s.id == stage_id), None)
        if target is None:
            raise KeyError(f"Stage '{stage_id}' not found")
        for stage in self.stages:
            if node_id in stage.nodes:
                stage.nodes.remove(node_id)
        target.nodes.append(node_id)
        return self.enforce_stage_order(run_log)

    def _label(self, node_id: str) -> str:
        node = self.get_node(node_id)
        return node.label if node else node_id

    # ------------------------------------------------------------------
    # Scheduling helpers
    # ------------------------------------------------------------------

    def level_nodes(self) -> list[list[str]]:
        """
        Partition the nodes into topological levels.

        Level 0 holds nodes without incoming edges; each later level holds
        nodes whose sources all sit in earlier levels. Within a level, nodes
        keep their order in ``nodes``.

        Raises:
            GraphStructureError: if a cycle prevents leveling.
        """
        remaining = {n.id: 0 for n in self.nodes}
        for edge in self.edges:
            if edge.target in remaining:
                remaining[edge.target] += 1

        levels: list[list[str]] = []
        order = self.node_ids
        while remaining:
            level = [nid for nid in order if remaining.get(nid) == 0]
            if not level:
                stuck = [nid for nid in order if nid in remaining]
                raise GraphStructureError(
                    f"Cycle detected among nodes {stuck}; no valid execution order exists",
                    stuck_nodes=stuck,
                )
            for nid in level:
                del remaining[nid]
            for edge in self.edges:
                if edge.source in level and edge.target in remaining:
                    remaining[edge.target] -= 1
            levels.append(level)
        return levels

    def stage_waves(self) -> list[list[str]]:
        """Explicit stages when present, otherwise topological levels."""
        if self.stages:
            return [list(stage.nodes) for stage in self.stages]
        return self.level_nodes()
