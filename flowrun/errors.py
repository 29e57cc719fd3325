"""Exception types raised by the workflow engine and its collaborators."""


class FlowrunError(Exception):
    """Base class for engine errors."""


class GraphValidationError(FlowrunError):
    """The graph is malformed (duplicate ids, dangling edges, bad stage membership)."""

    def __init__(self, problems: list[str]):
        self.problems = list(problems)
        super().__init__("Invalid workflow graph: " + "; ".join(self.problems))


class GraphStructureError(FlowrunError):
    """No valid execution order exists (cycle or unsatisfiable dependency)."""

    def __init__(self, message: str, stuck_nodes: list[str] | None = None):
        self.stuck_nodes = list(stuck_nodes or [])
        super().__init__(message)


class NodeExecutionError(FlowrunError):
    """A node's collaborator reported failure."""


class NodeTimeoutError(NodeExecutionError):
    """A node did not finish within the configured per-node timeout."""

    def __init__(self, timeout_seconds: float):
        self.timeout_seconds = timeout_seconds
        super().__init__(f"Node timed out after {timeout_seconds:g}s")


class NodeCancelledError(NodeExecutionError):
    """The run was cancelled while the node was in flight."""

    def __init__(self, reason: str = ""):
        self.reason = reason
        super().__init__(f"Execution cancelled: {reason}" if reason else "Execution cancelled")


class AgentInvocationError(FlowrunError):
    """The agent-invocation collaborator could not produce a response."""

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)
