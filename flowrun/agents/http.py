"""HTTP agent client - posts agent calls to a ``run-agent`` endpoint."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from flowrun.agents.client import AgentClient, AgentRequest, AgentResponse, ToolOutput
from flowrun.config import get_agent_api_key, get_agent_endpoint, get_agent_timeout
from flowrun.errors import AgentInvocationError

logger = logging.getLogger(__name__)


class HttpAgentClient(AgentClient):
    """
    Agent client backed by an HTTP endpoint.

    Request body: ``{"systemPrompt", "userPrompt", "tools": [{"toolId", "config"}]}``.
    Response body: ``{"output", "toolOutputs": [{"toolId", "toolName", "output"}]}``.

    Example:
        client = HttpAgentClient("https://api.example.com/functions/v1/run-agent")
        response = await client.invoke(AgentRequest(system_prompt="...", user_prompt="..."))
    """

    def __init__(
        self,
        endpoint_url: str | None = None,
        api_key: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """
        Args:
            endpoint_url: Endpoint URL. Falls back to FLOWRUN_AGENT_URL / configuration.
            api_key: Bearer key. Falls back to the env var named in configuration.
            timeout: Request timeout in seconds.
            transport: Optional httpx transport (tests use ``httpx.MockTransport``).
        """
        self.endpoint_url = endpoint_url or get_agent_endpoint()
        if not self.endpoint_url:
            raise ValueError(
                "Agent endpoint required. Set FLOWRUN_AGENT_URL or agent.endpoint_url "
                "in the flowrun configuration, or pass endpoint_url."
            )
        self.api_key = api_key if api_key is not None else get_agent_api_key()
        self.timeout = timeout if timeout is not None else get_agent_timeout()
        self._transport = transport

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    async def invoke(self, request: AgentRequest) -> AgentResponse:
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self._transport
            ) as client:
                response = await client.post(
                    self.endpoint_url, json=request.to_wire(), headers=self._headers()
                )
        except httpx.HTTPError as e:
            logger.warning(f"Agent endpoint unreachable: {e}")
            raise AgentInvocationError(f"Agent request failed: {e}") from e

        if response.status_code >= 400:
            raise AgentInvocationError(
                _error_message(response), status_code=response.status_code
            )

        try:
            data = response.json()
        except ValueError as e:
            raise AgentInvocationError("Agent endpoint returned invalid JSON") from e

        return AgentResponse(
            output=data.get("output") or "No output generated",
            tool_outputs=[_parse_tool_output(item) for item in data.get("toolOutputs") or []],
        )


def _error_message(response: httpx.Response) -> str:
    """Prefer the body's ``error`` field, else a status-based message."""
    try:
        detail = response.json().get("error")
    except (ValueError, AttributeError):
        detail = None
    return detail or f"Server error: {response.status_code}"


def _parse_tool_output(item: dict[str, Any]) -> ToolOutput:
    return ToolOutput(
        tool_id=item.get("toolId", ""),
        output=item.get("output"),
        tool_name=item.get("toolName"),
    )
