"""Tests for HttpAgentClient against a mocked run-agent endpoint."""

import json

import httpx
import pytest

from flowrun.agents.client import AgentRequest, ToolDescriptor
from flowrun.agents.http import HttpAgentClient
from flowrun.errors import AgentInvocationError

ENDPOINT = "https://agents.example.com/functions/v1/run-agent"


def _client(handler, **kwargs) -> HttpAgentClient:
    return HttpAgentClient(ENDPOINT, transport=httpx.MockTransport(handler), **kwargs)


def _request() -> AgentRequest:
    return AgentRequest(
        system_prompt="You summarise.",
        user_prompt="Summarise this",
        tools=[ToolDescriptor(tool_id="web_search", config={"maxResults": 3})],
    )


class TestInvoke:
    """Tests for a single agent call."""

    @pytest.mark.asyncio
    async def test_posts_wire_body_and_parses_response(self):
        """Request is camelCased; tool outputs come back parsed."""
        captured: dict = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["url"] = str(request.url)
            captured["body"] = json.loads(request.content)
            captured["auth"] = request.headers.get("Authorization")
            return httpx.Response(
                200,
                json={
                    "output": "A summary.",
                    "toolOutputs": [
                        {"toolId": "web_search", "toolName": "Web Search", "output": {"n": 3}}
                    ],
                },
            )

        response = await _client(handler, api_key="secret").invoke(_request())

        assert captured["url"] == ENDPOINT
        assert captured["body"] == {
            "systemPrompt": "You summarise.",
            "userPrompt": "Summarise this",
            "tools": [{"toolId": "web_search", "config": {"maxResults": 3}}],
        }
        assert captured["auth"] == "Bearer secret"
        assert response.output == "A summary."
        assert response.tool_outputs[0].tool_id == "web_search"
        assert response.tool_outputs[0].tool_name == "Web Search"
        assert response.tool_outputs[0].output == {"n": 3}

    @pytest.mark.asyncio
    async def test_no_auth_header_without_key(self):
        seen = {}

        def handler(request):
            seen["auth"] = request.headers.get("Authorization")
            return httpx.Response(200, json={"output": "ok"})

        await _client(handler).invoke(_request())

        assert seen["auth"] is None

    @pytest.mark.asyncio
    async def test_empty_output_becomes_placeholder(self):
        response = await _client(lambda r: httpx.Response(200, json={})).invoke(_request())
        assert response.output == "No output generated"
        assert response.tool_outputs == []


class TestErrors:
    """Failures surface as AgentInvocationError with a readable message."""

    @pytest.mark.asyncio
    async def test_error_field_is_preferred(self):
        client = _client(lambda r: httpx.Response(429, json={"error": "Rate limit exceeded"}))

        with pytest.raises(AgentInvocationError, match="Rate limit exceeded") as exc_info:
            await client.invoke(_request())
        assert exc_info.value.status_code == 429

    @pytest.mark.asyncio
    async def test_status_message_without_error_field(self):
        client = _client(lambda r: httpx.Response(502, text="<html>bad gateway</html>"))

        with pytest.raises(AgentInvocationError, match="Server error: 502"):
            await client.invoke(_request())

    @pytest.mark.asyncio
    async def test_invalid_json_body(self):
        client = _client(lambda r: httpx.Response(200, text="not json"))

        with pytest.raises(AgentInvocationError, match="invalid JSON"):
            await client.invoke(_request())

    @pytest.mark.asyncio
    async def test_transport_failure(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(AgentInvocationError, match="Agent request failed"):
            await _client(handler).invoke(_request())


class TestConfiguration:
    """Endpoint, key and timeout fall back to environment and configuration."""

    def test_missing_endpoint_raises(self):
        with pytest.raises(ValueError, match="Agent endpoint required"):
            HttpAgentClient()

    def test_env_endpoint(self, monkeypatch):
        monkeypatch.setenv("FLOWRUN_AGENT_URL", "https://env.example.com/run-agent")
        assert HttpAgentClient().endpoint_url == "https://env.example.com/run-agent"

    def test_config_file_values(self, isolated_config, monkeypatch):
        isolated_config.parent.mkdir(parents=True)
        isolated_config.write_text(
            json.dumps(
                {
                    "agent": {
                        "endpoint_url": "https://file.example.com/run-agent",
                        "api_key_env_var": "MY_AGENT_KEY",
                        "timeout_seconds": 30,
                    }
                }
            )
        )
        monkeypatch.setenv("MY_AGENT_KEY", "from-env")

        client = HttpAgentClient()

        assert client.endpoint_url == "https://file.example.com/run-agent"
        assert client.api_key == "from-env"
        assert client.timeout == 30.0
