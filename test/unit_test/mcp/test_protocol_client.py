"""Unit tests for ProtocolClient over an in-memory fake transport."""

from __future__ import annotations

import pytest

from toolgate.errors import ProtocolError
from toolgate.execution.gate import CommandGate
from toolgate.mcp.client import ProtocolClient, validate_tool_arguments
from toolgate.mcp.schemas.config import LaunchSpec
from toolgate.schemas.domain import ActionKind


def _client(fake_transport, confirmer, key: str = "a.js") -> ProtocolClient:
    spec = LaunchSpec(command="node", args=[key])
    return ProtocolClient("serverA", spec, gate=CommandGate(confirmer), transport=fake_transport)


class TestConnection:
    @pytest.mark.asyncio
    async def test_connect_and_close(self, fake_transport, approving_confirmer) -> None:
        client = _client(fake_transport, approving_confirmer)

        await client.connect()
        assert client.connected is True
        await client.close()

        assert client.connected is False
        assert fake_transport.opened == ["a.js"]
        assert fake_transport.closed == ["a.js"]

    @pytest.mark.asyncio
    async def test_connect_failure_raises_protocol_error(self, fake_transport, approving_confirmer) -> None:
        fake_transport.refuse.add("a.js")
        client = _client(fake_transport, approving_confirmer)

        with pytest.raises(ProtocolError) as exc_info:
            await client.connect()

        assert exc_info.value.operation == "connect"
        assert client.connected is False

    @pytest.mark.asyncio
    async def test_operations_before_connect(self, fake_transport, approving_confirmer) -> None:
        client = _client(fake_transport, approving_confirmer)

        with pytest.raises(ProtocolError):
            await client.list_tools()
        assert "PROTOCOL ERROR" in await client.read_resource("file:///x")


class TestListing:
    @pytest.mark.asyncio
    async def test_list_tools_maps_descriptors(self, fake_transport, approving_confirmer) -> None:
        client = _client(fake_transport, approving_confirmer)
        await client.connect()

        tools = await client.list_tools()

        echo = tools[0]
        assert echo.provider == "serverA"
        assert echo.exposed_name == "serverA__echo"
        assert echo.input_schema["required"] == ["text"]
        assert [(a.name, a.type, a.required) for a in echo.arguments] == [
            ("text", "string", True),
            ("times", "integer", False),
        ]

    @pytest.mark.asyncio
    async def test_list_prompts_and_resources(self, fake_transport, approving_confirmer) -> None:
        client = _client(fake_transport, approving_confirmer)
        await client.connect()

        prompts = await client.list_prompts()
        resources = await client.list_resources()

        assert prompts[0].name == "review"
        assert prompts[0].arguments[0].required is True
        assert resources[0].uri == "file:///docs/api.md"
        assert resources[0].mime_type == "text/markdown"

    @pytest.mark.asyncio
    async def test_listing_failure_raises(self, fake_transport, approving_confirmer) -> None:
        fake_transport.server("a.js").failing.add("list_prompts")
        client = _client(fake_transport, approving_confirmer)
        await client.connect()

        with pytest.raises(ProtocolError, match="list_prompts"):
            await client.list_prompts()


class TestPromptsAndResources:
    @pytest.mark.asyncio
    async def test_get_prompt_renders_messages(self, fake_transport, approving_confirmer) -> None:
        client = _client(fake_transport, approving_confirmer)
        await client.connect()

        text = await client.get_prompt("review", {"lang": "python"})

        assert text == "[user]: Review this python code"

    @pytest.mark.asyncio
    async def test_read_resource_returns_text(self, fake_transport, approving_confirmer) -> None:
        client = _client(fake_transport, approving_confirmer)
        await client.connect()

        assert await client.read_resource("file:///docs/api.md") == "# API"

    @pytest.mark.asyncio
    async def test_failures_are_inline_strings(self, fake_transport, approving_confirmer) -> None:
        fake_transport.server("a.js").failing.update({"get_prompt", "read_resource"})
        client = _client(fake_transport, approving_confirmer)
        await client.connect()

        assert "PROTOCOL ERROR" in await client.get_prompt("review")
        assert "PROTOCOL ERROR" in await client.read_resource("file:///docs/api.md")


class TestCallTool:
    @pytest.mark.asyncio
    async def test_approved_call_reaches_provider(self, fake_transport, approving_confirmer) -> None:
        client = _client(fake_transport, approving_confirmer)
        await client.connect()

        result = await client.call_tool("echo", {"text": "hi"})

        assert result == "a.js:hi"
        request = approving_confirmer.requests[0]
        assert request.kind == ActionKind.provider_tool
        assert "[serverA] echo" in request.title

    @pytest.mark.asyncio
    async def test_denied_call_never_reaches_provider(self, fake_transport, rejecting_confirmer) -> None:
        client = _client(fake_transport, rejecting_confirmer)
        await client.connect()

        result = await client.call_tool("echo", {"text": "hi"})

        assert "DENIED" in result
        assert fake_transport.sessions["a.js"].calls == []

    @pytest.mark.asyncio
    async def test_invalid_arguments_rejected_before_prompt(self, fake_transport, approving_confirmer) -> None:
        client = _client(fake_transport, approving_confirmer)
        await client.connect()

        result = await client.call_tool("echo", {"times": "3", "color": "red"})

        assert "INVALID ARGUMENTS" in result
        assert "missing required argument 'text'" in result
        assert "'times' must be of type integer" in result
        assert "unexpected argument 'color'" in result
        assert approving_confirmer.requests == []

    @pytest.mark.asyncio
    async def test_unknown_tool(self, fake_transport, approving_confirmer) -> None:
        client = _client(fake_transport, approving_confirmer)
        await client.connect()

        assert "NOT FOUND" in await client.call_tool("nope", {})

    @pytest.mark.asyncio
    async def test_is_error_result_and_transport_failure(self, fake_transport, approving_confirmer) -> None:
        client = _client(fake_transport, approving_confirmer)
        await client.connect()

        assert "bad input" in await client.call_tool("fail", {})
        fake_transport.server("a.js").failing.add("call_tool")
        failure = await client.call_tool("echo", {"text": "hi"})
        assert failure.startswith("[❌] PROTOCOL ERROR")
        assert "call_tool exploded" in failure


class TestValidateToolArguments:
    def test_bool_is_not_an_integer(self) -> None:
        schema = {"type": "object", "properties": {"n": {"type": "integer"}}}

        assert validate_tool_arguments(schema, {"n": True}) == ["argument 'n' must be of type integer"]
        assert validate_tool_arguments(schema, {"n": 3}) == []

    def test_union_types_and_unknown_types(self) -> None:
        schema = {"properties": {"v": {"type": ["string", "null"]}, "w": {"type": "custom"}}}

        assert validate_tool_arguments(schema, {"v": None, "w": object()}) == []
        assert validate_tool_arguments(schema, {"v": 1}) == ["argument 'v' must be of type string or null"]

    def test_extra_keys_allowed_unless_forbidden(self) -> None:
        assert validate_tool_arguments({"properties": {}}, {"x": 1}) == []
