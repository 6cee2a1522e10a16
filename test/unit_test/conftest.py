from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional, Set

import pytest
from mcp import types

from toolgate.mcp.schemas.config import LaunchSpec

ECHO_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "text": {"type": "string", "description": "Text to echo"},
        "times": {"type": "integer"},
    },
    "required": ["text"],
    "additionalProperties": False,
}


class _FakeSession:
    """Stands in for an initialized ``mcp.ClientSession``."""

    def __init__(self, key: str, state: "_FakeServerState") -> None:
        self.key = key
        self._state = state
        self.calls: List[tuple] = []

    def _maybe_fail(self, operation: str) -> None:
        if operation in self._state.failing:
            raise RuntimeError(f"{operation} exploded")

    async def list_tools(self):
        self._maybe_fail("list_tools")
        if self._state.slow:
            await asyncio.sleep(5)
        return types.ListToolsResult(tools=list(self._state.tools))

    async def list_prompts(self):
        self._maybe_fail("list_prompts")
        return types.ListPromptsResult(
            prompts=[
                types.Prompt(
                    name="review",
                    description="Code review persona",
                    arguments=[types.PromptArgument(name="lang", required=True)],
                )
            ]
        )

    async def list_resources(self):
        self._maybe_fail("list_resources")
        return types.ListResourcesResult(
            resources=[types.Resource(uri="file:///docs/api.md", name="api", mimeType="text/markdown")]
        )

    async def get_prompt(self, name: str, arguments: Optional[Dict[str, str]] = None):
        self._maybe_fail("get_prompt")
        self.calls.append(("get_prompt", name, arguments))
        return types.GetPromptResult(
            messages=[
                types.PromptMessage(
                    role="user",
                    content=types.TextContent(type="text", text=f"Review this {(arguments or {}).get('lang')} code"),
                )
            ]
        )

    async def read_resource(self, uri: Any):
        self._maybe_fail("read_resource")
        self.calls.append(("read_resource", str(uri)))
        return types.ReadResourceResult(
            contents=[types.TextResourceContents(uri=str(uri), mimeType="text/markdown", text="# API")]
        )

    async def call_tool(self, name: str, arguments: Optional[Dict[str, Any]] = None):
        self._maybe_fail("call_tool")
        self.calls.append(("call_tool", name, arguments))
        if name == "fail":
            return types.CallToolResult(content=[types.TextContent(type="text", text="bad input")], isError=True)
        text = str((arguments or {}).get("text", ""))
        return types.CallToolResult(content=[types.TextContent(type="text", text=f"{self.key}:{text}")], isError=False)


class _FakeServerState:
    def __init__(self) -> None:
        self.tools: List[types.Tool] = [
            types.Tool(name="echo", description="Echo tool", inputSchema=ECHO_SCHEMA),
            types.Tool(name="fail", description="Always errors", inputSchema={"type": "object", "properties": {}}),
        ]
        self.failing: Set[str] = set()
        self.slow = False


class _FakeMCPTransport:
    """Yields one ``_FakeSession`` per launch; keyed by the first launch argument."""

    def __init__(self) -> None:
        self.servers: Dict[str, _FakeServerState] = {}
        self.refuse: Set[str] = set()
        self.hang: Set[str] = set()
        self.opened: List[str] = []
        self.closed: List[str] = []
        self.sessions: Dict[str, _FakeSession] = {}

    def server(self, key: str) -> _FakeServerState:
        return self.servers.setdefault(key, _FakeServerState())

    def session(self, spec: LaunchSpec):
        key = spec.args[0] if spec.args else spec.command

        @asynccontextmanager
        async def _cm():
            if key in self.refuse:
                raise ConnectionError(f"{key} exited during initialize")
            if key in self.hang:
                await asyncio.sleep(3600)
            self.opened.append(key)
            session = _FakeSession(key, self.server(key))
            self.sessions[key] = session
            try:
                yield session
            finally:
                self.closed.append(key)

        return _cm()


@pytest.fixture
def fake_transport() -> _FakeMCPTransport:
    return _FakeMCPTransport()
