"""MCP provider hosting.

Launches allow-listed MCP servers from the workspace manifest over stdio,
keeps one ``ProtocolClient`` per provider, and exposes their tools to the
model as ``<provider>__<tool>``.

Typical usage:
    from toolgate.mcp import ProviderRegistry

    registry = ProviderRegistry(workspace_root, gate=gate)
    await registry.startup()
    tools = await registry.get_tools_for_ai()
    text = await registry.execute_tool("fs__read_text", {"path": "README.md"})
    await registry.shutdown()
"""

from .client import ProtocolClient
from .launch_policy import ALLOWED_LAUNCH_COMMANDS, SAFE_ARG_PATTERN, validate_launch_spec
from .naming import SEPARATOR, join_tool_name, split_tool_name
from .registry import ProviderRegistry
from .transport import AsyncMCPTransport, StdioMCPTransport

__all__ = [
    "ProtocolClient",
    "ALLOWED_LAUNCH_COMMANDS",
    "SAFE_ARG_PATTERN",
    "validate_launch_spec",
    "SEPARATOR",
    "join_tool_name",
    "split_tool_name",
    "ProviderRegistry",
    "AsyncMCPTransport",
    "StdioMCPTransport",
]
