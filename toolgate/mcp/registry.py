"""Registry of live MCP provider connections.

``ProviderRegistry`` turns the workspace manifest into connected
``ProtocolClient`` instances and aggregates their capabilities for the model.

- Every manifest entry is validated on its own; an invalid entry or a failed
  connection is logged, recorded and skipped without affecting the others.
- Listing calls fan out to every provider concurrently with a per-provider
  timeout; a broken provider contributes nothing.
- ``startup``/``shutdown``/``reload`` are the only writers of the connection
  map. They hold a lock and swap in a fully built map, so readers always see
  a settled snapshot.

Lifecycle calls must come from one long-lived task (see ``ProtocolClient``).
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, List, Optional, TypeVar

from toolgate.core.config import DEFAULT_MANIFEST_PATH
from toolgate.errors import (
    FailureKind,
    LaunchRejectedError,
    ProtocolError,
    SecurityRejectedError,
    render_failure,
)
from toolgate.execution.gate import CommandGate
from toolgate.execution.path_guard import resolve_safe
from toolgate.schemas.domain import ConnectionState

from .client import ProtocolClient
from .launch_policy import validate_launch_spec
from .naming import SEPARATOR, split_tool_name
from .schemas.config import load_manifest
from .schemas.core import ProviderPrompt, ProviderRecord, ProviderResource, ProviderTool
from .transport import AsyncMCPTransport, StdioMCPTransport

T = TypeVar("T")


class ProviderRegistry:
    """Owns every provider connection for one workspace.

    Hold exactly one instance per host and pass it by reference.
    """

    def __init__(
        self,
        workspace_root: Path,
        *,
        gate: CommandGate,
        manifest_path: str = DEFAULT_MANIFEST_PATH,
        transport: Optional[AsyncMCPTransport] = None,
        request_timeout: Optional[float] = 30.0,
    ) -> None:
        self._root = Path(workspace_root)
        self._gate = gate
        self._manifest_path = manifest_path
        self._transport: AsyncMCPTransport = transport or StdioMCPTransport(cwd=self._root)
        self._timeout = request_timeout
        self._clients: Dict[str, ProtocolClient] = {}
        self._records: Dict[str, ProviderRecord] = {}
        self._started = False
        self._lifecycle_lock = asyncio.Lock()
        self._logger = logging.getLogger(__name__)

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------
    @property
    def started(self) -> bool:
        return self._started

    @property
    def server_names(self) -> List[str]:
        return list(self._clients.keys())

    @property
    def records(self) -> List[ProviderRecord]:
        return list(self._records.values())

    def get_client(self, name: str) -> Optional[ProtocolClient]:
        return self._clients.get(name)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    async def startup(self) -> None:
        """Validate the manifest and connect every acceptable provider.

        A no-op when already started. A missing manifest means no providers;
        an unreadable manifest is logged and likewise yields no providers.
        """
        async with self._lifecycle_lock:
            await self._startup_locked()

    async def shutdown(self) -> None:
        """Close every live connection, tolerating close failures, then clear the map."""
        async with self._lifecycle_lock:
            await self._shutdown_locked()

    async def reload(self) -> None:
        """``shutdown()`` followed by ``startup()``, as one lifecycle transition."""
        async with self._lifecycle_lock:
            await self._shutdown_locked()
            await self._startup_locked()
        self._logger.info("MCP providers reloaded; connected: %s", ", ".join(self.server_names) or "none")

    async def _startup_locked(self) -> None:
        if self._started:
            return
        records: Dict[str, ProviderRecord] = {}
        clients: Dict[str, ProtocolClient] = {}

        try:
            manifest_file = resolve_safe(self._root, self._manifest_path)
            manifest = load_manifest(manifest_file)
        except (SecurityRejectedError, ValueError, OSError) as e:
            self._logger.error("MCP manifest error: %s", e)
            manifest = None

        entries = manifest.mcp_servers if manifest is not None else {}
        for name, raw in entries.items():
            record = ProviderRecord(name=name, state=ConnectionState.validating)
            records[name] = record
            try:
                spec = validate_launch_spec(name, raw)
            except LaunchRejectedError as e:
                self._logger.warning("Skipping MCP provider: %s", e)
                record.state = ConnectionState.invalid
                record.error = e.reason
                continue

            record.launch_spec = spec
            record.state = ConnectionState.connecting
            client = ProtocolClient(name, spec, gate=self._gate, transport=self._transport)
            try:
                # Sequential: each session's task group must be entered from this task.
                async with asyncio.timeout(self._timeout):
                    await client.connect()
            except ProtocolError as e:
                self._logger.error("MCP connection error: %s", e)
                record.state = ConnectionState.failed
                record.error = str(e)
                continue
            except asyncio.TimeoutError:
                self._logger.error("MCP provider '%s' did not finish initialize within %ss", name, self._timeout)
                record.state = ConnectionState.failed
                record.error = f"connect timed out after {self._timeout}s"
                continue
            record.state = ConnectionState.connected
            clients[name] = client

        self._records = records
        self._clients = clients
        self._started = True
        self._logger.info(
            "MCP startup complete: %d connected, %d configured", len(clients), len(records)
        )

    async def _shutdown_locked(self) -> None:
        clients, self._clients = self._clients, {}
        for name, client in clients.items():
            try:
                await client.close()
            except Exception as e:
                self._logger.warning("Error while closing MCP provider '%s': %s", name, e)
            record = self._records.get(name)
            if record is not None:
                record.state = ConnectionState.disconnected
        self._started = False

    # ------------------------------------------------------------------
    # Fan-out queries
    # ------------------------------------------------------------------
    async def _query(self, name: str, call: Callable[[], Awaitable[List[T]]]) -> List[T]:
        try:
            if self._timeout is None:
                return await call()
            return await asyncio.wait_for(call(), timeout=self._timeout)
        except asyncio.TimeoutError:
            self._logger.warning("MCP provider '%s' did not answer within %ss", name, self._timeout)
        except Exception as e:
            self._logger.warning("MCP provider '%s' query failed: %s", name, e)
        return []

    async def _fan_out(self, pick: Callable[[ProtocolClient], Callable[[], Awaitable[List[T]]]]) -> List[T]:
        snapshot = dict(self._clients)
        results = await asyncio.gather(*(self._query(name, pick(client)) for name, client in snapshot.items()))
        merged: List[T] = []
        for items in results:
            merged.extend(items)
        return merged

    async def list_tools(self) -> List[ProviderTool]:
        """All exposable tools; names containing the separator are skipped."""
        tools: List[ProviderTool] = await self._fan_out(lambda c: c.list_tools)
        exposed: List[ProviderTool] = []
        for tool in tools:
            if SEPARATOR in tool.name:
                self._logger.warning(
                    "Not exposing tool '%s' of '%s': name contains '%s'", tool.name, tool.provider, SEPARATOR
                )
                continue
            exposed.append(tool)
        return exposed

    async def get_tools_for_ai(self) -> List[Dict[str, Any]]:
        """Tools of every provider in OpenAI function format, named ``<provider>__<tool>``."""
        return [tool.to_openai_function() for tool in await self.list_tools()]

    async def get_prompts_for_ai(self) -> List[ProviderPrompt]:
        return await self._fan_out(lambda c: c.list_prompts)

    async def get_resources_for_ai(self) -> List[ProviderResource]:
        return await self._fan_out(lambda c: c.list_resources)

    # ------------------------------------------------------------------
    # Routed calls
    # ------------------------------------------------------------------
    def _not_connected(self, provider: str) -> str:
        return render_failure(FailureKind.not_found, f"Server '{provider}' is not connected")

    async def execute_tool(self, prefixed_name: str, arguments: Optional[Dict[str, Any]] = None) -> str:
        """
        Route ``<provider>__<tool>`` to the owning provider.

        Returns:
            The tool result, or a failure string for a malformed name, an
            unknown provider, invalid arguments, denial or a transport error.
        """
        parts = split_tool_name(prefixed_name)
        if parts is None or SEPARATOR in parts[1]:
            return render_failure(
                FailureKind.invalid_arguments,
                f"Invalid tool name '{prefixed_name}': expected '<server>{SEPARATOR}<tool>'",
            )
        provider, tool = parts
        client = self._clients.get(provider)
        if client is None:
            return self._not_connected(provider)
        return await client.call_tool(tool, arguments or {})

    async def get_prompt(self, provider: str, name: str, arguments: Optional[Dict[str, str]] = None) -> str:
        client = self._clients.get(provider)
        if client is None:
            return self._not_connected(provider)
        return await client.get_prompt(name, arguments)

    async def read_resource(self, provider: str, uri: str) -> str:
        client = self._clients.get(provider)
        if client is None:
            return self._not_connected(provider)
        return await client.read_resource(uri)
