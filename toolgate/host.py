"""Composition root for one workspace.

``ToolHost`` wires the confirmation gate, the local tool facade and the MCP
provider registry together and is the object an orchestrator holds for the
lifetime of a session.

Typical usage:
    host = ToolHost.create(confirmer, workspace_root="/work/app", reviewer=diff_view)
    await host.startup()
    tools = await host.tool_definitions()
    text = await host.dispatch(ToolCallRequest(name="run_command", arguments={"command": "ls"}))
    await host.shutdown()
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from toolgate.core.config import Settings, settings as default_settings
from toolgate.core.logging_config import get_logger, setup_logging
from toolgate.execution.facade import ToolExecutionFacade
from toolgate.execution.gate import CommandGate, ConfirmationProvider
from toolgate.execution.patch import DiffReviewer
from toolgate.execution.runner import OutputSink, ProcessRunner
from toolgate.mcp.registry import ProviderRegistry
from toolgate.mcp.transport import AsyncMCPTransport
from toolgate.schemas.domain import ToolCallRequest

logger = get_logger(__name__)


class ToolHost:
    """Owns the facade and the registry for one workspace root."""

    def __init__(self, facade: ToolExecutionFacade, registry: ProviderRegistry, gate: CommandGate) -> None:
        self.facade = facade
        self.registry = registry
        self.gate = gate

    @classmethod
    def create(
        cls,
        confirmer: ConfirmationProvider,
        *,
        workspace_root: Optional[Union[str, Path]] = None,
        reviewer: Optional[DiffReviewer] = None,
        settings: Optional[Settings] = None,
        transport: Optional[AsyncMCPTransport] = None,
        configure_logging: bool = False,
    ) -> "ToolHost":
        """
        Build a host from settings.

        Args:
            confirmer: Human-interaction collaborator answering confirmation prompts.
            workspace_root: Overrides ``settings.workspace_root``; defaults to the
                current directory when neither is set.
            reviewer: Diff-review collaborator for replace proposals.
            settings: Settings instance; the module-level one by default.
            transport: MCP transport override (tests use an in-memory fake).
            configure_logging: Call ``setup_logging`` from the settings.
        """
        cfg = settings or default_settings
        if configure_logging:
            setup_logging(
                log_level=cfg.log_level,
                log_format=cfg.log_format,
                enable_file=cfg.enable_file_logging,
                log_file_dir=cfg.log_file_dir,
            )

        root = Path(os.path.abspath(workspace_root or cfg.workspace_root or os.getcwd()))
        gate = CommandGate(confirmer, timeout_seconds=cfg.confirmation_timeout_seconds)
        registry = ProviderRegistry(
            root,
            gate=gate,
            manifest_path=cfg.mcp_manifest_path,
            transport=transport,
            request_timeout=cfg.provider_request_timeout_seconds,
        )
        facade = ToolExecutionFacade(
            root,
            gate,
            runner=ProcessRunner(marker_env=cfg.agent_marker_env),
            registry=registry,
            reviewer=reviewer,
            confirm_reads=cfg.confirm_file_reads,
            max_read_bytes=cfg.max_read_bytes,
            command_timeout=cfg.command_timeout_seconds,
        )
        logger.info("ToolHost created for workspace %s", root)
        return cls(facade, registry, gate)

    @property
    def workspace_root(self) -> Path:
        return self.facade.workspace_root

    async def startup(self) -> None:
        await self.registry.startup()

    async def shutdown(self) -> None:
        await self.registry.shutdown()

    async def reload(self) -> List[str]:
        """Reconnect every provider; returns the connected server names."""
        await self.registry.reload()
        return self.registry.server_names

    async def tool_definitions(self) -> List[Dict[str, Any]]:
        """Local tools followed by every provider tool, in OpenAI function format."""
        return self.facade.tool_definitions() + await self.registry.get_tools_for_ai()

    async def dispatch(self, request: ToolCallRequest, on_chunk: Optional[OutputSink] = None) -> str:
        return await self.facade.dispatch(request, on_chunk=on_chunk)

    async def __aenter__(self) -> "ToolHost":
        await self.startup()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.shutdown()
