from __future__ import annotations

import os
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Optional, Protocol

from mcp import ClientSession, StdioServerParameters
from mcp.client.stdio import stdio_client

from .schemas.config import LaunchSpec


class AsyncMCPTransport(Protocol):
    """Protocol for creating MCP ClientSession connections asynchronously.

    Implementations return an async context manager via ``session(spec)``
    that yields an initialized ``ClientSession``.
    """

    def session(self, spec: LaunchSpec):  # -> AsyncContextManager[ClientSession]
        ...


class StdioMCPTransport(AsyncMCPTransport):
    """MCP transport that launches the provider as a child process over stdio.

    The child inherits the host environment with the entry's ``env`` layered
    on top, and runs in the workspace root when one is given. Arguments are
    passed to the executable directly, never through a shell.
    """

    def __init__(self, cwd: Optional[Path] = None) -> None:
        self._cwd = cwd

    def server_parameters(self, spec: LaunchSpec) -> StdioServerParameters:
        env = dict(os.environ)
        env.update(spec.env)
        return StdioServerParameters(
            command=spec.command,
            args=list(spec.args),
            env=env,
            cwd=str(self._cwd) if self._cwd is not None else None,
        )

    def session(self, spec: LaunchSpec):
        params = self.server_parameters(spec)

        @asynccontextmanager
        async def _cm() -> AsyncIterator[ClientSession]:
            async with stdio_client(params) as (read_stream, write_stream):
                async with ClientSession(read_stream, write_stream) as session:
                    await session.initialize()
                    yield session

        return _cm()
