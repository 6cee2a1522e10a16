"""Streamed, cancellable shell command execution.

``ProcessRunner.run`` spawns one shell-interpreted command inside the
workspace and forwards stdout/stderr to a sink as soon as each chunk arrives.
It always resolves to a ``CommandReport``; a command that cannot even be
started produces an ``errored`` report instead of raising.
"""

from __future__ import annotations

import asyncio
import codecs
import inspect
import logging
import os
import signal
import sys
import time
from typing import Awaitable, Callable, Dict, List, Mapping, Optional, Union

from pydantic import Field

from toolgate.core.config import DEFAULT_AGENT_MARKER
from toolgate.errors import SpawnError
from toolgate.schemas.base import BaseSchema
from toolgate.schemas.domain import ActionState

logger = logging.getLogger(__name__)

OutputSink = Callable[[str], Union[None, Awaitable[None]]]

NO_OUTPUT = "(no output)"
READ_CHUNK_BYTES = 4096
TERMINATE_GRACE_SECONDS = 3.0
_IS_POSIX = sys.platform != "win32"


class CommandReport(BaseSchema):
    """Structured result of one shell execution."""

    command: str = Field(..., description="Command line as given to the shell.")
    state: ActionState = Field(..., description="Terminal state: closed, errored or cancelled.")
    exit_code: Optional[int] = Field(None, description="Process exit status when the process closed.")
    stdout: str = Field(default="", description="Decoded standard output.")
    stderr: str = Field(default="", description="Decoded standard error.")
    error: Optional[str] = Field(None, description="Spawn error or cancellation reason.")
    duration_seconds: Optional[float] = Field(None, description="Wall-clock duration.")

    @property
    def succeeded(self) -> bool:
        return self.state == ActionState.closed and self.exit_code == 0

    @property
    def combined_output(self) -> str:
        return self.stdout + self.stderr

    @property
    def status_label(self) -> str:
        if self.state == ActionState.cancelled:
            return f"CANCELLED ({self.error})" if self.error else "CANCELLED"
        if self.state == ActionState.errored:
            return f"ERROR ({self.error})" if self.error else "ERROR"
        if self.exit_code == 0:
            return "SUCCESS"
        return f"FAILED (Exit Code: {self.exit_code})"

    def render(self) -> str:
        """Render the fixed-shape textual report consumed by the display layer."""
        output = self.combined_output
        lines = [
            "[TERMINAL REPORT]",
            f"Command: {self.command}",
            f"Status: {self.status_label}",
            f"Output Length: {len(output.encode('utf-8'))}",
            "--- OUTPUT ---",
            output if output else NO_OUTPUT,
        ]
        return "\n".join(lines)


class CommandHandle:
    """Cancellation handle for one running command.

    Create it before calling ``ProcessRunner.run`` and keep a reference; any
    task may call ``cancel()`` to terminate the process, after which ``run``
    resolves with a ``cancelled`` report.
    """

    def __init__(self) -> None:
        self._cancel_requested = asyncio.Event()
        self.state: ActionState = ActionState.idle
        self.pid: Optional[int] = None

    def cancel(self) -> None:
        self._cancel_requested.set()

    @property
    def cancel_requested(self) -> bool:
        return self._cancel_requested.is_set()

    async def wait_cancelled(self) -> None:
        await self._cancel_requested.wait()


async def _emit(sink: Optional[OutputSink], text: str) -> None:
    if sink is None:
        return
    result = sink(text)
    if inspect.isawaitable(result):
        await result


class ProcessRunner:
    """Spawn shell commands in the workspace and stream their output."""

    def __init__(
        self,
        *,
        marker_env: str = DEFAULT_AGENT_MARKER,
        terminate_grace_seconds: float = TERMINATE_GRACE_SECONDS,
    ) -> None:
        self._marker_env = marker_env
        self._grace = terminate_grace_seconds

    def build_env(self, extra: Optional[Mapping[str, str]] = None) -> Dict[str, str]:
        """Ambient environment, plus ``extra``, plus the agent marker variable."""
        env = dict(os.environ)
        if extra:
            env.update(extra)
        env[self._marker_env] = "1"
        return env

    async def _spawn(self, command: str, cwd: str, env: Dict[str, str]) -> asyncio.subprocess.Process:
        try:
            return await asyncio.create_subprocess_shell(
                command,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=cwd,
                env=env,
                start_new_session=_IS_POSIX,
            )
        except OSError as e:
            raise SpawnError(f"Failed to start command: {e}") from e

    async def _pump(
        self,
        stream: Optional[asyncio.StreamReader],
        buffer: List[str],
        sink: Optional[OutputSink],
    ) -> None:
        if stream is None:
            return
        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        while True:
            data = await stream.read(READ_CHUNK_BYTES)
            if not data:
                break
            text = decoder.decode(data)
            if text:
                buffer.append(text)
                await _emit(sink, text)
        tail = decoder.decode(b"", final=True)
        if tail:
            buffer.append(tail)
            await _emit(sink, tail)

    def _signal(self, process: asyncio.subprocess.Process, sig: int) -> None:
        if process.returncode is not None:
            return
        try:
            if _IS_POSIX:
                os.killpg(process.pid, sig)
            elif sig == signal.SIGTERM:
                process.terminate()
            else:
                process.kill()
        except ProcessLookupError:
            pass

    async def _terminate(self, process: asyncio.subprocess.Process) -> None:
        self._signal(process, signal.SIGTERM)
        try:
            await asyncio.wait_for(process.wait(), timeout=self._grace)
        except asyncio.TimeoutError:
            logger.warning("Process %s ignored SIGTERM; killing", process.pid)
            self._signal(process, getattr(signal, "SIGKILL", signal.SIGTERM))
            await process.wait()

    async def run(
        self,
        command: str,
        *,
        cwd: str,
        env: Optional[Mapping[str, str]] = None,
        on_chunk: Optional[OutputSink] = None,
        handle: Optional[CommandHandle] = None,
        timeout: Optional[float] = None,
    ) -> CommandReport:
        """
        Execute ``command`` through the shell and stream its output.

        Args:
            command: Shell command line; shell syntax is intended.
            cwd: Working directory, normally the workspace root.
            env: Extra environment variables layered over the ambient ones.
            on_chunk: Receives every decoded stdout/stderr chunk immediately.
            handle: Optional cancellation handle.
            timeout: Cancel the command after this many seconds.

        Returns:
            CommandReport in state ``closed``, ``errored`` or ``cancelled``.
        """
        handle = handle or CommandHandle()
        start = time.monotonic()
        stdout_buf: List[str] = []
        stderr_buf: List[str] = []

        if handle.cancel_requested:
            handle.state = ActionState.cancelled
            return CommandReport(command=command, state=ActionState.cancelled, error="cancelled before start")

        logger.info("Executing command: %s (cwd=%s)", command, cwd)
        try:
            process = await self._spawn(command, cwd, self.build_env(env))
        except SpawnError as e:
            logger.error("Spawn failed for %r: %s", command, e)
            handle.state = ActionState.errored
            return CommandReport(
                command=command,
                state=ActionState.errored,
                error=str(e),
                duration_seconds=time.monotonic() - start,
            )

        handle.pid = process.pid
        handle.state = ActionState.running
        pumps = asyncio.gather(
            self._pump(process.stdout, stdout_buf, on_chunk),
            self._pump(process.stderr, stderr_buf, on_chunk),
        )

        async def _finish() -> int:
            # The process may close its pipes long before it exits.
            await asyncio.shield(pumps)
            return await process.wait()

        completion = asyncio.ensure_future(_finish())
        cancel_waiter = asyncio.ensure_future(handle.wait_cancelled())
        cancel_reason: Optional[str] = None
        try:
            done, _ = await asyncio.wait(
                {completion, cancel_waiter},
                timeout=timeout,
                return_when=asyncio.FIRST_COMPLETED,
            )
            if completion in done:
                exit_code = completion.result()
            else:
                cancel_reason = "cancelled" if cancel_waiter in done else f"timed out after {timeout}s"
                logger.info("Terminating %r: %s", command, cancel_reason)
                completion.cancel()
                await self._terminate(process)
                try:
                    await asyncio.wait_for(pumps, timeout=self._grace)
                except asyncio.TimeoutError:
                    # A detached grandchild may still hold the pipes open.
                    pumps.cancel()
                exit_code = await process.wait()
        except BaseException:
            # Sink failure or outer cancellation: never leave the process behind.
            await self._terminate(process)
            raise
        finally:
            cancel_waiter.cancel()
            if not completion.done():
                completion.cancel()
            if not pumps.done():
                pumps.cancel()

        duration = time.monotonic() - start
        stdout = "".join(stdout_buf)
        stderr = "".join(stderr_buf)
        if cancel_reason is not None:
            handle.state = ActionState.cancelled
            return CommandReport(
                command=command,
                state=ActionState.cancelled,
                exit_code=exit_code,
                stdout=stdout,
                stderr=stderr,
                error=cancel_reason,
                duration_seconds=duration,
            )

        logger.info(
            f"Command completed with exit code {exit_code} "
            f"(duration: {duration:.2f}s, stdout: {len(stdout)} chars, stderr: {len(stderr)} chars)"
        )
        handle.state = ActionState.closed
        return CommandReport(
            command=command,
            state=ActionState.closed,
            exit_code=exit_code,
            stdout=stdout,
            stderr=stderr,
            duration_seconds=duration,
        )
