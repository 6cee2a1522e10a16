"""Single entry point for the local tools.

``ToolExecutionFacade`` validates tool arguments with the pydantic input
models from ``definitions``, confines every path with ``resolve_safe``, routes
side effects through the ``CommandGate`` and always returns text: failures
are rendered with the fixed failure marker instead of being raised.
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Dict, List, Optional

from pydantic import ValidationError

from toolgate.core.logging_config import get_logger
from toolgate.errors import (
    FailureKind,
    ToolGateError,
    render_failure,
    render_success,
)
from toolgate.mcp.naming import split_tool_name
from toolgate.schemas.domain import ActionKind, ActionState, ConfirmationRequest, ToolCallRequest

from .definitions import (
    LOCAL_TOOLS,
    GetMcpPromptInput,
    GetMcpResourceInput,
    ReplaceInput,
    RunCommandInput,
    WriteFileInput,
    get_tool,
)
from .gate import CommandGate
from .patch import DiffReviewer, PatchEngine, PatchProposal, ProposalStore
from .path_guard import resolve_safe
from .runner import CommandHandle, CommandReport, OutputSink, ProcessRunner

if TYPE_CHECKING:
    from toolgate.mcp.registry import ProviderRegistry

logger = get_logger(__name__)


def _describe_validation_error(e: ValidationError) -> str:
    return "; ".join(f"{'.'.join(str(p) for p in err['loc']) or 'arguments'}: {err['msg']}" for err in e.errors())


class ToolExecutionFacade:
    """Local tool surface: read, write, replace, run, MCP prompt/resource.

    Args:
        workspace_root: Absolute root every path is confined to.
        gate: Shared confirmation gate.
        runner: Shell runner; a default one is created when omitted.
        registry: Provider registry for MCP-backed tools and namespaced calls.
        reviewer: Diff-review collaborator notified of each replace proposal.
        confirm_reads: Require confirmation before ``read_file`` returns content.
        max_read_bytes: Refuse files larger than this.
        command_timeout: Cancel shell commands after this many seconds.
    """

    def __init__(
        self,
        workspace_root: Path,
        gate: CommandGate,
        *,
        runner: Optional[ProcessRunner] = None,
        registry: Optional["ProviderRegistry"] = None,
        reviewer: Optional[DiffReviewer] = None,
        confirm_reads: bool = True,
        max_read_bytes: int = 2_000_000,
        command_timeout: Optional[float] = None,
    ) -> None:
        self.workspace_root = Path(workspace_root)
        self._gate = gate
        self._runner = runner or ProcessRunner()
        self._registry = registry
        self._reviewer = reviewer
        self._confirm_reads = confirm_reads
        self._max_read_bytes = max_read_bytes
        self._command_timeout = command_timeout
        self._patches = PatchEngine(self.workspace_root)
        self.proposals = ProposalStore()
        self._handlers: Dict[str, Callable[[Any, Optional[OutputSink]], Awaitable[str]]] = {
            "read_file": lambda a, _: self.read_file(a.path),
            "write_file": lambda a, _: self.write_file(a.path, a.content),
            "replace": lambda a, _: self.replace(a.path, a.old_string, a.new_string, a.instruction),
            "run_command": lambda a, sink: self.run_command(a.command, on_chunk=sink),
            "get_mcp_prompt": lambda a, _: self.get_mcp_prompt(a.server_name, a.prompt_name, a.arguments),
            "get_mcp_resource": lambda a, _: self.get_mcp_resource(a.server_name, a.uri),
        }

    def tool_definitions(self) -> List[Dict[str, Any]]:
        """Local tool definitions in OpenAI function format."""
        return [tool.to_openai_function() for tool in LOCAL_TOOLS]

    async def dispatch(self, request: ToolCallRequest, on_chunk: Optional[OutputSink] = None) -> str:
        """
        Route one model tool call and return its textual outcome.

        Namespaced names (``<provider>__<tool>``) go to the registry; local
        names are validated against their input model first.
        """
        logger.info(f"Dispatching tool call: {request.name}")
        if split_tool_name(request.name) is not None:
            if self._registry is None:
                return render_failure(FailureKind.not_found, "No MCP servers are configured")
            return await self._registry.execute_tool(request.name, dict(request.arguments))

        tool = get_tool(request.name)
        if tool is None:
            return render_failure(FailureKind.not_found, f"Unknown tool '{request.name}'")
        try:
            args = tool.parse_arguments(dict(request.arguments))
        except ValidationError as e:
            return render_failure(FailureKind.invalid_arguments, f"{request.name}: {_describe_validation_error(e)}")
        return await self._handlers[request.name](args, on_chunk)

    # ------------------------------------------------------------------
    # Files
    # ------------------------------------------------------------------
    async def read_file(self, path: str) -> str:
        """Return the file content, or a failure string."""
        try:
            target = resolve_safe(self.workspace_root, path)
        except ToolGateError as e:
            return e.render()

        if self._confirm_reads:
            decision = await self._gate.request_approval(
                ConfirmationRequest(kind=ActionKind.file_read, title=f"Read file: {path}")
            )
            if not decision.approved:
                return render_failure(FailureKind.user_denied, f"Read access to '{path}' was denied")

        if not target.is_file():
            return render_failure(FailureKind.not_found, f"File not found: '{path}'")
        try:
            size = target.stat().st_size
            if size > self._max_read_bytes:
                return render_failure(
                    FailureKind.invalid_arguments,
                    f"'{path}' is {size} bytes, larger than the {self._max_read_bytes} byte read limit",
                )
            return target.read_text(encoding="utf-8", errors="replace")
        except OSError as e:
            logger.error(f"Failed to read file {path}: {e}")
            return render_failure(FailureKind.not_found, f"Could not read '{path}': {e}")

    async def write_file(self, path: str, content: str) -> str:
        """Create or overwrite a file after confirmation."""
        try:
            args = WriteFileInput(path=path, content=content)
            target = resolve_safe(self.workspace_root, args.path)
        except ToolGateError as e:
            return e.render()

        decision = await self._gate.request_approval(
            ConfirmationRequest(
                kind=ActionKind.file_write,
                title=f"Write file: {path}",
                detail=f"{len(content.encode('utf-8'))} bytes",
            )
        )
        if not decision.approved:
            return render_failure(FailureKind.user_denied, f"Write access to '{path}' was denied")

        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(content, encoding="utf-8")
        except OSError as e:
            logger.error(f"Failed to write file {path}: {e}")
            return render_failure(FailureKind.not_found, f"Could not write '{path}': {e}")
        logger.info(f"Wrote {len(content)} chars to {path}")
        return render_success(f"File written: {path}")

    async def replace(
        self,
        path: str,
        old_string: str,
        new_string: str,
        instruction: Optional[str] = None,
    ) -> str:
        """Propose a unique-span edit and hand it to the diff reviewer.

        Nothing is written here; see ``apply_proposal``.
        """
        try:
            args = ReplaceInput(path=path, old_string=old_string, new_string=new_string, instruction=instruction)
        except ValidationError:
            return render_failure(FailureKind.invalid_arguments, "old_string must not be empty")
        try:
            proposal = self._patches.propose_replace(
                args.path, args.old_string, args.new_string, instruction=args.instruction
            )
        except ToolGateError as e:
            return e.render()
        except FileNotFoundError:
            return render_failure(FailureKind.not_found, f"File not found: '{path}'")
        except (OSError, UnicodeDecodeError) as e:
            return render_failure(FailureKind.not_found, f"Could not read '{path}': {e}")

        self.proposals.add(proposal)
        if self._reviewer is not None:
            try:
                await self._reviewer.review(proposal)
            except Exception as e:
                logger.error(f"Diff reviewer failed for proposal {proposal.id}: {e}")
        return render_success(
            f"Edit proposed for {path} (proposal {proposal.id}); waiting for the user to apply or discard it"
        )

    def apply_proposal(self, proposal_id: str) -> str:
        try:
            proposal = self.proposals.apply(proposal_id)
        except ToolGateError as e:
            return e.render()
        except OSError as e:
            return render_failure(FailureKind.not_found, f"Could not apply proposal {proposal_id}: {e}")
        return render_success(f"Applied edit to {proposal.path}")

    def discard_proposal(self, proposal_id: str) -> str:
        try:
            proposal = self.proposals.discard(proposal_id)
        except ToolGateError as e:
            return e.render()
        return render_success(f"Discarded edit to {proposal.path}")

    def pending_proposals(self) -> List[PatchProposal]:
        return self.proposals.pending()

    # ------------------------------------------------------------------
    # Shell
    # ------------------------------------------------------------------
    async def execute_command(
        self,
        command: str,
        *,
        on_chunk: Optional[OutputSink] = None,
        handle: Optional[CommandHandle] = None,
    ) -> CommandReport:
        """Gate and run ``command``, returning the structured report.

        Blocklist rejections and denials produce a report in state
        ``rejected``/``denied`` without spawning anything.
        """
        args = RunCommandInput(command=command)
        decision = await self._gate.review_command(args.command)
        if not decision.approved:
            if handle is not None:
                handle.state = decision.state
            return CommandReport(command=command, state=decision.state, error=decision.reason)
        return await self._runner.run(
            args.command,
            cwd=str(self.workspace_root),
            on_chunk=on_chunk,
            handle=handle,
            timeout=self._command_timeout,
        )

    async def run_command(
        self,
        command: str,
        *,
        on_chunk: Optional[OutputSink] = None,
        handle: Optional[CommandHandle] = None,
    ) -> str:
        """Gate and run ``command``; return the rendered terminal report or a failure string."""
        try:
            report = await self.execute_command(command, on_chunk=on_chunk, handle=handle)
        except ValidationError:
            return render_failure(FailureKind.invalid_arguments, "command must not be empty")
        if report.state == ActionState.rejected:
            return render_failure(FailureKind.security_rejected, f"Command blocked: {report.error}")
        if report.state == ActionState.denied:
            return render_failure(FailureKind.user_denied, f"Command execution was denied ({report.error})")
        if report.state == ActionState.errored:
            return render_failure(FailureKind.spawn_error, report.error or "command could not be started")
        return report.render()

    # ------------------------------------------------------------------
    # MCP-backed local tools
    # ------------------------------------------------------------------
    async def get_mcp_prompt(
        self,
        server_name: str,
        prompt_name: str,
        arguments: Optional[Dict[str, str]] = None,
    ) -> str:
        try:
            args = GetMcpPromptInput(server_name=server_name, prompt_name=prompt_name, arguments=arguments or {})
        except ValidationError as e:
            return render_failure(FailureKind.invalid_arguments, f"get_mcp_prompt: {_describe_validation_error(e)}")
        if self._registry is None:
            return render_failure(FailureKind.not_found, "No MCP servers are configured")
        return await self._registry.get_prompt(args.server_name, args.prompt_name, args.arguments)

    async def get_mcp_resource(self, server_name: str, uri: str) -> str:
        try:
            args = GetMcpResourceInput(server_name=server_name, uri=uri)
        except ValidationError as e:
            return render_failure(FailureKind.invalid_arguments, f"get_mcp_resource: {_describe_validation_error(e)}")
        if self._registry is None:
            return render_failure(FailureKind.not_found, "No MCP servers are configured")
        return await self._registry.read_resource(args.server_name, args.uri)
