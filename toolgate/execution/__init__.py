"""Local tool execution: path confinement, command gate, shell runner and patching.

Typical usage:
    from toolgate.execution import CommandGate, ToolExecutionFacade

    facade = ToolExecutionFacade(workspace_root, CommandGate(confirmer))
    text = await facade.run_command("pytest -q", on_chunk=print)
"""

from .definitions import LOCAL_TOOLS, ToolDefinition
from .facade import ToolExecutionFacade
from .gate import BLOCKED_COMMAND_PATTERNS, CommandGate, ConfirmationProvider, GateDecision
from .patch import DiffReviewer, PatchEngine, PatchProposal, ProposalState, ProposalStore
from .path_guard import is_within, resolve_safe
from .runner import NO_OUTPUT, CommandHandle, CommandReport, ProcessRunner

__all__ = [
    "LOCAL_TOOLS",
    "ToolDefinition",
    "ToolExecutionFacade",
    "BLOCKED_COMMAND_PATTERNS",
    "CommandGate",
    "ConfirmationProvider",
    "GateDecision",
    "DiffReviewer",
    "PatchEngine",
    "PatchProposal",
    "ProposalState",
    "ProposalStore",
    "is_within",
    "resolve_safe",
    "NO_OUTPUT",
    "CommandHandle",
    "CommandReport",
    "ProcessRunner",
]
