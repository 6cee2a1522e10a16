"""Error types for toolgate.

Defines a small hierarchy of exceptions raised below the textual tool surface,
and the ``FailureKind`` labels used when those failures are rendered as short
human-readable strings for the model and the user.
"""

from __future__ import annotations

from enum import Enum

FAILURE_MARKER = "[❌]"
SUCCESS_MARKER = "[✅]"


class FailureKind(str, Enum):
    security_rejected = "SECURITY ALERT"
    user_denied = "DENIED"
    not_found = "NOT FOUND"
    ambiguous = "AMBIGUOUS"
    protocol_error = "PROTOCOL ERROR"
    spawn_error = "SPAWN ERROR"
    invalid_arguments = "INVALID ARGUMENTS"
    cancelled = "CANCELLED"


def render_failure(kind: FailureKind, detail: str) -> str:
    """Render a failure as ``"[❌] <LABEL>: <detail>"``."""
    return f"{FAILURE_MARKER} {kind.value}: {detail}"


def render_success(detail: str) -> str:
    return f"{SUCCESS_MARKER} {detail}"


class ToolGateError(Exception):
    """Base error for all toolgate exceptions."""

    kind: FailureKind = FailureKind.protocol_error

    def render(self) -> str:
        return render_failure(self.kind, str(self))


class SecurityRejectedError(ToolGateError):
    """Raised when a security boundary refuses an operation."""

    kind = FailureKind.security_rejected


class PathOutOfBoundsError(SecurityRejectedError):
    """Raised when a path resolves outside the workspace root."""

    def __init__(self, root: str, path: str) -> None:
        self.root = root
        self.path = path
        super().__init__(f"Path escapes workspace: '{path}'")


class LaunchRejectedError(SecurityRejectedError):
    """Raised when a provider launch spec fails the allow-list checks."""

    def __init__(self, provider: str, reason: str) -> None:
        self.provider = provider
        self.reason = reason
        super().__init__(f"Provider '{provider}' rejected: {reason}")


class NotFoundError(ToolGateError):
    """Raised when a file, span, proposal, provider or tool does not exist."""

    kind = FailureKind.not_found


class SpanNotFoundError(NotFoundError):
    def __init__(self, path: str) -> None:
        self.path = path
        super().__init__(f"Text to replace was not found in '{path}'")


class ProposalNotFoundError(NotFoundError):
    def __init__(self, proposal_id: str) -> None:
        self.proposal_id = proposal_id
        super().__init__(f"No pending proposal '{proposal_id}'")


class AmbiguousSpanError(ToolGateError):
    """Raised when the span to replace occurs more than once."""

    kind = FailureKind.ambiguous

    def __init__(self, path: str, first: int, last: int) -> None:
        self.path = path
        self.first = first
        self.last = last
        super().__init__(
            f"Text to replace occurs more than once in '{path}' (offsets {first} and {last}); "
            "include more surrounding context"
        )


class StaleProposalError(ToolGateError):
    """Raised when a proposal is applied after its file changed."""

    kind = FailureKind.ambiguous

    def __init__(self, path: str) -> None:
        self.path = path
        super().__init__(f"'{path}' changed since the proposal was made; propose the edit again")


class ProtocolError(ToolGateError):
    """Raised for provider transport or response failures."""

    kind = FailureKind.protocol_error

    def __init__(self, provider: str, operation: str, message: str) -> None:
        self.provider = provider
        self.operation = operation
        super().__init__(f"{operation} failed on provider '{provider}': {message}")


class SpawnError(ToolGateError):
    """Raised when a process cannot be started at all."""

    kind = FailureKind.spawn_error
