from __future__ import annotations

from enum import Enum
from typing import Dict, Optional

from pydantic import Field, JsonValue

from .base import BaseSchema


class ActionKind(str, Enum):
    """Kinds of side-effecting actions that may require human confirmation."""

    shell_command = "shell_command"
    provider_tool = "provider_tool"
    file_write = "file_write"
    file_read = "file_read"


class ActionState(str, Enum):
    """
    Lifecycle of one pending action (shell command or provider tool call).

    ``idle`` -> ``rejected`` when the blocklist/allow-list matches,
    ``idle`` -> ``pending_confirmation`` -> ``denied`` on refusal, or
    -> ``running`` -> ``closed`` / ``errored`` / ``cancelled``.
    """

    idle = "idle"
    rejected = "rejected"
    pending_confirmation = "pending_confirmation"
    denied = "denied"
    running = "running"
    closed = "closed"
    errored = "errored"
    cancelled = "cancelled"


class ConnectionState(str, Enum):
    """
    Lifecycle of one provider connection.

    ``configured`` -> ``validating`` -> ``invalid`` (skipped), or
    -> ``connecting`` -> ``connected`` -> ``disconnected`` on shutdown, or
    -> ``connecting`` -> ``failed`` (logged and omitted).
    """

    configured = "configured"
    validating = "validating"
    invalid = "invalid"
    connecting = "connecting"
    connected = "connected"
    failed = "failed"
    disconnected = "disconnected"


class ConfirmationToken(str, Enum):
    """Tokens returned by the human-interaction collaborator.

    Only the exact ``approve`` token approves; every other value is a denial.
    """

    approve = "ACPT"
    reject = "RJCT"


class ConfirmationRequest(BaseSchema):
    kind: ActionKind = Field(..., description="Which kind of action is awaiting a decision.")
    title: str = Field(..., description="Short prompt shown to the human.", min_length=1)
    detail: Optional[str] = Field(None, description="Longer context such as the full command line.")


class ToolCallRequest(BaseSchema):
    """A tool call emitted by the model.

    ``name`` is either a local tool name (``run_command``) or a namespaced
    provider tool (``<provider>__<tool>``).
    """

    name: str = Field(..., description="Tool identifier.", min_length=1, max_length=256)
    arguments: Dict[str, JsonValue] = Field(
        default_factory=dict,
        description="JSON arguments for the tool, validated against its declared schema before dispatch.",
    )
