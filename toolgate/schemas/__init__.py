from .base import BaseSchema
from .domain import (
    ActionKind,
    ActionState,
    ConfirmationRequest,
    ConfirmationToken,
    ConnectionState,
    ToolCallRequest,
)

__all__ = [
    "BaseSchema",
    "ActionKind",
    "ActionState",
    "ConfirmationRequest",
    "ConfirmationToken",
    "ConnectionState",
    "ToolCallRequest",
]
