"""Launch allow-list for provider processes.

A provider entry launches only when its command is one of a fixed set of
interpreters/launchers and every argument matches a conservative character
class. Anything else rejects the whole entry before a transport is created.
"""

from __future__ import annotations

import logging
import re
from typing import Any, FrozenSet

from pydantic import ValidationError

from toolgate.errors import LaunchRejectedError

from .naming import SEPARATOR
from .schemas.config import LaunchSpec

logger = logging.getLogger(__name__)

ALLOWED_LAUNCH_COMMANDS: FrozenSet[str] = frozenset({"npx", "node", "uv", "python", "python3"})

# Word characters, whitespace and - . / = \ : @
SAFE_ARG_PATTERN = re.compile(r"^[\w\s\-./=\\:@]*$")


def is_safe_argument(arg: str) -> bool:
    return SAFE_ARG_PATTERN.fullmatch(arg) is not None


def validate_provider_name(name: str) -> None:
    if not name or not name.strip():
        raise LaunchRejectedError(name, "provider name must not be empty")
    if SEPARATOR in name:
        raise LaunchRejectedError(name, f"provider name must not contain '{SEPARATOR}'")


def validate_launch_spec(name: str, raw: Any) -> LaunchSpec:
    """
    Validate one manifest entry.

    Args:
        name: Manifest key of the provider.
        raw: Raw manifest value, expected ``{command, args, env?}``.

    Returns:
        The validated ``LaunchSpec``.

    Raises:
        LaunchRejectedError: If the name, shape, command or any argument is refused.
    """
    validate_provider_name(name)
    try:
        spec = LaunchSpec.model_validate(raw)
    except ValidationError as e:
        raise LaunchRejectedError(name, f"malformed launch spec: {e.errors()[0]['msg']}") from e

    if spec.command not in ALLOWED_LAUNCH_COMMANDS:
        raise LaunchRejectedError(
            name,
            f"command '{spec.command}' is not allowed (allowed: {', '.join(sorted(ALLOWED_LAUNCH_COMMANDS))})",
        )
    for arg in spec.args:
        if not is_safe_argument(arg):
            raise LaunchRejectedError(name, f"unsafe argument {arg!r}")

    logger.debug("validate_launch_spec: accepted provider=%s command=%s args=%s", name, spec.command, spec.args)
    return spec
