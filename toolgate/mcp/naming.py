"""Namespacing of provider tools as ``<provider>__<tool>``."""

from __future__ import annotations

from typing import Optional, Tuple

SEPARATOR = "__"


def join_tool_name(provider: str, tool: str) -> str:
    return f"{provider}{SEPARATOR}{tool}"


def split_tool_name(prefixed_name: str) -> Optional[Tuple[str, str]]:
    """Split on the first separator.

    Returns:
        ``(provider, tool)``, or None when the name carries no separator or
        either side is empty.
    """
    provider, sep, tool = prefixed_name.partition(SEPARATOR)
    if not sep or not provider or not tool:
        return None
    return provider, tool


def is_namespaced(name: str) -> bool:
    return SEPARATOR in name
