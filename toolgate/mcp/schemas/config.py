from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import Field

from .base import BaseSchema

logger = logging.getLogger(__name__)


class LaunchSpec(BaseSchema):
    command: str = Field(
        ...,
        description="Executable used to start the provider process; must be in the launch allow-list.",
        min_length=1,
        max_length=64,
        examples=["npx", "uv", "python3"],
    )
    args: List[str] = Field(
        default_factory=list,
        description="Arguments passed to the executable without shell interpretation.",
        examples=[["-y", "@modelcontextprotocol/server-filesystem", "./docs"]],
    )
    env: Dict[str, str] = Field(
        default_factory=dict,
        description="Extra environment variables layered over the host environment for this provider.",
        examples=[{"API_KEY": "sk-example"}],
    )


class McpManifest(BaseSchema):
    """
    Provider manifest loaded from the workspace.

    Entries are kept raw so that one malformed entry can be rejected on its
    own while the remaining entries still connect.
    """

    mcp_servers: Dict[str, Any] = Field(
        default_factory=dict,
        description="Provider name -> raw launch spec ``{command, args, env?}``.",
    )


def load_manifest(path: Path) -> Optional[McpManifest]:
    """Load the provider manifest.

    Args:
        path: Absolute manifest path.

    Returns:
        The parsed manifest, or None when the file does not exist.

    Raises:
        ValueError: If the file is not valid JSON or not shaped like a manifest.
    """
    if not path.is_file():
        logger.info("No MCP manifest at %s; no providers configured", path)
        return None
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ValueError(f"MCP manifest {path} is not valid JSON: {e}") from e
    if not isinstance(raw, dict):
        raise ValueError(f"MCP manifest {path} must be a JSON object")
    servers = raw.get("mcpServers", {})
    if not isinstance(servers, dict):
        raise ValueError(f"'mcpServers' in {path} must be an object")
    return McpManifest(mcp_servers={str(name): entry for name, entry in servers.items()})
