from .base import BaseSchema
from .config import LaunchSpec, McpManifest, load_manifest
from .core import (
    PromptArgument,
    ProviderPrompt,
    ProviderRecord,
    ProviderResource,
    ProviderTool,
    ToolArgument,
)

__all__ = [
    "BaseSchema",
    "LaunchSpec",
    "McpManifest",
    "load_manifest",
    "PromptArgument",
    "ProviderPrompt",
    "ProviderRecord",
    "ProviderResource",
    "ProviderTool",
    "ToolArgument",
]
