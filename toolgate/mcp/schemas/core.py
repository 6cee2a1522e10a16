from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import Field

from toolgate.schemas.domain import ConnectionState

from ..naming import join_tool_name
from .base import BaseSchema
from .config import LaunchSpec


class ToolArgument(BaseSchema):
    name: str = Field(..., description="Argument name", min_length=1, max_length=128)
    type: str = Field(..., description="JSON Schema type of the argument", min_length=1, max_length=64)
    required: bool = Field(False, description="Whether this argument is required by the tool")
    description: Optional[str] = Field(None, description="Human-friendly description of the argument.")


class ProviderTool(BaseSchema):
    provider: str = Field(..., description="Name of the provider that owns this tool.", min_length=1)
    name: str = Field(..., description="Tool name as declared by the provider.", min_length=1, max_length=128)
    description: Optional[str] = Field(None, description="Short description of what the tool does.")
    arguments: List[ToolArgument] = Field(
        default_factory=list,
        description="List of arguments as a simplified domain view derived from the input schema.",
    )
    input_schema: Dict[str, Any] = Field(
        default_factory=dict,
        description="Raw JSON schema for parameters as provided by the MCP server.",
    )

    @property
    def exposed_name(self) -> str:
        return join_tool_name(self.provider, self.name)

    def to_openai_function(self) -> Dict[str, Any]:
        parameters = self.input_schema or {"type": "object", "properties": {}}
        return {
            "type": "function",
            "function": {
                "name": self.exposed_name,
                "description": self.description or "",
                "parameters": parameters,
            },
        }


class PromptArgument(BaseSchema):
    name: str = Field(..., min_length=1)
    description: Optional[str] = None
    required: bool = False


class ProviderPrompt(BaseSchema):
    provider: str = Field(..., description="Name of the provider that owns this prompt.", min_length=1)
    name: str = Field(..., description="Prompt template name.", min_length=1)
    description: Optional[str] = Field(None, description="What the prompt template is for.")
    arguments: List[PromptArgument] = Field(default_factory=list)


class ProviderResource(BaseSchema):
    provider: str = Field(..., description="Name of the provider that owns this resource.", min_length=1)
    uri: str = Field(..., description="Unique resource URI.", min_length=1)
    name: Optional[str] = Field(None, description="Display name of the resource.")
    description: Optional[str] = None
    mime_type: Optional[str] = None


class ProviderRecord(BaseSchema):
    """Per-entry connection state kept by the registry."""

    name: str = Field(..., description="Manifest key of the provider.")
    launch_spec: Optional[LaunchSpec] = Field(None, description="Validated launch spec, absent when invalid.")
    state: ConnectionState = Field(default=ConnectionState.configured)
    error: Optional[str] = Field(None, description="Why the entry is invalid or failed to connect.")
