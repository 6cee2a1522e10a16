"""Tool definitions for the local tools exposed to the model.

Each tool has a pydantic input model validated at the boundary (unknown keys
are rejected) and a ``ToolDefinition`` that renders it in OpenAI function
format.
"""

from typing import Any, Dict, List, Optional, Type

from pydantic import BaseModel, ConfigDict, Field

from toolgate.schemas.base import BaseSchema


class ReadFileInput(BaseSchema):
    """Input schema for reading a workspace file."""

    path: str = Field(..., description="Workspace-relative path of the file, e.g. 'notes/idea.md'")


class WriteFileInput(BaseSchema):
    """Input schema for creating or overwriting a workspace file."""

    path: str = Field(..., description="Workspace-relative path of the target file")
    content: str = Field(..., description="Complete content to write to the file")


class ReplaceInput(BaseSchema):
    """Input schema for a precise span replacement."""

    path: str = Field(..., description="Workspace-relative path of the target file")
    old_string: str = Field(
        ...,
        min_length=1,
        description="Exact original text to replace; must occur exactly once (include about 3 lines of context)",
    )
    new_string: str = Field(..., description="Replacement text")
    instruction: Optional[str] = Field(None, description="Short description of this edit")


class RunCommandInput(BaseSchema):
    """Input schema for shell command execution."""

    command: str = Field(..., min_length=1, description="Complete shell command line to execute in the workspace")


class GetMcpPromptInput(BaseSchema):
    """Input schema for fetching a prompt template from an MCP server."""

    server_name: str = Field(..., description="Name of the MCP server")
    prompt_name: str = Field(..., description="Name of the prompt template")
    arguments: Dict[str, str] = Field(default_factory=dict, description="Arguments required by the prompt template")


class GetMcpResourceInput(BaseSchema):
    """Input schema for reading a resource from an MCP server."""

    server_name: str = Field(..., description="Name of the MCP server")
    uri: str = Field(..., description="Unique URI of the resource")


class ToolDefinition(BaseModel):
    """Pydantic model for local tool definitions.

    Pairs a tool name and description with the input model used both for
    validation and for the JSON schema handed to the model.
    """

    name: str = Field(..., description="Unique identifier for the tool")
    description: str = Field(..., description="Human-readable description of what the tool does")
    input_schema: Type[BaseModel] = Field(..., description="Pydantic model class for input validation")

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    def get_input_schema_json(self) -> Dict[str, Any]:
        """Get the input schema as JSON schema without pydantic's title noise."""
        schema = self.input_schema.model_json_schema()
        schema.pop("title", None)
        for prop in schema.get("properties", {}).values():
            prop.pop("title", None)
        return schema

    def to_openai_function(self) -> Dict[str, Any]:
        """Convert to OpenAI function-calling format.

        Returns:
            ``{"type": "function", "function": {"name", "description", "parameters"}}``
        """
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.get_input_schema_json(),
            },
        }

    def parse_arguments(self, arguments: Dict[str, Any]) -> BaseModel:
        """Validate raw arguments; raises ``pydantic.ValidationError``."""
        return self.input_schema.model_validate(arguments)


read_file_tool = ToolDefinition(
    name="read_file",
    description="Read the full content of a file in the workspace. Call this before analysing code or notes.",
    input_schema=ReadFileInput,
)

write_file_tool = ToolDefinition(
    name="write_file",
    description="Create a file or overwrite an existing one in the workspace. The complete content must be provided.",
    input_schema=WriteFileInput,
)

replace_tool = ToolDefinition(
    name="replace",
    description=(
        "Precise local edit: locate an exact text span and replace it, without rewriting the whole file. "
        "The span must occur exactly once; provide at least 3 lines of context. "
        "The edit is proposed to the user as a diff and applied only after approval."
    ),
    input_schema=ReplaceInput,
)

run_command_tool = ToolDefinition(
    name="run_command",
    description="Run a shell command in the workspace (build, test, list files, ...) and return a terminal report.",
    input_schema=RunCommandInput,
)

get_mcp_prompt_tool = ToolDefinition(
    name="get_mcp_prompt",
    description="Fetch the content of a prompt template registered by a specific MCP server.",
    input_schema=GetMcpPromptInput,
)

get_mcp_resource_tool = ToolDefinition(
    name="get_mcp_resource",
    description="Fetch the content of a static resource (knowledge file, API doc) registered by a specific MCP server.",
    input_schema=GetMcpResourceInput,
)

LOCAL_TOOLS: List[ToolDefinition] = [
    read_file_tool,
    write_file_tool,
    replace_tool,
    run_command_tool,
    get_mcp_prompt_tool,
    get_mcp_resource_tool,
]


def get_tool(name: str) -> Optional[ToolDefinition]:
    for tool in LOCAL_TOOLS:
        if tool.name == name:
            return tool
    return None
