"""One live connection to an MCP provider.

``ProtocolClient`` holds an initialized ``mcp.ClientSession`` open for the
lifetime of the registry entry. Listing operations raise ``ProtocolError`` so
the registry can degrade a broken provider to an empty contribution; the
operations whose result goes straight back to the model (prompt, resource
and tool calls) never raise and return inline error strings instead.

Typical usage:
    client = ProtocolClient("fs", spec, gate=gate)
    await client.connect()
    tools = await client.list_tools()
    text = await client.call_tool("read_text", {"path": "README.md"})
    await client.close()

``connect`` and ``close`` must run in the same task: the stdio transport is
built on anyio task groups that cannot be exited from another task.
"""

from __future__ import annotations

import json
import logging
from contextlib import AsyncExitStack
from typing import Any, Dict, List, Mapping, Optional

from mcp import ClientSession

from toolgate.errors import FailureKind, ProtocolError, render_failure
from toolgate.execution.gate import CommandGate
from toolgate.schemas.domain import ActionKind, ConfirmationRequest

from .naming import SEPARATOR
from .schemas.config import LaunchSpec
from .schemas.core import (
    PromptArgument,
    ProviderPrompt,
    ProviderResource,
    ProviderTool,
    ToolArgument,
)
from .transport import AsyncMCPTransport, StdioMCPTransport

_JSON_TYPE_CHECKS = {
    "string": lambda v: isinstance(v, str),
    "integer": lambda v: isinstance(v, int) and not isinstance(v, bool),
    "number": lambda v: isinstance(v, (int, float)) and not isinstance(v, bool),
    "boolean": lambda v: isinstance(v, bool),
    "array": lambda v: isinstance(v, list),
    "object": lambda v: isinstance(v, dict),
    "null": lambda v: v is None,
}


def infer_arguments(input_schema: Dict[str, Any]) -> List[ToolArgument]:
    """Infer a simplified list of `ToolArgument` from a JSON Schema object.

    Args:
        input_schema: A JSON Schema dictionary describing tool parameters.

    Returns:
        A list of `ToolArgument` entries derived from properties/required.
    """
    args: List[ToolArgument] = []
    props = input_schema.get("properties") if isinstance(input_schema, dict) else None
    required = set(input_schema.get("required") or []) if isinstance(input_schema, dict) else set()
    if isinstance(props, dict):
        for k, v in props.items():
            if not isinstance(v, dict):
                continue
            typ = v.get("type") if isinstance(v.get("type"), str) else "string"
            desc = v.get("description") if isinstance(v.get("description"), str) else None
            args.append(
                ToolArgument(
                    name=str(k),
                    type=str(typ),
                    required=str(k) in required,
                    description=desc,
                )
            )
    return args


def validate_tool_arguments(input_schema: Dict[str, Any], arguments: Mapping[str, Any]) -> List[str]:
    """Check arguments against the top level of a tool's JSON schema.

    Covers required keys, declared JSON types and ``additionalProperties:
    false``. Nested schemas are left to the provider.

    Returns:
        Human-readable problems; empty when the arguments are acceptable.
    """
    problems: List[str] = []
    if not isinstance(input_schema, dict):
        return problems
    props = input_schema.get("properties")
    props = props if isinstance(props, dict) else {}
    for key in input_schema.get("required") or []:
        if key not in arguments:
            problems.append(f"missing required argument '{key}'")
    for key, value in arguments.items():
        prop = props.get(key)
        if prop is None:
            if input_schema.get("additionalProperties") is False:
                problems.append(f"unexpected argument '{key}'")
            continue
        declared = prop.get("type") if isinstance(prop, dict) else None
        types = [declared] if isinstance(declared, str) else list(declared or [])
        checks = [_JSON_TYPE_CHECKS[t] for t in types if t in _JSON_TYPE_CHECKS]
        if checks and not any(check(value) for check in checks):
            problems.append(f"argument '{key}' must be of type {' or '.join(types)}")
    return problems


def _content_text(block: Any) -> str:
    text = getattr(block, "text", None)
    if isinstance(text, str):
        return text
    resource = getattr(block, "resource", None)
    if resource is not None:
        inner = getattr(resource, "text", None)
        if isinstance(inner, str):
            return inner
        return f"[embedded resource {getattr(resource, 'uri', '')}]"
    if hasattr(block, "model_dump"):
        dumped = block.model_dump(mode="json", exclude_none=True)
        dumped.pop("data", None)
        return json.dumps(dumped, ensure_ascii=False)
    return str(block)


def render_content(blocks: Any) -> str:
    """Flatten MCP content blocks (text, image, embedded resource) into text."""
    return "\n".join(_content_text(b) for b in (blocks or []))


class ProtocolClient:
    """A single provider connection driven through an MCP ``ClientSession``.

    - Keeps the session open in an ``AsyncExitStack`` until ``close``.
    - Caches the last tool listing so ``call_tool`` can validate arguments.
    - Routes every tool call through the confirmation gate first.
    """

    def __init__(
        self,
        name: str,
        spec: LaunchSpec,
        *,
        gate: CommandGate,
        transport: Optional[AsyncMCPTransport] = None,
    ) -> None:
        self.name = name
        self.spec = spec
        self._gate = gate
        self._transport: AsyncMCPTransport = transport or StdioMCPTransport()
        self._stack: Optional[AsyncExitStack] = None
        self._session: Optional[ClientSession] = None
        self._tools: Dict[str, ProviderTool] = {}
        self._logger = logging.getLogger(__name__)

    @property
    def connected(self) -> bool:
        return self._session is not None

    async def connect(self) -> None:
        """Spawn the provider and complete the MCP handshake.

        Raises:
            ProtocolError: If the process cannot be started or initialization fails.
        """
        if self._session is not None:
            return
        stack = AsyncExitStack()
        try:
            self._session = await stack.enter_async_context(self._transport.session(self.spec))
        except Exception as e:
            await stack.aclose()
            raise ProtocolError(self.name, "connect", str(e) or type(e).__name__) from e
        self._stack = stack
        self._logger.info("MCP provider '%s' connected (%s %s)", self.name, self.spec.command, " ".join(self.spec.args))

    async def close(self) -> None:
        """Close the session and terminate the provider process.

        Raises:
            ProtocolError: If the transport fails while shutting down.
        """
        stack, self._stack = self._stack, None
        self._session = None
        self._tools = {}
        if stack is None:
            return
        try:
            await stack.aclose()
        except Exception as e:
            raise ProtocolError(self.name, "close", str(e) or type(e).__name__) from e
        self._logger.info("MCP provider '%s' disconnected", self.name)

    def _require_session(self, operation: str) -> ClientSession:
        if self._session is None:
            raise ProtocolError(self.name, operation, "not connected")
        return self._session

    async def list_tools(self) -> List[ProviderTool]:
        """Return the provider's tools and refresh the validation cache.

        Raises:
            ProtocolError: On any transport or response failure.
        """
        session = self._require_session("list_tools")
        try:
            resp = await session.list_tools()
        except Exception as e:
            raise ProtocolError(self.name, "list_tools", str(e) or type(e).__name__) from e

        tools: List[ProviderTool] = []
        for tool in getattr(resp, "tools", []) or []:
            name = getattr(tool, "name", None)
            if not isinstance(name, str) or not name:
                continue
            desc_val = getattr(tool, "description", None)
            input_schema = getattr(tool, "inputSchema", {}) or {}
            if not isinstance(input_schema, dict):
                input_schema = {}
            tools.append(
                ProviderTool(
                    provider=self.name,
                    name=name,
                    description=desc_val if isinstance(desc_val, str) else None,
                    arguments=infer_arguments(input_schema),
                    input_schema=input_schema,
                )
            )
        self._tools = {t.name: t for t in tools}
        self._logger.debug("ProtocolClient.list_tools: provider=%s count=%d", self.name, len(tools))
        return tools

    async def list_prompts(self) -> List[ProviderPrompt]:
        """Raises ``ProtocolError`` on any transport or response failure."""
        session = self._require_session("list_prompts")
        try:
            resp = await session.list_prompts()
        except Exception as e:
            raise ProtocolError(self.name, "list_prompts", str(e) or type(e).__name__) from e
        prompts: List[ProviderPrompt] = []
        for prompt in getattr(resp, "prompts", []) or []:
            args = [
                PromptArgument(
                    name=a.name,
                    description=getattr(a, "description", None),
                    required=bool(getattr(a, "required", False)),
                )
                for a in (getattr(prompt, "arguments", None) or [])
            ]
            prompts.append(
                ProviderPrompt(
                    provider=self.name,
                    name=prompt.name,
                    description=getattr(prompt, "description", None),
                    arguments=args,
                )
            )
        return prompts

    async def list_resources(self) -> List[ProviderResource]:
        """Raises ``ProtocolError`` on any transport or response failure."""
        session = self._require_session("list_resources")
        try:
            resp = await session.list_resources()
        except Exception as e:
            raise ProtocolError(self.name, "list_resources", str(e) or type(e).__name__) from e
        return [
            ProviderResource(
                provider=self.name,
                uri=str(res.uri),
                name=getattr(res, "name", None),
                description=getattr(res, "description", None),
                mime_type=getattr(res, "mimeType", None),
            )
            for res in (getattr(resp, "resources", []) or [])
        ]

    async def get_prompt(self, name: str, arguments: Optional[Dict[str, str]] = None) -> str:
        """Render a prompt template as ``[role]: text`` lines, or an inline error."""
        try:
            session = self._require_session("get_prompt")
            resp = await session.get_prompt(name, arguments or {})
        except ProtocolError as e:
            return e.render()
        except Exception as e:
            self._logger.warning("get_prompt %s on '%s' failed: %s", name, self.name, e)
            return ProtocolError(self.name, "get_prompt", str(e) or type(e).__name__).render()
        lines = [f"[{m.role}]: {_content_text(m.content)}" for m in (getattr(resp, "messages", []) or [])]
        return "\n".join(lines)

    async def read_resource(self, uri: str) -> str:
        """Return the resource's text contents, or an inline error."""
        try:
            session = self._require_session("read_resource")
            resp = await session.read_resource(uri)
        except ProtocolError as e:
            return e.render()
        except Exception as e:
            self._logger.warning("read_resource %s on '%s' failed: %s", uri, self.name, e)
            return ProtocolError(self.name, "read_resource", str(e) or type(e).__name__).render()
        parts: List[str] = []
        for item in getattr(resp, "contents", []) or []:
            text = getattr(item, "text", None)
            if isinstance(text, str):
                parts.append(text)
            else:
                blob = getattr(item, "blob", "") or ""
                parts.append(f"[binary resource {item.uri} ({getattr(item, 'mimeType', None) or 'unknown type'}), {len(blob)} base64 chars]")
        return "\n".join(parts)

    async def _lookup_tool(self, name: str) -> Optional[ProviderTool]:
        if SEPARATOR in name:
            return None
        if name not in self._tools:
            await self.list_tools()
        return self._tools.get(name)

    async def call_tool(self, name: str, arguments: Optional[Dict[str, Any]] = None) -> str:
        """
        Validate, confirm, then invoke one provider tool.

        Args:
            name: Tool name as declared by the provider (not namespaced).
            arguments: JSON arguments.

        Returns:
            The tool's text content, or a failure string for unknown tools,
            invalid arguments, denial, ``isError`` results and transport errors.
        """
        args: Dict[str, Any] = dict(arguments or {})
        try:
            tool = await self._lookup_tool(name)
        except ProtocolError as e:
            self._logger.warning("Tool lookup on '%s' failed: %s", self.name, e)
            return e.render()
        if tool is None:
            return render_failure(FailureKind.not_found, f"Tool '{name}' is not provided by '{self.name}'")

        problems = validate_tool_arguments(tool.input_schema, args)
        if problems:
            return render_failure(FailureKind.invalid_arguments, f"{tool.exposed_name}: " + "; ".join(problems))

        decision = await self._gate.request_approval(
            ConfirmationRequest(
                kind=ActionKind.provider_tool,
                title=f"Use tool [{self.name}] {name}",
                detail=json.dumps(args, ensure_ascii=False),
            )
        )
        if not decision.approved:
            return render_failure(FailureKind.user_denied, f"Tool '{tool.exposed_name}' was not approved ({decision.reason})")

        self._logger.debug(
            "ProtocolClient.call_tool: provider=%s tool=%s args_keys=%s", self.name, name, list(args.keys())
        )
        try:
            session = self._require_session("call_tool")
            result = await session.call_tool(name, args)
        except ProtocolError as e:
            return e.render()
        except Exception as e:
            self._logger.warning("call_tool %s on '%s' failed: %s", name, self.name, e)
            return ProtocolError(self.name, "call_tool", str(e) or type(e).__name__).render()

        text = render_content(getattr(result, "content", None))
        if getattr(result, "isError", False):
            return ProtocolError(self.name, f"tool '{name}'", text or "tool reported an error").render()
        return text
