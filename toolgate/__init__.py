"""toolgate.

Gated tool execution and external protocol host for AI agents.

Every side-effecting action an agent (or its user) can trigger is mediated
here before it touches the machine:

- **Local actions**: reading and writing workspace files, precise span
  replacement (proposed, never written directly) and shell commands.
- **Provider actions**: tools, prompts and resources exposed by external MCP
  servers launched over stdio.

Core subpackages
----------------

- ``toolgate.execution``:

  - ``resolve_safe`` path confinement under the workspace root.
  - ``CommandGate`` blocklist + human confirmation.
  - ``ProcessRunner`` streamed, cancellable shell execution.
  - ``PatchEngine``/``ProposalStore`` unique-span replace proposals.
  - ``ToolExecutionFacade`` the textual tool surface used by an orchestrator.

- ``toolgate.mcp``:

  - ``ProtocolClient`` one live connection to a provider process.
  - ``ProviderRegistry`` the named fleet of connections with fan-out queries
    and ``<provider>__<tool>`` routing.

Typical workflow
----------------

1. Build a ``ToolHost`` for a workspace with a confirmation collaborator.
2. ``await host.startup()`` to connect the providers in the manifest.
3. Hand ``await host.tool_definitions()`` to the model.
4. Route each model tool call through ``await host.dispatch(request)``.
5. ``await host.shutdown()`` when the session ends.
"""
