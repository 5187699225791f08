"""Agent MCP tools package.

Exposes the tmux-exec operations to an agent as an in-process MCP server.

Custom tools: exec, continue, peek, interrupt
"""

from claude_agent_sdk import create_sdk_mcp_server

from .terminal import continue_tool, exec_tool, interrupt_tool, peek_tool

# ============================================================================
# EXEC_TOOLS: the MCP tools exposed to the agent.
# ============================================================================

EXEC_TOOLS = [
    exec_tool,
    continue_tool,
    peek_tool,
    interrupt_tool,
]

exec_server = create_sdk_mcp_server(
    name="tmux-exec",
    version="0.1.0",
    tools=EXEC_TOOLS,
)

__all__ = [
    "exec_server",
    "EXEC_TOOLS",
    "exec_tool",
    "continue_tool",
    "peek_tool",
    "interrupt_tool",
]
