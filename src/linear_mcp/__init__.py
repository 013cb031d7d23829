"""Linear MCP Server - Model Context Protocol integration.

This package exposes Linear issues, projects, teams, users, cycles, labels and
milestones as MCP tools for AI assistants.

Modules:
- server: stdio MCP server implementation (composition root)
- tools: Tool definitions and registry
- resource_tools: Generic list/lookup tool factory
- handlers: Tool implementation handlers
"""

__version__ = "1.0.0"

from . import tools
from . import handlers

__all__ = ["tools", "handlers", "__version__"]
