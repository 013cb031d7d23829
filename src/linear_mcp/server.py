"""Linear MCP Server - Expose Linear to AI assistants over stdio.

This is the composition root: settings are read once, a single LinearClient
is built from them and handed to every tool handler through the registry.
"""
import sys
import asyncio
import logging
import traceback
from typing import Any

import httpx
from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.shared.exceptions import McpError
from mcp.types import (
    INTERNAL_ERROR,
    INVALID_PARAMS,
    ErrorData,
    TextContent,
    Tool,
)

from linear_core.client import LinearClient
from linear_core.config import ConfigurationError, get_settings
from linear_core.errors import InvalidParamsError, LinearAPIError, LinearToolError

from .tools import ToolRegistry, build_registry


# Configure logging to stderr (stdout carries the MCP protocol)
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    stream=sys.stderr,
    force=True
)
logger = logging.getLogger("linear-mcp")


def _mcp_error(code: int, message: str) -> McpError:
    return McpError(ErrorData(code=code, message=message))


async def handle_tool_call(
    registry: ToolRegistry,
    client: LinearClient,
    name: str,
    arguments: Any,
) -> list[TextContent]:
    """Run one tool call and translate failures into MCP errors.

    InvalidParamsError becomes INVALID_PARAMS; every other failure becomes
    INTERNAL_ERROR with the underlying message appended.
    """
    logger.info(f"Tool call: {name} with arguments: {arguments}")

    if registry.get(name) is None:
        logger.warning(f"Unknown tool requested: {name}")
        return [TextContent(type="text", text=f"Unknown tool: {name}")]

    try:
        return await registry.call(name, arguments, client)

    except InvalidParamsError as e:
        logger.warning(f"Invalid parameters for {name}: {e.message}")
        raise _mcp_error(INVALID_PARAMS, e.message) from e

    except LinearToolError as e:
        logger.error(f"Tool error during {name} call: {e.message}")
        raise _mcp_error(INTERNAL_ERROR, e.message) from e

    except LinearAPIError as e:
        logger.error(f"Linear API error during {name} call:")
        logger.error(f"  Status: {e.status_code}")
        logger.error(f"  Errors: {e.errors}")
        logger.error(f"  Classification: {e.classification.kind.value}")
        raise _mcp_error(INTERNAL_ERROR, f"Linear API error: {e.message}") from e

    except httpx.RequestError as e:
        # Network/connection errors
        logger.error(f"Request error during {name} call:")
        logger.error(f"  Error type: {type(e).__name__}")
        logger.error(f"  Error message: {str(e)}")
        logger.error(f"  URL: {client.api_url}")
        logger.error(f"  Traceback: {traceback.format_exc()}")
        raise _mcp_error(INTERNAL_ERROR, f"Connection failed - {str(e)}") from e

    except Exception as e:
        # Catch-all for unexpected errors
        logger.error(f"Unexpected error during {name} call:")
        logger.error(f"  Error type: {type(e).__name__}")
        logger.error(f"  Error message: {str(e)}")
        logger.error(f"  Arguments: {arguments}")
        logger.error(f"  Traceback:\n{traceback.format_exc()}")
        raise _mcp_error(INTERNAL_ERROR, f"{type(e).__name__}: {str(e)}") from e


def create_server(client: LinearClient, registry: ToolRegistry) -> Server:
    """Build the MCP server with every tool bound to ``client``."""
    app = Server("linear-mcp")

    @app.list_tools()
    async def list_tools() -> list[Tool]:
        """List available MCP tools for Linear."""
        return registry.get_tools()

    @app.call_tool()
    async def call_tool(name: str, arguments: Any) -> list[TextContent]:
        """Handle MCP tool calls by delegating to the registry."""
        return await handle_tool_call(registry, client, name, arguments)

    return app


async def main():
    """Run the MCP server."""
    try:
        settings = get_settings()
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        sys.exit(1)

    logging.getLogger().setLevel(getattr(logging, settings.log_level, logging.INFO))
    logger.info(f"MCP Server starting with LINEAR_API_URL: {settings.api_url}")

    registry = build_registry()
    logger.info(f"Registered {len(registry)} tools")

    async with LinearClient(settings.api_key, api_url=settings.api_url, timeout=settings.timeout) as client:
        app = create_server(client, registry)
        async with stdio_server() as (read_stream, write_stream):
            await app.run(read_stream, write_stream, app.create_initialization_options())


def run():
    """Console script entry point."""
    asyncio.run(main())


if __name__ == "__main__":
    run()
