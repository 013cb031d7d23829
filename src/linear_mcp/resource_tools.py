"""Generic handler factory for simple resource tools.

Teams, users and projects share the same two shapes of tool: "list
everything" and "look one up by ID or name". Rather than hand-writing each,
the handlers are built from a small amount of per-entity configuration.
"""
import json
import logging
from typing import Awaitable, Callable

from mcp.types import TextContent
from pydantic import BaseModel

from linear_core.client import LinearClient
from linear_core.validators import LookupKind, resolve_by_id_or_name

logger = logging.getLogger("linear-mcp.resource_tools")

Handler = Callable[[BaseModel, LinearClient], Awaitable[list[TextContent]]]


def make_list_handler(
    plural: str,
    list_all: Callable[[LinearClient], Awaitable[dict]],
    to_view: Callable[[dict], dict],
) -> Handler:
    """Build a handler that lists every entity of one kind.

    Args:
        plural: Entity name for logging (e.g. "teams")
        list_all: Coroutine function returning a connection
        to_view: Mapper applied to every node
    """
    async def handler(params: BaseModel, client: LinearClient) -> list[TextContent]:
        connection = await list_all(client)
        items = [to_view(node) for node in (connection or {}).get("nodes") or []]
        logger.info(f"Successfully listed {len(items)} {plural}")
        return [TextContent(type="text", text=json.dumps(items))]

    handler.__name__ = f"handle_list_{plural}"
    return handler


def make_lookup_handler(kind: LookupKind, to_view: Callable[[dict], dict]) -> Handler:
    """Build a handler resolving ``params.query`` by ID, then by name.

    Args:
        kind: Lookup configuration (see linear_core.validators)
        to_view: Mapper applied to the resolved entity
    """
    async def handler(params: BaseModel, client: LinearClient) -> list[TextContent]:
        entity = await resolve_by_id_or_name(kind, client, params.query)
        logger.info(f"Successfully resolved {kind.label.lower()} \"{params.query}\" to {entity['id']}")
        return [TextContent(type="text", text=json.dumps(to_view(entity)))]

    handler.__name__ = f"handle_get_{kind.label.lower()}"
    return handler
