"""MCP surface of the workflow bridge."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

from fastmcp import FastMCP
from fastmcp.exceptions import ToolError
from pydantic import Field
from starlette.applications import Starlette
from starlette.routing import Mount, WebSocketRoute

from .errors import BridgeToolError
from .tools.apply_workflow import apply_workflow as _apply_workflow
from .tools.get_current_workflow import get_current_workflow as _get_current_workflow
from .websocket import live_editor_endpoint

if TYPE_CHECKING:
    from .manager import BridgeManager

SERVER_NAME = "wfbridge"

INSTRUCTIONS = """\
Tools for reading and editing the workflow open in the workflow editor.

Call get_current_workflow before editing. apply_workflow replaces the whole
document; send every node and connection, not a diff. If apply_workflow
reports a conflict, fetch the workflow again, redo the edit and retry.
"""


def create_bridge_server(manager: BridgeManager) -> FastMCP:
    """Create the FastMCP server whose tools route to ``manager``'s provider."""
    mcp = FastMCP(SERVER_NAME, instructions=INSTRUCTIONS)

    @mcp.tool()
    async def get_current_workflow() -> dict[str, Any]:
        """Get the workflow currently open in the editor (or stored on disk).

        Returns the workflow JSON and whether it is stale, i.e. possibly behind
        the editor's unsaved in-memory state.
        """
        try:
            return await _get_current_workflow(manager)
        except BridgeToolError as exc:
            raise ToolError(json.dumps(exc.payload)) from exc

    @mcp.tool()
    async def apply_workflow(
        workflow: str = Field(description="The complete workflow JSON document, as a string."),
        description: str | None = Field(
            default=None,
            description="Short summary of the change, shown to the user when reviewing it.",
        ),
    ) -> dict[str, Any]:
        """Replace the current workflow with the given document.

        The editor may ask the user to review the change first. A result with
        conflict=true means the workflow changed since it was read: call
        get_current_workflow again and retry.
        """
        try:
            return await _apply_workflow(manager, workflow_json=workflow, description=description)
        except BridgeToolError as exc:
            raise ToolError(json.dumps(exc.payload)) from exc

    return mcp


def create_bridge_app(manager: BridgeManager) -> Starlette:
    """ASGI app serving MCP at ``mcp_path`` and the live-editor socket at ``ws_path``."""
    config = manager.config
    mcp_app = create_bridge_server(manager).http_app(path=config.mcp_path, stateless_http=True)
    return Starlette(
        routes=[
            WebSocketRoute(config.ws_path, live_editor_endpoint(lambda: manager.transport)),
            Mount("/", app=mcp_app),
        ],
        lifespan=mcp_app.lifespan,
    )
