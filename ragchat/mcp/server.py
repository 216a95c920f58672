"""
MCP-style tool server: exposes the agent's tool registry as a standardized HTTP
tool interface so external agents (or operators) can call retrieval directly.
"""

import logging
from typing import Any

from fastapi import APIRouter, HTTPException, Request

from ragchat.core.errors import UnknownToolError
from ragchat.schemas.tools import ToolCallRequest, ToolCallResponse

logger = logging.getLogger(__name__)

mcp_router = APIRouter(tags=["mcp"])


def _tools(request: Request):
    runtime = getattr(request.app.state, "runtime", None)
    if runtime is None:
        raise HTTPException(status_code=503, detail="Agent runtime is not initialised")
    return runtime.tools


@mcp_router.get(
    "/tools",
    summary="MCP tool discovery",
    description="List tool names, descriptions and argument schemas.",
)
def mcp_list_tools(request: Request) -> dict[str, list[dict[str, Any]]]:
    return {"tools": _tools(request).catalog()}


@mcp_router.post(
    "/tools/{name}",
    response_model=ToolCallResponse,
    summary="MCP tool call",
    description="Dispatch one tool through the same registry the agent uses. Tool failures come back as success=false; unknown tools are 404.",
)
def mcp_call_tool(name: str, request: Request, body: ToolCallRequest | None = None) -> ToolCallResponse:
    logger.info("MCP tool called: %s", name)
    tools = _tools(request)
    try:
        result = tools.dispatch(name, body.args if body else {})
    except UnknownToolError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    return ToolCallResponse(**result.to_dict())
