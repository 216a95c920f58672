"""Schemas for the HTTP tool surface."""

from typing import Any

from pydantic import BaseModel, Field


class ToolCallRequest(BaseModel):
    """Arguments for POST /mcp/tools/{name}. Empty for tools that take none."""

    args: dict[str, Any] = Field(default_factory=dict, description="Tool arguments, e.g. {\"query\": \"...\", \"topK\": 3}.")


class ToolCallResponse(BaseModel):
    success: bool
    context: str = ""
    count: int = 0
    data: dict[str, Any] = Field(default_factory=dict)
    error: str | None = None

    model_config = {
        "json_schema_extra": {
            "examples": [{"success": True, "context": "Leave policy ...", "count": 1, "data": {"results": []}, "error": None}]
        }
    }
