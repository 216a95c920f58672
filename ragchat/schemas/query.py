"""Schemas for the query endpoints."""

from pydantic import BaseModel, Field


class QueryRequest(BaseModel):
    """Request body for POST /query, POST /query/stream and the first WebSocket /ws/query frame."""

    question: str = Field(..., min_length=1, description="User question for the agent.")


class QueryResponse(BaseModel):
    """Response for POST /query (buffered mode)."""

    answer: str = Field(..., description="Final answer from the agent.")
    degraded: bool = Field(False, description="True when the answer came from the fallback path after repeated invalid model output.")
    total_steps: int = Field(0, description="Agent steps (model calls) used.")
    error: str | None = Field(None, description="Explanation when the run ended without an answer (e.g. step limit reached).")
