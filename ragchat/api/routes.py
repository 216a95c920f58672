"""
API routes: query the agent (buffered, SSE, WebSocket), plain chat and a store check.

No agent logic here; dependencies come from the AgentRuntime on app.state.
"""

import asyncio
import logging
from contextlib import aclosing

from fastapi import APIRouter, HTTPException, Request, WebSocket, WebSocketDisconnect
from fastapi.responses import StreamingResponse

from ragchat.agent.chat import plain_chat
from ragchat.agent.orchestrator import AgentRun
from ragchat.core.config import CHAT_EVENT_CATEGORY, EVENT_CATEGORY
from ragchat.core.runtime import AgentRuntime
from ragchat.schemas.chat import ChatRequest, ChatResponse
from ragchat.schemas.query import QueryRequest, QueryResponse
from ragchat.services.event_stream import EventChannel, collect_answer, format_sse, iter_wrapped, pump

logger = logging.getLogger(__name__)
router = APIRouter()


def _runtime(app_state) -> AgentRuntime:
    runtime = getattr(app_state, "runtime", None)
    if runtime is None:
        raise HTTPException(status_code=503, detail="Agent runtime is not initialised")
    return runtime


def _start_run(runtime: AgentRuntime, question: str) -> AgentRun:
    try:
        return runtime.orchestrator().run(question)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e


# --- System ---

@router.get("/", tags=["system"])
def root():
    return {"status": "Agentic document Q&A backend running"}


@router.get("/health", tags=["system"], summary="Vector store health")
async def health(request: Request) -> dict:
    runtime = _runtime(request.app.state)
    result = await asyncio.to_thread(runtime.store.health_check)
    return {"ok": bool(result.get("healthy")), **result}


# --- Query (HTTP) ---

@router.post(
    "/query",
    response_model=QueryResponse,
    tags=["query"],
    summary="Query the agent (buffered)",
    description="Runs the agent to completion and returns only the final answer. 400 on invalid input.",
)
async def post_query(body: QueryRequest, request: Request) -> QueryResponse:
    logger.info("[api:post_query] IN  question=%r", body.question)
    run = _start_run(_runtime(request.app.state), body.question)
    try:
        result = await collect_answer(run)
    except Exception as e:
        logger.exception("Agent failed")
        raise HTTPException(status_code=500, detail=str(e)) from e
    logger.info("[api:post_query] OUT state=%s steps=%d answer_len=%d", run.state.value, run.steps, len(result.answer))
    return QueryResponse(
        answer=result.answer or result.error or "Document processing completed.",
        degraded=result.degraded,
        total_steps=result.total_steps,
        error=result.error,
    )


_SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


async def _sse_generator(events, category: str = EVENT_CATEGORY):
    """Yield Server-Sent Events for one agent run or chat; ends after the terminal event."""
    try:
        async with aclosing(iter_wrapped(events, category)) as wrapped:
            async for payload in wrapped:
                yield format_sse(payload)
    except Exception as e:
        logger.exception("SSE stream failed")
        yield format_sse({
            "category": category,
            "type": "error",
            "message": "Streaming failed",
            "error": str(e),
            "terminal": True,
        })


@router.post(
    "/query/stream",
    tags=["query"],
    summary="Query the agent (SSE stream)",
    description="Streams every agent event via Server-Sent Events. The stream ends after a completion or terminal error event.",
)
async def post_query_stream(body: QueryRequest, request: Request) -> StreamingResponse:
    logger.info("[api:post_query_stream] IN  question=%r", body.question)
    run = _start_run(_runtime(request.app.state), body.question)
    return StreamingResponse(_sse_generator(run), media_type="text/event-stream", headers=_SSE_HEADERS)


# --- Plain chat (no tools) ---

def _start_chat(runtime: AgentRuntime, body: ChatRequest):
    try:
        return plain_chat(runtime.model, [m.model_dump() for m in body.messages])
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e


@router.post(
    "/chat",
    response_model=ChatResponse,
    tags=["chat"],
    summary="Chat with the model (buffered)",
    description="Sends the message history straight to the chat model, without retrieval tools.",
)
async def post_chat(body: ChatRequest, request: Request) -> ChatResponse:
    logger.info("[api:post_chat] IN  messages=%d", len(body.messages))
    events = _start_chat(_runtime(request.app.state), body)
    result = await collect_answer(events)
    logger.info("[api:post_chat] OUT answer_len=%d error=%s", len(result.answer), result.error)
    history = list(body.messages)
    if result.answer:
        history.append({"role": "assistant", "content": result.answer})
    return ChatResponse(answer=result.answer, messages=history, error=result.error)


@router.post(
    "/chat/stream",
    tags=["chat"],
    summary="Chat with the model (SSE stream)",
    description="Streams the model reply via Server-Sent Events, ending with a completion or terminal error event.",
)
async def post_chat_stream(body: ChatRequest, request: Request) -> StreamingResponse:
    logger.info("[api:post_chat_stream] IN  messages=%d", len(body.messages))
    events = _start_chat(_runtime(request.app.state), body)
    return StreamingResponse(
        _sse_generator(events, CHAT_EVENT_CATEGORY), media_type="text/event-stream", headers=_SSE_HEADERS
    )


# --- Query (WebSocket) ---

@router.websocket("/ws/query")
async def ws_query(websocket: WebSocket) -> None:
    """First frame is a QueryRequest; then one JSON frame per event until the terminal one."""
    await websocket.accept()
    runtime = getattr(websocket.app.state, "runtime", None)
    try:
        body = QueryRequest.model_validate(await websocket.receive_json())
        if runtime is None:
            raise ValueError("Agent runtime is not initialised")
        run = runtime.orchestrator().run(body.question)
    except WebSocketDisconnect:
        return
    except ValueError as e:
        await websocket.send_json({
            "category": EVENT_CATEGORY,
            "type": "error",
            "message": "Invalid request",
            "error": str(e),
            "terminal": True,
        })
        await websocket.close(code=1003)
        return

    channel = EventChannel(websocket.send_json)
    sent = await pump(run, channel)
    logger.info("[api:ws_query] OUT events=%d state=%s transport_closed=%s", sent, run.state.value, channel.closed)
    if not channel.closed:
        await websocket.close()
