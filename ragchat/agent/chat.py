"""
Plain chat: the caller's message history goes straight to the chat model, no tools.

Emits the same AgentEvent kinds as an agent run so event_stream can deliver it:
status -> final_response_chunk* -> completion, or a terminal error if the model fails.
"""

import logging
from typing import Any, AsyncIterator

from ragchat.agent.events import AgentEvent, EventKind, status
from ragchat.agent.llm import ChatModel

logger = logging.getLogger(__name__)

CHAT_ROLES = frozenset({"system", "user", "assistant"})


def plain_chat(model: ChatModel, messages: list[dict[str, Any]]) -> AsyncIterator[AgentEvent]:
    """
    Validate the history and return the event stream for one model reply.

    Raises:
        ValueError: empty history, an unknown role or a message without content.
    """
    if not messages:
        raise ValueError("messages are required")
    history = []
    for m in messages:
        role, content = m.get("role"), m.get("content")
        if role not in CHAT_ROLES:
            raise ValueError(f"unknown message role: {role!r}")
        if not isinstance(content, str) or not content.strip():
            raise ValueError("message content is required")
        history.append({"role": role, "content": content})
    return _stream_chat(model, history)


async def _stream_chat(model: ChatModel, history: list[dict[str, str]]) -> AsyncIterator[AgentEvent]:
    logger.info("[chat] IN  messages=%d", len(history))
    yield status("Starting chat...", "chat_start", message_count=len(history))
    answer = ""
    try:
        async for fragment in model.stream(history):
            answer += fragment
            yield AgentEvent(EventKind.FINAL_RESPONSE_CHUNK, {"content": fragment, "step": "streaming_chat"})
    except Exception as e:
        logger.warning("[chat] model failed: %s", e)
        yield AgentEvent(
            EventKind.ERROR,
            {"message": "Chat failed", "error": str(e), "step": "error", "terminal": True},
        )
        return
    logger.info("[chat] OUT response_len=%d", len(answer))
    yield AgentEvent(
        EventKind.COMPLETION,
        {
            "message": "Chat completed",
            "step": "done",
            "final_response": answer,
            "total_steps": 1,
            "degraded": False,
            "messages": history + [{"role": "assistant", "content": answer}],
        },
    )
