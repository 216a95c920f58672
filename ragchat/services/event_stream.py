"""
Event stream emitter: deliver an agent run's events to a caller.

Two modes:
- incremental: iter_wrapped() yields each event (tagged with a coarse category) as soon
  as it is produced and stops after the terminal event; format_sse() / EventChannel put
  it on a transport.
- buffered: collect_answer() drains the run and returns only the final answer.
"""

import json
import logging
from contextlib import aclosing
from dataclasses import dataclass
from typing import Any, AsyncIterable, AsyncIterator, Awaitable, Callable

from ragchat.agent.events import AgentEvent, EventKind
from ragchat.core.config import EVENT_CATEGORY

logger = logging.getLogger(__name__)


def wrap_event(event: AgentEvent, category: str = EVENT_CATEGORY) -> dict[str, Any]:
    return {"category": category, **event.to_dict()}


async def iter_wrapped(
    events: AsyncIterable[AgentEvent], category: str = EVENT_CATEGORY
) -> AsyncIterator[dict[str, Any]]:
    """Wrapped events in order, ending after the first terminal event. Closes the source on exit."""
    async with aclosing(aiter(events)) as source:
        async for event in source:
            yield wrap_event(event, category)
            if event.is_terminal:
                return


def format_sse(payload: dict[str, Any]) -> str:
    """One Server-Sent Events frame."""
    return f"event: {payload.get('type', 'message')}\ndata: {json.dumps(payload, default=str)}\n\n"


class EventChannel:
    """
    Sends payloads to a transport (e.g. websocket.send_json). Once the transport fails
    the channel is closed and later sends are silently dropped.
    """

    def __init__(self, send: Callable[[dict[str, Any]], Awaitable[None]]) -> None:
        self._send = send
        self.closed = False

    async def send(self, payload: dict[str, Any]) -> bool:
        if self.closed:
            return False
        try:
            await self._send(payload)
        except Exception as e:
            logger.info("[event_stream] transport closed: %s", e)
            self.closed = True
            return False
        return True

    def close(self) -> None:
        self.closed = True


async def pump(events: AsyncIterable[AgentEvent], channel: EventChannel, category: str = EVENT_CATEGORY) -> int:
    """Forward wrapped events to channel until the terminal event or until the channel closes."""
    sent = 0
    async with aclosing(iter_wrapped(events, category)) as wrapped:
        async for payload in wrapped:
            if not await channel.send(payload):
                break
            sent += 1
    return sent


@dataclass
class BufferedAnswer:
    answer: str
    degraded: bool = False
    total_steps: int = 0
    error: str | None = None


async def collect_answer(events: AsyncIterable[AgentEvent]) -> BufferedAnswer:
    """Drain events; keep only the final answer (completion's full text wins over chunks)."""
    parts: list[str] = []
    result = BufferedAnswer(answer="")
    async with aclosing(aiter(events)) as source:
        async for event in source:
            if event.kind is EventKind.FINAL_RESPONSE_CHUNK:
                parts.append(event.payload.get("content", ""))
            elif event.kind is EventKind.COMPLETION:
                result.answer = event.payload.get("final_response") or "".join(parts)
                result.degraded = bool(event.payload.get("degraded"))
                result.total_steps = int(event.payload.get("total_steps", 0))
                return result
            elif event.is_terminal:
                result.error = event.payload.get("final_response") or event.payload.get("message")
                result.total_steps = int(event.payload.get("total_steps", 0))
                break
    result.answer = "".join(parts)
    return result
