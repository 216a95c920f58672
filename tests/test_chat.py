"""Plain chat mode: history straight to the model, streamed or buffered."""

import asyncio

import pytest

from conftest import ScriptedModel, collect
from ragchat.agent.chat import plain_chat
from ragchat.agent.events import EventKind
from ragchat.services.event_stream import collect_answer

HISTORY = [
    {"role": "system", "content": "You are terse."},
    {"role": "user", "content": "Hi"},
    {"role": "assistant", "content": "Hello."},
    {"role": "user", "content": "What is 2+2?"},
]


class BrokenModel:
    async def stream(self, messages):
        yield "partial "
        raise ConnectionError("model unreachable")


def test_history_goes_to_model_unchanged() -> None:
    model = ScriptedModel("It is four.", fragments=3)
    events = collect(plain_chat(model, HISTORY))

    assert model.seen == [HISTORY]
    assert events[0].kind is EventKind.STATUS
    chunks = [e.payload["content"] for e in events if e.kind is EventKind.FINAL_RESPONSE_CHUNK]
    assert len(chunks) == 3
    assert "".join(chunks) == "It is four."
    completion = events[-1]
    assert completion.kind is EventKind.COMPLETION
    assert completion.payload["final_response"] == "It is four."
    assert completion.payload["messages"][-1] == {"role": "assistant", "content": "It is four."}
    assert len(completion.payload["messages"]) == len(HISTORY) + 1


def test_no_tool_loop_or_json_contract() -> None:
    model = ScriptedModel('{"type": "functionCall"}')
    events = collect(plain_chat(model, HISTORY[1:2]))
    assert model.calls == 1
    assert not any(e.kind in (EventKind.FUNCTION_CALL, EventKind.ERROR) for e in events)


def test_buffered_chat_answer() -> None:
    result = asyncio.run(collect_answer(plain_chat(ScriptedModel("Four."), HISTORY)))
    assert result.answer == "Four."
    assert result.error is None


def test_model_failure_is_terminal_error() -> None:
    events = collect(plain_chat(BrokenModel(), HISTORY))
    assert events[-1].kind is EventKind.ERROR
    assert events[-1].is_terminal
    assert events[-1].payload["error"] == "model unreachable"

    result = asyncio.run(collect_answer(plain_chat(BrokenModel(), HISTORY)))
    assert result.error == "Chat failed"


@pytest.mark.parametrize(
    "messages",
    [
        [],
        [{"role": "tool", "content": "x"}],
        [{"role": "user", "content": "   "}],
        [{"role": "user"}],
    ],
)
def test_invalid_history_rejected_before_streaming(messages) -> None:
    model = ScriptedModel("never")
    with pytest.raises(ValueError):
        plain_chat(model, messages)
    assert model.calls == 0
