"""
Agent orchestrator: the step loop that lets the LLM call retrieval tools until it answers.

Each run is an explicit state machine:

    INIT -> THINKING -> PARSING -> DISPATCHING -> CONTEXT_UPDATE -> THINKING ...
                                -> STREAMING_FINAL -> DONE
         (any error)            -> ERROR_RECOVERY -> THINKING | FALLBACK_DONE
         (step limit reached)   -> MAX_STEPS_EXCEEDED

Events are produced lazily through an async generator; closing it (aclose, or the
transport going away) stops the run at its next suspension point.
"""

import asyncio
import logging
import re
from enum import Enum
from typing import Any, AsyncIterator

from ragchat.agent import prompts
from ragchat.agent.events import AgentEvent, EventKind, status
from ragchat.agent.llm import ChatModel
from ragchat.agent.protocol import FunctionCallReply, parse_model_output
from ragchat.agent.tools import ToolRegistry
from ragchat.core.config import (
    ERROR_THRESHOLD,
    FALLBACK_CONTEXT_CHARS,
    FALLBACK_WORD_DELAY,
    MAX_STEPS,
    RAW_RESPONSE_PREVIEW,
    STEP_DELAY,
    WORD_DELAY,
)
from ragchat.core.errors import ParseError, UnknownToolError

logger = logging.getLogger(__name__)

_WORD_RE = re.compile(r"\s*\S+\s*")


class AgentState(str, Enum):
    INIT = "init"
    THINKING = "thinking"
    PARSING = "parsing"
    DISPATCHING = "dispatching"
    CONTEXT_UPDATE = "context_update"
    STREAMING_FINAL = "streaming_final"
    ERROR_RECOVERY = "error_recovery"
    DONE = "done"
    FALLBACK_DONE = "fallback_done"
    MAX_STEPS_EXCEEDED = "max_steps_exceeded"


TERMINAL_STATES = frozenset({AgentState.DONE, AgentState.FALLBACK_DONE, AgentState.MAX_STEPS_EXCEEDED})


def split_words(text: str) -> list[str]:
    """Word pieces with their trailing whitespace; "".join(pieces) == text."""
    return _WORD_RE.findall(text) or [text]


class AgentRun:
    """
    One query's run. Owns its message context; iterate it (once) to drive the loop.

    state, steps, context and final_response can be inspected while or after iterating.
    """

    def __init__(self, orchestrator: "AgentOrchestrator", query: str) -> None:
        self._orchestrator = orchestrator
        self.query = query
        self.state = AgentState.INIT
        self.steps = 0
        self.consecutive_errors = 0
        self.context: list[dict[str, str]] = []
        self.accumulated = ""
        self.final_response: str | None = None
        self._started = False

    def __aiter__(self) -> AsyncIterator[AgentEvent]:
        if self._started:
            raise RuntimeError("AgentRun can only be iterated once")
        self._started = True
        return self._orchestrator._drive(self)


class AgentOrchestrator:
    """Drives AgentRuns against a chat model and a tool registry shared across runs."""

    def __init__(
        self,
        model: ChatModel,
        tools: ToolRegistry,
        max_steps: int = MAX_STEPS,
        error_threshold: int = ERROR_THRESHOLD,
        step_delay: float = STEP_DELAY,
        word_delay: float = WORD_DELAY,
        fallback_word_delay: float = FALLBACK_WORD_DELAY,
    ) -> None:
        self._model = model
        self._tools = tools
        self.max_steps = max_steps
        self.error_threshold = error_threshold
        self.step_delay = step_delay
        self.word_delay = word_delay
        self.fallback_word_delay = fallback_word_delay

    def run(self, query: str) -> AgentRun:
        if not query or not str(query).strip():
            raise ValueError("question is required")
        return AgentRun(self, str(query).strip())

    @staticmethod
    async def _pause(seconds: float) -> None:
        if seconds > 0:
            await asyncio.sleep(seconds)

    async def _drive(self, run: AgentRun) -> AsyncIterator[AgentEvent]:
        logger.info("[orchestrator] START query=%r max_steps=%d", run.query, self.max_steps)
        run.context.append(
            {"role": "system", "content": prompts.build_system_prompt(run.query, self._tools.catalog())}
        )
        yield status("Starting document processing...", "initializing", query=run.query)

        while run.state not in TERMINAL_STATES and run.steps < self.max_steps:
            run.steps += 1
            run.state = AgentState.THINKING
            yield status(f"Processing step {run.steps}", "thinking", step_number=run.steps)

            raw = ""
            try:
                await self._pause(self.step_delay)
                async for fragment in self._model.stream(run.context):
                    raw += fragment
                    yield AgentEvent(EventKind.LLM_CHUNK, {"content": fragment, "step": "llm_thinking"})

                run.state = AgentState.PARSING
                yield status("Parsing LLM response...", "parsing")
                reply = parse_model_output(raw)

                if isinstance(reply, FunctionCallReply):
                    async for event in self._dispatch(run, reply, raw):
                        yield event
                else:
                    async for event in self._stream_final(run, reply.response, degraded=False):
                        yield event
                run.consecutive_errors = 0
            except Exception as e:
                run.state = AgentState.ERROR_RECOVERY
                run.consecutive_errors += 1
                logger.warning("[orchestrator] step %d failed (%d in a row): %s",
                               run.steps, run.consecutive_errors, e)
                payload: dict[str, Any] = {
                    "message": "Processing error",
                    "error": str(e),
                    "step": "error",
                    "step_number": run.steps,
                    "terminal": False,
                }
                if isinstance(e, ParseError):
                    payload["raw_response"] = e.raw[:RAW_RESPONSE_PREVIEW]
                yield AgentEvent(EventKind.ERROR, payload)
                run.context.append({"role": "user", "content": prompts.corrective_instruction(str(e))})

                if run.consecutive_errors >= self.error_threshold:
                    yield status("Too many errors, attempting fallback response", "error_recovery")
                    fallback = prompts.fallback_answer(run.accumulated, FALLBACK_CONTEXT_CHARS)
                    async for event in self._stream_final(run, fallback, degraded=True):
                        yield event

        if run.state not in TERMINAL_STATES:
            run.state = AgentState.MAX_STEPS_EXCEEDED
            logger.warning("[orchestrator] END max steps reached steps=%d", run.steps)
            yield AgentEvent(
                EventKind.ERROR,
                {
                    "message": "Maximum processing steps reached",
                    "error": "max_steps_reached",
                    "step": "max_steps_reached",
                    "final_response": prompts.MAX_STEPS_MESSAGE,
                    "total_steps": run.steps,
                    "terminal": True,
                },
            )

    async def _dispatch(self, run: AgentRun, reply: FunctionCallReply, raw: str) -> AsyncIterator[AgentEvent]:
        call = reply.response
        run.state = AgentState.DISPATCHING
        if call.function not in self._tools.names:
            raise UnknownToolError(call.function, self._tools.names)

        yield AgentEvent(
            EventKind.FUNCTION_CALL,
            {"function": call.function, "args": call.args, "status": call.status, "step": "executing_function"},
        )
        result = await asyncio.to_thread(self._tools.dispatch, call.function, call.args)
        yield AgentEvent(
            EventKind.FUNCTION_RESULT,
            {"function": call.function, "result": result.to_dict(), "step": "function_complete"},
        )

        run.state = AgentState.CONTEXT_UPDATE
        previous = len(run.accumulated)
        if result.context:
            run.accumulated += "\n\n" + result.context
        yield AgentEvent(
            EventKind.DATA_ACCUMULATED,
            {
                "function": call.function,
                "new_data_length": len(result.context),
                "previous_length": previous,
                "total_accumulated": len(run.accumulated),
                "step": "data_collection",
            },
        )

        run.context.append({"role": "assistant", "content": raw})
        run.context.append(
            {
                "role": "user",
                "content": prompts.tool_feedback(
                    call.function, result.success, result.count, result.context, result.error
                ),
            }
        )
        if call.status == "done":
            yield status(
                "Function indicated completion, generating final response...",
                "preparing_final_response",
            )
            run.context.append({"role": "user", "content": prompts.FINAL_ANSWER_INSTRUCTION})

    async def _stream_final(self, run: AgentRun, text: str, degraded: bool) -> AsyncIterator[AgentEvent]:
        run.state = AgentState.STREAMING_FINAL
        yield AgentEvent(
            EventKind.FINAL_RESPONSE_START,
            {
                "message": "Generating fallback response" if degraded else "Generating final answer",
                "step": "fallback_output" if degraded else "final_output",
            },
        )
        delay = self.fallback_word_delay if degraded else self.word_delay
        for i, piece in enumerate(split_words(text)):
            if i:
                await self._pause(delay)
            yield AgentEvent(
                EventKind.FINAL_RESPONSE_CHUNK,
                {"content": piece, "step": "streaming_fallback" if degraded else "streaming_final"},
            )

        run.final_response = text
        # State is set before the terminal event: consumers may stop iterating right after it.
        run.state = AgentState.FALLBACK_DONE if degraded else AgentState.DONE
        logger.info("[orchestrator] END state=%s steps=%d answer_len=%d", run.state.value, run.steps, len(text))
        yield AgentEvent(
            EventKind.COMPLETION,
            {
                "message": (
                    "Processing completed with errors" if degraded
                    else "Document processing completed successfully"
                ),
                "step": "done_with_errors" if degraded else "done",
                "final_response": text,
                "total_steps": run.steps,
                "accumulated_data_length": len(run.accumulated),
                "degraded": degraded,
            },
        )
