"""Agent progress events. Serialized as {"type": kind, **payload}."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class EventKind(str, Enum):
    STATUS = "status"
    LLM_CHUNK = "llm_chunk"
    FUNCTION_CALL = "function_call"
    FUNCTION_RESULT = "function_result"
    DATA_ACCUMULATED = "data_accumulated"
    FINAL_RESPONSE_START = "final_response_start"
    FINAL_RESPONSE_CHUNK = "final_response_chunk"
    COMPLETION = "completion"
    ERROR = "error"


@dataclass(frozen=True)
class AgentEvent:
    kind: EventKind
    payload: dict[str, Any] = field(default_factory=dict)

    @property
    def is_terminal(self) -> bool:
        """completion always ends a run; error only when flagged terminal (max steps)."""
        if self.kind is EventKind.COMPLETION:
            return True
        return self.kind is EventKind.ERROR and bool(self.payload.get("terminal"))

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.kind.value, **self.payload}


def status(message: str, step: str, **extra: Any) -> AgentEvent:
    return AgentEvent(EventKind.STATUS, {"message": message, "step": step, **extra})
