"""
Model output contract: the agent LLM may only answer with one of two JSON shapes.

    {"type": "functionCall", "response": {"function": ..., "args": {...}, "status": "continue|retry|done"}}
    {"type": "finalResponse", "response": "<answer>"}

parse_model_output() finds the first balanced JSON object in the raw text and decodes it
strictly into FunctionCallReply or FinalResponseReply; anything else is a ParseError.
"""

import json
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field, TypeAdapter, ValidationError, field_validator

from ragchat.core.errors import ParseError


class FunctionCallBody(BaseModel):
    function: str = Field(..., min_length=1)
    args: dict[str, Any] = Field(default_factory=dict)
    status: Literal["continue", "retry", "done"]

    @field_validator("args", mode="before")
    @classmethod
    def _none_args(cls, v: Any) -> Any:
        return {} if v is None else v


class FunctionCallReply(BaseModel):
    type: Literal["functionCall"]
    response: FunctionCallBody


class FinalResponseReply(BaseModel):
    type: Literal["finalResponse"]
    response: str = Field(..., min_length=1)


ModelReply = Annotated[Union[FunctionCallReply, FinalResponseReply], Field(discriminator="type")]

_reply_adapter: TypeAdapter = TypeAdapter(ModelReply)


def _balanced_end(text: str, start: int) -> int:
    """Index of the brace closing text[start], or -1. Braces inside JSON strings are ignored."""
    depth = 0
    in_string = False
    escaped = False
    for i in range(start, len(text)):
        ch = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return i
    return -1


def extract_json_object(text: str) -> dict[str, Any]:
    """
    Return the first balanced {...} in text that parses as a JSON object.

    Raises:
        ParseError: No such object exists.
    """
    start = text.find("{")
    if start == -1:
        raise ParseError("No JSON object found in response", raw=text)
    last_error = "unbalanced braces"
    while start != -1:
        end = _balanced_end(text, start)
        if end != -1:
            try:
                obj = json.loads(text[start : end + 1])
            except json.JSONDecodeError as e:
                last_error = str(e)
            else:
                if isinstance(obj, dict):
                    return obj
        start = text.find("{", start + 1)
    raise ParseError(f"JSON parsing failed: {last_error}", raw=text)


def parse_model_output(text: str) -> FunctionCallReply | FinalResponseReply:
    """Decode raw model text into one of the two reply shapes."""
    obj = extract_json_object(text or "")
    try:
        return _reply_adapter.validate_python(obj)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or 'reply'}: {err['msg']}" for err in e.errors()
        )
        raise ParseError(
            f"Invalid response structure ({problems}). type must be 'functionCall' or 'finalResponse'",
            raw=text,
        ) from e
