"""
Agent LLM: OpenAI-compatible chat (primary) or Hugging Face router (fallback).

Both expose stream(messages) -> async iterator of text fragments. OpenAI streams
tokens; the HF router answers in one piece and yields a single fragment.
Clients are passed in; build_chat_model() picks the backend from config.
"""

import logging
from typing import Any, AsyncIterator, Protocol

import httpx
from openai import AsyncOpenAI

from ragchat.core.config import (
    HF_API_KEY,
    HF_CHAT_URL,
    HF_LLM_MODEL,
    LLM_TEMPERATURE,
    OPENAI_API_KEY,
    OPENAI_BASE_URL,
    OPENAI_LLM_MODEL,
)
from ragchat.core.errors import ServiceUnavailableError

logger = logging.getLogger(__name__)


class ChatModel(Protocol):
    def stream(self, messages: list[dict[str, Any]]) -> AsyncIterator[str]:
        ...


class OpenAIChatModel:
    """Streaming chat completions through the openai SDK (any OpenAI-compatible endpoint)."""

    def __init__(self, client: AsyncOpenAI, model: str = OPENAI_LLM_MODEL, temperature: float = LLM_TEMPERATURE) -> None:
        self._client = client
        self.model = model
        self.temperature = temperature

    async def stream(self, messages: list[dict[str, Any]]) -> AsyncIterator[str]:
        logger.info("[llm:openai] IN  messages=%d model=%s", len(messages), self.model)
        stream = await self._client.chat.completions.create(
            model=self.model,
            messages=messages,
            temperature=self.temperature,
            stream=True,
        )
        total = 0
        async for chunk in stream:
            if not chunk.choices:
                continue
            content = getattr(chunk.choices[0].delta, "content", None)
            if content:
                total += len(content)
                yield content
        logger.info("[llm:openai] OUT response_len=%d", total)


class HFChatModel:
    """Hugging Face router chat completions. Non-streaming: one fragment per call."""

    def __init__(self, http: httpx.AsyncClient, api_key: str = HF_API_KEY, model: str = HF_LLM_MODEL) -> None:
        self._http = http
        self._api_key = api_key
        self.model = model

    async def stream(self, messages: list[dict[str, Any]]) -> AsyncIterator[str]:
        if not self._api_key:
            raise ServiceUnavailableError("No LLM configured: set OPENAI_API_KEY or HF_API_KEY in .env")
        headers = {"Authorization": f"Bearer {self._api_key}", "Content-Type": "application/json"}
        payload = {"model": self.model, "messages": messages, "temperature": LLM_TEMPERATURE}
        logger.info("[llm:hf] IN  messages=%d model=%s", len(messages), self.model)
        response = await self._http.post(HF_CHAT_URL, json=payload, headers=headers)
        if response.status_code != 200:
            raise ServiceUnavailableError(f"HF LLM error {response.status_code}: {response.text[:200]}")
        data = response.json()
        choices = data.get("choices") or []
        out = ""
        if choices and isinstance(choices[0], dict):
            msg = choices[0].get("message") or {}
            out = (msg.get("content") or "").strip()
        logger.info("[llm:hf] OUT response_len=%d", len(out))
        if out:
            yield out


def build_chat_model(http: httpx.AsyncClient) -> tuple[ChatModel, AsyncOpenAI | None]:
    """
    OpenAI when OPENAI_API_KEY is set (OPENAI_BASE_URL optional), else Hugging Face.
    Returns the model and the AsyncOpenAI client it owns (None for HF) so the runtime can close it.
    """
    if OPENAI_API_KEY:
        client = AsyncOpenAI(api_key=OPENAI_API_KEY, base_url=OPENAI_BASE_URL or None)
        logger.info("[llm] using OpenAI-compatible model %s", OPENAI_LLM_MODEL)
        return OpenAIChatModel(client), client
    logger.info("[llm] OPENAI_API_KEY not set; using Hugging Face model %s", HF_LLM_MODEL)
    return HFChatModel(http), None
