"""
Process-wide dependencies, built once at startup and shared by reference across runs.

build_runtime() creates the HTTP clients, the Milvus client, the embedder, the vector
store, the tool registry and the chat model; AgentRuntime.close() tears them down.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable

import httpx
from pymilvus import MilvusClient

from ragchat.agent.llm import ChatModel, build_chat_model
from ragchat.agent.orchestrator import AgentOrchestrator
from ragchat.agent.tools import ToolRegistry
from ragchat.core.config import (
    EMBED_API_TIMEOUT,
    LLM_API_TIMEOUT,
    MILVUS_TOKEN,
    MILVUS_URI,
    SOURCE_DIR,
)
from ragchat.services.embeddings import Embedder
from ragchat.services.vector_store import VectorStore

logger = logging.getLogger(__name__)


@dataclass
class AgentRuntime:
    store: VectorStore
    embedder: Embedder
    tools: ToolRegistry
    model: ChatModel
    orchestrator_options: dict[str, Any] = field(default_factory=dict)
    _closers: list[Callable[[], Any]] = field(default_factory=list, repr=False)

    def orchestrator(self) -> AgentOrchestrator:
        """Orchestrators are cheap; every request gets its own over the shared dependencies."""
        return AgentOrchestrator(self.model, self.tools, **self.orchestrator_options)

    async def close(self) -> None:
        for closer in reversed(self._closers):
            try:
                result = closer()
                if hasattr(result, "__await__"):
                    await result
            except Exception as e:
                logger.warning("[runtime] close failed: %s", e)
        self._closers.clear()
        logger.info("[runtime] closed")


def _is_local_uri(uri: str) -> bool:
    return "://" not in uri and uri.endswith(".db")


def connect_milvus(uri: str = MILVUS_URI, token: str = MILVUS_TOKEN) -> MilvusClient:
    """Remote server (http://, https://, ...) or a Milvus Lite file, whose directory is created if missing."""
    if not uri:
        raise ValueError("MILVUS_URI must be set in .env")
    if _is_local_uri(uri):
        Path(uri).parent.mkdir(parents=True, exist_ok=True)
    client = MilvusClient(uri=uri, token=token)
    logger.info("Milvus connection established uri=%s", uri)
    return client


def build_runtime() -> AgentRuntime:
    embed_http = httpx.Client(timeout=EMBED_API_TIMEOUT)
    llm_http = httpx.AsyncClient(timeout=LLM_API_TIMEOUT)
    milvus = connect_milvus()
    model, openai_client = build_chat_model(llm_http)

    embedder = Embedder(embed_http)
    store = VectorStore(milvus)
    tools = ToolRegistry(store, embedder, source_dir=SOURCE_DIR)

    closers: list[Callable[[], Any]] = [embed_http.close, llm_http.aclose, milvus.close]
    if openai_client is not None:
        closers.append(openai_client.close)
    logger.info("[runtime] built source_dir=%s collection=%s", SOURCE_DIR, store.collection_name)
    return AgentRuntime(store=store, embedder=embedder, tools=tools, model=model, _closers=closers)
