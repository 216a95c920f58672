"""
Shared fakes so tests run without Milvus, Hugging Face or OpenAI.
"""

import asyncio
import json
from dataclasses import replace
from typing import Any

import pytest
from pymilvus import DataType, MilvusException

from ragchat.agent.orchestrator import AgentOrchestrator
from ragchat.agent.tools import ToolRegistry
from ragchat.core.runtime import AgentRuntime
from ragchat.services.vector_store import VectorStore

DIM = 4

NO_DELAYS = {"step_delay": 0, "word_delay": 0, "fallback_word_delay": 0}


class FakeMilvusClient:
    """In-memory stand-in for pymilvus.MilvusClient covering the calls VectorStore makes."""

    def __init__(self) -> None:
        self.collections: dict[str, list[dict[str, Any]]] = {}
        self.dims: dict[str, int] = {}
        self.pages_served = 0
        self.next_id = 1
        self.fail_insert = lambda row: False
        self.unavailable = False

    def _check(self) -> None:
        if self.unavailable:
            raise MilvusException(message="connection refused")

    def has_collection(self, collection_name: str) -> bool:
        self._check()
        return collection_name in self.collections

    def create_collection(self, collection_name: str, schema=None, index_params=None, **kwargs) -> None:
        self._check()
        self.collections.setdefault(collection_name, [])
        for f in getattr(schema, "fields", []):
            if f.name == "embedding":
                self.dims[collection_name] = int(f.params["dim"])

    def describe_collection(self, collection_name: str) -> dict:
        self._check()
        return {
            "collection_name": collection_name,
            "fields": [
                {"name": "id", "type": DataType.INT64, "params": {}},
                {"name": "embedding", "type": DataType.FLOAT_VECTOR,
                 "params": {"dim": self.dims.get(collection_name, DIM)}},
            ],
        }

    def insert(self, collection_name: str, data: list[dict[str, Any]]) -> dict:
        self._check()
        for row in data:
            if self.fail_insert(row):
                raise MilvusException(message="insert rejected")
            self.collections[collection_name].append({"id": self.next_id, **row})
            self.next_id += 1
        return {"insert_count": len(data)}

    def flush(self, collection_name: str) -> None:
        self._check()

    def search(self, collection_name: str, data, limit: int, output_fields=None, **kwargs):
        self._check()
        rows = self.collections.get(collection_name, [])
        out = []
        for query in data:
            hits = []
            for row in rows:
                dist = sum((a - b) ** 2 for a, b in zip(query, row["embedding"]))
                hits.append({
                    "id": row["id"],
                    "distance": dist,
                    "entity": {"content": row["content"], "metadata": row["metadata"]},
                })
            hits.sort(key=lambda h: h["distance"])
            out.append(hits[:limit])
        return out

    def query_iterator(self, collection_name: str, batch_size: int, filter: str = "", output_fields=None, **kwargs):
        self._check()
        return _FakeQueryIterator(self, collection_name, batch_size)

    def drop_collection(self, collection_name: str) -> None:
        self._check()
        self.collections.pop(collection_name, None)
        self.dims.pop(collection_name, None)

    def get_collection_stats(self, collection_name: str) -> dict:
        self._check()
        return {"row_count": len(self.collections.get(collection_name, []))}

    def close(self) -> None:
        pass


class _FakeQueryIterator:
    """Pages rows in primary-key order, each page reversed so callers must sort themselves."""

    def __init__(self, client: FakeMilvusClient, collection_name: str, batch_size: int) -> None:
        self._client = client
        self._rows = sorted(client.collections.get(collection_name, []), key=lambda r: r["id"])
        self._batch_size = batch_size
        self._offset = 0
        self.closed = False

    def next(self) -> list[dict[str, Any]]:
        page = self._rows[self._offset : self._offset + self._batch_size]
        self._offset += len(page)
        if page:
            self._client.pages_served += 1
        return [{"id": r["id"], "content": r["content"], "metadata": r["metadata"]} for r in reversed(page)]

    def close(self) -> None:
        self.closed = True


class FakeEmbedder:
    """Deterministic DIM-length vectors derived from the text."""

    def __init__(self) -> None:
        self.calls: list[list[str]] = []

    @staticmethod
    def vector_for(text: str) -> list[float]:
        lower = text.lower()
        return [float(len(text)), float(lower.count("a")), float(lower.count("e")), 1.0]

    def embed_texts(self, texts: list[str]) -> list[list[float]]:
        self.calls.append(list(texts))
        return [self.vector_for(t) for t in texts]

    def embed_query(self, text: str) -> list[float]:
        return self.embed_texts([text])[0]

    def embed_chunks(self, chunks):
        return [replace(c, vector=tuple(self.vector_for(c.content))) for c in chunks]


class ScriptedModel:
    """Chat model replaying canned replies; the last reply repeats once the script runs out."""

    def __init__(self, *replies: str, fragments: int = 2) -> None:
        self.replies = list(replies)
        self.fragments = fragments
        self.calls = 0
        self.seen: list[list[dict[str, Any]]] = []

    async def stream(self, messages):
        self.seen.append([dict(m) for m in messages])
        reply = self.replies[min(self.calls, len(self.replies) - 1)]
        self.calls += 1
        size = max(1, -(-len(reply) // self.fragments))
        for i in range(0, len(reply), size):
            yield reply[i : i + size]


def function_call(name: str, status: str = "continue", **args: Any) -> str:
    return json.dumps({"type": "functionCall", "response": {"function": name, "args": args, "status": status}})


def final_response(text: str) -> str:
    return json.dumps({"type": "finalResponse", "response": text})


def collect(run) -> list:
    async def _go():
        return [event async for event in run]
    return asyncio.run(_go())


@pytest.fixture
def milvus() -> FakeMilvusClient:
    return FakeMilvusClient()


@pytest.fixture
def store(milvus: FakeMilvusClient) -> VectorStore:
    return VectorStore(milvus, collection_name="test_vectors", dim=DIM)


@pytest.fixture
def embedder() -> FakeEmbedder:
    return FakeEmbedder()


@pytest.fixture
def tools(store: VectorStore, embedder: FakeEmbedder, tmp_path) -> ToolRegistry:
    return ToolRegistry(store, embedder, source_dir=tmp_path, chunk_size=50, chunk_overlap=10)


@pytest.fixture
def make_orchestrator(tools: ToolRegistry):
    def _make(model, **options) -> AgentOrchestrator:
        return AgentOrchestrator(model, tools, **{**NO_DELAYS, **options})
    return _make


@pytest.fixture
def make_runtime(store: VectorStore, embedder: FakeEmbedder, tools: ToolRegistry):
    def _make(model) -> AgentRuntime:
        return AgentRuntime(
            store=store,
            embedder=embedder,
            tools=tools,
            model=model,
            orchestrator_options=dict(NO_DELAYS),
        )
    return _make
