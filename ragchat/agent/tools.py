"""
Agent tools: the fixed retrieval tool set and its dispatcher.

Tools: retrieveSimilar, retrieveAllDocs, createThenRetrieve, clearAllData,
checkDatabaseHealth. Each is a thin adapter over VectorStore / Embedder / loader.
"""

import logging
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Callable

from ragchat.core.config import CHUNK_OVERLAP, CHUNK_SIZE, DEFAULT_TOP_K, SOURCE_DIR
from ragchat.core.errors import ToolExecutionError, UnknownToolError
from ragchat.ingest.loader import load_documents
from ragchat.services.embeddings import Embedder
from ragchat.services.text_processing import split_documents
from ragchat.services.vector_store import VectorStore

logger = logging.getLogger(__name__)

# Descriptions shown to the model in the system prompt and served by GET /mcp/tools
TOOL_CATALOG: list[dict[str, Any]] = [
    {
        "name": "retrieveSimilar",
        "description": "Search for content similar to the query in stored documents. Use when documents already exist and you need specific information.",
        "args": {"query": "string", "topK": f"integer (default {DEFAULT_TOP_K})"},
    },
    {
        "name": "retrieveAllDocs",
        "description": "Get all stored document chunks and their metadata. Use to see what documents are available or for general document queries.",
        "args": {},
    },
    {
        "name": "createThenRetrieve",
        "description": "Process/index the documents in the source directory first, then search for the query. Use when no documents exist or they need reprocessing.",
        "args": {"query": "string", "topK": f"integer (default {DEFAULT_TOP_K})"},
    },
    {
        "name": "clearAllData",
        "description": "Clear all vector data from the database. Use only when the user asks to clear/reset the database.",
        "args": {},
    },
    {
        "name": "checkDatabaseHealth",
        "description": "Check whether the vector database is reachable and how many chunks it holds.",
        "args": {},
    },
]


@dataclass
class ToolResult:
    """Uniform tool outcome. context is the text folded into the agent's accumulated data."""

    success: bool
    context: str = ""
    count: int = 0
    data: dict[str, Any] = field(default_factory=dict)
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def _require_query(args: dict[str, Any]) -> str:
    query = args.get("query")
    if not isinstance(query, str) or not query.strip():
        raise ToolExecutionError("query is required")
    return query.strip()


def _top_k(args: dict[str, Any]) -> int:
    raw = args.get("topK", DEFAULT_TOP_K)
    try:
        top_k = int(raw)
    except (TypeError, ValueError) as e:
        raise ToolExecutionError(f"topK must be an integer, got {raw!r}") from e
    if top_k <= 0:
        raise ToolExecutionError("topK must be positive")
    return top_k


class ToolRegistry:
    """Named tools the orchestrator may call instead of answering directly."""

    def __init__(
        self,
        store: VectorStore,
        embedder: Embedder,
        source_dir: str | Path = SOURCE_DIR,
        chunk_size: int = CHUNK_SIZE,
        chunk_overlap: int = CHUNK_OVERLAP,
    ) -> None:
        self._store = store
        self._embedder = embedder
        self.source_dir = Path(source_dir)
        self.chunk_size = chunk_size
        self.chunk_overlap = chunk_overlap
        self._tools: dict[str, tuple[Callable[[dict[str, Any]], ToolResult], frozenset[str]]] = {
            "retrieveSimilar": (self._retrieve_similar, frozenset({"query", "topK"})),
            "retrieveAllDocs": (self._retrieve_all_docs, frozenset()),
            "createThenRetrieve": (self._create_then_retrieve, frozenset({"query", "topK"})),
            "clearAllData": (self._clear_all_data, frozenset()),
            "checkDatabaseHealth": (self._check_database_health, frozenset()),
        }

    @property
    def names(self) -> list[str]:
        return list(self._tools)

    def catalog(self) -> list[dict[str, Any]]:
        return [dict(t) for t in TOOL_CATALOG]

    def dispatch(self, name: str, arguments: dict[str, Any] | None = None) -> ToolResult:
        """
        Execute a tool by name.

        Raises:
            UnknownToolError: name is not a registered tool.

        Any failure inside the tool is returned as ToolResult(success=False).
        """
        if name not in self._tools:
            raise UnknownToolError(name, self.names)
        fn, accepted = self._tools[name]
        args = dict(arguments or {})
        extra = sorted(set(args) - accepted)
        if extra:
            logger.info("[tools] %s ignoring unexpected arguments %s", name, extra)
        logger.info("[tools] execute_tool name=%r arguments=%r", name, args)
        try:
            result = fn(args)
        except Exception as e:
            logger.warning("[tools] %s failed: %s", name, e)
            return ToolResult(success=False, error=str(e) or e.__class__.__name__)
        logger.info("[tools] %s OUT success=%s count=%d context_len=%d",
                    name, result.success, result.count, len(result.context))
        return result

    def _retrieve_similar(self, args: dict[str, Any]) -> ToolResult:
        query = _require_query(args)
        top_k = _top_k(args)
        vector = self._embedder.embed_query(query)
        results = self._store.query_similar(vector, top_k)
        return ToolResult(
            success=True,
            context="\n\n".join(r.content for r in results),
            count=len(results),
            data={"results": [r.to_dict() for r in results]},
        )

    def _retrieve_all_docs(self, args: dict[str, Any]) -> ToolResult:
        docs = self._store.query_all()
        return ToolResult(
            success=True,
            context="\n\n".join(d.content for d in docs),
            count=len(docs),
            data={"documents": [d.to_dict() for d in docs]},
        )

    def _create_then_retrieve(self, args: dict[str, Any]) -> ToolResult:
        query = _require_query(args)
        top_k = _top_k(args)
        documents = load_documents(self.source_dir)
        chunks = split_documents(documents, chunk_size=self.chunk_size, overlap=self.chunk_overlap)
        embedded = self._embedder.embed_chunks(chunks)
        stored = self._store.store(embedded)
        logger.info("[tools] createThenRetrieve indexed documents=%d chunks=%d", len(documents), stored)
        result = self._retrieve_similar({"query": query, "topK": top_k})
        result.data["indexed_documents"] = len(documents)
        result.data["indexed_chunks"] = stored
        return result

    def _clear_all_data(self, args: dict[str, Any]) -> ToolResult:
        self._store.clear()
        return ToolResult(success=True, data={"message": "All vector data cleared successfully"})

    def _check_database_health(self, args: dict[str, Any]) -> ToolResult:
        health = self._store.health_check()
        return ToolResult(
            success=bool(health.get("healthy")),
            count=int(health.get("documentCount", 0)),
            data=health,
            error=health.get("error"),
        )
