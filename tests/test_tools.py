"""Tool registry tests: dispatch contract and each retrieval tool."""

from pathlib import Path
from unittest.mock import patch

import pytest

from ragchat.agent.tools import ToolRegistry, ToolResult
from ragchat.core.errors import EmbeddingError, UnknownToolError
from ragchat.core.models import DocumentChunk


def _seed(store, embedder, *texts: str) -> None:
    store.store([
        DocumentChunk(content=t, metadata={"source": "seed.txt"}, vector=tuple(embedder.vector_for(t)))
        for t in texts
    ])


def test_names_and_catalog(tools: ToolRegistry) -> None:
    assert tools.names == [
        "retrieveSimilar",
        "retrieveAllDocs",
        "createThenRetrieve",
        "clearAllData",
        "checkDatabaseHealth",
    ]
    assert [t["name"] for t in tools.catalog()] == tools.names


def test_unknown_tool_names_request_and_valid_tools(tools: ToolRegistry) -> None:
    with pytest.raises(UnknownToolError) as exc:
        tools.dispatch("deleteEverything", {})
    assert exc.value.name == "deleteEverything"
    assert "retrieveSimilar" in exc.value.valid
    assert "deleteEverything" in str(exc.value)


def test_retrieve_similar_returns_context(tools: ToolRegistry, store, embedder) -> None:
    _seed(store, embedder, "annual leave is 20 days", "maternity leave policy", "office hours")
    result = tools.dispatch("retrieveSimilar", {"query": "annual leave is 20 days", "topK": 2})
    assert result.success
    assert result.count == 2
    assert result.context.split("\n\n")[0] == "annual leave is 20 days"
    assert result.data["results"][0]["distance"] == pytest.approx(0.0)


def test_retrieve_similar_default_top_k(tools: ToolRegistry, store, embedder) -> None:
    _seed(store, embedder, "a", "bb", "ccc", "dddd", "eeeee")
    assert tools.dispatch("retrieveSimilar", {"query": "ccc"}).count == 3


def test_missing_query_is_failed_result(tools: ToolRegistry) -> None:
    result = tools.dispatch("retrieveSimilar", {"topK": 3})
    assert result == ToolResult(success=False, error="query is required")


def test_bad_top_k_is_failed_result(tools: ToolRegistry) -> None:
    result = tools.dispatch("retrieveSimilar", {"query": "x", "topK": "many"})
    assert not result.success
    assert "topK" in result.error


def test_unexpected_arguments_are_ignored(tools: ToolRegistry) -> None:
    result = tools.dispatch("checkDatabaseHealth", {"query": "ignored"})
    assert result.success


def test_retrieve_all_docs_joins_content(tools: ToolRegistry, store, embedder) -> None:
    _seed(store, embedder, "first", "second")
    result = tools.dispatch("retrieveAllDocs", {})
    assert result.context == "first\n\nsecond"
    assert result.count == 2
    assert [d["content"] for d in result.data["documents"]] == ["first", "second"]


def test_clear_all_data_twice_then_empty(tools: ToolRegistry, store, embedder) -> None:
    _seed(store, embedder, "something")
    assert tools.dispatch("clearAllData").success
    assert tools.dispatch("clearAllData").success
    assert tools.dispatch("retrieveAllDocs").count == 0


def test_check_database_health(tools: ToolRegistry, store, embedder, milvus) -> None:
    _seed(store, embedder, "x", "y")
    result = tools.dispatch("checkDatabaseHealth")
    assert result.success and result.count == 2
    assert result.data == {"healthy": True, "documentCount": 2}

    milvus.unavailable = True
    result = tools.dispatch("checkDatabaseHealth")
    assert not result.success
    assert result.data["healthy"] is False
    assert result.error


def test_create_then_retrieve_indexes_source_dir(tools: ToolRegistry, tmp_path: Path) -> None:
    (tmp_path / "policy.txt").write_text("Employees get twenty days of annual leave. " * 3, encoding="utf-8")
    (tmp_path / "notes.md").write_text("Short note.", encoding="utf-8")

    result = tools.dispatch("createThenRetrieve", {"query": "Short note.", "topK": 1})

    assert result.success
    assert result.data["indexed_documents"] == 2
    assert result.data["indexed_chunks"] > 2
    assert result.context == "Short note."
    assert result.data["results"][0]["metadata"]["source"] == "notes.md"


def test_create_then_retrieve_missing_dir_is_failed_result(store, embedder, tmp_path: Path) -> None:
    registry = ToolRegistry(store, embedder, source_dir=tmp_path / "missing")
    result = registry.dispatch("createThenRetrieve", {"query": "anything"})
    assert not result.success
    assert "not found" in result.error


def test_embedding_failure_is_failed_result(tools: ToolRegistry, embedder) -> None:
    error = EmbeddingError("service returned 2 vectors for 3 texts")
    with patch.object(embedder, "embed_query", side_effect=error):
        result = tools.dispatch("retrieveSimilar", {"query": "x"})
    assert not result.success
    assert "vectors" in result.error


def test_store_unavailable_is_failed_result(tools: ToolRegistry, store, embedder, milvus) -> None:
    _seed(store, embedder, "annual leave")
    milvus.unavailable = True

    result = tools.dispatch("retrieveSimilar", {"query": "annual leave"})

    assert not result.success
    assert "Milvus unavailable" in result.error
    assert not tools.dispatch("retrieveAllDocs").success


def test_partial_insert_failure_keeps_earlier_rows(tools: ToolRegistry, store, milvus, tmp_path: Path) -> None:
    (tmp_path / "a.txt").write_text("First document body.", encoding="utf-8")
    (tmp_path / "b.txt").write_text("Rejected document body.", encoding="utf-8")
    milvus.fail_insert = lambda row: row["content"].startswith("Rejected")

    result = tools.dispatch("createThenRetrieve", {"query": "First document body."})

    assert not result.success
    assert "1 of 2 inserts failed" in result.error
    assert [d.content for d in store.query_all()] == ["First document body."]
