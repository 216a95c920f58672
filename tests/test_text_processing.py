"""
Unit tests for text processing: chunk_text and split_documents.
"""

import pytest

from ragchat.core.models import RawDocument
from ragchat.services.text_processing import chunk_text, split_documents


class TestChunkText:
    """Tests for chunk_text()."""

    def test_empty_returns_empty_list(self) -> None:
        assert chunk_text("") == []

    def test_short_text_returns_single_chunk(self) -> None:
        short = "This is a short paragraph."
        assert chunk_text(short, chunk_size=1000, overlap=200) == [short]

    def test_text_exactly_chunk_size_is_one_chunk(self) -> None:
        text = "x" * 100
        assert chunk_text(text, chunk_size=100, overlap=20) == [text]

    def test_consecutive_chunks_share_exactly_overlap_characters(self) -> None:
        text = "".join(chr(ord("a") + i % 26) for i in range(2_750))
        chunks = chunk_text(text, chunk_size=1000, overlap=200)
        assert len(chunks) >= len(text) / 1000
        for prev, nxt in zip(chunks, chunks[1:]):
            assert prev[-200:] == nxt[:200]
        assert all(len(c) == 1000 for c in chunks[:-1])
        assert chunks[-1] == text[-len(chunks[-1]):]

    def test_chunks_cover_whole_text_in_order(self) -> None:
        text = "The quick brown fox jumps over the lazy dog. " * 20
        chunks = chunk_text(text, chunk_size=120, overlap=30)
        rebuilt = chunks[0] + "".join(c[30:] for c in chunks[1:])
        assert rebuilt == text

    def test_deterministic(self) -> None:
        text = "Sentence number one. " * 50
        assert chunk_text(text, 100, 25) == chunk_text(text, 100, 25)

    def test_whitespace_is_preserved(self) -> None:
        assert chunk_text("  padded  ", chunk_size=50, overlap=5) == ["  padded  "]

    @pytest.mark.parametrize("size,overlap", [(0, 0), (100, 100), (100, 150), (100, -1)])
    def test_invalid_parameters_raise(self, size: int, overlap: int) -> None:
        with pytest.raises(ValueError):
            chunk_text("some text", chunk_size=size, overlap=overlap)


class TestSplitDocuments:
    """Tests for split_documents()."""

    def test_metadata_copied_to_every_chunk(self) -> None:
        doc = RawDocument(content="abcdefghij" * 30, metadata={"source": "a.txt", "extension": ".txt"})
        chunks = split_documents([doc], chunk_size=100, overlap=20)
        assert len(chunks) == 4
        for i, c in enumerate(chunks):
            assert c.metadata["source"] == "a.txt"
            assert c.metadata["extension"] == ".txt"
            assert c.metadata["chunk_index"] == i
            assert c.vector == ()

    def test_source_metadata_is_not_mutated(self) -> None:
        meta = {"source": "a.txt"}
        split_documents([RawDocument(content="hello", metadata=meta)])
        assert meta == {"source": "a.txt"}

    def test_overlap_does_not_cross_documents(self) -> None:
        docs = [
            RawDocument(content="A" * 150, metadata={"source": "a"}),
            RawDocument(content="B" * 80, metadata={"source": "b"}),
        ]
        chunks = split_documents(docs, chunk_size=100, overlap=20)
        assert [c.metadata["source"] for c in chunks] == ["a", "a", "b"]
        assert chunks[2].content == "B" * 80

    def test_empty_document_produces_no_chunks(self) -> None:
        assert split_documents([RawDocument(content="", metadata={"source": "e"})]) == []
