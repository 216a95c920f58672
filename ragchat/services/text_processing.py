"""
Text processing for RAG: fixed-window chunking.

Chunks are character windows of chunk_size, each starting chunk_size - overlap
characters after the previous one, so neighbours share exactly `overlap`
characters. Output is deterministic for a given input.
"""

import logging

from ragchat.core.config import CHUNK_OVERLAP, CHUNK_SIZE
from ragchat.core.models import DocumentChunk, RawDocument

logger = logging.getLogger(__name__)


def chunk_text(text: str, chunk_size: int = CHUNK_SIZE, overlap: int = CHUNK_OVERLAP) -> list[str]:
    """
    Split text into overlapping windows.

    Text no longer than chunk_size gives a single chunk; empty text gives none.
    The last window ends at the end of the text and is never fully contained
    in its predecessor.
    """
    if chunk_size <= 0:
        raise ValueError("chunk_size must be positive")
    if overlap < 0 or overlap >= chunk_size:
        raise ValueError("overlap must be >= 0 and smaller than chunk_size")
    if not text:
        return []
    if len(text) <= chunk_size:
        return [text]

    step = chunk_size - overlap
    chunks: list[str] = []
    start = 0
    while True:
        chunks.append(text[start : start + chunk_size])
        if start + chunk_size >= len(text):
            break
        start += step
    return chunks


def split_documents(
    documents: list[RawDocument],
    chunk_size: int = CHUNK_SIZE,
    overlap: int = CHUNK_OVERLAP,
) -> list[DocumentChunk]:
    """Chunk every document, copying its metadata (plus chunk_index) onto each chunk."""
    chunks: list[DocumentChunk] = []
    for doc in documents:
        pieces = chunk_text(doc.content, chunk_size=chunk_size, overlap=overlap)
        for i, piece in enumerate(pieces):
            chunks.append(DocumentChunk(content=piece, metadata={**doc.metadata, "chunk_index": i}))
        logger.info("[text_processing:split_documents] %s -> %d chunks",
                    doc.metadata.get("source", "?"), len(pieces))
    logger.info("[text_processing:split_documents] OUT documents=%d chunks=%d", len(documents), len(chunks))
    return chunks
