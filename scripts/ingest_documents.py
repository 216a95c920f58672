#!/usr/bin/env python3
"""
Index a directory of documents into the vector store (load -> split -> embed -> store).

Uses the same pipeline as the agent's createThenRetrieve tool. Use --reset to clear
the collection first and --query to run a similarity search afterwards.

Run from project root:

    python scripts/ingest_documents.py
    python scripts/ingest_documents.py --source data/documents --reset
    python scripts/ingest_documents.py --query "leave policy" --top-k 3
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

# Project root on path so "ragchat" resolves
_ROOT = Path(__file__).resolve().parent.parent
if str(_ROOT) not in sys.path:
    sys.path.insert(0, str(_ROOT))

from ragchat.core.config import CHUNK_OVERLAP, CHUNK_SIZE, DEFAULT_TOP_K, SOURCE_DIR
from ragchat.core.errors import EmbeddingError, IngestionError, ServiceUnavailableError, StoreError
from ragchat.core.runtime import build_runtime
from ragchat.ingest.loader import load_documents
from ragchat.services.text_processing import split_documents


def main() -> int:
    parser = argparse.ArgumentParser(description="Index documents into the vector store.")
    parser.add_argument("--source", default=SOURCE_DIR, help=f"Directory to index (default: {SOURCE_DIR}).")
    parser.add_argument("--reset", action="store_true", help="Clear all stored chunks before indexing.")
    parser.add_argument("--chunk-size", type=int, default=CHUNK_SIZE)
    parser.add_argument("--overlap", type=int, default=CHUNK_OVERLAP)
    parser.add_argument("--query", help="Run a similarity search after indexing.")
    parser.add_argument("--top-k", type=int, default=DEFAULT_TOP_K)
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO)
    runtime = build_runtime()
    try:
        if args.reset:
            runtime.store.clear()
            print("Cleared existing chunks.")

        documents = load_documents(args.source)
        chunks = split_documents(documents, chunk_size=args.chunk_size, overlap=args.overlap)
        stored = runtime.store.store(runtime.embedder.embed_chunks(chunks))
        print(f"Indexed {len(documents)} documents -> {stored} chunks from {args.source}")

        if args.query:
            vector = runtime.embedder.embed_query(args.query)
            for i, r in enumerate(runtime.store.query_similar(vector, args.top_k), 1):
                print(f"{i}. [{r.metadata.get('source', '?')}] distance={r.distance:.4f}")
                print(f"   {r.content[:200]!r}")

        health = runtime.store.health_check()
        print(f"Store healthy={health['healthy']} documentCount={health['documentCount']}")
    except (IngestionError, EmbeddingError, StoreError, ServiceUnavailableError) as e:
        print(f"Indexing failed: {e}", file=sys.stderr)
        return 1
    finally:
        asyncio.run(runtime.close())
    return 0


if __name__ == "__main__":
    sys.exit(main())
