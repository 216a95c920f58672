"""
Application configuration (env, settings, constants).

Responsibility: Centralize config loading, environment variables, and app-wide
constants. Keeps the rest of the app decoupled from how config is sourced.
"""

import os

from dotenv import load_dotenv

load_dotenv()

# Directory scanned by createThenRetrieve and the ingestion script
SOURCE_DIR: str = os.getenv("SOURCE_DIR", "data/documents").strip() or "data/documents"

# File extensions the loader knows how to turn into text
SUPPORTED_EXTENSIONS: frozenset[str] = frozenset({".pdf", ".txt", ".md", ".xlsx", ".xls"})

# Chunking (fixed character windows)
CHUNK_SIZE: int = 1000
CHUNK_OVERLAP: int = 200

# Milvus: remote (URI + token) or a local Milvus Lite file
MILVUS_URI: str = os.getenv("MILVUS_URI", "data/milvus.db").strip() or "data/milvus.db"
MILVUS_TOKEN: str = os.getenv("MILVUS_TOKEN", "").strip()
COLLECTION_NAME: str = os.getenv("COLLECTION_NAME", "pdf_vectors").strip() or "pdf_vectors"

# Hugging Face (embeddings / fallback chat)
HF_API_KEY: str = os.getenv("HF_API_KEY", "").strip()
HF_EMBED_MODEL: str = "sentence-transformers/all-MiniLM-L6-v2"

# Embedding dim is fixed at collection creation (all-MiniLM-L6-v2 = 384)
VECTOR_DIM: int = int(os.getenv("VECTOR_DIM", "384"))
EMBED_BATCH_SIZE: int = 32

# API timeouts (seconds)
EMBED_API_TIMEOUT: float = 30.0
LLM_API_TIMEOUT: float = 60.0

# Hugging Face chat (fallback LLM)
HF_CHAT_URL: str = "https://router.huggingface.co/v1/chat/completions"
HF_LLM_MODEL: str = (
    os.getenv("HF_LLM_MODEL", "meta-llama/Llama-3.2-3B-Instruct").strip()
    or "meta-llama/Llama-3.2-3B-Instruct"
)

# OpenAI-compatible chat (agent LLM). OPENAI_BASE_URL allows Groq and similar providers.
OPENAI_API_KEY: str = os.getenv("OPENAI_API_KEY", "").strip()
OPENAI_BASE_URL: str = os.getenv("OPENAI_BASE_URL", "").strip()
OPENAI_LLM_MODEL: str = (
    os.getenv("OPENAI_LLM_MODEL", "gpt-4o-mini").strip() or "gpt-4o-mini"
)
LLM_TEMPERATURE: float = 0.1

# Agent loop
MAX_STEPS: int = 10
ERROR_THRESHOLD: int = 3
DEFAULT_TOP_K: int = 3
RAW_RESPONSE_PREVIEW: int = 300
FALLBACK_CONTEXT_CHARS: int = 400

# Pacing (seconds). Not correctness-relevant; tests set these to 0.
STEP_DELAY: float = float(os.getenv("STEP_DELAY", "0.5"))
WORD_DELAY: float = float(os.getenv("WORD_DELAY", "0.03"))
FALLBACK_WORD_DELAY: float = float(os.getenv("FALLBACK_WORD_DELAY", "0.04"))

# Coarse category attached to every streamed event (agent runs, plain chat)
EVENT_CATEGORY: str = "document_processing"
CHAT_EVENT_CATEGORY: str = "chat_processing"
