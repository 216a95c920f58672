# Document loader. No embeddings, no vector DB, no chunking.
# Supports .pdf, .txt, .md, .xlsx, .xls. Single place for "file/bytes -> text".

import io
import logging
from pathlib import Path

from ragchat.core.config import SUPPORTED_EXTENSIONS
from ragchat.core.errors import IngestionError
from ragchat.core.models import RawDocument

logger = logging.getLogger(__name__)


def bytes_to_text(raw: bytes, filename: str) -> str:
    """
    Convert raw file bytes to text by extension. Single source of truth for
    .pdf, .txt, .md, .xlsx, .xls parsing.
    """
    ext = Path(filename).suffix.lower() if filename else ""
    if ext == ".pdf":
        return _read_pdf(raw)
    if ext in (".xlsx", ".xls"):
        return _read_excel(raw)
    return raw.decode("utf-8", errors="replace")


def _read_pdf(raw: bytes) -> str:
    from pypdf import PdfReader
    reader = PdfReader(io.BytesIO(raw))
    return "\n".join(page.extract_text() or "" for page in reader.pages)


def _read_excel(raw: bytes) -> str:
    import pandas as pd
    df = pd.read_excel(io.BytesIO(raw), sheet_name=None, header=None)
    parts = []
    for sheet_df in df.values():
        parts.append(sheet_df.astype(str).to_csv(sep=" ", index=False, header=False))
    return "\n\n".join(parts)


def load_documents(source_dir: str | Path) -> list[RawDocument]:
    """
    Read every supported file directly inside source_dir, sorted by file name.

    Raises:
        IngestionError: If the directory does not exist or cannot be listed.

    A directory with no supported files yields []. A single file that fails to
    parse is logged and skipped.
    """
    root = Path(source_dir)
    logger.info("[loader:load_documents] IN  source_dir=%s", root)
    if not root.is_dir():
        raise IngestionError(f"Source directory not found: {root}")
    try:
        entries = sorted(p for p in root.iterdir() if p.is_file())
    except OSError as e:
        raise IngestionError(f"Cannot read source directory {root}: {e}") from e

    documents: list[RawDocument] = []
    for path in entries:
        ext = path.suffix.lower()
        if ext not in SUPPORTED_EXTENSIONS:
            continue
        try:
            text = bytes_to_text(path.read_bytes(), path.name)
        except Exception as e:
            logger.warning("[loader:load_documents] failed to read %s: %s", path.name, e)
            continue
        documents.append(
            RawDocument(
                content=text,
                metadata={"source": path.name, "path": str(path), "extension": ext},
            )
        )
    logger.info("[loader:load_documents] OUT documents=%d sources=%s",
                len(documents), [d.metadata["source"] for d in documents])
    return documents
