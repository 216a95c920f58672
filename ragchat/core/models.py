"""Plain data carried between the loader, the embedder and the vector store."""

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class RawDocument:
    """Text of one source file plus metadata (source, path, extension)."""

    content: str
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class DocumentChunk:
    """Slice of a document. vector is empty until the chunk has been embedded."""

    content: str
    metadata: dict[str, Any] = field(default_factory=dict)
    vector: tuple[float, ...] = ()


@dataclass(frozen=True)
class SimilarityResult:
    chunk_id: int
    content: str
    metadata: dict[str, Any]
    distance: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.chunk_id,
            "content": self.content,
            "metadata": self.metadata,
            "distance": self.distance,
        }


@dataclass(frozen=True)
class StoredDocument:
    id: int
    content: str
    metadata: dict[str, Any]

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "content": self.content, "metadata": self.metadata}
