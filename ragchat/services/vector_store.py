"""
Vector store: Milvus collection holding chunk content, JSON metadata and embeddings.

Responsibility: Create the collection with a fixed dimension, insert chunks, answer
nearest-neighbour (L2) queries, list, clear and count. The MilvusClient is injected
and shared by every run; no locking, reads may run during writes.
"""

import logging
from typing import Any

from pymilvus import DataType, MilvusClient, MilvusException

from ragchat.core.config import COLLECTION_NAME, VECTOR_DIM
from ragchat.core.errors import StoreError
from ragchat.core.models import DocumentChunk, SimilarityResult, StoredDocument

logger = logging.getLogger(__name__)

# Milvus caps a single query() at 16384 rows; query_all pages through with an iterator
QUERY_PAGE_SIZE = 16_384
CONTENT_MAX_LENGTH = 65_535


class VectorStore:
    """Chunk persistence and similarity search over one Milvus collection."""

    def __init__(
        self,
        client: MilvusClient,
        collection_name: str = COLLECTION_NAME,
        dim: int = VECTOR_DIM,
        page_size: int = QUERY_PAGE_SIZE,
    ) -> None:
        self._client = client
        self.collection_name = collection_name
        self.dim = dim
        self.page_size = min(page_size, QUERY_PAGE_SIZE)
        self._dim_verified = False

    def _check_dim(self, vector: Any) -> list[float]:
        vec = [float(x) for x in vector]
        if len(vec) != self.dim:
            raise StoreError(f"Vector dimension {len(vec)} does not match collection dimension {self.dim}")
        return vec

    def _has_collection(self) -> bool:
        try:
            return self._client.has_collection(self.collection_name)
        except MilvusException as e:
            raise StoreError(f"Milvus unavailable: {e}") from e

    def _verify_dim(self) -> None:
        """An existing collection must have been created with the configured dimension."""
        if self._dim_verified:
            return
        try:
            info = self._client.describe_collection(collection_name=self.collection_name)
        except MilvusException as e:
            raise StoreError(f"Failed to describe collection {self.collection_name}: {e}") from e
        for f in info.get("fields", []):
            if f.get("name") != "embedding":
                continue
            existing = int((f.get("params") or {}).get("dim", 0))
            if existing != self.dim:
                raise StoreError(
                    f"Collection {self.collection_name} has vector dimension {existing}, "
                    f"configured dimension is {self.dim}; clear the store or fix VECTOR_DIM"
                )
            break
        self._dim_verified = True

    def ensure_collection(self) -> None:
        """Create the collection (dimension fixed here) if it does not exist yet."""
        if self._has_collection():
            self._verify_dim()
            return
        schema = MilvusClient.create_schema(auto_id=True, enable_dynamic_field=False)
        schema.add_field(field_name="id", datatype=DataType.INT64, is_primary=True)
        schema.add_field(field_name="content", datatype=DataType.VARCHAR, max_length=CONTENT_MAX_LENGTH)
        schema.add_field(field_name="metadata", datatype=DataType.JSON)
        schema.add_field(field_name="embedding", datatype=DataType.FLOAT_VECTOR, dim=self.dim)
        index_params = MilvusClient.prepare_index_params()
        index_params.add_index(field_name="embedding", index_type="AUTOINDEX", metric_type="L2")
        try:
            self._client.create_collection(
                collection_name=self.collection_name,
                schema=schema,
                index_params=index_params,
            )
        except MilvusException as e:
            # A concurrent run may have created it first
            if self._has_collection():
                self._verify_dim()
                return
            raise StoreError(f"Failed to create collection {self.collection_name}: {e}") from e
        self._dim_verified = True
        logger.info("Collection %s created (dim=%s)", self.collection_name, self.dim)

    def store(self, chunks: list[DocumentChunk]) -> int:
        """
        Insert chunks one by one. A failed insert does not undo earlier ones.

        Returns the number of inserted chunks.

        Raises:
            StoreError: After the whole batch, if any insert failed (or the
                collection could not be created).
        """
        if not chunks:
            return 0
        self.ensure_collection()
        logger.info("[vector_store:store] IN  chunks=%d", len(chunks))

        inserted = 0
        failures: list[str] = []
        for i, chunk in enumerate(chunks):
            try:
                row = {
                    "content": chunk.content,
                    "metadata": dict(chunk.metadata),
                    "embedding": self._check_dim(chunk.vector),
                }
                self._client.insert(collection_name=self.collection_name, data=[row])
                inserted += 1
            except (StoreError, MilvusException) as e:
                logger.warning("[vector_store:store] insert %d failed: %s", i, e)
                failures.append(f"chunk {i}: {e}")

        if inserted:
            try:
                self._client.flush(collection_name=self.collection_name)
            except MilvusException as e:
                logger.warning("[vector_store:store] flush failed: %s", e)

        logger.info("[vector_store:store] OUT inserted=%d failed=%d", inserted, len(failures))
        if failures:
            raise StoreError(
                f"{len(failures)} of {len(chunks)} inserts failed; first: {failures[0]}"
            )
        return inserted

    def query_similar(self, vector: Any, top_k: int) -> list[SimilarityResult]:
        """At most top_k results ordered by ascending L2 distance."""
        vec = self._check_dim(vector)
        if top_k <= 0 or not self._has_collection():
            return []
        self._verify_dim()
        try:
            results = self._client.search(
                collection_name=self.collection_name,
                data=[vec],
                anns_field="embedding",
                limit=top_k,
                search_params={"metric_type": "L2"},
                output_fields=["content", "metadata"],
            )
        except MilvusException as e:
            raise StoreError(f"Similarity search failed: {e}") from e

        # results: list of list of hits (one list per query vector)
        hits = results[0] if results else []
        out = []
        for h in hits:
            entity = h.get("entity") or {}
            out.append(
                SimilarityResult(
                    chunk_id=h.get("id", entity.get("id")),
                    content=entity.get("content", ""),
                    metadata=entity.get("metadata") or {},
                    distance=float(h.get("distance", 0.0)),
                )
            )
        out.sort(key=lambda r: r.distance)
        out = out[:top_k]
        logger.info("[vector_store:query_similar] OUT results=%d distances=%s",
                    len(out), [round(r.distance, 4) for r in out])
        return out

    def query_all(self) -> list[StoredDocument]:
        """Every stored chunk as (id, content, metadata), ascending id. Reads page by page."""
        if not self._has_collection():
            return []
        rows: list[dict[str, Any]] = []
        try:
            iterator = self._client.query_iterator(
                collection_name=self.collection_name,
                batch_size=self.page_size,
                filter="id >= 0",
                output_fields=["id", "content", "metadata"],
            )
            try:
                while True:
                    page = iterator.next()
                    if not page:
                        break
                    rows.extend(page)
            finally:
                iterator.close()
        except MilvusException as e:
            raise StoreError(f"Query failed: {e}") from e
        logger.info("[vector_store:query_all] OUT rows=%d", len(rows))
        docs = [
            StoredDocument(id=r["id"], content=r.get("content", ""), metadata=r.get("metadata") or {})
            for r in rows
        ]
        docs.sort(key=lambda d: d.id)
        return docs

    def clear(self) -> None:
        """Remove all chunks by dropping the collection. Safe to call repeatedly."""
        if not self._has_collection():
            return
        try:
            self._client.drop_collection(collection_name=self.collection_name)
        except MilvusException as e:
            if self._has_collection():
                raise StoreError(f"Failed to clear collection: {e}") from e
        self._dim_verified = False
        logger.info("Knowledge base cleared: collection %s dropped", self.collection_name)

    def count(self) -> int:
        if not self._has_collection():
            return 0
        try:
            stats = self._client.get_collection_stats(collection_name=self.collection_name)
        except MilvusException as e:
            raise StoreError(f"Count failed: {e}") from e
        return int(stats.get("row_count", 0))

    def health_check(self) -> dict[str, Any]:
        """Never raises. healthy=False carries the error description."""
        try:
            count = self.count()
        except Exception as e:
            logger.error("[vector_store:health_check] failed: %s", e)
            return {"healthy": False, "documentCount": 0, "error": str(e)}
        logger.info("[vector_store:health_check] documentCount=%d", count)
        return {"healthy": True, "documentCount": count}
