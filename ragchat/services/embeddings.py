"""
Embeddings via the Hugging Face Inference API (all-MiniLM-L6-v2).

Responsibility: Turn chunk texts into fixed-length vectors, batch by batch, in order.
The httpx client is injected and owned by the runtime.
"""

import logging
from dataclasses import replace

import httpx

from ragchat.core.config import EMBED_BATCH_SIZE, HF_API_KEY, HF_EMBED_MODEL
from ragchat.core.errors import EmbeddingError, ServiceUnavailableError
from ragchat.core.models import DocumentChunk

logger = logging.getLogger(__name__)


def _router_url(model: str) -> str:
    return f"https://router.huggingface.co/hf-inference/models/{model}/pipeline/feature-extraction"


def _standard_url(model: str) -> str:
    return f"https://api-inference.huggingface.co/models/{model}"


def _normalize(vec: list[float]) -> list[float]:
    norm = sum(x * x for x in vec) ** 0.5
    if norm == 0:
        norm = 1.0
    return [x / norm for x in vec]


class Embedder:
    """Batch embedder. One request per batch; response size must match the batch."""

    def __init__(
        self,
        http: httpx.Client,
        api_key: str = HF_API_KEY,
        model: str = HF_EMBED_MODEL,
        batch_size: int = EMBED_BATCH_SIZE,
    ) -> None:
        self._http = http
        self._api_key = api_key
        self._urls = [_router_url(model), _standard_url(model)]
        self.batch_size = batch_size

    def _post_batch(self, batch: list[str]) -> httpx.Response:
        headers = {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }
        payload = {"inputs": batch, "options": {"wait_for_model": True}}
        response = None
        last_error: str | None = None
        for api_url in self._urls:
            try:
                response = self._http.post(api_url, json=payload, headers=headers)
            except httpx.HTTPError as e:
                last_error = str(e)
                response = None
                continue
            # Router may refuse tokens without inference permission; try the standard URL.
            if response.status_code == 403 and api_url == self._urls[0]:
                last_error = response.text
                continue
            break

        if response is None:
            raise EmbeddingError(f"Embedding request failed: {last_error}")
        if response.status_code == 401:
            raise ServiceUnavailableError("Invalid HF API key. Check HF_API_KEY.")
        if response.status_code != 200:
            raise EmbeddingError(f"HF API error {response.status_code}: {response.text[:200]}")
        return response

    def embed_texts(self, texts: list[str]) -> list[list[float]]:
        """
        Embed texts in order. Returns one normalized vector per text.

        Raises:
            ServiceUnavailableError: HF_API_KEY is not configured or rejected.
            EmbeddingError: Transport/API failure or a batch whose vector count differs.
        """
        if not texts:
            return []
        if not self._api_key:
            raise ServiceUnavailableError("HF_API_KEY must be set in .env")

        logger.info("[embeddings:embed_texts] IN  texts=%d batch_size=%d", len(texts), self.batch_size)
        all_embeddings: list[list[float]] = []
        for i in range(0, len(texts), self.batch_size):
            batch = texts[i : i + self.batch_size]
            result = self._post_batch(batch).json()
            if not isinstance(result, list) or not all(isinstance(v, list) for v in result):
                raise EmbeddingError("Unexpected embedding response shape")
            if len(result) != len(batch):
                raise EmbeddingError(
                    f"Embedding service returned {len(result)} vectors for {len(batch)} texts"
                )
            all_embeddings.extend(_normalize([float(x) for x in vec]) for vec in result)
        logger.info("[embeddings:embed_texts] OUT vectors=%d", len(all_embeddings))
        return all_embeddings

    def embed_query(self, text: str) -> list[float]:
        return self.embed_texts([text])[0]

    def embed_chunks(self, chunks: list[DocumentChunk]) -> list[DocumentChunk]:
        """Return copies of chunks carrying their vectors, same order and count."""
        vectors = self.embed_texts([c.content for c in chunks])
        if len(vectors) != len(chunks):
            raise EmbeddingError(f"Got {len(vectors)} vectors for {len(chunks)} chunks")
        return [replace(c, vector=tuple(v)) for c, v in zip(chunks, vectors)]
