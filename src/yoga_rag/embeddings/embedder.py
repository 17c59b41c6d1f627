"""
Embedding Providers

This module turns text into fixed-dimension dense vectors and compares them.
It is responsible for:

- Lazy, idempotent initialization of the underlying model (remote or local)
- Order-preserving batch embedding
- Strict response validation (one vector per input, one dimension per provider)
- Cosine similarity between vectors

Two backends are provided:

- ``OpenAIEmbedder``: OpenAI-compatible embeddings API over httpx.
- ``SentenceTransformerEmbedder``: a local sentence-transformers model
  (``all-MiniLM-L6-v2`` by default, D=384), encoded off the event loop.

Providers are explicitly constructed service objects. Create one per process
and share it; tests substitute their own subclass.
"""

from __future__ import annotations

import asyncio
import logging
from threading import Lock
from typing import Any, List, Optional, Sequence

import httpx
import numpy as np

from ..config import Settings, settings

logger = logging.getLogger("yoga.embedder")


class EmbeddingError(RuntimeError):
    """Raised when embedding generation fails."""


class EmbeddingInitializationError(EmbeddingError):
    """Raised when the embedding model cannot be initialized."""


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """
    Cosine similarity of two vectors: dot(a, b) / (|a| * |b|).

    Defined as 0.0 when either vector has zero norm.
    """
    va = np.asarray(a, dtype="float64")
    vb = np.asarray(b, dtype="float64")

    if va.shape != vb.shape:
        raise ValueError(
            f"Vector dimensions differ: {va.shape[0]} != {vb.shape[0]}"
        )

    norm_a = float(np.linalg.norm(va))
    norm_b = float(np.linalg.norm(vb))
    if norm_a == 0.0 or norm_b == 0.0:
        return 0.0

    return float(np.dot(va, vb) / (norm_a * norm_b))


class Embedder:
    """
    Base embedding provider.

    Subclasses implement ``_load`` (blocking model setup, returns the vector
    dimension when known up front) and ``_embed_many`` (one vector per input
    text, in input order).
    """

    def __init__(self) -> None:
        self._ready = False
        self._dimension: Optional[int] = None
        self._init_lock = Lock()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def is_ready(self) -> bool:
        return self._ready

    @property
    def dimension(self) -> Optional[int]:
        """Vector dimension, known after initialization or the first embed."""
        return self._dimension

    async def initialize(self) -> None:
        """
        Initialize the underlying model once.

        Safe to call repeatedly and concurrently. Failures propagate as
        EmbeddingInitializationError; no search can proceed without a model.
        """
        if self._ready:
            return
        await asyncio.to_thread(self._initialize_once)

    def _initialize_once(self) -> None:
        with self._init_lock:
            if self._ready:
                return

            try:
                dim = self._load()
            except EmbeddingInitializationError:
                raise
            except Exception as exc:
                logger.error(
                    "Embedding model failed to initialize (%s): %s",
                    type(exc).__name__,
                    exc,
                )
                raise EmbeddingInitializationError(
                    f"Embedding model initialization failed: {type(exc).__name__}: {exc}"
                ) from exc

            if dim is not None:
                self._dimension = int(dim)
            self._ready = True
            logger.info("Embedding provider ready: %s", self.describe())

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def embed(self, text: str) -> List[float]:
        """
        Generate a single embedding vector for the given text.
        """
        vectors = await self.embed_batch([text])
        return vectors[0]

    async def embed_batch(self, texts: Sequence[str]) -> List[List[float]]:
        """
        Generate embeddings for a sequence of texts, preserving input order.

        Raises
        ------
        ValueError
            If any text is empty.
        EmbeddingError
            If the provider fails or returns malformed vectors.
        """
        if not texts:
            return []

        for i, text in enumerate(texts):
            if not text or not text.strip():
                raise ValueError(f"Cannot embed empty text (index {i})")

        await self.initialize()

        vectors = await self._embed_many(list(texts))
        return self._validate(vectors, expected=len(texts))

    similarity = staticmethod(cosine_similarity)

    def describe(self) -> str:
        return type(self).__name__

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _validate(self, vectors: List[List[float]], expected: int) -> List[List[float]]:
        if len(vectors) != expected:
            raise EmbeddingError(
                f"Embedding count mismatch: expected {expected}, got {len(vectors)}"
            )

        dim = self._dimension
        for i, vec in enumerate(vectors):
            if not vec:
                raise EmbeddingError(f"Empty embedding vector at index {i}.")
            if dim is None:
                dim = len(vec)
            elif len(vec) != dim:
                raise EmbeddingError(
                    f"Inconsistent embedding dimensionality at index {i}: "
                    f"expected {dim}, got {len(vec)}"
                )

        self._dimension = dim
        return vectors

    def _load(self) -> Optional[int]:
        raise NotImplementedError

    async def _embed_many(self, texts: List[str]) -> List[List[float]]:
        raise NotImplementedError


class OpenAIEmbedder(Embedder):
    """
    Embeddings from an OpenAI-compatible HTTP API.

    This class performs no caching; the vector index persists corpus vectors
    and only queries are embedded at request time.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        batch_size: int = 20,
    ) -> None:
        """
        Parameters
        ----------
        api_key : Optional[str]
            Optional override for the API key. Defaults to settings.openai_api_key.

        model : Optional[str]
            Optional override for the embedding model. Defaults to settings.embedding_model.

        base_url : Optional[str]
            Embeddings endpoint. Defaults to settings.embedding_base_url.

        timeout : Optional[float]
            HTTP timeout for each request.

        batch_size : int
            Maximum number of texts per request.
        """
        super().__init__()
        self.api_key = api_key or settings.openai_api_key.get_secret_value()
        self.model = model or settings.embedding_model
        self.base_url = base_url or settings.embedding_base_url
        self.timeout = timeout or settings.embedding_timeout
        self.batch_size = batch_size

    def describe(self) -> str:
        return f"openai:{self.model}"

    def _load(self) -> Optional[int]:
        if not self.api_key:
            raise EmbeddingInitializationError(
                "No API key configured for the embeddings endpoint (OPENAI_API_KEY)."
            )
        return None

    async def _embed_many(self, texts: List[str]) -> List[List[float]]:
        all_embeddings: List[List[float]] = []
        headers = {"Authorization": f"Bearer {self.api_key}"}

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            for start in range(0, len(texts), self.batch_size):
                batch = texts[start : start + self.batch_size]
                payload = {
                    "model": self.model,
                    "input": batch,
                }

                try:
                    response = await client.post(
                        self.base_url,
                        json=payload,
                        headers=headers,
                    )
                    response.raise_for_status()
                except httpx.HTTPError as exc:
                    logger.error(
                        "Embedding request failed (%s): batch size=%d, error=%s",
                        type(exc).__name__,
                        len(batch),
                        str(exc),
                    )
                    raise EmbeddingError(
                        f"Embedding generation failed: {type(exc).__name__}"
                    ) from exc

                all_embeddings.extend(self._extract_embeddings(response.json()))

        return all_embeddings

    @staticmethod
    def _extract_embeddings(data: Any) -> List[List[float]]:
        """
        Parse and validate embedding output format.

        OpenAI returns:
            { "data": [ {"index": 0, "embedding": [...]}, ... ] }
        """
        if not isinstance(data, dict) or "data" not in data:
            raise EmbeddingError("Embedding response missing 'data' field.")

        records = data["data"]
        if not isinstance(records, list):
            raise EmbeddingError("'data' field must be a list.")

        # The API may return records out of order; "index" is authoritative.
        if all(isinstance(r, dict) and isinstance(r.get("index"), int) for r in records):
            records = sorted(records, key=lambda r: r["index"])

        embeddings: List[List[float]] = []

        for index, record in enumerate(records):
            if not isinstance(record, dict) or "embedding" not in record:
                raise EmbeddingError(
                    f"Malformed embedding record at index {index}: {record!r}"
                )

            emb = record["embedding"]
            if not isinstance(emb, list) or not all(
                isinstance(x, (float, int)) for x in emb
            ):
                raise EmbeddingError(
                    f"Invalid embedding vector at index {index}: must be float list."
                )

            embeddings.append([float(x) for x in emb])

        return embeddings


class SentenceTransformerEmbedder(Embedder):
    """
    Local sentence-transformers model, mean-pooled and L2-normalized.

    Requires the ``local`` extra (``pip install yoga-rag-server[local]``).
    """

    def __init__(self, model_name: Optional[str] = None, batch_size: int = 32) -> None:
        super().__init__()
        self.model_name = model_name or settings.local_embedding_model
        self.batch_size = batch_size
        self._model: Any = None

    def describe(self) -> str:
        return f"sentence-transformers:{self.model_name}"

    def _load(self) -> Optional[int]:
        from sentence_transformers import SentenceTransformer

        logger.info("Loading embedding model: %s", self.model_name)
        self._model = SentenceTransformer(self.model_name)
        return self._model.get_sentence_embedding_dimension()

    async def _embed_many(self, texts: List[str]) -> List[List[float]]:
        return await asyncio.to_thread(self._encode, texts)

    def _encode(self, texts: List[str]) -> List[List[float]]:
        try:
            vecs = self._model.encode(
                texts,
                batch_size=self.batch_size,
                show_progress_bar=False,
                convert_to_numpy=True,
                normalize_embeddings=True,
            )
        except Exception as exc:
            raise EmbeddingError(
                f"Local embedding failed: {type(exc).__name__}: {exc}"
            ) from exc
        return [v.tolist() for v in vecs]


def create_embedder(cfg: Optional[Settings] = None) -> Embedder:
    """
    Build the embedding provider selected by configuration.
    """
    cfg = cfg or settings
    if cfg.embedding_backend == "sentence-transformers":
        return SentenceTransformerEmbedder(model_name=cfg.local_embedding_model)
    return OpenAIEmbedder(
        api_key=cfg.openai_api_key.get_secret_value(),
        model=cfg.embedding_model,
        base_url=cfg.embedding_base_url,
        timeout=cfg.embedding_timeout,
    )
