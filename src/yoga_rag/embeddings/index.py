"""
FAISS Vector Index

This module implements the persistent, FAISS-backed vector index over the
embedded knowledge corpus.

Key Properties
--------------
- Cosine similarity via inner product over L2-normalized vectors
- Vector ``i`` belongs to the document ingested at position ``i``
- Deterministic ranking: descending score, ties broken by ingest order
- Persistence as two artifacts: FAISS vector table + JSON document table
- Write-once snapshots: a rebuild swaps the whole snapshot reference, so
  concurrent searches never observe a partially built corpus
"""

from __future__ import annotations

import hashlib
import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from threading import RLock
from typing import Dict, List, Optional, Sequence, Tuple

import faiss
import numpy as np

from .embedder import Embedder
from .models import Document, IndexedDocument, IndexStats, SearchResult
from .normalizer import normalize_query
from ..config import settings

logger = logging.getLogger("yoga.index")


# ---------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------

class VectorIndexError(RuntimeError):
    """Base error for vector index failures."""


class IndexNotReadyError(VectorIndexError):
    """Raised when searching before a successful build or load."""


class IndexPersistenceError(VectorIndexError):
    """Raised when index persistence fails."""


# ---------------------------------------------------------------------
# Snapshot
# ---------------------------------------------------------------------

@dataclass(frozen=True)
class _Snapshot:
    index: faiss.Index
    documents: Tuple[IndexedDocument, ...]
    dimension: int


def _to_matrix(embeddings: Sequence[Sequence[float]]) -> np.ndarray:
    vectors = np.asarray(embeddings, dtype="float32")
    if vectors.ndim != 2 or vectors.shape[1] == 0:
        raise VectorIndexError("Embeddings must form a non-empty 2-D matrix.")
    vectors = np.ascontiguousarray(vectors)
    faiss.normalize_L2(vectors)
    return vectors


def _file_sha256(path: Path) -> str:
    digest = hashlib.sha256()
    with path.open("rb") as f:
        for block in iter(lambda: f.read(1 << 20), b""):
            digest.update(block)
    return digest.hexdigest()


# ---------------------------------------------------------------------
# Vector Index
# ---------------------------------------------------------------------

class VectorIndex:
    """
    Persistent vector index over the knowledge corpus.

    State machine: Uninitialized -> Ready (via ``build`` or ``load``).
    Ready is terminal; ``build`` may be called again to replace the corpus.
    """

    def __init__(
        self,
        embedder: Embedder,
        index_path: Optional[str] = None,
        meta_path: Optional[str] = None,
    ) -> None:
        """
        Parameters
        ----------
        embedder : Embedder
            Provider used for corpus and query embeddings.

        index_path : Optional[str]
            Filesystem path of the FAISS vector table.
            Defaults to settings.vector_index_path.

        meta_path : Optional[str]
            Filesystem path of the JSON document table.
            Defaults to settings.vector_meta_path.
        """
        self._embedder = embedder
        self._index_path = Path(index_path or settings.vector_index_path)
        self._meta_path = Path(meta_path or settings.vector_meta_path)

        self._snapshot: Optional[_Snapshot] = None

        # Serializes writers (build/load). Readers use the snapshot reference.
        self._lock = RLock()

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def is_ready(self) -> bool:
        return self._snapshot is not None

    @property
    def document_count(self) -> int:
        snapshot = self._snapshot
        return len(snapshot.documents) if snapshot else 0

    def get_stats(self) -> dict:
        """
        Return index statistics for diagnostics.
        """
        snapshot = self._snapshot
        return {
            "ready": snapshot is not None,
            "documents_count": len(snapshot.documents) if snapshot else 0,
            "embedding_dimension": snapshot.dimension if snapshot else 0,
            "index_path": str(self._index_path),
            "meta_path": str(self._meta_path),
        }

    # ------------------------------------------------------------------
    # Build
    # ------------------------------------------------------------------

    async def build(self, documents: Sequence[Document]) -> IndexStats:
        """
        Embed the full corpus, persist it, and make it the active snapshot.

        Raises
        ------
        VectorIndexError
            If the input is empty or contains duplicate ids.
        EmbeddingError
            If embedding the corpus fails.
        IndexPersistenceError
            If writing either artifact fails.
        """
        if not documents:
            raise VectorIndexError("Cannot build an index from an empty document list.")

        docs = [
            d if isinstance(d, Document) else Document.model_validate(d)
            for d in documents
        ]

        seen: Dict[str, int] = {}
        for i, doc in enumerate(docs):
            if doc.id in seen:
                raise VectorIndexError(
                    f"Duplicate document id {doc.id!r} at positions {seen[doc.id]} and {i}."
                )
            seen[doc.id] = i

        indexed = tuple(IndexedDocument.from_document(d) for d in docs)

        logger.info("Embedding %d documents...", len(indexed))
        embeddings = await self._embedder.embed_batch([d.search_text for d in indexed])

        snapshot = self._make_snapshot(embeddings, indexed)

        with self._lock:
            self._save(snapshot)
            self._snapshot = snapshot

        logger.info(
            "Vector index built: %d documents, dimension %d",
            len(indexed),
            snapshot.dimension,
        )
        return IndexStats(
            documents_count=len(indexed),
            embedding_dimension=snapshot.dimension,
        )

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------

    async def search(self, query: str, top_k: int = 5) -> List[SearchResult]:
        """
        Return the ``top_k`` documents most similar to ``query``.

        The query is normalized before embedding. Results are ordered by
        descending cosine similarity; equal scores keep ingest order.
        """
        if top_k < 1:
            raise ValueError("top_k must be >= 1")

        snapshot = self._snapshot
        if snapshot is None:
            raise IndexNotReadyError(
                "Vector index not initialized. Build or load the index first."
            )

        processed = normalize_query(query)
        logger.debug("Original query: %r, processed query: %r", query, processed)

        query_emb = await self._embedder.embed(processed)
        if len(query_emb) != snapshot.dimension:
            raise VectorIndexError(
                f"Query embedding dimension {len(query_emb)} does not match "
                f"index dimension {snapshot.dimension}."
            )

        scores = self._score_all(snapshot, query_emb)

        order = np.argsort(-scores, kind="stable")[:top_k]

        results: List[SearchResult] = []
        for rank, idx in enumerate(order, start=1):
            doc = snapshot.documents[int(idx)].document
            score = float(np.clip(scores[idx], -1.0, 1.0))
            logger.debug("  %d. %s (score: %.3f)", rank, doc.title, score)
            results.append(SearchResult(document=doc, score=score))

        return results

    @staticmethod
    def _score_all(snapshot: _Snapshot, query_emb: Sequence[float]) -> np.ndarray:
        """
        Score every corpus vector against the query, indexed by ingest position.
        """
        q = _to_matrix([query_emb])
        total = snapshot.index.ntotal

        raw_scores, raw_ids = snapshot.index.search(q, total)

        scores = np.full(total, -np.inf, dtype="float64")
        for score, idx in zip(raw_scores[0], raw_ids[0]):
            idx = int(idx)
            if idx == -1:
                continue
            scores[idx] = float(score)
        return scores

    # ------------------------------------------------------------------
    # Internal Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _make_snapshot(
        embeddings: List[List[float]],
        documents: Tuple[IndexedDocument, ...],
    ) -> _Snapshot:
        if len(embeddings) != len(documents):
            raise VectorIndexError("Embedding count does not match document count.")

        vectors = _to_matrix(embeddings)
        dim = int(vectors.shape[1])

        index = faiss.IndexFlatIP(dim)
        try:
            index.add(vectors)
        except Exception as exc:
            raise VectorIndexError(
                f"Failed to add vectors to FAISS: {type(exc).__name__}"
            ) from exc

        return _Snapshot(index=index, documents=documents, dimension=dim)

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def _save(self, snapshot: _Snapshot) -> None:
        """
        Persist the vector table and the document table.

        Both artifacts are written to temporary files first and then moved
        into place. The metadata records a checksum of the vector table, so
        a load can never pair vectors with another build's documents.
        """
        self._index_path.parent.mkdir(parents=True, exist_ok=True)
        self._meta_path.parent.mkdir(parents=True, exist_ok=True)

        index_tmp = self._index_path.with_name(self._index_path.name + ".tmp")
        meta_tmp = self._meta_path.with_name(self._meta_path.name + ".tmp")

        try:
            try:
                faiss.write_index(snapshot.index, str(index_tmp))
            except Exception as exc:
                raise IndexPersistenceError(
                    f"Failed to write FAISS index: {type(exc).__name__}"
                ) from exc

            meta = {
                "embedder": self._embedder.describe(),
                "dimension": snapshot.dimension,
                "index_sha256": _file_sha256(index_tmp),
                "documents": [d.model_dump() for d in snapshot.documents],
            }

            try:
                with meta_tmp.open("w", encoding="utf-8") as f:
                    json.dump(meta, f, ensure_ascii=False, indent=2)
            except Exception as exc:
                raise IndexPersistenceError(
                    f"Failed to write index metadata: {type(exc).__name__}"
                ) from exc

            os.replace(index_tmp, self._index_path)
            os.replace(meta_tmp, self._meta_path)
        except OSError as exc:
            raise IndexPersistenceError(
                f"Failed to move index artifacts into place: {exc}"
            ) from exc
        finally:
            for tmp in (index_tmp, meta_tmp):
                tmp.unlink(missing_ok=True)

        logger.info("Vector index saved to %s", self._index_path.parent)

    def load(self) -> bool:
        """
        Restore a previously persisted index.

        Returns
        -------
        bool
            False if no persisted index exists yet (the index stays
            uninitialized), True once the snapshot is active.

        Raises
        ------
        IndexPersistenceError
            If the artifacts exist but cannot be read, disagree with each
            other, or were built by a different embedding model.
        """
        with self._lock:
            if not self._index_path.exists() or not self._meta_path.exists():
                logger.info(
                    "No persisted vector index at %s; build it first.",
                    self._index_path,
                )
                return False

            try:
                index = faiss.read_index(str(self._index_path))
            except Exception as exc:
                raise IndexPersistenceError(
                    f"Failed to read FAISS index: {type(exc).__name__}"
                ) from exc

            try:
                with self._meta_path.open("r", encoding="utf-8") as f:
                    data = json.load(f)

                documents = tuple(
                    IndexedDocument.model_validate(d)
                    for d in data.get("documents", [])
                )
                dimension = int(data.get("dimension", index.d))
            except Exception as exc:
                raise IndexPersistenceError(
                    f"Failed to load index metadata: {type(exc).__name__}"
                ) from exc

            if index.ntotal != len(documents) or index.d != dimension:
                raise IndexPersistenceError(
                    f"Index artifacts disagree: {index.ntotal} vectors of dimension "
                    f"{index.d}, {len(documents)} documents of dimension {dimension}."
                )

            checksum = data.get("index_sha256")
            if checksum is not None and checksum != _file_sha256(self._index_path):
                raise IndexPersistenceError(
                    "Index artifacts disagree: vector table does not belong to this metadata."
                )

            self._check_embedder(data.get("embedder"), dimension)

            self._snapshot = _Snapshot(index=index, documents=documents, dimension=dimension)

        logger.info("Vector index loaded with %d documents", len(documents))
        return True

    def _check_embedder(self, built_with: Optional[str], dimension: int) -> None:
        current = self._embedder.describe()
        if built_with is not None and built_with != current:
            raise IndexPersistenceError(
                f"Index was built with {built_with} but the configured embedder "
                f"is {current}. Rebuild the index."
            )

        known_dim = self._embedder.dimension
        if known_dim is not None and known_dim != dimension:
            raise IndexPersistenceError(
                f"Index dimension {dimension} does not match embedder dimension "
                f"{known_dim}. Rebuild the index."
            )
