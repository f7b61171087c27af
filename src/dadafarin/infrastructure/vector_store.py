"""In-memory vector store with a single-file JSON snapshot.

The corpus is a handful of law books, so similarity search is a brute-force
cosine scan over every chunk. The snapshot is authoritative: when the file
parses it is loaded verbatim, otherwise the store is rebuilt from the source
documents, re-embedded and saved.
"""

from __future__ import annotations

import json
from pathlib import Path

import numpy as np
from loguru import logger

from dadafarin.domain.models import Chunk, ScoredChunk
from dadafarin.domain.protocols import IEmbeddingService
from dadafarin.infrastructure.document_loader import DocumentLoader

SIMILARITY_THRESHOLD = 0.1


def cosine_similarities(query: np.ndarray, matrix: np.ndarray) -> np.ndarray:
    """Cosine similarity of *query* against every row of *matrix*.

    Zero-length vectors score 0 instead of producing NaN.
    """
    norms = np.linalg.norm(matrix, axis=1) * np.linalg.norm(query)
    dots = matrix @ query
    with np.errstate(divide="ignore", invalid="ignore"):
        sims = np.where(norms > 0, dots / norms, 0.0)
    return sims


class VectorStore:
    """Holds chunk/embedding pairs and answers top-k similarity queries."""

    def __init__(
        self,
        embedding_service: IEmbeddingService,
        similarity_threshold: float = SIMILARITY_THRESHOLD,
    ) -> None:
        self.embedding_service = embedding_service
        self.similarity_threshold = similarity_threshold
        self._chunks: tuple[Chunk, ...] = ()
        self._matrix: np.ndarray = np.zeros((0, 0))

    @property
    def chunks(self) -> tuple[Chunk, ...]:
        return self._chunks

    def __len__(self) -> int:
        return len(self._chunks)

    def _replace(self, chunks: list[Chunk]) -> None:
        # Swap both references together; readers never see a half-built collection.
        matrix = (
            np.array([c.embedding for c in chunks], dtype=np.float64)
            if chunks
            else np.zeros((0, 0))
        )
        self._chunks, self._matrix = tuple(chunks), matrix

    # ------------------------------------------------------------------
    # Ingestion & search
    # ------------------------------------------------------------------

    async def add_documents(self, texts: list[str]) -> None:
        """Embed *texts* in one batched call and replace the whole collection."""
        embeddings = await self.embedding_service.embed_batch(texts) if texts else []
        if len(embeddings) != len(texts):
            raise ValueError(
                f"Embedding count mismatch: {len(embeddings)} embeddings for {len(texts)} texts"
            )
        self._replace([Chunk(text=t, embedding=tuple(e)) for t, e in zip(texts, embeddings)])
        logger.info("Added {} documents to vector store", len(self._chunks))

    async def similarity_search(self, query: str, k: int = 5) -> list[ScoredChunk]:
        """Return at most *k* chunks above the threshold, most similar first.

        Equal similarities keep insertion order (``sorted`` is stable).
        """
        chunks, matrix = self._chunks, self._matrix
        if not chunks or k <= 0:
            return []

        query_embedding = np.asarray(
            await self.embedding_service.embed_text(query), dtype=np.float64
        )
        sims = cosine_similarities(query_embedding, matrix)

        ranked = sorted(
            (ScoredChunk(chunk=c, similarity=float(s)) for c, s in zip(chunks, sims)),
            key=lambda r: r.similarity,
            reverse=True,
        )
        logger.debug(
            "Top similarities: {}",
            [f"{round(r.similarity * 100)}% - {r.chunk.text[:50]!r}" for r in ranked[:3]],
        )
        return [r for r in ranked if r.similarity > self.similarity_threshold][:k]

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def save(self, path: Path) -> None:
        """Serialize the full collection to *path* (``{"_documents": [...]}``)."""
        path.parent.mkdir(parents=True, exist_ok=True)
        payload = {
            "_documents": [
                {"pageContent": c.text, "embedding": list(c.embedding)} for c in self._chunks
            ]
        }
        tmp = path.with_suffix(path.suffix + ".tmp")
        tmp.write_text(json.dumps(payload, ensure_ascii=False), encoding="utf-8")
        tmp.replace(path)
        logger.info("Vector store saved to {}", path)

    def load(self, path: Path) -> None:
        """Load a snapshot from *path*, replacing the current collection.

        Raises:
            OSError: the file cannot be read.
            ValueError: the file is not a valid snapshot.
        """
        raw = json.loads(path.read_text(encoding="utf-8"))
        try:
            chunks = [
                Chunk(text=str(doc["pageContent"]), embedding=tuple(float(x) for x in doc["embedding"]))
                for doc in raw["_documents"]
            ]
        except (KeyError, TypeError) as exc:
            raise ValueError(f"Malformed vector store snapshot: {exc}") from exc
        self._replace(chunks)
        logger.info("Loaded {} documents from {}", len(chunks), path)

    @classmethod
    async def load_or_create(
        cls,
        path: Path,
        documents_dir: Path,
        embedding_service: IEmbeddingService,
        loader: DocumentLoader,
        similarity_threshold: float = SIMILARITY_THRESHOLD,
    ) -> VectorStore:
        """Load the snapshot at *path*, or rebuild it from *documents_dir* and save it."""
        store = cls(embedding_service, similarity_threshold=similarity_threshold)
        try:
            store.load(path)
            return store
        except FileNotFoundError:
            logger.info("No vector store snapshot at {}, creating a new one", path)
        except (OSError, ValueError) as exc:
            logger.warning("Vector store snapshot at {} is unusable ({}), rebuilding", path, exc)

        texts = loader.load_directory(documents_dir)
        if not texts:
            logger.warning("No documents found in {}", documents_dir)
        await store.add_documents(texts)
        store.save(path)
        return store
