"""Tests for the in-memory vector store and its JSON snapshot."""

from __future__ import annotations

import json
from pathlib import Path

import numpy as np
import pytest
from fakes import FakeEmbeddingService

from dadafarin.infrastructure.document_loader import DocumentLoader
from dadafarin.infrastructure.vector_store import VectorStore, cosine_similarities

VECTORS = {
    "contracts": [1.0, 0.0, 0.0],
    "leases": [0.9, 0.1, 0.0],
    "inheritance": [0.0, 1.0, 0.0],
    "criminal": [0.0, 0.0, 1.0],
    "mixed": [0.5, 0.5, 0.0],
    "query:contracts": [1.0, 0.0, 0.0],
    "query:nothing": [-1.0, 0.0, 0.0],
}


@pytest.fixture()
def embeddings() -> FakeEmbeddingService:
    return FakeEmbeddingService(vectors=VECTORS)


@pytest.fixture()
async def store(embeddings) -> VectorStore:
    vs = VectorStore(embeddings, similarity_threshold=0.1)
    await vs.add_documents(["contracts", "leases", "inheritance", "criminal", "mixed"])
    return vs


class TestCosineSimilarities:
    def test_matches_definition(self):
        query = np.array([1.0, 1.0])
        matrix = np.array([[1.0, 0.0], [2.0, 2.0], [-1.0, -1.0]])

        sims = cosine_similarities(query, matrix)

        assert sims == pytest.approx([1 / np.sqrt(2), 1.0, -1.0])

    def test_zero_vector_scores_zero(self):
        sims = cosine_similarities(np.array([1.0, 0.0]), np.array([[0.0, 0.0], [1.0, 0.0]]))
        assert sims.tolist() == [0.0, 1.0]


class TestSimilaritySearch:
    @pytest.mark.parametrize("k", [0, 1, 2, 3, 5, 10])
    async def test_result_bounds_order_and_threshold(self, store: VectorStore, k: int):
        results = await store.similarity_search("query:contracts", k=k)

        assert len(results) <= min(k, len(store))
        sims = [r.similarity for r in results]
        assert sims == sorted(sims, reverse=True)
        assert all(s > store.similarity_threshold for s in sims)

    async def test_most_similar_first(self, store: VectorStore):
        results = await store.similarity_search("query:contracts", k=3)
        assert [r.chunk.text for r in results] == ["contracts", "leases", "mixed"]

    async def test_results_below_threshold_are_dropped(self, store: VectorStore):
        results = await store.similarity_search("query:contracts", k=10)
        texts = [r.chunk.text for r in results]
        assert "inheritance" not in texts
        assert "criminal" not in texts

    async def test_nothing_relevant_returns_empty(self, store: VectorStore):
        assert await store.similarity_search("query:nothing", k=5) == []

    async def test_equal_similarity_keeps_insertion_order(self, embeddings):
        embeddings.vectors.update({"first": [0.0, 1.0, 0.0], "second": [0.0, 2.0, 0.0]})
        vs = VectorStore(embeddings)
        await vs.add_documents(["first", "second"])

        results = await vs.similarity_search("inheritance", k=2)

        assert [r.chunk.text for r in results] == ["first", "second"]

    async def test_empty_store_does_not_embed_query(self, embeddings):
        vs = VectorStore(embeddings)

        assert await vs.similarity_search("anything", k=5) == []
        assert embeddings.text_calls == []

    async def test_embedding_errors_propagate(self, store: VectorStore, embeddings):
        embeddings.fail = True
        with pytest.raises(RuntimeError):
            await store.similarity_search("query:contracts", k=1)


class TestAddDocuments:
    async def test_single_batched_call(self, embeddings):
        vs = VectorStore(embeddings)
        await vs.add_documents(["contracts", "leases"])

        assert embeddings.batch_calls == [["contracts", "leases"]]
        assert len(vs) == 2

    async def test_replaces_whole_collection(self, store: VectorStore):
        await store.add_documents(["criminal"])
        assert [c.text for c in store.chunks] == ["criminal"]

    async def test_count_mismatch_rejected(self, embeddings, monkeypatch):
        async def short_batch(texts):
            return [[1.0, 0.0, 0.0]]

        monkeypatch.setattr(embeddings, "embed_batch", short_batch)
        vs = VectorStore(embeddings)

        with pytest.raises(ValueError, match="mismatch"):
            await vs.add_documents(["a", "b"])
        assert len(vs) == 0


class TestPersistence:
    async def test_save_then_load_round_trip(self, store: VectorStore, embeddings, tmp_path: Path):
        path = tmp_path / "vector-store" / "docs.json"
        store.save(path)

        reloaded = VectorStore(embeddings)
        reloaded.load(path)

        assert reloaded.chunks == store.chunks

    async def test_snapshot_format(self, store: VectorStore, tmp_path: Path):
        path = tmp_path / "docs.json"
        store.save(path)

        raw = json.loads(path.read_text(encoding="utf-8"))
        assert [d["pageContent"] for d in raw["_documents"]] == [c.text for c in store.chunks]
        assert raw["_documents"][0]["embedding"] == [1.0, 0.0, 0.0]

    def test_load_malformed_snapshot_raises(self, embeddings, tmp_path: Path):
        path = tmp_path / "docs.json"
        path.write_text(json.dumps({"documents": []}), encoding="utf-8")

        with pytest.raises(ValueError):
            VectorStore(embeddings).load(path)


class TestLoadOrCreate:
    @pytest.fixture()
    def documents_dir(self, tmp_path: Path) -> Path:
        docs = tmp_path / "data"
        docs.mkdir()
        (docs / "civil.txt").write_text("ماده ۱۰ قانون مدنی", encoding="utf-8")
        return docs

    async def test_existing_snapshot_is_loaded_without_embedding(
        self, store: VectorStore, embeddings, documents_dir: Path, tmp_path: Path
    ):
        path = tmp_path / "docs.json"
        store.save(path)
        embeddings.batch_calls.clear()

        loaded = await VectorStore.load_or_create(path, documents_dir, embeddings, DocumentLoader())

        assert loaded.chunks == store.chunks
        assert embeddings.batch_calls == []

    async def test_missing_snapshot_is_built_and_saved(
        self, embeddings, documents_dir: Path, tmp_path: Path
    ):
        path = tmp_path / "vector-store" / "docs.json"

        built = await VectorStore.load_or_create(path, documents_dir, embeddings, DocumentLoader())

        assert [c.text for c in built.chunks] == ["ماده ۱۰ قانون مدنی"]
        assert path.exists()
        assert len(embeddings.batch_calls) == 1

    async def test_corrupt_snapshot_is_rebuilt(
        self, embeddings, documents_dir: Path, tmp_path: Path
    ):
        path = tmp_path / "docs.json"
        path.write_text("{not json", encoding="utf-8")

        built = await VectorStore.load_or_create(path, documents_dir, embeddings, DocumentLoader())

        assert len(built) == 1
        json.loads(path.read_text(encoding="utf-8"))
