from unittest.mock import AsyncMock

import pytest
from httpx import AsyncClient, ASGITransport

from yoga_rag.main import app, lifespan
from yoga_rag.api.dependencies import get_pipeline, get_vector_index
from yoga_rag.embeddings.index import VectorIndex, VectorIndexError
from yoga_rag.llm.synthesizer import AnswerSynthesizer
from yoga_rag.pipeline import QueryPipeline
from yoga_rag.triage.reviewer import IntentReviewer

from conftest import HashingEmbedder


def override_services(pipeline, index):
    app.dependency_overrides[get_pipeline] = lambda: pipeline
    app.dependency_overrides[get_vector_index] = lambda: index


@pytest.fixture
def ready_services(pipeline, built_index):
    override_services(pipeline, built_index)
    yield
    app.dependency_overrides = {}


@pytest.fixture
def unready_services(safety, index, mock_llm):
    pipeline = QueryPipeline(
        reviewer=IntentReviewer(safety),
        safety=safety,
        index=index,
        synthesizer=AnswerSynthesizer(mock_llm, models=["model-a"]),
    )
    override_services(pipeline, index)
    yield
    app.dependency_overrides = {}


# ASGITransport does not run lifespan events, so the on-disk index and the
# real embedder are never touched here.
@pytest.fixture
async def async_client(ready_services):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
async def unready_client(unready_services):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.mark.asyncio
async def test_health_ready(async_client, documents):
    resp = await async_client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {
        "status": "healthy",
        "vector_store": "ready",
        "documents_count": len(documents),
    }


@pytest.mark.asyncio
async def test_health_not_initialized(unready_client):
    resp = await unready_client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["vector_store"] == "not initialized"
    assert resp.json()["documents_count"] == 0


@pytest.mark.asyncio
async def test_ask_answerable(async_client):
    resp = await async_client.post("/ask", json={"query": "How do I do a headstand?"})
    assert resp.status_code == 200

    data = resp.json()
    assert data["answer"] == "Generated answer."
    assert data["intent"] == "answerable"
    assert data["method"] == "fallback"
    assert data["is_unsafe"] is False
    assert data["is_off_topic"] is False
    assert data["model"] == "model-a"
    assert data["response_time_ms"] >= 0
    assert data["sources"][0]["title"] == "Headstand (Sirsasana)"
    assert data["sources"][0]["page"] == 183
    assert set(data["sources"][0]) == {"id", "title", "source", "page", "score"}


@pytest.mark.asyncio
async def test_ask_unsafe(async_client):
    resp = await async_client.post("/ask", json={"query": "I have glaucoma, is headstand ok?"})
    assert resp.status_code == 200

    data = resp.json()
    assert data["is_unsafe"] is True
    assert data["intent"] == "unsafe"
    assert data["detected_categories"] == ["glaucoma"]
    assert data["model"] == "safety-filter"
    assert data["sources"] == []
    assert data["safety_warnings"] == ["Glaucoma requires special precautions in yoga practice."]


@pytest.mark.asyncio
async def test_ask_greeting(async_client):
    resp = await async_client.post("/ask", json={"query": "namaste"})
    assert resp.status_code == 200
    assert resp.json()["intent"] == "greeting"
    assert resp.json()["is_off_topic"] is True


@pytest.mark.parametrize("query", ["", "   ", "x" * 501])
@pytest.mark.asyncio
async def test_ask_rejects_invalid_query(async_client, query):
    resp = await async_client.post("/ask", json={"query": query})
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_ask_rejects_missing_query(async_client):
    resp = await async_client.post("/ask", json={})
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_ask_before_index_built(unready_client):
    resp = await unready_client.post("/ask", json={"query": "How do I do a headstand?"})
    assert resp.status_code == 503
    assert resp.json()["error"] == "service_unavailable"


@pytest.mark.asyncio
async def test_ask_off_topic_before_index_built(unready_client):
    resp = await unready_client.post("/ask", json={"query": "What's the weather today?"})
    assert resp.status_code == 200
    assert resp.json()["intent"] == "off_topic"


@pytest.mark.asyncio
async def test_index_failure_during_ask_is_unavailable(built_index):
    broken = AsyncMock(spec=QueryPipeline)
    broken.answer.side_effect = VectorIndexError(
        "Query embedding dimension 256 does not match index dimension 512."
    )
    override_services(broken, built_index)
    try:
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            resp = await client.post("/ask", json={"query": "How do I do a headstand?"})
    finally:
        app.dependency_overrides = {}

    assert resp.status_code == 503
    assert resp.json()["error"] == "service_unavailable"
    assert "256" not in resp.json()["detail"]


# ---------------------------------------------------------------------
# Startup
# ---------------------------------------------------------------------

@pytest.fixture
def startup_services(monkeypatch):
    """Route the lifespan to a given index and embedder."""

    def install(index, embedder):
        monkeypatch.setattr("yoga_rag.main.setup_logging", lambda level: None)
        monkeypatch.setattr("yoga_rag.main.get_vector_index", lambda: index)
        monkeypatch.setattr("yoga_rag.main.get_embedder", lambda: embedder)

    return install


@pytest.mark.asyncio
async def test_startup_loads_persisted_index(built_index, tmp_path, startup_services):
    embedder = HashingEmbedder()
    restored = VectorIndex(
        embedder,
        index_path=str(tmp_path / "faiss_index.bin"),
        meta_path=str(tmp_path / "documents.json"),
    )
    startup_services(restored, embedder)

    async with lifespan(app):
        assert restored.is_ready
        assert embedder.is_ready


@pytest.mark.asyncio
async def test_startup_with_index_from_other_embedder(
    built_index, safety, mock_llm, tmp_path, startup_services
):
    embedder = HashingEmbedder(dim=256)
    restored = VectorIndex(
        embedder,
        index_path=str(tmp_path / "faiss_index.bin"),
        meta_path=str(tmp_path / "documents.json"),
    )
    startup_services(restored, embedder)

    async with lifespan(app):
        assert not restored.is_ready
        assert embedder.load_calls == 0

        pipeline = QueryPipeline(
            reviewer=IntentReviewer(safety),
            safety=safety,
            index=restored,
            synthesizer=AnswerSynthesizer(mock_llm, models=["model-a"]),
        )
        override_services(pipeline, restored)
        try:
            transport = ASGITransport(app=app)
            async with AsyncClient(transport=transport, base_url="http://test") as client:
                health = await client.get("/health")
                ask = await client.post("/ask", json={"query": "How do I do a headstand?"})
        finally:
            app.dependency_overrides = {}

    assert health.json()["vector_store"] == "not initialized"
    assert ask.status_code == 503
