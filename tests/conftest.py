import asyncio
import hashlib
import re
from unittest.mock import AsyncMock

import pytest

from yoga_rag.embeddings.embedder import Embedder, EmbeddingError
from yoga_rag.embeddings.index import VectorIndex
from yoga_rag.embeddings.models import Document
from yoga_rag.llm.client import LLMClient
from yoga_rag.llm.synthesizer import AnswerSynthesizer
from yoga_rag.pipeline import QueryPipeline
from yoga_rag.triage.reviewer import IntentReviewer
from yoga_rag.triage.safety import SafetyTriage

_TOKEN_RE = re.compile(r"[a-z0-9]+")


class HashingEmbedder(Embedder):
    """
    Deterministic bag-of-words embedder: each token of 3+ characters adds 1.0
    to a hashed bucket. Texts sharing words have positive cosine similarity.
    """

    def __init__(self, dim=512, fail_on_load=False):
        super().__init__()
        self.dim = dim
        self.fail_on_load = fail_on_load
        self.fail_on_embed = False
        self.load_calls = 0
        self.embedded = []
        self.query_gate = None
        self.query_started = None

    def _load(self):
        self.load_calls += 1
        if self.fail_on_load:
            raise OSError("model files missing")
        return self.dim

    def describe(self):
        return f"hashing:{self.dim}"

    def hold_queries(self):
        """Block single-text embeds (queries) until query_gate is set."""
        self.query_gate = asyncio.Event()
        self.query_started = asyncio.Event()

    async def _embed_many(self, texts):
        if self.fail_on_embed:
            raise EmbeddingError("embedding endpoint unreachable")
        if self.query_gate is not None and len(texts) == 1:
            self.query_started.set()
            await self.query_gate.wait()
        self.embedded.extend(texts)
        return [self.vector(t) for t in texts]

    def vector(self, text):
        vec = [0.0] * self.dim
        for tok in _TOKEN_RE.findall(text.lower()):
            if len(tok) < 3:
                continue
            bucket = int(hashlib.md5(tok.encode("utf-8")).hexdigest(), 16) % self.dim
            vec[bucket] += 1.0
        return vec


def make_doc(id, title, info, precautions=None, page=None):
    return Document(
        id=id,
        title=title,
        source="Test Handbook",
        page=page,
        info=info,
        precautions=precautions,
    )


@pytest.fixture
def documents():
    return [
        make_doc(
            "tree",
            "Tree Pose (Vrikshasana)",
            "Stand on one leg with the other foot on the inner thigh. Improves balance.",
            precautions="Use a wall if unsteady.",
            page=12,
        ),
        make_doc(
            "headstand",
            "Headstand (Sirsasana)",
            "Sirsasana is an inversion balanced on the forearms and crown of the head.",
            precautions="Avoid with neck problems.",
            page=183,
        ),
        make_doc(
            "breathing",
            "Alternate Nostril Breathing",
            "A pranayama technique alternating the breath between nostrils to calm the mind.",
        ),
        make_doc(
            "corpse",
            "Corpse Pose (Shavasana)",
            "Lie on the back and relax completely at the end of practice.",
        ),
    ]


@pytest.fixture
def embedder():
    return HashingEmbedder()


@pytest.fixture
def index(embedder, tmp_path):
    return VectorIndex(
        embedder,
        index_path=str(tmp_path / "faiss_index.bin"),
        meta_path=str(tmp_path / "documents.json"),
    )


@pytest.fixture
async def built_index(index, documents):
    await index.build(documents)
    return index


@pytest.fixture
def mock_llm():
    mock = AsyncMock(spec=LLMClient)
    mock.generate.return_value = "Generated answer."
    return mock


@pytest.fixture
def safety():
    return SafetyTriage()


@pytest.fixture
def pipeline(safety, built_index, mock_llm):
    return QueryPipeline(
        reviewer=IntentReviewer(safety),
        safety=safety,
        index=built_index,
        synthesizer=AnswerSynthesizer(mock_llm, models=["model-a", "model-b"], attempt_timeout=5),
        top_k=3,
    )
