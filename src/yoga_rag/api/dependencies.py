from functools import lru_cache

from ..llm.client import LLMClient
from ..llm.synthesizer import AnswerSynthesizer
from ..embeddings.embedder import Embedder, create_embedder
from ..embeddings.index import VectorIndex
from ..pipeline import QueryPipeline
from ..triage.reviewer import IntentReviewer
from ..triage.safety import SafetyTriage

# One instance of each service per process. Tests replace them through
# app.dependency_overrides.

@lru_cache
def get_llm_client() -> LLMClient:
    return LLMClient()

@lru_cache
def get_embedder() -> Embedder:
    return create_embedder()

@lru_cache
def get_vector_index() -> VectorIndex:
    return VectorIndex(get_embedder())

@lru_cache
def get_safety_triage() -> SafetyTriage:
    return SafetyTriage(llm=get_llm_client())

@lru_cache
def get_pipeline() -> QueryPipeline:
    safety = get_safety_triage()
    return QueryPipeline(
        reviewer=IntentReviewer(safety, llm=get_llm_client()),
        safety=safety,
        index=get_vector_index(),
        synthesizer=AnswerSynthesizer(get_llm_client()),
    )
