"""
Query Pipeline

Per-query control flow:

    review -> greeting / off_topic / unsafe  : canned or safety response
           -> answerable                     : search -> synthesize

Requests share no mutable state; the vector index snapshot is read-only, so
any number of queries can run concurrently on one pipeline instance.
"""

from __future__ import annotations

import logging
from typing import List, Optional

from pydantic import BaseModel, Field

from .config import settings
from .embeddings.embedder import EmbeddingError, EmbeddingInitializationError
from .embeddings.index import VectorIndex
from .embeddings.models import SearchResult
from .llm.synthesizer import AnswerSynthesizer
from .prompts import GREETING_RESPONSE, build_off_topic_response
from .triage.models import QueryReview
from .triage.reviewer import IntentReviewer
from .triage.safety import SafetyTriage

logger = logging.getLogger("yoga.pipeline")

SAFETY_MODEL = "safety-filter"
CANNED_MODEL = "canned"


class PipelineResult(BaseModel):
    answer: str
    review: QueryReview
    sources: List[SearchResult] = Field(default_factory=list)
    is_unsafe: bool = False
    is_off_topic: bool = False
    safety_warnings: List[str] = Field(default_factory=list)
    model: str


class QueryPipeline:
    def __init__(
        self,
        reviewer: IntentReviewer,
        safety: SafetyTriage,
        index: VectorIndex,
        synthesizer: AnswerSynthesizer,
        top_k: Optional[int] = None,
    ) -> None:
        self._reviewer = reviewer
        self._safety = safety
        self._index = index
        self._synthesizer = synthesizer
        self._top_k = top_k or settings.search_top_k

    async def answer(self, query: str) -> PipelineResult:
        """
        Answer one query. Assumes the caller already rejected empty or
        over-length input.

        Raises
        ------
        IndexNotReadyError
            If the vector index was never built or loaded.
        EmbeddingInitializationError
            If the embedding model cannot be initialized.
        """
        review = await self._reviewer.review(query)

        if review.intent == "unsafe":
            logger.info("Medical condition detected: %s", ", ".join(review.detected_categories))
            response = self._safety.build_response(review.detected_categories)
            if response is None:
                raise RuntimeError("Unsafe review without renderable safety categories")
            return PipelineResult(
                answer=response,
                review=review,
                is_unsafe=True,
                safety_warnings=self._safety.warnings_for(review.detected_categories),
                model=SAFETY_MODEL,
            )

        if review.intent == "greeting":
            return PipelineResult(
                answer=GREETING_RESPONSE,
                review=review,
                is_off_topic=True,
                model=CANNED_MODEL,
            )

        if review.intent == "off_topic":
            return PipelineResult(
                answer=build_off_topic_response(review.reason),
                review=review,
                is_off_topic=True,
                model=CANNED_MODEL,
            )

        sources = await self._retrieve(query)
        answer, model = await self._synthesizer.synthesize_with_model(query, sources, is_unsafe=False)

        return PipelineResult(
            answer=answer,
            review=review,
            sources=sources,
            model=model,
        )

    async def _retrieve(self, query: str) -> List[SearchResult]:
        try:
            results = await self._index.search(query, self._top_k)
        except EmbeddingInitializationError:
            raise
        except EmbeddingError as exc:
            # Query-time transport failure: answer without context.
            logger.warning("Query embedding failed, continuing without context: %s", exc)
            return []

        logger.info("Found %d relevant documents", len(results))
        return results
