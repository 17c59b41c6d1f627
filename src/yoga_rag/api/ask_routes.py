"""
Ask Routes

The question-answering endpoint. All decisions (triage, retrieval,
generation, fallbacks) happen in the QueryPipeline; this route validates
input, times the request and shapes the response.
"""

import logging
import time
from typing import Annotated

from fastapi import APIRouter, Depends, status

from .dependencies import get_pipeline
from .models import AskRequest, AskResponse, SourceModel
from ..pipeline import QueryPipeline

logger = logging.getLogger("yoga.api")

router = APIRouter(tags=["ask"])


@router.post(
    "/ask",
    response_model=AskResponse,
    summary="Answer a yoga question from the knowledge base",
    status_code=status.HTTP_200_OK,
)
async def ask(
    req: AskRequest,
    pipeline: Annotated[QueryPipeline, Depends(get_pipeline)],
) -> AskResponse:
    """
    Answer a question.

    Empty and over-length queries are rejected by request validation (422)
    before reaching the pipeline. An index that was never built surfaces as
    503 through the global handlers.
    """
    started = time.perf_counter()
    logger.info("Received query: %r", req.query)

    result = await pipeline.answer(req.query)

    elapsed_ms = int((time.perf_counter() - started) * 1000)
    logger.info(
        "Answered intent=%s model=%s sources=%d in %dms",
        result.review.intent,
        result.model,
        len(result.sources),
        elapsed_ms,
    )

    return AskResponse(
        answer=result.answer,
        is_unsafe=result.is_unsafe,
        is_off_topic=result.is_off_topic,
        intent=result.review.intent,
        confidence=result.review.confidence,
        method=result.review.method,
        detected_categories=result.review.detected_categories,
        safety_warnings=result.safety_warnings,
        sources=[
            SourceModel(
                id=r.document.id,
                title=r.document.title,
                source=r.document.source,
                page=r.document.page,
                score=round(r.score, 2),
            )
            for r in result.sources
        ],
        model=result.model,
        response_time_ms=elapsed_ms,
    )
