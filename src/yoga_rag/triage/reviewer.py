"""
Intent Reviewer

Classifies a query into answerable / greeting / off_topic / unsafe.

The primary path issues ONE classifier request covering topic relevance,
safety and conversational intent. On any failure (transport error, non-JSON
reply, schema violation) the local heuristic reviewer takes over:

    unsafe categories detected  -> unsafe
    greeting pattern matched    -> greeting
    domain keyword present      -> answerable
    otherwise                   -> off_topic

Safety detection runs here, once per request. The pipeline does not call
SafetyTriage separately.
"""

from __future__ import annotations

import logging
from typing import Optional, Sequence

from pydantic import ValidationError

from .models import QueryReview, ReviewPayload
from .rules import DOMAIN_KEYWORDS, GREETING_PATTERNS
from .safety import SafetyTriage, normalize_for_matching
from ..config import settings
from ..llm.client import LLMClient, LLMError
from ..prompts import CLASSIFIER_SYSTEM_PROMPT, build_review_prompt

logger = logging.getLogger("yoga.reviewer")

# Fallback confidence per decision branch.
FALLBACK_CONFIDENCE = {
    "unsafe": 0.85,
    "greeting": 0.9,
    "answerable": 0.75,
    "off_topic": 0.8,
}


class IntentReviewer:
    def __init__(
        self,
        safety: SafetyTriage,
        llm: Optional[LLMClient] = None,
        confidence_threshold: Optional[float] = None,
        domain_keywords: Sequence[str] = DOMAIN_KEYWORDS,
    ) -> None:
        self._safety = safety
        self._llm = llm
        self._threshold = (
            settings.review_confidence_threshold
            if confidence_threshold is None
            else confidence_threshold
        )
        self._domain_keywords = tuple(k.lower() for k in domain_keywords)

    async def review(self, query: str) -> QueryReview:
        if self._llm is None:
            return self.fallback_review(query)

        try:
            data = await self._llm.classify(
                build_review_prompt(query, self._safety.rules),
                system_prompt=CLASSIFIER_SYSTEM_PROMPT,
            )
            payload = ReviewPayload.model_validate(data)
        except (LLMError, ValidationError) as exc:
            logger.warning(
                "Review classifier failed, using fallback (%s): %s",
                type(exc).__name__,
                exc,
            )
            return self.fallback_review(query)

        review = self._from_payload(query, payload)
        logger.info(
            "Review (%s): intent=%s confidence=%.2f categories=%s",
            review.method,
            review.intent,
            review.confidence,
            review.detected_categories,
        )
        return review

    def _from_payload(self, query: str, payload: ReviewPayload) -> QueryReview:
        categories = [
            r.category
            for r in self._safety.rules
            if r.category in payload.detected_categories
        ]
        if payload.is_unsafe and not categories:
            logger.warning("Review classifier named no configured category, using fallback")
            return self.fallback_review(query)

        # Category evidence wins over a contradicting flag.
        is_unsafe = bool(categories)

        if is_unsafe:
            intent = "unsafe"
            reason = payload.reason
        elif payload.intent == "unsafe":
            # Unsafe intent without categories cannot be rendered; treat as unclear.
            intent = "off_topic"
            reason = "unclear"
        elif payload.intent == "answerable" and (
            not payload.is_topic_relevant or payload.confidence < self._threshold
        ):
            intent = "off_topic"
            reason = "unclear"
        else:
            intent = payload.intent
            reason = payload.reason

        return QueryReview(
            is_topic_relevant=payload.is_topic_relevant,
            is_unsafe=is_unsafe,
            intent=intent,
            detected_categories=categories,
            confidence=payload.confidence,
            method="primary",
            reason=reason,
        )

    def fallback_review(self, query: str) -> QueryReview:
        """
        Deterministic keyword review, used when the classifier is unavailable.
        """
        text = normalize_for_matching(query)

        detection = self._safety.detect_fallback(query)
        is_greeting = any(p.search(query.strip()) for p in GREETING_PATTERNS)
        is_relevant = any(k in text for k in self._domain_keywords)

        if detection.is_unsafe:
            intent = "unsafe"
            reason = detection.rationale or "Detected medical conditions"
        elif is_greeting:
            intent = "greeting"
            reason = "User greeting detected"
        elif is_relevant:
            intent = "answerable"
            reason = "Contains yoga keywords, no medical conditions"
        else:
            intent = "off_topic"
            reason = "No yoga keywords found"

        logger.info("Review (fallback): intent=%s reason=%s", intent, reason)

        return QueryReview(
            is_topic_relevant=is_relevant,
            is_unsafe=detection.is_unsafe,
            intent=intent,
            detected_categories=detection.categories,
            confidence=FALLBACK_CONFIDENCE[intent],
            method="fallback",
            reason=reason,
        )
