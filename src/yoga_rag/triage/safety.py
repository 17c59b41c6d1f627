"""
Safety Triage

Detects medical contraindication categories in a user query and renders the
safety response shown instead of a generated answer.

Two detection paths share one category taxonomy:

- ``detect_primary``: asks the classifier collaborator for a JSON verdict.
- ``detect_fallback``: case-insensitive substring matching of each rule's
  terms (misspellings included).

Any classifier failure, including a reply that does not match the expected
schema, falls through to the keyword path. An unsafe query must never pass
as safe just because the classifier was unavailable.
"""

from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional, Sequence

from pydantic import ValidationError

from .models import SafetyCategory, SafetyDetection, SafetyPayload, SafetyRule
from .rules import DEFAULT_SAFETY_RULES
from ..llm.client import LLMClient, LLMError
from ..prompts import CLASSIFIER_SYSTEM_PROMPT, build_safety_prompt

logger = logging.getLogger("yoga.safety")


SAFETY_HEADER = (
    "⚠️ **IMPORTANT SAFETY NOTICE** ⚠️\n\n"
    "Your question mentions conditions that require special attention and professional guidance.\n\n"
)

SAFETY_FOOTER = (
    "---\n\n"
    "**Medical Disclaimer:**\n"
    "This is not medical advice. Always consult your doctor, physiotherapist, or certified yoga "
    "therapist before starting any yoga practice, especially with pre-existing conditions. "
    "A qualified professional can assess your specific situation and provide personalized "
    "modifications.\n\n"
    "**General Safe Practices:**\n"
    "• Listen to your body and never push through pain\n"
    "• Start slowly with gentle practices\n"
    "• Focus on breathing and relaxation techniques\n"
    "• Work one-on-one with a certified yoga therapist initially\n"
    "• Keep your healthcare provider informed about your practice\n"
)


def normalize_for_matching(query: str) -> str:
    return " ".join(query.lower().split())


class SafetyTriage:
    """
    Owns the static safety rule table.
    """

    def __init__(
        self,
        llm: Optional[LLMClient] = None,
        rules: Sequence[SafetyRule] = DEFAULT_SAFETY_RULES,
    ) -> None:
        categories = [r.category for r in rules]
        if len(set(categories)) != len(categories):
            raise ValueError("Safety rule categories must be unique")

        self._llm = llm
        self._rules = tuple(rules)
        self._by_category: Dict[str, SafetyRule] = {r.category: r for r in self._rules}

    @property
    def rules(self) -> Sequence[SafetyRule]:
        return self._rules

    def get_rule(self, category: str) -> Optional[SafetyRule]:
        return self._by_category.get(category)

    # ------------------------------------------------------------------
    # Detection
    # ------------------------------------------------------------------

    async def detect_primary(self, query: str) -> SafetyDetection:
        """
        Classifier-backed detection, falling back to keywords on any failure.
        """
        if self._llm is None:
            return self.detect_fallback(query)

        try:
            data = await self._llm.classify(
                build_safety_prompt(query, self._rules),
                system_prompt=CLASSIFIER_SYSTEM_PROMPT,
            )
            payload = SafetyPayload.model_validate(data)
        except (LLMError, ValidationError) as exc:
            logger.warning(
                "Safety classifier failed, using keyword fallback (%s): %s",
                type(exc).__name__,
                exc,
            )
            return self.detect_fallback(query)

        categories = self._in_rule_order(payload.categories)
        return SafetyDetection(
            is_unsafe=bool(categories),
            categories=categories,
            rationale=payload.rationale,
            method="primary",
        )

    def detect_fallback(self, query: str) -> SafetyDetection:
        """
        Keyword detection. Each rule contributes its category at most once.
        """
        text = normalize_for_matching(query)

        categories: List[SafetyCategory] = []
        matched: List[str] = []

        for rule in self._rules:
            for term in rule.match_terms:
                if term in text:
                    categories.append(rule.category)
                    matched.append(term)
                    break

        if categories:
            logger.info("Keyword safety match: %s", ", ".join(categories))

        return SafetyDetection(
            is_unsafe=bool(categories),
            categories=categories,
            matched_terms=matched,
            rationale=(
                f"Detected medical conditions: {', '.join(categories)}" if categories else None
            ),
            method="fallback",
        )

    # ------------------------------------------------------------------
    # Response
    # ------------------------------------------------------------------

    def warnings_for(self, categories: Iterable[str]) -> List[str]:
        return [r.warning_text for r in self._rules_for(categories)]

    def build_response(self, categories: Iterable[str]) -> Optional[str]:
        """
        Render the safety notice for the given categories.

        Returns None when no known category is given; callers must only
        invoke this after a positive detection.
        """
        rules = self._rules_for(categories)
        if not rules:
            return None

        response = SAFETY_HEADER
        for i, rule in enumerate(rules, start=1):
            response += f"**{i}. {rule.warning_text}**\n\n"
            response += f"**Recommendation:** {rule.recommendation_text}\n\n"
        response += SAFETY_FOOTER
        return response

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _rules_for(self, categories: Iterable[str]) -> List[SafetyRule]:
        wanted = set(categories)
        return [r for r in self._rules if r.category in wanted]

    def _in_rule_order(self, categories: Iterable[str]) -> List[SafetyCategory]:
        return [r.category for r in self._rules_for(categories)]
