"""
Answer Synthesizer

Turns ranked retrieval results into the final answer:

1. Context block from the results, in rank order (first = most salient)
2. Fixed-structure instruction prompt (overview / key facts / benefits / precautions)
3. Generation over an ordered list of model ids, first success wins
4. Deterministic template from the top-ranked document when every model fails

``synthesize`` never raises for generation failures; the caller always gets text.
"""

from __future__ import annotations

import logging
from typing import Optional, Sequence, Tuple

from .client import LLMClient
from .fallback import AllModelsFailedError, first_success
from ..config import settings
from ..embeddings.models import SearchResult
from ..prompts import build_answer_prompt, build_answer_system_prompt

logger = logging.getLogger("yoga.synthesizer")

TEMPLATE_MODEL = "template"

EMPTY_CONTEXT = "No specific information found in the knowledge base."


def build_context(results: Sequence[SearchResult]) -> str:
    if not results:
        return EMPTY_CONTEXT

    context = "--- KNOWLEDGE BASE CONTEXT ---\n\n"
    for i, result in enumerate(results, start=1):
        doc = result.document
        context += f"[{i}] {doc.title}\n"
        context += f"{doc.info}\n"
        if doc.precautions:
            context += f"Precautions: {doc.precautions}\n"
        context += "\n"
    return context


def build_fallback_answer(query: str, results: Sequence[SearchResult]) -> str:
    """
    Templated answer used when no generation model is available.
    """
    if not results:
        return (
            f'## Overview\nLimited information available about "{query}" in the knowledge base.\n\n'
            "## Recommendation\n"
            "• Consult the Common Yoga Protocol\n"
            "• Practice under a certified yoga instructor"
        )

    top = results[0].document
    response = f"## {top.title}\n\n{top.info}\n\n"
    if top.precautions:
        response += f"## Precautions\n⚠️ {top.precautions}\n\n"
    response += "## Recommendation\n• Practice under supervision\n• Consult certified yoga instructor"
    return response


class AnswerSynthesizer:
    def __init__(
        self,
        llm: LLMClient,
        models: Optional[Sequence[str]] = None,
        attempt_timeout: Optional[float] = None,
    ) -> None:
        self._llm = llm
        self._models: Tuple[str, ...] = tuple(models if models is not None else settings.generation_models)
        self._timeout = attempt_timeout if attempt_timeout is not None else settings.llm_timeout

    @property
    def models(self) -> Tuple[str, ...]:
        return self._models

    async def synthesize(
        self,
        query: str,
        results: Sequence[SearchResult],
        is_unsafe: bool = False,
    ) -> str:
        answer, _ = await self.synthesize_with_model(query, results, is_unsafe)
        return answer

    async def synthesize_with_model(
        self,
        query: str,
        results: Sequence[SearchResult],
        is_unsafe: bool = False,
    ) -> Tuple[str, str]:
        """
        Returns (answer, model id). The model id is ``"template"`` when the
        deterministic fallback produced the answer.
        """
        context = build_context(results)
        system_prompt = build_answer_system_prompt(is_unsafe)
        prompt = build_answer_prompt(query, context, is_unsafe)

        async def attempt(model: str) -> str:
            return await self._llm.generate(prompt, model=model, system_prompt=system_prompt)

        try:
            model, text = await first_success(self._models, attempt, timeout=self._timeout)
        except AllModelsFailedError as exc:
            logger.warning("%s. Returning templated answer.", exc)
            return build_fallback_answer(query, results), TEMPLATE_MODEL

        logger.info("Answer generated with %s", model)
        return text, model
