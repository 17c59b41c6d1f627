"""
LLM Client

Thin async wrapper around an OpenAI-compatible chat-completions endpoint.
Two uses:

- ``generate(prompt, model)``: free text, one model per call.
- ``classify(prompt)``: a JSON object, parsed from the model's reply.

Every failure (transport, HTTP status, malformed body, non-JSON reply) is
raised as ``LLMError`` so callers can fall back in one place.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Dict, List, Optional

import httpx

from ..config import settings

logger = logging.getLogger("yoga.llm")

_CODE_FENCE_RE = re.compile(r"```(?:json)?\s*|```", re.IGNORECASE)


class LLMError(RuntimeError):
    """Raised when an LLM call fails or returns an unusable reply."""


def parse_json_object(raw_text: str) -> Dict[str, Any]:
    """
    Parse a JSON object from raw model output.

    Markdown code fences around the object are tolerated.
    """
    clean = _CODE_FENCE_RE.sub("", raw_text).strip()
    try:
        data = json.loads(clean)
    except json.JSONDecodeError as e:
        raise LLMError(f"Invalid JSON from LLM: {e}") from e

    if not isinstance(data, dict):
        raise LLMError(f"Expected a JSON object from LLM, got {type(data).__name__}")
    return data


class LLMClient:
    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        classifier_model: Optional[str] = None,
    ):
        self.api_key = api_key or settings.openai_api_key.get_secret_value()
        self.base_url = base_url or settings.llm_base_url
        self.timeout = timeout or settings.llm_timeout
        self.classifier_model = classifier_model or settings.classifier_model

    async def chat(
        self,
        messages: List[Dict[str, Any]],
        model: str,
        temperature: float = 0.2,
        max_tokens: Optional[int] = None,
    ) -> str:
        """
        Returns the assistant message content for one chat completion.
        """
        if not self.api_key:
            raise LLMError("No API key configured for the LLM endpoint (OPENAI_API_KEY).")

        payload: Dict[str, Any] = {
            "model": model,
            "messages": messages,
            "temperature": temperature,
        }
        if max_tokens:
            payload["max_tokens"] = max_tokens

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                resp = await client.post(
                    self.base_url,
                    json=payload,
                    headers={"Authorization": f"Bearer {self.api_key}"},
                )
            resp.raise_for_status()
            data = resp.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise LLMError(f"LLM request failed ({model}): {type(exc).__name__}: {exc}") from exc

        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as exc:
            raise LLMError(f"LLM response did not contain message content ({model})") from exc

        if not isinstance(content, str) or not content.strip():
            raise LLMError(f"LLM returned empty content ({model})")

        logger.debug("LLM reply from %s (%d chars)", model, len(content))
        return content

    async def generate(self, prompt: str, model: str, system_prompt: Optional[str] = None) -> str:
        messages: List[Dict[str, Any]] = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})
        return await self.chat(messages, model=model, temperature=0.2)

    async def classify(self, prompt: str, system_prompt: Optional[str] = None) -> Dict[str, Any]:
        """
        Send a classification prompt and return the parsed JSON object.
        """
        messages: List[Dict[str, Any]] = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})

        raw_text = await self.chat(messages, model=self.classifier_model, temperature=0.0)
        return parse_json_object(raw_text)
