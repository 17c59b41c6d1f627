"""
Ordered model fallback.

Each attempt is an independent call ``attempt(model_id) -> text``. Attempts
run strictly in list order; the first success ends the loop.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, List, Optional, Sequence, Tuple

logger = logging.getLogger("yoga.llm")


class AllModelsFailedError(RuntimeError):
    """Raised when every model in the fallback list failed."""

    def __init__(self, failures: List[Tuple[str, BaseException]]):
        self.failures = failures
        summary = ", ".join(f"{m}: {type(e).__name__}" for m, e in failures) or "no models"
        super().__init__(f"All models failed ({summary})")


async def first_success(
    models: Sequence[str],
    attempt: Callable[[str], Awaitable[str]],
    timeout: Optional[float] = None,
) -> Tuple[str, str]:
    """
    Try ``attempt`` with each model id in order.

    Parameters
    ----------
    models : Sequence[str]
        Ordered model identifiers.

    attempt : Callable[[str], Awaitable[str]]
        Produces text for one model id, raising on failure.

    timeout : Optional[float]
        Upper bound in seconds for each attempt.

    Returns
    -------
    Tuple[str, str]
        (model id that succeeded, produced text)

    Raises
    ------
    AllModelsFailedError
        If the list is empty or every attempt raised or timed out.
    """
    failures: List[Tuple[str, BaseException]] = []

    for model in models:
        logger.info("Attempting generation with model: %s", model)
        try:
            if timeout is not None:
                text = await asyncio.wait_for(attempt(model), timeout=timeout)
            else:
                text = await attempt(model)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.warning("Failed with model %s (%s): %s", model, type(exc).__name__, exc)
            failures.append((model, exc))
            continue

        return model, text

    raise AllModelsFailedError(failures)
