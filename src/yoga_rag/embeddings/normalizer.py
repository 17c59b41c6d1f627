"""
Query rewriting applied before a query is embedded.

Single pass only: normalizing an already normalized query may append the
same suffixes again.
"""

from __future__ import annotations

from typing import Dict, Final

DOMAIN_EXPANSIONS: Final[Dict[str, str]] = {
    "pranayama": "pranayama breathing exercises breath control",
    "asana": "asana yoga pose posture",
    "meditation": "meditation dhyana mindfulness concentration",
    "surya namaskar": "surya namaskar sun salutation sequence",
    "shavasana": "shavasana corpse pose relaxation",
    "headstand": "headstand sirsasana inversion",
    "backbend": "backbend backward bending spine flexibility",
}

HOW_TO_SUFFIX: Final = " steps technique"
BENEFITS_SUFFIX: Final = " benefits advantages"
SHORT_QUERY_SUFFIX: Final = " yoga practice information"
SHORT_QUERY_MAX_TOKENS: Final = 2


def normalize_query(query: str) -> str:
    """
    Rewrite a raw user query to improve retrieval recall.

    1. lowercase and trim
    2. expand domain terms (first occurrence only, not recursive)
    3. strip "what is" / "how to" prefixes, rewrite "benefits of" phrases
    4. widen very short queries with a generic context suffix
    """
    processed = query.lower().strip()

    for term, expansion in DOMAIN_EXPANSIONS.items():
        if term in processed:
            processed = processed.replace(term, expansion, 1)

    if processed.startswith("what is"):
        processed = processed[len("what is"):].strip()
    elif processed.startswith("how to"):
        processed = processed[len("how to"):].strip() + HOW_TO_SUFFIX
    elif "benefits of" in processed:
        processed = processed.replace("benefits of", "", 1) + BENEFITS_SUFFIX

    if len(processed.split()) <= SHORT_QUERY_MAX_TOKENS:
        processed += SHORT_QUERY_SUFFIX

    return processed
