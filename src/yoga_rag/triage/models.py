"""
Triage Data Models

Typed results for query classification and safety detection, plus the strict
schemas that classifier JSON must satisfy. A payload that fails validation
(unknown field, missing field, unknown category, out-of-range confidence)
is treated exactly like a transport failure: the caller falls back to the
keyword path.
"""

from __future__ import annotations

from typing import List, Literal, Optional

from pydantic import BaseModel, Field, ConfigDict, field_validator, model_validator

SafetyCategory = Literal[
    "pregnancy",
    "cardiac",
    "post_surgery",
    "hernia",
    "glaucoma",
    "hypertension",
    "epilepsy",
    "spinal",
    "neck",
    "osteoporosis",
]

Intent = Literal["answerable", "greeting", "off_topic", "unsafe"]

Method = Literal["primary", "fallback"]


def _dedupe(values: List[str]) -> List[str]:
    out: List[str] = []
    for v in values:
        if v not in out:
            out.append(v)
    return out


# ---------------------------------------------------------------------
# Static configuration
# ---------------------------------------------------------------------

class SafetyRule(BaseModel):
    """
    One contraindication category and the terms that trigger it.
    """
    category: SafetyCategory
    description: str = Field(..., min_length=1)
    match_terms: List[str] = Field(..., min_length=1)
    warning_text: str = Field(..., min_length=1)
    recommendation_text: str = Field(..., min_length=1)

    model_config = ConfigDict(extra="forbid", frozen=True)

    @field_validator("match_terms")
    @classmethod
    def lowercase_terms(cls, v: List[str]) -> List[str]:
        terms = _dedupe([t.strip().lower() for t in v if t.strip()])
        if not terms:
            raise ValueError("match_terms must contain at least one term")
        return terms


# ---------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------

class SafetyDetection(BaseModel):
    """
    Outcome of a safety check.
    """
    is_unsafe: bool
    categories: List[SafetyCategory] = Field(default_factory=list)
    matched_terms: List[str] = Field(default_factory=list)
    rationale: Optional[str] = None
    method: Method = "fallback"

    model_config = ConfigDict(frozen=True)


class QueryReview(BaseModel):
    """
    Per-request classification of a user query.
    """
    is_topic_relevant: bool
    is_unsafe: bool
    intent: Intent
    detected_categories: List[SafetyCategory] = Field(default_factory=list)
    confidence: float = Field(..., ge=0.0, le=1.0)
    method: Method
    reason: str = ""

    model_config = ConfigDict(frozen=True)

    @property
    def should_answer(self) -> bool:
        return self.intent == "answerable"


# ---------------------------------------------------------------------
# Classifier payload schemas
# ---------------------------------------------------------------------

class ReviewPayload(BaseModel):
    """
    Strict schema for the unified review reply.
    The classifier MUST return JSON that conforms to this model.
    """
    is_topic_relevant: bool
    is_unsafe: bool
    intent: Intent
    detected_categories: List[SafetyCategory]
    confidence: float = Field(..., ge=0.0, le=1.0)
    reason: str

    model_config = ConfigDict(extra="forbid")

    @field_validator("detected_categories")
    @classmethod
    def unique_categories(cls, v: List[str]) -> List[str]:
        return _dedupe(v)

    @model_validator(mode="after")
    def unsafe_needs_categories(self) -> "ReviewPayload":
        if self.is_unsafe and not self.detected_categories:
            raise ValueError("is_unsafe requires at least one detected category")
        return self


class SafetyPayload(BaseModel):
    """
    Strict schema for the standalone safety classifier reply.
    """
    is_unsafe: bool
    categories: List[SafetyCategory]
    rationale: str

    model_config = ConfigDict(extra="forbid")

    @field_validator("categories")
    @classmethod
    def unique_categories(cls, v: List[str]) -> List[str]:
        return _dedupe(v)

    @model_validator(mode="after")
    def consistent(self) -> "SafetyPayload":
        if self.is_unsafe != bool(self.categories):
            raise ValueError("is_unsafe must be true exactly when categories are present")
        return self
