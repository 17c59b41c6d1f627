"""
API Models

Pydantic request/response models for the HTTP surface over the query
pipeline.
"""

from __future__ import annotations

from typing import List, Optional, Literal
from pydantic import BaseModel, Field, ConfigDict

from ..config import settings
from ..triage.models import Intent, Method, SafetyCategory


# ---------------------------------------------------------------------
# Ask Models
# ---------------------------------------------------------------------

class AskRequest(BaseModel):
    """
    Question submitted by a user.
    """
    query: str = Field(..., min_length=1, max_length=settings.max_query_length)

    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)


class SourceModel(BaseModel):
    """
    One retrieved knowledge-base entry cited for an answer.
    """
    id: str
    title: str
    source: str
    page: Optional[int] = None
    score: float

    model_config = ConfigDict(extra="forbid")


class AskResponse(BaseModel):
    """
    Answer payload, whichever path produced it.
    """
    answer: str
    is_unsafe: bool
    is_off_topic: bool
    intent: Intent
    confidence: float = Field(..., ge=0.0, le=1.0)
    method: Method
    detected_categories: List[SafetyCategory] = Field(default_factory=list)
    safety_warnings: List[str] = Field(default_factory=list)
    sources: List[SourceModel] = Field(default_factory=list)
    model: str
    response_time_ms: int = Field(..., ge=0)

    model_config = ConfigDict(extra="forbid")


# ---------------------------------------------------------------------
# Health Models
# ---------------------------------------------------------------------

class HealthResponse(BaseModel):
    status: Literal["healthy"]
    vector_store: Literal["ready", "not initialized"]
    documents_count: int = Field(..., ge=0)

    model_config = ConfigDict(extra="forbid")
