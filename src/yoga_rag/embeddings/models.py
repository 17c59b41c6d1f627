"""
Corpus Data Models

This module defines the canonical data model for the knowledge corpus:

- ``Document``: one knowledge-base entry as authored (title, body text,
  precautions, citation).
- ``IndexedDocument``: a Document plus the text that was embedded for it.
  The search text is derived exactly once, at ingest, and persisted with the
  metadata table so it is never recomputed at query time.
- ``SearchResult``: a Document with its cosine similarity to a query.

Each IndexedDocument at position ``i`` of an index corresponds to ONE vector at
position ``i`` of the vector table.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field, ConfigDict


class Document(BaseModel):
    """
    A single knowledge-base entry.
    """

    id: str = Field(
        ...,
        min_length=1,
        description="Stable unique key of the entry.",
    )

    title: str = Field(
        ...,
        min_length=1,
        description="Human-readable title, e.g. 'Headstand (Sirsasana)'.",
    )

    source: str = Field(
        ...,
        min_length=1,
        description="Citation string for the publication this entry came from.",
    )

    page: Optional[int] = Field(
        default=None,
        ge=0,
        description="Page of the cited source, when known.",
    )

    info: str = Field(
        ...,
        min_length=1,
        description="Body text.",
    )

    precautions: Optional[str] = Field(
        default=None,
        description="Contraindications and safety notes for this entry.",
    )

    model_config = ConfigDict(
        extra="forbid",
        frozen=True,
    )


def build_search_text(doc: Document) -> str:
    """
    Build the text that is embedded for a document.
    """
    text = f"{doc.title.strip()}. {doc.info.strip()}"
    if doc.precautions and doc.precautions.strip():
        text += f" Precautions: {doc.precautions.strip()}"
    return text


class IndexedDocument(BaseModel):
    """
    A Document as stored in the vector index metadata table.
    """

    document: Document
    search_text: str = Field(..., min_length=1)

    model_config = ConfigDict(
        extra="forbid",
        frozen=True,
    )

    @classmethod
    def from_document(cls, doc: Document) -> "IndexedDocument":
        return cls(document=doc, search_text=build_search_text(doc))


class SearchResult(BaseModel):
    """
    One ranked match returned by a vector search.
    """

    document: Document
    score: float = Field(..., ge=-1.0, le=1.0)

    model_config = ConfigDict(frozen=True)


class IndexStats(BaseModel):
    """
    Summary returned after an index build.
    """

    documents_count: int = Field(..., ge=0)
    embedding_dimension: int = Field(..., ge=0)
