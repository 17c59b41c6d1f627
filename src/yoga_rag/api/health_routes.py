from typing import Annotated

from fastapi import APIRouter, Depends

from .dependencies import get_vector_index
from .models import HealthResponse
from ..embeddings.index import VectorIndex

router = APIRouter(tags=["health"])

@router.get("/health", response_model=HealthResponse)
def health(index: Annotated[VectorIndex, Depends(get_vector_index)]) -> HealthResponse:
    return HealthResponse(
        status="healthy",
        vector_store="ready" if index.is_ready else "not initialized",
        documents_count=index.document_count,
    )
