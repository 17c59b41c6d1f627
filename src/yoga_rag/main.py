"""
Yoga RAG Application Entry Point

This module defines the FastAPI application instance, registers all routers,
configures global exception handling, and provides a test-friendly application
factory.

Design Goals
------------
- Deterministic startup: the index is loaded and the embedder warmed once
- A missing index leaves the service up but answering 503 on /ask
- Global exception safety net
- Test-friendly via create_app()
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from .config import settings
from .core.errors import service_unavailable_handler, unhandled_exception_handler
from .core.logging_utils import setup_logging
from .embeddings.embedder import EmbeddingInitializationError
from .embeddings.index import VectorIndexError
from .api import ask_routes, health_routes
from .api.dependencies import get_embedder, get_vector_index


logger = logging.getLogger("yoga.app")


# ---------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Load the persisted index and warm the embedding provider.

    Neither failure aborts startup: /health reports the index state and
    /ask answers 503 until an index has been built.
    """
    setup_logging(settings.log_level)
    logger.info("Starting yoga-rag-server")

    index = get_vector_index()
    try:
        loaded = index.load()
    except VectorIndexError:
        logger.exception("Persisted vector index could not be loaded")
        loaded = False

    if loaded:
        embedder = get_embedder()
        try:
            await embedder.initialize()
            logger.info("Embedder ready: %s", embedder.describe())
        except EmbeddingInitializationError:
            logger.exception("Embedding provider failed to initialize")
    else:
        logger.warning(
            "Vector index not initialized. Run scripts/build_index.py to build it."
        )

    yield

    logger.info("Shutting down yoga-rag-server")


# ---------------------------------------------------------------------
# Application Factory (Test-Friendly)
# ---------------------------------------------------------------------

def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.

    Returns
    -------
    FastAPI
        Fully configured FastAPI application.
    """
    app = FastAPI(
        title="yoga-rag-server",
        version="1.0.0",
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    # --------------------------------------------------------------
    # Global Exception Handling
    # --------------------------------------------------------------

    app.add_exception_handler(VectorIndexError, service_unavailable_handler)
    app.add_exception_handler(EmbeddingInitializationError, service_unavailable_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    # --------------------------------------------------------------
    # Router Registration
    # --------------------------------------------------------------

    app.include_router(health_routes.router)
    app.include_router(ask_routes.router)

    return app


# ---------------------------------------------------------------------
# Default Application Instance (for Uvicorn)
# ---------------------------------------------------------------------

app = create_app()
