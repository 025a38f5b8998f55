"""FastAPI application for the fhir-digest service."""

import logging
from contextlib import asynccontextmanager
from typing import List

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from fhir_digest.engine import SUPPORTED_RESOURCE_TYPES
from fhir_digest.engine.config import CORS_ORIGINS
from fhir_digest.engine.logging import setup_logging
from fhir_digest.api.models import HealthResponse
from fhir_digest.api.routes import bundles

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    setup_logging()
    logger.info("Starting fhir-digest API server")
    yield
    logger.info("Shutting down fhir-digest API server")


def configure_cors(app: FastAPI, origins: List[str]) -> None:
    """Allow browser access from the given origins; none means no CORS headers."""
    if not origins:
        return
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )


# Create FastAPI app
app = FastAPI(
    title="fhir-digest API",
    description="FHIR bundle normalization and classification",
    version="1.0.0",
    lifespan=lifespan,
)

configure_cors(app, CORS_ORIGINS)

# Include routers
app.include_router(bundles.router)


@app.get("/api/health", response_model=HealthResponse)
async def health_check():
    """Health check endpoint."""
    return HealthResponse(supported_resource_types=sorted(SUPPORTED_RESOURCE_TYPES))


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
