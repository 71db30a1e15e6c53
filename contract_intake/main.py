from contextlib import asynccontextmanager
from typing import Optional
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from contract_intake.api import analysis, contracts, documents
from contract_intake.core.config import settings
from contract_intake.pipeline.services import IntakeServices, build_services

logger = logging.getLogger(__name__)


def create_app(services: Optional[IntakeServices] = None) -> FastAPI:
    """Create the FastAPI application.

    Args:
        services: Prebuilt collaborators; built from settings at startup when None

    Returns:
        Configured application
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        intake = services or build_services(settings)
        app.state.services = intake
        await intake.start()
        logger.info(f"{settings.APP_NAME} started")
        try:
            yield
        finally:
            await intake.stop()
            logger.info(f"{settings.APP_NAME} stopped")

    app = FastAPI(
        title=settings.APP_NAME,
        description="Contract intake and metadata extraction service",
        version=settings.API_VERSION,
        lifespan=lifespan,
    )

    # Configure CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Allow all origins for now
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include API routers
    app.include_router(documents.router, prefix="/api/documents", tags=["documents"])
    app.include_router(analysis.router, prefix="/api/analysis", tags=["analysis"])
    app.include_router(contracts.router, prefix="/api/contracts", tags=["contracts"])

    @app.get("/", tags=["root"])
    async def read_root():
        """Root endpoint providing API information."""
        return {
            "app": settings.APP_NAME,
            "description": "Contract intake and metadata extraction service",
            "version": settings.API_VERSION,
            "status": "operational"
        }

    return app


app = create_app()

if __name__ == "__main__":
    import uvicorn
    uvicorn.run("contract_intake.main:app", host="0.0.0.0", port=8000, reload=True)
