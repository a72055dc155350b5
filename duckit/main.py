# Main application entry point

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Response
from fastapi.middleware.cors import CORSMiddleware
import uvicorn

from duckit import __version__
from duckit.config.settings import get_settings
from duckit.api.routes import router
from duckit.catalog.database import init_db, check_database_connection
from duckit.common.logging_config import setup_logging
from duckit.common.metrics import get_metrics, get_metrics_content_type

settings = get_settings()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifespan - startup and shutdown."""
    setup_logging(settings.log_level, settings.json_logs)
    logger.info("Initializing metadata database...")
    init_db()
    logger.info("Metadata database ready")

    yield

    logger.info("Shutting down")


app = FastAPI(
    title="DuckIt API",
    description="Metadata operations for published DuckIt artifacts",
    version=__version__,
    lifespan=lifespan
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API routes
app.include_router(router, prefix="/api")


@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "service": "DuckIt API",
        "version": __version__,
        "status": "running",
        "docs": "/docs"
    }


@app.get("/health")
async def health():
    """Health check endpoint"""
    return {"status": "healthy"}


@app.get("/ready")
def readiness():
    """Readiness check endpoint"""
    db_healthy = check_database_connection()

    return {
        "status": "ready" if db_healthy else "not_ready",
        "database": "connected" if db_healthy else "disconnected"
    }


if settings.metrics_enabled:
    @app.get("/metrics")
    def metrics():
        """Prometheus metrics endpoint"""
        return Response(content=get_metrics(), media_type=get_metrics_content_type())


if __name__ == "__main__":
    uvicorn.run(
        "duckit.main:app",
        host=settings.app_host,
        port=settings.app_port,
        reload=settings.debug
    )
