"""PATHING - marker pack service.

Main FastAPI application.
"""

from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

from app.config import settings
from app.routers.markers import router as markers_router
from pathing.packs import PackManager


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    logger.info("=" * 60)
    logger.info("  PATHING v0.1.0 - INITIALIZING")
    logger.info("=" * 60)

    manager = PackManager(settings.markers_dir, chunk_size=settings.xml_chunk_size)
    app.state.pack_manager = manager

    # Packs load in the background so startup is not held up by large archives
    if settings.markers_autoload:
        manager.start_reload()
    else:
        logger.info(f"Marker autoload disabled (dir: {manager.markers_dir})")

    yield

    logger.info("PATHING shutting down...")


# Create FastAPI app
app = FastAPI(
    title="PATHING",
    description="Marker pack parser and query service",
    version="0.1.0",
    debug=settings.debug,
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(markers_router)


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {
        "status": "operational",
        "version": "0.1.0",
        "system": "PATHING",
    }


@app.get("/api/status")
async def status():
    """System status endpoint."""
    manager = getattr(app.state, "pack_manager", None)
    return {
        "name": settings.app_name,
        "version": "0.1.0",
        "markers_dir": str(settings.markers_dir),
        "packs": len(manager.packs) if manager else 0,
        "generation": manager.generation if manager else 0,
    }


def run() -> None:
    """Serve the app on the configured host and port."""
    uvicorn.run(app, host=settings.host, port=settings.port)


if __name__ == "__main__":
    run()
