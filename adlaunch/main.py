"""ADLAUNCH — FastAPI Application Entry Point.

Publishes stored campaign configurations to Meta and controls their status.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from adlaunch.config import settings
from adlaunch.database import init_db, check_connection
from adlaunch.api.publish_routes import router as publish_router
from adlaunch.core.logging import get_logger

logger = get_logger("main")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown lifecycle."""
    logger.info(f"ADLAUNCH starting up (Meta API {settings.meta_api_version})")
    if check_connection():
        try:
            init_db()
        except Exception as e:
            logger.error(f"Table creation failed: {e}")
    else:
        logger.error("Database NOT connected — endpoints will fail")
    yield
    logger.info("ADLAUNCH shut down")


app = FastAPI(
    title="ADLAUNCH",
    description="Publish campaign configurations to Meta as Campaign → AdSet → Ads, then pause or resume them.",
    version="1.0.0",
    lifespan=lifespan,
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Routers
app.include_router(publish_router)


@app.get("/health", tags=["System"])
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "service": "adlaunch",
        "version": "1.0.0",
    }
