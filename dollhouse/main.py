from __future__ import annotations

import logging
from fastapi import FastAPI

from dollhouse.core.config import settings
from dollhouse.modules.api.router import index_manager, router as api_router

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

app = FastAPI(title=settings.APP_NAME)

app.include_router(api_router, prefix="/api")


@app.on_event("startup")
async def startup():
    """Log configuration on startup."""
    logger.info(f"{settings.APP_NAME} starting")
    logger.info(f"Collection index URL: {index_manager.config.index_url}")
    logger.info(f"Collection cache file: {index_manager.store.path}")
    logger.info(f"Collection fetch timeout: {index_manager.fetch_timeout_ms}ms")


@app.on_event("shutdown")
async def shutdown():
    """Stop any background index refresh."""
    await index_manager.shutdown()


@app.get("/healthz")
def healthz():
    """Health check endpoint."""
    return {
        "ok": True,
        "app": settings.APP_NAME,
        "env": settings.APP_ENV,
        "collection_index_url": index_manager.config.index_url,
    }
