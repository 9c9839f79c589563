"""
API Router - collection index endpoints.

Thin HTTP layer over CollectionIndexManager:
- Index retrieval (stale-while-revalidate) and forced refresh
- Cache statistics and cache reset
- Index-backed browse and search
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, HTTPException, Query

from dollhouse.core.config import CollectionIndexConfig, settings
from dollhouse.core.services.collection import CollectionIndexBrowser, CollectionIndexManager
from dollhouse.integrations.collection.errors import CollectionIndexError

_logger = logging.getLogger(__name__)

router = APIRouter()

# Service instances
index_manager = CollectionIndexManager(CollectionIndexConfig.from_settings(settings))
browser = CollectionIndexBrowser(index_manager)


def _unavailable_detail(message: str) -> str:
    return f"{message}. Upstream: {index_manager.config.index_url}"


# =============================================================================
# COLLECTION INDEX
# =============================================================================


@router.get("/collection/index")
async def get_collection_index():
    """Return the collection index, serving cache while it revalidates."""
    try:
        return await index_manager.get_index()
    except CollectionIndexError as e:
        raise HTTPException(status_code=503, detail=_unavailable_detail(str(e)))


@router.post("/collection/refresh")
async def refresh_collection_index():
    """Fetch the index now, falling back to cache if the upstream fails."""
    try:
        return await index_manager.force_refresh()
    except CollectionIndexError as e:
        raise HTTPException(status_code=503, detail=_unavailable_detail(str(e)))


@router.get("/collection/stats")
def collection_cache_stats():
    """Expose cache age, validity and circuit breaker state."""
    return index_manager.get_cache_stats()


@router.delete("/collection/cache")
async def clear_collection_cache():
    """Drop the memory and disk cache."""
    await index_manager.clear_cache()
    _logger.info("Collection index cache cleared via API")
    return {"ok": True}


@router.get("/collection/browse")
async def browse_collection(section: Optional[str] = None, type: Optional[str] = None):
    """Browse sections, element types, or the files of one type."""
    result = await browser.browse(section, type)
    if result is None:
        raise HTTPException(
            status_code=503,
            detail=_unavailable_detail("Collection index not available"),
        )
    return result


@router.get("/collection/search")
async def search_collection(
    q: str = Query(..., min_length=1),
    type: Optional[str] = None,
    limit: int = Query(20, ge=1, le=100),
):
    """Search index entries by name, description and tags."""
    return {"query": q, "results": await browser.search(q, element_type=type, limit=limit)}
