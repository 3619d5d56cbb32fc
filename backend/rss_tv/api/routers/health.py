"""
Health check endpoints.

/health is a plain-text liveness probe; /api/health adds feed cache status.
"""

from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from fastapi.responses import PlainTextResponse

from rss_tv.dependencies import get_feed_cache
from rss_tv.services.feed_cache import FeedCache

router = APIRouter(tags=["health"])


@router.get("/health", response_class=PlainTextResponse)
async def health_check():
    """Root health check endpoint."""
    return "ok"


@router.get("/api/health")
async def api_health_check(cache: FeedCache = Depends(get_feed_cache)):
    """
    API health check.

    Returns:
        Service status with cache entry and in-flight fetch counts.
    """
    return {
        "status": "healthy",
        "service": "rss-tv",
        "cache": cache.stats(),
        "checked_at": datetime.now(timezone.utc).isoformat(),
    }
