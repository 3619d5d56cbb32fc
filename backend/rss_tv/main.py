import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Optional

import httpx
from fastapi import FastAPI
from fastapi.middleware.gzip import GZipMiddleware

from rss_tv.api.middleware import SecurityHeadersMiddleware
from rss_tv.config import Settings
from rss_tv.core.logging_config import setup_logging
from rss_tv.exception_handlers import app_exception_handler, unhandled_exception_handler
from rss_tv.exceptions import AppException
from rss_tv.services.feed_cache import FeedCache, FetchAndParse
from rss_tv.services.rss_fetcher import FeedFetcher
from rss_tv.services.url_validator import UrlPolicy

logger = logging.getLogger(__name__)


async def _sweep_periodically(cache: FeedCache, interval_seconds: float) -> None:
    """Background task: evict expired feeds so the cache does not grow unbounded."""
    while True:
        await asyncio.sleep(interval_seconds)
        cache.sweep()


def create_app(
    settings: Optional[Settings] = None,
    fetcher: Optional[FetchAndParse] = None,
) -> FastAPI:
    """
    Build the application.

    Args:
        settings: Configuration (read from the environment when None)
        fetcher: Fetch+parse callable replacing the httpx-backed fetcher
    """
    settings = settings or Settings.from_env()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan manager for startup/shutdown events."""
        setup_logging(settings.log_level, settings.log_dir)

        client: Optional[httpx.AsyncClient] = None
        fetch_and_parse = fetcher
        if fetch_and_parse is None:
            client = httpx.AsyncClient(timeout=settings.fetch_timeout_seconds)
            fetch_and_parse = FeedFetcher(
                client,
                timeout_seconds=settings.fetch_timeout_seconds,
                policy=UrlPolicy.from_settings(settings),
            )

        cache = FeedCache(
            fetch_and_parse,
            ttl_ms=settings.cache_ttl_ms,
            max_entries=settings.cache_max_entries,
            max_stale_ms=settings.cache_max_stale_ms,
        )
        app.state.feed_cache = cache

        sweeper = None
        if settings.cache_sweep_interval_seconds > 0:
            sweeper = asyncio.create_task(
                _sweep_periodically(cache, settings.cache_sweep_interval_seconds)
            )

        logger.info(f"Default RSS: {settings.default_rss_url}")
        logger.info(f"ALLOW_QUERY_RSS: {settings.allow_query_rss}")
        if settings.domain_allowlist:
            logger.info(f"RSS domain allowlist: {sorted(settings.domain_allowlist)}")

        yield

        if sweeper is not None:
            sweeper.cancel()
            try:
                await sweeper
            except asyncio.CancelledError:
                pass
        if client is not None:
            await client.aclose()

    app = FastAPI(
        title="RSS TV Channel",
        description="Turns an RSS feed into a TV-style channel page and an episode API",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.settings = settings

    app.add_middleware(GZipMiddleware, minimum_size=1000)
    app.add_middleware(SecurityHeadersMiddleware)

    app.add_exception_handler(AppException, app_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    # Import and register routers
    from rss_tv.api.routers import channel, episodes, health
    app.include_router(health.router)
    app.include_router(episodes.router, prefix="/api")
    app.include_router(channel.router)

    return app


def run() -> None:
    """Console entry point: read settings, build the app and serve it with uvicorn."""
    import uvicorn

    settings = Settings.from_env()
    setup_logging(settings.log_level, settings.log_dir)
    logger.info(f"Server running on port {settings.port}")
    uvicorn.run(
        create_app(settings),
        host=settings.host,
        port=settings.port,
        server_header=False,
    )
