"""Request-scoped accessors for objects owned by the application lifespan."""

from fastapi import Request

from rss_tv.config import Settings
from rss_tv.services.channel import ChannelService
from rss_tv.services.feed_cache import FeedCache


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_feed_cache(request: Request) -> FeedCache:
    return request.app.state.feed_cache


def get_channel_service(request: Request) -> ChannelService:
    """Create ChannelService over the shared cache and settings."""
    return ChannelService(get_settings(request), get_feed_cache(request))
