"""Episodes API router: normalized episode metadata for any RSS feed."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Response

from rss_tv.config import Settings
from rss_tv.dependencies import get_channel_service, get_settings
from rss_tv.schemas.episodes import EpisodesResponse, ErrorResponse
from rss_tv.services.channel import ChannelService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["episodes"])

CACHE_CONTROL = "public, max-age=60"


@router.get(
    "/episodes.json",
    response_model=EpisodesResponse,
    responses={400: {"model": ErrorResponse}, 502: {"model": ErrorResponse}},
)
async def get_episodes(
    response: Response,
    rss: Optional[str] = Query(None, description="Feed URL (URL encoded)"),
    refresh: Optional[str] = Query(None, description="Set to 1 to bypass the cache"),
    service: ChannelService = Depends(get_channel_service),
    settings: Settings = Depends(get_settings),
):
    """
    Return normalized episode metadata.

    Usage:
        /api/episodes.json
        /api/episodes.json?rss=https%3A%2F%2Fexample.com%2Ffeed.xml
        /api/episodes.json?refresh=1

    Returns:
        EpisodesResponse with feed metadata and playable episodes
    """
    channel = await service.load(
        rss,
        refresh=refresh == "1",
        description_chars=settings.api_description_chars,
    )

    response.headers["Cache-Control"] = CACHE_CONTROL
    return EpisodesResponse(feed=channel.feed, episodes=channel.episodes)
