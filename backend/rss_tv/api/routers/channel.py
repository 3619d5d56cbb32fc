"""TV channel page router."""

import logging
from datetime import datetime
from pathlib import Path
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import HTMLResponse
from fastapi.templating import Jinja2Templates

from rss_tv.config import Settings
from rss_tv.dependencies import get_channel_service, get_settings
from rss_tv.services.channel import ChannelService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["channel"])

TEMPLATES_DIR = Path(__file__).resolve().parent.parent.parent / "templates"
templates = Jinja2Templates(directory=str(TEMPLATES_DIR))

DEFAULT_CHANNEL_TITLE = "TV Channel"
CACHE_CONTROL = "public, max-age=60"


def display_date(value: str) -> str:
    """
    Short human date for the playlist ("Mar 04, 2024").

    Non-ISO values (raw feed dates) are shown as-is.
    """
    if not value:
        return ""
    try:
        return datetime.fromisoformat(value).strftime("%b %d, %Y")
    except ValueError:
        return value


@router.get("/", response_class=HTMLResponse)
async def channel_page(
    request: Request,
    rss: Optional[str] = Query(None, description="Feed URL (URL encoded)"),
    refresh: Optional[str] = Query(None, description="Set to 1 to bypass the cache"),
    service: ChannelService = Depends(get_channel_service),
    settings: Settings = Depends(get_settings),
):
    """
    Render the TV page.

    Usage:
        /
        /?rss=https%3A%2F%2Fexample.com%2Ffeed.xml
    """
    channel = await service.load(
        rss,
        refresh=refresh == "1",
        description_chars=settings.page_description_chars,
    )

    episodes = [
        ep.model_copy(update={"date": display_date(ep.date)})
        for ep in channel.episodes
    ]

    return templates.TemplateResponse(
        request,
        "channel.html",
        {
            "channel_title": channel.feed.title or DEFAULT_CHANNEL_TITLE,
            "rss_url": channel.rss_url,
            "allow_query_rss": settings.allow_query_rss,
            "episodes": [ep.model_dump() for ep in episodes],
        },
        headers={"Cache-Control": CACHE_CONTROL},
    )
