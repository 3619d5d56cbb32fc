"""Episode Pydantic schemas for the JSON API and the TV page.

Uses camelCase field names to match what the page script expects.
"""

from typing import List, Literal

from pydantic import BaseModel, ConfigDict


class Episode(BaseModel):
    """Normalized, playable episode.

    ``id`` is the position in the filtered episode list, starting at 0.
    """
    id: int
    title: str
    date: str = ""
    description: str = ""
    mediaUrl: str
    mediaType: str = ""
    kind: Literal["audio", "video"] = "audio"
    imageUrl: str = ""
    duration: str = ""
    link: str = ""

    model_config = ConfigDict(frozen=True)


class FeedInfo(BaseModel):
    """Channel-level metadata."""
    title: str
    link: str
    description: str
    rssUrl: str


class EpisodesResponse(BaseModel):
    """Response model for /api/episodes.json."""
    feed: FeedInfo
    episodes: List[Episode]


class ErrorResponse(BaseModel):
    """Error body for the JSON API."""
    error: str
    error_code: str
