"""
Channel service.

Composes the request pipeline: pick the feed URL (validating caller input),
read it through the feed cache, and normalize its items into episodes.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional

from rss_tv.config import Settings
from rss_tv.exceptions import InvalidUrlError
from rss_tv.schemas.episodes import Episode, FeedInfo
from rss_tv.services.episode_normalizer import normalize_episodes, strip_html_tags
from rss_tv.services.feed_cache import FeedCache
from rss_tv.services.url_validator import UrlPolicy, validate_feed_url

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Channel:
    """Fully materialized data handed to the renderers."""

    rss_url: str
    feed: FeedInfo
    episodes: List[Episode]


class ChannelService:
    """Resolves, fetches and normalizes the feed behind a request."""

    def __init__(self, settings: Settings, cache: FeedCache):
        self.settings = settings
        self.cache = cache
        self.policy = UrlPolicy.from_settings(settings)

    def resolve_feed_url(self, rss_param: Optional[str]) -> str:
        """
        Decide which feed a request targets.

        A caller-supplied URL is only honoured when querying is enabled; a
        rejected one is an error and never falls back to the default feed.

        Raises:
            InvalidUrlError: When the caller-supplied URL is rejected
        """
        if not self.settings.allow_query_rss or not rss_param:
            return self.settings.default_rss_url

        result = validate_feed_url(rss_param, self.policy)
        if not result.ok:
            raise InvalidUrlError(result.reason)
        return result.normalized_url

    async def load(
        self,
        rss_param: Optional[str],
        refresh: bool,
        description_chars: int,
    ) -> Channel:
        """
        Load a channel for rendering.

        Args:
            rss_param: Raw ?rss= value (may be None)
            refresh: Bypass the cache freshness check
            description_chars: Episode description budget for this renderer

        Raises:
            InvalidUrlError: Rejected caller-supplied URL
            UpstreamFetchError: Feed could not be fetched or parsed
        """
        rss_url = self.resolve_feed_url(rss_param)
        feed = await self.cache.get(rss_url, force_refresh=refresh)

        episodes = normalize_episodes(
            feed.items,
            limit=self.settings.episode_limit,
            description_chars=description_chars,
        )
        logger.info(f"Channel loaded: url={rss_url}, episodes={len(episodes)}, refresh={refresh}")

        return Channel(
            rss_url=rss_url,
            feed=FeedInfo(
                title=feed.title or "",
                link=feed.link or "",
                description=strip_html_tags(feed.description),
                rssUrl=rss_url,
            ),
            episodes=episodes,
        )
