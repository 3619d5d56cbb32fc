"""
RSS fetching service.

Downloads a feed with httpx and parses it with feedparser, which already
understands the iTunes and Media RSS extensions podcast feeds use.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import feedparser
import httpx

from rss_tv.exceptions import UpstreamFetchError
from rss_tv.services.url_validator import UrlPolicy, validate_feed_url

logger = logging.getLogger(__name__)

# Constants
MAX_FEED_SIZE = 10 * 1024 * 1024  # 10MB
MAX_REDIRECTS = 5
USER_AGENT = "rss-tv-channel/1.0"
ACCEPT = "application/rss+xml, application/atom+xml, application/xml;q=0.9, text/xml;q=0.9, */*;q=0.8"
REDIRECT_STATUSES = {301, 302, 303, 307, 308}


@dataclass(frozen=True)
class ParsedFeed:
    """Channel metadata plus the raw feedparser entries, in feed order."""

    title: str = ""
    link: str = ""
    description: str = ""
    items: List[Dict[str, Any]] = field(default_factory=list)


def parse_feed_document(content: bytes, url: str) -> ParsedFeed:
    """
    Parse a downloaded feed document.

    Args:
        content: Raw response body
        url: Feed URL (for error context)

    Returns:
        ParsedFeed

    Raises:
        UpstreamFetchError: When the body is not a usable RSS/Atom document
    """
    parsed = feedparser.parse(content)

    if parsed.bozo and not parsed.entries and not parsed.feed.get("title"):
        error_msg = str(parsed.get("bozo_exception") or "Unknown error")
        raise UpstreamFetchError(f"Invalid RSS feed: {error_msg}", url=url)

    channel = parsed.feed
    return ParsedFeed(
        title=channel.get("title", "") or "",
        link=channel.get("link", "") or "",
        description=channel.get("description", "") or channel.get("subtitle", "") or "",
        items=list(parsed.entries),
    )


class FeedFetcher:
    """
    Fetch+parse collaborator for the feed cache.

    Redirects are followed by hand so every hop goes through the same URL
    checks as the original request.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        timeout_seconds: float = 15.0,
        policy: Optional[UrlPolicy] = None,
        max_bytes: int = MAX_FEED_SIZE,
        max_redirects: int = MAX_REDIRECTS,
    ):
        self._client = client
        self.timeout_seconds = timeout_seconds
        self.policy = policy or UrlPolicy()
        self.max_bytes = max_bytes
        self.max_redirects = max_redirects

    async def __call__(self, url: str) -> ParsedFeed:
        try:
            content = await asyncio.wait_for(self._download(url), self.timeout_seconds)
        except asyncio.TimeoutError:
            raise UpstreamFetchError(
                f"Timed out after {self.timeout_seconds}s", url=url
            )
        except httpx.HTTPError as e:
            raise UpstreamFetchError(f"{type(e).__name__}: {e}", url=url) from e

        feed = parse_feed_document(content, url)
        logger.info(f"Parsed {len(feed.items)} items from {url}")
        return feed

    async def _download(self, url: str) -> bytes:
        current = url
        for _ in range(self.max_redirects + 1):
            async with self._client.stream(
                "GET",
                current,
                headers={"User-Agent": USER_AGENT, "Accept": ACCEPT},
                follow_redirects=False,
            ) as response:
                if response.status_code in REDIRECT_STATUSES:
                    current = self._next_hop(current, response)
                    continue

                if response.status_code != 200:
                    raise UpstreamFetchError(
                        f"Upstream returned {response.status_code}", url=current
                    )

                content_length = int(response.headers.get("content-length") or 0)
                if content_length > self.max_bytes:
                    raise UpstreamFetchError("Feed too large", url=current)

                # Also check actual content size for chunked responses
                body = bytearray()
                async for chunk in response.aiter_bytes():
                    body.extend(chunk)
                    if len(body) > self.max_bytes:
                        raise UpstreamFetchError("Feed too large", url=current)
                return bytes(body)

        raise UpstreamFetchError(f"Too many redirects (>{self.max_redirects})", url=url)

    def _next_hop(self, current: str, response: httpx.Response) -> str:
        location = response.headers.get("location")
        if not location:
            raise UpstreamFetchError("Redirect without Location header", url=current)

        target = str(httpx.URL(current).join(location))
        result = validate_feed_url(target, self.policy)
        if not result.ok:
            logger.warning(f"Redirect refused: {current} -> {target[:100]} ({result.reason})")
            raise UpstreamFetchError(f"Redirect refused: {result.reason}", url=current)

        logger.debug(f"Following redirect {current} -> {result.normalized_url}")
        return result.normalized_url
