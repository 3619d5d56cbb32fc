"""Shared fixtures: feed documents and a scriptable fetch+parse stub."""

from typing import List

import pytest

from rss_tv.exceptions import UpstreamFetchError
from rss_tv.services.rss_fetcher import ParsedFeed

PODCAST_RSS = b"""<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0"
     xmlns:itunes="http://www.itunes.com/dtds/podcast-1.0.dtd"
     xmlns:media="http://search.yahoo.com/mrss/"
     xmlns:content="http://purl.org/rss/1.0/modules/content/">
  <channel>
    <title>Night Shift Radio</title>
    <link>https://nightshift.example.com/</link>
    <description>&lt;p&gt;Late night &lt;b&gt;talk&lt;/b&gt;&lt;/p&gt;</description>
    <item>
      <title>Episode 2: Video special</title>
      <link>https://nightshift.example.com/ep2</link>
      <pubDate>Tue, 05 Mar 2024 10:00:00 GMT</pubDate>
      <description>&lt;p&gt;Watch   the &lt;i&gt;special&lt;/i&gt;&lt;/p&gt;</description>
      <enclosure url="http://cdn.example.com/ep2.mp4" length="1000" type="video/mp4"/>
      <itunes:duration>45:00</itunes:duration>
      <itunes:image href="http://cdn.example.com/ep2.jpg"/>
    </item>
    <item>
      <title>Episode 1: Pilot</title>
      <link>https://nightshift.example.com/ep1</link>
      <pubDate>Mon, 04 Mar 2024 10:00:00 GMT</pubDate>
      <description>Pilot episode</description>
      <media:content url="https://cdn.example.com/ep1.mp3" type="audio/mpeg"/>
      <media:thumbnail url="https://cdn.example.com/ep1-thumb.jpg"/>
    </item>
    <item>
      <title>Blog post without media</title>
      <description>No enclosure here</description>
    </item>
  </channel>
</rss>
"""


def make_item(index: int, with_media: bool = True) -> dict:
    item = {
        "title": f"Episode {index}",
        "summary": f"Description {index}",
    }
    if with_media:
        item["enclosures"] = [{"href": f"https://cdn.example.com/{index}.mp3", "type": "audio/mpeg"}]
    return item


def make_feed(count: int = 3, title: str = "Test Feed") -> ParsedFeed:
    return ParsedFeed(
        title=title,
        link="https://example.com/",
        description="<p>A test feed</p>",
        items=[make_item(i) for i in range(count)],
    )


class StubFetcher:
    """
    Async fetch+parse stand-in.

    Returns queued results in order (a ParsedFeed or an exception to raise),
    repeating the last one, and records every URL it was called with.
    """

    def __init__(self, *results):
        self.results: List = list(results) or [make_feed()]
        self.calls: List[str] = []
        self.gate = None

    async def __call__(self, url: str) -> ParsedFeed:
        self.calls.append(url)
        if self.gate is not None:
            await self.gate.wait()
        result = self.results.pop(0) if len(self.results) > 1 else self.results[0]
        if isinstance(result, BaseException):
            raise result
        return result


class FakeClock:
    """Epoch-millisecond clock advanced by hand."""

    def __init__(self, start: int = 1_700_000_000_000):
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def podcast_rss() -> bytes:
    return PODCAST_RSS


@pytest.fixture
def upstream_error() -> UpstreamFetchError:
    return UpstreamFetchError("Upstream returned 503", url="https://example.com/feed.xml")
