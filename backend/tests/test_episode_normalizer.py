"""Unit tests for episode normalization."""

import time

import feedparser
import pytest

from conftest import make_item
from rss_tv.services.episode_normalizer import (
    ELLIPSIS,
    UNTITLED,
    infer_kind,
    normalize_episodes,
    pick_image_url,
    pick_media,
    published_at,
    strip_html_tags,
    to_https,
    truncate_text,
)


class TestInferKind:
    """Tests for audio/video inference."""

    def test_audio_mime(self) -> None:
        """Test audio/* MIME type means audio."""
        assert infer_kind("a.mp3", "audio/mpeg") == "audio"

    def test_mime_beats_extension(self) -> None:
        """Test explicit MIME type wins over the extension."""
        assert infer_kind("https://x.example/clip.mp3", "video/mp4") == "video"
        assert infer_kind("https://x.example/clip.mp4", "Audio/MP4") == "audio"

    @pytest.mark.parametrize(
        "url",
        [
            "a.mp4",
            "https://x.example/show.webm",
            "https://x.example/SHOW.MOV?token=1",
            "https://x.example/v.mp4#t=10",
            "https://x.example/live/index.m3u8",
            "https://x.example/hls.m3u8?session=abc",
        ],
    )
    def test_video_extensions(self, url: str) -> None:
        """Test video extensions and HLS playlists map to video."""
        assert infer_kind(url, "") == "video"

    @pytest.mark.parametrize(
        "url",
        ["a.mp3", "https://x.example/ep.m4a?dl=1", "https://x.example/ep.aac", "x.ogg", "x.wav#end"],
    )
    def test_audio_extensions(self, url: str) -> None:
        """Test audio extensions map to audio."""
        assert infer_kind(url, "") == "audio"

    def test_extension_must_end_path(self) -> None:
        """Test .mp4 in the middle of a path does not count."""
        assert infer_kind("https://x.example/mp4.files/episode", "") == "audio"

    def test_default_is_audio(self) -> None:
        """Test unknown media defaults to audio."""
        assert infer_kind("https://x.example/stream", "") == "audio"
        assert infer_kind("", "") == "audio"


class TestPickMedia:
    """Tests for media selection priority."""

    def test_enclosure_first(self) -> None:
        """Test the enclosure wins over media:content and link."""
        item = {
            "enclosures": [{"href": "https://x.example/a.mp3", "type": "audio/mpeg"}],
            "media_content": [{"url": "https://x.example/b.mp4", "type": "video/mp4"}],
            "link": "https://x.example/page",
        }
        assert pick_media(item) == ("https://x.example/a.mp3", "audio/mpeg")

    def test_media_content_second(self) -> None:
        """Test media:content is used without an enclosure."""
        item = {
            "media_content": [{"url": "https://x.example/b.mp4", "type": "video/mp4"}, {"url": "c"}],
            "link": "https://x.example/page",
        }
        assert pick_media(item) == ("https://x.example/b.mp4", "video/mp4")

    def test_link_fallback_has_no_type(self) -> None:
        """Test the entry link is the last resort."""
        assert pick_media({"link": "https://x.example/page"}) == ("https://x.example/page", "")

    def test_nothing_available(self) -> None:
        """Test an empty entry yields an empty URL."""
        assert pick_media({}) == ("", "")

    @pytest.mark.parametrize("enclosures", [5, "a.mp3", {"href": "a.mp3"}, None])
    def test_non_list_enclosures_ignored(self, enclosures) -> None:
        """Test an enclosures field that is not a list falls through to the link."""
        item = {"enclosures": enclosures, "link": "https://x.example/e.mp3"}
        assert pick_media(item) == ("https://x.example/e.mp3", "")

    def test_enclosure_without_url_skipped(self) -> None:
        """Test enclosures lacking a URL fall through."""
        item = {"enclosures": [{"type": "audio/mpeg"}], "media_content": [{"url": "m.mp3"}]}
        assert pick_media(item) == ("m.mp3", "")


class TestPickImage:
    """Tests for artwork selection."""

    def test_thumbnail_first(self) -> None:
        """Test media:thumbnail wins and is upgraded to https."""
        item = {
            "media_thumbnail": [{"url": "http://x.example/t.jpg"}],
            "image": {"href": "https://x.example/i.jpg"},
        }
        assert pick_image_url(item) == "https://x.example/t.jpg"

    def test_itunes_image_mapping(self) -> None:
        """Test itunes:image as a mapping with href or url."""
        assert pick_image_url({"image": {"href": "http://x.example/i.jpg"}}) == "https://x.example/i.jpg"
        assert pick_image_url({"itunes_image": {"url": "https://x.example/u.jpg"}}) == "https://x.example/u.jpg"

    def test_itunes_image_string(self) -> None:
        """Test itunes:image given as a bare string."""
        assert pick_image_url({"itunes_image": "http://x.example/s.jpg"}) == "https://x.example/s.jpg"

    def test_no_image(self) -> None:
        """Test missing artwork yields an empty string."""
        assert pick_image_url({"image": {}}) == ""


class TestText:
    """Tests for description cleanup."""

    def test_strip_tags_and_whitespace(self) -> None:
        """Test markup is removed and whitespace collapsed."""
        assert strip_html_tags("<p>Hello\n\n  <b>world</b></p>") == "Hello world"

    def test_entities_decoded(self) -> None:
        """Test HTML entities are decoded."""
        assert strip_html_tags("Tom &amp; Jerry") == "Tom & Jerry"

    def test_truncate_exact_budget(self) -> None:
        """Test long text is cut to exactly the budget plus an ellipsis."""
        html = "<div>" + "<span>abcdefghij</span>" * 50 + "</div>"
        result = truncate_text(html, 340)
        assert len(result) == 340 + len(ELLIPSIS)
        assert result.endswith(ELLIPSIS)
        assert "<" not in result and ">" not in result

    def test_short_text_untouched(self) -> None:
        """Test text within budget has no ellipsis."""
        assert truncate_text("<p>short</p>", 340) == "short"

    def test_empty(self) -> None:
        """Test empty or missing text."""
        assert truncate_text(None, 10) == ""
        assert strip_html_tags("") == ""

    def test_to_https(self) -> None:
        """Test only the http scheme prefix is rewritten."""
        assert to_https("http://x.example/a?next=http://y") == "https://x.example/a?next=http://y"
        assert to_https("https://x.example/") == "https://x.example/"
        assert to_https("") == ""


class TestPublishedAt:
    """Tests for date selection."""

    def test_parsed_date_becomes_iso(self) -> None:
        """Test machine-parseable dates are emitted as ISO-8601 UTC."""
        item = {
            "published": "Mon, 04 Mar 2024 10:00:00 GMT",
            "published_parsed": time.struct_time((2024, 3, 4, 10, 0, 0, 0, 64, 0)),
        }
        assert published_at(item) == "2024-03-04T10:00:00+00:00"

    def test_raw_date_passthrough(self) -> None:
        """Test unparseable dates are passed through unchanged."""
        assert published_at({"published": "Sometime in spring"}) == "Sometime in spring"

    def test_updated_fallback(self) -> None:
        """Test Atom updated dates are used when published is missing."""
        item = {"updated_parsed": time.struct_time((2023, 12, 31, 23, 59, 0, 6, 365, 0))}
        assert published_at(item) == "2023-12-31T23:59:00+00:00"

    def test_no_date(self) -> None:
        """Test missing dates yield an empty string."""
        assert published_at({}) == ""


class TestNormalizeEpisodes:
    """Tests for the full item -> episode mapping."""

    def test_audio_enclosure(self) -> None:
        """Test an audio enclosure produces an audio episode."""
        items = [{"title": "A", "enclosures": [{"url": "a.mp3", "type": "audio/mpeg"}]}]
        [episode] = normalize_episodes(items, limit=100, description_chars=340)
        assert episode.kind == "audio"
        assert episode.mediaUrl == "a.mp3"
        assert episode.mediaType == "audio/mpeg"

    def test_video_by_extension(self) -> None:
        """Test an untyped .mp4 enclosure is inferred as video."""
        items = [{"enclosures": [{"url": "a.mp4", "type": ""}]}]
        [episode] = normalize_episodes(items, limit=100, description_chars=340)
        assert episode.kind == "video"
        assert episode.title == UNTITLED

    def test_item_without_media_dropped(self) -> None:
        """Test an entry with no enclosure, media:content or link is filtered out."""
        items = [{"title": "No media", "link": ""}, make_item(1)]
        episodes = normalize_episodes(items, limit=100, description_chars=340)
        assert [e.title for e in episodes] == ["Episode 1"]
        assert episodes[0].id == 0

    def test_ids_follow_filtered_positions(self) -> None:
        """Test ids are consecutive after filtering."""
        items = [make_item(0), make_item(1, with_media=False), make_item(2)]
        episodes = normalize_episodes(items, limit=100, description_chars=340)
        assert [(e.id, e.title) for e in episodes] == [(0, "Episode 0"), (1, "Episode 2")]

    def test_limit_applied_before_filter(self) -> None:
        """Test 150 items with limit 100 keep the first 100 in order."""
        items = [make_item(i) for i in range(150)]
        episodes = normalize_episodes(items, limit=100, description_chars=340)
        assert len(episodes) == 100
        assert [e.title for e in episodes] == [f"Episode {i}" for i in range(100)]

    def test_limit_with_gaps_yields_fewer(self) -> None:
        """Test dropped items inside the limit are not backfilled."""
        items = [make_item(i, with_media=i % 10 != 0) for i in range(150)]
        episodes = normalize_episodes(items, limit=100, description_chars=340)
        assert len(episodes) == 90
        assert episodes[-1].title == "Episode 99"

    def test_media_url_upgraded_to_https(self) -> None:
        """Test http media URLs are rewritten while kind uses the original URL."""
        items = [{"enclosures": [{"href": "http://cdn.example/ep.mp4"}]}]
        [episode] = normalize_episodes(items, limit=10, description_chars=340)
        assert episode.mediaUrl == "https://cdn.example/ep.mp4"
        assert episode.kind == "video"

    def test_description_budget_is_a_parameter(self) -> None:
        """Test the caller decides the description budget."""
        items = [{"summary": "x" * 500, "link": "https://a.example/e.mp3"}]
        short = normalize_episodes(items, limit=10, description_chars=340)[0]
        long = normalize_episodes(items, limit=10, description_chars=1000)[0]
        assert short.description == "x" * 340 + ELLIPSIS
        assert long.description == "x" * 500

    def test_content_preferred_over_summary(self) -> None:
        """Test content:encoded is preferred for the description."""
        items = [{
            "content": [{"value": "<p>Full <b>notes</b></p>"}],
            "summary": "Short",
            "link": "https://a.example/e.mp3",
        }]
        assert normalize_episodes(items, 10, 340)[0].description == "Full notes"

    def test_malformed_fields_do_not_raise(self) -> None:
        """Test odd shapes degrade to defaults."""
        items = [
            None,
            "not an entry",
            {"title": ["Listed title"], "enclosures": None, "media_content": "bogus",
             "link": "https://a.example/e.mp3", "itunes_duration": 120},
        ]
        [episode] = normalize_episodes(items, limit=10, description_chars=340)
        assert episode.title == "Listed title"
        assert episode.duration == "120"
        assert episode.imageUrl == ""

    def test_empty_feed(self) -> None:
        """Test an empty item list is a valid, empty result."""
        assert normalize_episodes([], limit=100, description_chars=340) == []

    def test_parsed_feed_document(self, podcast_rss: bytes) -> None:
        """Test entries straight from feedparser."""
        parsed = feedparser.parse(podcast_rss)
        episodes = normalize_episodes(parsed.entries, limit=100, description_chars=340)

        assert [e.title for e in episodes] == ["Episode 2: Video special", "Episode 1: Pilot"]

        video, audio = episodes
        assert video.kind == "video"
        assert video.mediaUrl == "https://cdn.example.com/ep2.mp4"
        assert video.imageUrl == "https://cdn.example.com/ep2.jpg"
        assert video.duration == "45:00"
        assert video.description == "Watch the special"
        assert video.date == "2024-03-05T10:00:00+00:00"

        assert audio.kind == "audio"
        assert audio.mediaUrl == "https://cdn.example.com/ep1.mp3"
        assert audio.imageUrl == "https://cdn.example.com/ep1-thumb.jpg"
        assert audio.link == "https://nightshift.example.com/ep1"
