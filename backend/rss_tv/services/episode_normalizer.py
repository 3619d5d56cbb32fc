"""
Episode normalization.

Maps raw feedparser entries onto the strict Episode shape. Every field of a
raw entry may be missing, wrapped in a list, or of an unexpected type; all of
that is absorbed here and nothing optional leaks past normalize_episodes().
"""

import logging
import re
from datetime import datetime, timezone
from html.parser import HTMLParser
from typing import Any, Iterable, List, Mapping, Tuple

from rss_tv.schemas.episodes import Episode

logger = logging.getLogger(__name__)

UNTITLED = "Untitled Episode"
ELLIPSIS = "…"

_VIDEO_EXT = re.compile(r"\.(mp4|webm|mov)(\?|#|$)")
_AUDIO_EXT = re.compile(r"\.(mp3|m4a|aac|ogg|wav)(\?|#|$)")


class HTMLStripper(HTMLParser):
    """Strip HTML tags and decode entities."""

    def __init__(self):
        super().__init__()
        self.reset()
        self.fed = []

    def handle_data(self, data):
        self.fed.append(data)

    def get_data(self):
        return ''.join(self.fed)


def strip_html_tags(html: Any) -> str:
    """
    Strip HTML tags and normalize whitespace.

    Args:
        html: HTML string

    Returns:
        Plain text with normalized whitespace
    """
    if not html:
        return ''

    stripper = HTMLStripper()
    stripper.feed(str(html))
    stripper.close()
    text = stripper.get_data()

    return re.sub(r'\s+', ' ', text).strip()


def truncate_text(text: Any, max_length: int) -> str:
    """
    Strip markup and cut to ``max_length`` characters.

    Examples:
        truncate_text("<p>Hello   world</p>", 5) -> "Hello…"
        truncate_text("short", 340) -> "short"
    """
    plain = strip_html_tags(text)
    if len(plain) <= max_length:
        return plain
    return plain[:max_length] + ELLIPSIS


def to_https(url: Any) -> str:
    """Rewrite http:// to https:// so the page never loads mixed content."""
    if not url:
        return ''
    url = str(url)
    if url.startswith("http://"):
        return "https://" + url[len("http://"):]
    return url


def _first(value: Any) -> Any:
    """feedparser sometimes gives a list where a single value was expected."""
    if isinstance(value, (list, tuple)):
        return value[0] if value else None
    return value


def _text(value: Any) -> str:
    value = _first(value)
    if value is None:
        return ''
    if isinstance(value, Mapping):
        value = value.get('value', '')
    return str(value).strip()


def pick_media(item: Mapping[str, Any]) -> Tuple[str, str]:
    """
    Pick the playable media reference of an entry.

    Priority:
    1. enclosure
    2. first media:content
    3. the entry link (type unknown)

    Returns:
        (url, mime type)
    """
    enclosures = item.get('enclosures')
    if not isinstance(enclosures, (list, tuple)):
        enclosures = []
    for enc in enclosures:
        if isinstance(enc, Mapping):
            url = enc.get('href') or enc.get('url')
            if url:
                return str(url), str(enc.get('type') or '')

    content = _first(item.get('media_content'))
    if isinstance(content, Mapping) and content.get('url'):
        return str(content['url']), str(content.get('type') or '')

    return _text(item.get('link')), ''


def infer_kind(media_url: str, media_type: str) -> str:
    """
    Decide whether a media reference is audio or video.

    Explicit MIME type wins; otherwise the URL extension decides; feeds
    without either are overwhelmingly podcasts, so the default is audio.
    """
    u = (media_url or '').lower()
    t = (media_type or '').lower()

    if t.startswith('video/'):
        return 'video'
    if t.startswith('audio/'):
        return 'audio'

    if '.m3u8' in u:  # HLS
        return 'video'
    if _VIDEO_EXT.search(u):
        return 'video'
    if _AUDIO_EXT.search(u):
        return 'audio'

    return 'audio'


def pick_image_url(item: Mapping[str, Any]) -> str:
    """
    Extract episode artwork.

    Priority:
    1. media:thumbnail
    2. itunes:image (string, or mapping with href/url)
    """
    thumb = _first(item.get('media_thumbnail'))
    if isinstance(thumb, Mapping) and thumb.get('url'):
        return to_https(thumb['url'])

    for key in ('itunes_image', 'image'):
        image = _first(item.get(key))
        if not image:
            continue
        if isinstance(image, str):
            return to_https(image)
        if isinstance(image, Mapping):
            url = image.get('href') or image.get('url')
            if url:
                return to_https(url)

    return ''


def published_at(item: Mapping[str, Any]) -> str:
    """
    ISO-8601 publish time when the feed date was machine-parseable,
    otherwise the raw date string as the feed wrote it.
    """
    for key in ('published_parsed', 'updated_parsed'):
        parsed = item.get(key)
        if parsed:
            try:
                return datetime(*parsed[:6], tzinfo=timezone.utc).isoformat()
            except (TypeError, ValueError):
                pass

    return _text(item.get('published')) or _text(item.get('updated'))


def extract_description(item: Mapping[str, Any]) -> str:
    """
    Raw description markup.

    Priority:
    1. content field (content:encoded)
    2. summary field
    3. description field
    """
    content = _text(item.get('content'))
    if content:
        return content
    return _text(item.get('summary')) or _text(item.get('description'))


def normalize_episodes(
    items: Iterable[Mapping[str, Any]],
    limit: int,
    description_chars: int,
) -> List[Episode]:
    """
    Turn raw feed entries into playable episodes.

    Args:
        items: Raw entries in feed order
        limit: Maximum number of entries considered (applied before filtering)
        description_chars: Description budget in characters

    Returns:
        Episodes in feed order; entries without a media URL are dropped and
        ids are assigned after dropping
    """
    episodes: List[Episode] = []
    considered = list(items or [])[:max(limit, 0)]

    for item in considered:
        if not isinstance(item, Mapping):
            continue

        media_url, media_type = pick_media(item)
        if not media_url:
            continue

        episodes.append(Episode(
            id=len(episodes),
            title=_text(item.get('title')) or UNTITLED,
            date=published_at(item),
            description=truncate_text(extract_description(item), description_chars),
            mediaUrl=to_https(media_url),
            mediaType=media_type,
            kind=infer_kind(media_url, media_type),
            imageUrl=pick_image_url(item),
            duration=_text(item.get('itunes_duration')),
            link=_text(item.get('link')),
        ))

    dropped = len(considered) - len(episodes)
    if dropped:
        logger.debug(f"Dropped {dropped} item(s) without playable media")
    return episodes
