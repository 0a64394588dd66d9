"""Data models for RSS Reader."""

import re
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from urllib.parse import parse_qs, unquote, urlparse

IMAGE_EXTENSIONS = (".jpg", ".jpeg", ".png", ".gif", ".webp")
IMAGE_LINK_PATTERN = re.compile(
    r"(https?://\S+\.(?:jpg|jpeg|png|gif|webp)(\?\S+)?)", re.IGNORECASE
)
LINK_PATTERN = re.compile(r"(https?://\S+)", re.IGNORECASE)
PLACEHOLDER_THUMBNAILS = {"", "self", "default", "nsfw"}


def _unescape_amp(url: str) -> str:
    return url.replace("&amp;", "&")


def first_inline_image_url(text: str) -> str | None:
    """Return the first image link found in plain text, if any."""
    if not text:
        return None
    match = IMAGE_LINK_PATTERN.search(text)
    if match:
        return _unescape_amp(match.group(0))
    return None


class SubscriptionType(str, Enum):
    """Kind of subscribed source."""

    RSS = "rss"
    REDDIT = "reddit"


class SortOption(str, Enum):
    """Subreddit listing order."""

    HOT = "hot"
    NEW = "new"


class CommentSentiment(str, Enum):
    """Overall tone of a discussion thread."""

    POSITIVE = "positive"
    NEGATIVE = "negative"
    NEUTRAL = "neutral"
    MIXED = "mixed"


@dataclass
class Subscription:
    """A subscribed feed or subreddit."""

    title: str
    url: str
    type: SubscriptionType = SubscriptionType.RSS


@dataclass
class Article:
    """Represents a single normalized feed article."""

    id: str
    title: str
    content: str
    url: str | None
    publish_date: datetime
    feed_title: str
    feed_url: str
    author: str | None = None
    image_url: str | None = None
    is_read: bool = False
    is_favorite: bool = False
    summary: str | None = None
    domain_icon: str | None = None


@dataclass
class Feed:
    """A syndication source and its articles."""

    title: str
    url: str
    description: str | None = None
    image_url: str | None = None
    articles: list[Article] = field(default_factory=list)


@dataclass
class PreviewImage:
    """Source and resolution URLs of a reddit preview image."""

    source_url: str
    resolution_urls: list[str] = field(default_factory=list)


@dataclass
class MediaItem:
    """One entry of a reddit post's media_metadata."""

    media_id: str
    status: str
    source_url: str | None = None
    resolution_urls: list[str] = field(default_factory=list)


@dataclass
class RedditPost:
    """Represents a single subreddit post."""

    id: str
    title: str
    content: str
    url: str | None
    publish_date: datetime
    author: str
    subreddit: str
    score: int = 0
    comment_count: int = 0
    is_read: bool = False
    is_favorite: bool = False
    summary: str | None = None
    thumbnail: str | None = None
    preview: list[PreviewImage] = field(default_factory=list)
    media_metadata: dict[str, MediaItem] = field(default_factory=dict)
    gallery_items: list[str] = field(default_factory=list)

    def _gallery_urls(self, full_size_only: bool) -> list[str]:
        urls = []
        for media_id in self.gallery_items:
            item = self.media_metadata.get(media_id)
            if item is None or item.status != "valid":
                continue
            if item.source_url:
                urls.append(_unescape_amp(item.source_url))
            elif not full_size_only and item.resolution_urls:
                urls.append(_unescape_amp(item.resolution_urls[0]))
        return urls

    def _direct_image_url(self) -> str | None:
        if self.url and self.url.lower().endswith(IMAGE_EXTENSIONS):
            return self.url
        return None

    def _reddit_media_url(self) -> str | None:
        if not self.url or "reddit.com/media" not in self.url:
            return None
        values = parse_qs(urlparse(self.url).query).get("url")
        if values and values[0]:
            return unquote(values[0])
        return None

    def _thumbnail_url(self) -> str | None:
        if self.thumbnail is None or self.thumbnail in PLACEHOLDER_THUMBNAILS:
            return None
        return self.thumbnail

    @property
    def best_image_url(self) -> str | None:
        """Best available image, searched in a fixed priority order."""
        if self.preview:
            return _unescape_amp(self.preview[0].source_url)

        gallery = self._gallery_urls(full_size_only=False)
        if gallery:
            return gallery[0]

        for candidate in (
            self._direct_image_url(),
            self._reddit_media_url(),
            self._thumbnail_url(),
            first_inline_image_url(self.content),
        ):
            if candidate:
                return candidate
        return None

    @property
    def all_image_urls(self) -> list[str]:
        """All candidate image URLs, de-duplicated, in priority order."""
        candidates = []
        if self.preview:
            candidates.append(_unescape_amp(self.preview[0].source_url))
        candidates.extend(self._gallery_urls(full_size_only=True))
        candidates.extend(
            [
                self._direct_image_url(),
                self._reddit_media_url(),
                self._thumbnail_url(),
                first_inline_image_url(self.content),
            ]
        )

        urls: list[str] = []
        for candidate in candidates:
            if candidate and candidate not in urls:
                urls.append(candidate)
        return urls

    @property
    def clean_preview_text(self) -> str:
        """Short plain-text preview with links replaced by placeholders."""
        text = re.sub(r"<[^>]+>", "", self.content or "")
        text = IMAGE_LINK_PATTERN.sub("[IMAGE]", text)
        text = LINK_PATTERN.sub("[LINK]", text)
        text = re.sub(r"\s+", " ", text).strip()
        if len(text) > 140:
            text = text[:140] + "..."
        return text


@dataclass
class RedditFeed:
    """A subreddit listing."""

    subreddit: str
    display_name: str
    description: str | None = None
    icon_url: str | None = None
    posts: list[RedditPost] = field(default_factory=list)


@dataclass
class RedditComment:
    """A comment in a discussion thread."""

    id: str
    author: str
    body: str
    score: int
    created_utc: float
    replies: list["RedditComment"] = field(default_factory=list)
    indentation_level: int = 0

    @property
    def created_date(self) -> datetime:
        return datetime.fromtimestamp(self.created_utc, UTC)

    @property
    def image_urls(self) -> list[str]:
        """Image links mentioned in the comment body."""
        return [
            _unescape_amp(match.group(0))
            for match in IMAGE_LINK_PATTERN.finditer(self.body)
        ]

    @property
    def non_image_links(self) -> list[str]:
        """Links in the comment body that do not point at an image."""
        links = []
        for match in LINK_PATTERN.finditer(self.body):
            url = match.group(0)
            path = url.lower().split("?")[0]
            if path.endswith(IMAGE_EXTENSIONS):
                continue
            links.append(url)
        return links

    @property
    def cleaned_body(self) -> str:
        text = IMAGE_LINK_PATTERN.sub("[IMAGE]", self.body)
        text = LINK_PATTERN.sub("[LINK]", text)
        return text.strip()


@dataclass
class CommentSummary:
    """AI summary of a discussion thread. Owned by the caller, never persisted."""

    post_id: str
    summary: str
    comment_count: int
    top_commenters: list[str]
    main_topics: list[str]
    sentiment: CommentSentiment
    created_date: datetime
    subreddit: str = ""
