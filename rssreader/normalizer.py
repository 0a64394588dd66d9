"""Feed normalization: RSS, Atom and JSON Feed documents into Feed/Article."""

import io
import json
import uuid
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum
from typing import Any
from urllib.parse import urlparse

import feedparser
from dateutil import parser as date_parser

from .html_sanitizer import (
    TRACKER_IMAGE_MARKERS,
    extract_all_image_urls,
    extract_first_image,
    rewrite_images,
    to_plain_text,
)
from .logging_config import create_execution_logger
from .models import Article, Feed

UNKNOWN_FEED_TITLE = "Unknown Feed"

# Publishers whose pubDate is unreliable; their dc:date is preferred
DATE_CORRECTION_HOSTS = ("9to5mac.com",)

ALTERNATE_DATE_FORMATS = (
    "%Y-%m-%dT%H:%M:%S%z",
    "%Y-%m-%dT%H:%M:%SZ",
    "%a, %d %b %Y %H:%M:%S %z",
    "%Y-%m-%dT%H:%M:%S.%f%z",
)


class FeedParseError(Exception):
    """Raised when a response body is not a recognizable feed."""


class FeedFormat(str, Enum):
    RSS = "rss"
    ATOM = "atom"
    JSON = "json"


@dataclass
class FeedDocument:
    """A parsed feed, tagged with its format.

    ``data`` is a feedparser result for RSS/Atom and the decoded JSON object
    for JSON Feed.
    """

    format: FeedFormat
    data: Any


def parse_document(raw: bytes | str) -> FeedDocument:
    """Parse a raw feed body into a tagged FeedDocument.

    Raises:
        FeedParseError: If the body is neither XML feed nor JSON Feed
    """
    if isinstance(raw, str):
        raw = raw.encode("utf-8")

    body = raw.lstrip(b"\xef\xbb\xbf \t\r\n")
    if body.startswith(b"{"):
        try:
            data = json.loads(body.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise FeedParseError(f"Invalid JSON feed: {e}") from e
        if not isinstance(data, dict) or "jsonfeed.org" not in str(data.get("version", "")):
            raise FeedParseError("JSON document is not a JSON Feed")
        return FeedDocument(FeedFormat.JSON, data)

    # Markup is passed through untouched; images are rewritten afterwards
    parsed = feedparser.parse(
        io.BytesIO(body), sanitize_html=False, resolve_relative_uris=False
    )
    if not parsed.get("version") and not parsed.get("entries"):
        reason = parsed.get("bozo_exception", "unrecognized feed format")
        raise FeedParseError(f"Could not parse feed: {reason}")

    if parsed.get("version", "").startswith("atom"):
        return FeedDocument(FeedFormat.ATOM, parsed)
    return FeedDocument(FeedFormat.RSS, parsed)


def parse_date(value: Any) -> datetime | None:
    """Parse a feed date string, returning an aware datetime or None."""
    if not value or not isinstance(value, str):
        return None
    try:
        parsed = date_parser.parse(value)
    except (ValueError, TypeError, OverflowError):
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def parse_alternate_date(value: Any) -> datetime | None:
    """Parse value with the fixed list of formats, first success wins."""
    if not value or not isinstance(value, str):
        return None
    for date_format in ALTERNATE_DATE_FORMATS:
        try:
            parsed = datetime.strptime(value.strip(), date_format)
        except ValueError:
            continue
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=UTC)
        return parsed
    return None


def _str_or_none(value: Any) -> str | None:
    return value if isinstance(value, str) and value else None


def url_host(url: str | None) -> str | None:
    if not isinstance(url, str) or not url:
        return None
    try:
        host = urlparse(url).hostname
    except ValueError:
        return None
    return host or None


def _own_value(entry: Any, key: str) -> Any:
    """Read key without feedparser's updated -> published fallback."""
    if isinstance(entry, dict) and dict.__contains__(entry, key):
        return dict.__getitem__(entry, key)
    return None


def _markup_image(html: str) -> str | None:
    """First image URL found by pattern search, for markup without a usable img."""
    for url in extract_all_image_urls(html):
        if url.startswith(("http://", "https://")) and not any(
            marker in url for marker in TRACKER_IMAGE_MARKERS
        ):
            return url
    return None


def _first_value(items: Any, key: str) -> str | None:
    """Return items[0][key] for a feedparser list field, if non-empty."""
    if not items:
        return None
    first = items[0]
    value = first.get(key) if hasattr(first, "get") else None
    return value or None


class FeedNormalizer:
    """Maps parsed feed documents into the canonical Feed model."""

    def __init__(self, execution_id: str | None = None):
        self.logger = create_execution_logger("normalizer", execution_id)

    def normalize(self, document: FeedDocument, url: str) -> Feed:
        """Normalize a parsed document fetched from url."""
        if document.format is FeedFormat.JSON:
            return self.normalize_json(document.data, url)
        if document.format is FeedFormat.ATOM:
            return self.normalize_atom(document.data, url)
        return self.normalize_rss(document.data, url)

    def _map_items(self, items: list, url: str, mapper) -> list[Article]:
        articles = []
        for item in items or []:
            try:
                article = mapper(item)
            except Exception as e:
                self.logger.warning(
                    f"Failed to normalize entry from {url}: {e}",
                    feed_url=url,
                    error=str(e),
                )
                continue
            if article is not None:
                articles.append(article)

        dropped = len(items or []) - len(articles)
        if dropped:
            self.logger.debug(
                f"Dropped {dropped} entries without usable title",
                feed_url=url,
                dropped=dropped,
            )
        return articles

    def _build_article(
        self,
        *,
        raw_title: str | None,
        html_content: str,
        link: str | None,
        item_id: str | None,
        publish_date: datetime,
        author: str | None,
        image_url: str | None,
        feed_title: str,
        feed_url: str,
    ) -> Article | None:
        title = to_plain_text(raw_title) if raw_title else ""
        if not title:
            return None

        if not image_url and html_content:
            image_url = extract_first_image(html_content) or _markup_image(html_content)

        return Article(
            id=item_id or str(uuid.uuid4()),
            title=title,
            content=rewrite_images(html_content or ""),
            url=link or None,
            publish_date=publish_date,
            author=author or None,
            feed_title=feed_title,
            feed_url=feed_url,
            image_url=image_url or None,
            domain_icon=url_host(link),
        )

    def correct_publisher_date(
        self, link: str | None, alternate: Any, publish_date: datetime
    ) -> datetime:
        """Prefer the alternate date field for publishers with unreliable pubDate."""
        host = url_host(link) or ""
        if not any(host == known or host.endswith("." + known) for known in DATE_CORRECTION_HOSTS):
            return publish_date

        if isinstance(alternate, datetime):
            return alternate if alternate.tzinfo else alternate.replace(tzinfo=UTC)

        corrected = parse_alternate_date(alternate)
        if corrected is None:
            self.logger.debug(
                "Alternate date could not be parsed, keeping original",
                article_url=link,
                alternate=str(alternate),
            )
            return publish_date
        return corrected

    def normalize_rss(self, parsed: Any, url: str) -> Feed:
        channel = parsed.get("feed", {})
        feed_title = to_plain_text(channel.get("title")) or UNKNOWN_FEED_TITLE
        image = channel.get("image") or {}

        def map_item(entry: Any) -> Article | None:
            html_content = _first_value(entry.get("content"), "value") or entry.get(
                "summary", ""
            ) or ""

            image_url = _first_value(entry.get("enclosures"), "href") or _first_value(
                entry.get("media_content"), "url"
            )

            link = entry.get("link")
            publish_date = parse_date(entry.get("published")) or datetime.now(UTC)
            publish_date = self.correct_publisher_date(
                link, _own_value(entry, "updated"), publish_date
            )

            return self._build_article(
                raw_title=entry.get("title"),
                html_content=html_content,
                link=link,
                item_id=entry.get("id"),
                publish_date=publish_date,
                author=entry.get("author"),
                image_url=image_url,
                feed_title=feed_title,
                feed_url=url,
            )

        description = channel.get("subtitle") or channel.get("description")
        return Feed(
            title=feed_title,
            url=url,
            description=to_plain_text(description) if description else None,
            image_url=image.get("href") or image.get("url") or None,
            articles=self._map_items(parsed.get("entries"), url, map_item),
        )

    def normalize_atom(self, parsed: Any, url: str) -> Feed:
        header = parsed.get("feed", {})
        feed_title = to_plain_text(header.get("title")) or UNKNOWN_FEED_TITLE
        image = header.get("image") or {}

        def map_item(entry: Any) -> Article | None:
            html_content = _first_value(entry.get("content"), "value") or entry.get(
                "summary", ""
            ) or ""
            link = entry.get("link") or _first_value(entry.get("links"), "href")
            publish_date = (
                parse_date(entry.get("published"))
                or parse_date(_own_value(entry, "updated"))
                or datetime.now(UTC)
            )

            # Atom has no structured image field; content is the only source
            return self._build_article(
                raw_title=entry.get("title"),
                html_content=html_content,
                link=link,
                item_id=entry.get("id"),
                publish_date=publish_date,
                author=entry.get("author"),
                image_url=None,
                feed_title=feed_title,
                feed_url=url,
            )

        subtitle = header.get("subtitle")
        return Feed(
            title=feed_title,
            url=url,
            description=to_plain_text(subtitle) if subtitle else None,
            image_url=header.get("logo") or image.get("href") or None,
            articles=self._map_items(parsed.get("entries"), url, map_item),
        )

    def normalize_json(self, data: dict, url: str) -> Feed:
        feed_title = to_plain_text(_str_or_none(data.get("title"))) or UNKNOWN_FEED_TITLE

        def map_item(item: dict) -> Article | None:
            if not isinstance(item, dict):
                return None
            html_content = (
                _str_or_none(item.get("content_html"))
                or _str_or_none(item.get("content_text"))
                or _str_or_none(item.get("summary"))
                or ""
            )

            # Optional fields of the wrong type are ignored, never fatal
            author = item.get("author")
            authors = item.get("authors")
            if not isinstance(author, dict) and isinstance(authors, list) and authors:
                author = authors[0]

            publish_date = (
                parse_date(item.get("date_published"))
                or parse_date(item.get("date_modified"))
                or datetime.now(UTC)
            )

            item_id = item.get("id")
            return self._build_article(
                raw_title=_str_or_none(item.get("title")),
                html_content=html_content,
                link=_str_or_none(item.get("url")) or _str_or_none(item.get("external_url")),
                item_id=str(item_id) if item_id is not None else None,
                publish_date=publish_date,
                author=_str_or_none(author.get("name")) if isinstance(author, dict) else None,
                image_url=_str_or_none(item.get("image")) or _str_or_none(item.get("banner_image")),
                feed_title=feed_title,
                feed_url=url,
            )

        description = _str_or_none(data.get("description"))
        items = data.get("items")
        return Feed(
            title=feed_title,
            url=url,
            description=to_plain_text(description) if description else None,
            image_url=_str_or_none(data.get("icon")),
            articles=self._map_items(items if isinstance(items, list) else [], url, map_item),
        )
