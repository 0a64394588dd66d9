"""Reddit listing and comment retrieval over the public JSON endpoints."""

import re
import threading
import time
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

import requests

from .comments import (
    CommentListing,
    CommentParseError,
    CommentTreeParser,
    FullCommentTreeParser,
    split_listing,
)
from .config import HttpConfig, RedditConfig
from .logging_config import create_execution_logger
from .models import MediaItem, PreviewImage, RedditComment, RedditFeed, RedditPost, SortOption

INVALID_SUBREDDIT_TITLE = "Invalid Subreddit"
ERROR_SUBREDDIT_TITLE = "Error Loading Subreddit"
UNKNOWN_AUTHOR = "Unknown"

SUBREDDIT_NAME_PATTERN = re.compile(r"^[A-Za-z0-9_]{1,50}$")


def subreddit_name(value: str | None) -> str:
    """Reduce "swift", "r/swift" or a subreddit URL to the bare name."""
    name = (value or "").strip()
    if "/r/" in name:
        name = name.split("/r/", 1)[1]
    elif name.startswith("r/"):
        name = name[2:]
    return name.strip("/").split("/", 1)[0]


def _int_or_zero(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0
    return int(value)


def _str_or_none(value: Any) -> str | None:
    return value if isinstance(value, str) and value else None


def _timestamp(value: Any) -> datetime:
    """Epoch seconds to an aware datetime; unusable values become the epoch."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        value = 0
    try:
        return datetime.fromtimestamp(value, UTC)
    except (OverflowError, OSError, ValueError):
        return datetime.fromtimestamp(0, UTC)


def _preview_images(data: dict) -> list[PreviewImage]:
    preview = data.get("preview")
    images = preview.get("images") if isinstance(preview, dict) else None
    result = []
    for image in images or []:
        if not isinstance(image, dict):
            continue
        source = image.get("source") or {}
        source_url = _str_or_none(source.get("url")) if isinstance(source, dict) else None
        if not source_url:
            continue
        resolutions = [
            resolution["url"]
            for resolution in image.get("resolutions") or []
            if isinstance(resolution, dict) and _str_or_none(resolution.get("url"))
        ]
        result.append(PreviewImage(source_url=source_url, resolution_urls=resolutions))
    return result


def _media_metadata(data: dict) -> dict[str, MediaItem]:
    metadata = data.get("media_metadata")
    if not isinstance(metadata, dict):
        return {}

    items = {}
    for media_id, meta in metadata.items():
        if not isinstance(meta, dict):
            continue
        source = meta.get("s") if isinstance(meta.get("s"), dict) else {}
        items[media_id] = MediaItem(
            media_id=media_id,
            status=meta.get("status") or "",
            source_url=_str_or_none(source.get("u")),
            resolution_urls=[
                p["u"]
                for p in meta.get("p") or []
                if isinstance(p, dict) and _str_or_none(p.get("u"))
            ],
        )
    return items


def _gallery_items(data: dict) -> list[str]:
    gallery = data.get("gallery_data")
    items = gallery.get("items") if isinstance(gallery, dict) else None
    return [
        item["media_id"]
        for item in items or []
        if isinstance(item, dict) and _str_or_none(item.get("media_id"))
    ]


def post_from_listing(data: Any, subreddit: str) -> RedditPost | None:
    """Map one listing child's ``data`` record, or None without id/title."""
    if not isinstance(data, dict):
        return None
    post_id = _str_or_none(data.get("id"))
    title = _str_or_none(data.get("title"))
    if not post_id or not title:
        return None

    selftext = data.get("selftext")
    return RedditPost(
        id=post_id,
        title=title,
        content=selftext if isinstance(selftext, str) else "",
        url=_str_or_none(data.get("url")),
        publish_date=_timestamp(data.get("created_utc")),
        author=_str_or_none(data.get("author")) or UNKNOWN_AUTHOR,
        subreddit=subreddit,
        score=_int_or_zero(data.get("score")),
        comment_count=_int_or_zero(data.get("num_comments")),
        thumbnail=_str_or_none(data.get("thumbnail")),
        preview=_preview_images(data),
        media_metadata=_media_metadata(data),
        gallery_items=_gallery_items(data),
    )


class CommentCache:
    """Bounded mapping of parsed comment lists keyed by ``subreddit_postId``.

    When a write pushes the size over capacity, the lexicographically smallest
    keys are evicted until the cache is back at capacity. This is a
    deterministic policy, not least-recently-used.
    """

    def __init__(self, capacity: int = 10):
        self.capacity = capacity
        self._entries: dict[str, list[RedditComment]] = {}
        self._lock = threading.Lock()

    @staticmethod
    def key(subreddit: str, post_id: str) -> str:
        return f"{subreddit}_{post_id}"

    def get(self, key: str) -> list[RedditComment] | None:
        with self._lock:
            comments = self._entries.get(key)
            return list(comments) if comments is not None else None

    def put(self, key: str, comments: list[RedditComment]) -> list[str]:
        """Store comments under key and return the evicted keys."""
        with self._lock:
            self._entries[key] = list(comments)
            overflow = len(self._entries) - self.capacity
            if overflow <= 0:
                return []
            evicted = sorted(self._entries)[:overflow]
            for evicted_key in evicted:
                del self._entries[evicted_key]
            return evicted

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def keys(self) -> list[str]:
        with self._lock:
            return list(self._entries)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._entries


class RedditPipeline:
    """Fetches subreddit listings and comment threads."""

    def __init__(
        self,
        reddit_config: RedditConfig | None = None,
        http_config: HttpConfig | None = None,
        session: requests.Session | None = None,
        sleep: Callable[[float], None] = time.sleep,
        execution_id: str | None = None,
    ):
        """Initialize RedditPipeline with configuration.

        Args:
            reddit_config: Endpoint, limits, cache size and retry settings
            http_config: Request timeouts
            session: Optional shared requests session
            sleep: Backoff sleep used by the full comment tree path
            execution_id: Execution ID for logging context
        """
        self.config = reddit_config or RedditConfig()
        self.http_config = http_config or HttpConfig()
        self.session = session or requests.Session()
        self.sleep = sleep
        self.execution_id = execution_id
        self.logger = create_execution_logger("reddit", execution_id)
        self.cache = CommentCache(self.config.cache_size)

    def _get_json(self, url: str, params: dict, user_agent: str) -> Any:
        response = self.session.get(
            url,
            params=params,
            headers={"Accept": "application/json", "User-Agent": user_agent},
            timeout=self.http_config.timeout,
        )
        response.raise_for_status()
        return response.json()

    def fetch_subreddit(self, subreddit: str, sort: SortOption = SortOption.HOT) -> RedditFeed:
        """Fetch a subreddit listing. Never raises.

        Returns:
            The listing as a RedditFeed, or an empty one whose display name
            names the failure
        """
        name = subreddit_name(subreddit)
        if not SUBREDDIT_NAME_PATTERN.match(name):
            self.logger.error(f"Invalid subreddit name: {subreddit}", subreddit=subreddit)
            return RedditFeed(subreddit=name, display_name=INVALID_SUBREDDIT_TITLE)

        try:
            sort = SortOption(sort)
        except ValueError:
            self.logger.error(f"Invalid sort for r/{name}: {sort}", subreddit=name, sort=str(sort))
            return RedditFeed(subreddit=name, display_name=ERROR_SUBREDDIT_TITLE)

        limit = self.config.new_limit if sort is SortOption.NEW else self.config.hot_limit
        url = f"{self.config.base_url}/r/{name}/{sort.value}/.json"

        try:
            payload = self._get_json(url, {"limit": limit}, self.config.listing_user_agent)
            children = payload["data"]["children"]
            if not isinstance(children, list):
                raise TypeError("listing children is not a list")
        except (requests.RequestException, ValueError, KeyError, TypeError) as e:
            self.logger.error(
                f"Error fetching r/{name}: {e}", subreddit=name, error=str(e)
            )
            return RedditFeed(subreddit=name, display_name=ERROR_SUBREDDIT_TITLE)

        records = [child.get("data") if isinstance(child, dict) else None for child in children]
        posts = [post for post in (post_from_listing(data, name) for data in records) if post]

        description = None
        if records and isinstance(records[0], dict):
            description = _str_or_none(records[0].get("subreddit_description")) or _str_or_none(
                records[0].get("public_description")
            )

        self.logger.info(
            f"Fetched {len(posts)} posts from r/{name}",
            subreddit=name,
            sort=sort.value,
            posts=len(posts),
            skipped=len(children) - len(posts),
        )
        return RedditFeed(
            subreddit=name,
            display_name=f"r/{name}",
            description=description,
            posts=posts,
        )

    def _fetch_comment_listing(self, post_id: str, subreddit: str) -> CommentListing:
        url = f"{self.config.base_url}/r/{subreddit}/comments/{post_id}/.json"
        payload = self._get_json(
            url,
            {
                "limit": self.config.comment_limit,
                "depth": self.config.comment_depth,
                "threaded": "false",
            },
            self.config.comments_user_agent,
        )
        return split_listing(payload)

    def fetch_comments(self, post_id: str, subreddit: str) -> list[RedditComment]:
        """Fetch a post's comments as a flat breadth-first list, using the cache.

        Failures return an empty list and are not cached.
        """
        key = CommentCache.key(subreddit, post_id)
        cached = self.cache.get(key)
        if cached is not None:
            self.logger.debug(
                "Using cached comments", subreddit=subreddit, post_id=post_id
            )
            return cached

        try:
            listing = self._fetch_comment_listing(post_id, subreddit)
        except (requests.RequestException, ValueError, CommentParseError) as e:
            self.logger.error(
                f"Error fetching comments for {post_id}: {e}",
                subreddit=subreddit,
                post_id=post_id,
                error=str(e),
            )
            return []

        parser = CommentTreeParser(self.config.max_comment_depth, self.execution_id)
        comments = parser.parse_breadth_first(listing.children)

        evicted = self.cache.put(key, comments)
        if evicted:
            self.logger.debug(f"Evicted cached comments: {', '.join(evicted)}")
        self.logger.info(
            f"Parsed {len(comments)} comments",
            subreddit=subreddit,
            post_id=post_id,
            comments=len(comments),
        )
        return comments

    def fetch_more_children(self, link_id: str, children: list[str]) -> list[dict]:
        """Fetch omitted comments for a "more" stub.

        Raises:
            requests.RequestException: On transport or HTTP errors
            ValueError: When the body is not JSON
        """
        payload = self._get_json(
            f"{self.config.base_url}/api/morechildren",
            {
                "api_type": "json",
                "link_id": link_id,
                "children": ",".join(children),
                "sort": "confidence",
                "limit_children": "false",
                "depth": self.config.comment_depth,
            },
            self.config.comments_user_agent,
        )
        try:
            things = payload["json"]["data"]["things"]
        except (KeyError, TypeError):
            return []
        return things if isinstance(things, list) else []

    def fetch_full_comment_tree(self, post_id: str, subreddit: str) -> list[RedditComment]:
        """Fetch the complete nested comment tree, expanding "more" stubs.

        Not cached. Transport and parse failures return an empty list.

        Raises:
            MissingLinkIdError: If a "more" stub cannot be authorized
        """
        try:
            listing = self._fetch_comment_listing(post_id, subreddit)
        except (requests.RequestException, ValueError, CommentParseError) as e:
            self.logger.error(
                f"Error fetching comments for {post_id}: {e}",
                subreddit=subreddit,
                post_id=post_id,
                error=str(e),
            )
            return []

        parser = FullCommentTreeParser(
            self.fetch_more_children,
            retry_attempts=self.config.retry_attempts,
            backoff_factor=self.config.backoff_factor,
            max_depth=self.config.max_comment_depth,
            sleep=self.sleep,
            execution_id=self.execution_id,
        )
        return parser.parse(listing.children, listing.link_id)

    def clear_cache(self) -> None:
        self.cache.clear()
        self.logger.info("Cleared comment cache")
