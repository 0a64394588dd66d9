"""Reader session: coordinates refreshes, selection and summaries for one reader."""

import itertools
import threading
from typing import Protocol

from .comment_summary import CommentSummarizer
from .feed_pipeline import FeedPipeline
from .logging_config import create_execution_logger
from .models import Article, CommentSummary, Feed, RedditComment, RedditFeed, RedditPost, SortOption
from .reddit import RedditPipeline, subreddit_name
from .summarize import Summarizer

COMMENT_PANE = "comments"


class StateStore(Protocol):
    """Read-only view of persisted per-item flags."""

    def is_read(self, item_id: str) -> bool: ...

    def is_favorite(self, item_id: str) -> bool: ...


class InMemoryStateStore:
    """StateStore backed by two sets."""

    def __init__(self, read_ids=None, favorite_ids=None):
        self.read_ids = set(read_ids or ())
        self.favorite_ids = set(favorite_ids or ())

    def is_read(self, item_id: str) -> bool:
        return item_id in self.read_ids

    def is_favorite(self, item_id: str) -> bool:
        return item_id in self.favorite_ids


class LatestRequestGuard:
    """Hands out tickets per target; only the newest ticket of a target is current."""

    def __init__(self):
        self._counter = itertools.count(1)
        self._latest: dict[str, int] = {}
        self._lock = threading.Lock()

    def issue(self, target: str) -> int:
        with self._lock:
            ticket = next(self._counter)
            self._latest[target] = ticket
            return ticket

    def is_current(self, target: str, ticket: int) -> bool:
        with self._lock:
            return self._latest.get(target) == ticket


class ReaderSession:
    """Holds the loaded feeds, subreddits and comment pane of one reader.

    Results of a load are applied only if no newer load for the same target
    started in the meantime; superseded results are discarded and the call
    returns None.
    """

    def __init__(
        self,
        feed_pipeline: FeedPipeline,
        reddit_pipeline: RedditPipeline,
        summarizer: Summarizer | None = None,
        state_store: StateStore | None = None,
        execution_id: str | None = None,
    ):
        self.feed_pipeline = feed_pipeline
        self.reddit_pipeline = reddit_pipeline
        self.summarizer = summarizer
        self.comment_summarizer = (
            CommentSummarizer(summarizer, execution_id) if summarizer is not None else None
        )
        self.state_store = state_store or InMemoryStateStore()
        self.logger = create_execution_logger("session", execution_id)
        self.guard = LatestRequestGuard()
        self._lock = threading.Lock()

        self.feeds: dict[str, Feed] = {}
        self.subreddits: dict[str, RedditFeed] = {}
        self.selected_post: RedditPost | None = None
        self.comments: list[RedditComment] = []

    def _merge_flags(self, items) -> None:
        for item in items:
            item.is_read = self.state_store.is_read(item.id)
            item.is_favorite = self.state_store.is_favorite(item.id)

    def refresh_feed(self, url: str) -> Feed | None:
        """Reload one feed; returns the applied Feed or None when superseded."""
        target = f"feed:{url}"
        ticket = self.guard.issue(target)
        feed = self.feed_pipeline.fetch(url)
        self._merge_flags(feed.articles)

        with self._lock:
            if not self.guard.is_current(target, ticket):
                self.logger.debug("Discarding superseded feed result", feed_url=url)
                return None
            self.feeds[url] = feed
        return feed

    def refresh_subreddit(
        self, subreddit: str, sort: SortOption = SortOption.HOT
    ) -> RedditFeed | None:
        """Reload one subreddit listing; None when superseded."""
        name = subreddit_name(subreddit)
        target = f"subreddit:{name}"
        ticket = self.guard.issue(target)
        listing = self.reddit_pipeline.fetch_subreddit(name, sort)
        self._merge_flags(listing.posts)

        with self._lock:
            if not self.guard.is_current(target, ticket):
                self.logger.debug("Discarding superseded subreddit result", subreddit=name)
                return None
            self.subreddits[name] = listing
        return listing

    def select_post(self, post: RedditPost) -> list[RedditComment] | None:
        """Show a post's comments; None when another post was selected meanwhile."""
        ticket = self.guard.issue(COMMENT_PANE)
        with self._lock:
            self.selected_post = post
            self.comments = []

        comments = self.reddit_pipeline.fetch_comments(post.id, post.subreddit)

        with self._lock:
            if not self.guard.is_current(COMMENT_PANE, ticket):
                self.logger.debug(
                    "Discarding comments of a deselected post",
                    post_id=post.id,
                    subreddit=post.subreddit,
                )
                return None
            self.comments = comments
        return comments

    def _require_summarizer(self) -> Summarizer:
        if self.summarizer is None:
            raise RuntimeError("ReaderSession was created without a summarizer")
        return self.summarizer

    def summarize_article(self, article: Article) -> str:
        """Summarize an article and attach the summary to the stored copy."""
        summary = self._require_summarizer().summarize_article(article)
        article.summary = summary
        with self._lock:
            feed = self.feeds.get(article.feed_url)
            for stored in feed.articles if feed else []:
                if stored.id == article.id:
                    stored.summary = summary
        return summary

    def summarize_post(self, post: RedditPost) -> str:
        """Summarize a post and attach the summary to the stored copy."""
        summary = self._require_summarizer().summarize_post(post)
        post.summary = summary
        with self._lock:
            listing = self.subreddits.get(post.subreddit)
            for stored in listing.posts if listing else []:
                if stored.id == post.id:
                    stored.summary = summary
        return summary

    def summarize_comments(self, post: RedditPost) -> CommentSummary:
        """Summarize the discussion of post, reusing the loaded pane when it matches."""
        self._require_summarizer()
        with self._lock:
            selected = self.selected_post
            comments = list(self.comments)
        if selected is None or selected.id != post.id or not comments:
            comments = self.reddit_pipeline.fetch_comments(post.id, post.subreddit)
        return self.comment_summarizer.summarize_comments(
            comments, post_id=post.id, subreddit=post.subreddit
        )
