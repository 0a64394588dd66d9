"""Unit tests for ReaderSession coordination."""

from datetime import UTC, datetime
from unittest.mock import Mock

import pytest

from rssreader.models import Article, Feed, RedditComment, RedditFeed, RedditPost, SortOption
from rssreader.session import InMemoryStateStore, LatestRequestGuard, ReaderSession

FEED_URL = "https://news.example.com/feed"


def make_article(article_id: str, title: str = "Title") -> Article:
    return Article(
        id=article_id,
        title=title,
        content="Body",
        url=None,
        publish_date=datetime(2024, 1, 1, tzinfo=UTC),
        feed_title="News",
        feed_url=FEED_URL,
    )


def make_post(post_id: str, subreddit: str = "swift") -> RedditPost:
    return RedditPost(
        id=post_id,
        title=f"Post {post_id}",
        content="Body",
        url=None,
        publish_date=datetime(2024, 1, 1, tzinfo=UTC),
        author="op",
        subreddit=subreddit,
    )


def make_comment(comment_id: str) -> RedditComment:
    return RedditComment(id=comment_id, author="a", body="b", score=0, created_utc=0.0)


def make_session(summarizer=None, state_store=None) -> ReaderSession:
    return ReaderSession(Mock(), Mock(), summarizer=summarizer, state_store=state_store)


class TestLatestRequestGuardUnit:
    def test_newest_ticket_wins_per_target(self):
        guard = LatestRequestGuard()

        first = guard.issue("feed:a")
        other = guard.issue("feed:b")
        second = guard.issue("feed:a")

        assert not guard.is_current("feed:a", first)
        assert guard.is_current("feed:a", second)
        assert guard.is_current("feed:b", other)
        assert not guard.is_current("feed:c", first)


class TestReaderSessionUnit:
    """Unit tests for ReaderSession."""

    def test_refresh_feed_stores_result_and_merges_flags(self):
        store = InMemoryStateStore(read_ids={"a1"}, favorite_ids={"a2"})
        session = make_session(state_store=store)
        feed = Feed(title="News", url=FEED_URL, articles=[make_article("a1"), make_article("a2")])
        session.feed_pipeline.fetch.return_value = feed

        result = session.refresh_feed(FEED_URL)

        assert result is feed
        assert session.feeds[FEED_URL] is feed
        assert [(a.is_read, a.is_favorite) for a in feed.articles] == [(True, False), (False, True)]

    def test_superseded_feed_refresh_is_discarded(self):
        session = make_session()
        stale = Feed(title="Stale", url=FEED_URL, articles=[make_article("old")])
        fresh = Feed(title="Fresh", url=FEED_URL, articles=[make_article("new")])
        calls = []
        outcomes = []

        def fetch(url):
            calls.append(url)
            if len(calls) == 1:
                outcomes.append(session.refresh_feed(url))
                return stale
            return fresh

        session.feed_pipeline.fetch.side_effect = fetch

        first = session.refresh_feed(FEED_URL)

        assert outcomes == [fresh]
        assert first is None
        assert session.feeds[FEED_URL] is fresh

    def test_refreshes_of_different_feeds_do_not_supersede(self):
        session = make_session()
        other_url = "https://other.example.com/feed"
        feeds = {
            FEED_URL: Feed(title="News", url=FEED_URL),
            other_url: Feed(title="Other", url=other_url),
        }
        nested = []

        def fetch(url):
            if url == FEED_URL:
                nested.append(session.refresh_feed(other_url))
            return feeds[url]

        session.feed_pipeline.fetch.side_effect = fetch

        assert session.refresh_feed(FEED_URL) is feeds[FEED_URL]
        assert nested == [feeds[other_url]]
        assert set(session.feeds) == {FEED_URL, other_url}

    def test_refresh_subreddit(self):
        store = InMemoryStateStore(read_ids={"p1"})
        session = make_session(state_store=store)
        listing = RedditFeed(subreddit="swift", display_name="r/swift", posts=[make_post("p1")])
        session.reddit_pipeline.fetch_subreddit.return_value = listing

        result = session.refresh_subreddit("r/swift", SortOption.NEW)

        assert result is listing
        assert session.subreddits["swift"] is listing
        assert listing.posts[0].is_read is True
        session.reddit_pipeline.fetch_subreddit.assert_called_once_with("swift", SortOption.NEW)

    def test_select_post_loads_comments(self):
        session = make_session()
        comments = [make_comment("c1")]
        session.reddit_pipeline.fetch_comments.return_value = comments
        post = make_post("p1")

        assert session.select_post(post) == comments
        assert session.selected_post is post
        assert session.comments == comments
        session.reddit_pipeline.fetch_comments.assert_called_once_with("p1", "swift")

    def test_deselected_post_comments_are_discarded(self):
        session = make_session()
        first_post, second_post = make_post("p1"), make_post("p2")
        second_comments = [make_comment("for-p2")]
        nested = []

        def fetch_comments(post_id, subreddit):
            if post_id == "p1":
                nested.append(session.select_post(second_post))
                return [make_comment("for-p1")]
            return second_comments

        session.reddit_pipeline.fetch_comments.side_effect = fetch_comments

        assert session.select_post(first_post) is None
        assert nested == [second_comments]
        assert session.selected_post is second_post
        assert session.comments == second_comments

    def test_summarize_article_attaches_to_stored_copy(self):
        summarizer = Mock()
        summarizer.summarize_article.return_value = "Short summary"
        session = make_session(summarizer=summarizer)
        stored = make_article("a1")
        session.feeds[FEED_URL] = Feed(title="News", url=FEED_URL, articles=[stored])
        shown = make_article("a1")

        result = session.summarize_article(shown)

        assert result == "Short summary"
        assert shown.summary == "Short summary"
        assert stored.summary == "Short summary"

    def test_summarize_post_attaches_to_stored_copy(self):
        summarizer = Mock()
        summarizer.summarize_post.return_value = "Post summary"
        session = make_session(summarizer=summarizer)
        stored = make_post("p1")
        session.subreddits["swift"] = RedditFeed(subreddit="swift", display_name="r/swift", posts=[stored])

        session.summarize_post(make_post("p1"))

        assert stored.summary == "Post summary"

    def test_summarize_comments_reuses_loaded_pane(self):
        summarizer = Mock()
        summarizer.summarize_text.return_value = "Discussion summary"
        session = make_session(summarizer=summarizer)
        post = make_post("p1")
        session.reddit_pipeline.fetch_comments.return_value = [make_comment("c1")]
        session.select_post(post)

        summary = session.summarize_comments(post)

        assert summary.post_id == "p1"
        assert summary.subreddit == "swift"
        assert summary.summary == "Discussion summary"
        assert session.reddit_pipeline.fetch_comments.call_count == 1

    def test_summarize_comments_fetches_other_post(self):
        summarizer = Mock()
        summarizer.summarize_text.return_value = "Discussion summary"
        session = make_session(summarizer=summarizer)
        session.reddit_pipeline.fetch_comments.return_value = [make_comment("c1")]

        summary = session.summarize_comments(make_post("p9", subreddit="python"))

        session.reddit_pipeline.fetch_comments.assert_called_once_with("p9", "python")
        assert summary.comment_count == 1

    def test_summaries_require_summarizer(self):
        session = make_session()

        with pytest.raises(RuntimeError):
            session.summarize_article(make_article("a1"))
        with pytest.raises(RuntimeError):
            session.summarize_comments(make_post("p1"))
