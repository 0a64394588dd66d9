"""Property-based tests for the comment cache and listing mapping."""

from hypothesis import given
from hypothesis import strategies as st

from rssreader.models import RedditComment
from rssreader.reddit import CommentCache, post_from_listing

keys = st.text(alphabet="abcdefghij_0123456789", min_size=1, max_size=8)


class TestCommentCacheProperties:
    """Property-based tests for CommentCache."""

    @given(st.lists(keys, max_size=40), st.integers(min_value=1, max_value=12))
    def test_size_never_exceeds_capacity(self, inserted, capacity):
        """After every write the cache holds at most capacity entries."""
        cache = CommentCache(capacity=capacity)

        for key in inserted:
            cache.put(key, [])
            assert len(cache) <= capacity

        assert len(cache) == min(len(set(inserted)), capacity)

    @given(st.lists(keys, min_size=1, max_size=40, unique=True))
    def test_evicted_keys_sort_before_survivors(self, inserted):
        """Evicted keys always sort before every key that remains."""
        cache = CommentCache()

        for key in inserted:
            evicted = cache.put(key, [])
            remaining = cache.keys()
            assert all(gone < min(remaining) for gone in evicted)

    @given(keys, st.integers(min_value=0, max_value=5))
    def test_get_returns_what_was_put(self, key, count):
        comments = [
            RedditComment(id=str(i), author="a", body="b", score=i, created_utc=0.0)
            for i in range(count)
        ]
        cache = CommentCache()

        cache.put(key, comments)

        assert cache.get(key) == comments


class TestPostFromListingProperties:
    @given(
        st.dictionaries(
            st.sampled_from(["score", "num_comments", "created_utc", "author", "selftext", "url"]),
            st.one_of(st.none(), st.booleans(), st.text(max_size=5), st.integers(), st.floats(allow_nan=False, allow_infinity=False, min_value=0, max_value=2e9)),
        )
    )
    def test_any_extra_fields_map_without_raising(self, extra):
        """A record with an id and title always maps, whatever the other fields hold."""
        record = {"id": "abc", "title": "Title", **extra}

        post = post_from_listing(record, "swift")

        assert post is not None
        assert isinstance(post.score, int)
        assert isinstance(post.comment_count, int)
        assert isinstance(post.content, str)
        assert post.author
