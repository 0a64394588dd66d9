"""Comment tree parsing for reddit comment listings.

A comment listing response is a two element array ``[post_listing,
comment_listing]``. Two strategies turn it into ``RedditComment`` nodes:

* ``CommentTreeParser.parse_breadth_first`` walks the tree with a FIFO queue
  and returns a flat list carrying depth in ``indentation_level``. "more"
  stubs are skipped. This is the default, bounded-latency path.
* ``FullCommentTreeParser.parse`` builds the nested reply tree with an
  explicit stack and expands "more" stubs through a caller supplied fetch
  function, retrying with exponential backoff.

Neither strategy recurses, so deep threads cannot exhaust the call stack.
"""

import time
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from .logging_config import create_execution_logger
from .models import RedditComment

MAX_COMMENT_DEPTH = 15

COMMENT_KIND = "t1"
MORE_KIND = "more"


class CommentParseError(Exception):
    """Raised when a comment listing response has an unexpected shape."""


class MissingLinkIdError(CommentParseError):
    """Raised when a "more" stub must be expanded but no link id is known."""


@dataclass
class CommentListing:
    """Comment children of a listing response and the post's link id."""

    link_id: str
    children: list[dict]


def split_listing(payload: Any) -> CommentListing:
    """Split a ``[post_listing, comment_listing]`` response.

    Raises:
        CommentParseError: If the payload is not a two element listing array
            or the post id cannot be read
    """
    if not isinstance(payload, list) or len(payload) < 2:
        raise CommentParseError("Expected a [post, comments] listing array")

    try:
        post_id = payload[0]["data"]["children"][0]["data"]["id"]
    except (KeyError, IndexError, TypeError) as e:
        raise CommentParseError(f"Post listing has no post id: {e}") from e
    if not isinstance(post_id, str) or not post_id:
        raise CommentParseError("Post listing has no post id")

    comment_data = payload[1].get("data") if isinstance(payload[1], dict) else None
    children = comment_data.get("children") if isinstance(comment_data, dict) else None
    return CommentListing(
        link_id=f"t3_{post_id}",
        children=children if isinstance(children, list) else [],
    )


def comment_from_node(node: dict, depth: int) -> RedditComment | None:
    """Build a comment from a ``t1`` node, or None when a required field is missing."""
    data = node.get("data")
    if not isinstance(data, dict):
        return None

    comment_id = data.get("id")
    author = data.get("author")
    body = data.get("body")
    score = data.get("score")
    created_utc = data.get("created_utc")

    if not isinstance(comment_id, str) or not isinstance(author, str):
        return None
    if not isinstance(body, str):
        return None
    if not isinstance(score, int) or isinstance(score, bool):
        return None
    if not isinstance(created_utc, (int, float)) or isinstance(created_utc, bool):
        return None

    return RedditComment(
        id=comment_id,
        author=author,
        body=body,
        score=score,
        created_utc=float(created_utc),
        indentation_level=depth,
    )


def reply_nodes(node: dict) -> list[dict]:
    """Children of a comment's ``replies`` listing (reddit sends "" when empty)."""
    data = node.get("data")
    if not isinstance(data, dict):
        return []
    replies = data.get("replies")
    if not isinstance(replies, dict):
        return []
    listing = replies.get("data")
    children = listing.get("children") if isinstance(listing, dict) else None
    return [child for child in children if isinstance(child, dict)] if isinstance(children, list) else []


class CommentTreeParser:
    """Bounded breadth-first comment parser."""

    def __init__(self, max_depth: int = MAX_COMMENT_DEPTH, execution_id: str | None = None):
        self.max_depth = max_depth
        self.logger = create_execution_logger("comments", execution_id)

    def parse_breadth_first(self, children: list[dict]) -> list[RedditComment]:
        """Flatten a comment tree breadth first.

        Replies below ``max_depth`` are dropped entirely and "more" stubs are
        not expanded.

        Args:
            children: Top-level nodes of the comment listing

        Returns:
            Comments in breadth-first order, each with empty ``replies``
        """
        result: list[RedditComment] = []
        queue = deque((node, 0) for node in children if isinstance(node, dict))
        truncated = 0
        skipped_more = 0

        while queue:
            node, depth = queue.popleft()
            kind = node.get("kind")

            if kind == COMMENT_KIND:
                comment = comment_from_node(node, depth)
                if comment is None:
                    continue

                replies = reply_nodes(node)
                if replies:
                    if depth < self.max_depth:
                        queue.extend((reply, depth + 1) for reply in replies)
                    else:
                        truncated += 1

                result.append(comment)

            elif kind == MORE_KIND:
                data = node.get("data") if isinstance(node.get("data"), dict) else {}
                skipped_more += data.get("count", 0) or 0

        if truncated:
            self.logger.warning(
                f"Hit max depth limit, dropped replies under {truncated} comments",
                max_depth=self.max_depth,
                truncated=truncated,
            )
        if skipped_more:
            self.logger.debug(
                f"Skipped {skipped_more} 'more' comments", skipped_more=skipped_more
            )
        return result


class FullCommentTreeParser(CommentTreeParser):
    """Nested comment parser that expands "more" stubs through secondary requests."""

    def __init__(
        self,
        fetch_more_children: Callable[[str, list[str]], list[dict]],
        retry_attempts: int = 3,
        backoff_factor: float = 1.5,
        max_depth: int = MAX_COMMENT_DEPTH,
        sleep: Callable[[float], None] = time.sleep,
        execution_id: str | None = None,
    ):
        """Initialize the parser.

        Args:
            fetch_more_children: Called with (link_id, child ids); returns the
                ``things`` of the response and raises on failure
            retry_attempts: Attempts per "more" stub before giving up
            backoff_factor: Delay before retry n is ``backoff_factor ** n`` seconds
            max_depth: Deepest indentation level kept
            sleep: Sleep function, replaceable in tests
            execution_id: Execution ID for logging context
        """
        super().__init__(max_depth=max_depth, execution_id=execution_id)
        self.fetch_more_children = fetch_more_children
        self.retry_attempts = retry_attempts
        self.backoff_factor = backoff_factor
        self.sleep = sleep

    def parse(self, children: list[dict], link_id: str | None) -> list[RedditComment]:
        """Build the complete nested tree, fetching omitted subtrees.

        Raises:
            MissingLinkIdError: If a "more" stub needs expanding and link_id is empty
        """
        roots: list[RedditComment] = []
        by_id: dict[str, RedditComment] = {}
        requested: set[frozenset[str]] = set()

        # Frames: (node, depth, sibling list, attach by parent_id)
        stack: list[tuple[dict, int, list[RedditComment], bool]] = [
            (node, 0, roots, False) for node in reversed(children) if isinstance(node, dict)
        ]

        while stack:
            node, depth, siblings, by_parent = stack.pop()

            if by_parent:
                parent = by_id.get(self._parent_comment_id(node))
                if parent is not None:
                    depth = parent.indentation_level + 1
                    siblings = parent.replies
                if depth > self.max_depth:
                    continue

            kind = node.get("kind")
            if kind == COMMENT_KIND:
                comment = comment_from_node(node, depth)
                if comment is None:
                    continue
                siblings.append(comment)
                by_id[comment.id] = comment

                replies = reply_nodes(node)
                if replies and depth < self.max_depth:
                    stack.extend(
                        (reply, depth + 1, comment.replies, False)
                        for reply in reversed(replies)
                    )

            elif kind == MORE_KIND:
                data = node.get("data") if isinstance(node.get("data"), dict) else {}
                ids = [child for child in data.get("children") or [] if isinstance(child, str)]
                if not ids or frozenset(ids) in requested:
                    continue
                if not link_id:
                    raise MissingLinkIdError("No link_id available for 'more' comments")
                requested.add(frozenset(ids))

                things = self._fetch_with_retry(link_id, ids)
                stack.extend(
                    (thing, depth, siblings, True)
                    for thing in reversed(things)
                    if isinstance(thing, dict)
                )

        return roots

    @staticmethod
    def _parent_comment_id(node: dict) -> str | None:
        data = node.get("data")
        parent_id = data.get("parent_id") if isinstance(data, dict) else None
        if isinstance(parent_id, str) and parent_id.startswith("t1_"):
            return parent_id[3:]
        return None

    def _fetch_with_retry(self, link_id: str, ids: list[str]) -> list[dict]:
        for attempt in range(1, self.retry_attempts + 1):
            try:
                things = self.fetch_more_children(link_id, ids)
                return things if isinstance(things, list) else []
            except Exception as e:
                self.logger.warning(
                    f"Failed to fetch more comments (attempt {attempt}): {e}",
                    attempt=attempt,
                    children=len(ids),
                    error=str(e),
                )
                if attempt < self.retry_attempts:
                    self.sleep(self.backoff_factor**attempt)

        self.logger.error(
            f"Giving up on {len(ids)} more comments after {self.retry_attempts} attempts",
            children=len(ids),
        )
        return []
