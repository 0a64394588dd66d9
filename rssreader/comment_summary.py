"""Discussion-thread summaries with keyword sentiment and topic extraction."""

import string
from collections import Counter
from datetime import UTC, datetime

from .logging_config import create_execution_logger
from .models import CommentSentiment, CommentSummary, RedditComment
from .summarize import Summarizer

MAX_COMMENT_TEXTS = 800
MAX_REPLY_DEPTH = 10
COMMENTER_SCAN_LIMIT = 1000
TOP_COMMENTERS = 5
TOP_TOPICS = 5
MIN_TOPIC_WORD_LENGTH = 5

DISCUSSION_PROMPT = (
    "Summarize the following Reddit discussion thread, highlighting key opinions, "
    "consensus views, and any significant disagreements. Focus on the main topics "
    "being discussed:\n\n{text}"
)

POSITIVE_WORDS = (
    "good", "great", "excellent", "amazing", "love", "best", "helpful", "thanks", "appreciate",
)
NEGATIVE_WORDS = (
    "bad", "terrible", "awful", "hate", "worst", "useless", "disappointing", "problem", "issue",
)
STOP_WORDS = frozenset(
    {
        "about", "above", "after", "again", "against", "their", "would", "could",
        "should", "which", "there", "these", "those", "where", "while", "because",
    }
)


def collect_comment_texts(comments: list[RedditComment]) -> list[str]:
    """Bodies in thread order; replies of comments at level 10 and deeper are skipped."""
    texts = []
    stack = list(reversed(comments))
    while stack:
        comment = stack.pop()
        texts.append(comment.body)
        if comment.indentation_level < MAX_REPLY_DEPTH:
            stack.extend(reversed(comment.replies))
    return texts


def analyze_sentiment(text: str) -> CommentSentiment:
    """Keyword-count sentiment; substring occurrences count, not whole words."""
    lower = text.lower()
    positive = sum(lower.count(word) for word in POSITIVE_WORDS)
    negative = sum(lower.count(word) for word in NEGATIVE_WORDS)

    if positive > negative * 2:
        return CommentSentiment.POSITIVE
    if negative > positive * 2:
        return CommentSentiment.NEGATIVE
    if positive > 0 and negative > 0:
        return CommentSentiment.MIXED
    return CommentSentiment.NEUTRAL


def extract_main_topics(text: str, limit: int = TOP_TOPICS) -> list[str]:
    """Most frequent long words of text; ties keep first-seen order."""
    words = (word.lower().strip(string.punctuation) for word in text.split())
    counts = Counter(
        word for word in words if len(word) >= MIN_TOPIC_WORD_LENGTH and word not in STOP_WORDS
    )
    return [word for word, _ in counts.most_common(limit)]


class CommentSummarizer:
    """Summarizes a comment thread through a Summarizer."""

    def __init__(self, summarizer: Summarizer, execution_id: str | None = None):
        self.summarizer = summarizer
        self.logger = create_execution_logger("comment_summarizer", execution_id)

    def summarize_comments(
        self,
        comments: list[RedditComment],
        post_id: str | None = None,
        subreddit: str = "",
    ) -> CommentSummary:
        """Build a CommentSummary for a thread.

        Args:
            comments: Top-level comments (or a flat breadth-first list)
            post_id: Post the thread belongs to; defaults to the first comment's id
            subreddit: Subreddit name recorded on the summary

        Returns:
            CommentSummary; its ``summary`` holds the gateway's error message
            when generation fails
        """
        texts = collect_comment_texts(comments)
        if len(texts) > MAX_COMMENT_TEXTS:
            self.logger.warning(
                f"Limiting from {len(texts)} to {MAX_COMMENT_TEXTS} comments for summarization",
                post_id=post_id,
            )
            texts = texts[:MAX_COMMENT_TEXTS]

        combined = "\n\n".join(texts)
        commenters = list(
            dict.fromkeys(comment.author for comment in comments[:COMMENTER_SCAN_LIMIT])
        )

        self.logger.info(
            f"Summarizing {len(texts)} comments from {len(commenters)} commenters",
            post_id=post_id,
            subreddit=subreddit,
        )
        summary_text = self.summarizer.summarize_text(combined, custom_prompt=DISCUSSION_PROMPT)

        return CommentSummary(
            post_id=post_id if post_id is not None else (comments[0].id if comments else ""),
            subreddit=subreddit,
            summary=summary_text,
            comment_count=len(texts),
            top_commenters=commenters[:TOP_COMMENTERS],
            main_topics=extract_main_topics(summary_text),
            sentiment=analyze_sentiment(combined),
            created_date=datetime.now(UTC),
        )
