"""Heuristics for spotting teaser content in feed items."""

TRUNCATION_MARKERS = (
    "read more",
    "continue reading",
    "…more",
    "… more",
    "read full article",
    "[…]",
    "click to continue",
    "more...",
    "more…",
    "continue",
    "listen to a recap",
    "daily is available",
)

SUSPICIOUS_SHORT_MARKERS = ("http", "…", "...", "click here")

SHORT_SUSPICIOUS_LENGTH = 800
MIN_FULL_LENGTH = 300


def is_truncated(content: str | None) -> bool:
    """Return True when content looks like an abbreviated teaser.

    Short legitimate articles are reported as truncated too; the cost is one
    extra page fetch.
    """
    content = content or ""
    lower = content.lower()

    if any(marker in lower for marker in TRUNCATION_MARKERS):
        return True

    if len(content) < SHORT_SUSPICIOUS_LENGTH and any(
        marker in lower for marker in SUSPICIOUS_SHORT_MARKERS
    ):
        return True

    return len(content) < MIN_FULL_LENGTH
