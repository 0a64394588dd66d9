"""RSS Reader core: feed and subreddit ingestion, enrichment and summaries."""

__version__ = "1.0.0"
