"""Command-line entry point: refresh every subscribed feed and subreddit."""

import argparse
import json
import sys
from datetime import UTC, datetime
from typing import Any

from .config import Config
from .feed_pipeline import ERROR_FEED_TITLE, INVALID_URL_TITLE, FeedPipeline
from .logging_config import create_execution_logger, setup_structured_logging
from .models import SubscriptionType
from .reddit import ERROR_SUBREDDIT_TITLE, INVALID_SUBREDDIT_TITLE, RedditPipeline


def run(config: Config, execution_id: str | None = None) -> dict[str, Any]:
    """Refresh all enabled subscriptions.

    Args:
        config: Loaded configuration
        execution_id: Optional execution ID, generated when omitted

    Returns:
        Result document with per-subscription results and metrics
    """
    execution_id = execution_id or f"run_{datetime.now(UTC).strftime('%Y%m%d_%H%M%S_%f')}"
    main_logger = create_execution_logger("main", execution_id)
    main_logger.log_execution_start()

    metrics = {
        "feeds_processed": 0,
        "subreddits_processed": 0,
        "articles_found": 0,
        "posts_found": 0,
        "errors": [],
    }
    results: list[dict[str, Any]] = []

    try:
        subscriptions = config.get_subscriptions()
    except (FileNotFoundError, ValueError) as e:
        error_msg = f"Failed to load subscriptions: {e}"
        main_logger.error(error_msg, error=str(e))
        metrics["errors"].append(error_msg)
        main_logger.log_execution_end(success=False, metrics=metrics)
        return {"execution_id": execution_id, "success": False, "results": results, "metrics": metrics}

    main_logger.info(
        f"Processing {len(subscriptions)} subscriptions", subscription_count=len(subscriptions)
    )

    http_config = config.get_http_config()
    feed_pipeline = FeedPipeline(
        http_config, config.get_enrichment_config(), execution_id=execution_id
    )
    reddit_pipeline = RedditPipeline(
        config.get_reddit_config(), http_config, execution_id=execution_id
    )

    rss_urls = [s.url for s in subscriptions if s.type is SubscriptionType.RSS]
    for feed in feed_pipeline.fetch_many(rss_urls):
        if feed.title in (INVALID_URL_TITLE, ERROR_FEED_TITLE):
            metrics["errors"].append(f"{feed.title}: {feed.url}")
        else:
            metrics["feeds_processed"] += 1
            metrics["articles_found"] += len(feed.articles)
        results.append(
            {
                "type": SubscriptionType.RSS.value,
                "url": feed.url,
                "title": feed.title,
                "articles": len(feed.articles),
                "latest_titles": [a.title for a in feed.articles[:3]],
            }
        )

    for subscription in subscriptions:
        if subscription.type is not SubscriptionType.REDDIT:
            continue
        listing = reddit_pipeline.fetch_subreddit(subscription.url)
        if listing.display_name in (INVALID_SUBREDDIT_TITLE, ERROR_SUBREDDIT_TITLE):
            metrics["errors"].append(f"{listing.display_name}: {subscription.url}")
        else:
            metrics["subreddits_processed"] += 1
            metrics["posts_found"] += len(listing.posts)
        results.append(
            {
                "type": SubscriptionType.REDDIT.value,
                "url": subscription.url,
                "title": listing.display_name,
                "posts": len(listing.posts),
            }
        )

    main_logger.log_metrics(metrics)
    success = not metrics["errors"]
    main_logger.log_execution_end(success=success, metrics=metrics)
    return {"execution_id": execution_id, "success": success, "results": results, "metrics": metrics}


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="rss-reader", description="Refresh subscribed feeds and subreddits."
    )
    parser.add_argument("--subscriptions", help="Path to the subscriptions JSON file")
    parser.add_argument("--log-level", help="Logging level (DEBUG, INFO, WARNING, ERROR)")
    args = parser.parse_args(argv)

    config = Config()
    if args.subscriptions:
        config.subscriptions_file = args.subscriptions
    if args.log_level:
        config.log_level = args.log_level
    setup_structured_logging(config.log_level, stream=sys.stderr)

    result = run(config)
    json.dump(result, sys.stdout, indent=2, default=str)
    sys.stdout.write("\n")
    return 0 if result["success"] else 1


if __name__ == "__main__":
    sys.exit(main())
