"""Feed pipeline: fetch, normalize, enrich and order one or more feeds."""

from concurrent.futures import ThreadPoolExecutor
from urllib.parse import urlparse

import requests

from .config import EnrichmentConfig, HttpConfig
from .enricher import ArticleEnricher
from .logging_config import create_execution_logger
from .models import Article, Feed
from .normalizer import FeedNormalizer, FeedParseError, parse_document

INVALID_URL_TITLE = "Invalid URL"
ERROR_FEED_TITLE = "Error Loading Feed"


def is_valid_feed_url(url: str) -> bool:
    try:
        parsed = urlparse(url)
    except (ValueError, TypeError, AttributeError):
        return False
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def sort_articles(articles: list[Article]) -> list[Article]:
    """Most recent first; articles with equal dates keep their input order."""
    return sorted(articles, key=lambda article: article.publish_date, reverse=True)


class FeedPipeline:
    """Fetches a feed and produces a normalized, enriched, sorted Feed."""

    def __init__(
        self,
        http_config: HttpConfig | None = None,
        enrichment_config: EnrichmentConfig | None = None,
        session: requests.Session | None = None,
        enricher: ArticleEnricher | None = None,
        execution_id: str | None = None,
    ):
        """Initialize FeedPipeline with configuration.

        Args:
            http_config: Timeouts and User-Agent for feed requests
            enrichment_config: Worker count for the full-content fetch stage
            session: Optional shared requests session
            enricher: Optional enricher, built from the configs when omitted
            execution_id: Execution ID for logging context
        """
        self.http_config = http_config or HttpConfig()
        self.enrichment_config = enrichment_config or EnrichmentConfig()
        self.logger = create_execution_logger("feed_pipeline", execution_id)
        self.session = session or requests.Session()
        self.session.headers.update({"User-Agent": self.http_config.user_agent})
        self.normalizer = FeedNormalizer(execution_id)
        self.enricher = enricher or ArticleEnricher(
            self.http_config, self.enrichment_config, execution_id=execution_id
        )

        self.logger.info(
            "FeedPipeline initialized",
            max_workers=self.enrichment_config.max_workers,
            timeout=list(self.http_config.timeout),
        )

    def fetch(self, url: str) -> Feed:
        """Fetch and process one feed. Never raises.

        Args:
            url: Feed URL

        Returns:
            The processed Feed, or an empty Feed whose title names the failure
        """
        if not url or not is_valid_feed_url(url):
            self.logger.error(f"Invalid feed URL: {url}", feed_url=url)
            return Feed(title=INVALID_URL_TITLE, url=url or "")

        try:
            self.logger.info("Downloading feed content", feed_url=url)
            response = self.session.get(url, timeout=self.http_config.timeout)
            response.raise_for_status()
            document = parse_document(response.content)
            feed = self.normalizer.normalize(document, url)
        except (requests.RequestException, FeedParseError) as e:
            self.logger.error(f"Failed to load feed {url}: {e}", feed_url=url, error=str(e))
            return Feed(title=ERROR_FEED_TITLE, url=url)
        except Exception as e:
            self.logger.error(
                f"Unexpected error loading feed {url}: {e}", feed_url=url, error=str(e)
            )
            return Feed(title=ERROR_FEED_TITLE, url=url)

        feed.articles = sort_articles(self.enrich_all(feed.articles))
        self.logger.log_feed_processing(url, len(feed.articles))
        return feed

    def _enrich_one(self, article: Article) -> Article:
        try:
            return self.enricher.enrich(article)
        except Exception as e:
            self.logger.error(
                f"Enrichment failed for {article.url}: {e}",
                article_url=article.url,
                error=str(e),
            )
            return article

    def enrich_all(self, articles: list[Article]) -> list[Article]:
        """Enrich articles concurrently; each result is independent of the others."""
        if not articles:
            return []

        workers = max(1, min(self.enrichment_config.max_workers, len(articles)))
        with ThreadPoolExecutor(max_workers=workers) as executor:
            enriched = list(executor.map(self._enrich_one, articles))

        changed = sum(1 for before, after in zip(articles, enriched) if before is not after)
        self.logger.info(
            f"Enriched {changed} of {len(articles)} articles",
            enriched=changed,
            total=len(articles),
        )
        return enriched

    def fetch_many(self, urls: list[str]) -> list[Feed]:
        """Fetch several feeds in parallel; results follow the order of urls."""
        if not urls:
            return []

        self.logger.log_execution_start(feed_count=len(urls))
        workers = max(1, min(self.enrichment_config.max_workers, len(urls)))
        with ThreadPoolExecutor(max_workers=workers) as executor:
            feeds = list(executor.map(self.fetch, urls))

        failed = sum(1 for feed in feeds if feed.title in (INVALID_URL_TITLE, ERROR_FEED_TITLE))
        self.logger.log_execution_end(success=failed == 0, feeds=len(feeds), failed=failed)
        return feeds
