"""Configuration management for RSS Reader."""

import json
import os
from dataclasses import dataclass
from pathlib import Path

from .models import Subscription, SubscriptionType

BROWSER_USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)


@dataclass
class HttpConfig:
    """Timeouts and identity for outgoing HTTP requests.

    ``request_timeout`` bounds connection setup. ``resource_timeout`` is
    handed to requests as its read timeout, which limits each wait for
    data on the socket. Neither caps the total duration of a slow but
    steadily streaming response.
    """

    request_timeout: float = 30.0
    resource_timeout: float = 60.0
    user_agent: str = "RSS Reader App/1.0"

    @property
    def timeout(self) -> tuple[float, float]:
        """(connect, read) pair in the form requests expects.

        Connect is ``request_timeout`` and read is ``resource_timeout``.
        """
        return (self.request_timeout, self.resource_timeout)


@dataclass
class EnrichmentConfig:
    """Configuration for the full-content fetch stage."""

    max_workers: int = 8
    page_user_agent: str = BROWSER_USER_AGENT


@dataclass
class RedditConfig:
    """Configuration for the reddit JSON endpoints."""

    base_url: str = "https://www.reddit.com"
    listing_user_agent: str = "RSS Reader App/1.0"
    comments_user_agent: str = BROWSER_USER_AGENT
    hot_limit: int = 80
    new_limit: int = 150
    comment_limit: int = 1000
    comment_depth: int = 10
    max_comment_depth: int = 15
    cache_size: int = 10
    retry_attempts: int = 3
    backoff_factor: float = 1.5


@dataclass
class BedrockConfig:
    """Configuration for Amazon Bedrock."""

    model_id: str = "amazon.nova-micro-v1:0"
    region: str = "us-east-1"
    max_tokens: int = 1000
    max_text_length: int = 150000


class Config:
    """Main configuration manager."""

    SUBSCRIPTIONS_FILE = "subscriptions.json"

    def __init__(self):
        """Initialize configuration from environment variables."""
        self.subscriptions_file = os.getenv(
            "RSS_READER_SUBSCRIPTIONS_FILE", self.SUBSCRIPTIONS_FILE
        )
        self.log_level = os.getenv("LOG_LEVEL", "INFO")
        self.request_timeout = float(os.getenv("RSS_READER_REQUEST_TIMEOUT", "30"))
        self.resource_timeout = float(os.getenv("RSS_READER_RESOURCE_TIMEOUT", "60"))
        self.max_workers = int(os.getenv("RSS_READER_MAX_WORKERS", "8"))
        self.reddit_base_url = os.getenv("REDDIT_BASE_URL", "https://www.reddit.com")
        self.aws_region = os.getenv(
            "CURRENT_AWS_REGION", os.getenv("AWS_DEFAULT_REGION", "us-east-1")
        )
        self.bedrock_model_id = os.getenv("BEDROCK_MODEL_ID", "amazon.nova-micro-v1:0")

    def get_subscriptions(self) -> list[Subscription]:
        """Get enabled subscriptions from the subscriptions file."""
        subscriptions_file = Path(self.subscriptions_file)
        if not subscriptions_file.exists():
            raise FileNotFoundError(
                f"Subscriptions file not found: {self.subscriptions_file}"
            )

        try:
            with open(subscriptions_file, "r", encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON in subscriptions file: {e}") from e

        if not isinstance(data, dict):
            raise ValueError("Subscriptions file must contain a JSON object")

        subscriptions = []
        for entry in data.get("subscriptions", []):
            if not isinstance(entry, dict) or "url" not in entry:
                continue
            if not entry.get("enabled", True):
                continue
            try:
                kind = SubscriptionType(entry.get("type", "rss"))
            except ValueError as e:
                raise ValueError(
                    f"Unknown subscription type for {entry['url']}: {entry.get('type')}"
                ) from e
            subscriptions.append(
                Subscription(
                    title=entry.get("title", entry["url"]),
                    url=entry["url"],
                    type=kind,
                )
            )

        if not subscriptions:
            raise ValueError("No enabled subscriptions found")

        return subscriptions

    def get_http_config(self) -> HttpConfig:
        return HttpConfig(
            request_timeout=self.request_timeout,
            resource_timeout=self.resource_timeout,
        )

    def get_enrichment_config(self) -> EnrichmentConfig:
        return EnrichmentConfig(max_workers=self.max_workers)

    def get_reddit_config(self) -> RedditConfig:
        return RedditConfig(base_url=self.reddit_base_url.rstrip("/"))

    def get_bedrock_config(self) -> BedrockConfig:
        """Get Bedrock configuration."""
        return BedrockConfig(model_id=self.bedrock_model_id, region=self.aws_region)
