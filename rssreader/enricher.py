"""Full-content enrichment for articles whose feed body is only a teaser."""

from dataclasses import dataclass, replace

import requests
from bs4 import BeautifulSoup
from bs4.element import Tag

from .config import EnrichmentConfig, HttpConfig
from .html_sanitizer import rewrite_image_elements
from .logging_config import create_execution_logger
from .models import Article
from .normalizer import url_host
from .truncation import is_truncated

GENERIC_CLUTTER_SELECTOR = (
    "a.more-link, .more-link, .read-more, .readmore, "
    ".sharedaddy, .share-buttons, .social-share, "
    ".comments, .article-comments, "
    ".related-posts, .recommended, "
    "script, style, iframe, .advertisement, .ad-container"
)

GENERIC_CONTENT_SELECTORS = (
    "article .entry-content",
    "div.article-content",
    "div.entry-content",
    ".post-content",
    "article",
    ".content-area",
    ".main-content",
    "main",
    ".article",
    "#content",
)


@dataclass(frozen=True)
class SiteRule:
    """Dedicated extraction rule for a publisher whose markup defeats the generic path."""

    clutter_selector: str
    content_selectors: tuple[str, ...]
    featured_image_selector: str | None = None
    min_content_length: int = 100
    srcset_pick: str = "first"


SITE_RULES: dict[str, SiteRule] = {
    "9to5mac.com": SiteRule(
        clutter_selector=(
            ".sponsor-block, .newsletter-block, .comments-link, "
            ".st-related-posts, script, style, form"
        ),
        content_selectors=(".post-content", ".article-content", "#primary"),
        featured_image_selector=".featured-image img",
    ),
}


def find_site_rule(url: str | None) -> SiteRule | None:
    """Return the override rule matching url's host, if any."""
    host = (url_host(url) or "").lower()
    for domain, rule in SITE_RULES.items():
        if host == domain or host.endswith("." + domain):
            return rule
    return None


def select_first(root: Tag, selectors: tuple[str, ...]) -> Tag | None:
    """Try selectors in order and return the first matching element."""
    for selector in selectors:
        element = root.select_one(selector)
        if element is not None:
            return element
    return None


class ArticleEnricher:
    """Replaces truncated article content with the main region of the source page."""

    def __init__(
        self,
        http_config: HttpConfig | None = None,
        enrichment_config: EnrichmentConfig | None = None,
        session: requests.Session | None = None,
        execution_id: str | None = None,
    ):
        self.http_config = http_config or HttpConfig()
        self.config = enrichment_config or EnrichmentConfig()
        self.logger = create_execution_logger("enricher", execution_id)
        self.session = session or requests.Session()
        self.session.headers.update({"User-Agent": self.config.page_user_agent})

    def needs_enrichment(self, article: Article) -> bool:
        return bool(article.url) and is_truncated(article.content)

    def enrich(self, article: Article) -> Article:
        """Return article with full content when it can be fetched, else unchanged."""
        if not self.needs_enrichment(article):
            return article

        try:
            response = self.session.get(article.url, timeout=self.http_config.timeout)
            response.raise_for_status()
            html = response.text
        except requests.RequestException as e:
            self.logger.warning(
                f"Failed to fetch full article {article.url}: {e}",
                article_url=article.url,
                error=str(e),
            )
            return article

        content = self.extract_content(html, article.url)
        if not content:
            self.logger.log_enrichment(article.url, False, reason="no content extracted")
            return article

        self.logger.log_enrichment(article.url, True)
        return replace(article, content=content)

    def extract_content(self, html: str, url: str | None) -> str | None:
        """Extract the main content HTML from a page, or None when extraction fails."""
        if not html:
            return None

        try:
            document = BeautifulSoup(html, "html.parser")
            rule = find_site_rule(url)
            if rule is not None:
                return self._extract_with_rule(document, rule)
            return self._extract_generic(document)
        except Exception as e:
            self.logger.error(
                f"Error parsing article HTML: {e}", article_url=url, error=str(e)
            )
            return None

    def _extract_generic(self, document: BeautifulSoup) -> str | None:
        for element in document.select(GENERIC_CLUTTER_SELECTOR):
            element.decompose()

        main_element = select_first(document, GENERIC_CONTENT_SELECTORS)
        if main_element is None:
            main_element = document.body
        if main_element is None:
            return None

        rewrite_image_elements(main_element, include_data_src=True, srcset_pick="last")
        content = main_element.decode_contents().strip()
        return content or None

    def _extract_with_rule(self, document: BeautifulSoup, rule: SiteRule) -> str | None:
        # Read before clutter removal, the image may sit inside a removed block
        featured = None
        if rule.featured_image_selector:
            element = document.select_one(rule.featured_image_selector)
            if element is not None:
                featured = BeautifulSoup(str(element), "html.parser")

        for element in document.select(rule.clutter_selector):
            element.decompose()

        main_element = select_first(document, rule.content_selectors)
        if main_element is None:
            return None

        rewrite_image_elements(
            main_element, include_data_src=True, srcset_pick=rule.srcset_pick
        )
        if featured is not None and featured.img is not None:
            rewrite_image_elements(featured, include_data_src=True, srcset_pick=rule.srcset_pick)
            main_element.insert(0, featured.img)

        content = main_element.decode_contents().strip()
        if len(content) < rule.min_content_length:
            return None
        return content
