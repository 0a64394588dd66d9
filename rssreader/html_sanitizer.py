"""HTML clean-up helpers shared by feed normalization and enrichment."""

import re

from bs4 import BeautifulSoup
from bs4.element import Tag

RESPONSIVE_IMAGE_STYLE = "max-width:100%;height:auto;display:block;margin:24px auto;"

TRACKER_IMAGE_MARKERS = ("spacer.gif", "pixel.gif")

IMAGE_URL_PATTERNS = (
    re.compile(r"<img[^>]*src=[\"']([^\"']+)[\"'][^>]*>", re.IGNORECASE),
    re.compile(r"background-image:\s*url\([\"']?([^\"')]+)[\"']?\)", re.IGNORECASE),
    re.compile(r"data-src=[\"']([^\"']+)[\"']", re.IGNORECASE),
)

TAG_PATTERN = re.compile(r"<[^>]+>")


def _normalize_whitespace(text: str) -> str:
    return " ".join(text.split())


def to_plain_text(html: str | None) -> str:
    """Strip markup and return the visible text.

    Falls back to a regex tag stripper when the markup cannot be parsed.
    """
    if not html:
        return ""

    if "<" not in html and "&" not in html:
        return _normalize_whitespace(html)

    try:
        soup = BeautifulSoup(html, "html.parser")
        for hidden in soup(["script", "style"]):
            hidden.decompose()
        return _normalize_whitespace(soup.get_text(separator=" "))
    except Exception:
        return _normalize_whitespace(TAG_PATTERN.sub("", html))


def _srcset_candidate(srcset: str, pick: str) -> str:
    parts = [part.strip() for part in srcset.split(",") if part.strip()]
    if not parts:
        return ""
    chosen = parts[0] if pick == "first" else parts[-1]
    return chosen.split(" ")[0].strip()


def rewrite_image_elements(
    root: Tag, *, include_data_src: bool = False, srcset_pick: str = "last"
) -> int:
    """Promote lazy-load and srcset attributes to ``src`` on every ``img`` under root.

    Args:
        root: Parsed document or element to rewrite in place
        include_data_src: Also promote ``data-src`` (full page extraction)
        srcset_pick: ``"last"`` (highest resolution by convention) or ``"first"``

    Returns:
        Number of images rewritten
    """
    images = root.find_all("img")
    for img in images:
        lazy_src = img.get("data-lazy-src")
        if lazy_src:
            img["src"] = lazy_src

        if include_data_src:
            data_src = img.get("data-src")
            if data_src:
                img["src"] = data_src

        srcset = img.get("srcset")
        if srcset:
            candidate = _srcset_candidate(srcset, srcset_pick)
            if candidate:
                img["src"] = candidate

        img["style"] = RESPONSIVE_IMAGE_STYLE
    return len(images)


def rewrite_images(
    html: str, *, include_data_src: bool = False, srcset_pick: str = "last"
) -> str:
    """Return html with image sources resolved and a responsive style applied.

    Markup without images, or markup that fails to parse, is returned unchanged.
    """
    if not html or "<img" not in html.lower():
        return html

    try:
        soup = BeautifulSoup(html, "html.parser")
        if not rewrite_image_elements(
            soup, include_data_src=include_data_src, srcset_pick=srcset_pick
        ):
            return html
        return str(soup)
    except Exception:
        return html


def extract_first_image(html: str | None) -> str | None:
    """Return the first usable ``img`` source in html, skipping tracker pixels."""
    if not html:
        return None

    try:
        soup = BeautifulSoup(html, "html.parser")
        img = soup.find("img")
    except Exception:
        return None

    if img is None:
        return None

    src = img.get("src") or img.get("data-lazy-src") or ""
    src = src.strip()
    if len(src) <= 10:
        return None
    if any(marker in src for marker in TRACKER_IMAGE_MARKERS):
        return None
    return src


def extract_all_image_urls(text: str | None) -> list[str]:
    """Find image URLs in raw markup with regular expressions.

    Last-resort fallback for markup the structured parser makes nothing of.
    """
    if not text:
        return []

    urls: list[str] = []
    for pattern in IMAGE_URL_PATTERNS:
        for match in pattern.finditer(text):
            url = match.group(1).strip().replace('"', "").replace("'", "")
            if url and url not in urls:
                urls.append(url)
    return urls
