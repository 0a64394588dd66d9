"""Property-based tests for HTML clean-up helpers."""

from bs4 import BeautifulSoup
from hypothesis import given
from hypothesis import strategies as st

from rssreader.html_sanitizer import rewrite_images, to_plain_text

url_paths = st.text(
    alphabet=st.characters(whitelist_categories=("Ll", "Nd")), min_size=1, max_size=20
)
image_urls = url_paths.map(lambda path: f"https://cdn.example.com/{path}.jpg")


def _sources(html: str) -> list[str | None]:
    return [img.get("src") for img in BeautifulSoup(html, "html.parser").find_all("img")]


class TestHtmlSanitizerProperties:
    """Property-based tests for rewrite_images and to_plain_text."""

    @given(
        st.lists(
            st.tuples(
                st.one_of(st.none(), image_urls),  # src
                st.one_of(st.none(), image_urls),  # data-lazy-src
                st.one_of(st.none(), st.lists(image_urls, min_size=1, max_size=3)),  # srcset
            ),
            min_size=1,
            max_size=5,
        ),
        st.booleans(),
    )
    def test_rewrite_is_idempotent_on_src(self, images, include_data_src):
        """Rewriting already rewritten markup leaves every src value unchanged."""
        parts = []
        for src, lazy_src, srcset in images:
            attributes = ""
            if src:
                attributes += f' src="{src}"'
            if lazy_src:
                attributes += f' data-lazy-src="{lazy_src}"'
            if srcset:
                candidates = ", ".join(f"{url} {i + 1}00w" for i, url in enumerate(srcset))
                attributes += f' srcset="{candidates}"'
            parts.append(f"<p><img{attributes}></p>")
        html = "".join(parts)

        once = rewrite_images(html, include_data_src=include_data_src)
        twice = rewrite_images(once, include_data_src=include_data_src)

        assert _sources(once) == _sources(twice)

    @given(st.text(alphabet=st.characters(blacklist_characters="&"), max_size=300))
    def test_plain_text_never_raises_and_has_no_tags(self, html):
        """Any input yields a string without markup tags or leading/trailing whitespace."""
        text = to_plain_text(f"<div>{html}</div>")

        assert isinstance(text, str)
        assert text == text.strip()
        assert "<div>" not in text

    @given(st.text(alphabet=st.characters(blacklist_characters="<"), max_size=200))
    def test_text_without_images_is_returned_unchanged(self, html):
        """Markup without an img element passes through byte for byte."""
        assert rewrite_images(html) == html
