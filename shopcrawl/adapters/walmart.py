from __future__ import annotations

from urllib.parse import urlparse

from bs4 import BeautifulSoup

from .base import ParseResult
from ..utils.parsing import extract_links, extract_tiles, make_soup


class WalmartSearchAdapter:
    """
    Product tiles on Walmart-style search and browse pages.
    Selectors are best-effort and track the storefront's markup, so expect to
    revisit them when the site changes.
    """

    name = "walmart"
    domains = ["walmart.com", "www.walmart.com"]

    tile_selector = "div[data-item-id], div[data-automation-id='productTile']"
    name_selector = (
        "[data-automation-id='product-title'], "
        "div[data-automation-id='product-title-link'], "
        "a[aria-label]"
    )
    price_selector = (
        "[data-automation-id='product-price'], "
        "div.price-main span, "
        "span[aria-hidden='true']"
    )

    def matches(self, url: str) -> bool:
        host = (urlparse(url).hostname or "").lower()
        return host == "walmart.com" or host.endswith(".walmart.com")

    def extract(self, content: bytes, page_url: str) -> ParseResult:
        soup = make_soup(content)
        records = extract_tiles(
            soup,
            page_url,
            tile_selector=self.tile_selector,
            name_selector=self.name_selector,
            price_selector=self.price_selector,
        )
        return ParseResult(records=records, links=self._next_links(soup))

    def _next_links(self, soup: BeautifulSoup) -> list[str]:
        # Skip account, cart and sign-in chrome; keep search, browse and item pages.
        blocked = ("/account", "/cart", "/signin", "/help", "/lists")
        return [
            link
            for link in extract_links(soup)
            if not urlparse(link).path.startswith(blocked)
        ]
