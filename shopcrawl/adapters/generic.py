from __future__ import annotations

from typing import List
from .base import ParseResult
from ..utils.parsing import extract_links, extract_product_metadata, extract_tiles, make_soup

# Common storefront markup: schema.org microdata first, then theme class names.
TILE_SELECTOR = "[itemtype$='schema.org/Product'], .product-card, .product-tile, .product-item, li.product"
NAME_SELECTOR = "[itemprop='name'], .product-title, .product-name, .product-card__title, h2, h3"
PRICE_SELECTOR = "[itemprop='price'], .price, .product-price, .product-card__price"


class GenericAdapter:
    """
    A generic, domain-agnostic adapter that uses structured data and markup heuristics.
    Acts as a safe fallback when no specific adapter matches a URL.
    """
    name = "generic"
    domains: List[str] = []  # matches any

    def matches(self, url: str) -> bool:  # pragma: no cover - trivial
        return True

    def extract(self, content: bytes, page_url: str) -> ParseResult:
        soup = make_soup(content)
        records = extract_product_metadata(soup, page_url)
        if not records:
            records = extract_tiles(
                soup,
                page_url,
                tile_selector=TILE_SELECTOR,
                name_selector=NAME_SELECTOR,
                price_selector=PRICE_SELECTOR,
            )
        # For the generic adapter, next links are simply all extracted links.
        return ParseResult(records=records, links=extract_links(soup))
