from __future__ import annotations

from typing import Iterable, List, Any, Optional
from urllib.parse import urljoin

from bs4 import BeautifulSoup, Tag
from bs4.builder import ParserRejectedMarkup
import json

from ..adapters.base import ProductRecord
from ..errors import ExtractionError


def make_soup(content: bytes | str) -> BeautifulSoup:
    # bs4 sniffs the encoding from bytes (meta charset, BOM, then fallbacks).
    try:
        return BeautifulSoup(content, "html.parser")
    except ParserRejectedMarkup as exc:
        raise ExtractionError(f"unparsable markup: {exc}") from exc


def extract_links(soup: BeautifulSoup) -> List[str]:
    """
    Raw href values of all anchors, first occurrence order, without duplicates.
    Resolution and canonicalization are left to the frontier.
    """
    out: List[str] = []
    seen = set()
    for a in soup.select("a[href]"):
        href = a.get("href")
        if not href or not href.strip() or href in seen:
            continue
        seen.add(href)
        out.append(href)
    return out


def text_of(node: Optional[Tag]) -> str:
    if node is None:
        return ""
    return " ".join(node.get_text(" ", strip=True).split())


def extract_tiles(
    soup: BeautifulSoup,
    page_url: str,
    *,
    tile_selector: str,
    name_selector: str,
    price_selector: str,
) -> List[ProductRecord]:
    """
    Records from repeated product tiles. Tiles missing a name or a price are
    skipped; the link is the tile's first anchor, else the page itself.
    """
    records: List[ProductRecord] = []
    for tile in soup.select(tile_selector):
        name = text_of(tile.select_one(name_selector))
        if not name:
            # Title links often only carry the name in aria-label.
            labelled = tile.select_one("a[aria-label]")
            name = (labelled.get("aria-label") or "").strip() if labelled else ""
        price_node = tile.select_one(price_selector)
        # Microdata prices often live in a content attribute.
        price = (price_node.get("content") or "").strip() if price_node else ""
        price = price or text_of(price_node)
        if not name or not price:
            continue
        anchor = tile.select_one("a[href]")
        link = urljoin(page_url, anchor["href"]) if anchor else page_url
        records.append(ProductRecord(name=name, price=price, link=link))
    return records


def extract_product_metadata(soup: BeautifulSoup, page_url: str) -> List[ProductRecord]:
    """Extract product records from JSON-LD blocks, falling back to OpenGraph meta."""

    products: List[ProductRecord] = []

    for script in soup.find_all("script", attrs={"type": "application/ld+json"}):
        payload = script.string or ""
        try:
            data = json.loads(payload)
        except json.JSONDecodeError:
            continue

        for item in _iter_jsonld_items(data):
            product = _product_from_jsonld(item, page_url)
            if product:
                products.append(product)

    if products:
        return products

    # Fallback: OpenGraph product hints for pages lacking JSON-LD.
    og_title = soup.find("meta", attrs={"property": "og:title"})
    og_price = soup.find("meta", attrs={"property": "product:price:amount"})
    og_currency = soup.find("meta", attrs={"property": "product:price:currency"})
    og_url = soup.find("meta", attrs={"property": "og:url"})
    if og_title and og_price and og_title.get("content") and og_price.get("content"):
        products.append(
            ProductRecord(
                name=og_title["content"].strip(),
                price=og_price["content"].strip(),
                link=urljoin(page_url, og_url["content"]) if og_url and og_url.get("content") else page_url,
                currency=og_currency.get("content") if og_currency else None,
            )
        )

    return products


def _iter_jsonld_items(data: Any) -> Iterable[Any]:
    if isinstance(data, list):
        for item in data:
            yield from _iter_jsonld_items(item)
    elif isinstance(data, dict):
        if "@graph" in data:
            yield from _iter_jsonld_items(data["@graph"])
        elif data.get("@type") == "ItemList" and isinstance(data.get("itemListElement"), list):
            for element in data["itemListElement"]:
                # ListItem wrappers carry the product under "item".
                if isinstance(element, dict) and isinstance(element.get("item"), dict):
                    yield element["item"]
                else:
                    yield element
        else:
            yield data


def _is_product_type(type_field: Any) -> bool:
    if isinstance(type_field, list):
        return any(isinstance(t, str) and t.lower() == "product" for t in type_field)
    return isinstance(type_field, str) and type_field.lower() == "product"


def _product_from_jsonld(item: Any, page_url: str) -> ProductRecord | None:
    if not isinstance(item, dict) or not _is_product_type(item.get("@type")):
        return None

    offers = item.get("offers")
    if isinstance(offers, list):
        offers = offers[0] if offers else None
    if not isinstance(offers, dict):
        offers = {}

    price = offers.get("price") or offers.get("lowPrice")
    name = item.get("name")
    if not name or price is None:
        return None

    url = item.get("url") or offers.get("url") or page_url
    return ProductRecord(
        name=str(name).strip(),
        price=str(price),
        link=urljoin(page_url, str(url)),
        currency=offers.get("priceCurrency"),
    )
