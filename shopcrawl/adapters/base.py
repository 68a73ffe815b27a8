from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol


@dataclass(frozen=True)
class ProductRecord:
    """One product as persisted by a sink: name, price and link."""

    name: str
    price: str
    link: str
    currency: Optional[str] = None

    FIELDS = ("name", "price", "link")

    def to_row(self) -> List[str]:
        return [self.name, self.price, self.link]

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"name": self.name, "price": self.price, "link": self.link}
        if self.currency:
            data["currency"] = self.currency
        return data


@dataclass
class ParseResult:
    records: List[ProductRecord] = field(default_factory=list)
    links: List[str] = field(default_factory=list)


class SiteAdapter(Protocol):
    """
    Interface for site-specific extraction logic.
    Keep this small and stable so adapters rarely break across upgrades.
    """

    name: str
    domains: List[str]  # e.g. ["example.com", "www.example.com"]

    def matches(self, url: str) -> bool:
        """Return True if this adapter should handle the given URL."""
        ...

    def extract(self, content: bytes, page_url: str) -> ParseResult:
        """
        Given raw page bytes and the page URL, return product records and
        outbound links. A page without products is an empty result, not an
        error. Engine owns HTTP, queueing, scope and depth control.
        """
        ...
