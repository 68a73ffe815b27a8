# tests/conftest.py

from __future__ import annotations

import asyncio
from typing import Callable, Dict, List, Optional, Union

import pytest

from shopcrawl.adapters.base import ProductRecord
from shopcrawl.config import CrawlConfig
from shopcrawl.errors import HTTPStatusError, SinkWriteError
from shopcrawl.utils.http import FetchResponse

Outcome = Union[str, bytes, Exception, FetchResponse]


class FakeFetcher:
    """
    In-memory fetcher. Each URL maps to one outcome or a list of outcomes
    consumed one per call; unknown URLs answer 404.
    """

    def __init__(
        self,
        pages: Dict[str, Union[Outcome, List[Outcome]]],
        *,
        delays: Optional[Dict[str, float]] = None,
        hooks: Optional[Dict[str, Callable[[], None]]] = None,
    ) -> None:
        self.pages = {url: list(v) if isinstance(v, list) else v for url, v in pages.items()}
        self.delays = delays or {}
        self.hooks = hooks or {}
        self.calls: List[str] = []

    async def fetch(self, url: str) -> FetchResponse:
        self.calls.append(url)
        if url in self.hooks:
            self.hooks[url]()
        await asyncio.sleep(self.delays.get(url, 0))
        outcome = self.pages.get(url)
        if isinstance(outcome, list):
            outcome = outcome.pop(0)
        if outcome is None:
            raise HTTPStatusError(url, 404)
        if isinstance(outcome, Exception):
            raise outcome
        if isinstance(outcome, FetchResponse):
            return outcome
        content = outcome.encode("utf-8") if isinstance(outcome, str) else outcome
        return FetchResponse(url=url, content=content, content_type="text/html; charset=utf-8")


class MemorySink:
    def __init__(self, fail_after: Optional[int] = None) -> None:
        self.path = "memory"
        self.records: List[ProductRecord] = []
        self.fail_after = fail_after

    def open(self) -> None:
        pass

    def emit(self, record: ProductRecord) -> None:
        if self.fail_after is not None and len(self.records) >= self.fail_after:
            raise SinkWriteError("disk full")
        self.records.append(record)

    def close(self) -> None:
        pass

    def __enter__(self) -> "MemorySink":
        return self

    def __exit__(self, *exc_info) -> None:
        pass


def page(*links: str, products: str = "") -> str:
    anchors = "".join(f'<a href="{href}">link</a>' for href in links)
    return f"<html><body>{products}{anchors}</body></html>"


def product_card(name: str, price: str, href: str) -> str:
    return (
        f'<div class="product-card"><a href="{href}"><h3>{name}</h3></a>'
        f'<span class="price">{price}</span></div>'
    )


@pytest.fixture
def make_config(tmp_path):
    def _make(**overrides) -> CrawlConfig:
        values = dict(
            seed_url="https://example.com/",
            max_pages=None,
            max_concurrency=4,
            backoff_base=0.0,
            grace_period=1.0,
            output_path=str(tmp_path / "products.csv"),
        )
        values.update(overrides)
        return CrawlConfig(**values)

    return _make
