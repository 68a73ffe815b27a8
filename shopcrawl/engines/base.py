from __future__ import annotations

import enum
from dataclasses import dataclass, field, asdict
from typing import Any, Dict
from abc import ABC, abstractmethod


class CrawlState(enum.Enum):
    IDLE = "idle"
    RUNNING = "running"
    DRAINING = "draining"
    DONE = "done"


@dataclass
class CrawlReport:
    pages_fetched: int = 0
    # Pages whose fetch gave up after retries or whose extraction raised.
    pages_failed: int = 0
    products_extracted: int = 0
    links_accepted: int = 0
    links_rejected: int = 0
    failures: Dict[str, str] = field(default_factory=dict)  # url -> last error
    # exhausted | max_depth | max_pages | cancelled
    stop_reason: str = "exhausted"

    def record_failure(self, url: str, reason: str) -> None:
        self.pages_failed += 1
        self.failures[url] = reason

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class CrawlEngine(ABC):
    """
    Abstract engine interface. Implementations own the crawl lifecycle.
    """
    @abstractmethod
    async def crawl(self) -> CrawlReport:  # pragma: no cover - interface
        ...

    @abstractmethod
    def cancel(self) -> None:  # pragma: no cover - interface
        ...
