from __future__ import annotations

from typing import Protocol

from ..adapters.base import ProductRecord


class Sink(Protocol):
    """
    Append-only destination for product records.
    ``emit`` must be safe to call from concurrent crawl tasks and raise
    SinkWriteError when a record cannot be persisted.
    """

    path: str

    def open(self) -> None:
        ...

    def emit(self, record: ProductRecord) -> None:
        ...

    def close(self) -> None:
        ...

    def __enter__(self) -> "Sink":
        ...

    def __exit__(self, *exc_info) -> None:
        ...
