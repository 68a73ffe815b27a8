from __future__ import annotations

import csv
import threading
from typing import IO, Optional
from pathlib import Path

from ..adapters.base import ProductRecord
from ..errors import SinkWriteError


class CSVSink:
    """
    Streams one ``name,price,link`` row per product. The file is truncated at
    ``open()`` and flushed after every row so an aborted crawl keeps what it found.
    """

    _headers = list(ProductRecord.FIELDS)

    def __init__(self, path: str) -> None:
        self.path = path
        self.count = 0
        self._lock = threading.Lock()
        self._fh: Optional[IO[str]] = None
        self._writer = None

    def open(self) -> None:
        try:
            Path(self.path).parent.mkdir(parents=True, exist_ok=True)
            self._fh = open(self.path, "w", encoding="utf-8", newline="")
            self._writer = csv.writer(self._fh)
            self._writer.writerow(self._headers)
            self._fh.flush()
        except OSError as exc:
            raise SinkWriteError(f"cannot open {self.path} for writing: {exc}") from exc

    def emit(self, record: ProductRecord) -> None:
        with self._lock:
            if self._fh is None:
                raise SinkWriteError(f"sink for {self.path} is not open")
            try:
                self._writer.writerow(record.to_row())
                self._fh.flush()
            except OSError as exc:
                raise SinkWriteError(f"failed writing to {self.path}: {exc}") from exc
            self.count += 1

    def close(self) -> None:
        with self._lock:
            if self._fh is not None:
                self._fh.close()
                self._fh = None
                self._writer = None

    def __enter__(self) -> "CSVSink":
        self.open()
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
