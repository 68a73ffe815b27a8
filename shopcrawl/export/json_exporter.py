from __future__ import annotations

import json
import threading
from typing import IO, Optional
from pathlib import Path

from ..adapters.base import ProductRecord
from ..errors import SinkWriteError


class JSONLinesSink:
    """One JSON object per product, one product per line."""

    def __init__(self, path: str) -> None:
        self.path = path
        self.count = 0
        self._lock = threading.Lock()
        self._fh: Optional[IO[str]] = None

    def open(self) -> None:
        try:
            Path(self.path).parent.mkdir(parents=True, exist_ok=True)
            self._fh = open(self.path, "w", encoding="utf-8")
        except OSError as exc:
            raise SinkWriteError(f"cannot open {self.path} for writing: {exc}") from exc

    def emit(self, record: ProductRecord) -> None:
        line = json.dumps(record.to_dict(), ensure_ascii=False)
        with self._lock:
            if self._fh is None:
                raise SinkWriteError(f"sink for {self.path} is not open")
            try:
                self._fh.write(line + "\n")
                self._fh.flush()
            except OSError as exc:
                raise SinkWriteError(f"failed writing to {self.path}: {exc}") from exc
            self.count += 1

    def close(self) -> None:
        with self._lock:
            if self._fh is not None:
                self._fh.close()
                self._fh = None

    def __enter__(self) -> "JSONLinesSink":
        self.open()
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
