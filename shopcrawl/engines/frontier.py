"""
Breadth-first frontier: the only owner of the visited set and the pending queue.

Entries are queued per depth and always handed out lowest depth first. A depth
barrier stops ``next()`` from releasing depth ``k`` while a depth ``< k-1`` page
is still in flight, since that page could still add depth ``< k`` entries.
Together these keep dequeue order non-decreasing in depth even when pages
finish out of order.
"""
from __future__ import annotations

import logging
import threading
from collections import Counter, deque
from dataclasses import dataclass
from typing import Deque, Dict, Optional, Sequence, Set, Union

from ..errors import ConfigError, NormalizeError
from ..utils.scope import DomainFilter
from ..utils.urls import CanonicalURL, normalize, resolve

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FrontierEntry:
    key: CanonicalURL
    depth: int
    # Absolute, fragment-free URL as discovered; this is what gets fetched.
    raw_url: str


@dataclass
class FrontierStats:
    accepted: int = 0
    duplicate: int = 0
    out_of_scope: int = 0
    malformed: int = 0
    too_deep: int = 0


class Frontier:
    def __init__(
        self,
        scope: DomainFilter,
        *,
        max_depth: Optional[int] = None,
        depth_limit_mode: str = "discovery",
        query_policy: str = "keep",
        drop_query_params: Sequence[str] = (),
    ) -> None:
        if depth_limit_mode not in ("discovery", "dispatch"):
            raise ConfigError(f"unknown depth_limit_mode {depth_limit_mode!r}")
        self.scope = scope
        self.max_depth = max_depth
        self.depth_limit_mode = depth_limit_mode
        self.query_policy = query_policy
        self.drop_query_params = tuple(drop_query_params)
        self.stats = FrontierStats()

        self._lock = threading.Lock()
        self._visited: Set[CanonicalURL] = set()
        self._queues: Dict[int, Deque[FrontierEntry]] = {}
        self._in_flight: Counter[int] = Counter()
        self._seed: Optional[FrontierEntry] = None

    # ---- Intake -------------------------------------------------------------

    def offer_seed(self, raw_url: str) -> FrontierEntry:
        """Enqueue the seed at depth 0. Bad or out-of-scope seeds are setup errors."""
        with self._lock:
            if self._seed is not None:
                raise RuntimeError("seed already offered to this frontier")
            key = self._normalize(raw_url, None)
            if not self.scope(key):
                raise ConfigError(f"seed {raw_url!r} is outside root domain {self.scope.root_domain!r}")
            entry = FrontierEntry(key=key, depth=0, raw_url=resolve(raw_url))
            self._visited.add(key)
            self._queues.setdefault(0, deque()).append(entry)
            self._seed = entry
            self.stats.accepted += 1
            return entry

    def offer(
        self,
        raw_url: str,
        from_depth: int,
        base: Optional[Union[CanonicalURL, str]] = None,
    ) -> bool:
        """
        Offer a link discovered on a page at ``from_depth``.

        Returns True only when the link was new and in scope and got queued at
        ``from_depth + 1``. Rejections are routine and only logged at DEBUG.
        """
        depth = from_depth + 1
        with self._lock:
            if base is None and self._seed is not None:
                base = self._seed.raw_url
            try:
                key = self._normalize(raw_url, base)
            except NormalizeError as exc:
                self.stats.malformed += 1
                logger.debug("Dropping malformed link: %s", exc)
                return False

            if not self.scope(key):
                self.stats.out_of_scope += 1
                return False
            if key in self._visited:
                self.stats.duplicate += 1
                return False
            if self.depth_limit_mode == "discovery" and self._beyond_max_depth(depth):
                self.stats.too_deep += 1
                return False

            self._visited.add(key)
            self._queues.setdefault(depth, deque()).append(
                FrontierEntry(key=key, depth=depth, raw_url=resolve(raw_url, base))
            )
            self.stats.accepted += 1
            return True

    def claim(self, entry: FrontierEntry, final_url: str) -> bool:
        """
        Record the URL a fetch of ``entry`` ended on after redirects.

        Returns False when that URL was already visited under its own key, in
        which case its content is handled by that visit instead.
        """
        with self._lock:
            key = self._normalize(final_url, entry.raw_url)
            if key == entry.key:
                return True
            if key in self._visited:
                self.stats.duplicate += 1
                return False
            self._visited.add(key)
            return True

    # ---- Dispatch -----------------------------------------------------------

    def next(self) -> Optional[FrontierEntry]:
        """
        Pop the next entry to fetch and mark it in flight.

        None means nothing is ready: the queue is empty, only entries past
        ``max_depth`` remain (dispatch mode), or the depth barrier is holding
        the head back until in-flight pages complete.
        """
        with self._lock:
            if not self._queues:
                return None
            depth = min(self._queues)
            if self.depth_limit_mode == "dispatch" and self._beyond_max_depth(depth):
                return None
            if any(d < depth - 1 for d in self._in_flight):
                return None
            queue = self._queues[depth]
            entry = queue.popleft()
            if not queue:
                del self._queues[depth]
            self._in_flight[depth] += 1
            return entry

    def complete(self, entry: FrontierEntry) -> None:
        """Release an entry handed out by ``next()``, whatever its outcome."""
        with self._lock:
            if self._in_flight[entry.depth] <= 0:
                raise ValueError(f"{entry.raw_url} is not in flight")
            self._in_flight[entry.depth] -= 1
            if not self._in_flight[entry.depth]:
                del self._in_flight[entry.depth]

    # ---- Introspection ------------------------------------------------------

    def size(self) -> int:
        with self._lock:
            return sum(len(q) for q in self._queues.values())

    def ready(self) -> bool:
        """True if some queued entry may still be handed out, barrier aside."""
        with self._lock:
            if not self._queues:
                return False
            if self.depth_limit_mode == "dispatch":
                return not self._beyond_max_depth(min(self._queues))
            return True

    @property
    def in_flight(self) -> int:
        with self._lock:
            return sum(self._in_flight.values())

    @property
    def seen(self) -> int:
        with self._lock:
            return len(self._visited)

    def __contains__(self, url: Union[CanonicalURL, str]) -> bool:
        if not isinstance(url, CanonicalURL):
            url = self._normalize(url, None)
        with self._lock:
            return url in self._visited

    # ---- Internals ----------------------------------------------------------

    def _normalize(self, raw_url: str, base: Optional[Union[CanonicalURL, str]]) -> CanonicalURL:
        return normalize(
            raw_url,
            base,
            query_policy=self.query_policy,
            drop_query_params=self.drop_query_params,
        )

    def _beyond_max_depth(self, depth: int) -> bool:
        return self.max_depth is not None and depth > self.max_depth
