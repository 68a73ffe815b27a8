"""
Per-URL retry bookkeeping.

Each fetch walks ``PENDING -> ATTEMPTING(n) -> SUCCEEDED | FAILED``. The state
object only decides; ``fetch_with_retry`` performs the attempts and sleeps.
"""
from __future__ import annotations

import asyncio
import enum
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, List, Optional, Protocol

from ..errors import FetchError

logger = logging.getLogger(__name__)


class RetryPhase(enum.Enum):
    PENDING = "pending"
    ATTEMPTING = "attempting"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass(frozen=True)
class RetryPolicy:
    retries: int = 2
    backoff_base: float = 0.5
    backoff_max: float = 5.0

    @property
    def max_attempts(self) -> int:
        return self.retries + 1

    def delay(self, attempt: int) -> float:
        """Backoff before the attempt following ``attempt`` (1-based)."""
        if self.backoff_base <= 0:
            return 0.0
        return min(self.backoff_base * 2 ** (attempt - 1), self.backoff_max)


@dataclass
class RetryState:
    policy: RetryPolicy
    phase: RetryPhase = RetryPhase.PENDING
    attempt: int = 0
    errors: List[FetchError] = field(default_factory=list)

    def start_attempt(self) -> int:
        if self.phase in (RetryPhase.SUCCEEDED, RetryPhase.FAILED):
            raise RuntimeError(f"cannot start an attempt in phase {self.phase.value}")
        if self.attempt >= self.policy.max_attempts:
            raise RuntimeError("no attempts left")
        self.phase = RetryPhase.ATTEMPTING
        self.attempt += 1
        return self.attempt

    def succeed(self) -> None:
        if self.phase is not RetryPhase.ATTEMPTING:
            raise RuntimeError(f"cannot succeed from phase {self.phase.value}")
        self.phase = RetryPhase.SUCCEEDED

    def fail(self, error: FetchError) -> bool:
        """Record a failed attempt; True if another attempt is allowed."""
        if self.phase is not RetryPhase.ATTEMPTING:
            raise RuntimeError(f"cannot fail from phase {self.phase.value}")
        self.errors.append(error)
        if error.retryable and self.attempt < self.policy.max_attempts:
            return True
        self.phase = RetryPhase.FAILED
        return False

    @property
    def last_error(self) -> Optional[FetchError]:
        return self.errors[-1] if self.errors else None


class SupportsFetch(Protocol):
    async def fetch(self, url: str): ...


async def fetch_with_retry(
    fetcher: SupportsFetch,
    url: str,
    policy: RetryPolicy,
    *,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
):
    """
    Fetch ``url``, retrying retryable failures per ``policy``.
    Returns the fetcher's response; raises the last FetchError when giving up.
    """
    state = RetryState(policy)
    while True:
        attempt = state.start_attempt()
        try:
            response = await fetcher.fetch(url)
        except FetchError as exc:
            if not state.fail(exc):
                raise
            delay = policy.delay(attempt)
            logger.debug("Attempt %s for %s failed (%s); retrying in %.2fs", attempt, url, exc, delay)
            await sleep(delay)
            continue
        state.succeed()
        return response
