from __future__ import annotations

import asyncio
import logging
from contextlib import AsyncExitStack
from typing import Awaitable, Callable, Dict, Optional

from .base import CrawlEngine, CrawlReport, CrawlState
from .frontier import Frontier, FrontierEntry
from ..config import CrawlConfig
from ..adapters.registry import AdapterRegistry
from ..errors import FetchError, NormalizeError
from ..export.base import Sink
from ..utils.http import FetchResponse, HttpFetcher
from ..utils.retry import RetryPolicy, SupportsFetch, fetch_with_retry
from ..utils.scope import DomainFilter
from ..utils.urls import normalize

logger = logging.getLogger(__name__)


class BFSCrawlEngine(CrawlEngine):
    """
    Breadth-first, single-domain crawler.
    - Frontier owns ordering and dedup.
    - Engine owns dispatch, retries and termination.
    - Adapters own page parsing; the sink owns persistence.
    - At most ``max_concurrency`` fetch-and-extract tasks run at once.
    """
    def __init__(
        self,
        config: CrawlConfig,
        sink: Sink,
        registry: AdapterRegistry | None = None,
        fetcher: Optional[SupportsFetch] = None,
        *,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.config = config
        self.sink = sink
        self.registry = registry or AdapterRegistry()
        self.retry_policy = RetryPolicy(config.retries, config.backoff_base, config.backoff_max)
        self.scope = DomainFilter(config.effective_root_domain, config.include_subdomains)
        self.frontier = Frontier(
            self.scope,
            max_depth=config.max_depth,
            depth_limit_mode=config.depth_limit_mode,
            query_policy=config.query_policy,
            drop_query_params=config.drop_query_params,
        )
        self.state = CrawlState.IDLE
        self.report = CrawlReport()
        self._fetcher = fetcher
        self._sleep = sleep
        self._dispatched = 0
        self._cancel_requested = False
        self._wakeup: Optional[asyncio.Event] = None

    def cancel(self) -> None:
        """Stop dispatching; in-flight pages get ``grace_period`` to finish."""
        self._cancel_requested = True
        if self._wakeup is not None:
            self._wakeup.set()

    async def crawl(self) -> CrawlReport:
        if self.state is not CrawlState.IDLE:
            raise RuntimeError("an engine instance runs a single crawl")
        cfg = self.config
        report = self.report
        seed = self.frontier.offer_seed(cfg.seed_url)
        logger.info("Crawling %s (root domain %s)", seed.raw_url, self.scope.root_domain)

        self.state = CrawlState.RUNNING
        self._wakeup = asyncio.Event()
        if self._cancel_requested:
            self._wakeup.set()

        tasks: Dict[asyncio.Task, FrontierEntry] = {}
        async with AsyncExitStack() as stack:
            fetcher = self._fetcher
            if fetcher is None:
                fetcher = await stack.enter_async_context(
                    HttpFetcher(
                        timeout=cfg.request_timeout,
                        user_agent=cfg.user_agent,
                        max_body_bytes=cfg.max_body_bytes,
                    )
                )
            try:
                while True:
                    self._dispatch(fetcher, tasks)
                    if not tasks:
                        break
                    if self.state is CrawlState.DRAINING:
                        await self._drain(tasks)
                        break
                    waiter = asyncio.ensure_future(self._wakeup.wait())
                    try:
                        done, _ = await asyncio.wait([*tasks, waiter], return_when=asyncio.FIRST_COMPLETED)
                    finally:
                        waiter.cancel()
                    for task in done:
                        if task is not waiter:
                            self._collect(task, tasks)
            except BaseException:
                await self._abort(tasks)
                raise

        if self.state is CrawlState.RUNNING:
            self.state = CrawlState.DRAINING
            if self.frontier.size() or self.frontier.stats.too_deep:
                report.stop_reason = "max_depth"
        self.state = CrawlState.DONE
        logger.info(
            "Crawl finished (%s): fetched=%s failed=%s products=%s queued_unvisited=%s",
            report.stop_reason,
            report.pages_fetched,
            report.pages_failed,
            report.products_extracted,
            self.frontier.size(),
        )
        return report

    # ---- Dispatch loop ------------------------------------------------------

    def _dispatch(self, fetcher: SupportsFetch, tasks: Dict[asyncio.Task, FrontierEntry]) -> None:
        while self.state is CrawlState.RUNNING:
            reason = self._limit_reached()
            if reason:
                self.state = CrawlState.DRAINING
                self.report.stop_reason = reason
                logger.info("Stopping dispatch (%s); %s page(s) still in flight", reason, len(tasks))
                return
            if len(tasks) >= self.config.max_concurrency:
                return
            entry = self.frontier.next()
            if entry is None:
                return
            self._dispatched += 1
            logger.debug("Dispatching depth=%s %s", entry.depth, entry.raw_url)
            tasks[asyncio.create_task(self._process(fetcher, entry))] = entry

    def _limit_reached(self) -> Optional[str]:
        if self._cancel_requested:
            return "cancelled"
        max_pages = self.config.max_pages
        # Only a limit if something was left to fetch.
        if max_pages and self._dispatched >= max_pages and self.frontier.ready():
            return "max_pages"
        return None

    def _collect(self, task: asyncio.Task, tasks: Dict[asyncio.Task, FrontierEntry]) -> None:
        entry = tasks.pop(task)
        self.frontier.complete(entry)
        if task.cancelled():
            self.report.record_failure(entry.raw_url, "cancelled")
            return
        exc = task.exception()
        if exc is not None:
            # Per-page failures are handled inside _process; anything else is fatal.
            raise exc

    async def _drain(self, tasks: Dict[asyncio.Task, FrontierEntry]) -> None:
        done, pending = await asyncio.wait(list(tasks), timeout=self.config.grace_period)
        for task in done:
            self._collect(task, tasks)
        if pending:
            logger.warning("Cancelling %s page(s) still running after %.1fs grace period",
                           len(pending), self.config.grace_period)
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)
            for task in pending:
                self._collect(task, tasks)

    async def _abort(self, tasks: Dict[asyncio.Task, FrontierEntry]) -> None:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        for task, entry in list(tasks.items()):
            self.frontier.complete(entry)
            del tasks[task]
        self.state = CrawlState.DONE

    # ---- Per-page work ------------------------------------------------------

    async def _process(self, fetcher: SupportsFetch, entry: FrontierEntry) -> None:
        report = self.report
        try:
            response: FetchResponse = await fetch_with_retry(
                fetcher, entry.raw_url, self.retry_policy, sleep=self._sleep
            )
        except FetchError as exc:
            report.record_failure(entry.raw_url, str(exc))
            logger.warning("Giving up on %s: %s", entry.raw_url, exc)
            return
        report.pages_fetched += 1

        if not response.is_html:
            logger.debug("Skipping non-HTML %s (%s)", entry.raw_url, response.content_type)
            return
        page_url = response.url or entry.raw_url
        if not self._still_in_scope(page_url):
            logger.debug("Skipping %s: redirected out of scope to %s", entry.raw_url, page_url)
            return
        if not self.frontier.claim(entry, page_url):
            logger.debug("Skipping %s: redirected to already visited %s", entry.raw_url, page_url)
            return

        adapter = self.registry.match(page_url)
        try:
            parsed = adapter.extract(response.content, page_url)
        except Exception as exc:
            report.record_failure(entry.raw_url, f"extraction failed: {exc!r}")
            logger.warning("Adapter %s failed on %s: %r", getattr(adapter, "name", adapter), entry.raw_url, exc)
            return

        # Stream records as they are found; SinkWriteError propagates and ends the crawl.
        for record in parsed.records:
            self.sink.emit(record)
            report.products_extracted += 1

        accepted = 0
        for link in parsed.links:
            if self.frontier.offer(link, entry.depth, base=page_url):
                accepted += 1
        report.links_accepted += accepted
        report.links_rejected += len(parsed.links) - accepted
        logger.debug("%s: %s product(s), %s/%s link(s) queued",
                     entry.raw_url, len(parsed.records), accepted, len(parsed.links))

    def _still_in_scope(self, page_url: str) -> bool:
        try:
            return self.scope(normalize(page_url))
        except NormalizeError:
            return False
