"""Wiring shared by the CLI and the HTTP API."""
from __future__ import annotations

import asyncio
import logging
import signal
from typing import Optional

from .adapters.registry import AdapterRegistry
from .config import CrawlConfig
from .engines.base import CrawlReport
from .engines.bfs_engine import BFSCrawlEngine
from .export.base import Sink
from .utils.loader import load_symbol
from .utils.retry import SupportsFetch

logger = logging.getLogger(__name__)


def build_registry(cfg: CrawlConfig, *, discover_plugins: bool = True) -> AdapterRegistry:
    registry = AdapterRegistry()
    if discover_plugins:
        registry.discover_entry_points()
    # Allow runtime registration of additional adapters
    for dotted in cfg.extra_adapters:
        try:
            adapter_cls = load_symbol(dotted)
            registry.register(adapter_cls())
        except Exception as exc:
            logger.warning("Failed to load adapter %s: %r", dotted, exc)
    return registry


def build_sink(cfg: CrawlConfig) -> Sink:
    # Dynamic sink loading so new output formats don't require code edits.
    sink_cls = load_symbol(cfg.sink)
    return sink_cls(cfg.output_path)


async def run_crawl(
    cfg: CrawlConfig,
    sink: Sink,
    *,
    registry: Optional[AdapterRegistry] = None,
    fetcher: Optional[SupportsFetch] = None,
    handle_sigint: bool = False,
) -> CrawlReport:
    """Run one crawl into an already opened sink."""
    engine = BFSCrawlEngine(cfg, sink, registry=registry or build_registry(cfg), fetcher=fetcher)
    loop = asyncio.get_running_loop()
    installed = False
    if handle_sigint:
        try:
            loop.add_signal_handler(signal.SIGINT, _on_interrupt, engine)
            installed = True
        except (NotImplementedError, RuntimeError):
            # Windows event loops and non-main threads cannot take signal handlers.
            logger.debug("SIGINT handler unavailable; Ctrl+C will abort without draining")
    try:
        return await engine.crawl()
    finally:
        if installed:
            loop.remove_signal_handler(signal.SIGINT)


def _on_interrupt(engine: BFSCrawlEngine) -> None:
    logger.warning("Interrupted: finishing in-flight pages, no new fetches")
    engine.cancel()
