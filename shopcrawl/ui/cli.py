from __future__ import annotations

import argparse
import asyncio
import logging
from typing import List

from ..config import CrawlConfig, DEPTH_LIMIT_MODES, QUERY_POLICIES
from ..errors import ConfigError, NormalizeError, SinkWriteError
from ..runner import build_sink, run_crawl
from ..utils.logging import setup_logging
from ..engines.base import CrawlReport

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_SINK_FAILURE = 1
EXIT_SETUP_FAILURE = 2


def build_arg_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="shopcrawl", description="Single-domain breadth-first product crawler")
    p.add_argument("seed", nargs="?", default=None, help="Seed URL to start crawling from")
    p.add_argument("--config", type=str, help="Path to config JSON", default=None)
    p.add_argument("--max-depth", type=int, default=None, help="Max link depth from the seed (default: unlimited)")
    p.add_argument("--max-pages", type=int, default=None, help="Max pages to fetch, 0 for unlimited (default 20)")
    p.add_argument("--concurrency", type=int, default=None, help="Max simultaneous fetches (default from config)")
    p.add_argument("--output", type=str, default=None, help="Output file path (default products.csv)")
    p.add_argument("--root-domain", type=str, default=None, help="Domain to stay on (default: the seed's host)")
    p.add_argument("--include-subdomains", action="store_true", default=None,
                   help="Also follow links to subdomains of the root domain")
    p.add_argument("--depth-limit-mode", choices=DEPTH_LIMIT_MODES, default=None,
                   help="Whether --max-depth stops enqueueing (discovery) or only fetching (dispatch)")
    p.add_argument("--query-policy", choices=QUERY_POLICIES, default=None,
                   help="Treat reordered query parameters as distinct (keep) or equal (sort)")
    p.add_argument("--drop-query-param", action="append", default=None, metavar="GLOB",
                   help="Query parameter to ignore for dedup, e.g. 'utm_*' (repeatable)")
    p.add_argument("--retries", type=int, default=None, help="Retries per page after the first attempt")
    p.add_argument("--timeout", type=float, default=None, help="Per-request timeout in seconds")
    p.add_argument("--max-body-bytes", type=int, default=None,
                   help="Abandon responses larger than this many bytes")
    p.add_argument("--sink", type=str, default=None, help="Sink dotted path (module:ClassName)")
    p.add_argument("--extra-adapters", type=str, default=None,
                   help="Comma-separated dotted paths for additional adapters")
    p.add_argument("--log-level", type=str, default=None, help="Log level (DEBUG, INFO, WARNING, ERROR)")
    p.add_argument("--serve", action="store_true", help="Run REST API server instead of CLI crawl")
    p.add_argument("--host", type=str, default="127.0.0.1", help="API host (when --serve)")
    p.add_argument("--port", type=int, default=8000, help="API port (when --serve)")
    return p


def _load_config(args: argparse.Namespace) -> CrawlConfig:
    if args.config:
        cfg = CrawlConfig.from_file(args.config)
    else:
        cfg = CrawlConfig.from_env()

    if args.seed:
        cfg.seed_url = args.seed
    if args.max_depth is not None:
        cfg.max_depth = args.max_depth
    if args.max_pages is not None:
        cfg.max_pages = args.max_pages or None
    if args.concurrency is not None:
        cfg.max_concurrency = args.concurrency
    if args.output:
        cfg.output_path = args.output
    if args.root_domain:
        cfg.root_domain = args.root_domain
    if args.include_subdomains:
        cfg.include_subdomains = True
    if args.depth_limit_mode:
        cfg.depth_limit_mode = args.depth_limit_mode
    if args.query_policy:
        cfg.query_policy = args.query_policy
    if args.drop_query_param:
        cfg.drop_query_params = list(args.drop_query_param)
    if args.retries is not None:
        cfg.retries = args.retries
    if args.timeout is not None:
        cfg.request_timeout = args.timeout
    if args.max_body_bytes is not None:
        cfg.max_body_bytes = args.max_body_bytes
    if args.sink:
        cfg.sink = args.sink
    if args.extra_adapters:
        cfg.extra_adapters = [a.strip() for a in args.extra_adapters.split(",") if a.strip()]

    cfg.validate()
    return cfg


def run_server(host: str, port: int) -> None:
    try:
        import uvicorn  # type: ignore
    except ImportError as exc:  # pragma: no cover - optional dep
        raise SystemExit("To run the API, install the api extra: pip install 'shopcrawl[api]'") from exc
    uvicorn.run("shopcrawl.apis.app:app", host=host, port=port)


def run_cli(argv: List[str] | None = None) -> int:
    args = build_arg_parser().parse_args(argv)
    setup_logging(args.log_level)

    if args.serve:
        run_server(args.host, args.port)
        return EXIT_OK

    try:
        cfg = _load_config(args)
        sink = build_sink(cfg)
        sink.open()
    except (ConfigError, SinkWriteError) as exc:
        logger.error("Setup failed: %s", exc)
        return EXIT_SETUP_FAILURE

    try:
        report: CrawlReport = asyncio.run(run_crawl(cfg, sink, handle_sigint=True))
    except (ConfigError, NormalizeError) as exc:
        # Raised while seeding the frontier: bad or out-of-scope seed URL.
        logger.error("Setup failed: %s", exc)
        return EXIT_SETUP_FAILURE
    except SinkWriteError as exc:
        logger.error("Crawl aborted, results could not be saved: %s", exc)
        return EXIT_SINK_FAILURE
    finally:
        sink.close()

    logger.info("Pages fetched: %s | Pages failed: %s | Products: %s | Output: %s",
                report.pages_fetched,
                report.pages_failed,
                report.products_extracted,
                cfg.output_path)
    return EXIT_OK
