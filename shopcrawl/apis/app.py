from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Optional
import logging
import os

try:
    from fastapi import FastAPI, HTTPException
    from pydantic import BaseModel
except ImportError as exc:  # pragma: no cover - optional dependency
    raise RuntimeError(
        "FastAPI not installed. Install with `pip install 'shopcrawl[api]'` "
        "or avoid using the API server."
    ) from exc

from ..config import CrawlConfig
from ..errors import ConfigError, SinkWriteError
from ..runner import build_sink, run_crawl
from ..version import __version__

logger = logging.getLogger(__name__)

app = FastAPI(title="shopcrawl API", version=__version__)


def output_dir() -> Path:
    """Directory every API crawl writes into (SHOPCRAWL_API_OUTPUT_DIR, default ./output)."""
    return Path(os.getenv("SHOPCRAWL_API_OUTPUT_DIR", "output")).resolve()


def resolve_output_path(name: str) -> str:
    base = output_dir()
    target = (base / name).resolve()
    if target == base or not target.is_relative_to(base):
        raise ConfigError(f"output_path {name!r} must name a file inside {base}")
    return str(target)


class CrawlRequest(BaseModel):
    seed_url: str
    root_domain: Optional[str] = None
    include_subdomains: Optional[bool] = None
    max_depth: Optional[int] = None
    max_pages: Optional[int] = None
    max_concurrency: Optional[int] = None
    depth_limit_mode: Optional[str] = None
    query_policy: Optional[str] = None
    drop_query_params: Optional[List[str]] = None
    output_path: Optional[str] = None
    extra_adapters: Optional[List[str]] = None


@app.get("/health")
async def health() -> Dict[str, str]:
    return {"status": "ok", "version": __version__}


@app.post("/crawl")
async def crawl(req: CrawlRequest) -> Dict[str, Any]:
    try:
        cfg = CrawlConfig.from_env()
        cfg.seed_url = req.seed_url
        for name, value in req.model_dump(exclude={"seed_url", "output_path"}, exclude_none=True).items():
            setattr(cfg, name, value)
        cfg.output_path = resolve_output_path(req.output_path or Path(cfg.output_path).name)
        cfg.validate()
        sink = build_sink(cfg)
    except ConfigError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc

    try:
        sink.open()
        report = await run_crawl(cfg, sink)
    except SinkWriteError as exc:
        logger.error("Crawl of %s aborted: %s", cfg.seed_url, exc)
        raise HTTPException(status_code=500, detail=str(exc)) from exc
    finally:
        sink.close()
    return {"output_path": cfg.output_path, **report.to_dict()}
